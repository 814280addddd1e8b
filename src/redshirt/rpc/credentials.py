"""TLS material for the broker connection."""

import re
from pathlib import Path

import grpc

_PEM_BLOCK = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----\r?\n.+?\r?\n-----END \1-----\r?\n?",
    re.DOTALL,
)


class CredentialsError(Exception):
    """Certificate or key material could not be loaded."""


def _read(path: Path | str, what: str) -> bytes:
    try:
        return Path(path).expanduser().read_bytes()
    except OSError as e:
        raise CredentialsError(f"Could not load {what} '{path}': {e}") from e


def load_key_cert(path: Path | str) -> tuple[bytes, bytes]:
    """Split a combined PEM file into ``(private_key, certificate_chain)``."""
    data = _read(path, "TLS cert")
    keys: list[bytes] = []
    certs: list[bytes] = []
    for match in _PEM_BLOCK.finditer(data):
        label = match.group(1)
        if label.endswith(b"PRIVATE KEY"):
            keys.append(match.group(0))
        elif label == b"CERTIFICATE":
            certs.append(match.group(0))

    if len(keys) != 1:
        raise CredentialsError(
            f"Could not load TLS cert '{path}': expected one private key, found {len(keys)}"
        )
    if not certs:
        raise CredentialsError(f"Could not load TLS cert '{path}': no certificate found")
    return keys[0], b"".join(certs)


def load_ca(path: Path | str) -> bytes:
    data = _read(path, "CA cert")
    if not any(m.group(1) == b"CERTIFICATE" for m in _PEM_BLOCK.finditer(data)):
        raise CredentialsError(f"Could not load CA cert '{path}': no certificate found")
    return data


def channel_credentials(
    cert: Path | str, ca: Path | str
) -> grpc.ChannelCredentials:
    """Mutual TLS credentials from the client key+cert file and CA bundle."""
    key_pem, cert_pem = load_key_cert(cert)
    return grpc.ssl_channel_credentials(
        root_certificates=load_ca(ca),
        private_key=key_pem,
        certificate_chain=cert_pem,
    )
