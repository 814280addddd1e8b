"""Tests for configuration loading and models."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from redshirt.config.loader import load_config
from redshirt.config.models import ConfigError, WrapperConfig
from redshirt.rpc.messages import CommandAuth


def _minimal(**kwargs) -> dict:
    values = {
        "cert": "client.pem",
        "ca": "ca.pem",
        "namespace": "echo",
        "description": "echo server",
        "usage": "echo <msg>",
        "groups": ["infra"],
        "command": ["/bin/echo"],
    }
    values.update(kwargs)
    return values


class TestWrapperConfig:
    """Tests for WrapperConfig model."""

    def test_defaults(self):
        config = WrapperConfig(**_minimal())
        assert config.addr == "riker:6000"
        assert config.debug is False
        assert config.forced_registration is True
        assert config.keepalive_time == 30.0
        assert config.keepalive_timeout == 5.0
        assert config.max_backoff == 10.0
        assert config.connect_timeout == 60.0
        assert config.reconnect_delay == 3.0
        assert config.flush_lines == 10
        assert config.flush_interval == 2.0
        assert config.max_concurrency == 0
        assert config.command_timeout is None

    def test_paths(self):
        config = WrapperConfig(**_minimal())
        assert config.cert == Path("client.pem")
        assert config.ca == Path("ca.pem")

    @pytest.mark.parametrize(
        ("missing", "message"),
        [
            ("cert", "missing cert"),
            ("ca", "missing ca"),
            ("namespace", "missing namespace"),
            ("description", "missing description"),
            ("usage", "missing usage"),
            ("command", "missing command to wrap"),
        ],
    )
    def test_required_settings(self, missing, message):
        values = _minimal()
        del values[missing]
        with pytest.raises(ValidationError, match=message):
            WrapperConfig(**values)

    def test_requires_users_or_groups(self):
        with pytest.raises(ValidationError, match="either users or groups"):
            WrapperConfig(**_minimal(groups=[]))

    def test_users_alone_are_enough(self):
        config = WrapperConfig(**_minimal(groups=[], users=["alice"]))
        assert config.users == ["alice"]

    def test_debug_skips_certificates(self):
        values = _minimal(debug=True)
        del values["cert"]
        del values["ca"]
        config = WrapperConfig(**values)
        assert config.cert is None
        assert config.ca is None

    def test_blank_namespace_rejected(self):
        with pytest.raises(ValidationError, match="missing namespace"):
            WrapperConfig(**_minimal(namespace="   "))

    def test_comma_separated_names(self):
        config = WrapperConfig(**_minimal(users="alice, bob,,", groups=["infra,ops", "dev"]))
        assert config.users == ["alice", "bob"]
        assert config.groups == ["infra", "ops", "dev"]

    def test_rejects_nonpositive_flush_lines(self):
        with pytest.raises(ValidationError):
            WrapperConfig(**_minimal(flush_lines=0))

    def test_capability(self):
        config = WrapperConfig(**_minimal(users=["alice"], forced_registration=False))
        cap = config.capability()
        assert cap.name == "echo"
        assert cap.usage == "echo <msg>"
        assert cap.description == "echo server"
        assert cap.forced_registration is False
        assert cap.auth == CommandAuth(
            users=frozenset({"alice"}), groups=frozenset({"infra"})
        )


class TestLoadConfig:
    """Tests for load_config."""

    def test_overrides_only(self):
        config = load_config(overrides=_minimal(), environ={})
        assert config.namespace == "echo"
        assert config.command == ["/bin/echo"]

    def test_unset_overrides_are_ignored(self, config_file):
        config = load_config(
            config_file, overrides={"addr": None, "users": [], "namespace": None}, environ={}
        )
        assert config.addr == "riker.internal:6000"
        assert config.namespace == "echo"

    def test_file(self, config_file):
        config = load_config(config_file, environ={})
        assert config.debug is True
        assert config.groups == ["infra"]
        assert config.command == ["/bin/echo", "-n"]
        assert config.flush_lines == 5

    def test_environment(self):
        environ = {
            "REDSHIRT_ADDR": "broker:7000",
            "REDSHIRT_DEBUG": "true",
            "REDSHIRT_NAMESPACE": "echo",
            "REDSHIRT_DESCRIPTION": "echo server",
            "REDSHIRT_USAGE": "echo <msg>",
            "REDSHIRT_USERS": "alice,bob",
        }
        config = load_config(overrides={"command": ["/bin/echo"]}, environ=environ)
        assert config.addr == "broker:7000"
        assert config.debug is True
        assert config.users == ["alice", "bob"]

    def test_empty_environment_values_are_ignored(self, config_file):
        config = load_config(config_file, environ={"REDSHIRT_NAMESPACE": ""})
        assert config.namespace == "echo"

    def test_precedence(self, config_file):
        environ = {"REDSHIRT_ADDR": "env:6000", "REDSHIRT_NAMESPACE": "from-env"}
        config = load_config(config_file, overrides={"namespace": "from-flag"}, environ=environ)
        assert config.addr == "env:6000"
        assert config.namespace == "from-flag"

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("REDSHIRT_GROUPS", "ops")
        config = load_config(overrides=_minimal(groups=None))
        assert config.groups == ["ops"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.toml", environ={})

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("not valid toml [[[")
        with pytest.raises(ConfigError, match="Invalid config file"):
            load_config(path, environ={})

    def test_validation_error_is_readable(self):
        with pytest.raises(ConfigError) as exc_info:
            load_config(overrides=_minimal(groups=None), environ={})
        assert str(exc_info.value) == "must specify either users or groups"
