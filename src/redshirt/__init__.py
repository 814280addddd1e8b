"""Turn any executable into a Riker chat-bot command."""

__version__ = "0.1.0"
