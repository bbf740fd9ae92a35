"""An in-memory key-value cache server, its client and binary wire protocol."""

__version__ = "0.1.0"
__all__ = ["hashtable", "protocol", "store", "server", "client"]