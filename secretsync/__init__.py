"""secretsync - label-selected secret replication between namespaces."""

__version__ = "0.1.0"
