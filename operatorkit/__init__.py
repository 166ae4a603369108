"""Helpers for Kubernetes operators working on dictionary-shaped objects and an in-memory object store."""

__version__ = "0.1.0"