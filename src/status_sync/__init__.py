"""Reconcile locally stored statuses with updated federated representations."""

__version__ = "0.1.0"
