"""Command line helpers for operating the status sync worker."""
