"""Bring-your-own-host resource types, conditions, an in-memory store, admission checks, host registration, reconcilers and utilities."""

__version__ = "0.1.0"

__all__ = [
    "conditions",
    "controllers",
    "feature",
    "registration",
    "store",
    "types",
    "utils",
    "version",
    "webhooks",
]