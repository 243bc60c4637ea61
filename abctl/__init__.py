"""Helpers for setting up a local Airbyte installation on a kind cluster."""

__version__ = "0.1.0"