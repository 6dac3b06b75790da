"""Shared logging, configuration and middleware helpers."""
