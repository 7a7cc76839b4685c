"""Shared infrastructure for the voice gateway: logging, configuration, correlation."""
