"""Addressing, errors, rate limiting and retry helpers."""
