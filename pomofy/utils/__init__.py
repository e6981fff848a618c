"""Logging, storage, encryption and validation helpers."""
