"""Utility functions for the annotation server."""

from .hashing import hash_file, hash_password, hash_string, verify_password

__all__ = [
    "hash_file",
    "hash_password",
    "hash_string",
    "verify_password",
]
