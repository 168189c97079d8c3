"""Hashing utilities for upload names, passwords and session tokens."""

import hashlib
import hmac
import secrets
from pathlib import Path
from typing import BinaryIO, Tuple


def hash_file(file_path: Path, chunk_size: int = 8192) -> str:
    """Compute SHA256 hash of a file.

    Args:
        file_path: Path to file
        chunk_size: Size of chunks to read (bytes)

    Returns:
        str: Hexadecimal hash string

    Raises:
        FileNotFoundError: If file doesn't exist
        IOError: If file can't be read
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    with open(file_path, "rb") as f:
        return hash_stream(f, chunk_size)


def hash_stream(stream: BinaryIO, chunk_size: int = 8192) -> str:
    """Compute SHA256 hash of a binary stream, read to the end."""
    sha256 = hashlib.sha256()

    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        sha256.update(chunk)

    return sha256.hexdigest()


def hash_string(text: str) -> str:
    """Compute SHA256 hash of a string.

    Args:
        text: Input string

    Returns:
        str: Hexadecimal hash string
    """
    sha256 = hashlib.sha256()
    sha256.update(text.encode("utf-8"))
    return sha256.hexdigest()


def hash_password(password: str, salt: str = None, iterations: int = 100_000) -> Tuple[str, str]:
    """Derive a PBKDF2-SHA256 password hash.

    Args:
        password: Plain text password
        salt: Hex salt; a new one is generated when omitted
        iterations: PBKDF2 iteration count

    Returns:
        tuple: (hex hash, hex salt)
    """
    if salt is None:
        salt = secrets.token_hex(16)

    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt), iterations
    )
    return digest.hex(), salt


def verify_password(password: str, password_hash: str, salt: str, iterations: int = 100_000) -> bool:
    """Check a password against a stored hash in constant time."""
    candidate, _ = hash_password(password, salt, iterations)
    return hmac.compare_digest(candidate, password_hash)


def new_token() -> str:
    """Generate an opaque session token."""
    return secrets.token_urlsafe(32)
