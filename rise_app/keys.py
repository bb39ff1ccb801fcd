"""
Rise.ai verification key for signed webhooks and workflow invocations.
Loaded from CLIENT_PUBLIC_KEY (PEM) or CLIENT_PUBLIC_KEY_PATH; no key material in code.
"""
import logging
from pathlib import Path

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization

logger = logging.getLogger(__name__)


def load_public_key(pem: str | bytes):
    """Parse a PEM-encoded public key. Raises ValueError if it is not a valid PEM public key."""
    if isinstance(pem, str):
        pem = pem.encode("utf-8")
    return serialization.load_pem_public_key(pem, backend=default_backend())


def load_public_key_from_settings(pem: str | None, path: str | None):
    """Key from inline PEM, falling back to a PEM file. Raises ValueError when neither is usable."""
    if pem:
        return load_public_key(pem)
    if path:
        p = Path(path)
        if not p.exists():
            raise ValueError(f"Public key file not found: {path}")
        logger.info("Loading Rise.ai public key from %s", path)
        return load_public_key(p.read_bytes())
    raise ValueError("No Rise.ai public key configured (CLIENT_PUBLIC_KEY or CLIENT_PUBLIC_KEY_PATH)")
