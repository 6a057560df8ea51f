"""Serverhop history package.

This package tracks servers the user has joined: stable identity hashes and
the persisted cache used for "reconnect to last" and joined-server filtering.
"""

from serverhop.history.cache import IdentityCache
from serverhop.history.hashing import identity_hash, normalize_host, record_identity

__all__ = [
    "IdentityCache",
    "identity_hash",
    "normalize_host",
    "record_identity",
]
