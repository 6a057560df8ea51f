"""Stable identity hashes for servers.

The identity of a server is its normalized address plus an optional stable
fingerprint from the directory service. Display names are never part of the
identity, so renaming a server does not lose its history.
"""

import hashlib
import ipaddress
import json

from serverhop.models import Candidate, HistoryEntry, ServerRecord


def normalize_host(host: str) -> str:
    """Canonicalize a host for hashing.

    IP literals are reduced to their compressed form; host names are
    lowercased with any trailing dot removed.
    """
    host = host.strip().strip("[]")
    try:
        return ipaddress.ip_address(host).compressed
    except ValueError:
        return host.lower().rstrip(".")


def identity_hash(host: str, port: int, fingerprint: str | None = None) -> str:
    """Compute the identity hash for an address.

    Args:
        host: Server host or IP
        port: Server port
        fingerprint: Optional stable identifier that survives address changes

    Returns:
        Hex encoded SHA-256 digest

    """
    canonical = json.dumps(
        {"fingerprint": fingerprint or "", "host": normalize_host(host), "port": int(port)},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def record_identity(record: ServerRecord | Candidate | HistoryEntry) -> str:
    """Compute the identity hash of a record, candidate or history entry."""
    return identity_hash(record.host, record.port, record.fingerprint)
