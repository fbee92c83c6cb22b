"""Request fingerprints used as cache keys.

A fingerprint is the hex digest of ``METHOD|URL`` where URL is the request
path plus its raw query string. Two requests with the same method and URL
always map to the same entry; headers and bodies are not part
of a request's identity.

MD5 is used purely as a stable, well-distributed identity hash. Nothing
security-sensitive is decided from it.
"""

from __future__ import annotations

import hashlib


def fingerprint(method: str, url: str) -> str:
    """Return the cache key for a request.

    Args:
        method: HTTP method. Case-insensitive (``get`` and ``GET`` match).
        url: Path and query string, e.g. ``/users?page=2``. The query is
            taken verbatim, so parameter order is significant.

    Returns:
        A 32-character lowercase hex string.
    """
    raw = f"{method.upper()}|{url}"
    return hashlib.md5(raw.encode("utf-8"), usedforsecurity=False).hexdigest()
