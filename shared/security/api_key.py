"""
Best-effort identification of the webhook caller.

The ordering platform does not reliably authenticate its webhook calls, so a
missing or wrong key is reported to the caller check but never blocks an
order from being recorded.
"""
import secrets
from typing import Iterable, Mapping, Optional


def verify_api_key(provided_key: Optional[str], expected_key: Optional[str]) -> bool:
    """Verify an API key using constant-time comparison to prevent timing attacks."""
    if not provided_key or not expected_key:
        return False
    return secrets.compare_digest(str(provided_key), str(expected_key))


def _candidate_keys(
    headers: Mapping[str, str],
    query: Mapping[str, str],
    body: Optional[Mapping],
) -> Iterable[str]:
    auth_header = headers.get("authorization") or headers.get("x-api-key") or ""
    if auth_header:
        yield auth_header.replace("Bearer ", "").strip()
    for name in ("x-master-key", "master-key"):
        if headers.get(name):
            yield headers[name]
    if isinstance(body, Mapping):
        for name in ("api_key", "master_key"):
            if body.get(name):
                yield str(body[name])
    if query.get("token"):
        yield query["token"]


def is_known_caller(
    headers: Mapping[str, str],
    query: Mapping[str, str],
    body: Optional[Mapping],
    api_key: str = "",
    master_key: str = "",
) -> bool:
    """True when any supplied credential matches the configured api key or master key.

    Header names are expected lowercase.
    """
    expected = [key for key in (api_key, master_key) if key]
    if not expected:
        return True
    return any(
        verify_api_key(candidate, key)
        for candidate in _candidate_keys(headers, query, body)
        for key in expected
    )
