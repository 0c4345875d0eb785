"""Session affinity and query parameter handling for tile requests."""

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

SESSION_PARAM = "session"
KEY_PARAM = "key"


class SessionState:
    """Single-slot holder for the server-issued session token.

    One instance is shared by every task of a traversal run. The first
    token offered is kept; later offers are ignored.
    """

    def __init__(self, value: Optional[str] = None):
        self._value = value

    @property
    def value(self) -> Optional[str]:
        return self._value

    def offer(self, token: Optional[str]) -> bool:
        """Latch a token if none is known yet.

        Returns:
            True if the token was adopted
        """
        if not token or self._value is not None:
            return False
        self._value = token
        return True

    def __bool__(self) -> bool:
        return self._value is not None

    def __repr__(self) -> str:
        return f"SessionState({self._value!r})"


def query_param(url: str, name: str) -> Optional[str]:
    """Return the first value of a query parameter, or None."""
    for key, value in parse_qsl(urlparse(url).query, keep_blank_values=True):
        if key == name:
            return value
    return None


def with_query_params(
    url: str,
    key: Optional[str] = None,
    session: Optional[str] = None
) -> str:
    """Add the API key and session parameters to a URL where they are missing.

    Parameters already present on the URL are never overwritten.

    Args:
        url: Absolute URL
        key: API key to inject
        session: Session token to inject

    Returns:
        URL with parameters added
    """
    parsed = urlparse(url)
    params = parse_qsl(parsed.query, keep_blank_values=True)
    present = {name for name, _ in params}

    if key and KEY_PARAM not in present:
        params.append((KEY_PARAM, key))
    if session and SESSION_PARAM not in present:
        params.append((SESSION_PARAM, session))

    return urlunparse(parsed._replace(query=urlencode(params)))


def tile_identifier_from_url(url: str) -> str:
    """Build a stable tile identifier from a tile URL.

    The session and key parameters are ephemeral, so they are dropped and
    the path plus the remaining query is returned.
    """
    parsed = urlparse(url)
    params = [
        (name, value)
        for name, value in parse_qsl(parsed.query, keep_blank_values=True)
        if name not in (SESSION_PARAM, KEY_PARAM)
    ]
    query = urlencode(params)
    return parsed.path + (f"?{query}" if query else "")
