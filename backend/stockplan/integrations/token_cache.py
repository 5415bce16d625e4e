"""
Thread-safe access token cache.

The token is fetched lazily on first use and refreshed once it is within
``refresh_margin`` seconds of expiry. Concurrent callers share one fetch:
the lock is only taken when the cached token looks stale, and the check is
repeated under the lock before fetching.
"""
import threading
import time
from typing import Callable, Optional, Tuple

# fetcher() -> (token, lifetime in seconds)
TokenFetcher = Callable[[], Tuple[str, int]]


class TokenCache:

    def __init__(
        self,
        fetcher: TokenFetcher,
        refresh_margin: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self._refresh_margin = refresh_margin
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    def get(self) -> str:
        token = self._valid_token()
        if token is not None:
            return token
        with self._lock:
            token = self._valid_token()
            if token is not None:
                return token
            token, lifetime = self._fetcher()
            self._token = token
            self._expires_at = self._clock() + max(int(lifetime) - self._refresh_margin, 0)
            return token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0

    def _valid_token(self) -> Optional[str]:
        token, expires_at = self._token, self._expires_at
        if token is not None and self._clock() < expires_at:
            return token
        return None
