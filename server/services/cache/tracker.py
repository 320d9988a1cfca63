"""Per-request cache hit/miss flag."""

from typing import Optional


class RequestCacheStatus:
    """Records whether a request was served from the cache.

    Created per request by the HTTP middleware and passed explicitly down the
    call chain. The first decision in a request wins: a request that refilled
    one table stays a miss even if a later lookup hits.
    """

    def __init__(self):
        self._hit: Optional[bool] = None

    def reset(self) -> None:
        self._hit = None

    def mark_hit(self) -> None:
        if self._hit is None:
            self._hit = True

    def mark_miss(self) -> None:
        if self._hit is None:
            self._hit = False

    @property
    def decided(self) -> bool:
        return self._hit is not None

    @property
    def hit(self) -> bool:
        return self._hit is True

    @property
    def header_value(self) -> Optional[str]:
        if self._hit is None:
            return None
        return "HIT" if self._hit else "MISS"
