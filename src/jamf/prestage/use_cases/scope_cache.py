"""Reverse-index cache over every prestage scope of one collection.

Maps serial number -> id of the prestage the serial is assigned to. The
index is a performance cache, never the source of truth for a write: it
is filled by one aggregate fetch, replaced wholesale on refresh, and
dropped after any successful scope change.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from ..domain.ports import IFieldMapper, IPrestageAPI

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScopeCache:
    """Lazily loaded serial -> prestage id index for one collection.

    There is no expiry; callers decide when to refresh or invalidate.
    One instance per collection type, owned by whoever composes the
    engine.

    Example:
        cache = ScopeCache(api, PrestageFieldMapper())
        prestage_id = await cache.lookup("C02XK1JDJGH5")
        index = await cache.reverse_index(refresh=True)
    """

    def __init__(
        self,
        api: IPrestageAPI,
        mapper: IFieldMapper,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.api = api
        self.mapper = mapper
        self._clock = clock
        self._index: dict[str, str] | None = None
        self._fetched_at: datetime | None = None

    @property
    def is_loaded(self) -> bool:
        return self._index is not None

    @property
    def fetched_at(self) -> datetime | None:
        """When the current index was fetched (None if not loaded)."""
        return self._fetched_at

    async def reverse_index(self, refresh: bool = False) -> dict[str, str]:
        """Return a copy of the serial -> prestage id index.

        Args:
            refresh: Discard the current index and fetch a new one

        Returns:
            Mapping of serial number to prestage id
        """
        if refresh:
            self.invalidate()

        if self._index is None:
            raw = await self.api.fetch_scope_index()
            # Single assignment, so a concurrent reader sees old or new, never a mix
            self._index = self.mapper.map_scope_index(raw)
            self._fetched_at = self._clock()
            logger.info(f"Scope index loaded: {len(self._index)} assigned serial(s)")

        return dict(self._index)

    async def lookup(self, serial_number: str, refresh: bool = False) -> str | None:
        """Id of the prestage this serial is assigned to, or None."""
        index = await self.reverse_index(refresh=refresh)
        return index.get(serial_number)

    def invalidate(self) -> None:
        """Drop the index; the next read fetches it again."""
        self._index = None
        self._fetched_at = None
