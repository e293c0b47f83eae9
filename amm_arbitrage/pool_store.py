"""
Versioned pool state store.

Readers get an immutable ``PoolSnapshot``; writers build a new snapshot and
swap the reference under a lock. A detection pass holds on to one snapshot
for its whole duration, so it never sees a half-applied update.
"""

import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from .amm import quoting
from .exceptions import InvalidPool
from .types import Pool
from .utils import get_current_timestamp, get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PoolSnapshot:
    """
    Point-in-time view of every known pool.

    Attributes:
        version: Monotonic counter, incremented on every publish
        taken_at: Unix timestamp the underlying state was observed at
        pools: Read-only mapping pool_id -> Pool
        skipped: Pool ids dropped as invalid when this snapshot was built
    """

    version: int
    taken_at: float
    pools: Mapping[str, Pool] = field(default_factory=lambda: MappingProxyType({}))
    skipped: tuple = ()

    def __len__(self) -> int:
        return len(self.pools)

    def get(self, pool_id: str) -> Optional[Pool]:
        return self.pools.get(pool_id)

    def values(self) -> List[Pool]:
        return list(self.pools.values())

    def age(self, now: float) -> float:
        return max(0.0, now - self.taken_at)


class PoolStateStore:
    """Holds the latest snapshot and publishes replacements atomically."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or get_current_timestamp
        self._lock = threading.Lock()
        self._snapshot = PoolSnapshot(version=0, taken_at=self._clock())

    def snapshot(self) -> PoolSnapshot:
        """Current snapshot. Never blocks on writers beyond the reference read."""
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def publish(
        self, pools: Iterable[Pool], taken_at: Optional[float] = None
    ) -> PoolSnapshot:
        """
        Replace the whole pool set.

        Invalid pools are skipped and logged rather than failing the publish.
        """
        valid, skipped = self._validated(pools)
        with self._lock:
            snapshot = PoolSnapshot(
                version=self._snapshot.version + 1,
                taken_at=self._clock() if taken_at is None else taken_at,
                pools=MappingProxyType(valid),
                skipped=tuple(skipped),
            )
            self._snapshot = snapshot
        logger.debug(
            f"Published snapshot v{snapshot.version} with {len(valid)} pools "
            f"({len(skipped)} skipped)"
        )
        return snapshot

    def update(
        self, pools: Iterable[Pool], taken_at: Optional[float] = None
    ) -> PoolSnapshot:
        """Replace the given pools wholesale, keeping every other pool as is."""
        valid, skipped = self._validated(pools)
        with self._lock:
            merged = dict(self._snapshot.pools)
            merged.update(valid)
            snapshot = PoolSnapshot(
                version=self._snapshot.version + 1,
                taken_at=self._clock() if taken_at is None else taken_at,
                pools=MappingProxyType(merged),
                skipped=tuple(skipped),
            )
            self._snapshot = snapshot
        return snapshot

    @staticmethod
    def _validated(pools: Iterable[Pool]):
        valid: Dict[str, Pool] = {}
        skipped: List[str] = []
        for pool in pools:
            try:
                quoting.validate_pool(pool)
            except InvalidPool as e:
                logger.warning(f"Skipping invalid pool {pool.pool_id}: {e}")
                skipped.append(pool.pool_id)
                continue
            valid[pool.pool_id] = pool
        return valid, skipped
