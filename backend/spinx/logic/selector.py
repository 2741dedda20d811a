"""Weighted outcome selection."""
from spinx.logic.rng import ProductionRNG, RNGBase
from spinx.logic.segments import SegmentTable


class OutcomeSelector:
    """
    Draws a segment index per round.

    Each index appears `weight` times in a flattened pool, built on the
    first draw. A uniform position in the pool gives segment i with
    probability weight_i / total_weight. With every weight at zero the pool
    is empty and the draw is uniform over all indices instead.
    """

    def __init__(self, table: SegmentTable, rng: RNGBase | None = None):
        self.table = table
        self.rng = rng or ProductionRNG()
        self._pool: list[int] | None = None

    @property
    def pool(self) -> list[int]:
        if self._pool is None:
            self._pool = self._build_pool()
        return self._pool

    def _build_pool(self) -> list[int]:
        pool: list[int] = []
        for index, segment in enumerate(self.table):
            pool.extend([index] * segment.weight)
        return pool

    def pick(self) -> int:
        """Return a weighted-random segment index; never raises."""
        pool = self.pool
        if not pool:
            return self.rng.randbelow(len(self.table))
        return pool[self.rng.randbelow(len(pool))]
