"""Randomness sources injected into the outcome selector."""
import random
import secrets
from abc import ABC, abstractmethod


class RNGBase(ABC):
    """Abstract RNG interface used for every draw the engine makes."""

    @abstractmethod
    def randbelow(self, n: int) -> int:
        """Return random int in [0, n)."""
        pass


class ProductionRNG(RNGBase):
    """
    Production RNG.

    Uses the OS cryptographic source, no fixed seed.
    """

    def randbelow(self, n: int) -> int:
        return secrets.randbelow(n)


class SeededRNG(RNGBase):
    """
    Test/simulation RNG.

    Deterministic, fully controlled by seed. The audit script records the
    seed next to the config hash so a run can be reproduced.
    """

    def __init__(self, seed: int):
        self._rng = random.Random(seed)
        self.seed = seed

    def randbelow(self, n: int) -> int:
        return self._rng.randrange(n)
