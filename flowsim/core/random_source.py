"""
Seedable Random Source

Every stochastic draw in the engine (uniform jitter, Gaussian arrival
gaps, weighted decision choices) goes through one RandomSource so a
whole simulation run can be replayed from its seed.
"""

from typing import Optional
import math
import random


class RandomSource:
    """Thin wrapper around a private `random.Random` instance."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def reseed(self, seed: Optional[int] = None) -> None:
        self.seed = seed
        self._rng.seed(seed)

    def random(self) -> float:
        """Uniform draw in [0, 1)."""
        return self._rng.random()

    def uniform(self, low: float, high: float) -> float:
        return low + self._rng.random() * (high - low)

    def gauss(self, mean: float, stddev: float) -> float:
        """Normal draw via the Box-Muller transform."""
        u = 0.0
        v = 0.0
        while u == 0.0:
            u = self._rng.random()
        while v == 0.0:
            v = self._rng.random()
        z = math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)
        return mean + z * stddev

    def chance(self, probability: float) -> bool:
        return self._rng.random() < probability

    def weighted_choice(self, weights: dict[str, float]) -> Optional[str]:
        """
        Pick a key proportionally to its weight.

        Weights need not sum to 100; non-positive weights are never chosen.
        Returns None when no key has a positive weight.
        """
        entries = [(key, w) for key, w in weights.items() if w and w > 0]
        if not entries:
            return None

        total = sum(w for _, w in entries)
        remaining = self._rng.random() * total
        for key, w in entries:
            remaining -= w
            if remaining <= 0:
                return key
        return entries[-1][0]
