from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import numpy as np


class RandomSource(Protocol):
    """Uniform random numbers in [0, 1) consumed by the simulators."""

    def random(self) -> float:
        ...


@dataclass
class GeneratorRandomSource(RandomSource):
    """RandomSource backed by a numpy Generator."""

    rng: np.random.Generator = field(default_factory=np.random.default_rng)

    def random(self) -> float:
        return float(self.rng.random())

    def block(self, n: int) -> np.ndarray:
        return self.rng.random(n)


@dataclass
class SequenceRandomSource(RandomSource):
    """Replays a fixed cycle of values; handy for exact, hand-checked draws."""

    values: tuple[float, ...]
    _pos: int = 0

    def __post_init__(self) -> None:
        if not self.values:
            raise ValueError("SequenceRandomSource needs at least one value")
        if any(v < 0.0 or v >= 1.0 for v in self.values):
            raise ValueError("SequenceRandomSource values must lie in [0, 1)")

    def random(self) -> float:
        v = self.values[self._pos % len(self.values)]
        self._pos += 1
        return v


def make_random_source(seed: int | None = None) -> GeneratorRandomSource:
    """Seeded source for reproducible runs; ``None`` draws fresh OS entropy."""
    return GeneratorRandomSource(rng=np.random.default_rng(seed))


def draw_uniform(source: RandomSource, n: int) -> np.ndarray:
    """Draw ``n`` uniforms, in bulk when the source supports it."""
    block = getattr(source, "block", None)
    if block is not None:
        return np.asarray(block(n), dtype=float)
    return np.fromiter((source.random() for _ in range(n)), dtype=float, count=n)
