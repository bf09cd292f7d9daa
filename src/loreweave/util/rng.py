"""Deterministic RNG wrapper for reproducible runs."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import random
from typing import Iterable, Sequence, TypeVar

T = TypeVar("T")


@dataclass
class Rng:
    seed: int

    def __post_init__(self) -> None:
        self._random = random.Random(self.seed)

    def fork(self, salt: str) -> "Rng":
        digest = hashlib.sha256(f"{self.seed}:{salt}".encode("utf-8")).hexdigest()
        new_seed = int(digest[:16], 16)
        return Rng(new_seed)

    def random(self) -> float:
        return self._random.random()

    def randint(self, a: int, b: int) -> int:
        return self._random.randint(a, b)

    def uniform(self, a: float, b: float) -> float:
        return a + (b - a) * self.random()

    def choice(self, seq: Sequence[T]) -> T:
        return self._random.choice(seq)

    def sample(self, seq: Sequence[T], k: int) -> list[T]:
        return self._random.sample(list(seq), k)

    def shuffle(self, seq: list[T]) -> None:
        self._random.shuffle(seq)

    def gauss(self, mu: float, sigma: float) -> float:
        return self._random.gauss(mu, sigma)

    def chance(self, probability: float) -> bool:
        return self.random() < probability

    def roll(self, probability: float, modifier: float = 1.0) -> bool:
        """Roll against `probability` scaled in odds space by `modifier`.

        A modifier of 1.0 leaves the chance unchanged, 0 disables the roll,
        and larger values push the chance toward (but never to) certainty.
        """
        if probability <= 0 or modifier <= 0:
            return False
        if probability >= 1:
            return True
        odds = probability / (1 - probability)
        scaled_odds = odds**modifier
        return self.random() < scaled_odds / (1 + scaled_odds)

    def weighted_choice(self, items: Iterable[tuple[T, float]]) -> T:
        items_list = list(items)
        total = sum(weight for _, weight in items_list)
        if total <= 0:
            raise ValueError("weighted_choice requires positive total weight")
        pick = self.random() * total
        cumulative = 0.0
        for value, weight in items_list:
            cumulative += weight
            if pick <= cumulative:
                return value
        return items_list[-1][0]

    def weighted_sample(self, items: Iterable[tuple[T, float]], k: int) -> list[T]:
        """Draw up to k distinct values, each pick weighted, without replacement."""
        pool = [(value, weight) for value, weight in items if weight > 0]
        picked: list[T] = []
        while pool and len(picked) < k:
            index = self.weighted_choice((i, weight) for i, (_, weight) in enumerate(pool))
            picked.append(pool.pop(index)[0])
        return picked
