"""
Rotation strategies for choosing the next credential of a pool.

This module implements the Strategy Pattern for credential rotation. Each
strategy receives the pool (in declaration order), the ids to skip and a
spendability predicate, and returns one credential or None.

Rotation Strategies:
    1. RoundRobinStrategy: next spendable credential after the pool cursor
    2. LeastUsedStrategy: spendable credential with the fewest requests today
    3. RandomStrategy: uniform choice among spendable credentials
"""

import random
from typing import Callable, Collection, Optional, Protocol

from quota_rotator.models.credential_models import Credential, ProviderPool
from quota_rotator.models.enums import RotationStrategy as RotationStrategyName

SpendablePredicate = Callable[[Credential], bool]


class RotationStrategy(Protocol):
    """
    Protocol for rotation strategies.

    Strategies may mutate pool-owned cursor state; callers must hold the
    ledger lock while calling `choose`.
    """

    name: str

    def choose(
        self,
        pool: ProviderPool,
        exclude: Collection[str],
        is_spendable: SpendablePredicate,
    ) -> Optional[Credential]:
        ...


def _eligible(
    pool: ProviderPool, exclude: Collection[str], is_spendable: SpendablePredicate
) -> list[Credential]:
    return [c for c in pool.credentials if c.id not in exclude and is_spendable(c)]


class RoundRobinStrategy:
    """
    Round-robin over the pool in declaration order.

    Starting at the pool cursor, returns the first spendable, non-excluded
    credential (wrapping around) and moves the cursor just past it. With no
    failures, K consecutive selections on a pool of K spendable credentials
    visit each credential once.
    """

    name = "round_robin"

    def choose(
        self,
        pool: ProviderPool,
        exclude: Collection[str],
        is_spendable: SpendablePredicate,
    ) -> Optional[Credential]:
        count = len(pool.credentials)
        if count == 0:
            return None

        start = pool._cursor % count
        for offset in range(count):
            index = (start + offset) % count
            credential = pool.credentials[index]
            if credential.id in exclude or not is_spendable(credential):
                continue
            pool._cursor = (index + 1) % count
            return credential
        return None


class LeastUsedStrategy:
    """
    Pick the credential with the fewest requests in the current window.

    Ties go to the credential declared first.
    """

    name = "least_used"

    def choose(
        self,
        pool: ProviderPool,
        exclude: Collection[str],
        is_spendable: SpendablePredicate,
    ) -> Optional[Credential]:
        eligible = _eligible(pool, exclude, is_spendable)
        if not eligible:
            return None
        # min() keeps the first of equal elements
        return min(eligible, key=lambda c: c.usage_today.requests)


class RandomStrategy:
    """Uniform random choice among spendable credentials."""

    name = "random"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def choose(
        self,
        pool: ProviderPool,
        exclude: Collection[str],
        is_spendable: SpendablePredicate,
    ) -> Optional[Credential]:
        eligible = _eligible(pool, exclude, is_spendable)
        if not eligible:
            return None
        return self.rng.choice(eligible)


def build_strategies(rng: Optional[random.Random] = None) -> dict[RotationStrategyName, RotationStrategy]:
    """One instance of every strategy, keyed by the configured name."""
    return {
        RotationStrategyName.ROUND_ROBIN: RoundRobinStrategy(),
        RotationStrategyName.LEAST_USED: LeastUsedStrategy(),
        RotationStrategyName.RANDOM: RandomStrategy(rng),
    }
