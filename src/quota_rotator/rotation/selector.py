"""
Rotation selector.

Dispatches to the strategy configured on each provider pool. The selector
itself is stateless; the only mutable rotation state (the round-robin
cursor) belongs to the ProviderPool object.
"""

import random
from typing import Collection, Optional

import structlog

from quota_rotator.models.credential_models import Credential, ProviderPool
from quota_rotator.rotation.strategies import SpendablePredicate, build_strategies

logger = structlog.get_logger(__name__)


class RotationSelector:
    """
    Select the next candidate credential of a pool.

    Attributes:
        strategies: Strategy instance per RotationStrategy name
    """

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize selector.

        Args:
            rng: Random source for the random strategy (seed it in tests)
        """
        self.strategies = build_strategies(rng)

    def select(
        self,
        provider_id: str,
        pool: ProviderPool,
        is_spendable: SpendablePredicate,
        exclude: Collection[str] = (),
    ) -> Optional[Credential]:
        """
        Return one spendable candidate, or None when nothing is available.

        Args:
            provider_id: Provider the pool belongs to (for logs)
            pool: Provider pool to choose from
            is_spendable: Admission predicate bound to the current time
            exclude: Credential ids to skip
        """
        strategy = self.strategies[pool.rotation_strategy]
        candidate = strategy.choose(pool, exclude, is_spendable)

        if candidate is None:
            logger.debug(
                "No spendable credential",
                provider=provider_id,
                strategy=strategy.name,
                excluded=len(exclude),
            )
        else:
            logger.debug(
                "Credential selected",
                provider=provider_id,
                strategy=strategy.name,
                credential_id=candidate.id,
            )
        return candidate
