"""
Credential rotation.

Main Components:
    - RotationSelector: picks the next candidate per the pool's strategy
    - RoundRobinStrategy / LeastUsedStrategy / RandomStrategy
"""

from quota_rotator.rotation.selector import RotationSelector
from quota_rotator.rotation.strategies import (
    LeastUsedStrategy,
    RandomStrategy,
    RotationStrategy,
    RoundRobinStrategy,
)

__all__ = [
    "RotationSelector",
    "RotationStrategy",
    "RoundRobinStrategy",
    "LeastUsedStrategy",
    "RandomStrategy",
]
