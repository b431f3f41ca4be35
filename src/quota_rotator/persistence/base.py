"""
Abstract durable store for the persisted credential state.

The ledger only needs two operations: load the whole document at startup and
save the whole document after each mutation. Implementations decide where the
document lives (a JSON file, a Redis key, ...).
"""

from abc import ABC, abstractmethod

from quota_rotator.models.credential_models import PersistedState


class StateStore(ABC):
    """
    Abstract base class for state stores.

    Does NOT handle:
    - Locking (the ledger serializes every save inside its critical section)
    - Daily reconciliation (the ledger's job)
    """

    @abstractmethod
    async def load(self) -> PersistedState:
        """
        Load the persisted state.

        Raises:
            ConfigNotFoundError: No state document exists
            ConfigInvalidError: The document cannot be parsed or validated
        """
        pass

    @abstractmethod
    async def save(self, state: PersistedState) -> None:
        """
        Replace the persisted state with `state`.

        Raises:
            StateSaveError: The document could not be written
        """
        pass

    @property
    def location(self) -> str:
        """Human-readable location for logs."""
        return self.__class__.__name__
