"""
JSON file state store.

Keeps the whole state document in one JSON file (by default `proxies.json`).
On load, the configured path is tried first, then each search path in order;
the first file found becomes the save target. Saves write a temporary file
next to the target and atomically replace it, so a crash mid-write never
leaves a truncated document behind.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional

import structlog
from pydantic import ValidationError

from quota_rotator.models.credential_models import PersistedState
from quota_rotator.persistence.base import StateStore
from quota_rotator.persistence.exceptions import (
    ConfigInvalidError,
    ConfigNotFoundError,
    StateSaveError,
)

logger = structlog.get_logger(__name__)


class JsonFileStateStore(StateStore):
    """State store backed by a single JSON file."""

    def __init__(self, path: str | Path, search_paths: Optional[Iterable[str | Path]] = None):
        """
        Initialize file store.

        Args:
            path: Preferred location of the state file
            search_paths: Fallback locations tried in order when `path` is missing
        """
        self.path = Path(path)
        self.search_paths = [Path(p) for p in (search_paths or [])]

    @property
    def location(self) -> str:
        return str(self.path)

    def _candidates(self) -> list[Path]:
        candidates: list[Path] = []
        for candidate in [self.path, *self.search_paths]:
            resolved = candidate.expanduser().resolve()
            if resolved not in candidates:
                candidates.append(resolved)
        return candidates

    def _read(self) -> tuple[Path, str]:
        candidates = self._candidates()
        for candidate in candidates:
            if candidate.is_file():
                return candidate, candidate.read_text(encoding="utf-8")
        raise ConfigNotFoundError(
            "Could not find state file in any of these locations: "
            + ", ".join(str(c) for c in candidates),
            details={"searched": [str(c) for c in candidates], "cwd": os.getcwd()},
        )

    async def load(self) -> PersistedState:
        found_path, content = await asyncio.to_thread(self._read)

        try:
            state = PersistedState.model_validate_json(content)
        except ValidationError as e:
            raise ConfigInvalidError(
                f"Failed to parse state file {found_path}: {e.error_count()} error(s)",
                details={"path": str(found_path), "errors": e.errors(include_url=False, include_context=False, include_input=False)},
            ) from e

        # Save back to where the document was actually found
        self.path = found_path

        logger.info(
            "State file loaded",
            path=str(found_path),
            providers=list(state.providers),
        )
        return state

    def _write(self, payload: str) -> None:
        target = self.path
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def save(self, state: PersistedState) -> None:
        payload = state.model_dump_json(indent=2)
        try:
            await asyncio.to_thread(self._write, payload)
        except OSError as e:
            raise StateSaveError(
                f"Failed to write state file {self.path}: {e}",
                details={"path": str(self.path), "error_type": type(e).__name__},
            ) from e

        logger.debug("State file saved", path=str(self.path), bytes=len(payload))
