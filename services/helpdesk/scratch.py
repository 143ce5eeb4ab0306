"""Scratch-directory management for temporary audio files.

Every temporary audio artifact is owned by a ``ScratchFile`` and removed when
its ``with`` block exits, on success and error paths alike.
"""

from __future__ import annotations

import shutil
import uuid
from pathlib import Path
from types import TracebackType

from services.common.structured_logging import get_logger


logger = get_logger(__name__, service_name="helpdesk")


class ScratchDirectory:
    """Allocates unique file names under one directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def reset(self) -> None:
        """Remove leftovers from a previous run and recreate the directory."""
        shutil.rmtree(self.root, ignore_errors=True)
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info("scratch.reset", path=str(self.root))

    def path_for(self, prefix: str, suffix: str) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root / f"{prefix}-{uuid.uuid4().hex}{suffix}"


class ScratchFile:
    """A playable file plus the intermediate files produced alongside it."""

    def __init__(self, path: Path, *, intermediates: list[Path] | None = None) -> None:
        self.path = path
        self._paths: list[Path] = [path, *(intermediates or [])]

    @property
    def paths(self) -> tuple[Path, ...]:
        return tuple(self._paths)

    def size(self) -> int:
        return self.path.stat().st_size if self.path.exists() else 0

    def cleanup(self) -> None:
        for path in self._paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("scratch.delete_failed", path=str(path), error=str(exc))

    def __enter__(self) -> ScratchFile:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()


__all__ = ["ScratchDirectory", "ScratchFile"]
