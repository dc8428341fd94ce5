"""Removal of stored artifacts once the document that referenced them is gone.

Storage refs are opaque to the workflow. The local store interprets them as
paths relative to ``settings.artifact_root`` and refuses anything that would
escape it.
"""


import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from portal.core.config import settings

logger = logging.getLogger(__name__)


class ArtifactStore(Protocol):
    async def delete(self, storage_ref: str) -> bool: ...


class LocalArtifactStore:
    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.artifact_root).resolve()

    def path_for(self, storage_ref: str) -> Path | None:
        path = (self._root / storage_ref.lstrip("/")).resolve()
        if not path.is_relative_to(self._root):
            return None
        return path

    async def delete(self, storage_ref: str) -> bool:
        path = self.path_for(storage_ref)
        if path is None:
            logger.warning("Refusing to delete artifact outside %s: %s", self._root, storage_ref)
            return False
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted artifact %s", storage_ref)
        return True


async def release_artifacts(store: ArtifactStore, storage_refs: Iterable[str]) -> None:
    """Best-effort removal after commit; a failure leaves an orphan file, nothing more."""
    for ref in storage_refs:
        try:
            await store.delete(ref)
        except OSError as exc:
            logger.warning("Could not delete artifact %s: %s", ref, exc)
