"""
script2video Project Store

Holds the ProjectData record. Readers get deep-copied snapshots; writers hand
over patches which are applied to a private working copy and committed in one
step. JsonProjectStore additionally writes the committed record to disk, so
every runner step is a checkpoint.
"""

import copy
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from script2video.core.exceptions import ProjectError
from script2video.core.logging_config import get_logger
from script2video.core.models import ProjectData
from .patches import Patch

logger = get_logger("store.project")


class ProjectStore(ABC):
    """Abstract snapshot/patch store for one project."""

    def __init__(self, data: Optional[ProjectData] = None):
        self._data = data or ProjectData()
        self._revision = 0

    def snapshot(self) -> ProjectData:
        """Return an independent copy of the current record."""
        return copy.deepcopy(self._data)

    def apply(self, *patches: Patch) -> ProjectData:
        """
        Apply patches atomically.

        Either every patch lands or, if one raises, none do.

        Returns:
            Snapshot of the committed record
        """
        working = copy.deepcopy(self._data)
        for patch in patches:
            patch.apply(working)
        self._commit(working)
        self._data = working
        self._revision += 1
        return copy.deepcopy(working)

    @property
    def revision(self) -> int:
        """Number of committed patch batches."""
        return self._revision

    @abstractmethod
    def _commit(self, data: ProjectData) -> None:
        """Make ``data`` durable before it becomes the current record."""
        pass


class InMemoryProjectStore(ProjectStore):
    """Store that keeps the record in memory only."""

    def _commit(self, data: ProjectData) -> None:
        pass


class JsonProjectStore(ProjectStore):
    """Store that checkpoints the record to a JSON file after every apply."""

    def __init__(self, path: Path, data: Optional[ProjectData] = None, indent: int = 2):
        self.path = Path(path)
        self.indent = indent
        super().__init__(data)

    @classmethod
    def open(cls, path: Path, indent: int = 2) -> 'JsonProjectStore':
        """Load an existing project file."""
        path = Path(path)
        if not path.exists():
            raise ProjectError(f"Project file not found: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ProjectError(f"Invalid project file {path}: {e}")
        logger.info(f"Loaded project from {path}")
        return cls(path, ProjectData.from_dict(data), indent=indent)

    @classmethod
    def create(cls, path: Path, data: ProjectData, indent: int = 2) -> 'JsonProjectStore':
        """Start a new project file, overwriting any previous one."""
        store = cls(path, data, indent=indent)
        store._commit(data)
        return store

    def _commit(self, data: ProjectData) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(data.to_dict(), indent=self.indent, ensure_ascii=False)

        # Write to a sibling temp file, then swap it in
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Checkpoint written: {self.path}")
