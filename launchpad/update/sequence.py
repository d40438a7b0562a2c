# launchpad/update/sequence.py
from __future__ import annotations

import logging
import shutil
import zipfile
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from launchpad.core.errors import UpdateError

logger = logging.getLogger(__name__)

__all__ = [
    "BACKUP_SUFFIX",
    "UpdateResult",
    "UpdateAction",
    "NewFileAction",
    "ReplaceFileAction",
    "UpdateSequence",
    "backupPathFor",
]



BACKUP_SUFFIX = ".bak"

EntryFilter = Callable[[zipfile.ZipInfo], bool]
EntryMapper = Callable[[zipfile.ZipInfo], str]



class UpdateResult(str, Enum):
    NONE = "none"
    SUCCESS = "success"
    ROLLBACK = "rollback"
    FAILED_ROLLBACK = "failedRollback"



def backupPathFor(path: Path) -> Path:
    return path.with_name(path.name + BACKUP_SUFFIX)



def _extract(archive: zipfile.ZipFile, entry: zipfile.ZipInfo, path: Path) -> None:
    # "xb": never write over a file we did not expect to be absent
    with archive.open(entry) as src, open(path, "xb") as dst:
        shutil.copyfileobj(src, dst)



class UpdateAction:
    """
    One reversible step of an update.
    
    performUpdate() failures roll the whole sequence back. finishUpdate()
    is cleanup after full success. revertUpdate() must cope with a
    perform step that stopped halfway.
    """
    
    def __init__(self, path: Path, archive: zipfile.ZipFile, entry: zipfile.ZipInfo):
        self.path = path
        self.archive = archive
        self.entry = entry
    
    def performUpdate(self) -> None:
        raise NotImplementedError
    
    def finishUpdate(self) -> None:
        return
    
    def revertUpdate(self) -> None:
        raise NotImplementedError
    
    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"



class NewFileAction(UpdateAction):
    def __init__(self, path: Path, archive: zipfile.ZipFile, entry: zipfile.ZipInfo):
        super().__init__(path, archive, entry)
        self._created = False
        self._createdDirs: list[Path] = []
    
    def _makeParents(self) -> None:
        missing: list[Path] = []
        parent = self.path.parent
        while not parent.exists():
            missing.append(parent)
            parent = parent.parent
        for directory in reversed(missing):
            directory.mkdir()
            self._createdDirs.append(directory)
    
    def performUpdate(self) -> None:
        logger.debug("Extracting new file to %s", self.path)
        self._makeParents()
        try:
            _extract(self.archive, self.entry, self.path)
        except FileExistsError:
            raise
        except Exception:
            # Anything at the path now is a partial write of ours
            self._created = self.path.exists()
            raise
        self._created = True
    
    def revertUpdate(self) -> None:
        if self._created and self.path.exists():
            logger.debug("Removing new file %s", self.path)
            self.path.unlink()
        self._created = False
        for directory in reversed(self._createdDirs):
            if directory.is_dir() and not any(directory.iterdir()):
                directory.rmdir()
        self._createdDirs.clear()



class ReplaceFileAction(UpdateAction):
    def __init__(self, path: Path, archive: zipfile.ZipFile, entry: zipfile.ZipInfo):
        super().__init__(path, archive, entry)
        self._backedUp = False
    
    @property
    def backupPath(self) -> Path:
        return backupPathFor(self.path)
    
    def performUpdate(self) -> None:
        logger.debug("Replacing file %s", self.path)
        
        if self.backupPath.exists():
            logger.debug("Removing old backup %s", self.backupPath)
            self.backupPath.unlink()
        
        logger.debug("Backing up existing file to %s", self.backupPath)
        self.path.rename(self.backupPath)
        self._backedUp = True
        
        logger.debug("Extracting new file to %s", self.path)
        _extract(self.archive, self.entry, self.path)
    
    def finishUpdate(self) -> None:
        self.backupPath.unlink(missing_ok=True)
    
    def revertUpdate(self) -> None:
        if not self._backedUp or not self.backupPath.exists():
            return
        if self.path.exists():
            logger.debug("Removing new file %s", self.path)
            self.path.unlink()
        logger.debug("Restoring backup file %s", self.backupPath)
        self.backupPath.rename(self.path)
        self._backedUp = False



class UpdateSequence:
    def __init__(self, actions: list[UpdateAction] | None = None):
        self.actions: list[UpdateAction] = list(actions or [])
        self.result = UpdateResult.NONE
    
    @classmethod
    def make(
        cls,
        installDir: Path,
        archive: zipfile.ZipFile,
        entryFilter: EntryFilter | None = None,
        mapPath: EntryMapper | None = None,
    ) -> UpdateSequence:
        """
        Plan one action per destination file: replace when the target exists,
        otherwise create. When several kept entries map to the same file the
        last one wins, so every target is backed up exactly once.
        """
        root = Path(installDir).resolve()
        planned: dict[Path, zipfile.ZipInfo] = {}
        for entry in archive.infolist():
            if entry.is_dir():
                continue
            if entryFilter is not None and not entryFilter(entry):
                continue
            relative = mapPath(entry) if mapPath is not None else entry.filename
            path = (root / relative).resolve()
            if path != root and root not in path.parents:
                raise UpdateError(f"Archive entry '{entry.filename}' maps outside of '{root}'")
            if path in planned:
                logger.warning("Archive entries '%s' and '%s' both map to %s, keeping the last",
                               planned[path].filename, entry.filename, path)
            planned[path] = entry
        
        seq = cls()
        for path, entry in planned.items():
            actionType = ReplaceFileAction if path.is_file() else NewFileAction
            seq.actions.append(actionType(path, archive, entry))
        return seq
    
    def execute(self) -> UpdateResult:
        performed: list[UpdateAction] = []
        try:
            for action in self.actions:
                # Counted before it runs so a half-done step is reverted too
                performed.append(action)
                action.performUpdate()
        except Exception:
            logger.exception("Update failed, rolling back %d actions", len(performed))
            self.result = self._rollback(performed)
            return self.result
        
        for action in self.actions:
            try:
                action.finishUpdate()
            except Exception:
                logger.exception("Update cleanup failed for %r", action)
        
        self.result = UpdateResult.SUCCESS
        return self.result
    
    def _rollback(self, performed: list[UpdateAction]) -> UpdateResult:
        try:
            for action in reversed(performed):
                action.revertUpdate()
        except Exception:
            logger.critical("Rollback failed, install directory may be inconsistent", exc_info=True)
            return UpdateResult.FAILED_ROLLBACK
        return UpdateResult.ROLLBACK
    
    def __len__(self) -> int:
        return len(self.actions)
