# launchpad/mods/content.py
from __future__ import annotations

import asyncio
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

import json5
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from launchpad.core.errors import ContentBundleError

logger = logging.getLogger(__name__)

__all__ = [
    "BUNDLE_SUFFIX", "EXPORT_ENTRY", "PREFAB_PREFIX",
    "Prefab", "ExportSettings", "ContentBundle",
    "readContentBundle", "loadContentBundle",
]



BUNDLE_SUFFIX = ".assets"
EXPORT_ENTRY = "export.json5"
PREFAB_PREFIX = "prefabs/"



class Prefab(BaseModel):
    """Template object shipped inside a bundle: a name plus the component types to attach."""
    model_config = ConfigDict(extra="forbid")
    
    name: str
    components: list[str] = Field(default_factory=list)



class ExportSettings(BaseModel):
    """Optional per-bundle startup hints."""
    model_config = ConfigDict(extra="forbid")
    
    startupClass: str | None = None
    startupPrefab: str | None = None



@dataclass
class ContentBundle:
    path: Path
    assets: tuple[str, ...] = ()
    prefabs: list[Prefab] = field(default_factory=list)
    exportSettings: ExportSettings | None = None
    
    @property
    def name(self) -> str:
        return self.path.stem
    
    def findPrefab(self, name: str) -> Prefab | None:
        return next((prefab for prefab in self.prefabs if prefab.name == name), None)
    
    def readAsset(self, name: str) -> bytes:
        with zipfile.ZipFile(self.path) as archive:
            return archive.read(name)



def _readJson5Entry(archive: zipfile.ZipFile, entryName: str) -> object:
    return json5.loads(archive.read(entryName).decode("utf-8"))



def readContentBundle(path: Path) -> ContentBundle:
    """Blocking read of a bundle's index, prefabs and export settings."""
    path = Path(path)
    try:
        with zipfile.ZipFile(path) as archive:
            names = [info.filename for info in archive.infolist() if not info.is_dir()]
            prefabs: list[Prefab] = []
            exportSettings: ExportSettings | None = None
            
            for entryName in names:
                if entryName.startswith(PREFAB_PREFIX) and entryName.endswith(".json5"):
                    prefabs.append(Prefab.model_validate(_readJson5Entry(archive, entryName)))
                elif entryName == EXPORT_ENTRY:
                    exportSettings = ExportSettings.model_validate(_readJson5Entry(archive, entryName))
    except FileNotFoundError as err:
        raise ContentBundleError(f"Content bundle '{path}' does not exist") from err
    except zipfile.BadZipFile as err:
        raise ContentBundleError(f"Content bundle '{path}' is not a valid archive: {err}") from err
    except (ValidationError, ValueError) as err:
        raise ContentBundleError(f"Content bundle '{path}' has an invalid descriptor: {err}") from err
    
    logger.debug("Read content bundle '%s' (%d assets, %d prefabs)", path.name, len(names), len(prefabs))
    return ContentBundle(path=path, assets=tuple(names), prefabs=prefabs, exportSettings=exportSettings)



async def loadContentBundle(path: Path) -> ContentBundle:
    return await asyncio.to_thread(readContentBundle, path)
