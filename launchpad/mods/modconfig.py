# launchpad/mods/modconfig.py
from __future__ import annotations

import logging
import zipfile
from datetime import datetime
from pathlib import Path

import json5
from pydantic import BaseModel, ConfigDict, Field

from launchpad.mods.package import Package, PackageSource

logger = logging.getLogger(__name__)

__all__ = [
    "MOD_CONFIG_FILE",
    "ModConfigEntry",
    "ModConfig",
    "normalizePath",
    "loadModConfig",
    "saveModConfig",
    "createModConfig",
    "applyModConfig",
    "exportModPackage",
]



MOD_CONFIG_FILE = "modconfig.json5"

_BUILTIN_KEY = "<builtin>"



class ModConfigEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")
    
    source: PackageSource
    path: str = ""
    enabled: bool = True



class ModConfig(BaseModel):
    """Saved package order. Paths of local packages are relative to the local mods dir when possible."""
    model_config = ConfigDict(extra="forbid")
    
    mods: list[ModConfigEntry] = Field(default_factory=list)
    
    def ensureBuiltIn(self) -> None:
        if not any(entry.source is PackageSource.BUILT_IN for entry in self.mods):
            self.mods.insert(0, ModConfigEntry(source=PackageSource.BUILT_IN, enabled=True))



def normalizePath(path: str | Path | None) -> str:
    if path is None:
        return ""
    return str(path).replace("\\", "/").strip().rstrip("/").lower()



def loadModConfig(path: Path) -> ModConfig:
    if not path.exists():
        return ModConfig()
    try:
        raw = json5.loads(path.read_text(encoding="utf-8"))
        return ModConfig.model_validate(raw)
    except Exception as err:
        logger.warning("Could not read mod config '%s', starting empty: %s", path, err)
        return ModConfig()



def saveModConfig(config: ModConfig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json5.dumps(config.model_dump(mode="json"), ensure_ascii=False, indent=2)
    path.write_text(text, encoding="utf-8")



def _configPathFor(pkg: Package, localDir: Path | None) -> str:
    if localDir is not None and pkg.source is PackageSource.LOCAL:
        try:
            return pkg.path.relative_to(localDir).as_posix()
        except ValueError:
            pass
    return pkg.path.as_posix()



def createModConfig(packages: list[Package], localDir: Path | None = None) -> ModConfig:
    return ModConfig(mods=[
        ModConfigEntry(
            source=pkg.source,
            path="" if pkg.isBuiltIn else _configPathFor(pkg, localDir),
            enabled=pkg.enabled,
        )
        for pkg in packages
    ])



def applyModConfig(packages: list[Package], config: ModConfig, localDir: Path) -> list[Package]:
    """
    Order discovered packages by the saved config and apply enabled flags.
    
    Saved entries whose package is gone are dropped (with a warning if they
    were enabled). Packages the config does not know yet are appended, enabled.
    """
    config.ensureBuiltIn()
    
    byPath: dict[str, Package] = {}
    for pkg in packages:
        if pkg.isBuiltIn:
            byPath[_BUILTIN_KEY] = pkg
            continue
        key = normalizePath(pkg.path)
        if not key:
            logger.warning("Package has empty path: %r", pkg)
            continue
        byPath[key] = pkg
    
    ordered: list[Package] = []
    for entry in config.mods:
        if entry.source is PackageSource.BUILT_IN and not entry.path:
            builtIn = byPath.pop(_BUILTIN_KEY, None)
            if builtIn is not None:
                builtIn.enabled = entry.enabled
                ordered.append(builtIn)
            continue
        
        if not entry.path.strip():
            logger.warning("Invalid path in mod config: %r", entry)
            continue
        entryPath = Path(entry.path)
        if not entryPath.is_absolute():
            entryPath = localDir / entryPath
        key = normalizePath(entryPath)
        
        pkg = byPath.pop(key, None)
        if pkg is not None:
            pkg.enabled = entry.enabled
            ordered.append(pkg)
        elif entry.enabled:
            logger.warning("Enabled mod not found at '%s'", entryPath)
    
    for pkg in byPath.values():
        logger.debug("New mod added at '%s'", pkg.path)
        pkg.enabled = True
        ordered.append(pkg)
    
    return ordered



def exportModPackage(packages: list[Package], destinationDir: Path, *, now: datetime | None = None) -> Path:
    """Zip every enabled package under mods/<source>_<dir>/ plus a matching modconfig.json5."""
    stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S-%f")[:-3]
    archivePath = destinationDir / f"modpkg_{stamp}.zip"
    destinationDir.mkdir(parents=True, exist_ok=True)
    
    config = ModConfig()
    with zipfile.ZipFile(archivePath, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for pkg in packages:
            if not pkg.enabled:
                continue
            if pkg.isBuiltIn:
                config.mods.append(ModConfigEntry(source=PackageSource.BUILT_IN))
                continue
            
            dirName = f"{pkg.source.value}_{pkg.name}"
            for file in sorted(pkg.path.rglob("*")):
                if file.is_file():
                    archive.write(file, f"mods/{dirName}/{file.relative_to(pkg.path).as_posix()}")
            config.mods.append(ModConfigEntry(source=PackageSource.LOCAL, path=dirName, enabled=True))
        
        archive.writestr(MOD_CONFIG_FILE, json5.dumps(config.model_dump(mode="json"), ensure_ascii=False, indent=2))
    
    logger.info("Exported mod package to '%s'", archivePath)
    return archivePath
