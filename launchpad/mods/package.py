# launchpad/mods/package.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import json5
from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from launchpad.mods.loaded import LoadedPackage

__all__ = [
    "ABOUT_DIR", "ABOUT_FILE", "THUMBNAIL_FILE",
    "BUILTIN_HANDLE",
    "NAME_SIZE_LIMIT", "DESCRIPTION_SIZE_LIMIT", "CHANGELOG_SIZE_LIMIT", "THUMBNAIL_SIZE_LIMIT",
    "PackageSource", "ModReference", "ModAbout",
    "ParamDescriptor", "MethodDescriptor", "TypeDescriptor", "ModuleDescriptor",
    "Package", "readAbout",
]



ABOUT_DIR = "About"
ABOUT_FILE = "about.json5"
THUMBNAIL_FILE = "thumb.png"

BUILTIN_HANDLE = 1

NAME_SIZE_LIMIT = 128
DESCRIPTION_SIZE_LIMIT = 8000
CHANGELOG_SIZE_LIMIT = 8000
THUMBNAIL_SIZE_LIMIT = 1024 * 1024



class PackageSource(str, Enum):
    BUILT_IN = "builtin"
    LOCAL = "local"
    REMOTE = "remote"



# ------------------------------------------------------------------ #
# Manifest (About/about.json5)
# ------------------------------------------------------------------ #

class ModReference(BaseModel):
    """Reference to another package by its workshop handle."""
    model_config = ConfigDict(extra="forbid")
    
    id: int
    version: str | None = None



class ModAbout(BaseModel):
    """Validated package manifest."""
    model_config = ConfigDict(extra="forbid")
    
    name: str
    author: str | None = None
    version: str | None = None
    description: str | None = None
    inGameDescription: str | None = None
    changeLog: str | None = None
    workshopHandle: int = 0
    tags: list[str] = Field(default_factory=list)
    dependencies: list[ModReference] = Field(default_factory=list)
    loadBefore: list[ModReference] = Field(default_factory=list)
    loadAfter: list[ModReference] = Field(default_factory=list)



def readAbout(aboutPath: Path) -> ModAbout:
    """Parse and validate a manifest file. Raises on unreadable or invalid content."""
    raw = json5.loads(aboutPath.read_text(encoding="utf-8"))
    return ModAbout.model_validate(raw)



# ------------------------------------------------------------------ #
# Code module descriptors (filled from source without executing it)
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class ParamDescriptor:
    name: str
    annotation: str | None = None



@dataclass(frozen=True)
class MethodDescriptor:
    name: str
    params: tuple[ParamDescriptor, ...] = ()
    isStatic: bool = False
    isClassMethod: bool = False
    isAbstract: bool = False
    
    @property
    def callParams(self) -> tuple[ParamDescriptor, ...]:
        """Parameters excluding the implicit self/cls."""
        if self.isStatic:
            return self.params
        return self.params[1:]



@dataclass(frozen=True)
class TypeDescriptor:
    name: str
    moduleName: str
    bases: tuple[str, ...] = ()
    decorators: tuple[str, ...] = ()
    methods: tuple[MethodDescriptor, ...] = ()
    isAbstract: bool = False
    lineno: int = 0
    
    @property
    def fullName(self) -> str:
        return f"{self.moduleName}.{self.name}"
    
    def getMethod(self, name: str) -> MethodDescriptor | None:
        return next((method for method in self.methods if method.name == name), None)



@dataclass
class ModuleDescriptor:
    """
    A code module owned by a package.
    
    `path` is None for modules that already ship with the host (built-in
    package); those are imported by name instead of executed from a file.
    """
    name: str
    path: Path | None = None
    types: list[TypeDescriptor] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    scanError: str | None = None



# ------------------------------------------------------------------ #
# Package
# ------------------------------------------------------------------ #

@dataclass(eq=False)
class Package:
    source: PackageSource
    path: Path
    enabled: bool = True
    about: ModAbout | None = None
    workshopId: int = 0
    aboutError: str | None = None
    
    modules: list[ModuleDescriptor] = field(default_factory=list)
    contentBundles: list[Path] = field(default_factory=list)
    detailsLoaded: bool = False
    
    sortIndex: int = 0
    depsWarned: bool = False
    loaded: LoadedPackage | None = None
    
    @property
    def name(self) -> str:
        return self.path.name
    
    @property
    def displayName(self) -> str:
        if self.about is not None:
            return self.about.name
        return self.name
    
    @property
    def handle(self) -> int:
        if self.source is PackageSource.BUILT_IN:
            return BUILTIN_HANDLE
        if self.source is PackageSource.REMOTE:
            return self.workshopId
        if self.about is not None:
            return self.about.workshopHandle
        return 0
    
    @property
    def aboutPath(self) -> Path:
        return self.path / ABOUT_DIR / ABOUT_FILE
    
    @property
    def thumbnailPath(self) -> Path:
        return self.path / ABOUT_DIR / THUMBNAIL_FILE
    
    @property
    def isBuiltIn(self) -> bool:
        return self.source is PackageSource.BUILT_IN
    
    def validateForPublish(self) -> tuple[bool, str]:
        if self.source is not PackageSource.LOCAL:
            return True, ""
        
        about = self.about
        if about is None:
            return False, "Mod has invalid/no about data."
        if len(about.name) > NAME_SIZE_LIMIT:
            return False, f"Mod name is larger than {NAME_SIZE_LIMIT} characters, current size is {len(about.name)} characters."
        if about.description and len(about.description) > DESCRIPTION_SIZE_LIMIT:
            return False, f"Mod description is larger than {DESCRIPTION_SIZE_LIMIT} characters, current size is {len(about.description)} characters."
        if about.changeLog and len(about.changeLog) > CHANGELOG_SIZE_LIMIT:
            return False, f"Mod changelog is larger than {CHANGELOG_SIZE_LIMIT} characters, current size is {len(about.changeLog)} characters."
        if not self.thumbnailPath.is_file():
            return False, f"Mod does not have a {THUMBNAIL_FILE} in the {ABOUT_DIR} folder."
        size = self.thumbnailPath.stat().st_size
        if size > THUMBNAIL_SIZE_LIMIT:
            return False, f"Mod thumbnail size is larger than {THUMBNAIL_SIZE_LIMIT // 1024} kilobytes, current size is {size // 1024} kilobytes."
        return True, ""
    
    def toDict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "path": str(self.path),
            "enabled": self.enabled,
            "displayName": self.displayName,
            "handle": self.handle,
            "modules": [module.name for module in self.modules],
            "contentBundles": [str(bundle) for bundle in self.contentBundles],
        }
    
    def __repr__(self) -> str:
        return f"Package({self.displayName!r}, source={self.source.value}, enabled={self.enabled})"
