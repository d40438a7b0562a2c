# launchpad/mods/loader.py
from __future__ import annotations

import asyncio
import importlib
import importlib.abc
import importlib.util
import inspect
import logging
import sys
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING, Any, TypeVar

from launchpad.core.errors import ModuleConflictError, ModuleLoadError, TypeResolutionError
from launchpad.mods.content import ContentBundle, loadContentBundle as _loadContentBundle
from launchpad.mods.package import ModuleDescriptor, TypeDescriptor

if TYPE_CHECKING:
    from launchpad.mods.loaded import LoadedPackage

logger = logging.getLogger(__name__)

__all__ = [
    "LoadedModule",
    "ModuleLoader",
    "PackageModuleFinder",
    "MODULE_LOADER",
    "resolveType",
]

T = TypeVar("T")



@dataclass(frozen=True)
class LoadedModule:
    name: str
    module: ModuleType
    descriptor: ModuleDescriptor



def _sameFile(module: ModuleType, path: Path) -> bool:
    moduleFile = getattr(module, "__file__", None)
    if not moduleFile:
        return False
    try:
        return Path(moduleFile).resolve() == path.resolve()
    except OSError:
        return False



def resolveType(loadedModule: LoadedModule, typeDesc: TypeDescriptor) -> type:
    """Look a scanned type up on its activated module."""
    try:
        value = getattr(loadedModule.module, typeDesc.name)
    except AttributeError as err:
        raise TypeResolutionError(typeDesc.name, loadedModule.name, "not defined after module execution") from err
    if not isinstance(value, type):
        raise TypeResolutionError(typeDesc.name, loadedModule.name, f"resolved to {type(value).__name__}, not a class")
    try:
        # Touching the MRO surfaces broken bases (e.g. a base from a package that never loaded)
        inspect.getmro(value)
    except Exception as err:
        raise TypeResolutionError(typeDesc.name, loadedModule.name, str(err)) from err
    return value



class PackageModuleFinder(importlib.abc.MetaPathFinder):
    """
    Last-resort finder: resolves top-level module names that belong to
    packages whose module phase has started, so mods can import each other.
    """
    
    def __init__(self, loader: ModuleLoader):
        self._loader = loader
    
    def find_spec(self, fullname: str, path: Any = None, target: ModuleType | None = None):
        if path is not None:
            return None
        found = self._loader.findModule(fullname)
        if found is None:
            return None
        descriptor, owner = found
        if descriptor.path is None:
            return None
        logger.debug("Resolved module '%s' from package '%s'", fullname, owner.displayName)
        self._loader._recordOwner(fullname, owner)
        return importlib.util.spec_from_file_location(fullname, descriptor.path)



class ModuleLoader:
    def __init__(self):
        self._lock = threading.Lock()
        self._execLock = threading.RLock()
        self._registry: dict[str, tuple[ModuleDescriptor, LoadedPackage]] = {}
        self._owners: dict[str, LoadedPackage] = {}
        self._finder = PackageModuleFinder(self)
    
    # ------ Resolution hook ------ #
    
    def install(self) -> None:
        if self._finder not in sys.meta_path:
            sys.meta_path.append(self._finder)
    
    def uninstall(self) -> None:
        if self._finder in sys.meta_path:
            sys.meta_path.remove(self._finder)
    
    def registerPackage(self, owner: LoadedPackage) -> None:
        """Make a package's modules resolvable by name. First registration of a name wins."""
        self.install()
        with self._lock:
            for descriptor in owner.package.modules:
                existing = self._registry.get(descriptor.name)
                if existing is not None and existing[1] is not owner:
                    logger.warning(
                        "Module name '%s' from '%s' is already provided by '%s'",
                        descriptor.name, owner.displayName, existing[1].displayName,
                    )
                    continue
                self._registry[descriptor.name] = (descriptor, owner)
    
    def findModule(self, name: str) -> tuple[ModuleDescriptor, LoadedPackage] | None:
        with self._lock:
            return self._registry.get(name)
    
    def _recordOwner(self, moduleName: str, owner: LoadedPackage | None) -> None:
        if owner is None:
            return
        with self._lock:
            self._owners[moduleName] = owner
    
    def ownerOf(self, moduleName: str) -> LoadedPackage | None:
        with self._lock:
            return self._owners.get(moduleName)
    
    def tryGetExecutingPackage(self) -> LoadedPackage | None:
        """Walk the call stack and return the package owning the nearest mod frame."""
        frame = inspect.currentframe()
        try:
            while frame is not None:
                owner = self.ownerOf(frame.f_globals.get("__name__", ""))
                if owner is not None:
                    return owner
                frame = frame.f_back
            return None
        finally:
            del frame
    
    # ------ Loading ------ #
    
    def loadModuleSync(self, descriptor: ModuleDescriptor, owner: LoadedPackage | None = None) -> LoadedModule:
        name = descriptor.name
        with self._execLock:
            if descriptor.path is None:
                # Ships with the host, just register it
                try:
                    module = importlib.import_module(name)
                except Exception as err:
                    raise ModuleLoadError(name, str(err)) from err
                self._recordOwner(name, owner)
                return LoadedModule(name, module, descriptor)
            
            path = descriptor.path
            existing = sys.modules.get(name)
            if existing is not None:
                if _sameFile(existing, path):
                    logger.debug("Module '%s' already active, reusing", name)
                    self._recordOwner(name, owner)
                    return LoadedModule(name, existing, descriptor)
                raise ModuleConflictError(
                    name, f"name is already taken by '{getattr(existing, '__file__', None) or existing!r}'"
                )
            
            if not path.is_file():
                raise ModuleLoadError(name, f"file '{path}' does not exist")
            
            spec = importlib.util.spec_from_file_location(name, path)
            if spec is None or spec.loader is None:
                raise ModuleLoadError(name, f"no loader for '{path}'")
            
            module = importlib.util.module_from_spec(spec)
            sys.modules[name] = module
            self._recordOwner(name, owner)
            try:
                spec.loader.exec_module(module)
            except Exception as err:
                sys.modules.pop(name, None)
                with self._lock:
                    self._owners.pop(name, None)
                raise ModuleLoadError(name, f"{type(err).__name__}: {err}") from err
            
            logger.debug("Loaded module '%s' from '%s'", name, path)
            return LoadedModule(name, module, descriptor)
    
    async def loadModule(self, descriptor: ModuleDescriptor, owner: LoadedPackage | None = None) -> LoadedModule:
        return await asyncio.to_thread(self.loadModuleSync, descriptor, owner)
    
    async def loadContentBundle(self, path: Path) -> ContentBundle:
        return await _loadContentBundle(path)
    
    # ------ Scanning ------ #
    
    def scanModuleTypes(
        self,
        loadedModule: LoadedModule,
        classifier: Callable[[LoadedModule, TypeDescriptor], T | None],
    ) -> list[T]:
        """
        Run a classifier over every scanned type of a module.
        
        Abstract types are never candidates. A type that fails to resolve is
        logged at debug level and skipped; the rest of the scan continues.
        """
        found: list[T] = []
        for typeDesc in loadedModule.descriptor.types:
            if typeDesc.isAbstract:
                continue
            try:
                entry = classifier(loadedModule, typeDesc)
            except TypeResolutionError as err:
                logger.debug("Skipping type '%s': %s", typeDesc.fullName, err)
                continue
            if entry is not None:
                found.append(entry)
        return found
    
    def reset(self) -> None:
        with self._lock:
            self._registry.clear()
            self._owners.clear()
        self.uninstall()



MODULE_LOADER = ModuleLoader()
