# launchpad/mods/loaded.py
from __future__ import annotations

import asyncio
import logging
import threading
from enum import Enum
from pathlib import Path

from launchpad.core.logging import getLogger, getModLogger
from launchpad.mods.content import ContentBundle, ExportSettings, Prefab
from launchpad.mods.entrypoints import EntryPoint, findEntryPoints
from launchpad.mods.interface import ConfigEntry, ConfigFile, ContentHandler, ModContainer, SortedConfigFile
from launchpad.mods.loader import MODULE_LOADER, LoadedModule, ModuleLoader
from launchpad.mods.package import ModuleDescriptor, Package

__all__ = ["LoadState", "LoadedPackage"]



class LoadState(str, Enum):
    NOT_STARTED = "notStarted"
    MODULES_LOADING = "modulesLoading"
    MODULES_LOADED = "modulesLoaded"
    CONTENT_LOADING = "contentLoading"
    CONTENT_LOADED = "contentLoaded"
    ENTRY_POINTS_LOADING = "entryPointsLoading"
    FINISHED = "finished"
    FAILED = "failed"



class LoadedPackage:
    """
    Load progress of one package for one run.
    
    Created the first time the module phase touches a package and never
    replaced. Lists are only appended to; concurrent content loads of the
    same package append under `_lock`.
    """
    
    def __init__(self, package: Package, *, loader: ModuleLoader | None = None, logger: logging.Logger | None = None):
        self.package = package
        self.loader = loader or MODULE_LOADER
        if logger is None:
            logger = getLogger() if package.isBuiltIn else getModLogger(package.displayName)
        self.logger = logger
        self._lock = threading.Lock()
        
        self.state = LoadState.NOT_STARTED
        self.modulesLoaded = False
        self.contentLoaded = False
        self.entryPointsLoaded = False
        self.failed = False
        self.finished = False
        self.error: BaseException | None = None
        
        self.loadedModules: list[LoadedModule] = []
        self.bundles: list[ContentBundle] = []
        self.prefabs: list[Prefab] = []
        self.exports: list[ExportSettings] = []
        self.contentHandler = ContentHandler(package.path, self.bundles, self.prefabs)
        
        self.entryPoints: list[EntryPoint] = []
        self.configFiles: list[ConfigFile] = []
        self.container: ModContainer | None = None
        
        self._configDirty = True
        self._cachedSortedConfigs: list[SortedConfigFile] = []
        self._cachedTotalConfigs = 0
    
    @property
    def displayName(self) -> str:
        return self.package.displayName
    
    @property
    def isDone(self) -> bool:
        return self.failed or self.finished
    
    def markFailed(self, err: BaseException) -> None:
        self.error = err
        self.failed = True
        self.finished = False
        self.state = LoadState.FAILED
    
    # ------ Module phase ------ #
    
    def _beginModules(self) -> None:
        self.state = LoadState.MODULES_LOADING
        # Must happen before the first suspension so later packages can import ours
        self.loader.registerPackage(self)
    
    def _endModules(self) -> None:
        self.modulesLoaded = True
        self.state = LoadState.MODULES_LOADED
    
    async def _loadModuleSingle(self, descriptor: ModuleDescriptor) -> LoadedModule:
        self.logger.debug("Loading module %s", descriptor.name)
        loadedModule = await self.loader.loadModule(descriptor, self)
        self.logger.debug("Loaded module %s", descriptor.name)
        return loadedModule
    
    async def loadModulesSerial(self) -> None:
        self._beginModules()
        for descriptor in self.package.modules:
            self.loadedModules.append(await self._loadModuleSingle(descriptor))
        self._endModules()
    
    async def loadModulesParallel(self) -> None:
        self._beginModules()
        results = await asyncio.gather(
            *(self._loadModuleSingle(descriptor) for descriptor in self.package.modules),
            return_exceptions=True,
        )
        # Keep declaration order; the first failure fails the package after every load settled
        for result in results:
            if isinstance(result, BaseException):
                raise result
        self.loadedModules.extend(results)
        self._endModules()
    
    # ------ Content phase ------ #
    
    async def _loadContentSingle(self, path: Path) -> None:
        self.logger.debug("Loading content bundle %s", path.name)
        bundle = await self.loader.loadContentBundle(path)
        with self._lock:
            self.bundles.append(bundle)
            self.prefabs.extend(bundle.prefabs)
            if bundle.exportSettings is not None:
                self.exports.append(bundle.exportSettings)
    
    async def loadContentSerial(self) -> None:
        self.state = LoadState.CONTENT_LOADING
        for path in self.package.contentBundles:
            await self._loadContentSingle(path)
        self.contentLoaded = True
        self.state = LoadState.CONTENT_LOADED
    
    async def loadContentParallel(self) -> None:
        self.state = LoadState.CONTENT_LOADING
        results = await asyncio.gather(
            *(self._loadContentSingle(path) for path in self.package.contentBundles),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        self.contentLoaded = True
        self.state = LoadState.CONTENT_LOADED
    
    # ------ Entry point phase ------ #
    
    async def findEntryPoints(self) -> None:
        self.state = LoadState.ENTRY_POINTS_LOADING
        self.logger.debug("Finding entry points")
        found = await asyncio.to_thread(findEntryPoints, self, self.loader)
        self.entryPoints.extend(found)
        self.logger.debug("Found %d entry points", len(found))
    
    def printEntryPoints(self) -> None:
        for entry in self.entryPoints:
            self.logger.debug("- %s", entry.debugName())
    
    def _onSettingChanged(self, configFile: ConfigFile, entry: ConfigEntry) -> None:
        self._configDirty = True
    
    def loadEntryPoints(self) -> None:
        self.logger.debug("Loading entry points")
        
        self.container = ModContainer(self.displayName).keepAlive()
        
        for entry in self.entryPoints:
            entry.instantiate(self.container)
        
        for entry in self.entryPoints:
            entry.initialize(self)
            self.configFiles.extend(entry.configSources())
        
        for configFile in self.configFiles:
            configFile.settingChanged.append(self._onSettingChanged)
        self.configFiles.sort(key=lambda configFile: str(configFile.path))
        self._configDirty = True
        
        self.entryPointsLoaded = True
        self.finished = True
        self.state = LoadState.FINISHED
        self.logger.info("Loaded mod")
    
    def getSortedConfigs(self) -> list[SortedConfigFile]:
        totalCount = sum(len(configFile) for configFile in self.configFiles)
        if self._configDirty or totalCount != self._cachedTotalConfigs:
            self._cachedSortedConfigs = [
                SortedConfigFile(configFile) for configFile in self.configFiles if len(configFile) > 0
            ]
            self._cachedTotalConfigs = totalCount
            self._configDirty = False
        return self._cachedSortedConfigs
    
    def __repr__(self) -> str:
        return f"LoadedPackage({self.displayName!r}, state={self.state.value})"
