# launchpad/app/lifecycle.py
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Protocol

from launchpad.app.paths import LaunchPadPaths
from launchpad.app.settings import LaunchPadSettings, loadSettings, saveSettings
from launchpad.core.logging import configureLogging
from launchpad.mods.discover import (
    WorkshopClient,
    createBuiltInPackage,
    findLocalPackages,
    findRemotePackages,
    loadDetails,
)
from launchpad.mods.loader import ModuleLoader
from launchpad.mods.modconfig import applyModConfig, createModConfig, exportModPackage, loadModConfig, saveModConfig
from launchpad.mods.package import Package
from launchpad.mods.resolver import ResolveResult, resolve
from launchpad.mods.strategy import LoadStrategy, createLoadStrategy
from launchpad.update.github import Release
from launchpad.update.updater import LaunchPadUpdater

logger = logging.getLogger(__name__)

__all__ = ["LaunchState", "HostSignals", "LaunchPad", "launch"]



class LaunchState(str, Enum):
    UPDATING = "updating"
    INITIALIZING = "initializing"
    SEARCHING = "searching"
    CONFIGURING = "configuring"
    LOADING = "loading"
    LOADED = "loaded"
    RUNNING = "running"
    FAILED = "failed"



class HostSignals(Protocol):
    """What the loader needs from the host process."""
    
    @property
    def isBatchMode(self) -> bool:
        ...
    
    def quit(self) -> None:
        ...
    
    def startGame(self) -> None:
        ...
    
    async def confirmUpdate(self, release: Release) -> bool:
        ...



class LaunchPad:
    """
    Startup orchestration: self-update, discovery, ordering, then the three
    load phases, with an auto-load countdown between the manual steps.
    """
    
    def __init__(
        self,
        paths: LaunchPadPaths,
        host: HostSignals,
        *,
        settings: LaunchPadSettings | None = None,
        workshop: WorkshopClient | None = None,
        updater: LaunchPadUpdater | None = None,
        loader: ModuleLoader | None = None,
        stopAutoLoad: bool = False,
        pollInterval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.host = host
        self.batchMode = bool(host.isBatchMode)
        self.settings = settings or loadSettings(paths.settingsPath, batchMode=self.batchMode)
        # The save path chosen at startup owns the mod list; it cannot change while running
        self.paths = paths.withSavePath(self.settings.loading.savePathOverride)
        self.workshop = workshop
        self.updater = updater or LaunchPadUpdater(
            self.settings,
            self.paths.installDir,
            batchMode=self.batchMode,
            confirm=host.confirmUpdate,
        )
        self.loader = loader
        self.pollInterval = pollInterval
        self._clock = clock
        
        self.state = LaunchState.INITIALIZING
        self.packages: list[Package] = []
        self.loadStrategy: LoadStrategy | None = None
        self.lastCycle: list[Package] | None = None
        self.quitting = False
        
        if self.batchMode:
            self.autoLoad = True
            self.workshopDisabled = True
        else:
            self.autoLoad = not stopAutoLoad and self.settings.startup.autoLoadOnStart
            self.workshopDisabled = self.settings.startup.disableWorkshop
        if workshop is None:
            self.workshopDisabled = True
        self.autoSort = self.settings.startup.autoSort
        self._autoTimerStart = self._clock()
    
    # ------ Auto-load countdown ------ #
    
    @property
    def secondsUntilAutoLoad(self) -> float:
        return self.settings.startup.autoLoadWaitTime - (self._clock() - self._autoTimerStart)
    
    @property
    def autoLoadReady(self) -> bool:
        return self.autoLoad and self.secondsUntilAutoLoad <= 0
    
    async def _waitWhileIn(self, state: LaunchState) -> None:
        self._autoTimerStart = self._clock()
        while self.state == state and not self.autoLoadReady:
            await asyncio.sleep(self.pollInterval)
    
    # ------ Manual controls ------ #
    
    def cancelAutoLoad(self) -> None:
        self.autoLoad = False
    
    def nextStep(self) -> None:
        if self.state == LaunchState.CONFIGURING:
            self.state = LaunchState.LOADING
        elif self.state == LaunchState.LOADED:
            self.state = LaunchState.RUNNING
    
    def setAutoSort(self, enabled: bool) -> None:
        self.autoSort = enabled
        self.onModsChanged()
    
    def onModsChanged(self) -> None:
        """Call after the user toggled or moved packages."""
        if self.autoSort:
            self.sortByDeps()
        self.saveConfig()
    
    # ------ Steps ------ #
    
    async def run(self) -> None:
        await self.load()
        
        if self.quitting:
            return
        
        if not self.autoLoad and self.batchMode:
            self._quit("An error occurred during initialization. Exiting")
            return
        
        if not self.batchMode:
            await self._waitWhileIn(LaunchState.CONFIGURING)
        
        if self.state == LaunchState.CONFIGURING:
            self.state = LaunchState.LOADING
        
        if self.state == LaunchState.LOADING:
            await self.loadMods()
        
        if not self.autoLoad and self.batchMode:
            self._quit("An error occurred during mod loading. Exiting")
            return
        
        if not self.batchMode:
            await self._waitWhileIn(LaunchState.LOADED)
        
        self.startGame()
    
    async def load(self) -> None:
        settings = self.settings
        try:
            if settings.runPostUpdateCleanup:
                self.updater.runPostUpdateCleanup()
                settings.internal.postUpdateCleanup = False
            
            if settings.runOneTimeCompanionInstall:
                await self.updater.runOneTimeCompanionInstall()
                if not self.updater.autoLoad:
                    self.autoLoad = False
                settings.internal.oneTimeCompanionInstall = False
            
            if settings.startup.checkForUpdate:
                self.state = LaunchState.UPDATING
                if await self.runUpdate():
                    if self.batchMode:
                        self._saveSettings()
                        self._quit("LaunchPad has updated. Exiting", logging.WARNING)
                        return
                    # A restart is recommended, so wait for the user
                    self.autoLoad = False
            self._saveSettings()
            
            self.state = LaunchState.INITIALIZING
            logger.info("Initializing...")
            packages = [createBuiltInPackage(self.paths.installDir or self.paths.gameRoot)]
            
            self.state = LaunchState.SEARCHING
            logger.info("Listing local mods")
            packages.extend(await asyncio.to_thread(findLocalPackages, self.paths.localModsDir))
            
            if not self.workshopDisabled and self.workshop is not None:
                logger.info("Listing workshop mods")
                packages.extend(await findRemotePackages(self.workshop))
            
            logger.info("Loading mod order")
            config = await asyncio.to_thread(loadModConfig, self.paths.modConfigPath)
            self.packages = applyModConfig(packages, config, self.paths.localModsDir)
            self.saveConfig()
            
            logger.info("Loading details")
            await asyncio.to_thread(loadDetails, self.packages)
            
            if self.autoSort:
                self.sortByDeps()
            
            logger.info("Mod config initialized")
            self.state = LaunchState.CONFIGURING
        except Exception:
            logger.exception("Error occurred during initialization. Mods will not be loaded.")
            self.packages = []
            self.state = LaunchState.FAILED
            self.autoLoad = False
    
    async def runUpdate(self) -> bool:
        try:
            logger.info("Checking version")
            release = await self.updater.getUpdateRelease()
            if release is None:
                return False
            if not await self.updater.checkShouldUpdate(release):
                return False
            if not await self.updater.updateToRelease(release):
                return False
            logger.error("LaunchPad updated to %s, please restart the game!", release.tagName)
            self.settings.internal.postUpdateCleanup = True
            return True
        except Exception:
            logger.exception("An error occurred during update.")
            return False
    
    def sortByDeps(self) -> ResolveResult:
        result = resolve(self.packages)
        if result.cycle is not None:
            self.lastCycle = result.cycle
            self.autoLoad = False
            self.autoSort = False
        else:
            self.lastCycle = None
            self.packages = result.order
        return result
    
    def saveConfig(self) -> None:
        saveModConfig(createModConfig(self.packages, self.paths.localModsDir), self.paths.modConfigPath)
    
    def _saveSettings(self) -> None:
        try:
            saveSettings(self.settings, self.paths.settingsPath)
        except OSError as err:
            logger.warning("Could not save settings to '%s': %s", self.paths.settingsPath, err)
    
    async def loadMods(self) -> None:
        started = time.perf_counter()
        self.state = LaunchState.LOADING
        
        strategyType, strategyMode = self.settings.loadStrategy
        self.loadStrategy = createLoadStrategy(strategyType, strategyMode, loader=self.loader)
        if not await self.loadStrategy.loadMods(self.packages):
            self.autoLoad = False
        
        logger.warning("Took %.3fs to load mods.", time.perf_counter() - started)
        self.state = LaunchState.LOADED
    
    def _quit(self, message: str, level: int = logging.ERROR) -> None:
        logger.log(level, message)
        self.quitting = True
        self.host.quit()
    
    def startGame(self) -> None:
        self.state = LaunchState.RUNNING
        self.host.startGame()
    
    def failedPackages(self) -> list[Package]:
        return [pkg for pkg in self.packages if pkg.loaded is not None and pkg.loaded.failed]
    
    def exportMods(self) -> Path:
        return exportModPackage(self.packages, self.paths.savePath)



async def launch(
    gameRoot: str | Path,
    host: HostSignals,
    *,
    savePath: str | Path | None = None,
    workshop: WorkshopClient | None = None,
    stopAutoLoad: bool = False,
) -> LaunchPad:
    """Entry point for hosts: configure logging from settings and run the full startup."""
    paths = LaunchPadPaths.build(gameRoot, savePath)
    settings = loadSettings(paths.settingsPath, batchMode=host.isBatchMode)
    paths = paths.withSavePath(settings.loading.savePathOverride)
    configureLogging(settings.logging, paths.logPath)
    
    launchPad = LaunchPad(paths, host, settings=settings, workshop=workshop, stopAutoLoad=stopAutoLoad)
    await launchPad.run()
    return launchPad
