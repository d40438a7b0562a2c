# launchpad/mods/strategy.py
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import ClassVar

from launchpad.app.settings import LoadStrategyMode, LoadStrategyType
from launchpad.core.errors import InvalidLoadStrategyError
from launchpad.core.logging import Severity, logSeverity
from launchpad.mods.loaded import LoadedPackage
from launchpad.mods.loader import MODULE_LOADER, ModuleLoader
from launchpad.mods.package import Package

logger = logging.getLogger(__name__)

__all__ = ["LoadStrategy", "SerialLoadStrategy", "ParallelLoadStrategy", "createLoadStrategy"]

PhaseUnit = Callable[[LoadedPackage], Awaitable[None]]



class LoadStrategy:
    """
    Loads enabled packages in three phases: modules, content, entry points.
    
    Every phase completes for all packages before the next one starts. A
    package that fails is skipped by later phases and clears `autoProceed`;
    other packages keep loading. The built-in package only takes part in
    the module phase.
    """
    mode: ClassVar[LoadStrategyMode]
    
    def __init__(self, *, loader: ModuleLoader | None = None):
        self.loader = loader or MODULE_LOADER
        self.enabledPackages: list[Package] = []
        self.loadedPackages: list[LoadedPackage] = []
        self.autoProceed = True
        self.phaseTimings: dict[str, float] = {}
    
    async def loadMods(self, packages: Iterable[Package]) -> bool:
        """Run all phases in resolver order. Returns False if any package failed."""
        self.enabledPackages = [pkg for pkg in packages if pkg.enabled]
        self.autoProceed = True
        
        await self._measurePhase("Modules", self.loadModules)
        await self._measurePhase("Content", self.loadContent)
        await self._measurePhase("Entry points", self.loadEntryPoints)
        return self.autoProceed
    
    async def _measurePhase(self, name: str, phase: Callable[[], Awaitable[None]]) -> None:
        logger.debug("%s loading...", name)
        started = time.perf_counter()
        await phase()
        elapsed = time.perf_counter() - started
        self.phaseTimings[name] = elapsed
        logger.info("%s loading took %.3fs", name, elapsed)
    
    def loadFailed(self, loaded: LoadedPackage, err: BaseException) -> None:
        logSeverity(loaded.logger, Severity.EXCEPTION, "Load failed: %s", err, exc_info=err)
        loaded.markFailed(err)
        self.autoProceed = False
    
    def _ensureLoaded(self, pkg: Package) -> LoadedPackage:
        if pkg.loaded is None:
            pkg.loaded = LoadedPackage(pkg, loader=self.loader)
        if pkg.loaded not in self.loadedPackages:
            self.loadedPackages.append(pkg.loaded)
        return pkg.loaded
    
    async def _guard(self, loaded: LoadedPackage, unit: PhaseUnit) -> None:
        try:
            await unit(loaded)
        except Exception as err:
            self.loadFailed(loaded, err)
    
    async def _runPhase(self, items: list[LoadedPackage], unit: PhaseUnit) -> None:
        raise NotImplementedError
    
    async def _loadModulesOf(self, loaded: LoadedPackage) -> None:
        raise NotImplementedError
    
    async def _loadContentOf(self, loaded: LoadedPackage) -> None:
        raise NotImplementedError
    
    async def _loadEntryPointsOf(self, loaded: LoadedPackage) -> None:
        await loaded.findEntryPoints()
        loaded.printEntryPoints()
        loaded.loadEntryPoints()
    
    # ------ Phases ------ #
    
    async def loadModules(self) -> None:
        items: list[LoadedPackage] = []
        for pkg in self.enabledPackages:
            loaded = self._ensureLoaded(pkg)
            if loaded.modulesLoaded or loaded.isDone:
                continue
            items.append(loaded)
        await self._runPhase(items, self._loadModulesOf)
    
    def _laterPhaseItems(self, doneFlag: str) -> list[LoadedPackage]:
        items: list[LoadedPackage] = []
        for pkg in self.enabledPackages:
            loaded = pkg.loaded
            if pkg.isBuiltIn or loaded is None or loaded.isDone or getattr(loaded, doneFlag):
                continue
            items.append(loaded)
        return items
    
    async def loadContent(self) -> None:
        await self._runPhase(self._laterPhaseItems("contentLoaded"), self._loadContentOf)
    
    async def loadEntryPoints(self) -> None:
        await self._runPhase(self._laterPhaseItems("entryPointsLoaded"), self._loadEntryPointsOf)



class SerialLoadStrategy(LoadStrategy):
    """One package at a time, in order. Modules and bundles of a package also load one at a time."""
    mode = LoadStrategyMode.SERIAL
    
    async def _runPhase(self, items: list[LoadedPackage], unit: PhaseUnit) -> None:
        for loaded in items:
            await self._guard(loaded, unit)
    
    async def _loadModulesOf(self, loaded: LoadedPackage) -> None:
        await loaded.loadModulesSerial()
    
    async def _loadContentOf(self, loaded: LoadedPackage) -> None:
        await loaded.loadContentSerial()



class ParallelLoadStrategy(LoadStrategy):
    """All packages of a phase start together, in order; the phase ends when every one settled."""
    mode = LoadStrategyMode.PARALLEL
    
    async def _runPhase(self, items: list[LoadedPackage], unit: PhaseUnit) -> None:
        await asyncio.gather(*(self._guard(loaded, unit) for loaded in items))
    
    async def _loadModulesOf(self, loaded: LoadedPackage) -> None:
        await loaded.loadModulesParallel()
    
    async def _loadContentOf(self, loaded: LoadedPackage) -> None:
        await loaded.loadContentParallel()



_STRATEGIES: dict[tuple[LoadStrategyType, LoadStrategyMode], type[LoadStrategy]] = {
    (LoadStrategyType.LINEAR, LoadStrategyMode.SERIAL): SerialLoadStrategy,
    (LoadStrategyType.LINEAR, LoadStrategyMode.PARALLEL): ParallelLoadStrategy,
}



def createLoadStrategy(
    strategyType: LoadStrategyType | str,
    mode: LoadStrategyMode | str,
    *,
    loader: ModuleLoader | None = None,
) -> LoadStrategy:
    try:
        key = (LoadStrategyType(strategyType), LoadStrategyMode(mode))
        cls = _STRATEGIES[key]
    except (ValueError, KeyError) as err:
        raise InvalidLoadStrategyError(f"Invalid load strategy ({strategyType}, {mode})") from err
    return cls(loader=loader)
