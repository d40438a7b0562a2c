# launchpad/mods/entrypoints.py
from __future__ import annotations

import inspect
import logging
import re
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

from launchpad.core.errors import TypeResolutionError
from launchpad.mods.content import ContentBundle, ExportSettings, Prefab
from launchpad.mods.interface import (
    MARKER_ATTRIBUTE,
    Component,
    ConfigFile,
    HostPlugin,
    ModBehaviour,
    ModContainer,
)
from launchpad.mods.loader import MODULE_LOADER, LoadedModule, ModuleLoader, resolveType
from launchpad.mods.package import TypeDescriptor

if TYPE_CHECKING:
    from launchpad.mods.loaded import LoadedPackage

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_METHOD",
    "EntryPointKind",
    "EntryPoint",
    "PackagedComponentEntryPoint",
    "ModComponentEntryPoint",
    "HostPluginEntryPoint",
    "ConventionMethodEntryPoint",
    "classifyAnyModComponent",
    "classifyExplicitMarker",
    "makeStartupClassClassifier",
    "classifyHostPlugin",
    "classifyConventionMethod",
    "findPrefabEntryPoints",
    "findConventionEntryPoints",
    "findEntryPoints",
]



DEFAULT_METHOD = "onLoaded"

_LIST_ANNOTATION = re.compile(r"^(?:builtins\.)?(?:typing\.)?(?:list|List)(?:\[.*\])?$")



class EntryPointKind(str, Enum):
    PACKAGED_COMPONENT = "packagedComponent"
    EXPLICIT_MARKER = "explicitMarker"
    HOST_PLUGIN = "hostPlugin"
    CONVENTION_METHOD = "conventionMethod"



# ------------------------------------------------------------------ #
# Variants
# ------------------------------------------------------------------ #

class EntryPoint:
    kind: ClassVar[EntryPointKind]
    
    def instantiate(self, container: ModContainer) -> None:
        raise NotImplementedError
    
    def initialize(self, loadedPackage: LoadedPackage) -> None:
        raise NotImplementedError
    
    def configSources(self) -> list[ConfigFile]:
        return []
    
    def debugName(self) -> str:
        raise NotImplementedError



def _configsOf(components: Iterable[Component]) -> list[ConfigFile]:
    return [comp.config for comp in components if getattr(comp, "config", None) is not None]



@dataclass(eq=False)
class PackagedComponentEntryPoint(EntryPoint):
    """A bundle prefab: a child container holding the prefab's components."""
    kind: ClassVar[EntryPointKind] = EntryPointKind.PACKAGED_COMPONENT
    
    prefab: Prefab
    componentTypes: tuple[type[Component], ...] = ()
    instance: ModContainer | None = None
    behaviours: list[ModBehaviour] = field(default_factory=list)
    
    def debugName(self) -> str:
        return f"Prefab Entry {self.prefab.name}"
    
    def instantiate(self, container: ModContainer) -> None:
        self.instance = container.createChild(self.prefab.name)
        components = [self.instance.addComponent(componentType) for componentType in self.componentTypes]
        self.behaviours = [comp for comp in components if isinstance(comp, ModBehaviour)]
    
    def initialize(self, loadedPackage: LoadedPackage) -> None:
        for behaviour in self.behaviours:
            behaviour.contentHandler = loadedPackage.contentHandler
            behaviour.onLoaded(loadedPackage.contentHandler)
    
    def configSources(self) -> list[ConfigFile]:
        return _configsOf(self.behaviours)



@dataclass(eq=False)
class ModComponentEntryPoint(EntryPoint):
    """A ModBehaviour subclass, found by marker, by startup class or by shape."""
    kind: ClassVar[EntryPointKind] = EntryPointKind.EXPLICIT_MARKER
    
    componentType: type[ModBehaviour]
    instance: ModBehaviour | None = None
    
    def debugName(self) -> str:
        return f"Mod Entry {_fullName(self.componentType)}"
    
    def instantiate(self, container: ModContainer) -> None:
        self.instance = container.addComponent(self.componentType)
    
    def initialize(self, loadedPackage: LoadedPackage) -> None:
        if self.instance is None:
            raise RuntimeError(f"{self.debugName()} was initialized before it was instantiated")
        self.instance.contentHandler = loadedPackage.contentHandler
        self.instance.onLoaded(loadedPackage.contentHandler)
    
    def configSources(self) -> list[ConfigFile]:
        return _configsOf([self.instance] if self.instance is not None else [])



@dataclass(eq=False)
class HostPluginEntryPoint(EntryPoint):
    kind: ClassVar[EntryPointKind] = EntryPointKind.HOST_PLUGIN
    
    pluginType: type[HostPlugin]
    instance: HostPlugin | None = None
    
    def debugName(self) -> str:
        return f"Host Plugin Entry {_fullName(self.pluginType)}"
    
    def instantiate(self, container: ModContainer) -> None:
        self.instance = container.addComponent(self.pluginType)
    
    def initialize(self, loadedPackage: LoadedPackage) -> None:
        # Host plugins set themselves up in awake()
        return
    
    def configSources(self) -> list[ConfigFile]:
        return _configsOf([self.instance] if self.instance is not None else [])



@dataclass(eq=False)
class ConventionMethodEntryPoint(EntryPoint):
    """A component exposing `onLoaded(self, prefabs: list)`; called with the package's prefabs."""
    kind: ClassVar[EntryPointKind] = EntryPointKind.CONVENTION_METHOD
    
    componentType: type[Component]
    instance: Component | None = None
    
    def debugName(self) -> str:
        return f"Default Entry {_fullName(self.componentType)}"
    
    def instantiate(self, container: ModContainer) -> None:
        self.instance = container.addComponent(self.componentType)
    
    def initialize(self, loadedPackage: LoadedPackage) -> None:
        method = getattr(self.instance, DEFAULT_METHOD, None)
        if callable(method):
            method(list(loadedPackage.prefabs))



# ------------------------------------------------------------------ #
# Classifiers: (loadedModule, typeDesc) -> variant | None
# ------------------------------------------------------------------ #

def _fullName(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"



def _isSubclass(cls: type, base: type) -> bool:
    # A mod class with a broken metaclass is skipped like any other unresolvable type
    try:
        return issubclass(cls, base)
    except Exception as err:
        raise TypeResolutionError(cls.__qualname__, cls.__module__, f"subclass check failed: {err!r}") from err



def _concreteSubclass(cls: type, base: type) -> bool:
    if not _isSubclass(cls, base) or cls is base:
        return False
    try:
        return not inspect.isabstract(cls)
    except Exception as err:
        raise TypeResolutionError(cls.__qualname__, cls.__module__, f"abstract check failed: {err!r}") from err



def classifyAnyModComponent(loadedModule: LoadedModule, typeDesc: TypeDescriptor) -> ModComponentEntryPoint | None:
    cls = resolveType(loadedModule, typeDesc)
    return ModComponentEntryPoint(cls) if _concreteSubclass(cls, ModBehaviour) else None



def classifyExplicitMarker(loadedModule: LoadedModule, typeDesc: TypeDescriptor) -> ModComponentEntryPoint | None:
    cls = resolveType(loadedModule, typeDesc)
    # Only a marker set on the class itself counts, not an inherited one
    if not vars(cls).get(MARKER_ATTRIBUTE, False):
        return None
    return ModComponentEntryPoint(cls) if _concreteSubclass(cls, ModBehaviour) else None



def makeStartupClassClassifier(startupClasses: set[str]) -> Callable[[LoadedModule, TypeDescriptor], ModComponentEntryPoint | None]:
    def classifyStartupClass(loadedModule: LoadedModule, typeDesc: TypeDescriptor) -> ModComponentEntryPoint | None:
        if typeDesc.fullName not in startupClasses:
            return None
        cls = resolveType(loadedModule, typeDesc)
        return ModComponentEntryPoint(cls) if _concreteSubclass(cls, ModBehaviour) else None
    return classifyStartupClass



def classifyHostPlugin(loadedModule: LoadedModule, typeDesc: TypeDescriptor) -> HostPluginEntryPoint | None:
    cls = resolveType(loadedModule, typeDesc)
    if _concreteSubclass(cls, HostPlugin) and not _isSubclass(cls, ModBehaviour):
        return HostPluginEntryPoint(cls)
    return None



def _hasConventionMethod(typeDesc: TypeDescriptor) -> bool:
    method = typeDesc.getMethod(DEFAULT_METHOD)
    if method is None or method.isStatic or method.isClassMethod:
        return False
    params = method.callParams
    return len(params) == 1 and _LIST_ANNOTATION.match(params[0].annotation or "") is not None



def classifyConventionMethod(loadedModule: LoadedModule, typeDesc: TypeDescriptor) -> ConventionMethodEntryPoint | None:
    if not _hasConventionMethod(typeDesc):
        return None
    cls = resolveType(loadedModule, typeDesc)
    return ConventionMethodEntryPoint(cls) if _concreteSubclass(cls, Component) else None



# ------------------------------------------------------------------ #
# Discovery
# ------------------------------------------------------------------ #

def _matchesModuleName(typeDesc: TypeDescriptor, moduleName: str) -> bool:
    return typeDesc.name.lower() == moduleName.replace("_", "").lower()



def findConventionEntryPoints(loader: ModuleLoader, loadedModules: Iterable[LoadedModule]) -> list[ConventionMethodEntryPoint]:
    """Per module: the type named like the module if it qualifies, otherwise every qualifying type."""
    found: list[ConventionMethodEntryPoint] = []
    for loadedModule in loadedModules:
        named = next(
            (typeDesc for typeDesc in loadedModule.descriptor.types if _matchesModuleName(typeDesc, loadedModule.name)),
            None,
        )
        if named is not None and not named.isAbstract:
            try:
                entry = classifyConventionMethod(loadedModule, named)
            except TypeResolutionError as err:
                logger.debug("Skipping type '%s': %s", named.fullName, err)
                entry = None
            if entry is not None:
                found.append(entry)
                continue
        found.extend(loader.scanModuleTypes(loadedModule, classifyConventionMethod))
    return found



def _resolveComponentName(qualifiedName: str, loadedModules: Iterable[LoadedModule]) -> type[Component]:
    moduleName, _, typeName = qualifiedName.rpartition(".")
    if not moduleName:
        raise TypeResolutionError(qualifiedName, "", "component names must be 'module.Class'")
    module = next((lm.module for lm in loadedModules if lm.name == moduleName), None) or sys.modules.get(moduleName)
    if module is None:
        raise TypeResolutionError(typeName, moduleName, "module is not loaded")
    value = getattr(module, typeName, None)
    if not isinstance(value, type) or not issubclass(value, Component):
        raise TypeResolutionError(typeName, moduleName, "not a Component class")
    return value



def findPrefabEntryPoints(
    bundles: Iterable[ContentBundle],
    prefabs: list[Prefab],
    loadedModules: list[LoadedModule],
    pkgLogger: logging.Logger = logger,
) -> list[PackagedComponentEntryPoint]:
    found: list[PackagedComponentEntryPoint] = []
    seen: set[str] = set()
    
    for bundle in bundles:
        exports = bundle.exportSettings
        if exports is None or not exports.startupPrefab:
            continue
        prefabName = exports.startupPrefab
        if prefabName in seen:
            continue
        seen.add(prefabName)
        
        prefab = bundle.findPrefab(prefabName) or next((p for p in prefabs if p.name == prefabName), None)
        if prefab is None:
            pkgLogger.warning("Startup prefab '%s' exported by '%s' was not found", prefabName, bundle.name)
            continue
        
        componentTypes: list[type[Component]] = []
        for componentName in prefab.components:
            try:
                componentTypes.append(_resolveComponentName(componentName, loadedModules))
            except TypeResolutionError as err:
                pkgLogger.warning("Prefab '%s' component skipped: %s", prefab.name, err)
        found.append(PackagedComponentEntryPoint(prefab, tuple(componentTypes)))
    
    return found



def findEntryPoints(loadedPackage: LoadedPackage, loader: ModuleLoader = MODULE_LOADER) -> list[EntryPoint]:
    """Classify every candidate in a package, in priority order. Blocking; run off the event loop."""
    modules = list(loadedPackage.loadedModules)
    exports: list[ExportSettings] = list(loadedPackage.exports)
    
    def scanAll(classifier) -> list:
        found: list = []
        for loadedModule in modules:
            found.extend(loader.scanModuleTypes(loadedModule, classifier))
        return found
    
    entries: list[EntryPoint] = []
    
    modEntries = scanAll(classifyAnyModComponent if not exports else classifyExplicitMarker)
    if not modEntries:
        startupClasses = {export.startupClass for export in exports if export.startupClass}
        if startupClasses:
            modEntries = scanAll(makeStartupClassClassifier(startupClasses))
    entries.extend(modEntries)
    
    entries.extend(findPrefabEntryPoints(loadedPackage.bundles, loadedPackage.prefabs, modules, loadedPackage.logger))
    entries.extend(scanAll(classifyHostPlugin))
    entries.extend(findConventionEntryPoints(loader, modules))
    return entries
