# launchpad/mods/interface.py
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import json5

if TYPE_CHECKING:
    from launchpad.mods.content import ContentBundle, Prefab

logger = logging.getLogger(__name__)

__all__ = [
    "MARKER_ATTRIBUTE",
    "PERSISTENT_CONTAINERS",
    "Component",
    "ModContainer",
    "ModBehaviour",
    "HostPlugin",
    "launchpadMod",
    "ContentHandler",
    "ConfigEntry",
    "ConfigFile",
    "SortedConfigCategory",
    "SortedConfigFile",
]



MARKER_ATTRIBUTE = "__launchpad_mod__"

C = TypeVar("C", bound="Component")

# Containers that outlive a load run (never collected while the host runs)
PERSISTENT_CONTAINERS: list[ModContainer] = []



# ------------------------------------------------------------------ #
# Components and containers
# ------------------------------------------------------------------ #

class Component:
    """Base for anything that can be attached to a ModContainer."""
    container: ModContainer | None = None
    
    def awake(self) -> None:
        """Called once right after the component is attached."""
        return



class ModContainer:
    """Named holder of components and child containers."""
    
    def __init__(self, name: str, parent: ModContainer | None = None):
        self.name = name
        self.parent = parent
        self.components: list[Component] = []
        self.children: list[ModContainer] = []
        if parent is not None:
            parent.children.append(self)
    
    def addComponent(self, componentType: type[C]) -> C:
        if not isinstance(componentType, type) or not issubclass(componentType, Component):
            raise TypeError(f"{componentType!r} is not a Component type")
        instance = componentType()
        instance.container = self
        self.components.append(instance)
        instance.awake()
        return instance
    
    def getComponents(self, componentType: type[C]) -> list[C]:
        return [comp for comp in self.components if isinstance(comp, componentType)]
    
    def createChild(self, name: str) -> ModContainer:
        return ModContainer(name, parent=self)
    
    def keepAlive(self) -> ModContainer:
        if self not in PERSISTENT_CONTAINERS:
            PERSISTENT_CONTAINERS.append(self)
        return self
    
    def __repr__(self) -> str:
        return f"ModContainer({self.name!r}, components={len(self.components)}, children={len(self.children)})"



class ModBehaviour(Component):
    """
    Base class for mod components.
    
    The loader sets `contentHandler` and then calls onLoaded() once the
    package's content bundles are available. Assign `config` to expose a
    ConfigFile for editing.
    """
    contentHandler: ContentHandler | None = None
    config: ConfigFile | None = None
    
    def onLoaded(self, contentHandler: ContentHandler) -> None:
        return



class HostPlugin(Component):
    """Host-style plugin. Instantiated like a component, never handed the content façade."""
    config: ConfigFile | None = None



def launchpadMod(cls: type[C]) -> type[C]:
    """Marks a ModBehaviour subclass as an explicit entry point."""
    setattr(cls, MARKER_ATTRIBUTE, True)
    return cls



# ------------------------------------------------------------------ #
# Content access
# ------------------------------------------------------------------ #

class ContentHandler:
    """Read-only view of a package's files, loaded bundles and prefabs."""
    
    def __init__(self, rootPath: Path, bundles: list[ContentBundle], prefabs: list[Prefab]):
        self.rootPath = Path(rootPath)
        self._bundles = bundles
        self._prefabs = prefabs
    
    @property
    def bundles(self) -> tuple[ContentBundle, ...]:
        return tuple(self._bundles)
    
    @property
    def prefabs(self) -> tuple[Prefab, ...]:
        return tuple(self._prefabs)
    
    def findPrefab(self, name: str) -> Prefab | None:
        return next((prefab for prefab in self._prefabs if prefab.name == name), None)
    
    def readAsset(self, name: str) -> bytes:
        for bundle in self._bundles:
            if name in bundle.assets:
                return bundle.readAsset(name)
        raise KeyError(f"Asset '{name}' not found in any loaded bundle")
    
    def __repr__(self) -> str:
        return f"ContentHandler({str(self.rootPath)!r}, bundles={len(self._bundles)}, prefabs={len(self._prefabs)})"



# ------------------------------------------------------------------ #
# Config files
# ------------------------------------------------------------------ #

@dataclass
class ConfigEntry:
    section: str
    key: str
    defaultValue: Any
    description: str = ""
    _value: Any = None
    _owner: ConfigFile | None = field(default=None, repr=False)
    
    @property
    def value(self) -> Any:
        return self._value
    
    @value.setter
    def value(self, newValue: Any) -> None:
        if newValue == self._value:
            return
        self._value = newValue
        if self._owner is not None:
            self._owner._notifyChanged(self)



class ConfigFile:
    """
    A set of (section, key) settings persisted as one JSON5 document:
    
        { "<section>": { "<key>": value, ... }, ... }
    """
    
    def __init__(self, path: str | Path, *, saveOnSet: bool = False):
        self.path = Path(path)
        self.saveOnSet = saveOnSet
        self._entries: dict[tuple[str, str], ConfigEntry] = {}
        self._stored: dict[str, dict[str, Any]] = {}
        self.settingChanged: list[Callable[[ConfigFile, ConfigEntry], None]] = []
        self.reload()
    
    def reload(self) -> None:
        self._stored = {}
        if self.path.exists():
            try:
                raw = json5.loads(self.path.read_text(encoding="utf-8"))
            except Exception as err:
                logger.warning("Ignoring unreadable config '%s': %s", self.path, err)
                raw = {}
            if isinstance(raw, Mapping):
                self._stored = {
                    str(section): dict(values)
                    for section, values in raw.items()
                    if isinstance(values, Mapping)
                }
        for entry in self._entries.values():
            stored = self._stored.get(entry.section, {})
            if entry.key in stored:
                entry._value = stored[entry.key]
    
    def bind(self, section: str, key: str, defaultValue: Any, description: str = "") -> ConfigEntry:
        existing = self._entries.get((section, key))
        if existing is not None:
            return existing
        stored = self._stored.get(section, {})
        entry = ConfigEntry(
            section=section,
            key=key,
            defaultValue=defaultValue,
            description=description,
            _value=stored.get(key, defaultValue),
            _owner=self,
        )
        self._entries[(section, key)] = entry
        return entry
    
    def save(self) -> None:
        data: dict[str, dict[str, Any]] = {section: dict(values) for section, values in self._stored.items()}
        for entry in self._entries.values():
            data.setdefault(entry.section, {})[entry.key] = entry.value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json5.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    
    def _notifyChanged(self, entry: ConfigEntry) -> None:
        if self.saveOnSet:
            self.save()
        for listener in list(self.settingChanged):
            listener(self, entry)
    
    def entries(self) -> list[ConfigEntry]:
        return list(self._entries.values())
    
    def __len__(self) -> int:
        return len(self._entries)
    
    def __iter__(self) -> Iterator[ConfigEntry]:
        return iter(list(self._entries.values()))



class SortedConfigCategory:
    def __init__(self, configFile: ConfigFile, category: str, entries: list[ConfigEntry]):
        self.configFile = configFile
        self.category = category
        self.entries = entries



class SortedConfigFile:
    """Entries grouped by section, sections and keys sorted, for display."""
    
    def __init__(self, configFile: ConfigFile):
        self.configFile = configFile
        self.fileName = configFile.path.name
        groups: dict[str, list[ConfigEntry]] = {}
        for entry in configFile:
            groups.setdefault(entry.section, []).append(entry)
        self.categories = [
            SortedConfigCategory(configFile, section, sorted(entries, key=lambda entry: entry.key))
            for section, entries in sorted(groups.items())
        ]
