# launchpad/app/settings.py
from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, cast

import json5
from pydantic import BaseModel, ConfigDict, Field, JsonValue

from launchpad.core.logging import Severity

logger = logging.getLogger(__name__)

__all__ = [
    "LoadStrategyType", "LoadStrategyMode",
    "StartupSettings", "LoadingSettings", "LoggingSettings", "InternalSettings",
    "LaunchPadSettings", "defaultSettings", "loadSettings", "saveSettings", "deepMerge",
]



class LoadStrategyType(str, Enum):
    # Three sequential phases (modules, content, entry points) in configured mod order.
    LINEAR = "linear"



class LoadStrategyMode(str, Enum):
    SERIAL = "serial"
    PARALLEL = "parallel"



class StartupSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    
    autoLoadOnStart: bool = True
    checkForUpdate: bool = True
    autoUpdateOnStart: bool = True
    autoLoadWaitTime: int = Field(default=3, ge=3, le=30)
    autoSort: bool = True
    disableWorkshop: bool = False



class LoadingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    
    strategyType: LoadStrategyType = LoadStrategyType.LINEAR
    # Parallel loads faster with many mods but may fail in rare cases. Switch to serial if loading misbehaves.
    strategyMode: LoadStrategyMode = LoadStrategyMode.SERIAL
    # Only read on start.
    savePathOverride: str = ""



class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    
    level: str = "DEBUG"
    severities: list[Severity] = Field(default_factory=lambda: list(Severity))
    compactLogs: bool = False
    autoScrollLogs: bool = True



class InternalSettings(BaseModel):
    """Managed by the loader. Not meant to be edited by hand."""
    model_config = ConfigDict(extra="forbid")
    
    postUpdateCleanup: bool = True
    oneTimeCompanionInstall: bool = True



class LaunchPadSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    
    startup: StartupSettings = Field(default_factory=StartupSettings)
    loading: LoadingSettings = Field(default_factory=LoadingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    internal: InternalSettings = Field(default_factory=InternalSettings)
    
    @property
    def runPostUpdateCleanup(self) -> bool:
        return self.startup.checkForUpdate and self.internal.postUpdateCleanup
    
    @property
    def runOneTimeCompanionInstall(self) -> bool:
        return self.startup.checkForUpdate and self.internal.oneTimeCompanionInstall
    
    @property
    def loadStrategy(self) -> tuple[LoadStrategyType, LoadStrategyMode]:
        return (self.loading.strategyType, self.loading.strategyMode)



def defaultSettings(*, batchMode: bool = False) -> JsonValue:
    """Defaults as a plain JSON object. Dedicated servers do not check for updates unless asked to."""
    data = LaunchPadSettings().model_dump(mode="json")
    if batchMode:
        data["startup"]["checkForUpdate"] = False
        data["startup"]["autoUpdateOnStart"] = False
    return cast(JsonValue, data)



def deepMerge(first: JsonValue, second: JsonValue) -> JsonValue:
    """
    Returns a new JsonValue where keys from `second` override/extend `first`.
    Only merges recursively when BOTH sides are JSON objects (dicts).
    For all other JSON types the right-hand value `second` replaces `first`.
    """
    if isinstance(first, dict) and isinstance(second, dict):
        out: dict[str, JsonValue] = dict(first)
        for key, value in second.items():
            if key in out:
                out[key] = deepMerge(out[key], cast(JsonValue, value))
            else:
                out[key] = cast(JsonValue, value)
        return cast(JsonValue, out)
    
    return cast(JsonValue, second)



def _loadUserSettings(path: Path) -> JsonValue:
    if path.exists():
        try:
            data = json5.loads(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                return data
            logger.error("Ignoring '%s': top level must be an object", path)
        except Exception as err:
            logger.error("Failed to parse '%s': %s", path, err)
    return {}



def loadSettings(path: Path | None, *, batchMode: bool = False) -> LaunchPadSettings:
    """
    Load settings from `path` merged over the defaults.
    
    A file that fails validation is logged and replaced by defaults, so a
    broken config never prevents the loader from starting.
    """
    merged: Any = defaultSettings(batchMode=batchMode)
    if path is not None:
        merged = deepMerge(merged, _loadUserSettings(path))
    try:
        return LaunchPadSettings.model_validate(merged)
    except Exception as err:
        logger.error("Invalid settings in '%s', using defaults: %s", path, err)
        return LaunchPadSettings.model_validate(defaultSettings(batchMode=batchMode))



def saveSettings(settings: LaunchPadSettings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json5.dumps(settings.model_dump(mode="json"), ensure_ascii=False, indent=2)
    path.write_text(text, encoding="utf-8")
