# launchpad/core/errors.py
from __future__ import annotations
from typing import Any

__all__ = [
    "LaunchPadError",
    "DependencyCycleError",
    "PackageLoadError",
    "ModuleLoadError",
    "ModuleConflictError",
    "TypeResolutionError",
    "ContentBundleError",
    "UpdateError",
    "InvalidLoadStrategyError",
]



class LaunchPadError(Exception):
    """Base class for every error raised by the loader itself."""
    pass



class DependencyCycleError(LaunchPadError):
    """Raised when LoadBefore/LoadAfter hints form a cycle among enabled packages."""
    
    def __init__(self, cycle: list[Any]):
        names = " -> ".join(getattr(pkg, "displayName", str(pkg)) for pkg in [*cycle, *cycle[:1]])
        super().__init__(f"Circular dependency found in enabled mods: {names}")
        self.cycle = list(cycle)



class PackageLoadError(LaunchPadError):
    """A single package failed one of its load phases."""
    pass



class ModuleLoadError(PackageLoadError):
    """A code module could not be activated."""
    
    def __init__(self, moduleName: str, message: str):
        super().__init__(f"Failed to load module '{moduleName}': {message}")
        self.moduleName = moduleName



class ModuleConflictError(ModuleLoadError):
    """Another file already owns this module name in the process."""
    pass



class TypeResolutionError(LaunchPadError):
    """A scanned type could not be resolved against its activated module."""
    
    def __init__(self, typeName: str, moduleName: str, reason: str):
        super().__init__(f"Failed to resolve '{typeName}' from '{moduleName}': {reason}")
        self.typeName = typeName
        self.moduleName = moduleName
        self.reason = reason



class ContentBundleError(PackageLoadError):
    """A content bundle is missing or malformed."""
    pass



class UpdateError(LaunchPadError):
    """Raised by update actions. Any of these during perform triggers rollback."""
    pass



class InvalidLoadStrategyError(LaunchPadError):
    pass
