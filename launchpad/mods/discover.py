# launchpad/mods/discover.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from launchpad.mods.content import BUNDLE_SUFFIX
from launchpad.mods.metadata import scanModuleFile
from launchpad.mods.package import ABOUT_DIR, ABOUT_FILE, ModAbout, ModuleDescriptor, Package, PackageSource, readAbout

logger = logging.getLogger(__name__)

__all__ = [
    "PAGE_BATCH_SIZE",
    "BUILTIN_MODULES",
    "WorkshopItem",
    "WorkshopClient",
    "createBuiltInPackage",
    "findLocalPackages",
    "findRemotePackages",
    "loadPackageDetails",
    "loadDetails",
]



PAGE_BATCH_SIZE = 5

# Host modules registered (not executed from a file) by the built-in package
BUILTIN_MODULES = ("launchpad.mods.interface",)

_SKIP_DIRS = {"__pycache__", ".git"}



@dataclass(frozen=True)
class WorkshopItem:
    id: int
    title: str
    directory: Path



class WorkshopClient(Protocol):
    """Subscribed-content source. Pages start at 1; an empty page ends the listing."""
    
    async def fetchPage(self, page: int) -> list[WorkshopItem]:
        ...
    
    def needsUpdate(self, item: WorkshopItem) -> bool:
        ...
    
    async def download(self, item: WorkshopItem) -> None:
        ...



def createBuiltInPackage(path: Path) -> Package:
    return Package(
        source=PackageSource.BUILT_IN,
        path=Path(path),
        enabled=True,
        about=ModAbout(name="Core", author="", version="", description=""),
        modules=[ModuleDescriptor(name=name) for name in BUILTIN_MODULES],
        detailsLoaded=True,
    )



def findLocalPackages(localDir: Path) -> list[Package]:
    """Every directory below `localDir` holding About/about.json5 is a local package."""
    if not localDir.is_dir():
        logger.warning("Local mod folder '%s' not found", localDir)
        return []
    
    found: list[Package] = []
    for aboutPath in sorted(localDir.rglob(ABOUT_FILE)):
        if aboutPath.parent.name != ABOUT_DIR:
            continue
        found.append(Package(source=PackageSource.LOCAL, path=aboutPath.parent.parent))
    logger.debug("Found %d local packages in '%s'", len(found), localDir)
    return found



async def findRemotePackages(client: WorkshopClient, *, batchSize: int = PAGE_BATCH_SIZE) -> list[Package]:
    """List subscribed items page batch by page batch, then download the stale ones concurrently."""
    items: list[WorkshopItem] = []
    page = 1
    while True:
        results = await asyncio.gather(*(client.fetchPage(page + offset) for offset in range(batchSize)))
        hasItems = False
        for pageItems in results:
            if pageItems:
                items.extend(pageItems)
                hasItems = True
        if not hasItems:
            break
        page += batchSize
    
    stale = [item for item in items if client.needsUpdate(item) or not item.directory.is_dir()]
    if stale:
        logger.info("Updating %d workshop items", len(stale))
        for item in stale:
            logger.info("- %s (%s)", item.title, item.id)
        await asyncio.gather(*(client.download(item) for item in stale))
    
    return [
        Package(source=PackageSource.REMOTE, path=item.directory, workshopId=item.id)
        for item in items
    ]



def _iterFiles(root: Path, suffix: str) -> list[Path]:
    return sorted(
        path for path in root.rglob(f"*{suffix}")
        if path.is_file() and not _SKIP_DIRS.intersection(path.relative_to(root).parts)
    )



def _isPackageMarker(path: Path) -> bool:
    # __init__.py and __main__.py would all share one bare module name across packages
    return path.stem.startswith("__") and path.stem.endswith("__")



def loadPackageDetails(pkg: Package) -> None:
    """Read the manifest once and scan modules and bundles. The built-in package has nothing to scan."""
    if pkg.isBuiltIn or pkg.detailsLoaded:
        return
    
    if pkg.about is None:
        try:
            pkg.about = readAbout(pkg.aboutPath)
        except Exception as err:
            logger.warning("Invalid manifest at '%s': %s", pkg.aboutPath, err)
            pkg.aboutError = str(err)
            pkg.about = ModAbout(name=f"[Invalid {ABOUT_FILE}] {pkg.name}", author="", version="", description="")
    
    for modulePath in _iterFiles(pkg.path, ".py"):
        if _isPackageMarker(modulePath):
            logger.debug("Skipping package marker %s", modulePath)
            continue
        try:
            pkg.modules.append(scanModuleFile(modulePath))
        except (OSError, UnicodeDecodeError) as err:
            logger.warning("Could not read module '%s': %s", modulePath, err)
            pkg.modules.append(ModuleDescriptor(name=modulePath.stem, path=modulePath, scanError=str(err)))
    pkg.contentBundles.extend(_iterFiles(pkg.path, BUNDLE_SUFFIX))
    pkg.detailsLoaded = True



def loadDetails(packages: list[Package]) -> None:
    for pkg in packages:
        loadPackageDetails(pkg)
