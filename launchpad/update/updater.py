# launchpad/update/updater.py
from __future__ import annotations

import asyncio
import logging
import shutil
import zipfile
from collections.abc import Awaitable, Callable
from pathlib import Path, PurePosixPath

from launchpad import __version__
from launchpad.app.settings import LaunchPadSettings
from launchpad.update.github import LAUNCHPAD_REPO, Asset, GithubRepo, Release, fetchAssetArchive
from launchpad.update.sequence import BACKUP_SUFFIX, UpdateResult, UpdateSequence
from launchpad.update.version import LoaderVersion

logger = logging.getLogger(__name__)

__all__ = [
    "PACKAGE_DIR",
    "COMPANION_NAME",
    "UPDATABLE_SUFFIXES",
    "targetAssetName",
    "isUpdatableEntry",
    "LaunchPadUpdater",
]



PACKAGE_DIR = "launchpad"
COMPANION_NAME = "launchpad_companion.py"
UPDATABLE_SUFFIXES = (".py", ".pyd", ".so", ".dll")

ArchiveFetcher = Callable[[Asset], Awaitable["zipfile.ZipFile | None"]]
UpdateConfirm = Callable[[Release], Awaitable[bool]]



def targetAssetName(release: Release, batchMode: bool) -> str:
    return f"launchpad-{'server' if batchMode else 'client'}-{release.tagName}.zip"



def isUpdatableEntry(entry: zipfile.ZipInfo) -> bool:
    """Only the loader's own code files under launchpad/ are replaced."""
    path = PurePosixPath(entry.filename)
    return (
        not entry.is_dir()
        and bool(path.parts) and path.parts[0] == PACKAGE_DIR
        and path.suffix in UPDATABLE_SUFFIXES
    )



class LaunchPadUpdater:
    """
    Self-update steps run before any package loads.
    
    Failures that leave the install incomplete clear `autoLoad` so the user
    sees the log before the host continues.
    """
    
    def __init__(
        self,
        settings: LaunchPadSettings,
        installDir: Path | None,
        *,
        batchMode: bool = False,
        repo: GithubRepo = LAUNCHPAD_REPO,
        currentVersion: str = __version__,
        fetchArchive: ArchiveFetcher = fetchAssetArchive,
        confirm: UpdateConfirm | None = None,
    ):
        self.settings = settings
        self.installDir = installDir
        self.batchMode = batchMode
        self.repo = repo
        self.currentVersion = currentVersion
        self.fetchArchive = fetchArchive
        self.confirm = confirm
        self.autoLoad = True
    
    def runPostUpdateCleanup(self) -> None:
        """Delete backups left by the last update. A backup without its original is not ours."""
        installDir = self.installDir
        if installDir is None:
            logger.warning("Invalid install dir, skipping post update cleanup")
            return
        try:
            logger.debug("Running post-update cleanup")
            packageDir = installDir / PACKAGE_DIR
            candidates = sorted(packageDir.rglob(f"*{BACKUP_SUFFIX}")) if packageDir.is_dir() else []
            for backup in candidates:
                original = backup.with_name(backup.name[:-len(BACKUP_SUFFIX)])
                if not original.exists():
                    continue
                logger.debug("Removing update backup file %s", backup)
                backup.unlink()
            self.settings.internal.postUpdateCleanup = False
        except OSError as err:
            logger.warning("Error occurred during post update cleanup: %s", err)
    
    async def runOneTimeCompanionInstall(self) -> None:
        installDir = self.installDir
        if installDir is None:
            logger.warning("Invalid install dir, skipping companion install")
            return
        
        try:
            companionPath = installDir / COMPANION_NAME
            if companionPath.exists():
                # Full install already
                self.settings.internal.oneTimeCompanionInstall = False
                return
            
            targetTag = f"v{self.currentVersion}"
            logger.info("Installing %s from release %s", COMPANION_NAME, targetTag)
            release = await self.repo.fetchTagRelease(targetTag)
            if release is None:
                self.autoLoad = False
                logger.error("Installation incomplete. Please download latest version from github.")
                return
            
            assetName = targetAssetName(release, self.batchMode)
            asset = release.findAsset(assetName)
            if asset is None:
                self.autoLoad = False
                logger.error("Failed to find %s in release. Installation incomplete. Please download latest version from github.", assetName)
                return
            
            archive = await self.fetchArchive(asset)
            if archive is None:
                self.autoLoad = False
                logger.error("Failed to download %s. Installation incomplete.", assetName)
                return
            
            with archive:
                entry = next((info for info in archive.infolist() if PurePosixPath(info.filename).name == COMPANION_NAME), None)
                if entry is None:
                    self.autoLoad = False
                    logger.error("Failed to find %s in %s. Installation incomplete. Please download latest version from github.", COMPANION_NAME, assetName)
                    return
                with archive.open(entry) as src, open(companionPath, "xb") as dst:
                    shutil.copyfileobj(src, dst)
            
            self.settings.internal.oneTimeCompanionInstall = False
        except Exception:
            logger.exception("An error occurred during %s install. Some mods may not function properly", COMPANION_NAME)
            self.autoLoad = False
    
    async def getUpdateRelease(self) -> Release | None:
        if self.installDir is None:
            logger.warning("Invalid install dir, skipping update check")
            return None
        
        latest = await self.repo.fetchLatestRelease()
        if latest is None:
            return None
        
        try:
            latestVersion = LoaderVersion.parse(latest.tagName)
            currentVersion = LoaderVersion.parse(self.currentVersion)
        except ValueError as err:
            logger.warning("Cannot compare versions: %s", err)
            return None
        
        if latestVersion <= currentVersion:
            logger.info("LaunchPad is up-to-date.")
            return None
        
        logger.warning("LaunchPad has an update available (%s -> %s).", currentVersion, latestVersion)
        return latest
    
    async def checkShouldUpdate(self, release: Release) -> bool:
        if self.settings.startup.autoUpdateOnStart:
            return True
        # Headless hosts just move on after the out-of-date message
        if self.batchMode or self.confirm is None:
            return False
        return await self.confirm(release)
    
    async def updateToRelease(self, release: Release) -> bool:
        installDir = self.installDir
        if installDir is None:
            logger.error("Invalid install dir, skipping update")
            return False
        
        assetName = targetAssetName(release, self.batchMode)
        asset = release.findAsset(assetName)
        if asset is None:
            logger.error("Failed to find %s in release. Skipping update", assetName)
            return False
        
        archive = await self.fetchArchive(asset)
        if archive is None:
            return False
        
        with archive:
            sequence = UpdateSequence.make(installDir, archive, entryFilter=isUpdatableEntry)
            result = await asyncio.to_thread(sequence.execute)
        
        if result is UpdateResult.SUCCESS:
            logger.info("Updated to %s (%d files)", release.tagName, len(sequence))
            self.settings.internal.postUpdateCleanup = True
            return True
        if result is UpdateResult.ROLLBACK:
            logger.error("Update failed. Changes were rolled back")
            return False
        if result is UpdateResult.FAILED_ROLLBACK:
            logger.error("Update failed. Rolling back update failed. LaunchPad may be in an invalid state.")
            return False
        raise ValueError(f"Invalid update result {result}")
