# launchpad/app/paths.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path

__all__ = ["INSTALL_DIR", "LaunchPadPaths"]



# Directory the loader itself is installed in (the update target)
INSTALL_DIR = Path(__file__).resolve().parent.parent



@dataclass(frozen=True)
class LaunchPadPaths:
    """
    All filesystem locations the loader touches.
    
    gameRoot  - host installation root
    savePath  - host save/config directory (may be overridden by settings.loading.savePathOverride)
    installDir - the loader's own files; replaced by updates
    """
    gameRoot: Path
    savePath: Path
    installDir: Path | None = INSTALL_DIR
    
    @classmethod
    def build(cls, gameRoot: str | Path, savePath: str | Path | None = None, *, installDir: str | Path | None = INSTALL_DIR) -> LaunchPadPaths:
        root = Path(gameRoot)
        save = Path(savePath) if savePath else root / "saves"
        install = Path(installDir) if installDir is not None else None
        if install is not None and not install.is_dir():
            install = None
        return cls(gameRoot=root, savePath=save, installDir=install)
    
    def withSavePath(self, savePath: str | Path | None) -> LaunchPadPaths:
        if not savePath:
            return self
        return LaunchPadPaths(gameRoot=self.gameRoot, savePath=Path(savePath), installDir=self.installDir)
    
    @property
    def configDir(self) -> Path:
        return self.savePath / "launchpad"
    
    @property
    def settingsPath(self) -> Path:
        return self.configDir / "launchpad.json5"
    
    @property
    def modConfigPath(self) -> Path:
        return self.savePath / "modconfig.json5"
    
    @property
    def logPath(self) -> Path:
        return self.configDir / "launchpad.log"
    
    @property
    def localModsDir(self) -> Path:
        return self.savePath / "mods"
    
    @property
    def pluginConfigDir(self) -> Path:
        return self.configDir / "config"
