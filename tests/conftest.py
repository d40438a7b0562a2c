import sys
import tempfile
from pathlib import Path

import pytest

from launchpad.mods.interface import PERSISTENT_CONTAINERS
from launchpad.mods.loader import MODULE_LOADER

TEMP_ROOT = Path(tempfile.gettempdir()).resolve()



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



def _isTempModule(module) -> bool:
    moduleFile = getattr(module, "__file__", None)
    if not moduleFile:
        return False
    return TEMP_ROOT in Path(moduleFile).resolve().parents



@pytest.fixture(autouse=True)
def isolated_modules():
    """Mods executed from tmp_path must not leak into sys.modules or the loader registry."""
    before = set(sys.modules)
    yield
    for name in set(sys.modules) - before:
        if _isTempModule(sys.modules.get(name)):
            sys.modules.pop(name, None)
    MODULE_LOADER.reset()
    PERSISTENT_CONTAINERS.clear()
