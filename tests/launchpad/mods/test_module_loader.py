# tests/launchpad/mods/test_module_loader.py
from __future__ import annotations

import sys
from pathlib import Path
from textwrap import dedent

import pytest

from launchpad.core.errors import ModuleConflictError, ModuleLoadError, TypeResolutionError
from launchpad.mods.loaded import LoadedPackage
from launchpad.mods.loader import LoadedModule, ModuleLoader, resolveType
from launchpad.mods.metadata import scanModuleFile
from launchpad.mods.package import ModAbout, ModuleDescriptor, Package, PackageSource, TypeDescriptor


@pytest.fixture
def loader():
    moduleLoader = ModuleLoader()
    yield moduleLoader
    moduleLoader.reset()


def _write(root: Path, name: str, source: str) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    path = root / f"{name}.py"
    path.write_text(dedent(source), encoding="utf-8")
    return path


def _owner(loader: ModuleLoader, root: Path, name: str, *modulePaths: Path) -> LoadedPackage:
    pkg = Package(
        source=PackageSource.LOCAL,
        path=root,
        about=ModAbout(name=name),
        modules=[scanModuleFile(path) for path in modulePaths],
    )
    return LoadedPackage(pkg, loader=loader)


def test_load_module_executes_file(loader, tmp_path):
    path = _write(tmp_path, "lp_alpha", "VALUE = 41 + 1\n")
    owner = _owner(loader, tmp_path, "Alpha", path)

    loaded = loader.loadModuleSync(owner.package.modules[0], owner)

    assert isinstance(loaded, LoadedModule)
    assert loaded.module.VALUE == 42
    assert sys.modules["lp_alpha"] is loaded.module
    assert loader.ownerOf("lp_alpha") is owner


def test_same_file_is_reused(loader, tmp_path):
    path = _write(tmp_path, "lp_reuse", "COUNT = []\nCOUNT.append(1)\n")
    descriptor = scanModuleFile(path)

    first = loader.loadModuleSync(descriptor)
    second = loader.loadModuleSync(descriptor)

    assert first.module is second.module
    assert second.module.COUNT == [1]


def test_name_taken_by_other_file_conflicts(loader, tmp_path):
    first = _write(tmp_path / "one", "lp_clash", "X = 1\n")
    second = _write(tmp_path / "two", "lp_clash", "X = 2\n")
    loader.loadModuleSync(scanModuleFile(first))

    with pytest.raises(ModuleConflictError):
        loader.loadModuleSync(scanModuleFile(second))

    assert sys.modules["lp_clash"].X == 1


def test_missing_file_fails(loader, tmp_path):
    descriptor = ModuleDescriptor(name="lp_missing", path=tmp_path / "lp_missing.py")

    with pytest.raises(ModuleLoadError, match="does not exist"):
        loader.loadModuleSync(descriptor)


def test_failing_module_is_not_left_registered(loader, tmp_path):
    path = _write(tmp_path, "lp_boom", "raise RuntimeError('boom')\n")
    owner = _owner(loader, tmp_path, "Boom", path)

    with pytest.raises(ModuleLoadError, match="RuntimeError: boom") as excinfo:
        loader.loadModuleSync(owner.package.modules[0], owner)

    assert excinfo.value.moduleName == "lp_boom"
    assert "lp_boom" not in sys.modules
    assert loader.ownerOf("lp_boom") is None


def test_host_module_is_imported_by_name(loader):
    loaded = loader.loadModuleSync(ModuleDescriptor(name="launchpad.mods.interface"))

    assert loaded.module is sys.modules["launchpad.mods.interface"]


def test_unknown_host_module_fails(loader):
    with pytest.raises(ModuleLoadError):
        loader.loadModuleSync(ModuleDescriptor(name="lp_there_is_no_such_module"))


def test_registered_package_modules_are_importable(loader, tmp_path):
    libPath = _write(tmp_path / "lib", "lp_shared_lib", "def greet():\n    return 'hi'\n")
    userPath = _write(tmp_path / "user", "lp_user", "import lp_shared_lib\nGREETING = lp_shared_lib.greet()\n")
    libOwner = _owner(loader, tmp_path / "lib", "Lib", libPath)
    userOwner = _owner(loader, tmp_path / "user", "User", userPath)

    loader.registerPackage(libOwner)
    loaded = loader.loadModuleSync(userOwner.package.modules[0], userOwner)

    assert loaded.module.GREETING == "hi"
    assert loader.ownerOf("lp_shared_lib") is libOwner


def test_first_registration_wins(loader, tmp_path, caplog):
    firstPath = _write(tmp_path / "a", "lp_dup", "WHO = 'a'\n")
    secondPath = _write(tmp_path / "b", "lp_dup", "WHO = 'b'\n")
    first = _owner(loader, tmp_path / "a", "First", firstPath)
    second = _owner(loader, tmp_path / "b", "Second", secondPath)

    loader.registerPackage(first)
    loader.registerPackage(second)

    descriptor, owner = loader.findModule("lp_dup")
    assert owner is first
    assert descriptor.path == firstPath
    assert "already provided" in caplog.text


def test_executing_package_is_found_from_call_stack(loader, tmp_path):
    path = _write(
        tmp_path,
        "lp_whoami",
        """
        def whoAmI(loader):
            return loader.tryGetExecutingPackage()
        """,
    )
    owner = _owner(loader, tmp_path, "WhoAmI", path)
    loaded = loader.loadModuleSync(owner.package.modules[0], owner)

    assert loaded.module.whoAmI(loader) is owner
    assert loader.tryGetExecutingPackage() is None


def test_reset_removes_resolution_hook(loader, tmp_path):
    loader.install()
    assert loader._finder in sys.meta_path

    loader.reset()

    assert loader._finder not in sys.meta_path
    assert loader.findModule("anything") is None


def test_resolve_type_errors(loader, tmp_path):
    path = _write(tmp_path, "lp_types", "class Real:\n    pass\nNotAClass = 3\n")
    loaded = loader.loadModuleSync(scanModuleFile(path))

    assert resolveType(loaded, TypeDescriptor(name="Real", moduleName="lp_types")) is loaded.module.Real
    with pytest.raises(TypeResolutionError, match="not defined"):
        resolveType(loaded, TypeDescriptor(name="Ghost", moduleName="lp_types"))
    with pytest.raises(TypeResolutionError, match="not a class"):
        resolveType(loaded, TypeDescriptor(name="NotAClass", moduleName="lp_types"))


def test_scan_skips_abstract_and_unresolvable_types(loader, tmp_path):
    path = _write(
        tmp_path,
        "lp_scan",
        """
        from abc import ABC


        class Visible:
            pass


        class Hidden(ABC):
            pass
        """,
    )
    loaded = loader.loadModuleSync(scanModuleFile(path))
    ghost = TypeDescriptor(name="Ghost", moduleName="lp_scan")
    loaded = LoadedModule(loaded.name, loaded.module, ModuleDescriptor(
        name="lp_scan", path=path, types=[*loaded.descriptor.types, ghost],
    ))

    seen = loader.scanModuleTypes(loaded, lambda lm, typeDesc: resolveType(lm, typeDesc).__name__)

    assert seen == ["Visible"]


@pytest.mark.asyncio
async def test_async_load_module(loader, tmp_path):
    path = _write(tmp_path, "lp_async", "READY = True\n")

    loaded = await loader.loadModule(scanModuleFile(path))

    assert loaded.module.READY is True
