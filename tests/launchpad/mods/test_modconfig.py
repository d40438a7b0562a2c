# tests/launchpad/mods/test_modconfig.py
from __future__ import annotations

import zipfile
from datetime import datetime
from pathlib import Path

import json5

from launchpad.mods.discover import createBuiltInPackage
from launchpad.mods.modconfig import (
    MOD_CONFIG_FILE,
    ModConfig,
    ModConfigEntry,
    applyModConfig,
    createModConfig,
    exportModPackage,
    loadModConfig,
    normalizePath,
    saveModConfig,
)
from launchpad.mods.package import Package, PackageSource


def _local(localDir: Path, name: str, *, enabled: bool = True) -> Package:
    path = localDir / name
    path.mkdir(parents=True, exist_ok=True)
    return Package(source=PackageSource.LOCAL, path=path, enabled=enabled)


def test_normalize_path():
    assert normalizePath("C:\\Mods\\Foo\\") == "c:/mods/foo"
    assert normalizePath(Path("/a/B")) == "/a/b"
    assert normalizePath(None) == ""


def test_missing_or_broken_config_is_empty(tmp_path):
    assert loadModConfig(tmp_path / "nope.json5").mods == []

    broken = tmp_path / MOD_CONFIG_FILE
    broken.write_text("{mods: [{source: 'martian'}]}", encoding="utf-8")
    assert loadModConfig(broken).mods == []


def test_save_then_load(tmp_path):
    config = ModConfig(mods=[
        ModConfigEntry(source=PackageSource.BUILT_IN),
        ModConfigEntry(source=PackageSource.LOCAL, path="Foo", enabled=False),
    ])
    path = tmp_path / "cfg" / MOD_CONFIG_FILE

    saveModConfig(config, path)

    assert loadModConfig(path) == config


def test_create_uses_relative_local_paths(tmp_path):
    localDir = tmp_path / "mods"
    core = createBuiltInPackage(tmp_path / "core")
    foo = _local(localDir, "Foo", enabled=False)
    remote = Package(source=PackageSource.REMOTE, path=tmp_path / "workshop" / "123")

    config = createModConfig([core, foo, remote], localDir)

    assert [(e.source, e.path, e.enabled) for e in config.mods] == [
        (PackageSource.BUILT_IN, "", True),
        (PackageSource.LOCAL, "Foo", False),
        (PackageSource.REMOTE, (tmp_path / "workshop" / "123").as_posix(), True),
    ]


def test_apply_orders_and_flags_packages(tmp_path):
    localDir = tmp_path / "mods"
    core = createBuiltInPackage(tmp_path / "core")
    foo = _local(localDir, "Foo")
    bar = _local(localDir, "Bar")
    config = ModConfig(mods=[
        ModConfigEntry(source=PackageSource.LOCAL, path="bar", enabled=False),
        ModConfigEntry(source=PackageSource.BUILT_IN),
        ModConfigEntry(source=PackageSource.LOCAL, path="Foo"),
    ])

    ordered = applyModConfig([core, foo, bar], config, localDir)

    assert ordered == [bar, core, foo]
    assert bar.enabled is False
    assert foo.enabled is True


def test_apply_inserts_builtin_first_when_missing(tmp_path):
    localDir = tmp_path / "mods"
    core = createBuiltInPackage(tmp_path / "core")
    foo = _local(localDir, "Foo")
    config = ModConfig(mods=[ModConfigEntry(source=PackageSource.LOCAL, path="Foo")])

    ordered = applyModConfig([foo, core], config, localDir)

    assert ordered == [core, foo]


def test_apply_appends_new_and_drops_gone(tmp_path, caplog):
    localDir = tmp_path / "mods"
    known = _local(localDir, "Known")
    fresh = _local(localDir, "Fresh", enabled=False)
    config = ModConfig(mods=[
        ModConfigEntry(source=PackageSource.LOCAL, path="Gone", enabled=True),
        ModConfigEntry(source=PackageSource.LOCAL, path="Known"),
        ModConfigEntry(source=PackageSource.LOCAL, path="   ", enabled=False),
    ])

    ordered = applyModConfig([fresh, known], config, localDir)

    assert ordered == [known, fresh]
    assert fresh.enabled is True
    assert "Enabled mod not found" in caplog.text
    assert "Invalid path" in caplog.text


def test_apply_accepts_absolute_paths(tmp_path):
    localDir = tmp_path / "mods"
    elsewhere = Package(source=PackageSource.REMOTE, path=tmp_path / "workshop" / "42")
    config = ModConfig(mods=[ModConfigEntry(source=PackageSource.REMOTE, path=str(elsewhere.path), enabled=False)])

    ordered = applyModConfig([elsewhere], config, localDir)

    assert ordered[-1] is elsewhere
    assert elsewhere.enabled is False


def test_export_mod_package(tmp_path):
    localDir = tmp_path / "mods"
    core = createBuiltInPackage(tmp_path / "core")
    foo = _local(localDir, "Foo")
    (foo.path / "About").mkdir()
    (foo.path / "About" / "about.json5").write_text("{name: 'Foo'}", encoding="utf-8")
    (foo.path / "foo.py").write_text("X = 1\n", encoding="utf-8")
    off = _local(localDir, "Off", enabled=False)
    (off.path / "off.py").write_text("X = 1\n", encoding="utf-8")

    archivePath = exportModPackage([core, foo, off], tmp_path / "out", now=datetime(2024, 5, 6, 7, 8, 9, 123456))

    assert archivePath.name == "modpkg_2024-05-06_07-08-09-123.zip"
    with zipfile.ZipFile(archivePath) as archive:
        names = set(archive.namelist())
        config = json5.loads(archive.read(MOD_CONFIG_FILE).decode("utf-8"))
    assert names == {"mods/local_Foo/About/about.json5", "mods/local_Foo/foo.py", MOD_CONFIG_FILE}
    assert config["mods"] == [
        {"source": "builtin", "path": "", "enabled": True},
        {"source": "local", "path": "local_Foo", "enabled": True},
    ]
