# tests/launchpad/mods/test_content_bundles.py
from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from launchpad.core.errors import ContentBundleError
from launchpad.mods.content import ExportSettings, loadContentBundle, readContentBundle
from launchpad.mods.interface import ContentHandler


def _bundle(path: Path, entries: dict[str, str | bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return path


def test_read_bundle_index(tmp_path):
    path = _bundle(tmp_path / "ui.assets", {
        "textures/logo.png": b"\x89PNG",
        "prefabs/menu.json5": "{name: 'Menu', components: ['ui_mod.MenuBehaviour']}",
        "export.json5": "{startupPrefab: 'Menu'}",
    })

    bundle = readContentBundle(path)

    assert bundle.name == "ui"
    assert set(bundle.assets) == {"textures/logo.png", "prefabs/menu.json5", "export.json5"}
    assert [prefab.name for prefab in bundle.prefabs] == ["Menu"]
    assert bundle.findPrefab("Menu").components == ["ui_mod.MenuBehaviour"]
    assert bundle.findPrefab("Other") is None
    assert bundle.exportSettings == ExportSettings(startupPrefab="Menu")
    assert bundle.readAsset("textures/logo.png") == b"\x89PNG"


def test_bundle_without_export_has_no_settings(tmp_path):
    bundle = readContentBundle(_bundle(tmp_path / "plain.assets", {"a.txt": "hi"}))

    assert bundle.exportSettings is None
    assert bundle.prefabs == []


@pytest.mark.parametrize(
    "entries",
    [
        {"export.json5": "{startupThing: 'x'}"},
        {"prefabs/bad.json5": "{components: []}"},
        {"export.json5": "{not json"},
    ],
    ids=["unknown-field", "missing-name", "bad-syntax"],
)
def test_invalid_descriptors_are_rejected(tmp_path, entries):
    path = _bundle(tmp_path / "bad.assets", entries)

    with pytest.raises(ContentBundleError, match="invalid descriptor"):
        readContentBundle(path)


def test_missing_bundle(tmp_path):
    with pytest.raises(ContentBundleError, match="does not exist"):
        readContentBundle(tmp_path / "gone.assets")


def test_not_a_zip(tmp_path):
    path = tmp_path / "junk.assets"
    path.write_bytes(b"definitely not a zip")

    with pytest.raises(ContentBundleError, match="not a valid archive"):
        readContentBundle(path)


@pytest.mark.asyncio
async def test_load_bundle_async(tmp_path):
    path = _bundle(tmp_path / "async.assets", {"prefabs/p.json5": "{name: 'P'}"})

    bundle = await loadContentBundle(path)

    assert bundle.prefabs[0].name == "P"


def test_content_handler_reads_across_bundles(tmp_path):
    first = readContentBundle(_bundle(tmp_path / "one.assets", {"a.txt": "A", "prefabs/x.json5": "{name: 'X'}"}))
    second = readContentBundle(_bundle(tmp_path / "two.assets", {"b.txt": "B"}))
    bundles = [first]
    prefabs = list(first.prefabs)
    handler = ContentHandler(tmp_path, bundles, prefabs)

    bundles.append(second)

    assert handler.readAsset("b.txt") == b"B"
    assert handler.findPrefab("X") is prefabs[0]
    assert len(handler.bundles) == 2
    with pytest.raises(KeyError):
        handler.readAsset("c.txt")
