# tests/launchpad/app/test_settings.py
from __future__ import annotations

from pathlib import Path

import json5
import pytest
from pydantic import ValidationError

from launchpad.app.paths import LaunchPadPaths
from launchpad.app.settings import (
    LaunchPadSettings,
    LoadStrategyMode,
    LoadStrategyType,
    deepMerge,
    defaultSettings,
    loadSettings,
    saveSettings,
)
from launchpad.core.logging import Severity


def test_defaults():
    settings = loadSettings(None)

    assert settings.startup.autoLoadOnStart is True
    assert settings.startup.autoLoadWaitTime == 3
    assert settings.loadStrategy == (LoadStrategyType.LINEAR, LoadStrategyMode.SERIAL)
    assert set(settings.logging.severities) == set(Severity)


def test_batch_mode_defaults_skip_updates():
    data = defaultSettings(batchMode=True)

    assert data["startup"]["checkForUpdate"] is False
    assert data["startup"]["autoUpdateOnStart"] is False
    assert loadSettings(None, batchMode=True).runPostUpdateCleanup is False


def test_user_values_merge_over_defaults(tmp_path):
    path = tmp_path / "launchpad.json5"
    path.write_text(
        """
        // comments are fine
        {
          startup: { autoLoadWaitTime: 10 },
          loading: { strategyMode: 'parallel' },
        }
        """,
        encoding="utf-8",
    )

    settings = loadSettings(path)

    assert settings.startup.autoLoadWaitTime == 10
    assert settings.startup.autoSort is True
    assert settings.loading.strategyMode is LoadStrategyMode.PARALLEL


@pytest.mark.parametrize(
    "text",
    [
        "{startup: {autoLoadWaitTime: 1}}",
        "{startup: {unknownKey: true}}",
        "[1, 2, 3]",
        "{broken",
    ],
    ids=["out-of-range", "unknown-key", "not-an-object", "syntax"],
)
def test_bad_files_fall_back_to_defaults(tmp_path, caplog, text):
    path = tmp_path / "launchpad.json5"
    path.write_text(text, encoding="utf-8")

    settings = loadSettings(path)

    assert settings == LaunchPadSettings()
    assert caplog.records


def test_model_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        LaunchPadSettings.model_validate({"internal": {"secret": 1}})


def test_save_then_load(tmp_path):
    path = tmp_path / "nested" / "launchpad.json5"
    settings = LaunchPadSettings()
    settings.internal.postUpdateCleanup = False
    settings.logging.compactLogs = True

    saveSettings(settings, path)

    assert json5.loads(path.read_text(encoding="utf-8"))["internal"]["postUpdateCleanup"] is False
    assert loadSettings(path) == settings


def test_deep_merge():
    merged = deepMerge({"a": {"b": 1, "c": [1]}, "d": 1}, {"a": {"c": [2], "e": 3}, "d": {"x": 1}})

    assert merged == {"a": {"b": 1, "c": [2], "e": 3}, "d": {"x": 1}}


def test_paths_layout(tmp_path):
    paths = LaunchPadPaths.build(tmp_path / "game", installDir=tmp_path / "missing")

    assert paths.savePath == tmp_path / "game" / "saves"
    assert paths.installDir is None
    assert paths.settingsPath == paths.savePath / "launchpad" / "launchpad.json5"
    assert paths.modConfigPath == paths.savePath / "modconfig.json5"
    assert paths.localModsDir == paths.savePath / "mods"

    moved = paths.withSavePath(tmp_path / "elsewhere")
    assert moved.localModsDir == Path(tmp_path / "elsewhere" / "mods")
    assert paths.withSavePath("") is paths
