# tests/launchpad/mods/test_interface_config.py
from __future__ import annotations

import json5
import pytest

from launchpad.mods.interface import (
    MARKER_ATTRIBUTE,
    PERSISTENT_CONTAINERS,
    Component,
    ConfigFile,
    ModBehaviour,
    ModContainer,
    SortedConfigFile,
    launchpadMod,
)


class Counter(Component):
    def awake(self):
        self.awakened = True


def test_add_component_attaches_and_awakes():
    container = ModContainer("root")

    comp = container.addComponent(Counter)

    assert comp.container is container
    assert comp.awakened
    assert container.getComponents(Counter) == [comp]
    assert container.getComponents(ModBehaviour) == []


def test_add_component_rejects_non_components():
    with pytest.raises(TypeError):
        ModContainer("root").addComponent(dict)


def test_children_and_keep_alive():
    root = ModContainer("root")
    child = root.createChild("child")

    assert child.parent is root
    assert root.children == [child]
    assert root.keepAlive() is root
    root.keepAlive()
    assert PERSISTENT_CONTAINERS.count(root) == 1


def test_marker_decorator():
    @launchpadMod
    class Marked(ModBehaviour):
        pass

    assert vars(Marked)[MARKER_ATTRIBUTE] is True


def test_bind_uses_default_then_stored_value(tmp_path):
    path = tmp_path / "plugin.json5"
    path.write_text("{General: {speed: 5}}", encoding="utf-8")

    config = ConfigFile(path)
    speed = config.bind("General", "speed", 1, "How fast")
    name = config.bind("General", "name", "bob")

    assert speed.value == 5
    assert speed.description == "How fast"
    assert name.value == "bob"
    assert config.bind("General", "speed", 99) is speed
    assert len(config) == 2


def test_changes_notify_listeners_and_save(tmp_path):
    path = tmp_path / "plugin.json5"
    config = ConfigFile(path, saveOnSet=True)
    entry = config.bind("Display", "scale", 1.0)
    seen = []
    config.settingChanged.append(lambda cfg, changed: seen.append((cfg, changed.key, changed.value)))

    entry.value = 1.0
    entry.value = 2.5

    assert seen == [(config, "scale", 2.5)]
    assert json5.loads(path.read_text(encoding="utf-8")) == {"Display": {"scale": 2.5}}


def test_save_keeps_unbound_stored_values(tmp_path):
    path = tmp_path / "plugin.json5"
    path.write_text("{Old: {kept: true}}", encoding="utf-8")
    config = ConfigFile(path)
    config.bind("New", "value", 3)

    config.save()

    assert json5.loads(path.read_text(encoding="utf-8")) == {"Old": {"kept": True}, "New": {"value": 3}}


def test_unreadable_config_starts_empty(tmp_path, caplog):
    path = tmp_path / "plugin.json5"
    path.write_text("{oops", encoding="utf-8")

    config = ConfigFile(path)

    assert config.bind("A", "b", 1).value == 1
    assert "unreadable config" in caplog.text


def test_reload_refreshes_bound_entries(tmp_path):
    path = tmp_path / "plugin.json5"
    config = ConfigFile(path)
    entry = config.bind("A", "b", 1)
    path.write_text("{A: {b: 7}}", encoding="utf-8")

    config.reload()

    assert entry.value == 7


def test_sorted_config_file(tmp_path):
    config = ConfigFile(tmp_path / "sorted.json5")
    config.bind("Zeta", "b", 1)
    config.bind("Alpha", "z", 2)
    config.bind("Alpha", "a", 3)

    view = SortedConfigFile(config)

    assert view.fileName == "sorted.json5"
    assert [category.category for category in view.categories] == ["Alpha", "Zeta"]
    assert [entry.key for entry in view.categories[0].entries] == ["a", "z"]
