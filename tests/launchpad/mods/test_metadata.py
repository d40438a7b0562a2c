# tests/launchpad/mods/test_metadata.py
from __future__ import annotations

from pathlib import Path
from textwrap import dedent

from launchpad.mods.metadata import moduleNameForPath, scanModuleFile, scanModuleSource


SOURCE = dedent(
    '''
    import json
    from abc import ABC, abstractmethod
    from launchpad.mods.interface import ModBehaviour, launchpadMod
    from . import sibling


    @launchpadMod
    class Greeter(ModBehaviour):
        def onLoaded(self, contentHandler):
            pass


    class Base(ABC):
        def run(self):
            pass


    class HalfDone(ModBehaviour):
        @abstractmethod
        def step(self): ...


    class Meta(object, metaclass=abc.ABCMeta):
        pass


    class Conventional:
        def onLoaded(self, prefabs: list[str]) -> None:
            pass

        @staticmethod
        def helper(a, b):
            pass

        @classmethod
        def build(cls, *args):
            pass


    def not_a_class():
        class Nested:
            pass
    '''
)


def test_scan_collects_top_level_classes():
    descriptor = scanModuleSource(SOURCE, "greeter")

    assert descriptor.scanError is None
    assert [t.name for t in descriptor.types] == ["Greeter", "Base", "HalfDone", "Meta", "Conventional"]
    assert descriptor.types[0].fullName == "greeter.Greeter"
    assert descriptor.types[0].bases == ("ModBehaviour",)
    assert descriptor.types[0].decorators == ("launchpadMod",)


def test_scan_detects_abstract_types():
    types = {t.name: t for t in scanModuleSource(SOURCE, "greeter").types}

    assert types["Base"].isAbstract
    assert types["HalfDone"].isAbstract
    assert types["Meta"].isAbstract
    assert not types["Greeter"].isAbstract
    assert not types["Conventional"].isAbstract


def test_scan_describes_methods():
    conventional = next(t for t in scanModuleSource(SOURCE, "greeter").types if t.name == "Conventional")

    onLoaded = conventional.getMethod("onLoaded")
    assert onLoaded is not None
    assert [(p.name, p.annotation) for p in onLoaded.callParams] == [("prefabs", "list[str]")]

    helper = conventional.getMethod("helper")
    assert helper.isStatic
    assert [p.name for p in helper.callParams] == ["a", "b"]

    build = conventional.getMethod("build")
    assert build.isClassMethod
    assert [p.name for p in build.callParams] == ["*args"]

    assert conventional.getMethod("missing") is None


def test_scan_collects_absolute_imports_only():
    descriptor = scanModuleSource(SOURCE, "greeter")

    assert descriptor.imports == ["json", "abc", "launchpad.mods.interface"]


def test_string_annotations_are_unquoted():
    descriptor = scanModuleSource("class A:\n    def onLoaded(self, prefabs: 'list'):\n        pass\n", "a")

    assert descriptor.types[0].getMethod("onLoaded").callParams[0].annotation == "list"


def test_syntax_error_sets_scan_error():
    descriptor = scanModuleSource("class Broken(:\n    pass\n", "broken")

    assert descriptor.types == []
    assert descriptor.scanError is not None
    assert "line 1" in descriptor.scanError


def test_scan_module_file(tmp_path: Path):
    path = tmp_path / "my_mod.py"
    path.write_text("class MyMod:\n    pass\n", encoding="utf-8")

    descriptor = scanModuleFile(path)

    assert moduleNameForPath(path) == "my_mod"
    assert descriptor.name == "my_mod"
    assert descriptor.path == path
    assert descriptor.types[0].fullName == "my_mod.MyMod"
