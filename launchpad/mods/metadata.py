# launchpad/mods/metadata.py
from __future__ import annotations

import ast
import logging
from pathlib import Path

from launchpad.mods.package import MethodDescriptor, ModuleDescriptor, ParamDescriptor, TypeDescriptor

logger = logging.getLogger(__name__)

__all__ = ["scanModuleSource", "scanModuleFile", "moduleNameForPath"]



_ABSTRACT_BASES = {"ABC", "abc.ABC", "Protocol", "typing.Protocol", "typing_extensions.Protocol"}
_ABSTRACT_METAS = {"ABCMeta", "abc.ABCMeta"}
_ABSTRACT_DECORATORS = {"abstractmethod", "abc.abstractmethod"}



def moduleNameForPath(path: Path) -> str:
    return path.stem



def _dottedName(node: ast.expr) -> str:
    # @decorator(...) is named after the callable
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Subscript):
        node = node.value
    return ast.unparse(node)



def _annotationText(node: ast.expr | None) -> str | None:
    if node is None:
        return None
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    return ast.unparse(node)



def _scanMethod(node: ast.FunctionDef | ast.AsyncFunctionDef) -> MethodDescriptor:
    decorators = {_dottedName(dec) for dec in node.decorator_list}
    args = node.args
    positional = [*args.posonlyargs, *args.args]
    params = tuple(ParamDescriptor(arg.arg, _annotationText(arg.annotation)) for arg in positional)
    if args.vararg is not None:
        params += (ParamDescriptor("*" + args.vararg.arg, _annotationText(args.vararg.annotation)),)
    return MethodDescriptor(
        name=node.name,
        params=params,
        isStatic="staticmethod" in decorators,
        isClassMethod="classmethod" in decorators,
        isAbstract=bool(decorators & _ABSTRACT_DECORATORS),
    )



def _scanClass(node: ast.ClassDef, moduleName: str) -> TypeDescriptor:
    bases = tuple(_dottedName(base) for base in node.bases)
    methods = tuple(
        _scanMethod(item)
        for item in node.body
        if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef))
    )
    metaclass = next((_dottedName(kw.value) for kw in node.keywords if kw.arg == "metaclass"), None)
    isAbstract = (
        any(base in _ABSTRACT_BASES for base in bases)
        or metaclass in _ABSTRACT_METAS
        or any(method.isAbstract for method in methods)
    )
    return TypeDescriptor(
        name=node.name,
        moduleName=moduleName,
        bases=bases,
        decorators=tuple(_dottedName(dec) for dec in node.decorator_list),
        methods=methods,
        isAbstract=isAbstract,
        lineno=node.lineno,
    )



def _scanImports(tree: ast.Module) -> list[str]:
    names: list[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
            names.append(node.module)
    # Preserve first-seen order
    return list(dict.fromkeys(names))



def scanModuleSource(source: str, moduleName: str, path: Path | None = None) -> ModuleDescriptor:
    """
    Reads type metadata out of module source without executing it.
    
    Only top-level classes are reported. A module that does not parse is
    returned with `scanError` set and no types; loading it later fails with
    a proper ModuleLoadError.
    """
    descriptor = ModuleDescriptor(name=moduleName, path=path)
    try:
        tree = ast.parse(source, filename=str(path) if path else moduleName)
    except SyntaxError as err:
        descriptor.scanError = f"{err.msg} (line {err.lineno})"
        logger.debug("Could not parse module '%s': %s", moduleName, descriptor.scanError)
        return descriptor
    
    descriptor.types = [_scanClass(node, moduleName) for node in tree.body if isinstance(node, ast.ClassDef)]
    descriptor.imports = _scanImports(tree)
    return descriptor



def scanModuleFile(path: Path) -> ModuleDescriptor:
    return scanModuleSource(path.read_text(encoding="utf-8"), moduleNameForPath(path), path)
