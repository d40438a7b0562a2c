# launchpad/mods/resolver.py
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from launchpad.core.errors import DependencyCycleError
from launchpad.mods.package import Package

logger = logging.getLogger(__name__)

__all__ = ["ResolveResult", "buildEdges", "warnMissingDependencies", "resolve"]



_UNVISITED, _VISITING, _DONE = 0, 1, 2



@dataclass
class ResolveResult:
    order: list[Package]
    cycle: list[Package] | None = None
    
    @property
    def ok(self) -> bool:
        return self.cycle is None
    
    def raiseForCycle(self) -> None:
        if self.cycle is not None:
            raise DependencyCycleError(self.cycle)



def _handleLookup(packages: Sequence[Package]) -> dict[int, int]:
    """handle -> sortIndex for enabled packages. Handle 0 has no stable identity and is never a target."""
    lookup: dict[int, int] = {}
    for pkg in packages:
        if pkg.enabled and pkg.handle != 0:
            lookup[pkg.handle] = pkg.sortIndex
    return lookup



def buildEdges(packages: Sequence[Package], lookup: dict[int, int] | None = None) -> dict[int, list[int]]:
    """
    Returns `before[later] = [earlier, ...]`: for each package index, the
    indices that must be loaded ahead of it. Only enabled packages add edges.
    
    `loadBefore` names packages that come after this one, `loadAfter` names
    packages that come before it.
    """
    if lookup is None:
        lookup = _handleLookup(packages)
    before: dict[int, list[int]] = {}
    
    def addEdge(earlier: int, later: int) -> None:
        if earlier == later:
            return
        preds = before.setdefault(later, [])
        if earlier not in preds:
            preds.append(earlier)
    
    for pkg in packages:
        if not pkg.enabled or pkg.about is None:
            continue
        for ref in pkg.about.loadBefore:
            target = lookup.get(ref.id)
            if target is not None:
                addEdge(pkg.sortIndex, target)
        for ref in pkg.about.loadAfter:
            target = lookup.get(ref.id)
            if target is not None:
                addEdge(target, pkg.sortIndex)
    
    for preds in before.values():
        preds.sort()
    return before



def warnMissingDependencies(packages: Sequence[Package], lookup: dict[int, int] | None = None) -> None:
    """Warn once per package about declared dependencies that are not enabled. Never affects ordering."""
    if lookup is None:
        lookup = _handleLookup(packages)
    
    for pkg in packages:
        if not pkg.enabled:
            pkg.depsWarned = False
            continue
        if pkg.isBuiltIn or pkg.about is None:
            continue
        
        missingDeps = False
        for dep in pkg.about.dependencies:
            if dep.id in lookup:
                continue
            missingDeps = True
            if pkg.depsWarned:
                continue
            logger.warning("%s %s is missing dependency with workshop id %s", pkg.source.value, pkg.displayName, dep.id)
            matches = [other for other in packages if other.about is not None and other.about.workshopHandle == dep.id]
            if matches:
                logger.warning("Possible matches:")
                for other in matches:
                    logger.warning("- %s %s", other.source.value, other.displayName)
            else:
                logger.warning("No possible matches installed")
        pkg.depsWarned = missingDeps



def _walk(packages: Sequence[Package], before: dict[int, list[int]]) -> tuple[list[int], list[int] | None]:
    """
    Depth-first post-order walk over enabled packages in original order.
    
    Returns (order, None) or ([], cycle) where cycle holds exactly the
    indices on the loop, starting at the node that was revisited.
    """
    state = [_UNVISITED] * len(packages)
    order: list[int] = []
    
    for pkg in packages:
        start = pkg.sortIndex
        if not pkg.enabled or state[start] != _UNVISITED:
            continue
        
        state[start] = _VISITING
        path = [start]
        pending = [iter(before.get(start, ()))]
        
        while pending:
            nxt = next(pending[-1], None)
            if nxt is None:
                node = path.pop()
                pending.pop()
                state[node] = _DONE
                order.append(node)
                continue
            if state[nxt] == _DONE:
                continue
            if state[nxt] == _VISITING:
                return [], path[path.index(nxt):]
            state[nxt] = _VISITING
            path.append(nxt)
            pending.append(iter(before.get(nxt, ())))
    
    return order, None



def resolve(packages: Sequence[Package]) -> ResolveResult:
    """
    Order enabled packages by their before/after hints.
    
    Unconstrained packages keep their relative order and disabled packages
    keep their slots. On a cycle the input order is returned unchanged
    together with the packages on the cycle.
    """
    packages = list(packages)
    for index, pkg in enumerate(packages):
        pkg.sortIndex = index
    
    lookup = _handleLookup(packages)
    warnMissingDependencies(packages, lookup)
    before = buildEdges(packages, lookup)
    
    order, cycle = _walk(packages, before)
    if cycle is not None:
        cyclePackages = [packages[index] for index in cycle]
        logger.error("Circular dependency found in enabled mods:")
        for pkg in cyclePackages:
            logger.error("- %s %s", pkg.source.value, pkg.displayName)
        return ResolveResult(order=packages, cycle=cyclePackages)
    
    ordered = iter(packages[index] for index in order)
    merged = [next(ordered) if pkg.enabled else pkg for pkg in packages]
    for index, pkg in enumerate(merged):
        pkg.sortIndex = index
    return ResolveResult(order=merged)
