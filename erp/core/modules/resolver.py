from __future__ import annotations

"""
Load-order resolution: scan -> dependency graph -> topological order.

Every discovered module appears exactly once in the order. Modules taking
part in a reported cycle get a best-effort relative order only.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Set, Tuple

from erp.core.logger import get_logger
from erp.core.modules.discovery import (
    DEFAULT_ENTRYPOINT_FILENAME,
    DEFAULT_MANIFEST_FILENAME,
    AddonDiscovery,
    DiscoveredAddon,
)
from erp.core.modules.graph import DependencyGraph, build_graph
from erp.core.modules.models import Diagnostic, DiagnosticKind, DiagnosticSeverity, ModuleManifest, has_warnings

_UNVISITED, _IN_PROGRESS, _DONE = 0, 1, 2


def _canonical_cycle(members: Tuple[str, ...]) -> Tuple[str, ...]:
    i = members.index(min(members))
    return members[i:] + members[:i]


def cycle_message(members: Tuple[str, ...]) -> str:
    return "dependency cycle: " + " -> ".join(members + members[:1])


def sort_graph(graph: DependencyGraph) -> Tuple[Tuple[str, ...], Tuple[Tuple[str, ...], ...]]:
    """
    Depth-first topological sort with three-colour marking.

    Roots are taken in lexicographic order and dependencies in declared order,
    so the result is reproducible. A node is emitted once all of its
    dependencies are done. An edge back to an in-progress node closes a cycle:
    the cycle is recorded with all its members and the edge is not followed.

    Returns (order, cycles).
    """
    state: Dict[str, int] = {n: _UNVISITED for n in graph.nodes}
    order: List[str] = []
    cycles: List[Tuple[str, ...]] = []
    seen_cycles: Set[Tuple[str, ...]] = set()

    for root in graph.nodes:
        if state[root] != _UNVISITED:
            continue
        path: List[str] = [root]
        stack: List[Tuple[str, Iterator[str]]] = [(root, iter(graph.dependencies_of(root)))]
        state[root] = _IN_PROGRESS
        while stack:
            node, deps = stack[-1]
            descended = False
            for dep in deps:
                dep_state = state.get(dep, _DONE)
                if dep_state == _UNVISITED:
                    state[dep] = _IN_PROGRESS
                    path.append(dep)
                    stack.append((dep, iter(graph.dependencies_of(dep))))
                    descended = True
                    break
                if dep_state == _IN_PROGRESS:
                    members = _canonical_cycle(tuple(path[path.index(dep):]))
                    if members not in seen_cycles:
                        seen_cycles.add(members)
                        cycles.append(members)
            if not descended:
                stack.pop()
                path.pop()
                state[node] = _DONE
                order.append(node)

    return tuple(order), tuple(cycles)


@dataclass
class Resolution:
    root: str = ""
    addons: Dict[str, DiscoveredAddon] = field(default_factory=dict)
    manifests: Dict[str, ModuleManifest] = field(default_factory=dict)
    graph: DependencyGraph = field(default_factory=DependencyGraph)
    order: Tuple[str, ...] = ()
    cycles: Tuple[Tuple[str, ...], ...] = ()
    excluded: Dict[str, str] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return has_warnings(self.diagnostics)

    def in_cycle(self, name: str) -> bool:
        return any(name in c for c in self.cycles)

    def index(self, name: str) -> int:
        return self.order.index(name)


def resolve_manifests(manifests: Mapping[str, ModuleManifest], *, logger=None) -> Resolution:
    logger = logger or get_logger("modules")
    graph, diagnostics = build_graph(manifests)
    for d in diagnostics:
        logger.warning(d.message)

    order, cycles = sort_graph(graph)
    for members in cycles:
        msg = cycle_message(members)
        logger.error(msg)
        diagnostics.append(Diagnostic(kind=DiagnosticKind.CYCLE, severity=DiagnosticSeverity.error, module=members[0], message=msg, related=list(members)))

    return Resolution(
        manifests=dict(manifests),
        graph=graph,
        order=order,
        cycles=cycles,
        diagnostics=diagnostics,
    )


def resolve(
    addons_root: str,
    *,
    manifest_filename: str = DEFAULT_MANIFEST_FILENAME,
    entrypoint_filename: str = DEFAULT_ENTRYPOINT_FILENAME,
    logger=None,
) -> Resolution:
    """
    Full resolution pass over an addons directory.

    Raises AddonsRootMissingError when the root is missing or unreadable;
    everything else is reported through Resolution.diagnostics.
    """
    logger = logger or get_logger("modules")
    scan = AddonDiscovery(
        addons_root=addons_root,
        manifest_filename=manifest_filename,
        entrypoint_filename=entrypoint_filename,
        logger=logger,
    ).scan()

    res = resolve_manifests(scan.manifests(), logger=logger)
    res.root = scan.root
    res.addons = dict(scan.addons)
    res.excluded = dict(scan.excluded)
    res.diagnostics = list(scan.diagnostics) + res.diagnostics
    logger.info(f"Resolved {len(res.order)} module(s): {', '.join(res.order) or '-'}")
    return res

