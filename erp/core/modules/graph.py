from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Set, Tuple

from erp.core.modules.models import Diagnostic, DiagnosticKind, DiagnosticSeverity, ModuleManifest


def unknown_dependency_message(module: str, dependency: str) -> str:
    return f"{module} depends on undeclared module {dependency}"


@dataclass(frozen=True)
class DependencyGraph:
    """
    Edge (m, d) means "m depends on d". Built fresh for every resolution run.
    """

    nodes: Tuple[str, ...] = ()
    edges: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    unknown: Tuple[Tuple[str, str], ...] = ()

    def dependencies_of(self, name: str) -> Tuple[str, ...]:
        return self.edges.get(name, ())

    def dependents_of(self, name: str) -> Tuple[str, ...]:
        return tuple(n for n in self.nodes if name in self.edges.get(n, ()))

    def edge_set(self) -> Set[Tuple[str, str]]:
        return {(m, d) for m, deps in self.edges.items() for d in deps}


def build_graph(manifests: Mapping[str, ModuleManifest]) -> Tuple[DependencyGraph, List[Diagnostic]]:
    nodes = tuple(sorted(manifests))
    known = set(nodes)
    edges: Dict[str, Tuple[str, ...]] = {}
    unknown: List[Tuple[str, str]] = []
    diagnostics: List[Diagnostic] = []

    for name in nodes:
        deps: List[str] = []
        for dep in manifests[name].dependencies:
            if dep in deps:
                continue
            if dep not in known:
                unknown.append((name, dep))
                diagnostics.append(
                    Diagnostic(
                        kind=DiagnosticKind.UNKNOWN_DEPENDENCY,
                        severity=DiagnosticSeverity.warning,
                        module=name,
                        message=unknown_dependency_message(name, dep),
                        related=[dep],
                    )
                )
                continue
            deps.append(dep)
        edges[name] = tuple(deps)

    return DependencyGraph(nodes=nodes, edges=edges, unknown=tuple(unknown)), diagnostics
