"""
Resolver - Computes the closed package set for a build target

Starting from the target package, declared dependencies are followed
through the package store until the set is closed.  Each required
capability (API) is then bound to the single package in the set that
exports it.  Problems are collected rather than raised so a caller can
report all of them at once.
"""
import heapq
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .exceptions import ResolutionError
from .package import Package
from .package_store import PackageStore

logger = logging.getLogger(__name__)

UNKNOWN_PACKAGE = "unknown-package"
UNRESOLVED_API = "unresolved-api"
AMBIGUOUS_API = "ambiguous-api"

@dataclass(frozen=True)
class ResolutionIssue:
    """A problem that makes a resolution unusable"""
    kind: str
    package: str                 # Package that declared the requirement
    subject: str                 # Missing package name or capability name
    candidates: tuple = ()       # Competing exporters for ambiguous capabilities

    def __str__(self) -> str:
        if self.kind == UNKNOWN_PACKAGE:
            return f"Package '{self.package}' depends on unknown package '{self.subject}'"
        if self.kind == UNRESOLVED_API:
            return f"Package '{self.package}' requires API '{self.subject}', which no package exports"
        if self.kind == AMBIGUOUS_API:
            exporters = ', '.join(self.candidates)
            return (f"Package '{self.package}' requires API '{self.subject}', "
                    f"which is exported by multiple packages: {exporters}")
        return f"{self.kind}: {self.package} ({self.subject})"

@dataclass
class ResolvedPackage:
    """A package included in a resolution, with how it got there"""
    package: Package
    parents: List[str] = field(default_factory=list)          # Packages that pulled this one in
    deps: List[str] = field(default_factory=list)             # Resolved direct dependencies
    api_bindings: Dict[str, str] = field(default_factory=dict)  # Required API -> exporter

    @property
    def name(self) -> str:
        return self.package.name

@dataclass
class Resolution:
    """Result of resolving one build target"""
    target: Package
    variant: Optional[str]
    packages: Dict[str, ResolvedPackage]
    api_map: Dict[str, str]                  # API -> exporting package (unique exporters only)
    errors: List[ResolutionIssue]
    warnings: List[str]

    @property
    def ok(self) -> bool:
        return not self.errors

    def require_valid(self):
        """Raise ResolutionError unless the resolution is usable"""
        if self.errors:
            raise ResolutionError(list(self.errors))

    def error_text(self) -> str:
        return '\n'.join(str(issue) for issue in self.errors)

    def warning_text(self) -> str:
        return '\n'.join(self.warnings)

    def names(self) -> List[str]:
        return sorted(self.packages)

    def sorted_packages(self) -> List[ResolvedPackage]:
        """Resolved packages in name order"""
        return [self.packages[name] for name in self.names()]

    def dependency_order(self) -> List[ResolvedPackage]:
        """Resolved packages with dependencies before their dependents.

        Ties are broken by name.  Members of a dependency cycle cannot be
        ordered and are appended in name order.
        """
        remaining = {name: set(rpkg.deps) & set(self.packages)
                     for name, rpkg in self.packages.items()}
        dependents: Dict[str, List[str]] = {name: [] for name in self.packages}
        for name, deps in remaining.items():
            for dep in deps:
                dependents[dep].append(name)

        ready = [name for name, deps in remaining.items() if not deps]
        heapq.heapify(ready)
        ordered = []
        while ready:
            name = heapq.heappop(ready)
            ordered.append(name)
            for dependent in dependents[name]:
                deps = remaining[dependent]
                deps.discard(name)
                if not deps:
                    heapq.heappush(ready, dependent)

        placed = set(ordered)
        ordered.extend(sorted(name for name in self.packages if name not in placed))
        return [self.packages[name] for name in ordered]

    def packages_list(self) -> List[Package]:
        return [rpkg.package for rpkg in self.dependency_order()]

class Resolver:
    """Resolves build targets against a package store"""

    def __init__(self, store: PackageStore):
        self.store = store

    def resolve(self, target: Package, variant: Optional[str] = None) -> Resolution:
        """Resolve target into a closed package set"""
        logger.debug(f"Resolving {target.name} (variant={variant or 'default'})")

        errors: List[ResolutionIssue] = []
        packages: Dict[str, ResolvedPackage] = {target.name: ResolvedPackage(target)}

        self._close_dependencies(packages, variant, errors)
        api_map = self._bind_apis(packages, errors)
        warnings = self._collect_warnings(packages)
        warnings.extend(self._cycle_warnings(packages))

        resolution = Resolution(
            target=target,
            variant=variant,
            packages=packages,
            api_map=api_map,
            errors=errors,
            warnings=warnings,
        )

        if errors:
            logger.debug(f"Resolution of {target.name} produced {len(errors)} error(s)")
        else:
            logger.debug(f"Resolved {target.name}: {len(packages)} package(s)")
        return resolution

    def _close_dependencies(self, packages: Dict[str, ResolvedPackage],
                            variant: Optional[str], errors: List[ResolutionIssue]):
        queue = deque(sorted(packages))
        while queue:
            name = queue.popleft()
            rpkg = packages[name]
            dep_names = sorted({dep.name for dep in rpkg.package.deps_for_variant(variant)})

            for dep_name in dep_names:
                if dep_name == name:
                    continue
                if dep_name not in packages:
                    dep_pkg = self.store.get(dep_name)
                    if dep_pkg is None:
                        errors.append(ResolutionIssue(UNKNOWN_PACKAGE, name, dep_name))
                        continue
                    packages[dep_name] = ResolvedPackage(dep_pkg)
                    queue.append(dep_name)

                packages[dep_name].parents.append(name)
                if dep_name not in rpkg.deps:
                    rpkg.deps.append(dep_name)

    def _bind_apis(self, packages: Dict[str, ResolvedPackage],
                   errors: List[ResolutionIssue]) -> Dict[str, str]:
        exporters: Dict[str, List[str]] = {}
        for name in sorted(packages):
            for api in packages[name].package.apis:
                exporters.setdefault(api, [])
                if name not in exporters[api]:
                    exporters[api].append(name)

        api_map = {api: names[0] for api, names in exporters.items() if len(names) == 1}

        for name in sorted(packages):
            rpkg = packages[name]
            for api in sorted(set(rpkg.package.req_apis)):
                candidates = exporters.get(api, [])
                if not candidates:
                    errors.append(ResolutionIssue(UNRESOLVED_API, name, api))
                elif len(candidates) > 1:
                    errors.append(ResolutionIssue(AMBIGUOUS_API, name, api, tuple(candidates)))
                else:
                    provider = candidates[0]
                    rpkg.api_bindings[api] = provider
                    if provider != name and provider not in rpkg.deps:
                        rpkg.deps.append(provider)
                        packages[provider].parents.append(name)

        for rpkg in packages.values():
            rpkg.deps.sort()
            rpkg.parents = sorted(set(rpkg.parents))

        return api_map

    @staticmethod
    def _collect_warnings(packages: Dict[str, ResolvedPackage]) -> List[str]:
        required: Set[str] = set()
        for rpkg in packages.values():
            required.update(rpkg.package.req_apis)

        warnings = []
        for name in sorted(packages):
            for api in sorted(set(packages[name].package.apis)):
                if api not in required:
                    warnings.append(f"API '{api}' exported by '{name}' is never required")
        return warnings

    @staticmethod
    def _cycle_warnings(packages: Dict[str, ResolvedPackage]) -> List[str]:
        """Report each dependency cycle once, starting from its smallest name"""
        warnings = []
        seen_cycles = set()
        visited: Set[str] = set()

        def visit(name: str, stack: List[str], on_stack: Set[str]):
            visited.add(name)
            stack.append(name)
            on_stack.add(name)
            for dep in packages[name].deps:
                if dep in on_stack:
                    cycle = stack[stack.index(dep):]
                    start = cycle.index(min(cycle))
                    cycle = tuple(cycle[start:] + cycle[:start])
                    if cycle not in seen_cycles:
                        seen_cycles.add(cycle)
                        warnings.append(
                            "Dependency cycle: " + ' -> '.join(cycle + (cycle[0],))
                        )
                elif dep not in visited:
                    visit(dep, stack, on_stack)
            stack.pop()
            on_stack.discard(name)

        for name in sorted(packages):
            if name not in visited:
                visit(name, [], set())
        return warnings
