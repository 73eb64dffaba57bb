"""
Target Builder - Runs resolution, configuration, graphs and codegen for a target
"""
import logging
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from . import dependency_graph, syscfg, sysinit
from .cache_manager import CacheManager
from .dependency_graph import DependencyGraph, DependencyGraphBuilder
from .exceptions import DependencyGraphError
from .package import SYSCFG_FILE_NAME, Package
from .package_store import PackageStore
from .resolver import Resolution, Resolver
from .settings import ResolverSettings
from .syscfg import Cfg

logger = logging.getLogger(__name__)

class TargetBuilder:
    """Builds everything the core produces for one target or unit test"""

    def __init__(self, store: PackageStore, target_name: str,
                 settings: Optional[ResolverSettings] = None,
                 variant: Optional[str] = None):
        self.store = store
        self.target: Package = store.require(target_name)
        self.settings = settings or ResolverSettings()
        self.variant = variant
        self._resolution: Optional[Resolution] = None

    def resolve(self) -> Resolution:
        """Resolve the target once; later calls reuse the result"""
        if self._resolution is None:
            self._resolution = Resolver(self.store).resolve(self.target, self.variant)
            warning_text = self._resolution.warning_text().strip()
            if warning_text:
                for line in warning_text.split('\n'):
                    logger.warning(line)
        return self._resolution

    def valid_resolution(self) -> Resolution:
        resolution = self.resolve()
        resolution.require_valid()
        return resolution

    def syscfg_path(self) -> Path:
        return Path(self.target.base_path) / SYSCFG_FILE_NAME

    def config(self, seed_overrides: Optional[Mapping[str, str]] = None) -> Cfg:
        """Merged configuration, optionally seeded from an imported syscfg file"""
        cfg = syscfg.merge(self.valid_resolution(), seed_overrides)
        warning_text = cfg.warning_text()
        if warning_text:
            for line in warning_text.split('\n'):
                logger.warning(line)
        return cfg

    def config_report(self) -> str:
        return syscfg.report_text(self.target.name, self.config())

    def export_config(self, path: Optional[str] = None) -> Path:
        """Write every effective setting value to a syscfg file"""
        path = Path(path) if path else self.syscfg_path()
        written = syscfg.write_export(self.config(), str(path))
        logger.debug(f"Exported syscfg for {self.target.name} to {written}")
        return written

    def dep_graph(self) -> DependencyGraph:
        """Package -> packages it depends on"""
        return DependencyGraphBuilder().reverse(self.valid_resolution())

    def revdep_graph(self) -> DependencyGraph:
        """Package -> packages that depend on it"""
        return DependencyGraphBuilder().forward(self.valid_resolution())

    def filtered_graph(self, kind: str, names: List[str]) -> Tuple[DependencyGraph, List[str]]:
        """Dependency or reverse-dependency graph limited to some packages"""
        if kind == dependency_graph.DEPENDENCIES:
            graph = self.dep_graph()
        elif kind == dependency_graph.DEPENDENTS:
            graph = self.revdep_graph()
        else:
            raise DependencyGraphError(f"unknown graph kind '{kind}'")

        if not names:
            return graph, []

        graph, missing = dependency_graph.filter_graph(graph, names)
        for name in missing:
            logger.warning(f"Package \"{name}\" not included in target \"{self.target.name}\"")
        return graph, missing

    def sysinit_source(self, is_loader: bool) -> bytes:
        return sysinit.generate(self.valid_resolution().packages_list(), is_loader)

    def write_sysinit(self, is_loader: bool, src_dir: Optional[str] = None) -> Tuple[Path, bool]:
        """Generate and write the sysinit source; returns (path, changed)"""
        src_dir = src_dir or str(self.settings.generated_src_dir())
        path = sysinit.sysinit_path(src_dir, self.target.name, is_loader)
        changed = sysinit.ensure_written(self.sysinit_source(is_loader), str(path))
        return path, changed

    def changed_packages(self, cache: Optional[CacheManager] = None,
                         record: bool = False) -> List[str]:
        """Resolved packages whose content changed since the last recorded build"""
        cache = cache or CacheManager(self.settings.cache_dir)
        packages = self.valid_resolution().packages_list()
        changed = cache.changed_packages(self.target.name, self.store, packages)
        if record:
            cache.store_hashes(self.target.name, self.store, packages)
        return changed
