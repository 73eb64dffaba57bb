"""
Firmware Resolver - Package resolution core for component-based firmware builds

This package discovers firmware packages, resolves a build target into the
set of packages it needs, merges their configuration settings, builds
dependency graphs and generates the stage-ordered initialization source.

Main Components:
- PackageStore: Discover, load, hash and save packages
- Resolver: Close a target over dependencies and bind required APIs
- syscfg: Merge configuration settings with override history
- DependencyGraphBuilder: Forward and reverse dependency graphs
- sysinit: Stage-ordered init code with write-if-changed semantics
- TargetBuilder: Run all of the above for one target

Usage:
    from firmware_resolver import PackageStore, TargetBuilder

    store = PackageStore.discover(["/path/to/project/apps", "/path/to/project/hw"])
    builder = TargetBuilder(store, "targets/blinky")

    print(builder.config_report())
    builder.write_sysinit(is_loader=False)
"""

__version__ = "0.1.0"

from .package import (
    PACKAGE_FILE_NAME,
    SYSCFG_FILE_NAME,
    Dependency,
    Package,
    PackageDesc,
    PackageType,
    SyscfgDef,
    Version,
    package_type_from_name,
)
from .package_store import PackageStore, load_package, save_package
from .resolver import Resolution, ResolutionIssue, ResolvedPackage, Resolver
from .syscfg import Cfg, CfgConflict, CfgEntry, CfgPoint, merge
from .dependency_graph import DependencyGraph, DependencyGraphBuilder, filter_graph, render
from .sysinit import build_stage_map, ensure_written, generate
from .cache_manager import CacheManager
from .settings import ResolverSettings
from .target_builder import TargetBuilder
from .exceptions import (
    FirmwareResolverError,
    DescriptorError,
    DuplicatePackageError,
    PackageNotFoundError,
    PackageHashError,
    ResolutionError,
    ConfigurationError,
    DependencyGraphError,
    CodegenError,
    CacheError,
)

__all__ = [
    # Packages
    'PACKAGE_FILE_NAME',
    'SYSCFG_FILE_NAME',
    'Dependency',
    'Package',
    'PackageDesc',
    'PackageType',
    'SyscfgDef',
    'Version',
    'package_type_from_name',
    'PackageStore',
    'load_package',
    'save_package',

    # Resolution
    'Resolution',
    'ResolutionIssue',
    'ResolvedPackage',
    'Resolver',

    # Configuration
    'Cfg',
    'CfgConflict',
    'CfgEntry',
    'CfgPoint',
    'merge',

    # Graphs and code generation
    'DependencyGraph',
    'DependencyGraphBuilder',
    'filter_graph',
    'render',
    'build_stage_map',
    'ensure_written',
    'generate',

    # Orchestration
    'CacheManager',
    'ResolverSettings',
    'TargetBuilder',

    # Exceptions
    'FirmwareResolverError',
    'DescriptorError',
    'DuplicatePackageError',
    'PackageNotFoundError',
    'PackageHashError',
    'ResolutionError',
    'ConfigurationError',
    'DependencyGraphError',
    'CodegenError',
    'CacheError',
]
