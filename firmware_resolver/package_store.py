"""
Package Store - Discovers, loads, hashes and saves firmware packages
"""
import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import yaml

from .exceptions import (
    DescriptorError,
    DuplicatePackageError,
    PackageHashError,
    PackageNotFoundError,
)
from .package import (
    PACKAGE_FILE_NAME,
    SYSCFG_FILE_NAME,
    Dependency,
    Package,
    PackageDesc,
    SyscfgDef,
    Version,
    package_type_from_name,
)
from .settings import DEFAULT_HASH_IGNORE_DIRS, ResolverSettings
from .utils import hash_directory, is_hidden, normalize_string_list

logger = logging.getLogger(__name__)

# Package-internal directories that never hold nested packages
RESERVED_DIR_NAMES = frozenset({"src", "include", "bin"})

_DEPS_KEY = "pkg.deps"
_VARIANT_DEPS_PREFIX = "pkg.deps."

# Descriptor keys with a fixed meaning; other pkg.* keys land in Package.extra
KNOWN_PACKAGE_KEYS = frozenset({
    "pkg.name", "pkg.vers", "pkg.type", "pkg.description", "pkg.author",
    "pkg.homepage", "pkg.keywords", "pkg.repository", "pkg.deps", "pkg.apis",
    "pkg.req_apis", "pkg.cflags", "pkg.lflags", "pkg.aflags", "pkg.init",
})

def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise DescriptorError(str(path), f"could not read file: {e}") from e
    except yaml.YAMLError as e:
        raise DescriptorError(str(path), f"invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DescriptorError(str(path), "top level must be a mapping")
    return data

def _string_field(data: Mapping[str, Any], key: str, path: Path) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise DescriptorError(str(path), f"{key} must be a scalar")
    return str(value)

def _list_field(data: Mapping[str, Any], key: str, path: Path) -> List[str]:
    try:
        return normalize_string_list(data.get(key), key)
    except TypeError as e:
        raise DescriptorError(str(path), str(e)) from e

def syscfg_value_str(value: Any) -> str:
    """Normalize a YAML scalar into the string form used for settings"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (dict, list)):
        raise TypeError("setting values must be scalars")
    return str(value)

def _parse_init(data: Mapping[str, Any], path: Path) -> Dict[str, int]:
    raw = data.get("pkg.init")
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise DescriptorError(str(path), "pkg.init must map entry points to stages")

    init = {}
    for name, stage in raw.items():
        if isinstance(stage, bool):
            raise DescriptorError(str(path), f"pkg.init stage for '{name}' must be an integer")
        try:
            init[str(name)] = int(stage)
        except (TypeError, ValueError) as e:
            raise DescriptorError(
                str(path), f"pkg.init stage for '{name}' must be an integer"
            ) from e
    return init

def _parse_deps(data: Mapping[str, Any], path: Path) -> List[Dependency]:
    deps = [Dependency(name) for name in _list_field(data, _DEPS_KEY, path)]
    for key in sorted(k for k in data if k.startswith(_VARIANT_DEPS_PREFIX)):
        variant = key[len(_VARIANT_DEPS_PREFIX):]
        if not variant:
            continue
        deps.extend(Dependency(name, variant) for name in _list_field(data, key, path))
    return deps

def _parse_syscfg(package_dir: Path):
    """Read a package's syscfg.yml into (defs, vals)"""
    path = package_dir / SYSCFG_FILE_NAME
    if not path.exists():
        return {}, {}

    data = _read_yaml(path)
    defs = {}
    raw_defs = data.get("syscfg.defs") or {}
    if not isinstance(raw_defs, dict):
        raise DescriptorError(str(path), "syscfg.defs must be a mapping")
    for name, entry in raw_defs.items():
        try:
            if isinstance(entry, dict):
                defs[str(name)] = SyscfgDef(
                    name=str(name),
                    value=syscfg_value_str(entry.get("value")),
                    description=str(entry.get("description") or ""),
                )
            else:
                defs[str(name)] = SyscfgDef(name=str(name), value=syscfg_value_str(entry))
        except TypeError as e:
            raise DescriptorError(str(path), f"setting '{name}': {e}") from e

    raw_vals = data.get("syscfg.vals") or {}
    if not isinstance(raw_vals, dict):
        raise DescriptorError(str(path), "syscfg.vals must be a mapping")
    try:
        vals = {str(name): syscfg_value_str(value) for name, value in raw_vals.items()}
    except TypeError as e:
        raise DescriptorError(str(path), str(e)) from e

    return defs, vals

def load_package(package_dir: str, repository: str = "local") -> Package:
    """Load the package rooted at package_dir"""
    package_dir = Path(package_dir)
    path = package_dir / PACKAGE_FILE_NAME
    logger.debug(f"Loading configuration for package {package_dir}")

    data = _read_yaml(path)

    name = data.get("pkg.name")
    if not name or not isinstance(name, str):
        raise DescriptorError(str(path), "pkg.name is required and must be a string")

    try:
        vers = Version.parse(data.get("pkg.vers"))
    except ValueError as e:
        raise DescriptorError(str(path), str(e)) from e

    desc = PackageDesc(
        description=_string_field(data, "pkg.description", path),
        author=_string_field(data, "pkg.author", path),
        homepage=_string_field(data, "pkg.homepage", path),
        keywords=_list_field(data, "pkg.keywords", path),
    )

    extra = {
        key: value for key, value in data.items()
        if key not in KNOWN_PACKAGE_KEYS and not key.startswith(_VARIANT_DEPS_PREFIX)
    }

    defs, vals = _parse_syscfg(package_dir)

    return Package(
        name=name,
        base_path=str(package_dir),
        type=package_type_from_name(data.get("pkg.type")),
        vers=vers,
        desc=desc,
        repository=_string_field(data, "pkg.repository", path) or repository,
        deps=_parse_deps(data, path),
        apis=_list_field(data, "pkg.apis", path),
        req_apis=_list_field(data, "pkg.req_apis", path),
        cflags=_list_field(data, "pkg.cflags", path),
        lflags=_list_field(data, "pkg.lflags", path),
        aflags=_list_field(data, "pkg.aflags", path),
        init=_parse_init(data, path),
        syscfg_defs=defs,
        syscfg_vals=vals,
        extra=extra,
    )

def save_package(package: Package) -> Path:
    """Write the package's descriptor in a fixed, diff-friendly field order"""
    package_dir = Path(package.base_path)
    path = package_dir / PACKAGE_FILE_NAME

    fields: Dict[str, Any] = {
        "pkg.name": package.name,
        "pkg.vers": str(package.vers),
        "pkg.type": package.type.value,
        "pkg.description": package.desc.description,
        "pkg.author": package.desc.author,
        "pkg.homepage": package.desc.homepage,
        "pkg.repository": package.repository,
    }

    optional: List[tuple] = [("pkg.keywords", list(package.desc.keywords))]
    optional.append((_DEPS_KEY, [dep.name for dep in package.deps if dep.variant is None]))
    for variant in package.variants():
        optional.append((
            _VARIANT_DEPS_PREFIX + variant,
            [dep.name for dep in package.deps if dep.variant == variant],
        ))
    optional.extend([
        ("pkg.apis", list(package.apis)),
        ("pkg.req_apis", list(package.req_apis)),
        ("pkg.cflags", list(package.cflags)),
        ("pkg.lflags", list(package.lflags)),
        ("pkg.aflags", list(package.aflags)),
        ("pkg.init", dict(sorted(package.init.items()))),
    ])
    for key, value in optional:
        if value:
            fields[key] = value

    body = yaml.safe_dump(fields, sort_keys=False, default_flow_style=False)

    try:
        package_dir.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(f"### Package: {package.name}\n\n")
            f.write(body)
    except OSError as e:
        raise DescriptorError(str(path), f"could not write file: {e}") from e

    logger.debug(f"Saved descriptor {path}")
    return path

class PackageStore:
    """Immutable snapshot of the packages visible to a build"""

    def __init__(self, packages: Mapping[str, Package],
                 hash_ignore_dirs: Optional[Iterable[str]] = None):
        self._packages = MappingProxyType(dict(packages))
        self.hash_ignore_dirs = tuple(hash_ignore_dirs or DEFAULT_HASH_IGNORE_DIRS)

    @classmethod
    def discover(cls, search_roots: Optional[Iterable[str]] = None,
                 settings: Optional[ResolverSettings] = None) -> "PackageStore":
        """Walk search roots and load every package found"""
        settings = settings or ResolverSettings()
        if search_roots is None:
            search_roots = settings.search_roots()

        packages: Dict[str, Package] = {}
        for root in search_roots:
            root = Path(root)
            if not root.is_dir():
                logger.debug(f"Search root {root} does not exist; skipping")
                continue
            cls._discover_dir(root, packages)

        logger.debug(f"Discovered {len(packages)} package(s)")
        return cls(packages, settings.hash_ignore_dirs)

    @classmethod
    def _discover_dir(cls, directory: Path, packages: Dict[str, Package]):
        if (directory / PACKAGE_FILE_NAME).is_file():
            package = load_package(str(directory))
            existing = packages.get(package.name)
            if existing is not None:
                raise DuplicatePackageError(package.name, existing.base_path, package.base_path)
            packages[package.name] = package
            return

        try:
            entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
        except OSError as e:
            raise DescriptorError(str(directory), f"could not list directory: {e}") from e

        for entry in entries:
            if not entry.is_dir(follow_symlinks=False):
                continue
            if is_hidden(entry.name) or entry.name in RESERVED_DIR_NAMES:
                continue
            cls._discover_dir(Path(entry.path), packages)

    @property
    def packages(self) -> Mapping[str, Package]:
        return self._packages

    def get(self, name: str) -> Optional[Package]:
        return self._packages.get(name)

    def require(self, name: str, requester: str = None) -> Package:
        package = self._packages.get(name)
        if package is None:
            raise PackageNotFoundError(name, requester)
        return package

    def names(self) -> List[str]:
        return sorted(self._packages)

    def hash(self, package: Package) -> str:
        """Content hash of a package directory, computed once per package"""
        if package.content_hash is None:
            try:
                package.content_hash = hash_directory(package.base_path, self.hash_ignore_dirs)
            except OSError as e:
                raise PackageHashError(package.base_path, str(e)) from e
        return package.content_hash

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def __len__(self) -> int:
        return len(self._packages)

    def __iter__(self) -> Iterator[Package]:
        for name in self.names():
            yield self._packages[name]
