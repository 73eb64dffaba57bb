"""
Syscfg - Merges per-package configuration settings into one namespace

Every setting keeps an audit trail: history[0] is the defining package and
its default value, each later point is a redefinition or an override in
merge order, and the last point is the effective value.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

from .exceptions import ConfigurationError
from .package import Package, PackageType
from .package_store import syscfg_value_str
from .resolver import Resolution

logger = logging.getLogger(__name__)

SEED_SOURCE = "<syscfg file>"

# Override precedence; a higher rank silently supersedes a lower one.
PACKAGE_PRECEDENCE: Dict[PackageType, int] = {
    PackageType.LIBRARY: 0,
    PackageType.API: 0,
    PackageType.SDK: 0,
    PackageType.COMPILER: 0,
    PackageType.BSP: 1,
    PackageType.APPLICATION: 2,
    PackageType.UNITTEST: 2,
    PackageType.TARGET: 3,
}
SEED_PRECEDENCE = max(PACKAGE_PRECEDENCE.values()) + 1

def package_precedence(package: Package) -> int:
    return PACKAGE_PRECEDENCE.get(package.type, 0)

@dataclass(frozen=True)
class CfgPoint:
    """One contribution to a setting's history"""
    source: str
    value: str
    precedence: int = 0

@dataclass(frozen=True)
class CfgEntry:
    """A merged setting and its contribution history"""
    name: str
    description: str
    value: str
    history: Tuple[CfgPoint, ...]

    @property
    def default(self) -> CfgPoint:
        return self.history[0]

    @property
    def defining_package(self) -> str:
        return self.history[0].source

    @property
    def overridden(self) -> bool:
        return len(self.history) > 1

@dataclass(frozen=True)
class CfgConflict:
    """Competing values for one setting"""
    setting: str
    kind: str                              # "override" or "redefinition"
    points: Tuple[CfgPoint, ...]

    def __str__(self) -> str:
        contributions = ', '.join(f"{p.source}={p.value}" for p in self.points)
        if self.kind == "redefinition":
            return f"Setting {self.setting} defined by multiple packages: {contributions}"
        return f"Setting {self.setting} has conflicting overrides: {contributions}"

@dataclass(frozen=True)
class Cfg:
    """Merged configuration for one resolution"""
    settings: Mapping[str, CfgEntry]
    conflicts: Tuple[CfgConflict, ...] = ()
    orphans: Tuple[Tuple[str, CfgPoint], ...] = ()   # Overrides of settings nobody defined

    def get(self, name: str) -> Optional[CfgEntry]:
        return self.settings.get(name)

    def value(self, name: str) -> Optional[str]:
        entry = self.settings.get(name)
        return entry.value if entry else None

    def values(self) -> Dict[str, str]:
        return {name: self.settings[name].value for name in sorted(self.settings)}

    def conflicted_settings(self) -> List[str]:
        return sorted({conflict.setting for conflict in self.conflicts})

    def error_text(self) -> str:
        if not self.conflicts:
            return ""
        lines = ["Syscfg conflicts; resolve by overriding these settings in a higher-priority package:"]
        lines.extend(f"    {conflict}" for conflict in self.conflicts)
        return '\n'.join(lines)

    def warning_text(self) -> str:
        if not self.orphans:
            return ""
        lines = ["Ignored overrides of undefined settings:"]
        for name, point in self.orphans:
            lines.append(f"    {name}: {point.source}={point.value}")
        return '\n'.join(lines)

class _EntryBuilder:
    """Mutable accumulator used only while a merge is in progress"""

    def __init__(self, name: str, description: str, default: CfgPoint):
        self.name = name
        self.description = description
        self.history = [default]
        self.definitions = 1            # Leading history points that came from syscfg.defs

    def freeze(self) -> CfgEntry:
        return CfgEntry(
            name=self.name,
            description=self.description,
            value=self.history[-1].value,
            history=tuple(self.history),
        )

def merge_order(resolution: Resolution) -> List[Package]:
    """Packages in the order their contributions are applied"""
    packages = [rpkg.package for rpkg in resolution.sorted_packages()]
    return sorted(packages, key=lambda p: (package_precedence(p), p.name))

def _contention(name: str, kind: str, points: List[CfgPoint]) -> Optional[CfgConflict]:
    """Conflict among the highest-ranked points, if they disagree.

    Equal values from different packages are not a conflict, and points
    at a lower rank are superseded without complaint.
    """
    if not points:
        return None
    top = max(point.precedence for point in points)
    contenders = [point for point in points if point.precedence == top]
    sources = {point.source for point in contenders}
    values = {point.value for point in contenders}
    if len(sources) > 1 and len(values) > 1:
        return CfgConflict(name, kind, tuple(contenders))
    return None

def _entry_conflicts(entry: _EntryBuilder) -> List[CfgConflict]:
    conflicts = []
    definitions = entry.history[:entry.definitions]
    overrides = entry.history[entry.definitions:]
    for kind, points in (("redefinition", definitions), ("override", overrides)):
        conflict = _contention(entry.name, kind, points)
        if conflict is not None:
            conflicts.append(conflict)
    return conflicts

def merge(resolution: Resolution, seed_overrides: Optional[Mapping[str, str]] = None,
          seed_source: str = SEED_SOURCE) -> Cfg:
    """Merge every resolved package's settings into a new Cfg"""
    resolution.require_valid()

    order = merge_order(resolution)
    builders: Dict[str, _EntryBuilder] = {}
    conflicts: List[CfgConflict] = []
    orphans: List[Tuple[str, CfgPoint]] = []

    for package in order:
        rank = package_precedence(package)
        for name in sorted(package.syscfg_defs):
            setting = package.syscfg_defs[name]
            point = CfgPoint(package.name, setting.value, rank)
            existing = builders.get(name)
            if existing is None:
                builders[name] = _EntryBuilder(name, setting.description, point)
            else:
                existing.history.append(point)
                existing.definitions += 1
                if not existing.description:
                    existing.description = setting.description

    def apply_override(source: str, rank: int, name: str, value: str):
        point = CfgPoint(source, value, rank)
        entry = builders.get(name)
        if entry is None:
            orphans.append((name, point))
            return
        entry.history.append(point)

    for package in order:
        rank = package_precedence(package)
        for name in sorted(package.syscfg_vals):
            apply_override(package.name, rank, name, package.syscfg_vals[name])

    if seed_overrides:
        for name in sorted(seed_overrides):
            apply_override(seed_source, SEED_PRECEDENCE, name, syscfg_value_str(seed_overrides[name]))

    for name in sorted(builders):
        conflicts.extend(_entry_conflicts(builders[name]))

    conflicts.sort(key=lambda c: (c.setting, c.kind))
    for conflict in conflicts:
        logger.debug(str(conflict))

    settings = OrderedDict((name, builders[name].freeze()) for name in sorted(builders))
    return Cfg(
        settings=MappingProxyType(settings),
        conflicts=tuple(conflicts),
        orphans=tuple(orphans),
    )

def entries_by_package(cfg: Cfg) -> "OrderedDict[str, List[CfgEntry]]":
    """Group settings by defining package; both levels in name order"""
    groups: Dict[str, List[CfgEntry]] = {}
    for entry in cfg.settings.values():
        groups.setdefault(entry.defining_package, []).append(entry)

    result = OrderedDict()
    for package_name in sorted(groups):
        result[package_name] = sorted(groups[package_name], key=lambda e: e.name)
    return result

def _setting_text(entry: CfgEntry) -> List[str]:
    lines = [
        f"  * Setting: {entry.name}",
        f"    * Description: {entry.description}",
        f"    * Value: {entry.value}",
    ]
    if entry.overridden:
        sources = ''.join(f"{point.source}, " for point in entry.history[1:])
        lines.append(f"    * Overridden: {sources}default={entry.default.value}")
    return lines

def report_text(target_name: str, cfg: Cfg) -> str:
    """Human-readable listing of every setting with its override trail"""
    lines = []
    error_text = cfg.error_text()
    if error_text:
        lines.append(f"!!! {error_text}")
        lines.append("")

    lines.append(f"Syscfg for {target_name}:")
    for i, (package_name, entries) in enumerate(entries_by_package(cfg).items()):
        if i > 0:
            lines.append("")
        lines.append(f"* PACKAGE: {package_name}")
        for entry in entries:
            lines.extend(_setting_text(entry))
    return '\n'.join(lines) + '\n'

def _value_lines(name: str, value: str) -> List[str]:
    """One setting as YAML, indented to sit under syscfg.vals"""
    text = yaml.safe_dump({name: value}, default_flow_style=False,
                          allow_unicode=True, width=float("inf"))
    return [f"    {line}" if line else "" for line in text.rstrip('\n').split('\n')]

def export_text(cfg: Cfg) -> str:
    """Render the effective values as a syscfg.vals block"""
    lines = ["syscfg.vals:"]
    for i, (package_name, entries) in enumerate(entries_by_package(cfg).items()):
        if i > 0:
            lines.append("")
        lines.append(f"    ### {package_name}")
        for entry in entries:
            lines.extend(_value_lines(entry.name, entry.value))
    return '\n'.join(lines) + '\n'

def parse_overrides(text: str, source: str = "<string>") -> Dict[str, str]:
    """Read the syscfg.vals block of a syscfg document"""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML: {e}", source) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("top level must be a mapping", source)

    vals = data.get("syscfg.vals") or {}
    if not isinstance(vals, dict):
        raise ConfigurationError("syscfg.vals must be a mapping", source)
    try:
        return {str(name): syscfg_value_str(value) for name, value in vals.items()}
    except TypeError as e:
        raise ConfigurationError(str(e), source) from e

def load_overrides(path: str) -> Dict[str, str]:
    try:
        text = Path(path).read_text(encoding='utf-8')
    except OSError as e:
        raise ConfigurationError(f"could not read file: {e}", str(path)) from e
    return parse_overrides(text, str(path))

def write_export(cfg: Cfg, path: str) -> Path:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(export_text(cfg), encoding='utf-8')
    except OSError as e:
        raise ConfigurationError(f"could not write file: {e}", str(path)) from e
    return path

def key_value_from_str(text: str) -> Dict[str, str]:
    """Parse the compact NAME=value[:NAME=value...] form"""
    result = {}
    if not text:
        return result
    for part in text.split(':'):
        if not part:
            continue
        if '=' in part:
            name, value = part.split('=', 1)
        else:
            name, value = part, "1"
        name = name.strip()
        if not name:
            raise ConfigurationError(f"invalid setting assignment '{part}'")
        result[name] = value.strip()
    return result

def key_value_to_str(values: Mapping[str, str]) -> str:
    return ':'.join(f"{name}={values[name]}" for name in sorted(values))
