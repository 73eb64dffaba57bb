"""
Package - Data model for firmware packages and their descriptors
"""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

PACKAGE_FILE_NAME = "pkg.yml"
SYSCFG_FILE_NAME = "syscfg.yml"

class PackageType(str, Enum):
    """Kinds of packages a project can contain"""
    LIBRARY = "lib"
    APPLICATION = "app"
    TARGET = "target"
    UNITTEST = "unittest"
    BSP = "bsp"
    API = "api"
    SDK = "sdk"
    COMPILER = "compiler"

# Closed set of descriptor tags; anything else loads as a library.
PACKAGE_TYPE_NAMES: Dict[str, PackageType] = {t.value: t for t in PackageType}

def package_type_from_name(type_name: Optional[str]) -> PackageType:
    """Map a pkg.type string to a PackageType, defaulting to LIBRARY"""
    if type_name is None:
        return PackageType.LIBRARY
    package_type = PACKAGE_TYPE_NAMES.get(str(type_name).strip())
    if package_type is None:
        logger.debug(f"Unknown package type '{type_name}'; treating as {PackageType.LIBRARY.value}")
        return PackageType.LIBRARY
    return package_type

_VERSION_RE = re.compile(r'^(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:\.(\d+))?$')

@dataclass(frozen=True)
class Version:
    """Package version (major.minor.revision[.build])"""
    major: int = 0
    minor: int = 0
    revision: int = 0
    build: int = 0

    @classmethod
    def parse(cls, text: Any) -> "Version":
        """Parse a version string; raises ValueError on malformed input"""
        if text is None or text == "":
            return cls()
        match = _VERSION_RE.match(str(text).strip())
        if not match:
            raise ValueError(f"Invalid version string: '{text}'")
        parts = [int(part) if part else 0 for part in match.groups()]
        return cls(*parts)

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.revision}"
        if self.build:
            text += f".{self.build}"
        return text

@dataclass
class PackageDesc:
    """Free-text description block of a package"""
    description: str = ""
    author: str = ""
    homepage: str = ""
    keywords: List[str] = field(default_factory=list)

@dataclass(frozen=True)
class Dependency:
    """Reference to another package, optionally limited to a build variant"""
    name: str
    variant: Optional[str] = None

    def applies_to(self, variant: Optional[str]) -> bool:
        return self.variant is None or self.variant == variant

    def __str__(self) -> str:
        if self.variant:
            return f"{self.variant}:{self.name}"
        return self.name

@dataclass(frozen=True)
class SyscfgDef:
    """A configuration setting defined by a package"""
    name: str
    value: str
    description: str = ""

@dataclass
class Package:
    """A package discovered on disk"""
    name: str
    base_path: str
    type: PackageType = PackageType.LIBRARY
    vers: Version = field(default_factory=Version)
    desc: PackageDesc = field(default_factory=PackageDesc)
    repository: str = "local"
    deps: List[Dependency] = field(default_factory=list)
    apis: List[str] = field(default_factory=list)           # Exported capabilities
    req_apis: List[str] = field(default_factory=list)       # Required capabilities
    cflags: List[str] = field(default_factory=list)
    lflags: List[str] = field(default_factory=list)
    aflags: List[str] = field(default_factory=list)
    init: Dict[str, int] = field(default_factory=dict)      # Entry point -> stage
    syscfg_defs: Dict[str, SyscfgDef] = field(default_factory=dict)
    syscfg_vals: Dict[str, str] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)     # Unrecognised pkg.* keys
    content_hash: Optional[str] = field(default=None, compare=False, repr=False)

    def set_name(self, name: str):
        self.name = name

    def set_type(self, package_type: PackageType):
        self.type = package_type

    def set_desc(self, desc: PackageDesc):
        self.desc = desc

    def set_vers(self, vers: Version):
        self.vers = vers

    def has_dep(self, dep: Dependency) -> bool:
        return any(str(existing) == str(dep) for existing in self.deps)

    def add_dep(self, dep: Dependency) -> bool:
        """Add a dependency unless an identical one is already declared"""
        if self.has_dep(dep):
            return False
        self.deps.append(dep)
        return True

    def add_api(self, api: str):
        self.apis.append(api)

    def add_req_api(self, api: str):
        self.req_apis.append(api)

    def deps_for_variant(self, variant: Optional[str]) -> List[Dependency]:
        """Dependencies that apply when building the given variant"""
        return [dep for dep in self.deps if dep.applies_to(variant)]

    def variants(self) -> List[str]:
        return sorted({dep.variant for dep in self.deps if dep.variant})
