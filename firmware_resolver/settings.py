"""
Settings - Environment driven configuration for the resolver
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_SEARCH_PATHS = ["apps", "hw", "kernel", "libs", "sys", "targets", "test"]
DEFAULT_HASH_IGNORE_DIRS = ["obj", "bin"]

@dataclass
class ResolverSettings:
    """Paths and knobs shared by the store, the builder and the cache"""
    project_root: str = "."
    search_paths: List[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_PATHS))
    hash_ignore_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_HASH_IGNORE_DIRS))
    generated_dir: str = "bin/generated/src"
    cache_dir: str = "~/.firmware_resolver/cache"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ResolverSettings":
        """Build settings from the process environment.

        Values from a .env file are loaded first (without overriding
        variables that are already set).
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        settings = cls()

        project_root = os.getenv("FWRES_PROJECT_ROOT")
        if project_root:
            settings.project_root = project_root

        search_paths = os.getenv("FWRES_SEARCH_PATHS")
        if search_paths:
            settings.search_paths = [p for p in search_paths.split(os.pathsep) if p]

        ignore_dirs = os.getenv("FWRES_HASH_IGNORE_DIRS")
        if ignore_dirs:
            settings.hash_ignore_dirs = [d.strip() for d in ignore_dirs.split(',') if d.strip()]

        generated_dir = os.getenv("FWRES_GENERATED_DIR")
        if generated_dir:
            settings.generated_dir = generated_dir

        cache_dir = os.getenv("FWRES_CACHE_DIR")
        if cache_dir:
            settings.cache_dir = cache_dir

        return settings

    def search_roots(self) -> List[Path]:
        """Absolute search roots for package discovery"""
        root = Path(self.project_root).expanduser().resolve()
        return [root / path for path in self.search_paths]

    def generated_src_dir(self) -> Path:
        """Directory receiving generated sources"""
        path = Path(self.generated_dir).expanduser()
        if path.is_absolute():
            return path
        return Path(self.project_root).expanduser().resolve() / path
