"""
Cache Manager - Remembers package content hashes between builds
"""
import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import CacheError
from .package import Package
from .package_store import PackageStore

logger = logging.getLogger(__name__)

class CacheManager:
    """Tracks which packages changed since a target was last built"""

    def __init__(self, cache_dir: str = "~/.firmware_resolver/cache"):
        self.cache_dir = Path(cache_dir).expanduser()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _get_cache_key(self, target_name: str) -> str:
        """Generate cache key for a target name"""
        return hashlib.sha256(target_name.encode('utf-8')).hexdigest()

    def _get_cache_path(self, target_name: str) -> Path:
        """Get cache file path for a target"""
        return self.cache_dir / f"{self._get_cache_key(target_name)}.json"

    def load_hashes(self, target_name: str) -> Optional[Dict[str, str]]:
        """Package hashes recorded by the last build of a target"""
        cache_path = self._get_cache_path(target_name)
        if not cache_path.exists():
            return None

        try:
            with open(cache_path, 'r', encoding='utf-8') as f:
                cache_data = json.load(f)
            return dict(cache_data['hashes'])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.debug(f"Ignoring unreadable cache file {cache_path}")
            return None

    def changed_packages(self, target_name: str, store: PackageStore,
                         packages: Iterable[Package]) -> List[str]:
        """Names of packages whose content differs from the last recorded build"""
        recorded = self.load_hashes(target_name) or {}
        changed = []
        for package in packages:
            if recorded.get(package.name) != store.hash(package):
                changed.append(package.name)
        return sorted(changed)

    def store_hashes(self, target_name: str, store: PackageStore,
                     packages: Iterable[Package]):
        """Record current package hashes for a target"""
        cache_data = {
            'timestamp': datetime.now().isoformat(),
            'target': target_name,
            'hashes': {package.name: store.hash(package) for package in packages},
        }

        cache_path = self._get_cache_path(target_name)
        try:
            with open(cache_path, 'w', encoding='utf-8') as f:
                json.dump(cache_data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise CacheError(str(cache_path), f"could not write cache file: {e}") from e

    def clear_cache(self):
        """Clear all cached data"""
        for cache_file in self.cache_dir.glob("*.json"):
            cache_file.unlink()

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        cache_files = list(self.cache_dir.glob("*.json"))
        total_size = sum(f.stat().st_size for f in cache_files)

        return {
            'cache_dir': str(self.cache_dir),
            'file_count': len(cache_files),
            'total_size_mb': total_size / (1024 * 1024),
        }
