"""
Utility functions for Firmware Resolver
"""
import hashlib
import os
from typing import Any, Iterable, List

def is_hidden(name: str) -> bool:
    """Check if a directory entry is hidden (dot-prefixed)"""
    return name.startswith('.')

def normalize_string_list(value: Any, field_name: str) -> List[str]:
    """Coerce a descriptor value into a list of non-empty strings.

    A single string is split on whitespace so that flag lists can be
    written either as YAML sequences or as one line.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)):
        result = []
        for item in value:
            if isinstance(item, bool) or not isinstance(item, (str, int, float)):
                raise TypeError(f"{field_name} entries must be strings")
            text = str(item).strip()
            if text:
                result.append(text)
        return result
    raise TypeError(f"{field_name} must be a string or a list of strings")

def hash_directory(base_path: str, ignore_dirs: Iterable[str]) -> str:
    """Hash a directory tree's layout and file contents.

    Entries are visited in sorted order.  Every directory below the root
    contributes its name, every file its name and bytes.  Hidden entries
    and directories named in ignore_dirs are skipped.  Raises OSError if
    anything cannot be read.
    """
    ignored = set(ignore_dirs)
    digest = hashlib.sha256()

    def on_error(error: OSError):
        raise error

    for dir_path, dir_names, file_names in os.walk(base_path, onerror=on_error):
        dir_names[:] = sorted(
            name for name in dir_names
            if name not in ignored and not is_hidden(name)
        )
        if os.path.normpath(dir_path) != os.path.normpath(base_path):
            digest.update(os.path.basename(dir_path).encode('utf-8'))

        for file_name in sorted(file_names):
            if is_hidden(file_name):
                continue
            digest.update(file_name.encode('utf-8'))
            with open(os.path.join(dir_path, file_name), 'rb') as f:
                digest.update(f.read())

    return digest.hexdigest()
