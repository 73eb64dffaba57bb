"""
Sysinit - Generates the stage-ordered package initialization source

Each package declares entry points with a numeric stage.  The generated
function calls every stage-N entry point before any stage-(N+1) one, and
the output is only written to disk when its bytes actually change so that
a no-op regeneration does not trigger a rebuild.
"""
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List

from .exceptions import CodegenError
from .package import Package

logger = logging.getLogger(__name__)

GENERATED_PREAMBLE = (
    "/**\n"
    " * This file was generated by firmware_resolver.  Do not edit.\n"
    " */\n\n"
)

@dataclass(frozen=True)
class InitFunc:
    """An initialization entry point registered by a package"""
    stage: int
    name: str
    package: Package

def build_stage_map(packages: Iterable[Package]) -> Dict[int, List[InitFunc]]:
    """Group entry points by stage, keeping the given package order"""
    stage_map: Dict[int, List[InitFunc]] = {}
    for package in packages:
        for name in sorted(package.init):
            stage = package.init[name]
            stage_map.setdefault(stage, []).append(InitFunc(stage, name, package))
    return stage_map

def find_duplicate_entry_points(stage_map: Dict[int, List[InitFunc]]) -> List[str]:
    """Describe entry point names registered more than once"""
    owners: Dict[str, List[InitFunc]] = {}
    for stage in sorted(stage_map):
        for init_func in stage_map[stage]:
            owners.setdefault(init_func.name, []).append(init_func)

    warnings = []
    for name in sorted(owners):
        funcs = owners[name]
        if len(funcs) > 1:
            where = ', '.join(f"{f.package.name} (stage {f.stage})" for f in funcs)
            warnings.append(f"Init function {name} registered more than once: {where}")
    return warnings

def _write_prototypes(packages: Iterable[Package], w: io.StringIO):
    for package in sorted(packages, key=lambda p: p.name):
        for name in sorted(package.init):
            w.write(f"void {name}(void);\n")

def _write_stage(stage: int, init_funcs: List[InitFunc], w: io.StringIO):
    w.write(f"    /*** Stage {stage} */\n")
    for i, init_func in enumerate(init_funcs):
        w.write(f"    /* {stage}.{i}: {init_func.package.name} */\n")
        w.write(f"    {init_func.name}();\n")

def generate(packages: Iterable[Package], is_loader: bool) -> bytes:
    """Render the sysinit source for the loader or application image"""
    packages = list(packages)
    stage_map = build_stage_map(packages)

    for warning in find_duplicate_entry_points(stage_map):
        logger.warning(warning)

    w = io.StringIO()
    w.write(GENERATED_PREAMBLE)
    if is_loader:
        w.write("#if SPLIT_LOADER\n\n")
        fn_name = "sysinit_loader"
    else:
        w.write("#if !SPLIT_LOADER\n\n")
        fn_name = "sysinit_app"

    _write_prototypes(packages, w)

    w.write("\n")
    w.write(f"void\n{fn_name}(void)\n{{\n")
    for stage in sorted(stage_map):
        w.write("\n")
        _write_stage(stage, stage_map[stage], w)
    w.write("}\n\n")
    w.write("#endif\n")

    return w.getvalue().encode('utf-8')

def write_required(contents: bytes, path: str) -> bool:
    """Check whether path differs from contents (a missing file differs)"""
    try:
        with open(path, 'rb') as f:
            old_contents = f.read()
    except FileNotFoundError:
        return True
    except OSError as e:
        raise CodegenError(str(path), f"could not read existing file: {e}") from e
    return old_contents != contents

def ensure_written(contents: bytes, path: str) -> bool:
    """Write contents to path unless the file already holds them.

    Returns True if the file was written.
    """
    if not write_required(contents, path):
        logger.debug(f"sysinit unchanged; not writing src file ({path}).")
        return False

    logger.debug(f"sysinit changed; writing src file ({path}).")
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'wb') as f:
            f.write(contents)
    except OSError as e:
        raise CodegenError(str(path), str(e)) from e
    return True

def sysinit_path(src_dir: str, target_name: str, is_loader: bool) -> Path:
    """Location of the generated file for a target"""
    short_name = target_name.rstrip('/').split('/')[-1]
    suffix = "loader" if is_loader else "app"
    return Path(src_dir) / f"{short_name}-sysinit-{suffix}.c"

def write_sysinit(packages: Iterable[Package], src_dir: str, target_name: str,
                  is_loader: bool) -> bool:
    path = sysinit_path(src_dir, target_name, is_loader)
    return ensure_written(generate(packages, is_loader), str(path))
