"""
Shared fixtures for Firmware Resolver tests
"""
from pathlib import Path

import pytest
import yaml

def write_package(root: Path, rel_dir: str, name: str, pkg_type: str = "lib",
                  deps=None, apis=None, req_apis=None, init=None,
                  defs=None, vals=None, extra=None) -> Path:
    """Create a package directory with pkg.yml (and syscfg.yml if needed)"""
    package_dir = root / rel_dir
    package_dir.mkdir(parents=True, exist_ok=True)

    descriptor = {"pkg.name": name, "pkg.type": pkg_type, "pkg.vers": "1.0.0"}
    if deps:
        descriptor["pkg.deps"] = list(deps)
    if apis:
        descriptor["pkg.apis"] = list(apis)
    if req_apis:
        descriptor["pkg.req_apis"] = list(req_apis)
    if init:
        descriptor["pkg.init"] = dict(init)
    if extra:
        descriptor.update(extra)
    (package_dir / "pkg.yml").write_text(yaml.safe_dump(descriptor, sort_keys=False))

    if defs or vals:
        syscfg_data = {}
        if defs:
            syscfg_data["syscfg.defs"] = defs
        if vals:
            syscfg_data["syscfg.vals"] = vals
        (package_dir / "syscfg.yml").write_text(yaml.safe_dump(syscfg_data, sort_keys=False))

    return package_dir

@pytest.fixture
def make_package(tmp_path):
    """Write a package below the temporary project root"""
    def _make(rel_dir: str, name: str, **kwargs) -> Path:
        return write_package(tmp_path, rel_dir, name, **kwargs)
    return _make

@pytest.fixture
def log_project(tmp_path, make_package):
    """Target T depends on A and B; A exports 'log', B requires it"""
    make_package("targets/t", "targets/t", pkg_type="target",
                 deps=["libs/a", "libs/b"])
    make_package("libs/a", "libs/a", apis=["log"], init={"a_init": 10},
                 defs={"LOG_LEVEL": {"description": "Log verbosity", "value": 1}})
    make_package("libs/b", "libs/b", req_apis=["log"], init={"b_init": 20},
                 vals={"LOG_LEVEL": 3})
    return tmp_path
