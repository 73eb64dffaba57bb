"""
Tests for the target builder, the hash cache and settings
"""
import os

import pytest

from firmware_resolver import syscfg
from firmware_resolver.cache_manager import CacheManager
from firmware_resolver.dependency_graph import DEPENDENCIES, DEPENDENTS, render
from firmware_resolver.exceptions import (
    CacheError,
    DependencyGraphError,
    PackageNotFoundError,
    ResolutionError,
)
from firmware_resolver.package_store import PackageStore
from firmware_resolver.settings import ResolverSettings
from firmware_resolver.target_builder import TargetBuilder

@pytest.fixture
def settings(log_project, tmp_path):
    return ResolverSettings(
        project_root=str(log_project),
        search_paths=["targets", "libs"],
        generated_dir="bin/generated/src",
        cache_dir=str(tmp_path / "cache"),
    )

@pytest.fixture
def builder(settings):
    store = PackageStore.discover(settings=settings)
    return TargetBuilder(store, "targets/t", settings)

class TestTargetBuilder:
    """Test the end-to-end flow for one target"""

    def test_unknown_target(self, settings):
        store = PackageStore.discover(settings=settings)

        with pytest.raises(PackageNotFoundError):
            TargetBuilder(store, "targets/none", settings)

    def test_resolve_is_cached(self, builder):
        assert builder.resolve() is builder.resolve()

    def test_config_report(self, builder):
        report = builder.config_report()

        assert report.startswith("Syscfg for targets/t:\n")
        assert "* PACKAGE: libs/a" in report
        assert "    * Overridden: libs/b, default=1" in report

    def test_graphs(self, builder):
        assert builder.dep_graph().kind == DEPENDENCIES
        assert builder.revdep_graph().kind == DEPENDENTS
        assert render(builder.dep_graph()) == (
            "libs/a: []\n"
            "libs/b: [libs/a]\n"
            "targets/t: [libs/a libs/b]"
        )

    def test_filtered_graph_warns_about_missing(self, builder, caplog):
        with caplog.at_level("WARNING", logger="firmware_resolver.target_builder"):
            graph, missing = builder.filtered_graph(DEPENDENTS, ["libs/a", "libs/zzz"])

        assert graph.nodes() == ["libs/a"]
        assert missing == ["libs/zzz"]
        assert 'Package "libs/zzz" not included in target "targets/t"' in caplog.text

    def test_filtered_graph_unknown_kind(self, builder):
        with pytest.raises(DependencyGraphError):
            builder.filtered_graph("sideways", [])

    def test_write_sysinit_is_idempotent(self, builder, settings):
        path, changed = builder.write_sysinit(is_loader=False)

        assert changed
        assert path == settings.generated_src_dir() / "t-sysinit-app.c"
        text = path.read_text()
        assert text.index("a_init();") < text.index("b_init();")

        path_again, changed_again = builder.write_sysinit(is_loader=False)
        assert path_again == path
        assert not changed_again

    def test_export_config_round_trip(self, builder, tmp_path):
        exported = builder.export_config(str(tmp_path / "export" / "syscfg.yml"))

        cfg = builder.config()
        seeded = builder.config(syscfg.load_overrides(str(exported)))

        assert seeded.values() == cfg.values()

    def test_invalid_target_blocks_later_stages(self, tmp_path, make_package):
        make_package("targets/bad", "targets/bad", pkg_type="target", deps=["libs/c"])
        make_package("libs/c", "libs/c", req_apis=["radio"], init={"c_init": 1})
        store = PackageStore.discover([tmp_path / "targets", tmp_path / "libs"])
        builder = TargetBuilder(store, "targets/bad")

        assert not builder.resolve().ok
        with pytest.raises(ResolutionError):
            builder.config()
        with pytest.raises(ResolutionError):
            builder.dep_graph()
        with pytest.raises(ResolutionError):
            builder.write_sysinit(is_loader=False, src_dir=str(tmp_path / "gen"))
        assert not (tmp_path / "gen").exists()

    def test_changed_packages(self, builder, log_project, tmp_path):
        cache = CacheManager(str(tmp_path / "cache"))

        assert builder.changed_packages(cache, record=True) == ["libs/a", "libs/b", "targets/t"]

        store = PackageStore.discover(settings=builder.settings)
        fresh = TargetBuilder(store, "targets/t", builder.settings)
        assert fresh.changed_packages(cache) == []

        (log_project / "libs" / "b" / "b.c").write_text("void b_init(void) {}\n")
        store = PackageStore.discover(settings=builder.settings)
        edited = TargetBuilder(store, "targets/t", builder.settings)
        assert edited.changed_packages(cache) == ["libs/b"]

class TestCacheManager:
    """Test the package hash cache"""

    def test_cache_stats_and_clear(self, builder, tmp_path):
        cache = CacheManager(str(tmp_path / "cache"))
        builder.changed_packages(cache, record=True)

        stats = cache.get_cache_stats()
        assert stats['file_count'] == 1
        assert cache.load_hashes("targets/t") is not None

        cache.clear_cache()
        assert cache.load_hashes("targets/t") is None

    def test_corrupt_cache_file_is_ignored(self, tmp_path):
        cache = CacheManager(str(tmp_path / "cache"))
        cache._get_cache_path("targets/t").write_text("{not json")

        assert cache.load_hashes("targets/t") is None

    def test_similar_target_names_use_separate_files(self, tmp_path):
        cache = CacheManager(str(tmp_path / "cache"))
        store = PackageStore({})

        cache.store_hashes("targets/t", store, [])
        cache.store_hashes("targets__t", store, [])

        assert cache._get_cache_path("targets/t") != cache._get_cache_path("targets__t")
        assert cache.get_cache_stats()['file_count'] == 2

    def test_write_failure_raises_cache_error(self, tmp_path):
        cache = CacheManager(str(tmp_path / "cache"))
        cache._get_cache_path("targets/t").mkdir()

        with pytest.raises(CacheError) as exc_info:
            cache.store_hashes("targets/t", PackageStore({}), [])
        assert exc_info.value.path == str(cache._get_cache_path("targets/t"))

class TestSettings:
    """Test environment-driven settings"""

    def test_defaults(self):
        settings = ResolverSettings()

        assert settings.hash_ignore_dirs == ["obj", "bin"]
        assert "targets" in settings.search_paths

    def test_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FWRES_PROJECT_ROOT", str(tmp_path))
        monkeypatch.setenv("FWRES_SEARCH_PATHS", os.pathsep.join(["apps", "", "hw"]))
        monkeypatch.setenv("FWRES_HASH_IGNORE_DIRS", "obj, bin ,build")
        monkeypatch.setenv("FWRES_GENERATED_DIR", "out/gen")
        monkeypatch.setenv("FWRES_CACHE_DIR", str(tmp_path / "cache"))

        settings = ResolverSettings.from_env(str(tmp_path / "missing.env"))

        assert settings.project_root == str(tmp_path)
        assert settings.search_paths == ["apps", "hw"]
        assert settings.hash_ignore_dirs == ["obj", "bin", "build"]
        assert settings.cache_dir == str(tmp_path / "cache")
        assert settings.generated_src_dir() == tmp_path.resolve() / "out" / "gen"
        assert settings.search_roots()[0] == tmp_path.resolve() / "apps"

    def test_env_file_does_not_override_environment(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("FWRES_GENERATED_DIR=from/file\nFWRES_CACHE_DIR=file/cache\n")
        monkeypatch.setenv("FWRES_GENERATED_DIR", "from/env")
        # registered so the value loaded from the file is removed afterwards
        monkeypatch.setenv("FWRES_CACHE_DIR", "unset")
        monkeypatch.delenv("FWRES_CACHE_DIR")

        settings = ResolverSettings.from_env(str(env_file))

        assert settings.generated_dir == "from/env"
        assert settings.cache_dir == "file/cache"
