"""
Tests for dependency graph construction, filtering and rendering
"""
import pytest

from firmware_resolver.dependency_graph import (
    DEPENDENCIES,
    DEPENDENTS,
    DependencyGraph,
    DependencyGraphBuilder,
    filter_graph,
    load_from_json,
    reachable,
    render,
    serialize_to_json,
)
from firmware_resolver.exceptions import DependencyGraphError, ResolutionError
from firmware_resolver.package_store import PackageStore
from firmware_resolver.resolver import Resolver

@pytest.fixture
def chain_resolution(tmp_path, make_package):
    make_package("targets/t", "targets/t", pkg_type="target", deps=["libs/a", "libs/b"])
    make_package("libs/a", "libs/a", deps=["libs/c"], apis=["log"])
    make_package("libs/b", "libs/b", req_apis=["log"])
    make_package("libs/c", "libs/c")
    store = PackageStore.discover([tmp_path / "targets", tmp_path / "libs"])
    return Resolver(store).resolve(store.require("targets/t"))

class TestDependencyGraphBuilder:
    """Test forward and reverse graphs"""

    def test_reverse_maps_to_dependencies(self, chain_resolution):
        graph = DependencyGraphBuilder().reverse(chain_resolution)

        assert graph.kind == DEPENDENCIES
        assert graph.edges == {
            "libs/a": ("libs/c",),
            "libs/b": ("libs/a",),
            "libs/c": (),
            "targets/t": ("libs/a", "libs/b"),
        }

    def test_forward_maps_to_dependents(self, chain_resolution):
        graph = DependencyGraphBuilder().forward(chain_resolution)

        assert graph.kind == DEPENDENTS
        assert graph.edges == {
            "libs/a": ("libs/b", "targets/t"),
            "libs/b": ("targets/t",),
            "libs/c": ("libs/a",),
            "targets/t": (),
        }

    def test_render_is_sorted_and_stable(self, chain_resolution):
        builder = DependencyGraphBuilder()

        text = render(builder.reverse(chain_resolution))

        assert text == (
            "libs/a: [libs/c]\n"
            "libs/b: [libs/a]\n"
            "libs/c: []\n"
            "targets/t: [libs/a libs/b]"
        )
        assert render(builder.reverse(chain_resolution)) == text

    def test_invalid_resolution_is_refused(self, tmp_path, make_package):
        make_package("targets/t", "targets/t", pkg_type="target", deps=["libs/missing"])
        store = PackageStore.discover([tmp_path / "targets"])
        res = Resolver(store).resolve(store.require("targets/t"))

        with pytest.raises(ResolutionError):
            DependencyGraphBuilder().forward(res)

class TestGraphQueries:
    """Test filtering, traversal and serialization"""

    def test_filter_reports_missing_names(self, chain_resolution):
        graph = DependencyGraphBuilder().reverse(chain_resolution)

        filtered, missing = filter_graph(graph, ["libs/b", "libs/nope", "targets/t", "libs/nope"])

        assert filtered.nodes() == ["libs/b", "targets/t"]
        assert filtered.neighbors("targets/t") == ("libs/a", "libs/b")
        assert missing == ["libs/nope"]

    def test_filter_to_only_missing_names(self, chain_resolution):
        graph = DependencyGraphBuilder().reverse(chain_resolution)

        filtered, missing = filter_graph(graph, ["other"])

        assert len(filtered) == 0
        assert missing == ["other"]
        assert render(filtered) == ""

    def test_reachable(self, chain_resolution):
        graph = DependencyGraphBuilder().reverse(chain_resolution)

        assert reachable(graph, "targets/t") == ["libs/a", "libs/b", "libs/c"]
        assert reachable(graph, "libs/c") == []
        with pytest.raises(DependencyGraphError):
            reachable(graph, "unknown")

    def test_json_round_trip(self, chain_resolution, tmp_path):
        graph = DependencyGraphBuilder().forward(chain_resolution)
        path = tmp_path / "graph.json"

        serialize_to_json(graph, str(path))
        loaded = load_from_json(str(path))

        assert isinstance(loaded, DependencyGraph)
        assert loaded == graph

    def test_load_malformed_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"edges": {}}')

        with pytest.raises(DependencyGraphError):
            load_from_json(str(path))
