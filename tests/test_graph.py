"""Tests for the connection graph."""
import pytest

from mirrorpool.errors import InvalidReferenceError, ValidationError
from mirrorpool.graph import ConnectionGraph


@pytest.fixture
def graph(store):
    return ConnectionGraph(store)


@pytest.fixture
def trio(store):
    return [store.create(text) for text in ("first thought", "second thought", "third thought")]


def test_connect_and_neighbors(graph, trio):
    a, b, c = trio
    graph.connect(a.id, b.id, "reflection", 0.5)
    graph.connect(a.id, c.id, "influence", 0.25)
    neighbors = graph.neighbors(a.id)
    assert [(n.target_id, n.type) for n in neighbors] == [(b.id, "reflection"), (c.id, "influence")]
    assert graph.neighbors(b.id) == []
    assert [n.source_id for n in graph.incoming(b.id)] == [a.id]


def test_reconnect_replaces_strength(graph, trio):
    a, b, _ = trio
    graph.connect(a.id, b.id, "reflection", 0.2)
    graph.connect(a.id, b.id, "reflection", 0.9)
    neighbors = graph.neighbors(a.id)
    assert len(neighbors) == 1
    assert neighbors[0].strength == pytest.approx(0.9)
    assert graph.edge_count() == 1


def test_same_pair_different_types_are_distinct(graph, trio):
    a, b, _ = trio
    graph.connect(a.id, b.id, "reflection", 0.4)
    graph.connect(a.id, b.id, "influence", 0.4)
    assert graph.edge_count() == 2
    assert graph.neighbor_ids(a.id) == [b.id]
    assert graph.type_counts() == {"influence": 1, "reflection": 1}


def test_reconnect_keeps_insertion_order(graph, trio):
    a, b, c = trio
    graph.connect(a.id, b.id, "reflection", 0.1)
    graph.connect(a.id, c.id, "reflection", 0.1)
    graph.connect(a.id, b.id, "reflection", 0.8)
    assert graph.neighbor_ids(a.id) == [b.id, c.id]


def test_strength_clamped(graph, trio):
    a, b, c = trio
    assert graph.connect(a.id, b.id, "reflection", 1.7).strength == 1.0
    assert graph.connect(a.id, c.id, "reflection", -0.3).strength == 0.0


def test_unknown_endpoint_rejected(graph, trio):
    a = trio[0]
    with pytest.raises(InvalidReferenceError):
        graph.connect(a.id, "th-missing", "reflection", 0.5)
    with pytest.raises(InvalidReferenceError):
        graph.connect("th-missing", a.id, "reflection", 0.5)
    assert graph.edge_count() == 0


def test_bad_type_and_self_loop_rejected(graph, trio):
    a, b, _ = trio
    with pytest.raises(ValidationError):
        graph.connect(a.id, b.id, "friendship", 0.5)
    with pytest.raises(ValidationError):
        graph.connect(a.id, a.id, "reflection", 0.5)


def test_edges_persist_with_store(tmp_mirrorpool_dir):
    from mirrorpool.sqlite_store import SQLiteStore

    db = tmp_mirrorpool_dir / "graph.db"
    s1 = SQLiteStore(db_path=db)
    a, b = s1.create("alpha thought"), s1.create("beta thought")
    ConnectionGraph(s1).connect(a.id, b.id, "reflection", 0.6)
    s1.close()

    s2 = SQLiteStore(db_path=db)
    assert ConnectionGraph(s2).neighbor_ids(a.id) == [b.id]
    s2.close()
