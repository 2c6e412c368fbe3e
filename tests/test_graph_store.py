"""
Tests for the Graph Store
=========================
Verifies node and connection mutations, cascade deletes, bulk loading and
subscriber notification.
"""

import pytest

from pipeline_mapper.core.exceptions import StructuralError
from pipeline_mapper.infrastructure.config.settings import EditorSettings
from pipeline_mapper.pipeline_graph.graph_store import GraphStore
from pipeline_mapper.pipeline_graph.models import Connection, NodeInstance, Port, Position
from pipeline_mapper.pipeline_graph.node_catalog import DataType, PortDirection


class TestNodeMutations:
    """Test adding, moving, configuring and removing nodes"""

    def test_add_node_generates_sequential_ids(self, store):
        first = store.add_node("read-file", Position(0, 0))
        second = store.add_node("read-file", Position(0, 0))

        assert first.id == "node-1"
        assert second.id == "node-2"
        assert first.outputs[0].id == "node-1-output-0"

    def test_custom_id_prefix(self, registry):
        store = GraphStore(registry, node_id_prefix="step")
        assert store.add_node("read-file", Position(0, 0)).id == "step-1"

    def test_store_from_editor_settings(self, registry):
        store = GraphStore.from_settings(EditorSettings(node_id_prefix="step"), registry)
        node = store.add_node("read-file", Position(0, 0))

        assert store.registry is registry
        assert node.id == "step-1"
        assert node.outputs[0].id == "step-1-output-0"

    def test_add_unknown_type_adds_placeholder(self, store):
        node = store.add_node("mystery", Position(0, 0))
        assert node.is_placeholder
        assert store.get_node(node.id) is node

    def test_move_node(self, store):
        node = store.add_node("read-file", Position(0, 0))
        assert store.move_node(node.id, Position(40, 60))
        assert store.get_node(node.id).position == Position(40, 60)

    def test_update_node_config_is_typed(self, store):
        node = store.add_node("table-output", Position(0, 0))
        assert store.update_node_config(node.id, "maxRows", "50")
        assert store.get_node(node.id).config["maxRows"].value == 50

    def test_updates_replace_instances(self, store):
        node = store.add_node("read-file", Position(0, 0))
        store.update_node_config(node.id, "fileType", "CSV")
        assert "fileType" not in node.config
        assert store.get_node(node.id) is not node

    def test_unknown_node_id_is_a_no_op(self, store):
        store.add_node("read-file", Position(0, 0))
        calls = []
        store.subscribe(calls.append)

        assert not store.move_node("node-99", Position(1, 1))
        assert not store.update_node_config("node-99", "fileType", "CSV")
        assert not store.remove_node("node-99")
        assert calls == []


class TestConnections:
    """Test connection rules"""

    def test_matching_tags_connect(self, store):
        a = store.add_node("read-file", Position(0, 0))
        b = store.add_node("column-selector", Position(0, 0))
        assert store.add_connection(Connection(a.outputs[0].id, b.inputs[0].id))
        assert len(store.connections) == 1

    def test_mismatched_tags_never_mutate(self, abc_store):
        b, c = abc_store.nodes[1], abc_store.nodes[2]
        before = abc_store.connections
        calls = []
        abc_store.subscribe(calls.append)

        assert not abc_store.add_connection(Connection(b.outputs[0].id, c.inputs[0].id))
        assert abc_store.connections == before
        assert calls == []

    def test_duplicate_connection_rejected(self, abc_store):
        existing = abc_store.connections[0]
        assert not abc_store.add_connection(Connection(existing.from_port, existing.to_port))
        assert len(abc_store.connections) == 1

    def test_unresolved_port_rejected(self, store):
        a = store.add_node("read-file", Position(0, 0))
        assert not store.add_connection(Connection(a.outputs[0].id, "node-42-input-0"))

    def test_wrong_direction_rejected(self, store):
        a = store.add_node("column-selector", Position(0, 0))
        b = store.add_node("column-selector", Position(0, 0))
        assert not store.add_connection(Connection(b.inputs[0].id, a.inputs[0].id))

    def test_compatible_input_ports(self, abc_store):
        a = abc_store.nodes[0]
        b = abc_store.nodes[1]
        assert abc_store.compatible_input_ports(a.outputs[0].id) == [b.inputs[0].id]
        assert abc_store.compatible_input_ports(b.outputs[0].id) == []

    def test_remove_connection(self, abc_store):
        connection = abc_store.connections[0]
        assert abc_store.remove_connection(connection)
        assert not abc_store.remove_connection(connection)
        assert abc_store.connections == ()


class TestCascadeDelete:
    """Test that removing a node removes every connection touching it"""

    def test_remove_middle_node(self, store):
        a = store.add_node("read-file", Position(0, 0))
        b = store.add_node("column-selector", Position(0, 0))
        d = store.add_node("data-filter", Position(0, 0))
        store.add_connection(Connection(a.outputs[0].id, b.inputs[0].id))
        store.add_connection(Connection(b.outputs[0].id, d.inputs[0].id))
        assert len(store.connections) == 2

        assert store.remove_node(b.id)

        b_ports = {p.id for p in b.ports}
        assert store.connections == ()
        assert all(c.from_port not in b_ports and c.to_port not in b_ports for c in store.connections)
        assert [n.id for n in store.nodes] == [a.id, d.id]

    def test_owner_of_resolves_ports(self, abc_store):
        b = abc_store.nodes[1]
        assert abc_store.owner_of(b.outputs[0].id).id == b.id
        assert abc_store.owner_of("nowhere") is None


class TestSubscribers:
    """Test snapshot notification"""

    def test_each_mutation_notifies_once(self, store):
        snapshots = []
        store.subscribe(snapshots.append)

        node = store.add_node("read-file", Position(0, 0))
        store.move_node(node.id, Position(5, 5))

        assert len(snapshots) == 2
        assert snapshots[0].nodes[0].position == Position(0, 0)
        assert snapshots[1].get_node(node.id).position == Position(5, 5)

    def test_subscribers_called_in_order(self, store):
        order = []
        store.subscribe(lambda s: order.append("first"))
        store.subscribe(lambda s: order.append("second"))
        store.add_node("read-file", Position(0, 0))
        assert order == ["first", "second"]

    def test_unsubscribe(self, store):
        calls = []
        unsubscribe = store.subscribe(calls.append)
        unsubscribe()
        store.add_node("read-file", Position(0, 0))
        assert calls == []


class TestBulkLoad:
    """Test whole-graph replacement"""

    def test_bulk_load_hydrates_missing_ports(self, store):
        bare = NodeInstance(id="node-5", type="column-selector", position=Position(0, 0))
        store.bulk_load([bare], [])

        loaded = store.get_node("node-5")
        assert [p.id for p in loaded.ports] == ["node-5-input-0", "node-5-output-0"]
        assert loaded.title == "Column Selector"

    def test_bulk_load_collapses_duplicate_connections(self, store, registry):
        a = registry.instantiate("read-file", "node-1", Position(0, 0))
        b = registry.instantiate("column-selector", "node-2", Position(0, 0))
        edge = Connection("node-1-output-0", "node-2-input-0")

        store.bulk_load([a, b], [edge, Connection(edge.from_port, edge.to_port)])
        assert store.connections == (edge,)

    def test_bulk_load_notifies_once(self, store, registry):
        calls = []
        store.subscribe(calls.append)
        store.bulk_load([registry.instantiate("read-file", "node-1", Position(0, 0))], [])
        assert len(calls) == 1

    def test_generated_ids_skip_loaded_ids(self, store, registry):
        store.bulk_load([registry.instantiate("read-file", "node-7", Position(0, 0))], [])
        assert store.add_node("read-file", Position(0, 0)).id == "node-8"

    def test_bulk_load_rejects_shared_port_ids(self, abc_store):
        before = abc_store.snapshot()
        nodes = [
            NodeInstance(id=node_id, type="read-file", position=Position(0, 0),
                         outputs=(Port("shared", DataType.DATAFRAME, "Data", PortDirection.OUTPUT, node_id),))
            for node_id in ("a", "b")
        ]

        with pytest.raises(StructuralError, match="shared"):
            abc_store.bulk_load(nodes, [])
        assert abc_store.snapshot() == before

    def test_clear(self, abc_store):
        abc_store.clear()
        assert not abc_store.has_content()
        assert abc_store.counts() == {"nodes": 0, "connections": 0}
