"""
Tests for the Graph Serializer
==============================
Verifies shape detection, structural checks, normalization, export of both
wire shapes and the round-trip contract.
"""

import json

import pytest

from pipeline_mapper.core.exceptions import StructuralError
from pipeline_mapper.pipeline_graph.graph_store import GraphStore
from pipeline_mapper.pipeline_graph.models import Connection, Position
from pipeline_mapper.pipeline_graph.node_catalog import DataType
from pipeline_mapper.pipeline_graph.serializer import (
    ExportMetadata,
    GraphSerializer,
    WireShape,
    coerce_position,
    detect_shape,
    get_mapping_metadata,
    mapping_filename,
)


def _mapping(nodes=None, connections=None, **metadata):
    return {
        "version": "1.0.0",
        "metadata": {"name": "test", **metadata},
        "nodes": nodes or [],
        "connections": connections or []
    }


def _graph_signature(store):
    """Ids, types, configs and connection endpoints; positions excluded."""
    nodes = [(n.id, n.type, n.raw_config(), [p.id for p in n.ports]) for n in store.nodes]
    connections = [(c.from_port, c.to_port) for c in store.connections]
    return nodes, connections


class TestDetectShape:
    """Test wire shape discrimination"""

    def test_mapping(self):
        assert detect_shape(_mapping()) == WireShape.MAPPING

    def test_pipeline(self):
        raw = {"id": "p", "name": "Pipeline", "nodes": [], "connections": []}
        assert detect_shape(raw) == WireShape.PIPELINE

    @pytest.mark.parametrize("raw", [
        [],
        "text",
        {"nodes": [], "connections": []},
        {"name": "p", "nodes": {}, "connections": []},
        {"metadata": {}, "name": "p", "nodes": [], "connections": []},
    ])
    def test_unrecognized(self, raw):
        with pytest.raises(StructuralError):
            detect_shape(raw)


class TestStructuralChecks:
    """Test that malformed documents are rejected before any mutation"""

    def setup_method(self):
        self.serializer = GraphSerializer()

    def test_nodes_must_be_array(self):
        raw = _mapping()
        raw["nodes"] = {"id": "x"}
        with pytest.raises(StructuralError) as exc_info:
            self.serializer.parse(raw)
        assert exc_info.value.path == "nodes"

    def test_node_id_path(self):
        nodes = [{"id": f"node-{i}", "type": "read-file"} for i in range(3)]
        nodes.append({"type": "read-file"})
        with pytest.raises(StructuralError) as exc_info:
            self.serializer.parse(_mapping(nodes))
        assert exc_info.value.path == "nodes[3].id"
        assert str(exc_info.value).startswith("nodes[3].id:")

    def test_duplicate_node_ids(self):
        nodes = [{"id": "node-1", "type": "read-file"}, {"id": "node-1", "type": "read-file"}]
        with pytest.raises(StructuralError, match="duplicate"):
            self.serializer.parse(_mapping(nodes))

    def test_duplicate_port_ids_across_nodes(self, abc_store):
        shared = [{"id": "shared", "color": "nord-blue", "label": "Data"}]
        nodes = [
            {"id": "a", "type": "read-file", "outputs": shared},
            {"id": "b", "type": "read-file", "outputs": shared},
        ]
        before = abc_store.snapshot()

        with pytest.raises(StructuralError) as exc_info:
            self.serializer.import_document(_mapping(nodes), abc_store)

        assert exc_info.value.path == "nodes[1].outputs[0].id"
        assert "shared" in str(exc_info.value)
        assert abc_store.snapshot() == before

    def test_mapping_connection_endpoints(self):
        raw = _mapping([{"id": "node-1", "type": "read-file"}], [{"from": "node-1-output-0"}])
        with pytest.raises(StructuralError) as exc_info:
            self.serializer.parse(raw)
        assert exc_info.value.path == "connections[0].to"

    def test_pipeline_connection_endpoints(self):
        raw = {"name": "p", "nodes": [], "connections": [{"from": "a", "to": "b"}]}
        with pytest.raises(StructuralError) as exc_info:
            self.serializer.parse(raw)
        assert exc_info.value.path == "connections[0].fromPortId"

    def test_failed_import_leaves_store_untouched(self, abc_store):
        before = abc_store.snapshot()
        calls = []
        abc_store.subscribe(calls.append)

        with pytest.raises(StructuralError):
            self.serializer.import_document({"nodes": "nope"}, abc_store)

        assert abc_store.snapshot() == before
        assert calls == []

    def test_invalid_json_text(self):
        with pytest.raises(StructuralError, match="Invalid JSON"):
            GraphSerializer.loads("{not json")


class TestNormalization:
    """Test import-time normalization"""

    def setup_method(self):
        self.serializer = GraphSerializer()

    def test_position_defaults_and_clamping(self):
        assert coerce_position(None) == Position(100, 100)
        assert coerce_position({"x": "abc", "y": 20}) == Position(100, 20)
        assert coerce_position({"x": -50, "y": 20000}) == Position(0, 10000)
        assert coerce_position({"x": "250", "y": 30.5}) == Position(250, 30.5)
        assert coerce_position({"x": True, "y": 1}) == Position(100, 1)

    def test_missing_ports_are_rehydrated(self):
        document = self.serializer.parse(_mapping([{"id": "node-4", "type": "column-selector"}]))
        node = document.nodes[0]
        assert [p.id for p in node.inputs] == ["node-4-input-0"]
        assert node.outputs[0].data_type == DataType.SERIES
        assert node.position == Position(100, 100)

    def test_unknown_type_becomes_placeholder(self):
        document = self.serializer.parse(_mapping([{"id": "node-1", "type": "warp-drive"}]))
        assert document.nodes[0].is_placeholder
        assert document.nodes[0].type == "warp-drive"

    def test_pipeline_ports_use_display_names(self):
        raw = {
            "name": "p",
            "nodes": [{
                "id": "node-1",
                "type": "read-file",
                "outputs": [{"id": "node-1-output-0", "name": "Raw Data", "dataType": "Hologram"}]
            }],
            "connections": []
        }
        port = self.serializer.parse(raw).nodes[0].outputs[0]
        assert port.data_type == DataType.UNKNOWN
        assert port.label == "Raw Data"

    def test_mapping_ports_use_colour_tags(self):
        raw = _mapping([{
            "id": "node-1",
            "type": "read-file",
            "outputs": [{"id": "node-1-output-0", "color": "nord-blue", "label": "Raw Data"}]
        }])
        assert self.serializer.parse(raw).nodes[0].outputs[0].data_type == DataType.DATAFRAME

    def test_config_is_typed_on_import(self):
        raw = _mapping([{"id": "node-1", "type": "table-output", "config": {"maxRows": "10"}}])
        assert self.serializer.parse(raw).nodes[0].config["maxRows"].value == 10


class TestExport:
    """Test both export shapes"""

    def setup_method(self):
        self.serializer = GraphSerializer()

    def test_mapping_shape(self, abc_store):
        document = self.serializer.export_store(abc_store, ExportMetadata(name="demo"))

        assert document["metadata"]["name"] == "demo"
        assert document["version"] == "1.0.0"
        assert document["connections"] == [{"from": "node-1-output-0", "to": "node-2-input-0"}]
        node = document["nodes"][0]
        assert node["outputs"] == [{"id": "node-1-output-0", "color": "nord-blue", "label": "Raw Data"}]
        assert node["content"]["title"] == "Read File"

    def test_mapping_content_carries_type_flags(self, core_pipeline):
        core_nodes = self.serializer.export_store(core_pipeline)["nodes"]
        contents = {node["type"]: node["content"] for node in core_nodes}

        assert contents["core-metamodel"]["displayOnly"] is True
        assert contents["core-metamodel"]["status"] == "Ready to construct"
        assert contents["table-output"]["displayOnly"] is True
        assert "status" not in contents["table-output"]
        assert set(contents["iot-event"]) == {"title", "description"}

    def test_mapping_content_marks_file_upload(self, registry):
        node = registry.instantiate("read-file", "node-1", Position(0, 0))
        content = self.serializer.export([node], [])["nodes"][0]["content"]
        assert content == {"title": "Read File", "description": node.description, "hasFileUpload": True}

    def test_mapping_default_name(self, store):
        document = self.serializer.export_store(store)
        assert document["metadata"]["name"].startswith("mapping_")
        assert len(document["metadata"]["name"]) == len("mapping_YYYY-MM-DD")

    def test_pipeline_shape(self, abc_store):
        document = self.serializer.export_store(abc_store, shape=WireShape.PIPELINE)

        assert "metadata" not in document
        assert document["id"].startswith("pipeline-")
        assert document["connections"] == [{
            "id": "connection-0",
            "fromNodeId": "node-1",
            "fromPortId": "node-1-output-0",
            "toNodeId": "node-2",
            "toPortId": "node-2-input-0",
            "dataType": "DataFrame"
        }]
        assert document["nodes"][1]["inputs"] == [
            {"id": "node-2-input-0", "name": "Raw Data", "dataType": "DataFrame"}
        ]
        assert document["executionOrder"] == ["node-1", "node-2", "node-3"]

    def test_pipeline_without_order_when_cyclic(self, store):
        f1 = store.add_node("data-filter", Position(0, 0))
        f2 = store.add_node("data-mapper", Position(0, 0))
        store.add_connection(Connection(f1.outputs[0].id, f2.inputs[0].id))
        store.add_connection(Connection(f2.outputs[0].id, f1.inputs[0].id))

        document = self.serializer.export_store(store, shape=WireShape.PIPELINE)
        assert "executionOrder" not in document

    def test_unresolved_connection_data_type(self, registry):
        node = registry.instantiate("read-file", "node-1", Position(0, 0))
        document = self.serializer.export(
            [node], [Connection("node-9-output-0", "node-1-input-0")], shape=WireShape.PIPELINE
        )
        connection = document["connections"][0]
        assert connection["dataType"] == "Unknown"
        assert connection["fromNodeId"] == "node-9"


class TestRoundTrip:
    """Test that export followed by import reproduces the graph"""

    def setup_method(self):
        self.serializer = GraphSerializer()

    @pytest.mark.parametrize("shape", [WireShape.MAPPING, WireShape.PIPELINE])
    def test_round_trip(self, core_pipeline, shape):
        core_pipeline.update_node_config("node-4", "maxRows", 25)
        core_pipeline.add_node("mystery", Position(20000, -5))
        exported = self.serializer.export_store(core_pipeline, ExportMetadata(name="rt"), shape)

        target = GraphStore(core_pipeline.registry)
        self.serializer.import_document(json.loads(self.serializer.dumps(exported)), target)

        assert _graph_signature(target) == _graph_signature(core_pipeline)
        for original, loaded in zip(core_pipeline.nodes, target.nodes):
            assert loaded.position == coerce_position(original.position.to_dict())
            assert [p.data_type for p in loaded.ports] == [p.data_type for p in original.ports]

    def test_file_round_trip(self, core_pipeline, tmp_path):
        path = tmp_path / "demo_mapping.json"
        document = self.serializer.export_store(core_pipeline, ExportMetadata(name="demo"))
        self.serializer.save_to_file(document, str(path))

        target = GraphStore(core_pipeline.registry)
        parsed = self.serializer.load_from_file(str(path), target)

        assert parsed.shape == WireShape.MAPPING
        assert parsed.metadata["name"] == "demo"
        assert _graph_signature(target) == _graph_signature(core_pipeline)


class TestHelpers:
    """Test file name and metadata helpers"""

    def test_mapping_filename(self):
        assert mapping_filename("My Mapping v2!") == "My_Mapping_v2__mapping.json"

    def test_get_mapping_metadata(self):
        text = json.dumps(_mapping(description="d"))
        assert get_mapping_metadata(text) == {"name": "test", "description": "d"}
        assert get_mapping_metadata("not json") is None
        assert get_mapping_metadata("[1, 2]") is None
