#!/usr/bin/env python3
"""
Pipeline Graph Serializer
=========================

Handles serialization and deserialization of pipeline graphs to/from JSON.

Two wire shapes exist side by side:

* mapping  - ``{version, metadata: {name, ...}, nodes, connections: [{from, to}]}``,
  written by the editor's save/load toolbar;
* pipeline - ``{id, name, version, createdAt, nodes, connections: [{fromPortId, ...}]}``,
  sent to the execution backend.

The shape is detected once on import and the payload is normalized into the
internal model before anything touches the graph store.
"""

import json
import math
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Any, Optional, Sequence

from ..core.exceptions import CyclicGraphError, StructuralError
from ..core.logger import get_logger
from .execution_order import build_port_owner_index, compute_execution_order
from .graph_store import GraphStore
from .models import Connection, NodeInstance, Port, Position
from .node_catalog import DataType, PortDirection
from .registry import NodeRegistry

logger = get_logger(__name__)

DEFAULT_POSITION = Position(100.0, 100.0)
POSITION_MIN = 0.0
POSITION_MAX = 10000.0
DEFAULT_VERSION = "1.0.0"

_PORT_SUFFIX = re.compile(r"^(?P<node_id>.+)-(?:input|output)-\d+$")


class WireShape(Enum):
    """Supported JSON document shapes."""
    MAPPING = "mapping"
    PIPELINE = "pipeline"


@dataclass
class ExportMetadata:
    """Document-level fields written on export. Unset fields get generated defaults."""
    name: Optional[str] = None
    description: str = ""
    pipeline_id: Optional[str] = None
    version: str = DEFAULT_VERSION
    created_at: Optional[str] = None
    modified_at: Optional[str] = None


@dataclass
class ParsedDocument:
    """A payload normalized to the internal model."""
    shape: WireShape
    nodes: List[NodeInstance]
    connections: List[Connection]
    metadata: Dict[str, Any] = field(default_factory=dict)


def utc_now_iso() -> str:
    """Current UTC time as ``2024-01-31T12:00:00.000Z``."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def detect_shape(raw: Any) -> WireShape:
    """
    Decide which wire shape ``raw`` is.

    ``metadata.name`` marks a mapping; a top-level ``name`` with ``nodes`` and
    ``connections`` arrays and no ``metadata`` marks a pipeline.

    Raises:
        StructuralError: If the payload matches neither shape
    """
    if not isinstance(raw, dict):
        raise StructuralError("Document must be a JSON object")

    metadata = raw.get("metadata")
    if isinstance(metadata, dict) and "name" in metadata:
        return WireShape.MAPPING

    if "metadata" not in raw and "name" in raw \
            and isinstance(raw.get("nodes"), list) and isinstance(raw.get("connections"), list):
        return WireShape.PIPELINE

    raise StructuralError("Document is neither a mapping nor a pipeline definition")


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _clamp(value: float) -> float:
    return min(max(value, POSITION_MIN), POSITION_MAX)


def coerce_position(raw: Any) -> Position:
    """Numeric, clamped position; missing or non-numeric axes fall back to the default."""
    if not isinstance(raw, dict):
        return DEFAULT_POSITION

    x = _to_number(raw.get("x"))
    y = _to_number(raw.get("y"))
    return Position(
        x=_clamp(DEFAULT_POSITION.x if x is None else x),
        y=_clamp(DEFAULT_POSITION.y if y is None else y),
    )


def mapping_filename(name: str) -> str:
    """File name the editor uses when downloading a mapping."""
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', name)}_mapping.json"


def get_mapping_metadata(json_str: str) -> Optional[Dict[str, Any]]:
    """Read ``metadata`` from a mapping document without importing it."""
    try:
        document = json.loads(json_str)
    except (TypeError, ValueError):
        return None
    if not isinstance(document, dict):
        return None
    metadata = document.get("metadata")
    return metadata if isinstance(metadata, dict) else None


class GraphSerializer:
    """Converts between the graph store and both wire shapes."""

    def __init__(self, registry: Optional[NodeRegistry] = None):
        self.registry = registry or NodeRegistry()

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def parse(self, raw: Any) -> ParsedDocument:
        """
        Validate the document structure and normalize it.

        Nothing is mutated here; a StructuralError leaves every store as it was.
        """
        shape = detect_shape(raw)

        if not isinstance(raw.get("nodes"), list):
            raise StructuralError("'nodes' must be an array", "nodes")
        if not isinstance(raw.get("connections"), list):
            raise StructuralError("'connections' must be an array", "connections")

        if shape == WireShape.MAPPING:
            metadata = dict(raw["metadata"])
            if not isinstance(metadata.get("name"), str):
                raise StructuralError("'metadata.name' must be a string", "metadata.name")
            if "version" in raw and not isinstance(raw["version"], str):
                raise StructuralError("'version' must be a string", "version")
            metadata.setdefault("version", raw.get("version", DEFAULT_VERSION))
        else:
            if not isinstance(raw["name"], str):
                raise StructuralError("'name' must be a string", "name")
            metadata = {
                key: raw[key] for key in ("id", "name", "description", "version", "createdAt")
                if key in raw
            }

        nodes = []
        seen_ids = set()
        seen_ports = set()
        for index, raw_node in enumerate(raw["nodes"]):
            node = self._parse_node(raw_node, index)
            if node.id in seen_ids:
                raise StructuralError(f"duplicate node id '{node.id}'", f"nodes[{index}].id")
            seen_ids.add(node.id)

            # Port ids are checked after hydration so generated ids collide too
            for direction, ports in (("inputs", node.inputs), ("outputs", node.outputs)):
                for port_index, port in enumerate(ports):
                    if port.id in seen_ports:
                        raise StructuralError(f"duplicate port id '{port.id}'",
                                              f"nodes[{index}].{direction}[{port_index}].id")
                    seen_ports.add(port.id)
            nodes.append(node)

        connections = [
            self._parse_connection(raw_connection, index, shape)
            for index, raw_connection in enumerate(raw["connections"])
        ]

        return ParsedDocument(shape=shape, nodes=nodes, connections=connections, metadata=metadata)

    def import_document(self, raw: Any, store: GraphStore) -> ParsedDocument:
        """Parse ``raw`` and replace the store's graph with it."""
        try:
            document = self.parse(raw)
        except StructuralError as e:
            logger.warning("serializer.import_rejected", {"reason": e.message})
            raise

        store.bulk_load(document.nodes, document.connections)
        logger.info("serializer.import_completed", {
            "shape": document.shape.value,
            "nodes": len(document.nodes),
            "connections": len(document.connections)
        })
        return document

    def _parse_node(self, raw: Any, index: int) -> NodeInstance:
        path = f"nodes[{index}]"
        if not isinstance(raw, dict):
            raise StructuralError("node must be an object", path)

        node_id = raw.get("id")
        node_type = raw.get("type")
        if not isinstance(node_id, str) or not node_id:
            raise StructuralError("node 'id' must be a non-empty string", f"{path}.id")
        if not isinstance(node_type, str) or not node_type:
            raise StructuralError("node 'type' must be a non-empty string", f"{path}.type")

        config = raw.get("config")
        if config is None:
            config = {}
        elif not isinstance(config, dict):
            raise StructuralError("node 'config' must be an object", f"{path}.config")

        content = raw.get("content") if isinstance(raw.get("content"), dict) else {}
        title = content.get("title")
        description = content.get("description")

        node = NodeInstance(
            id=node_id,
            type=node_type,
            position=coerce_position(raw.get("position")),
            config=self.registry.coerce_config(node_type, config),
            inputs=self._parse_ports(raw.get("inputs"), node_id, PortDirection.INPUT, f"{path}.inputs"),
            outputs=self._parse_ports(raw.get("outputs"), node_id, PortDirection.OUTPUT, f"{path}.outputs"),
            title=title if isinstance(title, str) else "",
            description=description if isinstance(description, str) else "",
        )
        return self.registry.hydrate_ports(node)

    @staticmethod
    def _parse_ports(raw: Any, node_id: str, direction: PortDirection, path: str) -> List[Port]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StructuralError("ports must be an array", path)

        ports = []
        for index, raw_port in enumerate(raw):
            if not isinstance(raw_port, dict) or not isinstance(raw_port.get("id"), str):
                raise StructuralError("port must be an object with a string 'id'", f"{path}[{index}]")

            # Mapping ports carry the colour tag; pipeline ports carry the display name
            if "color" in raw_port:
                data_type = DataType.from_tag(raw_port.get("color"))
            else:
                data_type = DataType.from_display_name(raw_port.get("dataType"))
            label = raw_port.get("label", raw_port.get("name", ""))

            ports.append(Port(
                id=raw_port["id"],
                data_type=data_type,
                label=label if isinstance(label, str) else str(label),
                direction=direction,
                node_id=node_id,
            ))
        return ports

    @staticmethod
    def _parse_connection(raw: Any, index: int, shape: WireShape) -> Connection:
        path = f"connections[{index}]"
        keys = ("from", "to") if shape == WireShape.MAPPING else ("fromPortId", "toPortId")
        if not isinstance(raw, dict):
            raise StructuralError("connection must be an object", path)
        for key in keys:
            if not isinstance(raw.get(key), str):
                raise StructuralError(f"connection '{key}' must be a string", f"{path}.{key}")
        return Connection(from_port=raw[keys[0]], to_port=raw[keys[1]])

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, nodes: Sequence[NodeInstance], connections: Sequence[Connection],
               meta: Optional[ExportMetadata] = None,
               shape: WireShape = WireShape.MAPPING) -> Dict[str, Any]:
        """Produce a wire document in ``shape`` from the given graph."""
        meta = meta or ExportMetadata()
        if shape == WireShape.PIPELINE:
            return self._export_pipeline(nodes, connections, meta)
        return self._export_mapping(nodes, connections, meta)

    def export_store(self, store: GraphStore, meta: Optional[ExportMetadata] = None,
                     shape: WireShape = WireShape.MAPPING) -> Dict[str, Any]:
        snapshot = store.snapshot()
        return self.export(snapshot.nodes, snapshot.connections, meta, shape)

    def _export_mapping(self, nodes: Sequence[NodeInstance], connections: Sequence[Connection],
                        meta: ExportMetadata) -> Dict[str, Any]:
        now = utc_now_iso()
        return {
            "version": meta.version,
            "metadata": {
                "name": meta.name or f"mapping_{now[:10]}",
                "description": meta.description or "",
                "createdAt": meta.created_at or now,
                "modifiedAt": meta.modified_at or now
            },
            "nodes": [
                {
                    "id": node.id,
                    "type": node.type,
                    "position": node.position.to_dict(),
                    "inputs": [self._mapping_port(p) for p in node.inputs],
                    "outputs": [self._mapping_port(p) for p in node.outputs],
                    "content": self._mapping_content(node),
                    "config": node.raw_config()
                }
                for node in nodes
            ],
            "connections": [c.to_dict() for c in connections]
        }

    def _export_pipeline(self, nodes: Sequence[NodeInstance], connections: Sequence[Connection],
                         meta: ExportMetadata) -> Dict[str, Any]:
        now = utc_now_iso()
        owners = build_port_owner_index(nodes)
        ports: Dict[str, Port] = {}
        for node in nodes:
            for port in node.ports:
                ports.setdefault(port.id, port)

        document = {
            "id": meta.pipeline_id or f"pipeline-{int(time.time() * 1000)}",
            "name": meta.name or f"Pipeline-{now[:10]}",
            "description": meta.description or "",
            "version": meta.version,
            "createdAt": meta.created_at or now,
            "nodes": [
                {
                    "id": node.id,
                    "type": node.type,
                    "position": node.position.to_dict(),
                    "config": node.raw_config(),
                    "inputs": [self._pipeline_port(p) for p in node.inputs],
                    "outputs": [self._pipeline_port(p) for p in node.outputs]
                }
                for node in nodes
            ],
            "connections": [
                {
                    "id": f"connection-{index}",
                    "fromNodeId": owners.get(c.from_port) or self._node_id_from_port_id(c.from_port),
                    "fromPortId": c.from_port,
                    "toNodeId": owners.get(c.to_port) or self._node_id_from_port_id(c.to_port),
                    "toPortId": c.to_port,
                    "dataType": self._connection_data_type(c, ports)
                }
                for index, c in enumerate(connections)
            ]
        }

        try:
            document["executionOrder"] = compute_execution_order(nodes, connections)
        except CyclicGraphError as e:
            logger.warning("serializer.execution_order_skipped", {"reason": e.message})

        return document

    def _mapping_content(self, node: NodeInstance) -> Dict[str, Any]:
        """Title and description, plus the editor flags of the node's type."""
        content: Dict[str, Any] = {"title": node.title, "description": node.description}
        definition = self.registry.get_definition(node.type)
        if definition is not None:
            if definition.display_only:
                content["displayOnly"] = True
            if definition.status:
                content["status"] = definition.status
            if definition.has_file_upload:
                content["hasFileUpload"] = True
        return content

    @staticmethod
    def _mapping_port(port: Port) -> Dict[str, str]:
        return {"id": port.id, "color": port.data_type.value, "label": port.label}

    @staticmethod
    def _pipeline_port(port: Port) -> Dict[str, str]:
        return {"id": port.id, "name": port.label, "dataType": port.data_type.display_name}

    @staticmethod
    def _connection_data_type(connection: Connection, ports: Dict[str, Port]) -> str:
        """Display name of the output-side port's tag."""
        source = ports.get(connection.from_port)
        if source is None or not source.is_output:
            return DataType.UNKNOWN.display_name
        return source.data_type.display_name

    @staticmethod
    def _node_id_from_port_id(port_id: str) -> str:
        match = _PORT_SUFFIX.match(port_id)
        return match.group("node_id") if match else ""

    # ------------------------------------------------------------------
    # JSON text and files
    # ------------------------------------------------------------------

    @staticmethod
    def dumps(document: Dict[str, Any]) -> str:
        return json.dumps(document, indent=2, default=str)

    @staticmethod
    def loads(json_str: str) -> Any:
        try:
            return json.loads(json_str)
        except (TypeError, ValueError) as e:
            raise StructuralError(f"Invalid JSON: {e}") from e

    def save_to_file(self, document: Dict[str, Any], filepath: str) -> None:
        """Save a wire document to a JSON file."""
        with open(filepath, 'w', encoding='utf-8') as f:
            f.write(self.dumps(document))
        logger.info("serializer.file_saved", {"path": str(filepath)})

    def load_from_file(self, filepath: str, store: GraphStore) -> ParsedDocument:
        """Read a JSON file in either shape and import it into ``store``."""
        with open(filepath, 'r', encoding='utf-8') as f:
            raw = self.loads(f.read())
        return self.import_document(raw, store)
