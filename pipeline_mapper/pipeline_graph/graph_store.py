#!/usr/bin/env python3
"""
Pipeline Graph Store
====================

Owns the canonical in-memory node and connection lists for one editor.
Every successful mutation notifies subscribers synchronously, in
registration order, with a fresh immutable snapshot.
"""

import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..core.exceptions import StructuralError
from ..core.logger import get_logger
from ..infrastructure.config.settings import EditorSettings
from .models import Connection, GraphSnapshot, NodeInstance, Port, Position
from .registry import NodeRegistry

logger = get_logger(__name__)

Subscriber = Callable[[GraphSnapshot], None]


class GraphStore:
    """
    Mutable graph of node instances and connections.

    The store is owned by the host application and passed by reference;
    it is not a module-level singleton.
    """

    def __init__(self, registry: Optional[NodeRegistry] = None, node_id_prefix: str = "node"):
        self.registry = registry or NodeRegistry()
        self.node_id_prefix = node_id_prefix
        self._nodes: List[NodeInstance] = []
        self._connections: List[Connection] = []
        self._subscribers: List[Subscriber] = []
        self._node_counter = 1
        self._id_pattern = re.compile(rf"^{re.escape(node_id_prefix)}-(\d+)$")

    @classmethod
    def from_settings(cls, editor: EditorSettings, registry: Optional[NodeRegistry] = None) -> 'GraphStore':
        """Store whose generated node ids use the configured prefix."""
        return cls(registry, node_id_prefix=editor.node_id_prefix)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a callable that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(nodes=tuple(self._nodes), connections=tuple(self._connections))

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            callback(snapshot)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> Tuple[NodeInstance, ...]:
        return tuple(self._nodes)

    @property
    def connections(self) -> Tuple[Connection, ...]:
        return tuple(self._connections)

    def get_node(self, node_id: str) -> Optional[NodeInstance]:
        return next((n for n in self._nodes if n.id == node_id), None)

    def get_port(self, port_id: str) -> Optional[Port]:
        for node in self._nodes:
            port = node.get_port(port_id)
            if port:
                return port
        return None

    def owner_of(self, port_id: str) -> Optional[NodeInstance]:
        """Node owning ``port_id``, or None when no node declares it."""
        return next((n for n in self._nodes if n.get_port(port_id)), None)

    def compatible_input_ports(self, output_port_id: str) -> List[str]:
        """Input port ids on other nodes that an output port could connect to."""
        source = self.get_port(output_port_id)
        if source is None or not source.is_output:
            return []
        return [
            port.id
            for node in self._nodes if node.id != source.node_id
            for port in node.inputs if port.data_type == source.data_type
        ]

    def has_content(self) -> bool:
        return bool(self._nodes or self._connections)

    def counts(self) -> Dict[str, int]:
        return {"nodes": len(self._nodes), "connections": len(self._connections)}

    # ------------------------------------------------------------------
    # Node mutations
    # ------------------------------------------------------------------

    def add_node(self, node_type: str, position: Position) -> NodeInstance:
        """Instantiate ``node_type`` at ``position`` under a fresh id."""
        node = self.registry.instantiate(node_type, self._next_node_id(), position)
        self._nodes.append(node)
        logger.debug("graph_store.node_added", {"node_id": node.id, "node_type": node_type})
        self._notify()
        return node

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and every connection that touches one of its ports."""
        node = self.get_node(node_id)
        if node is None:
            logger.warning("graph_store.unknown_node", {"operation": "remove_node", "node_id": node_id})
            return False

        port_ids = {p.id for p in node.ports}
        before = len(self._connections)
        self._nodes = [n for n in self._nodes if n.id != node_id]
        self._connections = [
            c for c in self._connections
            if c.from_port not in port_ids and c.to_port not in port_ids
        ]
        logger.debug("graph_store.node_removed", {
            "node_id": node_id,
            "connections_removed": before - len(self._connections)
        })
        self._notify()
        return True

    def move_node(self, node_id: str, position: Position) -> bool:
        return self._replace_node(node_id, "move_node", lambda n: n.with_position(position))

    def update_node_config(self, node_id: str, key: str, value) -> bool:
        """Set one config field; the value is coerced by the node type's field definition."""
        node = self.get_node(node_id)
        if node is None:
            logger.warning("graph_store.unknown_node", {"operation": "update_node_config", "node_id": node_id})
            return False

        typed = self.registry.coerce_value(node.type, key, value)
        return self._replace_node(node_id, "update_node_config", lambda n: n.with_config_value(key, typed))

    def _replace_node(self, node_id: str, operation: str,
                      update: Callable[[NodeInstance], NodeInstance]) -> bool:
        for index, node in enumerate(self._nodes):
            if node.id == node_id:
                self._nodes[index] = update(node)
                self._notify()
                return True

        logger.warning("graph_store.unknown_node", {"operation": operation, "node_id": node_id})
        return False

    # ------------------------------------------------------------------
    # Connection mutations
    # ------------------------------------------------------------------

    def can_connect(self, connection: Connection) -> bool:
        """True when ``connection`` may be added to the current graph."""
        if connection in self._connections:
            return False

        source = self.get_port(connection.from_port)
        target = self.get_port(connection.to_port)
        if source is None or target is None:
            return False
        if not source.is_output or not target.is_input:
            return False
        return source.data_type == target.data_type

    def add_connection(self, connection: Connection) -> bool:
        """
        Add a connection. Duplicates, unresolved endpoints and type-tag
        mismatches are rejected without mutating the graph.
        """
        if not self.can_connect(connection):
            logger.debug("graph_store.connection_rejected", {
                "from": connection.from_port,
                "to": connection.to_port
            })
            return False

        self._connections.append(connection)
        self._notify()
        return True

    def remove_connection(self, connection: Connection) -> bool:
        if connection not in self._connections:
            return False
        self._connections = [c for c in self._connections if c != connection]
        self._notify()
        return True

    def clear_connections(self) -> None:
        self._connections = []
        self._notify()

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def bulk_load(self, nodes: Iterable[NodeInstance], connections: Iterable[Connection]) -> None:
        """
        Replace the entire graph in one step.

        Nodes whose ports are missing are re-hydrated from the registry
        before anything is installed. Duplicate connections collapse to one.

        Raises:
            StructuralError: If two nodes share an id or a port id; the
                current graph is left untouched
        """
        hydrated = [
            node if node.has_ports and not self._needs_hydration(node) else self.registry.hydrate_ports(node)
            for node in nodes
        ]
        self._check_unique_ids(hydrated)

        unique_connections: List[Connection] = []
        for connection in connections:
            if connection not in unique_connections:
                unique_connections.append(connection)

        self._nodes = hydrated
        self._connections = unique_connections
        self._sync_node_counter()
        logger.info("graph_store.bulk_loaded", {
            "nodes": len(self._nodes),
            "connections": len(self._connections)
        })
        self._notify()

    def clear(self) -> None:
        self._nodes = []
        self._connections = []
        self._notify()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_unique_ids(nodes: List[NodeInstance]) -> None:
        node_ids = set()
        port_ids = set()
        for index, node in enumerate(nodes):
            if node.id in node_ids:
                raise StructuralError(f"duplicate node id '{node.id}'", f"nodes[{index}].id")
            node_ids.add(node.id)
            for port in node.ports:
                if port.id in port_ids:
                    raise StructuralError(f"duplicate port id '{port.id}'", f"nodes[{index}]")
                port_ids.add(port.id)

    def _needs_hydration(self, node: NodeInstance) -> bool:
        """A known type with one of its declared port lists empty."""
        definition = self.registry.get_definition(node.type)
        if definition is None:
            return False
        return (bool(definition.inputs) and not node.inputs) or (bool(definition.outputs) and not node.outputs)

    def _next_node_id(self) -> str:
        existing = {n.id for n in self._nodes}
        while True:
            node_id = f"{self.node_id_prefix}-{self._node_counter}"
            self._node_counter += 1
            if node_id not in existing:
                return node_id

    def _sync_node_counter(self) -> None:
        """Keep generated ids ahead of any numeric id loaded from a file."""
        highest = 0
        for node in self._nodes:
            match = self._id_pattern.match(node.id)
            if match:
                highest = max(highest, int(match.group(1)))
        self._node_counter = max(self._node_counter, highest + 1)
