#!/usr/bin/env python3
"""
Pipeline Graph Validators
=========================

Structural and semantic validation of a pipeline graph snapshot.

All checks run on every call, in a fixed order, so a single validation
surfaces every problem at once. Problems are collected, never raised.
"""

from typing import Dict, List, Any, Optional, Sequence, Tuple

from .models import Connection, NodeInstance, Port
from .registry import NodeRegistry


class ValidationIssue:
    """Represents a validation error or warning with context."""

    def __init__(self, issue_type: str, message: str, node_id: Optional[str] = None,
                 connection_index: Optional[int] = None, severity: str = "error"):
        self.issue_type = issue_type
        self.message = message
        self.node_id = node_id
        self.connection_index = connection_index
        self.severity = severity  # "error" or "warning"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.issue_type,
            "message": self.message,
            "node_id": self.node_id,
            "connection_index": self.connection_index,
            "severity": self.severity
        }

    def __repr__(self) -> str:
        return f"ValidationIssue({self.severity}:{self.issue_type}: {self.message})"


class ValidationResult:
    """Outcome of one validation run."""

    def __init__(self, issues: Optional[List[ValidationIssue]] = None):
        self.issues: List[ValidationIssue] = issues or []

    @property
    def errors(self) -> List[str]:
        return [i.message for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> List[str]:
        return [i.message for i in self.issues if i.severity == "warning"]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def has_issue(self, issue_type: str) -> bool:
        return any(i.issue_type == issue_type for i in self.issues)

    def issues_of_type(self, issue_type: str) -> List[ValidationIssue]:
        return [i for i in self.issues if i.issue_type == issue_type]

    def to_dict(self) -> Dict[str, Any]:
        """Wire form shared with the remote validation service."""
        return {
            "isValid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ValidationResult':
        """
        Build a result from the remote service's response.

        The remote verdict is kept even when it disagrees with the message
        lists; a bare ``isValid: false`` becomes a generic error.
        """
        issues = [ValidationIssue("remote", str(m)) for m in data.get("errors") or []]
        issues += [ValidationIssue("remote", str(m), severity="warning") for m in data.get("warnings") or []]
        if data.get("isValid") is False and not any(i.severity == "error" for i in issues):
            issues.append(ValidationIssue("remote", "Pipeline rejected by remote validation"))
        return cls(issues)


class GraphValidator:
    """Validates pipeline graphs against the node registry."""

    def __init__(self, registry: Optional[NodeRegistry] = None):
        self.registry = registry or NodeRegistry()
        self.issues: List[ValidationIssue] = []

    def validate(self, nodes: Sequence[NodeInstance], connections: Sequence[Connection]) -> ValidationResult:
        """Perform complete validation of a graph snapshot."""
        self.issues = []
        # First declaration wins, matching GraphStore.get_port
        ports: Dict[str, Port] = {}
        for node in nodes:
            for port in node.ports:
                ports.setdefault(port.id, port)

        self._validate_not_empty(nodes)
        self._validate_has_source(nodes)
        self._validate_unique_ports(nodes)
        resolved = self._validate_endpoints(connections, ports)
        self._validate_type_tags(resolved)
        self._validate_required_config(nodes)
        self._validate_inputs_wired(nodes, resolved)
        self._validate_acyclic(nodes, resolved)

        # Advisory checks
        self._validate_has_output(nodes)
        self._validate_connected(nodes, resolved)
        self._validate_known_types(nodes)

        return ValidationResult(self.issues)

    def _error(self, issue_type: str, message: str, **context) -> None:
        self.issues.append(ValidationIssue(issue_type, message, severity="error", **context))

    def _warning(self, issue_type: str, message: str, **context) -> None:
        self.issues.append(ValidationIssue(issue_type, message, severity="warning", **context))

    def _validate_not_empty(self, nodes: Sequence[NodeInstance]) -> None:
        if not nodes:
            self._error("empty_pipeline", "Pipeline must contain at least one node")

    def _validate_has_source(self, nodes: Sequence[NodeInstance]) -> None:
        if not any(self.registry.is_source_type(node.type) for node in nodes):
            self._error(
                "missing_source",
                "Pipeline must have at least one source node (a node without inputs, e.g. Read File)"
            )

    def _validate_unique_ports(self, nodes: Sequence[NodeInstance]) -> None:
        owners: Dict[str, List[str]] = {}
        for node in nodes:
            for port in node.ports:
                owners.setdefault(port.id, []).append(node.id)

        for port_id, node_ids in owners.items():
            if len(node_ids) > 1:
                self._error(
                    "duplicate_port",
                    f"Port id '{port_id}' is declared more than once (nodes: {', '.join(node_ids)})",
                    node_id=node_ids[-1]
                )

    def _validate_endpoints(self, connections: Sequence[Connection],
                            ports: Dict[str, Port]) -> List[Tuple[int, Port, Port]]:
        """Resolve both endpoints of every connection; returns the ones that resolved."""
        resolved = []
        for index, connection in enumerate(connections):
            source = ports.get(connection.from_port)
            target = ports.get(connection.to_port)
            ok = True

            if source is None:
                self._error("dangling_reference",
                            f"Connection {index + 1}: output port '{connection.from_port}' does not exist",
                            connection_index=index)
                ok = False
            elif not source.is_output:
                self._error("invalid_direction",
                            f"Connection {index + 1}: port '{connection.from_port}' is not an output port",
                            connection_index=index, node_id=source.node_id)
                ok = False

            if target is None:
                self._error("dangling_reference",
                            f"Connection {index + 1}: input port '{connection.to_port}' does not exist",
                            connection_index=index)
                ok = False
            elif not target.is_input:
                self._error("invalid_direction",
                            f"Connection {index + 1}: port '{connection.to_port}' is not an input port",
                            connection_index=index, node_id=target.node_id)
                ok = False

            if ok:
                resolved.append((index, source, target))
        return resolved

    def _validate_type_tags(self, resolved: List[Tuple[int, Port, Port]]) -> None:
        for index, source, target in resolved:
            if source.data_type != target.data_type:
                self._error(
                    "type_mismatch",
                    f"Connection {index + 1}: Type mismatch between {source.label} "
                    f"({source.data_type.display_name}) and {target.label} ({target.data_type.display_name})",
                    connection_index=index, node_id=target.node_id
                )

    def _validate_required_config(self, nodes: Sequence[NodeInstance]) -> None:
        for node in nodes:
            definition = self.registry.get_definition(node.type)
            if definition is None:
                continue

            missing = [
                f.label for f in definition.get_required_fields()
                if f.key not in node.config or node.config[f.key].is_empty()
            ]
            if missing:
                self._error(
                    "missing_config",
                    f'Node "{node.title or definition.title}" ({node.id}): '
                    f"Missing required configuration: {', '.join(missing)}",
                    node_id=node.id
                )

            config = {k: v for k, v in node.config.items() if not v.is_empty()}
            for problem in self.registry.validate_config(node.type, config):
                self._warning("invalid_config", f'Node "{node.title or definition.title}" ({node.id}): {problem}',
                              node_id=node.id)

    def _validate_inputs_wired(self, nodes: Sequence[NodeInstance],
                               resolved: List[Tuple[int, Port, Port]]) -> None:
        wired_inputs = {target.id for _, _, target in resolved}
        for node in nodes:
            if node.inputs and not any(p.id in wired_inputs for p in node.inputs):
                self._warning(
                    "unwired_inputs",
                    f'Node "{node.title or node.type}" ({node.id}) has no connected inputs',
                    node_id=node.id
                )

    def _validate_acyclic(self, nodes: Sequence[NodeInstance],
                          resolved: List[Tuple[int, Port, Port]]) -> None:
        cycle = self.find_cycle([n.id for n in nodes],
                                [(source.node_id, target.node_id) for _, source, target in resolved])
        if cycle:
            self._error(
                "cycle_detected",
                f"Pipeline contains cycles, which are not allowed: {' -> '.join(cycle)}",
                node_id=cycle[0]
            )

    @staticmethod
    def find_cycle(node_ids: Sequence[str], edges: Sequence[Tuple[str, str]]) -> Optional[List[str]]:
        """
        Return one cycle as a closed path (first id repeated at the end), or None.

        Uses an explicit work-stack with a recursion-stack set, so deep
        graphs cannot exhaust the interpreter's call stack.
        """
        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
        for producer, consumer in edges:
            adjacency.setdefault(producer, [])
            adjacency.setdefault(consumer, [])
            adjacency[producer].append(consumer)

        visited = set()
        for root in adjacency:
            if root in visited:
                continue

            path: List[str] = [root]
            on_path = {root}
            stack = [(root, iter(adjacency[root]))]
            visited.add(root)

            while stack:
                node_id, neighbours = stack[-1]
                neighbour = next(neighbours, None)
                if neighbour is None:
                    stack.pop()
                    path.pop()
                    on_path.discard(node_id)
                    continue
                if neighbour in on_path:
                    return path[path.index(neighbour):] + [neighbour]
                if neighbour not in visited:
                    visited.add(neighbour)
                    on_path.add(neighbour)
                    path.append(neighbour)
                    stack.append((neighbour, iter(adjacency[neighbour])))

        return None

    def _validate_has_output(self, nodes: Sequence[NodeInstance]) -> None:
        if nodes and not any(self.registry.is_sink_type(node.type) for node in nodes):
            self._warning("no_output_node", "Consider adding an output node to visualize results")

    def _validate_connected(self, nodes: Sequence[NodeInstance],
                            resolved: List[Tuple[int, Port, Port]]) -> None:
        connected = set()
        for _, source, target in resolved:
            connected.add(source.node_id)
            connected.add(target.node_id)

        disconnected = [node for node in nodes if node.id not in connected]
        if disconnected:
            titles = ", ".join(node.title or node.id for node in disconnected)
            self._warning("disconnected_nodes", f"{len(disconnected)} node(s) are not connected: {titles}")

    def _validate_known_types(self, nodes: Sequence[NodeInstance]) -> None:
        for node in nodes:
            if self.registry.get_definition(node.type) is None:
                self._warning("unknown_node_type", f"Unknown node type '{node.type}' ({node.id})",
                              node_id=node.id)
