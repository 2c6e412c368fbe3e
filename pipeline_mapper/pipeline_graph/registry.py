#!/usr/bin/env python3
"""
Node Registry
=============

Turns node type templates into concrete node instances. Unknown types
degrade to placeholder nodes so a bad type string never leaves the graph
store in an inconsistent state.
"""

from typing import Dict, List, Any, Mapping, Optional

from ..core.logger import get_logger
from .models import NodeInstance, Port, Position
from .node_catalog import (
    ConfigValue, NodeDefinition, PortDirection, NODE_DEFINITIONS, validate_config_against,
)

logger = get_logger(__name__)


class NodeRegistry:
    """Static catalog of node type templates."""

    def __init__(self, definitions: Optional[Mapping[str, NodeDefinition]] = None):
        self._definitions: Dict[str, NodeDefinition] = dict(
            definitions if definitions is not None else NODE_DEFINITIONS
        )

    def get_definition(self, node_type: str) -> Optional[NodeDefinition]:
        return self._definitions.get(node_type)

    def list_types(self) -> List[str]:
        return list(self._definitions)

    def get_definitions_by_category(self, category: str) -> List[NodeDefinition]:
        return [d for d in self._definitions.values() if d.category == category]

    def is_source_type(self, node_type: str) -> bool:
        definition = self.get_definition(node_type)
        return definition is not None and definition.is_source

    def is_sink_type(self, node_type: str) -> bool:
        definition = self.get_definition(node_type)
        return definition is not None and definition.is_sink

    def instantiate(self, node_type: str, node_id: str, position: Position,
                    config: Optional[Mapping[str, Any]] = None) -> NodeInstance:
        """
        Create a node instance from its type template.

        Port ids are the template's id patterns with ``node_id`` substituted.
        An unrecognized type yields a placeholder node with no ports.
        """
        definition = self.get_definition(node_type)
        if definition is None:
            logger.warning("node_registry.unknown_type", {"node_type": node_type, "node_id": node_id})
            return NodeInstance(
                id=node_id,
                type=node_type,
                position=position,
                config=self.coerce_config(node_type, config or {}),
                title=f"Unknown Node ({node_type})",
                description=f"Unrecognized node type: {node_type}",
                is_placeholder=True,
            )

        return NodeInstance(
            id=node_id,
            type=node_type,
            position=position,
            config=self.coerce_config(node_type, config or {}),
            inputs=self._build_ports(definition, node_id, PortDirection.INPUT),
            outputs=self._build_ports(definition, node_id, PortDirection.OUTPUT),
            title=definition.title,
            description=definition.description,
        )

    def hydrate_ports(self, node: NodeInstance) -> NodeInstance:
        """
        Return ``node`` with any empty port list rebuilt from its template.

        Nodes of unknown type are returned as placeholders.
        """
        definition = self.get_definition(node.type)
        if definition is None:
            if node.is_placeholder:
                return node
            template = self.instantiate(node.type, node.id, node.position)
            return NodeInstance(
                id=node.id, type=node.type, position=node.position, config=node.config,
                inputs=node.inputs, outputs=node.outputs,
                title=template.title, description=template.description, is_placeholder=True,
            )

        inputs = node.inputs or self._build_ports(definition, node.id, PortDirection.INPUT)
        outputs = node.outputs or self._build_ports(definition, node.id, PortDirection.OUTPUT)
        return NodeInstance(
            id=node.id,
            type=node.type,
            position=node.position,
            config=node.config,
            inputs=inputs,
            outputs=outputs,
            title=node.title or definition.title,
            description=node.description or definition.description,
        )

    def coerce_config(self, node_type: str, config: Mapping[str, Any]) -> Dict[str, ConfigValue]:
        """Turn raw config values into typed values using the type's field specs."""
        definition = self.get_definition(node_type)
        return {
            key: ConfigValue.from_raw(raw, definition.get_field(key) if definition else None)
            for key, raw in config.items()
        }

    def coerce_value(self, node_type: str, key: str, raw: Any) -> ConfigValue:
        definition = self.get_definition(node_type)
        return ConfigValue.from_raw(raw, definition.get_field(key) if definition else None)

    def validate_config(self, node_type: str, config: Mapping[str, Any]) -> List[str]:
        definition = self.get_definition(node_type)
        if definition is None:
            return [f"Unknown node type: {node_type}"]
        return validate_config_against(definition, dict(config))

    @staticmethod
    def _build_ports(definition: NodeDefinition, node_id: str, direction: PortDirection) -> List[Port]:
        templates = definition.inputs if direction == PortDirection.INPUT else definition.outputs
        return [
            Port(
                id=template.port_id(node_id),
                data_type=template.data_type,
                label=template.label,
                direction=direction,
                node_id=node_id,
            )
            for template in templates
        ]
