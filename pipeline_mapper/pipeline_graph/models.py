#!/usr/bin/env python3
"""
Pipeline Graph Models
=====================

Immutable instance-level types: positions, concrete ports, node instances,
connections and the snapshots the graph store hands to its subscribers.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Any, Mapping, Optional, Tuple

from .node_catalog import ConfigValue, DataType, PortDirection


@dataclass(frozen=True)
class Position:
    """Canvas position of a node."""
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class Port:
    """A concrete port on a node instance. ``node_id`` is a back-reference only."""
    id: str
    data_type: DataType
    label: str
    direction: PortDirection
    node_id: str

    @property
    def is_input(self) -> bool:
        return self.direction == PortDirection.INPUT

    @property
    def is_output(self) -> bool:
        return self.direction == PortDirection.OUTPUT


@dataclass(frozen=True)
class Connection:
    """Directed edge from an output port to an input port."""
    from_port: str
    to_port: str

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.from_port, "to": self.to_port}


@dataclass(frozen=True)
class NodeInstance:
    """
    A configured unit of work on the canvas.

    Instances are never mutated in place; the graph store replaces them with
    updated copies (``with_position``, ``with_config_value``) so snapshots
    handed to subscribers stay stable.
    """
    id: str
    type: str
    position: Position
    config: Mapping[str, ConfigValue] = field(default_factory=dict, hash=False)
    inputs: Tuple[Port, ...] = ()
    outputs: Tuple[Port, ...] = ()
    title: str = ""
    description: str = ""
    is_placeholder: bool = False

    def __post_init__(self):
        object.__setattr__(self, "config", MappingProxyType(dict(self.config)))
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))

    @property
    def ports(self) -> Tuple[Port, ...]:
        return self.inputs + self.outputs

    @property
    def has_ports(self) -> bool:
        return bool(self.inputs or self.outputs)

    def get_port(self, port_id: str) -> Optional[Port]:
        return next((p for p in self.ports if p.id == port_id), None)

    def raw_config(self) -> Dict[str, Any]:
        """Config as plain JSON values."""
        return {key: value.to_raw() for key, value in self.config.items()}

    def with_position(self, position: Position) -> 'NodeInstance':
        return replace(self, position=position)

    def with_config_value(self, key: str, value: ConfigValue) -> 'NodeInstance':
        config = dict(self.config)
        config[key] = value
        return replace(self, config=config)


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable view of the whole graph at one point in time."""
    nodes: Tuple[NodeInstance, ...] = ()
    connections: Tuple[Connection, ...] = ()

    def get_node(self, node_id: str) -> Optional[NodeInstance]:
        return next((n for n in self.nodes if n.id == node_id), None)
