"""
Pipeline Graph Module
=====================

Visual data-pipeline mapping: typed node catalog, graph store,
validation, execution ordering and JSON serialization.
"""

from .node_catalog import (
    NodeDefinition, DataType, PortDirection, FieldKind,
    PortDefinition, FieldDefinition, ConfigValue,
    get_node_definition, get_nodes_by_category,
    validate_node_config, ALL_NODES, NODE_DEFINITIONS
)

from .models import (
    Position, Port, Connection, NodeInstance, GraphSnapshot
)

from .registry import NodeRegistry

from .graph_store import GraphStore

from .validators import (
    ValidationIssue, ValidationResult, GraphValidator
)

from .execution_order import (
    build_dependency_map, compute_execution_order
)

from .serializer import (
    WireShape, ExportMetadata, ParsedDocument, GraphSerializer,
    detect_shape, mapping_filename, get_mapping_metadata
)

__all__ = [
    # Node catalog
    'NodeDefinition', 'DataType', 'PortDirection', 'FieldKind',
    'PortDefinition', 'FieldDefinition', 'ConfigValue',
    'get_node_definition', 'get_nodes_by_category',
    'validate_node_config', 'ALL_NODES', 'NODE_DEFINITIONS',
    # Instances
    'Position', 'Port', 'Connection', 'NodeInstance', 'GraphSnapshot',
    'NodeRegistry', 'GraphStore',
    # Validation
    'ValidationIssue', 'ValidationResult', 'GraphValidator',
    # Ordering
    'build_dependency_map', 'compute_execution_order',
    # Serialization
    'WireShape', 'ExportMetadata', 'ParsedDocument', 'GraphSerializer',
    'detect_shape', 'mapping_filename', 'get_mapping_metadata'
]
