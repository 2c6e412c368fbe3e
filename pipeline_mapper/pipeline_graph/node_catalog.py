#!/usr/bin/env python3
"""
Pipeline Graph Node Catalog
===========================

Canonical definitions for all node types in the pipeline editor.
Provides strongly typed port and configuration-field contracts, the
type-tag table shared by both wire formats, and typed configuration values.
"""

from typing import Dict, List, Any, Optional, Tuple, Union
from dataclasses import dataclass
from enum import Enum


UNKNOWN_DISPLAY_NAME = "Unknown"


class DataType(Enum):
    """
    Type-tags carried by ports. The value is the editor's colour tag; two
    ports can only be connected when their tags are equal.
    """
    DATAFRAME = "nord-blue"
    SERIES = "nord-red"
    ATTRIBUTE = "nord-yellow"
    EVENT = "nord-green"
    OBJECT = "nord-purple"
    RELATIONSHIP = "nord-orange"
    CORE_MODEL = "core-model"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return TYPE_TAG_DISPLAY_NAMES.get(self, UNKNOWN_DISPLAY_NAME)

    @classmethod
    def from_tag(cls, tag: Any) -> 'DataType':
        """Colour tag -> DataType; anything unrecognized maps to UNKNOWN."""
        if isinstance(tag, str):
            for member in cls:
                if member.value == tag:
                    return member
        return cls.UNKNOWN

    @classmethod
    def from_display_name(cls, name: Any) -> 'DataType':
        """Display name (``DataFrame``) -> DataType; unknown names map to UNKNOWN."""
        return DISPLAY_NAME_TYPE_TAGS.get(name, cls.UNKNOWN) if isinstance(name, str) else cls.UNKNOWN


TYPE_TAG_DISPLAY_NAMES: Dict[DataType, str] = {
    DataType.DATAFRAME: "DataFrame",
    DataType.SERIES: "Series",
    DataType.ATTRIBUTE: "Attribute",
    DataType.EVENT: "Event",
    DataType.OBJECT: "Object",
    DataType.RELATIONSHIP: "Relationship",
    DataType.CORE_MODEL: "COREModel",
}

DISPLAY_NAME_TYPE_TAGS: Dict[str, DataType] = {name: tag for tag, name in TYPE_TAG_DISPLAY_NAMES.items()}


class PortDirection(Enum):
    """Port direction for node connections."""
    INPUT = "input"
    OUTPUT = "output"


class FieldKind(Enum):
    """Kinds of configuration field a node type may declare."""
    TEXT = "text"
    NUMBER = "number"
    SELECT = "select"
    CHECKBOX = "checkbox"


_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


@dataclass(frozen=True)
class PortDefinition:
    """Template for a port; ``id_pattern`` contains a ``{node_id}`` placeholder."""
    label: str
    data_type: DataType
    id_pattern: str

    def port_id(self, node_id: str) -> str:
        return self.id_pattern.replace("{node_id}", node_id)


@dataclass(frozen=True)
class FieldDefinition:
    """Definition of a node configuration field."""
    key: str
    label: str
    kind: FieldKind
    options: Tuple[str, ...] = ()
    placeholder: str = ""
    required: bool = False


@dataclass(frozen=True)
class ConfigValue:
    """
    Typed configuration value.

    ``kind`` is the discriminator; ``value`` holds a ``str`` for TEXT and
    SELECT, an ``int``/``float`` for NUMBER and a ``bool`` for CHECKBOX.
    When a raw value cannot be coerced to its field's kind, the raw value is
    kept and ``valid`` is False so the validator can report it.
    """
    kind: FieldKind
    value: Union[str, int, float, bool, None, Any]
    valid: bool = True

    def is_empty(self) -> bool:
        """None and blank strings are empty; False and 0 are real values."""
        if self.value is None:
            return True
        if isinstance(self.value, str):
            return not self.value.strip()
        return False

    def to_raw(self) -> Any:
        return self.value

    @classmethod
    def from_raw(cls, raw: Any, field_def: Optional['FieldDefinition'] = None) -> 'ConfigValue':
        """Coerce a raw JSON value using the field's declared kind."""
        if isinstance(raw, ConfigValue):
            raw = raw.value

        if field_def is None:
            return cls(_infer_kind(raw), raw)

        kind = field_def.kind
        if raw is None:
            return cls(kind, None)

        if kind == FieldKind.NUMBER:
            return cls._coerce_number(raw)
        if kind == FieldKind.CHECKBOX:
            return cls._coerce_checkbox(raw)
        if kind == FieldKind.SELECT:
            if not isinstance(raw, str):
                return cls(kind, raw, valid=False)
            in_options = not field_def.options or not raw.strip() or raw in field_def.options
            return cls(kind, raw, valid=in_options)

        # TEXT
        if isinstance(raw, bool):
            return cls(kind, raw, valid=False)
        if isinstance(raw, (int, float)):
            return cls(kind, str(raw))
        if isinstance(raw, str):
            return cls(kind, raw)
        return cls(kind, raw, valid=False)

    @classmethod
    def _coerce_number(cls, raw: Any) -> 'ConfigValue':
        if isinstance(raw, bool):
            return cls(FieldKind.NUMBER, raw, valid=False)
        if isinstance(raw, (int, float)):
            return cls(FieldKind.NUMBER, raw)
        if isinstance(raw, str):
            text = raw.strip()
            if not text:
                return cls(FieldKind.NUMBER, raw)
            try:
                return cls(FieldKind.NUMBER, int(text))
            except ValueError:
                pass
            try:
                return cls(FieldKind.NUMBER, float(text))
            except ValueError:
                return cls(FieldKind.NUMBER, raw, valid=False)
        return cls(FieldKind.NUMBER, raw, valid=False)

    @classmethod
    def _coerce_checkbox(cls, raw: Any) -> 'ConfigValue':
        if isinstance(raw, bool):
            return cls(FieldKind.CHECKBOX, raw)
        if isinstance(raw, int) and raw in (0, 1):
            return cls(FieldKind.CHECKBOX, bool(raw))
        if isinstance(raw, str):
            lowered = raw.strip().lower()
            if lowered in _TRUE_STRINGS:
                return cls(FieldKind.CHECKBOX, True)
            if lowered in _FALSE_STRINGS:
                return cls(FieldKind.CHECKBOX, False)
        return cls(FieldKind.CHECKBOX, raw, valid=False)


def _infer_kind(raw: Any) -> FieldKind:
    if isinstance(raw, bool):
        return FieldKind.CHECKBOX
    if isinstance(raw, (int, float)):
        return FieldKind.NUMBER
    return FieldKind.TEXT


@dataclass(frozen=True)
class NodeDefinition:
    """Complete definition of a pipeline node type."""
    type: str
    title: str
    description: str
    category: str
    inputs: Tuple[PortDefinition, ...] = ()
    outputs: Tuple[PortDefinition, ...] = ()
    fields: Tuple[FieldDefinition, ...] = ()
    display_only: bool = False
    has_file_upload: bool = False
    status: str = ""

    @property
    def is_source(self) -> bool:
        """Source nodes feed the pipeline and take no inputs."""
        return not self.inputs

    @property
    def is_sink(self) -> bool:
        return bool(self.inputs) and not self.outputs

    def get_field(self, key: str) -> Optional[FieldDefinition]:
        return next((f for f in self.fields if f.key == key), None)

    def get_required_fields(self) -> List[FieldDefinition]:
        return [f for f in self.fields if f.required]


def _in(index: int, label: str, data_type: DataType) -> PortDefinition:
    return PortDefinition(label, data_type, f"{{node_id}}-input-{index}")


def _out(index: int, label: str, data_type: DataType) -> PortDefinition:
    return PortDefinition(label, data_type, f"{{node_id}}-output-{index}")


def _core_inputs(*labels: str) -> Tuple[PortDefinition, ...]:
    return tuple(_in(i, label, DataType.ATTRIBUTE) for i, label in enumerate(labels))


OBJECT_CLASSES = (
    'SENSOR', 'ACTUATOR', 'INFORMATION_SYSTEM', 'LINK', 'CASE_OBJECT', 'MACHINE',
    'BUSINESS_OBJECT', 'PROCESS', 'ACTIVITY', 'SUBPROCESS', 'RESOURCE',
)

# Data input & loading
INPUT_NODES = [
    NodeDefinition(
        type="read-file",
        title="Read File",
        description="Load data from CSV, XML, YAML or JSON files",
        category="Data Input",
        outputs=(_out(0, "Raw Data", DataType.DATAFRAME),),
        fields=(
            FieldDefinition("fileType", "File Type", FieldKind.SELECT,
                            options=('CSV', 'XML', 'YAML', 'JSON', 'XES'), required=True),
            FieldDefinition("encoding", "Encoding", FieldKind.SELECT,
                            options=('UTF-8', 'ISO-8859-1', 'ASCII')),
        ),
        has_file_upload=True,
    ),
]

# Data processing
PROCESSING_NODES = [
    NodeDefinition(
        type="column-selector",
        title="Column Selector",
        description="Takes Raw Data and converts specific column to Series",
        category="Data Processing",
        inputs=(_in(0, "Raw Data", DataType.DATAFRAME),),
        outputs=(_out(0, "Series", DataType.SERIES),),
        fields=(
            FieldDefinition("columnName", "Column Name", FieldKind.TEXT,
                            placeholder="Enter column name", required=True),
        ),
    ),
    NodeDefinition(
        type="attribute-selector",
        title="Attribute Selector",
        description="Select attributes from Series data",
        category="Data Processing",
        inputs=(_in(0, "Series", DataType.SERIES),),
        outputs=(_out(0, "Attribute", DataType.ATTRIBUTE),),
        fields=(
            FieldDefinition("attributeKey", "Attribute Key", FieldKind.TEXT,
                            placeholder="concept:name, time:timestamp, etc.", required=True),
            FieldDefinition("defaultValue", "Default Value", FieldKind.TEXT,
                            placeholder="Value if attribute not found"),
        ),
    ),
    NodeDefinition(
        type="data-filter",
        title="Data Filter",
        description="Apply conditions to filter Series data",
        category="Data Processing",
        inputs=(_in(0, "Series", DataType.SERIES),),
        outputs=(_out(0, "Series", DataType.SERIES),),
        fields=(
            FieldDefinition("condition", "Filter Condition", FieldKind.TEXT,
                            placeholder='value > 10, contains("text"), etc.', required=True),
            FieldDefinition("operator", "Operator", FieldKind.SELECT,
                            options=('>', '<', '>=', '<=', '==', '!=', 'contains', 'startswith', 'endswith'),
                            required=True),
        ),
    ),
    NodeDefinition(
        type="data-mapper",
        title="Data Mapper",
        description="Apply mapping transformations to Series data",
        category="Data Processing",
        inputs=(_in(0, "Series", DataType.SERIES),),
        outputs=(_out(0, "Series", DataType.SERIES),),
        fields=(
            FieldDefinition("mappingType", "Mapping Type", FieldKind.SELECT,
                            options=('Value Mapping', 'Expression', 'Format Conversion'), required=True),
            FieldDefinition("expression", "Mapping Expression", FieldKind.TEXT,
                            placeholder="lambda x: x.upper(), {old: new}, etc.", required=True),
        ),
    ),
]

# CORE model creation
CORE_CREATION_NODES = [
    NodeDefinition(
        type="iot-event",
        title="IoT Event",
        description="Create IoT events for CORE model from sensor data",
        category="CORE Model",
        inputs=_core_inputs("ID", "Type", "Timestamp", "Metadata"),
        outputs=(_out(0, "IoT Event", DataType.EVENT),),
        fields=(
            FieldDefinition("eventType", "Default Event Type", FieldKind.TEXT,
                            placeholder="sensor_reading, measurement, etc."),
        ),
    ),
    NodeDefinition(
        type="process-event",
        title="Process Event",
        description="Create process events for CORE model",
        category="CORE Model",
        inputs=_core_inputs("ID", "Type", "Timestamp", "Metadata", "Activity Label"),
        outputs=(_out(0, "Process Event", DataType.EVENT),),
        fields=(
            FieldDefinition("eventType", "Default Event Type", FieldKind.TEXT,
                            placeholder="activity_start, activity_complete, etc."),
        ),
    ),
    NodeDefinition(
        type="object-creator",
        title="Object Creator",
        description="Create objects with ID, Type, Class, and Metadata",
        category="CORE Model",
        inputs=_core_inputs("ID", "Type", "Class", "Metadata"),
        outputs=(_out(0, "Object", DataType.OBJECT),),
        fields=(
            FieldDefinition("defaultObjectClass", "Default Object Class", FieldKind.SELECT,
                            options=('SENSOR', 'ACTUATOR', 'INFORMATION_SYSTEM', 'CASE_OBJECT',
                                     'BUSINESS_OBJECT', 'RESOURCE')),
        ),
    ),
]

# Utilities
UTILITY_NODES = [
    NodeDefinition(
        type="unique-id-generator",
        title="Unique ID Generator",
        description="Generate unique identifiers for events and objects",
        category="Utilities",
        outputs=(_out(0, "ID", DataType.ATTRIBUTE),),
        fields=(
            FieldDefinition("idType", "ID Type", FieldKind.SELECT,
                            options=('UUID4', 'UUID1', 'Incremental', 'Timestamp-based'), required=True),
            FieldDefinition("prefix", "ID Prefix", FieldKind.TEXT,
                            placeholder="Optional prefix for IDs"),
        ),
    ),
    NodeDefinition(
        type="object-class-selector",
        title="Object Class Selector",
        description="Select object class for CORE model objects",
        category="Utilities",
        outputs=(_out(0, "Class", DataType.ATTRIBUTE),),
        fields=(
            FieldDefinition("objectClass", "Object Class", FieldKind.SELECT,
                            options=OBJECT_CLASSES, required=True),
        ),
    ),
]

# Relationships
RELATIONSHIP_NODES = [
    NodeDefinition(
        type="event-object-relation",
        title="Event-Object Relationship",
        description="Create relationships between events and objects",
        category="Relationships",
        inputs=(
            _in(0, "Event", DataType.EVENT),
            _in(1, "Object", DataType.OBJECT),
        ),
        outputs=(_out(0, "E-O Relationship", DataType.RELATIONSHIP),),
        fields=(
            FieldDefinition("relationshipType", "Relationship Type", FieldKind.SELECT,
                            options=('executes', 'involves', 'uses', 'creates', 'modifies', 'reads'),
                            required=True),
        ),
    ),
    NodeDefinition(
        type="event-event-relation",
        title="Event-Event Relationship",
        description="Create derivation relationships between events",
        category="Relationships",
        inputs=(
            _in(0, "Source Event", DataType.EVENT),
            _in(1, "Target Event", DataType.EVENT),
        ),
        outputs=(_out(0, "E-E Relationship", DataType.RELATIONSHIP),),
        fields=(
            FieldDefinition("qualifier", "Relationship Qualifier", FieldKind.SELECT,
                            options=('derived_from', 'correlates', 'precedes', 'triggers', 'aggregates'),
                            required=True),
        ),
    ),
]

# CORE metamodel construction
METAMODEL_NODES = [
    NodeDefinition(
        type="core-metamodel",
        title="CORE Metamodel",
        description="Construct the final CORE metamodel from events and relationships",
        category="CORE Model",
        inputs=(
            _in(0, "Process Events", DataType.EVENT),
            _in(1, "IoT Events", DataType.EVENT),
            _in(2, "Relationships", DataType.RELATIONSHIP),
        ),
        outputs=(_out(0, "CORE Metamodel", DataType.CORE_MODEL),),
        display_only=True,
        status="Ready to construct",
    ),
]

# Output & export
OUTPUT_NODES = [
    NodeDefinition(
        type="table-output",
        title="Table Output",
        description="Display data in tabular format",
        category="Output",
        inputs=(_in(0, "Data", DataType.CORE_MODEL),),
        fields=(
            FieldDefinition("maxRows", "Max Rows to Display", FieldKind.NUMBER, placeholder="100"),
        ),
        display_only=True,
    ),
    NodeDefinition(
        type="export-ocel",
        title="Export to OCEL",
        description="Export CORE metamodel to OCEL format",
        category="Output",
        inputs=(_in(0, "CORE Metamodel", DataType.CORE_MODEL),),
        fields=(
            FieldDefinition("format", "Export Format", FieldKind.SELECT,
                            options=('OCEL 2.0 JSON', 'OCEL 2.0 XML'), required=True),
            FieldDefinition("filename", "Filename", FieldKind.TEXT, placeholder="export.ocel"),
        ),
    ),
    NodeDefinition(
        type="ocpm-discovery",
        title="OCPM Model Discovery",
        description="Discover object-centric process model in browser",
        category="Output",
        inputs=(_in(0, "CORE Metamodel", DataType.CORE_MODEL),),
        fields=(
            FieldDefinition("algorithm", "Discovery Algorithm", FieldKind.SELECT,
                            options=('Directly-Follows Graph', 'Petri Net', 'BPMN'), required=True),
            FieldDefinition("filterNoise", "Filter Noise", FieldKind.CHECKBOX),
        ),
    ),
]

# Complete node catalog
ALL_NODES = (INPUT_NODES + PROCESSING_NODES + CORE_CREATION_NODES + UTILITY_NODES
             + RELATIONSHIP_NODES + METAMODEL_NODES + OUTPUT_NODES)

NODE_DEFINITIONS: Dict[str, NodeDefinition] = {node.type: node for node in ALL_NODES}


def get_node_definition(node_type: str) -> Optional[NodeDefinition]:
    """Get node definition by type name."""
    return NODE_DEFINITIONS.get(node_type)


def get_nodes_by_category(category: str) -> List[NodeDefinition]:
    """Get all nodes in a specific category."""
    return [node for node in ALL_NODES if node.category == category]


def validate_node_config(node_type: str, config: Dict[str, Any]) -> List[str]:
    """
    Check configuration values against the node type's field schema.

    Missing required fields are not reported here; the graph validator
    groups those per node.
    """
    node = get_node_definition(node_type)
    if not node:
        return [f"Unknown node type: {node_type}"]
    return validate_config_against(node, config)


def validate_config_against(node: NodeDefinition, config: Dict[str, Any]) -> List[str]:
    """Schema check of each configured value against its field definition."""
    errors = []
    for key, raw in config.items():
        field_def = node.get_field(key)
        if not field_def:
            continue

        value = raw if isinstance(raw, ConfigValue) else ConfigValue.from_raw(raw, field_def)
        if value.valid:
            continue

        if field_def.kind == FieldKind.SELECT and field_def.options and isinstance(value.value, str):
            errors.append(f"{field_def.label} must be one of: {', '.join(field_def.options)}")
        else:
            errors.append(f"{field_def.label} must be a {field_def.kind.value} value")

    return errors
