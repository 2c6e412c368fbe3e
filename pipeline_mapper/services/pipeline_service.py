"""
Pipeline Service
================
Facade the editor host talks to: local and remote validation, guarded
execution, pipeline definitions and mapping files.

The service holds no graph state of its own; every call reads the current
snapshot from the GraphStore it was given.
"""

from typing import Any, Dict, Optional

from ..core.exceptions import TransportError
from ..core.logger import StructuredLogger, get_logger
from ..infrastructure.config.settings import AppSettings, EditorSettings
from ..pipeline_graph.graph_store import GraphStore
from ..pipeline_graph.registry import NodeRegistry
from ..pipeline_graph.serializer import ExportMetadata, GraphSerializer, ParsedDocument, WireShape
from ..pipeline_graph.validators import GraphValidator, ValidationResult
from .remote_execution import ExecutionResult, RemoteExecutionClient


class PipelineService:
    """Validation, execution and persistence for one editor's graph."""

    def __init__(self, store: GraphStore,
                 client: Optional[RemoteExecutionClient] = None,
                 logger: Optional[StructuredLogger] = None,
                 validator: Optional[GraphValidator] = None,
                 serializer: Optional[GraphSerializer] = None,
                 editor: Optional[EditorSettings] = None):
        self.store = store
        self.client = client
        self.logger = logger or get_logger(__name__)
        self.validator = validator or GraphValidator(store.registry)
        self.serializer = serializer or GraphSerializer(store.registry)
        self.editor = editor or EditorSettings()

    @classmethod
    def from_settings(cls, settings: AppSettings,
                      registry: Optional[NodeRegistry] = None) -> 'PipelineService':
        """
        Wire a service from one AppSettings: a fresh store using the editor
        id prefix, and a backend client for ``settings.backend``.
        """
        store = GraphStore.from_settings(settings.editor, registry)
        client = RemoteExecutionClient(settings.backend)
        return cls(store, client=client, editor=settings.editor)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_pipeline(self) -> ValidationResult:
        """Validate the current graph locally."""
        snapshot = self.store.snapshot()
        result = self.validator.validate(snapshot.nodes, snapshot.connections)
        self.logger.debug("pipeline_service.validated", {
            "is_valid": result.is_valid,
            "errors": len(result.errors),
            "warnings": len(result.warnings)
        })
        return result

    async def validate_with_backend(self) -> ValidationResult:
        """
        Ask the backend to validate the current pipeline definition.

        Falls back to the local result when there is no client or the
        backend cannot be reached.
        """
        if self.client is None:
            return self.validate_pipeline()

        try:
            return await self.client.validate_pipeline(self.create_pipeline_definition())
        except TransportError as e:
            self.logger.warning("pipeline_service.remote_validation_unavailable", {
                "endpoint": e.endpoint,
                "status": e.status,
                "reason": e.reason
            })
            return self.validate_pipeline()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def create_pipeline_definition(self, name: Optional[str] = None,
                                   description: str = "") -> Dict[str, Any]:
        """Current graph in the pipeline wire shape, execution order included when acyclic."""
        meta = ExportMetadata(name=name, description=description, version=self.editor.default_version)
        return self.serializer.export_store(self.store, meta, WireShape.PIPELINE)

    async def execute_pipeline(self, name: Optional[str] = None) -> ExecutionResult:
        """
        Validate locally, then send the pipeline to the backend.

        An invalid graph never reaches the backend. Transport failures are
        reported in the returned result rather than raised.
        """
        validation = self.validate_pipeline()
        if not validation.is_valid:
            self.logger.info("pipeline_service.execution_blocked", {"errors": validation.errors})
            return ExecutionResult.failure(
                "Pipeline validation failed: " + ", ".join(validation.errors),
                *validation.errors
            )

        if self.client is None:
            return ExecutionResult.failure("No execution backend configured")

        pipeline = self.create_pipeline_definition(name)
        try:
            result = await self.client.execute_pipeline(pipeline)
        except TransportError as e:
            self.logger.error("pipeline_service.execution_failed", {
                "pipeline_id": pipeline["id"],
                "endpoint": e.endpoint,
                "status": e.status,
                "reason": e.reason
            })
            return ExecutionResult.failure(f"Pipeline execution failed: {e.message}")

        self.logger.info("pipeline_service.execution_submitted", {
            "pipeline_id": pipeline["id"],
            "execution_id": result.execution_id,
            "success": result.success
        })
        return result

    async def get_execution_status(self, execution_id: str) -> ExecutionResult:
        if self.client is None:
            return ExecutionResult.failure("No execution backend configured")
        try:
            return await self.client.get_execution_status(execution_id)
        except TransportError as e:
            self.logger.warning("pipeline_service.status_unavailable", {
                "execution_id": execution_id,
                "reason": e.reason
            })
            result = ExecutionResult.failure(f"Failed to get execution status: {e.message}")
            result.execution_id = execution_id
            return result

    # ------------------------------------------------------------------
    # Mapping files
    # ------------------------------------------------------------------

    def export_mapping(self, name: Optional[str] = None, description: str = "") -> Dict[str, Any]:
        meta = ExportMetadata(name=name, description=description, version=self.editor.default_version)
        return self.serializer.export_store(self.store, meta, WireShape.MAPPING)

    def import_payload(self, raw: Any) -> ParsedDocument:
        """Replace the graph with a mapping or pipeline document; StructuralError leaves it untouched."""
        return self.serializer.import_document(raw, self.store)

    def save_mapping(self, filepath: str, name: Optional[str] = None, description: str = "") -> Dict[str, Any]:
        document = self.export_mapping(name, description)
        self.serializer.save_to_file(document, filepath)
        return document

    def load_file(self, filepath: str) -> ParsedDocument:
        return self.serializer.load_from_file(filepath, self.store)
