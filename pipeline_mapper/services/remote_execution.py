"""
Remote Execution Client
=======================
HTTP client for the pipeline execution backend.

Endpoints (relative to ``BackendSettings.base_url``):

* ``GET  /health``
* ``POST /pipeline/validate``
* ``POST /pipeline/execute``
* ``GET  /pipeline/execution/{id}``
* ``POST /dataset/upload`` (multipart)
* ``GET  /dataset/{id}``
* ``POST /node/test``
* ``POST /export/ocel/{id}`` (binary body)
* ``GET  /files/list``
* ``GET  /executions/list``

Each call is independent; there are no retries. Every failure to get a
successful answer is raised as TransportError.
"""

import asyncio
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from ..core.exceptions import TransportError
from ..core.logger import StructuredLogger, get_logger
from ..infrastructure.config.settings import BackendSettings
from ..pipeline_graph.validators import ValidationResult


@dataclass
class ExecutionResult:
    """Outcome of a pipeline execution, local guard failures included."""
    success: bool
    execution_id: Optional[str] = None
    results: Any = None
    logs: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "executionId": self.execution_id,
            "results": self.results,
            "logs": list(self.logs),
            "errors": list(self.errors)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExecutionResult':
        # ``results`` is opaque and forwarded unchanged
        return cls(
            success=bool(data.get("success", False)),
            execution_id=data.get("executionId"),
            results=data.get("results"),
            logs=[str(line) for line in data.get("logs") or []],
            errors=[str(e) for e in data.get("errors") or []]
        )

    @classmethod
    def failure(cls, *errors: str) -> 'ExecutionResult':
        return cls(success=False, errors=list(errors))


FILE_TYPES_BY_EXTENSION = {
    "csv": "CSV",
    "json": "JSON",
    "xml": "XML",
    "xes": "XES",
    "yaml": "YAML",
    "yml": "YAML",
}


def file_type_from_name(filename: str) -> str:
    """Dataset file type for an upload, from the extension; CSV when unrecognised."""
    extension = filename.lower().rsplit(".", 1)[-1] if "." in filename else ""
    return FILE_TYPES_BY_EXTENSION.get(extension, "CSV")


@dataclass
class UploadedDataset:
    """Backend receipt for an uploaded dataset file."""
    success: bool
    file_id: str
    filename: str = ""
    original_name: str = ""
    file_type: str = ""
    size: int = 0
    uploaded_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UploadedDataset':
        return cls(
            success=bool(data.get("success", False)),
            file_id=str(data.get("fileId", "")),
            filename=str(data.get("filename", "")),
            original_name=str(data.get("originalName", "")),
            file_type=str(data.get("fileType", "")),
            size=int(data.get("size") or 0),
            uploaded_at=data.get("uploadedAt")
        )


class RemoteExecutionClient:
    """
    Async client for the execution backend.

    The aiohttp session is created in ``start()`` (or lazily on the first
    request) and closed in ``stop()``; the client is also an async context
    manager.
    """

    def __init__(self, settings: Optional[BackendSettings] = None,
                 logger: Optional[StructuredLogger] = None):
        self.settings = settings or BackendSettings()
        self.logger = logger or get_logger(__name__)
        self.base_url = self.settings.base_url.rstrip("/")
        self.session: Optional[aiohttp.ClientSession] = None

        # Statistics
        self.total_requests = 0
        self.failed_requests = 0

    async def start(self) -> None:
        """Initialize HTTP session"""
        if not self.session:
            timeout = aiohttp.ClientTimeout(
                total=self.settings.timeout_seconds,
                connect=self.settings.connect_timeout_seconds
            )
            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": self.settings.user_agent}
            )
            self.logger.info("remote_execution.started", {"base_url": self.base_url})

    async def stop(self) -> None:
        """Close HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("remote_execution.stopped")

    async def __aenter__(self) -> 'RemoteExecutionClient':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _request(self, method: str, endpoint: str,
                       payload: Optional[Dict[str, Any]] = None,
                       form: Optional[aiohttp.FormData] = None,
                       binary: bool = False) -> Any:
        """
        Perform one request and return the decoded JSON body.

        ``form`` is sent as a multipart body instead of ``payload``. With
        ``binary`` the raw response bytes are returned undecoded.

        Raises:
            TransportError: On connection failure, timeout, non-2xx status
                or a body that is not JSON
        """
        if not self.session:
            await self.start()

        url = f"{self.base_url}{endpoint}"
        self.total_requests += 1
        started = time.monotonic()
        body = {"data": form} if form is not None else {"json": payload}

        try:
            async with self.session.request(method, url, **body) as response:
                if not 200 <= response.status < 300:
                    reason = await self._error_reason(response)
                    raise TransportError(endpoint, reason, status=response.status)
                if binary:
                    data = await response.read()
                else:
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise TransportError(endpoint, "response body is not valid JSON",
                                             status=response.status) from e

        except TransportError as e:
            self._record_failure(e)
            raise
        except asyncio.TimeoutError as e:
            error = TransportError(endpoint, f"timed out after {self.settings.timeout_seconds}s")
            self._record_failure(error)
            raise error from e
        except aiohttp.ClientError as e:
            error = TransportError(endpoint, str(e) or type(e).__name__)
            self._record_failure(error)
            raise error from e

        self.logger.debug("remote_execution.request_completed", {
            "method": method,
            "endpoint": endpoint,
            "duration_ms": round((time.monotonic() - started) * 1000, 1)
        })
        return data

    @staticmethod
    async def _error_reason(response: aiohttp.ClientResponse) -> str:
        """Prefer the backend's ``error`` field over the bare status text."""
        try:
            body = await response.json(content_type=None)
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return response.reason or "request failed"

    def _record_failure(self, error: TransportError) -> None:
        self.failed_requests += 1
        self.logger.warning("remote_execution.request_failed", {
            "endpoint": error.endpoint,
            "status": error.status,
            "reason": error.reason
        })

    async def health_check(self) -> bool:
        """True when the backend answers ``/health`` successfully."""
        try:
            await self._request("GET", "/health")
        except TransportError:
            return False
        return True

    async def validate_pipeline(self, payload: Dict[str, Any]) -> ValidationResult:
        data = await self._request("POST", "/pipeline/validate", payload)
        if not isinstance(data, dict):
            raise TransportError("/pipeline/validate", "expected a JSON object")
        return ValidationResult.from_dict(data)

    async def execute_pipeline(self, payload: Dict[str, Any]) -> ExecutionResult:
        data = await self._request("POST", "/pipeline/execute", payload)
        if not isinstance(data, dict):
            raise TransportError("/pipeline/execute", "expected a JSON object")
        result = ExecutionResult.from_dict(data)
        self.logger.info("remote_execution.pipeline_executed", {
            "pipeline_id": payload.get("id"),
            "execution_id": result.execution_id,
            "success": result.success
        })
        return result

    async def get_execution_status(self, execution_id: str) -> ExecutionResult:
        endpoint = f"/pipeline/execution/{execution_id}"
        data = await self._request("GET", endpoint)
        if not isinstance(data, dict):
            raise TransportError(endpoint, "expected a JSON object")
        return ExecutionResult.from_dict(data)

    # ------------------------------------------------------------------
    # Datasets and exports
    # ------------------------------------------------------------------

    async def upload_dataset(self, filepath: str, file_type: Optional[str] = None) -> UploadedDataset:
        """
        Upload a local dataset file as ``multipart/form-data``.

        Args:
            filepath: File to send; its base name is the upload's file name
            file_type: Backend file type (CSV, JSON, ...); derived from the
                extension when omitted

        Raises:
            OSError: If the file cannot be read
            TransportError: If the backend rejects or never answers the upload
        """
        filename = os.path.basename(filepath)
        file_type = file_type or file_type_from_name(filename)
        with open(filepath, "rb") as f:
            content = f.read()

        form = aiohttp.FormData()
        form.add_field("dataset", content, filename=filename, content_type="application/octet-stream")
        form.add_field("fileName", filename)
        form.add_field("fileType", file_type)

        data = await self._request("POST", "/dataset/upload", form=form)
        if not isinstance(data, dict):
            raise TransportError("/dataset/upload", "expected a JSON object")
        uploaded = UploadedDataset.from_dict(data)
        self.logger.info("remote_execution.dataset_uploaded", {
            "file_name": filename,
            "file_type": file_type,
            "size": len(content),
            "file_id": uploaded.file_id
        })
        return uploaded

    async def get_dataset_info(self, file_id: str) -> Dict[str, Any]:
        endpoint = f"/dataset/{file_id}"
        data = await self._request("GET", endpoint)
        if not isinstance(data, dict):
            raise TransportError(endpoint, "expected a JSON object")
        return data

    async def test_node(self, node_data: Dict[str, Any]) -> Any:
        """Run a single node's configuration on the backend; the reply is forwarded unchanged."""
        return await self._request("POST", "/node/test", node_data)

    async def export_to_ocel(self, execution_id: str, options: Optional[Dict[str, Any]] = None) -> bytes:
        """Download an execution's results as an OCEL document."""
        return await self._request("POST", f"/export/ocel/{execution_id}", options or {}, binary=True)

    async def list_files(self) -> Any:
        return await self._request("GET", "/files/list")

    async def list_executions(self) -> Any:
        return await self._request("GET", "/executions/list")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests
        }
