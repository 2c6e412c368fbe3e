"""
Services - remote execution client and the pipeline facade used by the editor host.
"""

from .remote_execution import ExecutionResult, RemoteExecutionClient
from .pipeline_service import PipelineService

__all__ = ['ExecutionResult', 'RemoteExecutionClient', 'PipelineService']
