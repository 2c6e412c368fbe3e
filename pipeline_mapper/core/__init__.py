"""
Core module for the pipeline mapper: logging and exceptions.
"""

from .exceptions import PipelineEngineError, StructuralError, TransportError, CyclicGraphError
from .logger import StructuredLogger, get_logger

__all__ = [
    'PipelineEngineError',
    'StructuralError',
    'TransportError',
    'CyclicGraphError',
    'StructuredLogger',
    'get_logger',
]
