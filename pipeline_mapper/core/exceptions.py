"""
Core Exceptions - Pipeline Mapper
=================================
Centralized exception definitions for the pipeline graph engine.

Only hard failures live here. Expected problems with a graph (type mismatch,
missing configuration, cycles) are collected by the validator and returned as
structured results instead of being raised.
"""

from typing import Optional


class PipelineEngineError(Exception):
    """Base exception for pipeline engine failures."""
    pass


class StructuralError(PipelineEngineError):
    """
    Raised when a payload cannot be recognized as either wire shape, or a
    required top-level field is absent or mistyped.

    Import aborts before any mutation; the current graph is left untouched.
    """
    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        self.message = f"{path}: {message}" if path else message
        super().__init__(self.message)


class TransportError(PipelineEngineError):
    """
    Raised when the remote execution service cannot be reached or answers
    with something other than a successful JSON response.
    """
    def __init__(self, endpoint: str, reason: str, status: Optional[int] = None):
        self.endpoint = endpoint
        self.reason = reason
        self.status = status
        if status is not None:
            self.message = f"Request to {endpoint} failed with HTTP {status}: {reason}"
        else:
            self.message = f"Request to {endpoint} failed: {reason}"
        super().__init__(self.message)


class CyclicGraphError(PipelineEngineError):
    """
    Raised by the execution order calculator when it reaches a node that is
    already on the current traversal path.
    """
    def __init__(self, node_id: str):
        self.node_id = node_id
        self.message = f"Cannot compute execution order: cycle detected at node {node_id}"
        super().__init__(self.message)
