"""
Core workflow engine components

Graph compiler, variable resolver, execution engine and data models.
"""

from .engine import WorkflowEngine
from .compiler import compile_graph
from .resolver import resolve, resolve_value, rewrite_templates
from .models import (
    StepKind,
    Node,
    Edge,
    Graph,
    CompiledStep,
    TraceEntry,
    TracePhase,
    ExecutionResult,
    ExecutionRun,
    RunStatus
)

__all__ = [
    "WorkflowEngine",
    "compile_graph",
    "resolve",
    "resolve_value",
    "rewrite_templates",
    "StepKind",
    "Node",
    "Edge",
    "Graph",
    "CompiledStep",
    "TraceEntry",
    "TracePhase",
    "ExecutionResult",
    "ExecutionRun",
    "RunStatus"
]
