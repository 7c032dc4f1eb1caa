"""
apiflow

Compiles node/edge workflow graphs into ordered steps and executes them
against a document store, an auth verifier and an email transport.
"""

__version__ = "1.0.0"

from .engine.engine import WorkflowEngine
from .engine.compiler import compile_graph
from .engine.models import Graph, Node, Edge, CompiledStep, ExecutionResult
from .steps.registry import StepRegistry

__all__ = [
    "WorkflowEngine",
    "compile_graph",
    "Graph",
    "Node",
    "Edge",
    "CompiledStep",
    "ExecutionResult",
    "StepRegistry"
]
