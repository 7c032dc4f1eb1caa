"""
Graph compiler - turns an authored node/edge graph into an ordered list of
CompiledStep objects ready for the execution engine.
"""

from collections import deque
from typing import Dict, List, Mapping
import logging

from ..errors import CycleError, DanglingEdgeError, DuplicateNodeError
from .models import Graph, Node, CompiledStep, StepKind, DEFAULT_OUTPUT_VARS
from .resolver import rewrite_templates

logger = logging.getLogger(__name__)

# Kinds whose output variable is part of the runtime contract
FIXED_OUTPUT_VARS = {
    StepKind.INPUT: "input",
    StepKind.AUTH: "currentUser",
}


def validate_edges(graph: Graph) -> None:
    """Reject duplicate node ids, edges to unknown nodes and self-loops."""
    node_ids = set()
    for node in graph.nodes:
        if node.id in node_ids:
            raise DuplicateNodeError(node.id)
        node_ids.add(node.id)

    for edge in graph.edges:
        if edge.source not in node_ids:
            raise DanglingEdgeError(edge.id, f"source node '{edge.source}' does not exist")
        if edge.target not in node_ids:
            raise DanglingEdgeError(edge.id, f"target node '{edge.target}' does not exist")
        if edge.source == edge.target:
            raise DanglingEdgeError(edge.id, "self-connection is not allowed")


def topological_order(graph: Graph) -> List[Node]:
    """
    Kahn's algorithm with a FIFO queue seeded in node array order.

    Ties are broken by position in graph.nodes, so a fixed input ordering
    always produces the same sequence. Raises CycleError when some nodes
    are never released.
    """
    adjacency: Dict[str, List[str]] = {node.id: [] for node in graph.nodes}
    in_degree: Dict[str, int] = {node.id: 0 for node in graph.nodes}

    for edge in graph.edges:
        adjacency[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = deque(node.id for node in graph.nodes if in_degree[node.id] == 0)
    ordered_ids: List[str] = []

    while queue:
        node_id = queue.popleft()
        ordered_ids.append(node_id)
        for target in adjacency[node_id]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                queue.append(target)

    if len(ordered_ids) != len(graph.nodes):
        released = set(ordered_ids)
        remaining = [node.id for node in graph.nodes if node.id not in released]
        raise CycleError(remaining)

    nodes_by_id = {node.id: node for node in graph.nodes}
    return [nodes_by_id[node_id] for node_id in ordered_ids]


def declared_input_variables(graph: Graph) -> List[str]:
    """Names declared by every input node in the graph, not just ancestors."""
    names: List[str] = []
    for node in graph.nodes:
        if node.type != StepKind.INPUT:
            continue
        variables = node.fields.get("variables")
        if not isinstance(variables, list):
            continue
        for variable in variables:
            if not isinstance(variable, Mapping):
                continue
            name = variable.get("name")
            if isinstance(name, str) and name.strip() and name.strip() not in names:
                names.append(name.strip())
    return names


def compile_graph(graph: Graph) -> List[CompiledStep]:
    """Validate, order and template-rewrite a graph. No partial result on failure."""
    validate_edges(graph)
    ordered = topological_order(graph)
    input_vars = declared_input_variables(graph)

    steps: List[CompiledStep] = []
    for counter, node in enumerate(ordered, start=1):
        fields = dict(node.fields)
        output_var = fields.pop("outputVar", None)

        if node.type in FIXED_OUTPUT_VARS:
            output_var = FIXED_OUTPUT_VARS[node.type]
        elif not output_var:
            output_var = DEFAULT_OUTPUT_VARS[node.type.value]

        steps.append(CompiledStep(
            id=f"step{counter}",
            kind=node.type.value,
            resolved_fields=rewrite_templates(fields, input_vars),
            output_var=output_var
        ))

    logger.info(f"Compiled graph '{graph.name}' into {len(steps)} steps")
    return steps
