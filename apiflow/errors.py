from typing import Any, Dict, List, Optional


class WorkflowError(Exception):
    """Base class for every error raised by the compiler or a step"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form attached to trace entries and API responses."""
        data = {"type": self.kind, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


# Compile time errors - a graph that raises one of these is never executed

class CompileError(WorkflowError):
    pass


class CycleError(CompileError):
    def __init__(self, remaining: List[str]):
        super().__init__(
            "Cycle detected in workflow graph",
            {"nodes": remaining}
        )
        self.remaining = remaining


class DanglingEdgeError(CompileError):
    def __init__(self, edge_id: str, reason: str):
        super().__init__(f"Edge {edge_id}: {reason}", {"edge": edge_id})
        self.edge_id = edge_id


class DuplicateNodeError(CompileError):
    def __init__(self, node_id: str):
        super().__init__(f"Duplicate node id '{node_id}'", {"node": node_id})
        self.node_id = node_id


# Run time errors - fatal to the current execution only

class StepError(WorkflowError):
    pass


class ValidationError(StepError):
    """Aggregated field errors from an inputValidation step"""

    def __init__(self, errors: Dict[str, List[str]]):
        super().__init__(
            "Input validation failed",
            {"errors": errors, "failedFields": list(errors)}
        )
        self.errors = errors


class NotFoundModelError(StepError):
    def __init__(self, collection: Optional[str], available: Optional[List[str]] = None):
        message = f"Model not found for collection \"{collection}\""
        if available:
            message += f". Available collections: {', '.join(available)}"
        super().__init__(message, {"collection": collection})
        self.collection = collection


class EmptyDocumentError(StepError):
    def __init__(self, collection: str):
        super().__init__(
            f"Refusing to insert an empty document into \"{collection}\"",
            {"collection": collection}
        )


class AuthError(StepError):
    pass


class EmailError(StepError):
    pass


class UnknownStepKindError(StepError):
    def __init__(self, kind: str, available: List[str]):
        super().__init__(
            f"Unknown step type: {kind}",
            {"availableTypes": available}
        )
        self.step_kind = kind
