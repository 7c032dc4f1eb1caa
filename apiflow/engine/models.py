from typing import Dict, Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from enum import Enum
import uuid
from datetime import datetime


class WireModel(BaseModel):
    """Snake case in Python, camelCase on the wire"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StepKind(str, Enum):
    INPUT = "input"
    VALIDATION = "inputValidation"
    FIND = "dbFind"
    INSERT = "dbInsert"
    UPDATE = "dbUpdate"
    DELETE = "dbDelete"
    AUTH = "authMiddleware"
    EMAIL = "emailSend"
    LOGIN = "userLogin"


# Variable a step binds its result to when the node sets no outputVar
DEFAULT_OUTPUT_VARS: Dict[str, str] = {
    StepKind.INPUT.value: "input",
    StepKind.VALIDATION.value: "validated",
    StepKind.FIND.value: "foundData",
    StepKind.INSERT.value: "createdRecord",
    StepKind.UPDATE.value: "updatedRecord",
    StepKind.DELETE.value: "deletedRecord",
    StepKind.AUTH.value: "currentUser",
    StepKind.EMAIL.value: "emailResult",
    StepKind.LOGIN.value: "loginResult",
}


class TracePhase(str, Enum):
    STARTED = "started"
    FINISHED = "finished"
    ERROR = "error"


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Node(WireModel):
    """A typed operation placed on the canvas"""
    id: str
    type: StepKind
    fields: Dict[str, Any] = Field(default_factory=dict)


class Edge(WireModel):
    id: str
    source: str
    target: str


class Graph(WireModel):
    """Node/edge structure as authored in the editor and stored as JSON"""
    name: str = "Untitled workflow"
    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)


class CompiledStep(WireModel):
    """
    Runtime-ready form of one node.

    resolved_fields have had every {{...}} template rewritten to a canonical
    variable path. kind stays a plain string so stored step lists with an
    unknown kind still reach the engine.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    kind: str
    resolved_fields: Dict[str, Any] = Field(default_factory=dict)
    output_var: str


class TraceEntry(WireModel):
    """One event in the execution trace of a single step"""
    step_index: int
    step_id: str
    step_kind: str
    phase: TracePhase
    input: Dict[str, Any] = Field(default_factory=dict)
    vars_snapshot: Dict[str, Any] = Field(default_factory=dict)  # environment the step ran against
    output: Any = None
    error: Optional[Dict[str, Any]] = None
    duration_ms: Optional[float] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class ExecutionResult(WireModel):
    """Terminal value of one execution"""
    execution_id: str
    ok: bool
    output: Dict[str, Any] = Field(default_factory=dict)
    steps: List[TraceEntry] = Field(default_factory=list)
    failed_step: Optional[int] = None
    failed_step_id: Optional[str] = None
    error: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None
    total_duration_ms: float = 0


class ExecutionRun(WireModel):
    """Runtime information for an execution of a stored graph"""
    run_id: str
    graph_id: Optional[str] = None
    status: RunStatus
    result: Optional[ExecutionResult] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def create(cls, graph_id: Optional[str] = None) -> "ExecutionRun":
        return cls(
            run_id=str(uuid.uuid4()),
            graph_id=graph_id,
            status=RunStatus.PENDING,
            created_at=datetime.now()
        )


class StoredGraph(WireModel):
    """A compiled graph kept by the engine, keyed by graph_id"""
    graph_id: str
    graph: Graph
    steps: List[CompiledStep]


class PublishedApi(WireModel):
    graph_id: str
    name: str
    slug: str
    path: str
