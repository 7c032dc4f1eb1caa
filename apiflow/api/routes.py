from fastapi import APIRouter, Body, HTTPException, Request, WebSocket, WebSocketDisconnect
from typing import Dict, Any, List, Optional
import json
import logging
import time

from apiflow.config import get_settings
from apiflow.engine.compiler import compile_graph
from apiflow.engine.engine import WorkflowEngine
from apiflow.engine.models import (
    Graph, CompiledStep, ExecutionRun, PublishedApi, RunStatus, StoredGraph, WireModel
)
from apiflow.errors import CompileError
from apiflow.services import (
    BcryptPasswordHasher, InMemoryDocumentStore, JWTAuthVerifier,
    SmtpEmailTransport, TraceBroadcaster
)
from apiflow.workflows.signup import create_signup_workflow, SAMPLE_SIGNUP

logger = logging.getLogger(__name__)

router = APIRouter()

# Global instances - initialized once when module loads
settings = get_settings()
trace_broadcaster = TraceBroadcaster()  # Trace storage + WebSocket fan-out
engine = WorkflowEngine(
    store=InMemoryDocumentStore(settings.collections),
    verifier=JWTAuthVerifier(settings.jwt_secret, settings.jwt_algorithm, settings.jwt_expire_minutes),
    hasher=BcryptPasswordHasher(settings.bcrypt_rounds),
    mailer=SmtpEmailTransport(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_user,
        password=settings.smtp_password,
        sender=settings.smtp_from,
        timeout=settings.smtp_timeout,
    ),
    trace_sink=trace_broadcaster,
)

# Bundled signup workflow, compiled once at startup
SIGNUP_GRAPH_ID = engine.create_graph(create_signup_workflow()).graph_id


# Request/Response models
class CompileResponse(WireModel):
    steps: List[CompiledStep]


class CreateGraphResponse(WireModel):
    graph_id: str
    message: str
    steps: List[CompiledStep]


class RunGraphRequest(WireModel):
    graph_id: str
    input: Dict[str, Any] = {}


class ExecuteRequest(WireModel):
    steps: List[CompiledStep]
    input: Dict[str, Any] = {}


class PublishRequest(WireModel):
    api_name: str


class LogsResponse(WireModel):
    run_id: str
    logs: List[Dict[str, Any]]
    finished: bool
    status: RunStatus
    timestamp: float


def _is_finished(run: ExecutionRun) -> bool:
    return run.status in (RunStatus.COMPLETED, RunStatus.FAILED)


@router.post("/graph/compile", response_model=CompileResponse)
async def compile_workflow(graph: Graph):
    """
    Compile a graph without storing it.

    Lets the editor preview the step order and rewritten fields before saving.
    """
    try:
        return CompileResponse(steps=compile_graph(graph))
    except CompileError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())


@router.post("/graph/create", response_model=CreateGraphResponse)
async def create_graph(graph: Graph):
    """
    Compile and store a workflow graph.

    A graph with a cycle or a dangling edge is rejected with 400 and is
    never stored.
    """
    try:
        stored = engine.create_graph(graph)
    except CompileError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    return CreateGraphResponse(
        graph_id=stored.graph_id,
        message=f"Graph '{graph.name}' created successfully",
        steps=stored.steps
    )


@router.get("/graphs")
async def list_graphs():
    """List all stored graphs with summary information."""
    return {
        "graphs": [
            {
                "graph_id": graph_id,
                "name": stored.graph.name,
                "node_count": len(stored.graph.nodes),
                "edge_count": len(stored.graph.edges)
            }
            for graph_id, stored in engine.graphs.items()
        ]
    }


@router.get("/graph/{graph_id}", response_model=StoredGraph)
async def get_graph(graph_id: str):
    stored = engine.get_graph(graph_id)
    if not stored:
        raise HTTPException(status_code=404, detail="Graph not found")
    return stored


@router.post("/graph/run", response_model=ExecutionRun)
async def run_graph(payload: RunGraphRequest, request: Request):
    """
    Execute a stored graph with the given input.

    Step failures are reported in the body (result.ok == false), not through
    the status code.
    """
    if not engine.get_graph(payload.graph_id):
        raise HTTPException(status_code=404, detail=f"Graph {payload.graph_id} not found")

    return await engine.run_graph(payload.graph_id, payload.input, dict(request.headers))


@router.post("/execute", response_model=ExecutionRun)
async def execute_steps(payload: ExecuteRequest, request: Request):
    """Execute an already compiled step list."""
    return await engine.run_steps(payload.steps, payload.input, dict(request.headers))


@router.post("/graph/{graph_id}/publish", response_model=PublishedApi)
async def publish_graph(graph_id: str, payload: PublishRequest):
    if not engine.get_graph(graph_id):
        raise HTTPException(status_code=404, detail="Graph not found")

    try:
        return engine.publish(graph_id, payload.api_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/run/{graph_id}/{slug}")
async def run_published(
    graph_id: str,
    slug: str,
    request: Request,
    body: Optional[Dict[str, Any]] = Body(default=None),
):
    """Run a published API: the request body is the workflow input."""
    api = engine.get_published(graph_id, slug)
    if not api:
        raise HTTPException(status_code=404, detail="API not published or invalid path")

    logger.info(f"Running published API {api.name} ({api.path})")
    run = await engine.run_graph(graph_id, body or {}, dict(request.headers))
    return run.result.model_dump(mode="json", by_alias=True)


@router.get("/runs/{run_id}", response_model=ExecutionRun)
async def get_run(run_id: str):
    run = engine.get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Workflow run not found")
    return run


@router.get("/runs/{run_id}/logs", response_model=LogsResponse)
async def get_run_logs(run_id: str, after: Optional[float] = None):
    """
    Poll trace entries of a run.

    `after` is an epoch-millisecond cursor; only newer entries are returned.
    """
    run = engine.get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Workflow run not found")

    return LogsResponse(
        run_id=run_id,
        logs=[
            trace_broadcaster.serialize(entry)
            for entry in trace_broadcaster.get_entries(run_id, after)
        ],
        finished=_is_finished(run),
        status=run.status,
        timestamp=time.time() * 1000
    )


@router.get("/collections")
async def list_collections():
    return {"collections": engine.store.collections()}


@router.get("/steps")
async def list_steps():
    """List all registered step kinds."""
    return {"steps": engine.registry.list_steps()}


@router.get("/memory/stats")
async def get_memory_stats():
    return {**engine.get_memory_stats(), **trace_broadcaster.stats()}


@router.post("/demo/signup", response_model=ExecutionRun)
async def demo_signup(request: Request, body: Optional[Dict[str, Any]] = Body(default=None)):
    """Demo endpoint running the bundled signup workflow on sample or provided input"""
    return await engine.run_graph(SIGNUP_GRAPH_ID, body or SAMPLE_SIGNUP, dict(request.headers))


@router.websocket("/ws/executions/{run_id}")
async def websocket_execution_logs(websocket: WebSocket, run_id: str):
    """WebSocket endpoint to stream an execution's trace in real time"""
    await websocket.accept()

    try:
        trace_broadcaster.add_websocket_connection(run_id, websocket)

        await websocket.send_json({
            "type": "connected",
            "message": f"Connected to execution {run_id}",
            "run_id": run_id
        })

        run = engine.get_run(run_id)
        if run:
            # Replay what was already recorded
            for entry in trace_broadcaster.get_entries(run_id):
                await websocket.send_json({"type": "log", **trace_broadcaster.serialize(entry)})

            await websocket.send_json({
                "type": "status",
                "run_id": run_id,
                "status": run.status.value
            })
        else:
            await websocket.send_json({
                "type": "waiting",
                "message": f"Waiting for execution {run_id} to start..."
            })

        # Keep the connection open; answer heartbeats
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            if message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        pass
    finally:
        trace_broadcaster.remove_websocket_connection(run_id, websocket)
