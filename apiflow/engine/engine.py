from typing import Dict, Any, Optional, List, Sequence, TYPE_CHECKING
from datetime import datetime
import copy
import logging
import re
import time
import uuid

from ..errors import WorkflowError, StepError
from ..steps.context import StepContext
from ..steps.registry import StepRegistry
from .compiler import compile_graph
from .models import (
    Graph, CompiledStep, StoredGraph, PublishedApi, ExecutionRun,
    ExecutionResult, RunStatus, TraceEntry, TracePhase
)

if TYPE_CHECKING:
    from ..services.auth import AuthVerifier
    from ..services.email import EmailTransport
    from ..services.passwords import PasswordHasher
    from ..services.store import DocumentStoreConnector
    from ..services.trace import TraceSink

logger = logging.getLogger(__name__)


def to_api_slug(name: str) -> str:
    """'Create User!' -> 'create-user'"""
    return re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


class WorkflowEngine:
    """Core workflow compilation and execution engine"""

    def __init__(
        self,
        store: "DocumentStoreConnector",
        registry: Optional[StepRegistry] = None,
        verifier: Optional["AuthVerifier"] = None,
        hasher: Optional["PasswordHasher"] = None,
        mailer: Optional["EmailTransport"] = None,
        trace_sink: Optional["TraceSink"] = None,
    ):
        """
        Wire the engine to its collaborators.

        Only the document store is mandatory; a step whose collaborator is
        missing fails with its own error kind when it runs.
        """
        self.store = store
        self.registry = registry or StepRegistry()
        self.verifier = verifier
        self.hasher = hasher
        self.mailer = mailer
        self.trace_sink = trace_sink

        self.graphs: Dict[str, StoredGraph] = {}  # Compiled graphs by ID
        self.published: Dict[str, PublishedApi] = {}  # Published APIs by path
        self.runs: Dict[str, ExecutionRun] = {}  # Active/completed executions

    def create_graph(self, graph: Graph) -> StoredGraph:
        """
        Compile and store a graph definition.
        Compile errors propagate, so a broken graph is never stored.
        """
        steps = compile_graph(graph)
        graph_id = f"graph_{len(self.graphs) + 1}"
        stored = StoredGraph(graph_id=graph_id, graph=graph, steps=steps)
        self.graphs[graph_id] = stored
        return stored

    def get_graph(self, graph_id: str) -> Optional[StoredGraph]:
        return self.graphs.get(graph_id)

    def publish(self, graph_id: str, api_name: str) -> PublishedApi:
        """Expose a stored graph under /run/{graph_id}/{slug}."""
        if graph_id not in self.graphs:
            raise ValueError(f"Graph {graph_id} not found")

        slug = to_api_slug(api_name)
        if not slug:
            raise ValueError(f"API name '{api_name}' does not produce a usable slug")

        api = PublishedApi(
            graph_id=graph_id,
            name=api_name,
            slug=slug,
            path=f"/run/{graph_id}/{slug}"
        )
        self.published[api.path] = api
        logger.info(f"Published graph {graph_id} at {api.path}")
        return api

    def get_published(self, graph_id: str, slug: str) -> Optional[PublishedApi]:
        return self.published.get(f"/run/{graph_id}/{slug}")

    async def run_graph(
        self,
        graph_id: str,
        input: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, Any]] = None,
    ) -> ExecutionRun:
        """Execute a stored graph and keep the run for later lookup."""
        stored = self.get_graph(graph_id)
        if not stored:
            raise ValueError(f"Graph {graph_id} not found")
        return await self.run_steps(stored.steps, input, headers, graph_id=graph_id)

    async def run_steps(
        self,
        steps: Sequence[CompiledStep],
        input: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, Any]] = None,
        graph_id: Optional[str] = None,
    ) -> ExecutionRun:
        run = ExecutionRun.create(graph_id)
        run.status = RunStatus.RUNNING
        self.runs[run.run_id] = run

        run.result = await self.execute(steps, input, headers, execution_id=run.run_id)
        run.status = RunStatus.COMPLETED if run.result.ok else RunStatus.FAILED
        run.completed_at = datetime.now()

        if self.trace_sink is not None:
            try:
                await self.trace_sink.finish(run.run_id, run.status.value)
            except Exception as e:
                logger.warning(f"Trace sink failed to finish {run.run_id}: {e}")
        return run

    async def execute(
        self,
        steps: Sequence[CompiledStep],
        input: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, Any]] = None,
        execution_id: Optional[str] = None,
    ) -> ExecutionResult:
        """
        Run compiled steps strictly in order against a fresh environment.

        State machine: Running(i) -> Running(i + 1) on success, Failed(i) on
        the first step error, Finished once every step ran. Each success
        binds its value into a new environment snapshot. Nothing already
        written to the store is undone when a later step fails.
        """
        execution_id = execution_id or str(uuid.uuid4())
        ctx = StepContext(
            execution_id=execution_id,
            store=self.store,
            verifier=self.verifier,
            hasher=self.hasher,
            mailer=self.mailer,
            headers=dict(headers or {}),
        )
        env: Dict[str, Any] = {"input": copy.deepcopy(dict(input or {}))}
        trace: List[TraceEntry] = []
        started = time.perf_counter()

        index = 0
        while index < len(steps):
            step = steps[index]
            snapshot = copy.deepcopy(env)
            await self._record(execution_id, TraceEntry(
                step_index=index,
                step_id=step.id,
                step_kind=step.kind,
                phase=TracePhase.STARTED,
                input=step.resolved_fields,
                vars_snapshot=snapshot
            ))
            logger.info(f"[{execution_id}] Executing step {index}: {step.kind}")

            step_started = time.perf_counter()
            try:
                handler = self.registry.get(step.kind)
                value = await handler(step.resolved_fields, env, ctx)
            except Exception as e:
                error = self._as_workflow_error(e)
                entry = TraceEntry(
                    step_index=index,
                    step_id=step.id,
                    step_kind=step.kind,
                    phase=TracePhase.ERROR,
                    input=step.resolved_fields,
                    vars_snapshot=snapshot,
                    error=error.to_dict(),
                    duration_ms=_elapsed_ms(step_started)
                )
                trace.append(entry)
                await self._record(execution_id, entry)
                logger.error(f"[{execution_id}] Step {index} ({step.kind}) failed: {error.message}")

                return ExecutionResult(
                    execution_id=execution_id,
                    ok=False,
                    output=env,
                    steps=trace,
                    failed_step=index,
                    failed_step_id=step.id,
                    error=error.message,
                    error_details=error.to_dict(),
                    total_duration_ms=_elapsed_ms(started)
                )

            # Copy-on-write so earlier snapshots stay stable
            env = {**env, step.output_var: value}

            entry = TraceEntry(
                step_index=index,
                step_id=step.id,
                step_kind=step.kind,
                phase=TracePhase.FINISHED,
                input=step.resolved_fields,
                vars_snapshot=snapshot,
                output=value,
                duration_ms=_elapsed_ms(step_started)
            )
            trace.append(entry)
            await self._record(execution_id, entry)
            index += 1

        logger.info(f"[{execution_id}] Workflow finished after {len(steps)} steps")
        return ExecutionResult(
            execution_id=execution_id,
            ok=True,
            output=env,
            steps=trace,
            total_duration_ms=_elapsed_ms(started)
        )

    @staticmethod
    def _as_workflow_error(exc: Exception) -> WorkflowError:
        if isinstance(exc, WorkflowError):
            return exc
        # Driver or collaborator fault that no step translated
        logger.exception("Unexpected step failure")
        return StepError(f"{type(exc).__name__}: {exc}", {"type": type(exc).__name__})

    async def _record(self, execution_id: str, entry: TraceEntry) -> None:
        """Forward a trace entry to the sink; sink failures never fail the execution."""
        if self.trace_sink is None:
            return
        try:
            await self.trace_sink.record(execution_id, entry)
        except Exception as e:
            logger.warning(f"Trace sink failed for {execution_id}: {e}")

    def get_run(self, run_id: str) -> Optional[ExecutionRun]:
        return self.runs.get(run_id)

    def get_memory_stats(self) -> Dict[str, Any]:
        """Counters for monitoring."""
        total_logs = sum(
            len(run.result.steps) for run in self.runs.values() if run.result
        )
        return {
            "graphs": len(self.graphs),
            "published": len(self.published),
            "runs": len(self.runs),
            "step_kinds": len(self.registry.list_steps()),
            "total_logs": total_logs,
        }
