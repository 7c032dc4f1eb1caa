"""Tests for the execution engine state machine."""

import asyncio

import pytest

from apiflow.engine.compiler import compile_graph
from apiflow.engine.models import CompiledStep, RunStatus, TracePhase

from conftest import make_graph


def validated_signup_graph():
    return make_graph(
        [
            {"id": "in", "type": "input", "fields": {"variables": [{"name": "email"}, {"name": "password"}]}},
            {
                "id": "check",
                "type": "inputValidation",
                "fields": {"rules": [{"field": "{{email}}", "required": True, "type": "string"}]},
            },
            {
                "id": "save",
                "type": "dbInsert",
                "fields": {"collection": "users", "data": {"email": "{{email}}", "password": "{{password}}"}},
            },
        ],
        [("in", "check"), ("check", "save")],
    )


class TestSignupFlows:
    @pytest.mark.asyncio
    async def test_signup_stores_hashed_password(self, engine, store, signup_graph):
        steps = compile_graph(signup_graph)

        result = await engine.execute(steps, {"email": "a@b.com", "password": "secret"})

        assert result.ok is True
        assert result.failed_step is None
        assert result.output["createdRecord"]["email"] == "a@b.com"
        stored = await store.find_one("users", {"email": "a@b.com"})
        assert stored["password"] != "secret"
        assert [entry.phase for entry in result.steps] == [TracePhase.FINISHED, TracePhase.FINISHED]

    @pytest.mark.asyncio
    async def test_empty_insert_fails_at_its_step(self, engine):
        graph = make_graph(
            [
                {"id": "in", "type": "input", "fields": {"variables": []}},
                {"id": "save", "type": "dbInsert", "fields": {"collection": "users", "data": {}}},
            ],
            [("in", "save")],
        )

        result = await engine.execute(compile_graph(graph), {})

        assert result.ok is False
        assert result.failed_step == 1
        assert result.failed_step_id == "step2"
        assert "empty document" in result.error
        assert result.error_details["type"] == "EmptyDocumentError"

    @pytest.mark.asyncio
    async def test_auth_without_header_stops_execution(self, engine, store):
        graph = make_graph(
            [
                {"id": "in", "type": "input", "fields": {"variables": [{"name": "email"}]}},
                {"id": "auth", "type": "authMiddleware", "fields": {}},
                {"id": "save", "type": "dbInsert", "fields": {"collection": "users", "data": {"email": "{{email}}"}}},
            ],
            [("in", "auth"), ("auth", "save")],
        )

        result = await engine.execute(compile_graph(graph), {"email": "a@b.com"}, headers={})

        assert result.ok is False
        assert result.failed_step == 1
        assert len(result.steps) == 2
        assert result.steps[-1].phase == TracePhase.ERROR
        assert "Authorization" in result.error
        # Step 3 never ran
        assert await store.find_many("users", {}) == []

    @pytest.mark.asyncio
    async def test_auth_with_token_binds_current_user(self, engine, verifier):
        graph = make_graph([{"id": "auth", "type": "authMiddleware", "fields": {}}])
        token = verifier.create_access_token({"sub": "user-7"})

        result = await engine.execute(compile_graph(graph), {}, headers={"Authorization": f"Bearer {token}"})

        assert result.ok is True
        assert result.output["currentUser"]["sub"] == "user-7"

    @pytest.mark.asyncio
    async def test_validation_failure_lists_fields(self, engine, store):
        result = await engine.execute(compile_graph(validated_signup_graph()), {"email": "", "password": "x"})

        assert result.ok is False
        assert result.failed_step == 1
        assert result.error == "Input validation failed"
        assert result.error_details["details"]["errors"] == {"input.email": ["Field is required"]}
        assert await store.find_many("users", {}) == []


class TestEngine:
    @pytest.mark.asyncio
    async def test_environment_is_copy_on_write(self, engine):
        seen = []

        async def capture(fields, env, ctx):
            seen.append(env)
            return len(seen)

        engine.registry.register("capture", capture)
        steps = [
            CompiledStep(id="step1", kind="capture", output_var="first"),
            CompiledStep(id="step2", kind="capture", output_var="second"),
        ]

        result = await engine.execute(steps, {"a": 1})

        assert seen[0] == {"input": {"a": 1}}
        assert seen[1] == {"input": {"a": 1}, "first": 1}
        assert result.output == {"input": {"a": 1}, "first": 1, "second": 2}

    @pytest.mark.asyncio
    async def test_trace_records_environment_each_step_ran_against(self, engine, signup_graph):
        result = await engine.execute(compile_graph(signup_graph), {"email": "a@b.com", "password": "secret"})

        first, second = result.steps
        assert first.vars_snapshot == {"input": {"email": "a@b.com", "password": "secret"}}
        assert second.vars_snapshot["input"]["email"] == "a@b.com"
        assert "createdRecord" not in second.vars_snapshot
        assert result.output["createdRecord"]["password"] != "secret"

    @pytest.mark.asyncio
    async def test_caller_input_is_never_changed(self, engine):
        graph = make_graph([
            {"id": "save", "type": "dbInsert", "fields": {"collection": "users", "data": "input.user"}},
        ])
        caller_input = {"user": {"email": "a@b.com", "password": "secret"}}

        result = await engine.execute(compile_graph(graph), caller_input)

        assert result.ok is True
        assert caller_input == {"user": {"email": "a@b.com", "password": "secret"}}
        assert result.output["input"]["user"]["password"] == "secret"
        assert result.output["createdRecord"]["password"] != "secret"

    @pytest.mark.asyncio
    async def test_sink_receives_start_and_end_of_each_step(self, engine, sink, signup_graph):
        result = await engine.execute(
            compile_graph(signup_graph), {"email": "a@b.com", "password": "pw"}, execution_id="exec-1"
        )

        entries = sink.get_entries("exec-1")
        assert [(e.step_index, e.phase) for e in entries] == [
            (0, TracePhase.STARTED),
            (0, TracePhase.FINISHED),
            (1, TracePhase.STARTED),
            (1, TracePhase.FINISHED),
        ]
        assert result.execution_id == "exec-1"
        assert all(entry.duration_ms is not None for entry in result.steps)

    @pytest.mark.asyncio
    async def test_unknown_step_kind_fails_the_execution(self, engine):
        steps = [CompiledStep(id="step1", kind="webhook", output_var="hook")]

        result = await engine.execute(steps, {})

        assert result.ok is False
        assert result.failed_step == 0
        assert result.error_details["type"] == "UnknownStepKindError"

    @pytest.mark.asyncio
    async def test_committed_insert_is_not_rolled_back(self, engine, store):
        graph = make_graph(
            [
                {"id": "save", "type": "dbInsert", "fields": {"collection": "users", "data": {"email": "kept@x.com"}}},
                {"id": "auth", "type": "authMiddleware", "fields": {}},
            ],
            [("save", "auth")],
        )

        result = await engine.execute(compile_graph(graph), {})

        assert result.ok is False
        assert result.failed_step == 1
        assert await store.find_one("users", {"email": "kept@x.com"}) is not None

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_step_error(self, engine):
        async def explode(fields, env, ctx):
            raise RuntimeError("driver went away")

        engine.registry.register("explode", explode)

        result = await engine.execute([CompiledStep(id="step1", kind="explode", output_var="x")], {})

        assert result.ok is False
        assert result.error == "RuntimeError: driver went away"

    @pytest.mark.asyncio
    async def test_broken_sink_does_not_fail_execution(self, engine, signup_graph):
        class BrokenSink:
            async def record(self, execution_id, entry):
                raise RuntimeError("sink offline")

            async def finish(self, execution_id, status):
                raise RuntimeError("sink offline")

        engine.trace_sink = BrokenSink()

        run = await engine.run_steps(compile_graph(signup_graph), {"email": "a@b.com", "password": "pw"})

        assert run.status == RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_empty_step_list_finishes_immediately(self, engine):
        result = await engine.execute([], {"x": 1})
        assert result.ok is True
        assert result.steps == []
        assert result.output == {"input": {"x": 1}}

    @pytest.mark.asyncio
    async def test_concurrent_executions_are_isolated(self, engine, store, signup_graph):
        steps = compile_graph(signup_graph)
        emails = [f"user{i}@example.com" for i in range(5)]

        results = await asyncio.gather(*[
            engine.execute(steps, {"email": email, "password": "pw"}) for email in emails
        ])

        assert [r.output["createdRecord"]["email"] for r in results] == emails
        assert len({r.execution_id for r in results}) == 5
        assert len(await store.find_many("users", {})) == 5


class TestGraphsAndRuns:
    @pytest.mark.asyncio
    async def test_run_graph_keeps_the_run(self, engine, signup_graph):
        stored = engine.create_graph(signup_graph)

        run = await engine.run_graph(stored.graph_id, {"email": "a@b.com", "password": "pw"})

        assert stored.graph_id == "graph_1"
        assert run.status == RunStatus.COMPLETED
        assert run.graph_id == "graph_1"
        assert run.completed_at is not None
        assert engine.get_run(run.run_id) is run

    @pytest.mark.asyncio
    async def test_failed_run_status(self, engine):
        stored = engine.create_graph(make_graph([{"id": "auth", "type": "authMiddleware", "fields": {}}]))
        run = await engine.run_graph(stored.graph_id, {})
        assert run.status == RunStatus.FAILED

    @pytest.mark.asyncio
    async def test_run_unknown_graph(self, engine):
        with pytest.raises(ValueError, match="not found"):
            await engine.run_graph("graph_99", {})

    def test_publish_builds_slug_path(self, engine, signup_graph):
        stored = engine.create_graph(signup_graph)

        api = engine.publish(stored.graph_id, "Create User!")

        assert api.slug == "create-user"
        assert api.path == f"/run/{stored.graph_id}/create-user"
        assert engine.get_published(stored.graph_id, "create-user") == api
        assert engine.get_published(stored.graph_id, "other") is None

    def test_publish_rejects_unusable_names(self, engine, signup_graph):
        stored = engine.create_graph(signup_graph)
        with pytest.raises(ValueError):
            engine.publish(stored.graph_id, "!!!")
        with pytest.raises(ValueError):
            engine.publish("graph_404", "signup")
