from typing import Any, Awaitable, Callable, Dict, List

from ..engine.models import StepKind
from ..errors import UnknownStepKindError
from .context import StepContext
from . import builtin

StepHandler = Callable[[Dict[str, Any], Dict[str, Any], StepContext], Awaitable[Any]]


class StepRegistry:
    """Registry mapping step kinds to their implementations"""

    def __init__(self):
        """Initialize the registry with the built-in step catalog."""
        self.steps: Dict[str, StepHandler] = {}
        self._register_default_steps()

    def register(self, kind: str, handler: StepHandler) -> None:
        """Register (or replace) the implementation for a step kind."""
        self.steps[str(kind.value if isinstance(kind, StepKind) else kind)] = handler

    def get(self, kind: str) -> StepHandler:
        """Retrieve a step implementation by kind."""
        if kind not in self.steps:
            raise UnknownStepKindError(kind, self.list_steps())
        return self.steps[kind]

    def list_steps(self) -> List[str]:
        return list(self.steps.keys())

    def _register_default_steps(self):
        self.register(StepKind.INPUT, builtin.collect_input)
        self.register(StepKind.VALIDATION, builtin.validate_input)
        self.register(StepKind.FIND, builtin.find_documents)
        self.register(StepKind.INSERT, builtin.insert_document)
        self.register(StepKind.UPDATE, builtin.update_documents)
        self.register(StepKind.DELETE, builtin.delete_documents)
        self.register(StepKind.AUTH, builtin.authenticate)
        self.register(StepKind.EMAIL, builtin.send_email)
        self.register(StepKind.LOGIN, builtin.login_user)
