from __future__ import annotations

from egressprobe.core.errors import StackNotFoundError
from egressprobe.models import (
    FUNCTION_NAME_OUTPUT,
    ProvisioningRequest,
    ResourceState,
    StackDescriptor,
)
from egressprobe.provisioning.base import CREATE_COMPLETE, SuffixFactory, random_suffix
from egressprobe.templates import load_template


class InMemoryProvisioner:
    """Recording provisioner for tests and dry runs.

    Every call is appended to ``calls`` as ``(operation, argument)``. An
    exception placed in ``failures`` under an operation name is raised the
    next time that operation runs.
    """

    def __init__(
        self,
        *,
        function_name: str = "egress-probe-function",
        suffix_factory: SuffixFactory = random_suffix,
    ) -> None:
        self.function_name = function_name
        self._suffix_factory = suffix_factory
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, Exception] = {}
        self.templates: dict[str, str] = {}
        self._stacks: dict[str, StackDescriptor] = {}
        self._states: dict[str, ResourceState] = {}

    def add_stack(self, stack_name: str, outputs: dict[str, str] | None = None) -> StackDescriptor:
        """Register an already created stack, e.g. to exercise resume."""
        if outputs is None:
            outputs = {FUNCTION_NAME_OUTPUT: self.function_name}
        descriptor = StackDescriptor(
            stack_id=self._stack_id(stack_name),
            stack_name=stack_name,
            status=CREATE_COMPLETE,
            outputs=outputs,
        )
        self._stacks[descriptor.stack_id] = descriptor
        self._stacks[stack_name] = descriptor
        self._states[descriptor.stack_id] = ResourceState.READY
        self._states[stack_name] = ResourceState.READY
        return descriptor

    def operations(self) -> list[str]:
        return [operation for operation, _ in self.calls]

    def _stack_id(self, stack_name: str) -> str:
        return f"arn:aws:cloudformation:local:000000000000:stack/{stack_name}/in-memory"

    def _record(self, operation: str, argument: str) -> None:
        self.calls.append((operation, argument))
        failure = self.failures.pop(operation, None)
        if failure is not None:
            raise failure

    def _lookup(self, stack_id: str) -> StackDescriptor:
        try:
            return self._stacks[stack_id]
        except KeyError:
            raise StackNotFoundError(
                "could not find stack with provided StackName",
                details={"stack_name": stack_id},
            ) from None

    def state(self, stack_id: str) -> ResourceState:
        return self._states.get(stack_id, ResourceState.NOT_CREATED)

    def create(self, request: ProvisioningRequest) -> str:
        template_body = load_template(request.template)
        stack_name = f"{request.stack_prefix or ''}{self._suffix_factory()}"
        self._record("create", stack_name)
        stack_id = self._stack_id(stack_name)
        self.templates[stack_id] = template_body
        self._stacks[stack_id] = StackDescriptor(
            stack_id=stack_id,
            stack_name=stack_name,
            status="CREATE_IN_PROGRESS",
        )
        self._states[stack_id] = ResourceState.CREATING
        return stack_id

    def wait_until_ready(self, stack_id: str, max_attempts: int | None = None) -> StackDescriptor:
        self._record("wait_until_ready", stack_id)
        pending = self._lookup(stack_id)
        ready = self.add_stack(pending.stack_name)
        return ready

    def describe(self, stack_id: str) -> StackDescriptor:
        self._record("describe", stack_id)
        descriptor = self._lookup(stack_id)
        _ = descriptor.function_name
        return descriptor

    def delete(self, stack_id: str) -> None:
        self._record("delete", stack_id)
        descriptor = self._stacks.get(stack_id)
        self._states[stack_id] = ResourceState.DELETING
        if descriptor is not None:
            self._states[descriptor.stack_id] = ResourceState.DELETING
