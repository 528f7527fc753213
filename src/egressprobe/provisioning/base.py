from __future__ import annotations

import random
from typing import Callable, Protocol

from egressprobe.models import ProvisioningRequest, ResourceState, StackDescriptor

CREATE_COMPLETE = "CREATE_COMPLETE"

# Statuses that end a creation wait without success.
FAILURE_STATUSES = frozenset(
    {
        "ROLLBACK_IN_PROGRESS",
        "ROLLBACK_COMPLETE",
        "CREATE_FAILED",
        "DELETE_IN_PROGRESS",
        "DELETE_COMPLETE",
        "DELETE_FAILED",
    }
)

TERMINAL_STATUSES = FAILURE_STATUSES | {CREATE_COMPLETE}

_STATE_BY_STATUS = {
    "CREATE_IN_PROGRESS": ResourceState.CREATING,
    CREATE_COMPLETE: ResourceState.READY,
    "ROLLBACK_IN_PROGRESS": ResourceState.FAILED,
    "ROLLBACK_COMPLETE": ResourceState.FAILED,
    "CREATE_FAILED": ResourceState.FAILED,
    "DELETE_IN_PROGRESS": ResourceState.DELETING,
    "DELETE_COMPLETE": ResourceState.DELETED,
    "DELETE_FAILED": ResourceState.FAILED,
}

SuffixFactory = Callable[[], str]


def resource_state_for(status: str) -> ResourceState:
    """Project a CloudFormation stack status onto ResourceState."""
    return _STATE_BY_STATUS.get(status, ResourceState.CREATING)


def random_suffix(rng: random.Random | None = None) -> str:
    """Eight random digits used to make stack names unique."""
    source = rng or random
    return f"{source.randrange(100_000_000):08d}"


class ResourceProvisioner(Protocol):
    """Capability to manage the stack that hosts the probe function."""

    def create(self, request: ProvisioningRequest) -> str:
        """Submit stack creation and return the new stack id."""
        ...

    def wait_until_ready(self, stack_id: str, max_attempts: int | None = None) -> StackDescriptor:
        """Block until the stack is created, raising on failure or timeout."""
        ...

    def describe(self, stack_id: str) -> StackDescriptor:
        """Fetch stack metadata; the FunctionName output must be present."""
        ...

    def delete(self, stack_id: str) -> None:
        """Request stack deletion without waiting for it to finish."""
        ...

    def state(self, stack_id: str) -> ResourceState:
        """Last known state of ``stack_id``."""
        ...
