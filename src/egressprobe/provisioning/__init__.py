from __future__ import annotations

from egressprobe.provisioning.base import (
    CREATE_COMPLETE,
    FAILURE_STATUSES,
    TERMINAL_STATUSES,
    ResourceProvisioner,
    random_suffix,
    resource_state_for,
)
from egressprobe.provisioning.cloudformation import CloudFormationProvisioner
from egressprobe.provisioning.memory import InMemoryProvisioner

__all__ = [
    "CREATE_COMPLETE",
    "FAILURE_STATUSES",
    "TERMINAL_STATUSES",
    "CloudFormationProvisioner",
    "InMemoryProvisioner",
    "ResourceProvisioner",
    "random_suffix",
    "resource_state_for",
]
