"""Internet egress testing for VPC subnets through a temporary Lambda probe."""

from egressprobe.core.errors import EgressProbeError
from egressprobe.invocation import InMemoryInvoker, LambdaInvoker
from egressprobe.models import (
    DEFAULT_TARGETS,
    Outcome,
    ProbeResult,
    ProbeTarget,
    ProvisioningRequest,
)
from egressprobe.orchestrator import EgressTester
from egressprobe.provisioning import CloudFormationProvisioner, InMemoryProvisioner

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_TARGETS",
    "CloudFormationProvisioner",
    "EgressProbeError",
    "EgressTester",
    "InMemoryInvoker",
    "InMemoryProvisioner",
    "LambdaInvoker",
    "Outcome",
    "ProbeResult",
    "ProbeTarget",
    "ProvisioningRequest",
]
