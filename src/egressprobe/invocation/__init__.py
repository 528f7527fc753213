from __future__ import annotations

from egressprobe.invocation.aws_lambda import LambdaInvoker
from egressprobe.invocation.base import RUN_ALL, ProbeInvoker, build_payload, decode_results
from egressprobe.invocation.memory import InMemoryInvoker

__all__ = [
    "RUN_ALL",
    "InMemoryInvoker",
    "LambdaInvoker",
    "ProbeInvoker",
    "build_payload",
    "decode_results",
]
