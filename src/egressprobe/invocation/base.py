from __future__ import annotations

import json
from typing import Any, Protocol, Sequence

from egressprobe.core.errors import ResponseDecodeError
from egressprobe.models import ProbeResult, ProbeTarget

RUN_ALL = "RunAll"


class ProbeInvoker(Protocol):
    """Capability to run the probe function once and return its results."""

    def invoke(self, function_name: str, targets: Sequence[ProbeTarget]) -> list[ProbeResult]:
        ...


def build_payload(targets: Sequence[ProbeTarget]) -> bytes:
    """Encode the run-all request sent to the probe function."""
    event = {
        "RequestType": RUN_ALL,
        "TestUrls": [target.to_payload() for target in targets],
    }
    return json.dumps(event).encode("utf-8")


def decode_results(body: bytes | str) -> list[ProbeResult]:
    """Decode the probe function's response body.

    Raises:
        ResponseDecodeError: if the body is not a JSON array of result objects
    """
    try:
        data: Any = json.loads(body)
    except (TypeError, ValueError) as exc:
        raise ResponseDecodeError(f"could not decode probe response: {exc}") from exc

    if not isinstance(data, list):
        raise ResponseDecodeError(
            "probe response is not a list of results",
            details={"type": type(data).__name__},
        )
    return [ProbeResult.from_payload(item) for item in data]
