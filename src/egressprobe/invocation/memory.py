from __future__ import annotations

from collections import deque
from typing import Iterable, Sequence, Union

from egressprobe.models import ProbeResult, ProbeTarget

Scripted = Union[list[ProbeResult], Exception]


class InMemoryInvoker:
    """Scripted invoker that records every call.

    Each invocation consumes the next scripted response: a result list is
    returned, an exception is raised. Once the script runs out every target
    is reported as a fast success.
    """

    def __init__(self, responses: Iterable[Scripted] = ()) -> None:
        self._responses: deque[Scripted] = deque(responses)
        self.calls: list[tuple[str, tuple[ProbeTarget, ...]]] = []

    def script(self, *responses: Scripted) -> None:
        self._responses.extend(responses)

    def invoke(self, function_name: str, targets: Sequence[ProbeTarget]) -> list[ProbeResult]:
        self.calls.append((function_name, tuple(targets)))
        if not self._responses:
            return [
                ProbeResult(
                    name=target.name,
                    url=target.url,
                    elapsed_seconds=0.1,
                    success=True,
                    message="got response code from URL",
                    response_code=200,
                )
                for target in targets
            ]

        response = self._responses.popleft()
        if isinstance(response, Exception):
            raise response
        return list(response)
