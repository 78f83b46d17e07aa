"""A scripted stand-in for the oracle transport."""
from __future__ import annotations

import json
from typing import Callable, List, Optional, Union

Scripted = Union[str, Exception, Callable[[str], str]]


class ScriptedTransport:
    """
    Plays back canned oracle responses in order and records every request.

    An entry may be a string, an exception to raise, or a callable that
    receives the request text. Once the script runs out, `default` is used.
    """

    def __init__(self, responses: Optional[List[Scripted]] = None, default: Optional[Scripted] = None):
        self.responses = list(responses or [])
        self.default = default
        self.requests: List[str] = []

    async def __call__(self, request_text: str) -> str:
        self.requests.append(request_text)
        if self.responses:
            item = self.responses.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise RuntimeError("scripted oracle has no response left")

        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request_text)
        return item


def critique_json(score: float, should_continue: bool = True, **extra) -> str:
    payload = {
        "score": score,
        "clarity": score,
        "effectiveness": score,
        "completeness": score,
        "improvements": ["Be more specific about the output format"],
        "concerns": ["Audience is not stated"],
        "recommendation": "Add detail",
        "shouldContinue": should_continue,
    }
    payload.update(extra)
    return json.dumps(payload)
