# [Core: Oracle Gateway]
"""
Oracle Gateway — the single choke point for every call to the external
text-transformation oracle (an LLM reachable only as text in, text out).

Supports two backends:
  1. CLI mode — pipes the request into a local command (default `claude -p`)
  2. API mode — calls an OpenAI-compatible chat completion endpoint

The gateway is cache-agnostic and does not enforce budgets. It counts every
invocation, strips a markdown fence that wraps the whole response, and turns
every transport failure (including timeouts) into OracleUnavailable. Failed
structured parses raise OracleMalformed. Nothing is retried here; each
caller decides what a failure means for its own run.
"""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import shlex
from typing import Awaitable, Callable, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from refiner.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# Any coroutine taking the request text and returning the raw response text
Transport = Callable[[str], Awaitable[str]]


class OracleError(Exception):
    """Base class for oracle failures."""


class OracleUnavailable(OracleError):
    """The oracle call could not be completed (process, transport or timeout)."""


class OracleMalformed(OracleError):
    """The oracle answered, but not in the structured shape the caller expected."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


def strip_code_fences(text: str) -> str:
    """Remove a ```lang ... ``` pair that wraps the entire response."""
    trimmed = text.strip()
    if not trimmed.startswith("```"):
        return trimmed
    lines = trimmed.split("\n")
    if len(lines) >= 2 and lines[-1].strip() == "```":
        return "\n".join(lines[1:-1]).strip()
    return trimmed


class OracleGateway:
    """
    Unified interface for oracle calls.

    Usage:
        gateway = OracleGateway()
        text = await gateway.invoke("Improve this prompt...")
        report = await gateway.invoke_structured("Critique...", CritiqueReport)
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._transport = transport
        self._client = None
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.oracle_timeout_seconds
        )
        self.call_count = 0
        self.failure_count = 0

    async def invoke(self, request_text: str) -> str:
        """
        Send one request to the oracle.

        Returns:
            The response text, trimmed and with any wrapping code fence removed.

        Raises:
            OracleUnavailable: the call could not be completed.
        """
        self.call_count += 1
        try:
            raw = await asyncio.wait_for(self._send(request_text), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            self.failure_count += 1
            logger.error(f"Oracle call timed out after {self.timeout_seconds:.0f}s")
            raise OracleUnavailable(
                f"Oracle call timed out after {self.timeout_seconds:.0f}s"
            ) from e
        except OracleUnavailable:
            self.failure_count += 1
            raise
        except Exception as e:
            self.failure_count += 1
            logger.error(f"Oracle call failed: {e}")
            raise OracleUnavailable(f"Oracle call failed: {e}") from e

        return strip_code_fences(raw or "")

    async def invoke_structured(self, request_text: str, response_model: Type[T]) -> T:
        """
        Invoke the oracle and parse the response into a Pydantic model.

        Raises:
            OracleUnavailable: the call could not be completed.
            OracleMalformed: the response did not contain a valid JSON object.
        """
        raw = await self.invoke(request_text)
        return self.parse_structured(raw, response_model)

    @classmethod
    def parse_structured(cls, raw: str, response_model: Type[T]) -> T:
        """Parse already-fetched response text. Raises OracleMalformed on failure."""
        extracted = cls._extract_json(raw)
        last_error: Optional[Exception] = None

        # Try the text as-is, then the extracted object, then a repaired object
        for candidate in (raw.strip(), extracted, cls._repair_truncated_json(extracted)):
            if not candidate:
                continue
            try:
                data = json.loads(candidate)
            except json.JSONDecodeError as e:
                last_error = e
                continue
            if not isinstance(data, dict):
                last_error = ValueError(f"expected a JSON object, got {type(data).__name__}")
                continue
            try:
                return response_model.model_validate(data)
            except ValidationError as e:
                last_error = e

        logger.warning(
            f"Could not parse {response_model.__name__} from oracle output: "
            f"{last_error}. Raw: {raw[:300]}"
        )
        raise OracleMalformed(
            f"Oracle returned invalid JSON for {response_model.__name__}: {last_error}",
            raw=raw,
        )

    async def _send(self, request_text: str) -> str:
        if self._transport is not None:
            return await self._transport(request_text)
        if settings.oracle_backend == "api":
            return await self._generate_api(request_text)
        return await self._generate_cli(request_text)

    async def _get_client(self):
        """Lazy-initialize the API client."""
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=settings.oracle_api_key or "not-needed",
                base_url=settings.oracle_base_url or "http://localhost:8000/v1",
                http_client=httpx.AsyncClient(timeout=self.timeout_seconds),
                max_retries=0,
            )
        return self._client

    async def _generate_api(self, request_text: str) -> str:
        """Generate via an OpenAI-compatible API."""
        client = await self._get_client()
        response = await client.chat.completions.create(
            model=settings.oracle_model_id,
            messages=[{"role": "user", "content": request_text}],
            max_tokens=settings.oracle_max_tokens,
            temperature=settings.oracle_temperature,
        )
        if not response.choices:
            raise OracleUnavailable("Oracle API returned no choices")
        return response.choices[0].message.content or ""

    async def _generate_cli(self, request_text: str) -> str:
        """Generate by piping the request into the configured command's stdin."""
        args = shlex.split(settings.oracle_cli_command)
        if not args:
            raise OracleUnavailable("ORACLE_CLI_COMMAND is empty")
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise OracleUnavailable(f"Could not start oracle command {args[0]!r}: {e}") from e

        try:
            stdout, stderr = await proc.communicate(request_text.encode("utf-8"))
        finally:
            # A timeout cancels communicate(); don't leave the child running
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                    await proc.wait()

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[:200]
            raise OracleUnavailable(
                f"Oracle command exited with status {proc.returncode}: {detail}"
            )
        return stdout.decode("utf-8", errors="replace")

    @staticmethod
    def _extract_json(text: str) -> str:
        """
        Extract the first balanced JSON object from free text.

        Scanning starts at the first '{', so bracketed prose before the object
        is skipped. Brackets inside string literals do not count toward depth.
        """
        start = text.find("{")
        if start < 0:
            return text.strip()

        depth = 0
        in_string = escaped = False
        for j in range(start, len(text)):
            c = text[j]
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
            elif c == '"':
                in_string = True
            elif c in "{[":
                depth += 1
            elif c in "}]":
                depth -= 1
                if depth == 0:
                    return text[start : j + 1]
        return text[start:]

    @staticmethod
    def _repair_truncated_json(text: str) -> Optional[str]:
        """Close a cut-off critique: the open string, then open arrays/objects."""
        if not text or not text.strip():
            return None

        closers: list[str] = []
        in_string = escaped = False
        for c in text:
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
            elif c == '"':
                in_string = True
            elif c in "{[":
                closers.append("}" if c == "{" else "]")
            elif c in "}]" and closers:
                closers.pop()

        repaired = text.rstrip() + ('"' if in_string else "")
        return repaired.rstrip().rstrip(",") + "".join(reversed(closers))
