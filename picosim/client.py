"""Client for the compilation server."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from picosim.protocol import (
    CompilationRequest,
    CompilationResponse,
    CompilationStatusRequest,
    Done,
    ErrorResponse,
    InProgress,
    Language,
    SourceCode,
    Target,
    response_from_dict,
)

log = logging.getLogger(__name__)


class ClientError(Exception):
    """A request to the compilation server failed."""


@dataclass(frozen=True)
class CompilationResult:
    """Artifacts of a successful compilation."""

    uf2: bytes
    disassembler: str


class CompileClient:
    """Submits code to the compilation server and waits for the result."""

    def __init__(
        self,
        base_url: str = "",
        *,
        session: aiohttp.ClientSession | None = None,
        poll_interval: float = 1.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> "CompileClient":
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    async def _send(
        self, session: aiohttp.ClientSession, url: str, payload: dict[str, Any]
    ) -> CompilationResponse:
        async with session.post(url, json=payload) as resp:
            if not resp.ok:
                raise ClientError(f"Error: {resp.status}")
            try:
                data = await resp.json(content_type=None)
            except ValueError as exc:
                raise ClientError(str(exc)) from exc
        try:
            return response_from_dict(data)
        except ValueError as exc:
            raise ClientError(str(exc)) from exc

    async def _post(self, path: str, payload: dict[str, Any]) -> CompilationResponse:
        url = f"{self.base_url}{path}"
        try:
            if self._session is not None:
                return await self._send(self._session, url, payload)
            async with aiohttp.ClientSession() as session:
                return await self._send(session, url, payload)
        except aiohttp.ClientError as exc:
            raise ClientError(str(exc)) from exc

    async def compile(self, lang: Language, code: str) -> CompilationResponse:
        """Submit ``code`` as main.c; raises ClientError on transport failure."""
        request = CompilationRequest(
            lang=lang,
            source=[SourceCode(filename="main.c", code=code)],
            target=Target.RISCV,
            compiler_options=None,
        )
        return await self._post("/api/compile", request.to_dict())

    async def compilation_result(self, id: str) -> CompilationResponse:
        """Ask for the state of a compilation job."""
        return await self._post("/api/result", CompilationStatusRequest(id=id).to_dict())

    async def compile_source_code(self, lang: Language, code: str) -> CompilationResult:
        """Compile and poll until done; raises ClientError with the server's message."""
        match await self.compile(lang, code):
            case Done(uf2=uf2, disassembler=dis):
                return CompilationResult(uf2=uf2, disassembler=dis)
            case ErrorResponse(message=message):
                raise ClientError(message)
            case InProgress(id=job_id):
                pass

        while True:
            match await self.compilation_result(job_id):
                case Done(uf2=uf2, disassembler=dis):
                    log.info("Compilation done")
                    return CompilationResult(uf2=uf2, disassembler=dis)
                case ErrorResponse(message=message):
                    log.error("Compilation error: %s", message)
                    raise ClientError(message)
                case InProgress(id=current):
                    log.info("Compilation in progress: %s", current)
                    await asyncio.sleep(self.poll_interval)