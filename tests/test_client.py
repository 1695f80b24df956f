import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from picosim.client import ClientError, CompilationResult, CompileClient
from picosim.compiler import Compiler
from picosim.protocol import (
    CompilationRequest,
    Done,
    ErrorResponse,
    InProgress,
    Language,
    response_to_dict,
)
from picosim.server import create_app


def _scripted_app(compile_reply, result_replies, seen):
    async def compile_handler(request):
        seen.append(("compile", await request.json()))
        return web.json_response(response_to_dict(compile_reply))

    async def result_handler(request):
        seen.append(("result", await request.json()))
        return web.json_response(response_to_dict(result_replies.pop(0)))

    app = web.Application()
    app.router.add_post("/api/compile", compile_handler)
    app.router.add_post("/api/result", result_handler)
    return app


async def _start(app):
    server = TestServer(app)
    await server.start_server()
    return server, str(server.make_url(""))


@pytest.mark.asyncio
async def test_polls_until_done():
    seen = []
    app = _scripted_app(
        InProgress(id="job"),
        [InProgress(id="job"), Done(uf2=b"\x01\x02", disassembler="dis")],
        seen,
    )
    server, url = await _start(app)
    try:
        async with CompileClient(url, poll_interval=0) as client:
            result = await client.compile_source_code(Language.C, "int main(){}")
    finally:
        await server.close()
    assert result == CompilationResult(uf2=b"\x01\x02", disassembler="dis")
    assert [kind for kind, _ in seen] == ["compile", "result", "result"]
    assert seen[1][1] == {"id": "job"}


@pytest.mark.asyncio
async def test_compile_sends_main_c_request():
    seen = []
    app = _scripted_app(Done(uf2=b"", disassembler=""), [], seen)
    server, url = await _start(app)
    try:
        async with CompileClient(url) as client:
            await client.compile(Language.C, "code")
    finally:
        await server.close()
    request = CompilationRequest.from_dict(seen[0][1])
    assert request.source[0].filename == "main.c"
    assert request.source[0].code == "code"
    assert request.lang is Language.C


@pytest.mark.asyncio
async def test_immediate_done_skips_polling():
    seen = []
    app = _scripted_app(Done(uf2=b"\xff", disassembler="x"), [], seen)
    server, url = await _start(app)
    try:
        client = CompileClient(url, poll_interval=0)
        result = await client.compile_source_code(Language.C, "c")
    finally:
        await server.close()
    assert result.uf2 == b"\xff"
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_error_response_raises_with_message():
    seen = []
    app = _scripted_app(InProgress(id="j"), [ErrorResponse(message="boom")], seen)
    server, url = await _start(app)
    try:
        async with CompileClient(url, poll_interval=0) as client:
            with pytest.raises(ClientError, match="boom"):
                await client.compile_source_code(Language.C, "c")
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_http_error_status_raises():
    async def failing(request):
        return web.Response(status=500)

    app = web.Application()
    app.router.add_post("/api/compile", failing)
    server, url = await _start(app)
    try:
        async with CompileClient(url) as client:
            with pytest.raises(ClientError, match="Error: 500"):
                await client.compile(Language.C, "c")
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_invalid_body_raises():
    async def garbage(request):
        return web.Response(text="not json")

    app = web.Application()
    app.router.add_post("/api/result", garbage)
    server, url = await _start(app)
    try:
        async with CompileClient(url) as client:
            with pytest.raises(ClientError):
                await client.compilation_result("x")
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_against_package_server(tmp_path):
    static = tmp_path / "static"
    static.mkdir()
    compiler = Compiler(tmp_path / "data")
    server, url = await _start(create_app(compiler, static))
    try:
        async with CompileClient(url) as client:
            first = await client.compile(Language.C, "int main(){}")
            assert isinstance(first, InProgress)
            second = await client.compilation_result(first.id)
            unknown = await client.compilation_result("missing")
    finally:
        await server.close()
    assert second == InProgress(id=first.id)
    assert unknown == ErrorResponse(message="ID not found or have been cleaned up")