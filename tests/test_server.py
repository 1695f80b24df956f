from pathlib import Path

import pytest
from aiohttp.test_utils import TestClient, TestServer

from picosim.compiler import ID_LENGTH, Compiler
from picosim.protocol import CompilationRequest, Language, SourceCode, c_request
from picosim.server import build_web_app, create_app


def _make(tmp_path: Path) -> tuple[Compiler, Path]:
    static = tmp_path / "static"
    static.mkdir()
    (static / "index.html").write_text("<html>index</html>")
    (static / "app.js").write_text("console.log(1);")
    return Compiler(tmp_path / "data"), static


@pytest.mark.asyncio
async def test_index_is_served(tmp_path):
    compiler, static = _make(tmp_path)
    async with TestClient(TestServer(create_app(compiler, static))) as client:
        resp = await client.get("/")
        assert resp.status == 200
        assert await resp.text() == "<html>index</html>"


@pytest.mark.asyncio
async def test_static_file_is_served(tmp_path):
    compiler, static = _make(tmp_path)
    async with TestClient(TestServer(create_app(compiler, static))) as client:
        resp = await client.get("/app.js")
        assert await resp.text() == "console.log(1);"


@pytest.mark.asyncio
async def test_unknown_path_gets_empty_reply(tmp_path):
    compiler, static = _make(tmp_path)
    async with TestClient(TestServer(create_app(compiler, static))) as client:
        resp = await client.get("/missing.txt")
        assert resp.status == 200
        assert await resp.text() == ""


@pytest.mark.asyncio
async def test_compile_returns_in_progress_id(tmp_path):
    compiler, static = _make(tmp_path)
    async with TestClient(TestServer(create_app(compiler, static))) as client:
        resp = await client.post("/api/compile", json=c_request("int main(){}").to_dict())
        body = await resp.json()
        assert list(body) == ["InProgress"]
        assert len(body["InProgress"]["id"]) == ID_LENGTH


@pytest.mark.asyncio
async def test_result_of_queued_job_is_in_progress(tmp_path):
    compiler, static = _make(tmp_path)
    async with TestClient(TestServer(create_app(compiler, static))) as client:
        resp = await client.post("/api/compile", json=c_request("x").to_dict())
        job_id = (await resp.json())["InProgress"]["id"]
        resp = await client.post("/api/result", json={"id": job_id})
        assert await resp.json() == {"InProgress": {"id": job_id}}


@pytest.mark.asyncio
async def test_result_of_unknown_id(tmp_path):
    compiler, static = _make(tmp_path)
    async with TestClient(TestServer(create_app(compiler, static))) as client:
        resp = await client.post("/api/result", json={"id": "nope"})
        assert await resp.json() == {
            "Error": {"message": "ID not found or have been cleaned up"}
        }


@pytest.mark.asyncio
async def test_failed_compilation_is_reported(tmp_path):
    compiler, static = _make(tmp_path)
    request = CompilationRequest(
        lang=Language.C, source=[SourceCode(filename="other.c", code="x")]
    )
    async with TestClient(TestServer(create_app(compiler, static))) as client:
        resp = await client.post("/api/compile", json=request.to_dict())
        job_id = (await resp.json())["InProgress"]["id"]
        await compiler.process_queue()
        resp = await client.post("/api/result", json={"id": job_id})
        assert await resp.json() == {
            "Error": {
                "message": "Unsupported file name. Currently only main.c is allowed"
            }
        }


@pytest.mark.asyncio
async def test_malformed_body_gets_empty_reply(tmp_path):
    compiler, static = _make(tmp_path)
    async with TestClient(TestServer(create_app(compiler, static))) as client:
        resp = await client.post("/api/compile", data=b"not json")
        assert resp.status == 200
        assert await resp.text() == ""


@pytest.mark.asyncio
async def test_build_web_app_without_trunk_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(OSError):
        await build_web_app(tmp_path / "dist")