"""HTTP server that serves the web front end and the compilation API."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import json
import logging
from pathlib import Path

from aiohttp import web

from picosim.compiler import Compiler
from picosim.config import ServerConfig
from picosim.protocol import (
    CompilationRequest,
    CompilationStatusRequest,
    response_to_dict,
)

log = logging.getLogger(__name__)

CONFIG_PATH = "config.toml"
INDEX_FILE = "index.html"


async def build_web_app(static_dir: str | Path) -> None:
    """Build the web front end into ``static_dir`` with trunk.

    Raises OSError if trunk cannot be started and RuntimeError if it fails.
    """
    process = await asyncio.create_subprocess_exec(
        "trunk",
        "build",
        "--release",
        "--minify",
        "--config",
        "web/Trunk.toml",
        "--dist",
        str(static_dir),
        stderr=asyncio.subprocess.PIPE,
    )
    _, stderr = await process.communicate()
    if process.returncode != 0:
        log.error(
            "Error building web app: %s", stderr.decode("utf-8", errors="replace")
        )
        raise RuntimeError("Failed to build the web app")
    log.info("Web app built successfully.")


def _empty_reply() -> web.Response:
    return web.Response(status=200)


def _static_file(root: Path, tail: str) -> Path | None:
    candidate = (root / tail).resolve()
    if not candidate.is_relative_to(root):
        return None
    if candidate.is_dir():
        candidate = candidate / INDEX_FILE
    return candidate if candidate.is_file() else None


async def _read_json(request: web.Request) -> object:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValueError("request body is not valid JSON") from None


def create_app(compiler: Compiler, static_dir: str | Path) -> web.Application:
    """Application with the index page, static files and the compile API.

    Requests that match no route, or whose body cannot be decoded, get an
    empty 200 reply.
    """
    root = Path(static_dir).resolve()
    lock = asyncio.Lock()

    async def compile_handler(request: web.Request) -> web.StreamResponse:
        try:
            compile_request = CompilationRequest.from_dict(await _read_json(request))
        except ValueError:
            return _empty_reply()
        async with lock:
            result = await compiler.compile(compile_request)
        return web.json_response(response_to_dict(result))

    async def result_handler(request: web.Request) -> web.StreamResponse:
        try:
            status_request = CompilationStatusRequest.from_dict(
                await _read_json(request)
            )
        except ValueError:
            return _empty_reply()
        async with lock:
            result = await compiler.get_result(status_request.id)
        return web.json_response(response_to_dict(result))

    async def fallback_handler(request: web.Request) -> web.StreamResponse:
        if request.method in ("GET", "HEAD"):
            tail = request.match_info.get("tail", "")
            path = _static_file(root, tail or INDEX_FILE)
            if path is not None:
                return web.FileResponse(path)
        return _empty_reply()

    app = web.Application()
    app.router.add_post("/api/compile", compile_handler)
    app.router.add_post("/api/result", result_handler)
    app.router.add_route("*", "/{tail:.*}", fallback_handler)
    return app


async def _prepare_static_dir(static_dir: str) -> Path:
    path = Path(static_dir)
    try:
        return path.resolve(strict=True)
    except OSError:
        path.mkdir(parents=True, exist_ok=True)
        return path.resolve(strict=True)


async def _serve(config: ServerConfig) -> None:
    root = await _prepare_static_dir(config.static_dir)
    if not (root / INDEX_FILE).exists():
        log.info("index.html not found. Rebuilding the web app...")
        await build_web_app(config.static_dir)

    try:
        ip_address = ipaddress.ip_address(config.ip)
    except ValueError as exc:
        raise ValueError("Invalid IP address") from exc

    compiler = await Compiler.create(config)
    runner = web.AppRunner(create_app(compiler, root))
    await runner.setup()
    try:
        site = web.TCPSite(runner, str(ip_address), config.port)
        await site.start()
        log.info("Listening on %s:%d", ip_address, config.port)
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        await compiler.close()


def main(argv: list[str] | None = None) -> int:
    """Start the server using the configuration file and environment."""
    parser = argparse.ArgumentParser(prog="picosim-server")
    parser.add_argument("--config", default=CONFIG_PATH, help="configuration file")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    config = ServerConfig.parse(args.config)
    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        pass
    return 0