"""Queued compilation of C sources into UF2 images and disassembly listings."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import secrets
import shutil
import time
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from picosim.config import ServerConfig
from picosim.protocol import (
    CompilationRequest,
    CompilationResponse,
    Done,
    ErrorResponse,
    InProgress,
    Language,
)

log = logging.getLogger(__name__)

MAX_RESULT_STORAGE_LEN = 500
CLEAN_UP_INTERVAL = 60.0
ID_LENGTH = 21
ID_ALPHABET = "_-0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

_CMAKE_LISTS = """\
cmake_minimum_required(VERSION 3.13...3.27)

include(pico_sdk_import.cmake)

project(main C CXX ASM)

pico_sdk_init()

add_executable(main main.c)

target_link_libraries(
    main
    pico_stdlib
    hardware_pwm
    hardware_sha256
    hardware_dma
    hardware_spi
    hardware_i2c
    pico_multicore
    pico_sha256
)

pico_add_extra_outputs(main)
"""

_SDK_IMPORT = """\
if (DEFINED ENV{PICO_SDK_PATH} AND (NOT PICO_SDK_PATH))
    set(PICO_SDK_PATH $ENV{PICO_SDK_PATH})
endif ()

if (NOT PICO_SDK_PATH)
    message(FATAL_ERROR "SDK location was not specified. Set PICO_SDK_PATH.")
endif ()

get_filename_component(PICO_SDK_PATH "${PICO_SDK_PATH}" REALPATH BASE_DIR "${CMAKE_BINARY_DIR}")
set(PICO_SDK_INIT_CMAKE_FILE ${PICO_SDK_PATH}/pico_sdk_init.cmake)
if (NOT EXISTS ${PICO_SDK_INIT_CMAKE_FILE})
    message(FATAL_ERROR "Directory '${PICO_SDK_PATH}' does not contain the Pico SDK")
endif ()

include(${PICO_SDK_INIT_CMAKE_FILE})
"""

_PLACEHOLDER_MAIN = """\
int main(void) {
    return 0;
}
"""


class CompileError(Exception):
    """Base class of all compilation errors."""


class CompilationFailed(CompileError):
    """The build tools ran and reported a failure."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Compilation error: {detail}")


class NoCodeError(CompileError):
    def __init__(self) -> None:
        super().__init__("No code provided")


class UnsupportedMultipleFilesError(CompileError):
    def __init__(self) -> None:
        super().__init__("Unsupported multiple files")


class UnsupportedFileNameError(CompileError):
    def __init__(self) -> None:
        super().__init__("Unsupported file name. Currently only main.c is allowed")


@contextlib.contextmanager
def _filesystem_errors() -> Iterator[None]:
    try:
        yield
    except (OSError, UnicodeDecodeError) as exc:
        raise CompileError(f"File system error: {exc}") from exc


class CompilationStatus(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    IN_PROGRESS = "in_progress"


@dataclass
class _Result:
    status: CompilationStatus
    updated_on: float
    served: bool = False
    error: CompileError | None = None


def generate_id() -> str:
    """Random 21-character identifier from a URL-safe alphabet."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def _ensure_new_dir(path: Path) -> None:
    with _filesystem_errors():
        if path.is_dir():
            shutil.rmtree(path)
        path.mkdir()


async def _run(program: str, *args: str, cwd: Path) -> tuple[int, bytes]:
    process = await asyncio.create_subprocess_exec(
        program,
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    _, stderr = await process.communicate()
    return process.returncode or 0, stderr


async def compile_c_code(
    id: str, request: CompilationRequest, build_dir: Path | str, result_dir: Path | str
) -> None:
    """Build a single main.c and move main.uf2 and main.dis into the result directory."""
    if len(request.source) > 1:
        raise UnsupportedMultipleFilesError()
    if not request.source:
        raise NoCodeError()
    code = request.source[0]
    if code.filename != "main.c":
        raise UnsupportedFileNameError()

    build_dir = Path(build_dir)
    result_dir = Path(result_dir)
    build_path = build_dir / "build"

    with _filesystem_errors():
        (build_dir / code.filename).write_bytes(code.code.encode("utf-8"))

    try:
        returncode, stderr = await _run("make", cwd=build_path)
    except OSError as exc:
        raise CompilationFailed("Failed to start the compilation process") from exc

    if returncode != 0:
        raise CompilationFailed(stderr.decode("utf-8", errors="replace"))

    log.info("Compilation successful")
    with _filesystem_errors():
        os.replace(build_path / "main.uf2", result_dir / f"{id}.uf2")
        os.replace(build_path / "main.dis", result_dir / f"{id}.dis")


class Compiler:
    """Accepts compilation requests, builds them one at a time and keeps results."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self.build_dir = data_dir / "build"
        self.result_dir = data_dir / "results"
        self.max_results = MAX_RESULT_STORAGE_LEN
        self._results: dict[str, _Result] = {}
        self._queue: deque[tuple[str, CompilationRequest]] = deque()
        self._wakeup = asyncio.Event()
        self._build_lock = asyncio.Lock()
        self._tasks: list[asyncio.Task[None]] = []

    @classmethod
    async def create(cls, config: ServerConfig) -> "Compiler":
        """Wipe and prepare the data directory, configure the build and start workers."""
        data_path = Path(config.data_dir)
        _ensure_new_dir(data_path)
        with _filesystem_errors():
            data_dir = data_path.resolve(strict=True)
        compiler = cls(data_dir)
        with _filesystem_errors():
            if not compiler.result_dir.is_dir():
                compiler.result_dir.mkdir()

        await compiler.prepare_build_env(config)
        compiler._tasks = [
            asyncio.create_task(compiler._compile_forever()),
            asyncio.create_task(compiler._clean_up_forever()),
        ]
        return compiler

    async def __aenter__(self) -> "Compiler":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop the background tasks."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []

    async def prepare_build_env(self, config: ServerConfig) -> None:
        """Write the build files, run cmake and an initial make."""
        log.info("Preparing build environment")
        with _filesystem_errors():
            if not self.data_dir.is_dir():
                self.data_dir.mkdir()
        _ensure_new_dir(self.build_dir)
        _ensure_new_dir(self.build_dir / "build")
        with _filesystem_errors():
            (self.build_dir / "CMakeLists.txt").write_text(_CMAKE_LISTS, encoding="utf-8")
            (self.build_dir / "pico_sdk_import.cmake").write_text(
                _SDK_IMPORT, encoding="utf-8"
            )
            (self.build_dir / "main.c").write_text(_PLACEHOLDER_MAIN, encoding="utf-8")

        args = [str(self.build_dir), "-DPICO_BOARD=pico2", "-DPICO_PLATFORM=rp2350-riscv"]
        if config.pico_sdk is not None:
            args.append(f"-DPICO_SDK_PATH={config.pico_sdk}")

        cwd = self.build_dir / "build"
        with _filesystem_errors():
            returncode, stderr = await _run("cmake", *args, cwd=cwd)
        if returncode != 0:
            raise CompilationFailed(
                f"Failed to run cmake: {stderr.decode('utf-8', errors='replace')}"
            )

        # An initial build makes the first real compilation faster.
        with _filesystem_errors():
            await _run("make", cwd=cwd)

    async def compile(self, request: CompilationRequest) -> CompilationResponse:
        """Queue a request and return its job id."""
        job_id = generate_id()
        self._queue.append((job_id, request))
        self._results[job_id] = _Result(CompilationStatus.IN_PROGRESS, time.monotonic())
        log.info("Added request %s to the queue", job_id)
        self._wakeup.set()
        return InProgress(id=job_id)

    async def process_queue(self) -> None:
        """Compile every queued request, recording each outcome."""
        async with self._build_lock:
            while self._queue:
                job_id, request = self._queue.popleft()
                log.info("Compiling request %s", job_id)
                self._results[job_id] = _Result(
                    CompilationStatus.IN_PROGRESS, time.monotonic()
                )
                try:
                    match request.lang:
                        case Language.C:
                            await compile_c_code(
                                job_id, request, self.build_dir, self.result_dir
                            )
                    outcome = _Result(CompilationStatus.SUCCESS, time.monotonic())
                except CompileError as exc:
                    outcome = _Result(
                        CompilationStatus.FAILURE, time.monotonic(), error=exc
                    )
                log.info("Request %s done", job_id)
                self._results[job_id] = outcome

    async def _compile_forever(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            await self.process_queue()

    def clean_up(self) -> list[str]:
        """Drop the oldest finished results above the storage limit.

        Served results go first, oldest first. Returns the removed ids.
        """
        excess = len(self._results) - self.max_results
        if excess <= 0:
            return []
        finished = [
            job_id
            for job_id, result in self._results.items()
            if result.status is not CompilationStatus.IN_PROGRESS
        ]
        finished.sort(
            key=lambda job_id: (
                not self._results[job_id].served,
                self._results[job_id].updated_on,
            )
        )
        removed = finished[:excess]
        for job_id in removed:
            del self._results[job_id]
            for suffix in (".uf2", ".dis"):
                with contextlib.suppress(OSError):
                    (self.result_dir / f"{job_id}{suffix}").unlink()
        return removed

    async def _clean_up_forever(self) -> None:
        while True:
            self.clean_up()
            await asyncio.sleep(CLEAN_UP_INTERVAL)

    async def get_uf2(self, id: str) -> bytes:
        """Contents of the UF2 image built for a job."""
        with _filesystem_errors():
            return (self.result_dir / f"{id}.uf2").read_bytes()

    async def get_dis(self, id: str) -> str:
        """Disassembly listing built for a job."""
        with _filesystem_errors():
            return (self.result_dir / f"{id}.dis").read_text(encoding="utf-8")

    async def get_result(self, id: str) -> CompilationResponse:
        """Current state of a job; finished jobs are marked as served."""
        result = self._results.get(id)
        if result is None:
            return ErrorResponse(message="ID not found or have been cleaned up")

        if result.status is CompilationStatus.IN_PROGRESS:
            return InProgress(id=id)

        result.served = True
        if result.status is CompilationStatus.FAILURE:
            return ErrorResponse(message=str(result.error))

        try:
            uf2 = await self.get_uf2(id)
            dis = await self.get_dis(id)
        except CompileError as exc:
            return ErrorResponse(message=str(exc))
        return Done(uf2=uf2, disassembler=dis)