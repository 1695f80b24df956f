[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "picosim"
version = "0.1.0"
description = "Compilation server, client, UF2 reader and inspection helpers for a Raspberry Pi Pico 2 simulator"
requires-python = ">=3.11"
dependencies = [
    "aiohttp",
]
keywords = ["rp2350", "pico2", "uf2", "simulator", "risc-v", "disassembly"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: aiohttp",
    "Framework :: AsyncIO",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
picosim-server = "picosim.server:main"

[tool.hatch.build.targets.wheel]
packages = ["picosim"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
