# picosim

Tools that go with a Raspberry Pi Pico 2 (RP2350) simulator:

- `picosim.server`: an HTTP compilation server that turns a C `main.c` into a
  UF2 image and a disassembly listing, using the Pico SDK with CMake and make
- `picosim.client`: an async client for that server, which submits code and
  polls until the build is done
- `picosim.uf2`: a reader that yields the blocks of a UF2 image
- `picosim.tracker`, `picosim.disassembler`, `picosim.display`: inspection
  helpers for a simulator front end
- `picosim.protocol`: the request and response messages of the API
- `picosim.config`: the server's settings

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Running the compilation server

The server needs `cmake`, `make`, a RISC-V toolchain for the RP2350 and a
local copy of the Pico SDK. Start it with:

```
picosim-server
```

or point it at another settings file with `picosim-server --config FILE`.

Settings are read by `ServerConfig.parse`. Defaults are overridden by the
settings file (`config.toml` unless `--config` says otherwise; a TOML file, or
JSON if its name ends in `.json`; a name without an extension also finds
`NAME.toml` or `NAME.json`), and that in turn by environment variables with the
`SERVER_` prefix. Unknown keys are ignored; a port that is not an integer in
0–65535 raises `ValueError`.

| Setting      | Default       | Environment variable |
|--------------|---------------|----------------------|
| `port`       | `8888`        | `SERVER_PORT`        |
| `ip`         | `127.0.0.1`   | `SERVER_IP`          |
| `static_dir` | `./static`    | `SERVER_STATIC_DIR`  |
| `data_dir`   | `./data`      | `SERVER_DATA_DIR`    |
| `pico_sdk`   | unset         | `SERVER_PICO_SDK`    |

On start-up the server:

1. creates `static_dir` if it is missing; if it holds no `index.html`, it runs
   `trunk build --release --minify --config web/Trunk.toml --dist <static_dir>`
   and stops with an error if that fails;
2. deletes and re-creates `data_dir`, writes a CMake project under
   `data_dir/build`, runs `cmake` with `-DPICO_BOARD=pico2`,
   `-DPICO_PLATFORM=rp2350-riscv` and, if `pico_sdk` is set,
   `-DPICO_SDK_PATH=<pico_sdk>`, and builds once so that later builds are
   faster. Without `pico_sdk` the SDK location must come from the
   `PICO_SDK_PATH` environment variable.

`GET /` serves `static_dir/index.html`, and other paths serve files under
`static_dir`. Requests that match nothing, or whose body is not a valid
request, get an empty `200` reply.

### API

- `POST /api/compile` takes a compilation request and answers at once with
  `{"InProgress": {"id": "..."}}`. Jobs are built one at a time, in order.
- `POST /api/result` takes `{"id": "..."}` and answers with `InProgress`,
  `{"Done": {"uf2": [...bytes...], "disassembler": "..."}}` or
  `{"Error": {"message": "..."}}`.

A compilation request looks like:

```json
{
  "lang": "C",
  "source": [{"filename": "main.c", "code": "int main(void) { return 0; }"}],
  "target": "RiscV",
  "compiler_options": null
}
```

Only one source file, named `main.c`, is accepted; anything else ends the job
with an error message. The server keeps up to 500 results. Once a minute it
removes the excess finished results, those already fetched first, oldest first,
together with their files.

The same can be driven from Python with `picosim.compiler.Compiler` and
`picosim.server.create_app`.

## Using the client

```python
import asyncio
from picosim.client import CompileClient
from picosim.protocol import Language

async def build(code: str) -> bytes:
    client = CompileClient("http://127.0.0.1:8888")
    result = await client.compile_source_code(Language.C, code)
    return result.uf2

uf2 = asyncio.run(build("int main(void) { return 0; }"))
```

`compile_source_code` polls every `poll_interval` seconds (one by default). A
failed build, an HTTP error status or a malformed reply raises
`picosim.client.ClientError`. `CompileClient` can also be used as an async
context manager to share one session, or be given a `session=`.
`compile` and `compilation_result` send single requests.

## Reading UF2 files

```python
from picosim.uf2 import read_uf2

with open("main.uf2", "rb") as fh:
    for block in read_uf2(fh.read()):
        if block.is_flashable():
            print(hex(block.target_addr), len(block.data))
```

If the data length is not a multiple of 512 bytes, `read_uf2` raises
`InvalidUf2FileError`. Blocks whose magic numbers are wrong are skipped.
`Uf2Block.family_id` is set only when the block's family-id flag is set.

## Inspection helpers

- `picosim.tracker.Tracker` takes events (`ExecutedInstruction`, `UartTx`,
  `UartRx`, `BusLoad`, `BusStore`, `TickCore`, `TrngGenerated`,
  `FlashedBinary`) through `handle_event` and keeps counts and bounded
  buffers: the last 50 instructions per core, 4096 UART bytes each way, and
  the last 100 bus reads and writes. `FlashedBinary` resets everything.
- `picosim.disassembler.Disassembler` holds a listing, maps addresses such as
  `1000:` at the start of a line to line numbers (`line_for_address`,
  `jump_to`) and keeps breakpoints.
- `picosim.display.DisplayMode` formats bytes and words in binary, decimal,
  hexadecimal or character form; `MemoryView` renders memory row by row;
  `format_memory_length` and `riscv_register_name` give sizes and register
  names as text.

## What this package does not do

It does not simulate the RP2350: there is no processor, memory or peripheral
model here, and no graphical front end. The tracker, disassembler and display
helpers work on data handed to them. The web front end served by the server is
not part of this package; the server only serves files found in `static_dir`
or built there by `trunk`.