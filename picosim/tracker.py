"""Records events emitted by the simulated chip for later inspection."""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, TypeVar, Union

T = TypeVar("T")

DEFAULT_SERIAL_BUFFER_SIZE = 4096
DEFAULT_BUS_BUFFER_SIZE = 100
DEFAULT_INSTRUCTION_LOG_SIZE = 50
NUM_CORES = 2
NUM_SERIAL_PORTS = 2


class Requestor(Enum):
    """Who issued a bus transaction."""

    PROC0 = "Proc0"
    PROC1 = "Proc1"
    DMA_R = "DmaR"
    DMA_W = "DmaW"

    def label(self) -> str:
        """Human-readable name of the requestor."""
        return _REQUESTOR_LABELS[self]


_REQUESTOR_LABELS = {
    Requestor.PROC0: "Core 0",
    Requestor.PROC1: "Core 1",
    Requestor.DMA_R: "DMA Read",
    Requestor.DMA_W: "DMA Write",
}


class DataSize(Enum):
    """Width of a bus transfer."""

    BYTE = "Byte"
    HALF_WORD = "HalfWord"
    WORD = "Word"

    def label(self) -> str:
        """Width of the transfer in bits, as text."""
        return _DATA_SIZE_LABELS[self]


_DATA_SIZE_LABELS = {
    DataSize.BYTE: "8 bits",
    DataSize.HALF_WORD: "16 bits",
    DataSize.WORD: "32 bits",
}


@dataclass(frozen=True)
class Instruction:
    """One executed instruction."""

    name: str
    code: int
    address: int


@dataclass
class ProcessorTracker:
    """Statistics collected for one processor core."""

    inst_count: int = 0
    instruction_count: Counter[str] = field(default_factory=Counter)
    instruction_log: deque[Instruction] = field(default_factory=deque)
    ticks: int = 0


@dataclass
class SerialTracker:
    """Transmitted and received data of a serial peripheral (UART, SPI, I2C)."""

    tx: deque[int] = field(default_factory=deque)
    rx: deque[int] = field(default_factory=deque)
    max_buffer_size: int = DEFAULT_SERIAL_BUFFER_SIZE


@dataclass(frozen=True)
class BusRead:
    """A load seen on the bus."""

    requestor: Requestor
    address: int
    size: DataSize


@dataclass(frozen=True)
class BusWrite:
    """A store seen on the bus."""

    requestor: Requestor
    address: int
    value: int
    size: DataSize


BusEvent = Union[BusRead, BusWrite]


@dataclass
class BusTracker:
    """Most recent bus transactions."""

    events: deque[BusEvent] = field(default_factory=deque)
    max_buffer_size: int = DEFAULT_BUS_BUFFER_SIZE


@dataclass(frozen=True)
class TrngGenerated:
    value: int


@dataclass(frozen=True)
class ExecutedInstruction:
    core: int
    instruction: int
    address: int
    name: str


@dataclass(frozen=True)
class UartTx:
    uart_index: int
    value: int


@dataclass(frozen=True)
class UartRx:
    uart_index: int
    value: int


@dataclass(frozen=True)
class FlashedBinary:
    pass


@dataclass(frozen=True)
class BusLoad:
    requestor: Requestor
    address: int
    size: DataSize


@dataclass(frozen=True)
class BusStore:
    requestor: Requestor
    address: int
    value: int
    size: DataSize


@dataclass(frozen=True)
class TickCore:
    core: int


def push_to_buffer(buffer: deque[T], value: T, max_size: int) -> None:
    """Append to a bounded buffer, dropping the oldest entry when it is full.

    A maximum size of zero empties the buffer and stores nothing.
    """
    if max_size == 0:
        buffer.clear()
        return
    if len(buffer) >= max_size:
        buffer.popleft()
    buffer.append(value)


def _pick(items: list[T], index: int) -> T:
    if not 0 <= index < len(items):
        raise IndexError(f"index {index} out of range 0..{len(items)}")
    return items[index]


def _pair(factory: Any) -> list[Any]:
    return field(default_factory=lambda: [factory() for _ in range(NUM_CORES)])


@dataclass
class Tracker:
    """Collects inspection events from the simulator."""

    processor: list[ProcessorTracker] = _pair(ProcessorTracker)
    uart: list[SerialTracker] = _pair(SerialTracker)
    spi: list[SerialTracker] = _pair(SerialTracker)
    i2c: list[SerialTracker] = _pair(SerialTracker)
    last_generated_trng: int | None = None
    nof_instruction_log: int = DEFAULT_INSTRUCTION_LOG_SIZE
    bus: BusTracker = field(default_factory=BusTracker)

    def reset(self) -> None:
        """Return every counter and buffer to its initial state."""
        fresh = Tracker()
        for f in fields(self):
            setattr(self, f.name, getattr(fresh, f.name))

    def handle_event(self, event: object) -> None:
        """Update the recorded state from one event; unknown events are ignored."""
        match event:
            case TrngGenerated(value=value):
                self.last_generated_trng = value
            case ExecutedInstruction(
                core=core, instruction=code, address=address, name=name
            ):
                proc = _pick(self.processor, core)
                push_to_buffer(
                    proc.instruction_log,
                    Instruction(name=name, code=code, address=address),
                    self.nof_instruction_log,
                )
                proc.instruction_count[name] += 1
                proc.inst_count += 1
            case UartTx(uart_index=index, value=value):
                uart = _pick(self.uart, index)
                push_to_buffer(uart.tx, value, uart.max_buffer_size)
            case UartRx(uart_index=index, value=value):
                uart = _pick(self.uart, index)
                push_to_buffer(uart.rx, value, uart.max_buffer_size)
            case FlashedBinary():
                self.reset()
            case BusLoad(requestor=requestor, address=address, size=size):
                push_to_buffer(
                    self.bus.events,
                    BusRead(requestor=requestor, address=address, size=size),
                    self.bus.max_buffer_size,
                )
            case BusStore(requestor=requestor, address=address, value=value, size=size):
                push_to_buffer(
                    self.bus.events,
                    BusWrite(
                        requestor=requestor, address=address, value=value, size=size
                    ),
                    self.bus.max_buffer_size,
                )
            case TickCore(core=core):
                _pick(self.processor, core).ticks += 1
            case _:
                pass