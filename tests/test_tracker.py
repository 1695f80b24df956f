from collections import deque

import pytest

from picosim.tracker import (
    BusLoad,
    BusRead,
    BusStore,
    BusWrite,
    DataSize,
    ExecutedInstruction,
    FlashedBinary,
    Instruction,
    Requestor,
    TickCore,
    Tracker,
    TrngGenerated,
    UartRx,
    UartTx,
    push_to_buffer,
)


def test_push_to_buffer_appends_under_limit():
    buf = deque([1, 2])
    push_to_buffer(buf, 3, 5)
    assert list(buf) == [1, 2, 3]


def test_push_to_buffer_drops_oldest_when_full():
    buf = deque([1, 2, 3])
    push_to_buffer(buf, 4, 3)
    assert list(buf) == [2, 3, 4]


def test_push_to_buffer_zero_size_clears():
    buf = deque([1, 2, 3])
    push_to_buffer(buf, 4, 0)
    assert len(buf) == 0


def test_requestor_labels():
    assert Requestor.PROC0.label() == "Core 0"
    assert Requestor.PROC1.label() == "Core 1"
    assert Requestor.DMA_R.label() == "DMA Read"
    assert Requestor.DMA_W.label() == "DMA Write"


def test_data_size_labels():
    assert DataSize.BYTE.label() == "8 bits"
    assert DataSize.HALF_WORD.label() == "16 bits"
    assert DataSize.WORD.label() == "32 bits"


def test_defaults():
    tracker = Tracker()
    assert tracker.nof_instruction_log == 50
    assert tracker.bus.max_buffer_size == 100
    assert all(u.max_buffer_size == 4096 for u in tracker.uart)
    assert tracker.last_generated_trng is None


def test_trng_event():
    tracker = Tracker()
    tracker.handle_event(TrngGenerated(0xDEADBEEF))
    assert tracker.last_generated_trng == 0xDEADBEEF


def test_executed_instruction_updates_core():
    tracker = Tracker()
    tracker.handle_event(ExecutedInstruction(1, 0x13, 0x2000_0000, "addi"))
    tracker.handle_event(ExecutedInstruction(1, 0x13, 0x2000_0004, "addi"))
    proc = tracker.processor[1]
    assert proc.inst_count == 2
    assert proc.instruction_count["addi"] == 2
    assert list(proc.instruction_log)[-1] == Instruction("addi", 0x13, 0x2000_0004)
    assert tracker.processor[0].inst_count == 0


def test_instruction_log_is_bounded():
    tracker = Tracker()
    for i in range(tracker.nof_instruction_log + 10):
        tracker.handle_event(ExecutedInstruction(0, i, i * 4, "nop"))
    proc = tracker.processor[0]
    assert len(proc.instruction_log) == tracker.nof_instruction_log
    assert proc.inst_count == tracker.nof_instruction_log + 10
    assert proc.instruction_log[0].code == 10


def test_uart_events():
    tracker = Tracker()
    for ch in b"hi":
        tracker.handle_event(UartTx(0, ch))
    tracker.handle_event(UartRx(1, 0x41))
    assert bytes(tracker.uart[0].tx) == b"hi"
    assert list(tracker.uart[1].rx) == [0x41]
    assert len(tracker.uart[0].rx) == 0


def test_bus_events_recorded_in_order():
    tracker = Tracker()
    tracker.handle_event(BusLoad(Requestor.PROC0, 0x100, DataSize.WORD))
    tracker.handle_event(BusStore(Requestor.DMA_W, 0x200, 7, DataSize.BYTE))
    assert list(tracker.bus.events) == [
        BusRead(Requestor.PROC0, 0x100, DataSize.WORD),
        BusWrite(Requestor.DMA_W, 0x200, 7, DataSize.BYTE),
    ]


def test_bus_events_bounded():
    tracker = Tracker()
    for addr in range(tracker.bus.max_buffer_size + 5):
        tracker.handle_event(BusLoad(Requestor.PROC1, addr, DataSize.HALF_WORD))
    assert len(tracker.bus.events) == tracker.bus.max_buffer_size
    assert tracker.bus.events[0].address == 5


def test_tick_core():
    tracker = Tracker()
    tracker.handle_event(TickCore(0))
    tracker.handle_event(TickCore(0))
    assert tracker.processor[0].ticks == 2
    assert tracker.processor[1].ticks == 0


def test_flashed_binary_resets_everything():
    tracker = Tracker()
    tracker.nof_instruction_log = 3
    tracker.handle_event(TrngGenerated(1))
    tracker.handle_event(ExecutedInstruction(0, 1, 2, "add"))
    tracker.handle_event(UartTx(0, 65))
    tracker.handle_event(FlashedBinary())
    assert tracker == Tracker()


def test_unknown_event_ignored():
    tracker = Tracker()
    tracker.handle_event("something else")
    assert tracker == Tracker()


def test_bad_core_index_raises():
    tracker = Tracker()
    with pytest.raises(IndexError):
        tracker.handle_event(TickCore(2))