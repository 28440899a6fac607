"""Unit tests for the in-memory LogBuffer processor."""

from __future__ import annotations

from kstack.utils.logging import LogBuffer, get_logger


def _event(**fields):
    return {"timestamp": "t", "level": "info", "event": "x", **fields}


class TestLogBuffer:
    def test_format(self) -> None:
        buffer = LogBuffer()
        buffer(None, "info", _event(k=1))
        assert buffer.lines() == ["t [INFO] x k=1"]

    def test_logger_name_is_omitted(self) -> None:
        buffer = LogBuffer()
        buffer(None, "warning", _event(level="warning", logger_name="kstack.x"))
        assert buffer.lines() == ["t [WARNING] x"]

    def test_passes_event_through(self) -> None:
        event = _event(a="b")
        assert LogBuffer()(None, "info", event) is event

    def test_ring_keeps_latest_lines(self) -> None:
        buffer = LogBuffer(max_lines=3)
        for i in range(5):
            buffer.append(str(i))
        assert buffer.lines() == ["2", "3", "4"]

    def test_clear(self) -> None:
        buffer = LogBuffer()
        buffer.append("line")
        buffer.clear()
        assert buffer.lines() == []

    def test_disabled_buffer_records_nothing(self) -> None:
        buffer = LogBuffer()
        buffer.enabled = False
        buffer(None, "info", _event())
        assert buffer.lines() == []


class TestGetLogger:
    def test_returns_usable_logger(self) -> None:
        logger = get_logger("kstack.tests")
        logger.info("test_event", value=1)
