"""Tests for machine-scoped logging."""

import logging

import pytest

from dockyard.logging import (
    MachineContextFilter,
    MachineFormatter,
    current_machine_id,
    machine_context,
)

MACHINE_ID = "0123456789abcdef0123456789abcdef"


def make_record(message: str = "hello", **attrs) -> logging.LogRecord:
    record = logging.LogRecord(
        name="dockyard.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class RecordingHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def recording_handler():
    handler = RecordingHandler()
    handler.addFilter(MachineContextFilter())
    logger = logging.getLogger("dockyard")
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield handler
    logger.removeHandler(handler)
    logger.setLevel(previous_level)


def test_formatter_prefixes_machine_id():
    formatter = MachineFormatter("%(message)s")

    assert formatter.format(make_record(machine_id=MACHINE_ID)) == "[01234567] hello"


def test_formatter_prefixes_stream():
    formatter = MachineFormatter("%(message)s")
    record = make_record(machine_id=MACHINE_ID, stream="stderr")

    assert formatter.format(record) == "[01234567] [stderr] hello"


def test_formatter_without_context():
    formatter = MachineFormatter("%(message)s")

    assert formatter.format(make_record(machine_id=None, stream="other")) == "hello"


def test_filter_injects_current_machine():
    context_filter = MachineContextFilter()
    record = make_record()

    with machine_context(MACHINE_ID):
        assert current_machine_id() == MACHINE_ID
        assert context_filter.filter(record) is True

    assert record.machine_id == MACHINE_ID
    assert current_machine_id() is None


def test_filter_outside_context():
    record = make_record()

    MachineContextFilter().filter(record)

    assert record.machine_id is None


def test_filter_keeps_explicit_machine_id():
    record = make_record(machine_id="ffffffff")

    with machine_context(MACHINE_ID):
        MachineContextFilter().filter(record)

    assert record.machine_id == "ffffffff"


def test_driver_operations_tag_their_records(driver, recording_handler):
    driver.create()

    launch = [r for r in recording_handler.records if r.getMessage() == "Launching instance..."]
    assert launch
    assert all(r.machine_id == MACHINE_ID for r in launch)


def test_context_is_restored_after_driver_error(driver, recording_handler):
    driver.gateway.failures["run_instance"] = RuntimeError("boom")

    with pytest.raises(RuntimeError):
        driver.create()

    assert current_machine_id() is None
