"""Unit tests for connection ids and ConnectionLoggerAdapter."""

import logging
import threading
import uuid

import pytest

from mirror.domain.connection_id import (
    ConnectionLoggerAdapter,
    clear_connection_id,
    component_name,
    generate_connection_id,
    get_connection_id,
    set_connection_id,
)


@pytest.fixture(name="logger_adapter")
def logger_adapter_fixture():
    """Create a ConnectionLoggerAdapter instance."""
    base_logger = logging.getLogger("http_mirror.transport.worker")
    return ConnectionLoggerAdapter(base_logger, {})


def test_generate_connection_id_is_uuid4():
    """Generated ids are random UUIDs."""
    value = generate_connection_id()
    assert uuid.UUID(value).version == 4
    assert value != generate_connection_id()


def test_adapter_injects_connection_id(logger_adapter):
    """The adapter copies the current connection id into extra."""
    set_connection_id("conn-123")
    try:
        _, kwargs = logger_adapter.process("Test message", {})
    finally:
        clear_connection_id()

    assert kwargs["extra"]["connection_id"] == "conn-123"


def test_adapter_defaults_connection_id_when_missing(logger_adapter):
    """Records outside a connection get a '-' placeholder."""
    clear_connection_id()

    _, kwargs = logger_adapter.process("Test message", {})

    assert kwargs["extra"]["connection_id"] == "-"


def test_adapter_extracts_component_from_logger_name(logger_adapter):
    """The component is the logger name below the project root."""
    _, kwargs = logger_adapter.process("Test message", {})

    assert kwargs["extra"]["component"] == "transport.worker"


def test_adapter_keeps_caller_extra_without_mutating_it(logger_adapter):
    """Caller-supplied extra is copied, not modified in place."""
    extra = {"event": "mirror_started"}

    _, kwargs = logger_adapter.process("Test message", {"extra": extra})

    assert kwargs["extra"]["event"] == "mirror_started"
    assert "connection_id" not in extra


def test_connection_ids_are_isolated_per_thread():
    """Each worker thread sees only its own connection id."""
    seen = {}

    def worker(name):
        set_connection_id(name)
        seen[name] = get_connection_id()

    threads = [threading.Thread(target=worker, args=(f"c{i}",)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert seen == {f"c{i}": f"c{i}" for i in range(4)}
    assert get_connection_id() is None


@pytest.mark.parametrize(
    ("logger_name", "expected"),
    [
        ("http_mirror.io", "io"),
        ("http_mirror.transport.accept", "transport.accept"),
        ("other.module", "other.module"),
        ("http_mirror", "http_mirror"),
    ],
)
def test_component_name_strips_project_root(logger_name, expected):
    """Only the project prefix is removed from logger names."""
    assert component_name(logger_name) == expected
