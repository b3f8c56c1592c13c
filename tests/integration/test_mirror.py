"""Integration tests mirroring real requests through a running server."""

from __future__ import annotations

import concurrent.futures
import json
import socket
import time
from typing import TYPE_CHECKING

import pytest
import requests

from tests.utils.http import MIRROR_PREAMBLE, mirror_exchange, read_until_close

pytestmark = pytest.mark.integration

if TYPE_CHECKING:
    from tests.conftest import ServerProcessInfo


def test_example_request_is_mirrored_exactly(server_process: ServerProcessInfo) -> None:
    """The documented example round-trips byte for byte."""

    request = b"GET / HTTP/1.1\r\nHost: x\r\nContent-Length: 5\r\n\r\nhello"
    response = mirror_exchange(
        server_process["host"], server_process["port"], request
    )
    assert response == (
        b"HTTP/1.0 200 OK\r\nContent-Type: text/plain\r\n\r\n"
        b"GET / HTTP/1.1\r\nHost: x\r\nContent-Length: 5\r\n\r\nhello"
    )


def test_large_body_sent_in_pieces(server_process: ServerProcessInfo) -> None:
    """Bodies far larger than one read are reassembled completely."""

    body = bytes(range(256)) * 64
    headers = f"POST /upload HTTP/1.1\r\nContent-Length: {len(body)}\r\n\r\n"
    with socket.create_connection(
        (server_process["host"], server_process["port"]), timeout=5
    ) as sock:
        sock.sendall(headers.encode()[:10])
        sock.sendall(headers.encode()[10:] + body[:1000])
        sock.sendall(body[1000:])
        response = read_until_close(sock)

    assert response == MIRROR_PREAMBLE + headers.encode() + body


def test_request_without_length_mirrors_headers_only(
    server_process: ServerProcessInfo,
) -> None:
    """Without framing headers the mirror returns just the header block."""

    request = b"GET /status HTTP/1.1\r\nHost: localhost\r\nAccept: */*\r\n\r\n"
    response = mirror_exchange(
        server_process["host"], server_process["port"], request
    )
    assert response == MIRROR_PREAMBLE + request


def test_malformed_length_closes_connection(server_process: ServerProcessInfo) -> None:
    """An unparseable Content-Length ends the exchange without hanging."""

    request = b"POST / HTTP/1.1\r\nContent-Length: abc\r\n\r\n"
    with socket.create_connection(
        (server_process["host"], server_process["port"]), timeout=5
    ) as sock:
        sock.sendall(request)
        response = read_until_close(sock)

    assert response == MIRROR_PREAMBLE + request


def test_requests_client_sees_its_own_request(base_url: str) -> None:
    """A regular HTTP client receives its request line, headers and body."""

    response = requests.post(
        f"{base_url}/submit?x=1",
        data=b"field=value",
        headers={"X-Test-Run": "mirror"},
        timeout=5,
    )

    assert response.status_code == 200
    assert response.headers["Content-Type"] == "text/plain"
    text = response.text
    assert text.startswith("POST /submit?x=1 HTTP/1.1\r\n")
    assert "X-Test-Run: mirror\r\n" in text
    assert "Content-Length: 11\r\n" in text
    assert text.endswith("\r\n\r\nfield=value")


def test_chunked_request_is_mirrored_best_effort(
    server_process: ServerProcessInfo,
) -> None:
    """Chunked bodies already received are mirrored; nothing is waited for."""

    headers = b"POST /stream HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n"
    request = headers + b"5\r\nfirst\r\n0\r\n\r\n"
    response = mirror_exchange(
        server_process["host"], server_process["port"], request
    )

    assert response.startswith(MIRROR_PREAMBLE + headers)
    assert (MIRROR_PREAMBLE + request).startswith(response)


def test_concurrent_connections_do_not_mix(server_process: ServerProcessInfo) -> None:
    """Simultaneous exchanges each receive only their own bytes."""

    host = server_process["host"]
    port = server_process["port"]

    def exchange(index: int) -> tuple[bytes, bytes]:
        body = (f"client-{index}-".encode() * 200)[: 3000 + index]
        request = (
            f"PUT /item/{index} HTTP/1.1\r\nContent-Length: {len(body)}\r\n\r\n"
        ).encode() + body
        return request, mirror_exchange(host, port, request)

    with concurrent.futures.ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(exchange, range(16)))

    for request, response in results:
        assert response == MIRROR_PREAMBLE + request


def test_mirror_logs_structured_events(server_process: ServerProcessInfo) -> None:
    """The JSON log records each mirrored body with its framing."""

    request = b"POST / HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc"
    mirror_exchange(server_process["host"], server_process["port"], request)

    log_file = server_process["log_file"]
    assert log_file is not None
    for _ in range(50):
        if '"body_mirrored"' in log_file.read_text():
            break
        time.sleep(0.05)
    lines = [json.loads(line) for line in log_file.read_text().splitlines()]
    mirrored = [line for line in lines if line.get("event") == "body_mirrored"]
    assert any(line["framing"] == "KnownLength" for line in mirrored)
    assert all(line["connection_id"] != "-" for line in mirrored)
