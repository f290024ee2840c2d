import contextlib
import socket
import threading

import pytest

from smoke_server import ServerConfig, serve_forever, start


def recv_all(sock: socket.socket) -> bytes:
    chunks = []
    while True:
        buf = sock.recv(4096)
        if not buf:
            break
        chunks.append(buf)
    return b"".join(chunks)


@pytest.fixture
def running_server():
    config = ServerConfig(host="127.0.0.1", port=0, server_name="Test Server", read_timeout=2.0)
    s = start(config)
    thread = threading.Thread(target=serve_forever, args=(s, config), daemon=True)
    thread.start()
    host, port = s.getsockname()[:2]
    yield host, port
    # wakes the blocked accept() so the loop returns
    with contextlib.suppress(OSError):
        s.shutdown(socket.SHUT_RDWR)
    s.close()
    thread.join(timeout=2.0)
    for handler in threading.enumerate():
        if handler.name.startswith("smoke-handler-"):
            handler.join(timeout=2.0)
