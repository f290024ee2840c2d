import socket
import threading
import argparse
import errno
import json
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

DEFAULT_PORT = 3002
DEFAULT_NAME = "Python HTTP Server"
MAX_REQUEST_LINE = 8192
LOG_LINE_LIMIT = 200


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    server_name: str = DEFAULT_NAME
    read_timeout: Optional[float] = 10.0
    max_connections: Optional[int] = 128
    backlog: int = 128


def utc_instant() -> str:
    # ISO-8601 UTC with millisecond precision, "Z" suffix
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_response(config: ServerConfig) -> bytes:
    body = json.dumps(
        {
            "status": "ok",
            "message": f"{config.server_name} is working!",
            "timestamp": utc_instant(),
        },
        separators=(",", ":"),
    ).encode("utf-8")
    head = (
        "HTTP/1.1 200 OK\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {len(body)}\r\n"
        "\r\n"
    ).encode("ascii")
    return head + body


def read_request_line(conn, timeout: Optional[float]) -> bytes:
    # the deadline covers the whole line, not each recv
    deadline = None if timeout is None else time.monotonic() + timeout
    buf = b""
    while b"\n" not in buf:
        if len(buf) > MAX_REQUEST_LINE:
            raise ConnectionError(f"request line exceeds {MAX_REQUEST_LINE} bytes")
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise socket.timeout("read deadline exceeded")
            conn.settimeout(remaining)
        chunk = conn.recv(4096)
        if not chunk:
            if not buf:
                raise ConnectionError("peer closed before sending a request line")
            break
        buf += chunk
    line = buf.split(b"\n", 1)[0]
    if len(line) > MAX_REQUEST_LINE:
        raise ConnectionError(f"request line exceeds {MAX_REQUEST_LINE} bytes")
    return line


def handle_client(conn, addr, config: ServerConfig, slots=None):
    try:
        with conn:
            line = read_request_line(conn, config.read_timeout)
            text = line.decode("utf-8", errors="replace").rstrip()
            if len(text) > LOG_LINE_LIMIT:
                text = text[:LOG_LINE_LIMIT] + "..."
            print(f"[server] request from {addr}: {text}")
            conn.sendall(build_response(config))
        print(f"[server] response sent to {addr}")
    except OSError as e:
        sys.stderr.write(f"[server] error handling client {addr}: {e}\n")
    finally:
        if slots is not None:
            slots.release()


def start(config: ServerConfig) -> socket.socket:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        s.bind((config.host, config.port))
        s.listen(config.backlog)
    except OSError as e:
        s.close()
        sys.stderr.write(f"[server] cannot bind {config.host}:{config.port}: {e}\n")
        sys.exit(1)
    host, port = s.getsockname()[:2]
    print(f"[server] {config.server_name} listening on {host}:{port}")
    return s


def serve_forever(s: socket.socket, config: ServerConfig):
    slots = None
    if config.max_connections is not None:
        slots = threading.BoundedSemaphore(config.max_connections)
    while True:
        # wait for a free handler slot; pending clients queue in the backlog
        if slots is not None:
            slots.acquire()
        try:
            conn, addr = s.accept()
        except OSError as e:
            if slots is not None:
                slots.release()
            # EINVAL: listener was shut down by its owner
            if s.fileno() == -1 or e.errno == errno.EINVAL:
                break
            raise
        print(f"[server] new connection from {addr}")
        threading.Thread(
            target=handle_client, args=(conn, addr, config, slots),
            name=f"smoke-handler-{addr[0]}:{addr[1]}", daemon=True,
        ).start()


def serve(config: ServerConfig):
    s = start(config)
    try:
        serve_forever(s, config)
    finally:
        s.close()


def parse_args(argv=None) -> ServerConfig:
    parser = argparse.ArgumentParser(description="Single-endpoint connectivity smoke-test listener")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--name", default=DEFAULT_NAME, help="Server name reported in the response message")
    parser.add_argument("--read-timeout", type=float, default=10.0,
                        help="Seconds to wait for the request line (0 disables)")
    parser.add_argument("--max-connections", type=int, default=128,
                        help="Concurrent handler ceiling (0 means unbounded)")
    args = parser.parse_args(argv)
    if not 0 <= args.port <= 65535:
        parser.error("--port must be between 0 and 65535")
    if not args.read_timeout >= 0:
        parser.error("--read-timeout must not be negative")
    if args.max_connections < 0:
        parser.error("--max-connections must not be negative")
    return ServerConfig(
        host=args.host,
        port=args.port,
        server_name=args.name,
        read_timeout=args.read_timeout or None,
        max_connections=args.max_connections or None,
    )


def main(argv=None):
    serve(parse_args(argv))


if __name__ == "__main__":
    main()
