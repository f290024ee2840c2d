import argparse
import json
import socket
import sys
import time
from dataclasses import dataclass


@dataclass
class ProbeResult:
    status_line: str
    headers: dict
    body: dict
    rtt: float


def probe(host: str, port: int, request_line: bytes = b"GET /health HTTP/1.1",
          timeout: float = 2.0) -> ProbeResult:
    t0 = time.time()
    with socket.create_connection((host, port), timeout=timeout) as s:
        s.sendall(request_line.rstrip(b"\r\n") + b"\r\n")
        chunks = []
        while True:
            buf = s.recv(4096)
            if not buf:
                break
            chunks.append(buf)
    rtt = time.time() - t0

    raw = b"".join(chunks)
    if not raw:
        raise RuntimeError("Empty response")
    head, sep, body = raw.partition(b"\r\n\r\n")
    if not sep:
        raise RuntimeError("Malformed response: no header terminator")

    lines = head.decode("latin-1").split("\r\n")
    parts = lines[0].split(" ", 2)
    if len(parts) < 2 or not parts[0].startswith("HTTP/"):
        raise RuntimeError(f"Malformed status line: {lines[0]!r}")
    if parts[1] != "200":
        raise RuntimeError(f"Unhealthy status: {lines[0]}")

    headers = {}
    for line in lines[1:]:
        name, colon, value = line.partition(":")
        if not colon:
            raise RuntimeError(f"Malformed header line: {line!r}")
        headers[name.strip().lower()] = value.strip()
    declared = headers.get("content-length")
    if declared is not None and declared != str(len(body)):
        raise RuntimeError(f"Content-Length {declared} does not match body length {len(body)}")

    try:
        payload = json.loads(body.decode("utf-8"))
    except ValueError as e:
        raise RuntimeError(f"Malformed JSON body: {e}") from e
    if not isinstance(payload, dict):
        raise RuntimeError("Malformed JSON body: expected an object")
    if payload.get("status") != "ok":
        raise RuntimeError(f"Unhealthy body status: {payload.get('status')!r}")

    return ProbeResult(status_line=lines[0], headers=headers, body=payload, rtt=rtt)


def parse_target(value: str):
    host, colon, port = value.rpartition(":")
    if not colon or not host or not port.isdigit() or int(port) > 65535:
        raise argparse.ArgumentTypeError(f"expected host:port, got {value!r}")
    return host, int(port)


def main(argv=None):
    ap = argparse.ArgumentParser(description="Check that smoke-test listeners answer")
    ap.add_argument("targets", nargs="*", type=parse_target, metavar="HOST:PORT",
                    help="Targets to check (default: --host/--port)")
    ap.add_argument("--host", type=str, default="127.0.0.1")
    ap.add_argument("--port", type=int, default=3002)
    ap.add_argument("--count", type=int, default=1, help="Number of sequential probes per target")
    ap.add_argument("--timeout", type=float, default=2.0)
    args = ap.parse_args(argv)
    if args.count < 1:
        ap.error("--count must be at least 1")
    if not args.timeout > 0:
        ap.error("--timeout must be positive")

    targets = args.targets or [(args.host, args.port)]
    failures = 0
    total = 0
    for host, port in targets:
        for i in range(args.count):
            total += 1
            label = f"[{host}:{port} #{i + 1}]"
            try:
                result = probe(host, port, timeout=args.timeout)
            except (OSError, RuntimeError) as e:
                failures += 1
                sys.stderr.write(f"{label} failed: {e}\n")
                continue
            print(f"{label} {result.status_line} "
                  f"rtt={result.rtt * 1000:.1f}ms body={json.dumps(result.body)}")
    print(f"{total - failures}/{total} probes healthy")
    if failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
