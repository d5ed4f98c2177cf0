"""Storage node: keeps files under a base directory and serves them over gRPC."""

from __future__ import annotations

import argparse
import os
from concurrent import futures

import grpc

from tritontube.rpc import add_storage_service


class StorageServer:
    """Stores files keyed by relative path under ``base_dir``."""

    def __init__(self, base_dir: str) -> None:
        self.base_dir = base_dir

    def _path(self, key: str) -> str:
        return os.path.normpath(os.path.join(self.base_dir, key.lstrip("/")))

    def store_file(self, key: str, data: bytes) -> None:
        """Write ``data`` to the file for ``key``, creating directories."""
        path = self._path(key)
        os.makedirs(os.path.dirname(path) or ".", mode=0o755, exist_ok=True)
        with open(path, "wb") as handle:
            handle.write(data)

    def get_file(self, key: str) -> bytes:
        """Return the contents of the file for ``key``."""
        with open(self._path(key), "rb") as handle:
            return handle.read()

    def delete_file(self, key: str) -> None:
        """Delete the file for ``key``; a missing file is not an error."""
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass


def _start_server(base_dir: str, address: str, max_workers: int = 10):
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=max_workers))
    add_storage_service(server, StorageServer(base_dir))
    port = server.add_insecure_port(address)
    if port == 0:
        raise RuntimeError(f"could not bind {address}")
    server.start()
    return server, port


def serve(base_dir: str, host: str, port: int) -> None:
    """Run a storage node on ``host:port`` until it is terminated."""
    address = f"{host}:{port}"
    try:
        server, _ = _start_server(base_dir, address)
    except RuntimeError as exc:
        raise SystemExit(f"Failed to connect to {address}: {exc}") from exc
    server.wait_for_termination()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="storage")
    parser.add_argument("-host", "--host", default="localhost",
                        help="Host address for the server")
    parser.add_argument("-port", "--port", type=int, default=8090,
                        help="Port number for the server")
    parser.add_argument("base_dir", nargs="?")
    args = parser.parse_args(argv)

    if args.port <= 0:
        parser.error("Port number must be positive")

    if args.base_dir is None:
        print("Usage: storage [OPTIONS] <baseDir>")
        print("Error: Base directory argument is required")
        return 0

    print("Starting storage server...")
    print(f"Host: {args.host}")
    print(f"Port: {args.port}")
    print(f"Base Directory: {args.base_dir}")
    serve(args.base_dir, args.host, args.port)
    return 0