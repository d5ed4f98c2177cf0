"""Video content spread across storage nodes by consistent hashing."""

from __future__ import annotations

import logging
import threading
from concurrent import futures
from typing import Any, Callable

import grpc

from tritontube.hashring import HashRing
from tritontube.models import VideoContentService
from tritontube.rpc import StorageClient, add_admin_service

logger = logging.getLogger(__name__)


class NetworkVideoContentService(VideoContentService):
    """Content service that stores each file on the node the ring picks.

    ``client_factory`` turns a node address into a client offering
    ``store_file``, ``get_file``, ``delete_file`` and ``close``.
    """

    def __init__(self, client_factory: Callable[[str], Any] | None = None) -> None:
        self._client_factory = client_factory or StorageClient
        self._lock = threading.RLock()
        self._ring = HashRing()
        self._clients: dict[str, Any] = {}
        self._keys: list[str] = []
        self._nodes: list[str] = []
        self._admin_server: grpc.Server | None = None

    def start_admin_server(self, addr: str) -> None:
        """Serve the admin API on ``addr``; blocks until the server stops."""
        server = grpc.server(futures.ThreadPoolExecutor(max_workers=10))
        add_admin_service(server, self)
        try:
            port = server.add_insecure_port(addr)
        except RuntimeError as exc:
            raise OSError(f"admin listen to {addr} failed: {exc}") from exc
        if port == 0:
            raise OSError(f"admin listen to {addr} failed")
        server.start()
        self._admin_server = server
        logger.info("Successfully start admin server: %s", addr)
        server.wait_for_termination()

    def write(self, video_id: str, filename: str, data: bytes) -> None:
        key = f"{video_id}/{filename}"
        with self._lock:
            self._keys.append(key)
        node = self._ring.get_node(key)
        logger.info("Node for %s: %s", key, node)
        with self._lock:
            client = self._clients[node]
        client.store_file(key, data)

    def read(self, video_id: str, filename: str) -> bytes:
        key = f"{video_id}/{filename}"
        node = self._ring.get_node(key)
        with self._lock:
            client = self._clients[node]
        return client.get_file(key)

    @staticmethod
    def _move(key: str, source: Any, target: Any) -> bool:
        try:
            data = source.get_file(key)
            target.store_file(key, data)
            source.delete_file(key)
        except Exception as exc:  # a failed move leaves the file where it was
            logger.warning("migration of %s failed: %s", key, exc)
            return False
        return True

    def add_node(self, addr: str) -> int:
        """Join ``addr`` to the cluster; returns the number of files migrated."""
        with self._lock:
            if addr in self._clients:
                raise ValueError(f"node {addr} already exists")
            client = self._client_factory(addr)
            self._clients[addr] = client
            self._nodes.append(addr)

            migrated = 0
            for key in self._keys:
                try:
                    old_node = self._ring.get_node(key)
                except LookupError:
                    continue
                self._ring.add_node(addr)
                try:
                    new_node = self._ring.get_node(key)
                finally:
                    self._ring.remove_node(addr)
                if old_node != new_node and self._move(
                    key, self._clients[old_node], client
                ):
                    migrated += 1

            self._ring.add_node(addr)
            return migrated

    def remove_node(self, addr: str) -> int:
        """Take ``addr`` out of the cluster; returns the number of files migrated."""
        with self._lock:
            client = self._clients.get(addr)
            if client is None:
                raise ValueError(f"node {addr} does not exist")

            migrated = 0
            for key in self._keys:
                try:
                    old_node = self._ring.get_node(key)
                except LookupError:
                    continue
                if old_node != addr:
                    continue
                self._ring.remove_node(addr)
                try:
                    new_node = self._ring.get_node(key)
                except LookupError:
                    continue
                finally:
                    self._ring.add_node(addr)
                if self._move(key, client, self._clients[new_node]):
                    migrated += 1

            client.close()
            del self._clients[addr]
            self._ring.remove_node(addr)
            self._nodes.remove(addr)
            return migrated

    def list_nodes(self) -> list[str]:
        """Return node addresses in the order they joined."""
        with self._lock:
            return list(self._nodes)

    def close(self) -> None:
        """Stop the admin server, if running, and close every node client."""
        if self._admin_server is not None:
            self._admin_server.stop(None)
            self._admin_server = None
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()