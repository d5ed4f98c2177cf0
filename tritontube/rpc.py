"""gRPC wiring for the storage and admin services.

Messages travel as compact JSON documents; binary payloads are base64-encoded.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Callable

import grpc

STORAGE_SERVICE = "tritontube.VideoContentStorageService"
ADMIN_SERVICE = "tritontube.VideoContentAdminService"

_ADMIN_CHANGE_TIMEOUT = 10.0
_ADMIN_LIST_TIMEOUT = 1.0


class RemoteError(Exception):
    """A remote call failed; ``code`` holds the gRPC status code if known."""

    def __init__(self, message: str, code: grpc.StatusCode | None = None) -> None:
        super().__init__(message)
        self.code = code


def _encode(message: dict[str, Any]) -> bytes:
    return json.dumps(message, separators=(",", ":")).encode("utf-8")


def _decode(payload: bytes) -> dict[str, Any]:
    if not payload:
        return {}
    return json.loads(payload.decode("utf-8"))


def _pack(data: bytes) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


def _unpack(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"))


class _Client:
    def __init__(self, address: str, service: str) -> None:
        self.address = address
        self._service = service
        self._channel = grpc.insecure_channel(address)

    def _call(
        self, method: str, request: dict[str, Any], timeout: float | None = None
    ) -> dict[str, Any]:
        stub = self._channel.unary_unary(
            f"/{self._service}/{method}",
            request_serializer=_encode,
            response_deserializer=_decode,
        )
        try:
            return stub(request, timeout=timeout)
        except grpc.RpcError as exc:
            code = exc.code() if hasattr(exc, "code") else None
            details = exc.details() if hasattr(exc, "details") else None
            raise RemoteError(details or str(exc), code) from exc

    def close(self) -> None:
        self._channel.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class StorageClient(_Client):
    """Client for a storage node."""

    def __init__(self, address: str) -> None:
        super().__init__(address, STORAGE_SERVICE)

    def store_file(self, key: str, data: bytes) -> bool:
        """Store ``data`` under ``key``; returns the node's success flag."""
        reply = self._call("StoreFile", {"key": key, "data": _pack(data)})
        return bool(reply.get("success", False))

    def get_file(self, key: str) -> bytes:
        """Fetch the bytes stored under ``key``."""
        reply = self._call("GetFile", {"key": key})
        return _unpack(reply.get("data", ""))

    def delete_file(self, key: str) -> bool:
        """Delete ``key``; deleting a missing key succeeds."""
        reply = self._call("DeleteFile", {"key": key})
        return bool(reply.get("success", False))

    def close(self) -> None:
        super().close()


class AdminClient(_Client):
    """Client for the cluster administration service."""

    def __init__(self, address: str) -> None:
        super().__init__(address, ADMIN_SERVICE)

    def add_node(self, node_address: str) -> int:
        """Add a storage node; returns the number of files migrated."""
        reply = self._call(
            "AddNode", {"node_address": node_address}, _ADMIN_CHANGE_TIMEOUT
        )
        return int(reply.get("migrated_file_count", 0))

    def remove_node(self, node_address: str) -> int:
        """Remove a storage node; returns the number of files migrated."""
        reply = self._call(
            "RemoveNode", {"node_address": node_address}, _ADMIN_CHANGE_TIMEOUT
        )
        return int(reply.get("migrated_file_count", 0))

    def list_nodes(self) -> list[str]:
        """Return the addresses of all nodes in the cluster."""
        reply = self._call("ListNodes", {}, _ADMIN_LIST_TIMEOUT)
        return list(reply.get("nodes", []))

    def close(self) -> None:
        super().close()


def _unary(behavior: Callable[[dict[str, Any]], dict[str, Any]]):
    def handler(request: dict[str, Any], context: grpc.ServicerContext):
        try:
            return behavior(request)
        except Exception as exc:  # reported to the caller as a status
            context.abort(grpc.StatusCode.INTERNAL, str(exc))

    return grpc.unary_unary_rpc_method_handler(
        handler, request_deserializer=_decode, response_serializer=_encode
    )


def add_storage_service(server: grpc.Server, servicer) -> None:
    """Expose ``servicer``'s store_file/get_file/delete_file on ``server``."""

    def store(request):
        servicer.store_file(request.get("key", ""), _unpack(request.get("data", "")))
        return {"success": True}

    def get(request):
        return {"data": _pack(servicer.get_file(request.get("key", "")))}

    def delete(request):
        servicer.delete_file(request.get("key", ""))
        return {"success": True}

    handlers = {
        "StoreFile": _unary(store),
        "GetFile": _unary(get),
        "DeleteFile": _unary(delete),
    }
    server.add_generic_rpc_handlers(
        (grpc.method_handlers_generic_handler(STORAGE_SERVICE, handlers),)
    )


def add_admin_service(server: grpc.Server, servicer) -> None:
    """Expose ``servicer``'s add_node/remove_node/list_nodes on ``server``."""

    def add(request):
        count = servicer.add_node(request.get("node_address", ""))
        return {"migrated_file_count": int(count)}

    def remove(request):
        count = servicer.remove_node(request.get("node_address", ""))
        return {"migrated_file_count": int(count)}

    def list_all(request):
        return {"nodes": list(servicer.list_nodes())}

    handlers = {
        "AddNode": _unary(add),
        "RemoveNode": _unary(remove),
        "ListNodes": _unary(list_all),
    }
    server.add_generic_rpc_handlers(
        (grpc.method_handlers_generic_handler(ADMIN_SERVICE, handlers),)
    )