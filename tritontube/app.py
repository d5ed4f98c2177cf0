"""Command that starts the web server with the chosen back ends."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading

from tritontube.etcd import EtcdVideoMetadataService
from tritontube.fs import FSVideoContentService
from tritontube.models import VideoContentService, VideoMetadataService
from tritontube.nw import NetworkVideoContentService
from tritontube.server import create_app
from tritontube.sqlite import SQLiteVideoMetadataService

logger = logging.getLogger(__name__)

_METADATA_LABELS = {"sqlite": "SQLite", "etcd": "etcd"}
_CONTENT_KINDS = ("fs", "nw")
_DEFAULT_PORT = 8080
_DEFAULT_HOST = "0.0.0.0"


def build_metadata_service(kind: str, options: str) -> VideoMetadataService:
    """Create the metadata service named by ``kind``."""
    if kind == "sqlite":
        return SQLiteVideoMetadataService(options)
    if kind == "etcd":
        return EtcdVideoMetadataService(options)
    raise ValueError(f"Unsupported metadata service type: {kind}")


def _run_admin_server(service: NetworkVideoContentService, addr: str) -> None:
    try:
        service.start_admin_server(addr)
    except Exception as exc:
        logger.critical("Failed to start admin server: %s", exc)
        os._exit(1)


def build_content_service(kind: str, options: str) -> VideoContentService:
    """Create the content service named by ``kind``.

    For ``nw`` the options are comma-separated addresses: the admin server
    first, then the storage nodes to join.
    """
    if kind == "fs":
        return FSVideoContentService(options)
    if kind == "nw":
        admin_addr, *storage_nodes = options.split(",")
        service = NetworkVideoContentService()
        threading.Thread(
            target=_run_admin_server,
            args=(service, admin_addr),
            name="admin-server",
            daemon=True,
        ).start()
        for node in storage_nodes:
            try:
                service.add_node(node)
            except Exception as exc:
                service.close()
                raise RuntimeError(f"Failed to add node {node}: {exc}") from exc
        return service
    raise ValueError(f"Unsupported content service type: {kind}")


def _print_usage() -> None:
    print("Usage: ./program [OPTIONS] METADATA_TYPE METADATA_OPTIONS CONTENT_TYPE CONTENT_OPTIONS")
    print()
    print("Arguments:")
    print("  METADATA_TYPE         Metadata service type (sqlite, etcd)")
    print("  METADATA_OPTIONS      Options for metadata service (e.g., db path)")
    print("  CONTENT_TYPE          Content service type (fs, nw)")
    print("  CONTENT_OPTIONS       Options for content service (e.g., base dir, network addresses)")
    print()
    print("Options:")
    print("  -host string")
    print(f'    \tHost address for the web server (default "{_DEFAULT_HOST}")')
    print("  -port int")
    print(f"    \tPort number for the web server (default {_DEFAULT_PORT})")
    print()
    print("Example: ./program sqlite db.db fs /path/to/videos")


def _close(service) -> None:
    close = getattr(service, "close", None)
    if close is not None:
        close()


def main(argv=None) -> int:
    """Parse arguments, build the services and serve until stopped."""
    parser = argparse.ArgumentParser(prog="web", add_help=False)
    parser.add_argument("-port", "--port", type=int, default=_DEFAULT_PORT)
    parser.add_argument("-host", "--host", default=_DEFAULT_HOST)
    parser.add_argument("-h", "-help", "--help", dest="help", action="store_true")
    parser.add_argument("args", nargs="*")
    args = parser.parse_args(argv)

    if args.help:
        _print_usage()
        return 0

    if len(args.args) != 4:
        print("Error: Incorrect number of arguments")
        _print_usage()
        return 1
    metadata_kind, metadata_options, content_kind, content_options = args.args

    if args.port <= 0:
        print("Error: Invalid port number:", args.port)
        _print_usage()
        return 1

    print("Creating metadata service of type", metadata_kind, "with options", metadata_options)
    if metadata_kind not in _METADATA_LABELS:
        print("Unsupported metadata service type: ", metadata_kind)
        return 1
    try:
        metadata_service = build_metadata_service(metadata_kind, metadata_options)
    except Exception as exc:
        print(f"Failed to start {_METADATA_LABELS[metadata_kind]} metadata service: {exc}")
        return 1

    print("Creating content service of type", content_kind, "with options", content_options)
    if content_kind not in _CONTENT_KINDS:
        print("Unsupported content service type: ", content_kind)
        _close(metadata_service)
        return 1
    try:
        content_service = build_content_service(content_kind, content_options)
    except Exception as exc:
        if content_kind == "fs":
            print(f"Failed to start FS content service: {exc}")
        else:
            print(exc, file=sys.stderr)
        _close(metadata_service)
        return 1

    app = create_app(metadata_service, content_service)
    listen_addr = f"{args.host}:{args.port}"
    print("Starting web server on", listen_addr)
    try:
        app.run(host=args.host, port=args.port, threaded=True)
    except OSError as exc:
        print("Error starting listener:", exc)
        return 1
    finally:
        _close(content_service)
        _close(metadata_service)
    return 0