"""Command-line client for the storage cluster administration service."""

from __future__ import annotations

import sys

from tritontube.rpc import AdminClient, RemoteError

_USAGE = (
    "Usage:",
    "  add <server_address> <node_address>     - Add a node to the cluster",
    "  remove <server_address> <node_address>  - Remove a node from the cluster",
    "  list <server_address>                   - List all nodes in the cluster",
)


def _print_usage() -> int:
    for line in _USAGE:
        print(line)
    return 1


def _add(client: AdminClient, node: str) -> int:
    try:
        migrated = client.add_node(node)
    except RemoteError as exc:
        print(f"AddNode RPC failed: {exc}", file=sys.stderr)
        return 1
    print(f"Successfully added node: {node}")
    print(f"Number of files migrated: {migrated}")
    return 0


def _remove(client: AdminClient, node: str) -> int:
    try:
        migrated = client.remove_node(node)
    except RemoteError as exc:
        print(f"RemoveNode RPC failed: {exc}", file=sys.stderr)
        return 1
    print(f"Successfully removed node: {node}")
    print(f"Number of files migrated: {migrated}")
    return 0


def _list(client: AdminClient) -> int:
    try:
        nodes = client.list_nodes()
    except RemoteError as exc:
        print(f"ListNodes RPC failed: {exc}", file=sys.stderr)
        return 1
    print("Storage cluster nodes:")
    if not nodes:
        print("  No nodes in cluster")
    for node in nodes:
        print(f"  - {node}")
    return 0


def main(argv=None) -> int:
    """Run one admin command; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        return _print_usage()

    command, server_address = args[0], args[1]
    with AdminClient(server_address) as client:
        if command == "add":
            if len(args) != 3:
                print("Usage: add <server_address> <node_address>")
                return 1
            return _add(client, args[2])
        if command == "remove":
            if len(args) != 3:
                print("Usage: remove <server_address> <node_address>")
                return 1
            return _remove(client, args[2])
        if command == "list":
            if len(args) != 2:
                print("Usage: list <server_address>")
                return 1
            return _list(client)
        print(f"Unknown command: {command}")
        return _print_usage()