#!/usr/bin/env python3
"""
Execution Order Calculator
==========================

Deterministic topological ordering of pipeline nodes: every producer is
placed before every consumer it feeds.
"""

from typing import Dict, Iterable, List, Sequence

from ..core.exceptions import CyclicGraphError
from .models import Connection, NodeInstance


def build_port_owner_index(nodes: Iterable[NodeInstance]) -> Dict[str, str]:
    """Port id -> owning node id. The first node declaring a port id owns it."""
    owners: Dict[str, str] = {}
    for node in nodes:
        for port in node.ports:
            owners.setdefault(port.id, node.id)
    return owners


def build_dependency_map(nodes: Sequence[NodeInstance],
                         connections: Iterable[Connection]) -> Dict[str, List[str]]:
    """
    For each node, the ids of the nodes that must run before it.

    Keys follow node insertion order; dependencies follow connection order
    without repeats. Connections whose ports do not resolve are ignored.
    """
    owners = build_port_owner_index(nodes)
    dependencies: Dict[str, List[str]] = {node.id: [] for node in nodes}

    for connection in connections:
        producer = owners.get(connection.from_port)
        consumer = owners.get(connection.to_port)
        if producer is None or consumer is None:
            continue
        if producer not in dependencies[consumer]:
            dependencies[consumer].append(producer)

    return dependencies


def compute_execution_order(nodes: Sequence[NodeInstance],
                            connections: Iterable[Connection]) -> List[str]:
    """
    Depth-first post-order over the dependency map.

    Nodes are visited in insertion order and each dependency is emitted
    before its dependent. The traversal keeps an explicit stack instead of
    recursing, and raises CyclicGraphError when it meets a node that is still
    on the current path.

    Returns:
        Node ids in execution order
    """
    dependencies = build_dependency_map(nodes, connections)
    visited = set()
    in_progress = set()
    order: List[str] = []

    for root in dependencies:
        if root in visited:
            continue

        # (node_id, index of the next dependency to look at)
        stack = [(root, 0)]
        in_progress.add(root)

        while stack:
            node_id, next_index = stack[-1]
            deps = dependencies[node_id]

            if next_index < len(deps):
                stack[-1] = (node_id, next_index + 1)
                dep = deps[next_index]
                if dep in in_progress:
                    raise CyclicGraphError(dep)
                if dep not in visited:
                    in_progress.add(dep)
                    stack.append((dep, 0))
                continue

            stack.pop()
            in_progress.discard(node_id)
            visited.add(node_id)
            order.append(node_id)

    return order
