"""Iterative traversal of the distributor tree.

The walkers only know how to ask for a node's parent or a batch of nodes'
children, so they run the same way over database rows and in-memory maps.
A visited set stops the walk on a corrupted (cyclic) parent pointer.
"""
from __future__ import annotations

import logging
from typing import Callable, Hashable, Iterable, List, Mapping, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

Node = TypeVar("Node")


def walk_ascendants(
    start: Optional[Node],
    get_parent: Callable[[Node], Optional[Node]],
    key: Callable[[Node], Hashable] = id,
) -> List[Tuple[Node, int]]:
    """Return ``start`` and its ancestors with their depth, nearest first.

    ``start`` is at depth 1 and the root comes last.
    """

    chain: List[Tuple[Node, int]] = []
    seen = set()
    node = start
    depth = 1
    while node is not None:
        node_key = key(node)
        if node_key in seen:
            logger.warning("Cycle detected in parent chain at %r; stopping walk", node_key)
            break
        seen.add(node_key)
        chain.append((node, depth))
        node = get_parent(node)
        depth += 1
    return chain


def walk_descendants(
    start: Optional[Node],
    get_children: Callable[[List[Node]], Iterable[Node]],
    key: Callable[[Node], Hashable] = id,
) -> List[Tuple[Node, int]]:
    """Return ``start`` and every descendant with its depth, breadth first.

    ``get_children`` receives a whole generation at once so callers backed by
    a database can fetch each level in one query.
    """

    if start is None:
        return []
    found: List[Tuple[Node, int]] = [(start, 1)]
    seen = {key(start)}
    frontier = [start]
    depth = 1
    while frontier:
        depth += 1
        next_frontier: List[Node] = []
        for child in get_children(frontier):
            child_key = key(child)
            if child_key in seen:
                continue
            seen.add(child_key)
            found.append((child, depth))
            next_frontier.append(child)
        frontier = next_frontier
    return found


def children_index(parent_of: Mapping[Hashable, Optional[Hashable]]) -> dict:
    """Invert a ``child -> parent`` map into ``parent -> [children]``."""

    index: dict = {}
    for child, parent in parent_of.items():
        if parent is None:
            continue
        index.setdefault(parent, []).append(child)
    return index


def would_create_cycle(
    node: Hashable,
    new_parent: Optional[Hashable],
    parent_of: Mapping[Hashable, Optional[Hashable]],
) -> bool:
    """Return True when attaching ``node`` under ``new_parent`` makes it its own ancestor."""

    if new_parent is None:
        return False
    chain = walk_ascendants(new_parent, parent_of.get, key=lambda item: item)
    return any(ancestor == node for ancestor, _ in chain)


__all__ = [
    "children_index",
    "walk_ascendants",
    "walk_descendants",
    "would_create_cycle",
]
