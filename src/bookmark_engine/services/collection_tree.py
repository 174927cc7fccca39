"""
Flattening of the collection hierarchy into a depth-annotated list.

The tree is built arena-style: one id -> node map, child lists keyed by parent
id, then an iterative depth-first walk. No node holds a reference to another,
so a corrupt hierarchy (dangling parent, self-parent, cycle) can never cause
unbounded recursion.
"""
from collections import defaultdict

from bookmark_engine.schemas.collection import CollectionRecord


def _sort_key(node: CollectionRecord) -> tuple:
    return (node.date_created, node.id)


def flatten_collection_tree(nodes: list[CollectionRecord]) -> list[CollectionRecord]:
    """
    Order collections depth-first (pre-order) and annotate each with its depth.

    Roots and each node's children are sorted by date_created desc (id desc as
    tiebreaker). A node whose parent is missing from `nodes` is a root. Nodes
    caught in a parent cycle have no reachable root; the newest unvisited one
    is promoted to root so nothing is dropped.

    Args:
        nodes: Collections to arrange. Not modified.

    Returns:
        New records with `depth` set (root = 0), in display order.
    """
    by_id = {node.id: node for node in nodes}
    children: dict[str, list[CollectionRecord]] = defaultdict(list)
    roots: list[CollectionRecord] = []

    for node in nodes:
        parent_id = node.parent_id
        if parent_id is None or parent_id == node.id or parent_id not in by_id:
            roots.append(node)
        else:
            children[parent_id].append(node)

    for child_list in children.values():
        child_list.sort(key=_sort_key, reverse=True)
    roots.sort(key=_sort_key, reverse=True)

    flattened: list[CollectionRecord] = []
    visited: set[str] = set()

    def walk(root: CollectionRecord) -> None:
        stack = [(root, 0)]
        while stack:
            node, depth = stack.pop()
            if node.id in visited:
                continue
            visited.add(node.id)
            flattened.append(node.model_copy(update={"depth": depth}))
            # Reversed so the newest child is popped first
            for child in reversed(children.get(node.id, [])):
                if child.id not in visited:
                    stack.append((child, depth + 1))

    for root in roots:
        walk(root)

    # Anything left hangs off a parent cycle; promote the newest member of each cycle
    if len(visited) < len(by_id):
        for node in sorted(by_id.values(), key=_sort_key, reverse=True):
            if node.id not in visited:
                walk(_newest_cycle_member(node, by_id))

    return flattened


def _newest_cycle_member(
    start: CollectionRecord,
    by_id: dict[str, CollectionRecord],
) -> CollectionRecord:
    """Follow parent links from `start` to the cycle they end in; return its newest node."""
    path: list[str] = []
    seen: set[str] = set()
    current = start
    while current.id not in seen:
        seen.add(current.id)
        path.append(current.id)
        current = by_id[current.parent_id]
    cycle = path[path.index(current.id):]
    return max((by_id[node_id] for node_id in cycle), key=_sort_key)
