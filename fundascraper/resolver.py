"""
Resolution of Nuxt 3 flattened payloads.

Nuxt serializes page state as one flat JSON array: every object and array is
stored once and referenced elsewhere by its integer index. ``resolve`` turns a
reference back into the nested value it stands for.
"""
from typing import Any, FrozenSet, List, Sequence


def is_reference(store: Sequence[Any], value: Any) -> bool:
    """An in-range integer is a reference; anything else is a scalar."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < len(store)
    )


def resolve(store: Sequence[Any], value: Any, visited: FrozenSet[int] = frozenset()) -> Any:
    """
    Materialize ``value`` against ``store``.

    Every branch carries its own visited set (the indices on the path from the
    root), so a node shared by two siblings is copied in full under each of
    them, while a node that refers back to one of its ancestors resolves to
    None. Works off an explicit stack, so nesting depth is not limited by the
    interpreter recursion limit.
    """
    root: List[Any] = [None]
    stack = [(root, 0, value, frozenset(visited))]

    while stack:
        parent, slot, val, path = stack.pop()

        if not is_reference(store, val):
            parent[slot] = val
            continue
        if val in path:
            parent[slot] = None
            continue

        node = store[val]
        branch = path | {val}
        if isinstance(node, list):
            out = [None] * len(node)
            stack.extend((out, i, item, branch) for i, item in enumerate(node))
        elif isinstance(node, dict):
            out = dict.fromkeys(node)
            stack.extend((out, k, item, branch) for k, item in node.items())
        else:
            out = node
        parent[slot] = out

    return root[0]
