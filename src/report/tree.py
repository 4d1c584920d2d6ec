"""Dependency tree rendering from the recorded parent-to-children edges.

Rendering walks with an explicit stack so deep graphs cannot exhaust the
interpreter's recursion limit. Each stack entry carries the set of node ids
on its own path: a shared dependency is expanded under every parent, and a
node that reappears on its own path is printed as a circular reference.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, List, Mapping, Sequence, Tuple

from engine.models import PackageRecord
from engine.state import find_roots

CIRCULAR = "[circular reference]"
UNKNOWN = "[unknown]"

_Frame = Tuple[str, int, bool, FrozenSet[str]]


def _describe(record: PackageRecord) -> str:
    return f"{record.name} ({record.license})"


def render_tree(edges: Mapping[str, Sequence[str]], records: Sequence[PackageRecord]) -> List[str]:
    """Render every root's subtree; roots are parents that nothing depends on."""
    by_id: Dict[str, PackageRecord] = {record.node_id: record for record in records}
    lines = ["=== DEPENDENCY TREE ===", ""]

    for index, root in enumerate(sorted(find_roots(dict(edges)))):
        if index:
            lines.append("")
        record = by_id.get(root)
        lines.append(_describe(record) if record else f"{root} {UNKNOWN}")

        stack: List[_Frame] = []
        _push_children(stack, edges, root, 1, frozenset([root]))
        while stack:
            node, level, is_last, path = stack.pop()
            indent = "  " * level
            branch = "└── " if is_last else "├── "
            if node in path:
                lines.append(f"{indent}{branch}{node} {CIRCULAR}")
                continue
            child = by_id.get(node)
            if child is None:
                lines.append(f"{indent}{branch}{node} {UNKNOWN}")
                continue
            lines.append(f"{indent}{branch}{_describe(child)}")
            _push_children(stack, edges, node, level + 1, path | {node})
    return lines


def _push_children(
    stack: List[_Frame],
    edges: Mapping[str, Sequence[str]],
    parent: str,
    level: int,
    path: FrozenSet[str],
) -> None:
    children = sorted(edges.get(parent, ()))
    # reversed so the first child is popped first
    for position in range(len(children) - 1, -1, -1):
        stack.append((children[position], level, position == len(children) - 1, path))
