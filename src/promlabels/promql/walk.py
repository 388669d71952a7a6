"""Depth-first traversal over PromQL expression trees."""

from typing import Callable, Iterator, List, Optional

from .ast import Expr, NodeKind, VectorSelector

# Receives the node and its ancestors (root first); returning False skips the subtree.
Visitor = Callable[[Expr, List[Expr]], Optional[bool]]


def children(node: Expr) -> List[Expr]:
    """Direct sub-expressions of ``node`` in source order."""
    kind = node.kind
    if kind is NodeKind.AGGREGATE:
        if node.param is not None:
            return [node.param, node.expr]
        return [node.expr]
    if kind is NodeKind.BINARY:
        return [node.lhs, node.rhs]
    if kind is NodeKind.CALL:
        return list(node.args)
    if kind is NodeKind.MATRIX_SELECTOR:
        return [node.vector_selector]
    if kind in (NodeKind.PAREN, NodeKind.SUBQUERY, NodeKind.UNARY):
        return [node.expr]
    return []


def inspect(node: Expr, visitor: Visitor, path: Optional[List[Expr]] = None) -> None:
    """Call ``visitor`` on every node in pre-order."""
    stack = [(node, [] if path is None else path)]
    while stack:
        current, current_path = stack.pop()
        if visitor(current, current_path) is False:
            continue
        child_path = current_path + [current]
        stack.extend((child, child_path) for child in reversed(children(current)))


def iter_nodes(node: Expr) -> Iterator[Expr]:
    """Yield every node of the tree in pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(children(current)))


def is_vector_selector(node: Expr) -> bool:
    return node.kind is NodeKind.VECTOR_SELECTOR


def vector_selectors(node: Expr) -> List[VectorSelector]:
    """Every vector selector in the tree, including those inside range selectors."""
    return [n for n in iter_nodes(node) if is_vector_selector(n)]
