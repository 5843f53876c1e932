"""
Reduces node graphs to numbers.

Two independent strategies are provided. ``evaluate_topological`` orders the
reachable subgraph with Kahn's algorithm and is what the ledger uses.
``evaluate_recursive`` is a memoized depth-first reduction kept as a
correctness oracle for the first; it is not guarded against very deep graphs.

Both work on anything exposing ``get(node_id) -> Node``.
"""
import math
from collections import deque
from typing import Dict, Iterable, List, Optional

from .arena import Node, Op
from .errors import EvaluationConsistencyError, NodeNotFoundError


def combine(op: Op, a: float, b: float) -> float:
    """Applies a binary operator. Division by zero yields NaN."""
    if op == Op.ADD:
        return a + b
    if op == Op.SUB:
        return a - b
    if op == Op.MUL:
        return a * b
    if op == Op.DIV:
        return a / b if b != 0 else math.nan
    raise EvaluationConsistencyError(f"Unknown operator: {op!r}")


def _fetch(arena, node_id: int, parent: Optional[int] = None) -> Node:
    try:
        return arena.get(node_id)
    except NodeNotFoundError:
        if parent is None:
            raise EvaluationConsistencyError(f"Root node {node_id} is not in the arena") from None
        raise EvaluationConsistencyError(
            f"Node {parent} references undefined child {node_id}"
        ) from None


def collect_subgraph(arena, roots: Iterable[int]) -> List[int]:
    """Returns every node id reachable from ``roots``, in discovery order."""
    seen: Dict[int, None] = {}
    for root in roots:
        if root in seen:
            continue
        _fetch(arena, root)
        stack = [root]
        seen[root] = None
        while stack:
            node_id = stack.pop()
            for child in _fetch(arena, node_id).children:
                if child not in seen:
                    _fetch(arena, child, parent=node_id)
                    seen[child] = None
                    stack.append(child)
    return list(seen)


def topological_order(arena, roots: Iterable[int]) -> List[int]:
    """
    Orders the subgraph reachable from ``roots`` so that every combinator
    follows both of its children.

    Raises:
        EvaluationConsistencyError: if the subgraph contains a cycle.
    """
    nodes = collect_subgraph(arena, roots)
    indegree = {node_id: 0 for node_id in nodes}
    dependents: Dict[int, List[int]] = {node_id: [] for node_id in nodes}

    for node_id in nodes:
        for child in arena.get(node_id).children:
            indegree[node_id] += 1
            dependents[child].append(node_id)

    queue = deque(node_id for node_id in nodes if indegree[node_id] == 0)
    order: List[int] = []
    while queue:
        node_id = queue.popleft()
        order.append(node_id)
        for dependent in dependents[node_id]:
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                queue.append(dependent)

    if len(order) != len(nodes):
        stuck = sorted(node_id for node_id, degree in indegree.items() if degree > 0)
        raise EvaluationConsistencyError(
            f"Cycle detected during topological sort among nodes {stuck}"
        )
    return order


def evaluate_topological(arena, roots: Iterable[int]) -> Dict[int, float]:
    """Evaluates every node reachable from ``roots``; returns id -> value."""
    values: Dict[int, float] = {}
    for node_id in topological_order(arena, roots):
        node = arena.get(node_id)
        if node.is_leaf:
            values[node_id] = node.value
            continue
        try:
            a = values[node.left]
            b = values[node.right]
        except KeyError:
            raise EvaluationConsistencyError(
                f"Missing child value while evaluating node {node_id}"
            ) from None
        values[node_id] = combine(node.op, a, b)
    return values


def evaluate_recursive(arena, node_id: int, memo: Optional[Dict[int, float]] = None) -> float:
    """Depth-first evaluation of a single node with memoization by id."""
    if memo is None:
        memo = {}
    if node_id in memo:
        return memo[node_id]

    node = _fetch(arena, node_id)
    if node.is_leaf:
        value = node.value
    elif node.is_combinator:
        _fetch(arena, node.left, parent=node_id)
        _fetch(arena, node.right, parent=node_id)
        a = evaluate_recursive(arena, node.left, memo)
        b = evaluate_recursive(arena, node.right, memo)
        value = combine(node.op, a, b)
    else:
        raise EvaluationConsistencyError(f"Invalid TT node: {node_id}")

    memo[node_id] = value
    return value


def validate_graph(arena, roots: Iterable[int]) -> None:
    """
    Checks the integrity of an arena.

    1. Every node is exactly one of leaf or combinator.
    2. Every combinator's children exist.
    3. The subgraph reachable from ``roots`` is acyclic.

    Raises:
        EvaluationConsistencyError: on the first violation found.
    """
    for node in arena.all():
        if node.is_leaf == node.is_combinator:
            raise EvaluationConsistencyError(f"Node {node.id} must be either FF or TT")
        for child in node.children:
            _fetch(arena, child, parent=node.id)
    topological_order(arena, roots)
