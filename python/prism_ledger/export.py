"""
Diagnostic views of the node graph: Graphviz DOT, a plain node/edge listing,
and the audit trace printed by ``Ledger.trace``.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .evaluator import collect_subgraph


def _quote(text: str) -> str:
    return text.replace('"', '\\"')


def _nodes(arena, roots: Optional[Iterable[int]]):
    if roots is None:
        return arena.all()
    return [arena.get(node_id) for node_id in sorted(collect_subgraph(arena, roots))]


def to_dot(arena, roots: Optional[List[int]] = None) -> str:
    """
    Renders the graph in Graphviz DOT.

    Leaves are ellipses, combinators are boxes; edges point from a combinator
    to its children and are labelled ``L:<op>`` / ``R:<op>``. When ``roots``
    is given only their subgraph is rendered and they are ranked as sources.
    """
    nodes = _nodes(arena, roots)
    out = ["digraph AST {", "  rankdir=LR;"]
    for node in nodes:
        shape = "ellipse" if node.is_leaf else "box"
        label = _quote(f"{node.label}\\n({node.id})")
        out.append(f'  "{node.id}" [label="{label}", shape={shape}];')
    for node in nodes:
        if node.is_combinator:
            out.append(f'  "{node.id}" -> "{node.left}" [label="L:{node.op.value}"];')
            out.append(f'  "{node.id}" -> "{node.right}" [label="R:{node.op.value}"];')
    if roots:
        ranked = ", ".join(f'"{root}"' for root in roots)
        out.append(f"  {{ rank=source; {ranked} }}")
    out.append("}")
    return "\n".join(out)


def export_graph(arena, roots: Optional[List[int]] = None) -> Dict[str, List[Dict[str, Any]]]:
    """Nodes and edges as plain dictionaries, for tooling that cannot read DOT."""
    nodes = []
    edges = []
    for node in _nodes(arena, roots):
        nodes.append({
            "id": node.id,
            "kind": node.kind,
            "label": node.label,
            "value": node.value,
            "operator": node.op.value if node.op is not None else None,
            "account": node.account,
            "year": node.year,
        })
        if node.is_combinator:
            edges.append({"source": node.id, "target": node.left, "side": "L", "operator": node.op.value})
            edges.append({"source": node.id, "target": node.right, "side": "R", "operator": node.op.value})
    return {"nodes": nodes, "edges": edges}


def format_trace(arena, root: int, values: Mapping[int, float], title: str = "") -> str:
    """
    Renders the computation tree under ``root`` with each node's value.

    Subtrees shared by several parents are expanded once and referenced
    afterwards.
    """
    lines = [f"--- AUDIT TRACE: {title or arena.get(root).label} ---"]
    expanded = set()
    stack = [(root, 0)]
    while stack:
        node_id, depth = stack.pop()
        node = arena.get(node_id)
        indent = "  " * depth
        value = values.get(node_id)
        shown = "n/a" if value is None else f"{value:,.3f}"
        if node.is_leaf:
            lines.append(f"{indent}{node.label} = {shown}")
            continue
        if node_id in expanded:
            lines.append(f"{indent}{node.label} = {shown}  (see above)")
            continue
        expanded.add(node_id)
        lines.append(f"{indent}{node.label} [{node.op.symbol}] = {shown}")
        # Right pushed first so the left operand prints first.
        stack.append((node.right, depth + 1))
        stack.append((node.left, depth + 1))
    return "\n".join(lines)
