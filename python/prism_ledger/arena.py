"""
Defines the node arena that owns every node of the computation graph.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence

from .errors import NodeNotFoundError


class Op(str, Enum):
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]


_SYMBOLS = {Op.ADD: "+", Op.SUB: "-", Op.MUL: "*", Op.DIV: "/"}

# Accept the operator names used by the public graph API as well.
_OP_ALIASES = {
    "add": Op.ADD,
    "subtract": Op.SUB,
    "multiply": Op.MUL,
    "divide": Op.DIV,
}


def _as_op(op_name) -> Op:
    if isinstance(op_name, Op):
        return op_name
    if op_name in _OP_ALIASES:
        return _OP_ALIASES[op_name]
    try:
        return Op(str(op_name).upper())
    except ValueError:
        raise ValueError(f"Unknown operator: {op_name!r}") from None


@dataclass(frozen=True)
class Node:
    """
    A leaf (FF) holding a constant, or a combinator (TT) holding two child ids
    and an operator. Never both, never neither.

    ``account`` and ``year`` record provenance for diagnostics only.
    """

    id: int
    value: Optional[float] = None
    left: Optional[int] = None
    right: Optional[int] = None
    op: Optional[Op] = None
    label: str = ""
    account: Optional[str] = None
    year: Optional[int] = None

    def __post_init__(self):
        if self.is_leaf == self.is_combinator:
            raise ValueError(f"Node {self.id} must be either a leaf or a combinator.")

    @property
    def is_leaf(self) -> bool:
        return self.value is not None

    @property
    def is_combinator(self) -> bool:
        return self.left is not None and self.right is not None and self.op is not None

    @property
    def kind(self) -> str:
        return "FF" if self.is_leaf else "TT"

    @property
    def children(self) -> Sequence[int]:
        if self.is_combinator:
            return (self.left, self.right)
        return ()


class NodeArena:
    """
    Append-only store of graph nodes addressed by integer ids.

    Nodes are immutable once stored; a combinator can only be added after
    both of its children exist, so the arena cannot hold a cycle.
    """

    def __init__(self):
        self._nodes: Dict[int, Node] = {}
        self._seq = 0

    def __repr__(self) -> str:
        return f"NodeArena(nodes={len(self._nodes)})"

    def _next_id(self) -> int:
        self._seq += 1
        return self._seq

    def add_constant_node(
        self,
        value: float,
        name: str,
        *,
        account: Optional[str] = None,
        year: Optional[int] = None,
    ) -> int:
        """Stores a leaf and returns its id."""
        node_id = self._next_id()
        self._nodes[node_id] = Node(
            id=node_id,
            value=float(value),
            label=f"FF:{name}",
            account=account,
            year=year,
        )
        return node_id

    def add_binary_formula(
        self,
        op_name,
        parents: List[int],
        name: str,
        *,
        account: Optional[str] = None,
        year: Optional[int] = None,
    ) -> int:
        """Stores a combinator over two existing nodes and returns its id."""
        if len(parents) != 2:
            raise ValueError(f"Binary formula '{name}' needs exactly two parents, got {len(parents)}.")
        left, right = parents
        # Raises NodeNotFoundError for dangling children.
        self.get(left)
        self.get(right)

        node_id = self._next_id()
        self._nodes[node_id] = Node(
            id=node_id,
            left=left,
            right=right,
            op=_as_op(op_name),
            label=f"TT:{name}",
            account=account,
            year=year,
        )
        return node_id

    def get(self, node_id: int) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NodeNotFoundError(node_id) from None

    def __contains__(self, node_id) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[Node]:
        return iter(list(self._nodes.values()))

    def __len__(self) -> int:
        return len(self._nodes)

    def all(self) -> List[Node]:
        return list(self._nodes.values())

    @property
    def node_count(self) -> int:
        return len(self._nodes)
