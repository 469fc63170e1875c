# scalar_aad/core/node.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class Op(Enum):
    """Closed set of operations; selects the local derivative rule of a node."""
    NONE = "none"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    POW = "pow"
    TANH = "tanh"

    @property
    def arity(self) -> Optional[int]:
        """Required number of parents, or None when any count is accepted (n-ary add)."""
        return _ARITY[self]


_ARITY = {
    Op.NONE: 0,
    Op.ADD: None,
    Op.SUB: 2,
    Op.MUL: 2,
    Op.POW: 2,
    Op.TANH: 1,
}


@dataclass(eq=False)
class Node:
    """
    One record in the tape arena.

    Attributes
    ----------
    id      : int
        Position of this node in its tape. Identity of a node is its id,
        never its contents.
    data    : float
        Forward value (numpy float64).
    op      : Op
        Operation that produced the node; Op.NONE for leaves.
    parents : Tuple[int, ...]
        Tape indices of the operands, in operand order (matters for sub/pow).
    label   : Optional[str]
        Display name, used by graph reports only.
    grad    : float
        Adjoint accumulator. The only field written after construction.
    gen     : int
        Tape generation at creation. An index freed by truncate/reset is
        reused under a new generation, so (id, gen) never names two nodes.
    """
    id: int
    data: float
    op: Op
    parents: Tuple[int, ...]
    label: Optional[str] = None
    grad: float = 0.0
    gen: int = 0

    @property
    def is_leaf(self) -> bool:
        return self.op is Op.NONE
