# scalar_aad/core/tape.py
from __future__ import annotations
from typing import List, Optional, Sequence
from contextlib import contextmanager
import numpy as np

from .config import EngineConfig
from .node import Node, Op


class Tape:
    """
    Node arena: records Nodes in creation order and addresses them by index.
    A parent always has a smaller index than its children, so the arena is
    acyclic by construction.
    """
    def __init__(self, config: Optional[EngineConfig] = None):
        self.nodes: List[Node] = []
        # bumped whenever indices are freed
        self.generation = 0
        self.config = config or EngineConfig()

    def __len__(self):
        return len(self.nodes)

    def __getitem__(self, idx: int) -> Node:
        return self.nodes[idx]

    def reset(self):
        self.nodes.clear()
        self.generation += 1

    def truncate(self, size: int):
        """
        Drop every node recorded after the first `size` ones. Handles to the
        dropped nodes become stale (access raises ReferenceError). Used to
        discard a training step's graph while keeping the parameters recorded
        before it.
        """
        if not 0 <= size <= len(self.nodes):
            raise ValueError(f"Cannot truncate tape of size {len(self.nodes)} to {size}")
        del self.nodes[size:]
        self.generation += 1

    def is_live(self, idx: int, gen: int) -> bool:
        """True if node `idx` exists and was created in generation `gen`."""
        return 0 <= idx < len(self.nodes) and self.nodes[idx].gen == gen

    def push_node(self, *, data, op: Op, parents: Sequence[int] = (), label: Optional[str] = None) -> int:
        """
        Append a Node(data, op, parents) to the tape and return its index.
        `parents` are indices of nodes already on this tape.
        """
        parents = tuple(int(p) for p in parents)
        if self.config.check_arity:
            self._check(op, parents)
        idx = len(self.nodes)
        self.nodes.append(Node(id=idx, data=np.float64(data), op=op, parents=parents, label=label,
                               gen=self.generation))
        return idx

    def _check(self, op: Op, parents):
        n = len(self.nodes)
        for p in parents:
            if not 0 <= p < n:
                raise ValueError(f"Parent index {p} is not on this tape (size {n})")
        if op.arity is not None and len(parents) != op.arity:
            raise ValueError(
                f"Op {op.value!r} takes {op.arity} parent(s), got {len(parents)}"
            )


# Global default tape
global_tape = Tape()


@contextmanager
def use_tape(tape: Optional[Tape] = None):
    """
    Context manager to temporarily use a fresh tape:
        with use_tape():
            ... build computation ...
            backward(y, seed=1.0)
    """
    from . import tape as _tape_mod  # local import to avoid cycles
    prev = _tape_mod.global_tape
    try:
        _tape_mod.global_tape = tape if tape is not None else Tape()
        yield _tape_mod.global_tape
    finally:
        _tape_mod.global_tape = prev
