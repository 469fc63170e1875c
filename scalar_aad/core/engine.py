# scalar_aad/core/engine.py
from __future__ import annotations
import numpy as np
from typing import Iterable, List, Optional

from . import tape as tape_mod  # Use module access for use_tape() compatibility
from .node import Node, Op
from .var import ADVar


def zero_adjoints(tape=None):
    """
    Set every grad on `tape` (default: the active tape) to zero.
    """
    tape = tape if tape is not None else tape_mod.global_tape
    for node in tape.nodes:
        node.grad = 0.0


def zero_grad(params: Iterable[ADVar]):
    """
    Reset the grads of the given handles (typically a model's parameters)
    before the next backward pass.
    """
    for p in params:
        p.grad = 0.0


# ---------------- Topological sequencer ---------------- #
def _sequence_indices(tape, root_idx: int) -> List[int]:
    """
    Depth-first post-order from `root_idx`. Parents are visited in recorded
    order and each node is emitted once, after all of its parents.

    Same order as the recursive formulation
        visit(n): if n unseen: mark n; visit(p) for p in parents(n); emit n
    but with an explicit stack, so long chains do not hit the recursion limit.
    The visited set holds tape indices: two nodes with equal data are still
    two nodes.
    """
    nodes = tape.nodes
    order: List[int] = []
    visited = set()
    stack = [(root_idx, False)]
    while stack:
        i, expanded = stack.pop()
        if expanded:
            order.append(i)
            continue
        if i in visited:
            continue
        visited.add(i)
        stack.append((i, True))
        for p in reversed(nodes[i].parents):
            if p not in visited:
                stack.append((p, False))
    return order


def sequence(root: ADVar) -> List[ADVar]:
    """
    Topological order of every node reachable from `root` (parents first,
    root last). Deterministic for a fixed graph.
    """
    root.node  # raises ReferenceError for a discarded node
    return [ADVar._from_index(root.tape, i) for i in _sequence_indices(root.tape, root.idx)]


# ---------------- Backward propagator ---------------- #
def backward(root: ADVar, seed: Optional[float] = None):
    """
    Run a single reverse pass from `root`.

    Args:
        root: output handle.
        seed: if given, added to root.grad before the sweep (the result may
              be zero, e.g. a seed that cancels an earlier pass). Otherwise
              the caller must already have set root.grad, usually to 1.0;
              a zero root.grad is then taken as "never seeded" and fails
              fast, so to propagate a deliberate zero pass seed=0.0.

    Notes:
        - Grads are accumulated, never overwritten and never reset here.
          Call zero_grad / zero_adjoints between independent passes.
        - Nodes are processed in reverse topological order, so a node's grad
          is complete before it is pushed to its parents.
    """
    tape = root.tape
    if seed is not None:
        root.grad = root.grad + float(seed)
    else:
        assert root.grad != 0.0, (
            "backward() called with root.grad == 0; seed the output first "
            "(root.grad = 1.0 or backward(root, seed=1.0))"
        )

    order = _sequence_indices(tape, root.idx)
    legacy_sub = tape.config.legacy_subtract_grad
    with np.errstate(all="ignore"):
        for i in reversed(order):
            _apply_rule(tape.nodes, tape.nodes[i], legacy_sub)

    if tape.config.verbose:
        print(f"backward: {len(order)} nodes from node {root.idx} "
              f"(root grad {float(root.grad):g})")


def _apply_rule(nodes: List[Node], node: Node, legacy_sub: bool = False):
    """
    Push node.grad into its parents using the local derivative of node.op.

      add  : p.grad += g                      for every parent
      sub  : a.grad += g ; b.grad -= g        (legacy: b.grad += g)
      mul  : a.grad += b * g ; b.grad += a * g
      pow  : a.grad += b * a^(b-1) * g        (exponent is a constant)
      tanh : a.grad += (1 - t^2) * g          with t = node.data
    """
    op = node.op
    ps = node.parents
    assert op.arity is None or len(ps) == op.arity, (
        f"node {node.id}: op {op.value!r} expects {op.arity} parent(s), got {len(ps)}"
    )
    g = node.grad

    if op is Op.NONE:
        return

    if op is Op.ADD:
        for p in ps:
            nodes[p].grad += g
        return

    if op is Op.SUB:
        a, b = nodes[ps[0]], nodes[ps[1]]
        a.grad += g
        # The historical rule gave the subtrahend +g as well
        b.grad += g if legacy_sub else -g
        return

    if op is Op.MUL:
        a, b = nodes[ps[0]], nodes[ps[1]]
        a_data, b_data = a.data, b.data
        a.grad += b_data * g
        b.grad += a_data * g
        return

    if op is Op.POW:
        a, b = nodes[ps[0]], nodes[ps[1]]
        a.grad += b.data * np.power(a.data, b.data - 1.0) * g
        return

    if op is Op.TANH:
        a = nodes[ps[0]]
        a.grad += (1.0 - node.data * node.data) * g
        return

    raise AssertionError(f"node {node.id}: no backward rule for op {op!r}")
