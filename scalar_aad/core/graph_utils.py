"""
Computation graph utilities.
Tracing, printing and exporting the graph recorded on a tape.
Everything here is read-only: no data or grad is modified.
"""

import numpy as np
from typing import Dict, List, Optional, Set, Tuple
from collections import Counter
from graphviz import Digraph

from . import tape as tape_mod
from .engine import sequence
from .var import ADVar


def _active(tape):
    return tape if tape is not None else tape_mod.global_tape


def trace(root: ADVar) -> Tuple[List[ADVar], Set[Tuple[ADVar, ADVar]]]:
    """
    Collect every node reachable from `root` and every (parent, child) edge.

    Returns:
        nodes: reachable handles in topological order (root last)
        edges: set of (parent, child) pairs
    """
    nodes = sequence(root)
    edges = set()
    for child in nodes:
        for parent in child.parents:
            edges.add((parent, child))
    return nodes, edges


def get_graph_stats(tape=None) -> Dict:
    """
    Graph statistics for a tape (no printing).

    Returns:
        dict with node/edge counts, fan-in/fan-out and op breakdown
    """
    tape = _active(tape)
    if not tape.nodes:
        return {
            'nodes': 0,
            'edges': 0,
            'leaves': 0,
            'max_fan_in': 0,
            'avg_fan_in': 0.0,
            'max_fan_out': 0,
            'avg_fan_out': 0.0,
            'operations': {}
        }

    n_nodes = len(tape.nodes)
    fan_ins = np.array([len(node.parents) for node in tape.nodes])

    # out-degree: count how often each index appears as a parent
    fan_outs = np.zeros(n_nodes, dtype=int)
    for node in tape.nodes:
        for p in node.parents:
            fan_outs[p] += 1

    op_counter = Counter(node.op.value for node in tape.nodes)

    return {
        'nodes': n_nodes,
        'edges': int(fan_ins.sum()),
        'leaves': op_counter.get('none', 0),
        'max_fan_in': int(fan_ins.max()),
        'avg_fan_in': float(fan_ins.mean()),
        'max_fan_out': int(fan_outs.max()),
        'avg_fan_out': float(fan_outs.mean()),
        'operations': dict(op_counter)
    }


def print_graph_summary(tape=None, detailed: bool = False) -> Dict:
    """
    Print a summary of the graph on `tape`.

    Args:
        tape: tape to report on (default: the active tape)
        detailed: also list every node (only for graphs of <= 100 nodes)

    Returns:
        the statistics dict of get_graph_stats
    """
    tape = _active(tape)
    if not tape.nodes:
        print("Empty computation graph")
        return {}

    stats = get_graph_stats(tape)
    n_nodes = stats['nodes']

    print("\n" + "="*70)
    print("COMPUTATION GRAPH SUMMARY")
    print("="*70)
    print(f"Total nodes:        {n_nodes:,}")
    print(f"Total edges:        {stats['edges']:,}")
    print(f"Leaves:             {stats['leaves']:,}")
    print(f"Max fan-in:         {stats['max_fan_in']}")
    print(f"Avg fan-in:         {stats['avg_fan_in']:.2f}")
    print(f"Max fan-out:        {stats['max_fan_out']}")
    print(f"Avg fan-out:        {stats['avg_fan_out']:.2f}")
    print()
    print("Operation breakdown:")
    for op_type, count in Counter(stats['operations']).most_common(10):
        pct = 100.0 * count / n_nodes
        print(f"  {op_type:12s}: {count:6,} ({pct:5.1f}%)")

    if detailed and n_nodes <= 100:
        print()
        print("="*70)
        print("DETAILED NODE LIST")
        print("="*70)
        for node in tape.nodes:
            parent_info = ", ".join(f"Node{p}" for p in node.parents)
            print(f"Node {node.id:3d}: {node.op.value:12s} <- [{parent_info}]")

    print("="*70 + "\n")
    return stats


def print_computation_graph(tape=None, max_nodes: int = 20) -> None:
    """
    Print the graph node by node: op, value, grad and parents.

    Args:
        tape: tape to print (default: the active tape)
        max_nodes: print at most this many nodes
    """
    tape = _active(tape)
    print("\n" + "="*70)
    print("COMPUTATION GRAPH STRUCTURE")
    print("="*70)

    if not tape.nodes:
        print("Empty graph")
        return

    for node in tape.nodes[:max_nodes]:
        name = node.label or ""
        head = f"Node {node.id:4d}: {node.op.value:6s} {name:8s} ({float(node.data):10.6f}, grad {float(node.grad):10.6f})"
        if node.parents:
            parent_info = ", ".join(f"Node{p}" for p in node.parents)
            print(f"{head} <- [{parent_info}]")
        else:
            print(f"{head} [leaf/input]")

    if len(tape.nodes) > max_nodes:
        print(f"... ({len(tape.nodes) - max_nodes} more nodes)")

    print("="*70 + "\n")


_OP_SYMBOL = {
    'add': '+',
    'sub': '-',
    'mul': '*',
    'pow': '**',
    'tanh': 'tanh',
}


def draw_dot(root: ADVar, rankdir: str = "LR", fmt: Optional[str] = "svg") -> Digraph:
    """
    Graphviz rendering of the graph below `root`.

    Every node becomes a record `label | data | grad`; every non-leaf also gets
    a small op node wired parent -> op -> node. Rendering to a file is left to
    the caller (`dot.render(...)`), which needs the Graphviz binaries.
    """
    dot = Digraph(format=fmt, graph_attr={'rankdir': rankdir})

    nodes, edges = trace(root)
    for n in nodes:
        uid = str(n.id)
        dot.node(
            name=uid,
            label="{ %s | data %.4f | grad %.4f }" % (n.label or "", float(n.data), float(n.grad)),
            shape='record',
        )
        if not n.is_leaf:
            dot.node(name=uid + n.op.value, label=_OP_SYMBOL[n.op.value])
            dot.edge(uid + n.op.value, uid)

    for parent, child in sorted(edges, key=lambda e: (e[1].id, e[0].id)):
        dot.edge(str(parent.id), str(child.id) + child.op.value)

    return dot
