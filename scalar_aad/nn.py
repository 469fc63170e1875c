"""
Small feed-forward networks on top of the scalar engine.

    Neuron : tanh(Σ wᵢ·xᵢ + b)
    Layer  : list of neurons sharing the same inputs
    MLP    : chain of layers

Parameters are leaves on the active tape (or on `tape=`), so inputs built
with `leaf` combine with them and get grads too. Training (`fit`) records each
step's graph after everything already on that tape, runs backward, applies
plain SGD (p.data -= lr · p.grad) and then truncates the tape back, so the
previous step's graph never accumulates.

Usage:
    >>> model = MLP(3, [4, 4, 1], rng=np.random.default_rng(0))
    >>> xs = [[2.0, 3.0, -1.0], [3.0, -1.0, 0.5], [0.5, 1.0, 1.0], [1.0, 1.0, -1.0]]
    >>> ys = [1.0, -1.0, -1.0, 1.0]
    >>> history = fit(model, xs, ys, TrainConfig(steps=20, learning_rate=0.1))
"""

import warnings
import numpy as np
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from .core.var import ADVar
from .core.tape import Tape
from .core.engine import backward, zero_grad
from .core import tape as tape_mod
from .ops import sum as ad_sum, tanh


class Module:
    """Base class: anything with parameters."""

    def parameters(self) -> List[ADVar]:
        return []

    def zero_grad(self):
        zero_grad(self.parameters())


class Neuron(Module):
    """
    Single unit with `nin` weights and a bias, all drawn from U[-1, 1].

    Args:
        nin: number of inputs
        nonlin: apply tanh to the weighted sum
        rng: numpy Generator for the initial weights
        tape: tape that holds the parameters (default: the active tape)
    """

    def __init__(self, nin: int, nonlin: bool = True,
                 rng: Optional[np.random.Generator] = None, tape: Optional[Tape] = None):
        rng = rng if rng is not None else np.random.default_rng()
        self.tape = tape if tape is not None else tape_mod.global_tape
        self.w = [ADVar(float(v), name=f"w{i}", tape=self.tape)
                  for i, v in enumerate(rng.uniform(-1.0, 1.0, nin))]
        self.b = ADVar(float(rng.uniform(-1.0, 1.0)), name="b", tape=self.tape)
        self.nonlin = nonlin

    def __call__(self, x: Sequence) -> ADVar:
        # weighted sum as one n-ary add node
        act = ad_sum([wi * xi for wi, xi in zip(self.w, x)] + [self.b])
        return tanh(act) if self.nonlin else act

    def parameters(self) -> List[ADVar]:
        return self.w + [self.b]

    def __repr__(self):
        return f"{'Tanh' if self.nonlin else 'Linear'}Neuron({len(self.w)})"


class Layer(Module):
    """`nout` neurons over the same `nin` inputs."""

    def __init__(self, nin: int, nout: int, **kwargs):
        self.neurons = [Neuron(nin, **kwargs) for _ in range(nout)]

    def __call__(self, x: Sequence) -> Union[ADVar, List[ADVar]]:
        out = [n(x) for n in self.neurons]
        return out[0] if len(out) == 1 else out

    def parameters(self) -> List[ADVar]:
        return [p for n in self.neurons for p in n.parameters()]

    def __repr__(self):
        return f"Layer of [{', '.join(str(n) for n in self.neurons)}]"


class MLP(Module):
    """
    Multi-layer perceptron: nin -> nouts[0] -> ... -> nouts[-1].
    All parameters are recorded on one tape: `tape`, or the active tape.
    """

    def __init__(self, nin: int, nouts: Sequence[int],
                 rng: Optional[np.random.Generator] = None, nonlin_last: bool = True,
                 tape: Optional[Tape] = None):
        rng = rng if rng is not None else np.random.default_rng()
        self.tape = tape if tape is not None else tape_mod.global_tape
        sz = [nin] + list(nouts)
        self.layers = [
            Layer(sz[i], sz[i + 1], rng=rng, tape=self.tape,
                  nonlin=(i != len(nouts) - 1) or nonlin_last)
            for i in range(len(nouts))
        ]

    def __call__(self, x: Sequence) -> Union[ADVar, List[ADVar]]:
        for layer in self.layers:
            x = layer(x)
            if isinstance(x, ADVar):
                x = [x]
        return x[0] if len(x) == 1 else x

    def parameters(self) -> List[ADVar]:
        return [p for layer in self.layers for p in layer.parameters()]

    def __repr__(self):
        return f"MLP of [{', '.join(str(layer) for layer in self.layers)}]"


def mse_loss(preds: Sequence[ADVar], targets: Sequence[float]) -> ADVar:
    """Σ (pred - target)²  as one n-ary add node."""
    return ad_sum([(p - y) ** 2.0 for p, y in zip(preds, targets)])


@dataclass
class TrainConfig:
    """Configuration for `fit`."""
    steps: int = 20
    learning_rate: float = 0.1

    # Logging
    verbose: bool = False


def fit(model: Module, xs: Sequence[Sequence[float]], ys: Sequence[float],
        config: Optional[TrainConfig] = None) -> List[float]:
    """
    Train `model` with full-batch gradient descent on the squared error.

    Each step:
        1. forward pass, recorded after everything already on the parameters' tape
        2. zero-grad the parameters
        3. backward(loss, seed=1.0)
        4. p.data -= lr * p.grad
        5. drop the step's graph from the tape

    Returns:
        loss value of every step
    """
    config = config or TrainConfig()
    if len(xs) != len(ys):
        raise ValueError(f"Got {len(xs)} inputs but {len(ys)} targets")

    params = model.parameters()
    if not params:
        raise ValueError("Model has no parameters to train")
    tape = params[0].tape
    mark = len(tape)

    history: List[float] = []
    for k in range(config.steps):
        # Forward pass
        preds = [model(x) for x in xs]
        loss = mse_loss(preds, ys)
        loss_val = float(loss.data)

        # Backward pass
        model.zero_grad()
        backward(loss, seed=1.0)

        # Update
        for p in params:
            p.data = p.data - config.learning_rate * p.grad

        tape.truncate(mark)

        history.append(loss_val)
        if not np.isfinite(loss_val):
            warnings.warn(f"Non-finite loss at step {k}: {loss_val}", RuntimeWarning)
        if config.verbose:
            print(f"step {k:4d}  loss {loss_val:.6f}")

    return history
