"""
Functional API for building graph nodes.

Each helper instantiates the matching `Function` from `_function` and records
it in the graph that owns the operand handles. Leaf helpers (`input`,
`parameter`) take the target graph explicitly.

Usage
-----
    from lazygrad.infrastructure import _node_ops as F

    g = Graph()
    x = F.input(g, Shape([2], 3), [1, 2, 3, 4, 5, 6], dev)
    w = F.parameter(g, param)
    y = F.batch_sum(F.sum(F.square(F.matmul(w, x)), 0))

Notes
-----
Shape errors are raised by the graph when the node is recorded, before any
value is computed.
"""

from __future__ import annotations

from typing import Any, Sequence

from ..domain._shape import Shape
from . import _function as fn
from ._graph import Graph, Node


def input(graph: Graph, shape: Shape, values: Any, device: Any) -> Node:
    """Record a constant data leaf."""
    return graph.add_function(fn.Input(shape, values, device))


def parameter(graph: Graph, param: Any) -> Node:
    """Record a leaf reading `param`; gradients flow back into it."""
    return graph.add_function(fn.ParameterInput(param))


def add(a: Node, b: Node) -> Node:
    return a.graph.add_function(fn.Add(), (a, b))


def subtract(a: Node, b: Node) -> Node:
    return a.graph.add_function(fn.Subtract(), (a, b))


def multiply(a: Node, b: Node) -> Node:
    return a.graph.add_function(fn.Multiply(), (a, b))


def divide(a: Node, b: Node) -> Node:
    return a.graph.add_function(fn.Divide(), (a, b))


def negative(x: Node) -> Node:
    return x.graph.add_function(fn.Negative(), (x,))


def add_const(x: Node, k: float) -> Node:
    return x.graph.add_function(fn.AddConst(k), (x,))


def multiply_const(x: Node, k: float) -> Node:
    return x.graph.add_function(fn.MultiplyConst(k), (x,))


def square(x: Node) -> Node:
    return x.graph.add_function(fn.Square(), (x,))


def exp(x: Node) -> Node:
    return x.graph.add_function(fn.Exp(), (x,))


def tanh(x: Node) -> Node:
    return x.graph.add_function(fn.Tanh(), (x,))


def sigmoid(x: Node) -> Node:
    return x.graph.add_function(fn.Sigmoid(), (x,))


def relu(x: Node) -> Node:
    return x.graph.add_function(fn.ReLU(), (x,))


def transpose(x: Node) -> Node:
    return x.graph.add_function(fn.Transpose(), (x,))


def matmul(a: Node, b: Node) -> Node:
    return a.graph.add_function(fn.MatrixMultiply(), (a, b))


def sum(x: Node, dim: int) -> Node:
    """Sum along axis `dim`."""
    return x.graph.add_function(fn.Sum(dim), (x,))


def broadcast(x: Node, dim: int, size: int) -> Node:
    """Repeat axis `dim` (extent 1) `size` times."""
    return x.graph.add_function(fn.Broadcast(dim, size), (x,))


def slice(x: Node, dim: int, lower: int, upper: int) -> Node:
    """Take ``[lower, upper)`` along axis `dim`."""
    return x.graph.add_function(fn.Slice(dim, lower, upper), (x,))


def concat(xs: Sequence[Node], dim: int) -> Node:
    """
    Concatenate nodes along axis `dim`.

    Raises
    ------
    ValueError
        If `xs` is empty.
    """
    xs = list(xs)
    if not xs:
        raise ValueError("concat requires at least one node")
    return xs[0].graph.add_function(fn.Concat(dim), xs)


def batch_sum(x: Node) -> Node:
    """Sum over the batch."""
    return x.graph.add_function(fn.BatchSum(), (x,))
