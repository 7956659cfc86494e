"""
Computation graph with lazy evaluation and reverse-mode differentiation.

This module provides `Graph`, an append-only arena of node records, and
`Node`, a lightweight handle naming one position in a graph.

Lifecycle of a node
-------------------
1. Construction (`Graph.add_function`): the function infers the result shape
   from the operand shapes. Shape errors surface here, before any numeric
   work, and leave the graph untouched.
2. Forward evaluation (`Graph.forward`): values are computed on demand,
   antecedents first, and memoized for the graph's lifetime. Each node is
   computed at most once.
3. Backward differentiation (`Graph.backward`): the target is seeded with
   ones and positions are visited from the target down to 0. Each node's
   function accumulates into its operands' gradient buffers.

Ordering invariant
------------------
Positions are assigned in creation order and every operand position is
strictly less than the position of the node that uses it. Creation order is
therefore a topological order: iterating positions upward visits operands
before their consumers, and iterating downward visits every consumer of a
node before the node itself. No sort is ever performed.

Notes
-----
- The graph owns every function instance and every value/gradient buffer.
  Accessors return the stored tensors; callers must treat them as read-only.
- A handle from another graph raises `GraphMismatchError`. A handle whose
  position is out of range can only come from corruption: the condition is
  logged at CRITICAL level and the process aborts.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Optional, TextIO

from ..domain._errors import (
    GradientAlreadyExistsError,
    GraphMismatchError,
    NodeNotCalculatedError,
)
from ..domain._function import Function
from ..domain._shape import Shape
from ..domain._tensor import ITensor

if TYPE_CHECKING:
    from ._tensor import Tensor

logger = logging.getLogger(__name__)


class Node:
    """
    Handle to one position of a `Graph`.

    A node carries no data: shape, value and gradient live in the graph
    record it names. Two handles are equal iff they name the same position
    of the same graph object.

    Arithmetic operators record new nodes in the same graph:

        y = x * x + 1.0

    Parameters
    ----------
    graph : Graph
        Graph that produced this handle.
    node_id : int
        Position of the node in `graph`.
    """

    __slots__ = ("_graph", "_id")

    def __init__(self, graph: "Graph", node_id: int) -> None:
        self._graph = graph
        self._id = node_id

    @property
    def graph(self) -> "Graph":
        """Graph that owns the node."""
        return self._graph

    @property
    def id(self) -> int:
        """Position of the node in its graph."""
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self._graph is other._graph and self._id == other._id

    def __hash__(self) -> int:
        return hash((id(self._graph), self._id))

    def __repr__(self) -> str:
        return f"Node(graph={id(self._graph):#x}, id={self._id})"

    def shape(self) -> Shape:
        """Return the inferred shape of this node."""
        return self._graph.get_shape(self)

    def __add__(self, other: Any) -> "Node":
        from . import _node_ops as F

        if isinstance(other, Node):
            return F.add(self, other)
        return F.add_const(self, other)

    def __radd__(self, other: Any) -> "Node":
        from . import _node_ops as F

        return F.add_const(self, other)

    def __sub__(self, other: Any) -> "Node":
        from . import _node_ops as F

        if isinstance(other, Node):
            return F.subtract(self, other)
        return F.add_const(self, -other)

    def __rsub__(self, other: Any) -> "Node":
        from . import _node_ops as F

        return F.add_const(F.negative(self), other)

    def __mul__(self, other: Any) -> "Node":
        from . import _node_ops as F

        if isinstance(other, Node):
            return F.multiply(self, other)
        return F.multiply_const(self, other)

    def __rmul__(self, other: Any) -> "Node":
        from . import _node_ops as F

        return F.multiply_const(self, other)

    def __truediv__(self, other: Any) -> "Node":
        from . import _node_ops as F

        if isinstance(other, Node):
            return F.divide(self, other)
        return F.multiply_const(self, 1.0 / other)

    def __neg__(self) -> "Node":
        from . import _node_ops as F

        return F.negative(self)

    def __matmul__(self, other: "Node") -> "Node":
        from . import _node_ops as F

        return F.matmul(self, other)


@dataclass
class _NodeRecord:
    """
    State of one graph position.

    Attributes
    ----------
    shape : Shape
        Result shape inferred at construction; never changed.
    function : Function
        Function that produces the value; owned by the graph.
    args : list[int]
        Operand positions, all smaller than this record's position.
    sinks : list[int]
        Positions of later nodes that use this node as an operand. Kept for
        introspection only.
    value : Optional[ITensor]
        Memoized forward value, or None until evaluated.
    grad : Optional[ITensor]
        Accumulated gradient, or None until differentiation reaches it.
    """

    shape: Shape
    function: Function
    args: list[int]
    sinks: list[int] = field(default_factory=list)
    value: Optional[ITensor] = None
    grad: Optional[ITensor] = None


class Graph:
    """
    Append-only computation graph.

    Single-threaded: construction, evaluation and differentiation are
    blocking calls, and a graph must not be mutated from several threads at
    once.

    Examples
    --------
        g = Graph()
        x = F.input(g, Shape([]), [3.0], dev)
        y = F.square(x)
        g.forward(y).to_float()   # 9.0
        g.backward(y)
        g.get_gradient(x).to_float()  # 6.0
    """

    def __init__(self) -> None:
        self._nodes: list[_NodeRecord] = []
        # id() of every recorded function; records keep the instances alive.
        self._functions: set[int] = set()

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"Graph(id={id(self):#x}, nodes={len(self._nodes)})"

    def num_nodes(self) -> int:
        """Return the number of recorded nodes."""
        return len(self._nodes)

    def _check_node(self, node: Node) -> None:
        """
        Validate that `node` names a position of this graph.

        Raises
        ------
        GraphMismatchError
            If `node` belongs to another graph.
        """
        if node.graph is not self:
            raise GraphMismatchError(node.graph, self)
        if not 0 <= node.id < len(self._nodes):
            msg = (
                "Invalid node ID. This may be a bug and the program will abort. "
                f"node.id: {node.id} >= num_nodes: {len(self._nodes)}"
            )
            logger.critical(msg)
            os.abort()

    def add_function(self, function: Function, args: Iterable[Node] = ()) -> Node:
        """
        Record a function applied to existing nodes.

        Construction is all-or-nothing: if any handle is rejected or shape
        inference fails, the graph is left unchanged.

        Parameters
        ----------
        function : Function
            Function instance. The graph takes ownership of it.
        args : Iterable[Node]
            Operand handles of this graph, in operand order.

        Returns
        -------
        Node
            Handle to the new node.

        Raises
        ------
        GraphMismatchError
            If a handle belongs to another graph.
        ShapeMismatchError
            If the function rejects the operand shapes.
        ValueError
            If `function` is already recorded in this graph.
        """
        if id(function) in self._functions:
            raise ValueError(
                f"Function {function.name()} is already recorded in this graph"
            )
        args = list(args)
        arg_ids: list[int] = []
        for arg in args:
            self._check_node(arg)
            arg_ids.append(arg.id)

        # May raise ShapeMismatchError; nothing has been modified yet.
        ret_shape = function.forward_shape([self._nodes[i].shape for i in arg_ids])

        ret_id = len(self._nodes)
        for arg_id in arg_ids:
            self._nodes[arg_id].sinks.append(ret_id)
        self._nodes.append(_NodeRecord(ret_shape, function, arg_ids))
        self._functions.add(id(function))

        logger.debug(
            "add_function: [%d] %s args=%s shape=%s",
            ret_id,
            function.name(),
            arg_ids,
            ret_shape,
        )
        return Node(self, ret_id)

    def forward(self, node: Node) -> ITensor:
        """
        Compute (or return the memoized) value of `node`.

        Every antecedent without a value is computed first. Values are kept
        for the graph's lifetime, so overlapping requests do no redundant
        work.

        Parameters
        ----------
        node : Node
            Target node.

        Returns
        -------
        ITensor
            The value of `node`. Read-only.

        Raises
        ------
        GraphMismatchError
            If `node` belongs to another graph.
        """
        self._check_node(node)

        # Iterative depth-first visit; a record is computed once all of its
        # operands hold values.
        stack: list[tuple[int, bool]] = [(node.id, False)]
        while stack:
            nid, expanded = stack.pop()
            n = self._nodes[nid]
            if n.value is not None:
                continue
            if not expanded:
                stack.append((nid, True))
                for arg_id in reversed(n.args):
                    if self._nodes[arg_id].value is None:
                        stack.append((arg_id, False))
                continue

            n.value = n.function.forward([self._nodes[i].value for i in n.args])
            logger.debug("forward: [%d] %s", nid, n.function.name())

        return self._nodes[node.id].value

    def backward(self, node: Node) -> None:
        """
        Compute gradients of `node` with respect to all of its antecedents.

        The target is treated as the loss: its gradient is seeded with ones.
        Contributions from several consumers are summed before a node
        propagates to its own operands.

        Parameters
        ----------
        node : Node
            Target node. Its value must have been computed by `forward`.

        Raises
        ------
        GraphMismatchError
            If `node` belongs to another graph.
        NodeNotCalculatedError
            If the value of `node` has not been computed.
        GradientAlreadyExistsError
            If `node` already carries a gradient.
        """
        self._check_node(node)

        last = self._nodes[node.id]
        if last.value is None:
            raise NodeNotCalculatedError(node.id)
        if last.grad is not None:
            raise GradientAlreadyExistsError(node.id)

        last.grad = last.value.device.constant(last.shape, 1)
        logger.debug("backward: seeded [%d] %s", node.id, last.shape)

        # Positions are a topological order: walking downward visits every
        # consumer before the node it consumes.
        reached = {node.id}
        for nid in range(node.id, -1, -1):
            cur = self._nodes[nid]
            if cur.value is None:
                # Not calculated in the forward path.
                continue
            if nid not in reached:
                # Evaluated for another target; the target does not depend on it.
                continue

            arg_values: list[ITensor] = []
            arg_grads: list[ITensor] = []
            for arg_id in cur.args:
                arg = self._nodes[arg_id]
                if arg.grad is None:
                    arg.grad = arg.value.device.constant(arg.shape, 0)
                arg_values.append(arg.value)
                arg_grads.append(arg.grad)
                reached.add(arg_id)

            cur.function.backward(cur.value, cur.grad, arg_values, arg_grads)
            logger.debug("backward: [%d] %s -> %s", nid, cur.function.name(), cur.args)

    def get_value(self, node: Node) -> Optional["Tensor"]:
        """
        Return the computed value of `node`.

        Returns
        -------
        Optional[Tensor]
            The value, or None if forward evaluation has not reached the
            node. None is not zero.
        """
        self._check_node(node)
        return self._nodes[node.id].value

    def get_gradient(self, node: Node) -> Optional["Tensor"]:
        """
        Return the accumulated gradient of `node`.

        Returns
        -------
        Optional[Tensor]
            The gradient, or None if backward differentiation has not
            reached the node. None is not zero.
        """
        self._check_node(node)
        return self._nodes[node.id].grad

    def get_shape(self, node: Node) -> Shape:
        """Return the inferred shape of `node`."""
        self._check_node(node)
        return self._nodes[node.id].shape

    def dump(self, stream: Optional[TextIO] = None) -> None:
        """
        Print every node's shape, function, operands and consumers.

        Parameters
        ----------
        stream : TextIO, optional
            Destination. Defaults to ``sys.stdout``.
        """
        out = sys.stdout if stream is None else stream
        print("Computation graph:", file=out)
        for i, n in enumerate(self._nodes):
            print(
                f"  [{i}]: shape={n.shape}, func={n.function.name()}, "
                f"args=[{','.join(map(str, n.args))}], "
                f"sinks=[{','.join(map(str, n.sinks))}]",
                file=out,
            )
