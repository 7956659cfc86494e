"""
Graph-, shape- and device-related exceptions for lazygrad.

This module defines the explicit, recoverable failure conditions raised by
the computation-graph engine and its collaborators. Each exception carries
the diagnostic values that produced it as attributes so callers can inspect
the failure without parsing the message.

Handle corruption (a node position outside of its graph) is deliberately
absent from this module: it is treated as a fatal condition and aborts the
process instead of raising.
"""

from __future__ import annotations

from typing import Any, Sequence


class ShapeMismatchError(ValueError):
    """
    Raised when shape inference rejects the operands of a function.

    Shape inference runs eagerly when a node is recorded, so this error is
    surfaced before any tensor storage is touched. The graph is left
    unchanged when it is raised during construction.

    Attributes
    ----------
    op : str
        Name of the function (or tensor operation) that rejected the shapes.
    shapes : tuple
        The operand shapes that were rejected, in operand order.
    detail : str
        Human-readable reason for the rejection.
    """

    def __init__(self, op: str, shapes: Sequence[Any], detail: str = "") -> None:
        """
        Initialize the ShapeMismatchError.

        Parameters
        ----------
        op : str
            Name of the rejecting operation (e.g., "add", "matmul").
        shapes : Sequence
            The operand shapes, in operand order.
        detail : str, optional
            Additional explanation appended to the message.
        """
        rendered = ", ".join(str(s) for s in shapes)
        msg = f"Shape mismatch in {op}: ({rendered})"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.op = op
        self.shapes = tuple(shapes)
        self.detail = detail


class GraphMismatchError(RuntimeError):
    """
    Raised when a node handle is used with a graph that did not produce it.

    Mixing handles across independently owned graphs is a plausible caller
    mistake, so it is reported rather than treated as fatal. The receiving
    graph is never modified when this error is raised.
    """

    def __init__(self, node_graph: object, graph: object) -> None:
        """
        Initialize the GraphMismatchError.

        Parameters
        ----------
        node_graph : object
            The graph that owns the offending handle.
        graph : object
            The graph the handle was passed to.
        """
        super().__init__(
            f"Graph mismatched. node.graph: {id(node_graph):#x} "
            f"!= this: {id(graph):#x}"
        )
        self.node_graph = node_graph
        self.graph = graph


class NodeNotCalculatedError(RuntimeError):
    """
    Raised when differentiating from a node whose value was never computed.

    Backward differentiation requires the target to have been realized by a
    previous forward evaluation.
    """

    def __init__(self, node_id: int) -> None:
        super().__init__(f"Node {node_id} is not calculated in the forward path.")
        self.node_id = node_id


class GradientAlreadyExistsError(RuntimeError):
    """
    Raised when differentiating from a node that already carries a gradient.

    Differentiation from a given target is single-use; a second request is
    rejected instead of silently accumulating on top of the first pass.
    """

    def __init__(self, node_id: int) -> None:
        super().__init__(f"Node {node_id} already has the gradient vector.")
        self.node_id = node_id


class DeviceNotSupportedError(RuntimeError):
    """
    Raised when a device backend is requested that is not implemented.

    Attributes
    ----------
    op : str
        The name of the operation that was attempted.
    device : str
        String representation of the requested device.
    """

    def __init__(self, op: str, device: str) -> None:
        """
        Initialize the DeviceNotSupportedError.

        Parameters
        ----------
        op : str
            The operation name that is not supported on the given device.
        device : str
            The device identifier (e.g., "cuda:0").
        """
        super().__init__(f"{op} is not implemented for device '{device}'.")
        self.op = op
        self.device = device


class DeviceMismatchError(RuntimeError):
    """
    Raised when an operation combines tensors living on different devices.
    """

    def __init__(self, device_a: str, device_b: str) -> None:
        """
        Initialize the DeviceMismatchError.

        Parameters
        ----------
        device_a : str
            Device identifier of the first operand.
        device_b : str
            Device identifier of the second operand.
        """
        super().__init__(f"Device mismatch: '{device_a}' vs '{device_b}'.")
        self.device_a = device_a
        self.device_b = device_b
