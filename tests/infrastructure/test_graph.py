import io
import unittest
from unittest import TestCase
from unittest.mock import patch

import numpy as np

from src.lazygrad.domain._errors import (
    GradientAlreadyExistsError,
    GraphMismatchError,
    NodeNotCalculatedError,
    ShapeMismatchError,
)
from src.lazygrad.domain._shape import Shape
from src.lazygrad.infrastructure import _function as fn
from src.lazygrad.infrastructure import _node_ops as F
from src.lazygrad.infrastructure._device import CPUDevice
from src.lazygrad.infrastructure._graph import Graph, Node
from src.lazygrad.infrastructure._parameter import Parameter


def _dev() -> CPUDevice:
    return CPUDevice(dtype=np.float64, seed=0)


class _CountingSquare(fn.Square):
    """Square that records how many times its value was computed."""

    def __init__(self) -> None:
        self.calls = 0

    def forward(self, args):
        self.calls += 1
        return super().forward(args)


class TestGraphConstruction(TestCase):
    def setUp(self):
        self.dev = _dev()
        self.g = Graph()

    def test_new_graph_is_empty(self):
        self.assertEqual(len(self.g), 0)
        self.assertEqual(self.g.num_nodes(), 0)

    def test_add_function_assigns_consecutive_ids(self):
        x = F.input(self.g, Shape([2]), [1, 2], self.dev)
        y = F.square(x)
        z = F.add(x, y)
        self.assertEqual([x.id, y.id, z.id], [0, 1, 2])
        self.assertEqual(len(self.g), 3)
        self.assertIs(z.graph, self.g)

    def test_shape_is_inferred_eagerly(self):
        x = F.input(self.g, Shape([2, 3], 4), np.zeros(24), self.dev)
        y = F.transpose(x)
        self.assertEqual(y.shape(), Shape([3, 2], 4))
        self.assertEqual(self.g.get_shape(y), Shape([3, 2], 4))
        self.assertIsNone(self.g.get_value(y))

    def test_shape_mismatch_leaves_graph_unchanged(self):
        a = F.input(self.g, Shape([2]), [1, 2], self.dev)
        b = F.input(self.g, Shape([3]), [1, 2, 3], self.dev)
        with self.assertRaises(ShapeMismatchError):
            F.add(a, b)
        self.assertEqual(len(self.g), 2)

        # The graph remains usable after the rejected call.
        c = F.add(a, a)
        self.assertEqual(c.id, 2)

    def test_shape_mismatch_does_not_register_sinks(self):
        a = F.input(self.g, Shape([2]), [1, 2], self.dev)
        b = F.input(self.g, Shape([3]), [1, 2, 3], self.dev)
        with self.assertRaises(ShapeMismatchError):
            F.add(a, b)
        out = io.StringIO()
        self.g.dump(out)
        self.assertIn("[0]: shape=[2]x1, func=Input, args=[], sinks=[]", out.getvalue())

    def test_function_instance_recorded_once(self):
        x = F.input(self.g, Shape([]), [2.0], self.dev)
        sq = fn.Square()
        self.g.add_function(sq, [x])
        with self.assertRaises(ValueError):
            self.g.add_function(sq, [x])
        self.assertEqual(len(self.g), 2)

        # A rejected operand list does not mark the function as recorded.
        mul = fn.Multiply()
        with self.assertRaises(ShapeMismatchError):
            self.g.add_function(mul, [x])
        y = self.g.add_function(mul, [x, x])
        self.assertAlmostEqual(self.g.forward(y).to_float(), 4.0)

    def test_graph_mismatch_leaves_receiver_unchanged(self):
        g2 = Graph()
        x = F.input(self.g, Shape([]), [1.0], self.dev)
        F.input(g2, Shape([]), [2.0], self.dev)

        with self.assertRaises(GraphMismatchError):
            g2.add_function(fn.Square(), [x])
        self.assertEqual(len(g2), 1)
        self.assertEqual(len(self.g), 1)

    def test_graph_mismatch_on_queries(self):
        g2 = Graph()
        x = F.input(self.g, Shape([]), [1.0], self.dev)
        with self.assertRaises(GraphMismatchError):
            g2.forward(x)
        with self.assertRaises(GraphMismatchError):
            g2.backward(x)
        with self.assertRaises(GraphMismatchError):
            g2.get_value(x)
        with self.assertRaises(GraphMismatchError):
            g2.get_gradient(x)

    def test_mixed_graph_operands_rejected(self):
        g2 = Graph()
        a = F.input(self.g, Shape([]), [1.0], self.dev)
        b = F.input(g2, Shape([]), [2.0], self.dev)
        with self.assertRaises(GraphMismatchError):
            F.add(a, b)
        self.assertEqual(len(self.g), 1)
        self.assertEqual(len(g2), 1)

    def test_out_of_range_id_aborts(self):
        F.input(self.g, Shape([]), [1.0], self.dev)
        bogus = Node(self.g, 5)
        with patch(
            "src.lazygrad.infrastructure._graph.os.abort", side_effect=SystemExit
        ) as abort:
            with self.assertLogs(
                "src.lazygrad.infrastructure._graph", level="CRITICAL"
            ) as logs:
                with self.assertRaises(SystemExit):
                    self.g.forward(bogus)
        abort.assert_called_once_with()
        self.assertIn("Invalid node ID", logs.output[0])
        self.assertIn("node.id: 5 >= num_nodes: 1", logs.output[0])

    def test_add_function_logs_debug(self):
        with self.assertLogs("src.lazygrad.infrastructure._graph", level="DEBUG") as logs:
            F.input(self.g, Shape([2]), [1, 2], self.dev)
        self.assertTrue(any("Input" in line for line in logs.output))


class TestNodeHandle(TestCase):
    def test_equality_and_hash(self):
        dev = _dev()
        g1, g2 = Graph(), Graph()
        x1 = F.input(g1, Shape([]), [1.0], dev)
        x2 = F.input(g2, Shape([]), [1.0], dev)

        self.assertEqual(x1, Node(g1, 0))
        self.assertEqual(hash(x1), hash(Node(g1, 0)))
        self.assertNotEqual(x1, x2)
        self.assertEqual(len({x1, Node(g1, 0), x2}), 2)

    def test_operators_record_nodes(self):
        dev = _dev()
        g = Graph()
        x = F.input(g, Shape([]), [3.0], dev)
        y = 2.0 * x * x + 1.0 - x / 3.0
        self.assertAlmostEqual(g.forward(y).to_float(), 2 * 9 + 1 - 1.0)

        z = 1.0 - (-x)
        self.assertAlmostEqual(g.forward(z).to_float(), 4.0)

    def test_matmul_operator(self):
        dev = _dev()
        g = Graph()
        a = F.input(g, Shape([1, 2]), [1, 2], dev)
        b = F.input(g, Shape([2]), [3, 4], dev)
        self.assertAlmostEqual(g.forward(a @ b).to_float(), 11.0)


class TestGraphForward(TestCase):
    def setUp(self):
        self.dev = _dev()
        self.g = Graph()

    def test_forward_square(self):
        x = F.input(self.g, Shape([]), [3.0], self.dev)
        y = F.square(x)
        self.assertAlmostEqual(self.g.forward(y).to_float(), 9.0)
        self.assertAlmostEqual(self.g.get_value(x).to_float(), 3.0)

    def test_forward_is_memoized(self):
        x = F.input(self.g, Shape([]), [3.0], self.dev)
        sq = _CountingSquare()
        y = self.g.add_function(sq, [x])
        z = F.add_const(y, 1.0)

        v1 = self.g.forward(y)
        v2 = self.g.forward(y)
        self.assertIs(v1, v2)
        self.assertEqual(sq.calls, 1)

        self.assertAlmostEqual(self.g.forward(z).to_float(), 10.0)
        self.assertEqual(sq.calls, 1)

    def test_forward_only_touches_antecedents(self):
        x = F.input(self.g, Shape([]), [1.0], self.dev)
        a = F.square(x)
        b = F.exp(x)
        self.g.forward(a)
        self.assertIsNotNone(self.g.get_value(a))
        self.assertIsNone(self.g.get_value(b))

    def test_forward_shared_operand(self):
        x = F.input(self.g, Shape([2]), [1, 2], self.dev)
        y = F.multiply(x, x)
        np.testing.assert_allclose(self.g.forward(y).to_list(), [1, 4])

    def test_forward_long_chain(self):
        x = F.input(self.g, Shape([]), [0.0], self.dev)
        y = x
        for _ in range(5000):
            y = F.add_const(y, 1.0)
        self.assertAlmostEqual(self.g.forward(y).to_float(), 5000.0)

        self.g.backward(y)
        self.assertAlmostEqual(self.g.get_gradient(x).to_float(), 1.0)


class TestGraphBackward(TestCase):
    def setUp(self):
        self.dev = _dev()
        self.g = Graph()

    def test_backward_square(self):
        x = F.input(self.g, Shape([]), [3.0], self.dev)
        y = F.square(x)
        self.g.forward(y)
        self.g.backward(y)
        self.assertAlmostEqual(self.g.get_gradient(x).to_float(), 6.0)
        self.assertAlmostEqual(self.g.get_gradient(y).to_float(), 1.0)

    def test_backward_requires_forward(self):
        x = F.input(self.g, Shape([]), [3.0], self.dev)
        y = F.square(x)
        with self.assertRaises(NodeNotCalculatedError):
            self.g.backward(y)
        self.assertIsNone(self.g.get_gradient(y))

    def test_backward_twice_raises(self):
        x = F.input(self.g, Shape([]), [3.0], self.dev)
        y = F.square(x)
        self.g.forward(y)
        self.g.backward(y)
        with self.assertRaises(GradientAlreadyExistsError):
            self.g.backward(y)
        self.assertAlmostEqual(self.g.get_gradient(x).to_float(), 6.0)

    def test_gradient_none_before_backward(self):
        x = F.input(self.g, Shape([]), [3.0], self.dev)
        y = F.square(x)
        self.g.forward(y)
        self.assertIsNone(self.g.get_gradient(x))
        self.assertIsNone(self.g.get_gradient(y))

    def test_diamond_accumulates(self):
        x = F.input(self.g, Shape([]), [2.0], self.dev)
        a = F.multiply_const(x, 3.0)
        b = F.square(x)
        y = F.add(a, b)
        self.g.forward(y)
        self.g.backward(y)
        # dy/dx = 3 + 2x
        self.assertAlmostEqual(self.g.get_gradient(x).to_float(), 7.0)
        self.assertAlmostEqual(self.g.get_gradient(a).to_float(), 1.0)
        self.assertAlmostEqual(self.g.get_gradient(b).to_float(), 1.0)

    def test_same_operand_twice(self):
        x = F.input(self.g, Shape([]), [3.0], self.dev)
        y = F.multiply(x, x)
        self.g.forward(y)
        self.g.backward(y)
        self.assertAlmostEqual(self.g.get_gradient(x).to_float(), 6.0)

    def test_unrelated_nodes_get_no_gradient(self):
        x = F.input(self.g, Shape([]), [1.0], self.dev)
        w = F.input(self.g, Shape([]), [2.0], self.dev)
        u = F.square(w)
        y = F.exp(x)
        self.g.forward(u)
        self.g.forward(y)
        self.g.backward(y)
        self.assertIsNone(self.g.get_gradient(w))
        self.assertIsNone(self.g.get_gradient(u))
        self.assertAlmostEqual(self.g.get_gradient(x).to_float(), np.e)

    def test_second_target_accumulates_on_shared_leaf(self):
        x = F.input(self.g, Shape([]), [1.0], self.dev)
        a = F.square(x)
        b = F.exp(x)
        self.g.forward(a)
        self.g.backward(a)
        self.g.forward(b)
        self.g.backward(b)
        # The stale gradient of `a` is not propagated again.
        self.assertAlmostEqual(self.g.get_gradient(x).to_float(), 2.0 + np.e)

    def test_batch_broadcast_gradient_is_reduced(self):
        w = F.input(self.g, Shape([2]), [1.0, 2.0], self.dev)
        x = F.input(self.g, Shape([2], 3), [1, 2, 3, 4, 5, 6], self.dev)
        y = F.batch_sum(F.sum(F.multiply(w, x), 0))
        self.assertAlmostEqual(
            self.g.forward(y).to_float(), 1 * 1 + 2 * 2 + 3 + 8 + 5 + 12
        )
        self.g.backward(y)

        gw = self.g.get_gradient(w)
        self.assertEqual(gw.shape, Shape([2]))
        np.testing.assert_allclose(gw.to_list(), [1 + 3 + 5, 2 + 4 + 6])

        gx = self.g.get_gradient(x)
        self.assertEqual(gx.shape, Shape([2], 3))
        np.testing.assert_allclose(gx.to_list(), [1, 2, 1, 2, 1, 2])

    def test_parameter_receives_gradient(self):
        p = Parameter(Shape([2]), self.dev)
        p.value.copy_from(self.dev.new_tensor(Shape([2]), [1.0, 2.0]))
        w = F.parameter(self.g, p)
        y = F.sum(F.square(w), 0)
        self.g.forward(y)
        self.g.backward(y)
        np.testing.assert_allclose(p.gradient.to_list(), [2.0, 4.0])
        np.testing.assert_allclose(self.g.get_gradient(w).to_list(), [2.0, 4.0])

    def test_frozen_parameter_receives_no_gradient(self):
        p = Parameter(Shape([2]), self.dev, requires_grad=False)
        w = F.parameter(self.g, p)
        y = F.sum(F.exp(w), 0)
        self.g.forward(y)
        self.g.backward(y)
        np.testing.assert_allclose(p.gradient.to_list(), [0.0, 0.0])


class TestGraphDump(TestCase):
    def test_dump_format(self):
        dev = _dev()
        g = Graph()
        x = F.input(g, Shape([2], 3), np.zeros(6), dev)
        y = F.square(x)
        F.slice(y, 0, 0, 1)

        out = io.StringIO()
        g.dump(out)
        self.assertEqual(
            out.getvalue(),
            "Computation graph:\n"
            "  [0]: shape=[2]x3, func=Input, args=[], sinks=[1]\n"
            "  [1]: shape=[2]x3, func=Square, args=[0], sinks=[2]\n"
            "  [2]: shape=[]x3, func=Slice(dim=0,lower=0,upper=1), args=[1], sinks=[]\n",
        )

    def test_dump_defaults_to_stdout(self):
        g = Graph()
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            g.dump()
        self.assertEqual(out.getvalue(), "Computation graph:\n")


if __name__ == "__main__":
    unittest.main()
