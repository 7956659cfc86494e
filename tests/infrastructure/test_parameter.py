from unittest import TestCase
import unittest

import numpy as np

from src.lazygrad.domain._errors import ShapeMismatchError
from src.lazygrad.domain._parameter import IParameter
from src.lazygrad.domain._shape import Shape
from src.lazygrad.infrastructure._device import CPUDevice
from src.lazygrad.infrastructure._parameter import Parameter
from src.lazygrad.infrastructure.utils.weight_initializer import WeightInitializer


class TestParameterInfrastructure(TestCase):
    def setUp(self):
        self.dev = CPUDevice(dtype=np.float32, seed=0)

    def test_parameter_starts_at_zero(self):
        p = Parameter(Shape([2, 3]), self.dev)
        self.assertEqual(p.shape, Shape([2, 3]))
        self.assertIs(p.device, self.dev)
        self.assertEqual(p.value.to_list(), [0.0] * 6)
        self.assertEqual(p.gradient.to_list(), [0.0] * 6)
        self.assertIsInstance(p, IParameter)

    def test_parameter_rejects_batched_shape(self):
        with self.assertRaises(ValueError) as ctx:
            Parameter(Shape([2], 3), self.dev)
        self.assertIn("batch size of the parameter shape should be 1", str(ctx.exception))

    def test_parameter_does_not_alias_given_shape(self):
        s = Shape([2])
        p = Parameter(s, self.dev)
        s.update_dim(0, 5)
        self.assertEqual(p.shape, Shape([2]))

    def test_parameter_requires_grad_default_true(self):
        """requires_grad should default to True unless specified."""
        p = Parameter(Shape([2]), self.dev)
        self.assertTrue(p.requires_grad)

    def test_parameter_requires_grad_can_toggle(self):
        """requires_grad should be publicly mutable via property setter."""
        p = Parameter(Shape([2]), self.dev, requires_grad=True)

        p.requires_grad = False
        self.assertFalse(p.requires_grad)

        p.requires_grad = True
        self.assertTrue(p.requires_grad)

    def test_reset_value_by_name(self):
        p = Parameter(Shape([2]), self.dev)
        p.reset_value("constant", 0.25)
        self.assertEqual(p.value.to_list(), [0.25, 0.25])

    def test_reset_value_by_instance(self):
        p = Parameter(Shape([2]), self.dev)
        p.reset_value(WeightInitializer("ones"))
        self.assertEqual(p.value.to_list(), [1.0, 1.0])

    def test_reset_value_shares_bound_initializer(self):
        init = WeightInitializer("constant", -2.0)
        a = Parameter(Shape([2]), self.dev)
        b = Parameter(Shape([3, 2]), self.dev)
        a.reset_value(init)
        b.reset_value(init)
        self.assertEqual(a.value.to_list(), [-2.0] * 2)
        self.assertEqual(b.value.to_list(), [-2.0] * 6)

    def test_reset_value_rejects_arguments_with_bound_initializer(self):
        p = Parameter(Shape([2]), self.dev)
        with self.assertRaises(ValueError):
            p.reset_value(WeightInitializer("constant", 1.0), 3.0)
        self.assertEqual(p.value.to_list(), [0.0, 0.0])

    def test_reset_value_keeps_storage(self):
        p = Parameter(Shape([3]), self.dev)
        value = p.value
        p.reset_value("uniform", -1.0, 1.0)
        self.assertIs(p.value, value)

    def test_reset_value_unknown_name(self):
        p = Parameter(Shape([2]), self.dev)
        with self.assertRaises(ValueError):
            p.reset_value("no_such_initializer")

    def test_add_value_and_gradient(self):
        p = Parameter(Shape([2]), self.dev)
        p.add_value(self.dev.new_tensor(Shape([2]), [1, 2]))
        p.add_gradient(self.dev.new_tensor(Shape([2]), [3, 4]))
        p.add_gradient(self.dev.new_tensor(Shape([2]), [3, 4]))
        self.assertEqual(p.value.to_list(), [1.0, 2.0])
        self.assertEqual(p.gradient.to_list(), [6.0, 8.0])

    def test_add_gradient_shape_mismatch(self):
        p = Parameter(Shape([2]), self.dev)
        with self.assertRaises(ShapeMismatchError):
            p.add_gradient(self.dev.constant(Shape([3]), 1))
        with self.assertRaises(ShapeMismatchError):
            p.add_gradient(self.dev.constant(Shape([2], 2), 1))

    def test_reset_gradient(self):
        p = Parameter(Shape([2]), self.dev)
        p.add_gradient(self.dev.constant(Shape([2]), 1))
        p.reset_gradient()
        self.assertEqual(p.gradient.to_list(), [0.0, 0.0])

        p.add_gradient(self.dev.constant(Shape([2]), 1))
        p.zero_grad()
        self.assertEqual(p.gradient.to_list(), [0.0, 0.0])


if __name__ == "__main__":
    unittest.main()
