import unittest

import numpy as np

from src.lazygrad.domain._optimizers import IOptimizer
from src.lazygrad.domain._shape import Shape
from src.lazygrad.infrastructure import _node_ops as F
from src.lazygrad.infrastructure._device import CPUDevice
from src.lazygrad.infrastructure._graph import Graph
from src.lazygrad.infrastructure._optimizers import SGD, Adam
from src.lazygrad.infrastructure._parameter import Parameter

_DEV = CPUDevice(dtype=np.float64, seed=0)


def param_from_np(arr: np.ndarray) -> Parameter:
    arr = np.asarray(arr, dtype=np.float64)
    p = Parameter(Shape(arr.shape), _DEV)
    p.value.copy_from(_DEV.new_tensor(Shape(arr.shape), arr))
    return p


def set_grad(p: Parameter, arr: np.ndarray) -> None:
    p.reset_gradient()
    p.add_gradient(_DEV.new_tensor(p.shape, np.asarray(arr, dtype=np.float64)))


class TestOptimizerBase(unittest.TestCase):
    def test_registration(self):
        p1 = param_from_np([1.0])
        p2 = param_from_np([2.0])
        opt = SGD([p1], lr=0.1)
        opt.add_parameter(p2)
        self.assertEqual(opt.params, (p1, p2))
        self.assertIsInstance(opt, IOptimizer)

    def test_duplicate_registration_rejected(self):
        p = param_from_np([1.0])
        opt = SGD([p])
        with self.assertRaises(ValueError):
            opt.add_parameter(p)
        with self.assertRaises(ValueError):
            Adam([p, p])

    def test_epoch_advances_per_step(self):
        opt = SGD([param_from_np([1.0])])
        self.assertEqual(opt.epoch, 1)
        opt.step()
        opt.step()
        self.assertEqual(opt.epoch, 3)

    def test_zero_grad(self):
        p = param_from_np([1.0, 2.0])
        set_grad(p, [3.0, 4.0])
        SGD([p]).zero_grad()
        np.testing.assert_allclose(p.gradient.to_list(), [0.0, 0.0])

    def test_step_does_not_clear_gradients(self):
        p = param_from_np([1.0])
        set_grad(p, [2.0])
        SGD([p], lr=0.1).step()
        np.testing.assert_allclose(p.gradient.to_list(), [2.0])

    def test_frozen_parameters_are_skipped(self):
        p = param_from_np([1.0])
        set_grad(p, [2.0])
        p.requires_grad = False
        SGD([p], lr=0.5).step()
        np.testing.assert_allclose(p.value.to_list(), [1.0])

    def test_negative_weight_decay_rejected(self):
        with self.assertRaises(ValueError):
            SGD(weight_decay=-0.1)


class TestSGD(unittest.TestCase):
    def test_step_updates_parameter(self):
        p = param_from_np(np.array([1.0, 2.0, 3.0]))
        set_grad(p, [0.1, -0.2, 0.3])

        opt = SGD([p], lr=0.5)
        opt.step()

        expected = np.array([1.0, 2.0, 3.0]) - 0.5 * np.array([0.1, -0.2, 0.3])
        np.testing.assert_allclose(p.value.to_list(), expected, rtol=1e-12)

    def test_zero_gradient_is_a_no_op(self):
        p = param_from_np(np.array([1.0, 2.0]))
        SGD([p], lr=0.1).step()
        np.testing.assert_allclose(p.value.to_list(), [1.0, 2.0])

    def test_scale(self):
        p = param_from_np([1.0])
        set_grad(p, [1.0])
        SGD([p], lr=0.1).step(scale=0.5)
        np.testing.assert_allclose(p.value.to_list(), [0.95])

    def test_weight_decay_applied(self):
        p0 = np.array([1.0, -2.0])
        g0 = np.array([0.5, 0.25])

        p = param_from_np(p0)
        set_grad(p, g0)

        lr = 0.1
        wd = 0.01
        opt = SGD([p], lr=lr, weight_decay=wd)
        opt.step()

        # classical L2: p <- p - lr * (g + wd * p)
        expected = p0 - lr * (g0 + wd * p0)
        np.testing.assert_allclose(p.value.to_list(), expected, rtol=1e-12)

    def test_invalid_hyperparams_raise(self):
        with self.assertRaises(ValueError):
            _ = SGD(lr=0.0)
        with self.assertRaises(ValueError):
            _ = SGD(lr=-1.0)


class TestAdam(unittest.TestCase):
    @staticmethod
    def _reference(p0, grads, lr, b1, b2, eps):
        p = np.array(p0, dtype=np.float64)
        m = np.zeros_like(p)
        v = np.zeros_like(p)
        for t, g in enumerate(grads, start=1):
            m = b1 * m + (1 - b1) * g
            v = b2 * v + (1 - b2) * g * g
            m_hat = m / (1 - b1**t)
            v_hat = v / (1 - b2**t)
            p = p - lr * m_hat / (np.sqrt(v_hat) + eps)
        return p

    def test_matches_reference_over_several_steps(self):
        p0 = np.array([0.5, -1.0, 2.0])
        grads = [
            np.array([0.1, 0.2, -0.3]),
            np.array([-0.4, 0.0, 0.5]),
            np.array([0.3, -0.1, 0.2]),
        ]
        lr, betas, eps = 0.01, (0.8, 0.99), 1e-8

        p = param_from_np(p0)
        opt = Adam([p], lr=lr, betas=betas, eps=eps)
        for g in grads:
            set_grad(p, g)
            opt.step()

        expected = self._reference(p0, grads, lr, betas[0], betas[1], eps)
        np.testing.assert_allclose(p.value.to_list(), expected, rtol=1e-10)
        self.assertEqual(opt.epoch, 4)

    def test_first_step_moves_by_lr(self):
        # With bias correction the first update is lr * sign(g).
        p = param_from_np([1.0, 1.0])
        set_grad(p, [5.0, -0.01])
        Adam([p], lr=0.1).step()
        np.testing.assert_allclose(p.value.to_list(), [0.9, 1.1], rtol=1e-5)

    def test_state_is_per_parameter(self):
        a = param_from_np([1.0])
        b = param_from_np([1.0])
        set_grad(a, [1.0])
        opt = Adam([a, b], lr=0.1)
        opt.step()
        np.testing.assert_allclose(a.value.to_list(), [0.9], rtol=1e-5)
        np.testing.assert_allclose(b.value.to_list(), [1.0])

    def test_invalid_hyperparams_raise(self):
        with self.assertRaises(ValueError):
            Adam(lr=0.0)
        with self.assertRaises(ValueError):
            Adam(betas=(1.0, 0.999))
        with self.assertRaises(ValueError):
            Adam(betas=(0.9, 0.0))
        with self.assertRaises(ValueError):
            Adam(eps=0.0)


class TestTraining(unittest.TestCase):
    def _train(self, opt_factory, steps):
        dev = CPUDevice(dtype=np.float64, seed=0)
        w = Parameter(Shape([1, 2]), dev)
        b = Parameter(Shape([]), dev)
        w.reset_value("xavier_uniform")
        b.reset_value("zeros")
        opt = opt_factory([w, b])

        xs = [0, 0, 0, 1, 1, 0, 1, 1]
        ts = [1, 4, 3, 6]  # 2 * x0 + 3 * x1 + 1

        losses = []
        for _ in range(steps):
            opt.zero_grad()
            g = Graph()
            x = F.input(g, Shape([2], 4), xs, dev)
            t = F.input(g, Shape([], 4), ts, dev)
            y = F.parameter(g, w) @ x + F.parameter(g, b)
            loss = F.batch_sum(F.square(y - t)) * 0.25
            losses.append(g.forward(loss).to_float())
            g.backward(loss)
            opt.step()
        return w, b, losses

    def test_sgd_fits_linear_function(self):
        w, b, losses = self._train(lambda ps: SGD(ps, lr=0.2), 500)
        self.assertLess(losses[-1], 1e-6)
        self.assertLess(losses[-1], losses[0])
        np.testing.assert_allclose(w.value.to_list(), [2.0, 3.0], atol=1e-3)
        np.testing.assert_allclose(b.value.to_list(), [1.0], atol=1e-3)

    def test_adam_reduces_loss(self):
        _, _, losses = self._train(lambda ps: Adam(ps, lr=0.05), 300)
        self.assertLess(losses[-1], 0.1 * losses[0])


if __name__ == "__main__":
    unittest.main()
