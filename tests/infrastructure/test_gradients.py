import unittest

import numpy as np

from gradscope import (
    Engine,
    EngineConfig,
    GradientNotDefinedError,
    MissingGradientError,
    NonDifferentiableError,
    ShapeMismatchError,
    functional as F,
)


def _engine(backend: str = "cpu") -> Engine:
    return Engine(backend, config=EngineConfig(backend=backend))


def numeric_grad(engine, fn, x0, eps=1e-2):
    """
    Central finite differences of scalar ``fn`` around ``x0``.
    """
    x0 = np.asarray(x0, dtype=np.float64)
    grad = np.zeros_like(x0)
    for idx in np.ndindex(*x0.shape):
        vals = []
        for sign in (1.0, -1.0):
            xp = x0.copy()
            xp[idx] += sign * eps
            t = engine.tensor(xp.astype(np.float32))
            vals.append(float(engine.scope(lambda: fn(t).to_numpy())))
            t.dispose()
        grad[idx] = (vals[0] - vals[1]) / (2.0 * eps)
    return grad


class GradientCheckMixin:
    backend = "cpu"

    def setUp(self):
        self.engine = _engine(self.backend)
        self.rng = np.random.default_rng(0)

    def tearDown(self):
        self.engine.close()

    def check(self, fn, x0, rtol=2e-2, atol=2e-2):
        e = self.engine
        x0 = np.asarray(x0, dtype=np.float32)
        x = e.tensor(x0)
        analytic = e.grad(fn)(x).to_numpy()
        numeric = numeric_grad(e, fn, x0)
        np.testing.assert_allclose(analytic, numeric, rtol=rtol, atol=atol)


class TestFiniteDifferencesCPU(GradientCheckMixin, unittest.TestCase):
    def test_arithmetic(self):
        e = self.engine
        c = e.tensor([[0.5, -1.5, 2.0]])
        x0 = self.rng.uniform(0.5, 2.0, size=(2, 3))
        self.check(lambda x: ((x * c + x / 3.0 - c) ** 2.0).sum(), x0)
        self.check(lambda x: (c / x).sum(), x0)
        self.check(lambda x: F.pow_(x, 3.0).mean(), x0)

    def test_unary_math(self):
        x0 = self.rng.uniform(0.5, 2.0, size=(4,))
        for fn in (
            lambda x: x.exp().sum(),
            lambda x: x.log().sum(),
            lambda x: x.sqrt().sum(),
            lambda x: x.rsqrt().sum(),
            lambda x: F.reciprocal(x).sum(),
            lambda x: x.sin().sum() + x.cos().sum(),
            lambda x: x.tanh().sum(),
            lambda x: x.sigmoid().sum(),
            lambda x: F.softplus(x).sum(),
        ):
            self.check(fn, x0)

    def test_activations_away_from_kinks(self):
        x0 = np.array([-1.5, -0.5, 0.5, 1.5])
        self.check(lambda x: (x.relu() * x).sum(), x0)
        self.check(lambda x: (F.leaky_relu(x, 0.3) * x).sum(), x0)
        self.check(lambda x: (F.elu(x) * x).sum(), x0)
        self.check(lambda x: (F.clip(x, -1.0, 1.0) * x).sum(), x0)
        self.check(lambda x: x.abs().sum(), x0)

    def test_broadcast_and_reductions(self):
        e = self.engine
        b = e.tensor([[1.0], [2.0], [3.0]])
        x0 = self.rng.normal(size=(1, 4))
        self.check(lambda x: ((x + b) * (x - b)).sum(), x0)
        self.check(lambda x: x.broadcast_to((3, 4)).mean(axis=1).square().sum(), x0)

        y0 = np.array([[1.0, 5.0, 2.0], [7.0, 3.0, 4.0]])
        self.check(lambda y: (y.max(axis=1) * 2.0).sum() + y.min(), y0)
        self.check(lambda y: y.sum(axis=0, keepdims=True).square().sum(), y0)

    def test_matmul_transposes(self):
        e = self.engine
        w = e.tensor(self.rng.normal(size=(3, 2)).astype(np.float32))
        wt = e.tensor(self.rng.normal(size=(2, 3)).astype(np.float32))
        x0 = self.rng.normal(size=(4, 3))
        self.check(lambda x: F.matmul(x, w).square().sum(), x0)
        self.check(lambda x: F.matmul(x, wt, transpose_b=True).square().sum(), x0)
        self.check(lambda x: F.matmul(x, x, transpose_a=True).sum(), x0)
        self.check(lambda x: (x @ w).tanh().sum(), x0)

    def test_shape_ops(self):
        e = self.engine
        other = e.tensor([[1.0, 2.0, 3.0]])
        x0 = self.rng.normal(size=(2, 3))
        self.check(lambda x: (x.transpose() * e.tensor([[1.0, 2.0]])).sum(), x0)
        self.check(lambda x: F.concat([x.T, other.T * 1.0], axis=1).square().sum(), x0)
        self.check(lambda x: F.slice_(x, [0, 1], [2, 2]).square().sum(), x0)
        self.check(lambda x: F.pad(x, [(1, 0), (0, 2)], 3.0).square().sum(), x0)
        self.check(lambda x: x.reshape(3, 2).square().sum(axis=1).sum(), x0)
        self.check(lambda x: x.expand_dims(0).squeeze().cast("float32").square().sum(), x0)

    def test_selection(self):
        e = self.engine
        mask = e.tensor([True, False, True])
        other = e.tensor([0.25, 0.5, 0.75])
        x0 = np.array([1.0, 2.0, -1.0])
        self.check(lambda x: F.where(mask, x * x, other).sum(), x0)
        self.check(lambda x: F.maximum(x, other).sum() + F.minimum(x, other).sum(), x0)

    def test_composites(self):
        e = self.engine
        target = e.tensor([[0.0, 1.0, 0.0], [1.0, 0.0, 0.0]])
        x0 = self.rng.normal(size=(2, 3))
        self.check(lambda x: (F.softmax(x) * target).sum(), x0)
        self.check(lambda x: F.log_softmax(x).sum(), x0)
        self.check(lambda x: F.logsumexp(x, axis=1).sum(), x0)

        weights = e.tensor(self.rng.normal(size=(4, 3)).astype(np.float32))

        def normalized(x):
            mean, var = F.moments(x, axis=0, keepdims=True)
            return (F.batch_norm(x, mean, var, offset=1.0, scale=2.0) * weights).sum()

        self.check(normalized, self.rng.normal(size=(4, 3)), rtol=5e-2, atol=5e-2)


class TestFiniteDifferencesStream(TestFiniteDifferencesCPU):
    backend = "stream"


class TestGradientDriver(unittest.TestCase):
    def setUp(self):
        self.engine = _engine()

    def tearDown(self):
        self.engine.close()

    def test_sum_of_squares(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        grads = e.gradients(lambda: (x * x).sum(), [x])
        np.testing.assert_allclose(grads[x.id].to_numpy(), [2.0, 4.0])

    def test_contributions_accumulate(self):
        e = self.engine
        x = e.tensor([0.5, -1.0, 2.0])
        g = e.grad(lambda t: (t * t).sum() + t.sin().sum())(x)
        expected = 2.0 * x.to_numpy() + np.cos(x.to_numpy())
        np.testing.assert_allclose(g.to_numpy(), expected, rtol=1e-5)

    def test_only_gradients_survive(self):
        e = self.engine
        a = e.tensor([1.0, 2.0])
        b = e.tensor([3.0, 4.0])
        before = e.num_live_tensors()
        grads = e.gradients(lambda: ((a * b).exp() + a).sum(), [a, b])
        self.assertEqual(e.num_live_tensors(), before + 2)
        e.dispose(grads)
        self.assertEqual(e.num_live_tensors(), before)

    def test_value_and_grads(self):
        e = self.engine
        a = e.tensor([1.0, 2.0])
        b = e.tensor([3.0, 4.0])
        ga, gb = e.grads(lambda p, q: (p * q).sum())([a, b])
        np.testing.assert_allclose(ga.to_numpy(), [3.0, 4.0])
        np.testing.assert_allclose(gb.to_numpy(), [1.0, 2.0])

        value, g = e.value_and_grad(lambda p: (p * p).sum())(a)
        self.assertAlmostEqual(value.item(), 5.0)
        np.testing.assert_allclose(g.to_numpy(), [2.0, 4.0])

    def test_explicit_seed(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        dy = e.tensor([1.0, 3.0])
        g = e.grad(lambda t: t * 2.0)(x, dy)
        np.testing.assert_allclose(g.to_numpy(), [2.0, 6.0])

    def test_non_scalar_output_needs_seed(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        with self.assertRaises(ShapeMismatchError):
            e.gradients(lambda: x * 2.0, [x])

    def test_identity_returns_fresh_handle(self):
        e = self.engine
        x = e.scalar(3.0)
        g = e.gradients(lambda: x, [x])[x.id]
        self.assertIsNot(g, x)
        self.assertAlmostEqual(g.item(), 1.0)

    def test_unreachable_source(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        z = e.tensor([5.0])
        before = e.num_live_tensors()
        with self.assertRaises(MissingGradientError):
            e.gradients(lambda: (x * x).sum(), [x, z])
        self.assertEqual(e.num_live_tensors(), before)

    def test_integer_source_is_not_differentiable(self):
        e = self.engine
        k = e.tensor([1, 2, 3])
        with self.assertRaises(NonDifferentiableError):
            e.gradients(lambda: k.cast("float32").sum(), [k])

    def test_argmax_blocks_gradient(self):
        e = self.engine
        x = e.tensor([1.0, 3.0, 2.0])
        with self.assertRaises(NonDifferentiableError):
            e.gradients(lambda: x.argmax().cast("float32") * 1.0, [x])

    def test_gradient_not_defined(self):
        e = self.engine
        x = e.tensor(np.arange(16, dtype=np.float32).reshape(1, 1, 4, 4))

        def first_order(t):
            return e.grad(lambda u: F.max_pool2d(u, 2).sum())(t).sum()

        with self.assertRaises(GradientNotDefinedError):
            e.grad(first_order)(x)

    def test_higher_order(self):
        e = self.engine
        x = e.tensor([1.0, -2.0, 0.5])
        d1 = e.grad(lambda t: (t * t * t).sum())
        d2 = e.grad(lambda t: d1(t).sum())
        np.testing.assert_allclose(d2(x).to_numpy(), 6.0 * x.to_numpy(), rtol=1e-5)

    def test_higher_order_does_not_leak(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        before = e.num_live_tensors()
        d1 = e.grad(lambda t: (t.exp() * t).sum())
        g2 = e.grad(lambda t: d1(t).sum())(x)
        self.assertEqual(e.num_live_tensors(), before + 1)
        # d2/dx2 (x e^x) = (x + 2) e^x
        expected = (x.to_numpy() + 2.0) * np.exp(x.to_numpy())
        np.testing.assert_allclose(g2.to_numpy(), expected, rtol=1e-4)

    def test_custom_grad(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        scaled = e.custom_grad(lambda t: (t * t, lambda dy: [dy * 100.0]))
        g = e.grad(lambda t: scaled(t).sum())(x)
        np.testing.assert_allclose(g.to_numpy(), [100.0, 100.0])

    def test_no_grad_does_not_block_explicit_request(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        with e.no_grad():
            self.assertFalse(e.grad_enabled)
            g = e.grad(lambda t: (t * t).sum())(x)
        self.assertTrue(e.grad_enabled)
        np.testing.assert_allclose(g.to_numpy(), [2.0, 4.0])

    def test_stop_gradient_via_no_grad(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])

        def f():
            with e.no_grad():
                c = x * 3.0
            return (x * c).sum()

        g = e.gradients(f, [x])[x.id]
        np.testing.assert_allclose(g.to_numpy(), [3.0, 6.0])

    def test_variable_grads(self):
        e = self.engine
        w = e.variable([1.0, 2.0], name="w")
        frozen = e.variable([3.0, 4.0], name="frozen", trainable=False)
        unused = e.variable([0.0], name="unused")

        value, grads = e.variable_grads(lambda: (w * frozen).sum())
        self.assertAlmostEqual(value.item(), 11.0)
        self.assertEqual(set(grads), {"w"})
        np.testing.assert_allclose(grads["w"].to_numpy(), [3.0, 4.0])
        self.assertFalse(unused.is_disposed)

    def test_variable_grads_requires_trainable(self):
        e = self.engine
        frozen = e.variable([1.0], name="frozen", trainable=False)
        with self.assertRaises(ValueError):
            e.variable_grads(lambda: frozen.sum(), [frozen])


if __name__ == "__main__":
    unittest.main()
