import unittest

import numpy as np

from gradscope import DTypeMismatchError, Engine, EngineConfig, ShapeMismatchError, functional as F


class CompositeOpsMixin:
    backend = "cpu"

    def setUp(self):
        self.engine = Engine(self.backend, config=EngineConfig(backend=self.backend))

    def tearDown(self):
        self.engine.close()


class TestNormalizationCPU(CompositeOpsMixin, unittest.TestCase):
    def test_softmax_rows_sum_to_one(self):
        e = self.engine
        x = np.array([[1.0, 2.0, 3.0], [1000.0, 1000.0, 1000.0]], dtype=np.float32)
        y = F.softmax(e.tensor(x)).to_numpy()
        self.assertTrue(np.all(np.isfinite(y)))
        np.testing.assert_allclose(y.sum(axis=-1), [1.0, 1.0], rtol=1e-6)
        ref = np.exp(x[0] - x[0].max())
        np.testing.assert_allclose(y[0], ref / ref.sum(), rtol=1e-5)
        np.testing.assert_allclose(y[1], [1 / 3] * 3, rtol=1e-5)

    def test_logsumexp_is_stable(self):
        e = self.engine
        x = e.tensor([[500.0, 500.0], [0.0, np.log(3.0)]])
        out = F.logsumexp(x, axis=1).to_numpy()
        np.testing.assert_allclose(out, [500.0 + np.log(2.0), np.log(4.0)], rtol=1e-5)
        self.assertEqual(F.logsumexp(x, axis=1, keepdims=True).shape, (2, 1))
        self.assertEqual(F.logsumexp(x).shape, ())

    def test_log_softmax(self):
        e = self.engine
        x = e.tensor([0.5, -1.0, 2.0])
        np.testing.assert_allclose(
            F.log_softmax(x).to_numpy(), np.log(F.softmax(x).to_numpy()), rtol=1e-5
        )

    def test_softmax_gradient_of_sum_is_zero(self):
        e = self.engine
        g = e.grad(lambda t: F.softmax(t).sum())(e.tensor([0.3, 1.0, -2.0]))
        np.testing.assert_allclose(g.to_numpy(), [0.0, 0.0, 0.0], atol=1e-6)

    def test_moments(self):
        e = self.engine
        x = np.array([[1.0, 2.0], [3.0, 6.0]], dtype=np.float32)
        mean, var = F.moments(e.tensor(x), axis=0)
        np.testing.assert_allclose(mean.to_numpy(), [2.0, 4.0])
        np.testing.assert_allclose(var.to_numpy(), [1.0, 4.0])

        mean, var = F.moments(e.tensor(x), axis=1, keepdims=True)
        self.assertEqual(mean.shape, (2, 1))
        self.assertEqual(var.shape, (2, 1))

    def test_batch_norm(self):
        e = self.engine
        x = np.array([[1.0, 2.0], [3.0, 6.0]], dtype=np.float32)
        out = F.batch_norm(
            e.tensor(x),
            e.tensor([2.0, 4.0]),
            e.tensor([1.0, 4.0]),
            offset=e.tensor([0.5, 0.0]),
            scale=e.tensor([2.0, 1.0]),
            variance_epsilon=0.0,
        )
        np.testing.assert_allclose(out.to_numpy(), [[-1.5, -1.0], [2.5, 1.0]], rtol=1e-6)

    def test_batch_norm_without_affine(self):
        e = self.engine
        x = e.tensor([[2.0], [4.0]])
        out = F.batch_norm(x, e.tensor([3.0]), e.tensor([1.0]))
        np.testing.assert_allclose(out.to_numpy(), [[-1.0], [1.0]], rtol=1e-5)


class TestEncodingAndTransformsCPU(CompositeOpsMixin, unittest.TestCase):
    def test_one_hot(self):
        e = self.engine
        out = F.one_hot(e.tensor([0, 2, 5], dtype="int32"), 3)
        self.assertEqual(out.shape, (3, 3))
        self.assertEqual(str(out.dtype), "float32")
        np.testing.assert_allclose(
            out.to_numpy(), [[1.0, 0.0, 0.0], [0.0, 0.0, 1.0], [0.0, 0.0, 0.0]]
        )

    def test_one_hot_validation(self):
        e = self.engine
        with self.assertRaises(DTypeMismatchError):
            F.one_hot(e.tensor([0.0, 1.0]), 2)
        with self.assertRaises(ValueError):
            F.one_hot(e.tensor([0], dtype="int32"), 0)

    def test_slice_and_pad(self):
        e = self.engine
        x = e.tensor(np.arange(12, dtype=np.float32).reshape(3, 4))
        s = F.slice_(x, [1, 1], [2, -1])
        np.testing.assert_allclose(s.to_numpy(), [[5.0, 6.0, 7.0], [9.0, 10.0, 11.0]])
        with self.assertRaises(ShapeMismatchError):
            F.slice_(x, [2, 0], [2, 4])

        p = F.pad(e.tensor([[1.0]]), [(1, 0), (0, 2)], constant_value=-1.0)
        np.testing.assert_allclose(p.to_numpy(), [[-1.0, -1.0, -1.0], [1.0, -1.0, -1.0]])

    def test_slice_gradient_scatters(self):
        e = self.engine
        g = e.grad(lambda t: F.slice_(t, [1], [2]).sum())(e.tensor([1.0, 2.0, 3.0, 4.0]))
        np.testing.assert_allclose(g.to_numpy(), [0.0, 1.0, 1.0, 0.0])

    def test_concat(self):
        e = self.engine
        a = e.tensor([[1.0, 2.0]])
        b = e.tensor([[3.0, 4.0], [5.0, 6.0]])
        out = F.concat([a, b], axis=0)
        np.testing.assert_allclose(out.to_numpy(), [[1, 2], [3, 4], [5, 6]])
        with self.assertRaises(ShapeMismatchError):
            F.concat([a, b], axis=1)

    def test_squeeze_expand_flatten(self):
        e = self.engine
        x = e.zeros((1, 3, 1))
        self.assertEqual(F.squeeze(x).shape, (3,))
        self.assertEqual(F.squeeze(x, 2).shape, (1, 3))
        with self.assertRaises(ShapeMismatchError):
            F.squeeze(x, 1)
        self.assertEqual(F.expand_dims(e.zeros((3,)), -1).shape, (3, 1))
        self.assertEqual(F.flatten(e.zeros((2, 3, 4))).shape, (24,))

    def test_transpose_and_cast(self):
        e = self.engine
        x = e.tensor(np.arange(6, dtype=np.float32).reshape(1, 2, 3))
        t = F.transpose(x, [2, 0, 1])
        self.assertEqual(t.shape, (3, 1, 2))
        np.testing.assert_allclose(t.to_numpy(), np.transpose(np.arange(6).reshape(1, 2, 3), (2, 0, 1)))

        c = F.cast(e.tensor([1.7, -1.7, 0.0]), "int32")
        np.testing.assert_array_equal(c.to_numpy(), [1, -1, 0])
        b = F.cast(e.tensor([2, 0], dtype="int32"), "bool")
        np.testing.assert_array_equal(b.to_numpy(), [True, False])

    def test_clip(self):
        e = self.engine
        out = F.clip(e.tensor([-2.0, 0.5, 3.0]), -1.0, 1.0)
        np.testing.assert_allclose(out.to_numpy(), [-1.0, 0.5, 1.0])
        with self.assertRaises(ValueError):
            F.clip(e.tensor([1.0]), 1.0, 0.0)

    def test_where_and_comparisons(self):
        e = self.engine
        a = e.tensor([1.0, 5.0, 3.0])
        b = e.tensor([2.0, 2.0, 3.0])
        np.testing.assert_array_equal((a > b).to_numpy(), [False, True, False])
        np.testing.assert_array_equal(a.equal(b).to_numpy(), [False, False, True])
        out = F.where(a >= b, a, b)
        np.testing.assert_allclose(out.to_numpy(), [2.0, 5.0, 3.0])

    def test_argmax(self):
        e = self.engine
        x = e.tensor([[1.0, 9.0, 3.0], [7.0, 2.0, 7.0]])
        np.testing.assert_array_equal(F.argmax(x, axis=1).to_numpy(), [1, 0])
        np.testing.assert_array_equal(x.argmin(axis=0).to_numpy(), [0, 1, 0])
        self.assertEqual(str(F.argmax(x, axis=1).dtype), "int32")


class TestNormalizationStream(TestNormalizationCPU):
    backend = "stream"


class TestEncodingAndTransformsStream(TestEncodingAndTransformsCPU):
    backend = "stream"


if __name__ == "__main__":
    unittest.main()
