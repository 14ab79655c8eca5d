import unittest

import numpy as np

from gradscope import DisposedTensorError, Engine, EngineConfig


def _engine(backend: str = "cpu") -> Engine:
    return Engine(backend, config=EngineConfig(backend=backend, debug=False))


class TestScopes(unittest.TestCase):
    def setUp(self):
        self.engine = _engine()

    def tearDown(self):
        self.engine.close()

    def test_scope_releases_intermediates(self):
        e = self.engine
        x = e.tensor([1.0, 2.0, 3.0])
        before = e.num_live_tensors()

        def body():
            a = x * 2.0
            b = a + 1.0
            return (b * b).sum()

        out = e.scope(body)

        # Only the returned tensor survives the scope.
        self.assertEqual(e.num_live_tensors(), before + 1)
        self.assertAlmostEqual(out.item(), 9.0 + 25.0 + 49.0, places=4)

    def test_scope_leak_invariant_for_containers(self):
        e = self.engine
        x = e.tensor([[1.0, 2.0], [3.0, 4.0]])
        before = e.num_live_tensors()

        result = e.scope(lambda: {"s": x.sum(), "pair": [x * 2.0, x - 1.0]})

        self.assertEqual(e.num_live_tensors(), before + 3)
        e.dispose(result)
        self.assertEqual(e.num_live_tensors(), before)

    def test_nested_scope_result_moves_to_parent(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        before = e.num_live_tensors()

        def outer():
            inner = e.scope(lambda: x * 3.0)
            _ = inner + 1.0
            return None

        e.scope(outer)
        self.assertEqual(e.num_live_tensors(), before)

    def test_error_inside_scope_releases_everything(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        before = e.num_live_tensors()

        def body():
            _ = x * 2.0
            raise KeyError("boom")

        with self.assertRaises(KeyError):
            e.scope(body)
        self.assertEqual(e.num_live_tensors(), before)

    def test_keep_survives_scope(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        kept = []

        def body():
            k = e.keep(x * 2.0)
            kept.append(k)
            _ = x + 1.0
            return None

        e.scope(body)
        self.assertFalse(kept[0].is_disposed)
        np.testing.assert_allclose(kept[0].to_numpy(), [2.0, 4.0])

    def test_manual_start_end_scope(self):
        e = self.engine
        before = e.num_live_tensors()
        e.start_scope("manual")
        a = e.ones((2, 2))
        b = a * 5.0
        e.end_scope(b)
        self.assertTrue(a.is_disposed)
        self.assertFalse(b.is_disposed)
        self.assertEqual(e.num_live_tensors(), before + 1)

    def test_end_scope_without_start_raises(self):
        with self.assertRaises(RuntimeError):
            self.engine.end_scope()


class TestDisposal(unittest.TestCase):
    def setUp(self):
        self.engine = _engine()

    def tearDown(self):
        self.engine.close()

    def test_double_dispose_raises(self):
        t = self.engine.tensor([1.0])
        t.dispose()
        with self.assertRaises(DisposedTensorError):
            t.dispose()

    def test_use_after_dispose_raises(self):
        t = self.engine.tensor([1.0, 2.0])
        t.dispose()
        self.assertTrue(t.is_disposed)
        with self.assertRaises(DisposedTensorError):
            t.to_numpy()
        with self.assertRaises(DisposedTensorError):
            _ = t + 1.0

    def test_reshape_shares_buffer(self):
        e = self.engine
        x = e.tensor(np.arange(6, dtype=np.float32))
        bytes_before = e.num_live_bytes()
        y = x.reshape(2, 3)

        self.assertEqual(y.data_id, x.data_id)
        self.assertEqual(e.num_live_bytes(), bytes_before)

        # The buffer lives until its last handle goes.
        x.dispose()
        np.testing.assert_allclose(y.to_numpy(), np.arange(6).reshape(2, 3))
        y.dispose()
        self.assertEqual(e.num_live_bytes(), bytes_before - 24)

    def test_memory_info(self):
        e = self.engine
        a = e.zeros((2, 3))
        b = e.zeros((4,), dtype="int32")
        info = e.memory()
        self.assertEqual(info.num_tensors, 2)
        self.assertEqual(info.num_buffers, 2)
        self.assertEqual(info.num_bytes, 2 * 3 * 4 + 4 * 4)
        e.dispose([a, b])
        self.assertEqual(e.num_live_bytes(), 0)

    def test_dispose_rejects_non_tensors(self):
        with self.assertRaises(TypeError):
            self.engine.dispose(3.0)


class TestVariables(unittest.TestCase):
    def setUp(self):
        self.engine = _engine()

    def tearDown(self):
        self.engine.close()

    def test_variables_are_not_scoped(self):
        e = self.engine
        holder = []
        e.scope(lambda: holder.append(e.variable(e.tensor([1.0, 2.0]), name="w")))
        self.assertFalse(holder[0].is_disposed)
        np.testing.assert_allclose(holder[0].to_numpy(), [1.0, 2.0])

    def test_assign_keeps_previous_reads(self):
        e = self.engine
        v = e.variable([1.0, 2.0], name="v")
        snapshot = v * 1.0
        v.assign(e.tensor([5.0, 6.0]))
        np.testing.assert_allclose(v.to_numpy(), [5.0, 6.0])
        np.testing.assert_allclose(snapshot.to_numpy(), [1.0, 2.0])

    def test_assign_validates_shape_and_dtype(self):
        e = self.engine
        v = e.variable([1.0, 2.0], name="v")
        with self.assertRaises(ValueError):
            v.assign(e.tensor([1.0, 2.0, 3.0]))
        with self.assertRaises(TypeError):
            v.assign(e.tensor([1, 2], dtype="int32"))

    def test_duplicate_name_raises(self):
        e = self.engine
        e.variable([1.0], name="dup")
        with self.assertRaises(ValueError):
            e.variable([2.0], name="dup")

    def test_dispose_unregisters_variable(self):
        e = self.engine
        v = e.variable([1.0], name="gone")
        self.assertIn("gone", e.variables)
        e.dispose(v)
        self.assertNotIn("gone", e.variables)
        e.variable([3.0], name="gone")


if __name__ == "__main__":
    unittest.main()
