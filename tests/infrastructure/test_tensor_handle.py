import asyncio
import unittest

import numpy as np

from gradscope import Device, DType, Engine, EngineConfig, Tensor, Variable
from gradscope.domain import IBackend, ITensor
from gradscope.infrastructure import CPUBackend, StreamBackend


class TestTensorHandle(unittest.TestCase):
    def setUp(self):
        self.engine = Engine("cpu", config=EngineConfig())

    def tearDown(self):
        self.engine.close()

    def test_metadata(self):
        t = self.engine.tensor(np.zeros((2, 3, 4), dtype=np.float32))
        self.assertIsInstance(t, ITensor)
        self.assertEqual(t.shape, (2, 3, 4))
        self.assertEqual(t.rank, 3)
        self.assertEqual(t.ndim, 3)
        self.assertEqual(t.size, 24)
        self.assertEqual(t.nbytes, 96)
        self.assertIs(t.dtype, DType.FLOAT32)
        self.assertEqual(t.device, Device("cpu"))
        self.assertIs(t.engine, self.engine)

    def test_backends_satisfy_protocol(self):
        cpu = CPUBackend()
        stream = StreamBackend()
        try:
            self.assertIsInstance(cpu, IBackend)
            self.assertIsInstance(stream, IBackend)
        finally:
            stream.close()

    def test_ids_are_unique(self):
        a = self.engine.tensor([1.0])
        b = self.engine.tensor([1.0])
        self.assertNotEqual(a.id, b.id)
        self.assertNotEqual(a.data_id, b.data_id)

    def test_equality_is_identity(self):
        a = self.engine.tensor([1.0, 2.0])
        b = self.engine.tensor([1.0, 2.0])
        self.assertEqual(a, a)
        self.assertNotEqual(a, b)
        grads = {a: "a", b: "b"}
        self.assertEqual(grads[a], "a")

    def test_item_and_tolist(self):
        e = self.engine
        self.assertEqual(e.scalar(3.5).item(), 3.5)
        self.assertEqual(e.tensor([[7]]).item(), 7)
        self.assertIsInstance(e.tensor([True]).item(), bool)
        self.assertEqual(e.tensor([[1, 2], [3, 4]]).tolist(), [[1, 2], [3, 4]])
        with self.assertRaises(ValueError):
            e.tensor([1.0, 2.0]).item()

    def test_to_numpy_is_a_copy(self):
        t = self.engine.tensor([1.0, 2.0])
        arr = t.to_numpy()
        arr[0] = 100.0
        np.testing.assert_allclose(t.to_numpy(), [1.0, 2.0])

    def test_async_read(self):
        t = self.engine.tensor([4.0, 5.0])
        np.testing.assert_allclose(asyncio.run(t.data()), [4.0, 5.0])

    def test_repr(self):
        t = self.engine.tensor([1.0, 2.0])
        self.assertIn("shape=(2,)", repr(t))
        self.assertIn("float32", repr(t))
        t.dispose()
        self.assertIn("disposed", repr(t))

    def test_variable_repr_and_flags(self):
        v = self.engine.variable([1.0], name="w", trainable=False)
        self.assertIsInstance(v, Variable)
        self.assertIsInstance(v, Tensor)
        self.assertEqual(v.name, "w")
        self.assertFalse(v.trainable)
        self.assertIn("name='w'", repr(v))
        self.assertIn("trainable=False", repr(v))
        self.assertNotIn(v, self.engine.trainable_variables)

    def test_variable_auto_names(self):
        a = self.engine.variable([1.0])
        b = self.engine.variable([2.0])
        self.assertNotEqual(a.name, b.name)
        self.assertIn(a.name, self.engine.variables)

    def test_operator_sugar(self):
        e = self.engine
        x = e.tensor([1.0, 2.0])
        np.testing.assert_allclose((2.0 - x).to_numpy(), [1.0, 0.0])
        np.testing.assert_allclose((1.0 / x).to_numpy(), [1.0, 0.5])
        np.testing.assert_allclose((x**2.0).to_numpy(), [1.0, 4.0])
        np.testing.assert_allclose((-x).to_numpy(), [-1.0, -2.0])
        np.testing.assert_allclose(abs(-x).to_numpy(), [1.0, 2.0])
        m = e.tensor([[1.0, 2.0], [3.0, 4.0]])
        np.testing.assert_allclose((m @ m.T).to_numpy(), [[5.0, 11.0], [11.0, 25.0]])


if __name__ == "__main__":
    unittest.main()
