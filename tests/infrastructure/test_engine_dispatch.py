import os
import unittest
import warnings
from unittest import mock

import numpy as np

from gradscope import (
    DTypeMismatchError,
    DeviceMismatchError,
    Engine,
    EngineConfig,
    NaNDetectedError,
    SGD,
    ShapeMismatchError,
    UnsupportedOperationError,
    functional as F,
)
from gradscope.infrastructure import CPUBackend, kernel_registry
from gradscope.infrastructure.functional import register_op
from gradscope.infrastructure.functional._base import spec


def _engine(backend: str = "cpu", debug: bool = False) -> Engine:
    return Engine(backend, config=EngineConfig(backend=backend, debug=debug))


class TestBroadcasting(unittest.TestCase):
    def setUp(self):
        self.engine = _engine()

    def tearDown(self):
        self.engine.close()

    def test_add_broadcasts_row(self):
        e = self.engine
        a = e.tensor([[1.0, 2.0], [3.0, 4.0]])
        b = e.tensor([[10.0, 20.0]])
        out = a + b
        self.assertEqual(out.shape, (2, 2))
        np.testing.assert_allclose(out.to_numpy(), [[11.0, 22.0], [13.0, 24.0]])

    def test_incompatible_shapes_raise(self):
        e = self.engine
        a = e.zeros((2, 2))
        b = e.zeros((3, 2))
        with self.assertRaises(ShapeMismatchError):
            _ = a + b

    def test_mixed_dtypes_raise(self):
        e = self.engine
        a = e.tensor([1.0, 2.0])
        b = e.tensor([1, 2])
        with self.assertRaises(DTypeMismatchError):
            _ = a + b

    def test_scalar_operand_takes_tensor_dtype(self):
        e = self.engine
        a = e.tensor([3, 4])
        out = a * 2
        self.assertEqual(str(out.dtype), "int32")
        np.testing.assert_array_equal(out.to_numpy(), [6, 8])

    def test_validation_happens_before_any_allocation(self):
        e = self.engine
        a = e.zeros((2, 2))
        b = e.zeros((3, 2))
        live = e.num_live_tensors()
        with self.assertRaises(ShapeMismatchError):
            F.add(a, b)
        self.assertEqual(e.num_live_tensors(), live)


class TestScalarOutputs(unittest.TestCase):
    backend = "cpu"

    def setUp(self):
        self.engine = _engine(self.backend)

    def tearDown(self):
        self.engine.close()

    def test_full_reductions_are_rank_zero(self):
        x = self.engine.tensor([[1.0, 2.0], [3.0, 6.0]])
        for out, expected in ((x.sum(), 12.0), (x.mean(), 3.0), (x.max(), 6.0)):
            self.assertEqual(out.shape, ())
            self.assertEqual(out.to_numpy().shape, ())
            self.assertAlmostEqual(out.item(), expected)

    def test_sum_of_vector(self):
        out = self.engine.tensor([1.0, 2.0]).sum()
        self.assertEqual(out.shape, ())
        self.assertEqual(out.item(), 3.0)

    def test_scalar_gradient_step(self):
        e = self.engine
        x = e.variable([1.0, 2.0], name="x")
        SGD(e, 0.1).minimize(lambda: (x * x).sum())
        np.testing.assert_allclose(x.to_numpy(), [0.8, 1.6], rtol=1e-6)


class TestScalarOutputsStream(TestScalarOutputs):
    backend = "stream"


class TestFinalizeOutputs(unittest.TestCase):
    def test_numpy_scalar_result_keeps_rank_zero(self):
        (out,) = CPUBackend._finalize_outputs(np.float32(3.0), [spec((), "float32")])
        self.assertEqual(out.shape, ())
        self.assertFalse(out.flags.writeable)
        self.assertEqual(float(out), 3.0)

    def test_size_one_array_reshaped_to_scalar_spec(self):
        (out,) = CPUBackend._finalize_outputs(
            np.array([5.0], dtype=np.float32), [spec((), "float32")]
        )
        self.assertEqual(out.shape, ())

    def test_python_scalar_filled_into_shaped_spec(self):
        (out,) = CPUBackend._finalize_outputs(2, [spec((1, 1), "int32")])
        self.assertEqual(out.shape, (1, 1))
        self.assertEqual(out.dtype, np.int32)

    def test_other_shape_mismatches_still_raise(self):
        with self.assertRaises(RuntimeError):
            CPUBackend._finalize_outputs(np.zeros(2, np.float32), [spec((3,), "float32")])
        with self.assertRaises(RuntimeError):
            CPUBackend._finalize_outputs(np.zeros(2, np.float32), [spec((), "float32")])
        with self.assertRaises(RuntimeError):
            CPUBackend._finalize_outputs(
                np.zeros(4, np.float32), [spec((2, 2), "float32")]
            )


class TestDispatchErrors(unittest.TestCase):
    def tearDown(self):
        kernel_registry.unregister("only_on_stream", "stream")

    def test_unknown_op(self):
        with _engine() as e:
            with self.assertRaises(UnsupportedOperationError):
                e.execute("definitely_not_an_op", [e.tensor([1.0])])

    def test_missing_kernel_for_backend(self):
        register_op(
            "only_on_stream",
            lambda inputs, attrs: [spec(inputs[0].shape, inputs[0].dtype)],
        )
        kernel_registry.register("only_on_stream", "stream")(lambda x: x)

        with _engine("cpu") as e:
            with self.assertRaises(UnsupportedOperationError):
                e.execute("only_on_stream", [e.tensor([1.0])])
        with _engine("stream") as e:
            out = e.execute("only_on_stream", [e.tensor([1.0])])
            np.testing.assert_allclose(out.to_numpy(), [1.0])

    def test_cross_backend_inputs_raise(self):
        with _engine("cpu") as e:
            a = e.tensor([1.0, 2.0])
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", RuntimeWarning)
                e.set_backend("stream")
            b = e.tensor([1.0, 2.0])
            with self.assertRaises(DeviceMismatchError):
                _ = a + b
            self.assertEqual(str(a.device), "cpu")
            self.assertEqual(str(b.device), "stream:0")
            # Tensors stay readable from any backend.
            np.testing.assert_allclose(a.to_numpy(), [1.0, 2.0])

    def test_switching_backend_with_live_tensors_warns(self):
        with _engine("cpu") as e:
            _ = e.tensor([1.0])
            with self.assertWarns(RuntimeWarning):
                e.set_backend("stream")

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            _engine("tpu")


class TestDebugMode(unittest.TestCase):
    def test_nan_is_reported(self):
        with _engine(debug=True) as e:
            x = e.tensor([-1.0, 4.0])
            with self.assertRaises(NaNDetectedError):
                x.sqrt()

    def test_nan_passes_silently_outside_debug(self):
        with _engine(debug=False) as e:
            out = e.tensor([-1.0, 4.0]).sqrt().to_numpy()
            self.assertTrue(np.isnan(out[0]))
            self.assertAlmostEqual(float(out[1]), 2.0)


class TestFactories(unittest.TestCase):
    def setUp(self):
        self.engine = _engine()

    def tearDown(self):
        self.engine.close()

    def test_dtype_inference(self):
        e = self.engine
        self.assertEqual(str(e.tensor([1.5]).dtype), "float32")
        self.assertEqual(str(e.tensor([1, 2]).dtype), "int32")
        self.assertEqual(str(e.tensor([True, False]).dtype), "bool")

    def test_shape_argument(self):
        e = self.engine
        t = e.tensor([1.0, 2.0, 3.0, 4.0], shape=(2, 2))
        self.assertEqual(t.shape, (2, 2))
        with self.assertRaises(ShapeMismatchError):
            e.tensor([1.0, 2.0, 3.0], shape=(2, 2))

    def test_from_bytes(self):
        e = self.engine
        raw = np.array([1.5, -2.0, 3.25], dtype="<f4").tobytes()
        t = e.from_bytes(raw, (3,), "float32")
        np.testing.assert_allclose(t.to_numpy(), [1.5, -2.0, 3.25])

        ints = e.from_bytes(np.array([[1, 2], [3, 4]], dtype="<i4").tobytes(), (2, 2), "int32")
        np.testing.assert_array_equal(ints.to_numpy(), [[1, 2], [3, 4]])

        with self.assertRaises(ValueError):
            e.from_bytes(raw, (4,), "float32")

    def test_fill_zeros_ones(self):
        e = self.engine
        np.testing.assert_allclose(e.fill((2,), 7.0).to_numpy(), [7.0, 7.0])
        np.testing.assert_allclose(e.zeros((1, 2)).to_numpy(), [[0.0, 0.0]])
        np.testing.assert_array_equal(e.ones((3,), dtype="int32").to_numpy(), [1, 1, 1])

    def test_random_ops_are_seeded(self):
        e = self.engine
        a = e.random_uniform((4, 3), -1.0, 1.0, seed=7).to_numpy()
        b = e.random_uniform((4, 3), -1.0, 1.0, seed=7).to_numpy()
        np.testing.assert_array_equal(a, b)
        self.assertTrue(np.all(a >= -1.0) and np.all(a < 1.0))

        n = e.random_normal((2000,), mean=3.0, stddev=0.5, seed=1).to_numpy()
        self.assertAlmostEqual(float(n.mean()), 3.0, delta=0.05)
        self.assertAlmostEqual(float(n.std()), 0.5, delta=0.05)


class TestConfig(unittest.TestCase):
    def test_from_env(self):
        with mock.patch.dict(os.environ, {"GRADSCOPE_BACKEND": "stream", "GRADSCOPE_DEBUG": "1"}):
            cfg = EngineConfig.from_env()
        self.assertEqual(cfg.backend, "stream")
        self.assertTrue(cfg.debug)

    def test_engine_uses_config_backend(self):
        with Engine(config=EngineConfig(backend="stream")) as e:
            self.assertEqual(e.backend_name, "stream")
            self.assertTrue(e.tensor([1.0]).device.is_stream())


if __name__ == "__main__":
    unittest.main()
