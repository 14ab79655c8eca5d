import unittest

from gradscope.domain import (
    DType,
    DTypeMismatchError,
    Device,
    DeviceMismatchError,
    DeviceType,
    DisposedTensorError,
    GradientNotDefinedError,
    GradscopeError,
    MissingGradientError,
    NaNDetectedError,
    NonDifferentiableError,
    ShapeMismatchError,
    UnsupportedOperationError,
)
from gradscope.domain.device import DeviceLike


class TestDevice(unittest.TestCase):
    def test_cpu(self):
        d = Device("cpu")
        self.assertIs(d.type, DeviceType.CPU)
        self.assertIsNone(d.index)
        self.assertTrue(d.is_cpu())
        self.assertFalse(d.is_stream())
        self.assertEqual(str(d), "cpu")

    def test_stream_default_index(self):
        d = Device("stream")
        self.assertTrue(d.is_stream())
        self.assertEqual(d.index, 0)
        self.assertEqual(str(d), "stream:0")
        self.assertEqual(d, Device("stream:0"))

    def test_stream_explicit_index(self):
        d = Device("stream:3")
        self.assertEqual(d.index, 3)
        self.assertEqual(repr(d), "Device('stream:3')")
        self.assertNotEqual(d, Device("stream:0"))
        self.assertEqual(len({Device("stream:3"), Device("stream:3")}), 1)

    def test_invalid(self):
        for bad in ("gpu", "stream:", "stream:-1", "CPU", "cpu:0", ""):
            with self.assertRaises(ValueError, msg=bad):
                Device(bad)

    def test_satisfies_device_protocol(self):
        self.assertIsInstance(Device("cpu"), DeviceLike)
        self.assertIsInstance(Device("stream:1"), DeviceLike)

    def test_slots(self):
        d = Device("cpu")
        with self.assertRaises(AttributeError):
            d.extra = 1


class TestDType(unittest.TestCase):
    def test_parse(self):
        self.assertIs(DType.parse("float32"), DType.FLOAT32)
        self.assertIs(DType.parse(DType.INT32), DType.INT32)
        self.assertIs(DType.parse("bool"), DType.BOOL)
        with self.assertRaises(ValueError):
            DType.parse("float64")

    def test_properties(self):
        self.assertEqual(DType.FLOAT32.itemsize, 4)
        self.assertEqual(DType.INT32.itemsize, 4)
        self.assertEqual(DType.BOOL.itemsize, 1)
        self.assertTrue(DType.FLOAT32.is_floating)
        self.assertFalse(DType.INT32.is_floating)
        self.assertEqual(str(DType.BOOL), "bool")


class TestErrors(unittest.TestCase):
    def test_hierarchy(self):
        self.assertTrue(issubclass(ShapeMismatchError, ValueError))
        self.assertTrue(issubclass(DTypeMismatchError, TypeError))
        self.assertTrue(issubclass(UnsupportedOperationError, NotImplementedError))
        self.assertTrue(issubclass(NaNDetectedError, FloatingPointError))
        for cls in (NonDifferentiableError, GradientNotDefinedError):
            self.assertTrue(issubclass(cls, MissingGradientError))
        for cls in (
            ShapeMismatchError,
            DTypeMismatchError,
            DisposedTensorError,
            MissingGradientError,
            UnsupportedOperationError,
            DeviceMismatchError,
            NaNDetectedError,
        ):
            self.assertTrue(issubclass(cls, GradscopeError))

    def test_messages_and_attributes(self):
        e = ShapeMismatchError("add", [(2, 2), (3,)], "not broadcastable")
        self.assertEqual(e.shapes, ((2, 2), (3,)))
        self.assertIn("[2, 2] vs [3]", str(e))
        self.assertIn("not broadcastable", str(e))

        e = UnsupportedOperationError("conv2d", "stream")
        self.assertEqual((e.op, e.backend), ("conv2d", "stream"))

        e = NonDifferentiableError(5, "argmax")
        self.assertEqual(e.tensor_id, 5)
        self.assertIn("argmax", str(e))

        e = GradientNotDefinedError("max_pool2d_backprop")
        self.assertIn("max_pool2d_backprop", str(e))

        self.assertIn("NaNs", str(NaNDetectedError("sqrt")))
        self.assertIn("disposed", str(DisposedTensorError(1)))


if __name__ == "__main__":
    unittest.main()
