import unittest

from gradscope.domain.utils import PathKey, create_path_builder


class TestPathBuilder(unittest.TestCase):
    def setUp(self):
        self.paths = create_path_builder()

    def test_register_and_resolve(self):
        @self.paths.register("add", "cpu")
        def add_cpu(a, b):
            return a + b

        @self.paths.register("add", "stream")
        def add_stream(a, b):
            return ("stream", a + b)

        self.assertIs(self.paths.resolve("add", "cpu"), add_cpu)
        self.assertEqual(self.paths.resolve("add", "stream")(1, 2), ("stream", 3))

    def test_decorator_returns_function_unchanged(self):
        def fn():
            return 42

        decorated = self.paths.register("f", 0)(fn)
        self.assertIs(decorated, fn)
        self.assertEqual(decorated(), 42)

    def test_stacked_registration(self):
        @self.paths.register("neg", "cpu")
        @self.paths.register("neg", "stream")
        def neg(x):
            return -x

        self.assertIs(self.paths.resolve("neg", "cpu"), neg)
        self.assertIs(self.paths.resolve("neg", "stream"), neg)

    def test_reregistration_replaces(self):
        self.paths.register("op", "cpu")(lambda: 1)
        self.paths.register("op", "cpu")(lambda: 2)
        self.assertEqual(self.paths.resolve("op", "cpu")(), 2)

    def test_missing_path_default_error(self):
        with self.assertRaises(NotImplementedError) as ctx:
            self.paths.resolve("missing", "cpu")
        self.assertIn("'missing'", str(ctx.exception))

    def test_trap_exception_instance(self):
        err = KeyError("custom")
        with self.assertRaises(KeyError) as ctx:
            self.paths.resolve("missing", "cpu", trap_exception=err)
        self.assertIs(ctx.exception, err)

    def test_trap_exception_factory(self):
        class Unsupported(Exception):
            def __init__(self, op, state):
                super().__init__(f"{op}@{state}")

        with self.assertRaises(Unsupported) as ctx:
            self.paths.resolve("missing", "stream", trap_exception=Unsupported)
        self.assertEqual(str(ctx.exception), "missing@stream")

    def test_unhashable_state_rejected(self):
        with self.assertRaises(TypeError):
            self.paths.register("op", ["cpu"])

    def test_has_ops_for_and_unregister(self):
        self.paths.register("a", "cpu")(lambda: None)
        self.paths.register("b", "cpu")(lambda: None)
        self.paths.register("a", "stream")(lambda: None)

        self.assertTrue(self.paths.has("a", "stream"))
        self.assertEqual(sorted(self.paths.ops_for("cpu")), ["a", "b"])

        self.paths.unregister("a", "stream")
        self.assertFalse(self.paths.has("a", "stream"))
        # Unregistering twice is harmless.
        self.paths.unregister("a", "stream")

    def test_builders_do_not_share_state(self):
        other = create_path_builder()
        self.paths.register("only_here", "cpu")(lambda: None)
        self.assertFalse(other.has("only_here", "cpu"))

    def test_path_key_fields(self):
        key = PathKey("add", "cpu")
        self.assertEqual(key.OpName, "add")
        self.assertEqual(key.StateVal, "cpu")
        self.assertEqual(key, ("add", "cpu"))


if __name__ == "__main__":
    unittest.main()
