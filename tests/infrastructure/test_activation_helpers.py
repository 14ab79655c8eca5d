import unittest

import numpy as np

from gradscope import Elu, Engine, EngineConfig, LeakyReLU, ReLU, Sigmoid, Square, TanH

X = np.array([-2.0, -0.5, 0.5, 3.0], dtype=np.float32)


class TestActivationHelpers(unittest.TestCase):
    def setUp(self):
        self.engine = Engine("cpu", config=EngineConfig())
        self.x = self.engine.tensor(X)

    def tearDown(self):
        self.engine.close()

    def _check(self, act, expected_y, expected_der):
        y = act.output(self.x)
        d = act.der(self.x, y)
        np.testing.assert_allclose(y.to_numpy(), expected_y, rtol=1e-5, atol=1e-6)
        np.testing.assert_allclose(d.to_numpy(), expected_der, rtol=1e-5, atol=1e-6)

    def test_tanh(self):
        act = TanH(self.engine)
        t = np.tanh(X)
        self._check(act, t, 1.0 - t * t)
        act.dispose()

    def test_relu(self):
        self._check(ReLU(), np.maximum(X, 0.0), [0.0, 0.0, 1.0, 1.0])

    def test_leaky_relu(self):
        self._check(
            LeakyReLU(0.1),
            np.where(X > 0, X, 0.1 * X),
            [0.1, 0.1, 1.0, 1.0],
        )

    def test_sigmoid(self):
        s = 1.0 / (1.0 + np.exp(-X))
        self._check(Sigmoid(), s, s - s * s)

    def test_square(self):
        act = Square(self.engine)
        self._check(act, X * X, 2.0 * X)
        act.dispose()

    def test_elu(self):
        self._check(
            Elu(),
            np.where(X > 0, X, np.exp(X) - 1.0),
            np.where(X > 0, 1.0, np.exp(X)),
        )

    def test_derivatives_match_the_tape(self):
        e = self.engine
        for act in (TanH(e), Sigmoid(), Square(e), Elu()):
            g = e.grad(lambda t: act.output(t).sum())(self.x)
            d = act.der(self.x, act.output(self.x))
            np.testing.assert_allclose(g.to_numpy(), d.to_numpy(), rtol=1e-5, atol=1e-6)
            act.dispose()

    def test_der_leaves_only_its_result(self):
        e = self.engine
        act = TanH(e)
        y = act.output(self.x)
        before = e.num_live_tensors()
        d = act.der(self.x, y)
        self.assertEqual(e.num_live_tensors(), before + 1)
        d.dispose()
        act.dispose()


if __name__ == "__main__":
    unittest.main()
