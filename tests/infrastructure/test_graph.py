import unittest
from dataclasses import dataclass

import numpy as np

from src.kerngraph.domain._errors import (
    GraphInvariantError,
    ShapeMismatchError,
    TensorError,
    TensorNotFoundError,
)
from src.kerngraph.domain._function import Function
from src.kerngraph.infrastructure._graph import Graph
from src.kerngraph.infrastructure.functions import Add, LayerNorm, MatMul, Mul, Tanh
from src.kerngraph.infrastructure.losses import MeanSquaredError
from src.kerngraph.infrastructure.optimizers import SGD


class SumLoss:
    """Per-element loss equal to the output; gradient of ones."""

    def run(self, output):
        return output.copy(), np.ones_like(output)


class NanLoss:
    def run(self, output):
        return np.full_like(output, np.nan), np.zeros_like(output)


@dataclass(frozen=True)
class TrainingScale(Function):
    """Doubles its input in training mode only."""

    def run(self, inputs, training):
        return inputs[0] * (2.0 if training else 1.0)

    def grad(self, inputs, output_grad):
        return [output_grad]


@dataclass(frozen=True)
class TooManyGrads(Function):
    def run(self, inputs, training):
        return inputs[0].copy()

    def grad(self, inputs, output_grad):
        return [output_grad, output_grad]


@dataclass
class MutableOp(Function):
    def run(self, inputs, training):
        return inputs[0]

    def grad(self, inputs, output_grad):
        return [output_grad]


@dataclass(frozen=True)
class Affine(Function):
    """Fielded operation relying on the default config."""

    shift: float
    scale: float = 1.0

    def run(self, inputs, training):
        return inputs[0] * self.scale + self.shift

    def grad(self, inputs, output_grad):
        return [output_grad * self.scale]


def _chain(graph: Graph, depth: int):
    x = graph.allocate(np.array([0.1, -0.2, 0.3]), "x")
    ids = [x]
    for _ in range(depth):
        ids.append(graph.call(Tanh(), [ids[-1]]))
    return ids


class TestCall(unittest.TestCase):
    def test_call_evaluates_eagerly_and_allocates_output(self):
        g = Graph()
        a = g.allocate(np.array([1.0, 2.0]), "a")
        b = g.allocate(np.array([3.0, 4.0]), "b")
        c = g.call(Add(), [a, b])
        self.assertEqual(c, 2)
        np.testing.assert_array_equal(g.get(c), [4.0, 6.0])
        self.assertEqual(g.name_of(c), "")
        self.assertTrue(np.all(g.get_grad(c) == 0))

    def test_every_input_precedes_its_output(self):
        g = Graph()
        x = g.allocate(np.ones((2, 3)))
        w = g.allocate(np.ones((3, 4)))
        coeff = g.allocate(np.ones(4))
        bias = g.allocate(np.zeros(4))
        h = g.call(MatMul(), [x, w])
        y = g.call(LayerNorm(), [h, coeff, bias])
        g.call(Mul(), [y, h])
        g.call(Add(), [x, x])

        records = list(g.computations())
        self.assertEqual(len(records), 4)
        for out, comp in records:
            for inp in comp.inputs:
                self.assertLess(inp, out)
        self.assertEqual([out for out, _ in records], sorted(out for out, _ in records))

    def test_operation_error_propagates_and_allocates_nothing(self):
        g = Graph()
        a = g.allocate(np.ones((2, 3)))
        b = g.allocate(np.ones((4,)))
        with self.assertRaises(ShapeMismatchError):
            g.call(Add(), [a, b])
        self.assertEqual(len(g), 2)
        self.assertEqual(list(g.computations()), [])

    def test_missing_input_is_fatal(self):
        g = Graph()
        g.allocate(np.ones(2))
        with self.assertRaises(TensorNotFoundError):
            g.call(Tanh(), [7])

    def test_rejects_mutable_operations(self):
        g = Graph()
        a = g.allocate(np.ones(2))
        with self.assertRaises(TypeError):
            g.call(MutableOp(), [a])

    def test_rejects_non_functions(self):
        g = Graph()
        a = g.allocate(np.ones(2))
        with self.assertRaises(TypeError):
            g.call(lambda inputs, training: inputs[0], [a])  # type: ignore[arg-type]

    def test_call_runs_in_inference_mode(self):
        g = Graph()
        a = g.allocate(np.array([1.0, 2.0]))
        b = g.call(TrainingScale(), [a])
        np.testing.assert_array_equal(g.get(b), [1.0, 2.0])

    def test_is_leaf(self):
        g = Graph()
        a = g.allocate(np.ones(2))
        b = g.call(Tanh(), [a])
        self.assertTrue(g.is_leaf(a))
        self.assertFalse(g.is_leaf(b))
        with self.assertRaises(TensorNotFoundError):
            g.is_leaf(9)


class TestForward(unittest.TestCase):
    def test_forward_replays_with_new_leaf_data(self):
        g = Graph()
        a = g.allocate(np.array([1.0, 2.0]))
        b = g.allocate(np.array([10.0, 20.0]))
        c = g.call(Add(), [a, b])
        d = g.call(Mul(), [c, a])

        g.load(a, [3.0, 4.0])
        g.forward()
        np.testing.assert_array_equal(g.get(c), [13.0, 24.0])
        np.testing.assert_array_equal(g.get(d), [39.0, 96.0])

    def test_forward_is_deterministic(self):
        rng = np.random.default_rng(1)
        g = Graph()
        x = g.allocate(rng.standard_normal((4, 8)))
        coeff = g.alloc_rand((8,), "coeff", rng=rng)
        bias = g.alloc_rand((8,), "bias", rng=rng)
        w = g.alloc_rand((8, 8), "w", rng=rng)
        h = g.call(MatMul(), [x, w])
        y = g.call(LayerNorm(), [h, coeff, bias])

        g.load(x, rng.standard_normal((4, 8)))
        g.forward()
        first = g.get(y).copy()
        g.forward()
        self.assertTrue(np.array_equal(first, g.get(y)))

    def test_training_flag_is_threaded(self):
        g = Graph()
        a = g.allocate(np.array([1.0, 2.0]))
        b = g.call(TrainingScale(), [a])
        g.forward(training=True)
        np.testing.assert_array_equal(g.get(b), [2.0, 4.0])
        g.forward(training=False)
        np.testing.assert_array_equal(g.get(b), [1.0, 2.0])


class TestBackwardAll(unittest.TestCase):
    def test_seed_is_mean_scaled_loss_gradient(self):
        g = Graph(np.float64)
        a = g.allocate(np.array([1.0, 2.0, 3.0, 4.0]))
        b = g.allocate(np.array([0.5, 0.5, 0.5, 0.5]))
        c = g.call(Mul(), [a, b])

        mean_loss = g.backward_all(c, SumLoss())

        self.assertAlmostEqual(mean_loss, np.mean([0.5, 1.0, 1.5, 2.0]))
        np.testing.assert_allclose(g.get_grad(c), np.full(4, 0.25))
        np.testing.assert_allclose(g.get_grad(a), np.full(4, 0.125))
        np.testing.assert_allclose(g.get_grad(b), [0.25, 0.5, 0.75, 1.0])

    def test_gradients_from_all_consumers_are_summed(self):
        g = Graph(np.float64)
        x = g.allocate(np.array([2.0, 3.0]))
        sq = g.call(Mul(), [x, x])
        y = g.call(Add(), [sq, x])

        g.backward_all(y, SumLoss())

        # d/dx mean(x^2 + x) = (2x + 1) / n
        np.testing.assert_allclose(g.get_grad(x), (2 * np.array([2.0, 3.0]) + 1) / 2)

    def test_broadcast_operand_gradient_is_reduced(self):
        g = Graph(np.float64)
        x = g.allocate(np.arange(6, dtype=np.float64).reshape(2, 3))
        bias = g.allocate(np.zeros(3))
        y = g.call(Add(), [x, bias])

        g.backward_all(y, SumLoss())

        np.testing.assert_allclose(g.get_grad(bias), np.full(3, 2.0 / 6.0))
        self.assertEqual(g.get_grad(bias).shape, (3,))

    def test_limit_visits_only_most_recent_computations(self):
        g = Graph(np.float64)
        x, a, b, c = _chain(g, 3)

        g.backward_all(c, SumLoss(), limit=1)

        self.assertTrue(np.any(g.get_grad(c) != 0))
        self.assertTrue(np.any(g.get_grad(b) != 0))
        self.assertTrue(np.all(g.get_grad(a) == 0))
        self.assertTrue(np.all(g.get_grad(x) == 0))

    def test_limit_leaves_earlier_gradients_unchanged(self):
        g = Graph(np.float64)
        x, a, b, c = _chain(g, 3)
        g.load_grad(x, [7.0, 8.0, 9.0])

        g.backward_all(c, SumLoss(), limit=2)

        self.assertTrue(np.any(g.get_grad(a) != 0))
        np.testing.assert_array_equal(g.get_grad(x), [7.0, 8.0, 9.0])

    def test_limit_zero_only_seeds_output(self):
        g = Graph(np.float64)
        x, a = _chain(g, 1)
        g.backward_all(a, SumLoss(), limit=0)
        self.assertTrue(np.all(g.get_grad(x) == 0))
        np.testing.assert_allclose(g.get_grad(a), np.full(3, 1.0 / 3.0))

    def test_unlimited_matches_large_limit(self):
        g1 = Graph(np.float64)
        ids1 = _chain(g1, 3)
        g1.backward_all(ids1[-1], SumLoss())

        g2 = Graph(np.float64)
        ids2 = _chain(g2, 3)
        g2.backward_all(ids2[-1], SumLoss(), limit=100)

        np.testing.assert_array_equal(g1.get_grad(ids1[0]), g2.get_grad(ids2[0]))

    def test_negative_limit_rejected(self):
        g = Graph()
        x, a = _chain(g, 1)
        with self.assertRaises(ValueError):
            g.backward_all(a, SumLoss(), limit=-1)

    def test_loss_error_propagates(self):
        g = Graph()
        x, a = _chain(g, 1)
        with self.assertRaises(TensorError):
            g.backward_all(a, MeanSquaredError(np.zeros(5)))

    def test_wrong_gradient_count_is_invariant_violation(self):
        g = Graph()
        x = g.allocate(np.ones(2))
        y = g.call(TooManyGrads(), [x])
        with self.assertRaises(GraphInvariantError):
            g.backward_all(y, SumLoss())

    def test_non_finite_loss_warns(self):
        g = Graph()
        x, a = _chain(g, 1)
        with self.assertWarns(RuntimeWarning):
            g.backward_all(a, NanLoss())

    def test_empty_output_returns_nan_without_seeding(self):
        g = Graph()
        x = g.allocate(np.zeros((0, 3)), "x")
        y = g.call(Tanh(), [x])

        with self.assertWarns(RuntimeWarning):
            mean = g.backward_all(y, SumLoss())

        self.assertTrue(np.isnan(mean))
        self.assertEqual(g.get_grad(x).shape, (0, 3))
        self.assertEqual(g.get_grad(y).shape, (0, 3))


class TestOptimize(unittest.TestCase):
    def test_updates_only_selected_tensors_in_place(self):
        g = Graph(np.float64)
        w = g.allocate(np.array([1.0, 1.0]), "w")
        v = g.allocate(np.array([1.0, 1.0]), "v")
        w_before = g.get(w)
        g.load_grad(w, [1.0, -1.0])
        g.load_grad(v, [1.0, -1.0])

        g.optimize(SGD(), {w}, 0.5)

        self.assertIs(g.get(w), w_before)
        np.testing.assert_allclose(g.get(w), [0.5, 1.5])
        np.testing.assert_allclose(g.get(v), [1.0, 1.0])

    def test_missing_param_is_fatal(self):
        g = Graph()
        g.allocate(np.ones(2))
        with self.assertRaises(TensorNotFoundError):
            g.optimize(SGD(), {3}, 0.1)

    def test_warns_when_updating_computed_tensor(self):
        g = Graph()
        x, a = _chain(g, 1)
        with self.assertWarns(RuntimeWarning):
            g.optimize(SGD(), {a}, 0.1)

    def test_optimizer_error_propagates(self):
        g = Graph()
        w = g.allocate(np.ones(2))
        with self.assertRaises(ValueError):
            g.optimize(SGD(), {w}, 0.0)


class TestEmbedThroughGraph(unittest.TestCase):
    def test_embedding_feeds_replay(self):
        g = Graph()
        table = g.allocate(np.arange(8, dtype=np.float32).reshape(4, 2), "table")
        tokens = g.allocate(np.zeros((3, 2)), "tokens")
        out = g.call(Tanh(), [tokens])

        g.embed(tokens, table, np.array([3, 1, 0]))
        g.forward()

        expected = np.tanh(np.array([[6, 7], [2, 3], [0, 1]], dtype=np.float32))
        np.testing.assert_allclose(g.get(out), expected, rtol=1e-6)


class TestCopy(unittest.TestCase):
    def test_copy_is_independent(self):
        g = Graph()
        a = g.allocate(np.array([1.0, 2.0]))
        b = g.call(Tanh(), [a])

        h = g.copy()
        h.load(a, [0.0, 0.0])
        h.forward()

        np.testing.assert_allclose(g.get(b), np.tanh([1.0, 2.0]), rtol=1e-6)
        np.testing.assert_array_equal(h.get(b), [0.0, 0.0])

        (_, orig), = list(g.computations())
        (_, cloned), = list(h.computations())
        self.assertIsNot(orig.func, cloned.func)
        self.assertEqual(orig, cloned)
        self.assertEqual(h.dtype, g.dtype)

    def test_copy_keeps_operation_fields(self):
        g = Graph(np.float64)
        a = g.allocate(np.array([1.0, 2.0]))
        b = g.call(Affine(shift=1.0, scale=3.0), [a])

        h = g.copy()
        h.forward()

        np.testing.assert_array_equal(h.get(b), [4.0, 7.0])
        np.testing.assert_array_equal(g.get(b), h.get(b))
        (_, cloned), = list(h.computations())
        self.assertEqual(cloned.func, Affine(shift=1.0, scale=3.0))


if __name__ == "__main__":
    unittest.main()
