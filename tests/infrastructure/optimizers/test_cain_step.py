import unittest
import warnings

import numpy as np

from keycain.domain._errors import NumericDegeneracyWarning
from keycain.infrastructure.optimizers import Cain, StepReport

from tests._fakes import NoiseSupplier, QuadraticGraph, RaisingSupplier, ScriptedGraph


class _ListSupplier:
    def __init__(self):
        self.requests = []

    def next_n(self, count):
        self.requests.append(count)
        start = sum(self.requests) - count
        return np.arange(start, start + count, dtype=np.float64), None

    def samples_taken(self):
        return sum(self.requests)


class _SumGraph:
    """gradient = [sum(x), 2*sum(x)], loss = sum(x)**2 / batch."""

    def __init__(self):
        self.calls = []

    def parameter_count(self):
        return 2

    def backprop(self, batch_size, inputs, targets, params):
        self.calls.append(batch_size)
        s = float(np.sum(inputs))
        return s, np.array([s, 2.0 * s]), {"batch": batch_size}


class TestPartStep(unittest.TestCase):
    def test_averages_loss_and_gradient(self):
        graph = _SumGraph()
        supplier = _ListSupplier()
        opt = Cain.builder().with_progress_sink(None).finish(graph)
        loss, grad = opt.part_step(graph, supplier, np.zeros(2), 4)
        # samples 0..3
        self.assertAlmostEqual(loss, 6.0 / 4)
        np.testing.assert_allclose(grad, [1.5, 3.0], rtol=1e-6)
        self.assertEqual(opt.eval_count, 4)
        self.assertEqual(supplier.requests, [4])

    def test_chunks_above_max_eval_batch_size(self):
        graph = _SumGraph()
        supplier = _ListSupplier()
        opt = (
            Cain.builder()
            .with_progress_sink(None)
            .with_max_eval_batch_size(3)
            .finish(graph)
        )
        loss, grad = opt.part_step(graph, supplier, np.zeros(2), 7)
        self.assertEqual(supplier.requests, [3, 3, 1])
        self.assertEqual(graph.calls, [3, 3, 1])
        self.assertAlmostEqual(loss, 21.0 / 7)
        np.testing.assert_allclose(grad, [3.0, 6.0], rtol=1e-6)
        self.assertEqual(opt.eval_count, 7)

    def test_supplier_failure_propagates(self):
        graph = QuadraticGraph([0.0])
        exc = RuntimeError("disk gone")
        opt = Cain.builder().with_progress_sink(None).finish(graph)
        with self.assertRaises(RuntimeError) as ctx:
            opt.step(graph, RaisingSupplier(exc), np.zeros(1))
        self.assertIs(ctx.exception, exc)
        self.assertEqual(opt.step_count, 0)


class TestStep(unittest.TestCase):
    def _one_dim(self):
        graph = QuadraticGraph([3.0])
        supplier = NoiseSupplier(1, scale=0.0)
        opt = (
            Cain.builder()
            .with_progress_sink(None)
            .with_initial_learning_rate(1e-2)
            .with_num_subbatches(2)
            .with_min_subbatch_size(1)
            .finish(graph)
        )
        return graph, supplier, opt

    def test_first_step_moves_towards_target(self):
        graph, supplier, opt = self._one_dim()
        params = np.array([0.0])
        loss, new_params = opt.step(graph, supplier, params)
        self.assertGreater(new_params[0], 0.0)
        self.assertLess(new_params[0], 3.0)
        self.assertAlmostEqual(loss, 9.0, places=5)

    def test_step_does_not_mutate_input(self):
        graph, supplier, opt = self._one_dim()
        params = np.array([0.5])
        _, new_params = opt.step(graph, supplier, params)
        self.assertEqual(params[0], 0.5)
        self.assertIsNot(new_params, params)

    def test_counters_and_previous_gradient(self):
        graph, supplier, opt = self._one_dim()
        opt.step(graph, supplier, np.array([1.0]))
        # two sub-batches of floor(2.0) samples
        self.assertEqual(opt.step_count, 1)
        self.assertEqual(opt.eval_count, 4)
        self.assertEqual(supplier.requests, [2, 2])
        np.testing.assert_allclose(opt._state.prev_gradient, [-4.0])

    def test_first_step_keeps_learning_rate(self):
        graph, supplier, opt = self._one_dim()
        opt.step(graph, supplier, np.array([0.0]))
        self.assertEqual(opt.learning_rate, 1e-2)

    def test_zero_momentum_after_first_step_warns(self):
        graph = ScriptedGraph([[0.0, 0.0], [1.0, -1.0]], calls_per_step=2)
        supplier = NoiseSupplier(2, scale=0.0)
        opt = (
            Cain.builder()
            .with_progress_sink(None)
            .with_num_subbatches(2)
            .with_initial_learning_rate(0.1)
            .finish(graph)
        )
        params = np.zeros(2)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", NumericDegeneracyWarning)
            _, params = opt.step(graph, supplier, params)
        np.testing.assert_array_equal(opt._state.momentum, [0.0, 0.0])
        with self.assertWarns(NumericDegeneracyWarning):
            opt.step(graph, supplier, params)
        self.assertAlmostEqual(opt.learning_rate, 0.1 * 1.05 ** -8.0)

    def test_conditioned_update_hand_computed(self):
        g1, g2, g3 = [1.0, -2.0], [0.5, -1.0], [-0.25, 0.5]
        graph = ScriptedGraph([g1, g2, g3], calls_per_step=2)
        supplier = NoiseSupplier(2, scale=0.0)
        opt = (
            Cain.builder()
            .with_progress_sink(None)
            .with_num_subbatches(2)
            .with_momentum(0.0)
            .with_aggression(0.75)
            .with_rate_adapt_coefficient(1.05)
            .with_initial_learning_rate(0.1)
            .finish(graph)
        )
        p0 = np.array([0.3, -0.7])

        # step 1: curvature = 0.1 * g1^2, bias correction 1 / (1 - 0.9) = 10
        _, p1 = opt.step(graph, supplier, p0)
        curv = np.array([0.1, 0.4])
        cond = np.array(g1) / (np.sqrt(curv * 10.0) + 1e-8)
        expected1 = p0 - 0.1 * cond
        np.testing.assert_allclose(p1, expected1, rtol=1e-5)
        np.testing.assert_allclose(opt._state.curvature, curv, rtol=1e-5)

        # past the horizon the bias correction is exactly 1
        opt._state.step_count = 1_000_000

        # step 2: sim = 0.75 + (g2.g1)/(g1.g1) = 1.25
        _, p2 = opt.step(graph, supplier, p1)
        curv = np.array([0.115, 0.46])
        rate2 = 0.1 * 1.05 ** 1.25
        expected2 = expected1 - rate2 * np.array(g2) / (np.sqrt(curv) + 1e-8)
        np.testing.assert_allclose(opt._state.curvature, curv, rtol=1e-5)
        np.testing.assert_allclose(p2, expected2, rtol=1e-5)
        self.assertAlmostEqual(opt.learning_rate, rate2, places=9)

        # step 3: sim = 0.75 + (g3.g2)/(g2.g2) = 0.25
        _, p3 = opt.step(graph, supplier, p2)
        curv = np.array([0.15975, 0.639])
        rate3 = rate2 * 1.05 ** 0.25
        expected3 = expected2 - rate3 * np.array(g3) / (np.sqrt(curv) + 1e-8)
        np.testing.assert_allclose(opt._state.curvature, curv, rtol=1e-5)
        np.testing.assert_allclose(p3, expected3, rtol=1e-5)
        self.assertAlmostEqual(opt.learning_rate, rate3, places=9)


class TestProgressReporting(unittest.TestCase):
    def test_sink_receives_one_report_per_step(self):
        reports = []
        graph = QuadraticGraph([1.0, 2.0])
        supplier = NoiseSupplier(2, scale=0.1, seed=5)
        opt = (
            Cain.builder()
            .with_progress_sink(reports.append)
            .with_num_subbatches(3)
            .finish(graph)
        )
        params = np.zeros(2)
        for _ in range(3):
            _, params = opt.step(graph, supplier, params)

        self.assertEqual(len(reports), 3)
        self.assertTrue(all(isinstance(r, StepReport) for r in reports))
        self.assertEqual([r.step_index for r in reports], [0, 1, 2])
        self.assertEqual(reports[0].sim, 0.0)
        self.assertEqual(reports[-1].samples_taken, supplier.samples_taken())
        self.assertEqual(reports[-1].learning_rate, opt.learning_rate)
        self.assertEqual(reports[-1].num_subbatches, 3.0)

    def test_default_sink_logs_table(self):
        graph = QuadraticGraph([1.0])
        supplier = NoiseSupplier(1, scale=0.1)
        opt = Cain.builder().with_num_subbatches(2).finish(graph)
        logger_name = "keycain.infrastructure.optimizers._cain_report"
        with self.assertLogs(logger_name, level="INFO") as logs:
            _, params = opt.step(graph, supplier, np.zeros(1))
            opt.step(graph, supplier, params)
        self.assertEqual(len(logs.records), 3)
        self.assertTrue(logs.records[0].getMessage().startswith("count\terr"))
        self.assertIn("2x", logs.records[1].getMessage())


if __name__ == "__main__":
    unittest.main()
