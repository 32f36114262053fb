"""Engine tests: output layers, Huffman tree, negative table, prediction and
the polarization step.

Usage:
    python3 -m pytest test_polartext_engine.py -v
"""

import math

import numpy as np
import pytest

from polartext import (Args, Matrix, Model, build_tree, init_table_negatives)

DIM = 4
LOG_HALF = -math.log(0.5 + 1e-5)


def _model(loss="softmax", osz=3, isz=10, dim=DIM, seed=1, **kw):
    args = Args.for_model("sg", dim=dim, loss=loss, verbose=0, **kw)
    wi = Matrix(isz, dim)
    wi.uniform(0.25, seed=0)
    wo = Matrix(osz, dim)
    return Model(wi, wo, args, seed)


def _sigmoid(x):
    return 1.0 / (1.0 + math.exp(-x))


class TestHidden:

    def test_hidden_is_mean_of_rows(self):
        m = _model()
        m.compute_hidden([1, 2, 2])
        expected = (m.wi.data[1] + 2 * m.wi.data[2]) / 3
        np.testing.assert_allclose(m.hidden.data, expected, rtol=1e-5)

    def test_empty_ids_give_zero_hidden(self):
        m = _model()
        m.compute_hidden([1])
        m.compute_hidden([])
        assert not m.hidden.data.any()

    def test_ids_outside_input_matrix(self):
        m = _model()
        with pytest.raises(AssertionError):
            m.compute_hidden([10])


class TestBinaryLogistic:

    def test_positive_step_against_zero_row(self):
        m = _model()
        m.compute_hidden([0])
        h = m.hidden.data.copy()
        m.grad.zero()
        loss = m.binary_logistic(1, True, 0.1)
        assert loss == pytest.approx(LOG_HALF, rel=1e-6)
        # the row was zero when the gradient was accumulated
        assert not m.grad.data.any()
        np.testing.assert_allclose(m.wo.data[1], 0.05 * h, rtol=1e-5)

    def test_negative_step_pushes_row_away(self):
        m = _model()
        m.compute_hidden([0])
        h = m.hidden.data.copy()
        m.grad.zero()
        m.binary_logistic(2, False, 0.1)
        np.testing.assert_allclose(m.wo.data[2], -0.05 * h, rtol=1e-5)
        assert not m.wo.data[0].any()


class TestSoftmax:

    def test_uniform_output_from_zero_matrix(self):
        m = _model(osz=3)
        m.compute_hidden([0])
        h = m.hidden.data.copy()
        loss = m.softmax(0, 0.1)
        assert loss == pytest.approx(-math.log(1 / 3 + 1e-5), rel=1e-5)
        np.testing.assert_allclose(m.output.data, [1 / 3] * 3, rtol=1e-5)
        np.testing.assert_allclose(m.wo.data[0], 0.1 * (2 / 3) * h, rtol=1e-4)
        np.testing.assert_allclose(m.wo.data[1], -0.1 / 3 * h, rtol=1e-4)
        assert not m.grad.data.any()

    def test_update_moves_only_context_rows(self):
        m = _model(osz=3)
        before = m.wi.data.copy()
        m.update([1, 2], 0, 0.1)
        # first step: output rows were zero, so the gradient is zero too
        np.testing.assert_array_equal(m.wi.data, before)
        assert m.get_loss() == pytest.approx(-math.log(1 / 3 + 1e-5), rel=1e-5)

        m.update([1, 2], 0, 0.1)
        delta = m.wi.data - before
        assert delta[1].any()
        np.testing.assert_allclose(delta[1], delta[2], rtol=1e-5)
        np.testing.assert_array_equal(delta[0], 0)
        np.testing.assert_array_equal(delta[3:], 0)
        assert m.stats[1] == 2

    def test_update_rejects_bad_target(self):
        m = _model(osz=3)
        with pytest.raises(AssertionError):
            m.update([1], 3, 0.1)

    def test_update_with_no_ids_is_a_noop(self):
        m = _model(osz=3)
        m.update([], 0, 0.1)
        assert m.stats[1] == 0
        assert m.get_loss() == 0.0


class TestNegativeSampling:

    def test_table_follows_smoothed_counts(self):
        counts = [100, 10, 1]
        table = init_table_negatives(counts, seed=0, size=100_000)
        pw = np.power(counts, 0.75)
        expected = pw / pw.sum()
        freq = np.bincount(table, minlength=3) / len(table)
        np.testing.assert_allclose(freq, expected, atol=1e-3)

    def test_table_is_shuffled_by_seed(self):
        a = init_table_negatives([5, 3, 2], seed=0, size=1000)
        b = init_table_negatives([5, 3, 2], seed=0, size=1000)
        c = init_table_negatives([5, 3, 2], seed=1, size=1000)
        np.testing.assert_array_equal(a, b)
        assert not np.array_equal(a, c)
        assert not np.all(a[:-1] <= a[1:])

    def test_draws_follow_table_frequencies(self):
        counts = [100, 10, 1]
        m = _model(loss="ns")
        m.set_tables(init_table_negatives(counts, seed=0, size=100_000))
        draws = np.array([m.get_negative(-1) for _ in range(50_000)])
        pw = np.power(counts, 0.75)
        freq = np.bincount(draws, minlength=3) / len(draws)
        np.testing.assert_allclose(freq, pw / pw.sum(), atol=0.01)

    def test_draw_skips_target(self):
        m = _model(loss="ns")
        m.set_tables(init_table_negatives([5, 3, 2], seed=0, size=1000))
        assert all(m.get_negative(0) != 0 for _ in range(500))

    def test_loss_with_zero_output_rows(self):
        m = _model(loss="ns", neg=2)
        m.set_tables(init_table_negatives([5, 3, 2], seed=0, size=1000))
        m.compute_hidden([0])
        h = m.hidden.data.copy()
        loss = m.negative_sampling(0, 0.1)
        assert loss == pytest.approx(3 * LOG_HALF, rel=0.01)
        np.testing.assert_allclose(m.wo.data[0], 0.05 * h, rtol=1e-5)
        assert m.wo.data[1:].any()


class TestHuffman:

    COUNTS = [50, 30, 20, 10, 5, 5, 2, 1]

    def test_tree_shape(self):
        tree = build_tree(self.COUNTS)
        osz = len(self.COUNTS)
        assert tree.osz == osz
        root = 2 * osz - 2
        assert tree.parent[root] == -1
        assert tree.count[root] == sum(self.COUNTS)
        assert np.all(tree.parent[:root] >= osz)
        assert np.all((tree.path_nodes >= 0) & (tree.path_nodes < osz - 1))

    def test_code_lengths(self):
        tree = build_tree(self.COUNTS)
        lengths = [tree.code_length(i) for i in range(tree.osz)]
        # frequent classes never sit deeper than rarer ones
        assert lengths == sorted(lengths)
        assert sum(2.0 ** -n for n in lengths) == pytest.approx(1.0)

    def test_single_class(self):
        tree = build_tree([7])
        assert tree.osz == 1
        assert tree.code_length(0) == 0

    def test_loss_is_path_length_times_log_two(self):
        m = _model(loss="hs", osz=len(self.COUNTS))
        tree = build_tree(self.COUNTS)
        m.set_tables(tree=tree)
        m.compute_hidden([0])
        for target in (0, 7):
            m.wo.zero()
            loss = m.hierarchical_softmax(target, 0.1)
            assert loss == pytest.approx(tree.code_length(target) * LOG_HALF,
                                         rel=1e-5)

    def test_update_requires_tree(self):
        m = _model(loss="hs")
        with pytest.raises(AssertionError):
            m.update([0], 0, 0.1)


class TestPredict:

    def test_softmax_ranking(self):
        m = _model(osz=3)
        m.wi.data[0] = [1, 0, 0, 0]
        m.wo.data[:] = [[0, 0, 0, 0], [1, 0, 0, 0], [3, 0, 0, 0]]
        preds = m.predict([0], 2)
        assert [c for _, c in preds] == [2, 1]
        z = 1 + math.e + math.e ** 3
        assert preds[0][0] == pytest.approx(math.log(math.e ** 3 / z + 1e-5),
                                            rel=1e-5)
        assert len(m.predict([0], 10)) == 3

    def test_hierarchical_matches_path_products(self):
        counts = [8, 4, 2, 1, 1]
        osz = len(counts)
        m = _model(loss="hs", osz=osz)
        tree = build_tree(counts)
        m.set_tables(tree=tree)
        m.wo.uniform(0.5, seed=4)

        h = m.wi.data[0].astype(np.float64)
        brute = []
        for i in range(osz):
            logp = 0.0
            for p in range(tree.path_ptr[i], tree.path_ptr[i + 1]):
                f = _sigmoid(float(m.wo.data[tree.path_nodes[p]] @ h))
                logp += math.log((f if tree.path_codes[p] else 1 - f) + 1e-5)
            brute.append((logp, i))
        brute.sort(reverse=True)

        preds = m.predict([0], osz)
        assert [c for _, c in preds] == [c for _, c in brute]
        np.testing.assert_allclose([s for s, _ in preds],
                                   [s for s, _ in brute], atol=1e-4)
        assert sum(math.exp(s) for s, _ in preds) == pytest.approx(1.0,
                                                                    abs=1e-3)
        assert m.predict([0], 2) == preds[:2]


class TestPolarization:

    def test_step_moves_row_towards_indicator(self):
        m = _model(dim=3, isz=2)
        m.wi.zero()
        m.set_hidden_labels([1])
        m.update_polarization(0, 0.1)
        np.testing.assert_allclose(m.wi.data[0], [-0.05, 0.05, -0.05],
                                   rtol=1e-5)
        assert not m.wi.data[1].any()
        assert m.get_loss() == pytest.approx(3 * LOG_HALF, rel=1e-5)

    def test_loss_only_leaves_row_untouched(self):
        m = _model(dim=3, isz=2)
        m.wi.zero()
        m.set_hidden_labels([0, 2])
        loss = m.polarization(0, 0.1)
        assert loss == pytest.approx(3 * LOG_HALF, rel=1e-5)
        assert not m.wi.data.any()
        np.testing.assert_allclose(m.grad.data, [0.05, -0.05, 0.05],
                                   rtol=1e-5)

    def test_repeated_steps_converge(self):
        m = _model(dim=2, isz=1)
        m.wi.zero()
        m.set_hidden_labels([0])
        for _ in range(200):
            m.update_polarization(0, 0.5)
        row = m.wi.data[0]
        assert row[0] > 2.0 and row[1] < -2.0

    def test_label_outside_dimension(self):
        m = _model(dim=3, isz=2)
        m.set_hidden_labels([5])
        with pytest.raises(AssertionError):
            m.polarization(0, 0.1)
