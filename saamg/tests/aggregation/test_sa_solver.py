"""Behavioral tests for the smoothed aggregation hierarchy and V-cycle.

Run with:
  pytest -q saamg/tests/aggregation/test_sa_solver.py
"""

from __future__ import annotations

import numpy as np
import pytest
from scipy.sparse import SparseEfficiencyWarning, csr_array
from scipy.sparse.linalg import cg

from pyamg.gallery import poisson

from saamg.aggregation import (
    DefaultMonitor,
    SAConfig,
    SmoothedAggregationSolver,
    VerboseMonitor,
    smoothed_aggregation_solver,
)
from saamg.aggregation.sa import coarse, hierarchy


def _rhs(n: int, *, seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.standard_normal(n)


@pytest.fixture(scope="module")
def grid40():
    return poisson((40, 40), format="csr")


@pytest.fixture(scope="module")
def ml40(grid40):
    return smoothed_aggregation_solver(grid40)


# ---------------------------------------------------------------------------
# hierarchy structure
# ---------------------------------------------------------------------------


def test_multilevel_hierarchy_shapes(ml40, grid40):
    levels = ml40.levels
    assert len(levels) >= 3
    assert levels[0].A.shape == grid40.shape

    for fine, coarse in zip(levels[:-1], levels[1:]):
        n_f = fine.A_.shape[0]
        n_c = coarse.A_.shape[0]
        assert n_c < n_f
        assert fine.P.shape == (n_f, n_c)
        assert fine.R.shape == (n_c, n_f)
        assert fine.aggregates.shape == (n_f,)
        assert fine.aggregates.dtype == np.int32
        assert fine.aggregates.min() == 0
        assert fine.aggregates.max() == n_c - 1
        assert fine.residual.shape == (n_f,)
        assert coarse.x.shape == (n_c,)
        assert coarse.b.shape == (n_c,)
        assert coarse.B.shape == (n_c,)

    last = levels[-1]
    assert last.P is None
    assert last.R is None
    assert last.smoother is None
    assert ml40.LU.shape == (last.A_.shape[0], last.A_.shape[0])


def test_restriction_is_exact_transpose(ml40):
    for level in ml40.levels[:-1]:
        assert level.R.nnz == level.P.nnz
        assert np.array_equal(level.R.toarray(), level.P.T.toarray())


def test_galerkin_coarse_operator(ml40):
    for fine, coarse in zip(ml40.levels[:-1], ml40.levels[1:]):
        RAP = (fine.R @ (fine.A_ @ fine.P)).toarray()
        np.testing.assert_allclose(coarse.A_.toarray(), RAP, rtol=1e-12, atol=1e-12)


def test_coarse_operator_stays_symmetric(ml40):
    for level in ml40.levels[1:]:
        Ac = level.A_.toarray()
        np.testing.assert_allclose(Ac, Ac.T, rtol=1e-12, atol=1e-12)


def test_termination_respects_max_coarse(ml40):
    sizes = [level.A.shape[0] for level in ml40.levels]
    assert sizes[-1] <= 100
    assert all(n > 100 for n in sizes[:-1])


def test_small_system_has_single_level():
    A = poisson((8, 8), format="csr")
    ml = smoothed_aggregation_solver(A)
    assert len(ml.levels) == 1
    assert ml.operator_complexity() == 1.0
    assert ml.grid_complexity() == 1.0


def test_complexities(ml40):
    levels = ml40.levels
    oc = sum(level.A.nnz for level in levels) / levels[0].A.nnz
    gc = sum(level.A.shape[0] for level in levels) / levels[0].A.shape[0]
    assert ml40.operator_complexity() == pytest.approx(oc)
    assert ml40.grid_complexity() == pytest.approx(gc)
    assert ml40.operator_complexity() > 1.0
    assert 1.0 < ml40.grid_complexity() < 2.0


def test_max_levels_cap_warns(grid40):
    with pytest.warns(UserWarning, match="max_levels"):
        ml = smoothed_aggregation_solver(grid40, max_levels=2)
    assert len(ml.levels) == 2
    assert ml.levels[-1].A.shape[0] > 100


def test_caller_matrix_untouched(grid40):
    A = grid40.copy()
    data = A.data.copy()
    indices = A.indices.copy()
    indptr = A.indptr.copy()

    ml = smoothed_aggregation_solver(A)
    ml.solve(_rhs(A.shape[0], seed=1))

    assert np.array_equal(A.data, data)
    assert np.array_equal(A.indices, indices)
    assert np.array_equal(A.indptr, indptr)
    assert not np.shares_memory(ml.levels[0].A.data, A.data)
    assert not np.shares_memory(ml.levels[0].A.data, ml.levels[0].A_.data)


def test_coarse_solve_operator_handed_over(ml40):
    for level in ml40.levels[1:]:
        assert level.A is level.A_


def test_setup_is_deterministic(grid40):
    b = _rhs(grid40.shape[0], seed=3)
    ml1 = smoothed_aggregation_solver(grid40)
    ml2 = smoothed_aggregation_solver(grid40)

    assert len(ml1.levels) == len(ml2.levels)
    for l1, l2 in zip(ml1.levels[:-1], ml2.levels[:-1]):
        assert l1.rho == l2.rho
        assert np.array_equal(l1.aggregates, l2.aggregates)
        assert np.array_equal(l1.P.toarray(), l2.P.toarray())

    assert np.array_equal(ml1.solve(b), ml2.solve(b))


# ---------------------------------------------------------------------------
# V-cycle and outer iteration
# ---------------------------------------------------------------------------


def test_single_level_solves_exactly():
    A = poisson((4, 4), format="csr")
    b = _rhs(16, seed=0)
    ml = smoothed_aggregation_solver(A)
    assert len(ml.levels) == 1

    x = ml(b)
    np.testing.assert_allclose(A @ x, b, rtol=1e-10, atol=1e-12)

    monitor = DefaultMonitor(b, 1e-6, 20)
    x = ml.solve(b, monitor=monitor)
    assert monitor.converged()
    assert monitor.iteration_count == 1
    assert np.linalg.norm(b - A @ x) <= 1e-6 * np.linalg.norm(b)


def test_coarse_solve_copies_rhs_to_host_once(monkeypatch):
    calls = []
    to_host = coarse.to_host

    def _counting_to_host(v):
        calls.append(v)
        return to_host(v)

    monkeypatch.setattr(coarse, "to_host", _counting_to_host)
    A = poisson((4, 4), format="csr")
    b = _rhs(16, seed=0)
    ml = smoothed_aggregation_solver(A)

    x = ml(b)
    assert len(calls) == 1
    np.testing.assert_allclose(A @ x, b, rtol=1e-10, atol=1e-12)


def test_two_level_cycle_matches_hand_composition():
    A = poisson((12,), format="csr")
    ml = smoothed_aggregation_solver(A, max_coarse=6)
    assert len(ml.levels) == 2

    fine = ml.levels[0]
    b = _rhs(12, seed=7)
    D = A.diagonal()
    omega = fine.smoother.omega
    assert omega == pytest.approx((4.0 / 3.0) / fine.rho)

    # pre-smoothing from a zero guess
    x = omega * b / D
    r = b - A @ x
    xc = np.linalg.solve(ml.levels[1].A_.toarray(), fine.R @ r)
    x = x + fine.P @ xc
    # post-smoothing
    x = x + omega * (b - A @ x) / D

    np.testing.assert_allclose(ml(b), x, rtol=1e-10, atol=1e-12)


def test_call_updates_initial_guess_in_place(ml40, grid40):
    b = _rhs(grid40.shape[0], seed=11)
    x0 = np.zeros(grid40.shape[0])
    x = ml40(b, x0)
    assert x is x0
    assert np.linalg.norm(b - grid40 @ x) < np.linalg.norm(b)


def test_call_rejects_mismatched_dtype(ml40, grid40):
    b = _rhs(grid40.shape[0], seed=12)
    with pytest.raises(TypeError):
        ml40(b, np.zeros(grid40.shape[0], dtype=np.float32))


def test_call_rejects_wrong_length(ml40):
    with pytest.raises(ValueError):
        ml40(np.ones(7))


@pytest.mark.parametrize(
    "smoother, limit",
    [("gauss_seidel", 20), ("jacobi", 100), ("multicolor_gauss_seidel", 100)],
)
def test_stationary_solve_converges(grid40, smoother, limit):
    b = _rhs(grid40.shape[0], seed=5)
    ml = smoothed_aggregation_solver(grid40, smoother=smoother)

    monitor = DefaultMonitor(b, 1e-6, limit)
    x = ml.solve(b, monitor=monitor)

    assert monitor.converged(), (smoother, monitor.iteration_count, monitor.residual_norm)
    assert monitor.iteration_count <= limit
    assert np.linalg.norm(b - grid40 @ x) <= 1e-6 * np.linalg.norm(b)
    # residual history starts from the initial residual and decreases overall
    assert len(monitor.residuals) == monitor.iteration_count + 1
    assert monitor.residuals[-1] < monitor.residuals[0]


def test_default_monitor_used_when_omitted(ml40, grid40):
    b = _rhs(grid40.shape[0], seed=6)
    x = ml40.solve(b)
    assert np.linalg.norm(b - grid40 @ x) <= 1e-5 * np.linalg.norm(b)


def test_zero_rhs_returns_zero(ml40, grid40):
    x = ml40.solve(np.zeros(grid40.shape[0]))
    assert np.all(x == 0.0)


def test_aspreconditioner_with_cg(ml40, grid40):
    b = _rhs(grid40.shape[0], seed=9)
    M = ml40.aspreconditioner()
    assert M.shape == grid40.shape

    x, info = cg(grid40, b, M=M, maxiter=50)
    assert info == 0
    assert np.linalg.norm(b - grid40 @ x) <= 1e-4 * np.linalg.norm(b)


def test_bsr_solve_format_matches_csr(grid40):
    b = _rhs(grid40.shape[0], seed=4)
    ml_csr = smoothed_aggregation_solver(grid40)
    ml_bsr = smoothed_aggregation_solver(grid40, solve_format="bsr")

    for level in ml_bsr.levels:
        assert level.A.format == "bsr"
        assert level.A_.format == "csr"

    np.testing.assert_allclose(ml_bsr(b), ml_csr(b), rtol=1e-10, atol=1e-12)


# ---------------------------------------------------------------------------
# input validation
# ---------------------------------------------------------------------------


def test_rejects_non_square():
    with pytest.raises(ValueError):
        smoothed_aggregation_solver(csr_array(np.ones((3, 4))))


def test_rejects_wrong_nullspace_length():
    A = poisson((10,), format="csr")
    with pytest.raises(ValueError):
        smoothed_aggregation_solver(A, B=np.ones(9))


def test_accepts_column_nullspace():
    A = poisson((10, 10), format="csr")
    ml = smoothed_aggregation_solver(A, B=np.ones((100, 1)), max_coarse=10)
    assert ml.levels[0].B.shape == (100,)


def test_dense_input_warns():
    A = poisson((5, 5), format="csr").toarray()
    with pytest.warns(SparseEfficiencyWarning):
        ml = smoothed_aggregation_solver(A)
    assert ml.levels[0].A.format == "csr"


def test_rejects_unconvertible_input():
    with pytest.raises(TypeError):
        smoothed_aggregation_solver("not a matrix")


@pytest.mark.parametrize("kwargs", [dict(smoother="sor"), dict(solve_format="dia")])
def test_rejects_unknown_options(kwargs):
    A = poisson((10, 10), format="csr")
    with pytest.raises(ValueError):
        smoothed_aggregation_solver(A, **kwargs)


def _diagonal(n):
    idx = np.arange(n, dtype=np.int32)
    return csr_array((np.arange(1, n + 1, dtype=float), (idx, idx)), shape=(n, n))


@pytest.mark.parametrize(
    "A, theta",
    [(_diagonal(200), 0.0), (poisson((30, 30), format="csr"), 0.9)],
    ids=["diagonal", "all_connections_dropped"],
)
def test_stalled_coarsening_keeps_single_level(A, theta):
    with pytest.warns(UserWarning, match="coarsening stopped"):
        ml = smoothed_aggregation_solver(A, theta=theta)
    assert len(ml.levels) == 1
    assert ml.levels[0].P is None
    assert ml.levels[0].smoother is None

    b = _rhs(A.shape[0], seed=4)
    monitor = DefaultMonitor(b, 1e-8, 20)
    x = ml.solve(b, monitor=monitor)
    assert monitor.converged()
    assert monitor.iteration_count == 1
    assert np.linalg.norm(b - A @ x) <= 1e-8 * np.linalg.norm(b)


def test_stall_below_finest_keeps_built_levels(monkeypatch, grid40):
    calls = []
    build_aggregates = hierarchy.build_aggregates

    def _stall_after_first(A, C):
        calls.append(A.shape[0])
        if len(calls) == 1:
            return build_aggregates(A, C)
        n = A.shape[0]
        return np.arange(n, dtype=np.int32), n

    monkeypatch.setattr(hierarchy, "build_aggregates", _stall_after_first)
    with pytest.warns(UserWarning, match="max_levels=20"):
        ml = SmoothedAggregationSolver(grid40, config=SAConfig(max_coarse=10))

    assert len(calls) == 2
    assert len(ml.levels) == 2
    assert ml.levels[0].P is not None
    assert ml.levels[1].P is None
    assert ml.levels[1].aggregates is None
    assert ml.LU.lu.shape[0] == ml.levels[1].A.shape[0]

    b = _rhs(grid40.shape[0], seed=5)
    monitor = DefaultMonitor(b, 1e-8, 200)
    ml.solve(b, monitor=monitor)
    assert monitor.converged()


# ---------------------------------------------------------------------------
# diagnostics
# ---------------------------------------------------------------------------


def test_print_reports_levels(ml40, capsys):
    ml40.print()
    out = capsys.readouterr().out
    assert f"Number of Levels:\t{len(ml40.levels)}" in out
    assert "Operator Complexity" in out
    assert "Grid Complexity" in out
    for level in ml40.levels:
        assert f"\t{level.A.shape[0]}\t" in out
    assert repr(ml40) == out


def test_print_info_reports_setup(grid40, capsys):
    ml = smoothed_aggregation_solver(grid40, print_info=True)
    out = capsys.readouterr().out
    assert "rho(D^-1 A)" in out
    assert "coarse_lu" in out
    assert out.count("level=") == len(ml.levels) - 1

    stats = ml.levels[0].stats
    for key in ("strength", "aggregate", "rho", "tentative", "smooth_P", "coarsen", "smoother"):
        assert key in stats.timings
    assert stats.n_coarse == ml.levels[1].A.shape[0]
    assert stats.extra["rho"] == ml.levels[0].rho


def test_verbose_monitor_output(ml40, grid40, capsys):
    b = _rhs(grid40.shape[0], seed=2)
    monitor = VerboseMonitor(b)
    ml40.solve(b, monitor=monitor)
    out = capsys.readouterr().out
    assert "Solver will continue until residual norm" in out
    assert "Successfully converged" in out
    assert "Final residual norm" in out
