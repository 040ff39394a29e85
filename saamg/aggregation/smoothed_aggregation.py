"""Smoothed aggregation AMG solver.

The hierarchy is built once from a symmetric sparse matrix A and an optional
near-null-space vector B (all ones by default):

    ml = smoothed_aggregation_solver(A, theta=0.0)
    x = ml.solve(b)                   # stationary iteration, one V-cycle per step
    x = ml(b)                         # exactly one V-cycle
    M = ml.aspreconditioner()         # one V-cycle per matvec, for Krylov methods

Setup repeatedly extends the hierarchy (`sa.hierarchy.sa_extend_hierarchy`)
until the coarsest operator has at most `max_coarse` rows, the level cap is
reached or aggregation can no longer reduce a level, then factorizes it
densely (`sa.coarse.DenseLUSolver`).
"""

from __future__ import annotations

import time
from warnings import warn

import numpy as np
from scipy.sparse import csr_array, issparse, SparseEfficiencyWarning
from scipy.sparse.linalg import LinearOperator

from pyamg.util.utils import asfptype

from .sa.coarse import DenseLUSolver
from .sa.hierarchy import sa_extend_hierarchy, setup_level_matrix
from .sa.monitor import DefaultMonitor
from .sa.stats import _sa_format_hierarchy, _sa_print_hierarchy, _sa_print_setup_summary
from .sa.types import Level, SAConfig


class SmoothedAggregationSolver:
    """Multilevel hierarchy and V-cycle solver built by smoothed aggregation.

    Parameters
    ----------
    A : sparse matrix
        Symmetric operator, converted to CSR when needed. The caller's matrix
        is copied and never modified.
    B : array_like, optional
        Near-null-space vector of length n (defaults to all ones).
    config : SAConfig, optional
        Hierarchy configuration.

    Attributes
    ----------
    levels : list of Level
        Levels ordered fine to coarse; `levels[0]` holds the input system.
    LU : DenseLUSolver
        Factorization of the coarsest operator.
    theta : float
        Strength-of-connection drop tolerance.
    """

    def __init__(self, A, B=None, config: SAConfig | None = None):
        self.config = config if config is not None else SAConfig()
        self.theta = self.config.theta
        self.levels: list[Level] = []
        self.LU = None
        self._init(A, B)

    def _init(self, A, B):
        if not issparse(A) or A.format != 'csr':
            try:
                A = csr_array(A)
                warn('Implicit conversion of A to CSR', SparseEfficiencyWarning)
            except Exception as e:
                raise TypeError('Argument A must have type csr_array, '
                                'or be convertible to csr_array') from e

        if A.shape[0] != A.shape[1]:
            raise ValueError('expected square matrix')

        A = asfptype(A)
        A = csr_array(A, dtype=np.result_type(A.dtype, np.float64), copy=True)
        A.eliminate_zeros()
        A.sort_indices()
        n = A.shape[0]

        if B is None:
            B = np.ones(n, dtype=A.dtype)
        else:
            B = np.asarray(B, dtype=A.dtype)
            if B.ndim == 2 and B.shape[1] == 1:
                B = B[:, 0]
            if B.ndim != 1 or B.shape[0] != n:
                raise ValueError(f'expected near-null-space vector of length {n}, '
                                 f'got shape {B.shape}')
            B = B.copy()

        cfg = self.config
        self.levels.append(Level(A_=A, B=B))

        while len(self.levels) < cfg.max_levels and \
                self.levels[-1].A_.shape[0] > cfg.max_coarse:
            if sa_extend_hierarchy(levels=self.levels, config=cfg):
                break

        coarsest = self.levels[-1].A_
        if coarsest.shape[0] > cfg.max_coarse:
            warn(f'coarsening stopped after {len(self.levels)} levels '
                 f'(max_levels={cfg.max_levels}) with {coarsest.shape[0]} rows '
                 f'on the coarsest level (max_coarse={cfg.max_coarse}); '
                 'the coarse solve is dense')

        t0 = time.perf_counter()
        self.LU = DenseLUSolver(coarsest)
        _sa_print_setup_summary(coarse_setup_time=time.perf_counter() - t0,
                                n_coarse=coarsest.shape[0],
                                print_info=cfg.print_info)

        # level 0 never shares storage with its setup operator
        self.levels[0].A = setup_level_matrix(self.levels[0].A_, cfg.solve_format, copy=True)
        for level in self.levels[1:]:
            level.A = setup_level_matrix(level.A_, cfg.solve_format)

    def __repr__(self):
        return self._report()

    def _report(self) -> str:
        return _sa_format_hierarchy(
            n_rows=[level.A.shape[0] for level in self.levels],
            n_cols=[level.A.shape[1] for level in self.levels],
            nnz=[level.A.nnz for level in self.levels],
            operator_complexity=self.operator_complexity(),
            grid_complexity=self.grid_complexity(),
        )

    def print(self):
        """Print the number of levels, complexities and the per-level table."""
        _sa_print_hierarchy(self._report())

    def operator_complexity(self) -> float:
        """Return the sum of nonzeros over all levels divided by the level-0 nonzeros."""
        nnz = sum(level.A.nnz for level in self.levels)
        return float(nnz) / float(self.levels[0].A.nnz)

    def grid_complexity(self) -> float:
        """Return the sum of rows over all levels divided by the level-0 rows."""
        unknowns = sum(level.A.shape[0] for level in self.levels)
        return float(unknowns) / float(self.levels[0].A.shape[0])

    def _as_vector(self, v, name):
        n = self.levels[0].A.shape[0]
        v = np.asarray(v)
        if v.ndim == 2 and v.shape[1] == 1:
            v = v[:, 0]
        if v.shape != (n,):
            raise ValueError(f'{name} has invalid dimensions {v.shape}, expected ({n},)')
        return v

    def _solve(self, b, x, i):
        """Apply one V-cycle on level i to A_i x = b, updating x in place."""
        levels = self.levels

        if i + 1 == len(levels):
            x[:] = self.LU(b)
            return

        level = levels[i]
        coarse = levels[i + 1]

        level.smoother.presmooth(level.A, b, x)

        np.subtract(b, level.A @ x, out=level.residual)

        coarse.b[:] = level.R @ level.residual

        coarse.x.fill(0)
        self._solve(coarse.b, coarse.x, i + 1)

        level.residual[:] = level.P @ coarse.x
        x += level.residual

        level.smoother.postsmooth(level.A, b, x)

    def __call__(self, b, x=None):
        """Apply exactly one V-cycle to A x = b and return x.

        Parameters
        ----------
        b : array_like
            Right-hand side of length n.
        x : ndarray, optional
            Initial guess, updated in place. Defaults to zeros.
        """
        A = self.levels[0].A
        b = np.asarray(self._as_vector(b, 'b'), dtype=A.dtype)
        if x is None:
            x = np.zeros(A.shape[0], dtype=A.dtype)
        else:
            x = self._as_vector(x, 'x')
            if x.dtype != A.dtype:
                raise TypeError(f'x must have dtype {A.dtype}, got {x.dtype}')
        self._solve(b, x, 0)
        return x

    def aspreconditioner(self):
        """Return a LinearOperator applying one V-cycle from a zero initial guess."""
        A = self.levels[0].A

        def matvec(b):
            return self(np.ravel(b))

        return LinearOperator(A.shape, matvec=matvec, rmatvec=matvec, dtype=A.dtype)

    def solve(self, b, x=None, monitor=None):
        """Solve A x = b by stationary iteration with one V-cycle per step.

        Parameters
        ----------
        b : array_like
            Right-hand side of length n.
        x : ndarray, optional
            Initial guess, updated in place. Defaults to zeros.
        monitor : DefaultMonitor, optional
            Convergence monitor; `DefaultMonitor(b)` when omitted.

        Returns
        -------
        x : ndarray
            Approximate solution.
        """
        A = self.levels[0].A
        n = A.shape[0]
        b = np.asarray(self._as_vector(b, 'b'), dtype=A.dtype)
        if x is None:
            x = np.zeros(n, dtype=A.dtype)
        else:
            x = self._as_vector(x, 'x')
            if x.dtype != A.dtype:
                raise TypeError(f'x must have dtype {A.dtype}, got {x.dtype}')
        if monitor is None:
            monitor = DefaultMonitor(b)

        update = np.zeros(n, dtype=A.dtype)
        residual = np.zeros(n, dtype=A.dtype)

        np.subtract(b, A @ x, out=residual)

        while not monitor.finished(residual):
            update.fill(0)
            self._solve(residual, update, 0)

            x += update

            np.subtract(b, A @ x, out=residual)
            monitor.advance()

        return x


def smoothed_aggregation_solver(A, B=None, theta=0.0, *,
                                max_coarse=100,
                                max_levels=20,
                                smoother='jacobi',
                                solve_format='csr',
                                rho_iterations=8,
                                prolongation_omega=4.0 / 3.0,
                                print_info=False):
    """Create a smoothed aggregation hierarchy for A.

    Parameters
    ----------
    A : sparse matrix
        Symmetric (positive semi-definite) operator of size n.
    B : array_like, optional
        Near-null-space vector of length n. Defaults to all ones.
    theta : float
        Drop tolerance for symmetric strength of connection.
    max_coarse : int
        Coarsening stops once a level has at most this many rows.
    max_levels : int
        Maximum number of levels.
    smoother : {'jacobi', 'gauss_seidel', 'multicolor_gauss_seidel'}
        Pre/post smoother used on every level but the coarsest.
    solve_format : {'csr', 'bsr'}
        Sparse format of the operators applied during the solve phase.
    rho_iterations : int
        Ritz iterations used to estimate rho(D^-1 A).
    prolongation_omega : float
        Prolongation damping numerator.
    print_info : bool
        Print per-level setup summaries.

    Returns
    -------
    SmoothedAggregationSolver

    Examples
    --------
    >>> import numpy as np
    >>> from pyamg.gallery import poisson
    >>> from saamg.aggregation import smoothed_aggregation_solver
    >>> A = poisson((40, 40), format='csr')
    >>> ml = smoothed_aggregation_solver(A)
    >>> x = ml.solve(np.ones(A.shape[0]))
    """
    config = SAConfig(
        theta=theta,
        max_coarse=max_coarse,
        max_levels=max_levels,
        rho_iterations=rho_iterations,
        prolongation_omega=prolongation_omega,
        smoother=smoother,
        solve_format=solve_format,
        print_info=print_info,
    )
    return SmoothedAggregationSolver(A, B, config)
