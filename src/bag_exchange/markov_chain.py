import numbers

import numpy as np
import sympy
from sympy import Matrix, symbols

from .errors import ConfigurationError, DimensionMismatch, InternalConsistencyError, InvalidArgument

TOLERANCE = 1e-9


# ============================================================================
# 1. Validation
# ============================================================================

def check_transition_matrix(matrix, tol=TOLERANCE):
    """
    Validate a right-stochastic matrix and return it as a float array.

    Args:
        matrix: Array-like of shape (n, n)
        tol: Allowed deviation of each row sum from 1

    Returns:
        np.ndarray copy of the matrix

    Raises:
        ConfigurationError: non-square, entries outside [0, 1], or a row
            that does not sum to 1
    """
    matrix = np.array(matrix, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ConfigurationError(f"Transition matrix must be square, got shape {matrix.shape}")
    if matrix.shape[0] == 0:
        raise ConfigurationError("Transition matrix is empty")
    if np.any(matrix < -tol) or np.any(matrix > 1 + tol):
        raise ConfigurationError("Transition matrix entries must lie in [0, 1]")
    row_sums = matrix.sum(axis=1)
    for i, row_sum in enumerate(row_sums):
        if abs(row_sum - 1.0) > tol:
            raise ConfigurationError(f"Row {i} of the transition matrix sums to {row_sum!r}, not 1")
    return matrix


def check_distribution(distribution, tol=TOLERANCE, error=ConfigurationError):
    distribution = np.array(distribution, dtype=float)
    if distribution.ndim != 1:
        raise error(f"Distribution must be a vector, got shape {distribution.shape}")
    if np.any(distribution < -tol):
        raise error(f"Distribution has negative entries: {distribution}")
    total = distribution.sum()
    if abs(total - 1.0) > tol:
        raise error(f"Distribution sums to {total!r}, not 1")
    return distribution


def _read_only(array):
    array = np.array(array, dtype=float)
    array.flags.writeable = False
    return array


# ============================================================================
# 2. Propagation
# ============================================================================

def propagate(distribution, matrix, steps, recorder=None, tol=TOLERANCE):
    """
    Push a row distribution through ``steps`` transitions: pi_{k+1} = pi_k P.

    Neither argument is modified; every step allocates a new vector.

    Args:
        distribution: Probability vector of length n
        matrix: (n, n) right-stochastic matrix
        steps: Non-negative number of transitions
        recorder: Optional callable, called as ``recorder(distribution=...)``
            at step 0 and after every step
        tol: Tolerance on the per-step distribution check

    Returns:
        Distribution after exactly ``steps`` transitions
    """
    distribution = np.array(distribution, dtype=float)
    matrix = np.asarray(matrix, dtype=float)
    if distribution.ndim != 1 or matrix.ndim != 2:
        raise DimensionMismatch(
            f"Expected a vector and a matrix, got shapes {distribution.shape} and {matrix.shape}"
        )
    if not (len(distribution) == matrix.shape[0] == matrix.shape[1]):
        raise DimensionMismatch(
            f"Distribution of length {len(distribution)} does not fit a {matrix.shape} matrix"
        )
    if isinstance(steps, bool) or not isinstance(steps, numbers.Integral) or steps < 0:
        raise InvalidArgument(f"steps must be a non-negative integer, got {steps!r}")
    distribution = check_distribution(distribution, tol=tol, error=ConfigurationError)

    if recorder is not None:
        recorder(distribution=distribution)
    for step in range(steps):
        next_distribution = distribution @ matrix
        if np.any(next_distribution < -tol) or abs(next_distribution.sum() - 1.0) > tol:
            raise InternalConsistencyError(
                f"Distribution left tolerance at step {step + 1}: {next_distribution} "
                f"(sum={next_distribution.sum()!r})"
            )
        distribution = next_distribution
        if recorder is not None:
            recorder(distribution=distribution)
    return distribution


def expectation(distribution, values):
    distribution = np.asarray(distribution, dtype=float)
    values = np.asarray(values, dtype=float)
    if distribution.shape != values.shape:
        raise DimensionMismatch(
            f"Distribution shape {distribution.shape} does not match value map shape {values.shape}"
        )
    return float(np.dot(distribution, values))


def stationary_distribution(matrix):
    """Numerical solution of pi (P - I) = 0 with sum(pi) = 1."""
    matrix = check_transition_matrix(matrix)
    n = matrix.shape[0]
    A = np.vstack([(matrix - np.identity(n)).T, np.ones(n)])
    b = np.zeros(n + 1)
    b[-1] = 1.0
    if np.linalg.matrix_rank(A) < n:
        raise ConfigurationError("Stationary distribution is not unique")
    pi, *_ = np.linalg.lstsq(A, b, rcond=None)
    pi[np.abs(pi) < TOLERANCE] = 0.0
    return pi


# ============================================================================
# 3. Exact (rational) counterparts
# ============================================================================

def propagate_exact(distribution, matrix: Matrix, steps: int) -> Matrix:
    """
    Rational propagation with sympy; returns a 1×n row Matrix.
    """
    pi = Matrix([list(distribution)]) if not isinstance(distribution, Matrix) else distribution
    if pi.shape[0] != 1:
        pi = pi.T
    if pi.shape[1] != matrix.shape[0] or matrix.shape[0] != matrix.shape[1]:
        raise DimensionMismatch(f"Distribution {pi.shape} does not fit a {matrix.shape} matrix")
    if steps < 0:
        raise InvalidArgument(f"steps must be non-negative, got {steps}")
    for _ in range(steps):
        pi = pi * matrix
    return pi


def expectation_exact(distribution: Matrix, values) -> sympy.Expr:
    if len(distribution) != len(values):
        raise DimensionMismatch(f"Distribution of length {len(distribution)} vs {len(values)} values")
    return sum((p * sympy.nsimplify(v) for p, v in zip(distribution, values)), sympy.Integer(0))


def stationary_distribution_exact(P: Matrix) -> Matrix:
    """
    Find the stationary distribution of P with exact arithmetic.

    Solved as the linear system (P^T - I) pi = 0 with one equation replaced
    by the normalization sum(pi) = 1.

    Args:
        P: Transition matrix with rational entries

    Returns:
        Stationary distribution as a column Matrix
    """
    n = P.shape[0]
    pi_vars = symbols(f'pi_0:{n}')
    A = P.T - sympy.eye(n)

    equations = [sum(A[i, j] * pi_vars[j] for j in range(n)) for i in range(n - 1)]
    equations.append(sum(pi_vars) - 1)

    solution = sympy.solve(equations, pi_vars, dict=True)
    if not solution:
        raise ConfigurationError("No stationary distribution found")
    solution = solution[0]
    if any(var not in solution or solution[var].free_symbols for var in pi_vars):
        raise ConfigurationError("Stationary distribution is not unique")
    return Matrix([sympy.simplify(solution[pi_vars[i]]) for i in range(n)])


# ============================================================================
# 4. Chain
# ============================================================================

class MarkovChain:
    """A validated (matrix, value map, initial distribution) triple."""

    def __init__(self, transition_matrix, values, initial_distribution, tol=TOLERANCE):
        matrix = check_transition_matrix(transition_matrix, tol=tol)
        values = np.asarray(values, dtype=float)
        initial_distribution = check_distribution(initial_distribution, tol=tol)
        n = matrix.shape[0]
        if values.shape != (n,):
            raise ConfigurationError(f"Value map has shape {values.shape}, expected ({n},)")
        if initial_distribution.shape != (n,):
            raise ConfigurationError(
                f"Initial distribution has shape {initial_distribution.shape}, expected ({n},)"
            )
        self.__transition_matrix = _read_only(matrix)
        self.__values = _read_only(values)
        self.__initial_distribution = _read_only(initial_distribution)
        self.__tol = tol

    def propagate(self, steps, recorder=None):
        return propagate(self.__initial_distribution, self.__transition_matrix, steps,
                         recorder=recorder, tol=self.__tol)

    def expectation(self, steps):
        return expectation(self.propagate(steps), self.__values)

    def stationary_distribution(self):
        return stationary_distribution(self.__transition_matrix)

    @property
    def transition_matrix(self) -> np.ndarray:
        return self.__transition_matrix

    @property
    def values(self) -> np.ndarray:
        return self.__values

    @property
    def initial_distribution(self) -> np.ndarray:
        return self.__initial_distribution

    @property
    def states_count(self) -> int:
        return self.__transition_matrix.shape[0]
