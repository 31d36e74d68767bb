"""
State space of the two-bag token exchange.

A state is the content of bag A, as a sorted tuple, after any number of
one-for-one swaps with bag B. Bag B's content is whatever is left of the
combined tokens, so bag A alone identifies the state. One swap picks one of
the |A| positions of bag A and, independently, one of the |B| positions of
bag B, all uniformly, so each step has |A|·|B| equally likely outcomes.
"""

import itertools
from collections import Counter
from typing import Dict, Iterator, List, Sequence, Tuple

import numpy as np
import sympy
from sympy import Matrix, Rational

from .errors import ConfigurationError, InvalidArgument
from .markov_chain import MarkovChain, TOLERANCE, expectation_exact, propagate_exact, stationary_distribution_exact

State = Tuple[int, ...]


def combine_tokens(bag_a: Sequence[int], bag_b: Sequence[int]) -> Tuple[int, ...]:
    if len(bag_a) == 0 or len(bag_b) == 0:
        raise InvalidArgument(f"Both bags need at least one token, got {list(bag_a)} and {list(bag_b)}")
    return tuple(sorted(list(bag_a) + list(bag_b)))


def remove_tokens(tokens: Sequence[int], removed: Sequence[int]) -> Tuple[int, ...]:
    """Multiset difference ``tokens - removed``, sorted."""
    rest = Counter(tokens)
    rest.subtract(removed)
    if any(count < 0 for count in rest.values()):
        raise ConfigurationError(f"{list(removed)} is not a sub-multiset of {list(tokens)}")
    return tuple(sorted(rest.elements()))


def possible_states(bag_a: Sequence[int], bag_b: Sequence[int]) -> List[State]:
    """
    Enumerate every content bag A can reach.

    Args:
        bag_a: Initial tokens of bag A
        bag_b: Initial tokens of bag B

    Returns:
        Distinct sorted sub-multisets of size len(bag_a) of the combined
        tokens, ordered by total value and then by content

    Example:
        possible_states([1, 5], [1, 3, 5]) -->
            [(1, 1), (1, 3), (1, 5), (3, 5), (5, 5)]
    """
    tokens = combine_tokens(bag_a, bag_b)
    states = set(itertools.combinations(tokens, len(bag_a)))
    return sorted(states, key=lambda state: (sum(state), state))


def swap_outcomes(state: State, tokens: Sequence[int]) -> Iterator[State]:
    """
    Yield the bag-A content after each of the |A|·|B| equally likely swaps.

    Args:
        state: Current content of bag A
        tokens: Combined tokens of both bags

    Yields:
        Sorted content of bag A after swapping position i of A with
        position j of B, for every (i, j)
    """
    bag_b = remove_tokens(tokens, state)
    for i in range(len(state)):
        for j in range(len(bag_b)):
            new_state = list(state)
            new_state[i] = bag_b[j]
            yield tuple(sorted(new_state))


def exact_transition_matrix(states: List[State], tokens: Sequence[int]) -> Matrix:
    """
    Build the transition matrix from the swap combinatorics.

    P[s, d] = (number of swaps taking state s to state d) / (|A|·|B|)

    Args:
        states: State enumeration from possible_states
        tokens: Combined tokens of both bags

    Returns:
        sympy Matrix with Rational entries

    Raises:
        ConfigurationError: a swap leaves the enumeration, an entry is not a
            multiple of 1/(|A|·|B|), or a row does not sum to 1
    """
    n = len(states)
    index: Dict[State, int] = {state: k for k, state in enumerate(states)}
    size_a = len(states[0])
    outcomes_count = size_a * (len(tokens) - size_a)
    quantum = Rational(1, outcomes_count)

    P = sympy.zeros(n, n)
    for s, state in enumerate(states):
        counts = Counter(swap_outcomes(state, tokens))
        for destination, count in counts.items():
            if destination not in index:
                raise ConfigurationError(f"Swap from {state} reaches unknown state {destination}")
            P[s, index[destination]] = Rational(count, outcomes_count)

    for s in range(n):
        for d in range(n):
            if not (P[s, d] / quantum).is_integer:
                raise ConfigurationError(f"P[{s},{d}] = {P[s, d]} is not a multiple of {quantum}")
        row_sum = sum(P.row(s))
        if row_sum != 1:
            raise ConfigurationError(f"Row {s} sums to {row_sum}, not 1")
    return P


def state_values(states: List[State]) -> np.ndarray:
    return np.array([sum(state) for state in states], dtype=float)


def initial_distribution(states: List[State], bag_a: Sequence[int]) -> np.ndarray:
    start = tuple(sorted(bag_a))
    if start not in states:
        raise ConfigurationError(f"Initial bag A {start} is not one of the states")
    pi = np.zeros(len(states))
    pi[states.index(start)] = 1.0
    return pi


def state_to_string(state: State, tokens: Sequence[int]) -> str:
    bag_b = remove_tokens(tokens, state)
    return "A{" + ",".join(map(str, state)) + "} B{" + ",".join(map(str, bag_b)) + "}"


class ExchangeModel(MarkovChain):
    """Markov chain of bag A's content, derived from the two initial bags."""

    def __init__(self, bag_a: Sequence[int], bag_b: Sequence[int], tol: float = TOLERANCE):
        tokens = combine_tokens(bag_a, bag_b)
        states = possible_states(bag_a, bag_b)
        P = exact_transition_matrix(states, tokens)
        super().__init__(
            transition_matrix=np.array(P.tolist(), dtype=float),
            values=state_values(states),
            initial_distribution=initial_distribution(states, bag_a),
            tol=tol,
        )
        self.__bag_a = tuple(bag_a)
        self.__bag_b = tuple(bag_b)
        self.__tokens = tokens
        self.__states = states
        self.__exact_matrix = P

    def state_index(self, bag_a: Sequence[int]) -> int:
        return self.__states.index(tuple(sorted(bag_a)))

    def exact_initial_distribution(self) -> Matrix:
        return Matrix([[Rational(int(p)) for p in self.initial_distribution]])

    def propagate_exact(self, steps: int) -> Matrix:
        return propagate_exact(self.exact_initial_distribution(), self.__exact_matrix, steps)

    def expectation_exact(self, steps: int) -> sympy.Expr:
        return expectation_exact(self.propagate_exact(steps), [sum(s) for s in self.__states])

    def stationary_distribution_exact(self) -> Matrix:
        return stationary_distribution_exact(self.__exact_matrix)

    def describe_states(self) -> List[str]:
        return [state_to_string(state, self.__tokens) for state in self.__states]

    @property
    def bag_a(self) -> Tuple[int, ...]:
        return self.__bag_a

    @property
    def bag_b(self) -> Tuple[int, ...]:
        return self.__bag_b

    @property
    def tokens(self) -> Tuple[int, ...]:
        return self.__tokens

    @property
    def total_value(self) -> int:
        return sum(self.__tokens)

    @property
    def states(self) -> List[State]:
        return list(self.__states)

    @property
    def exact_matrix(self) -> Matrix:
        return self.__exact_matrix.copy()
