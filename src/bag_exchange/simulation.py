"""
Monte Carlo simulation of the two-bag token exchange.

Works on concrete bags of tokens only and never looks at the transition
matrix, so its sample mean is an independent estimate of the exact
expectation.
"""

import multiprocessing as mp
import numbers
from typing import List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from .errors import InvalidArgument
from .recorders import TrialRecorder

# upper bound on picks per bag drawn at once (trials x steps)
BLOCK_SIZE = 1 << 16


def _check_count(name, value):
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value <= 0:
        raise InvalidArgument(f"{name} must be a positive integer, got {value!r}")


def _check_bags(initial_a, initial_b):
    if len(initial_a) == 0 or len(initial_b) == 0:
        raise InvalidArgument(f"Both bags need at least one token, got {list(initial_a)} and {list(initial_b)}")


def make_rng(rng=None, seed=None) -> np.random.Generator:
    if rng is not None:
        return rng
    return np.random.default_rng(seed)


def swap(bag_a: List[int], bag_b: List[int], index_a: int, index_b: int) -> None:
    bag_a[index_a], bag_b[index_b] = bag_b[index_b], bag_a[index_a]


def run_trial(
    initial_a: Sequence[int],
    initial_b: Sequence[int],
    steps: int,
    rng: np.random.Generator,
    recorder=None,
) -> Tuple[List[int], List[int]]:
    """
    Run one trial from fresh copies of the initial bags.

    Args:
        initial_a: Initial tokens of bag A (not modified)
        initial_b: Initial tokens of bag B (not modified)
        steps: Number of swaps
        rng: Random generator owned by the caller
        recorder: Optional callable, called as
            ``recorder(bag_a=..., bag_b=...)`` after every swap

    Returns:
        (bag_a, bag_b) after the last swap
    """
    bag_a = list(initial_a)
    bag_b = list(initial_b)
    picks_a = rng.integers(0, len(bag_a), size=steps).tolist()
    picks_b = rng.integers(0, len(bag_b), size=steps).tolist()
    for index_a, index_b in zip(picks_a, picks_b):
        swap(bag_a, bag_b, index_a, index_b)
        if recorder is not None:
            recorder(bag_a=bag_a, bag_b=bag_b)
    return bag_a, bag_b


def _simulate_block(initial_a, initial_b, steps, trial_count, rng, recorder):
    picks_a = rng.integers(0, len(initial_a), size=(trial_count, steps)).tolist()
    picks_b = rng.integers(0, len(initial_b), size=(trial_count, steps)).tolist()
    for trial_picks_a, trial_picks_b in zip(picks_a, picks_b):
        bag_a = list(initial_a)
        bag_b = list(initial_b)
        for index_a, index_b in zip(trial_picks_a, trial_picks_b):
            bag_a[index_a], bag_b[index_b] = bag_b[index_b], bag_a[index_a]
        recorder(sum(bag_a))


def monte_carlo(
    initial_a: Sequence[int],
    initial_b: Sequence[int],
    steps_per_trial: int,
    trial_count: int,
    rng: Optional[np.random.Generator] = None,
    seed=None,
    verbose: bool = False,
) -> TrialRecorder:
    """
    Run ``trial_count`` independent trials and accumulate bag A's total.

    Random picks are drawn in blocks; bags are rebuilt from the initial
    contents for every trial.

    Returns:
        TrialRecorder with count, mean, variance and standard error
    """
    _check_count("trial_count", trial_count)
    _check_count("steps_per_trial", steps_per_trial)
    _check_bags(initial_a, initial_b)
    rng = make_rng(rng, seed)

    recorder = TrialRecorder()
    remaining = trial_count
    with tqdm(total=trial_count, desc="Simulating", disable=not verbose) as pbar:
        while remaining > 0:
            block = min(max(1, BLOCK_SIZE // steps_per_trial), remaining)
            _simulate_block(initial_a, initial_b, steps_per_trial, block, rng, recorder)
            remaining -= block
            pbar.update(block)
    return recorder


def run_trials(
    initial_a: Sequence[int],
    initial_b: Sequence[int],
    steps_per_trial: int,
    trial_count: int,
    rng: Optional[np.random.Generator] = None,
    seed=None,
    verbose: bool = False,
) -> float:
    """Sample mean of bag A's total over ``trial_count`` trials."""
    return monte_carlo(initial_a, initial_b, steps_per_trial, trial_count,
                       rng=rng, seed=seed, verbose=verbose).mean


def _simulate_worker(args_tuple):
    initial_a, initial_b, steps, trial_count, seed_sequence = args_tuple
    recorder = monte_carlo(initial_a, initial_b, steps, trial_count,
                           rng=np.random.default_rng(seed_sequence))
    return recorder.count, recorder.total, recorder.total_squares


def split_trials(trial_count: int, n_workers: int) -> List[int]:
    base, extra = divmod(trial_count, n_workers)
    chunks = [base + 1] * extra + [base] * (n_workers - extra)
    return [chunk for chunk in chunks if chunk > 0]


def run_trials_parallel(
    initial_a: Sequence[int],
    initial_b: Sequence[int],
    steps_per_trial: int,
    trial_count: int,
    n_workers: Optional[int] = None,
    seed=None,
    verbose: bool = False,
) -> TrialRecorder:
    """
    Spread the trials over a process pool.

    Each worker gets its own generator spawned from ``SeedSequence(seed)``
    and returns a private subtotal; subtotals are merged in worker order,
    so a fixed seed and worker count reproduce the same result.

    Args:
        initial_a, initial_b: Initial bag contents
        steps_per_trial: Swaps per trial
        trial_count: Total number of trials over all workers
        n_workers: Pool size (default: cpu count)
        seed: Root seed; None draws fresh OS entropy
        verbose: Show a progress bar over finished workers

    Returns:
        Merged TrialRecorder
    """
    _check_count("trial_count", trial_count)
    _check_count("steps_per_trial", steps_per_trial)
    _check_bags(initial_a, initial_b)
    if n_workers is None:
        n_workers = mp.cpu_count()
    _check_count("n_workers", n_workers)

    chunks = split_trials(trial_count, n_workers)
    seed_sequences = np.random.SeedSequence(seed).spawn(len(chunks))
    process_args = [
        (tuple(initial_a), tuple(initial_b), steps_per_trial, chunk, seed_sequence)
        for chunk, seed_sequence in zip(chunks, seed_sequences)
    ]

    recorder = TrialRecorder()
    if len(process_args) == 1:
        results = [_simulate_worker(process_args[0])]
    else:
        with mp.Pool(processes=len(process_args)) as pool:
            results = list(tqdm(
                pool.imap(_simulate_worker, process_args),
                total=len(process_args),
                desc="Workers",
                disable=not verbose,
            ))
    for count, total, total_squares in results:
        recorder = recorder + TrialRecorder(count, total, total_squares)
    return recorder
