import numpy as np
import pandas as pd
from scipy import stats

from . import simulation
from .errors import InvalidArgument
from .markov_chain import expectation

DEFAULT_SIGMAS = 5.0
PRECISION = 6


class CrossValidation:
    def __init__(self, dictionary):
        self.__dict__.update(dictionary)

    def __getitem__(self, key):
        return self.__dict__[key]

    def keys(self):
        return self.__dict__.keys()


def compare_estimates(analytical, sample_mean, standard_error, tolerance_sigmas=DEFAULT_SIGMAS):
    """
    Compare an exact expectation with a Monte Carlo estimate.

    Args:
        analytical: Exact expectation
        sample_mean: Monte Carlo sample mean
        standard_error: Standard error of the sample mean
        tolerance_sigmas: Accepted distance in standard errors

    Returns:
        dict with difference, z_score, p_value (two-sided, normal) and agrees
    """
    difference = sample_mean - analytical
    if standard_error > 0:
        z_score = difference / standard_error
        p_value = float(2 * stats.norm.sf(abs(z_score)))
        agrees = abs(difference) <= tolerance_sigmas * standard_error
    else:
        # every trial gave the same value
        agrees = bool(np.isclose(sample_mean, analytical, rtol=0.0, atol=1e-9))
        z_score = 0.0 if agrees else float("inf")
        p_value = 1.0 if agrees else 0.0
    return {
        "difference": difference,
        "z_score": z_score,
        "p_value": p_value,
        "agrees": bool(agrees),
    }


def cross_validate(model, steps, trial_count, seed=None, n_workers=1,
                   tolerance_sigmas=DEFAULT_SIGMAS, verbose=False):
    distribution = model.propagate(steps)
    analytical = expectation(distribution, model.values)

    if n_workers == 1:
        trials = simulation.monte_carlo(model.bag_a, model.bag_b, steps, trial_count,
                                        seed=seed, verbose=verbose)
    else:
        trials = simulation.run_trials_parallel(model.bag_a, model.bag_b, steps, trial_count,
                                                n_workers=n_workers, seed=seed, verbose=verbose)

    result = {
        "steps": steps,
        "trial_count": trials.count,
        "distribution": distribution,
        "analytical": analytical,
        "sample_mean": trials.mean,
        "standard_error": trials.standard_error,
    }
    result.update(compare_estimates(analytical, trials.mean, trials.standard_error, tolerance_sigmas))
    return CrossValidation(result)


def convergence_table(model, steps, trial_counts, seed=None, tolerance_sigmas=DEFAULT_SIGMAS):
    """Sample mean against trial count, one independent stream per row."""
    if len(trial_counts) == 0:
        raise InvalidArgument("trial_counts is empty")
    analytical = model.expectation(steps)
    seed_sequences = np.random.SeedSequence(seed).spawn(len(trial_counts))
    rows = []
    for trial_count, seed_sequence in zip(trial_counts, seed_sequences):
        trials = simulation.monte_carlo(model.bag_a, model.bag_b, steps, trial_count,
                                        rng=np.random.default_rng(seed_sequence))
        abs_error = abs(trials.mean - analytical)
        bound = tolerance_sigmas * trials.standard_error
        rows.append({
            "trial_count": trial_count,
            "sample_mean": trials.mean,
            "standard_error": trials.standard_error,
            "abs_error": abs_error,
            "bound": bound,
            "within_bound": abs_error <= bound,
        })
    return pd.DataFrame(rows)


# ============================================================================
# Report
# ============================================================================

def format_vector(vec, precision=PRECISION):
    return "[ " + " ".join(f"{val:.{precision}f}" for val in vec) + " ]"


def format_matrix(mat, precision=PRECISION):
    return "\n".join(format_vector(row, precision) for row in mat)


def report(model, validation, precision=PRECISION):
    lines = [
        "Transition matrix P:",
        format_matrix(model.transition_matrix, precision),
        "-" * 42,
        f"Distribution after {validation.steps} steps:",
        format_vector(validation.distribution, precision),
        "-" * 42,
        f"Exact expectation of bag A after {validation.steps} steps: {validation.analytical:.{precision}f}",
        "",
        f"Monte Carlo mean over {validation.trial_count} trials: {validation.sample_mean:.{precision}f}",
        f"  standard error: {validation.standard_error:.{precision}f}",
        f"  z = {validation.z_score:.3f}, p = {validation.p_value:.3g}",
        "  ✓ agrees" if validation.agrees else "  ✗ does not agree",
    ]
    return "\n".join(lines)
