from . import compare, errors, markov_chain, recorders, simulation, states
from .errors import ConfigurationError, DimensionMismatch, InternalConsistencyError, InvalidArgument
from .markov_chain import MarkovChain, expectation, propagate
from .simulation import run_trials
from .states import ExchangeModel

BAG_A = (1, 5)
BAG_B = (1, 3, 5)
STEPS = 3
TRIAL_COUNT = 500000

DEFAULT_ARGS = {
    "simulate_type": "markov_chain",
    "bag_a": BAG_A,
    "bag_b": BAG_B,
    "steps": STEPS,
    "trial_count": TRIAL_COUNT,
    "seed": None,
    "n_workers": 1,
    "recorder": None,
    "verbose": False,
}


def simulate(args=None):
    if args is None:
        args = {}
    args = {**DEFAULT_ARGS, **args}
    simulate_type = args.get("simulate_type")
    bag_a = args.get("bag_a")
    bag_b = args.get("bag_b")
    steps = args.get("steps")
    trial_count = args.get("trial_count")
    seed = args.get("seed")
    n_workers = args.get("n_workers")
    recorder = args.get("recorder")
    verbose = args.get("verbose")

    if simulate_type == "markov_chain":
        model = ExchangeModel(bag_a, bag_b)
        if type(recorder) == str:
            if recorder != "distribution":
                raise ValueError(f"Recorder {recorder!r} cannot record a markov_chain run, use 'distribution'")
            recorder = recorders.recorder(recorder_type=recorder, simulation_count=steps + 1)
        distribution = model.propagate(steps, recorder=recorder)
        if recorder is not None:
            return recorder
        return distribution
    elif simulate_type == "monte_carlo":
        if n_workers == 1:
            return simulation.monte_carlo(bag_a, bag_b, steps, trial_count, seed=seed, verbose=verbose)
        return simulation.run_trials_parallel(bag_a, bag_b, steps, trial_count,
                                              n_workers=n_workers, seed=seed, verbose=verbose)
    else:
        raise ValueError(f"simulate_type must be 'markov_chain' or 'monte_carlo', got {simulate_type!r}")
