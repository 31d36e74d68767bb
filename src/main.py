"""
Exact expectation vs Monte Carlo estimate for the two-bag token exchange.

Usage:
    python src/main.py
    python src/main.py --trial_count 100000 --simulation_id 3 --n_workers 4
"""

import argparse
import hashlib
import sys
from typing import Optional

import bag_exchange
from bag_exchange import compare


def generate_simulation_seed(
    simulation_id: int,
    salt: Optional[str] = None,
    max_seed: int = 2**32 - 1
) -> int:
    id_str = str(simulation_id)
    if salt:
        id_str = f"{salt}_{id_str}"
    hash_int = int(hashlib.sha256(id_str.encode()).hexdigest(), 16)
    return hash_int % (max_seed + 1)


def parse_arguments(argv=None):
    defaults = bag_exchange.DEFAULT_ARGS
    parser = argparse.ArgumentParser(description='Cross-validate the exact and simulated bag exchange')
    parser.add_argument('--bag_a', type=int, nargs='+', default=list(defaults["bag_a"]), help='Initial tokens of bag A')
    parser.add_argument('--bag_b', type=int, nargs='+', default=list(defaults["bag_b"]), help='Initial tokens of bag B')
    parser.add_argument('--steps', type=int, default=defaults["steps"], help='Number of swaps')
    parser.add_argument('--trial_count', type=int, default=defaults["trial_count"], help='Monte Carlo trials')
    parser.add_argument('--simulation_id', type=int, default=None,
                        help='Derive a reproducible seed from this id (default: OS entropy)')
    parser.add_argument('--n_workers', type=int, default=defaults["n_workers"], help='Worker processes')
    parser.add_argument('--sigmas', type=float, default=compare.DEFAULT_SIGMAS,
                        help='Accepted distance in standard errors')
    parser.add_argument('--verbose', action='store_true', help='Show progress bars')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_arguments(argv)
    seed = None if args.simulation_id is None else generate_simulation_seed(args.simulation_id)

    model = bag_exchange.ExchangeModel(args.bag_a, args.bag_b)
    validation = compare.cross_validate(
        model,
        steps=args.steps,
        trial_count=args.trial_count,
        seed=seed,
        n_workers=args.n_workers,
        tolerance_sigmas=args.sigmas,
        verbose=args.verbose,
    )
    print(compare.report(model, validation))
    return 0


if __name__ == "__main__":
    sys.exit(main())
