"""
Parameter Sweep Runner
======================

Runs every (parameter set, repetition) pair as an independent work unit on a
process pool and reduces the boolean outcomes of each parameter set into
P(disruption) and P(compromise).

Work units carry their indices; results are gathered by index, so the output
order always matches the input order regardless of completion order.
"""

import argparse
from dataclasses import dataclass
import logging
import multiprocessing
from typing import List, Optional, Sequence, Tuple

import numpy as np
from tabulate import tabulate

from .args import RelOrAbs, SweepInputs, parse_values
from .attack import ChurnSimulator, RunOutcome, warn_if_slow_init
from .config import (
    DEFAULT_REPETITIONS,
    RANDOM_SEED,
    ConfigError,
    SimParams,
    run_rng,
)
from .quorum import Quorum, QuorumKind

logger = logging.getLogger(__name__)

PARAM_TITLES = [
    "NInitial",
    "NAttack",
    "MaxJoin",
    "BackJoin",
    "PLeave",
    "MinGroup",
    "QuorumProp",
    "MaxSteps",
    "P(disruption)",
    "P(compromise)",
]


@dataclass(frozen=True)
class SimResult:
    """Fractions of runs in which each event occurred."""
    p_disrupt: float
    p_compromise: float
    repetitions: int = 0

    @classmethod
    def from_outcomes(cls, outcomes: Sequence[RunOutcome]) -> 'SimResult':
        if not outcomes:
            raise ValueError("cannot reduce an empty set of runs")
        disrupted = np.array([o.disrupted for o in outcomes], dtype=float)
        compromised = np.array([o.compromised for o in outcomes], dtype=float)
        return cls(
            p_disrupt=float(np.mean(disrupted)),
            p_compromise=float(np.mean(compromised)),
            repetitions=len(outcomes),
        )


@dataclass(frozen=True)
class ParameterSweepRecord:
    params: SimParams
    result: SimResult

    def to_table_row(self) -> List:
        return self.params.to_row() + [
            f"{self.result.p_disrupt:.4f}",
            f"{self.result.p_compromise:.4f}",
        ]


@dataclass(frozen=True)
class WorkUnit:
    param_index: int
    repetition: int
    params: SimParams
    quorum_kind: QuorumKind
    any_group: bool
    disruption_limit: Optional[int]
    seed: int


def _run_unit(unit: WorkUnit) -> Tuple[int, int, RunOutcome]:
    """Module-level so the pool can pickle it."""
    quorum = Quorum(unit.quorum_kind, unit.params.quorum_prop)
    sim = ChurnSimulator(unit.params, quorum, unit.any_group, unit.disruption_limit,
                         warn=False)
    outcome = sim.run(run_rng(unit.seed, unit.param_index, unit.repetition))
    return unit.param_index, unit.repetition, outcome


class SweepRunner:
    """
    Parallel Monte Carlo over a list of parameter sets.

    `workers=1` runs everything in the calling process; otherwise a
    multiprocessing pool of `workers` processes (default: CPU count) is used.
    """

    def __init__(self, repetitions: int = DEFAULT_REPETITIONS, seed: int = RANDOM_SEED,
                 workers: Optional[int] = None,
                 quorum_kind: QuorumKind = QuorumKind.FIXED_PROPORTION,
                 any_group: bool = True, disruption_limit: Optional[int] = None):
        if repetitions < 1:
            raise ConfigError(f"repetitions must be at least 1, got {repetitions}")
        self.repetitions = repetitions
        self.seed = seed
        self.workers = workers or multiprocessing.cpu_count()
        self.quorum_kind = quorum_kind
        self.any_group = any_group
        self.disruption_limit = disruption_limit

    def work_units(self, param_sets: Sequence[SimParams]) -> List[WorkUnit]:
        return [
            WorkUnit(i, rep, params, self.quorum_kind, self.any_group,
                     self.disruption_limit, self.seed)
            for i, params in enumerate(param_sets)
            for rep in range(self.repetitions)
        ]

    def run(self, param_sets: Sequence[SimParams]) -> List[ParameterSweepRecord]:
        """Simulate every parameter set; records come back in input order."""
        # Fail closed: every set must be valid before any work starts
        for params in param_sets:
            params.validate()
        for params in param_sets:
            warn_if_slow_init(params)

        units = self.work_units(param_sets)
        logger.info(
            "Starting to simulate %d different parameter sets (%d runs, %d workers)",
            len(param_sets), len(units), self.workers,
        )

        if self.workers == 1 or len(units) <= 1:
            raw = [_run_unit(u) for u in units]
        else:
            with multiprocessing.Pool(self.workers) as pool:
                chunksize = _chunksize(len(units), self.workers)
                raw = list(pool.imap_unordered(_run_unit, units, chunksize=chunksize))

        # Gather by index, not by completion order
        outcomes: List[List[Optional[RunOutcome]]] = [
            [None] * self.repetitions for _ in param_sets
        ]
        for param_index, rep, outcome in raw:
            outcomes[param_index][rep] = outcome

        return [
            ParameterSweepRecord(params, SimResult.from_outcomes(runs))
            for params, runs in zip(param_sets, outcomes)
        ]


def _chunksize(n_units: int, workers: int) -> int:
    return max(1, n_units // (workers * 4))


def generate_table(records: Sequence[ParameterSweepRecord]) -> str:
    rows = [r.to_table_row() for r in records]
    return tabulate(rows, headers=PARAM_TITLES, tablefmt="simple", disable_numparse=True)


def main():
    """Run a churn attack parameter sweep and print the result table."""
    parser = argparse.ArgumentParser(
        description="Churn attack simulation over a grid of network parameters. "
                    "Each parameter takes a value, a comma list or a range 'lo-hi[:step]'; "
                    "rates are per day and may be given as a percentage of the initial nodes."
    )
    parser.add_argument("--num-initial", "-n", default="1000", help="Initial good nodes (default: 1000)")
    parser.add_argument("--num-attacking", "-a", default="10%", help="Attacking nodes (default: 10%%)")
    parser.add_argument("--max-join", "-j", default="1%", help="Maximum joins per day (default: 1%%)")
    parser.add_argument("--add-good", "-g", default="0.1%", help="Background good joins per day (default: 0.1%%)")
    parser.add_argument("--leave-good", "-l", default="0.1%", help="Good leaves per day (default: 0.1%%)")
    parser.add_argument("--min-group", "-m", default="8", help="Minimum group size (default: 8)")
    parser.add_argument("--quorum-prop", "-q", default="0.5", help="Quorum proportion (default: 0.5)")
    parser.add_argument("--quorum", choices=[k.value for k in QuorumKind],
                        default=QuorumKind.FIXED_PROPORTION.value, help="Quorum policy")
    parser.add_argument("--proof-time", "-p", type=float, default=1.0, help="Step length in days (default: 1)")
    parser.add_argument("--max-days", "-d", type=float, default=365.0, help="Attack duration in days (default: 365)")
    parser.add_argument("--repetitions", "-r", type=int, default=DEFAULT_REPETITIONS,
                        help=f"Runs per parameter set (default: {DEFAULT_REPETITIONS})")
    parser.add_argument("--seed", "-s", type=int, default=RANDOM_SEED,
                        help=f"Random seed for reproducibility (default: {RANDOM_SEED})")
    parser.add_argument("--workers", "-w", type=int, default=None, help="Worker processes (default: CPU count)")
    parser.add_argument("--tracked-group", action="store_true",
                        help="Only count compromise of one tracked group instead of any group")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        inputs = SweepInputs(
            num_initial=[int(float(v)) for v in parse_values(args.num_initial)],
            num_attacking=[RelOrAbs.parse(v) for v in parse_values(args.num_attacking)],
            max_join=[RelOrAbs.parse(v) for v in parse_values(args.max_join)],
            add_good=[RelOrAbs.parse(v) for v in parse_values(args.add_good)],
            leave_good=[RelOrAbs.parse(v) for v in parse_values(args.leave_good)],
            min_group_size=[int(float(v)) for v in parse_values(args.min_group)],
            quorum_prop=[float(v) for v in parse_values(args.quorum_prop)],
            proof_time=args.proof_time,
            max_days=args.max_days,
        )
        param_sets = inputs.param_sets()
        runner = SweepRunner(
            repetitions=args.repetitions,
            seed=args.seed,
            workers=args.workers,
            quorum_kind=QuorumKind(args.quorum),
            any_group=not args.tracked_group,
        )
    except ValueError as e:
        parser.error(str(e))

    print(f"Routing Churn Attack Simulation")
    print(f"===============================")
    print(f"Parameter sets: {len(param_sets)}")
    print(f"Repetitions: {runner.repetitions}")
    print(f"Seed: {runner.seed}")
    print()

    records = runner.run(param_sets)
    print(generate_table(records))


if __name__ == "__main__":
    main()
