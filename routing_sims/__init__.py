"""
Routing Security Simulations
============================

Probability models and Monte Carlo simulations of quorum compromise in a
group-partitioned peer network under attack.

Modules:
- config: Shared constants, simulation parameters and RNG helpers
- prob: Closed-form compromise probability for random allocation to groups
- quorum: Quorum policies (fixed proportion, age weighted)
- net: Nodes partitioned into groups, with join/leave/split/merge
- attack: Churn attack simulator producing one (compromised, disrupted) run
- sweep: Parallel parameter sweeps aggregating many runs
- args: Parsing of counts, percentages and ranges into parameter grids
"""

from .config import (
    RANDOM_SEED,
    DEFAULT_REPETITIONS,
    ConfigError,
    SimParams,
    get_rng,
)
from .prob import (
    RandomAllocation,
    expected_compromised_groups,
    probability_quorum_compromised,
)
from .quorum import Quorum, QuorumKind
from .net import NetworkState, Node
from .attack import ChurnSimulator, RunOutcome
from .sweep import ParameterSweepRecord, SimResult, SweepRunner

__version__ = "1.0.0"
