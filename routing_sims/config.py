"""
Routing Simulation Configuration
================================

Central configuration for the probability model and churn simulations.
Holds the shared constants, the validated simulation parameter set and the
random number generator helpers used by every run.
"""

from dataclasses import dataclass
import numpy as np


# =============================================================================
# REPRODUCIBILITY
# =============================================================================

RANDOM_SEED = 42  # Top-level seed for sweeps and CLIs
DEFAULT_REPETITIONS = 100  # Independent runs per parameter set


# =============================================================================
# GROUP & QUORUM POLICY CONSTANTS
# =============================================================================

MAX_GROUP_FACTOR = 2  # max_group_size = MAX_GROUP_FACTOR * min_group_size

# Float proportions like 0.7 * 10 land just above the integer; this keeps
# ceil() from rounding them up a whole node.
QUORUM_EPSILON = 1e-9


# =============================================================================
# STABILIZATION LIMITS
# =============================================================================

SLOW_INIT_STEPS = 10_000      # Warn when the initial fill needs more steps
STABILIZE_STEP_FACTOR = 10    # Hard cap = factor * estimated init steps
MIN_STABILIZE_CAP = 1_000


class ConfigError(ValueError):
    """Invalid input: the caller passed parameters the core cannot accept."""


# =============================================================================
# SIMULATION PARAMETERS
# =============================================================================

@dataclass(frozen=True)
class SimParams:
    """
    One point of a churn simulation sweep.

    All rates are per simulation step. Validation happens on construction so
    a bad parameter set never reaches a simulation.
    """

    num_initial: int            # Good nodes before the attack starts
    num_attacking: int          # Malicious nodes injected during the attack
    max_join_rate: float        # Join capacity of the network (nodes/step)
    add_rate_good: float        # Background good joins (nodes/step)
    leave_rate_good: float      # Background good leaves (nodes/step)
    min_group_size: int
    quorum_prop: float          # Fraction of a group needed for quorum
    max_steps: int              # Attack duration

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ConfigError unless every constraint holds."""
        if self.num_initial < 0 or self.num_attacking < 0:
            raise ConfigError("node counts must be non-negative")
        if self.min_group_size < 1:
            raise ConfigError(
                f"min_group_size must be at least 1, got {self.min_group_size}"
            )
        if not 0.0 <= self.quorum_prop <= 1.0:
            raise ConfigError(
                f"quorum_prop must lie in [0, 1], got {self.quorum_prop}"
            )
        if self.add_rate_good < 0 or self.leave_rate_good < 0:
            raise ConfigError("background rates must be non-negative")
        if self.max_join_rate <= self.add_rate_good:
            raise ConfigError(
                f"max_join_rate ({self.max_join_rate}) must exceed "
                f"add_rate_good ({self.add_rate_good})"
            )
        if self.max_join_rate <= self.leave_rate_good:
            raise ConfigError(
                f"max_join_rate ({self.max_join_rate}) must exceed "
                f"leave_rate_good ({self.leave_rate_good})"
            )
        if self.max_steps < 0:
            raise ConfigError(f"max_steps must be non-negative, got {self.max_steps}")

    @property
    def max_group_size(self) -> int:
        return MAX_GROUP_FACTOR * self.min_group_size

    @property
    def init_steps_estimate(self) -> float:
        """Expected number of steps to absorb the initial population."""
        return self.num_initial / (self.max_join_rate - self.leave_rate_good)

    @property
    def slow_init(self) -> bool:
        return self.init_steps_estimate > SLOW_INIT_STEPS

    def to_row(self) -> list:
        return [
            self.num_initial,
            self.num_attacking,
            self.max_join_rate,
            self.add_rate_good,
            self.leave_rate_good,
            self.min_group_size,
            self.quorum_prop,
            self.max_steps,
        ]


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def get_rng(seed: int = RANDOM_SEED) -> np.random.Generator:
    """Get a reproducible random number generator."""
    return np.random.default_rng(seed)


def run_rng(seed: int, param_index: int, repetition: int) -> np.random.Generator:
    """
    Generator for one (parameter set, repetition) work unit.

    The stream depends only on the three integers, never on scheduling order,
    so a sweep is reproducible however its runs are distributed.
    """
    return np.random.default_rng([seed, param_index, repetition])
