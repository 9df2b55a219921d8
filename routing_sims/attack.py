"""
Churn Attack Simulation
=======================

Discrete-time simulation of an attacker joining a churning, group-partitioned
network. A run passes through three phases:

1. Stabilizing: good nodes join at the maximum join rate (with background
   leaves) until the initial population is absorbed
2. Attacking: malicious nodes take whatever join capacity background good
   joins leave free, until all attacking nodes are admitted; churn continues
3. Terminated: a group is compromised, the step budget is spent, or the
   disruption limit is reached

One run yields a (compromised, disrupted) pair.
"""

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Optional

import numpy as np

from .config import MIN_STABILIZE_CAP, STABILIZE_STEP_FACTOR, SimParams
from .net import NetworkState
from .quorum import Quorum

logger = logging.getLogger(__name__)


def warn_if_slow_init(params: SimParams) -> bool:
    """Advisory only: a slow initial fill is allowed to proceed."""
    if not params.slow_init:
        return False
    logger.warning(
        "Join rate (%s nodes/step) - leave rate (%s nodes/step) requires many "
        "steps for init (estimate: %d)",
        params.max_join_rate, params.leave_rate_good,
        round(params.init_steps_estimate),
    )
    return True


class Phase(Enum):
    STABILIZING = "stabilizing"
    ATTACKING = "attacking"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class RunOutcome:
    """Result of a single simulation run."""
    compromised: bool
    disrupted: bool
    attack_steps: int = 0
    malicious_admitted: int = 0


class ChurnSimulator:
    """
    Simulator for one parameter set.

    Each call to `run(rng)` builds a fresh NetworkState driven only by the
    generator passed in, so runs share no mutable state.
    """

    def __init__(self, params: SimParams, quorum: Optional[Quorum] = None,
                 any_group: bool = True, disruption_limit: Optional[int] = None,
                 warn: bool = True):
        self.params = params
        self.quorum = quorum if quorum is not None else Quorum.fixed_proportion(params.quorum_prop)
        self.any_group = any_group
        self.disruption_limit = disruption_limit
        if warn:
            warn_if_slow_init(params)

    def any_compromised(self, net: NetworkState) -> bool:
        """Any group compromised, or only the tracked one when any_group is off."""
        if self.any_group:
            groups = net.group_snapshot()
        else:
            groups = [net.tracked_group()]
        return any(self.quorum.is_compromised(group) for group in groups)

    def stabilize(self, net: NetworkState) -> int:
        """Fill the network up to num_initial good nodes. Returns steps taken."""
        p = self.params
        cap = max(MIN_STABILIZE_CAP, int(STABILIZE_STEP_FACTOR * p.init_steps_estimate))
        credit = 0.0
        steps = 0
        while net.num_good < p.num_initial:
            if steps >= cap:
                logger.warning(
                    "Stabilization stopped after %d steps with %d of %d nodes",
                    steps, net.num_good, p.num_initial,
                )
                break
            credit += p.max_join_rate
            allowance = int(credit)
            credit -= allowance
            for _ in range(min(allowance, p.num_initial - net.num_good)):
                net.join(is_malicious=False)
            net.leave(p.leave_rate_good)
            net.age_all()
            steps += 1
        return steps

    def run(self, rng: np.random.Generator) -> RunOutcome:
        """Simulate one network from empty to termination."""
        p = self.params
        net = NetworkState(p.min_group_size, rng)

        phase = Phase.STABILIZING
        init_steps = self.stabilize(net)
        logger.debug("%s took %d steps, %d groups", phase.value, init_steps, len(net.groups))
        # Rebalancing while filling up is not an attack-time disruption
        net.disruptions = 0
        phase = Phase.ATTACKING

        compromised = False
        credit = 0.0
        admitted = 0
        step = 0
        while phase is Phase.ATTACKING:
            if step >= p.max_steps:
                phase = Phase.TERMINATED
                break
            step += 1

            credit += p.max_join_rate
            allowance = int(credit)
            credit -= allowance

            n_good = min(int(rng.poisson(p.add_rate_good)), allowance)
            n_bad = min(p.num_attacking - admitted, allowance - n_good)
            for _ in range(n_bad):
                net.join(is_malicious=True)
            admitted += n_bad
            for _ in range(n_good):
                net.join(is_malicious=False)
            net.leave(p.leave_rate_good)
            net.age_all()

            if admitted and self.any_compromised(net):
                compromised = True
                phase = Phase.TERMINATED
            elif self.disruption_limit is not None and net.disruptions >= self.disruption_limit:
                phase = Phase.TERMINATED

        return RunOutcome(
            compromised=compromised,
            disrupted=net.disruptions > 0,
            attack_steps=step,
            malicious_admitted=admitted,
        )
