"""Tests for the churn attack simulator."""

from dataclasses import replace
import logging

import numpy as np

from routing_sims.attack import ChurnSimulator, RunOutcome, warn_if_slow_init
from routing_sims.config import SimParams
from routing_sims.net import NetworkState
from routing_sims.quorum import Quorum
from conftest import assert_partition, make_group


class TestStabilize:

    def test_reaches_initial_population(self, small_params, rng):
        p = replace(small_params, leave_rate_good=0.0)
        sim = ChurnSimulator(p)
        net = NetworkState(p.min_group_size, rng)
        steps = sim.stabilize(net)
        assert net.num_good == p.num_initial
        assert steps == 10  # 40 nodes at 4 per step

    def test_fractional_join_rate(self, rng):
        p = SimParams(num_initial=10, num_attacking=0, max_join_rate=0.5,
                      add_rate_good=0.0, leave_rate_good=0.0, min_group_size=2,
                      quorum_prop=0.5, max_steps=0)
        net = NetworkState(p.min_group_size, rng)
        assert ChurnSimulator(p).stabilize(net) == 20

    def test_with_churn(self, small_params, rng):
        net = NetworkState(small_params.min_group_size, rng)
        ChurnSimulator(small_params).stabilize(net)
        assert net.num_good >= small_params.num_initial
        assert_partition(net)


class TestRun:

    def test_deterministic(self, small_params):
        sim = ChurnSimulator(small_params)
        for seed in range(5):
            a = sim.run(np.random.default_rng(seed))
            b = sim.run(np.random.default_rng(seed))
            assert a == b

    def test_no_attackers_no_compromise(self, small_params):
        sim = ChurnSimulator(replace(small_params, num_attacking=0))
        for seed in range(20):
            outcome = sim.run(np.random.default_rng(seed))
            assert not outcome.compromised
            assert outcome.malicious_admitted == 0
            assert outcome.attack_steps == small_params.max_steps

    def test_low_quorum_compromised_immediately(self, small_params, rng):
        # ceil(0.1 * size) is 1 for any group up to 10 nodes
        outcome = ChurnSimulator(replace(small_params, quorum_prop=0.1, add_rate_good=0.0)).run(rng)
        assert outcome.compromised
        assert outcome.attack_steps == 1

    def test_full_quorum_needs_whole_group(self, small_params):
        p = replace(small_params, quorum_prop=1.0, num_attacking=1, leave_rate_good=0.0)
        sim = ChurnSimulator(p)
        for seed in range(10):
            assert not sim.run(np.random.default_rng(seed)).compromised

    def test_no_leaves_no_disruption(self, small_params):
        sim = ChurnSimulator(replace(small_params, leave_rate_good=0.0))
        for seed in range(10):
            assert not sim.run(np.random.default_rng(seed)).disrupted

    def test_attackers_bounded_by_join_rate(self, small_params, rng):
        p = replace(small_params, num_attacking=1000, quorum_prop=1.0, max_steps=5)
        outcome = ChurnSimulator(p).run(rng)
        assert outcome.malicious_admitted <= 5 * p.max_join_rate

    def test_age_weighted_quorum(self, small_params, rng):
        sim = ChurnSimulator(small_params, quorum=Quorum.age_weighted(0.5))
        assert isinstance(sim.run(rng), RunOutcome)

    def test_disruption_limit_stops_run(self):
        p = SimParams(num_initial=200, num_attacking=0, max_join_rate=30.0,
                      add_rate_good=18.0, leave_rate_good=20.0, min_group_size=4,
                      quorum_prop=0.5, max_steps=200)
        limited = ChurnSimulator(p, disruption_limit=1)
        unlimited = ChurnSimulator(p)
        stopped_early = 0
        for seed in range(5):
            a = limited.run(np.random.default_rng(seed))
            b = unlimited.run(np.random.default_rng(seed))
            assert b.attack_steps == p.max_steps
            assert a.attack_steps <= b.attack_steps
            if a.disrupted and a.attack_steps < p.max_steps:
                stopped_early += 1
        assert stopped_early > 0


class TestGroupSelection:

    def test_any_group(self, small_params, rng):
        net = NetworkState.from_groups([make_group(4), make_group(1, 3)], 4, rng)
        assert ChurnSimulator(small_params, any_group=True).any_compromised(net)

    def test_tracked_group(self, small_params, rng):
        net = NetworkState.from_groups([make_group(4), make_group(1, 3)], 4, rng)
        assert not ChurnSimulator(small_params, any_group=False).any_compromised(net)

    def test_tracked_group_not_positional(self, small_params, rng):
        net = NetworkState.from_groups([make_group(4), make_group(1, 3)], 4, rng, tracked=1)
        assert ChurnSimulator(small_params, any_group=False).any_compromised(net)

    def test_tracked_group_after_merge(self, small_params, rng):
        # The tracked group is absorbed by its compromised neighbour
        net = NetworkState.from_groups([make_group(2), make_group(1, 4), make_group(6)], 4, rng)
        sim = ChurnSimulator(small_params, any_group=False)
        assert not sim.any_compromised(net)
        net.rebalance()
        assert sim.any_compromised(net)


class TestSlowInitWarning:

    def test_warns(self, caplog):
        p = SimParams(num_initial=100_000, num_attacking=0, max_join_rate=2.0,
                      add_rate_good=1.0, leave_rate_good=1.5, min_group_size=4,
                      quorum_prop=0.5, max_steps=1)
        with caplog.at_level(logging.WARNING, logger="routing_sims.attack"):
            assert warn_if_slow_init(p)
        assert "requires many steps" in caplog.text

    def test_quiet_for_fast_init(self, small_params, caplog):
        with caplog.at_level(logging.WARNING, logger="routing_sims.attack"):
            assert not warn_if_slow_init(small_params)
        assert caplog.text == ""
