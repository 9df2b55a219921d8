"""Shared fixtures for routing_sims tests."""

import pytest

from routing_sims.config import SimParams, get_rng
from routing_sims.net import Node


@pytest.fixture
def rng():
    """Deterministic generator for reproducible tests."""
    return get_rng(42)


@pytest.fixture
def small_params():
    """A network small enough to simulate many times per test."""
    return SimParams(
        num_initial=40,
        num_attacking=6,
        max_join_rate=4.0,
        add_rate_good=0.5,
        leave_rate_good=0.5,
        min_group_size=4,
        quorum_prop=0.5,
        max_steps=30,
    )


def make_group(n_good, n_bad=0, good_age=0, bad_age=0):
    return ([Node(False, good_age) for _ in range(n_good)] +
            [Node(True, bad_age) for _ in range(n_bad)])


def assert_partition(net):
    """The groups agree with the population counters and the size bound."""
    n_bad = sum(node.is_malicious for g in net.groups for node in g)
    n_all = sum(len(g) for g in net.groups)
    assert n_bad == net.num_malicious
    assert n_all - n_bad == net.num_good
    assert all(len(g) <= net.max_group_size for g in net.groups)
    assert any(g is net.tracked for g in net.groups)
