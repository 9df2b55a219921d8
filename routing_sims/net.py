"""
Network State
=============

Population of nodes partitioned into groups, with the rebalancing policy:

- join: into the currently smallest group (random tie-break); a group larger
  than max_group_size splits into two random halves
- leave: each good node leaves independently; malicious nodes stay
- merge: a group below min_group_size merges into the smaller of its list
  neighbours; if the result would exceed max_group_size the merge is deferred
  and counted as a disruption
"""

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .config import MAX_GROUP_FACTOR, ConfigError


@dataclass
class Node:
    is_malicious: bool = False
    age: int = 0  # steps since joining


Group = List[Node]


class NetworkState:
    """Nodes partitioned into groups. One instance per simulation run."""

    def __init__(self, min_group_size: int, rng: np.random.Generator,
                 max_group_factor: int = MAX_GROUP_FACTOR):
        if min_group_size < 1:
            raise ConfigError(f"min_group_size must be at least 1, got {min_group_size}")
        if max_group_factor < 2:
            raise ConfigError("max_group_factor below 2 leaves no room to split")
        self.min_group_size = min_group_size
        self.max_group_size = max_group_factor * min_group_size
        self.rng = rng
        self.groups: List[Group] = [[]]
        self.tracked: Group = self.groups[0]
        self.disruptions = 0
        self._n_good = 0
        self._n_malicious = 0

    @classmethod
    def from_groups(cls, groups: Sequence[Sequence[Node]], min_group_size: int,
                    rng: np.random.Generator, tracked: int = 0) -> 'NetworkState':
        """Network with a given partition, e.g. to replay a layout."""
        net = cls(min_group_size, rng)
        net.groups = [list(g) for g in groups] or [[]]
        net.tracked = net.groups[tracked]
        net._n_malicious = sum(node.is_malicious for g in net.groups for node in g)
        net._n_good = sum(len(g) for g in net.groups) - net._n_malicious
        return net

    # -------------------------------------------------------------------------
    # Population counts
    # -------------------------------------------------------------------------

    @property
    def num_good(self) -> int:
        return self._n_good

    @property
    def num_malicious(self) -> int:
        return self._n_malicious

    @property
    def num_nodes(self) -> int:
        return self._n_good + self._n_malicious

    def group_snapshot(self) -> Sequence[tuple]:
        """Read-only view of the groups for compromise evaluation."""
        return tuple(tuple(group) for group in self.groups)

    def tracked_group(self) -> tuple:
        """
        The group followed since the network was created. It is the same
        list object across splits (it keeps the first half) and moves to
        the absorbing group when it is merged away.
        """
        return tuple(self.tracked)

    # -------------------------------------------------------------------------
    # Membership changes
    # -------------------------------------------------------------------------

    def join(self, is_malicious: bool = False) -> Node:
        """Add a node to the smallest group, splitting it if it overflows."""
        sizes = np.fromiter((len(g) for g in self.groups), dtype=np.int64,
                            count=len(self.groups))
        candidates = np.flatnonzero(sizes == sizes.min())
        index = int(candidates[self.rng.integers(len(candidates))])

        node = Node(is_malicious=is_malicious)
        self.groups[index].append(node)
        if is_malicious:
            self._n_malicious += 1
        else:
            self._n_good += 1

        if len(self.groups[index]) > self.max_group_size:
            self._split(index)
        return node

    def leave(self, leave_rate: float) -> int:
        """
        Remove good nodes, each independently, so that on average
        `leave_rate` of them go per call. Returns the number removed.
        """
        if self._n_good == 0 or leave_rate <= 0:
            return 0
        p_leave = min(1.0, leave_rate / self._n_good)

        removed = 0
        for group in self.groups:
            draws = self.rng.random(len(group))
            kept = [
                node for node, u in zip(group, draws)
                if node.is_malicious or u >= p_leave
            ]
            removed += len(group) - len(kept)
            group[:] = kept
        self._n_good -= removed

        if removed:
            self.rebalance()
        return removed

    def age_all(self) -> None:
        for group in self.groups:
            for node in group:
                node.age += 1

    # -------------------------------------------------------------------------
    # Rebalancing
    # -------------------------------------------------------------------------

    def rebalance(self) -> int:
        """
        Merge every undersized group where possible.

        Returns the number of merges deferred on this pass; each one is
        also added to `disruptions`.
        """
        deferred = 0
        index = 0
        while index < len(self.groups):
            if len(self.groups) == 1:
                break
            if len(self.groups[index]) >= self.min_group_size:
                index += 1
                continue
            if not self._merge(index):
                deferred += 1
                index += 1
            # after a merge, the same index holds the next unchecked group
        self.disruptions += deferred
        return deferred

    def _split(self, index: int) -> None:
        group = self.groups[index]
        order = self.rng.permutation(len(group))
        half = len(group) // 2
        first = [group[i] for i in order[:half]]
        second = [group[i] for i in order[half:]]
        group[:] = first
        self.groups.insert(index + 1, second)

    def _merge(self, index: int) -> bool:
        """Merge group `index` into its smaller neighbour, if that fits."""
        neighbours = [i for i in (index - 1, index + 1) if 0 <= i < len(self.groups)]
        target = min(neighbours, key=lambda i: len(self.groups[i]))
        merged_size = len(self.groups[index]) + len(self.groups[target])
        if merged_size > self.max_group_size:
            return False

        if self.groups[index] is self.tracked:
            self.tracked = self.groups[target]
        self.groups[target].extend(self.groups[index])
        del self.groups[index]
        return True

