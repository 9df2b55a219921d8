"""
Quorum Policies
===============

Rules deciding how many members of a group are needed for a binding decision,
and therefore how many malicious members compromise it.

Two variants share one interface:
- proportion: quorum = ceil(quorum_prop * group size)
- age: malicious members must reach the proportion both by count and by
  accumulated node age, so no single integer threshold applies
"""

from enum import Enum
import math
from typing import Optional, Sequence

from .config import ConfigError, QUORUM_EPSILON


class QuorumKind(Enum):
    FIXED_PROPORTION = "proportion"
    AGE_WEIGHTED = "age"


class Quorum:
    """
    Quorum policy, dispatched on its kind.

    `quorum_size(group)` returns None for policies that cannot be reduced to
    a bare member count; callers must then ask `is_compromised(group)`.
    """

    def __init__(self, kind: QuorumKind = QuorumKind.FIXED_PROPORTION,
                 proportion: float = 0.5):
        if not 0.0 <= proportion <= 1.0:
            raise ConfigError(f"quorum proportion must lie in [0, 1], got {proportion}")
        self.kind = kind
        self.proportion = proportion
        self._fixed_size: Optional[int] = None

    @classmethod
    def fixed_proportion(cls, proportion: float) -> 'Quorum':
        return cls(QuorumKind.FIXED_PROPORTION, proportion)

    @classmethod
    def age_weighted(cls, proportion: float) -> 'Quorum':
        return cls(QuorumKind.AGE_WEIGHTED, proportion)

    def threshold(self, group_size: int) -> Optional[int]:
        """Member count needed in a group of `group_size`, if one exists."""
        if self.kind is QuorumKind.AGE_WEIGHTED:
            return None
        if self._fixed_size is not None:
            return self._fixed_size
        return proportion_count(self.proportion, group_size)

    def quorum_size(self, group: Sequence) -> Optional[int]:
        return self.threshold(len(group))

    def set_quorum_size(self, n: int) -> None:
        """
        Pin the quorum to `n` members.

        For the age-weighted policy `n` becomes an extra minimum on the
        malicious count; its age criterion still applies.
        """
        if n < 0:
            raise ConfigError(f"quorum size must be non-negative, got {n}")
        self._fixed_size = n

    def is_compromised(self, group: Sequence) -> bool:
        """True if the malicious members of `group` reach the quorum."""
        n_bad = sum(1 for node in group if node.is_malicious)
        if n_bad == 0:
            return False

        if self.kind is QuorumKind.FIXED_PROPORTION:
            return n_bad >= self.quorum_size(group)

        # Age-weighted: evaluated against the concrete members
        needed = proportion_count(self.proportion, len(group))
        if self._fixed_size is not None:
            needed = max(needed, self._fixed_size)
        if n_bad < needed:
            return False
        total_age = sum(node.age for node in group)
        bad_age = sum(node.age for node in group if node.is_malicious)
        if total_age == 0:
            return True
        return bad_age >= self.proportion * total_age - QUORUM_EPSILON

    def __repr__(self):
        return f"Quorum({self.kind.value}, proportion={self.proportion})"


def proportion_count(proportion: float, size: int) -> int:
    """ceil(proportion * size), tolerant of float representation error."""
    return max(0, math.ceil(proportion * size - QUORUM_EPSILON))
