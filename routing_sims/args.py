"""
Parameter Parsing
=================

Turns command-line style values (counts, percentages, ranges, lists) into
absolute numbers, and expands a set of per-parameter value lists into the
ordered grid of SimParams a sweep runs over.
"""

from dataclasses import dataclass
from itertools import product
import re
from typing import List, Sequence, Tuple

import numpy as np

from .config import ConfigError, SimParams


@dataclass(frozen=True)
class RelOrAbs:
    """A value either absolute, or relative (percent) to some base."""
    value: float
    relative: bool = False

    def from_base(self, base: float) -> float:
        if self.relative:
            return base * self.value / 100.0
        return self.value

    @classmethod
    def parse(cls, text: str) -> 'RelOrAbs':
        text = text.strip()
        try:
            if text.endswith("%"):
                return cls(float(text[:-1]), relative=True)
            return cls(float(text))
        except ValueError:
            raise ConfigError(f"expected a number or percentage, got {text!r}") from None


def parse_count(text: str, base: int) -> int:
    """'50' -> 50, '10%' of base 1000 -> 100."""
    value = RelOrAbs.parse(text)
    if not value.relative and value.value != int(value.value):
        raise ConfigError(f"expected a whole number or percentage, got {text!r}")
    count = int(value.from_base(base))
    if count < 0:
        raise ConfigError(f"count must be non-negative, got {text!r}")
    return count


def parse_range(text: str) -> Tuple[int, int]:
    """'8-12' -> (8, 12); a bare '8' is the range (8, 8)."""
    err = f"range syntax should be 'x-y' where x and y are whole numbers, got {text!r}"
    lo, sep, hi = text.strip().partition("-")
    try:
        bounds = (int(lo), int(hi)) if sep else (int(lo), int(lo))
    except ValueError:
        raise ConfigError(err) from None
    if bounds[0] > bounds[1]:
        raise ConfigError(err)
    return bounds


def parse_values(text: str) -> List[str]:
    """
    Expand a value list into its items, keeping any '%' suffix.

    Accepts a single value ('5'), a comma list ('5,10,20') or an inclusive
    range with optional step ('10-50:10', '0.5-0.75:0.05'). A '-' is a range
    separator only after a digit or point, so '1e-3' and '1e-3-5e-3:1e-3' read
    as a value and a range of exponent-form numbers.
    """
    items = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        suffix = "%" if part.endswith("%") else ""
        body = part.rstrip("%")
        bounds = re.split(r"(?<=[\d.])-", body, maxsplit=1)
        if len(bounds) == 1:
            items.append(part)
            continue
        lo, rest = bounds
        hi, _, step = rest.partition(":")
        try:
            lo_v, hi_v = float(lo), float(hi)
            step_v = float(step) if step else 1.0
        except ValueError:
            raise ConfigError(f"bad range {part!r}") from None
        if step_v <= 0 or lo_v > hi_v:
            raise ConfigError(f"bad range {part!r}")
        n = int(np.floor((hi_v - lo_v) / step_v + 1e-9)) + 1
        for v in np.linspace(lo_v, lo_v + (n - 1) * step_v, n):
            v = round(float(v), 10)
            items.append(f"{int(v) if v.is_integer() else v}{suffix}")
    if not items:
        raise ConfigError(f"no values in {text!r}")
    return items


@dataclass(frozen=True)
class SweepInputs:
    """
    Sweep axes as given by a user; rates are per day, relative values are
    percent of num_initial.
    """
    num_initial: Sequence[int]
    num_attacking: Sequence[RelOrAbs]
    max_join: Sequence[RelOrAbs]
    add_good: Sequence[RelOrAbs]
    leave_good: Sequence[RelOrAbs]
    min_group_size: Sequence[int]
    quorum_prop: Sequence[float]
    proof_time: float = 1.0     # step length in days
    max_days: float = 365.0

    def param_sets(self) -> List[SimParams]:
        """Cartesian product of all axes, in a stable order."""
        if self.proof_time <= 0:
            raise ConfigError(f"proof time must be positive, got {self.proof_time}")
        max_steps = int(round(self.max_days / self.proof_time))

        param_sets = []
        for nn, nm, mj, ag, lg, mgs, qp in product(
                self.num_initial, self.num_attacking, self.max_join, self.add_good,
                self.leave_good, self.min_group_size, self.quorum_prop):
            param_sets.append(SimParams(
                num_initial=nn,
                num_attacking=int(nm.from_base(nn)),
                max_join_rate=mj.from_base(nn) * self.proof_time,
                add_rate_good=ag.from_base(nn) * self.proof_time,
                leave_rate_good=lg.from_base(nn) * self.proof_time,
                min_group_size=mgs,
                quorum_prop=qp,
                max_steps=max_steps,
            ))
        return param_sets
