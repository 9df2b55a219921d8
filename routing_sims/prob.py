"""
Random Allocation Probability Model
===================================

Closed-form probability that a group drawn uniformly at random (without
replacement) from the network holds at least a quorum of malicious nodes.

    P(n, r, k, q) = sum_{i=q}^{k} C(r, i) C(n-r, k-i) / C(n, k)

The tail is taken from scipy's hypergeometric survival function, which stays
accurate for n in the tens of thousands where factorials would overflow and
single terms underflow. Boundary cases are settled before it is called.
"""

import argparse
import logging

from scipy.stats import hypergeom
from tabulate import tabulate

from .args import parse_count, parse_range
from .config import ConfigError
from .quorum import Quorum


def probability_quorum_compromised(n: int, r: int, k: int, q: int) -> float:
    """
    Probability that a specific group of size k contains at least q of the
    r malicious nodes out of n total.

    Raises ConfigError for negative arguments or k > n.
    """
    if min(n, r, k, q) < 0:
        raise ConfigError(f"arguments must be non-negative: n={n} r={r} k={k} q={q}")
    if k > n:
        raise ConfigError(f"group size k={k} exceeds population n={n}")
    if q > k:
        return 0.0
    if q == 0:
        return 1.0
    if r >= n:
        return 1.0
    if q > r:
        return 0.0

    # P(X >= q) = P(X > q - 1) for X ~ Hypergeom(n, r, k)
    p = float(hypergeom.sf(q - 1, n, r, k))
    return min(1.0, max(0.0, p))


def expected_compromised_groups(n: int, r: int, k: int, q: int) -> float:
    """
    Expected number of compromised groups network-wide, n/k groups of size k.

    Approximation: scales the single-group probability linearly, treating the
    groups as independent draws.
    """
    if k == 0:
        return 0.0
    return probability_quorum_compromised(n, r, k, q) * n / k


def compromise_statistic(n: int, r: int, k: int, q: int, any_group: bool = False) -> float:
    """Single-group probability, or the any-group expectation when asked."""
    if any_group:
        return expected_compromised_groups(n, r, k, q)
    return probability_quorum_compromised(n, r, k, q)


class RandomAllocation:
    """
    Analytic tool: malicious nodes allocated to groups at random, with no
    targeting or rejoining.

    Groups are assumed to be exactly `min_group_size` nodes; the quorum must
    reduce to a fixed count for that size.
    """

    def __init__(self, total_nodes: int = 1000, malicious_nodes: int = 100,
                 min_group_size: int = 10, quorum: Quorum = None):
        self.total_nodes = total_nodes
        self.malicious_nodes = malicious_nodes
        self.min_group_size = min_group_size
        self.quorum = quorum if quorum is not None else Quorum.fixed_proportion(0.5)
        self.any_group = False

    def set_any(self, any_group: bool) -> None:
        """Report the expected number of compromised groups instead of P."""
        self.any_group = any_group

    def calc_p_compromise(self) -> float:
        k = self.min_group_size
        q = self.quorum.threshold(k)
        if q is None:
            raise ConfigError(f"{self.quorum!r} has no fixed threshold for the analytic model")
        return compromise_statistic(
            self.total_nodes, self.malicious_nodes, k, q, self.any_group
        )


def compromise_table(n: int, r: int, k_range, q_range, any_group: bool = False) -> str:
    """Quorum size on rows, group size on columns; '-' where q > k."""
    ks = list(range(k_range[0], k_range[1] + 1))
    rows = []
    for q in range(q_range[0], q_range[1] + 1):
        row = [q]
        for k in ks:
            if q > k:
                row.append("-")
            else:
                row.append(f"{compromise_statistic(n, r, k, q, any_group):.6e}")
        rows.append(row)
    return tabulate(rows, headers=["q \\ k"] + ks, tablefmt="simple",
                    stralign="right", disable_numparse=True)


def main():
    """Print the random allocation compromise table."""
    parser = argparse.ArgumentParser(
        description="Probability of quorum compromise under random allocation to groups"
    )
    parser.add_argument("-n", type=int, default=1000, help="Number of nodes, total (default: 1000)")
    parser.add_argument(
        "-r", type=str, default="10%",
        help="Compromised nodes, a count (e.g. 50) or percentage (default: 10%%)"
    )
    parser.add_argument("-k", type=str, default="8-12", help="Group size range (default: 8-12)")
    parser.add_argument("-q", type=str, default="5-12", help="Quorum size range (default: 5-12)")
    parser.add_argument(
        "-a", "--any", action="store_true",
        help="Show expected compromised groups network-wide instead of one specific group"
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        r = parse_count(args.r, args.n)
        k_range = parse_range(args.k)
        q_range = parse_range(args.q)
        table = compromise_table(args.n, r, k_range, q_range, args.any)
    except ConfigError as e:
        parser.error(str(e))

    if args.any:
        print("Expected number of compromised groups, assuming fixed group size, where")
    else:
        print("Probability of one specific group being compromised, where")
    print(f"  Total nodes n = {args.n}")
    print(f"  Compromised nodes r = {r}")
    print("  Group size on columns, quorum size on rows")
    print()
    print(table)


if __name__ == "__main__":
    main()
