"""
Assignment sampling: enumeration, Monte Carlo draws and inclusion
probabilities for an AssignmentDesign.

Assignments are handled internally as integer arm codes (indices into
design.arm_labels, baseline = 0), shape (n,) for one vector and
(n_draws, n) for a stack of draws.

Exhaustive enumeration
----------------------
Under a complete-type design the valid assignments are the product, over
blocks, of the distinct ways to split the block's clusters into arm groups
of the target sizes. For a block with n_b clusters and targets
(m_0, ..., m_{k-1}) there are n_b! / (m_0! ... m_{k-1}!) such splits.
enumerate_assignments() walks this product lazily, choosing the clusters
for arm 0, then arm 1 from the remainder, and so on, so every valid vector
is produced exactly once.

Monte Carlo
-----------
sample_assignments() draws, per block, a uniform random permutation of the
block's multiset of arm labels over its clusters. Draws are independent and
may repeat (sampling with replacement over the product space).
"""

from __future__ import annotations

import itertools
import math
from typing import Any, Iterator

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyrandomization.core.exceptions import AssignmentMismatch, InvalidDesign
from pyrandomization.core.validation import check_count
from pyrandomization.randomization.assignment import AssignmentDesign


def total_valid_assignment_count(design: AssignmentDesign) -> int:
    """
    Exact number of distinct assignment vectors valid under the design.

    Complete-type designs: product over blocks of the multinomial
    coefficient of the block's cluster count into its arm targets.
    Simple designs: product over blocks of (arms with positive
    probability) ** (clusters in block).

    Returns a Python int (arbitrary precision, never overflows).
    """
    total = 1
    if design.is_simple:
        for b, size in enumerate(design.block_cluster_counts):
            n_possible = int(np.count_nonzero(design.arm_probabilities[b] > 0))
            total *= n_possible ** int(size)
        return total

    for b, size in enumerate(design.block_cluster_counts):
        remaining = int(size)
        for m in design.arm_targets[b]:
            total *= math.comb(remaining, int(m))
            remaining -= int(m)
    return total


def is_enumerable(design: AssignmentDesign) -> bool:
    """
    True if every valid assignment is equally likely under the design.

    Always true for complete-type designs. Simple designs qualify only when
    each block's positive arm probabilities are all equal.
    """
    if not design.is_simple:
        return True
    for row in design.arm_probabilities:
        positive = row[row > 0]
        if not np.allclose(positive, positive[0]):
            return False
    return True


def enumerate_assignments(design: AssignmentDesign) -> Iterator[NDArray[np.intp]]:
    """
    Lazily yield every valid assignment exactly once, as arm codes.

    The order is deterministic. Each call returns a fresh generator, so the
    sequence can be restarted by calling again.

    Raises:
        InvalidDesign: If the design is simple with unequal arm probabilities
            (its valid assignments are not equally likely, so an unweighted
            enumeration would not be its randomization distribution)
    """
    if not is_enumerable(design):
        raise InvalidDesign(
            "simple design with unequal arm probabilities cannot be enumerated; "
            "use sample_assignments()",
            reason='enumeration',
        )
    return _enumerate(design)


def _enumerate(design: AssignmentDesign) -> Iterator[NDArray[np.intp]]:
    per_block = []
    for b, clusters in enumerate(design.block_clusters):
        if design.is_simple:
            arms = np.flatnonzero(design.arm_probabilities[b] > 0)
            labelings = [
                np.asarray(combo, dtype=np.intp)
                for combo in itertools.product(arms.tolist(), repeat=len(clusters))
            ]
        else:
            labelings = list(_block_labelings(len(clusters), design.arm_targets[b]))
        per_block.append(labelings)

    cluster_arms = np.empty(design.n_clusters, dtype=np.intp)
    for combo in itertools.product(*per_block):
        for clusters, labeling in zip(design.block_clusters, combo):
            cluster_arms[clusters] = labeling
        yield cluster_arms[design.clusters]


def _block_labelings(n_slots: int, targets: NDArray[np.int64]) -> Iterator[NDArray[np.intp]]:
    """Distinct arm labelings of n_slots clusters with the given arm sizes."""
    labels = np.empty(n_slots, dtype=np.intp)
    last_arm = len(targets) - 1

    def recurse(arm: int, free: tuple[int, ...]) -> Iterator[NDArray[np.intp]]:
        if arm == last_arm:
            labels[np.asarray(free, dtype=np.intp)] = arm
            yield labels.copy()
            return
        for chosen in itertools.combinations(free, int(targets[arm])):
            labels[np.asarray(chosen, dtype=np.intp)] = arm
            taken = set(chosen)
            rest = tuple(i for i in free if i not in taken)
            yield from recurse(arm + 1, rest)

    yield from recurse(0, tuple(range(n_slots)))


def sample_assignments(
    design: AssignmentDesign,
    count: int,
    observed: ArrayLike | None = None,
    *,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
) -> NDArray[np.intp]:
    """
    Draw `count` independent assignments valid under the design.

    Args:
        design: The assignment design.
        count: Number of draws (>= 1).
        observed: Optional observed assignment (arm labels). Checked against
            the design before any sampling.
        rng: Random generator. Takes precedence over seed.
        seed: Seed for a fresh np.random.default_rng when rng is None.

    Returns:
        Arm codes, shape (count, n).

    Raises:
        AssignmentMismatch: If observed is not valid under the design
    """
    count = check_count(count, 'count', minimum=1)
    if observed is not None:
        check_assignment(design, observed)
    if rng is None:
        rng = np.random.default_rng(seed)

    cluster_arms = np.empty((count, design.n_clusters), dtype=np.intp)
    for b, clusters in enumerate(design.block_clusters):
        n_b = len(clusters)
        if design.is_simple:
            cluster_arms[:, clusters] = rng.choice(
                design.n_arms, size=(count, n_b), p=design.arm_probabilities[b]
            )
        else:
            base = np.repeat(np.arange(design.n_arms), design.arm_targets[b])
            cluster_arms[:, clusters] = rng.permuted(
                np.tile(base, (count, 1)), axis=1
            )

    return cluster_arms[:, design.clusters]


def labels_to_codes(design: AssignmentDesign, assignment: ArrayLike) -> NDArray[np.intp]:
    """
    Map arm labels to arm codes.

    Raises:
        AssignmentMismatch: If the length is not n or a label is not an arm
    """
    values = np.asarray(assignment)
    if values.ndim != 1 or values.shape[0] != design.n:
        raise AssignmentMismatch(
            f"assignment has shape {values.shape}, expected ({design.n},)",
            expected=design.n,
            observed=values.shape,
        )

    lookup = {label: code for code, label in enumerate(design.arm_labels)}
    codes = np.empty(design.n, dtype=np.intp)
    unknown: set = set()
    for i, value in enumerate(values.tolist()):
        code = lookup.get(value)
        if code is None:
            unknown.add(value)
        else:
            codes[i] = code
    if unknown:
        raise AssignmentMismatch(
            f"assignment contains labels {sorted(map(repr, unknown))} that are "
            f"not arms of the design {design.arm_labels!r}",
            expected=design.arm_labels,
            observed=unknown,
        )
    return codes


def check_assignment(design: AssignmentDesign, assignment: ArrayLike) -> NDArray[np.intp]:
    """
    Verify an assignment (arm labels) is valid under the design.

    Valid means: every label is an arm, every cluster is internally
    constant, and every block's per-arm cluster counts equal the design's
    targets (complete-type designs) or use only arms of positive
    probability (simple designs).

    Returns:
        The assignment as arm codes, shape (n,).

    Raises:
        AssignmentMismatch: With the offending block/cluster and counts
    """
    codes = labels_to_codes(design, assignment)
    check_codes(design, codes)
    return codes


def check_codes(design: AssignmentDesign, codes: NDArray[np.intp]) -> None:
    """check_assignment() for a vector that is already in arm codes."""
    cluster_arms = np.empty(design.n_clusters, dtype=np.intp)
    cluster_arms[design.clusters] = codes
    varying = np.flatnonzero(cluster_arms[design.clusters] != codes)
    if len(varying) > 0:
        cluster = design.cluster_labels[design.clusters[varying[0]]]
        members = np.flatnonzero(design.clusters == design.clusters[varying[0]])
        seen = sorted({design.arm_labels[c] for c in codes[members]}, key=repr)
        raise AssignmentMismatch(
            f"cluster {cluster!r} is not internally constant: its units carry "
            f"arms {seen!r}",
            block=design.block_labels[design.blocks[members[0]]],
            expected='one arm per cluster',
            observed=seen,
            cluster=cluster,
        )

    for b, clusters in enumerate(design.block_clusters):
        label = design.block_labels[b]
        counts = np.bincount(cluster_arms[clusters], minlength=design.n_arms)
        observed = {a: int(c) for a, c in zip(design.arm_labels, counts)}
        if design.is_simple:
            impossible = [
                a for a, p, c in zip(design.arm_labels, design.arm_probabilities[b], counts)
                if p == 0 and c > 0
            ]
            if impossible:
                raise AssignmentMismatch(
                    f"block {label!r}: arms {impossible!r} have zero probability "
                    f"but were assigned",
                    block=label,
                    expected={a: float(p) for a, p in zip(design.arm_labels, design.arm_probabilities[b])},
                    observed=observed,
                )
        elif not np.array_equal(counts, design.arm_targets[b]):
            expected = design.arm_size_targets(label)
            raise AssignmentMismatch(
                f"block {label!r}: arm counts {observed} differ from design "
                f"targets {expected}",
                block=label,
                expected=expected,
                observed=observed,
            )


def inclusion_probabilities(design: AssignmentDesign) -> NDArray[np.floating[Any]]:
    """
    First-order probability of each unit receiving each arm, shape (n, k).

    For unit u in block b: m_{b,a} / n_b for complete-type designs (n_b in
    clustering units), the block's arm probability for simple designs.
    Units of the same cluster share a row. Rows sum to 1.
    """
    if design.is_simple:
        per_block = design.arm_probabilities
    else:
        per_block = design.arm_targets / design.block_cluster_counts[:, None]
    return np.asarray(per_block, dtype=np.float64)[design.blocks]


def is_constant_probability(probabilities: NDArray[np.floating[Any]]) -> bool:
    """True if every unit has the same arm probabilities."""
    return bool(np.allclose(probabilities, probabilities[0]))
