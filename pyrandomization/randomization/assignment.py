"""
Assignment designs: declarative models of how treatment was randomized.

An AssignmentDesign records the unit count, the block and cluster
partitions, the arm labels and, per block, either fixed arm-size targets
(complete-type designs: complete, blocked, clustered, blocked-and-clustered)
or per-arm probabilities (simple / Bernoulli designs). It is pure data:
no randomness lives here.

Targets and probabilities are counted in clustering units: clusters when
the design is clustered, units otherwise (every unit is its own cluster).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pyrandomization.core.exceptions import InvalidDesign, ValidationError
from pyrandomization.core.validation import check_labels, check_count


KIND_COMPLETE = 'complete'
KIND_SIMPLE = 'simple'


def _factorize(labels: NDArray) -> tuple[NDArray[np.intp], tuple]:
    """Integer codes and labels, labels in order of first appearance."""
    uniques, first_index, inverse = np.unique(
        labels, return_index=True, return_inverse=True
    )
    order = np.argsort(first_index, kind='stable')
    rank = np.empty_like(order)
    rank[order] = np.arange(len(order))
    codes = rank[inverse.ravel()].astype(np.intp)
    return codes, tuple(uniques[order].tolist())


@dataclass(frozen=True)
class AssignmentDesign:
    """
    Frozen specification of a randomization procedure.

    Construct via AssignmentDesign.validate() or one of the factories
    (complete, blocked, clustered, blocked_clustered, simple), not directly.

    Attributes:
        n: Number of units.
        blocks: Block code of each unit, shape (n,).
        clusters: Cluster code of each unit, shape (n,).
        block_labels: Block label for each block code.
        cluster_labels: Cluster label for each cluster code.
        arm_labels: Arm label for each arm code; code 0 is the baseline arm.
        arm_targets: (n_blocks, n_arms) cluster counts per arm, or None.
        arm_probabilities: (n_blocks, n_arms) per-cluster arm probabilities
            for simple designs, or None.
        kind: 'complete' or 'simple'.
        cluster_block: Block code of each cluster, shape (n_clusters,).
        block_clusters: Cluster codes of each block, first-appearance order.
    """
    n: int
    blocks: NDArray[np.intp]
    clusters: NDArray[np.intp]
    block_labels: tuple
    cluster_labels: tuple
    arm_labels: tuple
    arm_targets: NDArray[np.int64] | None
    arm_probabilities: NDArray[np.floating[Any]] | None
    kind: str
    cluster_block: NDArray[np.intp]
    block_clusters: tuple[NDArray[np.intp], ...]

    # === Construction ===

    @classmethod
    def validate(
        cls,
        n: int,
        blocks: ArrayLike | None = None,
        clusters: ArrayLike | None = None,
        arm_targets: Any = None,
        *,
        arm_probabilities: Any = None,
        arm_labels: Sequence | None = None,
    ) -> AssignmentDesign:
        """
        Build a design after checking every structural invariant.

        Args:
            n: Number of units (>= 1).
            blocks: Block label of each unit. None means a single block.
            clusters: Cluster label of each unit. None means every unit is
                its own cluster.
            arm_targets: Clusters assigned to each arm, per block. Either a
                mapping {block_label: counts}, a (n_blocks, n_arms) array in
                block first-appearance order, or a flat sequence of counts
                when there is a single block. counts is a sequence over arms
                or a mapping {arm_label: count}.
            arm_probabilities: Same shapes as arm_targets but holding
                per-cluster arm probabilities. Makes a simple design.
                Exactly one of arm_targets / arm_probabilities is required.
            arm_labels: Arm labels, baseline first. Default (0, 1, ..., k-1).

        Returns:
            Validated AssignmentDesign.

        Raises:
            InvalidDesign: If partitions are not total, a cluster spans
                blocks, targets do not sum to the block's cluster count,
                any target is negative or exceeds the block size,
                probabilities are not a distribution, or fewer than two
                arms are declared.
        """
        try:
            n = check_count(n, 'n', minimum=1)
        except ValidationError as e:
            raise InvalidDesign(str(e), reason='n') from e

        block_arr = _partition(blocks, n, 'blocks', default=np.zeros(n, dtype=np.intp))
        cluster_arr = _partition(clusters, n, 'clusters', default=np.arange(n))

        block_codes, block_labels = _factorize(block_arr)
        cluster_codes, cluster_labels = _factorize(cluster_arr)
        n_blocks = len(block_labels)
        n_clusters = len(cluster_labels)

        # Every cluster must sit inside exactly one block
        cluster_block = np.full(n_clusters, -1, dtype=np.intp)
        cluster_block[cluster_codes] = block_codes
        straddling = np.flatnonzero(cluster_block[cluster_codes] != block_codes)
        if len(straddling) > 0:
            bad = cluster_labels[cluster_codes[straddling[0]]]
            raise InvalidDesign(
                f"cluster {bad!r} spans more than one block; clusters must be "
                f"nested within blocks",
                reason='partition',
            )

        block_clusters = tuple(
            np.flatnonzero(cluster_block == b) for b in range(n_blocks)
        )
        block_sizes = np.array([len(c) for c in block_clusters], dtype=np.int64)

        if (arm_targets is None) == (arm_probabilities is None):
            raise InvalidDesign(
                "exactly one of arm_targets or arm_probabilities is required",
                reason='targets',
            )

        if arm_targets is not None:
            kind = KIND_COMPLETE
            table = _block_table(arm_targets, block_labels, arm_labels, 'arm_targets')
        else:
            kind = KIND_SIMPLE
            table = _block_table(arm_probabilities, block_labels, arm_labels, 'arm_probabilities')

        n_arms = table.shape[1]
        if n_arms < 2:
            raise InvalidDesign(
                f"a design needs at least 2 arms, got {n_arms}", reason='arms'
            )

        if arm_labels is None:
            labels = tuple(range(n_arms))
        else:
            labels = tuple(arm_labels)
            if len(labels) != n_arms:
                raise InvalidDesign(
                    f"arm_labels has {len(labels)} entries but targets cover "
                    f"{n_arms} arms",
                    reason='arms',
                )
            if len(set(labels)) != len(labels):
                raise InvalidDesign(
                    f"arm_labels must be distinct, got {labels!r}", reason='arms'
                )

        targets = None
        probabilities = None
        if kind == KIND_COMPLETE:
            targets = _check_targets(table, block_sizes, block_labels)
        else:
            probabilities = _check_probabilities(table, block_labels)

        return cls(
            n=n,
            blocks=block_codes,
            clusters=cluster_codes,
            block_labels=block_labels,
            cluster_labels=cluster_labels,
            arm_labels=labels,
            arm_targets=targets,
            arm_probabilities=probabilities,
            kind=kind,
            cluster_block=cluster_block,
            block_clusters=block_clusters,
        )

    @classmethod
    def complete(
        cls,
        n: int,
        m: int | None = None,
        *,
        arm_counts: Sequence[int] | None = None,
        arm_labels: Sequence | None = None,
    ) -> AssignmentDesign:
        """
        Complete random assignment: exactly m of n units treated.

        Args:
            n: Number of units.
            m: Number of treated units (two arms). Default n // 2.
            arm_counts: Units per arm for multi-arm designs, baseline first.
                Overrides m.
            arm_labels: Arm labels, baseline first.
        """
        if arm_counts is None:
            n = _as_size(n)
            m = n // 2 if m is None else m
            arm_counts = [n - m, m]
        return cls.validate(n, arm_targets=[list(arm_counts)], arm_labels=arm_labels)

    @classmethod
    def blocked(
        cls,
        blocks: ArrayLike,
        block_m: Mapping | Sequence[int] | None = None,
        *,
        block_arm_counts: Any = None,
        arm_labels: Sequence | None = None,
    ) -> AssignmentDesign:
        """
        Block random assignment: an independent complete design per block.

        Args:
            blocks: Block label of each unit.
            block_m: Treated count per block, as a mapping {block: m} or a
                sequence in block first-appearance order. Default half of
                each block, rounded down.
            block_arm_counts: Per-block arm counts for multi-arm designs
                (see AssignmentDesign.validate). Overrides block_m.
            arm_labels: Arm labels, baseline first.
        """
        block_arr = check_labels(blocks, 'blocks')
        if block_arm_counts is None:
            block_arm_counts = _two_arm_counts(block_arr, np.arange(len(block_arr)), block_m)
        return cls.validate(
            len(block_arr), block_arr, None, block_arm_counts, arm_labels=arm_labels
        )

    @classmethod
    def clustered(
        cls,
        clusters: ArrayLike,
        m: int | None = None,
        *,
        arm_counts: Sequence[int] | None = None,
        arm_labels: Sequence | None = None,
    ) -> AssignmentDesign:
        """
        Cluster random assignment: exactly m of the clusters treated.

        Args:
            clusters: Cluster label of each unit.
            m: Number of treated clusters. Default half the clusters,
                rounded down.
            arm_counts: Clusters per arm for multi-arm designs.
            arm_labels: Arm labels, baseline first.
        """
        cluster_arr = check_labels(clusters, 'clusters')
        if arm_counts is None:
            n_clusters = len(np.unique(cluster_arr))
            m = n_clusters // 2 if m is None else m
            arm_counts = [n_clusters - m, m]
        return cls.validate(
            len(cluster_arr), None, cluster_arr, [list(arm_counts)], arm_labels=arm_labels
        )

    @classmethod
    def blocked_clustered(
        cls,
        blocks: ArrayLike,
        clusters: ArrayLike,
        block_m: Mapping | Sequence[int] | None = None,
        *,
        block_arm_counts: Any = None,
        arm_labels: Sequence | None = None,
    ) -> AssignmentDesign:
        """
        Blocked and clustered assignment: clusters nested in blocks, an
        independent complete assignment of clusters within each block.

        block_m counts clusters, not units.
        """
        block_arr = check_labels(blocks, 'blocks')
        cluster_arr = check_labels(clusters, 'clusters')
        if block_arm_counts is None:
            block_arm_counts = _two_arm_counts(block_arr, cluster_arr, block_m)
        return cls.validate(
            len(block_arr), block_arr, cluster_arr, block_arm_counts,
            arm_labels=arm_labels,
        )

    @classmethod
    def simple(
        cls,
        n: int,
        prob: float = 0.5,
        *,
        arm_probs: Sequence[float] | None = None,
        blocks: ArrayLike | None = None,
        clusters: ArrayLike | None = None,
        arm_labels: Sequence | None = None,
    ) -> AssignmentDesign:
        """
        Simple (Bernoulli) assignment: each cluster independently receives
        an arm with fixed probabilities. Arm sizes are random.

        Args:
            n: Number of units.
            prob: Treatment probability for two-arm designs.
            arm_probs: Arm probabilities, baseline first. Overrides prob.
            blocks: Optional block labels (same probabilities in every block).
            clusters: Optional cluster labels.
            arm_labels: Arm labels, baseline first.
        """
        if arm_probs is None:
            arm_probs = [1.0 - prob, prob]
        probs = [list(arm_probs)]
        if blocks is not None:
            block_arr = check_labels(blocks, 'blocks')
            _, block_labels = _factorize(block_arr)
            probs = {label: list(arm_probs) for label in block_labels}
        return cls.validate(
            n, blocks, clusters, arm_probabilities=probs, arm_labels=arm_labels
        )

    # === Properties ===

    @property
    def n_arms(self) -> int:
        return len(self.arm_labels)

    @property
    def n_blocks(self) -> int:
        return len(self.block_labels)

    @property
    def n_clusters(self) -> int:
        return len(self.cluster_labels)

    @property
    def is_simple(self) -> bool:
        return self.kind == KIND_SIMPLE

    @property
    def is_clustered(self) -> bool:
        return self.n_clusters < self.n

    @property
    def block_cluster_counts(self) -> NDArray[np.int64]:
        """Number of clusters (clustering units) in each block."""
        return np.array([len(c) for c in self.block_clusters], dtype=np.int64)

    # === Accessors ===

    def arm_size_targets(self, block: Any) -> dict[Any, int]:
        """
        Arm-size targets of a block, {arm_label: cluster count}.

        Raises:
            KeyError: If block is not a block label of this design
            InvalidDesign: If the design is simple (arm sizes are random)
        """
        b = self._block_code(block)
        if self.arm_targets is None:
            raise InvalidDesign(
                "simple designs have no fixed arm-size targets",
                block=block,
                reason='simple',
            )
        return {
            label: int(count)
            for label, count in zip(self.arm_labels, self.arm_targets[b])
        }

    def clusters_of(self, block: Any) -> tuple:
        """Cluster labels in a block, in order of first appearance."""
        b = self._block_code(block)
        return tuple(self.cluster_labels[c] for c in self.block_clusters[b])

    def arm_code(self, label: Any) -> int:
        """
        Arm code (index into arm_labels) of an arm label.

        Raises:
            KeyError: If label is not an arm of this design
        """
        try:
            return self.arm_labels.index(label)
        except ValueError:
            raise KeyError(
                f"{label!r} is not an arm label; arms are {self.arm_labels!r}"
            ) from None

    def _block_code(self, block: Any) -> int:
        try:
            return self.block_labels.index(block)
        except ValueError:
            raise KeyError(
                f"{block!r} is not a block label; blocks are {self.block_labels!r}"
            ) from None

    def __repr__(self) -> str:
        return (
            f"AssignmentDesign(kind={self.kind!r}, n={self.n}, "
            f"n_blocks={self.n_blocks}, n_clusters={self.n_clusters}, "
            f"arms={self.arm_labels!r})"
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _as_size(n: Any) -> int:
    try:
        return check_count(n, 'n', minimum=1)
    except ValidationError as e:
        raise InvalidDesign(str(e), reason='n') from e


def _partition(labels: ArrayLike | None, n: int, name: str, default: NDArray) -> NDArray:
    """Validate a partition vector; every unit must carry one label."""
    if labels is None:
        return default
    try:
        arr = check_labels(labels, name)
    except ValidationError as e:
        raise InvalidDesign(str(e), reason='partition') from e
    if arr.shape[0] != n:
        raise InvalidDesign(
            f"{name}: has {arr.shape[0]} entries, expected one per unit (n={n})",
            reason='partition',
        )
    return arr


def _block_table(
    spec: Any,
    block_labels: tuple,
    arm_labels: Sequence | None,
    name: str,
) -> NDArray[np.floating[Any]]:
    """Normalize targets/probabilities into a (n_blocks, n_arms) float table."""
    n_blocks = len(block_labels)

    if isinstance(spec, Mapping):
        unknown = [k for k in spec if k not in block_labels]
        if unknown:
            raise InvalidDesign(
                f"{name}: unknown block(s) {unknown!r}; blocks are {block_labels!r}",
                block=unknown[0],
                reason='targets',
            )
        missing = [b for b in block_labels if b not in spec]
        if missing:
            raise InvalidDesign(
                f"{name}: no entry for block(s) {missing!r}",
                block=missing[0],
                reason='targets',
            )
        rows = [_arm_row(spec[b], arm_labels, name, b) for b in block_labels]
    else:
        if isinstance(spec, (str, bytes)):
            raise InvalidDesign(f"{name}: cannot interpret {spec!r}", reason='targets')
        items = list(spec)
        if items and all(np.isscalar(v) for v in items):
            items = [items]
        if len(items) != n_blocks:
            raise InvalidDesign(
                f"{name}: got rows for {len(items)} blocks, design has {n_blocks}",
                reason='targets',
            )
        rows = [
            _arm_row(row, arm_labels, name, label)
            for row, label in zip(items, block_labels)
        ]

    widths = {len(r) for r in rows}
    if len(widths) != 1:
        raise InvalidDesign(
            f"{name}: blocks declare different numbers of arms {sorted(widths)}",
            reason='targets',
        )
    return np.array(rows, dtype=np.float64)


def _arm_row(row: Any, arm_labels: Sequence | None, name: str, block: Any) -> list[float]:
    if isinstance(row, Mapping):
        if arm_labels is None:
            raise InvalidDesign(
                f"{name}: per-arm mappings require arm_labels",
                block=block,
                reason='targets',
            )
        unknown = [a for a in row if a not in arm_labels]
        if unknown:
            raise InvalidDesign(
                f"{name}: block {block!r} names unknown arm(s) {unknown!r}",
                block=block,
                reason='targets',
            )
        return [float(row.get(a, 0)) for a in arm_labels]
    try:
        return [float(v) for v in row]
    except (TypeError, ValueError) as e:
        raise InvalidDesign(
            f"{name}: block {block!r} has non-numeric entries {row!r}",
            block=block,
            reason='targets',
        ) from e


def _check_targets(
    table: NDArray[np.floating[Any]],
    block_sizes: NDArray[np.int64],
    block_labels: tuple,
) -> NDArray[np.int64]:
    for b, label in enumerate(block_labels):
        row = table[b]
        size = int(block_sizes[b])
        if np.any(~np.isfinite(row)) or np.any(row != np.round(row)):
            raise InvalidDesign(
                f"block {label!r}: arm targets must be integers, got {row.tolist()}",
                block=label,
                reason='targets',
            )
        if np.any(row < 0):
            raise InvalidDesign(
                f"block {label!r}: arm targets must be non-negative, got {row.tolist()}",
                block=label,
                reason='targets',
            )
        if np.any(row > size):
            raise InvalidDesign(
                f"block {label!r}: arm target exceeds block size {size}, "
                f"got {row.astype(int).tolist()}",
                block=label,
                reason='targets',
            )
        if int(row.sum()) != size:
            raise InvalidDesign(
                f"block {label!r}: arm targets {row.astype(int).tolist()} sum to "
                f"{int(row.sum())}, expected the block's {size} clustering units",
                block=label,
                reason='targets',
            )
    return table.astype(np.int64)


def _check_probabilities(
    table: NDArray[np.floating[Any]],
    block_labels: tuple,
) -> NDArray[np.floating[Any]]:
    for b, label in enumerate(block_labels):
        row = table[b]
        if np.any(~np.isfinite(row)) or np.any(row < 0) or np.any(row > 1):
            raise InvalidDesign(
                f"block {label!r}: arm probabilities must lie in [0, 1], got {row.tolist()}",
                block=label,
                reason='probabilities',
            )
        if not np.isclose(row.sum(), 1.0):
            raise InvalidDesign(
                f"block {label!r}: arm probabilities sum to {row.sum():.6g}, expected 1",
                block=label,
                reason='probabilities',
            )
    return table


def _two_arm_counts(
    block_arr: NDArray,
    unit_arr: NDArray,
    block_m: Mapping | Sequence[int] | None,
) -> list[list[float]]:
    """[control, treated] cluster counts per block from a treated count."""
    block_codes, block_labels = _factorize(block_arr)
    counts = []
    for b, label in enumerate(block_labels):
        size = len(np.unique(unit_arr[block_codes == b]))
        if block_m is None:
            m = size // 2
        elif isinstance(block_m, Mapping):
            if label not in block_m:
                raise InvalidDesign(
                    f"block_m: no entry for block {label!r}",
                    block=label,
                    reason='targets',
                )
            m = block_m[label]
        else:
            m_list = list(block_m)
            if len(m_list) != len(block_labels):
                raise InvalidDesign(
                    f"block_m: got {len(m_list)} counts, design has "
                    f"{len(block_labels)} blocks",
                    reason='targets',
                )
            m = m_list[b]
        counts.append([size - m, m])
    return counts
