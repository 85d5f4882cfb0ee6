"""
Tests for AssignmentDesign construction and accessors.

Validates:
    - Factories for complete, blocked, clustered, blocked-clustered and
      simple designs, including multi-arm variants
    - InvalidDesign on malformed partitions and targets
    - arm_size_targets(), clusters_of() and arm_code() lookups
"""

import numpy as np
import pytest

from pyrandomization.randomization import AssignmentDesign
from pyrandomization.core.exceptions import InvalidDesign


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class TestComplete:

    def test_two_arm(self):
        design = AssignmentDesign.complete(7, 2)
        assert design.n == 7
        assert design.n_arms == 2
        assert design.arm_labels == (0, 1)
        assert design.n_blocks == 1
        assert design.n_clusters == 7
        assert not design.is_clustered
        assert not design.is_simple
        assert design.arm_size_targets(0) == {0: 5, 1: 2}

    def test_default_half(self):
        assert AssignmentDesign.complete(9).arm_size_targets(0) == {0: 5, 1: 4}

    def test_multi_arm_labels(self):
        design = AssignmentDesign.complete(
            6, arm_counts=[2, 2, 2], arm_labels=['control', 'low', 'high']
        )
        assert design.n_arms == 3
        assert design.arm_size_targets(0) == {'control': 2, 'low': 2, 'high': 2}
        assert design.arm_code('high') == 2

    def test_m_exceeds_n(self):
        with pytest.raises(InvalidDesign) as exc_info:
            AssignmentDesign.complete(5, 7)
        assert exc_info.value.reason == 'targets'

    def test_bad_n(self):
        with pytest.raises(InvalidDesign) as exc_info:
            AssignmentDesign.complete(0)
        assert exc_info.value.reason == 'n'


class TestBlocked:

    def test_block_sizes(self):
        blocks = ['a'] * 4 + ['b'] * 6
        design = AssignmentDesign.blocked(blocks, {'a': 1, 'b': 3})
        assert design.block_labels == ('a', 'b')
        assert design.arm_size_targets('a') == {0: 3, 1: 1}
        assert design.arm_size_targets('b') == {0: 3, 1: 3}
        np.testing.assert_array_equal(design.block_cluster_counts, [4, 6])

    def test_default_half_per_block(self):
        design = AssignmentDesign.blocked([1, 1, 1, 2, 2])
        assert design.arm_size_targets(1) == {0: 2, 1: 1}
        assert design.arm_size_targets(2) == {0: 1, 1: 1}

    def test_sequence_targets(self):
        design = AssignmentDesign.blocked(['x', 'x', 'y', 'y'], [1, 2])
        assert design.arm_size_targets('y') == {0: 0, 1: 2}

    def test_missing_block_target(self):
        with pytest.raises(InvalidDesign) as exc_info:
            AssignmentDesign.blocked(['a', 'a', 'b', 'b'], {'a': 1})
        assert exc_info.value.block == 'b'

    def test_target_exceeds_block(self):
        with pytest.raises(InvalidDesign) as exc_info:
            AssignmentDesign.blocked(['a', 'a', 'b', 'b'], {'a': 1, 'b': 3})
        assert exc_info.value.block == 'b'
        assert exc_info.value.reason == 'targets'

    def test_multi_arm_blocks(self):
        blocks = ['a'] * 3 + ['b'] * 6
        design = AssignmentDesign.blocked(
            blocks,
            block_arm_counts={'a': [1, 1, 1], 'b': [2, 2, 2]},
        )
        assert design.n_arms == 3
        assert design.arm_size_targets('b') == {0: 2, 1: 2, 2: 2}


class TestClustered:

    def test_counts_clusters(self):
        clusters = [1, 1, 2, 2, 3, 3, 4, 4]
        design = AssignmentDesign.clustered(clusters, 2)
        assert design.n == 8
        assert design.n_clusters == 4
        assert design.is_clustered
        assert design.arm_size_targets(0) == {0: 2, 1: 2}
        assert design.clusters_of(0) == (1, 2, 3, 4)

    def test_target_counts_units_rejected(self):
        with pytest.raises(InvalidDesign):
            AssignmentDesign.clustered([1, 1, 2, 2], 3)


class TestBlockedClustered:

    def test_nested(self):
        blocks = ['A'] * 4 + ['B'] * 6
        clusters = [1, 1, 2, 2, 3, 3, 4, 4, 5, 5]
        design = AssignmentDesign.blocked_clustered(blocks, clusters, {'A': 1, 'B': 2})
        np.testing.assert_array_equal(design.block_cluster_counts, [2, 3])
        assert design.clusters_of('B') == (3, 4, 5)
        assert design.arm_size_targets('B') == {0: 1, 1: 2}

    def test_cluster_spanning_blocks(self):
        with pytest.raises(InvalidDesign) as exc_info:
            AssignmentDesign.blocked_clustered(
                ['A', 'A', 'B', 'B'], [1, 2, 2, 3], {'A': 1, 'B': 1}
            )
        assert exc_info.value.reason == 'partition'


class TestSimple:

    def test_two_arm(self):
        design = AssignmentDesign.simple(10, 0.3)
        assert design.is_simple
        np.testing.assert_allclose(design.arm_probabilities, [[0.7, 0.3]])

    def test_multi_arm_blocked(self):
        design = AssignmentDesign.simple(
            4, arm_probs=[0.5, 0.25, 0.25], blocks=['a', 'a', 'b', 'b']
        )
        assert design.n_arms == 3
        assert design.n_blocks == 2

    def test_no_fixed_targets(self):
        design = AssignmentDesign.simple(4)
        with pytest.raises(InvalidDesign):
            design.arm_size_targets(0)

    def test_bad_probabilities(self):
        with pytest.raises(InvalidDesign) as exc_info:
            AssignmentDesign.simple(4, arm_probs=[0.5, 0.6])
        assert exc_info.value.reason == 'probabilities'


# ---------------------------------------------------------------------------
# validate()
# ---------------------------------------------------------------------------

class TestValidate:

    def test_partition_wrong_length(self):
        with pytest.raises(InvalidDesign) as exc_info:
            AssignmentDesign.validate(4, blocks=[0, 0, 1], arm_targets={0: [1, 1], 1: [1, 1]})
        assert exc_info.value.reason == 'partition'

    def test_missing_block_label(self):
        with pytest.raises(InvalidDesign) as exc_info:
            AssignmentDesign.validate(3, blocks=[1.0, np.nan, 1.0], arm_targets=[[1, 2]])
        assert exc_info.value.reason == 'partition'

    def test_targets_and_probabilities_exclusive(self):
        with pytest.raises(InvalidDesign):
            AssignmentDesign.validate(2, arm_targets=[1, 1], arm_probabilities=[0.5, 0.5])
        with pytest.raises(InvalidDesign):
            AssignmentDesign.validate(2)

    def test_targets_must_sum_to_block_size(self):
        with pytest.raises(InvalidDesign, match="sum to"):
            AssignmentDesign.validate(5, arm_targets=[2, 2])

    def test_negative_target(self):
        with pytest.raises(InvalidDesign, match="non-negative"):
            AssignmentDesign.validate(3, arm_targets=[4, -1])

    def test_fractional_target(self):
        with pytest.raises(InvalidDesign, match="integers"):
            AssignmentDesign.validate(3, arm_targets=[1.5, 1.5])

    def test_single_arm(self):
        with pytest.raises(InvalidDesign) as exc_info:
            AssignmentDesign.validate(3, arm_targets=[3])
        assert exc_info.value.reason == 'arms'

    def test_arm_labels_length(self):
        with pytest.raises(InvalidDesign) as exc_info:
            AssignmentDesign.validate(3, arm_targets=[1, 2], arm_labels=['a', 'b', 'c'])
        assert exc_info.value.reason == 'arms'

    def test_duplicate_arm_labels(self):
        with pytest.raises(InvalidDesign):
            AssignmentDesign.validate(3, arm_targets=[1, 2], arm_labels=['a', 'a'])

    def test_arm_mapping_targets(self):
        design = AssignmentDesign.validate(
            3, arm_targets={0: {'t': 1, 'c': 2}}, arm_labels=['c', 't']
        )
        assert design.arm_size_targets(0) == {'c': 2, 't': 1}

    def test_arm_mapping_requires_labels(self):
        with pytest.raises(InvalidDesign, match="arm_labels"):
            AssignmentDesign.validate(3, arm_targets={0: {'t': 1, 'c': 2}})

    def test_unknown_block_in_targets(self):
        with pytest.raises(InvalidDesign, match="unknown block"):
            AssignmentDesign.validate(2, arm_targets={0: [1, 1], 9: [0, 0]})


class TestAccessors:

    def test_unknown_block(self):
        design = AssignmentDesign.blocked(['a', 'a', 'b', 'b'])
        with pytest.raises(KeyError):
            design.arm_size_targets('z')
        with pytest.raises(KeyError):
            design.clusters_of('z')

    def test_unknown_arm(self):
        with pytest.raises(KeyError):
            AssignmentDesign.complete(4).arm_code('treated')

    def test_repr(self):
        text = repr(AssignmentDesign.complete(4))
        assert "kind='complete'" in text
        assert "n=4" in text

    def test_frozen(self):
        design = AssignmentDesign.complete(4)
        with pytest.raises(Exception):
            design.n = 5
