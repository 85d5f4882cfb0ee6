"""
Capability string constants for PyRandomization.

This module is the SINGLE SOURCE OF TRUTH for capability strings.
Import from here, never use raw strings.
"""

# Data can be returned as full numpy arrays in memory
CAPABILITY_MATERIALIZED = 'materialized'

# Data can be iterated multiple times (one pass per randomization draw)
CAPABILITY_REPEATABLE = 'repeatable'

# Data columns can be replaced to produce a modified copy
CAPABILITY_COLUMN_REPLACEMENT = 'column_replacement'

ALL_CAPABILITIES = frozenset({
    CAPABILITY_MATERIALIZED,
    CAPABILITY_REPEATABLE,
    CAPABILITY_COLUMN_REPLACEMENT,
})

__all__ = [
    'CAPABILITY_MATERIALIZED',
    'CAPABILITY_REPEATABLE',
    'CAPABILITY_COLUMN_REPLACEMENT',
    'ALL_CAPABILITIES',
]
