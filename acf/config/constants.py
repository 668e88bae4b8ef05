"""
Application constants.

Centralized structural constants for the ACF network.
"""

# ========================================================================
# NETWORK SHAPE
# ========================================================================

ROOT_MAX_CHILDREN = 1  # System root accepts a single follower
DEFAULT_MAX_CHILDREN = 5  # Every other member accepts up to 5
MAX_DEPTH = 6  # Levels 0..6, i.e. 7 levels including the root


def max_subtree_size(
    fanout: int = DEFAULT_MAX_CHILDREN, max_depth: int = MAX_DEPTH
) -> int:
    """
    Upper bound on members in a subtree, root included.

    1 + 5 + 25 + 125 + 625 + 3,125 + 15,625 = 19,531 for the defaults.
    """
    if fanout == 1:
        return max_depth + 1
    return (fanout ** (max_depth + 1) - 1) // (fanout - 1)


MAX_SUBTREE_SIZE = max_subtree_size()

# ========================================================================
# MEMBER IDS
# ========================================================================

MEMBER_ID_LETTERS = "AAA"
MEMBER_ID_DIGITS = 4

# ========================================================================
# LEDGER
# ========================================================================

DISPLAY_QUANT = "0.01"  # Money rounding for display only
