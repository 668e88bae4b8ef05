"""
Member ID generation.

IDs follow YY + letters + zero-padded run number, e.g. 25AAA0001.
"""

from datetime import UTC, datetime

from acf.config.constants import MEMBER_ID_DIGITS, MEMBER_ID_LETTERS


def two_digit_year(moment: datetime | None = None) -> str:
    """Return the two-digit year of moment (now by default)."""
    moment = moment or datetime.now(UTC)
    return f"{moment.year % 100:02d}"


def make_member_id(
    run_number: int,
    moment: datetime | None = None,
    letters: str = MEMBER_ID_LETTERS,
) -> str:
    """
    Build a member ID from a run number.

    Args:
        run_number: Global run number (non-negative)
        moment: Registration time, used for the year prefix
        letters: Letter block

    Returns:
        Member ID string

    Raises:
        ValueError: If run_number is negative
    """
    if run_number < 0:
        raise ValueError(f"run_number must be >= 0, got {run_number}")
    return f"{two_digit_year(moment)}{letters}{run_number:0{MEMBER_ID_DIGITS}d}"
