"""
Run number repository.

SQLAlchemy implementation of the RunNumberAuthority contract backed by a
database sequence, which never hands out a value twice even across
rolled back transactions.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from acf.models.node import RUN_NUMBER_SEQUENCE


class RunNumberRepository:
    """Sequence-backed run numbers."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize run number repository."""
        self.session = session

    async def next_run_number(self) -> int:
        """
        Next value of the global run number sequence.

        Returns:
            Run number
        """
        result = await self.session.execute(
            select(RUN_NUMBER_SEQUENCE.next_value())
        )
        return int(result.scalar_one())
