#!/usr/bin/env python3
"""Create the ACF schema and make sure the system root exists."""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from acf.database import create_engine, create_session_maker
from acf.models import Base
from acf.services.registration_service import RegistrationService
from acf.utils.logging import setup_logging


async def main() -> None:
    engine = create_engine()
    try:
        # Tables, indexes and acf_run_number_seq
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
        logger.info("Schema is in place")

        async with create_session_maker(engine)() as session:
            root = await RegistrationService(session).bootstrap_root()
        logger.success(f"System root {root.id} ready")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
