#!/usr/bin/env python3
"""
Verify network limits.

Checks that the stored network follows the ACF rules:
- Root accepts 1 child, every other member at most 5
- Depth 0..6 (7 levels including the root)
- Subtree size at most 19,531 members
- Exactly one root, every depth equal to parent depth + 1

Optionally prints membership and financial aggregates for one subtree.
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from acf.database import create_engine, create_session_maker
from acf.services.registration_service import RegistrationService
from acf.utils.logging import setup_logging


async def verify(root_id: str | None) -> int:
    engine = create_engine()
    session_maker = create_session_maker(engine)
    try:
        async with session_maker() as session:
            service = RegistrationService(session)
            report = await service.audit()

            logger.info(f"Nodes: {report.node_count}")
            logger.info(f"Max depth found: {report.max_depth_found}")
            logger.info(f"Largest subtree: {report.largest_subtree}")
            for violation in report.violations:
                logger.error(f"  - {violation}")

            if root_id:
                result = await service.network_financials(root_id)
                if not result.success:
                    logger.error(f"Aggregation failed: {result.error}")
                    return 1
                for key, value in result.data.as_display().items():
                    logger.info(f"{key}: {value}")
    finally:
        await engine.dispose()

    if report.ok:
        logger.success("All network limits hold.")
        return 0
    logger.error(f"Found {len(report.violations)} violations.")
    return 1


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--root",
        help="Member ID whose subtree aggregates should be printed",
    )
    args = parser.parse_args()
    setup_logging()
    sys.exit(asyncio.run(verify(args.root)))


if __name__ == "__main__":
    main()
