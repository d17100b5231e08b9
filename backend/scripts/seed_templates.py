import argparse
import asyncio

from backend.app.config import get_settings
from backend.app.infrastructure.database import AsyncSessionLocal
from backend.app.infrastructure.template_seeding import SystemTemplateSeeder
from backend.app.logging_config import get_logger, setup_logging

logger = get_logger("app.scripts.seed_templates")


async def seed_templates(force: bool) -> dict:
    async with AsyncSessionLocal() as session:
        try:
            return await SystemTemplateSeeder(session).seed_all(force=force)
        except Exception:
            await session.rollback()
            raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the built-in letter templates")
    parser.add_argument(
        "--force", action="store_true", help="reset existing system templates to the defaults"
    )
    args = parser.parse_args()

    setup_logging(get_settings().log_dir)
    result = asyncio.run(seed_templates(args.force))
    logger.info(
        f"created={len(result['created'])} updated={len(result['updated'])}"
        f" unchanged={len(result['unchanged'])}"
    )
