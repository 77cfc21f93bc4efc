# Filename: main.py

import asyncio
import logging

from config import load_config
from token_service import UnifiedTokenService

logger = logging.getLogger("Main")

STATUS_INTERVAL_SECONDS = 60


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


async def run(config):
    service = UnifiedTokenService(config=config)
    await service.start()

    try:
        while True:
            stats = service.get_statistics()
            logger.info(
                f"📊 Tokens: {stats['total']} | Verified: {stats['verified']} | "
                f"By source: {stats['by_source']} | Live: {stats['live']}"
            )
            await asyncio.sleep(STATUS_INTERVAL_SECONDS)
    finally:
        await service.stop()


def main():
    config = load_config()
    setup_logging(config.get("LOG_LEVEL", "INFO"))
    logger.info("🚀 Starting unified token aggregator...")

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("❌ Stopped by user.")


if __name__ == "__main__":
    main()
