"""Example script demonstrating the Image Studio vision pipeline."""

import asyncio
import json
import logging

from imagestudio.config import settings
from imagestudio.vision import VisionRuntime, VisionService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Describe a library image and print service health."""
    runtime = VisionRuntime.from_settings(settings)
    service = VisionService(settings, runtime)

    try:
        health = await service.health_check()
        logger.info(f"Healthy: {health['healthy']}")

        description = await service.process_image_description(
            ["example-image"],
            {"purpose": "accessibility", "language": "en"},
        )
        logger.info(json.dumps(description["accessibility"], indent=2))

        metrics = runtime.metrics.get_metrics()
        logger.info(f"Success rate: {metrics.success_rate:.2%}")
        logger.info(f"Cache hit rate: {metrics.cache_hit_rate:.2%}")
    finally:
        await service.aclose()


if __name__ == "__main__":
    asyncio.run(main())
