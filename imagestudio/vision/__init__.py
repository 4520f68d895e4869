"""Vision analysis pipeline for Image Studio.

This module provides:
- Prompt construction
- The Azure OpenAI vision client
- A reachability health check
- The resilient description service
"""

from .client import AzureVisionClient
from .health import HealthStatus, check_vision_service_health
from .service import VisionRuntime, VisionService

__all__ = [
    "AzureVisionClient",
    "HealthStatus",
    "check_vision_service_health",
    "VisionRuntime",
    "VisionService",
]
