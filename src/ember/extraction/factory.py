"""Construction of the extraction capability for an account."""

import logging

from ember.config import ExtractionBackend, Settings
from ember.extraction.extractor import ExtractionCapability, LLMExtractor
from ember.extraction.static import StaticExtractor
from ember.llm.factory import ExtractionRoute, create_client

logger = logging.getLogger(__name__)


def build_extractor(
    config: Settings,
    route: ExtractionRoute = ExtractionRoute.SERVER,
    byok_api_key: str | None = None,
) -> ExtractionCapability:
    """Select the extraction implementation for one job.

    The static backend ignores the route. For the llm backend, the route picks
    the credential and endpoint (see ember.llm.factory.create_client).

    Raises:
        ValueError: If the route cannot be served with the current configuration
    """
    if config.extraction_backend == ExtractionBackend.STATIC:
        return StaticExtractor(max_candidates=config.max_candidates)

    client = create_client(route, config, byok_api_key=byok_api_key)
    logger.debug(f"Using {client.provider} client for {route.value} extraction route")
    return LLMExtractor(
        client,
        max_tokens=config.extraction_max_tokens,
        max_candidates=config.max_candidates,
    )
