from __future__ import annotations

from typing import Optional

from .config import Settings, load_settings
from .domain.models import MenuDocument
from .extraction.client import ExtractionClient
from .extraction.normalizer import MenuNormalizer
from .logging import get_logger


LOG = get_logger("menu-service")


class MenuExtractionService:
    """Coordinate extraction and normalization: image bytes in, MenuDocument out."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        client: Optional[ExtractionClient] = None,
        normalizer: Optional[MenuNormalizer] = None,
    ) -> None:
        if client is None:
            settings = settings or load_settings()
            client = ExtractionClient(settings)
        self.settings = settings or client.settings
        self.client = client
        self.normalizer = normalizer or MenuNormalizer()

    def process_image(self, image_bytes: bytes, mime_type: Optional[str]) -> MenuDocument:
        """Run one extraction; raises ExtractionFailure or MalformedResponse."""
        raw_text = self.client.extract(image_bytes, mime_type)
        document = self.normalizer.normalize_text(raw_text)
        LOG.info("Extracted menu '%s' for '%s'", document.title, document.restaurant_name)
        return document
