"""Vision-model extraction of menu documents.

Modules:
- schema: prompt and JSON schema describing the expected response
- client: outbound model call (OpenAI SDK or OpenRouter over HTTP)
- normalizer: fence stripping, JSON parsing and cosmetic defaulting
"""

from .client import ExtractionClient
from .normalizer import MenuNormalizer, parse_json_payload, strip_code_fences

__all__ = [
    "ExtractionClient",
    "MenuNormalizer",
    "parse_json_payload",
    "strip_code_fences",
]
