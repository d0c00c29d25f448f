from __future__ import annotations

import sys
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
sys.path.insert(0, str(SRC_ROOT))

from PIL import Image  # noqa: E402

from menu_generator.config import Settings  # noqa: E402
from menu_generator.extraction.client import ExtractionClient  # noqa: E402
from menu_generator.service import MenuExtractionService  # noqa: E402


SCENARIO_A = (
    '{"name":"Lunch","restaurant":"Cafe X","sections":[{"name":"Mains","items":'
    '[{"name":"Burger","price":"$10","image":""}]}],"contact":{}}'
)


class FakeBackend:
    """Stands in for a model backend: returns canned text or raises."""

    name = "fake"

    def __init__(self, text: Optional[str] = None, exc: Optional[BaseException] = None) -> None:
        self.text = text
        self.exc = exc
        self.calls: List[List[Dict[str, Any]]] = []

    def complete(self, messages: List[Dict[str, Any]]) -> Optional[str]:
        self.calls.append(messages)
        if self.exc is not None:
            raise self.exc
        return self.text


@pytest.fixture
def settings() -> Settings:
    return Settings(backend="openai", api_key="test-key", model_name="test-model")


@pytest.fixture
def make_service(settings: Settings) -> Callable[..., MenuExtractionService]:
    def _make(text: Optional[str] = None, exc: Optional[BaseException] = None) -> MenuExtractionService:
        client = ExtractionClient(settings, backend=FakeBackend(text=text, exc=exc))
        return MenuExtractionService(settings, client=client)

    return _make


def png_bytes(color: str = "red", size: tuple = (8, 8)) -> bytes:
    output = BytesIO()
    Image.new("RGB", size, color=color).save(output, format="PNG")
    return output.getvalue()


@pytest.fixture
def image_bytes() -> bytes:
    return png_bytes()


@pytest.fixture
def sample_payload() -> Dict[str, Any]:
    return {
        "name": "FOOD MENU",
        "restaurant": "Paucek and Lage Restaurant",
        "sections": [
            {
                "name": "MAIN COURSE",
                "items": [
                    {"name": "Cheeseburger", "price": "$34", "image": "/api/placeholder/200/200"},
                    {"name": "Cheese sandwich", "price": "$22", "image": "/api/placeholder/200/200"},
                ],
            },
            {
                "name": "BEVERAGES",
                "items": [
                    {"name": "Milk Shake", "price": "$3", "image": "/api/placeholder/200/200"},
                    {"name": "Iced Tea", "price": "$2", "image": "/api/placeholder/200/200"},
                ],
            },
        ],
        "contact": {"phone": "555-0100", "address": "1 Main St., Springfield"},
    }
