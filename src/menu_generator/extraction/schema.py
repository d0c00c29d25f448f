from __future__ import annotations

from typing import Any, Dict

SCHEMA_NAME = "menu"


def prompt() -> str:
    return """
## Task
Generate a JSON representation of this menu image. Copy every section heading, item name and price exactly as printed.

## Output (strict)
Return ONLY strict JSON (no code fences, no commentary).
Top-level keys:
- name: the menu title (e.g. "FOOD MENU", "LUNCH")
- restaurant: the restaurant name
- sections: list of sections in the printed order, each {name, items}
  - items: list of {name, price, image} in the printed order
    - price: the price text exactly as printed, including the currency symbol; do not convert
    - image: always an empty string
- contact: {phone, address}; use an empty string when not printed

## Rules
- Do not invent sections or items; do not merge, sort, or deduplicate.
- Keep the original language and spelling.
""".strip()


def menu_schema() -> Dict[str, Any]:
    """JSON schema for the extraction response (all keys required, no extras)."""
    item = {
        "type": "object",
        "additionalProperties": False,
        "required": ["name", "price", "image"],
        "properties": {
            "name": {"type": "string"},
            "price": {"type": "string"},
            "image": {"type": "string"},
        },
    }
    section = {
        "type": "object",
        "additionalProperties": False,
        "required": ["name", "items"],
        "properties": {
            "name": {"type": "string"},
            "items": {"type": "array", "items": item},
        },
    }
    return {
        "type": "object",
        "additionalProperties": False,
        "required": ["name", "restaurant", "sections", "contact"],
        "properties": {
            "name": {"type": "string"},
            "restaurant": {"type": "string"},
            "sections": {"type": "array", "items": section},
            "contact": {
                "type": "object",
                "additionalProperties": False,
                "required": ["phone", "address"],
                "properties": {
                    "phone": {"type": "string"},
                    "address": {"type": "string"},
                },
            },
        },
    }


def response_format() -> Dict[str, Any]:
    """OpenAI-compatible `response_format` payload for strict schema output."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": SCHEMA_NAME,
            "strict": True,
            "schema": menu_schema(),
        },
    }
