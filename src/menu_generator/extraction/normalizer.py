from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
import json
import logging
import re

from ..domain.constants import (
    DEFAULT_ADDRESS,
    DEFAULT_PHONE,
    DEFAULT_RESTAURANT_NAME,
    DEFAULT_TITLE,
    PLACEHOLDER_IMAGE_URI,
    SECTION_NAME_TEMPLATE,
)
from ..domain.models import Contact, MenuDocument, MenuItem, MenuSection
from ..errors import MalformedResponse
from ..logging import get_logger

LOG = get_logger("menu-normalizer")

# Whole-output fence, optional language tag (```json, ```JSON, ```javascript ...).
_WRAPPING_FENCE = re.compile(r"^```[ \t]*[\w+-]*[ \t]*\r?\n?(.*?)\r?\n?[ \t]*```$", re.DOTALL)
# Fenced block embedded in prose.
_EMBEDDED_FENCE = re.compile(r"```[ \t]*(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_DANGLING_OPEN_FENCE = re.compile(r"^```[ \t]*[\w+-]*[ \t]*\r?\n?")
_DANGLING_CLOSE_FENCE = re.compile(r"\r?\n?[ \t]*```$")


def strip_code_fences(text: Optional[str]) -> str:
    """Remove Markdown code-fence wrapping the model may put around JSON."""
    if not isinstance(text, str):
        return ""
    s = text.strip()
    wrapped = _WRAPPING_FENCE.match(s)
    if wrapped:
        return wrapped.group(1).strip()
    embedded = _EMBEDDED_FENCE.search(s)
    if embedded and embedded.group(1).strip():
        return embedded.group(1).strip()
    # Truncated output can keep the opening fence without the closing one.
    s = _DANGLING_OPEN_FENCE.sub("", s)
    s = _DANGLING_CLOSE_FENCE.sub("", s)
    return s.strip()


def _scavenge_json_object(s: str) -> Optional[Any]:
    start = s.find("{")
    end = s.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    try:
        return json.loads(s[start : end + 1])
    except json.JSONDecodeError:
        return None


def parse_json_payload(raw_text: Optional[str]) -> Dict[str, Any]:
    """Parse the fence-stripped model output as a JSON object or raise MalformedResponse."""
    cleaned = strip_code_fences(raw_text)
    if not cleaned:
        raise MalformedResponse("Model output is empty")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        data = _scavenge_json_object(cleaned)
        if data is None:
            LOG.error("Model output not valid JSON; first 500 chars: %r", cleaned[:500])
            raise MalformedResponse(f"Model output is not valid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})") from exc
        LOG.debug("Recovered JSON object from surrounding prose")
    if not isinstance(data, dict):
        raise MalformedResponse(f"Model output must be a JSON object, got {type(data).__name__}")
    return data


class MenuNormalizer:
    """Turn an untrusted, loosely-typed model payload into a MenuDocument.

    Structural fields are required: a payload without a `sections` list is
    rejected. Cosmetic fields (title, restaurant, contact, item image) fall back
    to fixed literals when missing or blank; present values are kept verbatim.
    """

    ENVELOPE_KEYS: Tuple[str, ...] = ("menu",)
    TITLE_KEYS: Tuple[str, ...] = ("name", "title")
    RESTAURANT_KEYS: Tuple[str, ...] = ("restaurant", "restaurantName", "restaurant_name")

    def normalize_text(self, raw_text: Optional[str]) -> MenuDocument:
        return self.normalize_payload(parse_json_payload(raw_text))

    def normalize_payload(self, payload: Any) -> MenuDocument:
        if not isinstance(payload, dict):
            raise MalformedResponse("Menu payload must be an object")
        payload = self._unwrap(payload)

        raw_sections = payload.get("sections")
        if not isinstance(raw_sections, list):
            raise MalformedResponse("Menu payload is missing the 'sections' list")
        sections = tuple(self._normalize_section(idx, raw) for idx, raw in enumerate(raw_sections))

        document = MenuDocument(
            title=self._first_text(payload, self.TITLE_KEYS) or DEFAULT_TITLE,
            restaurant_name=self._first_text(payload, self.RESTAURANT_KEYS) or DEFAULT_RESTAURANT_NAME,
            sections=sections,
            contact=self._normalize_contact(payload.get("contact")),
        )
        if LOG.isEnabledFor(logging.DEBUG):
            for idx, section in enumerate(sections, 1):
                LOG.debug("SECTION %02d: %r (%d items)", idx, section.name, len(section.items))
        LOG.info("Normalized menu with %d section(s), %d item(s)", len(sections), document.item_count)
        return document

    # ---- structure ------------------------------------------------------------
    def _unwrap(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if "sections" in payload:
            return payload
        for key in self.ENVELOPE_KEYS:
            inner = payload.get(key)
            if isinstance(inner, dict):
                LOG.debug("Unwrapping '%s' envelope", key)
                return inner
        return payload

    def _normalize_section(self, idx: int, raw: Any) -> MenuSection:
        if not isinstance(raw, dict):
            raise MalformedResponse(f"sections[{idx}] must be an object")
        name = self._text(raw.get("name")) or SECTION_NAME_TEMPLATE.format(number=idx + 1)
        raw_items = raw.get("items")
        if raw_items is None:
            raw_items = []
        if not isinstance(raw_items, list):
            raise MalformedResponse(f"sections[{idx}].items must be a list")
        items: List[MenuItem] = [self._normalize_item(idx, item_idx, item) for item_idx, item in enumerate(raw_items)]
        return MenuSection(name=name, items=tuple(items))

    def _normalize_item(self, section_idx: int, item_idx: int, raw: Any) -> MenuItem:
        if not isinstance(raw, dict):
            raise MalformedResponse(f"sections[{section_idx}].items[{item_idx}] must be an object")
        return MenuItem(
            name=self._text(raw.get("name")) or "",
            price=self._text(raw.get("price")) or "",
            image=self._text(raw.get("image")) or PLACEHOLDER_IMAGE_URI,
        )

    def _normalize_contact(self, raw: Any) -> Contact:
        contact = raw if isinstance(raw, dict) else {}
        return Contact(
            phone=self._text(contact.get("phone")) or DEFAULT_PHONE,
            address=self._text(contact.get("address")) or DEFAULT_ADDRESS,
        )

    # ---- scalars --------------------------------------------------------------
    @classmethod
    def _first_text(cls, payload: Dict[str, Any], keys: Tuple[str, ...]) -> Optional[str]:
        for key in keys:
            value = cls._text(payload.get(key))
            if value:
                return value
        return None

    @staticmethod
    def _text(value: Any) -> Optional[str]:
        """Return value as display text, or None when missing/blank."""
        if value is None or isinstance(value, (dict, list)):
            return None
        text = value if isinstance(value, str) else str(value)
        return text if text.strip() else None


def normalize_menu_text(raw_text: Optional[str]) -> MenuDocument:
    return MenuNormalizer().normalize_text(raw_text)
