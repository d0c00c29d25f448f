from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple
import uuid

from ..errors import MalformedResponse


def new_id() -> str:
    return uuid.uuid4().hex


def _wire_text(raw: Dict[str, Any], key: str, where: str) -> str:
    """Return a wire string verbatim; missing means empty, containers are rejected."""
    value = raw.get(key)
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise MalformedResponse(f"{where}.{key} must be text")
    return value if isinstance(value, str) else str(value)


def _wire_id(raw: Dict[str, Any]) -> Optional[str]:
    value = raw.get("id")
    return value if isinstance(value, str) and value else None


@dataclass(frozen=True)
class MenuItem:
    name: str
    price: str  # opaque display string, never parsed
    image: str  # URI, data URI or placeholder URI
    item_id: str = field(default_factory=new_id, compare=False)

    def to_dict(self, *, include_ids: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "price": self.price, "image": self.image}
        if include_ids:
            out["id"] = self.item_id
        return out

    @classmethod
    def from_dict(cls, raw: Any, where: str = "item") -> "MenuItem":
        if not isinstance(raw, dict):
            raise MalformedResponse(f"{where} must be an object")
        item = cls(
            name=_wire_text(raw, "name", where),
            price=_wire_text(raw, "price", where),
            image=_wire_text(raw, "image", where),
        )
        item_id = _wire_id(raw)
        return replace(item, item_id=item_id) if item_id else item


@dataclass(frozen=True)
class MenuSection:
    name: str
    items: Tuple[MenuItem, ...] = ()
    section_id: str = field(default_factory=new_id, compare=False)

    def to_dict(self, *, include_ids: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "items": [item.to_dict(include_ids=include_ids) for item in self.items],
        }
        if include_ids:
            out["id"] = self.section_id
        return out

    @classmethod
    def from_dict(cls, raw: Any, where: str = "section") -> "MenuSection":
        if not isinstance(raw, dict):
            raise MalformedResponse(f"{where} must be an object")
        raw_items = raw.get("items")
        if raw_items is None:
            raw_items = []
        if not isinstance(raw_items, list):
            raise MalformedResponse(f"{where}.items must be a list")
        section = cls(
            name=_wire_text(raw, "name", where),
            items=tuple(MenuItem.from_dict(item, f"{where}.items[{idx}]") for idx, item in enumerate(raw_items)),
        )
        section_id = _wire_id(raw)
        return replace(section, section_id=section_id) if section_id else section


@dataclass(frozen=True)
class Contact:
    phone: str
    address: str

    def to_dict(self) -> Dict[str, Any]:
        return {"phone": self.phone, "address": self.address}

    @classmethod
    def from_dict(cls, raw: Any) -> "Contact":
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise MalformedResponse("contact must be an object")
        return cls(phone=_wire_text(raw, "phone", "contact"), address=_wire_text(raw, "address", "contact"))


@dataclass(frozen=True)
class MenuDocument:
    """Canonical menu: header, ordered sections and footer contact."""

    title: str
    restaurant_name: str
    sections: Tuple[MenuSection, ...]
    contact: Contact

    def to_dict(self, *, include_ids: bool = False) -> Dict[str, Any]:
        """Return the wire shape (`name`, `restaurant`, `sections`, `contact`)."""
        return {
            "name": self.title,
            "restaurant": self.restaurant_name,
            "sections": [section.to_dict(include_ids=include_ids) for section in self.sections],
            "contact": self.contact.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "MenuDocument":
        """Decode an already-edited document from its wire shape.

        Values are taken verbatim (an empty title stays empty); no extraction
        defaults are applied. Ids under `id` are kept when present. Raises
        MalformedResponse when the shape is wrong.
        """
        if not isinstance(payload, dict):
            raise MalformedResponse("Menu document must be an object")
        raw_sections = payload.get("sections")
        if not isinstance(raw_sections, list):
            raise MalformedResponse("Menu document is missing the 'sections' list")
        return cls(
            title=_wire_text(payload, "name", "document"),
            restaurant_name=_wire_text(payload, "restaurant", "document"),
            sections=tuple(MenuSection.from_dict(raw, f"sections[{idx}]") for idx, raw in enumerate(raw_sections)),
            contact=Contact.from_dict(payload.get("contact")),
        )

    @property
    def item_count(self) -> int:
        return sum(len(section.items) for section in self.sections)
