from __future__ import annotations

from dataclasses import replace
from typing import Callable, Optional, Tuple
import mimetypes
import threading

from ..domain.constants import DOCUMENT_FIELD_PATHS, IMAGE_MIME_TYPES, ITEM_FIELDS
from ..domain.models import MenuDocument, MenuItem, MenuSection
from ..errors import IndexOutOfRange, InvalidField
from ..extraction.client import image_data_url, normalize_mime_type
from ..logging import get_logger

LOG = get_logger("menu-document")


class MenuDocumentModel:
    """Editable holder of the current MenuDocument snapshot.

    Snapshots are immutable. Each effective mutation builds a new document
    that shares every untouched section and item with the previous one, and
    swaps it in under a lock, so readers of `document` always get a complete
    snapshot. Sections and items are addressed by position; negative indices
    are rejected. A failed mutation leaves the document unchanged.
    """

    def __init__(self, document: MenuDocument) -> None:
        self._document = document
        self._version = 0
        self._lock = threading.Lock()

    @property
    def document(self) -> MenuDocument:
        return self._document

    @property
    def version(self) -> int:
        return self._version

    # ---- mutations ------------------------------------------------------------
    def replace_field(self, path: str, value: str) -> MenuDocument:
        """Replace a top-level text field: title, restaurantName, contact.phone or contact.address."""
        target = DOCUMENT_FIELD_PATHS.get(path)
        if target is None:
            raise InvalidField(f"Unknown document field path: {path!r}")
        with self._lock:
            doc = self._document
            if target in ("phone", "address"):
                contact = doc.contact
                if getattr(contact, target) == value:
                    return doc
                updated = replace(doc, contact=replace(contact, **{target: value}))
            else:
                if getattr(doc, target) == value:
                    return doc
                updated = replace(doc, **{target: value})
            return self._commit(updated, f"{path} updated")

    def rename_section(self, section_index: int, new_name: str) -> MenuDocument:
        with self._lock:
            doc = self._document
            section = self._section_at(doc, section_index)
            if section.name == new_name:
                return doc
            updated = self._with_section(doc, section_index, replace(section, name=new_name))
            return self._commit(updated, f"section {section_index} renamed")

    def update_item_field(self, section_index: int, item_index: int, field: str, value: str) -> MenuDocument:
        if field not in ITEM_FIELDS:
            raise InvalidField(f"Item field must be one of {', '.join(ITEM_FIELDS)}; got {field!r}")
        with self._lock:
            doc = self._document
            section = self._section_at(doc, section_index)
            item = self._item_at(section, section_index, item_index)
            if getattr(item, field) == value:
                return doc
            items = self._replace_at(section.items, item_index, replace(item, **{field: value}))
            updated = self._with_section(doc, section_index, replace(section, items=items))
            return self._commit(updated, f"item {section_index}.{item_index} {field} updated")

    def replace_item_image(self, section_index: int, item_index: int, image_data: str) -> MenuDocument:
        """Swap an item's image for an encoded payload such as a data URI."""
        return self.update_item_field(section_index, item_index, "image", image_data)

    # ---- identifier lookup ----------------------------------------------------
    def section_index(self, section_id: str) -> int:
        for idx, section in enumerate(self._document.sections):
            if section.section_id == section_id:
                return idx
        raise IndexOutOfRange(f"No section with id {section_id!r}")

    def item_position(self, item_id: str) -> Tuple[int, int]:
        for s_idx, section in enumerate(self._document.sections):
            for i_idx, item in enumerate(section.items):
                if item.item_id == item_id:
                    return s_idx, i_idx
        raise IndexOutOfRange(f"No item with id {item_id!r}")

    # ---- helpers --------------------------------------------------------------
    def _commit(self, updated: MenuDocument, what: str) -> MenuDocument:
        self._document = updated
        self._version += 1
        LOG.debug("Document v%d: %s", self._version, what)
        return updated

    @staticmethod
    def _section_at(doc: MenuDocument, section_index: int) -> MenuSection:
        if not 0 <= section_index < len(doc.sections):
            raise IndexOutOfRange(f"Section index {section_index} out of range (0..{len(doc.sections) - 1})")
        return doc.sections[section_index]

    @staticmethod
    def _item_at(section: MenuSection, section_index: int, item_index: int) -> MenuItem:
        if not 0 <= item_index < len(section.items):
            raise IndexOutOfRange(
                f"Item index {item_index} out of range for section {section_index} (0..{len(section.items) - 1})"
            )
        return section.items[item_index]

    @staticmethod
    def _replace_at(values: tuple, index: int, value: object) -> tuple:
        return values[:index] + (value,) + values[index + 1 :]

    @classmethod
    def _with_section(cls, doc: MenuDocument, index: int, section: MenuSection) -> MenuDocument:
        return replace(doc, sections=cls._replace_at(doc.sections, index, section))


# ---- local image substitution -------------------------------------------------
def image_to_data_uri(image_bytes: bytes, mime_type: Optional[str]) -> str:
    mime = normalize_mime_type(mime_type)
    if not image_bytes:
        raise ValueError("Image file is empty")
    if mime not in IMAGE_MIME_TYPES:
        raise ValueError(f"Please select a valid image file (got {mime_type or 'unknown type'})")
    return image_data_url(image_bytes, mime)


def load_local_image(path: str, on_load: Callable[[str], object]) -> str:
    """Read a user-chosen image, encode it as a data URI and hand it to on_load."""
    mime, _ = mimetypes.guess_type(path)
    with open(path, "rb") as f:
        data = f.read()
    uri = image_to_data_uri(data, mime)
    LOG.debug("Loaded local image %s (%s, %d bytes)", path, mime, len(data))
    on_load(uri)
    return uri
