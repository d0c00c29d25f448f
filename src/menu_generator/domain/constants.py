from __future__ import annotations

from typing import FrozenSet, Tuple

# Literal fallbacks used when the model leaves a cosmetic field empty.
DEFAULT_TITLE = "FOOD MENU"
DEFAULT_RESTAURANT_NAME = "Restaurant Name"
DEFAULT_PHONE = "123-456-7890"
DEFAULT_ADDRESS = "123 Anywhere St., Any City"

PLACEHOLDER_WIDTH = 200
PLACEHOLDER_HEIGHT = 200
PLACEHOLDER_IMAGE_URI = f"/api/placeholder/{PLACEHOLDER_WIDTH}/{PLACEHOLDER_HEIGHT}"
PLACEHOLDER_PREFIX = "/api/placeholder/"

SECTION_NAME_TEMPLATE = "SECTION {number}"

ITEM_FIELDS: Tuple[str, ...] = ("name", "price", "image")

# Editable top-level paths and their accepted aliases (wire names).
DOCUMENT_FIELD_PATHS = {
    "title": "title",
    "name": "title",
    "restaurantName": "restaurant_name",
    "restaurant_name": "restaurant_name",
    "restaurant": "restaurant_name",
    "contact.phone": "phone",
    "contact.address": "address",
}

IMAGE_MIME_TYPES: FrozenSet[str] = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
        "image/heic",
        "image/heif",
    }
)

EXPORT_FILENAME = "menu.png"
