"""Menu document types and shared literals."""

from .models import Contact, MenuDocument, MenuItem, MenuSection

__all__ = [
    "Contact",
    "MenuDocument",
    "MenuItem",
    "MenuSection",
]
