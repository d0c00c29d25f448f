"""In-memory editable menu document."""

from .model import MenuDocumentModel, image_to_data_uri, load_local_image

__all__ = [
    "MenuDocumentModel",
    "image_to_data_uri",
    "load_local_image",
]
