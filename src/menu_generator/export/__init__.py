"""Raster export of the rendered menu."""

from .renderer import MenuRenderer, export_png, export_png_bytes, placeholder_png

__all__ = [
    "MenuRenderer",
    "export_png",
    "export_png_bytes",
    "placeholder_png",
]
