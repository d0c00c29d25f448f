"""
Menu Generator: menu photo to editable menu document to shareable PNG.

Modules:
- extraction: vision model call, fence stripping and normalization
- document: editable, copy-on-write menu document
- export: Pillow renderer and PNG export
- api: Starlette HTTP boundary
- cli: `menu-gen` command line entry point
"""

__all__ = [
    "config",
    "logging",
    "paths",
]
