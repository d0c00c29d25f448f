"""Render a MenuDocument to a raster surface and export it as PNG."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Tuple
import base64
import binascii
import os

import requests
from PIL import Image, ImageDraw, ImageFont, ImageOps

from ..domain.constants import EXPORT_FILENAME, PLACEHOLDER_PREFIX
from ..domain.models import MenuDocument, MenuItem, MenuSection
from ..logging import get_logger
from ..paths import resolve_output_path

LOG = get_logger("menu-renderer")

MAX_ITEM_IMAGE_BYTES = 10 * 1024 * 1024
MAX_ITEM_IMAGE_PIXELS = 40_000_000

FONT_CANDIDATES = {
    "regular": (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "DejaVuSans.ttf",
        "Arial.ttf",
    ),
    "bold": (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "DejaVuSans-Bold.ttf",
        "Arial Bold.ttf",
    ),
}

RGB = Tuple[int, int, int]


@dataclass(frozen=True)
class Theme:
    background: RGB = (17, 24, 39)
    card: RGB = (31, 41, 55)
    accent: RGB = (249, 115, 22)
    text: RGB = (255, 255, 255)
    placeholder: RGB = (55, 65, 81)
    placeholder_text: RGB = (156, 163, 175)

    width: int = 1200
    padding: int = 48
    columns: int = 3
    gap: int = 32
    card_padding: int = 16
    image_height: int = 160
    radius: int = 12

    title_size: int = 64
    restaurant_size: int = 28
    section_size: int = 32
    item_name_size: int = 24
    price_size: int = 22
    phone_size: int = 24
    address_size: int = 20


def _load_font(style: str, size: int) -> ImageFont.FreeTypeFont:
    for candidate in FONT_CANDIDATES[style]:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def _line_height(font: ImageFont.FreeTypeFont) -> int:
    top, bottom = font.getbbox("Ag")[1::2]
    return int(bottom - top) + 6


def _wrap(draw: ImageDraw.ImageDraw, text: str, font: ImageFont.FreeTypeFont, max_width: int, max_lines: int) -> List[str]:
    words = text.split()
    if not words:
        return [""]
    lines: List[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}".strip()
        if draw.textlength(candidate, font=font) <= max_width or not current:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    if len(lines) > max_lines:
        lines = lines[:max_lines]
        last = lines[-1]
        while last and draw.textlength(last + "…", font=font) > max_width:
            last = last[:-1]
        lines[-1] = last.rstrip() + "…"
    return lines


def placeholder_image(width: int, height: int, theme: Optional[Theme] = None) -> Image.Image:
    theme = theme or Theme()
    img = Image.new("RGB", (width, height), color=theme.placeholder)
    draw = ImageDraw.Draw(img)
    font = _load_font("regular", max(10, min(width, height) // 8))
    label = f"{width}×{height}"
    left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
    draw.text(((width - (right - left)) / 2, (height - (bottom - top)) / 2 - top), label, fill=theme.placeholder_text, font=font)
    return img


def placeholder_png(width: int, height: int) -> bytes:
    output = BytesIO()
    placeholder_image(width, height).save(output, format="PNG")
    return output.getvalue()


class ImageResolver:
    """Load item images for a render; anything unusable becomes a placeholder.

    Base64 data URIs are decoded locally. http(s) URLs are fetched only when
    `allow_remote` is set, streamed and cut off past `max_bytes`. Images over
    `max_pixels` and decompression bombs are refused. At most `max_entries`
    decoded images are cached, least recently used evicted first.
    """

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        theme: Optional[Theme] = None,
        allow_remote: bool = False,
        max_bytes: int = MAX_ITEM_IMAGE_BYTES,
        max_pixels: int = MAX_ITEM_IMAGE_PIXELS,
        max_entries: int = 32,
    ) -> None:
        self.timeout = timeout
        self.theme = theme or Theme()
        self.allow_remote = allow_remote
        self.max_bytes = max_bytes
        self.max_pixels = max_pixels
        self.max_entries = max_entries
        self._cache: "OrderedDict[str, Optional[Image.Image]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._cache)

    def resolve(self, uri: str, size: Tuple[int, int]) -> Image.Image:
        if uri in self._cache:
            self._cache.move_to_end(uri)
        else:
            self._cache[uri] = self._load(uri)
            while len(self._cache) > self.max_entries:
                self._cache.popitem(last=False)
        source = self._cache[uri]
        if source is None:
            return placeholder_image(size[0], size[1], self.theme)
        return ImageOps.fit(source, size, method=Image.Resampling.LANCZOS)

    def _load(self, uri: str) -> Optional[Image.Image]:
        if not uri or uri.startswith(PLACEHOLDER_PREFIX):
            return None
        try:
            if uri.startswith("data:"):
                raw = self._decode_data_uri(uri)
            elif uri.startswith(("http://", "https://")):
                raw = self._download(uri)
            else:
                LOG.debug("Unresolvable image reference %r; using placeholder", uri[:80])
                return None
            if raw is None:
                return None
            with Image.open(BytesIO(raw)) as im:
                if im.width * im.height > self.max_pixels:
                    LOG.warning("Item image %r is %dx%d; over the %d pixel limit", uri[:80], im.width, im.height, self.max_pixels)
                    return None
                return im.convert("RGB")
        except Image.DecompressionBombError as exc:
            LOG.warning("Refused item image %r: %s", uri[:80], exc)
            return None
        except (requests.RequestException, binascii.Error, OSError, ValueError) as exc:
            LOG.warning("Could not load item image %r: %s", uri[:80], exc)
            return None

    def _decode_data_uri(self, uri: str) -> Optional[bytes]:
        header, _, data = uri.partition(",")
        if ";base64" not in header:
            LOG.warning("Only base64 data URIs are supported for item images")
            return None
        if len(data) * 3 // 4 > self.max_bytes:
            LOG.warning("Item image data URI exceeds %d bytes", self.max_bytes)
            return None
        return base64.b64decode(data, validate=False)

    def _download(self, uri: str) -> Optional[bytes]:
        if not self.allow_remote:
            LOG.info("Remote item image %r not fetched; remote images are disabled", uri[:80])
            return None
        with requests.get(uri, timeout=self.timeout, stream=True) as resp:
            resp.raise_for_status()
            declared = resp.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > self.max_bytes:
                LOG.warning("Item image %r declares %s bytes; limit is %d", uri[:80], declared, self.max_bytes)
                return None
            buf = bytearray()
            for chunk in resp.iter_content(chunk_size=64 * 1024):
                buf.extend(chunk)
                if len(buf) > self.max_bytes:
                    LOG.warning("Item image %r exceeds %d bytes; download aborted", uri[:80], self.max_bytes)
                    return None
        return bytes(buf)


class MenuRenderer:
    """Draw the full menu (header, sections, footer) onto a single image.

    Each `render()` gets a fresh ImageResolver unless one is injected, so
    decoded item images do not outlive the call.
    """

    def __init__(
        self,
        theme: Optional[Theme] = None,
        *,
        resolver: Optional[ImageResolver] = None,
        allow_remote_images: bool = False,
    ) -> None:
        self.theme = theme or Theme()
        self.resolver = resolver
        self.allow_remote_images = allow_remote_images
        t = self.theme
        self.fonts = {
            "title": _load_font("bold", t.title_size),
            "restaurant": _load_font("regular", t.restaurant_size),
            "section": _load_font("bold", t.section_size),
            "item": _load_font("bold", t.item_name_size),
            "price": _load_font("bold", t.price_size),
            "phone": _load_font("regular", t.phone_size),
            "address": _load_font("regular", t.address_size),
        }

    @property
    def card_width(self) -> int:
        t = self.theme
        return (t.width - 2 * t.padding - (t.columns - 1) * t.gap) // t.columns

    def render(self, document: MenuDocument) -> Image.Image:
        resolver = self.resolver
        if resolver is None:
            resolver = ImageResolver(theme=self.theme, allow_remote=self.allow_remote_images)
        # Measure on a scratch canvas, then paint at the exact height.
        scratch = ImageDraw.Draw(Image.new("RGB", (1, 1)))
        height = self._paint(scratch, None, document, resolver)
        canvas = Image.new("RGB", (self.theme.width, height), color=self.theme.background)
        self._paint(ImageDraw.Draw(canvas), canvas, document, resolver)
        LOG.info("Rendered menu surface %dx%d (%d sections)", canvas.width, canvas.height, len(document.sections))
        return canvas

    # ---- painting -------------------------------------------------------------
    def _paint(
        self,
        draw: ImageDraw.ImageDraw,
        canvas: Optional[Image.Image],
        document: MenuDocument,
        resolver: ImageResolver,
    ) -> int:
        t = self.theme
        y = t.padding
        y = self._centered(draw, canvas, document.title, self.fonts["title"], t.accent, y) + 12
        y = self._centered(draw, canvas, document.restaurant_name, self.fonts["restaurant"], t.text, y) + 48
        for section in document.sections:
            y = self._paint_section(draw, canvas, section, y, resolver) + 64
        y = self._paint_footer(draw, canvas, document, y)
        return y + t.padding

    def _centered(self, draw, canvas, text: str, font, fill: RGB, y: int) -> int:
        t = self.theme
        lines = _wrap(draw, text, font, t.width - 2 * t.padding, max_lines=3)
        lh = _line_height(font)
        for line in lines:
            if canvas is not None:
                width = draw.textlength(line, font=font)
                draw.text(((t.width - width) / 2, y), line, fill=fill, font=font)
            y += lh
        return y

    def _paint_section(self, draw, canvas, section: MenuSection, y: int, resolver: ImageResolver) -> int:
        t = self.theme
        font = self.fonts["section"]
        label = _wrap(draw, section.name, font, t.width - 2 * t.padding - 48, max_lines=1)[0]
        pill_h = _line_height(font) + 16
        if canvas is not None:
            pill_w = int(draw.textlength(label, font=font)) + 48
            draw.rounded_rectangle([t.padding, y, t.padding + pill_w, y + pill_h], radius=pill_h // 2, fill=t.accent)
            draw.text((t.padding + 24, y + 8), label, fill=t.text, font=font)
        y += pill_h + 32

        for row_start in range(0, len(section.items), t.columns):
            row = section.items[row_start : row_start + t.columns]
            heights = [self._paint_card(draw, canvas, item, col, y, resolver) for col, item in enumerate(row)]
            y += max(heights) + t.gap
        if section.items:
            y -= t.gap
        return y

    def _paint_card(self, draw, canvas, item: MenuItem, col: int, y: int, resolver: ImageResolver) -> int:
        t = self.theme
        x = t.padding + col * (self.card_width + t.gap)
        inner_w = self.card_width - 2 * t.card_padding
        name_lines = _wrap(draw, item.name, self.fonts["item"], inner_w, max_lines=2)
        price_lines = _wrap(draw, item.price, self.fonts["price"], inner_w, max_lines=1)
        text_h = len(name_lines) * _line_height(self.fonts["item"]) + 8 + _line_height(self.fonts["price"])
        height = t.image_height + 2 * t.card_padding + text_h

        if canvas is not None:
            draw.rounded_rectangle([x, y, x + self.card_width, y + height], radius=t.radius, fill=t.card)
            photo = resolver.resolve(item.image, (self.card_width, t.image_height))
            mask = Image.new("L", photo.size, 0)
            ImageDraw.Draw(mask).rounded_rectangle([0, 0, photo.width - 1, photo.height - 1], radius=t.radius, fill=255)
            canvas.paste(photo, (x, y), mask)
            ty = y + t.image_height + t.card_padding
            for line in name_lines:
                draw.text((x + t.card_padding, ty), line, fill=t.text, font=self.fonts["item"])
                ty += _line_height(self.fonts["item"])
            draw.text((x + t.card_padding, ty + 8), price_lines[0], fill=t.accent, font=self.fonts["price"])
        return height

    def _paint_footer(self, draw, canvas, document: MenuDocument, y: int) -> int:
        t = self.theme
        max_w = t.width - 2 * t.padding
        phone_lines = _wrap(draw, document.contact.phone, self.fonts["phone"], max_w, max_lines=3)
        address_lines = _wrap(draw, document.contact.address, self.fonts["address"], max_w, max_lines=3)
        height = (
            32
            + len(phone_lines) * _line_height(self.fonts["phone"])
            + 8
            + len(address_lines) * _line_height(self.fonts["address"])
            + 32
        )
        if canvas is not None:
            draw.rounded_rectangle([t.padding, y, t.width - t.padding, y + height], radius=t.radius, fill=t.card)
        inner = self._centered(draw, canvas, document.contact.phone, self.fonts["phone"], t.accent, y + 32) + 8
        self._centered(draw, canvas, document.contact.address, self.fonts["address"], t.text, inner)
        return y + height


# ---- export --------------------------------------------------------------------
def export_png_bytes(surface: Optional[Image.Image]) -> Optional[bytes]:
    """Encode the rendered surface as PNG at its natural resolution; None when absent."""
    if surface is None:
        LOG.debug("Export skipped: no rendered surface")
        return None
    output = BytesIO()
    surface.save(output, format="PNG")
    return output.getvalue()


def export_png(surface: Optional[Image.Image], destination: str = ".") -> Optional[str]:
    """Write the surface as PNG; directories receive `menu.png`. No-op without a surface."""
    if surface is None:
        LOG.debug("Export skipped: no rendered surface")
        return None
    path = resolve_output_path(destination, EXPORT_FILENAME)
    surface.save(path, format="PNG")
    LOG.info("Exported %dx%d menu image to %s (%d bytes)", surface.width, surface.height, path, os.path.getsize(path))
    return path
