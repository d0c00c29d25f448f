from __future__ import annotations

import argparse
import json
import mimetypes
import sys
from typing import List, Optional, Sequence, Tuple

from ..config import load_settings
from ..document.model import MenuDocumentModel, load_local_image
from ..domain.models import MenuDocument
from ..errors import ConfigurationError, MenuError
from ..export.renderer import MenuRenderer, export_png
from ..logging import get_logger
from ..paths import expand_abs, resolve_output_path
from ..service import MenuExtractionService
from ..session import MenuSession

LOG = get_logger("cli-main")


# ---------- edit flags ----------
def _split_assignment(raw: str, flag: str) -> Tuple[str, str]:
    if "=" not in raw:
        raise argparse.ArgumentTypeError(f"{flag} expects KEY=VALUE, got {raw!r}")
    key, value = raw.split("=", 1)
    return key.strip(), value


def _indices(raw: str, count: int, flag: str) -> List[int]:
    parts = raw.split(".")
    if len(parts) != count:
        raise argparse.ArgumentTypeError(f"{flag} expects {count} dot-separated parts, got {raw!r}")
    try:
        return [int(p) for p in parts]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{flag} indices must be integers, got {raw!r}") from exc


def _add_edit_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--set", action="append", default=[], metavar="PATH=VALUE",
                   help="Replace title, restaurantName, contact.phone or contact.address")
    p.add_argument("--rename-section", action="append", default=[], metavar="IDX=NAME",
                   help="Rename the section at position IDX")
    p.add_argument("--item", action="append", default=[], metavar="S.I.FIELD=VALUE",
                   help="Update name, price or image of item I in section S")
    p.add_argument("--item-image", action="append", default=[], metavar="S.I=FILE",
                   help="Replace the image of item I in section S with a local file")
    p.add_argument("--fetch-remote-images", action="store_true",
                   help="Download http(s) item images when rendering (off by default)")


def apply_edits(model: MenuDocumentModel, ns: argparse.Namespace) -> int:
    """Apply edit flags in order (set, rename, item, item-image); return the number applied."""
    applied = 0
    for raw in ns.set:
        path, value = _split_assignment(raw, "--set")
        model.replace_field(path, value)
        applied += 1
    for raw in ns.rename_section:
        key, value = _split_assignment(raw, "--rename-section")
        (section_idx,) = _indices(key, 1, "--rename-section")
        model.rename_section(section_idx, value)
        applied += 1
    for raw in ns.item:
        key, value = _split_assignment(raw, "--item")
        head, _, field = key.rpartition(".")
        section_idx, item_idx = _indices(head, 2, "--item")
        model.update_item_field(section_idx, item_idx, field, value)
        applied += 1
    for raw in ns.item_image:
        key, path = _split_assignment(raw, "--item-image")
        section_idx, item_idx = _indices(key, 2, "--item-image")
        load_local_image(expand_abs(path), lambda uri: model.replace_item_image(section_idx, item_idx, uri))
        applied += 1
    if applied:
        LOG.info("Applied %d edit(s); document version %d", applied, model.version)
    return applied


def _write_outputs(model: MenuDocumentModel, ns: argparse.Namespace) -> None:
    document = model.document
    if ns.json_out:
        path = resolve_output_path(ns.json_out, "menu.json")
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(document.to_dict(), handle, ensure_ascii=False, indent=2)
        LOG.info(f"Wrote: {path}")
    else:
        print(json.dumps(document.to_dict(), ensure_ascii=False, indent=2))
    if ns.png_out:
        surface = MenuRenderer(allow_remote_images=ns.fetch_remote_images).render(document)
        export_png(surface, ns.png_out)


# ---------- commands ----------
def _extract(ns: argparse.Namespace) -> int:
    source = expand_abs(ns.source)
    mime, _ = mimetypes.guess_type(source)
    try:
        with open(source, "rb") as f:
            data = f.read()
    except OSError as exc:
        LOG.error("Cannot read %s: %s", source, exc)
        return 1
    try:
        session = MenuSession(MenuExtractionService(load_settings()))
        if session.run_extraction(data, mime) is None:
            LOG.error("Extraction result was discarded")
            return 1
        apply_edits(session.model, ns)
        _write_outputs(session.model, ns)
    except (MenuError, ValueError, OSError, argparse.ArgumentTypeError) as exc:
        LOG.error("Extraction failed: %s", exc)
        return 1
    return 0


def _render(ns: argparse.Namespace) -> int:
    try:
        with open(expand_abs(ns.document), "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        LOG.error("Cannot read menu document %s: %s", ns.document, exc)
        return 1
    try:
        session = MenuSession()
        model = session.load(MenuDocument.from_dict(payload))
        apply_edits(model, ns)
    except (MenuError, ValueError, OSError, argparse.ArgumentTypeError) as exc:
        LOG.error("Render failed: %s", exc)
        return 1
    surface = MenuRenderer(allow_remote_images=ns.fetch_remote_images).render(model.document)
    try:
        path = export_png(surface, ns.output)
    except OSError as exc:
        LOG.error("Cannot write %s: %s", ns.output, exc)
        return 1
    print(path)
    return 0


def _serve(ns: argparse.Namespace) -> int:
    from ..api import create_app
    import uvicorn

    try:
        app = create_app(load_settings(), allow_origins=ns.allow_origins)
    except ConfigurationError as exc:
        LOG.error("Cannot start server: %s", exc)
        return 2
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="menu-gen",
        description="Turn a menu photo into an editable menu document and render it as PNG.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_cmd = subparsers.add_parser("extract", help="Extract a menu document from an image.")
    extract_cmd.add_argument("--source", required=True, help="Path to the menu photo")
    extract_cmd.add_argument("--json-out", help="Write the document JSON here (default: stdout)")
    extract_cmd.add_argument("--png-out", help="Also render the document to this PNG path or directory")
    _add_edit_args(extract_cmd)
    extract_cmd.set_defaults(handler=_extract)

    render_cmd = subparsers.add_parser("render", help="Render a menu document JSON to PNG.")
    render_cmd.add_argument("--document", required=True, help="Path to a menu document JSON")
    render_cmd.add_argument("--output", default=".", help="PNG path or directory (default: ./menu.png)")
    _add_edit_args(render_cmd)
    render_cmd.set_defaults(handler=_render)

    serve_cmd = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8000)
    serve_cmd.add_argument("--log-level", default="info")
    serve_cmd.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve_cmd.set_defaults(handler=_serve)

    args = parser.parse_args(provided)
    code = args.handler(args)
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
