from __future__ import annotations

import importlib
import json
from pathlib import Path

import pytest
from PIL import Image

from conftest import SCENARIO_A, png_bytes
from menu_generator.cli.main import main


@pytest.fixture
def document_file(tmp_path: Path, sample_payload) -> Path:
    path = tmp_path / "menu.json"
    path.write_text(json.dumps(sample_payload), encoding="utf-8")
    return path


@pytest.fixture
def photo(tmp_path: Path) -> Path:
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes("green", (32, 32)))
    return path


@pytest.fixture
def patched_extraction(monkeypatch, settings, make_service):
    cli = importlib.import_module("menu_generator.cli.main")
    monkeypatch.setattr(cli, "load_settings", lambda: settings)
    monkeypatch.setattr(cli, "MenuExtractionService", lambda _settings: make_service(text=SCENARIO_A))


def test_render_writes_menu_png(document_file: Path, photo: Path, tmp_path: Path, capsys) -> None:
    out_dir = tmp_path / "export"
    out_dir.mkdir()

    code = main(
        [
            "render",
            "--document", str(document_file),
            "--output", str(out_dir),
            "--set", "title=DINNER",
            "--item", "0.1.price=$25",
            "--item-image", f"1.0={photo}",
        ]
    )

    assert code == 0
    target = out_dir / "menu.png"
    assert capsys.readouterr().out.strip() == str(target)
    with Image.open(target) as img:
        assert img.width == 1200


@pytest.mark.parametrize(
    "flags",
    [
        ["--rename-section", "9=Desserts"],
        ["--item", "0.7.name=Soup"],
        ["--item", "0.0.calories=300"],
        ["--item", "0.price=3"],
        ["--set", "contact.email=a@b.c"],
        ["--set", "title"],
    ],
)
def test_render_rejects_bad_edits(document_file: Path, tmp_path: Path, flags) -> None:
    out = tmp_path / "never.png"
    assert main(["render", "--document", str(document_file), "--output", str(out)] + flags) == 1
    assert not out.exists()


def test_render_missing_document(tmp_path: Path) -> None:
    assert main(["render", "--document", str(tmp_path / "missing.json")]) == 1


def test_extract_applies_edits_and_writes_json(patched_extraction, photo: Path, tmp_path: Path) -> None:
    json_out = tmp_path / "out" / "lunch.json"
    png_dir = tmp_path / "png"

    code = main(
        [
            "extract",
            "--source", str(photo),
            "--json-out", str(json_out),
            "--png-out", str(png_dir) + "/",
            "--set", "contact.phone=555-0199",
            "--rename-section", "0=Burgers",
        ]
    )

    assert code == 0
    data = json.loads(json_out.read_text(encoding="utf-8"))
    assert data["restaurant"] == "Cafe X"
    assert data["contact"]["phone"] == "555-0199"
    assert data["sections"][0]["name"] == "Burgers"
    assert (png_dir / "menu.png").is_file()


def test_extract_prints_json_to_stdout(patched_extraction, photo: Path, capsys) -> None:
    assert main(["extract", "--source", str(photo)]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["name"] == "Lunch"


def test_extract_unsupported_file(patched_extraction, tmp_path: Path) -> None:
    source = tmp_path / "menu.pdf"
    source.write_bytes(b"%PDF-1.4")
    assert main(["extract", "--source", str(source)]) == 1


def test_extract_missing_source(patched_extraction, tmp_path: Path) -> None:
    assert main(["extract", "--source", str(tmp_path / "nope.png")]) == 1


def _recording_renderer(monkeypatch):
    cli = importlib.import_module("menu_generator.cli.main")
    rendered = []
    options = []

    class RecordingRenderer(cli.MenuRenderer):
        def __init__(self, *args, **kwargs) -> None:
            super().__init__(*args, **kwargs)
            options.append(self.allow_remote_images)

        def render(self, document):
            rendered.append(document)
            return super().render(document)

    monkeypatch.setattr(cli, "MenuRenderer", RecordingRenderer)
    return rendered, options


def test_render_keeps_cleared_title(monkeypatch, tmp_path: Path, sample_payload) -> None:
    rendered, options = _recording_renderer(monkeypatch)
    sample_payload["name"] = ""
    sample_payload["contact"]["address"] = ""
    path = tmp_path / "cleared.json"
    path.write_text(json.dumps(sample_payload), encoding="utf-8")

    assert main(["render", "--document", str(path), "--output", str(tmp_path)]) == 0
    assert rendered[0].title == ""
    assert rendered[0].contact.address == ""
    assert options == [False]


def test_render_can_opt_into_remote_images(monkeypatch, document_file: Path, tmp_path: Path) -> None:
    _, options = _recording_renderer(monkeypatch)
    args = ["render", "--document", str(document_file), "--output", str(tmp_path), "--fetch-remote-images"]
    assert main(args) == 0
    assert options == [True]
