from __future__ import annotations

import json

import pytest

from conftest import SCENARIO_A
from menu_generator.domain.constants import (
    DEFAULT_ADDRESS,
    DEFAULT_PHONE,
    DEFAULT_RESTAURANT_NAME,
    DEFAULT_TITLE,
    PLACEHOLDER_IMAGE_URI,
)
from menu_generator.errors import MalformedResponse
from menu_generator.extraction.normalizer import (
    MenuNormalizer,
    normalize_menu_text,
    parse_json_payload,
    strip_code_fences,
)


@pytest.mark.parametrize(
    "wrapped",
    [
        "```json\n{payload}\n```",
        "```\n{payload}\n```",
        "```JSON\n{payload}\n```",
        "``` json\n{payload}\n```",
        "  ```json\n{payload}\n```  \n",
        "Here is the menu:\n```json\n{payload}\n```\nEnjoy!",
    ],
)
def test_fenced_output_parses_like_bare_json(wrapped: str) -> None:
    fenced = wrapped.replace("{payload}", SCENARIO_A)
    assert strip_code_fences(fenced) == SCENARIO_A
    assert parse_json_payload(fenced) == json.loads(SCENARIO_A)


def test_strip_code_fences_handles_missing_closing_fence() -> None:
    assert strip_code_fences("```json\n{\"a\": 1}") == '{"a": 1}'


def test_strip_code_fences_non_string_is_empty() -> None:
    assert strip_code_fences(None) == ""


def test_scenario_a_keeps_values_and_defaults_contact() -> None:
    doc = normalize_menu_text(SCENARIO_A)

    assert doc.title == "Lunch"
    assert doc.restaurant_name == "Cafe X"
    assert len(doc.sections) == 1
    section = doc.sections[0]
    assert section.name == "Mains"
    assert [(i.name, i.price, i.image) for i in section.items] == [("Burger", "$10", PLACEHOLDER_IMAGE_URI)]
    assert doc.contact.phone == DEFAULT_PHONE
    assert doc.contact.address == DEFAULT_ADDRESS


def test_scenario_b_fenced_empty_menu() -> None:
    raw = '```json\n{"name":"","restaurant":"","sections":[],"contact":{"phone":"555","address":""}}\n```'

    doc = normalize_menu_text(raw)

    assert doc.title == DEFAULT_TITLE
    assert doc.restaurant_name == DEFAULT_RESTAURANT_NAME
    assert doc.sections == ()
    assert doc.contact.phone == "555"
    assert doc.contact.address == DEFAULT_ADDRESS


def test_scenario_d_unparseable_output() -> None:
    with pytest.raises(MalformedResponse):
        normalize_menu_text("Sorry, I can't read this menu.")


def test_missing_sections_is_rejected() -> None:
    with pytest.raises(MalformedResponse, match="sections"):
        normalize_menu_text('{"name": "Dinner", "restaurant": "Bistro"}')


@pytest.mark.parametrize("raw", ["[1, 2, 3]", '"menu"', "42", "null"])
def test_top_level_must_be_object(raw: str) -> None:
    with pytest.raises(MalformedResponse):
        parse_json_payload(raw)


@pytest.mark.parametrize("raw", ["", "   ", None, "```json\n```"])
def test_empty_output_is_malformed(raw) -> None:
    with pytest.raises(MalformedResponse, match="empty"):
        parse_json_payload(raw)


def test_menu_envelope_is_unwrapped() -> None:
    raw = json.dumps(
        {
            "menu": {
                "title": "Brunch",
                "restaurantName": "Sunny Side",
                "sections": [{"name": "Eggs", "items": [{"name": "Benedict", "price": "12"}]}],
                "contact": {"phone": "111", "address": "2 Oak Rd"},
            }
        }
    )

    doc = normalize_menu_text(raw)

    assert doc.title == "Brunch"
    assert doc.restaurant_name == "Sunny Side"
    assert doc.sections[0].items[0].name == "Benedict"
    assert doc.contact.address == "2 Oak Rd"


def test_object_recovered_from_surrounding_prose() -> None:
    doc = normalize_menu_text(f"Sure! {SCENARIO_A} Let me know if you need anything else.")
    assert doc.title == "Lunch"


def test_values_kept_verbatim_and_scalars_stringified() -> None:
    raw = json.dumps(
        {
            "name": "  Café Menü  ",
            "sections": [{"name": "Drinks", "items": [{"name": "Tea", "price": 3.5, "image": "https://x/t.png"}]}],
        }
    )

    doc = normalize_menu_text(raw)

    assert doc.title == "  Café Menü  "
    item = doc.sections[0].items[0]
    assert item.price == "3.5"
    assert item.image == "https://x/t.png"


def test_blank_section_name_gets_positional_label() -> None:
    raw = json.dumps({"sections": [{"name": "Starters", "items": []}, {"name": " ", "items": None}, {"items": []}]})

    doc = normalize_menu_text(raw)

    assert [s.name for s in doc.sections] == ["Starters", "SECTION 2", "SECTION 3"]
    assert doc.sections[1].items == ()


def test_items_must_be_list_of_objects() -> None:
    normalizer = MenuNormalizer()
    with pytest.raises(MalformedResponse, match="items must be a list"):
        normalizer.normalize_payload({"sections": [{"name": "A", "items": "Burger"}]})
    with pytest.raises(MalformedResponse, match=r"items\[0\]"):
        normalizer.normalize_payload({"sections": [{"name": "A", "items": ["Burger"]}]})
    with pytest.raises(MalformedResponse, match=r"sections\[0\]"):
        normalizer.normalize_payload({"sections": ["Mains"]})


def test_missing_item_fields_become_empty_text() -> None:
    doc = MenuNormalizer().normalize_payload({"sections": [{"name": "A", "items": [{}]}]})
    item = doc.sections[0].items[0]
    assert (item.name, item.price, item.image) == ("", "", PLACEHOLDER_IMAGE_URI)


def test_ids_are_unique_and_not_on_the_wire(sample_payload) -> None:
    doc = MenuNormalizer().normalize_payload(sample_payload)

    section_ids = {s.section_id for s in doc.sections}
    item_ids = {i.item_id for s in doc.sections for i in s.items}
    assert len(section_ids) == 2
    assert len(item_ids) == 4
    assert '"id"' not in json.dumps(doc.to_dict())
    with_ids = doc.to_dict(include_ids=True)
    assert with_ids["sections"][0]["id"] == doc.sections[0].section_id
    assert with_ids["sections"][0]["items"][0]["id"] == doc.sections[0].items[0].item_id


def test_wire_shape_round_trips_through_normalizer(sample_payload) -> None:
    doc = MenuNormalizer().normalize_payload(sample_payload)
    assert doc.to_dict() == sample_payload


def test_space_before_language_tag_is_not_kept() -> None:
    assert strip_code_fences('``` json\n{"a": 1}\n```') == '{"a": 1}'
    assert parse_json_payload('``` json\n{"a": 1}\n```') == {"a": 1}
