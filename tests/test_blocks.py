"""Block-specific repairers: inline FAQ records, whitelisted providers, safeguards."""

from __future__ import annotations

import random

from conftest import OTHER_PROVIDERS, PREFERRED_PROVIDER, hero, page_section

from pagesmith.core.contracts.manifest import SchemaManifest
from pagesmith.core.contracts.repair import RepairLog
from pagesmith.core.settings import get_logger
from pagesmith.repair.blocks import (
    allow_list_problem,
    fresh_selection,
    order_mandatory_first,
    repair_allow_list,
    repair_record_list,
    strip_omitted_fields,
    strip_string_icons,
)
from pagesmith.repair.field_types import is_rich_text_array, make_paragraph
from pagesmith.repair.keys import KeyFactory


def _log() -> RepairLog:
    return RepairLog(get_logger("pagesmith.tests.blocks"))


# ---------------------------------------------------------------------------
# Inline FAQ records
# ---------------------------------------------------------------------------


def test_two_bare_references_become_exactly_one_placeholder(
    manifest: SchemaManifest, keys: KeyFactory
) -> None:
    (rule,) = manifest.record_lists_for("faqGroup")
    block = {
        "_type": "faqGroup",
        "_key": "faq-1",
        "title": "Ofte stillede spørgsmål",
        "faqItems": [{"_type": "reference", "_ref": "faq-a"}, {"_ref": "faq-b"}],
    }
    log = _log()

    out = repair_record_list(block, rule, block_index=2, log=log, keys=keys)

    (record,) = out["faqItems"]
    assert record["_type"] == "faqItem"
    assert record["question"] == rule.placeholder_text
    assert is_rich_text_array(record["answer"]) and record["answer"]
    assert record["_key"].startswith("faqItem-")
    assert log.violation_count == 3
    assert all(e.block_index == 2 for e in log.events)


def test_salvageable_records_are_coerced_and_keyed(
    manifest: SchemaManifest, keys: KeyFactory
) -> None:
    (rule,) = manifest.record_lists_for("faqGroup")
    block = {
        "_type": "faqGroup",
        "_key": "faq-1",
        "title": "FAQ",
        "faqItems": [
            {"question": "Hvad er spotpris?", "answer": "Timeprisen på elbørsen."},
            {"_type": "faqItem", "_key": "q2", "question": "", "answer": "Ingen tekst"},
        ],
    }
    log = _log()

    out = repair_record_list(block, rule, block_index=0, log=log, keys=keys)

    (record,) = out["faqItems"]
    assert record["_type"] == "faqItem"
    assert record["question"] == "Hvad er spotpris?"
    assert record["answer"][0]["children"][0]["text"] == "Timeprisen på elbørsen."
    assert record["_key"]
    assert log.fix_count == 1
    assert log.violation_count == 1


def test_record_aliases_are_canonicalised_and_keys_kept(
    manifest: SchemaManifest, keys: KeyFactory
) -> None:
    (rule,) = manifest.record_lists_for("faqGroup")
    item = {
        "type": "faqItem",
        "key": "q1",
        "question": "Hvad koster strøm?",
        "answer": [make_paragraph("Det afhænger af timen.")],
    }
    block = {"_type": "faqGroup", "_key": "faq-1", "title": "FAQ", "faqItems": [item]}
    log = _log()

    out = repair_record_list(block, rule, block_index=0, log=log, keys=keys)

    (record,) = out["faqItems"]
    assert record["_type"] == "faqItem"
    assert record["_key"] == "q1"
    assert "type" not in record and "key" not in record
    assert not log.events


# ---------------------------------------------------------------------------
# Whitelisted references
# ---------------------------------------------------------------------------


def test_fresh_selection_pins_preferred_first(manifest: SchemaManifest, keys: KeyFactory) -> None:
    (rule,) = manifest.allow_lists
    selection = fresh_selection(rule, random.Random(7), keys)
    refs = [entry["_ref"] for entry in selection]

    assert refs[0] == PREFERRED_PROVIDER
    assert len(refs) == 4
    assert len(set(refs)) == 4
    assert set(refs[1:]) == set(OTHER_PROVIDERS)
    assert allow_list_problem(selection, rule) is None


def test_three_plain_strings_are_replaced_by_allowed_references(
    manifest: SchemaManifest, keys: KeyFactory
) -> None:
    (rule,) = manifest.allow_lists
    block = {
        "_type": "providerList",
        "_key": "providers-1",
        "title": "Udbydere",
        "providers": ["Andel Energi", "Norlys", "Ørsted"],
    }
    log = _log()

    out = repair_allow_list(block, rule, block_index=1, log=log, rng=random.Random(99), keys=keys)

    refs = [entry["_ref"] for entry in out["providers"]]
    assert refs[0] == PREFERRED_PROVIDER
    assert 1 <= len(refs) <= rule.max_entries
    assert len(set(refs)) == len(refs)
    assert set(refs) <= set(rule.allowed)
    assert log.violation_count == 1


def test_compliant_selection_is_left_alone(manifest: SchemaManifest, keys: KeyFactory) -> None:
    (rule,) = manifest.allow_lists
    providers = [
        {"_type": "reference", "_ref": PREFERRED_PROVIDER, "_key": "p1"},
        {"_type": "reference", "_ref": OTHER_PROVIDERS[2], "_key": "p2"},
    ]
    block = {"_type": "providerList", "_key": "x", "title": "T", "providers": list(providers)}
    log = _log()

    out = repair_allow_list(block, rule, block_index=0, log=log, rng=random.Random(1), keys=keys)

    assert out["providers"] == providers
    assert not log.events


def test_allow_list_problems_are_described(manifest: SchemaManifest) -> None:
    (rule,) = manifest.allow_lists
    wrong_order = [
        {"_type": "reference", "_ref": OTHER_PROVIDERS[0]},
        {"_type": "reference", "_ref": PREFERRED_PROVIDER},
    ]
    unknown = [
        {"_type": "reference", "_ref": PREFERRED_PROVIDER},
        {"_type": "reference", "_ref": "zz"},
    ]

    assert allow_list_problem([], rule) == "missing or empty"
    assert "preferred" in str(allow_list_problem(wrong_order, rule))
    assert "not on the allow-list" in str(allow_list_problem(unknown, rule))


# ---------------------------------------------------------------------------
# Universal safeguards
# ---------------------------------------------------------------------------


def test_omitted_fields_are_removed_from_nested_typed_objects(manifest: SchemaManifest) -> None:
    block = {
        "_type": "featureList",
        "title": "Fordele",
        "features": [
            {
                "_type": "featureItem",
                "title": "Grøn strøm",
                "description": "100 % vindmøllestrøm",
                "icon": {"_type": "icon.manager", "icon": "mdi:leaf"},
            }
        ],
    }

    out, removed = strip_omitted_fields(block, manifest, top_level_type="featureList")

    assert "icon" not in out["features"][0]
    assert out["features"][0]["title"] == "Grøn strøm"
    assert removed == ["features[0].icon"]


def test_string_icons_are_removed_at_any_depth() -> None:
    block = {
        "icon": "bolt",
        "items": [{"title": "x", "icon": "leaf"}, {"icon": {"_type": "icon.manager"}}],
    }

    out, removed = strip_string_icons(block)

    assert "icon" not in out
    assert "icon" not in out["items"][0]
    assert out["items"][1]["icon"] == {"_type": "icon.manager"}
    assert removed == ["icon", "items[0].icon"]


def test_mandatory_blocks_move_to_the_front_in_manifest_order(manifest: SchemaManifest) -> None:
    faq = {"_type": "faqGroup", "_key": "faq"}
    cta = {"_type": "callToActionSection", "_key": "cta"}
    blocks = [faq, page_section(), cta, hero()]

    ordered = order_mandatory_first(blocks, manifest)

    assert [b["_type"] for b in ordered] == [
        "hero",
        "pageSection",
        "faqGroup",
        "callToActionSection",
    ]
