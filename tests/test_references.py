"""Reference sanitizer: alias renaming, extra-key removal, idempotence."""

from __future__ import annotations

import copy

from pagesmith.repair.references import looks_like_reference, sanitize_references


def test_decorated_reference_is_reduced_to_system_keys() -> None:
    raw = {"type": "reference", "ref": "abc", "title": "Andel Energi", "url": "https://x"}
    clean, count = sanitize_references(raw)

    assert clean == {"_type": "reference", "_ref": "abc"}
    assert count == 1


def test_missing_type_is_filled_in_and_canonical_keys_win() -> None:
    clean, _ = sanitize_references({"_ref": "abc", "ref": "shadowed", "_key": "k1"})
    assert clean == {"_type": "reference", "_ref": "abc", "_key": "k1"}
    assert list(clean) == ["_type", "_ref", "_key"]


def test_walk_reaches_nested_lists_and_leaves_other_fields_alone() -> None:
    block = {
        "title": "Udbydere",
        "providers": [
            {"_type": "reference", "_ref": "a", "name": "Norlys"},
            {"_type": "reference", "_ref": "b"},
        ],
        "meta": {"deep": [{"ref": "c"}]},
    }
    original = copy.deepcopy(block)
    seen: list[str] = []

    clean, count = sanitize_references(block, report=lambda path, _msg: seen.append(path))

    assert count == 2
    assert clean["title"] == "Udbydere"
    assert clean["providers"][0] == {"_type": "reference", "_ref": "a"}
    assert clean["meta"]["deep"][0] == {"_type": "reference", "_ref": "c"}
    assert seen == ["providers[0]", "meta.deep[0]"]
    assert block == original


def test_second_pass_changes_nothing() -> None:
    raw = [{"type": "reference", "ref": "x", "extra": 1}, {"_ref": "y", "_weak": True}]
    once, _ = sanitize_references(raw)
    twice, count = sanitize_references(once)

    assert twice == once
    assert count == 0


def test_reference_detection() -> None:
    assert looks_like_reference({"_ref": "x"})
    assert looks_like_reference({"type": "reference"})
    assert not looks_like_reference({"_type": "faqItem", "question": "?"})
    assert not looks_like_reference("x")
