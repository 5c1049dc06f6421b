"""Tests for docwiki.frontmatter and the Frontmatter model."""

from datetime import date, datetime

import pytest

from docwiki.frontmatter import (
    decode,
    encode,
    load_block,
    normalize_date,
    normalize_tags,
    parse_lines,
    split,
    title_from_name,
)
from docwiki.models import Frontmatter


class TestSplit:
    def test_block_and_body(self):
        block, body = split("---\ntitle: A\n---\n\nBody text\n")
        assert block == "title: A\n"
        assert body == "Body text\n"

    def test_no_block(self):
        raw = "# Just Markdown\n\nNo metadata here.\n"
        assert split(raw) == (None, raw)

    def test_unclosed_block_is_body(self):
        raw = "---\ntitle: A\nno closing delimiter\n"
        assert split(raw) == (None, raw)

    def test_dots_close_block(self):
        block, body = split("---\ntitle: A\n...\nBody")
        assert block == "title: A\n"
        assert body == "Body"

    def test_only_one_blank_line_is_consumed(self):
        _, body = split("---\ntitle: A\n---\n\n\nIndented start")
        assert body == "\nIndented start"


class TestLoadBlock:
    def test_yaml_block(self):
        data = load_block("title: Guide\ntags:\n  - a\n  - b\ncustom: 3\n")
        assert data == {"title": "Guide", "tags": ["a", "b"], "custom": 3}

    def test_dates_stay_strings(self):
        data = load_block("lastUpdated: 2024-01-15\ncreated: 2023-12-01 10:00:00\n")
        assert data["lastUpdated"] == "2024-01-15"
        assert isinstance(data["created"], str)

    def test_malformed_list_degrades_to_string(self):
        data = load_block("title: Guide\ntags: [a, b\n")
        assert data["title"] == "Guide"
        assert data["tags"] == "[a, b"

    def test_non_mapping_falls_back_to_line_parser(self):
        assert load_block("just a sentence") == {}

    def test_empty_block(self):
        assert load_block("") == {}


class TestParseLines:
    def test_scalars_lists_and_quotes(self):
        data = parse_lines("title: 'Quoted: Title'\ntags: [a, \"b\", c]\n# comment\nbroken line\n")
        assert data == {"title": "Quoted: Title", "tags": ["a", "b", "c"]}

    def test_unclosed_list_is_plain_string(self):
        assert parse_lines("related: [x, y") == {"related": "[x, y"}


class TestDecode:
    def test_full_document(self):
        raw = (
            "---\n"
            "title: Technical Safeguards\n"
            "description: Access control\n"
            "category: hipaa\n"
            "tags: security, encryption\n"
            "lastUpdated: 2024-03-01\n"
            "author: Compliance Team\n"
            "---\n"
            "\n"
            "# Technical Safeguards\n"
        )
        fm, body = decode(raw)

        assert fm.title == "Technical Safeguards"
        assert fm.description == "Access control"
        assert fm.category == "hipaa"
        assert fm.tags == ["security", "encryption"]
        assert fm.last_updated == "2024-03-01"
        assert fm.extra == {"author": "Compliance Team"}
        assert body == "# Technical Safeguards\n"

    def test_no_frontmatter(self):
        raw = "# Plain\n\nJust text.\n"
        fm, body = decode(raw)

        assert body == raw
        assert fm.to_dict() == {"title": "Untitled"}
        assert fm.extra == {}

    def test_default_title(self):
        fm, _ = decode("no block", default_title="Getting Started")
        assert fm.title == "Getting Started"

    def test_malformed_yaml_does_not_raise(self):
        fm, body = decode("---\ntitle: Broken\ntags: [a, b\nrelated: [x, y\n---\nBody")

        assert fm.title == "Broken"
        assert fm.extra["related"] == "[x, y"
        assert body == "Body"

    def test_invalid_recognized_value_is_dropped(self):
        fm, _ = decode("---\ntitle: Kept\ncategory:\n  nested: mapping\n---\n")
        assert fm.title == "Kept"
        assert fm.category is None


class TestNormalization:
    @pytest.mark.parametrize(
        "value",
        ["a, b, c", "a,b,c", ["a", "b", "c"], (" a ", "b", "c "), "a, , b, c"],
    )
    def test_tag_representations_are_equivalent(self, value):
        assert normalize_tags(value) == ["a", "b", "c"]
        assert Frontmatter.model_validate({"tags": value}).tags == ["a", "b", "c"]

    def test_empty_tags(self):
        assert normalize_tags(None) == []
        assert normalize_tags("") == []
        assert normalize_tags(["", "  "]) == []

    @pytest.mark.parametrize(
        "value,expected",
        [
            (date(2024, 1, 15), "2024-01-15"),
            (datetime(2024, 1, 15, 23, 59), "2024-01-15"),
            ("2024-01-15", "2024-01-15"),
            ("2024-01-15T10:30:00Z", "2024-01-15"),
            ("2024-01-15 08:00", "2024-01-15"),
            ("last spring", "last spring"),
            (None, None),
            ("", None),
        ],
    )
    def test_date_normalization(self, value, expected):
        assert normalize_date(value) == expected
        if expected is not None:
            assert Frontmatter.model_validate({"lastUpdated": value}).last_updated == expected

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("getting-started.md", "Getting Started"),
            ("hipaa/technical_safeguards.mdx", "Technical Safeguards"),
            ("overview", "Overview"),
            ("", "Untitled"),
        ],
    )
    def test_title_from_name(self, name, expected):
        assert title_from_name(name) == expected


class TestEncode:
    def test_recognized_fields_first(self):
        fm = Frontmatter.model_validate(
            {"zeta": 1, "tags": ["b"], "title": "T", "lastUpdated": "2024-01-01", "alpha": "x"}
        )
        raw = encode(fm, "Body")
        block, body = split(raw)

        keys = [line.split(":")[0] for line in block.splitlines() if line[:1].isalpha()]
        assert keys == ["title", "tags", "lastUpdated", "zeta", "alpha"]
        assert body == "Body"
        assert raw.startswith("---\n")

    def test_empty_optionals_omitted(self):
        raw = encode(Frontmatter(title="Only"), "")
        assert "description" not in raw
        assert "tags" not in raw

    @pytest.mark.parametrize(
        "body",
        ["", "Body\n", "# Heading\n\nParagraph with `code`.\n", "\nStarts with a blank line", "---\n"],
    )
    def test_round_trip(self, body):
        fm = Frontmatter.model_validate(
            {
                "title": "Round Trip: Test",
                "description": "Has a colon: here",
                "category": "guides",
                "tags": ["alpha", "beta gamma"],
                "lastUpdated": "2024-02-29",
                "owner": "docs-team",
                "weight": 3,
            }
        )

        decoded, decoded_body = decode(encode(fm, body))

        assert decoded.to_dict() == fm.to_dict()
        assert decoded_body == body

    def test_encode_accepts_dict(self):
        raw = encode({"title": "From Dict", "tags": "a, b"}, "x")
        fm, _ = decode(raw)
        assert fm.tags == ["a", "b"]
