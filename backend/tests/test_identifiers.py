"""
Remarket Backend - Identifier Unit Tests
==========================================

What:  Tests for id generation, parsing and the canonical pair key.

What we test:
    ✅ Generated ids are 24 lowercase hex characters and unique
    ✅ Parsing normalizes case/whitespace and rejects anything else
    ✅ Pair keys ignore argument order
"""

import pytest

from remarket.exceptions import InvalidIdentifierError
from remarket.identifiers import (
    ID_LENGTH,
    canonical_pair_key,
    is_valid_identifier,
    new_object_id,
    parse_identifier,
)


class TestNewObjectId:

    def test_format(self):
        oid = new_object_id()
        assert len(oid) == ID_LENGTH
        assert is_valid_identifier(oid)

    def test_unique(self):
        assert len({new_object_id() for _ in range(500)}) == 500


class TestParseIdentifier:

    def test_normalizes_case_and_whitespace(self):
        assert parse_identifier("  65F0C1A2E4B0A1B2C3D4E5F6 ") == "65f0c1a2e4b0a1b2c3d4e5f6"

    @pytest.mark.parametrize(
        "value",
        ["", "abc", "65f0c1a2e4b0a1b2c3d4e5f", "65f0c1a2e4b0a1b2c3d4e5fz", None, 12345],
    )
    def test_rejects_malformed(self, value):
        with pytest.raises(InvalidIdentifierError):
            parse_identifier(value)

    def test_error_names_the_field(self):
        with pytest.raises(InvalidIdentifierError) as exc:
            parse_identifier("nope", field="listing_id")
        assert exc.value.context["field"] == "listing_id"


class TestCanonicalPairKey:

    def test_order_independent(self):
        a, b = new_object_id(), new_object_id()
        assert canonical_pair_key(a, b) == canonical_pair_key(b, a)

    def test_smaller_id_first(self):
        assert canonical_pair_key("b" * 24, "a" * 24) == f"{'a' * 24}:{'b' * 24}"
