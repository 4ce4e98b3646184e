"""Tests for identity resolution."""

import pytest

from crmsync.domain.entities import Company
from crmsync.domain.identity import (
    IdentityIndex,
    derive_company_id,
    is_usable_tax_id,
    normalize_tax_id,
    resolve_identity,
    stable_hash,
    stable_id,
)


class TestStableId:
    def test_known_values(self):
        assert stable_hash("a") == 97
        assert stable_id("a") == "stable_2p"
        assert stable_id("ab") == "stable_2e9"

    def test_astral_characters_hash_as_surrogate_pairs(self):
        assert stable_hash("\U0001F600") == 0xD83D * 31 + 0xDE00
        assert stable_hash("a\U0001F600") == (97 * 31 + 0xD83D) * 31 + 0xDE00

    def test_normalizes_case_and_whitespace(self):
        assert stable_id("  Padaria Central ") == stable_id("padaria central")

    def test_different_names_differ(self):
        assert stable_id("Padaria Central") != stable_id("Padaria Centro")

    def test_wraps_to_32_bits(self):
        h = stable_hash("Distribuidora de Alimentos Rota Sul Ltda ME")
        assert 0 <= h <= 2**31

    def test_blank_text_raises(self):
        with pytest.raises(ValueError):
            stable_id("   ")


class TestTaxId:
    def test_normalize_strips_punctuation(self):
        assert normalize_tax_id("12.345.678/0001-90") == "12345678000190"
        assert normalize_tax_id(None) == ""

    def test_usable_needs_eleven_digits(self):
        assert is_usable_tax_id("12345678901")
        assert not is_usable_tax_id("1234567890")
        assert not is_usable_tax_id("")


class TestResolveIdentity:
    def test_hit_by_tax_id(self):
        company = Company(id="c1", name="Padaria", tax_id="12.345.678/0001-90")
        index = IdentityIndex([company])

        result = resolve_identity("12345678000190", "Outro Nome", index)

        assert result.entity is company
        assert result.id == "c1"

    def test_miss_derives_id_from_tax_id(self):
        result = resolve_identity("12.345.678/0001-90", "Padaria", IdentityIndex())

        assert result.entity is None
        assert result.id == stable_id("12345678000190")

    def test_no_tax_id_derives_id_from_name(self):
        result = resolve_identity("", "Padaria Central", IdentityIndex())
        assert result.id == stable_id("padaria central")

    def test_short_tax_id_falls_back_to_name(self):
        result = resolve_identity("123", "Padaria Central", IdentityIndex())
        assert result.id == stable_id("Padaria Central")

    def test_name_only_company_resolves_again_by_id(self):
        company = Company(id=stable_id("Loja Sem Documento"), name="Loja Sem Documento")
        index = IdentityIndex([company])

        result = resolve_identity(None, "loja sem documento", index)

        assert result.entity is company

    def test_same_name_different_tax_ids_do_not_collide(self):
        a = derive_company_id("11111111111", "Mercado")
        b = derive_company_id("22222222222", "Mercado")
        assert a != b

    def test_rejects_row_without_identity(self):
        assert resolve_identity("", "", IdentityIndex()) is None
        assert resolve_identity("123", "  ", IdentityIndex()) is None

    def test_register_makes_company_visible(self):
        index = IdentityIndex()
        company = Company(id="new", name="Nova", tax_id="98765432000110")
        index.register(company)

        assert index.get_by_tax_id("98765432000110") is company
        assert index.get_by_id("new") is company
