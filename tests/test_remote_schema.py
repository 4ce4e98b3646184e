"""Tests for remote sheet row translation."""

from datetime import date, datetime
from decimal import Decimal

from crmsync.domain.entities import Company, ImportType, Purchase, SyncEntityType
from crmsync.domain.identity import stable_id
from crmsync.remote.schema import (
    HEADERS,
    cell_amount,
    cell_bool,
    cell_date,
    company_from_sheet_row,
    entity_to_row,
    import_batch_from_sheet_row,
    note_from_sheet_row,
    object_to_row,
    sheet_to_objects,
)

from conftest import FIXED_NOW

TODAY = FIXED_NOW.date()


class TestObjectToRow:
    def test_header_matching_ignores_case_and_underscores(self):
        row = object_to_row({"company_id": "c1", "CONTENT": "hi"}, ["id", "companyId", "content"])
        assert row == ["", "c1", "hi"]

    def test_cell_conversion(self):
        row = object_to_row(
            {"a": ["X", "Y"], "b": Decimal("1.5"), "c": date(2024, 1, 2), "d": None, "e": True},
            ["a", "b", "c", "d", "e"],
        )
        assert row == ['["X", "Y"]', 1.5, "2024-01-02", "", True]


class TestSheetToObjects:
    def test_header_row_only(self):
        assert sheet_to_objects([["id", "name"]]) == []
        assert sheet_to_objects([]) == []

    def test_json_cells_are_decoded(self):
        values = [["id", "Tags", "note"], ["c1", '["A","B"]', "[not json"]]
        assert sheet_to_objects(values) == [{"id": "c1", "tags": ["A", "B"], "note": "[not json"}]

    def test_short_rows_are_padded(self):
        assert sheet_to_objects([["id", "name"], ["c1"]]) == [{"id": "c1", "name": ""}]


class TestCells:
    def test_cell_date(self):
        assert cell_date("15/03/2024") == date(2024, 3, 15)
        assert cell_date("") is None
        assert cell_date("garbage") is None

    def test_cell_amount(self):
        assert cell_amount(12.5) == Decimal("12.5")
        assert cell_amount("1.234,56") == Decimal("1234.56")
        assert cell_amount("") == Decimal("0")
        assert cell_amount("n/a") == Decimal("0")

    def test_cell_bool(self):
        assert cell_bool("SIM")
        assert cell_bool("true")
        assert cell_bool(True)
        assert not cell_bool("nao")
        assert not cell_bool("")


class TestCompanyRows:
    def test_company_survives_the_sheet(self):
        company = Company(
            id="c1",
            name="Padaria Central",
            tax_id="12345678000190",
            city="Curitiba",
            last_purchase_date=date(2024, 2, 20),
            last_purchase_value=Decimal("480.00"),
            tags=("FEIRA", "PROSPECTING"),
            purchases=(
                Purchase(id="p1", order_id="103", date=date(2024, 2, 20), value=Decimal("480.00")),
            ),
        )
        values = [HEADERS["companies"], entity_to_row(SyncEntityType.COMPANY, company)]

        [row] = sheet_to_objects(values)
        restored = company_from_sheet_row(row, TODAY)

        assert restored.id == "c1"
        assert restored.name == "Padaria Central"
        assert restored.city == "Curitiba"
        assert restored.tags == ("FEIRA", "PROSPECTING")
        assert restored.last_purchase_date == date(2024, 2, 20)
        assert restored.last_purchase_value == Decimal("480")
        assert restored.purchases[0].order_id == "103"
        assert restored.purchases[0].value == Decimal("480.00")
        assert restored.is_active is True

    def test_row_without_id_gets_stable_id(self):
        row = {"nome": "Acme", "cpf_cpnj": "12.345.678/0001-90", "tags": "a, b"}
        company = company_from_sheet_row(row, TODAY)

        assert company.id == stable_id("12345678000190")
        assert company.tags == ("A", "B")

    def test_falls_back_to_client_code_then_name(self):
        assert company_from_sheet_row({"codigo": "77", "nome": "Acme"}, TODAY).id == stable_id("77")
        assert company_from_sheet_row({"nome": "Acme"}, TODAY).id == stable_id("Acme")


class TestOtherRows:
    def test_note_row(self):
        note = note_from_sheet_row(
            {"id": "n1", "companyid": "c1", "content": "Hi", "createdat": "2024-03-01T10:00:00.000Z"},
            FIXED_NOW,
        )
        assert note.company_id == "c1"
        assert note.created_at == datetime.fromisoformat("2024-03-01T10:00:00+00:00")
        assert note.type == "note"

    def test_note_row_with_bad_timestamp(self):
        note = note_from_sheet_row({"id": "n1", "createdat": "yesterday"}, FIXED_NOW)
        assert note.created_at == FIXED_NOW

    def test_import_batch_row(self):
        batch = import_batch_from_sheet_row(
            {"id": "b1", "tagname": "FEIRA", "matchedcount": 3, "totalrows": "5", "type": "SALES"},
            FIXED_NOW,
        )
        assert batch.matched_count == 3
        assert batch.total_rows == 5
        assert batch.type is ImportType.SALES
        assert batch.imported_at == FIXED_NOW

    def test_unknown_batch_type_is_general(self):
        batch = import_batch_from_sheet_row({"id": "b1", "type": "weird"}, FIXED_NOW)
        assert batch.type is ImportType.GENERAL
