# tests/test_expense_import_service.py
from datetime import date

import pytest

from app.core.exceptions import (
    EntityNotFoundException,
    ImportValidationException,
    ValidationException,
    WorkbookFormatException,
)
from app.repositories.expense_item_repository import ExpenseItemRepository
from app.services.expense_import_service import (
    ExpenseImportService,
    ImportOptions,
    validate_batch,
)
from app.services.row_parser import ParsedRow

HEADER = ("번호", "항목", "사용내역", "수량", "단가", "금액")
PREAMBLE = [("항목별 사용내역서",), (), ("현장명", "A현장"), (), ()]


def safety_facility_rows():
    return PREAMBLE + [
        HEADER,
        ("2. 안전시설물",),
        (1, None, "안전테이프", 10, 500, None),
        (2, None, "표지판", 2, 3000, None),
    ]


def ppe_rows(third_quantity=5):
    return PREAMBLE + [
        HEADER,
        ("3. 개인보호구",),
        (1, None, "안전모", 10, 12000, 120000),
        (2, None, "안전화", 4, 35000, 140000),
        (3, None, "장갑", third_quantity, 1000, third_quantity * 1000),
    ]


@pytest.fixture()
def service(db_session):
    return ExpenseImportService(db_session, ImportOptions())


def stored_items(db_session, document):
    return ExpenseItemRepository(db_session).list_by_document(document.id)


def test_header_at_index_five_scenario(service, db_session, document, make_workbook):
    result = service.import_workbook(document.id, make_workbook(safety_facility_rows()))

    assert result.committed == 2
    assert result.header_row == 6
    assert result.category_counts == {"safety_facility": 2}

    items = stored_items(db_session, document)
    assert [(i.item_name, i.category_key, i.evidence_no) for i in items] == [
        ("안전테이프", "safety_facility", 1),
        ("표지판", "safety_facility", 2),
    ]
    assert [(i.quantity, i.unit_price, i.amount) for i in items] == [
        (10, 500, None),
        (2, 3000, None),
    ]


def test_parsing_is_deterministic(service, make_workbook):
    data = make_workbook(ppe_rows())
    first = service.parse_workbook(data)
    second = service.parse_workbook(data)
    assert [r.to_record("d") for r in first.rows] == [r.to_record("d") for r in second.rows]


def test_upsert_import_is_idempotent(service, db_session, document, make_workbook):
    data = make_workbook(ppe_rows())
    service.import_workbook(document.id, data)
    first = [(i.id, i.item_name, i.quantity) for i in stored_items(db_session, document)]

    service.import_workbook(document.id, data)
    second = [(i.id, i.item_name, i.quantity) for i in stored_items(db_session, document)]

    assert len(second) == 3
    assert first == second


@pytest.mark.parametrize("mode", ["upsert", "replace"])
def test_reimport_replaces_conflicting_key(service, db_session, document, make_workbook, mode):
    service.import_workbook(document.id, make_workbook(ppe_rows(third_quantity=5)))
    service.import_workbook(document.id, make_workbook(ppe_rows(third_quantity=8)), mode=mode)

    items = [i for i in stored_items(db_session, document) if i.evidence_no == 3]
    assert len(items) == 1
    assert (items[0].category_key, items[0].quantity) == ("ppe", 8)
    assert len(stored_items(db_session, document)) == 3


def test_replace_drops_items_missing_from_new_workbook(service, db_session, document, make_workbook):
    service.import_workbook(document.id, make_workbook(ppe_rows()))
    service.import_workbook(document.id, make_workbook(safety_facility_rows()), mode="replace")

    assert {i.category_key for i in stored_items(db_session, document)} == {"safety_facility"}


def test_skip_existing_appends_only_new_content(service, db_session, document, make_workbook):
    service.import_workbook(document.id, make_workbook(ppe_rows(third_quantity=5)))
    result = service.import_workbook(
        document.id, make_workbook(ppe_rows(third_quantity=8)), mode="skip_existing"
    )

    assert (result.committed, result.skipped) == (1, 2)
    gloves = [i for i in stored_items(db_session, document) if i.item_name == "장갑"]
    assert sorted((g.quantity, g.evidence_no) for g in gloves) == [(5, 3), (8, 4)]


def test_total_rows_are_not_persisted(service, db_session, document, make_workbook):
    rows = ppe_rows() + [(None, None, "합계", 19, None, 999)]
    result = service.import_workbook(document.id, make_workbook(rows))

    names = [i.item_name for i in stored_items(db_session, document)]
    assert "합계" not in names
    assert result.totals[0]["label"] == "합계"
    # 999 does not match the item amounts
    assert any("합계" in w["reason"] for w in result.warnings)


def test_row_warnings_carry_row_numbers(service, document, make_workbook):
    rows = ppe_rows() + [(4, None, "마스크", 0, 500, None), (5, None, "귀마개", "", 500, None)]
    result = service.import_workbook(document.id, make_workbook(rows))

    assert result.committed == 3
    assert [w["row"] for w in result.warnings] == [11, 12]


def test_repeated_category_block_is_rejected(service, db_session, document, make_workbook):
    rows = ppe_rows() + [("3. 개인보호구",), (1, None, "보안경", 2, 5000, None)]

    with pytest.raises(ImportValidationException) as excinfo:
        service.import_workbook(document.id, make_workbook(rows))

    errors = excinfo.value.details["errors"]
    assert errors == [{"category_key": "ppe", "evidence_no": 1, "rows": [8, 12]}]
    assert stored_items(db_session, document) == []


def test_failed_import_leaves_existing_items(service, db_session, document, make_workbook):
    service.import_workbook(document.id, make_workbook(ppe_rows()))
    broken = ppe_rows() + [("3. 개인보호구",), (1, None, "보안경", 2, 5000, None)]

    with pytest.raises(ImportValidationException):
        service.import_workbook(document.id, make_workbook(broken), mode="replace")

    assert len(stored_items(db_session, document)) == 3


def test_no_valid_rows(service, document, make_workbook):
    rows = PREAMBLE + [HEADER, ("2. 안전시설물",), (1, None, "안전테이프", 0, 500, None)]
    with pytest.raises(ImportValidationException) as excinfo:
        service.import_workbook(document.id, make_workbook(rows))
    assert excinfo.value.details["rule_name"] == "no_valid_rows"


def test_missing_header(service, document, make_workbook):
    with pytest.raises(WorkbookFormatException):
        service.import_workbook(document.id, make_workbook([("foo", "bar"), (1, 2)]))


def test_missing_quantity_column(service, document, make_workbook):
    rows = [("품명", "단가"), ("2. 안전시설물",), ("안전테이프", 500)]
    with pytest.raises(WorkbookFormatException) as excinfo:
        service.import_workbook(document.id, make_workbook(rows))
    assert excinfo.value.details["missing_columns"] == ["quantity"]


def test_unreadable_file(service, document):
    with pytest.raises(WorkbookFormatException):
        service.import_workbook(document.id, b"not a workbook")


def test_unknown_document(service, make_workbook):
    with pytest.raises(EntityNotFoundException):
        service.import_workbook("missing", make_workbook(ppe_rows()))


def test_unknown_mode(service, document, make_workbook):
    with pytest.raises(ValidationException):
        service.import_workbook(document.id, make_workbook(ppe_rows()), mode="merge")


def test_dates_are_stored(service, db_session, document, make_workbook):
    rows = [
        ("사용일자", "품명", "수량"),
        ("2. 안전시설물",),
        ("25.12.22", "안전테이프", "1,234"),
        ("2025-12-01", "표지판", 1),
    ]
    service.import_workbook(document.id, make_workbook(rows))

    items = stored_items(db_session, document)
    assert [(i.used_at, i.quantity) for i in items] == [
        (date(2025, 12, 22), 1234),
        (date(2025, 12, 1), 1),
    ]


def test_quantity_fallback_override(service, db_session, document, make_workbook):
    rows = PREAMBLE + [HEADER, ("3. 개인보호구",), (1, None, "장갑", "열", 1000, 20000)]

    with pytest.raises(ImportValidationException):
        service.import_workbook(document.id, make_workbook(rows))

    service.import_workbook(document.id, make_workbook(rows), quantity_fallback=True)
    assert stored_items(db_session, document)[0].quantity == 1000


def make_row(row_number, evidence_no, item_name="안전모", quantity=1):
    return ParsedRow(
        row_number=row_number,
        category_key="ppe",
        category_no=3,
        evidence_no=evidence_no,
        item_name=item_name,
        quantity=quantity,
    )


def test_validate_batch_rejects_invalid_records():
    rows = [make_row(8, 1), make_row(9, 2, item_name="  "), make_row(10, 3, quantity=0)]

    with pytest.raises(ImportValidationException) as excinfo:
        validate_batch(rows, [])

    assert excinfo.value.details["rule_name"] == "invalid_rows"
    assert [e["row"] for e in excinfo.value.details["errors"]] == [9, 10]


def test_validate_batch_accepts_clean_rows():
    assert validate_batch([make_row(8, 1), make_row(9, 2)], []) is None
