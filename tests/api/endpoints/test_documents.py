# tests/api/endpoints/test_documents.py
from io import BytesIO
from urllib.parse import quote

from openpyxl import load_workbook

API = "/api/v1"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER = ("번호", "항목", "사용내역", "수량", "단가", "금액")
ROWS = [
    ("항목별 사용내역서",),
    (),
    ("현장명", "A현장"),
    (),
    (),
    HEADER,
    ("2. 안전시설물",),
    (1, None, "안전테이프", 10, 500, None),
    (2, None, "표지판", 2, 3000, None),
]


def upload(client, document_id, data, **form):
    return client.post(
        f"{API}/documents/{document_id}/import",
        files={"file": ("usage.xlsx", data, XLSX)},
        data=form,
    )


# --- Documents ---


def test_get_or_create_document(client):
    payload = {"site_name": " B현장 ", "month_key": "2026-01"}
    first = client.post(f"{API}/documents/", json=payload)
    second = client.post(f"{API}/documents/", json=payload)

    assert first.status_code == 200
    assert first.json()["site_name"] == "B현장"
    assert first.json()["id"] == second.json()["id"]

    fetched = client.get(f"{API}/documents/{first.json()['id']}")
    assert fetched.json()["month_key"] == "2026-01"


def test_invalid_month_key(client):
    response = client.post(f"{API}/documents/", json={"site_name": "A", "month_key": "2025-13"})
    assert response.status_code == 422


def test_unknown_document(client):
    response = client.get(f"{API}/documents/nope")
    assert response.status_code == 404
    assert response.json()["code"] == "DOMAIN_001"


def test_api_key_required_when_configured(client, test_settings, document_id):
    test_settings.API_KEY = "s3cret"

    assert client.get(f"{API}/documents/{document_id}").status_code == 401
    wrong = client.get(f"{API}/documents/{document_id}", headers={"X-API-Key": "nope"})
    assert wrong.status_code == 401
    ok = client.get(f"{API}/documents/{document_id}", headers={"X-API-Key": "s3cret"})
    assert ok.status_code == 200


# --- Import ---


def test_import_workbook(client, document_id, make_workbook):
    response = upload(client, document_id, make_workbook(ROWS))

    assert response.status_code == 200
    body = response.json()
    assert body["committed"] == 2
    assert body["header_row"] == 6
    assert body["mode"] == "upsert"
    assert body["category_counts"] == {"safety_facility": 2}

    items = client.get(f"{API}/documents/{document_id}/items").json()
    assert [(i["item_name"], i["evidence_no"], i["amount"]) for i in items] == [
        ("안전테이프", 1, None),
        ("표지판", 2, None),
    ]
    assert {i["source"] for i in items} == {"excel"}


def test_import_modes(client, document_id, make_workbook):
    data = make_workbook(ROWS)
    upload(client, document_id, data)

    skipped = upload(client, document_id, data, mode="skip_existing").json()
    assert (skipped["committed"], skipped["skipped"]) == (0, 2)

    replaced = upload(client, document_id, data, mode="replace").json()
    assert replaced["committed"] == 2
    assert len(client.get(f"{API}/documents/{document_id}/items").json()) == 2


def test_import_rejects_unknown_mode(client, document_id, make_workbook):
    response = upload(client, document_id, make_workbook(ROWS), mode="merge")
    assert response.status_code == 422


def test_import_rejects_bad_files(client, document_id, make_workbook):
    garbage = upload(client, document_id, b"this is not a workbook")
    assert garbage.status_code == 400
    assert garbage.json()["code"] == "IMPORT_001"

    no_quantity = upload(client, document_id, make_workbook([("품명",), ("2. 안전시설물",), ("x",)]))
    assert no_quantity.status_code == 400
    assert no_quantity.json()["details"]["missing_columns"] == ["quantity"]


def test_import_rejects_duplicate_evidence(client, document_id, make_workbook):
    rows = ROWS + [("2. 안전시설물",), (1, None, "안전망", 1, 100, None)]
    response = upload(client, document_id, make_workbook(rows))

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "IMPORT_002"
    assert body["details"]["errors"][0]["rows"] == [8, 11]
    assert client.get(f"{API}/documents/{document_id}/items").json() == []


def test_import_unknown_document(client, make_workbook):
    assert upload(client, "nope", make_workbook(ROWS)).status_code == 404


# --- Manual items ---


def test_manual_item_entry(client, document_id):
    payload = {"category_key": "ppe", "category_no": 3, "item_name": "안전화", "quantity": 2}
    created = client.post(f"{API}/documents/{document_id}/items", json=payload)

    assert created.status_code == 201
    assert created.json()["evidence_no"] == 1
    assert created.json()["source"] == "manual"

    second = client.post(f"{API}/documents/{document_id}/items", json=payload)
    assert second.json()["evidence_no"] == 2

    taken = client.post(
        f"{API}/documents/{document_id}/items", json=dict(payload, evidence_no=1)
    )
    assert taken.status_code == 400
    assert taken.json()["details"]["rule_name"] == "duplicate_evidence_no"


def test_manual_item_validation(client, document_id):
    payload = {"category_key": "ppe", "item_name": "안전화", "quantity": 0}
    response = client.post(f"{API}/documents/{document_id}/items", json=payload)
    assert response.status_code == 422


def test_edit_and_search_items(client, document_id, make_workbook):
    upload(client, document_id, make_workbook(ROWS))
    item = client.get(f"{API}/documents/{document_id}/items").json()[0]

    edited = client.patch(f"{API}/items/{item['id']}", json={"quantity": 12, "amount": 6000})
    assert edited.status_code == 200
    assert (edited.json()["quantity"], edited.json()["amount"]) == (12, 6000)
    assert edited.json()["item_name"] == "안전테이프"

    found = client.get(f"{API}/items/", params={"q": "테이프"}).json()
    assert [i["id"] for i in found] == [item["id"]]
    assert client.get(f"{API}/items/", params={"q": " "}).json() == []
    assert client.get(f"{API}/items/{item['id']}").json()["evidence_no"] == 1


def test_edit_rejects_taken_evidence_number(client, document_id, make_workbook):
    upload(client, document_id, make_workbook(ROWS))
    item = client.get(f"{API}/documents/{document_id}/items").json()[0]

    response = client.patch(f"{API}/items/{item['id']}", json={"evidence_no": 2})
    assert response.status_code == 400


def test_clear_items(client, document_id, make_workbook):
    upload(client, document_id, make_workbook(ROWS))

    response = client.delete(f"{API}/documents/{document_id}/items")

    assert response.json() == {"deleted": 2}
    assert client.get(f"{API}/documents/{document_id}/items").json() == []


# --- Export ---


def test_export_workbook(client, document_id, make_workbook):
    upload(client, document_id, make_workbook(ROWS))

    response = client.get(f"{API}/documents/{document_id}/export")

    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX
    disposition = response.headers["content-disposition"]
    assert disposition.startswith("attachment;")
    assert f"filename*=UTF-8''{quote('항목별사용내역서_2025-12.xlsx')}" in disposition

    wb = load_workbook(BytesIO(response.content))
    assert wb.worksheets[0]["C8"].value == "안전테이프"
    assert wb.worksheets[0]["C9"].value == "표지판"
    assert "NO.1" in wb.sheetnames and "NO.2" in wb.sheetnames


def test_export_without_template(client, test_settings, document_id, tmp_path):
    test_settings.EXPORT_TEMPLATE_PATH = str(tmp_path / "missing.xlsx")

    response = client.get(f"{API}/documents/{document_id}/export")

    assert response.status_code == 500
    assert response.json()["code"] == "EXPORT_001"
