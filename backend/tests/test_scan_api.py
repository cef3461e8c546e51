"""Integration tests for the HTTP API."""

from unittest.mock import AsyncMock, patch

from conftest import EXPIRED_BARCODE, FRESH_BARCODE, GTIN

ERP_SNAPSHOT = b"S;REF-1;LOT1;A1;2\nS;REF-1;LOT2;A1;3\nS;REF-5;L5;A1;1\n"


def _scan(client, barcode=FRESH_BARCODE):
    return client.post("/api/scan", json={"barcode": barcode})


class TestSessionSetup:
    def test_get_initial_setup(self, client):
        resp = client.get("/api/session/setup")
        assert resp.status_code == 200
        data = resp.json()
        assert data["location"] == "A1"
        assert data["quarantine_location"] == "MMPER"
        assert data["expiry_threshold_months"] == 6

    def test_update_setup(self, client, scan_session):
        resp = client.put("/api/session/setup", json={
            "location": "B7",
            "storage_site": "SITE2",
            "movement_code": "INV-24",
            "stock_count": True,
        })
        assert resp.status_code == 200
        assert resp.json()["location"] == "B7"
        assert scan_session.config.location == "B7"
        assert scan_session.config.stock_count is True

    def test_location_required(self, client):
        resp = client.put("/api/session/setup", json={"location": ""})
        assert resp.status_code == 422


class TestScan:
    def test_first_scan_creates(self, client):
        resp = _scan(client)
        assert resp.status_code == 200
        data = resp.json()
        assert data["outcome"] == "created"
        assert data["signals"] == ["success"]
        record = data["record"]
        assert record["gtin"] == GTIN
        assert record["batch_lot"] == "LOT1"
        assert record["expiration_date"] == "2026-12-31"
        assert record["location"] == "A1"
        assert record["supplier"] == "ACME"
        assert record["ref"] is None

    def test_second_scan_increments(self, client):
        _scan(client)
        data = _scan(client).json()
        assert data["outcome"] == "updated"
        assert data["record"]["quantity"] == 2
        assert len(client.get("/api/ledger").json()) == 1

    def test_mapped_gtin_gets_ref(self, client):
        client.post("/api/mappings", json={"gtin": GTIN, "ref": "REF-1"})
        assert _scan(client).json()["record"]["ref"] == "REF-1"

    def test_expired_scan_goes_to_quarantine(self, client):
        data = _scan(client, EXPIRED_BARCODE).json()
        assert data["outcome"] == "created-expired"
        assert data["signals"] == ["expired"]
        assert data["record"]["location"] == "MMPER"

    def test_undecodable_barcode_is_422(self, client, scan_session):
        resp = _scan(client, "HELLO WORLD")
        assert resp.status_code == 422
        assert resp.json()["detail"] == "No valid GS1 elements found"
        assert scan_session.ledger == []

    def test_barcode_without_gtin_is_400(self, client):
        resp = _scan(client, "+$$00725LOT12AQ")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid barcode: No GTIN found"

    def test_empty_barcode_is_400(self, client):
        assert _scan(client, "   ").status_code == 400

    def test_non_ascii_digits_do_not_break_the_scan(self, client):
        resp = _scan(client, f"01{GTIN[:-1]}²")
        assert resp.status_code == 200
        assert resp.json()["record"]["gtin"] == f"{GTIN[:-1]}²"

    def test_hibc_scan(self, client):
        data = _scan(client, "+A99912341/$$525001LOT12X").json()
        assert data["record"]["gtin"] == "HIBC:A9991234"
        assert data["record"]["batch_lot"] == "LOT12"

    def test_not_in_erp_only_in_stock_count_mode(self, client):
        client.post("/api/erp/snapshot", files={"file": ("stock.csv", ERP_SNAPSHOT, "text/csv")})
        client.post("/api/mappings", json={"gtin": GTIN, "ref": "REF-9"})

        assert _scan(client).json()["record"]["not_in_erp"] is False

        client.put("/api/session/setup", json={"location": "A2", "stock_count": True})
        data = _scan(client).json()
        assert data["record"]["not_in_erp"] is True
        assert data["signals"] == ["success", "not-in-erp"]


class TestDecode:
    def test_decode_does_not_touch_ledger(self, client, scan_session):
        with patch("stockscan.routers.scan.suggest_refs", AsyncMock(return_value=[])):
            resp = client.post("/api/scan/decode", json={"barcode": FRESH_BARCODE})
        assert resp.status_code == 200
        data = resp.json()
        assert data["barcode_format"] == "gs1"
        assert data["gtin"] == GTIN
        assert scan_session.ledger == []

    def test_unmapped_gtin_gets_catalog_suggestions(self, client):
        suggestion = {"ref": "VG-2000", "company_name": "ACME", "brand_name": "VG", "description": "Patch"}
        with patch("stockscan.routers.scan.suggest_refs", AsyncMock(return_value=[suggestion])) as lookup:
            data = client.post("/api/scan/decode", json={"barcode": FRESH_BARCODE}).json()
        lookup.assert_awaited_once_with(GTIN)
        assert data["ref_suggestions"] == [suggestion]

    def test_mapped_gtin_skips_catalog(self, client):
        client.post("/api/mappings", json={"gtin": GTIN, "ref": "REF-1"})
        with patch("stockscan.routers.scan.suggest_refs", AsyncMock(return_value=[])) as lookup:
            data = client.post("/api/scan/decode", json={"barcode": FRESH_BARCODE}).json()
        lookup.assert_not_awaited()
        assert data["ref"] == "REF-1"

    def test_decode_error_is_422(self, client):
        resp = client.post("/api/scan/decode", json={"barcode": "+$$3251399LOTAQ"})
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Invalid HIBC date"


class TestLedger:
    def test_manual_add_requires_ref_or_gtin(self, client):
        resp = client.post("/api/ledger", json={"batch_lot": "LOT1"})
        assert resp.status_code == 400

    def test_manual_add(self, client):
        resp = client.post("/api/ledger", json={"ref": "REF-1", "batch_lot": "LOT1", "expiration_date": "2027-01-31"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["outcome"] == "created"
        assert data["record"]["ref"] == "REF-1"

    def test_manual_add_rejects_bad_date(self, client):
        resp = client.post("/api/ledger", json={"ref": "REF-1", "expiration_date": "31/01/2027"})
        assert resp.status_code == 422

    def test_edit_record(self, client):
        record_id = _scan(client).json()["record"]["id"]
        resp = client.put(f"/api/ledger/{record_id}", json={"ref": "REF-7", "quantity": 5})
        assert resp.status_code == 200
        assert resp.json()["ref"] == "REF-7"
        assert resp.json()["quantity"] == 5
        assert resp.json()["batch_lot"] == "LOT1"

    def test_edit_rejects_negative_quantity(self, client):
        record_id = _scan(client).json()["record"]["id"]
        assert client.put(f"/api/ledger/{record_id}", json={"quantity": -1}).status_code == 422

    def test_edit_rejects_null_text_fields(self, client):
        record_id = _scan(client).json()["record"]["id"]
        resp = client.put(f"/api/ledger/{record_id}", json={"storage_site": None, "supplier": None})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Fields cannot be null: storage_site, supplier"

        ledger = client.get("/api/ledger")
        assert ledger.status_code == 200
        assert ledger.json()[0]["storage_site"] == "SITE1"

    def test_unknown_record_is_404(self, client):
        assert client.put("/api/ledger/nope", json={"quantity": 1}).status_code == 404
        assert client.delete("/api/ledger/nope").status_code == 404
        assert client.put("/api/ledger/nope/set", json={"is_set": True}).status_code == 404

    def test_set_flag(self, client):
        record_id = _scan(client).json()["record"]["id"]
        resp = client.put(f"/api/ledger/{record_id}/set", json={"is_set": True})
        assert resp.json()["is_set"] is True

    def test_delete_record(self, client):
        record_id = _scan(client).json()["record"]["id"]
        assert client.delete(f"/api/ledger/{record_id}").status_code == 200
        assert client.get("/api/ledger").json() == []

    def test_clear(self, client):
        _scan(client)
        _scan(client, EXPIRED_BARCODE.replace("LOT1", "LOT2"))
        assert client.delete("/api/ledger").json() == {"count": 2}
        assert client.get("/api/ledger").json() == []
        assert client.get("/api/ledger/last").status_code == 404

    def test_last_scanned(self, client):
        assert client.get("/api/ledger/last").status_code == 404
        _scan(client)
        last = client.get("/api/ledger/last").json()
        assert last["quantity"] == 1
        _scan(client)
        assert client.get("/api/ledger/last").json()["quantity"] == 2

    def test_zero_count(self, client):
        resp = client.post("/api/ledger/zero-count", json={"rows": [
            {"ref": "REF-1", "lot_number": "LOT2", "location": "A1"},
            {"ref": "REF-5", "lot_number": "L5"},
        ]})
        assert resp.json() == {"count": 2}
        ledger = client.get("/api/ledger").json()
        assert [(r["ref"], r["location"], r["quantity"]) for r in ledger] == [
            ("REF-1", "A1", 0),
            ("REF-5", "A1", 0),
        ]


class TestMappings:
    def test_add_list_replace(self, client):
        client.post("/api/mappings", json={"gtin": "111", "ref": "REF-A"})
        assert client.get("/api/mappings").json() == [{"gtin": "111", "ref": "REF-A"}]

        resp = client.put("/api/mappings", json={"mappings": [{"gtin": "222", "ref": "REF-B"}]})
        assert resp.json() == [{"gtin": "222", "ref": "REF-B"}]

    def test_import_and_export(self, client):
        csv_file = b"GTIN,REF\n111,REF-A\n222,REF-B\n"
        resp = client.post("/api/mappings/import", files={"file": ("map.csv", csv_file, "text/csv")})
        assert resp.json() == {"count": 2}

        export = client.get("/api/mappings/export")
        assert export.status_code == 200
        assert "attachment" in export.headers["content-disposition"]
        assert export.text.splitlines() == ["GTIN,REF", "111,REF-A", "222,REF-B"]

    def test_import_rejects_non_utf8_file(self, client):
        csv_file = "GTIN,REF\n04912345678881,RÉF-1\n".encode("cp1252")
        resp = client.post("/api/mappings/import", files={"file": ("map.csv", csv_file, "text/csv")})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Mapping file must be UTF-8"
        assert client.get("/api/mappings").json() == []


class TestErpAndExports:
    def test_upload_snapshot(self, client, blob_store):
        resp = client.post("/api/erp/snapshot", files={"file": ("stock.csv", ERP_SNAPSHOT, "text/csv")})
        assert resp.json() == {"count": 3}
        assert blob_store.get("erp-stock-count.csv") == ERP_SNAPSHOT.decode()

        stock = client.get("/api/erp/stock", params={"ref": "REF-1"}).json()
        assert [row["lot_number"] for row in stock] == ["LOT1", "LOT2"]

    def test_snapshot_without_stock_lines_is_400(self, client):
        resp = client.post("/api/erp/snapshot", files={"file": ("stock.csv", b"E;header\n", "text/csv")})
        assert resp.status_code == 400

    def test_snapshot_survives_restart(self, scan_session, blob_store):
        scan_session.load_erp_snapshot(ERP_SNAPSHOT.decode())
        scan_session.erp_rows = []
        assert scan_session.restore_erp_snapshot() == 3

    def test_comparison(self, client):
        client.post("/api/erp/snapshot", files={"file": ("stock.csv", ERP_SNAPSHOT, "text/csv")})
        client.post("/api/mappings", json={"gtin": GTIN, "ref": "REF-1"})
        _scan(client)

        data = client.get("/api/erp/comparison").json()
        assert [(i["status"], i["lot_number"]) for i in data["items"]] == [
            ("missing", "LOT2"),
            ("partial", "LOT1"),
        ]
        assert data["items"][1]["difference"] == -1
        assert data["summary"]["total"] == 2

    def test_stock_count_export(self, client):
        client.post("/api/erp/snapshot", files={"file": ("stock.csv", ERP_SNAPSHOT, "text/csv")})
        client.post("/api/mappings", json={"gtin": GTIN, "ref": "REF-1"})
        _scan(client)

        resp = client.get("/api/export/stock-count")
        assert resp.status_code == 200
        assert 'filename="stock_count_MV01_' in resp.headers["content-disposition"]
        lines = resp.content.decode("utf-8").split("\r\n")
        assert lines[0] == "E;;MV01;1;SITE1;;;;SITE1;;;;;;"
        assert lines[2] == "S;;;;SITE1;1;1;1;REF-1;LOT1;A1;A;UN;1;20261231"
        assert lines[3] == "S;;;;SITE1;0;0;2;REF-1;LOT2;A1;A;UN;1;"
        assert lines[-1] == ""

    def test_exports_need_scans(self, client):
        assert client.get("/api/export/stock-count").status_code == 400
        assert client.get("/api/export/receipt").status_code == 400

    def test_receipt_export(self, client):
        _scan(client)
        resp = client.get("/api/export/receipt")
        lines = resp.text.splitlines()
        assert lines[0].startswith("Timestamp,Storage Site,Supplier,GTIN")
        assert lines[1].endswith(f",SITE1,ACME,{GTIN},,LOT1,2026-12-31,1")

    def test_comparison_export(self, client):
        resp = client.get("/api/export/comparison")
        assert resp.status_code == 200
        assert resp.text.splitlines()[-1] == "TOTAL,,,,0,0,0"


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["checks"]["database"] == "ok"
    assert data["checks"]["erp_snapshot"] == "empty"
