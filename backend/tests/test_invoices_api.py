"""
Invoice API tests.

Verifies:
- totals are computed server-side from line items
- create and update are atomic with their line items
- numbering, filters, deletion and emailing
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from frosty.extensions import db, mail
from frosty.models import Invoice, InvoiceItem
from frosty.time_utils import parse_iso_datetime


def invoice_payload(job, customer, **overrides):
    payload = {
        "jobId": job.id,
        "customerId": customer.id,
        "issueDate": "2026-03-01",
        "dueDate": "2026-03-31",
        "lineItems": [{"description": "Chassis blast", "quantity": 2, "unitPrice": 100}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def strict_policy(app):
    app.config["LINE_ITEM_POLICY"] = "strict"
    yield
    app.config["LINE_ITEM_POLICY"] = "coerce"


class TestCreateInvoice:
    def test_create_computes_totals(self, client, staff_headers, job, customer):
        resp = client.post("/api/invoices", json=invoice_payload(job, customer), headers=staff_headers)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["amount"] == 200.0
        assert body["tax"] == 40.0
        assert body["total"] == 240.0
        assert body["status"] == "draft"
        assert body["invoiceNumber"] == "INV-0001"
        assert len(body["lineItems"]) == 1
        assert body["lineItems"][0]["total"] == 200.0

    def test_fetch_returns_stored_items(self, client, staff_headers, job, customer):
        items = [
            {"description": "Chassis blast", "quantity": 2, "unitPrice": "100.00"},
            {"description": "Degrease", "quantity": 3, "unitPrice": "0.01"},
            {"description": "Wheel arches", "quantity": 1, "unitPrice": 19.99},
        ]
        created = client.post(
            "/api/invoices", json=invoice_payload(job, customer, lineItems=items), headers=staff_headers
        ).get_json()

        resp = client.get(f"/api/invoices/{created['id']}", headers=staff_headers)
        assert resp.status_code == 200
        fetched = resp.get_json()
        rows = {(i["description"], i["quantity"], i["unitPrice"], i["total"]) for i in fetched["lineItems"]}
        assert rows == {
            ("Chassis blast", 2, 100.0, 200.0),
            ("Degrease", 3, 0.01, 0.03),
            ("Wheel arches", 1, 19.99, 19.99),
        }
        assert fetched["amount"] == 220.02
        assert fetched["total"] == pytest.approx(fetched["amount"] * 1.2)
        assert db.session.get(Invoice, created["id"]).total == Decimal("264.024")

    def test_client_totals_ignored(self, client, staff_headers, job, customer):
        payload = invoice_payload(job, customer, amount=1, tax=1, total=1)
        body = client.post("/api/invoices", json=payload, headers=staff_headers).get_json()
        assert body["total"] == 240.0

    def test_numbers_increment(self, client, staff_headers, job, customer):
        first = client.post("/api/invoices", json=invoice_payload(job, customer), headers=staff_headers)
        second = client.post("/api/invoices", json=invoice_payload(job, customer), headers=staff_headers)
        assert first.get_json()["invoiceNumber"] == "INV-0001"
        assert second.get_json()["invoiceNumber"] == "INV-0002"

    def test_generated_number_skips_manual_one(self, client, staff_headers, job, customer):
        client.post("/api/invoices", json=invoice_payload(job, customer, invoiceNumber="INV-0001"), headers=staff_headers)
        body = client.post("/api/invoices", json=invoice_payload(job, customer), headers=staff_headers).get_json()
        assert body["invoiceNumber"] == "INV-0002"

    def test_duplicate_number(self, client, staff_headers, job, customer):
        payload = invoice_payload(job, customer, invoiceNumber="X-1")
        assert client.post("/api/invoices", json=payload, headers=staff_headers).status_code == 201
        assert client.post("/api/invoices", json=payload, headers=staff_headers).status_code == 409

    def test_default_dates(self, client, staff_headers, job, customer):
        payload = invoice_payload(job, customer)
        del payload["issueDate"]
        del payload["dueDate"]
        body = client.post("/api/invoices", json=payload, headers=staff_headers).get_json()
        issued = parse_iso_datetime(body["issueDate"])
        assert parse_iso_datetime(body["dueDate"]) - issued == timedelta(days=30)

    def test_due_date_from_given_issue_date(self, client, staff_headers, job, customer):
        payload = invoice_payload(job, customer, issueDate="2026-03-01")
        del payload["dueDate"]
        body = client.post("/api/invoices", json=payload, headers=staff_headers).get_json()
        assert body["issueDate"] == "2026-03-01T00:00:00Z"
        assert body["dueDate"] == "2026-03-31T00:00:00Z"

    def test_due_before_issue_rejected(self, client, staff_headers, job, customer):
        payload = invoice_payload(job, customer, dueDate="2026-02-01")
        assert client.post("/api/invoices", json=payload, headers=staff_headers).status_code == 400
        assert db.session.query(Invoice).count() == 0

    def test_requires_line_item(self, client, staff_headers, job, customer):
        payload = invoice_payload(job, customer, lineItems=[])
        assert client.post("/api/invoices", json=payload, headers=staff_headers).status_code == 400

    def test_blank_rows_dropped(self, client, staff_headers, job, customer):
        items = [
            {"description": "Blast", "quantity": 1, "unitPrice": 50},
            {"description": "", "quantity": 1, "unitPrice": 0},
        ]
        body = client.post("/api/invoices", json=invoice_payload(job, customer, lineItems=items), headers=staff_headers).get_json()
        assert len(body["lineItems"]) == 1
        assert body["total"] == 60.0

    def test_coerce_repairs_bad_input(self, client, staff_headers, job, customer):
        items = [{"description": "Blast", "quantity": "lots", "unitPrice": "free"}]
        resp = client.post("/api/invoices", json=invoice_payload(job, customer, lineItems=items), headers=staff_headers)
        assert resp.status_code == 201
        item = resp.get_json()["lineItems"][0]
        assert item["quantity"] == 1
        assert item["unitPrice"] == 0.0

    def test_strict_failure_writes_nothing(self, client, staff_headers, job, customer, strict_policy):
        items = [
            {"description": "Blast", "quantity": 1, "unitPrice": 50},
            {"description": "Polish", "quantity": 0, "unitPrice": 10},
        ]
        resp = client.post("/api/invoices", json=invoice_payload(job, customer, lineItems=items), headers=staff_headers)
        assert resp.status_code == 400
        assert "lineItems[1].quantity" in resp.get_json()["details"]
        assert db.session.query(Invoice).count() == 0
        assert db.session.query(InvoiceItem).count() == 0

    def test_oversized_invoice_rejected(self, client, staff_headers, job, customer):
        items = [{"description": "Fleet", "quantity": 1000, "unitPrice": 99999}]
        resp = client.post("/api/invoices", json=invoice_payload(job, customer, lineItems=items), headers=staff_headers)
        assert resp.status_code == 400
        assert db.session.query(Invoice).count() == 0

    def test_unknown_customer(self, client, staff_headers, job):
        payload = {"jobId": job.id, "customerId": 999, "lineItems": [{"description": "x", "quantity": 1, "unitPrice": 1}]}
        assert client.post("/api/invoices", json=payload, headers=staff_headers).status_code == 400

    def test_missing_job(self, client, staff_headers, customer):
        payload = {"customerId": customer.id, "lineItems": [{"description": "x", "quantity": 1, "unitPrice": 1}]}
        resp = client.post("/api/invoices", json=payload, headers=staff_headers)
        assert resp.status_code == 400
        assert "job_id" in resp.get_json()["details"]


class TestUpdateInvoice:
    def _create(self, client, headers, job, customer):
        return client.post("/api/invoices", json=invoice_payload(job, customer), headers=headers).get_json()

    def test_put_replaces_items(self, client, staff_headers, job, customer):
        created = self._create(client, staff_headers, job, customer)
        items = [
            {"description": "Underbody", "quantity": 1, "unitPrice": "75.50"},
            {"description": "Engine", "quantity": 3, "unitPrice": "10"},
        ]
        resp = client.put(f"/api/invoices/{created['id']}", json={"lineItems": items}, headers=staff_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert [i["description"] for i in body["lineItems"]] == ["Underbody", "Engine"]
        assert body["amount"] == 105.5
        assert body["total"] == pytest.approx(126.6)
        assert db.session.query(InvoiceItem).count() == 2

    def test_header_only_update_keeps_items(self, client, staff_headers, job, customer):
        created = self._create(client, staff_headers, job, customer)
        resp = client.put(f"/api/invoices/{created['id']}", json={"status": "paid"}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "paid"
        assert len(resp.get_json()["lineItems"]) == 1

    def test_bad_status(self, client, staff_headers, job, customer):
        created = self._create(client, staff_headers, job, customer)
        resp = client.put(f"/api/invoices/{created['id']}", json={"status": "lost"}, headers=staff_headers)
        assert resp.status_code == 400

    def test_failed_update_keeps_old_items(self, client, staff_headers, job, customer, strict_policy):
        created = self._create(client, staff_headers, job, customer)
        items = [{"description": "Blast", "quantity": -1, "unitPrice": 1}]
        resp = client.put(f"/api/invoices/{created['id']}", json={"lineItems": items, "notes": "n"}, headers=staff_headers)
        assert resp.status_code == 400

        invoice = db.session.get(Invoice, created["id"])
        assert invoice.notes is None
        assert [i.description for i in invoice.line_items] == ["Chassis blast"]
        assert invoice.total == Decimal("240")

    def test_update_missing(self, client, staff_headers):
        assert client.put("/api/invoices/999", json={"status": "paid"}, headers=staff_headers).status_code == 404


class TestListAndDelete:
    def test_filters(self, client, staff_headers, job, customer):
        client.post("/api/invoices", json=invoice_payload(job, customer), headers=staff_headers)
        client.post("/api/invoices", json=invoice_payload(job, customer, status="paid"), headers=staff_headers)

        def numbers(query):
            return len(client.get(f"/api/invoices{query}", headers=staff_headers).get_json())

        assert numbers("") == 2
        assert numbers("?status=paid") == 1
        assert numbers(f"?customerId={customer.id}") == 2
        assert numbers(f"?jobId={job.id}") == 2
        assert numbers("?customerId=999") == 0

    def test_bad_filter(self, client, staff_headers):
        assert client.get("/api/invoices?status=lost", headers=staff_headers).status_code == 400
        assert client.get("/api/invoices?customerId=abc", headers=staff_headers).status_code == 400

    def test_delete_removes_items(self, client, staff_headers, job, customer):
        created = client.post("/api/invoices", json=invoice_payload(job, customer), headers=staff_headers).get_json()
        assert client.delete(f"/api/invoices/{created['id']}", headers=staff_headers).status_code == 204
        assert client.get(f"/api/invoices/{created['id']}", headers=staff_headers).status_code == 404
        assert db.session.query(InvoiceItem).count() == 0


class TestEmailInvoice:
    def test_email_sends_rendered_invoice(self, client, staff_headers, job, customer):
        created = client.post("/api/invoices", json=invoice_payload(job, customer), headers=staff_headers).get_json()

        with mail.record_messages() as outbox:
            resp = client.post(
                f"/api/invoices/{created['id']}/email",
                json={"recipient": "alice@example.com", "subject": "Your invoice", "message": "Thanks!"},
                headers=staff_headers,
            )

        assert resp.status_code == 200
        assert len(outbox) == 1
        msg = outbox[0]
        assert msg.recipients == ["alice@example.com"]
        assert msg.subject == "Your invoice"
        assert "Invoice #INV-0001" in msg.body
        assert "Total: £240.00" in msg.body
        assert "Thanks!" in msg.body
        assert "Frosty's Ice Blasting Solutions LTD" in msg.body

    def test_email_requires_recipient(self, client, staff_headers, job, customer):
        created = client.post("/api/invoices", json=invoice_payload(job, customer), headers=staff_headers).get_json()
        resp = client.post(f"/api/invoices/{created['id']}/email", json={"subject": "x"}, headers=staff_headers)
        assert resp.status_code == 400

    def test_email_missing_invoice(self, client, staff_headers):
        resp = client.post("/api/invoices/999/email", json={"recipient": "a@b.c", "subject": "x"}, headers=staff_headers)
        assert resp.status_code == 404


class TestPreview:
    def test_preview_totals(self, client, staff_headers):
        items = [{"description": "Blast", "quantity": 2, "unitPrice": 100}]
        resp = client.post("/api/invoices/preview", json={"lineItems": items}, headers=staff_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["subtotal"] == 200.0
        assert body["tax"] == 40.0
        assert body["total"] == 240.0
        assert db.session.query(Invoice).count() == 0

    def test_preview_empty_has_placeholder(self, client, staff_headers):
        body = client.post("/api/invoices/preview", json={"lineItems": []}, headers=staff_headers).get_json()
        assert body["lineItems"] == [{"description": "", "quantity": 1, "unitPrice": 0.0, "total": 0.0}]
        assert body["total"] == 0.0

    def test_preview_strict(self, client, staff_headers, strict_policy):
        items = [{"description": "Blast", "quantity": "two", "unitPrice": 100}]
        resp = client.post("/api/invoices/preview", json={"lineItems": items}, headers=staff_headers)
        assert resp.status_code == 400

    def test_preview_array_body(self, client, staff_headers):
        items = [{"description": "Blast", "quantity": 1, "unitPrice": 10}]
        assert client.post("/api/invoices/preview", json=items, headers=staff_headers).status_code == 400

    def test_preview_fractional_quantity_truncated(self, client, staff_headers):
        items = [{"description": "Blast", "quantity": "2.5", "unitPrice": 10}]
        body = client.post("/api/invoices/preview", json={"lineItems": items}, headers=staff_headers).get_json()
        assert body["lineItems"][0]["quantity"] == 2
        assert body["subtotal"] == 20.0


class TestMalformedBodies:
    def test_create_array_body(self, client, staff_headers, job, customer):
        resp = client.post("/api/invoices", json=[invoice_payload(job, customer)], headers=staff_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("body", [
        {"recipient": 5, "subject": "x"},
        {"recipient": "a@b.c", "subject": ["x"]},
        {"recipient": "a@b.c", "subject": "x", "message": {"text": "hi"}},
        ["a@b.c"],
    ])
    def test_email_wrong_types(self, client, staff_headers, job, customer, body):
        created = client.post("/api/invoices", json=invoice_payload(job, customer), headers=staff_headers).get_json()
        with mail.record_messages() as outbox:
            resp = client.post(f"/api/invoices/{created['id']}/email", json=body, headers=staff_headers)
        assert resp.status_code == 400
        assert outbox == []
