from datetime import datetime

from billsplit.models import ConsolidatedBill


def _payload(**overrides):
    data = {
        "year": 2024,
        "month": 3,
        "categories": {
            "Water": {"provider_name": "City Water", "amount": "80.00", "gmail_message_id": "w1"},
            "Gas": {"provider_name": "Metro Gas", "amount": 40},
        },
    }
    data.update(overrides)
    return data


def test_create_bill_computes_total(client, auth_headers, user, make_tenant):
    tenant = make_tenant(user, shares={"Water": 50, "Gas": 25})

    resp = client.post("/api/bills", json=_payload(tenant_id=tenant.id), headers=auth_headers)

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["total_amount"] == 120.0
    assert body["paid"] is False
    assert body["tenant_name"] == "Tina Tenant"
    assert body["categories"]["Water"]["gmail_message_id"] == "w1"
    assert body["tenant_total"] == 50.0


def test_duplicate_month_for_same_tenant_is_rejected(client, auth_headers, user, make_tenant):
    tina = make_tenant(user)
    sam = make_tenant(user, name="Sam", email="sam@example.com")

    assert client.post("/api/bills", json=_payload(tenant_id=tina.id), headers=auth_headers).status_code == 201
    resp = client.post("/api/bills", json=_payload(tenant_id=tina.id), headers=auth_headers)
    assert resp.status_code == 409
    assert "3/2024 already exists" in resp.get_json()["message"]

    # another tenant can be billed for the same month
    assert client.post("/api/bills", json=_payload(tenant_id=sam.id), headers=auth_headers).status_code == 201


def test_create_bill_with_foreign_tenant(client, auth_headers, other_user, make_tenant):
    tenant = make_tenant(other_user)
    resp = client.post("/api/bills", json=_payload(tenant_id=tenant.id), headers=auth_headers)
    assert resp.status_code == 404


def test_list_filters(client, auth_headers, user, make_tenant, make_bill):
    tenant = make_tenant(user)
    jan = make_bill(user, tenant, year=2024, month=1, paid=True)
    feb = make_bill(user, tenant, year=2024, month=2)
    old = make_bill(user, tenant, year=2023, month=12)

    body = client.get("/api/bills", headers=auth_headers).get_json()
    assert [b["id"] for b in body["bills"]] == [feb.id, jan.id, old.id]

    body = client.get("/api/bills?status=unpaid", headers=auth_headers).get_json()
    assert [b["id"] for b in body["bills"]] == [feb.id, old.id]

    body = client.get("/api/bills?month=2024-01", headers=auth_headers).get_json()
    assert [b["id"] for b in body["bills"]] == [jan.id]

    body = client.get("/api/bills?year=2023", headers=auth_headers).get_json()
    assert [b["id"] for b in body["bills"]] == [old.id]

    assert client.get("/api/bills?status=late", headers=auth_headers).status_code == 400
    assert client.get("/api/bills?month=2024/01", headers=auth_headers).status_code == 400


def test_update_line_items_and_paid_flag(client, auth_headers, user, make_tenant, make_bill):
    tenant = make_tenant(user)
    bill = make_bill(user, tenant, items={"Water": ("City Water", "100.00"), "Gas": ("Metro Gas", "50.00")})

    resp = client.put(
        f"/api/bills/{bill.id}",
        json={
            "categories": {
                "Water": {"provider_name": "City Water", "amount": "90.00"},
                "Internet": {"provider_name": "FastNet", "amount": "30.00"},
            },
            "paid": True,
        },
        headers=auth_headers,
    )

    assert resp.status_code == 200
    body = resp.get_json()
    assert set(body["categories"]) == {"Water", "Internet"}
    assert body["total_amount"] == 120.0
    assert body["paid"] is True and body["date_paid"]

    body = client.patch(f"/api/bills/{bill.id}", json={"paid": False}, headers=auth_headers).get_json()
    assert body["paid"] is False and body["date_paid"] is None


def test_mark_paid_and_delete(client, auth_headers, user, make_bill):
    bill = make_bill(user)

    resp = client.post(f"/api/bills/{bill.id}/mark-paid", json={"payment_message_id": "manual-1"}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.get_json()["paid"] is True
    assert resp.get_json()["payment_message_id"] == "manual-1"

    assert client.delete(f"/api/bills/{bill.id}", headers=auth_headers).get_json() == {"ok": True, "deleted_id": bill.id}
    assert client.get(f"/api/bills/{bill.id}", headers=auth_headers).status_code == 404


def test_email_preview(client, auth_headers, user, make_tenant, make_bill):
    tenant = make_tenant(user, shares={"Water": 50}, balance="5.00")
    bill = make_bill(user, year=2024, month=1, items={"Water": ("City Water", "100.00")})

    assert client.get(f"/api/bills/{bill.id}/email-preview", headers=auth_headers).status_code == 400

    body = client.get(f"/api/bills/{bill.id}/email-preview?tenant_id={tenant.id}", headers=auth_headers).get_json()
    assert body["to"] == "tina@example.com"
    assert body["subject"] == "Utility Bills for January of 2024"
    assert "$55.00" in body["body"]


def test_current_month_bill_comes_from_the_inbox(client, auth_headers, user, make_provider, make_tenant, gmail):
    water = make_provider(user, "City Water", "Water")
    make_provider(user, "Metro Gas", "Gas")
    tenant = make_tenant(user, shares={"Water": 50, "Gas": 50})
    gmail.add_bill("City Water", "w1", "$80.00")
    gmail.add_bill("City Water", "w2", "$1,020.00")
    gmail.add_bill("City Water", "ad", "$5.00", subject="City Water newsletter")

    resp = client.get(f"/api/bills/current?month=2024-03&tenant_id={tenant.id}", headers=auth_headers)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["id"] is None
    assert (body["year"], body["month"]) == (2024, 3)
    assert body["categories"]["Water"] == {
        "provider_id": water.id,
        "provider_name": "City Water",
        "gmail_message_id": "w1,w2",
        "amount": 1100.0,
    }
    assert body["categories"]["Gas"]["amount"] == 0.0
    assert body["tenant_total"] == 550.0
    assert '"City Water" after:2024/03/01 before:2024/04/01' in gmail.queries
    assert ConsolidatedBill.query.count() == 0


def test_current_month_bill_needs_mail_access(client, auth_headers, user, db):
    user.access_token = None
    db.session.commit()
    resp = client.get("/api/bills/current", headers=auth_headers)
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "authentication_error"


def test_send_bill_persists_and_emails(client, auth_headers, user, make_provider, make_tenant, gmail):
    make_provider(user, "City Water", "Water")
    make_provider(user, "Metro Gas", "Gas")
    tenant = make_tenant(user, shares={"Water": 50, "Gas": 50})
    gmail.add_bill("City Water", "w1", "$80.00")
    gmail.add_bill("Metro Gas", "g1", "$40.00")

    resp = client.post("/api/bills/send", json={"tenant_id": tenant.id, "month": "2024-03"}, headers=auth_headers)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["message_id"] == "sent-1"
    assert body["tenant_id"] == tenant.id
    assert body["date_sent"]
    assert body["tenant_total"] == 60.0
    raw = gmail.sent[0]
    assert raw.startswith("To: tina@example.com\r\nSubject: Utility Bills for March of 2024\r\n")
    assert 'Content-Type: text/html; charset="UTF-8"' in raw

    # sending again reuses the stored bill
    resp = client.post("/api/bills/send", json={"tenant_id": tenant.id, "month": "2024-03"}, headers=auth_headers)
    assert resp.get_json()["id"] == body["id"]
    assert ConsolidatedBill.query.count() == 1
    assert len(gmail.sent) == 2


def test_send_existing_unassigned_bill(client, auth_headers, user, make_tenant, make_bill, gmail):
    tenant = make_tenant(user)
    bill = make_bill(user, year=2024, month=1)

    resp = client.post("/api/bills/send", json={"tenant_id": tenant.id, "bill_id": bill.id}, headers=auth_headers)

    assert resp.status_code == 200
    assert bill.tenant_id == tenant.id
    assert bill.date_sent is not None


def test_send_requires_tenant_and_bills(client, auth_headers, user, make_tenant, gmail):
    assert client.post("/api/bills/send", json={}, headers=auth_headers).status_code == 400

    tenant = make_tenant(user)
    resp = client.post("/api/bills/send", json={"tenant_id": tenant.id, "month": "2024-03"}, headers=auth_headers)
    assert resp.status_code == 409
    assert gmail.sent == []


def test_history_summary(client, auth_headers, user, make_tenant, make_bill, db):
    tenant = make_tenant(user, shares={"Water": 50})
    paid = make_bill(user, tenant, year=2024, month=1, paid=True, items={"Water": ("City Water", "100.00")})
    make_bill(user, tenant, year=2024, month=2, items={"Water": ("City Water", "60.00")})
    paid.date_sent = datetime(2024, 2, 1)
    db.session.commit()

    body = client.get("/api/bills/history", headers=auth_headers).get_json()

    assert body["months"] == ["2024-02", "2024-01"]
    assert body["summary"] == {
        "total_bills": 2,
        "total_bills_sent": 1,
        "total_amount_billed": 80.0,
        "total_paid": 50.0,
        "total_unpaid": 30.0,
        "paid_count": 1,
        "unpaid_count": 1,
    }
