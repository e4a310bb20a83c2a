from unittest.mock import AsyncMock, patch

import pytest


@pytest.fixture
def checked_in(api, staff_headers):
    res = api.post(
        "/api/guests",
        json={"name": "Ravi Kumar", "phone": "555-0101", "room_number": "204", "email": "Ravi@Guest.test"},
        headers=staff_headers,
    )
    assert res.status_code == 201
    return res.json()


def add_menu_item(api, headers, price, name="Masala Dosa", **extra):
    res = api.post("/api/menu", json={"name": name, "price": price, "category": "Breakfast", **extra}, headers=headers)
    assert res.status_code == 201
    return res.json()["id"]


def place_order(api, headers, guest_id, price, quantity=1, name="Masala Dosa"):
    menu_item_id = add_menu_item(api, headers, price, name=name)
    return api.post(
        "/api/orders",
        json={"guest_id": guest_id, "items": [{"menu_item_id": menu_item_id, "quantity": quantity}]},
        headers=headers,
    )


def test_root(api):
    assert api.get("/").json() == {"message": "Innexora Hotel Management Backend Running"}


def test_check_in_rejects_occupied_room(api, staff_headers, checked_in):
    assert checked_in["email"] == "ravi@guest.test"
    res = api.post(
        "/api/guests",
        json={"name": "Someone Else", "phone": "555-0199", "room_number": "204"},
        headers=staff_headers,
    )
    assert res.status_code == 400


def test_check_in_rejects_bad_room_number(api, staff_headers):
    res = api.post("/api/guests", json={"name": "A", "phone": "1", "room_number": "2b"}, headers=staff_headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Please enter a valid room number (3-4 digits)"


def test_guest_endpoints_require_staff(api, tenant_headers):
    assert api.get("/api/guests", headers=tenant_headers).status_code == 401


def test_order_flows_into_bill(api, tenant_headers, staff_headers, checked_in):
    guest_id = checked_in["id"]

    res = place_order(api, staff_headers, guest_id, 120.0, quantity=2)
    assert res.status_code == 201
    body = res.json()
    assert body["order"]["total_amount"] == 240.0
    assert body["order"]["order_number"].startswith("ORD-")
    assert body["bill"]["total_amount"] == 240.0
    assert body["bill"]["status"] == "pending"

    res = api.post(
        f"/api/bills/guest/{guest_id}/payments",
        json={"amount": 240.0, "method": "upi"},
        headers=staff_headers,
    )
    assert res.status_code == 200
    bill = res.json()
    assert bill["status"] == "paid"
    assert bill["payments"][0]["paid_by"] == "Maya Manager"

    bill = place_order(api, staff_headers, guest_id, 60.0).json()["bill"]
    assert bill["status"] == "partially_paid"
    assert bill["total_amount"] == 300.0
    assert bill["balance_amount"] == 60.0

    assert api.get(f"/api/bills/guest/{guest_id}", headers=staff_headers).json()["total_amount"] == 300.0
    stats = api.get("/api/bills/stats", headers=staff_headers).json()
    assert stats["partially_paid"]["count"] == 1
    assert stats["total_outstanding"] == 60.0


def test_order_for_unknown_guest(api, staff_headers):
    res = place_order(api, staff_headers, "64b000000000000000000000", 10.0)
    assert res.status_code == 404


def test_zero_priced_order_is_rejected(api, staff_headers, checked_in):
    res = place_order(api, staff_headers, checked_in["id"], 0.0)
    assert res.status_code == 400


def test_order_requires_staff_token(api, tenant_headers, staff_headers, checked_in):
    menu_item_id = add_menu_item(api, staff_headers, 900.0, name="Lobster")
    res = api.post(
        "/api/orders",
        json={"guest_id": checked_in["id"], "items": [{"menu_item_id": menu_item_id, "quantity": 1}]},
        headers=tenant_headers,
    )
    assert res.status_code == 401
    assert api.get(f"/api/bills/guest/{checked_in['id']}", headers=staff_headers).status_code == 404


def test_order_price_comes_from_menu(api, staff_headers, checked_in):
    menu_item_id = add_menu_item(api, staff_headers, 900.0, name="Lobster")
    res = api.post(
        "/api/orders",
        json={
            "guest_id": checked_in["id"],
            "items": [{"menu_item_id": menu_item_id, "quantity": 1, "name": "Lobster", "unit_price": 0.01}],
        },
        headers=staff_headers,
    )
    assert res.status_code == 201
    item = res.json()["order"]["items"][0]
    assert item["unit_price"] == 900.0
    assert item["menu_item_id"] == menu_item_id
    assert res.json()["bill"]["total_amount"] == 900.0


@pytest.mark.parametrize("menu_item_id", ["64b000000000000000000000", "not-an-id"])
def test_order_with_unknown_menu_item(api, staff_headers, checked_in, menu_item_id):
    res = api.post(
        "/api/orders",
        json={"guest_id": checked_in["id"], "items": [{"menu_item_id": menu_item_id, "quantity": 1}]},
        headers=staff_headers,
    )
    assert res.status_code == 404
    assert api.get("/api/orders", headers=staff_headers).json() == []


def test_unavailable_menu_item_cannot_be_ordered(api, tenant_headers, staff_headers, checked_in):
    menu_item_id = add_menu_item(api, staff_headers, 250.0, name="Biryani")
    res = api.patch(f"/api/menu/{menu_item_id}", json={"is_available": False}, headers=staff_headers)
    assert res.json()["is_available"] is False

    assert api.get("/api/menu", headers=tenant_headers).json() == []
    assert len(api.get("/api/menu?include_unavailable=true", headers=tenant_headers).json()) == 1

    res = api.post(
        "/api/orders",
        json={"guest_id": checked_in["id"], "items": [{"menu_item_id": menu_item_id, "quantity": 2}]},
        headers=staff_headers,
    )
    assert res.status_code == 404


def test_menu_changes_need_staff(api, tenant_headers):
    res = api.post("/api/menu", json={"name": "Tea", "price": 40.0}, headers=tenant_headers)
    assert res.status_code == 401


def test_overpayment_is_rejected(api, tenant_headers, staff_headers, checked_in):
    place_order(api, staff_headers, checked_in["id"], 50.0)
    res = api.post(
        f"/api/bills/guest/{checked_in['id']}/payments",
        json={"amount": 80.0, "method": "cash"},
        headers=staff_headers,
    )
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_checkout_blocked_until_paid(api, tenant_headers, staff_headers, checked_in):
    guest_id = checked_in["id"]
    place_order(api, staff_headers, guest_id, 75.0)

    res = api.post(f"/api/guests/{guest_id}/checkout", json={"checked_out_by": "Maya"}, headers=staff_headers)
    assert res.status_code == 400
    assert "unpaid bill amount of 75.0" in res.json()["detail"]

    api.post(f"/api/bills/guest/{guest_id}/payments", json={"amount": 75.0, "method": "card"}, headers=staff_headers)
    res = api.post(f"/api/guests/{guest_id}/checkout", json={"checked_out_by": "Maya"}, headers=staff_headers)
    assert res.status_code == 200
    assert res.json()["guest"]["checked_out"] is True
    assert res.json()["bill"]["is_guest_checked_out"] is True

    assert place_order(api, staff_headers, guest_id, 10.0).status_code == 400
    assert api.get("/api/guests", headers=staff_headers).json() == []
    assert len(api.get("/api/guests?include_checked_out=true", headers=staff_headers).json()) == 1


def test_delivered_order_is_locked(api, tenant_headers, staff_headers, checked_in):
    order_id = place_order(api, staff_headers, checked_in["id"], 30.0).json()["order"]["id"]

    res = api.patch(f"/api/orders/{order_id}/status", json={"status": "delivered"}, headers=staff_headers)
    assert res.status_code == 200
    assert res.json()["delivered_by"] == "Maya Manager"

    res = api.patch(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=staff_headers)
    assert res.status_code == 400
    assert len(api.get("/api/orders?status=delivered", headers=staff_headers).json()) == 1


def test_ticket_notifies_managers(api, tenant_headers, staff_headers):
    with patch("main.notify_new_ticket", new=AsyncMock()) as notify:
        res = api.post(
            "/api/tickets",
            json={"room_number": "204", "guest_name": "Ravi", "message": "Need extra towels"},
            headers=tenant_headers,
        )
    assert res.status_code == 201
    ticket = res.json()
    assert ticket["guest_info"]["name"] == "Ravi"
    assert ticket["messages"][0]["content"] == "Need extra towels"

    doc, message = notify.await_args.args
    assert str(doc["_id"]) == ticket["id"]
    assert message == "New ticket raised by Ravi in Room 204"

    with patch("main.notify_ticket_updated", new=AsyncMock()) as updated:
        res = api.patch(f"/api/tickets/{ticket['id']}/status", json={"status": "in_progress"}, headers=staff_headers)
    assert res.status_code == 200
    assert res.json()["status"] == "in_progress"
    updated.assert_awaited_once()

    assert len(api.get("/api/tickets", headers=staff_headers).json()) == 1


def test_ticket_with_bad_room_is_not_sent(api, tenant_headers):
    with patch("main.notify_new_ticket", new=AsyncMock()) as notify:
        res = api.post(
            "/api/tickets",
            json={"room_number": "x", "guest_name": "Ravi", "message": "hi"},
            headers=tenant_headers,
        )
    assert res.status_code == 400
    notify.assert_not_awaited()


def test_room_entry_redirects(api):
    res = api.post("/hotel", data={"roomNumber": " 204 "}, follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == "/hotel/204"

    res = api.post("/hotel", json={"roomNumber": ""}, follow_redirects=False)
    assert res.status_code == 400
    assert res.json()["detail"] == "Please enter your room number"

    res = api.post("/hotel", json={"roomNumber": "12"}, follow_redirects=False)
    assert res.status_code == 400
    assert res.json()["detail"] == "Please enter a valid room number (3-4 digits)"


def test_room_chat_context(api, tenant_headers, checked_in):
    res = api.get("/hotel/204", headers=tenant_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["hotel"] == "Grand Plaza"
    assert body["guest"]["name"] == "Ravi Kumar"

    assert api.get("/hotel/305", headers=tenant_headers).json()["guest"] is None
