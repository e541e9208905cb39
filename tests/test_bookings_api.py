"""
Tests para los endpoints de reservas
"""
from fastapi import status

PAYPAL_BASE = "https://api-m.sandbox.paypal.com"
CLIENT_ID = "client-1"
PROVIDER_ID = "provider-1"


def _create(app_client, headers, payload) -> dict:
    response = app_client.post("/bookings", json=payload, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


def test_create_booking_requires_auth(app_client, booking_payload):
    response = app_client.post("/bookings", json=booking_payload)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert "error" in response.json()


def test_create_booking_starts_pending(app_client, client_headers, booking_payload):
    booking = _create(app_client, client_headers, booking_payload)

    assert booking["status"] == "PENDING"
    assert booking["clientId"] == CLIENT_ID
    assert booking["providerId"] == PROVIDER_ID
    assert booking["priceTotal"] == 100
    assert "history" not in booking


def test_create_booking_rejects_bad_schedule(app_client, client_headers, booking_payload):
    booking_payload["end"] = booking_payload["start"]
    response = app_client.post("/bookings", json=booking_payload, headers=client_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert "end" in response.json()["error"]


def test_cannot_book_yourself(app_client, provider_headers, booking_payload):
    response = app_client.post("/bookings", json=booking_payload, headers=provider_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "error" in response.json()


def test_provider_accepts_then_client_cancels(app_client, client_headers, provider_headers, booking_payload):
    booking = _create(app_client, client_headers, booking_payload)

    response = app_client.patch(
        f"/bookings/{booking['id']}/status", json={"action": "accept"}, headers=provider_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "ACCEPTED"

    response = app_client.patch(
        f"/bookings/{booking['id']}/status", json={"action": "cancel"}, headers=client_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "CANCELLED_BY_CLIENT"


def test_client_cannot_accept(app_client, client_headers, booking_payload):
    booking = _create(app_client, client_headers, booking_payload)

    response = app_client.patch(
        f"/bookings/{booking['id']}/status", json={"action": "accept"}, headers=client_headers
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert "PENDING" in response.json()["error"]


def test_illegal_transition_names_current_state(app_client, client_headers, provider_headers, booking_payload):
    booking = _create(app_client, client_headers, booking_payload)
    url = f"/bookings/{booking['id']}/status"

    assert app_client.patch(url, json={"action": "reject"}, headers=provider_headers).status_code == 200
    response = app_client.patch(url, json={"action": "accept"}, headers=provider_headers)

    assert response.status_code == status.HTTP_409_CONFLICT
    assert "REJECTED" in response.json()["error"]


def test_unknown_action_is_rejected(app_client, client_headers, booking_payload):
    booking = _create(app_client, client_headers, booking_payload)
    response = app_client.patch(
        f"/bookings/{booking['id']}/status", json={"action": "teleport"}, headers=client_headers
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_outsiders_cannot_touch_a_booking(app_client, client_headers, stranger_headers, booking_payload):
    booking = _create(app_client, client_headers, booking_payload)

    response = app_client.patch(
        f"/bookings/{booking['id']}/status", json={"action": "cancel"}, headers=stranger_headers
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert "error" in response.json()

    response = app_client.get(f"/bookings/{booking['id']}", headers=stranger_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_unknown_booking_is_404(app_client, client_headers):
    response = app_client.get("/bookings/507f1f77bcf86cd799439011", headers=client_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert "error" in response.json()


def test_actions_depend_on_role(app_client, client_headers, provider_headers, booking_payload):
    booking = _create(app_client, client_headers, booking_payload)
    url = f"/bookings/{booking['id']}/actions"

    as_provider = app_client.get(url, headers=provider_headers).json()
    assert as_provider == {"role": "provider", "status": "PENDING", "actions": ["accept", "reject"]}

    as_client = app_client.get(url, headers=client_headers).json()
    assert as_client == {"role": "client", "status": "PENDING", "actions": ["cancel"]}


def test_mine_lists_bookings_for_both_parties(app_client, client_headers, provider_headers, stranger_headers, booking_payload):
    booking = _create(app_client, client_headers, booking_payload)

    for headers in (client_headers, provider_headers):
        response = app_client.get("/bookings/mine", headers=headers)
        assert response.status_code == status.HTTP_200_OK
        assert [b["id"] for b in response.json()] == [booking["id"]]

    assert app_client.get("/bookings/mine", headers=stranger_headers).json() == []


def test_checkout_creates_booking_and_order(app_client, client_headers, booking_payload, fx_rate, paypal_order):
    response = app_client.post("/bookings/checkout", json=booking_payload, headers=client_headers)

    assert response.status_code == status.HTTP_201_CREATED, response.text
    body = response.json()
    assert body["booking"]["status"] == "PENDING"
    assert body["payment"] == {"orderId": "5O190127TN364715T", "settlementAmount": 27.0, "rate": 0.27}

    payments = app_client.get(f"/payments/booking/{body['booking']['id']}", headers=client_headers).json()
    assert len(payments) == 1
    assert payments[0]["status"] == "CREATED"


def test_checkout_failure_cancels_the_booking(app_client, client_headers, booking_payload, http_mock, fx_rate, paypal_token):
    http_mock.post(f"{PAYPAL_BASE}/v2/checkout/orders").respond(422, text='{"name":"UNPROCESSABLE_ENTITY"}')

    response = app_client.post("/bookings/checkout", json=booking_payload, headers=client_headers)

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json() == {"error": '{"name":"UNPROCESSABLE_ENTITY"}'}

    bookings = app_client.get("/bookings/mine", headers=client_headers).json()
    assert [b["status"] for b in bookings] == ["CANCELLED_BY_CLIENT"]


def test_checkout_unreadable_charge_reply_cancels_the_booking(app_client, client_headers, booking_payload, http_mock):
    http_mock.post("https://api.stripe.com/v1/payment_intents").respond(200, text="<html>oops</html>")

    response = app_client.post(
        "/bookings/checkout", json={**booking_payload, "gateway": "immediate"}, headers=client_headers
    )

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert "create_charge" in response.json()["error"]
    bookings = app_client.get("/bookings/mine", headers=client_headers).json()
    assert [b["status"] for b in bookings] == ["CANCELLED_BY_CLIENT"]
