import pytest

import mailer
from conftest import TEST_SETTINGS
from errors import ValidationError

VALID = {
    "name": "Asha Rao",
    "hotelName": "Lakeview <Suites>",
    "email": "asha@lakeview.test",
    "phone": "+91 98765 43210",
    "roomCount": "42",
    "message": "We would like a demo next week.",
}


class FakeRelay:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send(self, message):
        if self.error:
            raise self.error
        self.sent.append(message)


@pytest.fixture
def relay(api):
    fake = FakeRelay()
    api.app.dependency_overrides[mailer.get_relay] = lambda: fake
    return fake


def test_valid_request_sends_one_message(api, relay):
    res = api.post("/api/contact", json=VALID)

    assert res.status_code == 200
    assert res.json() == {"message": "Email sent successfully"}
    assert len(relay.sent) == 1
    message = relay.sent[0]
    assert message["Reply-To"] == "asha@lakeview.test"
    assert message["To"] == "sales@innexora.test"
    assert message["Subject"] == "New Demo Request from Asha Rao - Lakeview <Suites>"


def test_missing_room_count_sends_nothing(api, relay):
    payload = {k: v for k, v in VALID.items() if k != "roomCount"}
    res = api.post("/api/contact", json=payload)

    assert res.status_code == 400
    assert res.json() == {"error": "All required fields must be filled"}
    assert relay.sent == []


def test_bad_email_is_rejected(api, relay):
    res = api.post("/api/contact", json={**VALID, "email": "asha at lakeview"})
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid email format"
    assert relay.sent == []


def test_body_that_is_not_an_object(api, relay):
    res = api.post("/api/contact", content=b"[1, 2]", headers={"Content-Type": "application/json"})
    assert res.status_code == 400
    res = api.post("/api/contact", content=b"{not json", headers={"Content-Type": "application/json"})
    assert res.status_code == 400


def test_relay_failure_is_reported(api):
    api.app.dependency_overrides[mailer.get_relay] = lambda: FakeRelay(error=OSError("smtp down"))
    res = api.post("/api/contact", json=VALID)
    assert res.status_code == 500
    assert res.json() == {"error": "Failed to send email"}


def test_validate_contact_optional_message():
    form = mailer.validate_contact({**VALID, "message": "  "})
    assert form.message is None
    with pytest.raises(ValidationError):
        mailer.validate_contact({**VALID, "name": "   "})


def test_rendered_email_escapes_user_input():
    form = mailer.validate_contact({**VALID, "message": "<script>alert(1)</script>"})
    body = mailer.render_contact_email(form)
    assert "&lt;script&gt;" in body
    assert "<script>" not in body
    assert "Lakeview &lt;Suites&gt;" in body


def test_build_message_sender():
    message = mailer.build_message(mailer.validate_contact(VALID), TEST_SETTINGS)
    assert "Innexora Contact Form" in message["From"]
    assert "sales-bot@innexora.test" in message["From"]
