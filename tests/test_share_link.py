import uuid
from urllib.parse import parse_qs, urlparse

import pytest

from app.models.deposit import Deposit
from app.services.share_link import build_whatsapp_link, normalize_whatsapp_phone


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("081234567890", "6281234567890"),
        ("+62 812-3456-7890", "6281234567890"),
        ("6281234567890", "6281234567890"),
        ("81234567890", "6281234567890"),
    ],
)
def test_normalize_whatsapp_phone(raw, expected):
    assert normalize_whatsapp_phone(raw) == expected


def test_message_carries_slot_and_code():
    deposit = Deposit(
        owner_name="Budi",
        owner_phone="081234567890",
        slot=5,
        pickup_code="K7Q2ZD",
        deposited_by_user_id=uuid.uuid4(),
    )

    url = build_whatsapp_link(deposit, "https://nitip.test/")
    parsed = urlparse(url)
    text = parse_qs(parsed.query)["text"][0]

    assert parsed.netloc == "wa.me"
    assert parsed.path == "/6281234567890"
    assert "Halo Budi!" in text
    assert "Slot *5*" in text
    assert "*K7Q2ZD*" in text
    assert "https://nitip.test/barang/K7Q2ZD" in text
