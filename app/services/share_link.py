# app/services/share_link.py
"""
WhatsApp deep links telling the owner where their item is.

The backend only builds the URL; the front-end opens it in a new tab.
"""

import re
from urllib.parse import quote

from app.models.deposit import Deposit

WHATSAPP_BASE_URL = "https://wa.me"


def normalize_whatsapp_phone(phone: str) -> str:
    """
    wa.me wants the international form without '+':
      0812...  -> 62812...
      +62812.. -> 62812...
    """
    digits = re.sub(r"\D", "", phone)
    if digits.startswith("0"):
        digits = "62" + digits[1:]
    if not digits.startswith("62"):
        digits = "62" + digits
    return digits


def detail_url(public_app_url: str, pickup_code: str) -> str:
    return f"{public_app_url.rstrip('/')}/barang/{pickup_code}"


def build_pickup_message(deposit: Deposit, link: str) -> str:
    return (
        f"Halo {deposit.owner_name}!\n\n"
        "Barang kamu sudah aman tersimpan nih!\n\n"
        f"Lokasi: Slot *{deposit.slot}*\n"
        f"Kode Ambil: *{deposit.pickup_code}*\n\n"
        "Jangan lupa simpan kode ini ya! "
        "Kamu butuh kode ini untuk ambil barang nanti.\n\n"
        f"Cek detail: {link}"
    )


def build_whatsapp_link(deposit: Deposit, public_app_url: str) -> str:
    phone = normalize_whatsapp_phone(deposit.owner_phone)
    message = build_pickup_message(deposit, detail_url(public_app_url, deposit.pickup_code))
    return f"{WHATSAPP_BASE_URL}/{phone}?text={quote(message, safe='')}"
