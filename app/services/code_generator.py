# app/services/code_generator.py
import secrets
import string

PICKUP_CODE_LENGTH = 6
PICKUP_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_pickup_code(length: int = PICKUP_CODE_LENGTH) -> str:
    """
    Random pickup code, e.g. "K7Q2ZD".

    Each character is drawn independently and uniformly from A-Z0-9.
    Uniqueness against live codes is the registry's job, not ours.
    """
    return "".join(secrets.choice(PICKUP_CODE_ALPHABET) for _ in range(length))


def normalize_code(raw: str) -> str:
    """' k7q2zd ' -> 'K7Q2ZD'"""
    return raw.strip().upper()
