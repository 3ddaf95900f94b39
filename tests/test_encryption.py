import pytest

from services.errors import ConfigurationError
from services.patient_store import build_field_cipher
from utils.encryption import FieldCipher, decrypt, derive_key, encrypt

KEY = derive_key("unit-test-secret")


def test_derive_key_pads_short_secret():
    key = derive_key("short")
    assert key == b"short" + b"!" * 27
    assert len(key) == 32


def test_derive_key_truncates_long_secret():
    key = derive_key("patient-data-encryption-key-32bytes")
    assert key == b"patient-data-encryption-key-32by"


def test_derive_key_counts_utf8_bytes():
    key = derive_key("ü" * 20)
    assert len(key) == 32
    assert key == ("ü" * 16).encode("utf-8")


@pytest.mark.parametrize(
    "plaintext",
    ["12 Valiasr St", "Apt 4: rear entrance", "a:b:c:", "خیابان ولیعصر", "x" * 1000],
)
def test_encrypt_then_decrypt_returns_plaintext(plaintext):
    encoded = encrypt(plaintext, KEY)
    assert encoded != plaintext
    assert decrypt(encoded, KEY) == plaintext


def test_encrypt_output_is_hex_iv_and_ciphertext():
    iv_hex, ciphertext_hex = encrypt("hello", KEY).split(":")
    assert len(bytes.fromhex(iv_hex)) == 16
    assert len(bytes.fromhex(ciphertext_hex)) % 16 == 0


def test_encrypt_uses_fresh_iv_per_call():
    assert encrypt("same value", KEY) != encrypt("same value", KEY)


@pytest.mark.parametrize("value", ["", None])
def test_empty_values_pass_through(value):
    assert encrypt(value, KEY) == value
    assert decrypt(value, KEY) == value


def test_decrypt_without_separator_returns_input():
    assert decrypt("plain text value", KEY) == "plain text value"


@pytest.mark.parametrize(
    "corrupt",
    ["zz:zz", "00112233:445566", "not hex at all: really"],
)
def test_decrypt_corrupt_value_returns_input(corrupt):
    assert decrypt(corrupt, KEY) == corrupt


def test_decrypt_truncated_ciphertext_returns_input():
    encoded = encrypt("some address", KEY)
    truncated = encoded[:-2]
    assert decrypt(truncated, KEY) == truncated


def test_decrypt_with_wrong_key_returns_input():
    encoded = encrypt("12 Valiasr St", derive_key("a"))
    assert decrypt(encoded, derive_key("b")) == encoded


def test_encrypt_fault_returns_plaintext(monkeypatch):
    def broken_cipher(key, iv):
        raise ValueError("cipher unavailable")

    monkeypatch.setattr("utils.encryption._cipher", broken_cipher)

    assert encrypt("x", KEY) == "x"


def test_decrypt_checked_reports_fallback():
    cipher = FieldCipher(KEY)
    assert cipher.decrypt_checked(cipher.encrypt("value")) == ("value", True)
    assert cipher.decrypt_checked("value") == ("value", False)


def test_field_cipher_only_touches_configured_fields():
    cipher = FieldCipher(KEY, ["address"])
    values = {"address": "12 Valiasr St", "city": "Tehran", "emergency_contact_name": None}

    encrypted = cipher.encrypt_fields(values)
    assert encrypted["address"] != "12 Valiasr St"
    assert encrypted["city"] == "Tehran"
    assert values["address"] == "12 Valiasr St"

    assert cipher.decrypt_fields(encrypted) == values


def test_field_cipher_rejects_wrong_key_length():
    with pytest.raises(ValueError):
        FieldCipher(b"too short")


def test_build_field_cipher_rejects_searchable_fields():
    with pytest.raises(ConfigurationError):
        build_field_cipher("secret", ["address", "email"])
