"""Tests for webhook signature verification."""

import hashlib
import hmac

import pytest

from wa2fa.utils.webhook_utils import generate_signature, validate_signature

BODY = b'{"object":"whatsapp_business_account","entry":[]}'
SECRET = "s3cret"


def _expected_header(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestValidateSignature:
    """Tests for X-Hub-Signature-256 validation."""

    def test_valid_signature(self):
        assert validate_signature(BODY, _expected_header(BODY, SECRET), SECRET) is True

    def test_single_bit_flip_in_body_fails(self):
        header = _expected_header(BODY, SECRET)
        flipped = bytearray(BODY)
        flipped[5] ^= 0x01
        assert validate_signature(bytes(flipped), header, SECRET) is False

    def test_single_bit_flip_in_signature_fails(self):
        header = _expected_header(BODY, SECRET)
        last = header[-1]
        flipped_char = format(int(last, 16) ^ 0x1, "x")
        assert validate_signature(BODY, header[:-1] + flipped_char, SECRET) is False

    def test_wrong_secret_fails(self):
        assert validate_signature(BODY, _expected_header(BODY, "other"), SECRET) is False

    @pytest.mark.parametrize("header", [None, "", "sha1=abcdef", "abcdef0123"])
    def test_missing_or_malformed_header_fails(self, header):
        assert validate_signature(BODY, header, SECRET) is False

    @pytest.mark.parametrize("secret", [None, ""])
    def test_no_secret_disables_verification(self, secret):
        assert validate_signature(BODY, None, secret) is True

    def test_non_ascii_signature_returns_false(self):
        assert validate_signature(BODY, "sha256=ünïcode", SECRET) is False


class TestGenerateSignature:
    """Tests for signature generation."""

    def test_matches_hmac_sha256(self):
        assert generate_signature(BODY, SECRET) == _expected_header(BODY, SECRET)

    def test_str_body_is_utf8_encoded(self):
        assert generate_signature("héllo", SECRET) == _expected_header("héllo".encode("utf-8"), SECRET)

    def test_generated_signature_validates(self):
        assert validate_signature(BODY, generate_signature(BODY, SECRET), SECRET) is True
