import hmac
import hashlib
from vehicle_webhook.verify_signature import hmac_hex, sign_challenge, verify_signature


def test_verify_signature_valid():
    secret = "mysecret"
    body = b'{"hello":"world"}'
    mac = hmac.new(secret.encode(), msg=body, digestmod=hashlib.sha256).hexdigest()

    assert verify_signature(secret, body, mac) is True


def test_verify_signature_trims_header():
    secret = "mysecret"
    body = b'{"hello":"world"}'

    assert verify_signature(secret, body, f"  {hmac_hex(secret, body)}\n") is True


def test_verify_signature_invalid():
    secret = "mysecret"
    body = b'{"hello":"world"}'

    assert verify_signature(secret, body, "wronghash") is False


def test_verify_signature_rejects_extra_character():
    secret = "mysecret"
    body = b'{"hello":"world"}'

    assert verify_signature(secret, body, hmac_hex(secret, body) + "0") is False


def test_verify_signature_missing_header():
    assert verify_signature("mysecret", b"{}", None) is False
    assert verify_signature("mysecret", b"{}", "") is False


def test_verify_signature_is_byte_exact():
    secret = "mysecret"
    signed = b'{"a": 1}'

    assert verify_signature(secret, b'{"a":1}', hmac_hex(secret, signed)) is False


def test_verify_signature_wrong_secret():
    body = b'{"hello":"world"}'

    assert verify_signature("mysecret", body, hmac_hex("othersecret", body)) is False


def test_sign_challenge_matches_hmac_of_challenge():
    expected = hmac.new(b"mysecret", msg=b"abc", digestmod=hashlib.sha256).hexdigest()

    assert sign_challenge("mysecret", "abc") == expected
