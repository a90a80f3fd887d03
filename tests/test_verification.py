import hashlib
import hmac

from localys.core.config import Config
from localys.utils.qr import build_verification_url, render_qr_png
from localys.utils.verification import generate_token, verify_token


def test_token_is_hmac_of_order_id():
    expected = hmac.new(Config.ORDER_VERIFICATION_SECRET.encode(), b"42", hashlib.sha256).hexdigest()
    assert generate_token("42") == expected
    assert len(generate_token("42")) == 64


def test_token_is_deterministic_and_per_order():
    assert generate_token("7") == generate_token("7")
    assert generate_token("7") != generate_token("8")


def test_verify_token():
    token = generate_token("42")
    assert verify_token("42", token)
    assert not verify_token("43", token)
    assert not verify_token("42", token[:-1] + ("0" if token[-1] != "0" else "1"))


def test_verify_rejects_empty_and_non_ascii_tokens():
    assert not verify_token("42", "")
    assert not verify_token("42", None)
    assert not verify_token("42", "é" * 64)


def test_verification_url():
    url = build_verification_url(5, "abc", base_url="https://localys.app/")
    assert url == "https://localys.app/orders/verify?id=5&token=abc"


def test_qr_png():
    png = render_qr_png("https://localys.app/orders/verify?id=5&token=abc")
    assert png.startswith(b"\x89PNG\r\n\x1a\n")
