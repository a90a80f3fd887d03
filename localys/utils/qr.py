from io import BytesIO
from urllib.parse import urlencode

import qrcode
import qrcode.constants
from qrcode.main import QRCode

from ..core.config import Config


def build_verification_url(order_id, token: str, base_url: str = None) -> str:
    """URL the seller's camera opens: ``{base}/orders/verify?id=..&token=..``"""
    base = (base_url or Config.BASE_URL).rstrip("/")
    return f"{base}/orders/verify?{urlencode({'id': order_id, 'token': token})}"


def render_qr_png(data: str, box_size: int = 10, border: int = 4) -> bytes:
    qr = QRCode(
        version=None,  # fit to the data
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffered = BytesIO()
    img.save(buffered, format="PNG")
    return buffered.getvalue()
