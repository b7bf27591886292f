import base64
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_H


def generate_qr_png(
    data: str,
    fill_color: str = "black",
    back_color: str = "white",
    box_size: int = 10,
    border: int = 4,
) -> bytes:
    qr = qrcode.QRCode(
        version=None, box_size=box_size, border=border,
        error_correction=ERROR_CORRECT_H
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color=fill_color, back_color=back_color)

    buf = BytesIO()
    img.save(buf)
    return buf.getvalue()

def generate_qr_base64(data: str, **style) -> str:
    return base64.b64encode(generate_qr_png(data, **style)).decode()
