"""
QR image service for registration tokens
"""
import io
from typing import Optional

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M

from wildenergy.core.conversions import normalize_qr_code


class QrImageService:
    """Renders registration QR tokens as PNG images"""

    # Configuration
    BOX_SIZE = 10
    BORDER = 4
    MAX_SIZE = (600, 600)
    FILL_COLOR = "black"
    BACK_COLOR = "white"

    def __init__(self, box_size: Optional[int] = None, border: Optional[int] = None):
        self.box_size = box_size or self.BOX_SIZE
        self.border = self.BORDER if border is None else border

    def build_image(self, token: str) -> Image.Image:
        """
        Build the QR image for a token

        Args:
            token: Opaque registration QR token

        Returns:
            RGB Pillow image, at most MAX_SIZE
        """
        value = normalize_qr_code(token)
        if value is None:
            raise ValueError("QR token is empty")

        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECT_M,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(value)
        qr.make(fit=True)

        img = qr.make_image(fill_color=self.FILL_COLOR, back_color=self.BACK_COLOR)
        img = img.get_image() if hasattr(img, "get_image") else img
        if img.mode != "RGB":
            img = img.convert("RGB")

        if img.size[0] > self.MAX_SIZE[0]:
            img.thumbnail(self.MAX_SIZE, Image.Resampling.NEAREST)
        return img

    def render_png(self, token: str) -> bytes:
        """PNG bytes for ``token``"""
        buffer = io.BytesIO()
        self.build_image(token).save(buffer, "PNG", optimize=True)
        return buffer.getvalue()
