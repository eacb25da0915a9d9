from __future__ import annotations

from .schemas import QRCode
from .transport import ApiTransport


class QRCodeService:
    """QR codes for product links, rendered by the API."""

    def __init__(self, transport: ApiTransport) -> None:
        self.transport = transport

    async def generate(self, text: str) -> QRCode:
        data = await self.transport.post("/qrcode/generate", json={"text": text})
        return QRCode.model_validate(data)

    async def generate_with_image(self, text: str, image_url: str) -> QRCode:
        data = await self.transport.post(
            "/qrcode/generate_with_image",
            json={"text": text, "imageURL": image_url},
        )
        return QRCode.model_validate(data)
