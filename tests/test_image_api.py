import io
import json

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from PIL import Image

from services.thumbnail_generator import ImageNormalizer
from tests.fakes import FakeOpenAIClient
from utils.errors import ValidationError

CATALOG = [
    {
        "Name": "Penny Black",
        "Country": "Great Britain",
        "Color": "Black",
        "IssueYear": "1840",
        "DenominationValue": "1",
        "DenominationSymbol": "d",
        "visualDescription": "black stamp with queen victoria profile",
        "StampImageUrl": "https://example.test/penny-black.png",
    },
    {
        "Name": "Kiwi",
        "Country": "New Zealand",
        "Color": "Green",
        "visualDescription": "green stamp showing a kiwi bird",
    },
    {"Name": "No description", "Country": "Great Britain"},
]


def png_bytes(size=(2000, 1000), mode="RGBA") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, (10, 10, 10, 128) if mode == "RGBA" else (10, 10, 10)).save(buffer, format="PNG")
    return buffer.getvalue()


async def upload(app, files):
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            return await client.post("/api/search-by-image", files=files)


def test_normalizer_downscales_and_flattens_to_jpeg():
    jpeg = ImageNormalizer().to_jpeg(png_bytes())
    with Image.open(io.BytesIO(jpeg)) as image:
        assert image.format == "JPEG"
        assert image.mode == "RGB"
        assert max(image.size) <= 1024


def test_normalizer_rejects_non_images():
    with pytest.raises(ValidationError):
        ImageNormalizer().to_jpeg(b"definitely not an image")


@pytest.mark.asyncio
async def test_image_search_matches_catalog(app_factory, tmp_path):
    (tmp_path / "catalog.json").write_text(json.dumps(CATALOG), encoding="utf-8")
    app, _, openai_client = app_factory()

    res = await upload(app, {"image": ("stamp.png", png_bytes(), "image/png")})

    assert res.status_code == 200
    body = res.json()
    assert body["isStamp"] is True
    assert body["stampDetails"]["name"] == "Penny Black"
    assert body["stampDetails"]["denomination"] == "1d"
    assert body["suggestions"][0]["name"] == "Penny Black"
    assert body["analysis"]["country"] == "Great Britain"
    _, call = openai_client.calls[-1]
    assert call["model"] == "gpt-4o-mini"
    assert call["tool_choice"]["name"] == "report_stamp_analysis"


@pytest.mark.asyncio
async def test_image_that_is_not_a_stamp(app_factory):
    fake = FakeOpenAIClient(image_analysis={"isStamp": False, "confidence": 0.2})
    app, _, _ = app_factory(openai_client=fake)

    res = await upload(app, {"image": ("cat.png", png_bytes((50, 50), "RGB"), "image/png")})

    assert res.json() == {"isStamp": False, "confidence": 0.2, "message": "This image does not appear to be a stamp."}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "files",
    [
        {"other": ("x.txt", b"hello", "text/plain")},
        {"image": ("x.txt", b"hello", "text/plain")},
        {"image": ("big.png", b"\x89PNG" + b"\x00" * 2048, "image/png")},
    ],
)
async def test_image_upload_validation(app_factory, files):
    app, _, openai_client = app_factory(max_image_bytes=1024)

    res = await upload(app, files)

    assert res.status_code == 400
    assert res.json()["code"] == "validation_error"
    assert openai_client.calls == []
