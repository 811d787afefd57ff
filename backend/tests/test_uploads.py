"""Tests for the ImgBB / Catbox uploaders and the upload endpoints."""

import httpx
import pytest
from httpx import AsyncClient

from app.config import Settings
from app.main import app
from app.models import Place, UserProfile
from app.services.audio_host import CatboxUploader, get_audio_uploader
from app.services.image_host import (
    ImgBBUploader,
    NotConfiguredError,
    UploadError,
    get_image_uploader,
    reset_key_rotation,
)


@pytest.fixture(autouse=True)
def _fresh_rotation():
    reset_key_rotation()
    yield
    app.dependency_overrides.pop(get_image_uploader, None)
    app.dependency_overrides.pop(get_audio_uploader, None)


def _imgbb_client(seen_keys: list[str], failing: set[str] = frozenset()) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        key = request.url.params["key"]
        seen_keys.append(key)
        if key in failing:
            return httpx.Response(400, json={"success": False, "error": {"message": "Invalid API key"}})
        return httpx.Response(
            200, json={"success": True, "data": {"url": f"https://i.ibb.co/{key}/img.webp"}}
        )

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_imgbb_rotates_keys_round_robin():
    seen: list[str] = []
    uploader = ImgBBUploader(Settings(imgbb_api_keys="k1, k2,k3"), _imgbb_client(seen))

    urls = [await uploader.upload(b"img") for _ in range(4)]
    assert seen == ["k1", "k2", "k3", "k1"]
    assert urls[1] == "https://i.ibb.co/k2/img.webp"


@pytest.mark.asyncio
async def test_imgbb_falls_through_to_next_key():
    seen: list[str] = []
    uploader = ImgBBUploader(Settings(imgbb_api_keys="k1,k2"), _imgbb_client(seen, {"k1"}))

    url = await uploader.upload(b"img")
    assert url == "https://i.ibb.co/k2/img.webp"
    assert seen == ["k1", "k2"]


@pytest.mark.asyncio
async def test_imgbb_all_keys_fail():
    seen: list[str] = []
    uploader = ImgBBUploader(
        Settings(imgbb_api_keys="k1,k2"), _imgbb_client(seen, {"k1", "k2"})
    )
    with pytest.raises(UploadError, match="Invalid API key"):
        await uploader.upload(b"img")
    assert seen == ["k1", "k2"]


@pytest.mark.asyncio
async def test_imgbb_without_keys():
    uploader = ImgBBUploader(Settings(imgbb_api_keys=""))
    with pytest.raises(NotConfiguredError):
        await uploader.upload(b"img")


@pytest.mark.asyncio
async def test_catbox_returns_body_url():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = request.content
        return httpx.Response(200, text="https://files.catbox.moe/x1y2z3.webm\n")

    uploader = CatboxUploader(
        Settings(catbox_userhash="hash123"),
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    url = await uploader.upload(b"voice", "voice.webm", "audio/webm")
    assert url == "https://files.catbox.moe/x1y2z3.webm"
    assert b"fileupload" in captured["body"]
    assert b"hash123" in captured["body"]


@pytest.mark.asyncio
async def test_catbox_unexpected_body():
    uploader = CatboxUploader(
        Settings(),
        httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="error"))),
    )
    with pytest.raises(UploadError):
        await uploader.upload(b"voice")


@pytest.mark.asyncio
async def test_uploaded_url_is_stored_verbatim_on_product(
    client: AsyncClient, place: Place, owner: UserProfile, auth_headers
):
    seen: list[str] = []
    uploader = ImgBBUploader(Settings(imgbb_api_keys="only"), _imgbb_client(seen))
    app.dependency_overrides[get_image_uploader] = lambda: uploader

    upload = await client.post(
        "/api/v1/uploads/image",
        files={"file": ("photo.webp", b"\x00\x01", "image/webp")},
        headers=auth_headers(owner),
    )
    assert upload.status_code == 200
    url = upload.json()["url"]
    assert upload.json()["success"] is True

    resp = await client.post(
        "/api/v1/products",
        json={"place_id": str(place.id), "name_ar": "منتج", "name_en": "Item", "images": [url]},
        headers=auth_headers(owner),
    )
    assert resp.json()["images"][0]["image_url"] == url


@pytest.mark.asyncio
async def test_upload_image_rejects_non_images(
    client: AsyncClient, owner: UserProfile, auth_headers
):
    resp = await client.post(
        "/api/v1/uploads/image",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_upload_image_not_configured(
    client: AsyncClient, owner: UserProfile, auth_headers
):
    app.dependency_overrides[get_image_uploader] = lambda: ImgBBUploader(Settings(imgbb_api_keys=""))
    resp = await client.post(
        "/api/v1/uploads/image",
        files={"file": ("photo.png", b"\x89PNG", "image/png")},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 503
    assert resp.json()["code"] == "NOT_CONFIGURED"


@pytest.mark.asyncio
async def test_upload_audio_failure_maps_to_502(
    client: AsyncClient, owner: UserProfile, auth_headers
):
    failing = CatboxUploader(
        Settings(),
        httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))),
    )
    app.dependency_overrides[get_audio_uploader] = lambda: failing
    resp = await client.post(
        "/api/v1/uploads/audio",
        files={"file": ("voice.webm", b"voice", "audio/webm")},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 502
    assert resp.json()["code"] == "UPLOAD_FAILED"


@pytest.mark.asyncio
async def test_upload_requires_login(client: AsyncClient):
    resp = await client.post(
        "/api/v1/uploads/image", files={"file": ("photo.png", b"\x89PNG", "image/png")}
    )
    assert resp.status_code == 401
