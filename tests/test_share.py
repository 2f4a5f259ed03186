# =============================================================================
# tests/test_share.py - Public share links, PIN checks and downloads
# =============================================================================

import io
import zipfile

from PIL import Image

from lumina.config import get_settings

from tests.conftest import PNG_BYTES, cdn_url, create_gallery, upload_photos

PIN = "1234"
WRONG_PIN = "4321"


async def _shared_gallery(client, owner, photo_count=2, **extra):
    extra.setdefault("downloadPin", PIN)
    gallery = await create_gallery(client, owner["headers"], **extra)
    photos = []
    if photo_count:
        photos = await upload_photos(client, owner["headers"], gallery["id"], count=photo_count)
    return gallery, photos


class TestSharedGalleryView:
    async def test_public_payload(self, client, alice):
        gallery, photos = await _shared_gallery(client, alice)

        response = await client.get(f"/api/share/{gallery['shareToken']}")
        assert response.status_code == 200
        body = response.json()

        assert body["title"] == "Summer Wedding"
        assert body["clientName"] == "Alice & Bob"
        assert body["businessName"] == "Alice Studio"
        assert body["pinRequired"] is True
        assert body["photoCount"] == 2
        assert {p["id"] for p in body["photos"]} == {p["id"] for p in photos}
        assert "downloadPin" not in body
        assert "photographerId" not in body

    async def test_photo_urls_point_at_image_route(self, client, alice):
        gallery, photos = await _shared_gallery(client, alice, photo_count=1)

        body = (await client.get(f"/api/share/{gallery['shareToken']}")).json()
        assert body["photos"][0]["url"] == (
            f"/api/share/{gallery['shareToken']}/photos/{photos[0]['id']}/image"
        )

    async def test_gallery_without_pin(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        await client.patch(f"/api/galleries/{gallery['id']}", json={"downloadPin": None}, headers=alice["headers"])

        body = (await client.get(f"/api/share/{gallery['shareToken']}")).json()
        assert body["pinRequired"] is False
        assert body["photoCount"] == 0

    async def test_unknown_token(self, client):
        response = await client.get("/api/share/does-not-exist")
        assert response.status_code == 404
        assert response.json()["message"] == "Gallery not found"

    async def test_image_needs_no_pin(self, client, alice):
        gallery, photos = await _shared_gallery(client, alice, photo_count=1)

        response = await client.get(f"/api/share/{gallery['shareToken']}/photos/{photos[0]['id']}/image")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.headers["content-disposition"].startswith("inline")

    async def test_image_is_a_preview_not_the_original(self, client, alice):
        gallery, photos = await _shared_gallery(client, alice, photo_count=1)

        response = await client.get(f"/api/share/{gallery['shareToken']}/photos/{photos[0]['id']}/image")
        assert response.status_code == 200
        assert response.content != PNG_BYTES
        with Image.open(io.BytesIO(response.content)) as img:
            assert img.format == "JPEG"
            assert img.size == (1200, 900)

    async def test_undecodable_image_needs_pin(self, client, alice):
        gallery = await create_gallery(client, alice["headers"], downloadPin=PIN)
        photo = (
            await client.post(
                f"/api/galleries/{gallery['id']}/photos",
                files=[("photos", ("raw.heic", b"not an image", "image/heic"))],
                headers=alice["headers"],
            )
        ).json()[0]
        url = f"/api/share/{gallery['shareToken']}/photos/{photo['id']}/image"

        assert (await client.get(url)).status_code == 403
        assert (await client.get(url, params={"pin": WRONG_PIN})).status_code == 403

        response = await client.get(url, params={"pin": PIN})
        assert response.status_code == 200
        assert response.content == b"not an image"
        assert response.headers["content-disposition"].startswith("inline")

    async def test_undecodable_image_without_gallery_pin(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        await client.patch(f"/api/galleries/{gallery['id']}", json={"downloadPin": None}, headers=alice["headers"])
        photo = (
            await client.post(
                f"/api/galleries/{gallery['id']}/photos",
                files=[("photos", ("raw.heic", b"not an image", "image/heic"))],
                headers=alice["headers"],
            )
        ).json()[0]

        response = await client.get(f"/api/share/{gallery['shareToken']}/photos/{photo['id']}/image")
        assert response.status_code == 200
        assert response.content == b"not an image"

    async def test_cdn_photo_url_is_resized(self, client, alice, cloudinary):
        gallery = await create_gallery(client, alice["headers"], downloadPin=PIN)
        await client.post(
            f"/api/galleries/{gallery['id']}/photos-metadata",
            json={"filename": "cdn.jpg", "storagePath": cdn_url(gallery["id"]), "size": 10},
            headers=alice["headers"],
        )

        body = (await client.get(f"/api/share/{gallery['shareToken']}")).json()
        url = body["photos"][0]["url"]
        assert "/upload/c_limit,w_1200,h_1200/" in url
        assert url != cdn_url(gallery["id"])



class TestVerifyPin:
    async def test_correct_pin(self, client, alice):
        gallery, _ = await _shared_gallery(client, alice, photo_count=0)
        response = await client.post(f"/api/share/{gallery['shareToken']}/verify-pin", json={"pin": PIN})
        assert response.status_code == 200
        assert response.json() == {"valid": True}

    async def test_wrong_pin(self, client, alice):
        gallery, _ = await _shared_gallery(client, alice, photo_count=0)
        response = await client.post(f"/api/share/{gallery['shareToken']}/verify-pin", json={"pin": WRONG_PIN})
        assert response.status_code == 403
        assert response.json()["message"] == "Invalid PIN"

    async def test_malformed_pin(self, client, alice):
        gallery, _ = await _shared_gallery(client, alice, photo_count=0)
        response = await client.post(f"/api/share/{gallery['shareToken']}/verify-pin", json={"pin": "12"})
        assert response.status_code == 400

    async def test_unknown_token(self, client):
        response = await client.post("/api/share/nope/verify-pin", json={"pin": PIN})
        assert response.status_code == 404


class TestSingleDownload:
    async def test_with_correct_pin(self, client, alice):
        gallery, photos = await _shared_gallery(client, alice, photo_count=1)

        response = await client.get(
            f"/api/share/{gallery['shareToken']}/photos/{photos[0]['id']}/download", params={"pin": PIN}
        )
        assert response.status_code == 200
        assert response.content == PNG_BYTES
        disposition = response.headers["content-disposition"]
        assert disposition.startswith("attachment")
        assert "photo1.png" in disposition

    async def test_missing_pin(self, client, alice):
        gallery, photos = await _shared_gallery(client, alice, photo_count=1)
        response = await client.get(f"/api/share/{gallery['shareToken']}/photos/{photos[0]['id']}/download")
        assert response.status_code == 403

    async def test_wrong_pin(self, client, alice):
        gallery, photos = await _shared_gallery(client, alice, photo_count=1)
        response = await client.get(
            f"/api/share/{gallery['shareToken']}/photos/{photos[0]['id']}/download", params={"pin": WRONG_PIN}
        )
        assert response.status_code == 403

    async def test_gallery_without_pin(self, client, alice):
        gallery, photos = await _shared_gallery(client, alice, photo_count=1)
        await client.patch(f"/api/galleries/{gallery['id']}", json={"downloadPin": None}, headers=alice["headers"])

        response = await client.get(f"/api/share/{gallery['shareToken']}/photos/{photos[0]['id']}/download")
        assert response.status_code == 200

    async def test_photo_from_another_gallery(self, client, alice):
        gallery, _ = await _shared_gallery(client, alice, photo_count=1)
        _, other_photos = await _shared_gallery(client, alice, photo_count=1, title="Other")

        response = await client.get(
            f"/api/share/{gallery['shareToken']}/photos/{other_photos[0]['id']}/download", params={"pin": PIN}
        )
        assert response.status_code == 404

    async def test_cdn_photo_redirects(self, client, alice, cloudinary):
        gallery = await create_gallery(client, alice["headers"], downloadPin=PIN)
        url = cdn_url(gallery["id"])
        photo = (
            await client.post(
                f"/api/galleries/{gallery['id']}/photos-metadata",
                json={"filename": "cdn.jpg", "storagePath": url, "size": 10},
                headers=alice["headers"],
            )
        ).json()

        response = await client.get(
            f"/api/share/{gallery['shareToken']}/photos/{photo['id']}/download", params={"pin": PIN}
        )
        assert response.status_code == 302
        assert response.headers["location"] == url

        preview = await client.get(f"/api/share/{gallery['shareToken']}/photos/{photo['id']}/image")
        assert preview.status_code == 302
        assert "/upload/c_limit,w_1200,h_1200/" in preview.headers["location"]



class TestBulkDownload:
    async def test_zip_of_all_photos(self, client, alice):
        gallery, _ = await _shared_gallery(client, alice, photo_count=2)

        response = await client.post(f"/api/share/{gallery['shareToken']}/download", json={"pin": PIN})
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert "Summer_Wedding_photos.zip" in response.headers["content-disposition"]

        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert sorted(archive.namelist()) == ["photo1.png", "photo2.png"]
            assert archive.read("photo1.png") == PNG_BYTES

    async def test_selected_photos(self, client, alice):
        gallery, photos = await _shared_gallery(client, alice, photo_count=3)

        response = await client.post(
            f"/api/share/{gallery['shareToken']}/download",
            json={"pin": PIN, "photoIds": [photos[1]["id"]]},
        )
        assert response.status_code == 200
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert archive.namelist() == ["photo2.png"]

    async def test_duplicate_filenames_are_renamed(self, client, alice):
        gallery = await create_gallery(client, alice["headers"], downloadPin=PIN)
        await client.post(
            f"/api/galleries/{gallery['id']}/photos",
            files=[
                ("photos", ("same.png", PNG_BYTES, "image/png")),
                ("photos", ("same.png", PNG_BYTES, "image/png")),
            ],
            headers=alice["headers"],
        )

        response = await client.post(f"/api/share/{gallery['shareToken']}/download", json={"pin": PIN})
        with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
            assert sorted(archive.namelist()) == ["same (2).png", "same.png"]

    async def test_requires_pin(self, client, alice):
        gallery, _ = await _shared_gallery(client, alice)
        missing = await client.post(f"/api/share/{gallery['shareToken']}/download", json={})
        wrong = await client.post(f"/api/share/{gallery['shareToken']}/download", json={"pin": WRONG_PIN})
        assert missing.status_code == 403
        assert wrong.status_code == 403

    async def test_foreign_photo_id(self, client, alice):
        gallery, _ = await _shared_gallery(client, alice)
        response = await client.post(
            f"/api/share/{gallery['shareToken']}/download", json={"pin": PIN, "photoIds": [9999]}
        )
        assert response.status_code == 404

    async def test_empty_gallery(self, client, alice):
        gallery, _ = await _shared_gallery(client, alice, photo_count=0)
        response = await client.post(f"/api/share/{gallery['shareToken']}/download", json={"pin": PIN})
        assert response.status_code == 404

    async def test_archive_size_limit(self, client, alice, monkeypatch):
        gallery, photos = await _shared_gallery(client, alice, photo_count=2)
        monkeypatch.setattr(get_settings(), "max_archive_size_bytes", len(PNG_BYTES))

        response = await client.post(f"/api/share/{gallery['shareToken']}/download", json={"pin": PIN})
        assert response.status_code == 400
        assert response.json()["field"] == "photoIds"

        one = await client.post(
            f"/api/share/{gallery['shareToken']}/download",
            json={"pin": PIN, "photoIds": [photos[0]["id"]]},
        )
        assert one.status_code == 200
        with zipfile.ZipFile(io.BytesIO(one.content)) as archive:
            assert archive.namelist() == ["photo1.png"]
