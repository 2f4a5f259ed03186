# =============================================================================
# tests/test_photos.py - Upload, metadata registration, replace and delete
# =============================================================================

import pytest

from lumina.config import get_settings
from lumina.services.photo import MAX_FILENAME_LENGTH, clean_filename
from lumina.services.storage import StorageError, get_storage_service

from tests.conftest import JPEG_BYTES, PNG_BYTES, cdn_url, create_gallery, upload_photos


class TestUpload:
    async def test_upload_multiple(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        photos = await upload_photos(client, alice["headers"], gallery["id"], count=3)

        assert len(photos) == 3
        for photo in photos:
            assert photo["galleryId"] == gallery["id"]
            assert photo["size"] == len(PNG_BYTES)
            assert get_storage_service().local_file(photo["storagePath"]) is not None

    async def test_no_files(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            f"/api/galleries/{gallery['id']}/photos", data={}, headers=alice["headers"]
        )
        assert response.status_code == 400
        assert response.json() == {"message": "No files uploaded", "field": "photos"}

    async def test_content_type_from_extension(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            f"/api/galleries/{gallery['id']}/photos",
            files=[("photos", ("holiday.JPG", JPEG_BYTES, "application/octet-stream"))],
            headers=alice["headers"],
        )
        assert response.status_code == 201
        assert response.json()[0]["filename"] == "holiday.JPG"

    async def test_rejects_non_image(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            f"/api/galleries/{gallery['id']}/photos",
            files=[("photos", ("notes.txt", b"hello", "text/plain"))],
            headers=alice["headers"],
        )
        assert response.status_code == 400
        assert response.json()["field"] == "photos"

    async def test_rejects_empty_file(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            f"/api/galleries/{gallery['id']}/photos",
            files=[("photos", ("empty.png", b"", "image/png"))],
            headers=alice["headers"],
        )
        assert response.status_code == 400

    async def test_rejects_oversized_file(self, client, alice, monkeypatch):
        monkeypatch.setattr(get_settings(), "max_upload_size_bytes", 16)
        gallery = await create_gallery(client, alice["headers"])

        response = await client.post(
            f"/api/galleries/{gallery['id']}/photos",
            files=[("photos", ("big.png", PNG_BYTES, "image/png"))],
            headers=alice["headers"],
        )
        assert response.status_code == 400
        assert "too large" in response.json()["message"]

    async def test_non_owner_gets_403_even_with_a_bad_file(self, client, alice, bob):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            f"/api/galleries/{gallery['id']}/photos",
            files=[("photos", ("notes.txt", b"hello", "text/plain"))],
            headers=bob["headers"],
        )
        assert response.status_code == 403

    async def test_long_filename_is_shortened(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        long_name = "x" * 300 + ".png"
        response = await client.post(
            f"/api/galleries/{gallery['id']}/photos",
            files=[("photos", (long_name, PNG_BYTES, "image/png"))],
            headers=alice["headers"],
        )
        assert response.status_code == 201
        filename = response.json()[0]["filename"]
        assert len(filename) == MAX_FILENAME_LENGTH
        assert filename.endswith(".png")

    async def test_one_bad_file_rejects_the_batch(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            f"/api/galleries/{gallery['id']}/photos",
            files=[
                ("photos", ("good.png", PNG_BYTES, "image/png")),
                ("photos", ("bad.txt", b"text", "text/plain")),
            ],
            headers=alice["headers"],
        )
        assert response.status_code == 400

        detail = await client.get(f"/api/galleries/{gallery['id']}", headers=alice["headers"])
        assert detail.json()["photos"] == []


class TestMetadata:
    async def _register(self, client, headers, gallery_id, storage_path):
        return await client.post(
            f"/api/galleries/{gallery_id}/photos-metadata",
            json={"filename": "cdn.jpg", "storagePath": storage_path, "size": 2048},
            headers=headers,
        )

    async def test_register_cdn_photo(self, client, alice, cloudinary):
        gallery = await create_gallery(client, alice["headers"])
        response = await self._register(client, alice["headers"], gallery["id"], cdn_url(gallery["id"]))
        assert response.status_code == 201
        body = response.json()
        assert body["storagePath"] == cdn_url(gallery["id"])
        assert body["size"] == 2048

    @pytest.mark.parametrize(
        "storage_path",
        [
            "http://127.0.0.1:8080/latest/meta-data",
            "http://169.254.169.254/latest/meta-data/iam",
            "https://evil.example.com/demo/image/upload/v1/lumina/galleries/1/a.jpg",
            "https://res.cloudinary.com@evil.example.com/demo/image/upload/lumina/galleries/1/a.jpg",
            "https://res.cloudinary.com:8443/demo/image/upload/lumina/galleries/1/a.jpg",
            "http://res.cloudinary.com/demo/image/upload/lumina/galleries/1/a.jpg",
            "https://res.cloudinary.com/other-cloud/image/upload/lumina/galleries/1/a.jpg",
            "https://res.cloudinary.com/demo/image/upload/lumina/galleries/1/../2/a.jpg",
        ],
    )
    async def test_only_our_cloudinary_urls_are_accepted(self, client, alice, cloudinary, storage_path):
        gallery = await create_gallery(client, alice["headers"])
        assert gallery["id"] == 1
        response = await self._register(client, alice["headers"], gallery["id"], storage_path)
        assert response.status_code == 400
        assert response.json()["field"] == "storagePath"

    async def test_url_must_be_in_this_gallerys_folder(self, client, alice, cloudinary):
        gallery = await create_gallery(client, alice["headers"], title="A")
        other = await create_gallery(client, alice["headers"], title="B")
        response = await self._register(client, alice["headers"], gallery["id"], cdn_url(other["id"]))
        assert response.status_code == 400

    async def test_metadata_needs_cloudinary(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        response = await self._register(client, alice["headers"], gallery["id"], cdn_url(gallery["id"]))
        assert response.status_code == 503

    async def test_foreign_urls_are_never_fetched(self, cloudinary):
        with pytest.raises(StorageError):
            await get_storage_service().read_file("http://127.0.0.1:8080/latest/meta-data")
    async def test_storage_path_must_be_url(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            f"/api/galleries/{gallery['id']}/photos-metadata",
            json={"filename": "x.jpg", "storagePath": "/etc/passwd", "size": 1},
            headers=alice["headers"],
        )
        assert response.status_code == 400
        assert response.json()["field"] == "storagePath"

    async def test_upload_signature_needs_cloudinary(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        response = await client.post(
            f"/api/galleries/{gallery['id']}/upload-signature", headers=alice["headers"]
        )
        assert response.status_code == 503


class TestReplacePhoto:
    async def test_replace_keeps_id_and_cover(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        photo = (await upload_photos(client, alice["headers"], gallery["id"], count=1))[0]
        await client.patch(
            f"/api/galleries/{gallery['id']}/cover", json={"photoId": photo["id"]}, headers=alice["headers"]
        )

        response = await client.patch(
            f"/api/photos/{photo['id']}",
            files={"photo": ("new.jpg", JPEG_BYTES, "image/jpeg")},
            headers=alice["headers"],
        )
        assert response.status_code == 200
        replaced = response.json()
        assert replaced["id"] == photo["id"]
        assert replaced["filename"] == "new.jpg"
        assert replaced["storagePath"] != photo["storagePath"]

        storage = get_storage_service()
        assert storage.local_file(photo["storagePath"]) is None
        assert storage.local_file(replaced["storagePath"]) is not None

        detail = await client.get(f"/api/galleries/{gallery['id']}", headers=alice["headers"])
        assert detail.json()["coverPhotoId"] == photo["id"]

    async def test_replace_without_file(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        photo = (await upload_photos(client, alice["headers"], gallery["id"], count=1))[0]

        response = await client.patch(f"/api/photos/{photo['id']}", data={}, headers=alice["headers"])
        assert response.status_code == 400
        assert response.json()["field"] == "photo"

    async def test_replace_other_photographers_photo(self, client, alice, bob):
        gallery = await create_gallery(client, alice["headers"])
        photo = (await upload_photos(client, alice["headers"], gallery["id"], count=1))[0]

        response = await client.patch(
            f"/api/photos/{photo['id']}",
            files={"photo": ("new.jpg", JPEG_BYTES, "image/jpeg")},
            headers=bob["headers"],
        )
        assert response.status_code == 403


class TestDeletePhoto:
    async def test_delete(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        photo = (await upload_photos(client, alice["headers"], gallery["id"], count=1))[0]

        response = await client.delete(f"/api/photos/{photo['id']}", headers=alice["headers"])
        assert response.status_code == 200
        assert response.json() == {"message": "Photo deleted"}
        assert get_storage_service().local_file(photo["storagePath"]) is None

        detail = await client.get(f"/api/galleries/{gallery['id']}", headers=alice["headers"])
        assert detail.json()["photos"] == []

    async def test_deleting_cover_clears_it(self, client, alice):
        gallery = await create_gallery(client, alice["headers"])
        photo = (await upload_photos(client, alice["headers"], gallery["id"], count=1))[0]
        await client.patch(
            f"/api/galleries/{gallery['id']}/cover", json={"photoId": photo["id"]}, headers=alice["headers"]
        )

        await client.delete(f"/api/photos/{photo['id']}", headers=alice["headers"])

        detail = await client.get(f"/api/galleries/{gallery['id']}", headers=alice["headers"])
        assert detail.json()["coverPhotoId"] is None

    async def test_delete_unknown_photo(self, client, alice):
        response = await client.delete("/api/photos/9999", headers=alice["headers"])
        assert response.status_code == 404

    async def test_delete_other_photographers_photo(self, client, alice, bob):
        gallery = await create_gallery(client, alice["headers"])
        photo = (await upload_photos(client, alice["headers"], gallery["id"], count=1))[0]

        response = await client.delete(f"/api/photos/{photo['id']}", headers=bob["headers"])
        assert response.status_code == 403


class TestCleanFilename:
    def test_keeps_short_names(self):
        assert clean_filename("wedding.jpg") == "wedding.jpg"

    def test_strips_client_paths(self):
        assert clean_filename("C:\\Users\\me\\Pictures\\a.png") == "a.png"
        assert clean_filename("../../etc/passwd.png") == "passwd.png"

    def test_empty_name(self):
        assert clean_filename(None) == "photo"
        assert clean_filename("") == "photo"

    def test_long_name_keeps_extension(self):
        name = clean_filename("a" * 400 + ".jpeg")
        assert len(name) == MAX_FILENAME_LENGTH
        assert name.endswith(".jpeg")
