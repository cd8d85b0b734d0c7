"""
Venue Gallery Backend — API Endpoint Tests
===========================================

What:  End-to-end tests through the FastAPI app: routing, validation, the
       JSON envelope, status codes and error translation.
How:   HTTPX AsyncClient over ASGITransport; in-memory SQLite and the
       in-memory asset host replace PostgreSQL and Cloudinary.

What we test:
    ✅ Category CRUD, conflict (409), malformed id (400), unknown id (404)
    ✅ Multipart upload, upload validation (400, no remote call)
    ✅ Form text trimmed before length checks; content-based type check
    ✅ Upload with a new category
    ✅ Batch uploads: 10-file cap, all-or-nothing on failure, new category
    ✅ Listing pagination and limit bounds
    ✅ Image patch / delete, category cascade delete summary
    ✅ Health, API index, unknown routes, X-Request-ID
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.exceptions import ValidationError
from app.routes.images import _read_upload
from app.services.file_service import FileService

UNKNOWN_ID = "0123456789abcdef01234567"


async def create_category(client, name="Outdoor Venues", description=None) -> dict:
    body = {"name": name}
    if description is not None:
        body["description"] = description
    response = await client.post("/api/categories", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def upload_image(client, category_id, image_bytes, title="Sunset Shot", **form) -> dict:
    response = await client.post(
        "/api/images",
        data={"title": title, "category": category_id, **form},
        files={"image": ("sunset.jpg", image_bytes, "image/jpeg")},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCategoryEndpoints:
    """Tests for /api/categories."""

    @pytest.mark.asyncio
    async def test_create_and_fetch(self, test_client):
        response = await test_client.post(
            "/api/categories", json={"name": "Outdoor Venues", "description": "Lawns"}
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Category created successfully"
        data = body["data"]
        assert data["name"] == "outdoor venues"
        assert data["slug"] == "outdoor-venues"
        assert data["imageCount"] == 0
        assert data["isActive"] is True

        response = await test_client.get(f"/api/categories/{data['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["id"] == data["id"]

    @pytest.mark.asyncio
    async def test_duplicate_name_returns_409(self, test_client):
        await create_category(test_client, "Outdoor Venues")
        response = await test_client.post("/api/categories", json={"name": "outdoor venues"})
        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "Category name already exists"}

    @pytest.mark.asyncio
    async def test_name_too_short_returns_400(self, test_client):
        response = await test_client.post("/api/categories", json={"name": "x"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert body["errors"][0]["field"] == "name"

    @pytest.mark.asyncio
    async def test_malformed_id_returns_400(self, test_client):
        response = await test_client.get("/api/categories/not-an-id")
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid id format"

    @pytest.mark.asyncio
    async def test_unknown_id_returns_404(self, test_client):
        response = await test_client.get(f"/api/categories/{UNKNOWN_ID}")
        assert response.status_code == 404
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_list_search_name_slug_and_stats(self, test_client):
        await create_category(test_client, "Outdoor Venues", "Gardens")
        await create_category(test_client, "Banquet", "Indoor halls")

        listing = (await test_client.get("/api/categories")).json()["data"]
        assert [c["name"] for c in listing] == ["banquet", "outdoor venues"]

        found = (await test_client.get("/api/categories/search", params={"q": "indoor"})).json()
        assert [c["name"] for c in found["data"]] == ["banquet"]

        by_name = await test_client.get("/api/categories/name/Door")
        assert by_name.json()["data"]["name"] == "outdoor venues"

        by_slug = await test_client.get("/api/categories/slug/outdoor-venues")
        assert by_slug.status_code == 200

        stats = (await test_client.get("/api/categories/stats")).json()["data"]
        assert stats == {"totalCategories": 2, "totalImages": 0, "averageImagesPerCategory": 0.0}

    @pytest.mark.asyncio
    async def test_search_requires_term(self, test_client):
        response = await test_client.get("/api/categories/search")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_patch_renames(self, test_client):
        category = await create_category(test_client, "Grand Hall")
        response = await test_client.patch(
            f"/api/categories/{category['id']}", json={"name": "Royal Ballroom"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["slug"] == "royal-ballroom"

    @pytest.mark.asyncio
    async def test_patch_collision_returns_409(self, test_client):
        await create_category(test_client, "Banquet")
        other = await create_category(test_client, "Garden")
        response = await test_client.patch(f"/api/categories/{other['id']}", json={"name": "Banquet"})
        assert response.status_code == 409


class TestImageUpload:
    """Tests for POST /api/images and /api/images/with-category."""

    @pytest.mark.asyncio
    async def test_upload_then_category_count(self, test_client, sample_image_bytes):
        """Outdoor Venues + one uploaded Sunset Shot → imageCount 1, 200 on fetch."""
        category = await create_category(test_client, "Outdoor Venues")

        image = await upload_image(
            test_client, category["id"], sample_image_bytes,
            description="Golden hour", tags="garden, evening", isFeatured="true",
        )
        assert image["title"] == "Sunset Shot"
        assert image["categoryId"] == category["id"]
        assert image["tags"] == ["garden", "evening"]
        assert image["isFeatured"] is True
        assert image["originalFileName"] == "sunset.jpg"

        refreshed = (await test_client.get(f"/api/categories/{category['id']}")).json()["data"]
        assert refreshed["imageCount"] == 1

        response = await test_client.get(f"/api/images/{image['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["viewCount"] == 1

    @pytest.mark.asyncio
    async def test_invalid_mime_type_rejected_before_upload(self, test_client, asset_host):
        category = await create_category(test_client)
        response = await test_client.post(
            "/api/images",
            data={"title": "Menu", "category": category["id"]},
            files={"image": ("menu.jpg", b"%PDF-1.4", "application/pdf")},
        )
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid file type")
        assert asset_host.uploads == []

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, test_client, asset_host):
        category = await create_category(test_client)
        response = await test_client.post(
            "/api/images",
            data={"title": "Blank", "category": category["id"]},
            files={"image": ("blank.png", b"", "image/png")},
        )
        assert response.status_code == 400
        assert asset_host.uploads == []

    @pytest.mark.asyncio
    async def test_missing_file_rejected(self, test_client, asset_host):
        category = await create_category(test_client)
        response = await test_client.post(
            "/api/images", data={"title": "Nothing", "category": category["id"]}
        )
        assert response.status_code == 400
        assert response.json()["message"] == "No file uploaded"
        assert asset_host.uploads == []

    @pytest.mark.asyncio
    async def test_overlong_tag_rejected(self, test_client, asset_host, sample_image_bytes):
        category = await create_category(test_client)
        response = await test_client.post(
            "/api/images",
            data={"title": "Tagged", "category": category["id"], "tags": "x" * 31},
            files={"image": ("a.jpg", sample_image_bytes, "image/jpeg")},
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "tags"
        assert asset_host.uploads == []

    @pytest.mark.asyncio
    async def test_unknown_category_returns_404(self, test_client, asset_host, sample_image_bytes):
        response = await test_client.post(
            "/api/images",
            data={"title": "Orphan", "category": UNKNOWN_ID},
            files={"image": ("a.jpg", sample_image_bytes, "image/jpeg")},
        )
        assert response.status_code == 404
        assert asset_host.uploads == []

    @pytest.mark.asyncio
    async def test_remote_failure_returns_500(self, test_client, asset_host, sample_image_bytes):
        category = await create_category(test_client)
        asset_host.fail_upload = True
        response = await test_client.post(
            "/api/images",
            data={"title": "Lost", "category": category["id"]},
            files={"image": ("a.jpg", sample_image_bytes, "image/jpeg")},
        )
        assert response.status_code == 500
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_upload_with_new_category(self, test_client, png_bytes):
        response = await test_client.post(
            "/api/images/with-category",
            data={"title": "Skyline", "categoryName": "Rooftop Terrace", "categoryDescription": "Views"},
            files={"image": ("sky.png", png_bytes, "image/png")},
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["category"]["name"] == "rooftop terrace"
        assert data["category"]["imageCount"] == 1
        assert data["image"]["categoryId"] == data["category"]["id"]

    @pytest.mark.asyncio
    async def test_blank_title_rejected_after_trimming(self, test_client, asset_host, sample_image_bytes):
        category = await create_category(test_client)
        response = await test_client.post(
            "/api/images",
            data={"title": "   ", "category": category["id"]},
            files={"image": ("a.jpg", sample_image_bytes, "image/jpeg")},
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "title"
        assert asset_host.uploads == []

    @pytest.mark.asyncio
    async def test_title_is_trimmed(self, test_client, sample_image_bytes):
        category = await create_category(test_client)
        image = await upload_image(test_client, category["id"], sample_image_bytes, title="  Lawn  ")
        assert image["title"] == "Lawn"

    @pytest.mark.asyncio
    async def test_padded_short_category_name_rejected(self, test_client, asset_host, png_bytes):
        response = await test_client.post(
            "/api/images/with-category",
            data={"title": "Skyline", "categoryName": "  a  "},
            files={"image": ("sky.png", png_bytes, "image/png")},
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "categoryName"
        assert asset_host.uploads == []
        listing = (await test_client.get("/api/categories")).json()["data"]
        assert listing == []

    @pytest.mark.asyncio
    async def test_renamed_text_file_rejected(self, test_client, asset_host):
        category = await create_category(test_client)
        response = await test_client.post(
            "/api/images",
            data={"title": "Menu", "category": category["id"]},
            files={"image": ("menu.jpg", b"Starters: soup, salad\n", "image/jpeg")},
        )
        assert response.status_code == 400
        assert response.json()["message"].startswith("File content type")
        assert asset_host.uploads == []

    @pytest.mark.asyncio
    async def test_oversized_upload_is_not_read(self):
        upload = MagicMock()
        upload.filename = "huge.jpg"
        upload.content_type = "image/jpeg"
        upload.size = 20 * 1024 * 1024
        upload.read = AsyncMock(return_value=b"")
        file_service = FileService(allowed_types=["image/jpeg"], max_file_size=5 * 1024 * 1024)

        with pytest.raises(ValidationError, match="File size too large"):
            await _read_upload(upload, file_service)
        upload.read.assert_not_awaited()


def _batch_files(image_bytes, count):
    return [("images", (f"hall-{i}.jpg", image_bytes, "image/jpeg")) for i in range(count)]


class TestBatchUpload:
    """Tests for POST /api/images/batch and /api/images/batch/with-category."""

    @pytest.mark.asyncio
    async def test_batch_into_existing_category(self, test_client, sample_image_bytes):
        category = await create_category(test_client, "Banquet")
        response = await test_client.post(
            "/api/images/batch",
            data={"category": category["id"], "tags": "indoor"},
            files=_batch_files(sample_image_bytes, 3),
        )
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        assert data["totalImages"] == 3
        assert [image["title"] for image in data["images"]] == ["hall-0", "hall-1", "hall-2"]
        assert all(image["tags"] == ["indoor"] for image in data["images"])
        assert data["category"]["imageCount"] == 3

        refreshed = (await test_client.get(f"/api/categories/{category['id']}")).json()["data"]
        assert refreshed["imageCount"] == 3

    @pytest.mark.asyncio
    async def test_eleven_files_rejected(self, test_client, asset_host, sample_image_bytes):
        category = await create_category(test_client)
        response = await test_client.post(
            "/api/images/batch",
            data={"category": category["id"]},
            files=_batch_files(sample_image_bytes, 11),
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Maximum 10 images allowed"
        assert asset_host.uploads == []

    @pytest.mark.asyncio
    async def test_ten_files_accepted(self, test_client, sample_image_bytes):
        category = await create_category(test_client)
        response = await test_client.post(
            "/api/images/batch",
            data={"category": category["id"]},
            files=_batch_files(sample_image_bytes, 10),
        )
        assert response.status_code == 201
        assert response.json()["data"]["totalImages"] == 10

    @pytest.mark.asyncio
    async def test_no_files_rejected(self, test_client, asset_host):
        category = await create_category(test_client)
        response = await test_client.post("/api/images/batch", data={"category": category["id"]})
        assert response.status_code == 400
        assert asset_host.uploads == []

    @pytest.mark.asyncio
    async def test_one_invalid_file_rejects_whole_batch(
        self, test_client, asset_host, sample_image_bytes
    ):
        category = await create_category(test_client)
        files = _batch_files(sample_image_bytes, 2)
        files.append(("images", ("notes.jpg", b"just text", "image/jpeg")))
        response = await test_client.post(
            "/api/images/batch", data={"category": category["id"]}, files=files
        )
        assert response.status_code == 400
        assert asset_host.uploads == []

    @pytest.mark.asyncio
    async def test_remote_failure_midway_leaves_nothing(
        self, test_client, asset_host, sample_image_bytes
    ):
        category = await create_category(test_client)
        asset_host.fail_upload_after = 1
        response = await test_client.post(
            "/api/images/batch",
            data={"category": category["id"]},
            files=_batch_files(sample_image_bytes, 3),
        )
        assert response.status_code == 500
        assert response.json()["success"] is False

        assert len(asset_host.deleted) == 1
        assert asset_host.assets == {}
        listing = (await test_client.get("/api/images")).json()
        assert listing["data"] == []
        refreshed = (await test_client.get(f"/api/categories/{category['id']}")).json()["data"]
        assert refreshed["imageCount"] == 0

    @pytest.mark.asyncio
    async def test_batch_with_new_category(self, test_client, sample_image_bytes, png_bytes):
        files = _batch_files(sample_image_bytes, 1)
        files.append(("images", ("skyline.png", png_bytes, "image/png")))
        response = await test_client.post(
            "/api/images/batch/with-category",
            data={"categoryName": " Rooftop Terrace ", "categoryDescription": "Views"},
            files=files,
        )
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        assert data["category"]["name"] == "rooftop terrace"
        assert data["category"]["imageCount"] == 2
        assert data["totalImages"] == 2
        assert {image["categoryId"] for image in data["images"]} == {data["category"]["id"]}

    @pytest.mark.asyncio
    async def test_batch_with_new_category_over_cap_creates_nothing(
        self, test_client, asset_host, sample_image_bytes
    ):
        response = await test_client.post(
            "/api/images/batch/with-category",
            data={"categoryName": "Rooftop Terrace"},
            files=_batch_files(sample_image_bytes, 11),
        )
        assert response.status_code == 400
        assert asset_host.uploads == []
        assert (await test_client.get("/api/categories")).json()["data"] == []


class TestImageListing:
    """Tests for listing, pagination, homepage, featured, search, stats."""

    @pytest.mark.asyncio
    async def test_pagination(self, test_client, sample_image_bytes):
        category = await create_category(test_client)
        for i in range(25):
            await upload_image(test_client, category["id"], sample_image_bytes, title=f"Shot {i}")

        response = await test_client.get("/api/images", params={"page": 2, "limit": 10})
        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 10
        assert body["pagination"] == {
            "page": 2,
            "limit": 10,
            "total": 25,
            "totalPages": 3,
            "hasNext": True,
            "hasPrev": True,
        }

    @pytest.mark.asyncio
    async def test_limit_above_100_rejected(self, test_client):
        response = await test_client.get("/api/images", params={"limit": 101})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "limit"

    @pytest.mark.asyncio
    async def test_invalid_sort_rejected(self, test_client):
        response = await test_client.get("/api/images", params={"sortBy": "fileSize"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_homepage_featured_search_stats(self, test_client, sample_image_bytes):
        garden = await create_category(test_client, "Garden")
        await create_category(test_client, "Banquet")
        await upload_image(test_client, garden["id"], sample_image_bytes, title="Sunset Shot", isFeatured="true")
        await upload_image(test_client, garden["id"], sample_image_bytes, title="Fountain", tags="water")

        homepage = (await test_client.get("/api/images/homepage")).json()["data"]
        assert [s["category"]["name"] for s in homepage] == ["banquet", "garden"]
        assert len(homepage[1]["images"]) == 2
        assert set(homepage[1]["images"][0]) == {"id", "title", "imageUrl", "thumbnailUrl", "createdAt"}

        featured = (await test_client.get("/api/images/featured")).json()["data"]
        assert [i["title"] for i in featured] == ["Sunset Shot"]

        by_category = (await test_client.get("/api/images/category/gard")).json()["data"]
        assert len(by_category) == 2

        search = (await test_client.get("/api/images/search", params={"q": "water"})).json()
        assert [i["title"] for i in search["data"]] == ["Fountain"]
        assert search["pagination"]["total"] == 1

        stats = (await test_client.get("/api/images/stats")).json()["data"]
        assert stats["totalImages"] == 2
        assert stats["featuredImages"] == 1


class TestImageMutations:
    """Tests for PATCH / DELETE on images and the category cascade."""

    @pytest.mark.asyncio
    async def test_patch_image(self, test_client, sample_image_bytes):
        category = await create_category(test_client)
        image = await upload_image(test_client, category["id"], sample_image_bytes)

        response = await test_client.patch(
            f"/api/images/{image['id']}", json={"title": "Evening", "tags": ["lights"], "isFeatured": True}
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Evening"
        assert data["tags"] == ["lights"]
        assert data["isFeatured"] is True

    @pytest.mark.asyncio
    async def test_patch_to_unknown_category_returns_404(self, test_client, sample_image_bytes):
        category = await create_category(test_client)
        image = await upload_image(test_client, category["id"], sample_image_bytes)
        response = await test_client.patch(f"/api/images/{image['id']}", json={"category": UNKNOWN_ID})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_image(self, test_client, asset_host, sample_image_bytes):
        category = await create_category(test_client)
        image = await upload_image(test_client, category["id"], sample_image_bytes)

        response = await test_client.delete(f"/api/images/{image['id']}")
        assert response.status_code == 200
        assert response.json()["data"] == {"title": "Sunset Shot", "assetId": image["assetId"]}
        assert asset_host.deleted == [image["assetId"]]

        assert (await test_client.get(f"/api/images/{image['id']}")).status_code == 404
        refreshed = (await test_client.get(f"/api/categories/{category['id']}")).json()["data"]
        assert refreshed["imageCount"] == 0

    @pytest.mark.asyncio
    async def test_delete_image_remote_failure_keeps_row(self, test_client, asset_host, sample_image_bytes):
        category = await create_category(test_client)
        image = await upload_image(test_client, category["id"], sample_image_bytes)
        asset_host.fail_delete = {image["assetId"]}

        response = await test_client.delete(f"/api/images/{image['id']}")
        assert response.status_code == 500
        assert (await test_client.get(f"/api/images/{image['id']}")).status_code == 200

    @pytest.mark.asyncio
    async def test_delete_category_cascade(self, test_client, asset_host, sample_image_bytes):
        category = await create_category(test_client, "Outdoor Venues")
        images = [
            await upload_image(test_client, category["id"], sample_image_bytes, title=f"Shot {i}")
            for i in range(2)
        ]
        asset_host.fail_delete = {images[0]["assetId"]}

        response = await test_client.delete(f"/api/categories/{category['id']}")
        assert response.status_code == 200
        assert response.json()["data"] == {
            "category": "outdoor venues",
            "deletedImagesCount": 2,
            "failedAssetDeletions": [images[0]["assetId"]],
        }

        assert (await test_client.get(f"/api/categories/{category['id']}")).status_code == 404
        assert (await test_client.get(f"/api/images/{images[1]['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_recount(self, test_client, sample_image_bytes):
        category = await create_category(test_client)
        await upload_image(test_client, category["id"], sample_image_bytes)

        response = await test_client.post(f"/api/categories/{category['id']}/recount")
        assert response.status_code == 200
        assert response.json()["data"]["imageCount"] == 1


class TestOperationalEndpoints:
    """Tests for /health, /, unknown routes and request ids."""

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Server is healthy"
        assert body["data"]["status"] == "ok"
        assert body["data"]["environment"] == "test"
        assert "uptimeSeconds" in body["data"]

    @pytest.mark.asyncio
    async def test_index(self, test_client):
        body = (await test_client.get("/")).json()
        assert body["endpoints"]["categories"] == "/api/categories"

    @pytest.mark.asyncio
    async def test_unknown_route(self, test_client):
        response = await test_client.get("/api/nope")
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Route /api/nope not found"}

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "abc12345"})
        assert response.headers["X-Request-ID"] == "abc12345"
