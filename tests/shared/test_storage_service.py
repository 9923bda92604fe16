import pytest
from botocore.stub import ANY, Stubber

from shared.errors import FunctionError
from shared.storage_service import StorageService


@pytest.fixture
def storage():
    return StorageService()


def test_object_names_share_a_stem(storage, test_user):
    original, final = storage.build_object_names(test_user["id"])

    assert original.startswith(f"{test_user['id']}/")
    assert original == final.replace(".png", "_original.png")


@pytest.mark.asyncio
async def test_upload_returns_public_url(storage):
    with Stubber(storage.client) as stubber:
        stubber.add_response(
            "put_object",
            {},
            {
                "Bucket": "generations",
                "Key": "user-1/1_abc.png",
                "Body": b"png",
                "ContentType": "image/png",
                "CacheControl": ANY,
                "Metadata": {"config_hash": "h"},
            },
        )
        url = await storage.upload_png("user-1/1_abc.png", b"png", {"config_hash": "h"})

    assert url == "https://cdn.characterforge.test/user-1/1_abc.png"


@pytest.mark.asyncio
async def test_upload_failure_is_storage_error(storage):
    with Stubber(storage.client) as stubber:
        stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(FunctionError) as exc_info:
            await storage.upload_png("user-1/x.png", b"png")

    assert exc_info.value.code == "STORAGE_ERROR"


@pytest.mark.asyncio
async def test_delete_user_assets_reports_partial_failures(storage):
    with Stubber(storage.client) as stubber:
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "user-1/a.png"}, {"Key": "user-1/b.png"}]},
            {"Bucket": "generations", "Prefix": "user-1/"},
        )
        stubber.add_response(
            "delete_objects",
            {"Errors": [{"Key": "user-1/b.png", "Code": "InternalError", "Message": "try again"}]},
        )
        summary = await storage.delete_user_assets("user-1")

    assert summary["deleted"] == 1
    assert summary["errors"] == ["Failed to delete user-1/b.png: try again"]


@pytest.mark.asyncio
async def test_delete_user_assets_walks_every_listing_page(storage):
    with Stubber(storage.client) as stubber:
        stubber.add_response(
            "list_objects_v2",
            {
                "Contents": [{"Key": "user-1/a.png"}],
                "IsTruncated": True,
                "NextContinuationToken": "page-2",
            },
            {"Bucket": "generations", "Prefix": "user-1/"},
        )
        stubber.add_response(
            "delete_objects",
            {},
            {"Bucket": "generations", "Delete": {"Objects": [{"Key": "user-1/a.png"}]}},
        )
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "user-1/b.png"}], "IsTruncated": False},
            {"Bucket": "generations", "Prefix": "user-1/", "ContinuationToken": "page-2"},
        )
        stubber.add_response(
            "delete_objects",
            {},
            {"Bucket": "generations", "Delete": {"Objects": [{"Key": "user-1/b.png"}]}},
        )
        summary = await storage.delete_user_assets("user-1")
        stubber.assert_no_pending_responses()

    assert summary == {"deleted": 2, "errors": []}


def test_missing_configuration_is_rejected(monkeypatch):
    monkeypatch.delenv("STORAGE_PUBLIC_URL")

    with pytest.raises(ValueError):
        StorageService()
