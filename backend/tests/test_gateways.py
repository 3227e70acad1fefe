"""
Unit tests for the Redis cache and S3 storage gateways.
"""

import json
from unittest.mock import MagicMock

import pytest
import redis
from botocore.exceptions import ClientError

from app.config import settings
from app.exceptions import StorageError
from app.services import cache_service, storage_service


# --- cache ---

@pytest.fixture
def redis_client(monkeypatch):
    client = MagicMock()
    monkeypatch.setattr(settings, "CACHE_ENABLED", True)
    monkeypatch.setattr(cache_service, "_client", client)
    return client


def test_cache_disabled_is_a_miss():
    assert cache_service.get("visit:1") is None
    assert cache_service.set("visit:1", {"a": 1}, 60) is False
    assert cache_service.delete("visit:1") is False


def test_cache_get_decodes_json(redis_client):
    redis_client.get.return_value = json.dumps({"status": "CHECKED_IN"})
    assert cache_service.get("visit:1") == {"status": "CHECKED_IN"}


def test_cache_get_error_is_a_miss(redis_client):
    redis_client.get.side_effect = redis.ConnectionError("down")
    assert cache_service.get("visit:1") is None


def test_cache_get_invalid_json_is_a_miss(redis_client):
    redis_client.get.return_value = "{not json"
    assert cache_service.get("visit:1") is None


def test_cache_set_serialises_with_ttl(redis_client):
    assert cache_service.set("company:1", {"name": "Acme"}, 900) is True
    key, ttl, payload = redis_client.setex.call_args.args
    assert (key, ttl) == ("company:1", 900)
    assert json.loads(payload) == {"name": "Acme"}


def test_cache_set_error_swallowed(redis_client):
    redis_client.setex.side_effect = redis.TimeoutError("slow")
    assert cache_service.set("company:1", {}, 900) is False


def test_cache_delete_error_swallowed(redis_client):
    redis_client.delete.side_effect = redis.ConnectionError("down")
    assert cache_service.delete("visit:1") is False


def test_cache_keys():
    assert cache_service.visit_key("abc") == "visit:abc"
    assert cache_service.company_key("abc") == "company:abc"


# --- storage ---

@pytest.fixture
def s3_client(monkeypatch):
    client = MagicMock()
    monkeypatch.setattr(storage_service, "_s3", client)
    monkeypatch.setattr(settings, "S3_BUCKET", "bucket")
    monkeypatch.setattr(settings, "S3_REGION", "eu-west-1")
    monkeypatch.setattr(settings, "S3_ENDPOINT_URL", None)
    monkeypatch.setattr(settings, "S3_PUBLIC_BASE_URL", None)
    return client


def test_make_key_keeps_extension():
    key = storage_service.make_key("/visits/42/", "Shop Front.JPG")
    assert key.startswith("visits/42/")
    assert key.endswith(".jpg")


def test_make_key_without_extension():
    assert storage_service.make_key("reports", None).endswith(".bin")


def test_store_returns_public_url(s3_client):
    url = storage_service.store(b"data", "image/png", "visits/1", key="visits/1/a.png")

    assert url == "https://bucket.s3.eu-west-1.amazonaws.com/visits/1/a.png"
    s3_client.put_object.assert_called_once_with(
        Bucket="bucket", Key="visits/1/a.png", Body=b"data", ContentType="image/png",
    )


def test_store_failure_raises_storage_error(s3_client):
    s3_client.put_object.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
    )
    with pytest.raises(StorageError) as exc:
        storage_service.store(b"data", "image/png", "visits/1")
    assert exc.value.status_code == 502


def test_delete_failure_returns_false(s3_client):
    s3_client.delete_object.side_effect = ClientError(
        {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "DeleteObject"
    )
    assert storage_service.delete("visits/1/a.png") is False


def test_key_from_url_round_trip(s3_client, monkeypatch):
    monkeypatch.setattr(settings, "S3_PUBLIC_BASE_URL", "https://cdn.example.com/")
    url = storage_service.public_url("visits/1/a.png")

    assert url == "https://cdn.example.com/visits/1/a.png"
    assert storage_service.key_from_url(url) == "visits/1/a.png"
    assert storage_service.key_from_url("https://elsewhere.com/visits/1/a.png") is None
