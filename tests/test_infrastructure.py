import io
import time

import fakeredis
import pytest
import redis
from fastapi import FastAPI, UploadFile
from fastapi.testclient import TestClient

from accounts.config import Settings
from accounts.core.exceptions import ValidationException
from accounts.core.middleware import setup_middleware
from accounts.infrastructure.cache import NullListCache, RedisListCache, build_list_cache
from accounts.infrastructure.rate_limiter import build_limiter
from accounts.infrastructure.storage import LocalImageStorage


def upload(name, content):
    return UploadFile(file=io.BytesIO(content), filename=name)


def limited_client(limiter):
    app = FastAPI()
    setup_middleware(app, limiter)

    @app.get("/ping")
    def ping():
        return {"ok": True}

    return TestClient(app)


@pytest.fixture
def limiter():
    return build_limiter(Settings(REDIS_URL="memory://", RATE_LIMIT_REQUESTS=2, RATE_LIMIT_WINDOW_SECONDS=1))


@pytest.fixture
def redis_cache():
    return RedisListCache("redis://unused", default_ttl=60, client=fakeredis.FakeRedis(decode_responses=True))


def test_rate_limit_returns_429_envelope(limiter):
    client = limited_client(limiter)
    assert client.get("/ping").status_code == 200
    assert client.get("/ping").status_code == 200

    response = client.get("/ping")
    assert response.status_code == 429
    assert response.headers["Retry-After"] == "1"
    assert response.json()["message"] == "Too many requests"
    assert response.json()["statusCode"] == 429
    assert "X-Request-ID" in response.headers


def test_rate_limit_window_rolls_over(limiter):
    client = limited_client(limiter)
    for _ in range(2):
        client.get("/ping")
    assert client.get("/ping").status_code == 429

    time.sleep(1.1)

    assert client.get("/ping").status_code == 200


def test_rate_limit_lets_requests_through_when_storage_fails(limiter, monkeypatch):
    def unavailable(*args, **kwargs):
        raise redis.ConnectionError("redis down")

    monkeypatch.setattr(limiter._limiter, "hit", unavailable)
    client = limited_client(limiter)

    assert [client.get("/ping").status_code for _ in range(5)] == [200] * 5


def test_rate_limit_disabled_without_redis_url():
    limiter = build_limiter(Settings(REDIS_URL="", RATE_LIMIT_REQUESTS=1))
    client = limited_client(limiter)

    assert not limiter.enabled
    assert [client.get("/ping").status_code for _ in range(3)] == [200] * 3


def test_storage_saves_and_deletes(tmp_path):
    storage = LocalImageStorage(str(tmp_path), {"png"}, max_bytes=1024)

    url = storage.save(upload("Face.PNG", b"png-bytes"), "http://localhost:8000/")

    assert url.startswith("http://localhost:8000/uploads/")
    assert url.endswith(".png")
    assert len(list(tmp_path.rglob("*.png"))) == 1
    assert storage.delete(url) is True
    assert list(tmp_path.rglob("*.png")) == []
    assert storage.delete(url) is False


@pytest.mark.parametrize("name,content", [("face.gif", b"x"), ("noextension", b"x"), ("face.png", b"x" * 2048)])
def test_storage_rejects_invalid_files(tmp_path, name, content):
    storage = LocalImageStorage(str(tmp_path), {"png"}, max_bytes=1024)

    with pytest.raises(ValidationException) as exc:
        storage.save(upload(name, content), "http://localhost/")

    assert exc.value.status_code == 422
    assert list(tmp_path.rglob("*")) == []


def test_storage_ignores_paths_outside_its_root(tmp_path):
    storage = LocalImageStorage(str(tmp_path / "uploads"), {"png"}, max_bytes=1024)
    outside = tmp_path / "secret.png"
    outside.write_bytes(b"keep")

    assert storage.delete("http://localhost/uploads/../secret.png") is False
    assert storage.delete("http://localhost/elsewhere/secret.png") is False
    assert outside.exists()


def test_list_cache_disabled_without_redis_url():
    cache = build_list_cache("", 60)

    assert isinstance(cache, NullListCache)
    assert cache.set("users:list:page:1", {"data": []}) is False
    assert cache.get("users:list:page:1") is None
    assert cache.delete_prefix("users:list:") == 0


def test_redis_list_cache_round_trip(redis_cache):
    assert redis_cache.set("users:list:page:1", {"data": [1, 2]}) is True

    assert redis_cache.get("users:list:page:1") == {"data": [1, 2]}
    assert 0 < redis_cache._client.ttl("users:list:page:1") <= 60


def test_redis_list_cache_treats_bad_json_as_miss(redis_cache):
    redis_cache._client.set("users:list:page:1", "{not json")

    assert redis_cache.get("users:list:page:1") is None


def test_redis_list_cache_treats_redis_errors_as_miss(redis_cache, monkeypatch):
    def unavailable(*args, **kwargs):
        raise redis.ConnectionError("redis down")

    monkeypatch.setattr(redis_cache._client, "get", unavailable)
    monkeypatch.setattr(redis_cache._client, "setex", unavailable)

    assert redis_cache.get("users:list:page:1") is None
    assert redis_cache.set("users:list:page:1", {"data": []}) is False


def test_redis_list_cache_deletes_by_prefix(redis_cache):
    redis_cache.set("users:list:page:1", {"data": []})
    redis_cache.set("users:list:page:2", {"data": []})
    redis_cache._client.set("sessions:1", "keep")

    assert redis_cache.delete_prefix("users:list:") == 2
    assert redis_cache.get("users:list:page:1") is None
    assert redis_cache._client.get("sessions:1") == "keep"
