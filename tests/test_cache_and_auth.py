from __future__ import annotations

from typing import Any, List

import httpx
import pytest
from fastapi import HTTPException

from reverie.apps.api.core import cache
from reverie.apps.api.deps.auth import get_current_user_id
from reverie.libs.schemas import get_settings


class FakeRedis:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.deleted: List[str] = []

    async def delete(self, *keys: str) -> int:
        if self.fail:
            raise ConnectionError("redis down")
        self.deleted.extend(keys)
        return len(keys)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.mark.asyncio
async def test_invalidate_analyses_drops_every_kind(monkeypatch: pytest.MonkeyPatch) -> None:
    redis = FakeRedis()

    async def fake_get_redis() -> FakeRedis:
        return redis

    monkeypatch.setattr(cache, "_get_redis", fake_get_redis)
    assert await cache.invalidate_analyses("user-1") is True
    assert redis.deleted == [
        "analysis:themes:user-1",
        "analysis:topics:user-1",
        "analysis:correlations:user-1",
    ]


@pytest.mark.asyncio
async def test_invalidate_analyses_swallows_cache_outage(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_get_redis() -> FakeRedis:
        return FakeRedis(fail=True)

    monkeypatch.setattr(cache, "_get_redis", fake_get_redis)
    assert await cache.invalidate_analyses("user-1") is False


def _mock_auth(monkeypatch: pytest.MonkeyPatch, handler) -> List[httpx.Request]:
    seen: List[httpx.Request] = []
    real_client = httpx.AsyncClient

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    def factory(*args: Any, **kwargs: Any) -> httpx.AsyncClient:
        return real_client(*args, transport=httpx.MockTransport(recording), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", factory)
    return seen


@pytest.mark.asyncio
async def test_bearer_token_resolves_user(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_URL", "http://auth.test/")
    monkeypatch.setenv("AUTH_API_KEY", "anon-key")
    seen = _mock_auth(monkeypatch, lambda request: httpx.Response(200, json={"id": "user-99"}))

    assert await get_current_user_id("Bearer abc") == "user-99"
    assert str(seen[0].url) == "http://auth.test/auth/v1/user"
    assert seen[0].headers["Authorization"] == "Bearer abc"
    assert seen[0].headers["apikey"] == "anon-key"


@pytest.mark.asyncio
async def test_rejected_token_falls_back_to_demo_user(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.setenv("DEMO_USER_ID", "demo-user")
    _mock_auth(monkeypatch, lambda request: httpx.Response(401, json={"msg": "bad jwt"}))

    assert await get_current_user_id("Bearer expired") == "demo-user"


@pytest.mark.asyncio
async def test_missing_credentials_raise_401(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DEMO_MODE", raising=False)
    monkeypatch.delenv("REVERIE_DEMO_MODE", raising=False)

    with pytest.raises(HTTPException) as excinfo:
        await get_current_user_id(None)
    assert excinfo.value.status_code == 401
