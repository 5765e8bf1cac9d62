from __future__ import annotations

import asyncio
import gc

import pytest

from core.errors import ConfigError, NotFoundError, TransportError, UnauthorizedSignal


@pytest.mark.asyncio
async def test_resolves_exact_case_sensitive_match_once(make_manager, fake_api):
    manager = make_manager()

    first = await manager.resolver.resolve_bucket_id("media")
    second = await manager.resolver.resolve_bucket_id("media")

    assert first == second == "bucket-media"
    assert fake_api.count("list_buckets") == 1
    assert fake_api.count("authorize_account") == 1


@pytest.mark.asyncio
async def test_concurrent_resolutions_share_one_lookup(make_manager, fake_api):
    manager = make_manager()
    fake_api.authorize_delay = 0.01

    ids = await asyncio.gather(*(manager.resolver.resolve_bucket_id("media") for _ in range(5)))

    assert set(ids) == {"bucket-media"}
    assert fake_api.count("list_buckets") == 1


@pytest.mark.asyncio
async def test_cached_id_survives_token_invalidation(make_manager, fake_api):
    manager = make_manager()
    await manager.resolver.resolve_bucket_id("media")

    manager.authorizer.invalidate()
    bucket_id = await manager.resolver.resolve_bucket_id("media")

    assert bucket_id == "bucket-media"
    assert fake_api.count("authorize_account") == 1
    assert fake_api.count("list_buckets") == 1


@pytest.mark.asyncio
async def test_bucket_scoped_key_skips_listing(make_manager, fake_api):
    fake_api.allowed = {"bucketId": "bucket-scoped", "bucketName": "media"}
    manager = make_manager()

    bucket_id = await manager.resolver.resolve_bucket_id("media")

    assert bucket_id == "bucket-scoped"
    assert fake_api.count("list_buckets") == 0


@pytest.mark.asyncio
async def test_unknown_bucket_is_not_found(make_manager):
    manager = make_manager()

    with pytest.raises(NotFoundError) as exc_info:
        await manager.resolver.resolve_bucket_id("MEDIA")

    assert "MEDIA" in exc_info.value.message
    assert manager.session.bucket_id is None


@pytest.mark.asyncio
async def test_missing_bucket_name_is_config_error(make_manager, fake_api):
    manager = make_manager(bucket_name=None)

    with pytest.raises(ConfigError) as exc_info:
        await manager.resolver.resolve_bucket_id(None)

    assert exc_info.value.missing == ["B2_BUCKET_NAME"]
    assert fake_api.calls == []


@pytest.mark.asyncio
async def test_rejected_bucket_listing_drops_token_and_signals_caller(make_manager, fake_api):
    manager = make_manager()
    await manager.authorizer.ensure_authorized()
    fake_api.expire_tokens()

    with pytest.raises(UnauthorizedSignal):
        await manager.resolver.resolve_bucket_id("media")

    assert manager.session.token is None


@pytest.mark.asyncio
async def test_failed_lookup_with_cancelled_waiters_is_not_reported(make_manager, fake_api):
    manager = make_manager()
    fake_api.authorize_delay = 0.01
    fake_api.authorize_error = TransportError("connection refused")
    loop = asyncio.get_running_loop()
    reported: list[dict] = []
    loop.set_exception_handler(lambda _loop, context: reported.append(context))
    try:
        waiter = asyncio.ensure_future(manager.resolver.resolve_bucket_id("media"))
        await asyncio.sleep(0)
        waiter.cancel()
        await asyncio.sleep(0.05)

        del waiter
        gc.collect()
    finally:
        loop.set_exception_handler(None)

    assert fake_api.count("authorize_account") == 1
    assert reported == []
