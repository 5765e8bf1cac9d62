from __future__ import annotations

import pytest

from core.settings import get_settings
from core.storage import StorageManager
from core.storage.b2_provider import B2StorageApi


@pytest.mark.asyncio
async def test_shutdown_closes_provider_and_clears_instance(storage_manager, fake_api):
    assert StorageManager.get_instance() is storage_manager

    await StorageManager.shutdown()

    assert fake_api.closed is True
    assert StorageManager._instance is None


@pytest.mark.asyncio
async def test_configure_from_settings_builds_b2_provider(monkeypatch):
    monkeypatch.setenv("B2_BUCKET_NAME", "media")
    monkeypatch.setenv("B2_AUTH_COOLDOWN_SECONDS", "5")
    get_settings.cache_clear()
    try:
        manager = StorageManager.configure_from_settings()

        assert isinstance(manager.api, B2StorageApi)
        assert manager.bucket_name == "media"
        assert manager.authorizer.cooldown_remaining() == 0.0
        assert StorageManager.get_instance() is manager
    finally:
        await StorageManager.shutdown()
        get_settings.cache_clear()
