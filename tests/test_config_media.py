from __future__ import annotations

import asyncio

import together.services.media as media_mod
from together.config import SyncSettings


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("BACKEND_URL", " http://rooms.example:4000/ ")
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://a,http://b")
    monkeypatch.setenv("SEEK_JUMP_THRESHOLD_S", "2.5")
    monkeypatch.setenv("SEEK_EMIT_COOLDOWN_MS", "not-a-number")
    monkeypatch.setenv("RESOLVE_METADATA", "false")

    settings = SyncSettings.from_env()

    assert settings.backend_url == "http://rooms.example:4000"
    assert settings.allowed_origins == ["http://a", "http://b"]
    assert settings.seek_jump_threshold_s == 2.5
    assert settings.seek_emit_cooldown_ms == 900
    assert settings.resolve_metadata is False


def test_default_settle_windows_keep_ambient_shortest():
    s = SyncSettings()
    assert s.ambient_settle_ms == 350
    assert min(s.event_settle_ms, s.room_state_settle_ms, s.video_change_settle_ms) >= s.ambient_settle_ms


class _FakeYDL:
    def __init__(self, opts):
        self.opts = opts

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def extract_info(self, url, download=False):
        assert url.endswith("v=abc123")
        assert download is False
        return {
            "id": "abc123",
            "title": "Some Talk",
            "channel": "Some Channel",
            "channel_id": "UC1",
            "thumbnail": "http://img/abc.jpg",
        }


class _BrokenYDL(_FakeYDL):
    def extract_info(self, url, download=False):
        raise RuntimeError("Video unavailable")


def test_resolve_video_builds_video_ref(monkeypatch):
    monkeypatch.setattr(media_mod, "YoutubeDL", _FakeYDL)

    video = asyncio.run(media_mod.resolve_video("abc123"))

    assert video.video_id == "abc123"
    assert video.title == "Some Talk"
    assert video.channel_title == "Some Channel"
    assert video.channel_id == "UC1"


def test_resolve_video_failure_returns_none(monkeypatch):
    monkeypatch.setattr(media_mod, "YoutubeDL", _BrokenYDL)

    assert asyncio.run(media_mod.resolve_video("abc123")) is None
    assert asyncio.run(media_mod.resolve_video("")) is None
