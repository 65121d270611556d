"""Tests for asset fetching and the load boundary."""

import pytest
import requests

from gifdrift.content import loader as loader_mod
from gifdrift.content.frames import DecodeError
from gifdrift.content.loader import AssetLoader, FetchError, fetch_asset, is_url
from gifdrift.engine.pool import InstancePool
from gifdrift.engine.tween import Tweener
from gifdrift.scene.geometry import Material, PlaneGeometry
from gifdrift.scene.graph import Scene


class _FakeResponse:
    def __init__(self, status_code=200, content=b""):
        self.status_code = status_code
        self.content = content

    @property
    def ok(self):
        return 200 <= self.status_code < 400


@pytest.fixture
def fake_get(monkeypatch):
    calls = []

    def install(response=None, exc=None):
        def _get(url, timeout=None):
            calls.append((url, timeout))
            if exc is not None:
                raise exc
            return response
        monkeypatch.setattr(loader_mod.requests, "get", _get)
        return calls
    return install


class TestFetchAsset:
    def test_is_url(self):
        assert is_url("http://example.com/a.gif")
        assert is_url("https://example.com/a.gif")
        assert not is_url("/tmp/a.gif")
        assert not is_url("C:\\media\\a.gif")

    def test_http_success(self, fake_get, gif_bytes):
        calls = fake_get(_FakeResponse(200, gif_bytes))
        assert fetch_asset("https://example.com/parrot.gif", timeout=3) == gif_bytes
        assert calls == [("https://example.com/parrot.gif", 3)]

    def test_http_404(self, fake_get):
        fake_get(_FakeResponse(404))
        with pytest.raises(FetchError, match="HTTP error! status: 404") as info:
            fetch_asset("https://example.com/missing.gif")
        assert info.value.status == 404
        assert info.value.source == "https://example.com/missing.gif"

    def test_network_error(self, fake_get):
        fake_get(exc=requests.ConnectionError("refused"))
        with pytest.raises(FetchError, match="refused") as info:
            fetch_asset("http://localhost:1/x.gif")
        assert info.value.status is None

    def test_local_file(self, gif_path, gif_bytes):
        assert fetch_asset(gif_path) == gif_bytes

    def test_missing_local_file(self, tmp_path):
        with pytest.raises(FetchError, match="Cannot read"):
            fetch_asset(tmp_path / "nope.gif")


class TestAssetLoader:
    def test_http_404_leaves_pool_untouched(self, fake_get, make_store, scheduler, caplog):
        pool = InstancePool(Scene(), scheduler, Tweener())
        store = make_store()
        pool.set_frame_store(store)
        pool.set_template(PlaneGeometry(4.0, 4.0), Material(None))
        existing = pool.create()

        fake_get(_FakeResponse(404))
        loader = AssetLoader(on_loaded=pool.set_frame_store)
        with caplog.at_level("ERROR"):
            assert loader.load("https://example.com/missing.gif") is None

        assert isinstance(loader.last_error, FetchError)
        assert "404" in caplog.text
        assert pool.frame_store is store
        assert pool.live == (existing,)
        assert pool.created == 1 and pool.retired == 0
        # still usable afterwards
        assert pool.create() is not None

    def test_success_calls_back(self, gif_path):
        loaded = []
        loader = AssetLoader(on_loaded=loaded.append)
        store = loader.load(gif_path)
        assert store is not None and store.frame_count == 3
        assert loaded == [store]
        assert loader.current is store
        assert loader.last_error is None

    def test_decode_failure_is_contained(self, tmp_path):
        bad = tmp_path / "bad.gif"
        bad.write_bytes(b"GIF? no")
        loaded = []
        loader = AssetLoader(on_loaded=loaded.append)
        assert loader.load(bad) is None
        assert isinstance(loader.last_error, DecodeError)
        assert loaded == []

    def test_uses_given_session(self, gif_bytes):
        class Session:
            def __init__(self):
                self.urls = []

            def get(self, url, timeout=None):
                self.urls.append(url)
                return _FakeResponse(200, gif_bytes)

        session = Session()
        loader = AssetLoader(session=session)
        assert loader.load("http://example.com/a.gif") is not None
        assert session.urls == ["http://example.com/a.gif"]
