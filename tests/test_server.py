"""Tests for server helpers (tool logic is covered through the view modules)."""

import pytest

import signalgraph.config as config


@pytest.fixture
def server(monkeypatch):
    import signalgraph.server as server
    monkeypatch.setattr(server, "_store", None)
    return server


class TestResolveUser:
    def test_explicit_user(self, server):
        assert server._resolve_user("u1") == "u1"

    def test_falls_back_to_configured_user(self, server, monkeypatch):
        monkeypatch.setattr(config, "DEFAULT_USER_ID", "u-default")
        assert server._resolve_user(None) == "u-default"

    def test_missing_user(self, server, monkeypatch):
        monkeypatch.setattr(config, "DEFAULT_USER_ID", "")
        with pytest.raises(ValueError, match="user_id is required"):
            server._resolve_user(None)


class TestStore:
    def test_store_is_shared(self, server):
        first = server._get_store()
        assert first is server._get_store()
        assert first.select("signals") == []


class TestInsightPayload:
    @pytest.fixture
    def view(self, store):
        from signalgraph.views import load_insight_view
        store.insert("signals", {"id": "a", "sources": 3})
        for i in range(3):
            store.insert("insights", {
                "id": f"i{i}", "signal_ids": ["a"], "sort_order": i + 1,
                "insight_type": "push",
            })
        return load_insight_view(store)

    def test_limit_caps_insights(self, server, view):
        payload = server._insight_payload(view, 2)
        assert [i["id"] for i in payload["insights"]] == ["i0", "i1"]
        assert payload["count"] == 3

    def test_negative_limit_returns_none(self, server, view):
        payload = server._insight_payload(view, -1)
        assert payload["insights"] == []
        assert payload["count"] == 3

    def test_zero_limit(self, server, view):
        assert server._insight_payload(view, 0)["insights"] == []
