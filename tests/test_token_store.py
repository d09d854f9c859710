"""Unit tests for the in-memory TTL token store."""

from __future__ import annotations

import logging
from unittest.mock import Mock

from shopgate.utils.token_store import TokenStore


def test_save_and_get() -> None:
    store = TokenStore()

    store.save("a.myshopify.com", "token-aaaaaaaaaa")

    assert store.get("a.myshopify.com") == "token-aaaaaaaaaa"
    assert store.get("b.myshopify.com") is None


def test_save_replaces_existing_token() -> None:
    store = TokenStore()

    store.save("a.myshopify.com", "first-token-123")
    store.save("a.myshopify.com", "second-token-123")

    assert store.get("a.myshopify.com") == "second-token-123"
    assert store.stats()["entries"] == 1


def test_entries_expire_after_ttl() -> None:
    clock = Mock(return_value=1000.0)
    store = TokenStore(ttl_seconds=60, clock=clock)
    store.save("a.myshopify.com", "token-aaaaaaaaaa")

    clock.return_value = 1059.0
    assert store.get("a.myshopify.com") == "token-aaaaaaaaaa"

    clock.return_value = 1060.0
    assert store.get("a.myshopify.com") is None
    assert store.stats()["evictions"] == 1


def test_ttl_none_keeps_tokens() -> None:
    clock = Mock(return_value=0.0)
    store = TokenStore(ttl_seconds=None, clock=clock)
    store.save("a.myshopify.com", "token-aaaaaaaaaa")

    clock.return_value = 10**9
    assert store.get("a.myshopify.com") == "token-aaaaaaaaaa"


def test_least_recently_used_is_evicted() -> None:
    store = TokenStore(max_entries=2)
    store.save("a", "token-a-123456")
    store.save("b", "token-b-123456")
    store.get("a")

    store.save("c", "token-c-123456")

    assert store.get("b") is None
    assert store.get("a") == "token-a-123456"
    assert store.get("c") == "token-c-123456"


def test_delete_and_clear() -> None:
    store = TokenStore()
    store.save("a", "token-a-123456")
    store.save("b", "token-b-123456")

    assert store.delete("a") is True
    assert store.delete("a") is False

    store.clear()
    assert store.stats() == {
        "ttl_seconds": 86400,
        "max_entries": 10000,
        "entries": 0,
        "hits": 0,
        "misses": 0,
        "evictions": 0,
    }


def test_hits_and_misses_are_counted() -> None:
    store = TokenStore()
    store.save("a", "token-a-123456")

    store.get("a")
    store.get("missing")

    stats = store.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1


def test_token_value_is_never_logged(caplog) -> None:
    store = TokenStore()

    with caplog.at_level(logging.DEBUG, logger="shopgate.utils.token_store"):
        store.save("a", "super-secret-token")
        store.get("a")
        store.get("b")

    assert "super-secret-token" not in caplog.text
    assert all("super-secret-token" not in str(r.__dict__) for r in caplog.records)
