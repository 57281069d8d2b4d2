import json

from venn_sky.cache import (
    DEFAULT_TTL_MS,
    CacheStore,
    MemoryStorage,
    StorageQuotaExceeded,
    cache_key,
)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _store(**kwargs):
    clock = FakeClock()
    storage = kwargs.pop("storage", None)
    if storage is None:
        storage = MemoryStorage()
    return CacheStore(storage, clock=clock, **kwargs), storage, clock


def test_set_then_get_returns_value():
    store, _, _ = _store()
    store.set("alice.bsky.social", "followers", [{"did": "did:plc:1"}])
    assert store.get("alice.bsky.social", "followers") == [{"did": "did:plc:1"}]


def test_missing_key_is_none():
    store, _, _ = _store()
    assert store.get("nobody", "profile") is None


def test_key_format_and_envelope():
    store, storage, clock = _store()
    store.set("Alice.BSKY.social", "following", {"x": 1})
    raw = storage.get_item("venn-sky-cache:following:alice.bsky.social")
    assert json.loads(raw) == {"data": {"x": 1}, "storedAt": clock.now, "ttl": DEFAULT_TTL_MS}


def test_handle_is_case_insensitive():
    store, _, _ = _store()
    store.set("Alice.bsky.social", "profile", {"handle": "alice"})
    assert store.get("alice.BSKY.social", "profile") == {"handle": "alice"}


def test_types_are_independent():
    store, _, _ = _store()
    store.set("alice", "followers", ["f"])
    store.set("alice", "following", ["g"])
    assert store.get("alice", "followers") == ["f"]
    assert store.get("alice", "following") == ["g"]
    assert store.get("alice", "profile") is None


def test_entry_expires_at_ttl_and_is_removed():
    store, storage, clock = _store()
    store.set("alice", "followers", [1], ttl=1000)
    clock.now += 999
    assert store.get("alice", "followers") == [1]
    clock.now += 1
    assert store.get("alice", "followers") is None
    assert storage.get_item(cache_key("alice", "followers")) is None


def test_corrupt_entry_is_a_miss_and_removed():
    store, storage, _ = _store()
    key = cache_key("alice", "profile")
    storage.set_item(key, "{not json")
    assert store.get("alice", "profile") is None
    assert storage.get_item(key) is None


def test_envelope_missing_fields_is_a_miss():
    store, storage, _ = _store()
    key = cache_key("alice", "profile")
    storage.set_item(key, json.dumps({"data": 1}))
    assert store.get("alice", "profile") is None
    assert storage.get_item(key) is None


def test_envelope_without_data_is_a_miss_and_removed():
    store, storage, clock = _store()
    key = cache_key("alice", "followers")
    storage.set_item(key, json.dumps({"storedAt": clock.now, "ttl": 5000}))
    assert store.get("alice", "followers") is None
    assert storage.get_item(key) is None


def test_sweep_drops_envelope_without_data():
    store, storage, clock = _store()
    storage.set_item(cache_key("alice", "profile"), json.dumps({"storedAt": clock.now, "ttl": 5000}))
    assert store.clear_expired() == 1
    assert storage.keys() == []


def test_read_error_is_a_miss():
    class BrokenStorage(MemoryStorage):
        reads = 0

        def get_item(self, key):
            BrokenStorage.reads += 1
            raise OSError("disk gone")

    store, storage, _ = _store(storage=BrokenStorage())
    assert store.storage is storage
    assert store.get("alice", "followers") is None
    assert BrokenStorage.reads == 1


def test_replacing_entry_overwrites():
    store, _, _ = _store()
    store.set("alice", "followers", [1])
    store.set("alice", "followers", [2])
    assert store.get("alice", "followers") == [2]


def test_quota_sweeps_expired_entries_then_retries():
    store, storage, clock = _store(storage=MemoryStorage(quota=200))
    store.set("old", "followers", ["x" * 40], ttl=10)
    clock.now += 10
    store.set("alice", "followers", ["y" * 60])
    assert store.get("alice", "followers") == ["y" * 60]
    assert storage.get_item(cache_key("old", "followers")) is None


def test_quota_still_full_drops_write_silently():
    store, storage, _ = _store(storage=MemoryStorage(quota=150))
    store.set("fresh", "followers", ["x" * 40])
    store.set("alice", "followers", ["y" * 100])
    assert store.get("alice", "followers") is None
    assert store.get("fresh", "followers") == ["x" * 40]


def test_retry_happens_only_once():
    class AlwaysFull(MemoryStorage):
        calls = 0

        def set_item(self, key, value):
            AlwaysFull.calls += 1
            raise StorageQuotaExceeded("full")

    store, _, _ = _store(storage=AlwaysFull())
    store.set("alice", "followers", [1])
    assert AlwaysFull.calls == 2


def test_other_write_errors_are_swallowed():
    class ReadOnly(MemoryStorage):
        def set_item(self, key, value):
            raise PermissionError("read only")

    store, _, _ = _store(storage=ReadOnly())
    store.set("alice", "followers", [1])
    assert store.get("alice", "followers") is None


def test_clear_expired_removes_only_expired_and_corrupt():
    store, storage, clock = _store()
    store.set("short", "followers", [1], ttl=5)
    store.set("long", "followers", [2], ttl=10_000)
    storage.set_item(cache_key("bad", "profile"), "garbage")
    clock.now += 5
    assert store.clear_expired() == 2
    assert store.get("long", "followers") == [2]


def test_clear_all_removes_only_own_prefix():
    storage = MemoryStorage()
    storage.set_item("other-app:key", "keep")
    store, _, _ = _store(storage=storage)
    store.set("alice", "followers", [1])
    store.set("bob", "profile", {"h": "bob"})
    store.clear_all()
    assert store.get("alice", "followers") is None
    assert store.get("bob", "profile") is None
    assert storage.keys() == ["other-app:key"]


def test_from_env_reads_ttl_and_quota(monkeypatch):
    monkeypatch.setenv("VENN_SKY_CACHE_TTL_MS", "5000")
    monkeypatch.setenv("VENN_SKY_CACHE_QUOTA", "1024")
    store = CacheStore.from_env()
    assert store.default_ttl == 5000
    assert store.storage.quota == 1024
