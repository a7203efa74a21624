import json

from slack_archive.entities.cache import EntityCache
from slack_archive.models.archive import BotAuthor, EntityKind, UnknownAuthor, UserAuthor


def test_resolve_fetches_once(store, fake_transport):
    fake_transport.entities["U1"] = {"id": "U1", "name": "alice", "real_name": "Alice"}
    cache = EntityCache(store.users_path, transport=fake_transport)

    first = cache.resolve("U1", EntityKind.user)
    second = cache.resolve("U1", EntityKind.user)

    assert first is second
    assert first.display_name == "alice"
    assert fake_transport.count("users.info") == 1


def test_missing_entities_are_not_cached(store, fake_transport):
    cache = EntityCache(store.users_path, transport=fake_transport)

    assert cache.resolve("U404", EntityKind.user) is None
    assert cache.resolve("U404", EntityKind.user) is None
    assert fake_transport.count("users.info") == 2
    assert "U404" not in cache
    assert cache.display_name("U404") == "U404"
    assert cache.display_name(None) == "Unknown"


def test_resolve_author_uses_the_right_lookup(store, fake_transport):
    fake_transport.entities["B1"] = {"id": "B1", "name": "deploybot"}
    cache = EntityCache(store.users_path, transport=fake_transport)

    assert cache.resolve_author(BotAuthor("B1")).name == "deploybot"
    assert cache.resolve_author(UnknownAuthor()) is None
    assert cache.resolve_author(UserAuthor("U9")) is None
    assert fake_transport.calls == [("bots.info", "B1"), ("users.info", "U9")]


def test_flush_and_reload_without_transport(store, fake_transport):
    fake_transport.entities["U1"] = {"id": "U1", "name": "alice", "profile": {"image_72": "https://img/a.png"}}
    cache = EntityCache(store.users_path, transport=fake_transport)
    cache.resolve("U1", EntityKind.user)
    cache.flush()

    persisted = json.loads(store.users_path.read_text(encoding="utf-8"))
    assert persisted["U1"]["name"] == "alice"

    offline = EntityCache(store.users_path)
    assert offline.get("U1").avatar == "https://img/a.png"
    assert offline.resolve("U2", EntityKind.user) is None
    assert offline.names() == {"U1": "alice"}
    assert len(offline) == 1


def test_flush_creates_empty_file(store):
    EntityCache(store.users_path).flush()
    assert json.loads(store.users_path.read_text(encoding="utf-8")) == {}


def test_corrupted_entries_are_skipped(store):
    store.data_dir.mkdir(parents=True)
    store.users_path.write_text(json.dumps({"U1": {"id": "U1", "name": "alice"}, "U2": {"name": "no id"}}), encoding="utf-8")

    cache = EntityCache(store.users_path)

    assert "U1" in cache
    assert "U2" not in cache
