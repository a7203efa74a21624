from slack_archive.sync.messages import MessageSynchronizer, merge_messages, newest_timestamp


def test_merge_keeps_persisted_copy_and_orders_newest_first(msg):
    persisted = [msg("3.0", "stored", replies=[msg("3.1")]), msg("1.0")]
    fetched = [msg("4.0"), msg("3.0", "redelivered"), msg("2.0")]

    merged = merge_messages(persisted, fetched)

    assert [m["ts"] for m in merged] == ["4.0", "3.0", "2.0", "1.0"]
    assert merged[1]["text"] == "stored"
    assert merged[1]["replies"][0]["ts"] == "3.1"


def test_newest_timestamp(msg):
    assert newest_timestamp([]) is None
    assert newest_timestamp([msg("9.000001"), msg("10.000000"), msg("9.5")]) == "10.000000"


def test_first_sync_downloads_full_history(fake_transport, store, msg):
    fake_transport.history["C1"] = [msg(f"{i}.000000") for i in range(1, 6)]

    result = MessageSynchronizer(fake_transport, store).sync({"id": "C1"})

    assert result.new_count == 5
    assert [m["ts"] for m in result.messages] == [f"{i}.000000" for i in range(5, 0, -1)]
    assert fake_transport.calls == [("conversations.history", "C1", None)]


def test_second_sync_is_idempotent(fake_transport, store, msg):
    fake_transport.history["C1"] = [msg("1.0"), msg("2.0"), msg("3.0")]
    sync = MessageSynchronizer(fake_transport, store)
    first = sync.sync({"id": "C1"})
    store.write_messages("C1", first.messages)

    second = sync.sync({"id": "C1"})

    assert second.new_count == 0
    assert second.messages == first.messages
    assert fake_transport.calls[-1] == ("conversations.history", "C1", "3.0")


def test_incremental_sync_fetches_only_newer_messages(fake_transport, store, msg):
    store.write_messages("C1", [msg("2.0"), msg("1.0")])
    fake_transport.history["C1"] = [msg("1.0"), msg("2.0"), msg("3.0"), msg("4.0")]

    result = MessageSynchronizer(fake_transport, store).sync({"id": "C1"})

    assert result.new_count == 2
    assert [m["ts"] for m in result.messages] == ["4.0", "3.0", "2.0", "1.0"]


def test_redelivered_messages_are_deduplicated(fake_transport, store, msg):
    store.write_messages("C1", [msg("2.0", "stored"), msg("1.0", "stored")])
    fake_transport.redeliver = True
    fake_transport.history["C1"] = [msg("1.0", "remote"), msg("2.0", "remote"), msg("3.0", "remote")]

    result = MessageSynchronizer(fake_transport, store).sync({"id": "C1"})

    assert result.new_count == 1
    assert [m["text"] for m in result.messages] == ["remote", "stored", "stored"]


def test_empty_channel(fake_transport, store):
    result = MessageSynchronizer(fake_transport, store).sync({"id": "C1"})

    assert result.messages == []
    assert result.new_count == 0


def test_messages_without_ts_are_skipped(fake_transport, store, msg):
    fake_transport.history["C1"] = [msg("1.0")]
    fake_transport.history["C1"].append({"type": "message", "ts": "", "text": "broken"})

    result = MessageSynchronizer(fake_transport, store).sync({"id": "C1"})

    assert [m["ts"] for m in result.messages] == ["1.0"]


def test_sync_does_not_write_the_store(fake_transport, store, msg):
    fake_transport.history["C1"] = [msg("1.0")]
    MessageSynchronizer(fake_transport, store).sync({"id": "C1"})
    assert not store.messages_path("C1").exists()
