from slack_archive.render.search import SearchFile


def test_add_channel_indexes_messages_and_replies(msg):
    search = SearchFile()
    messages = [msg("2.0", "hello", replies=[msg("2.1", "reply", user="U2")]), msg("1.0", "", user=None, bot_id="B1")]

    search.add_channel({"id": "C1", "name": "general"}, messages)

    assert search.channels == {"C1": "general"}
    assert search.messages["C1"] == [
        {"c": "C1", "m": "hello", "u": "U1", "t": "2.0"},
        {"c": "C1", "m": "reply", "u": "U2", "t": "2.1", "p": "2.0"},
        {"c": "C1", "u": "B1", "t": "1.0"},
    ]


def test_search_file_round_trip_keeps_locator():
    search = SearchFile(users={"U1": "alice"})
    search.index.record_page("C1", "20.0")
    search.index.record_page("C1", "10.0")

    restored = SearchFile.from_dict(search.to_dict())

    assert restored.users == {"U1": "alice"}
    assert restored.locate("C1", "15.0") == 1
    assert restored.locate("C2", "15.0") is None
    assert set(search.to_dict()) == {"users", "channels", "messages", "pages"}
