import pytest

from slack_archive.render.pagination import JumpLink, chunk, paginate
from slack_archive.render.search import SearchIndexBuilder, locate_page

CHANNEL = {"id": "C1", "name": "general"}


def _messages(count):
    # Newest-first, as persisted
    return [{"ts": f"{i}.000000"} for i in range(count, 0, -1)]


def test_chunk():
    assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunk([], 3) == []


def test_paginate_2500_messages():
    pages = paginate(CHANNEL, _messages(2500), 1000)

    assert [len(p.messages) for p in pages] == [1000, 1000, 500]
    assert all(p.total == 3 for p in pages)
    # Page 0 holds the newest messages, shown oldest first
    assert pages[0].messages[0]["ts"] == "1501.000000"
    assert pages[0].messages[-1]["ts"] == "2500.000000"
    assert pages[2].oldest_ts == "1.000000"


def test_navigation_links():
    pages = paginate(CHANNEL, _messages(7), 3)

    assert [(p.newer_index, p.older_index) for p in pages] == [(None, 1), (0, 2), (1, None)]
    assert pages[1].jump_bar == [JumpLink(0, False), JumpLink(1, True), JumpLink(2, False)]


def test_single_page_has_no_jump_bar():
    [page] = paginate(CHANNEL, _messages(3), 3)
    assert page.jump_bar == []
    assert page.newer_index is None
    assert page.older_index is None


def test_empty_channel_gets_placeholder_page():
    [page] = paginate(CHANNEL, [], 1000)

    assert page.is_empty
    assert page.index == 0
    assert page.total == 1
    assert page.oldest_ts is None


def test_non_positive_page_size_is_rejected():
    with pytest.raises(ValueError):
        paginate(CHANNEL, _messages(1), 0)


def test_locate_page_boundaries():
    boundaries = ["30.0", "20.0", "10.0"]

    assert locate_page(boundaries, "35.0") == 0
    assert locate_page(boundaries, "30.0") == 0
    assert locate_page(boundaries, "25.0") == 1
    assert locate_page(boundaries, "20.0") == 1
    assert locate_page(boundaries, "10.5") == 2
    assert locate_page(boundaries, "5.0") is None
    assert locate_page([], "5.0") is None


def test_every_message_locates_to_its_page():
    messages = _messages(10)
    pages = paginate(CHANNEL, messages, 4)
    index = SearchIndexBuilder()
    for page in pages:
        index.record_page("C1", page.oldest_ts)

    for page in pages:
        for message in page.messages:
            assert index.locate("C1", message["ts"]) == page.index


def test_reset_channel_drops_boundaries():
    index = SearchIndexBuilder({"C1": ["5.0"], "C2": ["3.0"]})
    index.reset_channel("C1")
    index.record_page("C1", "9.0")
    assert index.to_dict() == {"C1": ["9.0"], "C2": ["3.0"]}
