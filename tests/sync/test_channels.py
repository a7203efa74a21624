from slack_archive.entities.cache import EntityCache
from slack_archive.sync.channels import ChannelDirectory, merge_channel_lists


def _directory(config, store, fake_transport):
    return ChannelDirectory(config, fake_transport, EntityCache(store.users_path, transport=fake_transport))


def test_lists_all_pages_and_names_conversations(config, store, fake_transport):
    fake_transport.channel_pages = [
        [{"id": "C1", "name": "general"}, {"name": "no-id"}],
        [
            {"id": "D1", "is_im": True, "user": "U2"},
            {"id": "G1", "is_mpim": True, "name": "mpdm-alice--bob-1", "purpose": {"value": "Group messaging with: @alice @bob"}},
        ],
    ]
    fake_transport.entities["U2"] = {"id": "U2", "name": "bob", "real_name": "Bob Smith"}

    channels = _directory(config, store, fake_transport).list_channels()

    assert [c["id"] for c in channels] == ["C1", "D1", "G1"]
    assert channels[1]["name"] == "bob (Bob Smith)"
    assert channels[2]["name"] == "Group messaging with: @alice @bob"


def test_direct_conversation_with_unknown_user_uses_id(config, store, fake_transport):
    fake_transport.channel_pages = [[{"id": "D1", "is_im": True, "user": "U404"}]]

    [channel] = _directory(config, store, fake_transport).list_channels()

    assert channel["name"] == "U404"


def test_filters_by_channel_ids(config, store, fake_transport):
    fake_transport.channel_pages = [[{"id": "C1", "name": "general"}, {"id": "C2", "name": "random"}]]

    channels = _directory(config, store, fake_transport).list_channels(["C2"])

    assert [c["id"] for c in channels] == ["C2"]


def test_merge_channel_lists_overlays_by_id():
    previous = [{"id": "C1", "name": "old"}, {"id": "C2", "name": "random"}]
    current = [{"id": "C1", "name": "new"}]

    merged = merge_channel_lists(previous, current)

    assert {c["id"]: c["name"] for c in merged} == {"C1": "new", "C2": "random"}
