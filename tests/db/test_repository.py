import pytest

from postmarks_federation.db import DatabaseSessionManager, StartupError
from postmarks_federation.schemas import Bookmark


def test_reads_return_none_without_records(repository):
    assert repository.get_actor() is None
    assert repository.get_followers() is None
    assert repository.get_following() is None
    assert repository.get_private_key() is None
    assert repository.get_guid_for_bookmark_id(1) is None
    assert repository.get_bookmark_id_from_message_guid("missing") is None
    assert repository.get_global_permissions() is None
    assert repository.find_message("anything") == []


def test_account_round_trip(account_repository, key_pair):
    public_key, private_key = key_pair
    assert account_repository.has_account()
    assert account_repository.get_public_key() == public_key
    assert account_repository.get_private_key() == private_key
    assert account_repository.get_actor()["id"] == "https://bookmarks.example/u/alice"
    assert account_repository.get_webfinger()["subject"] == "acct:alice@bookmarks.example"


def test_followers_are_deduplicated_in_insertion_order(account_repository):
    account_repository.set_followers(
        ["https://a.example/u/1", "https://b.example/u/2", "https://a.example/u/1"]
    )
    account_repository.add_follower("https://b.example/u/2")
    account_repository.add_follower("https://c.example/u/3")
    assert account_repository.get_followers() == [
        "https://a.example/u/1",
        "https://b.example/u/2",
        "https://c.example/u/3",
    ]
    account_repository.remove_follower("https://b.example/u/2")
    assert account_repository.get_followers() == [
        "https://a.example/u/1",
        "https://c.example/u/3",
    ]


def test_following_and_blocks(account_repository):
    account_repository.add_following("https://a.example/u/1")
    account_repository.add_following("https://a.example/u/1")
    assert account_repository.get_following() == ["https://a.example/u/1"]
    account_repository.remove_following("https://a.example/u/1")
    assert account_repository.get_following() == []

    account_repository.set_blocks(["https://evil.example/u/bad"])
    assert account_repository.get_blocks() == ["https://evil.example/u/bad"]


def test_social_graph_writes_need_an_account(repository):
    repository.set_followers(["https://a.example/u/1"])
    assert repository.get_followers() is None


def test_message_lifecycle(repository):
    repository.insert_message("g1", 7, {"type": "Note", "id": "https://x/m/g1"})
    assert repository.get_guid_for_bookmark_id(7) == "g1"
    assert repository.find_message_guid(7) == "g1"
    assert repository.get_bookmark_id_from_message_guid("g1") == 7
    assert repository.get_message("g1")["type"] == "Note"

    repository.insert_message("g1", 7, {"type": "Note", "id": "https://x/m/g1", "v": 2})
    assert repository.get_message("g1")["v"] == 2

    repository.delete_message("g1")
    assert repository.get_message("g1") is None
    assert repository.get_guid_for_bookmark_id(7) is None


def test_one_live_message_per_bookmark(repository):
    repository.insert_message("old", 7, {"type": "Note", "id": "https://x/m/old"})
    repository.insert_message("new", 7, {"type": "Note", "id": "https://x/m/new"})
    repository.insert_message("other", 8, {"type": "Note", "id": "https://x/m/other"})
    assert repository.get_message("old") is None
    assert repository.get_guid_for_bookmark_id(7) == "new"

    assert repository.delete_messages_for_bookmark(7) == 1
    assert repository.get_guid_for_bookmark_id(7) is None
    assert repository.get_guid_for_bookmark_id(8) == "other"


def test_find_message_matches_non_ascii_text(repository):
    target = "https://bücher.example/users/zoë"
    repository.insert_message("f1", None, {"type": "Follow", "object": target})
    (row,) = repository.find_message(target)
    assert row["guid"] == "f1"


def test_find_message_matches_substring_oldest_first(repository):
    repository.insert_message("f1", None, {"type": "Follow", "object": "https://a.example/u/1"})
    repository.insert_message("n1", 3, {"type": "Note", "content": "unrelated"})
    repository.insert_message("f2", None, {"type": "Follow", "object": "https://a.example/u/1"})
    rows = repository.find_message("https://a.example/u/1")
    assert [row["guid"] for row in rows] == ["f1", "f2"]
    assert rows[0]["bookmark_id"] is None


def test_permissions_insert_or_replace(repository):
    repository.set_permissions_for_bookmark(5, "", "@bad@evil.example")
    repository.set_permissions_for_bookmark(5, "@ok@fine.example", "")
    permissions = repository.get_permissions_for_bookmark(5)
    assert permissions.allowed == "@ok@fine.example"
    assert permissions.blocked == ""

    repository.set_global_permissions(None, "@spam@junk.example")
    assert repository.get_global_permissions().blocked == "@spam@junk.example"
    assert repository.get_permissions_for_bookmark(0).bookmark_id == 0


def test_bookmark_paging(repository):
    for i in range(1, 26):
        repository.add_bookmark(Bookmark(id=i, url=f"https://e.com/{i}"))
    assert repository.get_bookmark_count() == 25
    assert len(repository.get_bookmarks(20, 0)) == 20
    assert len(repository.get_bookmarks(20, 20)) == 5
    assert repository.get_bookmark(3).url == "https://e.com/3"
    assert repository.get_bookmark(99) is None


def test_delete_bookmark(repository):
    repository.add_bookmark(Bookmark(id=1, url="https://e.com/1"))
    repository.add_bookmark(Bookmark(id=2, url="https://e.com/2"))
    repository.delete_bookmark(1)
    assert repository.get_bookmark(1) is None
    assert repository.get_bookmark_count() == 1


def test_open_rejects_invalid_url():
    with pytest.raises(StartupError):
        DatabaseSessionManager.open("not a database url")
