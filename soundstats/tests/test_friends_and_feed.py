from datetime import datetime, timezone

from soundstats.services.feed import FeedService
from soundstats.services.friends import get_friend_ids, users_are_friends


def test_friend_ids_are_deduplicated_across_directions(fake_db):
    fake_db.responses = [[("me", "a"), ("b", "me"), ("a", "me"), ("me", "me")]]

    assert get_friend_ids("me") == ["a", "b"]
    assert fake_db.executed[0][1] == ("me", "me", "accepted")


def test_users_are_friends(fake_db):
    fake_db.responses = [[(1,)], []]

    assert users_are_friends("me", "a") is True
    assert users_are_friends("me", "stranger") is False


def test_user_is_always_their_own_friend(fake_db):
    assert users_are_friends("me", "me") is True
    assert fake_db.executed == []


def test_recent_listens(fake_db):
    played_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    fake_db.responses = [
        [
            (17, "u1", "Song", "Band", played_at, "http://img", "t1"),
            (16, "u2", None, None, played_at, None, None),
        ]
    ]

    listens = FeedService().get_recent_listens(0, 2)

    assert listens[0] == {
        "id": "17",
        "user_id": "u1",
        "track": "Song",
        "artist": "Band",
        "played_at": int(played_at.timestamp() * 1000),
        "album_image": "http://img",
        "track_id": "t1",
    }
    assert listens[1]["track"] == "Unknown"
    assert listens[1]["artist"] == "Unknown"
    params = fake_db.executed[0][1]
    assert params[1:] == (30000, 2, 0)
