from datetime import datetime

import pytest

from utils.snapshots import SnapshotError, parse_complaint, parse_complaints, parse_user

BASE = {
    "user_id": "u1",
    "title": "Pothole",
    "description": "Deep",
    "category": "roads",
    "location": "Main St",
}


def test_defaults_are_filled():
    complaint = parse_complaint("c1", BASE)

    assert complaint.priority == "medium"
    assert complaint.status == "pending"
    assert complaint.media_pending is False


def test_media_pending_while_path_has_no_url():
    assert parse_complaint("c1", dict(BASE, storage_path="complaints/u1/1.jpg")).media_pending


@pytest.mark.parametrize("data", [dict(BASE, title=""), dict(BASE, status="closed"), dict(BASE, priority="urgent")])
def test_invalid_values_raise(data):
    with pytest.raises(SnapshotError):
        parse_complaint("c1", data)


def test_collection_is_sorted_newest_first_and_skips_bad_entries():
    skipped = []
    snapshot = {
        "old": dict(BASE, created_at=datetime(2024, 1, 1)),
        "new": dict(BASE, created_at=datetime(2024, 6, 1)),
        "bad": {"title": "no owner"},
    }

    complaints = parse_complaints(snapshot, on_invalid=lambda key, exc: skipped.append(key))

    assert [c.id for c in complaints] == ["new", "old"]
    assert skipped == ["bad"]
    assert complaints[0].to_dict()["created_at"] == "2024-06-01T00:00:00"


def test_user_role_defaults_to_user():
    user = parse_user("u1", {"email": "a@example.com"})

    assert user.role == "user"
    assert not user.is_admin
