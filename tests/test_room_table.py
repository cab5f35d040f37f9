import pytest

from tests.conftest import FakeChannel


def test_add_member_creates_room_lazily(rooms):
    assert "r1" not in rooms
    rooms.add_member("r1", "a")
    assert "r1" in rooms
    assert rooms.members("r1") == {"a"}


def test_add_member_is_idempotent(rooms):
    rooms.add_member("r1", "a")
    rooms.add_member("r1", "a")
    assert rooms.members("r1") == {"a"}


def test_ensure_room_returns_existing_room(rooms):
    first = rooms.ensure_room("r1")
    first.add("a")
    assert rooms.ensure_room("r1") is first


def test_ensure_room_rejects_empty_id(rooms):
    with pytest.raises(ValueError):
        rooms.ensure_room("")


def test_removing_last_member_deletes_room(rooms):
    rooms.add_member("r1", "a")
    rooms.add_member("r1", "b")
    rooms.remove_member("r1", "a")
    assert rooms.room_ids() == ["r1"]
    rooms.remove_member("r1", "b")
    assert "r1" not in rooms
    assert rooms.room_ids() == []
    assert len(rooms) == 0


def test_remove_member_unknown_room_or_member_is_noop(rooms):
    rooms.remove_member("missing", "a")
    rooms.add_member("r1", "a")
    rooms.remove_member("r1", "zzz")
    assert rooms.members("r1") == {"a"}


def test_members_is_a_snapshot(rooms):
    rooms.add_member("r1", "a")
    snapshot = rooms.members("r1")
    rooms.add_member("r1", "b")
    assert snapshot == {"a"}
    assert rooms.members("absent") == frozenset()


def test_find_by_id_only_resolves_members(registry, rooms):
    a = registry.register(FakeChannel())
    b = registry.register(FakeChannel())
    rooms.add_member("r1", a.id)
    assert rooms.find_by_id("r1", a.id) is a
    assert rooms.find_by_id("r1", b.id) is None
    assert rooms.find_by_id("r2", a.id) is None


def test_registry_ids_are_unique(registry):
    ids = {registry.register(FakeChannel()).id for _ in range(50)}
    assert len(ids) == 50
    assert len(registry) == 50


def test_registry_unregister(registry):
    connection = registry.register(FakeChannel())
    assert registry.unregister(connection.id) is connection
    assert registry.unregister(connection.id) is None
    assert connection.id not in registry
