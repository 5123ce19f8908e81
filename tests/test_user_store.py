import pytest

from taskboard.errors import DuplicateKey, EmptyUpdate, InvalidArgument, NotFound
from taskboard.models import User
from taskboard.schemas.user import UserUpdate
from taskboard.store import UserStore


def test_create_and_fetch(user_store):
    user = user_store.create({"username": "carol", "email": "carol@mail.com", "full_name": "Carol C"})

    assert user.id > 0
    assert user_store.get(user.id) == user
    assert user_store.get_by_username("carol") == user
    assert user_store.get_by_email("carol@mail.com") == user
    assert user_store.get(user.id + 50) is None


def test_duplicate_username_is_reported_as_username(user_store, alice):
    with pytest.raises(DuplicateKey) as exc_info:
        user_store.create({"username": "alice", "email": "other@x.com", "full_name": "Other"})
    assert exc_info.value.field == "username"
    assert exc_info.value.message == "Username already exists"


def test_duplicate_email_is_reported_as_email(user_store, alice):
    with pytest.raises(DuplicateKey) as exc_info:
        user_store.create({"username": "other", "email": "alice@x.com", "full_name": "Other"})
    assert exc_info.value.field == "email"
    assert exc_info.value.message == "Email already exists"


def test_update_collisions_and_self_update(user_store, alice, bob):
    with pytest.raises(DuplicateKey) as exc_info:
        user_store.update(bob.id, {"email": "alice@x.com"})
    assert exc_info.value.field == "email"

    # Re-saving your own username is not a collision
    updated = user_store.update(alice.id, UserUpdate(username="alice", full_name="Alice Anders"))
    assert updated.full_name == "Alice Anders"
    assert updated.email == alice.email
    assert updated.created_at == alice.created_at


def test_update_errors(user_store, alice):
    with pytest.raises(EmptyUpdate):
        user_store.update(alice.id, {})
    with pytest.raises(NotFound):
        user_store.update(alice.id + 100, {"full_name": "Ghost"})
    with pytest.raises(InvalidArgument):
        user_store.update("abc", {"full_name": "Ghost"})


def test_availability_checks(user_store, alice):
    assert user_store.username_available("alice") is False
    assert user_store.username_available("zed") is True
    assert user_store.email_available("alice@x.com") is False
    assert user_store.email_available("zed@x.com") is True
    with pytest.raises(InvalidArgument):
        user_store.username_available("   ")


def test_search_ranks_username_hits_first(user_store):
    by_email = user_store.create({"username": "zzz", "email": "dana@x.com", "full_name": "Zed"})
    by_name = user_store.create({"username": "yyy", "email": "y@x.com", "full_name": "Dana Y"})
    by_username = user_store.create({"username": "dana", "email": "d@x.com", "full_name": "D"})
    user_store.create({"username": "nobody", "email": "n@x.com", "full_name": "N"})

    results = user_store.search("DANA")

    assert [user.id for user in results] == [by_username.id, by_name.id, by_email.id]
    with pytest.raises(InvalidArgument):
        user_store.search("  ")


def test_assigned_tasks_and_stats(user_store, task_store, alice, bob):
    task_store.create({"title": "a1", "assigned_to": alice.id, "status": "done"})
    task_store.create({"title": "a2", "assigned_to": alice.id, "priority": "high"})
    task_store.create({"title": "b1", "assigned_to": bob.id})

    tasks = user_store.assigned_tasks(alice.id)
    assert sorted(task.title for task in tasks) == ["a1", "a2"]
    assert [task.title for task in user_store.assigned_tasks(alice.id, status="done")] == ["a1"]

    stats = user_store.stats(alice.id)
    assert stats.total_tasks == 2
    assert stats.done_tasks == 1
    assert stats.high_priority_tasks == 1
    assert stats.unassigned_tasks == 0

    with pytest.raises(NotFound):
        user_store.assigned_tasks(alice.id + 100)
    with pytest.raises(NotFound):
        user_store.stats(alice.id + 100)


def test_delete_unassigns_tasks_and_keeps_them(user_store, task_store, alice, bob):
    first = task_store.create({"title": "Alice one", "description": "d", "priority": "high", "assigned_to": alice.id})
    task_store.create({"title": "Alice two", "assigned_to": alice.id})
    other = task_store.create({"title": "Bob one", "assigned_to": bob.id})

    cleared = user_store.delete(alice.id)

    assert cleared == 2
    assert user_store.get(alice.id) is None
    after = task_store.get(first.id)
    assert after.assigned_to is None
    assert after.assigned_user is None
    assert (after.title, after.description, after.priority, after.status) == ("Alice one", "d", "high", "todo")
    assert task_store.get(other.id).assigned_to == bob.id
    assert len(task_store.list()) == 3


def test_delete_missing_user(user_store):
    with pytest.raises(NotFound):
        user_store.delete(12345)


def test_delete_is_atomic(monkeypatch, user_store, task_store, alice):
    task = task_store.create({"title": "Keep me assigned", "assigned_to": alice.id})

    def fail(session, user_id):
        raise NotFound("User", user_id)

    monkeypatch.setattr(UserStore, "_delete_row", staticmethod(fail))

    with pytest.raises(NotFound):
        user_store.delete(alice.id)

    assert task_store.get(task.id).assigned_to == alice.id
    assert user_store.get(alice.id) is not None


def test_update_of_user_deleted_after_lookup_is_not_found(monkeypatch, file_database, delete_after_get):
    store = UserStore(file_database)
    user = store.create({"username": "ghost", "email": "ghost@x.com", "full_name": "G"})
    delete_after_get(file_database, User)

    with pytest.raises(NotFound):
        store.update(user.id, {"full_name": "Still here?"})

    monkeypatch.undo()
    assert store.get(user.id) is None
