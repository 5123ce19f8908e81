from datetime import date, timedelta

from taskboard.models import Task, User
from taskboard.store import TaskQueryOptions, UserQueryOptions
from taskboard.store.query import (
    TASK_SORT_COLUMNS,
    USER_SORT_COLUMNS,
    build_task_query,
    resolve_sort,
    task_filters,
)


def test_resolve_sort_accepts_allowed_fields_case_insensitive_order():
    column, direction = resolve_sort("title", "ASC", TASK_SORT_COLUMNS)
    assert column is TASK_SORT_COLUMNS["title"]
    assert direction == "asc"


def test_resolve_sort_falls_back_for_unknown_field_and_order():
    column, direction = resolve_sort("title; DROP TABLE tasks", "sideways", TASK_SORT_COLUMNS)
    assert column is TASK_SORT_COLUMNS["created_at"]
    assert direction == "desc"

    column, direction = resolve_sort(None, None, USER_SORT_COLUMNS)
    assert column is USER_SORT_COLUMNS["created_at"]
    assert direction == "desc"


def test_options_ignore_unknown_keys_and_accept_camel_case():
    options = TaskQueryOptions.model_validate(
        {"assignedTo": "unassigned", "sortBy": "title", "sortOrder": "asc", "bogus": 1}
    )
    assert options.assigned_to == "unassigned"
    assert options.sort_by == "title"
    assert options.sort_order == "asc"
    assert not hasattr(options, "bogus")

    assert TaskQueryOptions.model_validate({"assignedTo": "7"}).assigned_to == 7


def test_no_options_means_no_filters():
    assert task_filters(TaskQueryOptions()) == []
    assert task_filters(TaskQueryOptions(search="   ")) == []


def test_filter_values_are_bound_parameters():
    statement = build_task_query(TaskQueryOptions(search="x' OR 1=1 --", status="todo"))
    sql = str(statement)
    assert "OR 1=1" not in sql
    params = statement.compile().params
    assert "%x' OR 1=1 --%" in params.values()
    assert "todo" in params.values()


def test_unassigned_filter_returns_exactly_null_assignments(task_store, alice, bob):
    for index, assignee in enumerate([alice.id, None, bob.id, None, None, alice.id]):
        task_store.create({"title": f"task {index}", "assigned_to": assignee})

    unassigned = task_store.list(TaskQueryOptions(assigned_to="unassigned"))
    assert len(unassigned) == 3
    assert all(task.assigned_to is None for task in unassigned)

    for_alice = task_store.list(TaskQueryOptions(assigned_to=alice.id))
    assert {task.title for task in for_alice} == {"task 0", "task 5"}
    assert all(task.assigned_user.username == "alice" for task in for_alice)


def test_search_is_case_insensitive_over_title_and_description(task_store):
    task_store.create({"title": "Fix LOGIN page"})
    task_store.create({"title": "Write docs", "description": "Explain the login flow"})
    task_store.create({"title": "Unrelated"})

    found = task_store.list(TaskQueryOptions(search="login"))
    assert {task.title for task in found} == {"Fix LOGIN page", "Write docs"}


def test_status_and_priority_filters_combine(task_store):
    task_store.create({"title": "a", "status": "done", "priority": "high"})
    task_store.create({"title": "b", "status": "done", "priority": "low"})
    task_store.create({"title": "c", "status": "todo", "priority": "high"})

    found = task_store.list(TaskQueryOptions(status="done", priority="high"))
    assert [task.title for task in found] == ["a"]
    assert task_store.list(TaskQueryOptions(status="archived")) == []


def test_sorting_and_pagination(task_store):
    for title in ["banana", "apple", "cherry", "date"]:
        task_store.create({"title": title})

    ascending = task_store.list(TaskQueryOptions(sort_by="title", sort_order="asc"))
    assert [task.title for task in ascending] == ["apple", "banana", "cherry", "date"]

    page = task_store.list(TaskQueryOptions(sort_by="title", sort_order="asc", limit=2, offset=1))
    assert [task.title for task in page] == ["banana", "cherry"]

    # newest first by default
    default = task_store.list()
    assert [task.title for task in default] == ["date", "cherry", "apple", "banana"]


def test_unknown_sort_field_falls_back_without_error(task_store):
    for title in ["first", "second", "third"]:
        task_store.create({"title": title})

    fallback = task_store.list(TaskQueryOptions(sort_by="not_a_column", sort_order="nonsense"))
    assert [task.title for task in fallback] == ["third", "second", "first"]


def test_due_date_range(task_store):
    today = date.today()
    task_store.create({"title": "soon", "due_date": today + timedelta(days=1)})
    task_store.create({"title": "later", "due_date": today + timedelta(days=10)})
    task_store.create({"title": "no date"})

    found = task_store.list(
        TaskQueryOptions(due_date_from=today, due_date_to=today + timedelta(days=5))
    )
    assert [task.title for task in found] == ["soon"]


def test_user_search_and_sort(user_store):
    user_store.create({"username": "carol", "email": "carol@x.com", "full_name": "Carol Smith"})
    user_store.create({"username": "dave", "email": "dave@smith.org", "full_name": "Dave D"})
    user_store.create({"username": "erin", "email": "erin@x.com", "full_name": "Erin E"})

    found = user_store.list(UserQueryOptions(search="SMITH", sort_by="username", sort_order="asc"))
    assert [user.username for user in found] == ["carol", "dave"]

    by_name = user_store.list(UserQueryOptions(sort_by="username", sort_order="desc"))
    assert [user.username for user in by_name] == ["erin", "dave", "carol"]


def test_sort_columns_belong_to_their_tables():
    assert all(column.class_ is Task for column in TASK_SORT_COLUMNS.values())
    assert all(column.class_ is User for column in USER_SORT_COLUMNS.values())
