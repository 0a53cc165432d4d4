import pytest

from core.errors import ErrorKind
from core.settings import CATEGORIES


def test_create_defaults_and_normalizes(categories, alice):
    plain = categories.create(alice, "  Work  ").unwrap()
    assert plain.name == "Work"
    assert plain.color == CATEGORIES.default_color
    assert plain.owner_id == alice
    assert plain.task_count == 0

    tinted = categories.create(alice, "Home", "#a1b2c3").unwrap()
    assert tinted.color == "#A1B2C3"


@pytest.mark.parametrize(
    "name,color",
    [
        ("", None),
        ("   ", None),
        ("x" * (CATEGORIES.name_max_length + 1), None),
        ("Work", "blue"),
        ("Work", "#12345"),
        ("Work", "#GGGGGG"),
    ],
)
def test_create_rejects_invalid_input(categories, alice, name, color):
    result = categories.create(alice, name, color)
    assert result.kind is ErrorKind.VALIDATION


def test_both_fields_invalid_reports_details(categories, alice):
    result = categories.create(alice, "", "nope")
    doc = result.as_document()
    assert doc["success"] is False
    assert doc["error"]["code"] == "VALIDATION_ERROR"
    assert {d["field"] for d in doc["error"]["details"]} == {"name", "color"}


def test_list_returns_only_own_categories_by_name(categories, alice, bob):
    categories.create(alice, "beta")
    categories.create(alice, "Alpha")
    categories.create(bob, "Other")
    categories.create_global("Shared")

    names = [c.name for c in categories.list(alice).unwrap()]
    assert sorted(names) == ["Alpha", "beta"]


def test_get_is_owner_only(categories, alice, bob):
    cat = categories.create(alice, "Private").unwrap()
    assert categories.get(cat.id, alice).unwrap().id == cat.id
    assert categories.get(cat.id, bob).kind is ErrorKind.FORBIDDEN
    assert categories.get("missing", alice).kind is ErrorKind.NOT_FOUND


def test_update_name_and_color(categories, alice, bob):
    cat = categories.create(alice, "Old").unwrap()

    renamed = categories.update(cat.id, alice, name="New").unwrap()
    assert renamed.name == "New"
    assert renamed.color == cat.color

    recolored = categories.update(cat.id, alice, color="#00ff00").unwrap()
    assert recolored.name == "New"
    assert recolored.color == "#00FF00"

    assert categories.update(cat.id, bob, name="Stolen").kind is ErrorKind.FORBIDDEN
    assert categories.update(cat.id, alice, color="green").kind is ErrorKind.VALIDATION
    assert categories.get(cat.id, alice).unwrap().name == "New"


def test_global_category_is_usable_by_anyone(categories, tasks, alice, bob):
    shared = categories.create_global("Inbox").unwrap()
    assert shared.owner_id is None
    assert categories.get(shared.id, bob).ok

    tasks.create(alice, {"title": "a", "priority": "low", "categoryId": shared.id}).unwrap()
    tasks.create(bob, {"title": "b", "priority": "low", "categoryId": shared.id}).unwrap()
    assert categories.get(shared.id, alice).unwrap().task_count == 2


def test_delete(categories, alice, bob):
    cat = categories.create(alice, "Temp").unwrap()
    assert categories.delete(cat.id, bob).kind is ErrorKind.FORBIDDEN
    assert categories.delete(cat.id, alice).unwrap() == 0
    assert categories.get(cat.id, alice).kind is ErrorKind.NOT_FOUND
    assert categories.delete(cat.id, alice).kind is ErrorKind.NOT_FOUND


def test_view_document_uses_contract_names(categories, alice):
    doc = categories.create(alice, "Work").as_document()
    data = doc["data"]
    assert data["ownerId"] == alice
    assert data["taskCount"] == 0
    assert data["createdAt"].endswith("Z")
