import random
import threading

import pytest
from sqlalchemy import func, update
from sqlmodel import Session, select

from core.errors import ErrorKind
from models import Category, Task
from services.categories import CategoryService
from services.category_counter import CategoryCounter
from services.tasks import TaskService
from services.users import UserDirectory
from storage.db import init_db, make_engine


def _stored(session_factory, category_id):
    with session_factory() as session:
        return session.get(Category, category_id).task_count


def _assert_consistent(session_factory):
    with session_factory() as session:
        for category in session.exec(select(Category)):
            actual = session.exec(
                select(func.count()).select_from(Task).where(Task.category_id == category.id)
            ).one()
            assert category.task_count == actual, category.name


def test_increment_and_decrement(counter, categories, session_factory, alice):
    cat = categories.create(alice, "Work").unwrap()
    with session_factory() as session:
        assert counter.increment(session, cat.id)
        assert counter.increment(session, cat.id)
        assert counter.decrement(session, cat.id)
        session.commit()
    assert _stored(session_factory, cat.id) == 1


def test_decrement_never_goes_negative(counter, categories, session_factory, alice):
    cat = categories.create(alice, "Work").unwrap()
    with session_factory() as session:
        assert counter.decrement(session, cat.id) is False
        assert counter.decrement(session, "missing") is False
        assert counter.decrement(session, None) is False
        session.commit()
    assert _stored(session_factory, cat.id) == 0


def test_reassign_moves_one(counter, categories, session_factory, alice):
    a = categories.create(alice, "A").unwrap()
    b = categories.create(alice, "B").unwrap()
    with session_factory() as session:
        counter.increment(session, a.id)
        counter.reassign(session, a.id, b.id)
        counter.reassign(session, b.id, b.id)
        counter.reassign(session, None, a.id)
        session.commit()
    assert _stored(session_factory, a.id) == 1
    assert _stored(session_factory, b.id) == 1


def test_reassign_reports_missing_target(counter, categories, session_factory, alice):
    cat = categories.create(alice, "Work").unwrap()
    with session_factory() as session:
        assert counter.reassign(session, cat.id, cat.id) is True
        assert counter.reassign(session, None, cat.id) is True
        assert counter.reassign(session, cat.id, None) is True
        assert counter.reassign(session, None, "missing") is False
        session.rollback()


def test_uncommitted_adjustment_is_discarded(counter, categories, session_factory, alice):
    cat = categories.create(alice, "Work").unwrap()
    with session_factory() as session:
        counter.increment(session, cat.id)
        session.rollback()
    assert _stored(session_factory, cat.id) == 0


def test_reconcile_fixes_drift(counter, tasks, categories, session_factory, alice):
    a = categories.create(alice, "A").unwrap()
    b = categories.create(alice, "B").unwrap()
    for i in range(3):
        tasks.create(alice, {"title": f"t{i}", "priority": "low", "categoryId": a.id}).unwrap()

    with session_factory() as session:
        session.connection().execute(update(Category).where(Category.id == a.id).values(task_count=7))
        session.connection().execute(update(Category).where(Category.id == b.id).values(task_count=2))
        session.commit()

    fixed = counter.reconcile()
    assert sorted(fixed) == sorted([a.id, b.id])
    assert _stored(session_factory, a.id) == 3
    assert _stored(session_factory, b.id) == 0
    assert counter.reconcile() == []


def test_deleting_category_clears_references(tasks, categories, session_factory, alice):
    doomed = categories.create(alice, "Doomed").unwrap()
    kept = categories.create(alice, "Kept").unwrap()
    t1 = tasks.create(alice, {"title": "a", "priority": "low", "categoryId": doomed.id}).unwrap()
    tasks.create(alice, {"title": "b", "priority": "low", "categoryId": kept.id}).unwrap()

    assert categories.delete(doomed.id, alice).unwrap() == 1
    assert tasks.get(t1.id, alice).unwrap().category_id is None
    with session_factory() as session:
        assert session.get(Category, doomed.id) is None
    _assert_consistent(session_factory)


@pytest.fixture()
def file_services(tmp_path):
    engine = make_engine(f"sqlite:///{(tmp_path / 'concurrency.db').as_posix()}")
    init_db(engine)

    def factory():
        return Session(engine)

    yield factory, TaskService(factory), CategoryService(factory), UserDirectory(factory)
    engine.dispose()


def test_concurrent_operations_keep_counts_exact(file_services):
    factory, task_service, category_service, directory = file_services
    owner = directory.register("owner", "owner@example.com").unwrap().id
    a = category_service.create(owner, "A").unwrap().id
    b = category_service.create(owner, "B").unwrap().id

    errors = []

    def worker(seed):
        rng = random.Random(seed)
        created = []
        try:
            for i in range(6):
                cat = rng.choice([a, b])
                created.append(
                    task_service.create(
                        owner, {"title": f"w{seed}-{i}", "priority": "low", "categoryId": cat}
                    ).unwrap().id
                )
            for task_id in created[:2]:
                task_service.update(task_id, owner, {"categoryId": rng.choice([a, b, None])}).unwrap()
            for task_id in created[2:4]:
                task_service.delete(task_id, owner).unwrap()
        except Exception as exc:  # surfaced below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    _assert_consistent(factory)
    with factory() as session:
        assert session.exec(select(func.count()).select_from(Task)).one() == 6 * 4


class _DeletingCounter(CategoryCounter):
    """Removes the target category right before the increment lands."""

    def increment(self, session, category_id):
        with self._session_factory() as other:
            other.delete(other.get(Category, category_id))
            other.commit()
        return super().increment(session, category_id)


def _counts(session_factory, *category_ids):
    with session_factory() as session:
        return [session.get(Category, cid).task_count for cid in category_ids]


def test_create_rejects_category_removed_before_increment(
    session_factory, users, queries, categories, alice
):
    cat = categories.create(alice, "Short-lived").unwrap()
    service = TaskService(
        session_factory, users=users, counter=_DeletingCounter(session_factory), queries=queries
    )

    result = service.create(alice, {"title": "t", "priority": "low", "categoryId": cat.id})

    assert result.kind is ErrorKind.NOT_FOUND
    with session_factory() as session:
        assert session.exec(select(func.count()).select_from(Task)).one() == 0


def test_update_rejects_category_removed_after_authorization(
    monkeypatch, tasks, categories, session_factory, alice
):
    home = categories.create(alice, "Home").unwrap()
    doomed = categories.create(alice, "Doomed").unwrap()
    task = tasks.create(alice, {"title": "t", "priority": "low", "categoryId": home.id}).unwrap()
    authorize = TaskService._authorize_category

    def authorize_then_remove(session, category_id, user_id):
        category = authorize(session, category_id, user_id)
        with session_factory() as other:
            other.delete(other.get(Category, category_id))
            other.commit()
        return category

    monkeypatch.setattr(TaskService, "_authorize_category", staticmethod(authorize_then_remove))

    result = tasks.update(task.id, alice, {"categoryId": doomed.id})

    assert result.kind is ErrorKind.NOT_FOUND
    assert tasks.get(task.id, alice).unwrap().category_id == home.id
    assert _counts(session_factory, home.id) == [1]
    _assert_consistent(session_factory)


def _race_after_load(monkeypatch, competing):
    """Run ``competing`` once, right after the next task load."""
    load = TaskService._load
    pending = [competing]

    def load_then_compete(session, task_id):
        task = load(session, task_id)
        if pending:
            pending.pop()()
        return task

    monkeypatch.setattr(TaskService, "_load", staticmethod(load_then_compete))


def test_concurrent_category_moves_keep_counts_exact(
    monkeypatch, tasks, categories, session_factory, alice
):
    a = categories.create(alice, "A").unwrap()
    b = categories.create(alice, "B").unwrap()
    c = categories.create(alice, "C").unwrap()
    task = tasks.create(alice, {"title": "t", "priority": "low", "categoryId": a.id}).unwrap()
    _race_after_load(
        monkeypatch, lambda: tasks.update(task.id, alice, {"categoryId": c.id}).unwrap()
    )

    result = tasks.update(task.id, alice, {"categoryId": b.id})

    assert result.kind is ErrorKind.CONFLICT
    assert tasks.get(task.id, alice).unwrap().category_id == c.id
    assert _counts(session_factory, a.id, b.id, c.id) == [0, 0, 1]
    _assert_consistent(session_factory)


def test_delete_after_concurrent_move_keeps_counts_exact(
    monkeypatch, tasks, categories, session_factory, alice
):
    a = categories.create(alice, "A").unwrap()
    b = categories.create(alice, "B").unwrap()
    task = tasks.create(alice, {"title": "t", "priority": "low", "categoryId": a.id}).unwrap()
    _race_after_load(
        monkeypatch, lambda: tasks.update(task.id, alice, {"categoryId": b.id}).unwrap()
    )

    result = tasks.delete(task.id, alice)

    assert result.kind is ErrorKind.CONFLICT
    assert tasks.get(task.id, alice).unwrap().category_id == b.id
    assert _counts(session_factory, a.id, b.id) == [0, 1]
    _assert_consistent(session_factory)
