import os
import tempfile

# keep log files and the default database out of the user's data directory
os.environ.setdefault("TASKBOARD_DATA_DIR", tempfile.mkdtemp(prefix="taskboard-tests-"))

import pytest
from sqlmodel import Session

from services.categories import CategoryService
from services.category_counter import CategoryCounter
from services.query import QueryEngine
from services.tasks import TaskService
from services.users import UserDirectory
from storage.db import init_db, make_engine


@pytest.fixture()
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    def factory():
        return Session(engine)

    return factory


@pytest.fixture()
def users(session_factory):
    return UserDirectory(session_factory)


@pytest.fixture()
def counter(session_factory):
    return CategoryCounter(session_factory)


@pytest.fixture()
def categories(session_factory):
    return CategoryService(session_factory)


@pytest.fixture()
def queries(session_factory):
    return QueryEngine(session_factory)


@pytest.fixture()
def tasks(session_factory, users, counter, queries):
    return TaskService(session_factory, users=users, counter=counter, queries=queries)


@pytest.fixture()
def alice(users):
    return users.register("alice", "alice@example.com").unwrap().id


@pytest.fixture()
def bob(users):
    return users.register("bob", "bob@example.com").unwrap().id


@pytest.fixture()
def carol(users):
    return users.register("carol", "carol@example.com").unwrap().id
