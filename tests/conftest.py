# Mock environment variables, before the application loads its config
from os import environ

environ["CONFIG_JSON"] = '{"mail": {"mode": "console"}}'


# General imports
import random
import string
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from app.helpers.config_models.mail import ConsoleModel
from app.main import create_api
from app.models.task import TaskModel
from app.persistence.console import ConsoleMail
from app.persistence.memory import MemoryStore


@pytest.fixture
def random_text() -> str:
    text = "".join(random.choice(string.ascii_letters) for _ in range(32))
    return text


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def mail() -> ConsoleMail:
    return ConsoleMail(ConsoleModel())


@pytest.fixture
def failing_mail() -> ConsoleMail:
    return ConsoleMail(ConsoleModel(fail=True))


@pytest.fixture
def client(store: MemoryStore, mail: ConsoleMail) -> Iterator[TestClient]:
    with TestClient(create_api(store=store, mail=mail)) as client:
        yield client


@pytest.fixture
def groceries(store: MemoryStore) -> TaskModel:
    """
    A root task with a child and a grandchild.
    """
    parent = store.task_create(title="Groceries")
    child = store.task_create(title="Dairy", parent_id=parent.id)
    store.task_create(title="Milk", parent_id=child.id)
    return parent
