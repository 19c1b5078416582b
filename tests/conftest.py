import os

import pytest
from fastapi.testclient import TestClient

# Importing src.taskapi.main builds the module-level app from the environment;
# tests never need a MongoDB server for that.
os.environ["PERSISTENCE_BACKEND"] = "memory"

from src.taskapi.main import create_app  # noqa: E402
from src.taskapi.repositories import InMemoryTaskStore  # noqa: E402
from src.taskapi.settings import Settings  # noqa: E402


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        persistence_backend="memory",
        mongodb_uri=None,
        mongodb_database="studyboard",
        mongodb_collection="tasks",
        cors_allow_origins=["*"],
        log_level="INFO",
        log_dir=None,
    )


@pytest.fixture()
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture()
def client(settings: Settings, store: InMemoryTaskStore) -> TestClient:
    """A client for a fresh app so every test starts with an empty store."""
    return TestClient(create_app(settings, store=store))
