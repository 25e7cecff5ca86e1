import importlib

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine


@pytest.fixture
def engine(monkeypatch, tmp_path):
    # Use isolated SQLite DB per test
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")

    # Reload config + db modules to pick up new env
    import app.core.config as config_module
    import app.db.database as db_module
    importlib.reload(config_module)
    importlib.reload(db_module)

    # Register table metadata before creating tables
    import app.models.message  # noqa: F401
    import app.models.user  # noqa: F401

    test_engine = create_engine(
        config_module.settings.database_url,
        echo=False,
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(test_engine)
    return test_engine


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def session_factory(engine):
    return lambda: Session(engine)


@pytest.fixture
def client(engine, session_factory):
    import main
    importlib.reload(main)
    from main import app
    from app.realtime.hub import ConnectionHub
    from app.routers import chat as chat_router
    from app.routers import messages as messages_router

    def get_test_session():
        with Session(engine) as session:
            yield session

    test_hub = ConnectionHub()
    app.dependency_overrides[chat_router.get_hub] = lambda: test_hub
    app.dependency_overrides[chat_router.get_session_factory] = lambda: session_factory
    app.dependency_overrides[messages_router.get_db_session] = get_test_session

    test_client = TestClient(app)
    test_client.hub = test_hub
    return test_client
