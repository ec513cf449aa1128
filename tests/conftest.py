import pytest
from sqlalchemy.orm import sessionmaker

from firm_market.database import get_db, init_db, make_engine
from firm_market.traders import create_or_get_trader


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'market.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def alice(db):
    return create_or_get_trader(db, "alice").id


@pytest.fixture
def bob(db):
    return create_or_get_trader(db, "bob").id


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient

    from firm_market.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
