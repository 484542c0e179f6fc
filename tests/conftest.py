import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

import itertools

import pytest
from app import create_app
from app.extensions import db
from app.models import Role, Topic, User
from app.services.policy import Actor

_seq = itertools.count(1)


@pytest.fixture(scope="session")
def app():
    app = create_app()
    app.config.update(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        RATELIMIT_ENABLED=False,
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()


@pytest.fixture()
def session(app):
    """db.session inside an app context, for service-level tests."""
    with app.app_context():
        yield db.session
        db.session.rollback()


@pytest.fixture()
def make_user(app):
    """Factory: make_user(role="developer") -> committed User."""
    def _make(role: str = "user", name: str | None = None, password: str = "secret-pass") -> User:
        n = next(_seq)
        user = User(name=name or f"User {n}", email=f"user{n}@example.com", role=role)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def make_topic(app):
    def _make(name: str | None = None) -> Topic:
        topic = Topic(name=name or f"Topic {next(_seq)}", color="#0284c7")
        db.session.add(topic)
        db.session.commit()
        return topic
    return _make


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=Role(user.role))


@pytest.fixture()
def as_actor():
    return actor_for


@pytest.fixture()
def login():
    def _login(client, user_id: int):
        # Simulate Flask-Login session
        with client.session_transaction() as sess:
            sess["_user_id"] = str(user_id)
    return _login
