# Shared fixtures: in-memory database, seeded credential store and clients,
# a configured AuthorizationService and a TestClient over the full app.

import os

os.environ["JWT_SECRET"] = "test-secret-for-the-debuggers-oauth2-provider"
os.environ["REFRESH_TOKEN_CLEANUP_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"

import uuid
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from apps.api.main import create_app
from auth.auth_manager import auth_manager
from auth.models import User
from oauth2.config import OAuth2Config
from oauth2.models import Client, RedirectUrl, Scope, ToAgree
from oauth2.service import AuthorizationService
from storage.relational.database import DatabaseConfig, DatabaseManager

CLIENT_SECRET = "s3cret-client-value"
REDIRECT_URL = "https://app.example.com/callback"


@pytest.fixture(autouse=True)
def database():
    DatabaseManager.initialize(DatabaseConfig("sqlite://"))
    yield DatabaseManager
    DatabaseManager.drop_tables()
    DatabaseManager.dispose()


@pytest.fixture
def db(database):
    session = database.new_session()
    yield session
    session.close()


@pytest.fixture
def seeded(db):
    """
    One member, one administrator, an OAuth-enabled client and a disabled one.

    Client declarations: email (essential), username (optional),
    profileImage (optional, releases no claim). schoolNumber exists in the
    catalog but is not declared by the client.
    """
    member = User(
        username="alice",
        fullname="Alice Kim",
        school_number="20230001",
        email="alice@example.com",
        password_hash=auth_manager.hash_secret("password", rounds=4),
        permission=0
    )
    admin = User(
        username="root",
        fullname="Admin",
        school_number="20190001",
        email="admin@example.com",
        password_hash=auth_manager.hash_secret("password", rounds=4),
        permission=3
    )

    email = Scope(title="Email address", item="email")
    username = Scope(title="Username", item="username")
    school_number = Scope(title="School number", item="schoolNumber")
    profile_image = Scope(title="Profile image", item="profileImage")

    secret_hash = auth_manager.hash_secret(CLIENT_SECRET, rounds=4)
    client = Client(
        id=str(uuid.uuid4()),
        title="Study Planner",
        profile="https://app.example.com/logo.png",
        secret=secret_hash,
        use_oauth=True
    )
    disabled = Client(
        id=str(uuid.uuid4()),
        title="Legacy App",
        profile="",
        secret=secret_hash,
        use_oauth=False
    )

    db.add_all([member, admin, email, username, school_number, profile_image, client, disabled])
    db.flush()

    client.redirect_urls.append(RedirectUrl(value=REDIRECT_URL))
    disabled.redirect_urls.append(RedirectUrl(value=REDIRECT_URL))
    client.to_agree.extend([
        ToAgree(scope=email, is_essential=True),
        ToAgree(scope=username, is_essential=False),
        ToAgree(scope=profile_image, is_essential=False),
    ])
    db.commit()

    return SimpleNamespace(
        member=member,
        admin=admin,
        client=client,
        disabled=disabled,
        email=email,
        username=username,
        school_number=school_number,
        profile_image=profile_image
    )


@pytest.fixture
def config():
    return OAuth2Config()


@pytest.fixture
def service(config):
    return AuthorizationService(config)


@pytest.fixture
def app(config):
    return create_app(config)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def member_client(client, seeded):
    """TestClient signed in as the seeded member via the sid cookie"""
    client.cookies.set("sid", auth_manager.create_session_token(seeded.member))
    return client


@pytest.fixture
def admin_client(client, seeded):
    client.cookies.set("sid", auth_manager.create_session_token(seeded.admin))
    return client
