"""Shared pytest fixtures for all tests."""

from dataclasses import replace

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from webapp.blob_store import S3BlobStore
from webapp.config import Settings
from webapp.container import build_container
from webapp.database import init_database
from webapp.domain import User
from webapp.main import create_app
from webapp.repositories import (
    DynamoNodeRepository,
    DynamoUserRepository,
    SqliteNodeRepository,
    SqliteUserRepository,
)
from webapp.repositories.dynamo_repository import create_tables
from webapp.utils import generate_uuid, utc_now

TEST_BUCKET = "skybox-test-bucket"
TEST_REGION = "us-east-1"
FILES_TABLE = "skybox-test-files"
USERS_TABLE = "skybox-test-users"


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """
    Point boto3 at fake credentials so no test can reach real AWS.
    """
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_REGION)


@pytest.fixture
def aws():
    """
    Mock every AWS service for the duration of the test.
    """
    with mock_aws():
        yield


@pytest.fixture
def settings(tmp_path):
    """
    Settings for a test run: temp SQLite file, mocked bucket, insecure cookie
    so TestClient sends it back over http.
    """
    return Settings(
        database_path=str(tmp_path / "metadata.db"),
        aws_region=TEST_REGION,
        s3_bucket_name=TEST_BUCKET,
        dynamodb_files_table=FILES_TABLE,
        dynamodb_users_table=USERS_TABLE,
        jwt_secret="test-secret",
        cookie_secure=False,
        max_upload_bytes=1024,
        preview_max_bytes=64,
    )


@pytest.fixture
def s3_client(aws):
    """
    Mocked S3 client with the test bucket created.
    """
    client = boto3.client("s3", region_name=TEST_REGION)
    client.create_bucket(Bucket=TEST_BUCKET)
    return client


@pytest.fixture
def blob_store(s3_client):
    return S3BlobStore(s3_client, TEST_BUCKET)


@pytest.fixture
def dynamodb(aws):
    """
    Mocked DynamoDB resource with the files and users tables created.
    """
    resource = boto3.resource("dynamodb", region_name=TEST_REGION)
    create_tables(resource, FILES_TABLE, USERS_TABLE)
    return resource


@pytest.fixture(params=["sqlite", "dynamodb"])
def backend(request):
    """
    Metadata backend under test; tests using it run once per backend.
    """
    return request.param


@pytest.fixture
def repositories(backend, settings, aws, request):
    """
    Returns:
        Tuple of (user_repo, node_repo) for the parametrized backend
    """
    if backend == "dynamodb":
        resource = request.getfixturevalue("dynamodb")
        return DynamoUserRepository(resource, USERS_TABLE), DynamoNodeRepository(resource, FILES_TABLE)

    init_database(settings.database_path)
    return SqliteUserRepository(settings.database_path), SqliteNodeRepository(settings.database_path)


@pytest.fixture
def user_repo(repositories):
    return repositories[0]


@pytest.fixture
def node_repo(repositories):
    return repositories[1]


@pytest.fixture
def make_user(user_repo):
    """
    Factory creating users directly in the repository.

    Skips bcrypt; service tests never log these users in.
    """
    def _make_user(email: str) -> User:
        user = User(
            user_id=generate_uuid(),
            email=email,
            password_hash="not-a-real-hash",
            created_at=utc_now(),
        )
        return user_repo.create_user(user)

    return _make_user


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com")


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com")


@pytest.fixture
def container(settings, user_repo, node_repo, blob_store):
    return build_container(settings, user_repo=user_repo, node_repo=node_repo, blob_store=blob_store)


@pytest.fixture
def client(container):
    """Create FastAPI test client bound to the test container."""
    return TestClient(create_app(container.settings, container))


@pytest.fixture
def cascade_settings(settings):
    return replace(settings, folder_delete_policy="cascade")


@pytest.fixture
def register_and_login(client):
    """
    Factory registering a user through the API.

    Returns:
        Function returning Authorization headers for the new user
    """
    def _register_and_login(email: str, password: str = "password123") -> dict:
        response = client.post("/auth/register", json={"email": email, "password": password})
        assert response.status_code == 201, response.text
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _register_and_login
