from pathlib import Path

import pytest

from postmarks_federation.core.security import generate_key_pair
from postmarks_federation.db import DatabaseSessionManager
from postmarks_federation.db.repository import FederationRepository
from postmarks_federation.services.activitypub import ActivityBuilder

DOMAIN = "bookmarks.example"
ACCOUNT = "alice"


@pytest.fixture(scope="session")
def key_pair() -> tuple[str, str]:
    return generate_key_pair(2048)


@pytest.fixture
def db_manager(tmp_path: Path):
    manager = DatabaseSessionManager.open(f"sqlite+pysqlite:///{tmp_path / 'activitypub.db'}")
    yield manager
    manager.dispose()


@pytest.fixture
def repository(db_manager) -> FederationRepository:
    return FederationRepository(db_manager)


@pytest.fixture
def account_repository(repository, key_pair) -> FederationRepository:
    """A repository holding a set-up local account."""
    public_key, private_key = key_pair
    builder = ActivityBuilder(domain=DOMAIN, account=ACCOUNT, repository=repository)
    repository.create_account(
        name=f"{ACCOUNT}@{DOMAIN}",
        actor=builder.actor_json(
            display_name="Alice", summary="", avatar="", public_key=public_key
        ),
        webfinger=builder.webfinger_json(),
        public_key=public_key,
        private_key=private_key,
    )
    return repository


@pytest.fixture
def builder(account_repository) -> ActivityBuilder:
    return ActivityBuilder(domain=DOMAIN, account=ACCOUNT, repository=account_repository)
