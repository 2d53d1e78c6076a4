"""Pytest configuration and fixtures."""

from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from inventario.auth import hash_password
from inventario.db import Base, make_engine
from inventario.deps import session_dep
from inventario.inventory_config import InventoryConfig
from inventario.main import create_app
from inventario.models import (
    ROLE_BODEGA,
    ROLE_DESCARGUE,
    ROLE_MANAGER,
    ROLE_SURTIDO,
    Product,
    User,
)
from inventario.services.inventory_service import InventoryService
from inventario.services.reconciliation_service import (
    AreaMigrationService,
    ReconciliationService,
)

TEST_DATABASE_URL = "sqlite://"
TEST_PASSWORD = "secret123"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = make_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def config() -> InventoryConfig:
    return InventoryConfig()


@pytest.fixture
def inventory(db_session: Session, config: InventoryConfig) -> InventoryService:
    return InventoryService(db_session, config=config)


@pytest.fixture
def reconciliation(db_session: Session) -> ReconciliationService:
    return ReconciliationService(db_session)


@pytest.fixture
def migration(db_session: Session, config: InventoryConfig) -> AreaMigrationService:
    return AreaMigrationService(db_session, config=config)


@pytest.fixture
def users(db_session: Session) -> dict[str, User]:
    """One active user per role, all with TEST_PASSWORD."""
    created = {}
    for role in (ROLE_MANAGER, ROLE_BODEGA, ROLE_SURTIDO, ROLE_DESCARGUE):
        user = User(
            username=f"{role}_user",
            password_hash=hash_password(TEST_PASSWORD, iterations=1000),
            role=role,
            is_active=True,
        )
        db_session.add(user)
        created[role] = user
    db_session.commit()
    for user in created.values():
        db_session.refresh(user)
    return created


@pytest.fixture
def product(db_session: Session) -> Product:
    p = Product(sku="A001", name="Arroz 1kg", category="Granos", unit="und")
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


@pytest.fixture
def other_product(db_session: Session) -> Product:
    p = Product(sku="B002", name="Frijol 500g", category="Granos", unit="und")
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    app = create_app(run_startup=False)

    def override_session():
        yield db_session

    app.dependency_overrides[session_dep] = override_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login(client: TestClient, users: dict[str, User]) -> Callable[[str], TestClient]:
    """Log the client in as the user holding ``role``."""

    def _login(role: str) -> TestClient:
        resp = client.post(
            "/auth/login",
            json={"username": users[role].username, "password": TEST_PASSWORD},
        )
        assert resp.status_code == 200, resp.text
        return client

    return _login
