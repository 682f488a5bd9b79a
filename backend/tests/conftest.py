import os

# Avant tout import backend.* : l'engine applicatif est créé à l'import
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.db.base import Base
from backend.app.db.immutability import register_immutability_listeners
from backend.app.db.models.models_v1 import InventoryItem, User, Warehouse
from backend.app.db.models.core_types import Role

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")

register_immutability_listeners()


def _make_engine(url: str):
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if ":memory:" in url else None,
        )

        @event.listens_for(engine, "connect")
        def _fk_on(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine
    return create_engine(url, pool_pre_ping=True)


@pytest.fixture(scope="function")
def engine():
    """
    Base isolée par test : schéma créé puis détruit.

    Le moteur commit / rollback lui-même (frontière transactionnelle des
    transferts), on ne peut donc pas tout envelopper dans une transaction
    externe : chaque test repart d'une base vide.
    """
    eng = _make_engine(TEST_DATABASE_URL)
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def actor(db_session) -> User:
    user = User(username="operator", role=Role.staff, active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def make_warehouse(db_session):
    def _make(name: str, max_capacity="10000", current_capacity="0", active=True, threshold="80.00") -> Warehouse:
        wh = Warehouse(
            name=name,
            location=f"{name} dock",
            max_capacity=Decimal(max_capacity),
            current_capacity=Decimal(current_capacity),
            capacity_alert_threshold=Decimal(threshold),
            active=active,
        )
        db_session.add(wh)
        db_session.commit()
        return wh

    return _make


@pytest.fixture
def make_item(db_session):
    """
    Crée un article ET ajoute son volume au current_capacity de l'entrepôt,
    pour que le cache reste cohérent dès le départ.
    """

    def _make(warehouse: Warehouse, sku: str, quantity: int, volume_per_unit="1", **attrs) -> InventoryItem:
        item = InventoryItem(
            warehouse_id=warehouse.id,
            sku=sku,
            name=attrs.pop("name", f"Item {sku}"),
            quantity=quantity,
            volume_per_unit=Decimal(volume_per_unit),
            **attrs,
        )
        db_session.add(item)
        warehouse.current_capacity = Decimal(warehouse.current_capacity) + Decimal(volume_per_unit) * quantity
        db_session.commit()
        return item

    return _make


@pytest.fixture
def file_session_factory(tmp_path):
    """
    Base SQLite sur fichier : plusieurs connexions réelles, pour simuler
    deux transactions concurrentes.
    """
    eng = _make_engine(f"sqlite+pysqlite:///{tmp_path / 'concurrency.db'}")
    Base.metadata.create_all(bind=eng)
    try:
        yield sessionmaker(bind=eng, autoflush=False, autocommit=False)
    finally:
        eng.dispose()
