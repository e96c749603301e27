from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from console_rental.config.settings import Settings
from console_rental.db.models import Base, Console, Product
from console_rental.services.factory import ServiceFactory

SHOP_TZ = "Asia/Jakarta"
SEEDED_AT = datetime(2024, 3, 1, 8, 0)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        shop_timezone=SHOP_TZ,
        ticker_enabled=False,
        metrics_enabled=False,
        log_level="DEBUG",
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
    yield factory
    engine.dispose()


@pytest.fixture
def sqlite_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def factory(settings, sqlite_session) -> ServiceFactory:
    factory = ServiceFactory(settings)
    factory.load_pricing(sqlite_session, SEEDED_AT)
    sqlite_session.commit()
    return factory


@pytest.fixture
def manager(factory, sqlite_session):
    return factory.rental_manager(sqlite_session)


@pytest.fixture
def members(factory, sqlite_session):
    return factory.member_service(sqlite_session)


@pytest.fixture
def consoles(sqlite_session):
    rows = {
        "ps3": Console(id="tv-1", name="TV 1", console_type="PS3", status="available"),
        "ps4": Console(id="tv-2", name="TV 2", console_type="PS4", status="available"),
        "ps5": Console(id="tv-3", name="TV 3", console_type="PS5", status="available"),
        "broken": Console(id="tv-4", name="TV 4", console_type="PS5", status="maintenance"),
    }
    sqlite_session.add_all(rows.values())
    sqlite_session.commit()
    return rows


@pytest.fixture
def products(sqlite_session):
    rows = {
        "tea": Product(
            id="p-tea", name="Es Teh", price=3000, category="Drink", stock=50,
            is_complimentary=True,
        ),
        "noodles": Product(id="p-noodles", name="Indomie", price=8000, category="Food", stock=5),
        "stick": Product(id="p-stick", name="Extra Stick", price=5000, category="Add-on", stock=20),
    }
    sqlite_session.add_all(rows.values())
    sqlite_session.commit()
    return rows
