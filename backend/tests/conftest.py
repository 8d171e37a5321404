"""
Pytest Konfiguration und gemeinsame Fixtures
"""
import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sprout.main import app
from sprout.database import Base, get_db
from sprout.models import Recipe, Product
from sprout.services.consumable_service import ConsumableService
from sprout.services.lookup_service import seed_lookup_tables


# Test-Datenbank (SQLite in-memory)
SQLALCHEMY_TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Test-DB Session"""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Dependency Override
app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
def db():
    """Datenbankverbindung für Tests"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seeded_db(db):
    """Standard-Stammdaten (Phasen, Einheiten, Status)"""
    seed_lookup_tables(db)
    db.commit()
    return db


@pytest.fixture(scope="function")
def client(seeded_db):
    """Test Client mit frischer Datenbank und Stammdaten"""
    yield TestClient(app)


@pytest.fixture
def session_factory():
    """Session-Factory der Test-Datenbank für Celery Tasks"""
    return TestingSessionLocal


@pytest.fixture
def seed_consumable(seeded_db):
    """Saatgut mit 1000g Anfangsbestand"""
    consumable = ConsumableService(seeded_db).create_consumable(
        name="Sonnenblume Black Oil",
        type_code="seed",
        unit_code="g",
        initial_stock=Decimal("1000"),
        lot_no="sb-2026-01",
        restock_threshold=Decimal("200"),
    )
    seeded_db.commit()
    return consumable


@pytest.fixture
def packaging_consumable(seeded_db):
    """Verpackung in Stück mit 50 Schalen je Karton"""
    consumable = ConsumableService(seeded_db).create_consumable(
        name="Schale 500ml",
        type_code="packaging",
        unit_code="unit",
        initial_stock=Decimal("10"),
        quantity_per_unit=Decimal("50"),
        restock_threshold=Decimal("4"),
    )
    seeded_db.commit()
    return consumable


@pytest.fixture
def recipe(seeded_db, seed_consumable):
    """Rezept ohne Einweichen: 2 Tage Keimung, 3 Tage Dunkel, 5 Tage Licht"""
    recipe = Recipe(
        name="Sonnenblume",
        seed_consumable_id=seed_consumable.id,
        seed_density_grams_per_tray=Decimal("100"),
        seed_soak_hours=0,
        germination_days=Decimal("2"),
        blackout_days=Decimal("3"),
        light_days=Decimal("5"),
        expected_yield_grams=Decimal("350"),
        suspend_watering_hours=12,
    )
    seeded_db.add(recipe)
    seeded_db.commit()
    return recipe


@pytest.fixture
def soaking_recipe(seeded_db, seed_consumable):
    """Rezept mit 8h Einweichen und ohne Dunkelphase"""
    recipe = Recipe(
        name="Erbse",
        seed_consumable_id=seed_consumable.id,
        seed_density_grams_per_tray=Decimal("50"),
        seed_soak_hours=8,
        germination_days=Decimal("2"),
        blackout_days=Decimal("0"),
        light_days=Decimal("6"),
        expected_yield_grams=Decimal("400"),
    )
    seeded_db.add(recipe)
    seeded_db.commit()
    return recipe


@pytest.fixture
def product(seeded_db, recipe):
    """Verkaufsprodukt: 50g Schale Sonnenblume"""
    product = Product(
        sku="MG-SB-50",
        name="Sonnenblume 50g",
        recipe_id=recipe.id,
        net_weight_grams=Decimal("50"),
        reorder_threshold=Decimal("5"),
    )
    seeded_db.add(product)
    seeded_db.commit()
    return product
