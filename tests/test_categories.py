from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from bootstrap import seed_defaults
from database import Base
from models import TransactionType
from schemas import BudgetIn, CategoryIn, TransactionIn, UserIn
from services import (
    SYSTEM_CATEGORIES,
    BudgetService,
    CategoryService,
    ConflictError,
    NotFoundError,
    TransactionService,
    UserService,
    ValidationError,
)


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def test_bootstrap_seeds_twelve_categories_and_one_user_once() -> None:
    session = make_session()

    assert seed_defaults(session) == (12, 1)
    assert seed_defaults(session) == (0, 0)

    categories = CategoryService(session)
    assert categories.count() == 12
    assert UserService(session).count() == 1
    assert all(c.is_system for c in categories.list_all())
    assert {c.name for c in categories.list_system()} == {
        name for name, *_ in SYSTEM_CATEGORIES
    }


def test_seeding_is_gated_on_empty_table() -> None:
    session = make_session()
    categories = CategoryService(session)
    categories.create(CategoryIn(name="Pets"))

    assert categories.seed_system_categories() == 0
    assert categories.count() == 1


def test_custom_category_is_never_system() -> None:
    session = make_session()
    categories = CategoryService(session)

    pets = categories.create(CategoryIn(name="Pets", color="#112233", icon="🐶"))

    assert pets.is_system is False
    assert [c.name for c in categories.list_custom()] == ["Pets"]
    assert categories.list_system() == []
    assert categories.get_by_name("Pets").id == pets.id


def test_duplicate_category_name_conflicts() -> None:
    session = make_session()
    categories = CategoryService(session)
    categories.create(CategoryIn(name="Pets"))

    with pytest.raises(ConflictError):
        categories.create(CategoryIn(name="Pets"))


def test_system_categories_are_immutable() -> None:
    session = make_session()
    seed_defaults(session)
    categories = CategoryService(session)
    food = categories.get_by_name("Food & Dining")

    with pytest.raises(ValidationError, match="system category"):
        categories.update(food.id, CategoryIn(name="Groceries"))
    with pytest.raises(ValidationError, match="system category"):
        categories.delete(food.id)
    assert categories.get(food.id).name == "Food & Dining"


def test_update_custom_category() -> None:
    session = make_session()
    categories = CategoryService(session)
    pets = categories.create(CategoryIn(name="Pets"))
    categories.create(CategoryIn(name="Garden"))

    renamed = categories.update(
        pets.id, CategoryIn(name="Animals", description="Vet and food")
    )
    assert renamed.name == "Animals"
    assert renamed.description == "Vet and food"
    with pytest.raises(ConflictError):
        categories.update(pets.id, CategoryIn(name="Garden"))


def test_delete_category_in_use_fails() -> None:
    session = make_session()
    user = UserService(session).create(
        UserIn(username="alice", email="alice@example.com", full_name="A")
    )
    categories = CategoryService(session)
    pets = categories.create(CategoryIn(name="Pets"))
    TransactionService(session, user.id).create(
        TransactionIn(
            amount=Decimal("15.00"),
            category_id=pets.id,
            transaction_date=date.today(),
            type=TransactionType.expense,
        )
    )

    with pytest.raises(ValidationError, match="existing transactions"):
        categories.delete(pets.id)
    assert categories.get(pets.id).name == "Pets"


def test_delete_category_with_budget_fails() -> None:
    session = make_session()
    user = UserService(session).create(
        UserIn(username="alice", email="alice@example.com", full_name="A")
    )
    categories = CategoryService(session)
    pets = categories.create(CategoryIn(name="Pets"))
    BudgetService(session, user.id).create_or_update(
        BudgetIn(amount=Decimal("40.00"), category_id=pets.id, month=1, year=2025)
    )

    with pytest.raises(ValidationError, match="existing budgets"):
        categories.delete(pets.id)

    assert categories.get(pets.id).name == "Pets"
    assert len(BudgetService(session, user.id).list_for_user()) == 1


def test_delete_unused_category() -> None:
    session = make_session()
    categories = CategoryService(session)
    pets = categories.create(CategoryIn(name="Pets"))

    categories.delete(pets.id)

    with pytest.raises(NotFoundError):
        categories.get(pets.id)
    with pytest.raises(NotFoundError):
        categories.delete(pets.id)
