from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from database import Base
from models import Budget, TransactionType
from schemas import BudgetIn, CategoryIn, TransactionIn, UserIn
from services import (
    BudgetService,
    CategoryService,
    NotFoundError,
    TransactionService,
    UserService,
    ValidationError,
    compute_budget_status,
)


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def setup_food_march(session, budget_amount: str, threshold: int = 75):
    user = UserService(session).create(
        UserIn(username="ursula", email="ursula@example.com", full_name="Ursula U")
    )
    food = CategoryService(session).create(CategoryIn(name="Food"))
    txns = TransactionService(session, user.id)
    for amount, day in (("30.00", 4), ("50.00", 18)):
        txns.create(
            TransactionIn(
                amount=Decimal(amount),
                category_id=food.id,
                transaction_date=date(2024, 3, day),
                type=TransactionType.expense,
            )
        )
    budgets = BudgetService(session, user.id)
    budget = budgets.create_or_update(
        BudgetIn(
            amount=Decimal(budget_amount),
            category_id=food.id,
            month=3,
            year=2024,
            alert_threshold=threshold,
        )
    )
    return user, food, budgets, budget


def test_compute_status_near_limit() -> None:
    status = compute_budget_status(10_000, 8_000, 75)
    assert status.spent == Decimal("80.00")
    assert status.remaining == Decimal("20.00")
    assert status.percentage == Decimal("80.00")
    assert status.is_over_budget is False
    assert status.is_near_limit is True


def test_compute_status_zero_amount_has_zero_percentage() -> None:
    status = compute_budget_status(0, 5_000, 80)
    assert status.percentage == Decimal("0.00")
    assert status.is_over_budget is True
    assert status.is_near_limit is False


def test_compute_status_rounds_half_up() -> None:
    # 1 / 8 * 100 = 12.5 exactly; 1 / 3 * 100 = 33.333...
    assert compute_budget_status(800, 1, 80).percentage == Decimal("0.13")
    assert compute_budget_status(300, 100, 80).percentage == Decimal("33.33")
    assert compute_budget_status(300, 200, 80).percentage == Decimal("66.67")


def test_compute_status_threshold_is_inclusive() -> None:
    assert compute_budget_status(10_000, 7_500, 75).is_near_limit is True
    assert compute_budget_status(10_000, 7_499, 75).is_near_limit is False


def test_status_for_category_matches_march_scenario() -> None:
    session = make_session()
    _, food, budgets, _ = setup_food_march(session, "100.00")

    report = budgets.status_for_category(food.id, 3, 2024)
    assert report.status.spent == Decimal("80.00")
    assert report.status.remaining == Decimal("20.00")
    assert report.status.percentage == Decimal("80.00")
    assert report.status.is_over_budget is False
    assert report.status.is_near_limit is True


def test_status_over_budget_when_amount_is_fifty() -> None:
    session = make_session()
    _, food, budgets, _ = setup_food_march(session, "50.00")

    report = budgets.status_for_category(food.id, 3, 2024)
    assert report.status.spent == Decimal("80.00")
    assert report.status.remaining == Decimal("-30.00")
    assert report.status.percentage == Decimal("160.00")
    assert report.status.is_over_budget is True


def test_status_ignores_income_and_other_months() -> None:
    session = make_session()
    user, food, budgets, _ = setup_food_march(session, "100.00")
    txns = TransactionService(session, user.id)
    txns.create(
        TransactionIn(
            amount=Decimal("500.00"),
            category_id=food.id,
            transaction_date=date(2024, 3, 10),
            type=TransactionType.income,
        )
    )
    txns.create(
        TransactionIn(
            amount=Decimal("40.00"),
            category_id=food.id,
            transaction_date=date(2024, 4, 1),
            type=TransactionType.expense,
        )
    )

    report = budgets.status_for_category(food.id, 3, 2024)
    assert report.status.spent == Decimal("80.00")


def test_status_for_category_without_budget_is_not_found() -> None:
    session = make_session()
    _, food, budgets, _ = setup_food_march(session, "100.00")

    with pytest.raises(NotFoundError):
        budgets.status_for_category(food.id, 4, 2024)


def test_upsert_updates_same_row() -> None:
    session = make_session()
    user, food, budgets, budget = setup_food_march(session, "100.00")

    again = budgets.create_or_update(
        BudgetIn(
            amount=Decimal("250.00"),
            category_id=food.id,
            month=3,
            year=2024,
            alert_threshold=90,
            notes="raised",
        )
    )

    assert again.id == budget.id
    assert again.amount_cents == 25_000
    assert again.alert_threshold == 90
    assert again.notes == "raised"
    count = session.execute(
        select(func.count(Budget.id)).where(Budget.user_id == user.id)
    ).scalar_one()
    assert count == 1


def test_upsert_creates_separate_rows_per_period() -> None:
    session = make_session()
    _, food, budgets, budget = setup_food_march(session, "100.00")

    april = budgets.create_or_update(
        BudgetIn(amount=Decimal("100.00"), category_id=food.id, month=4, year=2024)
    )

    assert april.id != budget.id
    assert april.alert_threshold == 80
    assert april.period_start == date(2024, 4, 1)
    assert april.period_end == date(2024, 4, 30)
    assert len(budgets.list_for_user()) == 2


def test_upsert_updates_row_inserted_after_lookup(monkeypatch) -> None:
    session = make_session()
    user, food, budgets, budget = setup_food_march(session, "100.00")
    real_find = budgets._find
    calls = []

    def find_missing_once(category_id, month, year):
        calls.append((category_id, month, year))
        if len(calls) == 1:
            return None
        return real_find(category_id, month, year)

    monkeypatch.setattr(budgets, "_find", find_missing_once)

    again = budgets.create_or_update(
        BudgetIn(amount=Decimal("120.00"), category_id=food.id, month=3, year=2024)
    )

    assert len(calls) == 2
    assert again.id == budget.id
    assert again.amount_cents == 12_000
    count = session.execute(
        select(func.count(Budget.id)).where(Budget.user_id == user.id)
    ).scalar_one()
    assert count == 1


def test_update_by_id_changes_amount_only() -> None:
    session = make_session()
    _, food, budgets, budget = setup_food_march(session, "100.00")

    updated = budgets.update(
        budget.id,
        BudgetIn(
            amount=Decimal("60.00"),
            category_id=food.id,
            month=3,
            year=2024,
            alert_threshold=50,
        ),
    )

    assert updated.id == budget.id
    assert updated.amount_cents == 6_000
    assert updated.alert_threshold == 50


def test_update_by_id_rejects_moving_the_budget() -> None:
    session = make_session()
    _, food, budgets, budget = setup_food_march(session, "100.00")
    travel = CategoryService(session).create(CategoryIn(name="Travel"))

    with pytest.raises(ValidationError, match="cannot be changed"):
        budgets.update(
            budget.id,
            BudgetIn(amount=Decimal("100.00"), category_id=food.id, month=4, year=2024),
        )
    with pytest.raises(ValidationError, match="cannot be changed"):
        budgets.update(
            budget.id,
            BudgetIn(
                amount=Decimal("100.00"), category_id=travel.id, month=3, year=2024
            ),
        )
    with pytest.raises(NotFoundError):
        budgets.update(
            budget.id + 1,
            BudgetIn(amount=Decimal("100.00"), category_id=food.id, month=3, year=2024),
        )

    [only] = budgets.list_for_user()
    assert (only.id, only.month, only.amount_cents) == (budget.id, 3, 10_000)


def test_upsert_requires_existing_user_and_category() -> None:
    session = make_session()
    user, food, _, _ = setup_food_march(session, "100.00")

    with pytest.raises(NotFoundError):
        BudgetService(session, user.id + 100).create_or_update(
            BudgetIn(amount=Decimal("10.00"), category_id=food.id, month=1, year=2024)
        )
    with pytest.raises(NotFoundError):
        BudgetService(session, user.id).create_or_update(
            BudgetIn(amount=Decimal("10.00"), category_id=9999, month=1, year=2024)
        )


def test_upsert_rejects_years_before_2020() -> None:
    session = make_session()
    user, food, budgets, _ = setup_food_march(session, "100.00")

    data = BudgetIn.model_construct(
        amount=Decimal("10.00"),
        category_id=food.id,
        month=1,
        year=2019,
        alert_threshold=80,
        notes=None,
    )
    with pytest.raises(ValidationError):
        budgets.create_or_update(data)


def test_monthly_status_lists_every_budget_in_period() -> None:
    session = make_session()
    user, food, budgets, _ = setup_food_march(session, "100.00")
    travel = CategoryService(session).create(CategoryIn(name="Travel"))
    budgets.create_or_update(
        BudgetIn(amount=Decimal("300.00"), category_id=travel.id, month=3, year=2024)
    )
    budgets.create_or_update(
        BudgetIn(amount=Decimal("300.00"), category_id=travel.id, month=5, year=2024)
    )

    reports = budgets.monthly_status(3, 2024)
    by_category = {r.budget.category_id: r.status for r in reports}
    assert set(by_category) == {food.id, travel.id}
    assert by_category[food.id].spent == Decimal("80.00")
    assert by_category[travel.id].spent == Decimal("0.00")
    assert by_category[travel.id].percentage == Decimal("0.00")
    assert by_category[travel.id].remaining == Decimal("300.00")


def test_alerts_only_for_budgets_at_or_over_threshold() -> None:
    session = make_session()
    user, food, budgets, _ = setup_food_march(session, "100.00", threshold=75)
    travel = CategoryService(session).create(CategoryIn(name="Travel"))
    budgets.create_or_update(
        BudgetIn(amount=Decimal("300.00"), category_id=travel.id, month=3, year=2024)
    )

    alerts = budgets.alerts(on=date(2024, 3, 20))

    assert len(alerts) == 1
    alert = alerts[0]
    assert alert.category == "Food"
    assert alert.budget_amount == Decimal("100.00")
    assert alert.spent == Decimal("80.00")
    assert alert.percentage == Decimal("80.00")
    assert alert.severity == "MEDIUM"
    assert alert.message == "You've spent 80% of your Food budget"


def test_alerts_high_severity_when_over_budget() -> None:
    session = make_session()
    _, _, budgets, _ = setup_food_march(session, "50.00")

    alerts = budgets.alerts(on=date(2024, 3, 31))
    assert [a.severity for a in alerts] == ["HIGH"]
    assert alerts[0].message == "You've spent 160% of your Food budget"


def test_alerts_use_the_given_month_only() -> None:
    session = make_session()
    _, _, budgets, _ = setup_food_march(session, "50.00")

    assert budgets.alerts(on=date(2024, 4, 1)) == []


def test_delete_budget() -> None:
    session = make_session()
    _, _, budgets, budget = setup_food_march(session, "100.00")

    budgets.delete(budget.id)
    assert budgets.list_for_user() == []
    with pytest.raises(NotFoundError):
        budgets.delete(budget.id)
