from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from amounts import format_percent, from_cents, percentage_of, round_half_up, to_cents
from config import get_settings
from models import Budget, Category, Transaction, TransactionType, User, utcnow
from periods import Period, custom_period, month_period, year_period
from schemas import (
    BudgetIn,
    CategoryIn,
    TransactionIn,
    TransactionUpdateIn,
    UserIn,
    UserUpdateIn,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
RECENT_LIMIT = 10
MIN_BUDGET_YEAR = 2020

SYSTEM_CATEGORIES: list[tuple[str, str, str, str]] = [
    ("Food & Dining", "Restaurants, groceries, food delivery", "🍔", "#FF6384"),
    ("Transportation", "Gas, public transit, parking, taxi", "🚗", "#36A2EB"),
    ("Shopping", "Clothing, electronics, household items", "🛍️", "#FFCE56"),
    ("Entertainment", "Movies, games, hobbies, subscriptions", "🎬", "#4BC0C0"),
    ("Bills & Utilities", "Electricity, water, internet, phone", "💡", "#9966FF"),
    ("Healthcare", "Medical, dental, pharmacy, insurance", "🏥", "#FF9F40"),
    ("Education", "Courses, books, training materials", "📚", "#FF6384"),
    ("Travel", "Flights, hotels, vacation expenses", "✈️", "#C9CBCF"),
    ("Personal Care", "Haircuts, cosmetics, gym membership", "💅", "#4BC0C0"),
    ("Savings", "Emergency fund, investments", "💰", "#90EE90"),
    ("Income", "Salary, freelance, other income", "💵", "#32CD32"),
    ("Other", "Miscellaneous expenses", "📌", "#808080"),
]

DEMO_USER = {
    "username": "johndoe",
    "email": "john.doe@example.com",
    "full_name": "John Doe",
}


class ServiceError(ValueError):
    """Base for errors raised by the service layer."""


class ValidationError(ServiceError):
    pass


class NotFoundError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


def today() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def _month(year: int, month: int) -> Period:
    try:
        return month_period(year, month)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _year(year: int) -> Period:
    try:
        return year_period(year)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _positive_cents(amount: Decimal) -> int:
    try:
        cents = to_cents(amount)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if cents <= 0:
        raise ValidationError("Amount must be greater than 0")
    return cents


@dataclass(frozen=True)
class CategoryTotal:
    category_id: int
    category_name: str
    total: Decimal


@dataclass(frozen=True)
class MonthlySummary:
    month: int
    year: int
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    category_breakdown: list[CategoryTotal]


@dataclass(frozen=True)
class YearlySummary:
    year: int
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    average_monthly_expense: Decimal


@dataclass(frozen=True)
class BudgetStatus:
    spent: Decimal
    remaining: Decimal
    percentage: Decimal
    is_over_budget: bool
    is_near_limit: bool


@dataclass(frozen=True)
class BudgetReport:
    budget: Budget
    status: BudgetStatus


@dataclass(frozen=True)
class BudgetAlert:
    budget_id: int
    category: str
    budget_amount: Decimal
    spent: Decimal
    percentage: Decimal
    message: str
    severity: str


@dataclass
class TransactionFilters:
    category_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    type: Optional[TransactionType] = None

    @property
    def has_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None


@dataclass
class TransactionPage:
    items: list[Transaction]
    page: int
    size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0


def compute_budget_status(
    amount_cents: int, spent_cents: int, alert_threshold: int
) -> BudgetStatus:
    """Status of a budget given what has been spent against it.

    The percentage is spent * 100 / amount rounded half-up to two places, and
    zero for a zero amount. Remaining may go negative once overspent.
    """
    percentage = percentage_of(spent_cents, amount_cents)
    return BudgetStatus(
        spent=from_cents(spent_cents),
        remaining=from_cents(amount_cents - spent_cents),
        percentage=percentage,
        is_over_budget=spent_cents > amount_cents,
        is_near_limit=percentage >= Decimal(alert_threshold),
    )


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def count(self) -> int:
        return int(self.session.execute(select(func.count(User.id))).scalar_one() or 0)

    def seed_demo_user(self) -> Optional[User]:
        if self.count():
            return None
        user = User(active=True, **DEMO_USER)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info(f"seed_demo_user: username={user.username} id={user.id}")
        return user

    def _username_taken(self, username: str) -> bool:
        stmt = select(User.id).where(User.username == username)
        return self.session.scalar(stmt) is not None

    def _email_owner(self, email: str) -> Optional[int]:
        return self.session.scalar(select(User.id).where(User.email == email))

    def create(self, data: UserIn) -> User:
        if self._username_taken(data.username):
            raise ConflictError("Username already exists")
        if self._email_owner(data.email) is not None:
            raise ConflictError("Email already exists")
        user = User(
            username=data.username,
            email=data.email,
            full_name=data.full_name,
            active=True,
        )
        self.session.add(user)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("Username or email already exists") from exc
        self.session.commit()
        self.session.refresh(user)
        logger.info(f"user_created: id={user.id} username={user.username}")
        return user

    def get(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError(f"User not found with id: {user_id}")
        return user

    def get_by_username(self, username: str) -> User:
        user = self.session.scalar(select(User).where(User.username == username))
        if not user:
            raise NotFoundError(f"User not found with username: {username}")
        return user

    def get_by_email(self, email: str) -> User:
        user = self.session.scalar(select(User).where(User.email == email))
        if not user:
            raise NotFoundError(f"User not found with email: {email}")
        return user

    def list_all(self) -> list[User]:
        return self.session.scalars(select(User).order_by(User.id)).all()

    def exists(self, user_id: int) -> bool:
        return self.session.get(User, user_id) is not None

    def update(self, user_id: int, data: UserUpdateIn) -> User:
        user = self.get(user_id)
        owner = self._email_owner(data.email)
        if owner is not None and owner != user.id:
            raise ConflictError("Email already exists")
        # username is immutable once created
        user.full_name = data.full_name
        user.email = data.email
        self.session.commit()
        self.session.refresh(user)
        return user

    def deactivate(self, user_id: int) -> None:
        user = self.get(user_id)
        user.active = False
        self.session.commit()
        logger.info(f"user_deactivated: id={user_id}")


class CategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def count(self) -> int:
        return int(
            self.session.execute(select(func.count(Category.id))).scalar_one() or 0
        )

    def seed_system_categories(self) -> int:
        # gated on an empty table, not on per-name existence
        if self.count():
            return 0
        self.session.add_all(
            [
                Category(
                    name=name,
                    description=description,
                    icon=icon,
                    color=color,
                    is_system=True,
                )
                for name, description, icon, color in SYSTEM_CATEGORIES
            ]
        )
        self.session.commit()
        logger.info(f"seed_system_categories: inserted={len(SYSTEM_CATEGORIES)}")
        return len(SYSTEM_CATEGORIES)

    def list_all(self) -> list[Category]:
        return self.session.scalars(select(Category).order_by(Category.name)).all()

    def list_system(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.is_system.is_(True))
            .order_by(Category.name)
        )
        return self.session.scalars(stmt).all()

    def list_custom(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.is_system.is_(False))
            .order_by(Category.name)
        )
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category:
            raise NotFoundError(f"Category not found with id: {category_id}")
        return category

    def get_by_name(self, name: str) -> Category:
        category = self.session.scalar(select(Category).where(Category.name == name))
        if not category:
            raise NotFoundError(f"Category not found with name: {name}")
        return category

    def _name_owner(self, name: str) -> Optional[int]:
        return self.session.scalar(select(Category.id).where(Category.name == name))

    def create(self, data: CategoryIn) -> Category:
        if self._name_owner(data.name) is not None:
            raise ConflictError(f"Category with name '{data.name}' already exists")
        category = Category(
            name=data.name,
            description=data.description,
            icon=data.icon,
            color=data.color,
            is_system=False,
        )
        self.session.add(category)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(
                f"Category with name '{data.name}' already exists"
            ) from exc
        self.session.commit()
        self.session.refresh(category)
        logger.info(f"category_created: id={category.id} name={category.name}")
        return category

    def update(self, category_id: int, data: CategoryIn) -> Category:
        category = self.get(category_id)
        if category.is_system:
            raise ValidationError("Cannot modify system category")
        owner = self._name_owner(data.name)
        if owner is not None and owner != category.id:
            raise ConflictError(f"Category with name '{data.name}' already exists")
        category.name = data.name
        category.description = data.description
        category.icon = data.icon
        category.color = data.color
        self.session.commit()
        self.session.refresh(category)
        return category

    def usage_count(self, category_id: int) -> int:
        stmt = select(func.count(Transaction.id)).where(
            Transaction.category_id == category_id
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        if category.is_system:
            raise ValidationError("Cannot delete system category")
        if self.usage_count(category_id):
            raise ValidationError("Cannot delete category with existing transactions")
        budgets = self.session.execute(
            select(func.count(Budget.id)).where(Budget.category_id == category_id)
        ).scalar_one()
        if budgets:
            raise ValidationError("Cannot delete category with existing budgets")
        self.session.delete(category)
        self.session.commit()
        logger.info(f"category_deleted: id={category_id}")


SORT_FIELDS = {
    "transactionDate": Transaction.transaction_date,
    "transaction_date": Transaction.transaction_date,
    "amount": Transaction.amount_cents,
    "createdAt": Transaction.created_at,
    "created_at": Transaction.created_at,
    "updatedAt": Transaction.updated_at,
    "updated_at": Transaction.updated_at,
    "description": Transaction.description,
    "type": Transaction.type,
    "id": Transaction.id,
}


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def user(self) -> User:
        return UserService(self.session).get(self.user_id)

    def _category(self, category_id: int) -> Category:
        return CategoryService(self.session).get(category_id)

    def create(self, data: TransactionIn) -> Transaction:
        user = self.user()
        category = self._category(data.category_id)
        txn = Transaction(
            user_id=user.id,
            category_id=category.id,
            amount_cents=_positive_cents(data.amount),
            description=data.description,
            transaction_date=data.transaction_date or today(),
            type=data.type,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: id={txn.id} user_id={self.user_id} "
            f"type={txn.type.value} amount_cents={txn.amount_cents}"
        )
        return txn

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category), joinedload(Transaction.user))
            .where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFoundError(f"Transaction not found with id: {transaction_id}")
        return txn

    def update(self, transaction_id: int, data: TransactionUpdateIn) -> Transaction:
        txn = self.get(transaction_id)
        category = (
            self._category(data.category_id) if data.category_id is not None else None
        )
        txn.amount_cents = _positive_cents(data.amount)
        txn.description = data.description
        if data.transaction_date is not None:
            txn.transaction_date = data.transaction_date
        txn.type = data.type
        if category is not None:
            txn.category = category
        txn.updated_at = utcnow()
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: id={transaction_id} user_id={self.user_id}")

    def list(
        self,
        filters: TransactionFilters,
        *,
        page: int = 0,
        size: int = DEFAULT_PAGE_SIZE,
        sort_by: str = "transactionDate",
        sort_direction: str = "DESC",
    ) -> TransactionPage:
        self.user()
        if page < 0:
            raise ValidationError("Page index must not be negative")
        if size < 1:
            raise ValidationError("Page size must be at least 1")
        size = min(size, MAX_PAGE_SIZE)
        column = SORT_FIELDS.get(sort_by)
        if column is None:
            raise ValidationError(f"Cannot sort transactions by '{sort_by}'")
        ascending = (sort_direction or "").upper() == "ASC"

        # filters are not combined freely: the first matching rule wins
        conditions = [Transaction.user_id == self.user_id]
        if filters.category_id is not None and filters.has_range:
            conditions.append(Transaction.category_id == filters.category_id)
            conditions.append(
                Transaction.transaction_date.between(
                    filters.start_date, filters.end_date
                )
            )
        elif filters.category_id is not None:
            conditions.append(Transaction.category_id == filters.category_id)
        elif filters.has_range:
            conditions.append(
                Transaction.transaction_date.between(
                    filters.start_date, filters.end_date
                )
            )
        elif filters.type is not None:
            conditions.append(Transaction.type == filters.type)

        total = int(
            self.session.execute(
                select(func.count(Transaction.id)).where(*conditions)
            ).scalar_one()
            or 0
        )
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category), joinedload(Transaction.user))
            .where(*conditions)
            .order_by(
                column.asc() if ascending else column.desc(),
                Transaction.id.asc() if ascending else Transaction.id.desc(),
            )
            .offset(page * size)
            .limit(size)
        )
        items = self.session.scalars(stmt).all()
        return TransactionPage(items=list(items), page=page, size=size, total=total)

    def recent(self, limit: int = RECENT_LIMIT) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category), joinedload(Transaction.user))
            .where(Transaction.user_id == self.user_id)
            .order_by(
                Transaction.transaction_date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def _sum_cents(self, *conditions) -> int:
        stmt = select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
            Transaction.user_id == self.user_id, *conditions
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def total_cents(self, txn_type: TransactionType, period: Period) -> int:
        return self._sum_cents(
            Transaction.type == txn_type,
            Transaction.transaction_date.between(period.start, period.end),
        )

    def total_by_type(self, txn_type: TransactionType, period: Period) -> Decimal:
        return from_cents(self.total_cents(txn_type, period))

    def expense_cents_for_category(self, category_id: int, period: Period) -> int:
        return self._sum_cents(
            Transaction.category_id == category_id,
            Transaction.type == TransactionType.expense,
            Transaction.transaction_date.between(period.start, period.end),
        )

    def expense_cents_by_category(self, period: Period) -> dict[int, int]:
        stmt = (
            select(
                Transaction.category_id,
                func.coalesce(func.sum(Transaction.amount_cents), 0).label("spent"),
            )
            .where(
                Transaction.user_id == self.user_id,
                Transaction.type == TransactionType.expense,
                Transaction.transaction_date.between(period.start, period.end),
            )
            .group_by(Transaction.category_id)
        )
        return {
            row.category_id: int(row.spent or 0) for row in self.session.execute(stmt)
        }

    def category_breakdown(
        self, txn_type: TransactionType, period: Period
    ) -> list[CategoryTotal]:
        total = func.sum(Transaction.amount_cents)
        stmt = (
            select(
                Category.id.label("category_id"),
                Category.name.label("name"),
                total.label("total"),
            )
            .join(Category, Category.id == Transaction.category_id)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.type == txn_type,
                Transaction.transaction_date.between(period.start, period.end),
            )
            .group_by(Category.id, Category.name)
            .order_by(total.desc(), Category.name)
        )
        return [
            CategoryTotal(
                category_id=row.category_id,
                category_name=row.name,
                total=from_cents(row.total),
            )
            for row in self.session.execute(stmt)
        ]

    def category_spending(self, category_id: int, start: date, end: date) -> Decimal:
        try:
            period = custom_period(start, end)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        self.user()
        self._category(category_id)
        return from_cents(self.expense_cents_for_category(category_id, period))

    def monthly_summary(self, month: int, year: int) -> MonthlySummary:
        period = _month(year, month)
        self.user()
        income = self.total_cents(TransactionType.income, period)
        expenses = self.total_cents(TransactionType.expense, period)
        return MonthlySummary(
            month=month,
            year=year,
            total_income=from_cents(income),
            total_expenses=from_cents(expenses),
            balance=from_cents(income - expenses),
            category_breakdown=self.category_breakdown(TransactionType.expense, period),
        )

    def yearly_summary(self, year: int) -> YearlySummary:
        period = _year(year)
        self.user()
        income = self.total_cents(TransactionType.income, period)
        expenses = self.total_cents(TransactionType.expense, period)
        total_expenses = from_cents(expenses)
        return YearlySummary(
            year=year,
            total_income=from_cents(income),
            total_expenses=total_expenses,
            balance=from_cents(income - expenses),
            average_monthly_expense=round_half_up(total_expenses / 12),
        )


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def user(self) -> User:
        return UserService(self.session).get(self.user_id)

    def _transactions(self) -> TransactionService:
        return TransactionService(self.session, self.user_id)

    def _find(self, category_id: int, month: int, year: int) -> Optional[Budget]:
        stmt = select(Budget).where(
            Budget.user_id == self.user_id,
            Budget.category_id == category_id,
            Budget.month == month,
            Budget.year == year,
        )
        return self.session.scalar(stmt)

    @staticmethod
    def _validate(data: BudgetIn) -> int:
        """Re-check BudgetIn bounds for instances built without validation
        (model_construct); returns the amount in cents."""
        cents = _positive_cents(data.amount)
        if not 1 <= data.month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        if data.year < MIN_BUDGET_YEAR:
            raise ValidationError(f"Year must be {MIN_BUDGET_YEAR} or later")
        if not 1 <= data.alert_threshold <= 100:
            raise ValidationError("Alert threshold must be between 1 and 100")
        return cents

    @staticmethod
    def _apply(budget: Budget, amount_cents: int, data: BudgetIn) -> None:
        # user, category and period stay fixed once a budget exists
        budget.amount_cents = amount_cents
        budget.alert_threshold = data.alert_threshold
        budget.notes = data.notes

    def create_or_update(self, data: BudgetIn) -> Budget:
        amount_cents = self._validate(data)
        user = self.user()
        category = CategoryService(self.session).get(data.category_id)

        existing = self._find(category.id, data.month, data.year)
        if existing:
            self._apply(existing, amount_cents, data)
            self.session.commit()
            self.session.refresh(existing)
            logger.info(f"budget_updated: id={existing.id} user_id={self.user_id}")
            return existing

        budget = Budget(
            user_id=user.id,
            category_id=category.id,
            month=data.month,
            year=data.year,
            amount_cents=amount_cents,
            alert_threshold=data.alert_threshold,
            notes=data.notes,
        )
        self.session.add(budget)
        try:
            self.session.flush()
        except IntegrityError:
            # a concurrent insert won the unique key; update that row instead
            self.session.rollback()
            existing = self._find(data.category_id, data.month, data.year)
            if existing is None:
                raise
            self._apply(existing, amount_cents, data)
            self.session.commit()
            self.session.refresh(existing)
            logger.info(
                f"budget_updated_after_conflict: id={existing.id} user_id={self.user_id}"
            )
            return existing
        self.session.commit()
        self.session.refresh(budget)
        logger.info(
            f"budget_created: id={budget.id} user_id={self.user_id} "
            f"category_id={budget.category_id} period={budget.period.slug}"
        )
        return budget

    def update(self, budget_id: int, data: BudgetIn) -> Budget:
        amount_cents = self._validate(data)
        budget = self.get(budget_id)
        if (budget.category_id, budget.month, budget.year) != (
            data.category_id,
            data.month,
            data.year,
        ):
            raise ValidationError("Budget category, month and year cannot be changed")
        self._apply(budget, amount_cents, data)
        self.session.commit()
        self.session.refresh(budget)
        logger.info(f"budget_updated: id={budget.id} user_id={self.user_id}")
        return budget

    def get(self, budget_id: int) -> Budget:
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category), joinedload(Budget.user))
            .where(Budget.user_id == self.user_id, Budget.id == budget_id)
        )
        budget = self.session.scalar(stmt)
        if not budget:
            raise NotFoundError(f"Budget not found with id: {budget_id}")
        return budget

    def list_for_user(self) -> list[Budget]:
        self.user()
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category), joinedload(Budget.user))
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.year.desc(), Budget.month.desc(), Budget.id)
        )
        return self.session.scalars(stmt).all()

    def delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()
        logger.info(f"budget_deleted: id={budget_id} user_id={self.user_id}")

    def _budgets_for_month(self, month: int, year: int) -> list[Budget]:
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category), joinedload(Budget.user))
            .where(
                Budget.user_id == self.user_id,
                Budget.month == month,
                Budget.year == year,
            )
            .order_by(Budget.id)
        )
        return self.session.scalars(stmt).all()

    def status(self, budget: Budget) -> BudgetStatus:
        spent = self._transactions().expense_cents_for_category(
            budget.category_id, budget.period
        )
        return compute_budget_status(budget.amount_cents, spent, budget.alert_threshold)

    def status_for_category(
        self, category_id: int, month: int, year: int
    ) -> BudgetReport:
        _month(year, month)
        budget = self._find(category_id, month, year)
        if budget is None:
            raise NotFoundError(
                f"No budget for category {category_id} in {year:04d}-{month:02d}"
            )
        return BudgetReport(budget=budget, status=self.status(budget))

    def monthly_status(self, month: int, year: int) -> list[BudgetReport]:
        period = _month(year, month)
        self.user()
        spent_by_category = self._transactions().expense_cents_by_category(period)
        return [
            BudgetReport(
                budget=budget,
                status=compute_budget_status(
                    budget.amount_cents,
                    spent_by_category.get(budget.category_id, 0),
                    budget.alert_threshold,
                ),
            )
            for budget in self._budgets_for_month(month, year)
        ]

    def alerts(self, on: Optional[date] = None) -> list[BudgetAlert]:
        on = on or today()
        alerts: list[BudgetAlert] = []
        for report in self.monthly_status(on.month, on.year):
            status = report.status
            if not status.is_near_limit:
                continue
            name = report.budget.category.name
            alerts.append(
                BudgetAlert(
                    budget_id=report.budget.id,
                    category=name,
                    budget_amount=from_cents(report.budget.amount_cents),
                    spent=status.spent,
                    percentage=status.percentage,
                    message=(
                        f"You've spent {format_percent(status.percentage)}% "
                        f"of your {name} budget"
                    ),
                    severity="HIGH" if status.percentage >= 100 else "MEDIUM",
                )
            )
        return alerts
