from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models import TransactionType

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# requests


class UserIn(ApiModel):
    username: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    full_name: str = Field(..., min_length=1, max_length=100)


class UserUpdateIn(ApiModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    full_name: str = Field(..., min_length=1, max_length=100)


class CategoryIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)


class TransactionIn(ApiModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=500)
    transaction_date: Optional[date] = None
    category_id: int
    type: TransactionType


class TransactionUpdateIn(ApiModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=500)
    transaction_date: Optional[date] = None
    category_id: Optional[int] = None
    type: TransactionType


class BudgetIn(ApiModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    category_id: int
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2020)
    alert_threshold: int = Field(default=80, ge=1, le=100)
    notes: Optional[str] = Field(default=None, max_length=500)


# responses


class UserOut(ApiModel):
    id: int
    username: str
    email: str
    full_name: str
    is_active: bool
    created_at: datetime


class UserRef(ApiModel):
    id: int
    username: str
    full_name: str


class CategoryOut(ApiModel):
    id: int
    name: str
    description: Optional[str]
    icon: Optional[str]
    color: Optional[str]
    is_system: bool


class CategoryRef(ApiModel):
    id: int
    name: str
    icon: Optional[str]
    color: Optional[str]


class TransactionOut(ApiModel):
    id: int
    amount: Decimal
    description: Optional[str]
    transaction_date: date
    type: TransactionType
    created_at: datetime
    updated_at: Optional[datetime]
    user: UserRef
    category: CategoryRef


class TransactionPageOut(ApiModel):
    content: list[TransactionOut]
    page: int
    size: int
    total_elements: int
    total_pages: int


class CategoryTotalOut(ApiModel):
    category_id: int
    category_name: str
    total: Decimal


class CategorySpendingOut(ApiModel):
    category_id: int
    start_date: date
    end_date: date
    total: Decimal


class MonthlySummaryOut(ApiModel):
    month: int
    year: int
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    category_breakdown: list[CategoryTotalOut]


class YearlySummaryOut(ApiModel):
    year: int
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    average_monthly_expense: Decimal


class BudgetOut(ApiModel):
    id: int
    amount: Decimal
    month: int
    year: int
    alert_threshold: int
    notes: Optional[str]
    period_start: date
    period_end: date
    user: UserRef
    category: CategoryRef


class BudgetStatusOut(ApiModel):
    budget: BudgetOut
    spent: Decimal
    remaining: Decimal
    percentage: Decimal
    is_over_budget: bool
    is_near_limit: bool


class BudgetAlertOut(ApiModel):
    budget_id: int
    category: str
    budget_amount: Decimal
    spent: Decimal
    percentage: Decimal
    message: str
    severity: Literal["HIGH", "MEDIUM"]
