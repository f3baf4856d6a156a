import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from amounts import from_cents
from bootstrap import run_bootstrap
from config import get_settings
from database import get_db
from models import Budget, Category, Transaction, TransactionType, User
from schemas import (
    BudgetAlertOut,
    BudgetIn,
    BudgetOut,
    BudgetStatusOut,
    CategoryIn,
    CategoryOut,
    CategoryRef,
    CategorySpendingOut,
    CategoryTotalOut,
    MonthlySummaryOut,
    TransactionIn,
    TransactionOut,
    TransactionPageOut,
    TransactionUpdateIn,
    UserIn,
    UserOut,
    UserRef,
    UserUpdateIn,
    YearlySummaryOut,
)
from services import (
    DEFAULT_PAGE_SIZE,
    BudgetAlert,
    BudgetReport,
    BudgetService,
    CategoryService,
    ConflictError,
    MonthlySummary,
    NotFoundError,
    TransactionFilters,
    TransactionService,
    UserService,
    ValidationError,
    YearlySummary,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Expense Tracker")
router = APIRouter()


@app.on_event("startup")
def startup_event():
    run_bootstrap(create_tables=settings.create_schema, seed=settings.seed_defaults)


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error(400, exc)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(404, exc)


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return _error(409, exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = [
            str(part)
            for part in err.get("loc", ())
            if part not in ("body", "query", "path")
        ]
        field = ".".join(loc) or "request"
        errors.setdefault(field, err.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=400, content={"detail": "Validation failed", "errors": errors}
    )


def user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        is_active=user.active,
        created_at=user.created_at,
    )


def user_ref(user: User) -> UserRef:
    return UserRef(id=user.id, username=user.username, full_name=user.full_name)


def category_out(category: Category) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        description=category.description,
        icon=category.icon,
        color=category.color,
        is_system=category.is_system,
    )


def category_ref(category: Category) -> CategoryRef:
    return CategoryRef(
        id=category.id, name=category.name, icon=category.icon, color=category.color
    )


def transaction_out(txn: Transaction) -> TransactionOut:
    return TransactionOut(
        id=txn.id,
        amount=from_cents(txn.amount_cents),
        description=txn.description,
        transaction_date=txn.transaction_date,
        type=txn.type,
        created_at=txn.created_at,
        updated_at=txn.updated_at,
        user=user_ref(txn.user),
        category=category_ref(txn.category),
    )


def budget_out(budget: Budget) -> BudgetOut:
    return BudgetOut(
        id=budget.id,
        amount=from_cents(budget.amount_cents),
        month=budget.month,
        year=budget.year,
        alert_threshold=budget.alert_threshold,
        notes=budget.notes,
        period_start=budget.period_start,
        period_end=budget.period_end,
        user=user_ref(budget.user),
        category=category_ref(budget.category),
    )


def budget_status_out(report: BudgetReport) -> BudgetStatusOut:
    status = report.status
    return BudgetStatusOut(
        budget=budget_out(report.budget),
        spent=status.spent,
        remaining=status.remaining,
        percentage=status.percentage,
        is_over_budget=status.is_over_budget,
        is_near_limit=status.is_near_limit,
    )


def budget_alert_out(alert: BudgetAlert) -> BudgetAlertOut:
    return BudgetAlertOut(
        budget_id=alert.budget_id,
        category=alert.category,
        budget_amount=alert.budget_amount,
        spent=alert.spent,
        percentage=alert.percentage,
        message=alert.message,
        severity=alert.severity,
    )


def monthly_summary_out(summary: MonthlySummary) -> MonthlySummaryOut:
    return MonthlySummaryOut(
        month=summary.month,
        year=summary.year,
        total_income=summary.total_income,
        total_expenses=summary.total_expenses,
        balance=summary.balance,
        category_breakdown=[
            CategoryTotalOut(
                category_id=row.category_id,
                category_name=row.category_name,
                total=row.total,
            )
            for row in summary.category_breakdown
        ],
    )


def yearly_summary_out(summary: YearlySummary) -> YearlySummaryOut:
    return YearlySummaryOut(
        year=summary.year,
        total_income=summary.total_income,
        total_expenses=summary.total_expenses,
        balance=summary.balance,
        average_monthly_expense=summary.average_monthly_expense,
    )


@app.get("/health")
def health():
    return {"status": "ok"}


# users


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(data: UserIn, db: Session = Depends(get_db)):
    return user_out(UserService(db).create(data))


@router.get("/users", response_model=list[UserOut])
def list_users(db: Session = Depends(get_db)):
    return [user_out(u) for u in UserService(db).list_all()]


@router.get("/users/username/{username}", response_model=UserOut)
def get_user_by_username(username: str, db: Session = Depends(get_db)):
    return user_out(UserService(db).get_by_username(username))


@router.get("/users/{user_id}", response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_db)):
    return user_out(UserService(db).get(user_id))


@router.put("/users/{user_id}", response_model=UserOut)
def update_user(user_id: int, data: UserUpdateIn, db: Session = Depends(get_db)):
    return user_out(UserService(db).update(user_id, data))


@router.delete("/users/{user_id}", status_code=204)
def deactivate_user(user_id: int, db: Session = Depends(get_db)):
    UserService(db).deactivate(user_id)
    return Response(status_code=204)


# categories


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return [category_out(c) for c in CategoryService(db).list_all()]


@router.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(data: CategoryIn, db: Session = Depends(get_db)):
    return category_out(CategoryService(db).create(data))


@router.get("/categories/system", response_model=list[CategoryOut])
def list_system_categories(db: Session = Depends(get_db)):
    return [category_out(c) for c in CategoryService(db).list_system()]


@router.get("/categories/custom", response_model=list[CategoryOut])
def list_custom_categories(db: Session = Depends(get_db)):
    return [category_out(c) for c in CategoryService(db).list_custom()]


@router.get("/categories/{category_id}", response_model=CategoryOut)
def get_category(category_id: int, db: Session = Depends(get_db)):
    return category_out(CategoryService(db).get(category_id))


@router.put("/categories/{category_id}", response_model=CategoryOut)
def update_category(category_id: int, data: CategoryIn, db: Session = Depends(get_db)):
    return category_out(CategoryService(db).update(category_id, data))


@router.delete("/categories/{category_id}", status_code=204)
def delete_category(category_id: int, db: Session = Depends(get_db)):
    CategoryService(db).delete(category_id)
    return Response(status_code=204)


# transactions


@router.get("/users/{user_id}/transactions", response_model=TransactionPageOut)
def list_transactions(
    user_id: int,
    category_id: Optional[int] = Query(None, alias="categoryId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    txn_type: Optional[TransactionType] = Query(None, alias="type"),
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    sort_by: str = Query("transactionDate", alias="sortBy"),
    sort_direction: str = Query("DESC", alias="sortDirection"),
    db: Session = Depends(get_db),
):
    filters = TransactionFilters(
        category_id=category_id,
        start_date=start_date,
        end_date=end_date,
        type=txn_type,
    )
    result = TransactionService(db, user_id).list(
        filters,
        page=page,
        size=size,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )
    return TransactionPageOut(
        content=[transaction_out(t) for t in result.items],
        page=result.page,
        size=result.size,
        total_elements=result.total,
        total_pages=result.total_pages,
    )


@router.post(
    "/users/{user_id}/transactions", response_model=TransactionOut, status_code=201
)
def create_transaction(user_id: int, data: TransactionIn, db: Session = Depends(get_db)):
    return transaction_out(TransactionService(db, user_id).create(data))


@router.get("/users/{user_id}/transactions/recent", response_model=list[TransactionOut])
def recent_transactions(user_id: int, db: Session = Depends(get_db)):
    return [transaction_out(t) for t in TransactionService(db, user_id).recent()]


@router.get(
    "/users/{user_id}/transactions/summary/monthly", response_model=MonthlySummaryOut
)
def monthly_summary(
    user_id: int,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=1, le=9999),
    db: Session = Depends(get_db),
):
    summary = TransactionService(db, user_id).monthly_summary(month, year)
    return monthly_summary_out(summary)


@router.get(
    "/users/{user_id}/transactions/summary/yearly", response_model=YearlySummaryOut
)
def yearly_summary(
    user_id: int,
    year: int = Query(..., ge=1, le=9999),
    db: Session = Depends(get_db),
):
    return yearly_summary_out(TransactionService(db, user_id).yearly_summary(year))


@router.get(
    "/users/{user_id}/transactions/spending/category/{category_id}",
    response_model=CategorySpendingOut,
)
def category_spending(
    user_id: int,
    category_id: int,
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    db: Session = Depends(get_db),
):
    total = TransactionService(db, user_id).category_spending(
        category_id, start_date, end_date
    )
    return CategorySpendingOut(
        category_id=category_id, start_date=start_date, end_date=end_date, total=total
    )


@router.get(
    "/users/{user_id}/transactions/{transaction_id}", response_model=TransactionOut
)
def get_transaction(user_id: int, transaction_id: int, db: Session = Depends(get_db)):
    return transaction_out(TransactionService(db, user_id).get(transaction_id))


@router.put(
    "/users/{user_id}/transactions/{transaction_id}", response_model=TransactionOut
)
def update_transaction(
    user_id: int,
    transaction_id: int,
    data: TransactionUpdateIn,
    db: Session = Depends(get_db),
):
    return transaction_out(TransactionService(db, user_id).update(transaction_id, data))


@router.delete("/users/{user_id}/transactions/{transaction_id}", status_code=204)
def delete_transaction(user_id: int, transaction_id: int, db: Session = Depends(get_db)):
    TransactionService(db, user_id).delete(transaction_id)
    return Response(status_code=204)


# budgets


@router.get("/users/{user_id}/budgets", response_model=list[BudgetOut])
def list_budgets(user_id: int, db: Session = Depends(get_db)):
    return [budget_out(b) for b in BudgetService(db, user_id).list_for_user()]


@router.post("/users/{user_id}/budgets", response_model=BudgetOut, status_code=201)
def create_budget(user_id: int, data: BudgetIn, db: Session = Depends(get_db)):
    return budget_out(BudgetService(db, user_id).create_or_update(data))


@router.get("/users/{user_id}/budgets/monthly", response_model=list[BudgetStatusOut])
def monthly_budgets(
    user_id: int,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=1, le=9999),
    db: Session = Depends(get_db),
):
    reports = BudgetService(db, user_id).monthly_status(month, year)
    return [budget_status_out(r) for r in reports]


@router.get("/users/{user_id}/budgets/alerts", response_model=list[BudgetAlertOut])
def budget_alerts(user_id: int, db: Session = Depends(get_db)):
    return [budget_alert_out(a) for a in BudgetService(db, user_id).alerts()]


@router.get(
    "/users/{user_id}/budgets/category/{category_id}/status",
    response_model=BudgetStatusOut,
)
def budget_status(
    user_id: int,
    category_id: int,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=1, le=9999),
    db: Session = Depends(get_db),
):
    report = BudgetService(db, user_id).status_for_category(category_id, month, year)
    return budget_status_out(report)


@router.get("/users/{user_id}/budgets/{budget_id}", response_model=BudgetOut)
def get_budget(user_id: int, budget_id: int, db: Session = Depends(get_db)):
    return budget_out(BudgetService(db, user_id).get(budget_id))


@router.put("/users/{user_id}/budgets/{budget_id}", response_model=BudgetOut)
def update_budget(
    user_id: int, budget_id: int, data: BudgetIn, db: Session = Depends(get_db)
):
    return budget_out(BudgetService(db, user_id).update(budget_id, data))


@router.delete("/users/{user_id}/budgets/{budget_id}", status_code=204)
def delete_budget(user_id: int, budget_id: int, db: Session = Depends(get_db)):
    BudgetService(db, user_id).delete(budget_id)
    return Response(status_code=204)


app.include_router(router, prefix=settings.api_prefix)


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
