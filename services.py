from __future__ import annotations

import calendar
import logging
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import (
    AnalyticsUnavailable,
    DuplicateIdentity,
    InvalidCredentials,
    InvalidToken,
    RecordNotFound,
    StoreUnavailable,
)
from ledger import LedgerStore, store_errors
from models import Expense, Income, User
from money import (
    balance,
    category_percentage,
    cents_to_decimal,
    decimal_to_cents,
    savings_rate,
)
from passwords import burn_verification, hash_password, verify_password
from periods import (
    Period,
    local_today,
    resolve_range,
    trailing_days,
    trailing_months,
    year_months,
)
from schemas import ExpenseIn, IncomeIn
from tokens import TokenClaims, issue_token

logger = logging.getLogger(__name__)


def user_payload(user: User) -> dict[str, object]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "created_at": user.created_at,
    }


def income_payload(income: Income) -> dict[str, object]:
    return {
        "id": income.id,
        "amount": cents_to_decimal(income.amount_cents),
        "source": income.source,
        "date": income.date,
        "description": income.description,
        "created_at": income.created_at,
        "updated_at": income.updated_at,
    }


def expense_payload(expense: Expense) -> dict[str, object]:
    return {
        "id": expense.id,
        "amount": cents_to_decimal(expense.amount_cents),
        "category": expense.category,
        "description": expense.description,
        "date": expense.date,
        "created_at": expense.created_at,
        "updated_at": expense.updated_at,
    }


def _commit(session: Session, action: str, record: Optional[object] = None) -> None:
    try:
        with store_errors(action):
            session.commit()
            if record is not None:
                session.refresh(record)
    except StoreUnavailable:
        session.rollback()
        raise


def _period_payload(period: Optional[Period]) -> dict[str, object]:
    if period is None:
        return {}
    return {"start_date": period.start, "end_date": period.end}


class AuthService:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.store = LedgerStore(session)

    def _issue(self, user: User) -> dict[str, object]:
        return {
            "token": issue_token(user.id, user.email),
            "user": user_payload(user),
        }

    def register(self, name: str, email: str, password: str) -> dict[str, object]:
        if self.store.find_user_by_email(email) is not None:
            raise DuplicateIdentity("User with this email already exists")
        user = User(name=name.strip(), email=email, password_hash=hash_password(password))
        try:
            self.session.add(user)
            self.session.commit()
        except IntegrityError as exc:
            # lost a race with a concurrent signup for the same email
            self.session.rollback()
            raise DuplicateIdentity("User with this email already exists") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreUnavailable(f"register failed: {exc}") from exc
        with store_errors("refresh_users"):
            self.session.refresh(user)
        logger.info(f"auth_register: user_id={user.id}")
        return self._issue(user)

    def authenticate(self, email: str, password: str) -> dict[str, object]:
        user = self.store.find_user_by_email(email)
        if user is None:
            burn_verification(password)
            logger.info("auth_login_failed: reason=invalid_credentials")
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            logger.info("auth_login_failed: reason=invalid_credentials")
            raise InvalidCredentials()
        logger.info(f"auth_login: user_id={user.id}")
        return self._issue(user)

    def current_user(self, claims: TokenClaims) -> User:
        user = self.store.find_user(claims.subject_id)
        if user is None or user.email != claims.subject_email:
            raise InvalidToken()
        return user


class IncomeService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.store = LedgerStore(session)

    def create(self, data: IncomeIn) -> Income:
        income = Income(
            user_id=self.user_id,
            amount_cents=decimal_to_cents(data.amount),
            source=data.source,
            date=data.date,
            description=data.description,
        )
        self.store.insert(income)
        _commit(self.session, "commit_incomes", income)
        return income

    def get(self, income_id: int) -> Income:
        income = self.store.find_owned(Income, income_id, self.user_id)
        if income is None:
            raise RecordNotFound("Income not found")
        return income

    def list(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> dict[str, object]:
        period = resolve_range(start, end)
        incomes = self.store.list_incomes(self.user_id, period)
        total = self.store.sum_income(self.user_id, period)
        out: dict[str, object] = {
            "incomes": [income_payload(i) for i in incomes],
            "total_income": total,
            "count": len(incomes),
        }
        if period is not None:
            out["filters"] = _period_payload(period)
        return out

    def update(self, income_id: int, data: IncomeIn) -> Income:
        income = self.store.update_owned(
            Income,
            income_id,
            self.user_id,
            {
                "amount_cents": decimal_to_cents(data.amount),
                "source": data.source,
                "date": data.date,
                "description": data.description,
            },
        )
        _commit(self.session, "commit_incomes")
        return income

    def delete(self, income_id: int) -> None:
        self.store.delete_owned(Income, income_id, self.user_id)
        _commit(self.session, "commit_incomes")


class ExpenseService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.store = LedgerStore(session)

    def create(self, data: ExpenseIn) -> Expense:
        expense = Expense(
            user_id=self.user_id,
            amount_cents=decimal_to_cents(data.amount),
            category=data.category,
            description=data.description,
            date=data.date,
        )
        self.store.insert(expense)
        _commit(self.session, "commit_expenses", expense)
        return expense

    def get(self, expense_id: int) -> Expense:
        expense = self.store.find_owned(Expense, expense_id, self.user_id)
        if expense is None:
            raise RecordNotFound("Expense not found")
        return expense

    def list(
        self,
        category: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> dict[str, object]:
        period = resolve_range(start, end)
        expenses = self.store.list_expenses(
            self.user_id, category=category, period=period
        )
        if category is None:
            total = self.store.sum_expense(self.user_id, period)
        else:
            total = cents_to_decimal(sum(e.amount_cents for e in expenses))
        out: dict[str, object] = {
            "expenses": [expense_payload(e) for e in expenses],
            "total_expense": total,
            "count": len(expenses),
        }
        filters = _period_payload(period)
        if category is not None:
            filters["category"] = category
        if filters:
            out["filters"] = filters
        return out

    def update(self, expense_id: int, data: ExpenseIn) -> Expense:
        expense = self.store.update_owned(
            Expense,
            expense_id,
            self.user_id,
            {
                "amount_cents": decimal_to_cents(data.amount),
                "category": data.category,
                "description": data.description,
                "date": data.date,
            },
        )
        _commit(self.session, "commit_expenses")
        return expense

    def delete(self, expense_id: int) -> None:
        self.store.delete_owned(Expense, expense_id, self.user_id)
        _commit(self.session, "commit_expenses")

    def categories(self) -> dict[str, object]:
        breakdown = self.store.expenses_by_category(self.user_id)
        return {
            "category_breakdown": [
                {"category": row.category, "amount": row.amount, "count": row.count}
                for row in breakdown
            ],
            "categories": self.store.distinct_categories(self.user_id),
        }


class AnalyticsService:
    """Read-only financial reports for one owner.

    Every report reads straight from the ledger; nothing is cached between
    calls. A store failure anywhere in a report aborts the whole report with
    ``AnalyticsUnavailable``.
    """

    def __init__(
        self, session: Session, user_id: int, *, today: Optional[date] = None
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.store = LedgerStore(session)
        self._today = today

    def today(self) -> date:
        return self._today or local_today()

    @contextmanager
    def _report(self, name: str) -> Iterator[None]:
        try:
            yield
        except AnalyticsUnavailable:
            raise
        except StoreUnavailable as exc:
            logger.warning(
                f"analytics_failed: report={name} user_id={self.user_id} error={exc}"
            )
            raise AnalyticsUnavailable(name, exc) from exc

    def _totals(self, period: Optional[Period]) -> tuple[Decimal, Decimal]:
        income = self.store.sum_income(self.user_id, period)
        expenses = self.store.sum_expense(self.user_id, period)
        return income, expenses

    def overall_summary(self) -> dict[str, object]:
        with self._report("overall summary"):
            income, expenses = self._totals(None)
        return {
            "total_income": income,
            "total_expenses": expenses,
            "current_balance": balance(income, expenses),
            "savings_rate": savings_rate(income, expenses),
        }

    def category_breakdown(self) -> dict[str, object]:
        with self._report("category breakdown"):
            rows = self.store.expenses_by_category(self.user_id)
            total = self.store.sum_expense(self.user_id)
        # storage order is not trusted for ties
        rows = sorted(rows, key=lambda r: (-r.amount, r.category))
        return {
            "category_breakdown": [
                {
                    "category": row.category,
                    "amount": row.amount,
                    "count": row.count,
                    "percentage": category_percentage(row.amount, total),
                }
                for row in rows
            ],
            "total_expenses": total,
        }

    def monthly_summary(self, year: Optional[int] = None) -> dict[str, object]:
        months = year_months(year, today=self.today())
        target_year = months[0].start.year
        monthly_data: list[dict[str, object]] = []
        with self._report("monthly summary"):
            for month in months:
                income, expenses = self._totals(month)
                monthly_data.append(
                    {
                        "month": month.start.month,
                        "month_name": calendar.month_name[month.start.month],
                        "year": target_year,
                        "income": income,
                        "expenses": expenses,
                        "balance": balance(income, expenses),
                        "savings_rate": savings_rate(income, expenses),
                    }
                )
            full_year = Period(str(target_year), months[0].start, months[-1].end)
            yearly_income, yearly_expenses = self._totals(full_year)
        return {
            "monthly_data": monthly_data,
            "yearly_totals": {
                "year": target_year,
                "total_income": yearly_income,
                "total_expenses": yearly_expenses,
                "total_balance": balance(yearly_income, yearly_expenses),
                "average_monthly_savings_rate": savings_rate(
                    yearly_income, yearly_expenses
                ),
            },
        }

    def recent_summary(self, days: Optional[int] = None) -> dict[str, object]:
        window = trailing_days(days, today=self.today())
        with self._report("recent transactions summary"):
            income, expenses = self._totals(window)
        return {
            "period": window.slug,
            "start_date": window.start,
            "end_date": window.end,
            "income": income,
            "expenses": expenses,
            "balance": balance(income, expenses),
            "savings_rate": savings_rate(income, expenses),
        }

    def trend(self, months: Optional[int] = None) -> dict[str, object]:
        windows = trailing_months(months, today=self.today())
        trend_data: list[dict[str, object]] = []
        with self._report("income vs expenses trend"):
            for month in windows:
                income, expenses = self._totals(month)
                trend_data.append(
                    {
                        "month": calendar.month_name[month.start.month],
                        "month_number": month.start.month,
                        "year": month.start.year,
                        "label": month.slug,
                        "income": income,
                        "expenses": expenses,
                        "difference": balance(income, expenses),
                    }
                )
        return {"trend_data": trend_data, "period": f"{len(windows)} months"}

    def dashboard(self) -> dict[str, object]:
        # one reference date for every section
        pinned = AnalyticsService(self.session, self.user_id, today=self.today())
        with self._report("dashboard"):
            return {
                "overall_summary": pinned.overall_summary(),
                "category_breakdown": pinned.category_breakdown(),
                "recent_summary": pinned.recent_summary(30),
                "trend": pinned.trend(6),
            }
