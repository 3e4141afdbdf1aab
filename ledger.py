import logging
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterator, Optional, Type, TypeVar, Union

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import RecordNotFound, StoreUnavailable
from models import Expense, Income, User
from money import cents_to_decimal
from periods import Period

logger = logging.getLogger(__name__)

LedgerRecord = Union[Income, Expense]
RecordT = TypeVar("RecordT", Income, Expense)

_LABELS = {Income: "Income", Expense: "Expense"}


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    amount: Decimal
    count: int


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(f"ledger_failed: action={action} error={exc.__class__.__name__}")
        raise StoreUnavailable(f"{action} failed: {exc}") from exc


class LedgerStore:
    """Owner-scoped queries over incomes and expenses.

    Every call takes the owner id explicitly; records are only ever addressed
    by the compound key (record id, owner id).
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _sum(
        self, model: Type[LedgerRecord], owner_id: int, period: Optional[Period]
    ) -> Decimal:
        stmt = select(func.coalesce(func.sum(model.amount_cents), 0)).where(
            model.user_id == owner_id
        )
        if period is not None:
            stmt = stmt.where(model.date.between(period.start, period.end))
        with store_errors(f"sum_{model.__tablename__}"):
            total = self.session.execute(stmt).scalar_one()
        return cents_to_decimal(int(total or 0))

    def sum_income(self, owner_id: int, period: Optional[Period] = None) -> Decimal:
        return self._sum(Income, owner_id, period)

    def sum_expense(self, owner_id: int, period: Optional[Period] = None) -> Decimal:
        return self._sum(Expense, owner_id, period)

    def expenses_by_category(self, owner_id: int) -> list[CategoryTotal]:
        total = func.sum(Expense.amount_cents).label("total")
        stmt = (
            select(Expense.category, total, func.count(Expense.id).label("count"))
            .where(Expense.user_id == owner_id)
            .group_by(Expense.category)
            .order_by(total.desc(), Expense.category.asc())
        )
        with store_errors("expenses_by_category"):
            rows = self.session.execute(stmt).all()
        return [
            CategoryTotal(
                category=row.category,
                amount=cents_to_decimal(int(row.total or 0)),
                count=int(row.count),
            )
            for row in rows
        ]

    def distinct_categories(self, owner_id: int) -> list[str]:
        stmt = (
            select(Expense.category)
            .where(Expense.user_id == owner_id)
            .distinct()
            .order_by(Expense.category)
        )
        with store_errors("distinct_categories"):
            return list(self.session.scalars(stmt).all())

    def list_incomes(
        self, owner_id: int, period: Optional[Period] = None
    ) -> list[Income]:
        stmt = (
            select(Income)
            .where(Income.user_id == owner_id)
            .order_by(Income.date.desc(), Income.created_at.desc(), Income.id.desc())
        )
        if period is not None:
            stmt = stmt.where(Income.date.between(period.start, period.end))
        with store_errors("list_incomes"):
            return list(self.session.scalars(stmt).all())

    def list_expenses(
        self,
        owner_id: int,
        *,
        category: Optional[str] = None,
        period: Optional[Period] = None,
    ) -> list[Expense]:
        stmt = (
            select(Expense)
            .where(Expense.user_id == owner_id)
            .order_by(
                Expense.date.desc(), Expense.created_at.desc(), Expense.id.desc()
            )
        )
        if category is not None:
            stmt = stmt.where(Expense.category == category)
        if period is not None:
            stmt = stmt.where(Expense.date.between(period.start, period.end))
        with store_errors("list_expenses"):
            return list(self.session.scalars(stmt).all())

    def find_owned(
        self, model: Type[RecordT], record_id: int, owner_id: int
    ) -> Optional[RecordT]:
        stmt = select(model).where(model.id == record_id, model.user_id == owner_id)
        with store_errors(f"find_{model.__tablename__}"):
            return self.session.scalar(stmt)

    def insert(self, record: RecordT) -> RecordT:
        if record.user_id is None:
            raise ValueError("Record must have an owner")
        with store_errors(f"insert_{record.__tablename__}"):
            self.session.add(record)
            self.session.flush()
        return record

    def update_owned(
        self,
        model: Type[RecordT],
        record_id: int,
        owner_id: int,
        values: dict[str, object],
    ) -> RecordT:
        stmt = (
            update(model)
            .where(model.id == record_id, model.user_id == owner_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with store_errors(f"update_{model.__tablename__}"):
            result = self.session.execute(stmt)
            if result.rowcount == 0:
                raise RecordNotFound(f"{_LABELS[model]} not found")
            record = self.session.get(model, record_id, populate_existing=True)
        return record

    def delete_owned(
        self, model: Type[LedgerRecord], record_id: int, owner_id: int
    ) -> None:
        stmt = delete(model).where(model.id == record_id, model.user_id == owner_id)
        with store_errors(f"delete_{model.__tablename__}"):
            result = self.session.execute(stmt)
        if result.rowcount == 0:
            raise RecordNotFound(f"{_LABELS[model]} not found")

    def find_user_by_email(self, email: str) -> Optional[User]:
        with store_errors("find_user_by_email"):
            return self.session.scalar(select(User).where(User.email == email))

    def find_user(self, user_id: int) -> Optional[User]:
        with store_errors("find_user"):
            return self.session.get(User, user_id)
