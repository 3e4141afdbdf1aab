import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import Expense, Income, User
from money import decimal_to_cents
from passwords import hash_password
from periods import local_today

logger = logging.getLogger(__name__)

DEMO_NAME = "Test User"
DEMO_EMAIL = "test@example.com"
DEMO_PASSWORD = "password"

# (amount, source, description, days ago)
SAMPLE_INCOMES = [
    ("5000.00", "Salary", "Monthly salary", 30),
    ("1500.00", "Freelance", "Web development project", 25),
    ("5000.00", "Salary", "Previous month salary", 60),
    ("800.00", "Bonus", "Performance bonus", 45),
    ("2000.00", "Investment", "Stock dividends", 20),
    ("1200.00", "Freelance", "Logo design project", 15),
    ("300.00", "Other", "Sold old laptop", 10),
    ("5000.00", "Salary", "Two months ago salary", 90),
]

# (amount, category, description, days ago)
SAMPLE_EXPENSES = [
    ("1200.00", "Housing", "Monthly rent", 30),
    ("1200.00", "Housing", "Monthly rent", 60),
    ("150.00", "Utilities", "Electricity bill", 28),
    ("80.00", "Utilities", "Water bill", 25),
    ("60.00", "Utilities", "Internet bill", 22),
    ("400.00", "Food & Dining", "Groceries", 27),
    ("45.00", "Food & Dining", "Restaurant dinner", 20),
    ("25.00", "Food & Dining", "Coffee shop", 18),
    ("35.00", "Food & Dining", "Lunch", 15),
    ("200.00", "Food & Dining", "Weekly groceries", 12),
    ("50.00", "Food & Dining", "Pizza delivery", 8),
    ("120.00", "Transportation", "Monthly bus pass", 30),
    ("45.00", "Transportation", "Gas", 20),
    ("25.00", "Transportation", "Uber ride", 14),
    ("35.00", "Transportation", "Parking fees", 10),
    ("15.00", "Entertainment", "Netflix subscription", 30),
    ("25.00", "Entertainment", "Movie tickets", 16),
    ("40.00", "Entertainment", "Concert tickets", 12),
    ("20.00", "Entertainment", "Video games", 8),
    ("80.00", "Shopping", "Clothing", 24),
    ("150.00", "Shopping", "Electronics", 18),
    ("30.00", "Shopping", "Books", 14),
    ("45.00", "Shopping", "Home supplies", 9),
    ("200.00", "Healthcare", "Doctor visit", 35),
    ("50.00", "Healthcare", "Pharmacy", 21),
    ("30.00", "Healthcare", "Vitamins", 11),
    ("40.00", "Personal Care", "Haircut", 26),
    ("25.00", "Personal Care", "Skincare products", 17),
    ("100.00", "Education", "Online course", 32),
    ("60.00", "Education", "Technical books", 19),
    ("45.00", "Bills & Utilities", "Phone bill", 29),
    ("25.00", "Bills & Utilities", "Streaming services", 23),
    ("180.00", "Insurance", "Health insurance", 31),
    ("120.00", "Insurance", "Car insurance", 61),
    ("75.00", "Other", "Gift for friend", 13),
    ("20.00", "Other", "Charity donation", 7),
    ("15.00", "Other", "Bank fees", 5),
]


def seed_demo_data(session: Session, *, today: Optional[date] = None) -> Optional[User]:
    """Create the demo user with sample ledger rows.

    Does nothing and returns ``None`` when the demo account already exists.
    """
    existing = session.scalar(select(User).where(User.email == DEMO_EMAIL))
    if existing is not None:
        logger.info(f"seed_skipped: user_id={existing.id}")
        return None

    today = today or local_today()
    user = User(
        name=DEMO_NAME, email=DEMO_EMAIL, password_hash=hash_password(DEMO_PASSWORD)
    )
    session.add(user)
    session.flush()

    for amount, source, description, days_ago in SAMPLE_INCOMES:
        session.add(
            Income(
                user_id=user.id,
                amount_cents=decimal_to_cents(amount),
                source=source,
                description=description,
                date=today - timedelta(days=days_ago),
            )
        )
    for amount, category, description, days_ago in SAMPLE_EXPENSES:
        session.add(
            Expense(
                user_id=user.id,
                amount_cents=decimal_to_cents(amount),
                category=category,
                description=description,
                date=today - timedelta(days=days_ago),
            )
        )
    session.flush()
    logger.info(
        f"seed_created: user_id={user.id} incomes={len(SAMPLE_INCOMES)} "
        f"expenses={len(SAMPLE_EXPENSES)}"
    )
    return user


if __name__ == "__main__":
    from config import get_settings
    from database import init_db, session_scope

    logging.basicConfig(level=get_settings().log_level)
    init_db()
    with session_scope() as session:
        seed_demo_data(session)
