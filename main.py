import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, init_db, session_scope
from errors import (
    DuplicateIdentity,
    InvalidCredentials,
    InvalidToken,
    RecordNotFound,
    StoreUnavailable,
)
from schemas import ExpenseIn, IncomeIn, LoginIn, SignupIn
from seed import seed_demo_data
from services import (
    AnalyticsService,
    AuthService,
    ExpenseService,
    IncomeService,
    expense_payload,
    income_payload,
    user_payload,
)
from tokens import TokenClaims, identity_from_header

logging.basicConfig(level=get_settings().log_level)

app = FastAPI(title="Finance Tracker")

UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    init_db()
    if get_settings().seed_demo:
        with session_scope() as session:
            seed_demo_data(session)


def current_identity(authorization: Optional[str] = Header(None)) -> TokenClaims:
    try:
        return identity_from_header(authorization)
    except InvalidToken as exc:
        raise HTTPException(
            status_code=401, detail=str(exc), headers=UNAUTHORIZED_HEADERS
        ) from exc


def store_unavailable(exc: StoreUnavailable) -> HTTPException:
    logging.exception(f"store_unavailable: {exc}")
    return HTTPException(status_code=503, detail=str(exc))


# AUTH


@app.post("/auth/signup")
def signup(payload: SignupIn, db: Session = Depends(get_db)):
    try:
        result = AuthService(db).register(payload.name, payload.email, payload.password)
    except DuplicateIdentity as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {"message": "User registered successfully", **result}


@app.post("/auth/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    try:
        result = AuthService(db).authenticate(payload.email, payload.password)
    except InvalidCredentials as exc:
        raise HTTPException(
            status_code=401, detail=str(exc), headers=UNAUTHORIZED_HEADERS
        ) from exc
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {"message": "Login successful", **result}


@app.get("/auth/me")
def me(
    identity: TokenClaims = Depends(current_identity), db: Session = Depends(get_db)
):
    try:
        user = AuthService(db).current_user(identity)
    except InvalidToken as exc:
        raise HTTPException(
            status_code=401, detail=str(exc), headers=UNAUTHORIZED_HEADERS
        ) from exc
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {"user": user_payload(user)}


@app.post("/auth/logout")
def logout():
    # tokens are stateless; the client discards its copy
    return {"message": "Logout successful"}


# INCOME


@app.post("/income")
def create_income(
    payload: IncomeIn,
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        income = IncomeService(db, identity.subject_id).create(payload)
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {"message": "Income created successfully", "income": income_payload(income)}


@app.get("/income")
def list_incomes(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        return IncomeService(db, identity.subject_id).list(start_date, end_date)
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/income/{income_id}")
def get_income(
    income_id: int,
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        income = IncomeService(db, identity.subject_id).get(income_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {"income": income_payload(income)}


@app.put("/income/{income_id}")
def update_income(
    income_id: int,
    payload: IncomeIn,
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        income = IncomeService(db, identity.subject_id).update(income_id, payload)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {"message": "Income updated successfully", "income": income_payload(income)}


@app.delete("/income/{income_id}")
def delete_income(
    income_id: int,
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        IncomeService(db, identity.subject_id).delete(income_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {"message": "Income deleted successfully"}


# EXPENSE


@app.post("/expense")
def create_expense(
    payload: ExpenseIn,
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        expense = ExpenseService(db, identity.subject_id).create(payload)
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {
        "message": "Expense created successfully",
        "expense": expense_payload(expense),
    }


@app.get("/expense")
def list_expenses(
    category: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        return ExpenseService(db, identity.subject_id).list(
            category, start_date, end_date
        )
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/expense/categories")
def expense_categories(
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        return ExpenseService(db, identity.subject_id).categories()
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc


@app.get("/expense/{expense_id}")
def get_expense(
    expense_id: int,
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        expense = ExpenseService(db, identity.subject_id).get(expense_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {"expense": expense_payload(expense)}


@app.put("/expense/{expense_id}")
def update_expense(
    expense_id: int,
    payload: ExpenseIn,
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        expense = ExpenseService(db, identity.subject_id).update(expense_id, payload)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {
        "message": "Expense updated successfully",
        "expense": expense_payload(expense),
    }


@app.delete("/expense/{expense_id}")
def delete_expense(
    expense_id: int,
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        ExpenseService(db, identity.subject_id).delete(expense_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
    return {"message": "Expense deleted successfully"}


# ANALYTICS


@app.get("/analytics/overall-summary")
def overall_summary(
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        return {"summary": AnalyticsService(db, identity.subject_id).overall_summary()}
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc


@app.get("/analytics/category-breakdown")
def category_breakdown(
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        return AnalyticsService(db, identity.subject_id).category_breakdown()
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc


@app.get("/analytics/monthly-summary")
def monthly_summary(
    year: Optional[int] = Query(None, ge=1970, le=3000),
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        return AnalyticsService(db, identity.subject_id).monthly_summary(year)
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc


@app.get("/analytics/recent-summary")
def recent_summary(
    days: Optional[int] = Query(None, ge=1, le=3650),
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        return {
            "recent_summary": AnalyticsService(db, identity.subject_id).recent_summary(
                days
            )
        }
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc


@app.get("/analytics/trend")
def trend(
    months: Optional[int] = Query(None, ge=1, le=120),
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        return AnalyticsService(db, identity.subject_id).trend(months)
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc


@app.get("/analytics/dashboard")
def dashboard(
    identity: TokenClaims = Depends(current_identity),
    db: Session = Depends(get_db),
):
    try:
        return AnalyticsService(db, identity.subject_id).dashboard()
    except StoreUnavailable as exc:
        raise store_unavailable(exc) from exc
