import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from main import app, get_db


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


def signup(client: TestClient, email: str = "ann@example.com") -> dict[str, str]:
    resp = client.post(
        "/auth/signup",
        json={"name": "Ann", "email": email, "password": "s3cret!"},
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def test_signup_login_and_me(client: TestClient) -> None:
    resp = client.post(
        "/auth/signup",
        json={"name": "Ann", "email": "  Ann@Example.com ", "password": "s3cret!"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["email"] == "ann@example.com"
    assert "password_hash" not in body["user"]

    resp = client.post(
        "/auth/login", json={"email": "ANN@example.com", "password": "s3cret!"}
    )
    assert resp.status_code == 200
    token = resp.json()["token"]

    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Ann"

    assert client.post("/auth/logout").json() == {"message": "Logout successful"}


def test_signup_rejects_duplicate_email(client: TestClient) -> None:
    signup(client)
    resp = client.post(
        "/auth/signup",
        json={"name": "Ann", "email": "ann@example.com", "password": "other1"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "User with this email already exists"


def test_signup_validates_input(client: TestClient) -> None:
    resp = client.post(
        "/auth/signup",
        json={"name": "Ann", "email": "not-an-email", "password": "short"},
    )
    assert resp.status_code == 422


def test_login_failures_look_the_same(client: TestClient) -> None:
    signup(client)
    wrong_password = client.post(
        "/auth/login", json={"email": "ann@example.com", "password": "nope!!"}
    )
    unknown_email = client.post(
        "/auth/login", json={"email": "bob@example.com", "password": "nope!!"}
    )
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Token abc"},
        {"Authorization": "Bearer "},
        {"Authorization": "Bearer not.a.token"},
    ],
)
def test_protected_routes_require_a_valid_token(
    client: TestClient, headers: dict[str, str]
) -> None:
    resp = client.get("/analytics/overall-summary", headers=headers)
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


def test_expense_crud(client: TestClient) -> None:
    headers = signup(client)
    resp = client.post(
        "/expense",
        json={"amount": "12.50", "category": "Food", "date": "2025-01-15"},
        headers=headers,
    )
    assert resp.status_code == 200
    expense = resp.json()["expense"]
    assert expense["amount"] == 12.5

    resp = client.put(
        f"/expense/{expense['id']}",
        json={
            "amount": "20.00",
            "category": "Travel",
            "date": "2025-01-16",
            "description": "Train",
        },
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["expense"]["category"] == "Travel"

    resp = client.get(f"/expense/{expense['id']}", headers=headers)
    assert resp.json()["expense"]["description"] == "Train"

    listing = client.get("/expense", headers=headers).json()
    assert listing["count"] == 1
    assert listing["total_expense"] == 20.0

    resp = client.delete(f"/expense/{expense['id']}", headers=headers)
    assert resp.status_code == 200
    resp = client.get(f"/expense/{expense['id']}", headers=headers)
    assert resp.status_code == 404


def test_expense_amount_must_be_positive(client: TestClient) -> None:
    headers = signup(client)
    for amount in ["0", "-5.00", "1.234"]:
        resp = client.post(
            "/expense",
            json={"amount": amount, "category": "Food", "date": "2025-01-15"},
            headers=headers,
        )
        assert resp.status_code == 422


def test_records_are_invisible_to_other_users(client: TestClient) -> None:
    ann = signup(client, "ann@example.com")
    bob = signup(client, "bob@example.com")
    income = client.post(
        "/income",
        json={"amount": "100.00", "source": "Salary", "date": "2025-01-01"},
        headers=ann,
    ).json()["income"]

    assert client.get(f"/income/{income['id']}", headers=bob).status_code == 404
    resp = client.put(
        f"/income/{income['id']}",
        json={"amount": "1.00", "source": "Hack", "date": "2025-01-01"},
        headers=bob,
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Income not found"
    assert client.delete(f"/income/{income['id']}", headers=bob).status_code == 404

    still_there = client.get(f"/income/{income['id']}", headers=ann).json()
    assert still_there["income"]["amount"] == 100.0
    assert client.get("/income", headers=bob).json()["count"] == 0


def test_income_list_filters(client: TestClient) -> None:
    headers = signup(client)
    for day, amount in [("2025-01-05", "10.00"), ("2025-02-05", "20.00")]:
        client.post(
            "/income",
            json={"amount": amount, "source": "Salary", "date": day},
            headers=headers,
        )

    body = client.get(
        "/income",
        params={"startDate": "2025-02-01", "endDate": "2025-02-28"},
        headers=headers,
    ).json()
    assert body["count"] == 1
    assert body["total_income"] == 20.0
    assert body["filters"] == {"start_date": "2025-02-01", "end_date": "2025-02-28"}

    resp = client.get("/income", params={"startDate": "2025-02-01"}, headers=headers)
    assert resp.status_code == 400


def test_analytics_endpoints(client: TestClient) -> None:
    headers = signup(client)
    client.post(
        "/income",
        json={"amount": "1000.00", "source": "Salary", "date": "2025-03-01"},
        headers=headers,
    )
    for amount, category in [("1200.00", "Housing"), ("1200.00", "Housing"), ("400.00", "Food")]:
        client.post(
            "/expense",
            json={"amount": amount, "category": category, "date": "2025-03-02"},
            headers=headers,
        )

    summary = client.get("/analytics/overall-summary", headers=headers).json()
    assert summary["summary"]["current_balance"] == -1800.0
    assert summary["summary"]["savings_rate"] == -180.0

    breakdown = client.get("/analytics/category-breakdown", headers=headers).json()
    assert [
        (row["category"], row["amount"], row["count"], row["percentage"])
        for row in breakdown["category_breakdown"]
    ] == [("Housing", 2400.0, 2, 85.71), ("Food", 400.0, 1, 14.29)]

    monthly = client.get(
        "/analytics/monthly-summary", params={"year": 2025}, headers=headers
    ).json()
    assert monthly["monthly_data"][2]["expenses"] == 2800.0
    assert monthly["yearly_totals"]["total_income"] == 1000.0

    trend = client.get(
        "/analytics/trend", params={"months": 3}, headers=headers
    ).json()
    assert len(trend["trend_data"]) == 3
    assert trend["period"] == "3 months"

    recent = client.get(
        "/analytics/recent-summary", params={"days": 7}, headers=headers
    ).json()
    assert recent["recent_summary"]["period"] == "7 days"

    dashboard = client.get("/analytics/dashboard", headers=headers).json()
    assert set(dashboard) == {
        "overall_summary",
        "category_breakdown",
        "recent_summary",
        "trend",
    }

    assert (
        client.get(
            "/analytics/trend", params={"months": 0}, headers=headers
        ).status_code
        == 422
    )


def test_expense_categories(client: TestClient) -> None:
    headers = signup(client)
    for category in ["Travel", "Food", "Travel"]:
        client.post(
            "/expense",
            json={"amount": "5.00", "category": category, "date": "2025-01-01"},
            headers=headers,
        )
    body = client.get("/expense/categories", headers=headers).json()
    assert body["categories"] == ["Food", "Travel"]
    assert body["category_breakdown"][0] == {
        "category": "Travel",
        "amount": 10.0,
        "count": 2,
    }
