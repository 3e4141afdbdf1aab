from typing import Optional


class RecordNotFound(ValueError):
    """Record is absent or belongs to another owner; the two are not told apart."""


class DuplicateIdentity(ValueError):
    pass


class InvalidCredentials(ValueError):
    def __init__(self) -> None:
        super().__init__("Invalid email or password")


class InvalidToken(ValueError):
    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)


class MissingOrMalformedHeader(InvalidToken):
    def __init__(self) -> None:
        super().__init__("Authorization header missing or invalid")


class StoreUnavailable(RuntimeError):
    pass


class AnalyticsUnavailable(StoreUnavailable):
    def __init__(self, report: str, cause: Optional[BaseException] = None) -> None:
        self.report = report
        detail = f"Failed to fetch {report}"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)
