from typing import List, Optional


class ServiceError(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "service_error",
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.errors = errors or []

    def to_detail(self):
        detail = {"message": self.message, "code": self.code}
        if self.errors:
            detail["errors"] = self.errors
        return detail


class ConfigurationError(ServiceError):
    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message, status_code=422, code="invalid_scoring_config", errors=errors)
