from dataclasses import dataclass


@dataclass
class IntegrationError(Exception):
    service: str
    code: str
    message: str
    retryable: bool = False
    status_code: int | None = None

    def __str__(self) -> str:
        return f"{self.service}:{self.code}:{self.message}"


class IntegrationTimeoutError(IntegrationError):
    def __init__(self, service: str, message: str = "Upstream timeout") -> None:
        super().__init__(service=service, code="TIMEOUT", message=message, retryable=True)


class IntegrationUnavailableError(IntegrationError):
    def __init__(
        self,
        service: str,
        message: str = "Upstream unavailable",
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            service=service,
            code="UNAVAILABLE",
            message=message,
            retryable=True,
            status_code=status_code,
        )


class IntegrationRejectedError(IntegrationError):
    def __init__(self, service: str, message: str, status_code: int | None = None) -> None:
        super().__init__(
            service=service,
            code="REJECTED",
            message=message,
            retryable=False,
            status_code=status_code,
        )
