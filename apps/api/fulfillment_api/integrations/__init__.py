from fulfillment_api.integrations.errors import (
    IntegrationError,
    IntegrationRejectedError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
)

__all__ = [
    "IntegrationError",
    "IntegrationTimeoutError",
    "IntegrationUnavailableError",
    "IntegrationRejectedError",
]
