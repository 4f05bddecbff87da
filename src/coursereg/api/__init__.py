"""REST API for coursereg."""

from coursereg.api.app import create_app
from coursereg.api.models import (
    APIResponse,
    PaymentResponse,
    RegistrationResponse,
)

__all__ = [
    "APIResponse",
    "PaymentResponse",
    "RegistrationResponse",
    "create_app",
]
