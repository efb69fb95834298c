"""Error taxonomy. Every error carries the HTTP status it maps to."""

from typing import Optional


class TarotError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(TarotError):
    status_code = 400


class NotFoundError(TarotError):
    status_code = 404


class StageError(TarotError):
    """An action was attempted in a wizard stage that does not allow it."""

    status_code = 409


class BusyError(TarotError):
    status_code = 409


class AIConfigurationError(TarotError):
    status_code = 500


class AIServiceError(TarotError):
    status_code = 500


class CheckoutError(TarotError):
    status_code = 500
