"""
AI Service Exceptions

This module contains exception classes for the AI service.
Separated to avoid circular imports between service.py, providers.py and
the content record model.
"""


class TranslationError(Exception):
    """
    Translation failure with optional code and details.

    Codes used across the package:
        ai_config_missing  - provider, API key or model not configured
        api_error          - transport or HTTP failure
        api_timeout        - provider did not answer in time
        invalid_response   - model output is not the expected JSON object
    """

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}
