from __future__ import annotations

from typing import Optional


class FitplanError(Exception):
    pass


class PlanApiError(FitplanError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PlanGenerationError(FitplanError):
    pass


class RateLimitExceeded(FitplanError):
    def __init__(self, message: str, remaining_seconds: int):
        super().__init__(message)
        self.remaining_seconds = remaining_seconds
