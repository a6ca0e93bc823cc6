"""Domain error taxonomy for the reward & claim lifecycle.

Services raise these; the API layer converts them into typed JSON responses
(see ``main.rewards_error_handler``). Each error carries a stable ``code`` the
presentation layer can switch on, and the HTTP status used at the boundary.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class RewardsError(Exception):
    """Base class for every recoverable business-rule failure."""

    code: str = "REWARDS_ERROR"
    status_code: int = 400

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class Unauthorized(RewardsError):
    code = "UNAUTHORIZED"
    status_code = 403


class NotFound(RewardsError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidState(RewardsError):
    code = "INVALID_STATE"
    status_code = 409


class AlreadyClaimed(RewardsError):
    code = "ALREADY_CLAIMED"
    status_code = 409


class Duplicate(RewardsError):
    code = "DUPLICATE"
    status_code = 409


class ClaimInProgress(RewardsError):
    code = "CLAIM_IN_PROGRESS"
    status_code = 409


class NoAnchorAvailable(RewardsError):
    code = "NO_ANCHOR_AVAILABLE"
    status_code = 409


class IncompleteAdsCodes(RewardsError):
    code = "INCOMPLETE_ADS_CODES"
    status_code = 400

    def __init__(self, missing_submission_ids: list[int]):
        super().__init__(
            f"Missing ads codes for {len(missing_submission_ids)} accepted video(s)",
            details={"missing_submission_ids": missing_submission_ids},
        )
        self.missing_submission_ids = missing_submission_ids


class MissingFile(RewardsError):
    code = "MISSING_FILE"
    status_code = 400


class InvalidFileType(RewardsError):
    code = "INVALID_FILE_TYPE"
    status_code = 400


class InvalidAmount(RewardsError):
    code = "INVALID_AMOUNT"
    status_code = 400


class InsufficientBalance(RewardsError):
    code = "INSUFFICIENT_BALANCE"
    status_code = 400


class UploadFailed(RewardsError):
    code = "UPLOAD_FAILED"
    status_code = 502


__all__ = [
    "RewardsError",
    "Unauthorized",
    "NotFound",
    "InvalidState",
    "AlreadyClaimed",
    "Duplicate",
    "ClaimInProgress",
    "NoAnchorAvailable",
    "IncompleteAdsCodes",
    "MissingFile",
    "InvalidFileType",
    "InvalidAmount",
    "InsufficientBalance",
    "UploadFailed",
]
