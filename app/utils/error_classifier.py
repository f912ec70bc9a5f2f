from typing import Optional

# All "what kind of failure is this" decisions about Supabase / PostgREST / GoTrue errors live here.
# Structured error codes are checked first; message matching is only a fallback for errors that carry no usable code.

UNIQUE_VIOLATION_CODE = "23505"

ALREADY_EXISTS_AUTH_CODES = {"email_exists", "user_already_exists"}

ALREADY_EXISTS_MESSAGES = (
    "already registered",
    "already been registered",
    "user already registered",
    "already exists",
    "already invited",
    "user already invited",
    "err_already_in_workspace",
)

ALREADY_OWNER_MARKER = "err_already_owner"
ALREADY_MEMBER_MARKER = "already a member"


def _error_code(error: Exception) -> Optional[str]:
    code = getattr(error, "code", None)
    if code is None:
        return None
    return str(code).lower()


def _error_message(error: Exception) -> str:
    message = getattr(error, "message", None) or str(error)
    return message.lower()


def is_unique_violation(error: Exception) -> bool:
    """True when the storage layer rejected a write because of a unique constraint"""
    code = _error_code(error)
    if code is not None:
        return code == UNIQUE_VIOLATION_CODE
    message = _error_message(error)
    return "duplicate key value" in message or "unique constraint" in message


def is_already_member(error: Exception) -> bool:
    return ALREADY_MEMBER_MARKER in _error_message(error)


def is_already_owner(error: Exception) -> bool:
    return ALREADY_OWNER_MARKER in _error_message(error)


def is_already_invited_or_exists(error: Exception) -> bool:
    """True when an auth invite failed only because the account (or its invite) already exists"""
    if _error_code(error) in ALREADY_EXISTS_AUTH_CODES:
        return True
    message = _error_message(error)
    return any(marker in message for marker in ALREADY_EXISTS_MESSAGES)
