from fastapi import HTTPException, status


class AuthenticationError(HTTPException):
    def __init__(self, error_detail_message: str = "Authentication required"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=error_detail_message)


class ForbiddenError(HTTPException):
    def __init__(self, error_detail_message: str):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=error_detail_message)


class ConflictError(HTTPException):
    def __init__(self, error_detail_message: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=error_detail_message)


class DatabaseError(HTTPException):
    def __init__(self, error_detail_message: str):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error_detail_message)


class ServerError(HTTPException):
    def __init__(self, error_detail_message: str):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error_detail_message)


class ConfigurationError(HTTPException):
    def __init__(self, error_detail_message: str):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error_detail_message)


class ValidationError(HTTPException):
    def __init__(self, error_detail_message: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=error_detail_message)


class PaymentProviderError(HTTPException):
    def __init__(self, error_detail_message: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=error_detail_message)


# ---------------------------------------------------------------------------------------------------------------------
# Webhook errors are rendered as plain text (see main.py); the provider only looks at the status code.


class WebhookError(HTTPException):
    def __init__(self, status_code: int, error_detail_message: str):
        super().__init__(status_code=status_code, detail=error_detail_message)


class UnauthorizedSignatureError(WebhookError):
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Unauthorized signature")


class MalformedWebhookError(WebhookError):
    def __init__(self, error_detail_message: str):
        super().__init__(status.HTTP_400_BAD_REQUEST, error_detail_message)


class TransactionVerificationError(WebhookError):
    def __init__(self, error_detail_message: str):
        super().__init__(status.HTTP_400_BAD_REQUEST, error_detail_message)


class VerificationUnavailableError(WebhookError):
    def __init__(self, error_detail_message: str = "Transaction verification unavailable"):
        super().__init__(status.HTTP_502_BAD_GATEWAY, error_detail_message)


class WebhookStorageError(WebhookError):
    def __init__(self, error_detail_message: str):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, error_detail_message)


class WebhookConfigurationError(WebhookError):
    def __init__(self, error_detail_message: str):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, error_detail_message)
