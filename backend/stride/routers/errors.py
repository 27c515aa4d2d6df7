"""Map OperationResult failures onto HTTP errors."""

from fastapi import HTTPException, status

from stride.services.errors import ErrorCode, OperationResult

ERROR_STATUS = {
    ErrorCode.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.SELF_REVOKE_DENIED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CHALLENGE_EXPIRED: status.HTTP_410_GONE,
    ErrorCode.INVALID_CHALLENGE: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.NO_BACKUP_CODES: status.HTTP_400_BAD_REQUEST,
    ErrorCode.FACTOR_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.MFA_NOT_ENABLED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.STORE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_for_result(result: OperationResult) -> OperationResult:
    """Raise HTTPException for a failed result, otherwise return it unchanged."""
    if result.success:
        return result

    code = result.error or ErrorCode.STORE_ERROR
    headers = {"WWW-Authenticate": "Bearer"} if code == ErrorCode.NOT_AUTHENTICATED else None
    raise HTTPException(
        status_code=ERROR_STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"code": code.value, "message": result.message},
        headers=headers,
    )
