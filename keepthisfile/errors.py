from fastapi import status


class KeepThisFileError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "Internal server error."

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class NotFound(KeepThisFileError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found."


class PaymentSessionNotFound(NotFound):
    detail = "Payment session not found."


class Unauthorized(KeepThisFileError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Unauthorized."


class OwnershipMismatch(Unauthorized):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Upload request does not belong to this user."


class ValidationFailed(KeepThisFileError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid request."


class InvalidState(KeepThisFileError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Upload request is not in a valid state for this operation."


class SizeMismatch(KeepThisFileError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"File size mismatch. Expected {expected} bytes, got {actual} bytes.")


class UpstreamFailure(KeepThisFileError):
    detail = "Upstream service failure."


class PaymentGatewayError(UpstreamFailure):
    detail = "Payment provider request failed."


class BlobStoreError(UpstreamFailure):
    detail = "Permanent storage request failed."


class SignedUploadRejected(BlobStoreError):
    detail = "Permanent storage rejected the signed upload."


class InsufficientBalance(BlobStoreError):
    def __init__(self, balance: int, fee: int):
        self.balance = balance
        self.fee = fee
        super().__init__(f"Wallet balance {balance} winston does not cover fee {fee} winston.")
