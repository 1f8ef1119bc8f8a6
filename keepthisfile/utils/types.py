from enum import StrEnum


class UploadStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    UPLOADED = "uploaded"
    FAILED = "failed"
