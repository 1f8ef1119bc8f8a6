from .base import Base
from .models import upload_request, file_record, share_link

__all__ = ["Base", "upload_request", "file_record", "share_link"]
