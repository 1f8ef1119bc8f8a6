from fastapi import UploadFile

CHUNK_SIZE = 1024 * 1024


class FileTooLargeError(Exception):
    pass


async def read_file_from_upload_file(file: UploadFile, max_file_size: int) -> bytes:
    data = bytearray()
    while chunk := await file.read(CHUNK_SIZE):
        data.extend(chunk)
        if len(data) > max_file_size:
            raise FileTooLargeError(f"File exceeds max file size of {max_file_size} bytes: '{file.filename}'")

    return bytes(data)
