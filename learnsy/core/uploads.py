import os
import secrets
import time
from typing import Iterable

from fastapi import HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

CHUNK_SIZE = 1024 * 1024


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def unique_filename(original: str, prefix: str = "file") -> str:
    """``file-<ms>-<random><ext>``, keeping the original extension"""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{file_extension(original)}"


async def save_upload(
    upload: UploadFile,
    directory: str,
    allowed_extensions: Iterable[str],
    max_size_mb: int,
    prefix: str = "file"
) -> dict:
    """
    Stream an uploaded file to ``directory`` in chunks. Disk writes run in
    the threadpool so large uploads do not block the event loop.

    Returns:
        {"file_name", "original_file_name", "file_path", "file_size"}

    Raises:
        400: Unsupported extension or file too large
    """
    ext = file_extension(upload.filename)
    if ext not in allowed_extensions:
        raise HTTPException(status_code=400, detail=f"File type {ext or 'unknown'} is not allowed")

    os.makedirs(directory, exist_ok=True)
    file_name = unique_filename(upload.filename, prefix)
    file_path = os.path.join(directory, file_name)
    max_bytes = max_size_mb * 1024 * 1024

    size = 0
    out = await run_in_threadpool(open, file_path, "wb")
    try:
        try:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise HTTPException(
                        status_code=400,
                        detail=f"File size too large. Maximum size is {max_size_mb}MB."
                    )
                await run_in_threadpool(out.write, chunk)
        finally:
            await run_in_threadpool(out.close)
    except HTTPException:
        remove_file(file_path)
        raise

    return {
        "file_name": file_name,
        "original_file_name": upload.filename,
        "file_path": file_path,
        "file_size": size,
    }


def remove_file(path: str) -> bool:
    if path and os.path.exists(path):
        os.remove(path)
        return True
    return False
