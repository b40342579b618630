"""Shared response envelope: ``{statusCode, api_ver, message, data?}``."""

from typing import Any, Mapping, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from accounts.config import get_settings
from accounts.core.messages import translate


def envelope(
    message: str,
    data: Any = None,
    status_code: int = status.HTTP_200_OK,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """Return a consistent API response payload and status code."""
    content = {
        "statusCode": status_code,
        "api_ver": get_settings().API_VERSION,
        "message": translate(message),
    }
    if data is not None:
        content["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=status_code, content=content, headers=dict(headers) if headers else None)


def success(message: str, data: Any = None) -> JSONResponse:
    return envelope(message, data, status.HTTP_200_OK)


def created(message: str, data: Any = None) -> JSONResponse:
    return envelope(message, data, status.HTTP_201_CREATED)
