"""
Standard API Response Envelope

Success: {"success": true, "message": ..., "data": ...}
Failure: {"success": false, "message": ..., "error": {"code": ..., "details": ...}}
"""

from typing import Any, Optional, Union

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..errors import ErrorCode


def success_response(message: str, data: Any = None) -> dict[str, Any]:
    """
    Build a success envelope.

    Returned as a plain dict so that headers set by dependencies are kept.
    """
    return {
        "success": True,
        "message": message,
        "data": jsonable_encoder(data) if data is not None else {},
    }


def error_response(
    message: str,
    code: Union[ErrorCode, str],
    details: Optional[dict[str, Any]] = None,
    status_code: int = 500,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Build a failure envelope response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "error": {
                "code": code.value if isinstance(code, ErrorCode) else code,
                "details": jsonable_encoder(details or {}),
            },
        },
        headers=headers,
    )
