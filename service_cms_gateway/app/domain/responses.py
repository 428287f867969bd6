"""
Success envelope shared by every gateway route.
"""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from shared.errors import utc_timestamp


def success_body(data: Any = None, message: str = "Success", code: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": True,
        "data": data,
        "message": message,
        "timestamp": utc_timestamp(),
    }
    if code:
        body["code"] = code
    return body


def success_response(
    data: Any = None,
    message: str = "Success",
    *,
    code: Optional[str] = None,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=success_body(data, message, code),
        headers=headers,
    )
