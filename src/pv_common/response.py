"""Response envelope shared by every endpoint.

    {"code": 0, "message": "success", "data": {...},
     "timestamp": "<ISO-8601 UTC>", "request_id": "req_..."}

`code` is 0 on success and the AppError code otherwise; `data` is null on error.
"""

import uuid
from typing import Any

from pydantic import BaseModel, Field
from starlette.requests import Request

from src.pv_common.datetime_utils import utc_now


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())
    request_id: str = Field(default_factory=new_request_id)


def _with_request_id(resp: ApiResponse, request: Request | None) -> ApiResponse:
    # RequestLogMiddleware stores the correlation id on request.state
    if request is not None:
        resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


def success_response(
    data: Any = None, message: str = "success", request: Request | None = None
) -> ApiResponse:
    return _with_request_id(ApiResponse(code=0, message=message, data=data), request)


def error_response(code: int, message: str, request: Request | None = None) -> ApiResponse:
    return _with_request_id(ApiResponse(code=code, message=message, data=None), request)
