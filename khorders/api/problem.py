# khorders/api/problem.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import HTTPException


@dataclass(frozen=True)
class Problem:
    """
    统一错误响应形状：
      {ok:false, error, error_code, http_status, trace_id, context?}

    error 是给前端直接展示的文案；error_code 是稳定的机器可读码。
    """

    error_code: str
    message: str
    http_status: int
    context: Optional[Dict[str, Any]] = None
    trace_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "ok": False,
            "error": self.message,
            "error_code": self.error_code,
            "http_status": int(self.http_status),
        }
        if self.trace_id:
            out["trace_id"] = self.trace_id
        if self.context:
            out["context"] = self.context
        return out


def make_problem(
    *,
    status_code: int,
    error_code: str,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    trace_id: Optional[str] = None,
) -> Dict[str, Any]:
    p = Problem(
        error_code=str(error_code),
        message=str(message),
        http_status=int(status_code),
        context=context,
        trace_id=trace_id,
    )
    return p.to_dict()


def raise_problem(
    *,
    status_code: int,
    error_code: str,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    trace_id: Optional[str] = None,
) -> None:
    raise HTTPException(
        status_code=int(status_code),
        detail=make_problem(
            status_code=int(status_code),
            error_code=error_code,
            message=message,
            context=context,
            trace_id=trace_id,
        ),
    )


def raise_401(message: str = "Unauthorized") -> None:
    raise_problem(status_code=401, error_code="UNAUTHORIZED", message=message)
