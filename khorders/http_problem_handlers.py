# khorders/http_problem_handlers.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from khorders.api.problem import make_problem
from khorders.core.trace import new_trace
from khorders.services.order_errors import INVALID_BODY, OrderError

logger = logging.getLogger("khorders")


def _trace_id(req: Request) -> str:
    # 路由里已生成 trace 时沿用（request.state.trace_id），否则新建
    existing = getattr(req.state, "trace_id", None)
    return existing or new_trace(f"http:{req.url.path}").trace_id


def _ctx(req: Request) -> Dict[str, Any]:
    return {"path": getattr(req.url, "path", ""), "method": req.method}


def _problem_from_http_exc(req: Request, exc: HTTPException) -> Dict[str, Any]:
    """
    HTTPException.detail → Problem：
    - 已是 Problem（raise_problem）：补齐 trace_id / context
    - str / 其它：兜底为 http_error
    """
    status_code = int(exc.status_code)
    trace_id = _trace_id(req)
    d = exc.detail

    if isinstance(d, dict) and "error_code" in d and "error" in d:
        out = dict(d)
        out.setdefault("ok", False)
        out.setdefault("http_status", status_code)
        out.setdefault("trace_id", trace_id)
        merged = _ctx(req)
        if isinstance(out.get("context"), dict):
            merged.update(out["context"])
        out["context"] = merged
        return out

    msg = str(d) if d is not None else "Request rejected"
    return make_problem(
        status_code=status_code,
        error_code="http_error",
        message=msg,
        context=_ctx(req),
        trace_id=trace_id,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        trace_id = _trace_id(req)
        logger.exception("UNHANDLED_EXC[%s]: %s", trace_id, exc)
        content = make_problem(
            status_code=500,
            error_code="internal_error",
            message="Internal error, please try again",
            context=_ctx(req),
            trace_id=trace_id,
        )
        return JSONResponse(status_code=500, content=content)

    @app.exception_handler(OrderError)
    async def _order_exc(req: Request, exc: OrderError):
        trace_id = _trace_id(req)
        status_code = int(exc.status)
        if status_code >= 500:
            logger.error("ORDER_ERR[%s]: code=%s msg=%s ctx=%s", trace_id, exc.code, exc.message, exc.context)
        ctx = _ctx(req)
        ctx.update(exc.context or {})
        content = make_problem(
            status_code=status_code,
            error_code=exc.code,
            message=exc.message,
            context=ctx,
            trace_id=trace_id,
        )
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        reasons: List[str] = []
        for e in exc.errors():
            if isinstance(e, dict):
                loc = ".".join(str(p) for p in e.get("loc") or ())
                reasons.append(f"{loc}: {e.get('msg') or e.get('type') or 'invalid'}")

        ctx = _ctx(req)
        if reasons:
            ctx["reasons"] = reasons
        content = make_problem(
            status_code=400,
            error_code=INVALID_BODY,
            message="Invalid request",
            context=ctx,
            trace_id=_trace_id(req),
        )
        return JSONResponse(status_code=400, content=content)

    @app.exception_handler(HTTPException)
    async def _http_exc(req: Request, exc: HTTPException):
        content = _problem_from_http_exc(req, exc)
        return JSONResponse(status_code=int(exc.status_code), content=content, headers=getattr(exc, "headers", None))
