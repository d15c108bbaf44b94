"""em_payment REST API.

initiate, form and methods require a JWT (buyer only). callback is called by the
provider, carries no JWT, and is safe to retry.
"""

import html
import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.database import get_db_session
from src.em_common.errors import GatewayVerificationFailedError
from src.em_common.response import (
    ApiResponse,
    error_response,
    success_response,
    with_request_id,
)
from src.em_gateway.auth.dependencies import get_current_user
from src.em_gateway.user.db_models import UserModel
from src.em_payment.application.schemas import InitiatePaymentRequest
from src.em_payment.application.service import PaymentService
from src.em_payment.domain.models import PaymentForm

router = APIRouter(prefix="/payments", tags=["payments"])

_service = PaymentService()


async def _read_payload(request: Request) -> dict[str, Any]:
    """Providers post either JSON or form-encoded bodies."""
    if request.headers.get("content-type", "").startswith("application/json"):
        body = await request.json()
        return dict(body) if isinstance(body, dict) else {}
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


@router.post("/{gateway}/initiate")
async def initiate_payment(
    gateway: str,
    body: InitiatePaymentRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.initiate(
        gateway, str(body.order_id), str(current_user.id), current_user.email, db
    )
    return with_request_id(
        success_response(data.model_dump(mode="json"), message="Payment initiated"), request
    )


@router.post("/{gateway}/callback")
async def payment_callback(
    gateway: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> JSONResponse:
    payload = await _read_payload(request)
    result = await _service.handle_callback(gateway, payload, db)
    data = {
        "transaction_id": result.transaction_id,
        "order_id": result.order_id,
        "order_status": result.order_status,
        "applied": result.applied,
    }
    if result.success:
        resp = success_response(data, message=result.message)
        status_code = 200
    else:
        failure = GatewayVerificationFailedError(gateway, result.message)
        data["reason"] = result.reason.value if result.reason else None
        resp = error_response(failure.code, failure.message, data)
        status_code = failure.http_status
    return JSONResponse(
        status_code=status_code, content=with_request_id(resp, request).model_dump()
    )


@router.get("/methods/{order_id}")
async def payment_methods(
    order_id: uuid.UUID,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.available_methods(str(order_id), str(current_user.id), db)
    return with_request_id(success_response(data.model_dump()), request)


def render_payment_form(form: PaymentForm) -> str:
    inputs = "\n".join(
        f'    <input type="hidden" name="{html.escape(k)}" value="{html.escape(v)}" />'
        for k, v in form.fields.items()
    )
    form_id = f"{form.gateway}-form"
    return (
        "<!DOCTYPE html>\n<html><body>\n"
        f'<form id="{form_id}" method="post" action="{html.escape(form.action_url)}">\n'
        f"{inputs}\n"
        '    <input type="submit" value="Continue to payment" />\n'
        "</form>\n"
        f'<script>document.getElementById("{form_id}").submit();</script>\n'
        "</body></html>\n"
    )


@router.get("/{gateway}/{order_id}/form", response_class=HTMLResponse)
async def payment_form(
    gateway: str,
    order_id: uuid.UUID,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> HTMLResponse:
    form = await _service.payment_form(
        gateway, str(order_id), str(current_user.id), current_user.email, db
    )
    return HTMLResponse(render_payment_form(form), headers={"Cache-Control": "no-store"})
