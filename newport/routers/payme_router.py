from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlmodel import Session
from typing import Any, Dict, Optional, Tuple, Type, Union
import logging

from newport.core.errors import PaymeErrorCode, PaymeRPCError
from newport.crud.payme_crud import PaymeMerchantCRUD
from newport.db.session import get_session
from newport.dependencies import get_payme_service
from newport.external_services.payme_service import PaymeService
from newport.schemas.payme_schema import (
    CancelTransactionParams,
    CheckPerformTransactionParams,
    CreateTransactionParams,
    GetStatementParams,
    PaymeWebhookRequest,
    TransactionIdParams,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payme", tags=["payme"])

# Payme method name -> (PaymeMerchantCRUD method, params model)
PAYME_METHODS: Dict[str, Tuple[str, Type[BaseModel]]] = {
    "CheckPerformTransaction": ("check_perform_transaction", CheckPerformTransactionParams),
    "CreateTransaction": ("create_transaction", CreateTransactionParams),
    "PerformTransaction": ("perform_transaction", TransactionIdParams),
    "CancelTransaction": ("cancel_transaction", CancelTransactionParams),
    "CheckTransaction": ("check_transaction", TransactionIdParams),
    "GetStatement": ("get_statement", GetStatementParams),
}


def rpc_envelope(request_id: Optional[Union[int, str]], response: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, **response}


def rpc_error(code: PaymeErrorCode, data: Optional[str] = None) -> Dict[str, Any]:
    return {"error": PaymeRPCError(code, data=data).to_dict()}


def dispatch(session: Session, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Run one Payme method and return ``{"result": ...}`` or ``{"error": ...}``.

    Never raises: handler failures become JSON-RPC errors.
    """
    route = PAYME_METHODS.get(method)
    if route is None:
        logger.warning(f"Unknown Payme method: {method}")
        return rpc_error(PaymeErrorCode.METHOD_NOT_FOUND, data=method)

    handler_name, params_model = route
    try:
        parsed = params_model.model_validate(params)
    except ValidationError as e:
        field = ".".join(str(part) for part in e.errors()[0]["loc"])
        logger.warning(f"Invalid params for {method}: {field}")
        return rpc_error(PaymeErrorCode.INVALID_REQUEST, data=field)

    handler = getattr(PaymeMerchantCRUD(session), handler_name)
    try:
        return {"result": handler(parsed)}
    except PaymeRPCError as e:
        session.rollback()
        logger.info(f"Payme {method} rejected: {int(e.code)} {e.message}")
        return {"error": e.to_dict()}
    except Exception as e:
        session.rollback()
        logger.exception(f"Unexpected error in Payme {method}: {str(e)}")
        return rpc_error(PaymeErrorCode.INTERNAL_ERROR)


@router.post("/webhook")
async def payme_webhook(
    request: Request,
    session: Session = Depends(get_session),
    payme_service: PaymeService = Depends(get_payme_service)
):
    """Merchant API endpoint called by Payme"""
    try:
        body = await request.json()
    except ValueError:
        body = None
    request_id = body.get("id") if isinstance(body, dict) else None

    if not payme_service.verify_authorization(request.headers.get("Authorization")):
        logger.warning(f"Rejected Payme webhook with invalid credentials from {request.client.host if request.client else 'unknown'}")
        return JSONResponse(
            status_code=401,
            content=rpc_envelope(request_id, rpc_error(PaymeErrorCode.UNAUTHORIZED)),
        )

    try:
        webhook_data = PaymeWebhookRequest.model_validate(body)
    except ValidationError:
        logger.warning("Invalid Payme webhook payload")
        return rpc_envelope(request_id, rpc_error(PaymeErrorCode.INVALID_REQUEST))

    logger.info(f"Received Payme webhook: method={webhook_data.method}, params_keys={list(webhook_data.params.keys())}")
    response = dispatch(session, webhook_data.method, webhook_data.params)
    return rpc_envelope(webhook_data.id, response)
