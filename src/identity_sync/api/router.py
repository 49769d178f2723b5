from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..context import AppContext
from ..exceptions import ConfigurationError, WebhookError
from ..models.api_models import HealthResponse, UpdateCreditsRequest, WebhookResponse
from ..models.user import RepositoryError
from ..webhooks.verifier import MESSAGE_ID_HEADER


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def _raise_for_repository_error(result: RepositoryError) -> None:
    if result.not_found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.error)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error)


@router.post("/webhooks/clerk", response_model=WebhookResponse, tags=["webhooks"])
async def clerk_webhook(
    request: Request, context: AppContext = Depends(get_context)
) -> WebhookResponse:
    body = await request.body()
    try:
        event = context.verifier.verify(body, request.headers)
    except ConfigurationError as exc:
        logger.error("Webhook rejected: %s", exc.message)
        raise HTTPException(status_code=exc.status_code, detail="Internal Server Error") from exc
    except WebhookError as exc:
        logger.warning("Error verifying webhook: %s", exc.message)
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    result = await context.dispatcher.dispatch(
        event, message_id=request.headers.get(MESSAGE_ID_HEADER)
    )
    if not result.ok:
        raise HTTPException(status_code=result.status_code, detail=result.message)
    return WebhookResponse(message=result.message, user=result.user)


@router.get("/users/{external_id}", tags=["users"])
async def get_user(external_id: str, context: AppContext = Depends(get_context)) -> Dict[str, Any]:
    user = await context.users.get_user_by_id(external_id)
    if isinstance(user, RepositoryError):
        _raise_for_repository_error(user)
    return user.to_public()  # type: ignore[union-attr]


@router.post("/users/{user_id}/credits", tags=["users"])
async def update_credits(
    user_id: str,
    payload: UpdateCreditsRequest,
    context: AppContext = Depends(get_context),
) -> Dict[str, Any]:
    user = await context.users.update_credits(user_id, payload.credit_fee)
    if isinstance(user, RepositoryError):
        _raise_for_repository_error(user)
    return user.to_public()  # type: ignore[union-attr]


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health(context: AppContext = Depends(get_context)) -> HealthResponse:
    try:
        db = await context.connector.connect()
        await db.ping()
    except Exception as exc:
        logger.warning("Health check failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="database unreachable"
        ) from exc
    return HealthResponse(status="ok", database="reachable")
