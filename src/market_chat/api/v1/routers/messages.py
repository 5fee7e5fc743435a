from __future__ import annotations

from fastapi import APIRouter, Path

from market_chat.api.deps import CurrentPrincipal, UoWDep
from market_chat.api.v1.schemas.conversation import ConversationSummaryResponse
from market_chat.api.v1.schemas.message import MessageResponse
from market_chat.config import settings
from market_chat.services import conversation_service, message_service

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get(
    "/conversations",
    response_model=list[ConversationSummaryResponse],
    response_model_by_alias=True,
)
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[ConversationSummaryResponse]:
    summaries = await conversation_service.list_user_conversations(
        principal.user_id, uow, fallback_name=settings.UNKNOWN_USER_NAME,
    )
    return [ConversationSummaryResponse.model_validate(s) for s in summaries]


@router.get(
    "/{user_id}",
    response_model=list[MessageResponse],
    response_model_by_alias=True,
)
async def get_conversation(
    principal: CurrentPrincipal,
    uow: UoWDep,
    user_id: int = Path(..., gt=0),
) -> list[MessageResponse]:
    """History with ``user_id``; the caller's unread messages from them become read."""
    messages = await message_service.open_conversation(principal.user_id, user_id, uow)
    return [MessageResponse.model_validate(m) for m in messages]
