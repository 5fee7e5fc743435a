from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from market_chat.api.v1.schemas.message import MessageResponse


class ConversationSummaryResponse(BaseModel):
    user_id: int
    username: str
    last_message: MessageResponse

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )
