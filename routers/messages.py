from fastapi import APIRouter, Depends

from dependencies import get_lifecycle, get_scoped_identity
from schemas.messages import Message, SendMessageRequest, ListMessagesResponse
from services.auth import ScopedIdentity
from services.lifecycle import LifecycleManager

messages_router = APIRouter(prefix="/rooms/{room_id}/messages", tags=["messages"])


@messages_router.post("", status_code=201, response_model=Message, response_model_exclude_none=True)
async def send_message(
    room_id: str,
    body: SendMessageRequest,
    identity: ScopedIdentity = Depends(get_scoped_identity),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    return lifecycle.send_message(room_id, identity, body.sender, body.text)


@messages_router.get("", response_model=ListMessagesResponse, response_model_exclude_none=True)
async def list_messages(
    room_id: str,
    identity: ScopedIdentity = Depends(get_scoped_identity),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    return ListMessagesResponse(messages=lifecycle.list_messages(room_id, identity))
