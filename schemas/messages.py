from pydantic import BaseModel, Field
from typing import Optional

from constants import MAX_SENDER_LENGTH, MAX_TEXT_LENGTH


class Message(BaseModel):
    id: str
    sender: str
    text: str
    timestamp: int  # epoch milliseconds
    room_id: str
    # Authorship token; only ever revealed to the message's own author
    token: Optional[str] = None

    def public(self) -> dict:
        """Payload safe to fan out to every subscriber."""
        return self.model_dump(exclude={"token"})

    def redacted_for(self, token: str) -> "Message":
        if self.token == token:
            return self
        return self.model_copy(update={"token": None})


class SendMessageRequest(BaseModel):
    sender: str = Field(max_length=MAX_SENDER_LENGTH)
    text: str = Field(max_length=MAX_TEXT_LENGTH)

class ListMessagesResponse(BaseModel):
    messages: list[Message]
