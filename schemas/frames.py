from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from errors import ProtocolError


class RegisterFrame(BaseModel):
    type: Literal["register"]
    username: str


class JoinFrame(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["join"]
    room_id: int = Field(alias="roomId")


class MessageFrame(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["message"]
    room_id: int = Field(alias="roomId")
    message: str
    username: Optional[str] = None


InboundFrame = Annotated[
    Union[RegisterFrame, JoinFrame, MessageFrame],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundFrame)


def parse_frame(data: str) -> Union[RegisterFrame, JoinFrame, MessageFrame]:
    """Parse one inbound text frame; anything malformed is a ProtocolError."""
    try:
        return _inbound_adapter.validate_json(data)
    except PydanticValidationError as e:
        raise ProtocolError() from e
