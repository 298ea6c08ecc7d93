from pydantic import BaseModel
from typing import Optional


class CreateRoomRequest(BaseModel):
    name: Optional[str] = None
    username: Optional[str] = None

class CreateRoomResponse(BaseModel):
    id: int
    name: str

class RoomResponse(BaseModel):
    id: int
    name: str
    created_by: Optional[str] = None
    created_at: str
