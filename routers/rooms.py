from typing import List

from fastapi import APIRouter, Depends, Request

from chat import ChatCoordinator
from errors import StoreError
from logging_config import get_logger
from schemas.rooms import CreateRoomRequest, CreateRoomResponse, RoomResponse

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


def get_chat(request: Request) -> ChatCoordinator:
    return request.app.state.chat


@rooms_router.get("", response_model=List[RoomResponse])
async def list_rooms(request: Request, chat: ChatCoordinator = Depends(get_chat)):
    client_host = request.client.host if request.client else "unknown"
    logger.debug(f"Room list request from {client_host}")
    try:
        return await chat.list_rooms()
    except StoreError as e:
        raise StoreError("An unexpected error occurred while loading the room list. Please try again later.") from e


@rooms_router.post("", response_model=CreateRoomResponse)
async def create_room(room: CreateRoomRequest, request: Request, chat: ChatCoordinator = Depends(get_chat)):
    # { "name": "general", "username": "alice" }
    # Response 200: { "id": 1, "name": "general" }
    client_host = request.client.host if request.client else "unknown"
    logger.info(f"Room creation request from {client_host}, name: {room.name}, username: {room.username}")
    try:
        created = await chat.create_room(room.name, room.username)
    except StoreError as e:
        raise StoreError("An unexpected error occurred while creating the room. Please try again later.") from e
    return CreateRoomResponse(id=created["id"], name=created["name"])
