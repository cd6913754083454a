"""Conversation history routes.

Provides:
- POST /api/conversations - Create conversation
- GET /api/conversations - List user's conversations
- PUT /api/conversations/{id} - Rename conversation
- DELETE /api/conversations/{id} - Delete conversation and its messages
- GET /api/conversations/{id}/messages - List messages
- POST /api/conversations/{id}/messages - Append message
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlmodel import Session

from app.core.deps import get_current_user, get_db
from app.models.conversation import ConversationLimitExceeded, ConversationRead, MessageRead
from app.services.conversation_service import (
    ConversationAccessDenied,
    ConversationNotFound,
    ConversationStore,
    InvalidMessageRole,
)
from app.services.identity_service import CurrentUser

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


class TitleRequest(BaseModel):
    """Request model for creating or renaming a conversation."""
    title: Optional[str] = None


class MessageCreate(BaseModel):
    """Request model for appending a message."""
    role: Optional[str] = None
    content: Optional[str] = None


class ConversationEnvelope(BaseModel):
    success: bool = True
    conversation: ConversationRead


class MessageEnvelope(BaseModel):
    success: bool = True
    message: MessageRead


class SuccessResponse(BaseModel):
    success: bool = True


def get_store(
    current_user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ConversationStore:
    """Store scoped to the caller identity re-derived from the bearer token."""
    return ConversationStore(session, current_user.id)


def _require_title(request: TitleRequest) -> str:
    if not request.title or not request.title.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title is required")
    return request.title.strip()


def _ownership_error(e: Exception) -> HTTPException:
    if isinstance(e, ConversationAccessDenied):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("", response_model=ConversationEnvelope)
def create_conversation(
    request: TitleRequest,
    store: ConversationStore = Depends(get_store),
) -> ConversationEnvelope:
    """
    Create a conversation.

    Raises:
        HTTPException: 400 if title is missing or the conversation limit is reached
    """
    title = _require_title(request)
    try:
        conversation = store.create_conversation(title)
    except ConversationLimitExceeded as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return ConversationEnvelope(conversation=conversation)


@router.get("", response_model=list[ConversationRead])
def list_conversations(store: ConversationStore = Depends(get_store)) -> list[ConversationRead]:
    return store.list_conversations()


@router.put("/{conversation_id}", response_model=SuccessResponse)
def rename_conversation(
    conversation_id: uuid.UUID,
    request: TitleRequest,
    store: ConversationStore = Depends(get_store),
) -> SuccessResponse:
    title = _require_title(request)
    try:
        store.rename_conversation(conversation_id, title)
    except (ConversationNotFound, ConversationAccessDenied) as e:
        raise _ownership_error(e)
    return SuccessResponse()


@router.delete("/{conversation_id}", response_model=SuccessResponse)
def delete_conversation(
    conversation_id: uuid.UUID,
    store: ConversationStore = Depends(get_store),
) -> SuccessResponse:
    """Delete conversation and all messages."""
    try:
        store.delete_conversation(conversation_id)
    except (ConversationNotFound, ConversationAccessDenied) as e:
        raise _ownership_error(e)
    return SuccessResponse()


@router.get("/{conversation_id}/messages", response_model=list[MessageRead])
def list_messages(
    conversation_id: uuid.UUID,
    store: ConversationStore = Depends(get_store),
) -> list[MessageRead]:
    try:
        return store.list_messages(conversation_id)
    except (ConversationNotFound, ConversationAccessDenied) as e:
        raise _ownership_error(e)


@router.post("/{conversation_id}/messages", response_model=MessageEnvelope)
def add_message(
    conversation_id: uuid.UUID,
    request: MessageCreate,
    store: ConversationStore = Depends(get_store),
) -> MessageEnvelope:
    """
    Append a message to a conversation.

    Raises:
        HTTPException: 400 if role/content are missing or role is invalid
        HTTPException: 403 if another user owns the conversation
        HTTPException: 404 if the conversation does not exist
    """
    if not request.role or not request.content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Role and content are required",
        )

    try:
        message = store.add_message(conversation_id, request.role, request.content)
    except InvalidMessageRole as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (ConversationNotFound, ConversationAccessDenied) as e:
        raise _ownership_error(e)
    return MessageEnvelope(message=message)
