"""Conversation and message persistence scoped to a single user.

Every query issued by a ConversationStore is filtered by the owner id taken
from the caller's verified token, so one user never sees another user's rows.
"""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import DBAPIError
from sqlmodel import Session, select

from app.config import settings
from app.core.encryption import EncryptionError, decrypt_text, encrypt_text
from app.models.conversation import (
    MESSAGE_ROLES,
    Conversation,
    ConversationLimitExceeded,
    ConversationRead,
    Message,
    MessageRead,
    is_quota_violation,
)

logger = logging.getLogger(__name__)


class ConversationNotFound(ValueError):
    """Raised when a conversation id does not exist."""

    def __init__(self, conversation_id: uuid.UUID):
        self.conversation_id = conversation_id
        super().__init__("Conversation not found")


class ConversationAccessDenied(PermissionError):
    """Raised when a conversation exists but belongs to another user."""

    def __init__(self, conversation_id: uuid.UUID):
        self.conversation_id = conversation_id
        super().__init__("Unauthorized access to conversation")


class InvalidMessageRole(ValueError):
    """Raised when a message role is not one of MESSAGE_ROLES."""


class ConversationStore:
    """CRUD over conversations and messages for one authenticated user."""

    def __init__(self, session: Session, user_id: str, encrypt_messages: bool = settings.ENCRYPT_MESSAGES):
        self.session = session
        self.user_id = user_id
        self.encrypt_messages = encrypt_messages

    # --- CONVERSATIONS ---
    def create_conversation(self, title: str) -> ConversationRead:
        """
        Create a conversation owned by the current user.

        Raises:
            ConversationLimitExceeded: If the user already owns the maximum
        """
        conversation = Conversation(user_id=self.user_id, title=title)
        self.session.add(conversation)
        try:
            self.session.commit()
        except DBAPIError as e:
            self.session.rollback()
            if not is_quota_violation(e):
                raise
            logger.info(f"Conversation quota reached for user {self.user_id}")
            raise ConversationLimitExceeded() from e

        self.session.refresh(conversation)
        logger.info(f"Conversation created: user={self.user_id}, conversation={conversation.id}")
        return ConversationRead.model_validate(conversation)

    def list_conversations(self) -> list[ConversationRead]:
        """Current user's conversations, most recently updated first."""
        statement = (
            select(Conversation)
            .where(Conversation.user_id == self.user_id)
            .order_by(Conversation.updated_at.desc())
        )
        return [ConversationRead.model_validate(c) for c in self.session.exec(statement).all()]

    def rename_conversation(self, conversation_id: uuid.UUID, title: str) -> ConversationRead:
        conversation = self._get_owned(conversation_id)
        conversation.title = title
        conversation.updated_at = datetime.now(timezone.utc)
        self.session.add(conversation)
        self.session.commit()
        self.session.refresh(conversation)
        return ConversationRead.model_validate(conversation)

    def delete_conversation(self, conversation_id: uuid.UUID) -> None:
        """Delete a conversation; its messages go with it."""
        conversation = self._get_owned(conversation_id)
        self.session.delete(conversation)
        self.session.commit()
        logger.info(f"Conversation deleted: user={self.user_id}, conversation={conversation_id}")

    # --- MESSAGES ---
    def list_messages(self, conversation_id: uuid.UUID) -> list[MessageRead]:
        """Messages of an owned conversation, oldest first."""
        self._get_owned(conversation_id)
        statement = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at)
        )
        return [self._to_read(m) for m in self.session.exec(statement).all()]

    def add_message(self, conversation_id: uuid.UUID, role: str, content: str) -> MessageRead:
        """
        Append a message to an owned conversation.

        Raises:
            InvalidMessageRole: If role is not user or assistant
            ConversationNotFound: If the conversation does not exist
            ConversationAccessDenied: If another user owns it
        """
        if role not in MESSAGE_ROLES:
            raise InvalidMessageRole(f"Role must be one of: {', '.join(MESSAGE_ROLES)}")

        conversation = self._get_owned(conversation_id)

        stored_content = encrypt_text(content, self.user_id) if self.encrypt_messages else content
        message = Message(conversation_id=conversation.id, role=role, content=stored_content)
        conversation.updated_at = datetime.now(timezone.utc)

        self.session.add(message)
        self.session.add(conversation)
        self.session.commit()
        self.session.refresh(message)
        return self._to_read(message)

    # --- HELPERS ---
    def _get_owned(self, conversation_id: uuid.UUID) -> Conversation:
        conversation = self.session.get(Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)
        if conversation.user_id != self.user_id:
            logger.warning(
                f"User {self.user_id} denied access to conversation {conversation_id}"
            )
            raise ConversationAccessDenied(conversation_id)
        return conversation

    def _to_read(self, message: Message) -> MessageRead:
        content = message.content
        if self.encrypt_messages:
            try:
                content = decrypt_text(content, self.user_id)
            except EncryptionError:
                logger.warning(f"Message {message.id} could not be decrypted, returning stored text")

        return MessageRead(
            id=message.id,
            conversation_id=message.conversation_id,
            role=message.role,
            content=content,
            created_at=message.created_at,
        )
