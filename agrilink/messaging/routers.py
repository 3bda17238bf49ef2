import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from agrilink.core.dependencies import get_current_user_id, get_db
from agrilink.core.errors import MessagingError, to_http

from . import service
from .schemas import (
    Conversation,
    GetConversationsResponseModel,
    UnreadCountResponseModel,
    CreateDirectConversationModel,
    CreateGroupConversationModel,
    CreateAnnouncementConversationModel,
    CreateConversationResponseModel,
    SendMessageModel,
    SendMessageResponseModel,
    GetMessagesResponseModel,
    GetParticipantsResponseModel,
    AddParticipantModel,
    EditMessageModel,
    SuccessResponseModel,
)


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/conversations",
    response_model=GetConversationsResponseModel,
    status_code=200,
)
def get_conversations(
    user_id: str = Depends(get_current_user_id), db: Client = Depends(get_db)
):
    """
    Retrieve all conversations for the authenticated user.

    Only conversations where the user is an active participant are listed,
    ordered by the time of their last message. Conversations without
    messages come last.

    **Returns**
    - `conversations`: List of conversation objects with last message preview,
      participant count and the user's unread count

    **Errors**
    - 401: Invalid or expired JWT
    - 500: Database or unexpected server error
    """
    try:
        return {"conversations": service.get_user_conversations(db, user_id)}
    except MessagingError as e:
        raise to_http(e)


@router.get("/unread-count", response_model=UnreadCountResponseModel, status_code=200)
def get_unread_count(
    user_id: str = Depends(get_current_user_id), db: Client = Depends(get_db)
):
    """Total unread messages across all of the user's conversations."""
    try:
        return {"unread_count": service.get_total_unread_messages(db, user_id)}
    except MessagingError as e:
        raise to_http(e)


@router.get(
    "/conversations/{conversation_id}",
    response_model=Conversation,
    status_code=200,
)
def get_conversation(
    conversation_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Retrieve one conversation.

    **Errors**
    - 403: User is not a participant
    - 404: Conversation not found
    """
    try:
        service.ensure_participant(db, str(conversation_id), user_id)
        conversation = service.get_conversation_by_id(db, str(conversation_id))
    except MessagingError as e:
        raise to_http(e)

    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return conversation


@router.post(
    "/conversations/direct",
    response_model=CreateConversationResponseModel,
    status_code=200,
)
def get_or_create_direct_conversation(
    data: CreateDirectConversationModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Get or create a direct (1-on-1) conversation with another user.

    If a direct conversation between the two users already exists, its id is
    returned. Otherwise a new conversation is created with the caller as
    admin and the other user as member.

    **Input**
    - `other_user_id`: UUID of the user to message

    **Returns**
    - `conversation_id`: UUID of the direct conversation

    **Errors**
    - 400: Conversation with yourself
    - 404: Other user does not exist
    - 500: Database error
    """
    try:
        conversation_id = service.create_direct_conversation(
            db, user_id, str(data.other_user_id)
        )
    except MessagingError as e:
        raise to_http(e)

    return {"conversation_id": conversation_id}


@router.post(
    "/conversations/group",
    response_model=CreateConversationResponseModel,
    status_code=201,
)
def create_group_conversation(
    data: CreateGroupConversationModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Create a group conversation.

    The caller is always added as admin; duplicate participant ids are
    ignored.
    """
    try:
        conversation_id = service.create_group_conversation(
            db,
            data.title,
            user_id,
            [str(pid) for pid in data.participant_ids],
            str(data.organization_id) if data.organization_id else None,
        )
    except MessagingError as e:
        raise to_http(e)

    return {"conversation_id": conversation_id}


@router.post(
    "/conversations/announcement",
    response_model=CreateConversationResponseModel,
    status_code=201,
)
def create_announcement_conversation(
    data: CreateAnnouncementConversationModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Create an organization announcement conversation owned by the caller."""
    try:
        conversation_id = service.create_announcement_conversation(
            db,
            data.title,
            user_id,
            str(data.organization_id),
            [str(pid) for pid in data.participant_ids],
        )
    except MessagingError as e:
        raise to_http(e)

    return {"conversation_id": conversation_id}


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=GetMessagesResponseModel,
    status_code=200,
)
def get_messages(
    conversation_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Retrieve all messages for a conversation, oldest first.

    Read and delivered flags are those of the authenticated user.

    **Errors**
    - 403: User is not a participant of the conversation
    - 500: Database or unexpected server error
    """
    try:
        service.ensure_participant(db, str(conversation_id), user_id)
        messages = service.get_conversation_messages(
            db, str(conversation_id), viewer_id=user_id
        )
    except MessagingError as e:
        raise to_http(e)

    return {"messages": messages}


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=SendMessageResponseModel,
    status_code=201,
)
def send_message(
    conversation_id: UUID,
    data: SendMessageModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Send a message to a conversation the user is an active participant of.

    Other participants are notified; a failed notification does not fail
    the send.

    **Returns**
    - `id`: UUID of the new message

    **Errors**
    - 400: Unsupported content type
    - 403: User is not a participant of the conversation
    - 500: Database error
    """
    try:
        service.ensure_participant(db, str(conversation_id), user_id)
        message_id = service.send_message(
            db,
            str(conversation_id),
            user_id,
            data.content,
            data.content_type.value,
            data.attachment_url,
            data.attachment_type,
        )
    except MessagingError as e:
        raise to_http(e)

    return {"id": message_id}


@router.post(
    "/conversations/{conversation_id}/read",
    response_model=SuccessResponseModel,
    status_code=200,
)
def mark_conversation_as_read(
    conversation_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Mark every message of the conversation as read for the user."""
    try:
        service.ensure_participant(db, str(conversation_id), user_id)
        service.mark_conversation_as_read(db, str(conversation_id), user_id)
    except MessagingError as e:
        raise to_http(e)

    return {"success": True}


@router.patch(
    "/messages/{message_id}",
    response_model=SuccessResponseModel,
    status_code=200,
)
def edit_message(
    message_id: UUID,
    data: EditMessageModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Edit the content of one of your own messages.

    **Errors**
    - 403: Message was sent by someone else
    - 404: Message not found
    """
    try:
        message = service.get_message(db, str(message_id))
        if message.get("sender_id") != user_id:
            raise HTTPException(status_code=403, detail="You can only edit your own messages.")
        service.edit_message(db, str(message_id), data.content)
    except MessagingError as e:
        raise to_http(e)

    return {"success": True}


@router.get(
    "/conversations/{conversation_id}/participants",
    response_model=GetParticipantsResponseModel,
    status_code=200,
)
def get_participants(
    conversation_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """Active participants of a conversation with their display names."""
    try:
        service.ensure_participant(db, str(conversation_id), user_id)
        participants = service.get_conversation_participants(db, str(conversation_id))
    except MessagingError as e:
        raise to_http(e)

    return {"participants": participants}


@router.post(
    "/conversations/{conversation_id}/participants",
    response_model=SuccessResponseModel,
    status_code=201,
)
def add_participant(
    conversation_id: UUID,
    data: AddParticipantModel,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Add a participant (or re-activate a removed one).

    **Errors**
    - 403: Caller is not an admin of the conversation
    """
    try:
        service.ensure_participant(db, str(conversation_id), user_id, admin=True)
        service.add_conversation_participant(
            db, str(conversation_id), str(data.user_id), data.role.value
        )
    except MessagingError as e:
        raise to_http(e)

    logger.info(f"participant_added conversation_id={conversation_id} user_id={data.user_id}")
    return {"success": True}


@router.delete(
    "/conversations/{conversation_id}/participants/{participant_id}",
    response_model=SuccessResponseModel,
    status_code=200,
)
def remove_participant(
    conversation_id: UUID,
    participant_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    """
    Remove a participant. Admins can remove anyone, members only themselves.

    The participant row is kept and flagged inactive.
    """
    try:
        leaving_self = str(participant_id) == user_id
        service.ensure_participant(db, str(conversation_id), user_id, admin=not leaving_self)
        service.remove_conversation_participant(db, str(conversation_id), str(participant_id))
    except MessagingError as e:
        raise to_http(e)

    logger.info(
        f"participant_removed conversation_id={conversation_id} user_id={participant_id}"
    )
    return {"success": True}
