"""Messaging core data models package.

This package contains the typed records consumed from the backend, the
stores that own conversation and thread state, the contact directory,
the optimistic action contract, and the Messenger facade that wires them
to the REST client.
"""

from models.user import Contact, Role, User
from models.session import Session
from models.conversation import Conversation, ConversationType, Participant, RequestStatus
from models.message import Message, MessageType, ReplySnapshot
from models.mutation import MutationKind, MutationLedger, MutationStatus, PendingMutation
from models.actions import ActionOutcome, ActionResult, ActionRunner, Notice
from models.conversation_store import ConversationStore, ConversationTab
from models.thread import MessageDisplay, MessageThread, build_display_plan
from models.directory import ContactDirectory, DirectoryView, LoadState, compose_group_key
from models.messenger import Messenger

__all__ = [
    "User",
    "Contact",
    "Role",
    "Session",
    "Conversation",
    "ConversationType",
    "Participant",
    "RequestStatus",
    "Message",
    "MessageType",
    "ReplySnapshot",
    "MutationKind",
    "MutationStatus",
    "PendingMutation",
    "MutationLedger",
    "ActionOutcome",
    "ActionResult",
    "ActionRunner",
    "Notice",
    "ConversationStore",
    "ConversationTab",
    "MessageThread",
    "MessageDisplay",
    "build_display_plan",
    "ContactDirectory",
    "DirectoryView",
    "LoadState",
    "compose_group_key",
    "Messenger",
]
