"""Conversation thread state"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ChatSession:
    """One server-side thread the client is currently talking in

    Attributes:
        thread_id: Thread identifier from the service (or local for stateless APIs)
        model: Model the thread was opened with
        last_parent_message_id: Message the next outbound turn replies to
    """
    thread_id: str
    model: str
    last_parent_message_id: Optional[str] = None
