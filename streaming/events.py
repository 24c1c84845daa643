"""Stream events decoded from a chat response and their classification"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union


@dataclass(frozen=True)
class TextDelta:
    """Fragment of the assistant's text"""
    content: str


@dataclass(frozen=True)
class ToolCallDelta:
    """Fragment of one tool call

    The first fragment of a call usually carries id and name; later ones only
    append to arguments. index ties fragments of the same call together.
    """
    index: int
    id: Optional[str]
    name: Optional[str]
    arguments: str


@dataclass(frozen=True)
class ThreadCreated:
    """Continuity announcement: which thread and message the next turn hangs off"""
    thread_id: Optional[str]
    parent_message_id: Optional[str]
    response_id: Optional[str] = None


@dataclass(frozen=True)
class Terminal:
    """End of the response"""


StreamEvent = Union[TextDelta, ToolCallDelta, ThreadCreated, Terminal]
ChatOutput = Union[TextDelta, ToolCallDelta]


@dataclass
class ToolCall:
    """A tool call assembled from its streamed fragments"""
    id: Optional[str]
    name: Optional[str]
    arguments: str

    def to_message_dict(self) -> Dict[str, Any]:
        """Render as an OpenAI-style assistant tool_calls entry"""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


def _tool_call_delta(position: int, fragment: Any) -> Optional[ToolCallDelta]:
    if not isinstance(fragment, dict):
        return None

    function = fragment.get("function") if isinstance(fragment.get("function"), dict) else {}
    index = fragment.get("index")
    arguments = function.get("arguments")

    return ToolCallDelta(
        index=index if isinstance(index, int) else position,
        id=fragment.get("id") if isinstance(fragment.get("id"), str) else None,
        name=function.get("name") if isinstance(function.get("name"), str) else None,
        arguments=arguments if isinstance(arguments, str) else "",
    )


def classify_frame(frame: Any) -> List[StreamEvent]:
    """Turn one parsed `data:` payload into stream events

    Branches, in order:
      - `response.created` continuity payload -> ThreadCreated, nothing else
      - first choice's delta with status "finished" -> Terminal
      - delta tool_calls -> one ToolCallDelta per fragment, in order
      - non-empty delta content -> TextDelta
    Anything else yields no events.
    """
    if not isinstance(frame, dict):
        return []

    created = frame.get("response.created")
    if isinstance(created, dict):
        response_id = created.get("response_id")
        return [ThreadCreated(
            thread_id=created.get("chat_id"),
            parent_message_id=response_id or created.get("parent_id"),
            response_id=response_id,
        )]

    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return []

    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return []

    if delta.get("status") == "finished":
        return [Terminal()]

    events: List[StreamEvent] = []

    tool_calls = delta.get("tool_calls")
    if isinstance(tool_calls, list):
        for position, fragment in enumerate(tool_calls):
            tool_delta = _tool_call_delta(position, fragment)
            if tool_delta is not None:
                events.append(tool_delta)

    content = delta.get("content")
    if isinstance(content, str) and content:
        events.append(TextDelta(content))

    return events


def accumulate_tool_calls(deltas: Iterable[ToolCallDelta]) -> List[ToolCall]:
    """Merge streamed tool-call fragments into complete calls, ordered by index"""
    calls: Dict[int, ToolCall] = {}

    for delta in deltas:
        call = calls.get(delta.index)
        if call is None:
            calls[delta.index] = ToolCall(id=delta.id, name=delta.name, arguments=delta.arguments)
            continue

        if delta.id and not call.id:
            call.id = delta.id
        if delta.name and not call.name:
            call.name = delta.name
        call.arguments += delta.arguments

    return [calls[index] for index in sorted(calls)]
