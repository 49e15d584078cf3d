"""
Inbound event records.

A ``Meta`` carries the identity an event belongs to (identity type plus numeric
id) together with the raw payload. The router attaches the fetched user and
group records and the parsed command line while the event is dispatched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from chorus.scope import ContextType

if TYPE_CHECKING:
    from chorus.command import ParsedCommandLine
    from chorus.database import GroupData, UserData


@dataclass
class Meta:
    """An event received from the chat platform."""

    post_type: str = "message"  # message, notice, request, meta_event, send
    message_type: Optional[str] = None  # private, group, discuss
    sub_type: Optional[str] = None
    user_id: Optional[int] = None
    group_id: Optional[int] = None
    discuss_id: Optional[int] = None
    message: str = ""
    self_id: Optional[int] = None
    extra: dict[str, Any] = field(default_factory=dict)

    # Attached during dispatch
    user: Optional[UserData] = field(default=None, repr=False)
    group: Optional[GroupData] = field(default=None, repr=False)
    argv: Optional[ParsedCommandLine] = field(default=None, repr=False)
    appellative: bool = False

    @classmethod
    def private(cls, user_id: int, message: str = "", **kwargs: Any) -> Meta:
        return cls(message_type="private", user_id=user_id, message=message, **kwargs)

    @classmethod
    def group_message(cls, group_id: int, user_id: int, message: str = "", **kwargs: Any) -> Meta:
        return cls(message_type="group", group_id=group_id, user_id=user_id, message=message, **kwargs)

    @classmethod
    def discuss_message(cls, discuss_id: int, user_id: int, message: str = "", **kwargs: Any) -> Meta:
        return cls(
            message_type="discuss", discuss_id=discuss_id, user_id=user_id, message=message, **kwargs
        )

    @property
    def has_identity(self) -> bool:
        return self.user_id is not None or self.group_id is not None or self.discuss_id is not None

    @property
    def context_type(self) -> ContextType:
        if self.group_id is not None:
            return ContextType.GROUP
        if self.discuss_id is not None:
            return ContextType.DISCUSS
        return ContextType.USER

    @property
    def context_id(self) -> int:
        if self.group_id is not None:
            return self.group_id
        if self.discuss_id is not None:
            return self.discuss_id
        if self.user_id is None:
            raise ValueError("Meta has no identity to route on")
        return self.user_id

    @property
    def context_label(self) -> str:
        """Short ``type:id`` label used in logs, ``-`` for events without an identity."""
        if not self.has_identity:
            return "-"
        return f"{self.context_type.value}:{self.context_id}"

    @property
    def event_names(self) -> list[str]:
        """Hook names this event is published under, most general first."""
        names = [self.post_type]
        subtype = self.message_type if self.post_type == "message" else self.sub_type
        if subtype:
            names.append(f"{self.post_type}/{subtype}")
        return names
