"""Wire codec for access list sync messages.

A sync message is the ASCII string ``"<action>-<identity>"``. Actions never
contain a dash, so the message is split on its first dash only and any dash
inside the identity is preserved.

A message with an empty identity (``"addWhiteList-"``) is ignored; it is not
applied as an add or remove of the empty string.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SyncAction(str, Enum):
    ADD_WHITELIST = "addWhiteList"
    REMOVE_WHITELIST = "removeWhiteList"
    ADD_BLACKLIST = "addBlackList"
    REMOVE_BLACKLIST = "removeBlackList"


_ACTIONS = {action.value: action for action in SyncAction}


@dataclass(frozen=True)
class SyncMessage:
    action: SyncAction
    identity: str


def encode_sync_message(action: SyncAction, identity: str) -> str:
    return f"{action.value}-{identity}"


def decode_sync_message(message: str) -> SyncMessage | None:
    """Parse an inbound sync message.

    Args:
        message: Raw payload received from the publish/subscribe channel.

    Returns:
        The decoded message, or None when the payload has no dash, names an
        unknown action, or carries an empty identity. Such payloads are
        ignored by receivers, never reported as errors.
    """
    action_name, sep, identity = message.partition("-")
    if not sep or not identity:
        return None

    action = _ACTIONS.get(action_name)
    if action is None:
        return None
    return SyncMessage(action=action, identity=identity)
