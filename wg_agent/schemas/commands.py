"""
Messages exchanged over the backend command channel.
"""

import ipaddress
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class AddPeerCommand(BaseModel):
    type: Literal["add_peer"] = "add_peer"
    public_key: str = Field(..., alias="publicKey", min_length=1)
    allowed_ips: Optional[str] = Field(None, alias="allowedIPs")

    class Config:
        populate_by_name = True

    @field_validator("public_key")
    @classmethod
    def _check_public_key(cls, value: str) -> str:
        if any(ch.isspace() for ch in value):
            raise ValueError("public key must not contain whitespace")
        return value

    @field_validator("allowed_ips")
    @classmethod
    def _check_allowed_ips(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        for network in value.split(","):
            ipaddress.ip_network(network.strip(), strict=False)
        return value.strip()


class RemovePeerCommand(BaseModel):
    type: Literal["remove_peer"] = "remove_peer"
    public_key: str = Field(..., alias="publicKey", min_length=1)

    class Config:
        populate_by_name = True

    @field_validator("public_key")
    @classmethod
    def _check_public_key(cls, value: str) -> str:
        if any(ch.isspace() for ch in value):
            raise ValueError("public key must not contain whitespace")
        return value


PeerCommand = Union[AddPeerCommand, RemovePeerCommand]

COMMAND_TYPES = {
    "add_peer": AddPeerCommand,
    "remove_peer": RemovePeerCommand,
}

ACK_TYPES = {
    "add_peer": "peer_added",
    "remove_peer": "peer_removed",
}


class PeerAck(BaseModel):
    """Reply sent back after a command has been applied."""
    type: Literal["peer_added", "peer_removed"]
    success: bool
    public_key: str = Field(..., alias="publicKey")

    class Config:
        populate_by_name = True

    @classmethod
    def for_command(cls, command: PeerCommand, success: bool) -> "PeerAck":
        return cls(type=ACK_TYPES[command.type], success=success, public_key=command.public_key)

    @classmethod
    def rejected(cls, message: dict) -> Optional["PeerAck"]:
        """
        Failure ack for a known command that did not validate.

        Returns None when the message has no usable type and key to answer.
        """
        ack_type = ACK_TYPES.get(message.get("type"))
        public_key = message.get("publicKey")
        if ack_type is None or not isinstance(public_key, str) or not public_key:
            return None
        return cls(type=ack_type, success=False, public_key=public_key)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class UnknownCommandError(ValueError):
    """Raised for messages whose ``type`` is not a known command."""


def parse_command(message: dict) -> PeerCommand:
    """
    Validate a decoded message into a command model.

    Raises:
        UnknownCommandError: missing or unrecognised ``type``
        pydantic.ValidationError: known type with malformed fields
    """
    if not isinstance(message, dict):
        raise UnknownCommandError(f"expected a JSON object, got {type(message).__name__}")
    command_type = message.get("type")
    model = COMMAND_TYPES.get(command_type) if isinstance(command_type, str) else None
    if model is None:
        raise UnknownCommandError(f"unknown message type: {command_type!r}")
    return model.model_validate(message)


__all__ = [
    "AddPeerCommand",
    "RemovePeerCommand",
    "PeerCommand",
    "PeerAck",
    "UnknownCommandError",
    "parse_command",
]
