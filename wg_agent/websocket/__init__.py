"""
WebSocket module for the backend command channel.

The backend pushes peer commands (add_peer, remove_peer) over a
persistent connection; the agent applies them and replies with an
acknowledgment on the same connection.
"""

from .command_channel import ChannelState, CommandChannel

__all__ = ["ChannelState", "CommandChannel"]
