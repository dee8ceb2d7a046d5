"""MessageSender protocol — services depend on this, not the concrete implementation.

send() returns provider-level success; it never raises.
"""

from typing import Protocol


class MessageSender(Protocol):
    channel: str

    async def send(self, destination: str, message: str) -> bool: ...
