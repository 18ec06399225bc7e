"""
Auth Strategy interface.

Exactly two variants exist:
- S3Signer: signs each request locally; authenticate() is a no-op
- SwiftTokenClient: trades credentials for a bearer token once

A connection owns one strategy. It calls authenticate() (at most once per
connect()), then bind() to obtain the pre-authorized transport agents it
sends every later request through.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Optional

from osapi.core.errors import AuthenticationError
from osapi.core.types import AuthSession, ConnectionStyle, Result
from osapi.protocol.request import OperationOptions
from osapi.transport.agent import TransportAgent


class AuthStrategy(ABC):
    """Produces the headers/URLs that authorize requests of one style."""

    style: ClassVar[ConnectionStyle]

    @abstractmethod
    async def authenticate(self) -> Result[Optional[AuthSession], AuthenticationError]:
        """
        Perform whatever network exchange the style needs.

        Returns:
            Ok(session) for token styles, Ok(None) for signing styles,
            Err(AuthenticationError) when the exchange is refused
        """

    @abstractmethod
    def bind(self, session: Optional[AuthSession]) -> tuple[TransportAgent, TransportAgent]:
        """
        Build the agents operations go through.

        Returns:
            (buffered agent, streaming agent); they may be the same object
        """

    @abstractmethod
    def signed_url(
        self,
        session: Optional[AuthSession],
        options: OperationOptions,
        expires: int,
    ) -> str:
        """Pre-signed URL granting unauthenticated access until `expires` (unix seconds)."""

    async def aclose(self) -> None:
        """Release anything the strategy itself holds open."""
        return None
