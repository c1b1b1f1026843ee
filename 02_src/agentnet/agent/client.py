"""Client for querying agents over the transport."""

from typing import Any

from ..errors import HandoffError, OperationTimeoutError, TransportError, ValidationError
from ..models import ErrorReply, TaskMessage, decode_envelope
from ..resilience import RetryPolicy, with_retry
from ..transport import ITransport

CLIENT_NAME = "client"


class AgentClient:
    """Sends task envelopes to an agent's task topic and awaits the reply."""

    def __init__(
        self,
        transport: ITransport,
        timeout: float = 60.0,
        retry: RetryPolicy | None = None,
        name: str = CLIENT_NAME,
    ):
        self._transport = transport
        self._timeout = timeout
        self._retry = retry or RetryPolicy(max_retries=0)
        self._name = name

    async def query(
        self,
        network: str,
        content: Any,
        session: dict[str, Any] | None = None,
    ) -> TaskMessage:
        """Query the agent at network. Error replies raise HandoffError."""
        payload = TaskMessage(content=content, session=dict(session or {})).encode()

        try:
            data = await with_retry(
                lambda: self._transport.request(network, payload, timeout=self._timeout),
                self._retry,
            )
        except (TransportError, OperationTimeoutError) as e:
            raise HandoffError(
                f"Query to {network} failed: {e}", self._name, network
            ) from e

        try:
            reply = decode_envelope(data)
        except ValidationError as e:
            raise HandoffError(
                f"Malformed reply from {network}: {e.message}", self._name, network
            ) from e

        if isinstance(reply, ErrorReply):
            raise HandoffError(
                f"{network} replied with {reply.type}: {reply.message}",
                self._name,
                network,
            )
        if not isinstance(reply, TaskMessage):
            raise HandoffError(f"Unexpected reply from {network}", self._name, network)
        return reply
