"""
RPC transport interface.
"""

from typing import Any, Dict, Optional, Protocol


class RpcTransport(Protocol):
    """
    Carries Firestore RPCs to the server.

    Methods used by the client: ``beginTransaction``, ``commit``,
    ``rollback``, ``batchGet`` and ``runQuery``. Requests carry the target
    resource (``database`` or ``parent``) and transaction handles as
    ``bytes``; ``beginTransaction`` responses return the handle as ``bytes``.
    ``batchGet`` and ``runQuery`` return lists of response messages.
    Failures are raised as ``RpcError``.
    """

    async def call(self, method: str, request: Dict[str, Any], request_tag: Optional[str] = None) -> Any:
        """Send one RPC and return its decoded response."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
