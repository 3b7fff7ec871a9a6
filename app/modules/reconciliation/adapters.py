"""Identity provider adapter protocol.

The orchestrator never talks to the identity provider directly; it calls an
adapter implementing this protocol. Adapters may raise any exception: the
orchestrator classifies it with ``classify_sync_error`` to decide between a
retry and the dead-letter list. Calls must tolerate duplicate application,
since the engine delivers at least once.
"""

from typing import Any, Dict, Protocol


class IdentityProviderAdapter(Protocol):
    """Remote user operations consumed by the reconciliation worker.

    Example:
        class KeycloakAdapter:
            def __init__(self, client: httpx.AsyncClient, realm: str):
                self.client = client
                self.realm = realm

            async def create_user(self, payload: Dict[str, Any]) -> str:
                response = await self.client.post(
                    f"/admin/realms/{self.realm}/users", json=payload
                )
                response.raise_for_status()
                return response.headers["location"].rsplit("/", 1)[-1]

            ...
    """

    async def create_user(self, payload: Dict[str, Any]) -> str:
        """Create the user and return its remote id.

        The payload carries the local user id under ``"id"``.
        """
        ...

    async def update_user(self, user_id: str, payload: Dict[str, Any]) -> None:
        """Apply the payload to an existing remote user."""
        ...

    async def delete_user(self, user_id: str) -> None:
        """Delete the remote user."""
        ...
