from basker.core.config import settings
from basker.services.atproto.auth import AuthService
from basker.services.atproto.client import XrpcClient
from basker.services.atproto.gateway import RecordGateway


class AtprotoBundle:
    """
    A unified bundle for the AT Protocol clients.
    Authenticated traffic and public reads use separate HTTP clients.
    """

    def __init__(self, client: XrpcClient | None = None, public_client: XrpcClient | None = None):
        self.client = client or XrpcClient()
        self.public_client = public_client or XrpcClient(base_url=settings.PUBLIC_PDS_URL)
        self.auth = AuthService(self.client)

    async def close(self):
        """Close all underlying HTTP clients."""
        await self.client.close()
        await self.public_client.close()


__all__ = ["AtprotoBundle", "AuthService", "RecordGateway", "XrpcClient"]
