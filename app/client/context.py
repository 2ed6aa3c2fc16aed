import logging
import secrets
import string
import time

import httpx

from app.client.gateway import RemoteGateway
from app.client.storage import LocalStorage
from app.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

USER_ID_KEY = "healthTrackerUserId"
_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_user_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"user_{int(time.time() * 1000)}_{suffix}"


class TrackerContext:
    """Per-session handles shared by every client component.

    Built once at session start with :meth:`create` and released with
    :meth:`aclose`. The user id is generated on first use and persisted in
    local storage so it stays stable across sessions.
    """

    def __init__(self, storage: LocalStorage, gateway: RemoteGateway, user_id: str):
        self.storage = storage
        self.gateway = gateway
        self.user_id = user_id

    @classmethod
    def create(
        cls,
        config: Settings = default_settings,
        storage: LocalStorage | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "TrackerContext":
        storage = storage or LocalStorage(config.LOCAL_STORE_URL, quota_bytes=config.LOCAL_STORE_QUOTA_BYTES)
        user_id = storage.get_item(USER_ID_KEY)
        if not user_id:
            user_id = generate_user_id()
            storage.set_item(USER_ID_KEY, user_id)
            logger.info("Generated new user id %s", user_id)
        gateway = RemoteGateway(config.API_BASE_URL, timeout=config.REQUEST_TIMEOUT_SECONDS, transport=transport)
        return cls(storage=storage, gateway=gateway, user_id=user_id)

    async def aclose(self) -> None:
        await self.gateway.aclose()
        self.storage.close()

    async def __aenter__(self) -> "TrackerContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
