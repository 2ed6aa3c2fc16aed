import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from app.client.errors import GatewayError, RecordValidationError, StorageError
from app.client.gateway import RemoteGateway
from app.client.storage import LocalStorage
from app.schemas.goals import Goals

logger = logging.getLogger(__name__)

GOALS_KEY = "userGoals"


class GoalStore:
    """Local-first storage of the user's goals with the server as a fallback source.

    ``save`` always replaces all four goals; omitted ones take their default
    values at that moment. The local copy remembers whether it reached the
    server so an offline edit is pushed before remote goals are trusted again.
    """

    def __init__(self, storage: LocalStorage, gateway: RemoteGateway, user_id: str):
        self.storage = storage
        self.gateway = gateway
        self.user_id = user_id

    def _read_local(self) -> tuple[Goals | None, bool]:
        try:
            cached = self.storage.get_item(GOALS_KEY)
        except StorageError:
            logger.warning("Local goals unreadable for user %s", self.user_id, exc_info=True)
            return None, True
        if not isinstance(cached, dict) or "goals" not in cached:
            return None, True
        try:
            return Goals.model_validate(cached["goals"]), bool(cached.get("synced", False))
        except ValidationError:
            logger.warning("Ignoring malformed cached goals for user %s", self.user_id)
            return None, True

    def _write_local(self, goals: Goals, synced: bool) -> None:
        self.storage.set_item(
            GOALS_KEY,
            {"goals": goals.model_dump(by_alias=True, mode="json"), "synced": synced},
        )

    def cached(self) -> Goals:
        goals, _ = self._read_local()
        return goals or Goals(user_id=self.user_id)

    async def load(self, online: bool = True) -> Goals:
        local, synced = self._read_local()
        if not online:
            return local or Goals(user_id=self.user_id)
        if local is not None and not synced:
            try:
                await self.gateway.save_goals(self.user_id, local)
            except GatewayError as exc:
                logger.info("Goals still unsynced (%s); using local copy", exc.kind)
                return local
            self._write_local(local, synced=True)

        try:
            remote = await self.gateway.fetch_goals(self.user_id)
        except GatewayError as exc:
            logger.info("Goals fetch failed (%s); falling back to %s", exc.kind, "local cache" if local else "defaults")
            return local or Goals(user_id=self.user_id)

        merged = Goals(user_id=self.user_id).model_dump()
        merged.update({key: value for key, value in remote.model_dump().items() if value is not None})
        goals = Goals.model_validate(merged)
        try:
            self._write_local(goals, synced=True)
        except StorageError:
            logger.warning("Could not cache goals locally for user %s", self.user_id, exc_info=True)
        return goals

    async def save(self, goals) -> Goals:
        if isinstance(goals, Goals):
            goals = goals.model_dump(exclude={"created_at", "updated_at"})
        try:
            complete = Goals.model_validate({**dict(goals), "user_id": self.user_id, "updated_at": datetime.now(timezone.utc)})
        except ValidationError as exc:
            raise RecordValidationError.from_pydantic(exc) from exc

        self._write_local(complete, synced=False)
        logger.info("Saved goals locally for user %s", self.user_id)
        try:
            await self.gateway.save_goals(self.user_id, complete)
        except GatewayError as exc:
            logger.info("Goals saved locally only (%s); will retry on next load", exc.kind)
            return complete
        self._write_local(complete, synced=True)
        return complete
