"""Daily record store adapter.

All routines, habits and daily records of a user live in one document. Every
mutation reads the whole document, changes one part of it and writes the
whole document back. Mutations for the same user are serialized through one
``asyncio.Lock`` so two quick updates to different sub-objects cannot lose
each other.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from pydantic import ValidationError

from habit_tracker.core.config import DEFAULT_ROUTINES, EXPORT_FORMAT_VERSION, get_max_routines
from habit_tracker.core.errors import (
    ConnectivityError,
    HabitTrackerError,
    LimitExceededError,
    NotAuthenticatedError,
    NotFoundError,
    PreconditionError,
    StoreError,
    StoreNotConfiguredError,
    StoreUnavailableError,
)
from habit_tracker.models import (
    DailyChallenge,
    DailyRecord,
    DashboardOrderItem,
    ExportData,
    Habit,
    Routine,
    UserData,
    UserDocument,
    UserInfo,
)
from habit_tracker.services.collaborators import (
    AuthenticatedUser,
    ConnectivityProbe,
    DocumentStore,
    IdentityProvider,
)
from habit_tracker.services.date_service import Clock, date_key

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 日本語: merge で扱える日次サブマップ (保存キー -> 属性名) / English: Mergeable daily sub-maps (stored key -> attribute)
DAILY_SUB_MAPS = {
    "habitCompletions": "habit_completions",
    "routineCompletions": "routine_completions",
    "todos": "todos",
    "virtueCheckIns": "virtue_check_ins",
}


def _camel_keys(fields: Dict[str, Any]) -> Dict[str, Any]:
    converted = {}
    for key, value in fields.items():
        if "_" in key:
            head, *rest = key.split("_")
            key = head + "".join(part.capitalize() for part in rest)
        converted[key] = value
    return converted


def _merge_entity(entity: T, fields: Dict[str, Any]) -> T:
    # 日本語: {...existing, ...incoming} と同じ浅いマージ後に再検証 / English: Shallow merge like {...existing, ...incoming}, then re-validate
    merged = {**entity.to_document(), **_camel_keys(fields)}
    merged["id"] = entity.id
    try:
        return type(entity).model_validate(merged)
    except ValidationError as exc:
        raise PreconditionError(f"Invalid fields: {exc.errors()[0].get('msg', 'validation error')}") from exc


class HabitDataStore:
    """Read-modify-write access to the signed-in user's document."""

    def __init__(
        self,
        document_store: Optional[DocumentStore],
        identity: IdentityProvider,
        connectivity: ConnectivityProbe,
        clock: Clock = datetime.datetime.now,
        locks: Optional[Dict[str, asyncio.Lock]] = None,
    ):
        self.document_store = document_store
        self.identity = identity
        self.connectivity = connectivity
        self.clock = clock
        # 日本語: 同一ユーザーの書き込みを直列化するロック表 (リクエスト間で共有可) / English: Per-user write locks, shareable across store instances
        self._locks: Dict[str, asyncio.Lock] = locks if locks is not None else {}

    # ------------------------------------------------------------------
    # document access

    def _require_user(self) -> AuthenticatedUser:
        if self.document_store is None:
            raise StoreNotConfiguredError()
        user = self.identity.current_user()
        if user is None or not user.uid:
            raise NotAuthenticatedError()
        return user

    def current_user_id(self) -> str:
        return self._require_user().uid

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def _default_document(self, user: AuthenticatedUser) -> UserDocument:
        now = self.clock()
        return UserDocument(
            user_info=UserInfo(
                name=user.name,
                email=user.email,
                photo_url=user.photo_url,
                created_at=now,
                last_active=now,
            ),
            data=UserData(routines=[Routine.model_validate(item) for item in DEFAULT_ROUTINES]),
        )

    async def get_document(self) -> UserDocument:
        user = self._require_user()
        if not self.connectivity.is_online():
            raise ConnectivityError(ConnectivityError.READ_MESSAGE)
        try:
            raw = await self.document_store.get_document(user.uid)
            if raw is None:
                document = self._default_document(user)
                await self.document_store.set_document(user.uid, document.to_document())
                logger.info("Initialized habit document for user %s", user.uid)
                return document
            return UserDocument.model_validate(raw)
        except HabitTrackerError:
            raise
        except ValidationError as exc:
            logger.error("Stored document for user %s is malformed: %s", user.uid, exc)
            raise StoreError("Failed to load data. Please try again.") from exc
        except Exception as exc:
            logger.exception("Error getting user data")
            raise StoreError("Failed to load data. Please try again.") from exc

    async def _write(self, user: AuthenticatedUser, data: UserData) -> None:
        if not self.connectivity.is_online():
            raise ConnectivityError(ConnectivityError.WRITE_MESSAGE)
        try:
            await self.document_store.update_fields(
                user.uid,
                {
                    "data": data.to_document(),
                    "userInfo.lastActive": self.clock().isoformat(),
                },
            )
        except StoreUnavailableError as exc:
            raise StoreUnavailableError(
                "Service temporarily unavailable. Your changes will be saved when the service is back online."
            ) from exc
        except HabitTrackerError:
            raise
        except Exception as exc:
            logger.exception("Error updating user data")
            raise StoreError("Failed to save changes. Please try again.") from exc

    async def mutate(self, change: Callable[[UserData], T]) -> T:
        """Apply ``change`` to a freshly read document and write it back under the user lock."""
        user = self._require_user()
        if not self.connectivity.is_online():
            raise ConnectivityError(ConnectivityError.WRITE_MESSAGE)
        async with self._lock_for(user.uid):
            document = await self.get_document()
            result = change(document.data)
            await self._write(user, document.data)
            return result

    # ------------------------------------------------------------------
    # daily records

    async def load(self, date: Any) -> Optional[DailyRecord]:
        document = await self.get_document()
        return document.data.daily_data.get(date_key(date))

    async def daily_records(self) -> Dict[str, DailyRecord]:
        document = await self.get_document()
        return dict(document.data.daily_data)

    async def merge(self, date: Any, sub_map: str, payload: Any) -> DailyRecord:
        """Shallow-merge ``payload`` into one sub-map of the date's record.

        Map sub-maps keep untouched keys (incoming keys overwrite); ``todos`` is
        a list and is replaced as a whole.
        """
        attribute = DAILY_SUB_MAPS.get(sub_map)
        if attribute is None:
            raise PreconditionError(f"Unknown daily sub-map: {sub_map}")
        key = date_key(date)
        try:
            incoming = getattr(DailyRecord.model_validate({sub_map: payload}), attribute)
        except ValidationError as exc:
            raise PreconditionError(f"Invalid {sub_map} payload") from exc

        def _change(data: UserData) -> DailyRecord:
            record = data.daily_data.get(key) or DailyRecord()
            if isinstance(incoming, dict):
                setattr(record, attribute, {**getattr(record, attribute), **incoming})
            else:
                setattr(record, attribute, incoming)
            data.daily_data[key] = record
            return record

        return await self.mutate(_change)

    async def discard_habit_completion(self, date: Any, habit_id: int) -> Optional[DailyRecord]:
        key = date_key(date)

        def _change(data: UserData) -> Optional[DailyRecord]:
            record = data.daily_data.get(key)
            if record is not None:
                record.habit_completions.pop(habit_id, None)
            return record

        return await self.mutate(_change)

    async def set_daily_challenge(self, date: Any, challenge: DailyChallenge) -> DailyRecord:
        key = date_key(date)

        def _change(data: UserData) -> DailyRecord:
            record = data.daily_data.get(key) or DailyRecord()
            record.daily_challenge = challenge
            data.daily_data[key] = record
            return record

        return await self.mutate(_change)

    # ------------------------------------------------------------------
    # habits

    async def list_habits(self) -> List[Habit]:
        return (await self.get_document()).data.habits

    async def get_habit(self, habit_id: int) -> Habit:
        habit = (await self.get_document()).data.find_habit(habit_id)
        if habit is None:
            raise NotFoundError("Habit not found")
        return habit

    async def add_habit(self, fields: Dict[str, Any]) -> Habit:
        def _change(data: UserData) -> Habit:
            new_id = max((habit.id for habit in data.habits), default=0) + 1
            routine_id = fields.get("routine_id", fields.get("routineId"))
            routine = None
            if routine_id is not None:
                routine = data.find_routine(int(routine_id))
                if routine is None:
                    raise NotFoundError("Routine not found")
            try:
                habit = Habit.model_validate(
                    {**_camel_keys(fields), "id": new_id, "createdAt": self.clock()}
                )
            except ValidationError as exc:
                raise PreconditionError("Invalid habit fields") from exc
            data.habits.append(habit)
            if routine is not None:
                routine.habits.append(habit.id)
            return habit

        return await self.mutate(_change)

    async def update_habit(self, habit_id: int, fields: Dict[str, Any]) -> Habit:
        def _change(data: UserData) -> Habit:
            for index, habit in enumerate(data.habits):
                if habit.id == habit_id:
                    updated = _merge_entity(habit, fields)
                    if updated.routine_id != habit.routine_id:
                        _move_habit_between_routines(data, habit_id, habit.routine_id, updated.routine_id)
                    data.habits[index] = updated
                    return updated
            raise NotFoundError("Habit not found")

        return await self.mutate(_change)

    async def transform_habit(self, habit_id: int, transform: Callable[[Habit], Habit]) -> Habit:
        """Replace the stored habit with ``transform(habit)`` in one locked read-modify-write."""

        def _change(data: UserData) -> Habit:
            for index, habit in enumerate(data.habits):
                if habit.id == habit_id:
                    data.habits[index] = transform(habit)
                    return data.habits[index]
            raise NotFoundError("Habit not found")

        return await self.mutate(_change)

    async def delete_habit(self, habit_id: int) -> bool:
        def _change(data: UserData) -> bool:
            habit = data.find_habit(habit_id)
            if habit is None:
                raise NotFoundError("Habit not found")
            if habit.routine_id is not None:
                routine = data.find_routine(habit.routine_id)
                if routine is not None:
                    routine.habits = [item for item in routine.habits if item != habit_id]
            data.habits = [item for item in data.habits if item.id != habit_id]
            return True

        return await self.mutate(_change)

    # ------------------------------------------------------------------
    # routines

    async def list_routines(self) -> List[Routine]:
        routines = (await self.get_document()).data.routines
        return sorted(routines, key=lambda routine: routine.order)

    async def get_routine(self, routine_id: int) -> Routine:
        routine = (await self.get_document()).data.find_routine(routine_id)
        if routine is None:
            raise NotFoundError("Routine not found")
        return routine

    async def add_routine(self, fields: Dict[str, Any]) -> Routine:
        max_routines = get_max_routines()

        def _change(data: UserData) -> Routine:
            if len(data.routines) >= max_routines:
                raise LimitExceededError(f"Maximum of {max_routines} routines allowed")
            new_id = max((routine.id for routine in data.routines), default=0) + 1
            incoming = _camel_keys(fields)
            try:
                routine = Routine(
                    id=new_id,
                    name=incoming.get("name") or "",
                    time_of_day=incoming.get("timeOfDay"),
                    days=incoming.get("days") or [],
                    habits=[],
                    order=len(data.routines),
                )
            except ValidationError as exc:
                raise PreconditionError("Invalid routine fields") from exc
            data.routines.append(routine)
            return routine

        return await self.mutate(_change)

    async def update_routine(self, routine_id: int, fields: Dict[str, Any]) -> Routine:
        def _change(data: UserData) -> Routine:
            for index, routine in enumerate(data.routines):
                if routine.id == routine_id:
                    updated = _merge_entity(routine, fields)
                    if updated.habits != routine.habits:
                        updated.habits = _sync_routine_members(data, routine_id, routine.habits, updated.habits)
                    data.routines[index] = updated
                    return updated
            raise NotFoundError("Routine not found")

        return await self.mutate(_change)

    async def transform_routine(self, routine_id: int, transform: Callable[[Routine], Routine]) -> Routine:
        def _change(data: UserData) -> Routine:
            for index, routine in enumerate(data.routines):
                if routine.id == routine_id:
                    data.routines[index] = transform(routine)
                    return data.routines[index]
            raise NotFoundError("Routine not found")

        return await self.mutate(_change)

    async def delete_routine(self, routine_id: int, keep_habits: bool = False) -> bool:
        def _change(data: UserData) -> bool:
            if data.find_routine(routine_id) is None:
                raise NotFoundError("Routine not found")
            if keep_habits:
                # 日本語: 所属習慣を単独習慣に戻す / English: Members become standalone habits
                for habit in data.habits:
                    if habit.routine_id == routine_id:
                        habit.routine_id = None
            else:
                data.habits = [habit for habit in data.habits if habit.routine_id != routine_id]
            data.routines = [routine for routine in data.routines if routine.id != routine_id]
            for index, routine in enumerate(data.routines):
                routine.order = index
            return True

        return await self.mutate(_change)

    # ------------------------------------------------------------------
    # settings, export

    async def update_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        def _change(data: UserData) -> Dict[str, Any]:
            data.settings = dict(settings)
            return data.settings

        return await self.mutate(_change)

    async def update_dashboard_order(self, items: List[Dict[str, Any]]) -> List[DashboardOrderItem]:
        try:
            order = [DashboardOrderItem.model_validate(item) for item in items]
        except ValidationError as exc:
            raise PreconditionError("Invalid dashboard order") from exc

        def _change(data: UserData) -> List[DashboardOrderItem]:
            data.dashboard_order = order
            return order

        return await self.mutate(_change)

    async def ensure_default_routines(self) -> bool:
        def _change(data: UserData) -> bool:
            existing_ids = {routine.id for routine in data.routines}
            missing = [item for item in DEFAULT_ROUTINES if item["id"] not in existing_ids]
            data.routines.extend(Routine.model_validate(item) for item in missing)
            return bool(missing)

        return await self.mutate(_change)

    async def export_data(self) -> ExportData:
        document = await self.get_document()
        return ExportData(
            version=EXPORT_FORMAT_VERSION,
            export_date=self.clock(),
            user_data=document.data,
            user_info=document.user_info,
        )

    async def import_data(self, payload: Dict[str, Any]) -> bool:
        if not isinstance(payload, dict) or not payload.get("userData"):
            raise PreconditionError("Invalid import data")
        try:
            imported = UserData.model_validate(payload["userData"])
        except ValidationError as exc:
            raise PreconditionError("Invalid import data") from exc

        def _change(data: UserData) -> bool:
            for field_name in UserData.model_fields:
                setattr(data, field_name, getattr(imported, field_name))
            return True

        return await self.mutate(_change)


def _move_habit_between_routines(
    data: UserData, habit_id: int, old_routine_id: Optional[int], new_routine_id: Optional[int]
) -> None:
    # 日本語: Routine.habits と Habit.routineId の双方向整合を保つ / English: Keep Routine.habits and Habit.routineId consistent
    if new_routine_id is not None:
        new_routine = data.find_routine(new_routine_id)
        if new_routine is None:
            raise NotFoundError("Routine not found")
        if habit_id not in new_routine.habits:
            new_routine.habits.append(habit_id)
    if old_routine_id is not None:
        old_routine = data.find_routine(old_routine_id)
        if old_routine is not None:
            old_routine.habits = [item for item in old_routine.habits if item != habit_id]


def _sync_routine_members(
    data: UserData, routine_id: int, old_members: List[int], new_members: List[int]
) -> List[int]:
    # 日本語: 新しい habits リストに合わせて各習慣の routineId を付け替え / English: Re-point each habit's routineId to match the new member list
    members = list(dict.fromkeys(new_members))
    for habit_id in members:
        habit = data.find_habit(habit_id)
        if habit is None:
            raise NotFoundError(f"Habit {habit_id} not found")
        if habit.routine_id != routine_id:
            _move_habit_between_routines(data, habit_id, habit.routine_id, None)
            habit.routine_id = routine_id
    for habit_id in old_members:
        if habit_id not in members:
            habit = data.find_habit(habit_id)
            if habit is not None and habit.routine_id == routine_id:
                habit.routine_id = None
    return members


__all__ = ["HabitDataStore", "DAILY_SUB_MAPS"]
