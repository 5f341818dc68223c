"""
Zap service for CRUD operations and management.
"""
import uuid
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.exceptions import (
    TransportError, UnauthorizedError, ZapNotFoundError, ZapValidationError
)
from ..core.logging_config import get_logger
from ..models.run_model import ZapRun
from ..models.zap_model import Action, ActionType, Trigger, TriggerType, Zap
from ..schemas.zap import (
    ActionResponse, TriggerResponse, ZapCreate, ZapList, ZapResponse, ZapUpdate
)
from .lifecycle_manager import LifecycleManager
from .scheduler_adapter import parse_cron

logger = get_logger("zap_service")


class ZapService:
    """Service for managing zaps"""

    def __init__(self, db: Session, lifecycle: LifecycleManager):
        self.db = db
        self.lifecycle = lifecycle

    async def create_zap(self, zap_data: ZapCreate, user_id: str) -> ZapResponse:
        """
        Create a zap with its trigger and actions in one transaction.

        Actions without an explicit sorting_order are ordered by position.
        A schedule trigger with a cron gets its external schedule right away
        when the zap is active.
        """
        trigger_type = TriggerType.parse(zap_data.trigger.trigger_type)
        if trigger_type is None:
            raise ZapValidationError(f"Unknown trigger type: {zap_data.trigger.trigger_type}")

        trigger_payload = dict(zap_data.trigger.payload or {})
        trigger_payload.pop("scheduleId", None)
        if trigger_type == TriggerType.SCHEDULE and trigger_payload.get("cron"):
            parse_cron(trigger_payload["cron"])

        action_types = []
        for action_data in zap_data.actions:
            action_type = ActionType.parse(action_data.action_type)
            if action_type is None:
                raise ZapValidationError(f"Unknown action type: {action_data.action_type}")
            action_types.append(action_type)

        try:
            zap = Zap(
                id=str(uuid.uuid4()),
                user_id=user_id,
                name=zap_data.name,
                description=zap_data.description,
                max_runs=zap_data.max_runs,
                is_active=zap_data.is_active
            )
            zap.trigger = Trigger(
                id=str(uuid.uuid4()),
                trigger_type=trigger_type.value,
                payload=trigger_payload
            )
            for index, (action_data, action_type) in enumerate(zip(zap_data.actions, action_types)):
                zap.actions.append(Action(
                    action_type=action_type.value,
                    sorting_order=action_data.sorting_order if action_data.sorting_order is not None else index,
                    action_metadata=action_data.action_metadata or {}
                ))

            self.db.add(zap)
            self.db.commit()
            self.db.refresh(zap)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create zap: {e}")
            raise

        logger.info(f"Created zap {zap.id} for user {user_id} with {len(action_types)} actions")

        if zap.is_active and trigger_type == TriggerType.SCHEDULE and trigger_payload.get("cron"):
            try:
                await self.lifecycle.create_schedule(zap, trigger_payload["cron"])
            except TransportError as e:
                logger.error(f"Zap {zap.id} created without a schedule: {e}")

        return self._to_response(zap)

    def get_owned_zap(self, zap_id: str, user_id: str) -> Zap:
        """
        Raises:
            ZapNotFoundError: If zap not found
            UnauthorizedError: If zap belongs to another user
        """
        zap = self.db.query(Zap).filter(Zap.id == zap_id).first()
        if not zap:
            raise ZapNotFoundError(f"Zap {zap_id} not found")
        if zap.user_id != user_id:
            raise UnauthorizedError(f"Zap {zap_id} does not belong to user {user_id}")
        return zap

    def get_zap(self, zap_id: str, user_id: str) -> ZapResponse:
        return self._to_response(self.get_owned_zap(zap_id, user_id))

    def list_zaps(self, user_id: str) -> ZapList:
        zaps = self.db.query(Zap).filter(
            Zap.user_id == user_id
        ).order_by(Zap.created_at.desc()).all()

        counts = self._run_counts([z.id for z in zaps])
        return ZapList(
            zaps=[self._to_response(z, counts.get(z.id, 0)) for z in zaps],
            total=len(zaps)
        )

    async def update_zap(self, zap_id: str, user_id: str, zap_data: ZapUpdate) -> ZapResponse:
        """Partial update; a changed cron moves the external schedule"""
        zap = self.get_owned_zap(zap_id, user_id)
        new_cron = None

        try:
            if zap_data.name is not None:
                zap.name = zap_data.name
            if zap_data.description is not None:
                zap.description = zap_data.description
            if zap_data.max_runs is not None:
                zap.max_runs = zap_data.max_runs

            if zap_data.trigger_payload is not None and zap.trigger is not None:
                payload = dict(zap_data.trigger_payload)
                current = zap.trigger.payload or {}
                # scheduleId is owned by the lifecycle manager
                payload.pop("scheduleId", None)
                if current.get("scheduleId"):
                    payload["scheduleId"] = current["scheduleId"]

                cron = payload.get("cron")
                if zap.trigger.is_schedule and cron and cron != current.get("cron"):
                    parse_cron(cron)
                    new_cron = cron
                    payload["cron"] = current.get("cron")
                zap.trigger.payload = payload

            if zap_data.actions:
                actions_by_id: Dict[int, Action] = {a.id: a for a in zap.actions}
                for update in zap_data.actions:
                    action = actions_by_id.get(update.id)
                    if action is None:
                        raise ZapValidationError(f"Action {update.id} does not belong to zap {zap_id}")
                    if update.action_metadata is not None:
                        action.action_metadata = update.action_metadata
                    if update.sorting_order is not None:
                        action.sorting_order = update.sorting_order

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update zap {zap_id}: {e}")
            raise

        if zap_data.is_active is False and zap.is_active:
            await self.lifecycle.toggle(zap, False)
        if new_cron:
            await self.lifecycle.reschedule(zap, new_cron)
        if zap_data.is_active and not zap.is_active:
            await self.lifecycle.toggle(zap, True)

        self.db.refresh(zap)
        logger.info(f"Updated zap {zap_id}")
        return self._to_response(zap)

    async def toggle_zap(self, zap_id: str, user_id: str, is_active: bool) -> ZapResponse:
        zap = self.get_owned_zap(zap_id, user_id)
        await self.lifecycle.toggle(zap, is_active)
        self.db.refresh(zap)
        logger.info(f"Zap {zap_id} {'activated' if is_active else 'deactivated'}")
        return self._to_response(zap)

    async def delete_zap(self, zap_id: str, user_id: str) -> None:
        """Cancel the external schedule, then remove runs, actions, trigger and zap"""
        zap = self.get_owned_zap(zap_id, user_id)

        if zap.trigger is not None and zap.trigger.schedule_id:
            await self._cancel_schedule(zap)

        try:
            self.db.query(ZapRun).filter(ZapRun.zap_id == zap_id).delete(synchronize_session=False)
            self.db.delete(zap)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete zap {zap_id}: {e}")
            raise

        logger.info(f"Deleted zap {zap_id}")

    async def _cancel_schedule(self, zap: Zap) -> None:
        try:
            await self.lifecycle.delete_schedule(zap)
        except TransportError as e:
            logger.error(f"Could not cancel schedule of zap {zap.id} before delete: {e}")

    def run_count(self, zap_id: str) -> int:
        return self._run_counts([zap_id]).get(zap_id, 0)

    def _run_counts(self, zap_ids: List[str]) -> Dict[str, int]:
        if not zap_ids:
            return {}
        rows = self.db.query(ZapRun.zap_id, func.count(ZapRun.id)).filter(
            ZapRun.zap_id.in_(zap_ids)
        ).group_by(ZapRun.zap_id).all()
        return {zap_id: count for zap_id, count in rows}

    def _to_response(self, zap: Zap, run_count: Optional[int] = None) -> ZapResponse:
        trigger = zap.trigger
        trigger_response = None
        if trigger is not None:
            trigger_type = trigger.type
            trigger_response = TriggerResponse(
                id=trigger.id,
                trigger_type=trigger.trigger_type,
                trigger_name=trigger_type.display_name if trigger_type else None,
                payload=trigger.payload or {}
            )

        actions = []
        for action in zap.actions:
            action_type = action.type
            actions.append(ActionResponse(
                id=action.id,
                action_type=action.action_type,
                action_name=action_type.display_name if action_type else None,
                sorting_order=action.sorting_order,
                action_metadata=action.action_metadata or {}
            ))

        return ZapResponse(
            id=zap.id,
            user_id=zap.user_id,
            name=zap.name,
            description=zap.description,
            max_runs=zap.max_runs,
            is_active=zap.is_active,
            run_count=run_count if run_count is not None else self.run_count(zap.id),
            trigger=trigger_response,
            actions=actions,
            created_at=zap.created_at,
            updated_at=zap.updated_at
        )
