"""
Run executor: drives one ZapRun from pending to a terminal status.

Actions run one at a time in (sorting_order, id) order. A failing action does
not stop the chain; the run ends failed and keeps the last failure message in
`error` and every action's outcome in `outcomes`.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.logging_config import get_logger, set_request_context, clear_request_context
from ..models.run_model import RunStatus
from ..models.zap_model import Action, Zap
from .actions.registry import ActionRegistry
from .credential_store import CredentialStore, Credentials
from .run_store import RunStore

logger = get_logger("run_executor")


@dataclass
class RunExecutionResult:
    run_id: str
    status: str
    error: Optional[str] = None
    outcomes: List[Dict[str, Any]] = field(default_factory=list)
    duplicate: bool = False


class RunExecutor:
    """Executes the action chain of a claimed run"""

    def __init__(self, db: Session, registry: ActionRegistry, credential_store: Optional[CredentialStore] = None):
        self.db = db
        self.registry = registry
        self.run_store = RunStore(db)
        self.credential_store = credential_store or CredentialStore(db)

    async def execute(self, run_id: str) -> RunExecutionResult:
        """
        Execute a run exactly once.

        Raises:
            RunNotFoundError: If the run does not exist
        """
        run = self.run_store.get_run(run_id)
        zap_id = run.zap_id

        if not self.run_store.claim(run_id):
            self.db.refresh(run)
            logger.info(f"Run {run_id} already {run.status}; ignoring duplicate delivery")
            return RunExecutionResult(run_id=run_id, status=run.status, error=run.error, duplicate=True)

        set_request_context(run_id=run_id, zap_id=zap_id, operation="zap_run_execute")
        try:
            zap = self.db.query(Zap).filter(Zap.id == zap_id).first()
            if not zap:
                logger.error(f"Zap {zap_id} not found for run {run_id}")
                return self._finalize(run_id, RunStatus.FAILED, "Zap not found", [])

            actions = self.db.query(Action).filter(
                Action.zap_id == zap.id
            ).order_by(Action.sorting_order.asc(), Action.id.asc()).all()

            credentials = self._load_credentials(zap.user_id, actions)
            outcomes, last_error = await self._run_actions(actions, credentials)

            status = RunStatus.FAILED if any(not o["success"] for o in outcomes) else RunStatus.SUCCESS
            return self._finalize(run_id, status, last_error, outcomes)

        except Exception as e:
            logger.error(f"Run {run_id} crashed: {e}", exc_info=True)
            self.db.rollback()
            try:
                return self._finalize(run_id, RunStatus.FAILED, str(e) or type(e).__name__, None)
            except SQLAlchemyError as finalize_error:
                # Run stays running; no sweep picks it up
                logger.error(f"Could not mark run {run_id} failed: {finalize_error}")
                return RunExecutionResult(run_id=run_id, status=RunStatus.RUNNING.value, error=str(e))
        finally:
            clear_request_context()

    def _load_credentials(self, user_id: str, actions: List[Action]) -> Dict[str, Credentials]:
        credentials = {}
        for provider in self.registry.credential_providers_for(actions):
            found = self.credential_store.get_credentials(user_id, provider)
            if found:
                credentials[provider] = found
            else:
                logger.info(f"No {provider} connection for user {user_id}; actions run without it")
        return credentials

    async def _run_actions(self, actions: List[Action], credentials: Dict[str, Credentials]):
        outcomes: List[Dict[str, Any]] = []
        last_error: Optional[str] = None
        total = len(actions)

        for index, action in enumerate(actions, start=1):
            executor = self.registry.get(action.action_type)
            logger.info(f"Action {index}/{total}: {action.action_type}")

            if executor is None:
                logger.warning(f"Unknown action type '{action.action_type}', skipping")
                outcomes.append(self._outcome(action, success=True, skipped=True))
                continue

            action_credentials = credentials.get(executor.credential_provider) if executor.credential_provider else None
            try:
                result = await executor.execute(action.action_metadata or {}, credentials=action_credentials)
            except Exception as e:
                logger.error(f"Action {action.id} ({action.action_type}) raised: {e}", exc_info=True)
                last_error = str(e) or type(e).__name__
                outcomes.append(self._outcome(action, success=False, error=last_error))
                continue

            if result.success:
                outcomes.append(self._outcome(action, success=True, skipped=bool(result.data.get("skipped"))))
            else:
                last_error = result.message or f"{action.action_type} failed"
                logger.warning(f"Action {action.id} ({action.action_type}) failed: {last_error}")
                outcomes.append(self._outcome(action, success=False, error=last_error))

        return outcomes, last_error

    @staticmethod
    def _outcome(action: Action, success: bool, skipped: bool = False, error: Optional[str] = None) -> Dict[str, Any]:
        return {
            "actionId": action.id,
            "actionType": action.action_type,
            "success": success,
            "skipped": skipped,
            "error": error
        }

    def _finalize(
        self,
        run_id: str,
        status: RunStatus,
        error: Optional[str],
        outcomes: Optional[List[Dict[str, Any]]]
    ) -> RunExecutionResult:
        self.run_store.finalize(run_id, status, error=error, outcomes=outcomes)
        logger.info(f"Run {run_id} completed with status {status.value}")
        return RunExecutionResult(
            run_id=run_id,
            status=status.value,
            error=error if status == RunStatus.FAILED else None,
            outcomes=outcomes or []
        )
