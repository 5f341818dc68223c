"""
Send Email action via Brevo (formerly Sendinblue) transactional email API.
Without BREVO_API_KEY the action logs and succeeds (demo mode).
"""
import asyncio
from typing import Optional

import sib_api_v3_sdk
from sib_api_v3_sdk.rest import ApiException

from ...core.config import settings
from ...core.exceptions import ActionExecutionError
from ...core.logging_config import get_logger
from ...models.zap_model import ActionType
from ..credential_store import Credentials
from .base import ActionParams, ActionResult, BaseActionExecutor

logger = get_logger("action_send_email")


class SendEmailParams(ActionParams):
    to: str
    subject: Optional[str] = None
    body: Optional[str] = None
    to_name: Optional[str] = None


class SendEmailExecutor(BaseActionExecutor):
    action_type = ActionType.SEND_EMAIL.value
    params_model = SendEmailParams

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None, from_name: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else settings.BREVO_API_KEY
        self.from_email = from_email or settings.BREVO_FROM_EMAIL
        self.from_name = from_name or settings.BREVO_FROM_NAME
        self._brevo_api = None

    def _get_brevo_api(self) -> sib_api_v3_sdk.TransactionalEmailsApi:
        if self._brevo_api is None:
            configuration = sib_api_v3_sdk.Configuration()
            configuration.api_key['api-key'] = self.api_key
            api_client = sib_api_v3_sdk.ApiClient(configuration)
            self._brevo_api = sib_api_v3_sdk.TransactionalEmailsApi(api_client)
        return self._brevo_api

    async def run(self, params: SendEmailParams, credentials: Optional[Credentials]) -> ActionResult:
        logger.info(f"[Send Email] to={params.to} subject={params.subject}")

        if not self.api_key:
            logger.warning("BREVO_API_KEY not set - email not sent (demo mode)")
            return ActionResult.ok("Email skipped (demo mode)", demo=True)

        to = {"email": params.to}
        if params.to_name:
            to["name"] = params.to_name

        email = sib_api_v3_sdk.SendSmtpEmail(
            to=[to],
            sender={"email": self.from_email, "name": self.from_name},
            subject=params.subject or "No Subject",
            html_content=f"<p>{params.body or 'No content'}</p>"
        )

        try:
            # Brevo client is blocking
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(None, self._get_brevo_api().send_transac_email, email)
        except ApiException as e:
            logger.error(f"Brevo API error: {e.status} {e.reason}")
            raise ActionExecutionError(self.action_type, f"Email provider error: {e.reason or e.status}")

        message_id = getattr(response, "message_id", None)
        logger.info(f"Email sent: {message_id}")
        return ActionResult.ok("Email sent", message_id=message_id)
