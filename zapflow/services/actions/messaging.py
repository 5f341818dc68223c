"""
Chat and SMS actions: Slack and Discord incoming webhooks, SMS (demo only).
"""
from typing import Optional

from pydantic import Field

from ...core.logging_config import get_logger
from ...models.zap_model import ActionType
from ..credential_store import Credentials
from .base import ActionParams, ActionResult, BaseActionExecutor

logger = get_logger("action_messaging")


class SlackParams(ActionParams):
    message: str = ""
    channel: Optional[str] = None
    webhook_url: Optional[str] = Field(default=None, alias="webhookUrl")


class DiscordParams(ActionParams):
    message: str = ""
    webhook_url: Optional[str] = Field(default=None, alias="webhookUrl")


class SmsParams(ActionParams):
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    message: str = ""


class SendSlackExecutor(BaseActionExecutor):
    action_type = ActionType.SEND_SLACK.value
    params_model = SlackParams

    async def run(self, params: SlackParams, credentials: Optional[Credentials]) -> ActionResult:
        logger.info(f"[Slack Message] channel={params.channel or 'default'} message={self.preview(params.message)}")

        if not params.webhook_url:
            logger.warning("No Slack webhook URL provided - skipping (demo mode)")
            return ActionResult.ok("Slack message skipped (demo mode)", demo=True)

        payload = {"text": params.message}
        if params.channel:
            payload["channel"] = params.channel

        async with self.http_client() as client:
            response = await client.post(params.webhook_url, json=payload)

        logger.info(f"Slack webhook -> {response.status_code}")
        if not response.is_success:
            return ActionResult.failure(f"Slack webhook returned {response.status_code}", status_code=response.status_code)
        return ActionResult.ok(status_code=response.status_code)


class SendDiscordExecutor(BaseActionExecutor):
    action_type = ActionType.SEND_DISCORD.value
    params_model = DiscordParams

    async def run(self, params: DiscordParams, credentials: Optional[Credentials]) -> ActionResult:
        logger.info(f"[Discord Message] message={self.preview(params.message)}")

        if not params.webhook_url:
            logger.warning("No Discord webhook URL provided - skipping")
            return ActionResult.ok("Discord message skipped (demo mode)", demo=True)

        async with self.http_client() as client:
            response = await client.post(params.webhook_url, json={"content": params.message})

        logger.info(f"Discord webhook -> {response.status_code}")
        # Discord answers 204 No Content on success
        if not response.is_success:
            return ActionResult.failure(f"Discord webhook returned {response.status_code}", status_code=response.status_code)
        return ActionResult.ok(status_code=response.status_code)


class SendSmsExecutor(BaseActionExecutor):
    action_type = ActionType.SEND_SMS.value
    params_model = SmsParams

    async def run(self, params: SmsParams, credentials: Optional[Credentials]) -> ActionResult:
        logger.info(f"[Send SMS] to={params.phone_number} message={self.preview(params.message)}")
        logger.warning("SMS provider not configured - demo mode")
        return ActionResult.ok("SMS skipped (demo mode)", demo=True)
