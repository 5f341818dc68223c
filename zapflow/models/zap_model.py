from sqlalchemy import Column, String, Text, Boolean, DateTime, Integer, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum
from typing import Optional

from ..core.database import Base


class CatalogEnum(str, enum.Enum):
    """String-valued catalog entry with a display name and lenient parsing"""

    def __new__(cls, value: str, display_name: str):
        member = str.__new__(cls, value)
        member._value_ = value
        member.display_name = display_name
        return member

    @classmethod
    def parse(cls, raw: Optional[str]):
        """Resolve a stored value or display name; unknown names resolve to None"""
        if not raw:
            return None
        for member in cls:
            if raw == member.value or raw == member.display_name:
                return member
        normalized = raw.strip().lower().replace(" ", "_").replace("-", "_")
        for member in cls:
            if normalized == member.value:
                return member
        return None


class TriggerType(CatalogEnum):
    WEBHOOK = ("webhook", "Webhook")
    SCHEDULE = ("schedule", "Schedule (Cron)")
    EMAIL_RECEIVED = ("email_received", "New Email Received")
    FORM_SUBMISSION = ("form_submission", "New Form Submission")
    SPREADSHEET_ROW = ("spreadsheet_row", "New Row in Spreadsheet")
    DRIVE_FILE = ("drive_file", "New File in Drive")


class ActionType(CatalogEnum):
    SEND_EMAIL = ("send_email", "Send Email")
    HTTP_REQUEST = ("http_request", "HTTP Request")
    SEND_SLACK = ("send_slack", "Send Slack Message")
    SEND_DISCORD = ("send_discord", "Send Discord Message")
    SEND_SMS = ("send_sms", "Send SMS")
    CREATE_SPREADSHEET_ROW = ("create_spreadsheet_row", "Create Spreadsheet Row")
    CREATE_NOTION_PAGE = ("create_notion_page", "Create Notion Page")
    CREATE_TRELLO_CARD = ("create_trello_card", "Create Trello Card")


class Zap(Base):
    """User-owned automation: one trigger plus an ordered chain of actions"""
    __tablename__ = "zaps"

    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)

    name = Column(String(255), nullable=False, default="Untitled Zap")
    description = Column(Text, nullable=True)

    # -1 means unlimited
    max_runs = Column(Integer, nullable=False, default=-1)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    trigger = relationship(
        "Trigger",
        back_populates="zap",
        uselist=False,
        cascade="all, delete-orphan"
    )
    actions = relationship(
        "Action",
        back_populates="zap",
        order_by=lambda: [Action.sorting_order, Action.id],
        cascade="all, delete-orphan"
    )
    runs = relationship(
        "ZapRun",
        back_populates="zap",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Zap(id={self.id}, name={self.name}, user_id={self.user_id})>"


class Trigger(Base):
    """Event source of a zap; payload holds user config and the live scheduleId"""
    __tablename__ = "triggers"

    id = Column(String(36), primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    zap_id = Column(String(36), ForeignKey("zaps.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    trigger_type = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)

    zap = relationship("Zap", back_populates="trigger")

    @property
    def type(self) -> Optional[TriggerType]:
        return TriggerType.parse(self.trigger_type)

    @property
    def is_schedule(self) -> bool:
        return self.type == TriggerType.SCHEDULE

    @property
    def schedule_id(self) -> Optional[str]:
        return (self.payload or {}).get("scheduleId")

    @property
    def cron(self) -> Optional[str]:
        return (self.payload or {}).get("cron")

    def __repr__(self):
        return f"<Trigger(id={self.id}, zap_id={self.zap_id}, type={self.trigger_type})>"


class Action(Base):
    """One step of a zap; integer ids keep insertion order for sorting_order ties"""
    __tablename__ = "actions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    zap_id = Column(String(36), ForeignKey("zaps.id", ondelete="CASCADE"), nullable=False, index=True)

    action_type = Column(String(50), nullable=False)
    sorting_order = Column(Integer, nullable=False, default=0)
    action_metadata = Column("metadata", JSON, nullable=False, default=dict)

    zap = relationship("Zap", back_populates="actions")

    @property
    def type(self) -> Optional[ActionType]:
        return ActionType.parse(self.action_type)

    def __repr__(self):
        return f"<Action(id={self.id}, zap_id={self.zap_id}, type={self.action_type}, order={self.sorting_order})>"
