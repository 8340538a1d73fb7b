from datetime import datetime

from sqlmodel import Field, SQLModel

from app.core.timeutils import utc_naive_now


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"
    id: int | None = Field(default=None, primary_key=True)
    actor_user_id: int = Field(index=True)
    action: str = Field(index=True)
    entity_type: str = Field(index=True)
    entity_id: str | None = None
    metadata_json: str | None = None
    created_at: datetime = Field(default_factory=utc_naive_now, index=True)
