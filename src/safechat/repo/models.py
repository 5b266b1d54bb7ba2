
"""Modelos SQLAlchemy: regras de segurança, limiares, escalonamento, settings e auditoria."""
from __future__ import annotations
from uuid import uuid4
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Integer, JSON, Boolean, Float, Text, TIMESTAMP, Index
from datetime import datetime, timezone

def _now() -> datetime:
    return datetime.now(timezone.utc)

class Base(DeclarativeBase):
    """Base declarativa."""
    pass

class SafetyRule(Base):
    __tablename__ = "safety_rules"
    __table_args__ = (Index("ix_safety_rules_type_enabled", "rule_type", "enabled"),)
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: uuid4().hex)
    rule_type: Mapped[str] = mapped_column(String(50))  # blocked_keyword|escalation_keyword|regex_pattern|allowed_topic
    category: Mapped[str | None] = mapped_column(String(50))
    value: Mapped[str] = mapped_column(Text)
    action: Mapped[str] = mapped_column(String(50), default="block")  # block|escalate|flag|warn
    priority: Mapped[int] = mapped_column(Integer, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    description: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=_now, onupdate=_now)

class ModerationSetting(Base):
    __tablename__ = "moderation_settings"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: uuid4().hex)
    category: Mapped[str] = mapped_column(String(50), unique=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    threshold: Mapped[float] = mapped_column(Float, default=0.7)
    action: Mapped[str] = mapped_column(String(50), default="block")
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=_now, onupdate=_now)

class EscalationSetting(Base):
    __tablename__ = "escalation_settings"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: uuid4().hex)
    category: Mapped[str] = mapped_column(String(50), unique=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    keywords: Mapped[list] = mapped_column(JSON, default=list)
    response_template: Mapped[str | None] = mapped_column(Text)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=_now, onupdate=_now)

class SystemSetting(Base):
    __tablename__ = "system_settings"
    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[dict] = mapped_column(JSON)
    description: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=_now, onupdate=_now)

class SafetyDecision(Base):
    __tablename__ = "safety_decisions"
    id: Mapped[int] = mapped_column(primary_key=True)
    stage: Mapped[str] = mapped_column(String(32))  # sanitization|moderation_input|escalation|moderation_output
    verdict: Mapped[dict] = mapped_column(JSON)
    input_preview: Mapped[str] = mapped_column(String(100), default="")
    trace_id: Mapped[str] = mapped_column(String(64), default="-")
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), default=_now)
