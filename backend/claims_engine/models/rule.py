from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, Integer, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from claims_engine.database import Base, utcnow


class Rule(Base):
    __tablename__ = "rules"

    id: Mapped[int] = mapped_column(primary_key=True)
    rule_id: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str] = mapped_column(String(500), default="")
    rule_type: Mapped[str] = mapped_column(String(20), index=True)  # threshold | fraud | authorization | validation | eligibility
    priority: Mapped[str] = mapped_column(String(10))  # low | medium | high | critical
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    parameters: Mapped[dict] = mapped_column(JSON, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    last_modified_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    activations: Mapped[list["RuleActivation"]] = relationship(
        back_populates="rule", order_by="RuleActivation.id",
    )

    __mapper_args__ = {"version_id_col": version}


class RuleActivation(Base):
    """Append-only history of activation toggles."""

    __tablename__ = "rule_activations"

    id: Mapped[int] = mapped_column(primary_key=True)
    rule_pk: Mapped[int] = mapped_column(ForeignKey("rules.id"), index=True)
    active: Mapped[bool] = mapped_column(Boolean)
    actor: Mapped[str] = mapped_column(String(100))
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    rule: Mapped[Rule] = relationship(back_populates="activations")
