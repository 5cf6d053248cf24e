"""SQLAlchemy-backed stores for vendors, policies, rule config, results and history."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Engine,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from common.compliance_engine.models import Alert, RuleDefinition, RuleGroup, RuleResult, ScoreSnapshot

from .errors import StoreError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class VendorRow(Base):
    __tablename__ = "vendors"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255))


class PolicyRow(Base):
    __tablename__ = "policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    extracted: Mapped[Optional[Any]] = mapped_column(JSON)


class RuleGroupRow(Base):
    __tablename__ = "rule_groups"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    org_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    label: Mapped[str] = mapped_column(String(255), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    severity: Mapped[Optional[str]] = mapped_column(String(16))
    active: Mapped[bool] = mapped_column(Boolean, default=True)


class RuleRow(Base):
    __tablename__ = "rules_v3"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    group_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    type: Mapped[str] = mapped_column(String(32), default="")
    field: Mapped[str] = mapped_column(String(255), default="")
    condition: Mapped[str] = mapped_column(String(32), default="")
    value: Mapped[Optional[Any]] = mapped_column(JSON)
    message: Mapped[str] = mapped_column(Text, default="")
    severity: Mapped[Optional[str]] = mapped_column(String(16))
    active: Mapped[bool] = mapped_column(Boolean, default=True)


class RuleResultRow(Base):
    __tablename__ = "rule_results_v3"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    rule_id: Mapped[str] = mapped_column(String(64), nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    message: Mapped[str] = mapped_column(Text, default="")
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)


class VendorAlertRow(Base):
    __tablename__ = "vendor_alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    code: Mapped[str] = mapped_column(String(128), nullable=False)
    message: Mapped[str] = mapped_column(Text, default="")
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    rule_id: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class RiskHistoryRow(Base):
    __tablename__ = "risk_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    org_id: Mapped[str] = mapped_column(String(64), nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    elite_status: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def create_sql_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def init_schema(engine: Engine) -> None:
    Base.metadata.create_all(engine)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(engine, expire_on_commit=False)


class SqlDataSource:
    """Document store, rule config store and vendor directory over the SQL schema."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def load_policy_documents(self, *, vendor_id: str, tenant_id: str) -> List[Any]:
        query = (
            select(PolicyRow.extracted)
            .join(VendorRow, VendorRow.id == PolicyRow.vendor_id)
            .where(PolicyRow.vendor_id == vendor_id, VendorRow.org_id == tenant_id)
            .order_by(PolicyRow.id)
        )
        return list(self._scalars(query, f"policies for vendor '{vendor_id}'"))

    def load_rule_groups(self, *, tenant_id: str) -> List[RuleGroup]:
        query = (
            select(RuleGroupRow)
            .where(RuleGroupRow.org_id == tenant_id, RuleGroupRow.active.is_(True))
            .order_by(RuleGroupRow.id)
        )
        rows = self._scalars(query, f"rule groups for tenant '{tenant_id}'")
        return [
            RuleGroup(
                id=row.id,
                tenant_id=row.org_id,
                label=row.label or "",
                description=row.description or "",
                severity=row.severity,
                active=row.active,
            )
            for row in rows
        ]

    def load_rules(self, *, tenant_id: str) -> List[RuleDefinition]:
        active_groups = select(RuleGroupRow.id).where(
            RuleGroupRow.org_id == tenant_id, RuleGroupRow.active.is_(True)
        )
        query = (
            select(RuleRow)
            .where(RuleRow.group_id.in_(active_groups), RuleRow.active.is_(True))
            .order_by(RuleRow.sort_order, RuleRow.id)
        )
        rows = self._scalars(query, f"rules for tenant '{tenant_id}'")
        return [
            RuleDefinition(
                id=row.id,
                group_id=row.group_id,
                type=row.type,
                field=row.field or "",
                condition=row.condition,
                value=row.value,
                severity=row.severity,
                message=row.message or "",
                active=row.active,
            )
            for row in rows
        ]

    def list_vendor_ids(self, *, tenant_id: str) -> List[str]:
        query = select(VendorRow.id).where(VendorRow.org_id == tenant_id).order_by(VendorRow.id)
        return list(self._scalars(query, f"vendors for tenant '{tenant_id}'"))

    def tenant_for_vendor(self, *, vendor_id: str) -> Optional[str]:
        query = select(VendorRow.org_id).where(VendorRow.id == vendor_id)
        rows = self._scalars(query, f"vendor '{vendor_id}'")
        return rows[0] if rows else None

    def _scalars(self, query, what: str) -> List[Any]:
        try:
            with self._session_factory() as session:
                return list(session.scalars(query).all())
        except SQLAlchemyError as exc:
            logger.error("Failed to load %s: %s", what, exc)
            raise StoreError(f"Failed to load {what}.") from exc


class SqlResultStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def replace_vendor_results(
        self,
        *,
        vendor_id: str,
        tenant_id: str,
        rule_results: Sequence[RuleResult],
        alerts: Sequence[Alert],
        snapshot: ScoreSnapshot,
    ) -> None:
        try:
            with self._session_factory.begin() as session:
                session.execute(delete(RuleResultRow).where(RuleResultRow.vendor_id == vendor_id))
                session.add_all(
                    RuleResultRow(
                        vendor_id=vendor_id,
                        org_id=tenant_id,
                        rule_id=res.rule_id,
                        passed=res.passed,
                        severity=res.severity.value,
                        message=res.message,
                        payload=res.model_dump(mode="json"),
                    )
                    for res in rule_results
                )

                session.execute(delete(VendorAlertRow).where(VendorAlertRow.vendor_id == vendor_id))
                session.add_all(
                    VendorAlertRow(
                        vendor_id=vendor_id,
                        org_id=tenant_id,
                        code=alert.code,
                        message=alert.message,
                        severity=alert.severity.value,
                        source=alert.source.value,
                        rule_id=alert.rule_id,
                        created_at=alert.created_at,
                    )
                    for alert in alerts
                )

                session.add(
                    RiskHistoryRow(
                        vendor_id=vendor_id,
                        org_id=tenant_id,
                        risk_score=snapshot.score,
                        elite_status=snapshot.tier,
                        created_at=snapshot.created_at,
                    )
                )
        except SQLAlchemyError as exc:
            logger.error("Failed to persist results for vendor %s: %s", vendor_id, exc)
            raise StoreError(f"Failed to persist results for vendor '{vendor_id}'.") from exc

    def get_rule_results(self, vendor_id: str) -> List[RuleResult]:
        query = select(RuleResultRow).where(RuleResultRow.vendor_id == vendor_id).order_by(RuleResultRow.id)
        with self._session_factory() as session:
            return [RuleResult.model_validate(row.payload) for row in session.scalars(query)]

    def get_alerts(self, vendor_id: str) -> List[Alert]:
        query = select(VendorAlertRow).where(VendorAlertRow.vendor_id == vendor_id).order_by(VendorAlertRow.id)
        with self._session_factory() as session:
            return [
                Alert(
                    vendor_id=row.vendor_id,
                    tenant_id=row.org_id,
                    code=row.code,
                    message=row.message,
                    severity=row.severity,
                    source=row.source,
                    rule_id=row.rule_id,
                    created_at=_as_utc(row.created_at),
                )
                for row in session.scalars(query)
            ]

    def get_snapshots(self, vendor_id: str) -> List[ScoreSnapshot]:
        query = select(RiskHistoryRow).where(RiskHistoryRow.vendor_id == vendor_id).order_by(RiskHistoryRow.id)
        with self._session_factory() as session:
            return [
                ScoreSnapshot(
                    vendor_id=row.vendor_id,
                    tenant_id=row.org_id,
                    score=row.risk_score,
                    tier=row.elite_status,
                    created_at=_as_utc(row.created_at),
                )
                for row in session.scalars(query)
            ]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on round trip.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
