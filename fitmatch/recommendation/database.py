"""Catalog source and recommendation store backed by SQLAlchemy"""
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    pool,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from .models import (
    FitAnalysis,
    RecommendationItem,
    RecommendationRecord,
    SoftwareCatalogItem,
)
from ..utils import config, logger


class CatalogError(Exception):
    """Raised when the active catalog cannot be read."""
    pass


class RecommendationInsertError(Exception):
    """Raised when a recommendation cannot be written."""
    pass


class RecommendationNotFoundError(Exception):
    """Raised when a recommendation id is unknown for the user."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class SoftwareCatalogRow(Base):
    __tablename__ = "software_catalog"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    category: Mapped[str] = mapped_column(String(100))
    target_roles: Mapped[list] = mapped_column(JSON, default=list)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    description: Mapped[str] = mapped_column(Text, default="")
    pricing_model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    website_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    key_features: Mapped[list] = mapped_column(JSON, default=list)
    pros_template: Mapped[list] = mapped_column(JSON, default=list)
    cons_template: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    def to_item(self) -> SoftwareCatalogItem:
        return SoftwareCatalogItem(
            id=self.id,
            name=self.name,
            category=self.category,
            target_roles=self.target_roles or [],
            tags=self.tags or [],
            description=self.description or "",
            pricing_model=self.pricing_model,
            website_url=self.website_url,
            key_features=self.key_features or [],
            pros_template=self.pros_template or [],
            cons_template=self.cons_template or [],
            is_active=self.is_active,
        )


class RecommendationRow(Base):
    __tablename__ = "recommendations"
    __table_args__ = (
        UniqueConstraint("user_id", "profile_fingerprint", name="uq_recommendations_user_fingerprint"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    profile_fingerprint: Mapped[str] = mapped_column(String(64))
    profile_snapshot: Mapped[dict] = mapped_column(JSON)
    candidate_ids: Mapped[list] = mapped_column(JSON, default=list)
    items: Mapped[list] = mapped_column(JSON, default=list)
    fit_decision: Mapped[str] = mapped_column(String(32))
    fit_reason: Mapped[str] = mapped_column(Text, default="")
    fit_analysis: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    ai_enhanced: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def to_record(self) -> RecommendationRecord:
        return RecommendationRecord(
            id=self.id,
            user_id=self.user_id,
            profile_fingerprint=self.profile_fingerprint,
            profile_snapshot=self.profile_snapshot,
            candidate_ids=self.candidate_ids or [],
            items=self.items or [],
            fit_decision=self.fit_decision,
            fit_reason=self.fit_reason or "",
            fit_analysis=self.fit_analysis,
            ai_enhanced=self.ai_enhanced,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def build_engine(database_url: Optional[str] = None) -> Engine:
    """Engine with connection pooling for concurrent requests"""
    url = database_url or config.database_url
    if url.startswith("sqlite"):
        return create_engine(url, echo=False)
    return create_engine(
        url,
        poolclass=pool.QueuePool,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=False
    )


class RecommendationStore:
    """Reads the active catalog and stores recommendations keyed by (user, fingerprint)"""

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or build_engine()
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self):
        Base.metadata.create_all(self.engine)

    # --- catalog ---

    def add_catalog_items(self, items: Sequence[SoftwareCatalogItem], batch_size: int = 100):
        """Insert or replace catalog items in batches"""
        logger.info(f"Adding {len(items)} catalog items in batches of {batch_size}")

        for i in range(0, len(items), batch_size):
            batch = items[i:i + batch_size]
            with self.Session.begin() as session:
                for item in batch:
                    session.merge(SoftwareCatalogRow(**item.model_dump()))
            logger.info(f"Added batch {i // batch_size + 1}/{(len(items) - 1) // batch_size + 1}")

    def fetch_active_catalog(self) -> List[SoftwareCatalogItem]:
        """Full snapshot of active catalog items"""
        try:
            with self.Session() as session:
                rows = session.scalars(
                    select(SoftwareCatalogRow)
                    .where(SoftwareCatalogRow.is_active.is_(True))
                    .order_by(SoftwareCatalogRow.id)
                ).all()
                return [row.to_item() for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Catalog fetch failed: {e}")
            raise CatalogError(f"CATALOG_ERROR: {e}") from e

    # --- recommendations ---

    def find_recommendation(self, user_id: str, fingerprint: str) -> Optional[RecommendationRecord]:
        with self.Session() as session:
            row = session.scalars(
                select(RecommendationRow).where(
                    RecommendationRow.user_id == user_id,
                    RecommendationRow.profile_fingerprint == fingerprint,
                )
            ).first()
            return row.to_record() if row else None

    def get_recommendation(self, recommendation_id: str, user_id: str) -> Optional[RecommendationRecord]:
        with self.Session() as session:
            row = session.scalars(
                select(RecommendationRow).where(
                    RecommendationRow.id == recommendation_id,
                    RecommendationRow.user_id == user_id,
                )
            ).first()
            return row.to_record() if row else None

    def touch_recommendation(self, recommendation_id: str) -> RecommendationRecord:
        """Refresh updated_at, content stays as stored"""
        try:
            with self.Session.begin() as session:
                row = session.get(RecommendationRow, recommendation_id)
                if row is None:
                    raise RecommendationNotFoundError(recommendation_id)
                row.updated_at = _utcnow()
                return row.to_record()
        except SQLAlchemyError as e:
            logger.error(f"Recommendation touch failed: {e}")
            raise RecommendationInsertError(f"RECOMMENDATION_UPDATE_ERROR: {e}") from e

    def insert_recommendation(
        self,
        user_id: str,
        fingerprint: str,
        profile_snapshot: Dict,
        candidate_ids: List[str],
        items: List[RecommendationItem],
        fit_decision: str,
        fit_reason: str,
        fit_analysis: Optional[FitAnalysis],
        ai_enhanced: bool,
    ) -> Tuple[RecommendationRecord, bool]:
        """Insert a new recommendation.

        Returns:
            (record, created). When another run already stored the same
            (user, fingerprint), that row is returned with created=False.
        """
        row = RecommendationRow(
            user_id=user_id,
            profile_fingerprint=fingerprint,
            profile_snapshot=profile_snapshot,
            candidate_ids=list(candidate_ids),
            items=[item.model_dump(mode="json") for item in items],
            fit_decision=fit_decision,
            fit_reason=fit_reason,
            fit_analysis=fit_analysis.model_dump(mode="json") if fit_analysis else None,
            ai_enhanced=ai_enhanced,
        )
        try:
            with self.Session.begin() as session:
                session.add(row)
            return row.to_record(), True
        except IntegrityError:
            existing = self.find_recommendation(user_id, fingerprint)
            if existing is None:
                raise RecommendationInsertError("RECOMMENDATION_INSERT_ERROR: conflicting row vanished")
            logger.warning(f"Concurrent run already stored fingerprint {fingerprint[:12]}, reusing it")
            return existing, False
        except SQLAlchemyError as e:
            logger.error(f"Recommendation insert failed: {e}")
            raise RecommendationInsertError(f"RECOMMENDATION_INSERT_ERROR: {e}") from e

    def update_recommendation(
        self,
        recommendation_id: str,
        items: List[RecommendationItem],
        fit_decision: str,
        fit_reason: str,
        fit_analysis: Optional[FitAnalysis],
        ai_enhanced: bool,
        candidate_ids: Optional[List[str]] = None,
    ) -> RecommendationRecord:
        try:
            with self.Session.begin() as session:
                row = session.get(RecommendationRow, recommendation_id)
                if row is None:
                    raise RecommendationNotFoundError(recommendation_id)
                row.items = [item.model_dump(mode="json") for item in items]
                row.fit_decision = fit_decision
                row.fit_reason = fit_reason
                row.fit_analysis = fit_analysis.model_dump(mode="json") if fit_analysis else None
                row.ai_enhanced = ai_enhanced
                if candidate_ids is not None:
                    row.candidate_ids = list(candidate_ids)
                row.updated_at = _utcnow()
                return row.to_record()
        except SQLAlchemyError as e:
            logger.error(f"Recommendation update failed: {e}")
            raise RecommendationInsertError(f"RECOMMENDATION_UPDATE_ERROR: {e}") from e
