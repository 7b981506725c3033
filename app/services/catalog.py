# app/services/catalog.py
"""Service catalog collaborators used by the booking lifecycle."""

import logging
from typing import Optional, Protocol

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.models.booking import Booking
from app.db.models.service import Service

logger = logging.getLogger(__name__)


class ServiceCatalog(Protocol):
    def get_service(self, service_id: int) -> Optional[Service]:
        ...


class RatingAggregator(Protocol):
    def record_rating(self, service_id: int, score: int) -> None:
        ...


class SqlServiceCatalog:
    def __init__(self, db: Session):
        self.db = db

    def get_service(self, service_id: int) -> Optional[Service]:
        return (
            self.db.query(Service)
            .filter(Service.id == service_id, Service.is_active == True)
            .first()
        )


class SqlRatingAggregator:
    """Recalculates a service's average from every rated booking of it.

    Runs inside the caller's transaction and never commits.
    """

    def __init__(self, db: Session):
        self.db = db

    def record_rating(self, service_id: int, score: int) -> None:
        service = self.db.query(Service).filter(Service.id == service_id).first()
        if not service:
            logger.warning("Rating %s recorded for missing service %s", score, service_id)
            return

        total, count = (
            self.db.query(func.coalesce(func.sum(Booking.rating_score), 0), func.count(Booking.rating_score))
            .filter(Booking.service_id == service_id, Booking.rating_score.isnot(None))
            .one()
        )
        service.review_count = int(count)
        service.average_rating = float(total) / count if count else 0.0
        logger.debug(
            "Service %s rating now %.2f over %s reviews",
            service_id, service.average_rating, service.review_count,
        )
