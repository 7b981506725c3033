from datetime import timedelta

import pytest

from app.core.exceptions import Forbidden, InvalidTransition, NotFound, ValidationError
from app.db.models.booking import Booking, utcnow
from app.db.models.service import Service
from app.services.booking_lifecycle import BookingLifecycleService, PaymentOutcome

from conftest import BrokenChannel, RecordingChannel, future


def assert_tracking_in_sync(booking):
    assert len(booking.tracking) >= 1
    assert booking.tracking[-1].status == booking.status


def test_create_booking_starts_pending_at_list_price(pending_booking, parties, channel):
    b = pending_booking
    assert b.status == "pending"
    assert b.total_amount == 500
    assert b.payment_status == "pending"
    assert b.provider_id == parties["provider"].id
    assert b.quote is None and b.rating is None
    assert [(t.status, t.updated_by, t.notes) for t in b.tracking] == [
        ("pending", parties["client"].id, "Booking created")
    ]
    assert channel.events == [
        (parties["provider"].id, "booking:new", {"bookingId": b.id, "status": "pending", "serviceId": parties["service"].id})
    ]


def test_create_booking_rejects_missing_service(lifecycle, parties):
    with pytest.raises(NotFound):
        lifecycle.create_booking(parties["client"], 9999, future())


def test_create_booking_rejects_inactive_service(lifecycle, parties, db):
    db.query(Service).filter(Service.id == parties["service"].id).update({"is_active": False})
    db.commit()
    with pytest.raises(NotFound):
        lifecycle.create_booking(parties["client"], parties["service"].id, future())


def test_create_booking_requires_future_date(lifecycle, parties):
    with pytest.raises(ValidationError):
        lifecycle.create_booking(parties["client"], parties["service"].id, utcnow() - timedelta(hours=1))


def test_provider_cannot_book(lifecycle, parties):
    with pytest.raises(Forbidden):
        lifecycle.create_booking(parties["provider"], parties["service"].id, future())


def test_full_quote_to_rating_scenario(lifecycle, pending_booking, parties, db, channel):
    client, provider = parties["client"], parties["provider"]
    b = pending_booking

    lifecycle.submit_quote(b, provider, 700, 3, "Includes balcony")
    assert b.status == "quoted"
    assert b.total_amount == 700
    assert b.quote["status"] == "pending"
    assert_tracking_in_sync(b)

    lifecycle.respond_to_quote(b, client, approved=True)
    assert b.status == "confirmed"
    assert b.total_amount == b.quote["price"] == 700
    assert b.quote["status"] == "accepted"
    assert b.quote["responded_at"] is not None

    lifecycle.update_status(b, "in_progress", provider)
    lifecycle.update_status(b, "completed", provider)
    assert b.status == "completed"
    assert b.completed_at is not None

    lifecycle.complete_with_rating(b, client, 5, "Spotless")
    assert b.rating["score"] == 5
    assert_tracking_in_sync(b)
    assert [t.status for t in b.tracking] == ["pending", "quoted", "confirmed", "in_progress", "completed"]

    service = db.query(Service).filter(Service.id == parties["service"].id).first()
    db.refresh(service)
    assert service.average_rating == 5.0
    assert service.review_count == 1

    assert channel.names() == [
        "booking:new",
        "booking:quoted",
        "booking:quoteResponse",
        "booking:statusUpdate",
        "booking:statusUpdate",
        "booking:rated",
    ]


def test_declined_quote_cancels_booking(lifecycle, pending_booking, parties):
    b = pending_booking
    lifecycle.submit_quote(b, parties["provider"], 900)
    lifecycle.respond_to_quote(b, parties["client"], approved=False)
    assert b.status == "cancelled"
    assert b.quote["status"] == "declined"
    assert b.tracking[-1].notes == "Quote declined by client"


def test_requote_replaces_pending_quote(lifecycle, pending_booking, parties):
    b = pending_booking
    lifecycle.submit_quote(b, parties["provider"], 900)
    lifecycle.submit_quote(b, parties["provider"], 650, 2)
    assert b.status == "quoted"
    assert b.total_amount == 650
    assert b.quote["estimated_hours"] == 2
    assert [t.status for t in b.tracking] == ["pending", "quoted", "quoted"]


def test_quote_rules(lifecycle, pending_booking, parties):
    b = pending_booking
    with pytest.raises(Forbidden):
        lifecycle.submit_quote(b, parties["client"], 700)
    with pytest.raises(ValidationError):
        lifecycle.submit_quote(b, parties["provider"], None)
    with pytest.raises(NotFound):
        lifecycle.respond_to_quote(b, parties["client"], approved=True)

    lifecycle.update_status(b, "confirmed", parties["provider"])
    with pytest.raises(InvalidTransition):
        lifecycle.submit_quote(b, parties["provider"], 700)


def test_only_client_responds_once(lifecycle, pending_booking, parties):
    b = pending_booking
    lifecycle.submit_quote(b, parties["provider"], 700)
    with pytest.raises(Forbidden):
        lifecycle.respond_to_quote(b, parties["provider"], approved=True)
    lifecycle.respond_to_quote(b, parties["client"], approved=True)
    with pytest.raises(InvalidTransition):
        lifecycle.respond_to_quote(b, parties["client"], approved=False)


def test_update_status_by_stranger_is_forbidden(lifecycle, pending_booking, parties):
    with pytest.raises(Forbidden):
        lifecycle.update_status(pending_booking, "confirmed", parties["stranger"])
    assert pending_booking.status == "pending"


def test_update_status_by_client_is_forbidden(lifecycle, pending_booking, parties):
    with pytest.raises(Forbidden):
        lifecycle.update_status(pending_booking, "confirmed", parties["client"])


def test_update_status_rejects_illegal_edge(lifecycle, pending_booking, parties):
    with pytest.raises(InvalidTransition) as exc:
        lifecycle.update_status(pending_booking, "completed", parties["provider"])
    assert exc.value.current == "pending"
    assert exc.value.requested == "completed"
    assert "pending" in exc.value.reason and "completed" in exc.value.reason
    assert len(pending_booking.tracking) == 1


def test_update_status_cannot_skip_quote_workflow(lifecycle, pending_booking, parties):
    with pytest.raises(ValidationError):
        lifecycle.update_status(pending_booking, "quoted", parties["provider"])


def test_cancel_from_pending_and_confirmed(lifecycle, parties):
    client, provider = parties["client"], parties["provider"]
    b1 = lifecycle.create_booking(client, parties["service"].id, future())
    lifecycle.cancel(b1, client)
    assert b1.status == "cancelled"
    assert b1.tracking[-1].notes == "Booking cancelled by client"

    b2 = lifecycle.create_booking(client, parties["service"].id, future())
    lifecycle.update_status(b2, "confirmed", provider)
    lifecycle.cancel(b2, client)
    assert b2.status == "cancelled"
    assert_tracking_in_sync(b2)


@pytest.mark.parametrize("path", [["confirmed", "in_progress"], ["confirmed", "in_progress", "completed"], ["cancelled"]])
def test_cancel_rejected_late_in_lifecycle(lifecycle, pending_booking, parties, path):
    for status in path:
        lifecycle.update_status(pending_booking, status, parties["provider"])
    with pytest.raises(InvalidTransition):
        lifecycle.cancel(pending_booking, parties["client"])


def test_cancel_by_provider_is_forbidden(lifecycle, pending_booking, parties):
    with pytest.raises(Forbidden):
        lifecycle.cancel(pending_booking, parties["provider"])


def test_rating_rules(lifecycle, pending_booking, parties):
    client, provider = parties["client"], parties["provider"]
    b = pending_booking
    with pytest.raises(InvalidTransition):
        lifecycle.complete_with_rating(b, client, 4)

    for status in ("confirmed", "in_progress", "completed"):
        lifecycle.update_status(b, status, provider)

    with pytest.raises(ValidationError):
        lifecycle.complete_with_rating(b, client, 6)
    with pytest.raises(Forbidden):
        lifecycle.complete_with_rating(b, provider, 4)

    lifecycle.complete_with_rating(b, client, 4, "Good")
    with pytest.raises(ValidationError):
        lifecycle.complete_with_rating(b, client, 3)
    assert b.rating["score"] == 4


def test_service_average_covers_all_bookings(lifecycle, parties, db):
    client, provider = parties["client"], parties["provider"]
    for score in (5, 2):
        b = lifecycle.create_booking(client, parties["service"].id, future())
        for status in ("confirmed", "in_progress", "completed"):
            lifecycle.update_status(b, status, provider)
        lifecycle.complete_with_rating(b, client, score)

    service = db.query(Service).filter(Service.id == parties["service"].id).first()
    db.refresh(service)
    assert service.review_count == 2
    assert service.average_rating == 3.5


def test_payment_success_confirms_pending_booking(lifecycle, pending_booking):
    b = lifecycle.reconcile_payment(
        pending_booking, PaymentOutcome(status="paid", order_id="order_ABC123", payment_id="pay_1")
    )
    assert b.payment_status == "paid"
    assert b.payment["order_id"] == "order_ABC123"
    assert b.paid_at is not None
    assert b.status == "confirmed"
    assert b.tracking[-1].notes == "Booking confirmed after payment"
    assert_tracking_in_sync(b)


def test_payment_on_quoted_booking_accepts_quote(lifecycle, pending_booking, parties):
    lifecycle.submit_quote(pending_booking, parties["provider"], 800)
    b = lifecycle.reconcile_payment(pending_booking, PaymentOutcome(status="paid", order_id="o", payment_id="p"))
    assert b.status == "confirmed"
    assert b.quote["status"] == "accepted"


def test_payment_never_completes_or_revives(lifecycle, pending_booking, parties):
    provider = parties["provider"]
    lifecycle.update_status(pending_booking, "confirmed", provider)
    lifecycle.update_status(pending_booking, "in_progress", provider)
    b = lifecycle.reconcile_payment(pending_booking, PaymentOutcome(status="paid", order_id="o", payment_id="p"))
    assert b.status == "in_progress"
    assert b.payment_status == "paid"

    other = lifecycle.create_booking(parties["client"], parties["service"].id, future())
    lifecycle.cancel(other, parties["client"])
    lifecycle.reconcile_payment(other, PaymentOutcome(status="paid", order_id="o2", payment_id="p2"))
    assert other.status == "cancelled"


def test_failed_payment_keeps_status(lifecycle, pending_booking):
    b = lifecycle.reconcile_payment(pending_booking, PaymentOutcome(status="failed", order_id="order_X"))
    assert b.status == "pending"
    assert b.payment_status == "pending"
    assert b.payment_order_id == "order_X"


def test_duplicate_payment_confirmation_is_ignored(lifecycle, pending_booking, channel):
    outcome = PaymentOutcome(status="paid", order_id="o", payment_id="p")
    lifecycle.reconcile_payment(pending_booking, outcome)
    published = len(channel.events)
    lifecycle.reconcile_payment(pending_booking, outcome)
    assert len(channel.events) == published
    assert len(pending_booking.tracking) == 2


def test_refund_requires_paid_booking(lifecycle, pending_booking):
    with pytest.raises(ValidationError):
        lifecycle.reconcile_payment(pending_booking, PaymentOutcome(status="refunded"))
    lifecycle.reconcile_payment(pending_booking, PaymentOutcome(status="paid", order_id="o", payment_id="p"))
    lifecycle.reconcile_payment(pending_booking, PaymentOutcome(status="refunded"))
    assert pending_booking.payment_status == "refunded"
    assert pending_booking.status == "confirmed"


def test_notification_failure_does_not_fail_mutation(db, parties, caplog):
    lifecycle = BookingLifecycleService(db, BrokenChannel())
    caplog.set_level("ERROR")
    b = lifecycle.create_booking(parties["client"], parties["service"].id, future())
    lifecycle.update_status(b, "confirmed", parties["provider"])
    assert b.status == "confirmed"
    assert any("Failed to publish" in r.getMessage() for r in caplog.records)


def test_get_booking_visibility(lifecycle, pending_booking, parties):
    assert lifecycle.get_booking(pending_booking.id, parties["client"]).id == pending_booking.id
    assert lifecycle.get_booking(pending_booking.id, parties["admin"]).id == pending_booking.id
    with pytest.raises(Forbidden):
        lifecycle.get_booking(pending_booking.id, parties["stranger"])
    with pytest.raises(NotFound):
        lifecycle.get_booking(424242, parties["admin"])


def test_list_bookings_newest_first(lifecycle, parties):
    first = lifecycle.create_booking(parties["client"], parties["service"].id, future())
    second = lifecycle.create_booking(parties["client"], parties["service"].id, future(5))
    for actor in (parties["client"], parties["provider"], parties["admin"]):
        assert [b.id for b in lifecycle.list_bookings(actor)] == [second.id, first.id]
    assert lifecycle.list_bookings(parties["stranger"]) == []


class FailingAggregator:
    def record_rating(self, service_id, score):
        raise RuntimeError("ratings store unavailable")


def test_rating_is_not_stored_when_aggregate_update_fails(Session, parties, channel):
    db = Session()
    service = BookingLifecycleService(db, channel, ratings=FailingAggregator())
    b = service.create_booking(parties["client"], parties["service"].id, future())
    for status in ("confirmed", "in_progress", "completed"):
        service.update_status(b, status, parties["provider"])
    published = len(channel.events)

    with pytest.raises(RuntimeError):
        service.complete_with_rating(b, parties["client"], 5, "Spotless")
    assert len(channel.events) == published
    booking_id = b.id
    db.close()

    check = Session()
    stored = check.query(Booking).filter(Booking.id == booking_id).first()
    assert stored.rating_score is None
    assert stored.status == "completed"

    # The client can retry once the aggregate is reachable again.
    BookingLifecycleService(check, RecordingChannel()).complete_with_rating(stored, parties["client"], 5)
    assert stored.rating["score"] == 5
    svc = check.query(Service).filter(Service.id == parties["service"].id).first()
    assert svc.review_count == 1
    check.close()


def test_second_payment_on_paid_booking_is_rejected(lifecycle, pending_booking, caplog):
    lifecycle.reconcile_payment(pending_booking, PaymentOutcome(status="paid", order_id="o1", payment_id="pay_1"))
    caplog.set_level("WARNING")
    with pytest.raises(ValidationError):
        lifecycle.reconcile_payment(
            pending_booking, PaymentOutcome(status="paid", order_id="o2", payment_id="pay_2")
        )
    assert pending_booking.payment_id == "pay_1"
    assert pending_booking.payment_order_id == "o1"
    assert any("Second payment pay_2" in r.getMessage() for r in caplog.records)
