# Overview: Pytest coverage for appointment lifecycle, cancellation timing and deletion snapshots.

"""
Appointment Lifecycle Tests

pending -> confirmed -> completed, with cancelled reachable from the two open
states. Cancelling and deleting each leave exactly one audit snapshot that
outlives the appointment.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from barberdesk.models import Appointment, CancellationRecord, DeletionRecord
from barberdesk.services import appointment_service, lifecycle_service
from barberdesk.services.lifecycle_service import (
    AppointmentNotFound,
    LifecycleError,
    can_transition,
    classify_cancellation,
    get_next_status,
)
from barberdesk.time_utils import utcnow
from barberdesk.validation import ConflictError, ValidationError


SLOT = datetime(2026, 3, 14, 15, 0, 0)


def book(unit, barber, service, start, client_name="João"):
    return appointment_service.create_appointment(
        unit.id,
        barber_id=barber.id,
        service_id=service.id,
        client_name=client_name,
        start_time=start,
        client_phone="+55 11 98888-7777",
    )


class TestTransitions:

    def test_next_status_chain(self):
        assert get_next_status("pending") == "confirmed"
        assert get_next_status("confirmed") == "completed"
        assert get_next_status("completed") is None
        assert get_next_status("cancelled") is None

    @pytest.mark.parametrize(
        "from_status,to_status,allowed",
        [
            ("pending", "confirmed", True),
            ("confirmed", "completed", True),
            ("pending", "cancelled", True),
            ("confirmed", "cancelled", True),
            ("pending", "completed", False),
            ("completed", "cancelled", False),
            ("cancelled", "pending", False),
            ("pending", "pending", False),
        ],
    )
    def test_can_transition(self, from_status, to_status, allowed):
        assert can_transition(from_status, to_status) is allowed

    def test_unknown_status_rejected(self):
        with pytest.raises(LifecycleError):
            can_transition("pending", "archived")


class TestCancellationTiming:

    def test_early_cancellation(self):
        timing = classify_cancellation(SLOT, SLOT - timedelta(hours=3))
        assert timing.minutes_before == 180
        assert not timing.is_late_cancellation
        assert not timing.is_no_show

    def test_exactly_at_threshold_is_not_late(self):
        timing = classify_cancellation(SLOT, SLOT - timedelta(minutes=10))
        assert timing.minutes_before == 10
        assert not timing.is_late_cancellation

    def test_inside_threshold_is_late(self):
        timing = classify_cancellation(SLOT, SLOT - timedelta(minutes=9, seconds=59))
        assert timing.minutes_before == 9
        assert timing.is_late_cancellation
        assert not timing.is_no_show

    def test_at_slot_start_is_late_not_no_show(self):
        timing = classify_cancellation(SLOT, SLOT)
        assert timing.minutes_before == 0
        assert timing.is_late_cancellation
        assert not timing.is_no_show

    def test_seconds_after_start_is_no_show(self):
        timing = classify_cancellation(SLOT, SLOT + timedelta(seconds=30))
        assert timing.minutes_before == -1
        assert timing.is_no_show
        assert not timing.is_late_cancellation

    def test_custom_threshold(self):
        timing = classify_cancellation(SLOT, SLOT - timedelta(minutes=45), threshold_minutes=60)
        assert timing.is_late_cancellation


class TestBooking:

    def test_end_time_and_price_from_service(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)

        assert appt.status == "pending"
        assert appt.end_time == in_two_hours + timedelta(minutes=30)
        assert appt.total_price == Decimal("45.00")
        assert appt.company_id == unit_a.company_id

    def test_overlap_conflicts(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        book(unit_a, barber_a, service_a, in_two_hours)

        with pytest.raises(ConflictError):
            book(unit_a, barber_a, service_a, in_two_hours + timedelta(minutes=15), client_name="Pedro")

    def test_touching_slots_do_not_conflict(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        book(unit_a, barber_a, service_a, in_two_hours)
        book(unit_a, barber_a, service_a, in_two_hours + timedelta(minutes=30), client_name="Pedro")

    def test_cancelled_slot_is_free(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        first = book(unit_a, barber_a, service_a, in_two_hours)
        lifecycle_service.cancel_appointment(first.id)

        second = book(unit_a, barber_a, service_a, in_two_hours, client_name="Pedro")
        assert second.id != first.id

    def test_barber_from_other_unit_rejected(self, db_session, unit_a, barber_b, service_a, in_two_hours):
        with pytest.raises(appointment_service.AppointmentError):
            book(unit_a, barber_b, service_a, in_two_hours)

    def test_quick_service_completed_now(self, db_session, unit_a, barber_a, service_a):
        appt = appointment_service.create_quick_service(
            unit_a.id,
            barber_id=barber_a.id,
            service_id=service_a.id,
            client_name="Walk-in",
            payment_method="pix",
        )
        assert appt.status == "completed"
        assert appt.payment_method == "pix"

    def test_quick_service_scheduled_is_pending(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = appointment_service.create_quick_service(
            unit_a.id,
            barber_id=barber_a.id,
            service_id=service_a.id,
            client_name="Walk-in",
            payment_method="cash",
            scheduled_for=in_two_hours,
        )
        assert appt.status == "pending"
        assert appt.payment_method is None


class TestAdvance:

    def test_pending_to_confirmed_to_completed(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)

        assert lifecycle_service.advance_status(appt.id).status == "confirmed"
        done = lifecycle_service.advance_status(appt.id, payment_method="debit_card")

        assert done.status == "completed"
        assert done.payment_method == "debit_card"
        assert done.total_price == Decimal("45.00")

    def test_courtesy_zeroes_price_and_notes_reason(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)
        appt.notes = "Regular"
        db_session.commit()
        lifecycle_service.advance_status(appt.id)

        done = lifecycle_service.advance_status(appt.id, payment_method="courtesy", courtesy_reason="Birthday")

        assert done.total_price == Decimal("0.00")
        assert done.notes == "Regular\n\n[Courtesy] Birthday"

    def test_terminal_cannot_advance(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)
        lifecycle_service.cancel_appointment(appt.id)

        with pytest.raises(LifecycleError):
            lifecycle_service.advance_status(appt.id)

    def test_unknown_payment_method(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)
        lifecycle_service.advance_status(appt.id)

        with pytest.raises(LifecycleError):
            lifecycle_service.advance_status(appt.id, payment_method="bitcoin")

        assert db_session.get(Appointment, appt.id).status == "confirmed"

    def test_missing_appointment(self, db_session):
        with pytest.raises(AppointmentNotFound):
            lifecycle_service.advance_status(424242)


class TestCancel:

    def test_snapshot_and_status_change(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)

        cancelled, record = lifecycle_service.cancel_appointment(
            appt.id, source="client", notes="Sick", now=in_two_hours - timedelta(hours=1)
        )

        assert cancelled.status == "cancelled"
        assert record.appointment_id == appt.id
        assert record.client_name == "João"
        assert record.barber_name == "Carlos"
        assert record.service_name == "Haircut"
        assert record.scheduled_time == in_two_hours
        assert record.minutes_before == 60
        assert not record.is_late_cancellation
        assert record.total_price == Decimal("45.00")
        assert record.cancellation_source == "client"
        assert db_session.query(CancellationRecord).count() == 1

    def test_late_cancellation_flagged(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)

        _, record = lifecycle_service.cancel_appointment(appt.id, now=in_two_hours - timedelta(minutes=5))

        assert record.minutes_before == 5
        assert record.is_late_cancellation

    def test_past_slot_recorded_as_no_show(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)

        _, record = lifecycle_service.cancel_appointment(
            appt.id, source="manual", now=in_two_hours + timedelta(minutes=20)
        )

        assert record.is_no_show
        assert not record.is_late_cancellation
        assert record.cancellation_source == "no_show"

    def test_missing_barber_uses_placeholder(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)
        appt.barber_id = None
        appt.service_id = None
        db_session.commit()

        _, record = lifecycle_service.cancel_appointment(appt.id)

        assert record.barber_name == lifecycle_service.UNKNOWN_BARBER
        assert record.service_name == lifecycle_service.UNKNOWN_SERVICE

    def test_completed_cannot_be_cancelled(self, db_session, unit_a, barber_a, service_a):
        appt = appointment_service.create_quick_service(
            unit_a.id, barber_id=barber_a.id, service_id=service_a.id, client_name="Walk-in"
        )

        with pytest.raises(LifecycleError):
            lifecycle_service.cancel_appointment(appt.id)
        assert db_session.query(CancellationRecord).count() == 0

    def test_unknown_source(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)

        with pytest.raises(LifecycleError):
            lifecycle_service.cancel_appointment(appt.id, source="whatsapp")

    def test_record_outlives_appointment(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)
        _, record = lifecycle_service.cancel_appointment(appt.id)
        record_id = record.id

        lifecycle_service.delete_appointment(appt.id, deleted_by="Ana")

        assert db_session.get(CancellationRecord, record_id) is not None


class TestDelete:

    def test_snapshot_keeps_original_status(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)
        lifecycle_service.advance_status(appt.id)
        appt_id = appt.id

        record = lifecycle_service.delete_appointment(appt_id, deleted_by="Ana Souza", reason="Duplicate")

        assert db_session.get(Appointment, appt_id) is None
        assert record.original_status == "confirmed"
        assert record.deleted_by == "Ana Souza"
        assert record.deletion_reason == "Duplicate"
        assert record.total_price == Decimal("45.00")
        assert record.deleted_at <= utcnow()

    def test_defaults_for_blank_actor_and_reason(self, db_session, unit_a, barber_a, service_a, in_two_hours):
        appt = book(unit_a, barber_a, service_a, in_two_hours)

        record = lifecycle_service.delete_appointment(appt.id, deleted_by="  ", reason=None)

        assert record.deleted_by == lifecycle_service.UNKNOWN_ACTOR
        assert record.deletion_reason == lifecycle_service.NO_REASON
        assert db_session.query(DeletionRecord).count() == 1


class TestAppointmentRoutes:

    def _book(self, client, headers, barber, service, start):
        return client.post("/api/appointments", json={
            "barber_id": barber.id,
            "service_id": service.id,
            "client_name": "João",
            "start_time": start.isoformat() + "Z",
        }, headers=headers)

    def test_book_advance_cancel(self, client, db_session, unit_a, barber_a, service_a, owner_a_headers, in_two_hours):
        resp = self._book(client, owner_a_headers, barber_a, service_a, in_two_hours)
        assert resp.status_code == 201
        appt_id = resp.json["id"]
        assert resp.json["unit_id"] == unit_a.id
        assert resp.json["total_price"] == "45.00"

        resp = client.post(f"/api/appointments/{appt_id}/advance", json={}, headers=owner_a_headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "confirmed"

        resp = client.post(f"/api/appointments/{appt_id}/cancel", json={"source": "client"}, headers=owner_a_headers)
        assert resp.status_code == 200
        assert resp.json["appointment"]["status"] == "cancelled"
        assert resp.json["cancellation"]["cancellation_source"] == "client"

        resp = client.post(f"/api/appointments/{appt_id}/cancel", json={}, headers=owner_a_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("price", ["NaN", "Infinity", "-Infinity", "-1", "10000000", "abc", True])
    def test_bad_total_price_is_400(self, client, db_session, unit_a, barber_a, service_a, owner_a_headers,
                                    in_two_hours, price):
        resp = client.post("/api/appointments", json={
            "barber_id": barber_a.id,
            "service_id": service_a.id,
            "client_name": "João",
            "start_time": in_two_hours.isoformat() + "Z",
            "total_price": price,
        }, headers=owner_a_headers)

        assert resp.status_code == 400, f"{price!r} returned {resp.status_code}"
        assert db_session.query(Appointment).count() == 0

    def test_quick_service_rejects_nan_price(self, db_session, unit_a, barber_a, service_a):
        with pytest.raises(ValidationError):
            appointment_service.create_quick_service(
                unit_a.id,
                barber_id=barber_a.id,
                service_id=service_a.id,
                client_name="Walk-in",
                total_price="NaN",
            )

    def test_conflict_is_409(self, client, db_session, unit_a, barber_a, service_a, owner_a_headers, in_two_hours):
        assert self._book(client, owner_a_headers, barber_a, service_a, in_two_hours).status_code == 201
        assert self._book(client, owner_a_headers, barber_a, service_a, in_two_hours).status_code == 409

    def test_delete_records_actor(self, client, db_session, unit_a, barber_a, service_a, owner_a_headers, in_two_hours):
        appt_id = self._book(client, owner_a_headers, barber_a, service_a, in_two_hours).json["id"]

        resp = client.delete(f"/api/appointments/{appt_id}", json={"reason": "Test"}, headers=owner_a_headers)

        assert resp.status_code == 200
        assert resp.json["deleted_by"] == "Ana Souza"
        assert resp.json["original_status"] == "pending"

    def test_foreign_appointment_is_404(
        self, client, db_session, unit_a, unit_b, barber_b, service_b, owner_a_headers, in_two_hours
    ):
        foreign = book(unit_b, barber_b, service_b, in_two_hours)

        for method, path in [
            ("post", f"/api/appointments/{foreign.id}/advance"),
            ("post", f"/api/appointments/{foreign.id}/cancel"),
            ("delete", f"/api/appointments/{foreign.id}"),
        ]:
            resp = getattr(client, method)(path, json={}, headers=owner_a_headers)
            assert resp.status_code == 404, f"{method} {path} returned {resp.status_code}"

        assert db_session.get(Appointment, foreign.id).status == "pending"

    def test_list_foreign_unit_is_404(self, client, db_session, unit_a, unit_b, owner_a_headers):
        resp = client.get(f"/api/appointments?unit_id={unit_b.id}", headers=owner_a_headers)
        assert resp.status_code == 404

    def test_list_current_unit(self, client, db_session, unit_a, barber_a, service_a, owner_a_headers, in_two_hours):
        book(unit_a, barber_a, service_a, in_two_hours)

        resp = client.get("/api/appointments", headers=owner_a_headers)

        assert resp.status_code == 200
        assert [a["client_name"] for a in resp.json] == ["João"]
        assert resp.json[0]["barber"]["name"] == "Carlos"
