"""
Integration tests for the patient-flow HTTP API.

These exercise the request/response boundary: the response envelope,
the mapping of domain errors onto status codes, tenant isolation and
the queue and booking flows end to end.  They use Django REST
framework's APIClient within the APITestCase base class.

To run the tests:

```
pytest -q patientflow/tests
```
"""

from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from ..models import ActivityEvent, RoomBooking, VisitQueueEntry

User = get_user_model()


class PatientFlowAPITests(APITestCase):
    def setUp(self) -> None:
        self.nurse = User.objects.create_user(username="nurse1", password="nursepass")
        self.client.force_authenticate(user=self.nurse)
        self.client.credentials(HTTP_X_TENANT_SCOPE="branch-1")

    def check_in(self, patient_id, department="general", **extra):
        payload = {"patientId": patient_id, "department": department, **extra}
        return self.client.post(reverse("queue-entries"), payload, format="json")

    def test_check_in_returns_entry(self):
        resp = self.check_in("P-1", priority=2, notes="<b>wheelchair</b>")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertTrue(resp.data["ok"])
        entry = resp.data["data"]
        self.assertEqual(entry["status"], "waiting")
        self.assertEqual(entry["priority"], 2)
        self.assertEqual(entry["queueNumber"], 1)
        self.assertEqual(entry["tenantScope"], "branch-1")
        self.assertEqual(entry["notes"], "wheelchair")

    def test_duplicate_check_in_is_409(self):
        first = self.check_in("P-1").data["data"]
        resp = self.check_in("P-1")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(resp.data["ok"])
        self.assertEqual(resp.data["error"]["code"], "duplicate")
        self.assertEqual(resp.data["error"]["existingEntryId"], first["id"])

    def test_invalid_priority_is_400(self):
        resp = self.check_in("P-1", priority=9)
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["error"]["code"], "validation_error")

    def test_tenant_scope_required(self):
        self.client.credentials()
        resp = self.check_in("P-1")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(VisitQueueEntry.objects.count(), 0)

    def test_unauthenticated_rejected(self):
        self.client.force_authenticate(user=None)
        resp = self.client.get(reverse("queue-entries"))
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))
        self.assertFalse(resp.data["ok"])

    def test_call_next_on_empty_queue_returns_null(self):
        resp = self.client.post(reverse("queue-call-next"), {"department": "general"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data["ok"])
        self.assertIsNone(resp.data["data"])

    def test_call_next_serves_most_urgent(self):
        self.check_in("A", priority=5)
        b = self.check_in("B", priority=1).data["data"]
        resp = self.client.post(
            reverse("queue-call-next"), {"department": "general", "roomNumber": "Room 4"}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["data"]["id"], b["id"])
        self.assertEqual(resp.data["data"]["status"], "called")
        self.assertEqual(resp.data["data"]["roomNumber"], "Room 4")
        self.assertEqual(resp.data["data"]["servingStaff"], "nurse1")

        serving = self.client.get(reverse("queue-now-serving"), {"department": "general"})
        self.assertEqual([e["patientId"] for e in serving.data["data"]], ["B"])

    def test_snapshot_positions(self):
        self.check_in("A", priority=3)
        self.check_in("B", priority=1)
        resp = self.client.get(reverse("queue-snapshot"), {"department": "general"})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([(e["patientId"], e["position"]) for e in resp.data["data"]], [("B", 1), ("A", 2)])
        self.assertEqual(resp.data["meta"]["total"], 2)

    def test_illegal_status_transition_is_409(self):
        entry = self.check_in("P-1").data["data"]
        url = reverse("queue-entry-status", kwargs={"entry_id": entry["id"]})
        resp = self.client.patch(url, {"status": "completed"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["error"]["code"], "invalid_transition")
        self.assertEqual(resp.data["error"]["current"], "waiting")
        self.assertEqual(VisitQueueEntry.objects.get(pk=entry["id"]).status, "waiting")

    def test_status_and_stage_flow_with_history(self):
        entry = self.check_in("P-1").data["data"]
        eid = entry["id"]
        self.client.patch(reverse("queue-entry-stage", kwargs={"entry_id": eid}), {"stage": "triage"}, format="json")
        self.client.patch(reverse("queue-entry-status", kwargs={"entry_id": eid}), {"status": "called"}, format="json")
        resp = self.client.patch(
            reverse("queue-entry-status", kwargs={"entry_id": eid}),
            {"status": "in_progress", "roomNumber": "Room 7"}, format="json",
        )
        self.assertEqual(resp.data["data"]["status"], "in_progress")
        self.assertEqual(resp.data["data"]["roomNumber"], "Room 7")

        detail = self.client.get(reverse("queue-entry", kwargs={"entry_id": eid}))
        self.assertEqual(detail.data["data"]["stage"], "triage")
        history = [(t["field"], t["to"]) for t in detail.data["data"]["transitionHistory"]]
        self.assertEqual(history, [("status", "waiting"), ("stage", "triage"), ("status", "called"), ("status", "in_progress")])

    def test_unknown_stage_is_400(self):
        entry = self.check_in("P-1").data["data"]
        resp = self.client.patch(
            reverse("queue-entry-stage", kwargs={"entry_id": entry["id"]}), {"stage": "spa"}, format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancel_no_show_and_remove(self):
        a = self.check_in("A").data["data"]
        b = self.check_in("B").data["data"]
        resp = self.client.post(reverse("queue-entry-cancel", kwargs={"entry_id": a["id"]}), {"reason": "left"}, format="json")
        self.assertEqual(resp.data["data"]["status"], "cancelled")

        resp = self.client.post(reverse("queue-entry-no-show", kwargs={"entry_id": b["id"]}), format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)

        resp = self.client.delete(reverse("queue-entry", kwargs={"entry_id": b["id"]}))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        resp = self.client.get(reverse("queue-entry", kwargs={"entry_id": b["id"]}))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["error"]["code"], "not_found")

    def test_entries_of_other_tenant_are_invisible(self):
        entry = self.check_in("P-1").data["data"]
        self.client.credentials(HTTP_X_TENANT_SCOPE="branch-2")
        resp = self.client.get(reverse("queue-entry", kwargs={"entry_id": entry["id"]}))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        resp = self.client.get(reverse("queue-snapshot"), {"department": "general"})
        self.assertEqual(resp.data["data"], [])

    def test_stats(self):
        self.check_in("A")
        self.check_in("B")
        self.client.post(reverse("queue-call-next"), {"department": "general"}, format="json")
        resp = self.client.get(reverse("queue-stats"), {"department": "general"})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["data"]["waitingCount"], 1)
        self.assertEqual(resp.data["data"]["calledCount"], 1)
        self.assertEqual(resp.data["data"]["total"], 2)

    def test_book_room_for_visit(self):
        entry = self.check_in("P-1").data["data"]
        payload = {"roomName": "Procedure 1", "bookingDate": "2026-03-02", "startTime": "09:00", "endTime": "10:00"}
        url = reverse("queue-entry-book-room", kwargs={"entry_id": entry["id"]})
        resp = self.client.post(url, payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["data"]["entry"]["roomNumber"], "Procedure 1")
        self.assertEqual(resp.data["data"]["booking"]["visitId"], entry["id"])

    def test_book_room_conflict_is_409(self):
        other = self.client.post(reverse("room-bookings"), {
            "roomName": "Procedure 1", "bookingDate": "2026-03-02", "startTime": "09:30", "endTime": "10:30",
        }, format="json").data["data"]
        entry = self.check_in("P-1").data["data"]
        payload = {"roomName": "Procedure 1", "bookingDate": "2026-03-02", "startTime": "09:00", "endTime": "10:00"}
        resp = self.client.post(reverse("queue-entry-book-room", kwargs={"entry_id": entry["id"]}), payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["error"]["code"], "conflict")
        self.assertEqual(resp.data["error"]["conflictingBookingId"], other["id"])
        self.assertIsNone(VisitQueueEntry.objects.get(pk=entry["id"]).room_number)

    def test_booking_lifecycle(self):
        url = reverse("room-bookings")
        resp = self.client.post(url, {
            "roomName": "Room 1", "bookingDate": "2026-03-02", "startTime": "09:00", "endTime": "10:00",
            "equipmentRequired": ["ecg"], "appointmentId": "APT-1",
        }, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        booking = resp.data["data"]
        self.assertEqual(booking["equipmentRequired"], ["ecg"])

        resp = self.client.post(url, {
            "roomName": "Room 1", "bookingDate": "2026-03-02", "startTime": "10:00", "endTime": "09:00",
        }, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

        detail = reverse("room-booking", kwargs={"booking_id": booking["id"]})
        resp = self.client.patch(detail, {"startTime": "09:30", "endTime": "10:30"}, format="json")
        self.assertEqual(resp.data["data"]["startTime"], "09:30")

        cancel = reverse("room-booking-cancel", kwargs={"booking_id": booking["id"]})
        self.assertEqual(self.client.post(cancel).data["data"]["status"], "cancelled")
        self.assertEqual(self.client.post(cancel).data["data"]["status"], "cancelled")

        resp = self.client.get(url, {"date": "2026-03-02", "includeCancelled": "false"})
        self.assertEqual(resp.data["data"], [])
        resp = self.client.get(url, {"date": "2026-03-02"})
        self.assertEqual(len(resp.data["data"]), 1)

    def test_availability(self):
        self.client.post(reverse("room-bookings"), {
            "roomName": "Room 1", "bookingDate": "2026-03-02", "startTime": "09:00", "endTime": "10:00",
        }, format="json")
        resp = self.client.get(reverse("room-availability"), {"rooms": "Room 1,Room 2", "date": "2026-03-02", "at": "09:15"})
        self.assertEqual(resp.data["data"], {"free": ["Room 2"], "busy": ["Room 1"]})

    def test_activities_scoped_to_tenant(self):
        self.check_in("P-1")
        ActivityEvent.objects.create(activity_type="queue_checked_in", tenant_scope="branch-2")
        resp = self.client.get(reverse("activities"), {"activityType": "queue_checked_in"})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(resp.data["data"]), 1)
        self.assertEqual(resp.data["data"][0]["user"], "nurse1")

    def test_healthz(self):
        resp = self.client.get(reverse("healthz"))
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["ok"])

    def test_room_bookings_are_not_shared_between_tenants(self):
        self.client.post(reverse("room-bookings"), {
            "roomName": "Room 1", "bookingDate": "2026-03-02", "startTime": "09:00", "endTime": "10:00",
        }, format="json")
        self.client.credentials(HTTP_X_TENANT_SCOPE="branch-2")
        resp = self.client.post(reverse("room-bookings"), {
            "roomName": "Room 1", "bookingDate": "2026-03-02", "startTime": "09:00", "endTime": "10:00",
        }, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(RoomBooking.objects.count(), 2)

    def test_identifiers_are_stored_verbatim(self):
        entry = self.check_in("MRN<42>&1", notes="<script>x</script>ok").data["data"]
        self.assertEqual(entry["patientId"], "MRN<42>&1")
        self.assertEqual(VisitQueueEntry.objects.get(pk=entry["id"]).patient_id, "MRN<42>&1")
        self.assertNotIn("<script>", entry["notes"])

        url = reverse("room-bookings")
        resp = self.client.post(url, {
            "roomName": "R&D Lab", "bookingDate": "2026-03-02", "startTime": "09:00", "endTime": "10:00",
        }, format="json")
        self.assertEqual(resp.data["data"]["roomName"], "R&D Lab")
        resp = self.client.get(url, {"date": "2026-03-02", "roomName": "R&D Lab"})
        self.assertEqual(len(resp.data["data"]), 1)

    def test_snapshot_department_is_trimmed(self):
        self.check_in("P-1")
        resp = self.client.get(reverse("queue-snapshot"), {"department": " general"})
        self.assertEqual([e["patientId"] for e in resp.data["data"]], ["P-1"])
