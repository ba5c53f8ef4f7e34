import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from tasuke.services.google_calendar_service import CalendarNotConnectedError, GoogleCalendarError

from .fixtures import ApiHarness, make_task, make_user

SERVICE = "tasuke.domain.scheduling.service"


def due_in(days: int) -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=days)


class TestAuthentication(unittest.TestCase):

    def setUp(self):
        self.h = ApiHarness()

    def tearDown(self):
        self.h.close()

    def test_missing_token(self):
        response = self.h.client.post("/calendar/schedule-suggestion")
        self.assertIn(response.status_code, (401, 403))

    def test_unknown_token(self):
        response = self.h.client.post(
            "/calendar/schedule-suggestion", headers={"Authorization": "Bearer tsk_nope"}
        )
        self.assertEqual(response.status_code, 401)

    def test_health(self):
        self.assertEqual(self.h.client.get("/health").json()["status"], "healthy")


class TestScheduleSuggestionEndpoint(unittest.TestCase):

    def setUp(self):
        self.h = ApiHarness()

    def tearDown(self):
        self.h.close()

    def post(self, body=None):
        return self.h.client.post("/calendar/schedule-suggestion", json=body, headers=self.h.headers)

    @patch(f"{SERVICE}.list_busy_events", new_callable=AsyncMock, return_value=[])
    def test_suggests_blocks_for_open_tasks(self, busy):
        task = make_task(self.h.db, self.h.user, title="Write release notes", due_date=due_in(10), estimated_hours=2.5)

        response = self.post()

        self.assertEqual(response.status_code, 200)
        body = response.json()
        busy.assert_awaited_once()
        self.assertFalse(body["calendarUnavailable"])
        self.assertGreater(body["totalFreeHours"], 0)
        self.assertEqual({s["taskId"] for s in body["suggestions"]}, {task.id})
        self.assertEqual(sum(s["hours"] for s in body["suggestions"]), 2.5)
        self.assertEqual(body["tasks"][0]["status"], "schedulable")
        self.assertEqual(body["unschedulable"], [])

    @patch(f"{SERVICE}.list_busy_events", new_callable=AsyncMock, return_value=[])
    def test_no_tasks_returns_message(self, busy):
        response = self.post({})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["suggestions"], [])
        self.assertTrue(body["message"])
        busy.assert_not_awaited()

    def test_invalid_working_hours_is_bad_request(self):
        self.assertEqual(self.post({"workStart": 17, "workEnd": 9}).status_code, 400)
        self.assertEqual(self.post({"workStart": 9, "workEnd": 25}).status_code, 400)

    @patch(f"{SERVICE}.list_busy_events", new_callable=AsyncMock, side_effect=CalendarNotConnectedError())
    def test_disconnected_calendar_still_suggests(self, busy):
        make_task(self.h.db, self.h.user, due_date=due_in(7), estimated_hours=1)

        body = self.post().json()

        self.assertTrue(body["calendarUnavailable"])
        self.assertEqual(len(body["tasks"]), 1)

    @patch(f"{SERVICE}.list_busy_events", new_callable=AsyncMock, return_value=[])
    def test_overdue_task_is_unschedulable(self, busy):
        make_task(self.h.db, self.h.user, title="Late", due_date=due_in(-2), estimated_hours=3)

        body = self.post().json()

        self.assertEqual(body["suggestions"], [])
        self.assertEqual(body["unschedulable"][0]["reason"], "3 hours short")
        self.assertEqual(body["tasks"][0]["status"], "unschedulable")


class TestScheduleBlockEndpoints(unittest.TestCase):

    def setUp(self):
        self.h = ApiHarness()
        self.task = make_task(self.h.db, self.h.user, title="Prepare demo", due_date=due_in(5))
        self.payload = {"taskId": self.task.id, "date": "2026-10-20", "start": "09:00", "end": "11:00"}

    def tearDown(self):
        self.h.close()

    def accept(self, payload=None):
        return self.h.client.post("/calendar/schedule-block", json=payload or self.payload, headers=self.h.headers)

    @patch(f"{SERVICE}.create_task_block_event", new_callable=AsyncMock, return_value="evt-1")
    def test_accept_is_idempotent(self, create_event):
        first = self.accept()
        second = self.accept()

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(first.json()["id"], second.json()["id"])
        self.assertEqual(first.json()["googleCalendarEventId"], "evt-1")
        self.assertEqual(first.json()["startTime"], "09:00")
        create_event.assert_awaited_once()

    @patch(f"{SERVICE}.create_task_block_event", new_callable=AsyncMock, return_value="evt-1")
    def test_accept_unknown_task(self, create_event):
        response = self.accept({**self.payload, "taskId": 9999})
        self.assertEqual(response.status_code, 404)
        create_event.assert_not_awaited()

    @patch(f"{SERVICE}.create_task_block_event", new_callable=AsyncMock, return_value="evt-1")
    def test_accept_task_of_another_user(self, create_event):
        stranger = make_user(self.h.db, email="stranger@example.com")
        other = make_task(self.h.db, stranger, due_date=due_in(5))
        self.assertEqual(self.accept({**self.payload, "taskId": other.id}).status_code, 404)

    def test_accept_rejects_bad_times(self):
        self.assertEqual(self.accept({**self.payload, "end": "08:00"}).status_code, 422)
        self.assertEqual(self.accept({**self.payload, "date": "20-10-2026"}).status_code, 422)

    @patch(
        f"{SERVICE}.create_task_block_event",
        new_callable=AsyncMock,
        side_effect=GoogleCalendarError("Google Calendar is not connected"),
    )
    def test_accept_calendar_failure(self, create_event):
        response = self.accept()
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Google Calendar is not connected")
        self.assertEqual(self.h.client.get(
            "/calendar/schedule-block", params={"taskIds": str(self.task.id)}, headers=self.h.headers
        ).json(), [])

    @patch(f"{SERVICE}.create_task_block_event", new_callable=AsyncMock, side_effect=["evt-1", "evt-2"])
    def test_list_blocks(self, create_event):
        self.accept()
        self.accept({**self.payload, "start": "13:00", "end": "14:30"})

        response = self.h.client.get(
            "/calendar/schedule-block", params={"taskIds": f"{self.task.id},abc"}, headers=self.h.headers
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual([b["startTime"] for b in response.json()], ["09:00", "13:00"])
        self.assertEqual(
            self.h.client.get("/calendar/schedule-block", headers=self.h.headers).json(), []
        )

    @patch(f"{SERVICE}.delete_calendar_event", new_callable=AsyncMock, return_value=None)
    @patch(f"{SERVICE}.create_task_block_event", new_callable=AsyncMock, return_value="evt-1")
    def test_delete_block(self, create_event, delete_event):
        block_id = self.accept().json()["id"]

        response = self.h.client.delete(f"/calendar/schedule-block/{block_id}", headers=self.h.headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})
        delete_event.assert_awaited_once()
        self.assertEqual(delete_event.await_args.args[1], "evt-1")

        again = self.h.client.delete(f"/calendar/schedule-block/{block_id}", headers=self.h.headers)
        self.assertEqual(again.status_code, 404)


class TestCalendarEventsEndpoint(unittest.TestCase):

    def setUp(self):
        self.h = ApiHarness()

    def tearDown(self):
        self.h.close()

    @patch(f"{SERVICE}.list_events", new_callable=AsyncMock)
    def test_lists_events(self, list_events):
        list_events.return_value = [
            {"id": "e1", "summary": "Standup", "start": "2026-10-19T10:00:00+09:00",
             "end": "2026-10-19T10:15:00+09:00", "allDay": False, "colorId": None},
        ]
        response = self.h.client.get(
            "/calendar/events",
            params={"timeMin": "2026-10-19T00:00:00+09:00", "timeMax": "2026-10-26T00:00:00+09:00"},
            headers=self.h.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()[0]["summary"], "Standup")

    def test_inverted_range(self):
        response = self.h.client.get(
            "/calendar/events",
            params={"timeMin": "2026-10-26T00:00:00Z", "timeMax": "2026-10-19T00:00:00Z"},
            headers=self.h.headers,
        )
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
