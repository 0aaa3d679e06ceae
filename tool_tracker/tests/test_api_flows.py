import unittest

from fastapi.testclient import TestClient

from tracker_support import TrackerDbTestCase, tomorrow

import ToolTracker as app_module


class ApiFlowTests(TrackerDbTestCase):
    def setUp(self):
        super().setUp()

        def override_get_db():
            session = self.SessionLocal()
            try:
                yield session
            finally:
                session.close()

        app_module.app.dependency_overrides[app_module.get_db] = override_get_db
        self.client = TestClient(app_module.app)

    def tearDown(self):
        app_module.app.dependency_overrides.clear()
        super().tearDown()

    def _create_tool(self, serial: str = "HLT-001") -> dict:
        response = self.client.post(
            "/api/tools",
            json={
                "tool_name": "Hilti Rotary Hammer",
                "brand": "Hilti",
                "serial_number": serial,
                "current_location": "site",
                "created_by": self.admin.UserID,
            },
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def _request_loan(self, tool_id: int, user_id: int):
        return self.client.post(
            "/api/loans",
            json={
                "tool_id": tool_id,
                "user_id": user_id,
                "purpose": "field test",
                "expected_return": tomorrow().isoformat(),
                "notes": "",
            },
        )

    def test_health_endpoints(self):
        self.assertEqual(self.client.get("/healthz").json(), {"ok": True})
        response = self.client.get("/api/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["db"], "up")

    def test_loan_request_approval_round_trip(self):
        tool = self._create_tool()

        created = self._request_loan(tool["id"], self.employee.UserID)
        self.assertEqual(created.status_code, 201, created.text)
        body = created.json()
        self.assertTrue(body["success"])
        loan_id = body["loan"]["id"]
        self.assertEqual(body["loan"]["status"], "pending")

        pending = self.client.get("/api/loans/pending").json()
        self.assertEqual([loan["id"] for loan in pending], [loan_id])
        self.assertEqual(pending[0]["borrower_name"], "Budi Employee")
        self.assertEqual(pending[0]["serial_number"], "HLT-001")

        denied = self.client.put(f"/api/loans/{loan_id}/approve", json={"approved_by": self.employee.UserID})
        self.assertEqual(denied.status_code, 403)
        self.assertEqual(denied.json()["kind"], "Unauthorized")
        self.assertFalse(denied.json()["success"])

        approved = self.client.put(f"/api/loans/{loan_id}/approve", json={"approved_by": self.admin.UserID})
        self.assertEqual(approved.status_code, 200, approved.text)
        self.assertEqual(approved.json()["loan"]["status"], "approved")
        self.assertEqual(approved.json()["loan"]["approved_by"], self.admin.UserID)

        tool_after = self.client.get(f"/api/tools/{tool['id']}").json()
        self.assertEqual(tool_after["status"], "borrowed")
        self.assertEqual(tool_after["last_borrower"], self.employee.UserID)

        again = self._request_loan(tool["id"], self.other_employee.UserID)
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["kind"], "ToolUnavailable")

        twice = self.client.put(f"/api/loans/{loan_id}/approve", json={"approved_by": self.admin.UserID})
        self.assertEqual(twice.status_code, 409)
        self.assertEqual(twice.json()["kind"], "InvalidTransition")

        returned = self.client.put(f"/api/loans/{loan_id}/return", json={"returned_by": self.employee.UserID})
        self.assertEqual(returned.status_code, 200, returned.text)
        self.assertEqual(returned.json()["loan"]["status"], "returned")
        self.assertEqual(self.client.get(f"/api/tools/{tool['id']}").json()["status"], "available")

    def test_reject_route_leaves_tool_available(self):
        tool = self._create_tool()
        loan_id = self._request_loan(tool["id"], self.employee.UserID).json()["loan"]["id"]

        rejected = self.client.put(
            f"/api/loans/{loan_id}/reject",
            json={"rejected_by": self.admin.UserID, "reason": "tool reserved for audit"},
        )
        self.assertEqual(rejected.status_code, 200, rejected.text)
        self.assertEqual(rejected.json()["loan"]["status"], "rejected")
        self.assertEqual(rejected.json()["loan"]["rejected_by"], self.admin.UserID)
        self.assertEqual(self.client.get(f"/api/tools/{tool['id']}").json()["status"], "available")
        self.assertEqual(self.client.get("/api/loans/pending").json(), [])
        self.assertEqual(len(self.client.get("/api/loans", params={"status": "rejected"}).json()), 1)

    def test_loan_errors_map_to_status_codes(self):
        tool = self._create_tool()

        missing_purpose = self.client.post(
            "/api/loans",
            json={"tool_id": tool["id"], "user_id": self.employee.UserID, "expected_return": tomorrow().isoformat()},
        )
        self.assertEqual(missing_purpose.status_code, 400)
        self.assertEqual(missing_purpose.json()["kind"], "ValidationError")
        self.assertIn("purpose", missing_purpose.json()["error"])

        past = self.client.post(
            "/api/loans",
            json={"tool_id": tool["id"], "user_id": self.employee.UserID, "purpose": "x", "expected_return": "2000-01-01"},
        )
        self.assertEqual(past.status_code, 400)

        unknown_tool = self._request_loan(9999, self.employee.UserID)
        self.assertEqual(unknown_tool.status_code, 404)
        self.assertEqual(unknown_tool.json()["kind"], "NotFound")

        unknown_loan = self.client.put("/api/loans/9999/reject", json={"rejected_by": self.admin.UserID})
        self.assertEqual(unknown_loan.status_code, 404)

        bad_filter = self.client.get("/api/loans", params={"status": "lost"})
        self.assertEqual(bad_filter.status_code, 400)

    def test_malformed_ids_and_dates_are_validation_errors(self):
        tool = self._create_tool()
        base = {"user_id": self.employee.UserID, "purpose": "field test", "expected_return": tomorrow().isoformat()}

        for body in (
            base,
            {**base, "tool_id": "abc"},
            {**base, "tool_id": "¹"},
            {**base, "tool_id": tool["id"], "user_id": "¹"},
            {**base, "tool_id": tool["id"], "expected_return": f"{tomorrow().isoformat()}garbage"},
        ):
            with self.subTest(body=body):
                response = self.client.post("/api/loans", json=body)
                self.assertEqual(response.status_code, 400, response.text)
                self.assertEqual(response.json()["kind"], "ValidationError")

        loan_id = self._request_loan(tool["id"], self.employee.UserID).json()["loan"]["id"]
        denied = self.client.put(f"/api/loans/{loan_id}/approve", json={"approved_by": "¹"})
        self.assertEqual(denied.status_code, 403)
        self.assertEqual(denied.json()["kind"], "Unauthorized")

        supply = self.client.post(
            "/api/supplies",
            json={"item_name": "Pens", "category": "Office", "quantity": "²", "min_threshold": 1, "location": "Office"},
        )
        self.assertEqual(supply.status_code, 400)
        self.assertEqual(supply.json()["kind"], "ValidationError")

    def test_supplies_routes(self):
        created = self.client.post(
            "/api/supplies",
            json={"item_name": "A4 Paper", "category": "Paper", "quantity": "5", "min_threshold": "10", "location": "Warehouse"},
        )
        self.assertEqual(created.status_code, 201, created.text)
        item = created.json()
        self.assertTrue(item["low_stock"])
        self.assertEqual(item["status"], "low_stock")

        invalid = self.client.post(
            "/api/supplies",
            json={"item_name": "Pens", "category": "Office", "quantity": -1, "min_threshold": 0, "location": "Office"},
        )
        self.assertEqual(invalid.status_code, 400)

        requested = self.client.post(
            f"/api/supplies/{item['id']}/request",
            json={"quantity": 2, "user_id": self.employee.UserID},
        )
        self.assertEqual(requested.status_code, 201, requested.text)
        self.assertEqual(requested.json()["quantity"], 2)

        zero = self.client.post(f"/api/supplies/{item['id']}/request", json={"quantity": 0, "user_id": self.employee.UserID})
        self.assertEqual(zero.status_code, 400)
        missing = self.client.post("/api/supplies/999/request", json={"quantity": 1, "user_id": self.employee.UserID})
        self.assertEqual(missing.status_code, 404)

        restocked = self.client.put(
            f"/api/supplies/{item['id']}/restock",
            json={"quantity": 7, "restocked_by": self.admin.UserID},
        )
        self.assertEqual(restocked.status_code, 200, restocked.text)
        self.assertEqual(restocked.json()["quantity"], 12)
        self.assertFalse(restocked.json()["low_stock"])

        listed = self.client.get("/api/supplies", params={"lowStock": "true"}).json()
        self.assertEqual(listed, [])

    def test_users_and_summary_routes(self):
        registered = self.client.post(
            "/api/users",
            json={"employee_id": 1042, "name": "Fajar", "department": "Site Ops", "email": "fajar@example.com", "role": "karyawan"},
        )
        self.assertEqual(registered.status_code, 201, registered.text)
        self.assertEqual(registered.json()["user"]["role"], "employee")
        self.assertEqual(registered.json()["user"]["employee_id"], "1042")
        self.assertEqual(len(self.client.get("/api/users").json()), 4)

        tool = self._create_tool()
        self._request_loan(tool["id"], self.employee.UserID)
        summary = self.client.get("/api/reports/summary").json()
        self.assertEqual(summary["tools"]["total"], 1)
        self.assertEqual(summary["tools"]["byLocation"]["site"], 1)
        self.assertEqual(summary["loans"]["pending"], 1)

    def test_retire_route_requires_admin(self):
        tool = self._create_tool()
        denied = self.client.delete(f"/api/tools/{tool['id']}", params={"actor_id": self.employee.UserID})
        self.assertEqual(denied.status_code, 403)
        retired = self.client.delete(f"/api/tools/{tool['id']}", params={"actor_id": self.admin.UserID})
        self.assertEqual(retired.status_code, 200)
        self.assertEqual(self.client.get("/api/tools").json(), [])
        self.assertEqual(len(self.client.get("/api/tools", params={"includeRetired": "true"}).json()), 1)


if __name__ == "__main__":
    unittest.main()
