import os
import sys
import unittest
from fastapi.testclient import TestClient
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import CoachAPI


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_coach.db"
        self.yaml_path = "test_settings.yaml"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)
        self.api = CoachAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)

    def _seed(self, client: TestClient) -> dict:
        sid = client.post(
            "/students",
            params={"name": "Carla Dias", "email": "carla@example.com", "personal_id": "p1"},
        ).json()["id"]
        tid = client.post(
            f"/students/{sid}/trainings",
            params={"name": "Lower body", "notes": "Bring a belt"},
        ).json()["id"]
        squat = client.post(
            f"/trainings/{tid}/exercises",
            params={"name": "Squat", "sets": 2, "reps": "5", "rest": "180s"},
        ).json()["id"]
        curl = client.post(
            f"/trainings/{tid}/exercises",
            params={"name": "Leg Curl", "sets": 1, "reps": "12"},
        ).json()["id"]
        return {"student": sid, "training": tid, "squat": squat, "curl": curl}

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(), {"status": "ok", "version": "0.3.0", "open_workouts": 0}
        )

    def test_training_setup_and_snapshot(self) -> None:
        ids = self._seed(self.client)

        response = self.client.get(f"/students/{ids['student']}")
        self.assertEqual(response.json()["email"], "carla@example.com")

        response = self.client.get(f"/trainings/{ids['training']}/exercises")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [(e["name"], e["position"]) for e in response.json()],
            [("Squat", 1), ("Leg Curl", 2)],
        )

        video = self.client.post(
            f"/exercises/{ids['squat']}/videos",
            params={"student_id": ids["student"], "video_url": "https://v.example.com/1.mp4"},
        ).json()["id"]
        response = self.client.post(
            f"/videos/{video}/corrections",
            params={"personal_id": "p1", "kind": "text", "content": "Knees out"},
        )
        self.assertEqual(response.status_code, 200)
        response = self.client.post(
            f"/videos/{video}/corrections",
            params={"personal_id": "p1", "kind": "photo"},
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.get(f"/students/{ids['student']}/trainings/active")
        self.assertEqual(response.status_code, 200)
        snapshot = response.json()
        self.assertEqual(snapshot["id"], ids["training"])
        self.assertEqual(
            [e["id"] for e in snapshot["exercises"]], [ids["squat"], ids["curl"]]
        )
        self.assertEqual(snapshot["exercises"][0]["corrections"][0]["content"], "Knees out")

        inbox = self.client.get("/personals/p1/corrections").json()
        self.assertEqual(len(inbox), 1)
        self.assertEqual(inbox[0]["student_id"], ids["student"])

    def test_activate_switches_training(self) -> None:
        ids = self._seed(self.client)
        other = self.client.post(
            f"/students/{ids['student']}/trainings",
            params={"name": "Deload", "active": False},
        ).json()["id"]
        active = self.client.get(f"/students/{ids['student']}/trainings/active").json()
        self.assertEqual(active["id"], ids["training"])

        response = self.client.post(f"/trainings/{other}/activate")
        self.assertEqual(response.status_code, 200)
        active = self.client.get(f"/students/{ids['student']}/trainings/active").json()
        self.assertEqual(active["id"], other)
        flags = {
            t["id"]: t["active"]
            for t in self.client.get(f"/students/{ids['student']}/trainings").json()
        }
        self.assertEqual(flags, {ids["training"]: False, other: True})

    def test_error_codes(self) -> None:
        ids = self._seed(self.client)
        response = self.client.post(
            "/students", params={"name": "Dup", "email": "CARLA@example.com"}
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post("/students/missing/trainings", params={"name": "X"})
        self.assertEqual(response.status_code, 404)
        response = self.client.post(
            f"/students/{ids['student']}/trainings",
            params={"name": "X", "start_date": "01/02/2024"},
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.get("/students/missing/trainings/active")
        self.assertEqual(response.status_code, 404)
        response = self.client.get("/workout_sessions/missing")
        self.assertEqual(response.status_code, 404)
        response = self.client.post(
            "/workout_sessions",
            params={"training_id": ids["training"], "student_id": "someone-else"},
        )
        self.assertEqual(response.status_code, 400)

    def test_session_endpoints(self) -> None:
        ids = self._seed(self.client)
        response = self.client.post(
            "/workout_sessions",
            params={"training_id": ids["training"], "student_id": ids["student"]},
        )
        self.assertEqual(response.status_code, 200)
        session = response.json()["id"]

        def log(number: int, reps: int = 5):
            return self.client.post(
                f"/workout_sessions/{session}/sets",
                params={
                    "exercise_id": ids["squat"],
                    "set_number": number,
                    "reps": reps,
                    "load": 100,
                },
            )

        self.assertEqual(log(1).status_code, 200)
        self.assertEqual(log(3).status_code, 409)
        self.assertEqual(log(1).status_code, 409)
        self.assertEqual(log(2, reps=-1).status_code, 400)
        self.assertEqual(log(2).status_code, 200)

        other_student = self.client.post(
            "/students", params={"name": "Otto", "email": "otto@example.com"}
        ).json()["id"]
        other_training = self.client.post(
            f"/students/{other_student}/trainings", params={"name": "Other plan"}
        ).json()["id"]
        foreign = self.client.post(
            f"/trainings/{other_training}/exercises",
            params={"name": "Row", "sets": 3, "reps": "10"},
        ).json()["id"]
        response = self.client.post(
            f"/workout_sessions/{session}/sets",
            params={"exercise_id": foreign, "set_number": 1, "reps": 5},
        )
        self.assertEqual(response.status_code, 409)
        response = self.client.post(
            f"/workout_sessions/{session}/sets",
            params={"exercise_id": "missing", "set_number": 1, "reps": 5},
        )
        self.assertEqual(response.status_code, 404)

        response = self.client.put(
            f"/workout_sessions/{session}/finish",
            params={"duration_minutes": 42, "notes": "heavy"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(log(3).status_code, 409)

        detail = self.client.get(f"/workout_sessions/{session}").json()
        self.assertTrue(detail["finished"])
        self.assertEqual(detail["duration_minutes"], 42)
        self.assertEqual(detail["notes"], "heavy")
        self.assertEqual([s["set_number"] for s in detail["sets"]], [1, 2])

        history = self.client.get(f"/students/{ids['student']}/workout_sessions").json()
        self.assertEqual(history[0]["id"], session)
        self.assertEqual(history[0]["training"], "Lower body")

        response = self.client.put(
            "/workout_sessions/missing/finish", params={"duration_minutes": 1}
        )
        self.assertEqual(response.status_code, 404)

    def test_hosted_workout_flow(self) -> None:
        with TestClient(self.api.app) as client:
            ids = self._seed(client)
            response = client.post(
                "/active_workouts", params={"student_id": ids["student"]}
            )
            self.assertEqual(response.status_code, 200)
            view = response.json()
            view_id = view["id"]
            self.assertEqual(view["progress"]["status"], "not_started")
            self.assertEqual(client.get("/health").json()["open_workouts"], 1)

            response = client.post(
                f"/active_workouts/{view_id}/sets",
                params={"exercise_id": ids["squat"], "reps": 5},
            )
            self.assertEqual(response.status_code, 409)

            progress = client.post(f"/active_workouts/{view_id}/start").json()
            self.assertEqual(progress["status"], "active")
            self.assertEqual(progress["current_exercise_id"], ids["squat"])
            session_id = progress["session_id"]

            draft = client.put(
                f"/active_workouts/{view_id}/draft",
                params={"load": 100, "reps_steps": 5},
            ).json()
            self.assertEqual((draft["reps"], draft["load"]), (5, 100.0))
            draft = client.put(
                f"/active_workouts/{view_id}/draft", params={"load_steps": -1}
            ).json()
            self.assertEqual(draft["load"], 97.5)

            logged = client.post(
                f"/active_workouts/{view_id}/sets", params={"exercise_id": ids["squat"]}
            ).json()
            self.assertEqual(
                (logged["set_number"], logged["reps"], logged["load"]), (1, 5, 97.5)
            )

            response = client.post(f"/active_workouts/{view_id}/advance")
            self.assertEqual(response.status_code, 409)
            response = client.post(
                f"/active_workouts/{view_id}/sets",
                params={"exercise_id": ids["curl"], "reps": 12},
            )
            self.assertEqual(response.status_code, 409)

            response = client.post(
                f"/active_workouts/{view_id}/sets",
                params={"exercise_id": ids["squat"], "reps": 4},
            )
            self.assertEqual(response.json()["load"], 97.5)
            progress = client.post(f"/active_workouts/{view_id}/advance").json()
            self.assertEqual(progress["current_exercise_id"], ids["curl"])
            self.assertEqual(progress["logged_counts"][ids["squat"]], 2)

            progress = client.post(f"/active_workouts/{view_id}/pause").json()
            self.assertTrue(progress["paused"])
            progress = client.post(f"/active_workouts/{view_id}/resume").json()
            self.assertFalse(progress["paused"])

            client.post(
                f"/active_workouts/{view_id}/sets",
                params={"exercise_id": ids["curl"], "reps": 12, "load": 30},
            )
            response = client.post(f"/active_workouts/{view_id}/advance")
            self.assertEqual(response.status_code, 409)

            response = client.post(
                f"/active_workouts/{view_id}/finish", params={"notes": "done"}
            )
            self.assertEqual(response.status_code, 200)
            session = response.json()
            self.assertTrue(session["finished"])
            self.assertEqual(session["id"], session_id)

            state = client.get(f"/active_workouts/{view_id}").json()
            self.assertEqual(state["progress"]["status"], "finished")
            self.assertEqual(len(state["sets"][ids["squat"]]), 2)
            response = client.post(f"/active_workouts/{view_id}/finish")
            self.assertEqual(response.status_code, 409)

            detail = client.get(f"/workout_sessions/{session_id}").json()
            self.assertTrue(detail["finished"])
            self.assertEqual(detail["notes"], "done")
            self.assertEqual(len(detail["sets"]), 3)

            response = client.delete(f"/active_workouts/{view_id}")
            self.assertEqual(response.json(), {"status": "closed"})
            response = client.get(f"/active_workouts/{view_id}")
            self.assertEqual(response.status_code, 404)

    def test_open_workout_without_training(self) -> None:
        with TestClient(self.api.app) as client:
            sid = client.post(
                "/students", params={"name": "Dan", "email": "dan@example.com"}
            ).json()["id"]
            response = client.post("/active_workouts", params={"student_id": sid})
            self.assertEqual(response.status_code, 404)
            self.assertEqual(self.api.views, {})

    def test_views_closed_on_shutdown(self) -> None:
        with TestClient(self.api.app) as client:
            ids = self._seed(client)
            view_id = client.post(
                "/active_workouts", params={"student_id": ids["student"]}
            ).json()["id"]
            client.post(f"/active_workouts/{view_id}/start")
            view = self.api.views[view_id]
        self.assertEqual(self.api.views, {})
        self.assertTrue(view.closed)
        self.assertTrue(view.clock.stopped)

    def test_open_workout_with_bad_clock_setting(self) -> None:
        with TestClient(self.api.app) as client:
            ids = self._seed(client)
            with open(self.yaml_path, "r", encoding="utf-8") as f:
                stored = yaml.safe_load(f)
            stored["clock_interval"] = 0
            with open(self.yaml_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(stored, f)
            response = client.post(
                "/active_workouts", params={"student_id": ids["student"]}
            )
            self.assertEqual(response.status_code, 400)
            self.assertEqual(self.api.views, {})

    def test_general_settings(self) -> None:
        response = self.client.post(
            "/settings/general",
            params={"load_increment": 1.25, "clock_interval": 0.5, "log_level": "debug"},
        )
        self.assertEqual(response.status_code, 200)
        data = self.client.get("/settings/general").json()
        self.assertEqual(data["load_increment"], 1.25)
        self.assertEqual(data["clock_interval"], 0.5)
        with open(self.yaml_path, "r", encoding="utf-8") as f:
            stored = yaml.safe_load(f)
        self.assertEqual(stored["log_level"], "debug")

        response = self.client.post("/settings/general", params={"log_level": "loud"})
        self.assertEqual(response.status_code, 400)
        response = self.client.post("/settings/general", params={"clock_interval": 0})
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
