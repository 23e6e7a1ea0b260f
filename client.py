import requests
from typing import Optional


class ApiError(requests.HTTPError):
    """Raised when the coaching API answers with an error status."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class CoachClient:
    """Simple REST client for the coaching API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 10.0,
        api_token: str | None = None,
        session=None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_token:
            self.session.headers.update({"apikey": api_token})

    def _request(self, method: str, path: str, **params):
        resp = self.session.request(
            method,
            f"{self.base_url}{path}",
            params={k: v for k, v in params.items() if v is not None},
            timeout=self.timeout,
        )
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail", resp.text)
            except ValueError:
                detail = resp.text
            raise ApiError(resp.status_code, str(detail))
        return resp.json()

    def health(self) -> dict:
        return self._request("GET", "/health")

    def create_student(self, name: str, email: str, personal_id: Optional[str] = None) -> str:
        return self._request(
            "POST", "/students", name=name, email=email, personal_id=personal_id
        )["id"]

    def create_training(
        self,
        student_id: str,
        name: str,
        notes: Optional[str] = None,
        active: bool = True,
    ) -> str:
        return self._request(
            "POST",
            f"/students/{student_id}/trainings",
            name=name,
            notes=notes,
            active=active,
        )["id"]

    def add_exercise(
        self,
        training_id: str,
        name: str,
        sets: int,
        reps: str,
        rest: Optional[str] = None,
        notes: Optional[str] = None,
        demo_video_url: Optional[str] = None,
        position: Optional[int] = None,
    ) -> str:
        return self._request(
            "POST",
            f"/trainings/{training_id}/exercises",
            name=name,
            sets=sets,
            reps=reps,
            rest=rest,
            notes=notes,
            demo_video_url=demo_video_url,
            position=position,
        )["id"]

    def active_training(self, student_id: str, training_id: Optional[str] = None) -> dict:
        return self._request(
            "GET", f"/students/{student_id}/trainings/active", training_id=training_id
        )

    def create_session(self, training_id: str, student_id: str, started_at: str) -> str:
        return self._request(
            "POST",
            "/workout_sessions",
            training_id=training_id,
            student_id=student_id,
            started_at=started_at,
        )["id"]

    def add_set(
        self,
        session_id: str,
        exercise_id: str,
        set_number: int,
        reps: int,
        load: float,
        note: Optional[str] = None,
    ) -> str:
        return self._request(
            "POST",
            f"/workout_sessions/{session_id}/sets",
            exercise_id=exercise_id,
            set_number=set_number,
            reps=reps,
            load=load,
            note=note,
        )["id"]

    def finish_session(
        self,
        session_id: str,
        duration_minutes: int,
        ended_at: str,
        notes: Optional[str] = None,
    ) -> None:
        self._request(
            "PUT",
            f"/workout_sessions/{session_id}/finish",
            duration_minutes=duration_minutes,
            ended_at=ended_at,
            notes=notes,
        )

    def session_history(self, student_id: str, limit: Optional[int] = None) -> list:
        return self._request(
            "GET", f"/students/{student_id}/workout_sessions", limit=limit
        )
