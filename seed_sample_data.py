from typing import Optional

from rest_api import CoachAPI


def seed(db_path: str = "coach.db", yaml_path: str = "settings.yaml") -> Optional[str]:
    """Insert a demo student with an active training; return the student id."""
    api = CoachAPI(db_path=db_path, yaml_path=yaml_path)
    if api.students.fetch_all_students():
        print("Database already contains students")
        return None

    personal_id = "demo-personal"
    sid = api.students.add("Ana Souza", "ana@example.com", personal_id)
    tid = api.trainings.create(sid, "Upper body A", "Warm up 10 minutes before starting")
    bench = api.exercises.add(tid, "Bench Press", 3, "8-12", "90s", "Control the descent")
    api.exercises.add(tid, "Bent-over Row", 3, "10", "60s")
    api.exercises.add(tid, "Plank", 2, "45s", "30s", "Keep hips level")
    video = api.videos.add(sid, bench, "https://videos.example.com/ana-bench.mp4")
    api.corrections.add(video, personal_id, "text", "Keep your shoulder blades retracted")
    print(f"Seed data inserted for student {sid}")
    return sid


if __name__ == "__main__":
    seed()
