import argparse
import asyncio
import logging
import shutil
from typing import Callable, Optional

from client import CoachClient
from db import SettingsRepository, WorkoutSessionRepository
from errors import InvalidState, LoadError, NotFound, PersistenceError
from seed_sample_data import seed
from session_clock import SessionClock, format_elapsed
from set_ledger import SetLedger
from snapshot_loader import TrainingSnapshotLoader, recent_corrections
from workout_engine import ProgressionStateMachine, WorkoutStatus
from workout_schema import WorkoutSession
from workout_store import (
    MemoryWorkoutStore,
    RemoteWorkoutStore,
    SQLiteWorkoutStore,
    WorkoutStore,
)

HELP = (
    "commands: set REPS [LOAD] [NOTE...] | + / - (reps) | up / down (load) | "
    "next | pause | finish [NOTE...] | quit"
)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def print_history(db_path: str, student_id: str, limit: Optional[int] = None) -> None:
    sessions = WorkoutSessionRepository(db_path)
    for _sid, name, started, _ended, duration, finished in sessions.fetch_for_student(
        student_id, limit
    ):
        state = f"{duration} min" if finished else "unfinished"
        print(f"{started}  {name}  {state}")


def _describe(workout: ProgressionStateMachine, out: Callable[[str], None]) -> None:
    ex = workout.current_exercise
    progress = workout.progress()
    out(
        f"[{progress.formatted_time}{' paused' if progress.paused else ''}] "
        f"exercise {workout.cursor + 1}/{progress.exercise_count}: {ex.name} "
        f"{progress.logged_counts[ex.id]}/{ex.target_sets} sets of {ex.target_reps}"
        + (f", rest {ex.rest}" if ex.rest else "")
    )
    for logged in workout.logged_sets(ex.id):
        out(f"  set {logged.set_number}: {logged.reps} reps x {logged.load}")
    if progress.logged_counts[ex.id] < ex.target_sets:
        draft = workout.draft
        out(f"  next: set {draft.set_number}, {draft.reps} reps x {draft.load}")


async def dry_run_store(
    source: WorkoutStore, student_id: str, training_id: Optional[str] = None
) -> MemoryWorkoutStore:
    snapshot = await TrainingSnapshotLoader(source).load(student_id, training_id)
    store = MemoryWorkoutStore()
    store.add_training(student_id, snapshot)
    return store


async def run_workout(
    store: WorkoutStore,
    student_id: str,
    training_id: Optional[str] = None,
    clock_interval: float = 1.0,
    corrections_shown: int = 3,
    rep_increment: int = 1,
    load_increment: float = 2.5,
    dry_run: bool = False,
    prompt: Callable[[str], str] = input,
    out: Callable[[str], None] = print,
) -> Optional[WorkoutSession]:
    """Run a workout in the terminal; return the finished session, if any.

    With ``dry_run`` the training is read from ``store`` but the session and
    its sets only go to memory.
    """
    if dry_run:
        store = await dry_run_store(store, student_id, training_id)
    async with await ProgressionStateMachine.load(
        store,
        student_id,
        training_id,
        clock=SessionClock(clock_interval),
        ledger=SetLedger(store, rep_increment, load_increment),
    ) as workout:
        out(workout.snapshot.name)
        if workout.snapshot.notes:
            out(workout.snapshot.notes)
        for idx, ex in enumerate(workout.snapshot.exercises, start=1):
            out(f"{idx}. {ex.name} ({ex.target_sets} sets)")
            for correction in recent_corrections(ex, corrections_shown):
                out(f"   [{correction.kind}] {correction.content or correction.file_url}")
        answer = await asyncio.to_thread(prompt, "start workout? [y/N] ")
        if answer.strip().lower() not in {"y", "yes"}:
            return None
        await workout.start()
        out(HELP)
        while workout.status is WorkoutStatus.ACTIVE:
            _describe(workout, out)
            line = await asyncio.to_thread(prompt, "> ")
            cmd, *args = line.split() or [""]
            try:
                if cmd == "set":
                    draft = workout.draft.model_copy()
                    if args:
                        draft.reps = int(args[0])
                    if len(args) > 1:
                        draft.load = float(args[1])
                    draft.note = " ".join(args[2:]) or None
                    await workout.confirm_set(workout.current_exercise.id, draft)
                elif cmd in {"+", "-"}:
                    workout.adjust_draft(reps_steps=1 if cmd == "+" else -1)
                elif cmd in {"up", "down"}:
                    workout.adjust_draft(load_steps=1 if cmd == "up" else -1)
                elif cmd == "next":
                    await workout.advance()
                elif cmd == "pause":
                    if workout.clock.paused:
                        workout.resume()
                    else:
                        workout.pause()
                elif cmd == "finish":
                    session = await workout.finish(" ".join(args) or None)
                    out(f"workout finished in {format_elapsed(workout.clock.elapsed())}")
                    return session
                elif cmd == "quit":
                    out("leaving workout; logged sets are kept")
                    return None
                else:
                    out(HELP)
            except (InvalidState, PersistenceError, ValueError) as e:
                out(f"error: {e}")
    return None


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--db", default="coach.db")
    srv.add_argument("--yaml", default="settings.yaml")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="coach.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="coach.db")

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="coach.db")
    demo.add_argument("--yaml", default="settings.yaml")

    hist = sub.add_parser("history")
    hist.add_argument("--db", default="coach.db")
    hist.add_argument("--student", required=True)
    hist.add_argument("--limit", type=int, default=None)

    wk = sub.add_parser("workout")
    wk.add_argument("--db", default="coach.db")
    wk.add_argument("--yaml", default="settings.yaml")
    wk.add_argument("--student", required=True)
    wk.add_argument("--training", default=None)
    wk.add_argument("--remote", action="store_true", help="use the API at api_base_url")
    wk.add_argument(
        "--dry-run", action="store_true", help="keep the session in memory only"
    )

    args = parser.parse_args()

    yaml_path = getattr(args, "yaml", "settings.yaml")
    db_path = getattr(args, "db", "coach.db")
    settings = SettingsRepository(db_path, yaml_path)
    logging.basicConfig(
        level=settings.get_text("log_level", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "serve":
        import uvicorn
        from rest_api import CoachAPI

        uvicorn.run(CoachAPI(args.db, args.yaml).app, host=args.host, port=args.port)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "demo":
        seed(args.db, args.yaml)
    elif args.cmd == "history":
        print_history(args.db, args.student, args.limit)
    elif args.cmd == "workout":
        if args.remote:
            store = RemoteWorkoutStore(
                CoachClient(
                    settings.get_text("api_base_url", "http://localhost:8000"),
                    settings.get_float("request_timeout", 10.0),
                    settings.get_text("api_token", "") or None,
                )
            )
        else:
            store = SQLiteWorkoutStore(args.db)
        try:
            asyncio.run(
                run_workout(
                    store,
                    args.student,
                    args.training,
                    settings.get_float("clock_interval", 1.0),
                    settings.get_int("corrections_shown", 3),
                    settings.get_int("rep_increment", 1),
                    settings.get_float("load_increment", 2.5),
                    args.dry_run,
                )
            )
        except (NotFound, LoadError) as e:
            parser.exit(1, f"error: {e}\n")


if __name__ == "__main__":
    main()
