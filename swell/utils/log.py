import datetime
import json
import traceback
from functools import wraps
from pathlib import Path

PREFIX = "[SWELL]"


class RunLog:
    """Console output for a run, mirrored into the run's log file."""

    def __init__(self, path=None, quiet=False):
        self.path = Path(path) if path else None
        self.quiet = quiet

    def echo(self, msg: str = ""):
        if not self.quiet:
            print(f"{PREFIX} {msg}" if msg else "")
        if self.path is not None:
            with open(self.path, "a", encoding="utf-8") as fh:
                fh.write(f"{msg}\n")

    def warn(self, msg: str):
        self.echo(f"WARNING: {msg}")


class Logger:
    def __init__(self, func=None, *, task_id=None, sink=None):
        self.func = func
        self.task_id = task_id
        self.sink = sink
        self.logs = []
        if func is not None:
            wraps(func)(self)

    def __call__(self, *args, **kwargs):
        task_info = f" ▶ {self.task_id}" if self.task_id is not None else ""

        start_ts = self.timestamp()
        start_time = datetime.datetime.now()

        print(f"[{start_ts}]{task_info} ▶ {self.func.__name__} START")
        try:
            result = self.func(*args, **kwargs)
            end_time = datetime.datetime.now()
            end_ts = end_time.strftime("%Y-%m-%d %H:%M:%S")
            duration = (end_time - start_time).total_seconds()
            print(f"[{end_ts}]{task_info} ▶ {self.func.__name__} END (Process Time : {duration:.4f}s)")
            self.save_log(start_ts, end_ts, duration)
            return result
        except Exception as e:
            error_time = datetime.datetime.now()
            error_ts = error_time.strftime("%Y-%m-%d %H:%M:%S")
            duration = (error_time - start_time).total_seconds()

            print(f"[{error_ts}]{task_info} ▶ {self.func.__name__} ERROR (Process Time : {duration:.4f}s Log : {e})")

            tb = traceback.format_exc()
            self.save_log(start_ts, error_ts, duration, error=str(e), traceback=tb)
            raise

    def timestamp(self) -> str:
        return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def save_log(self, start_ts, end_ts, duration, error=None, traceback=None):
        entry = {
            "task_id": self.task_id,
            "function": self.func.__name__ if self.func else None,
            "start_time": start_ts,
            "end_time": end_ts,
            "duration_sec": duration,
            "error": error,
            "traceback": traceback,
        }
        self.logs.append(entry)
        if self.sink is not None:
            self.save_logs_to_file(self.sink, records=[entry])

    def save_logs_to_file(self, path, mode: str = "a", records=None):
        with open(path, mode, encoding="utf-8") as f:
            for rec in (records if records is not None else self.logs):
                f.write(json.dumps(rec, ensure_ascii=False) + "\n")
