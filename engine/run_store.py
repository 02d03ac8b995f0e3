import os, json
import logging
from datetime import datetime, timezone

_log = logging.getLogger(__name__)

RUN_PREFIX = "run-"


def _run_sort_key(fname):
    # run-20260101-120000-2.json → ("20260101-120000", 2)
    parts = fname[len(RUN_PREFIX):-len(".json")].split("-")
    counter = int(parts[2]) if len(parts) > 2 and parts[2].isdigit() else 0
    return "-".join(parts[:2]), counter


def _run_files(out_root):
    if not out_root or not os.path.isdir(out_root):
        return []
    return sorted(
        (f for f in os.listdir(out_root)
         if f.startswith(RUN_PREFIX) and f.endswith(".json")),
        key=_run_sort_key,
    )


def save_run(out_root, payload):
    """Write *payload* as ``run-YYYYmmdd-HHMMSS.json`` under *out_root*; returns the path."""
    os.makedirs(out_root, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    file = os.path.join(out_root, f"{RUN_PREFIX}{ts}.json")
    n = 1
    while os.path.exists(file):
        file = os.path.join(out_root, f"{RUN_PREFIX}{ts}-{n}.json")
        n += 1

    with open(file, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    return file


def get_last_run(out_root):
    files = _run_files(out_root)
    if not files:
        return None
    return os.path.join(out_root, files[-1])


def get_last_run_data(out_root):
    """Return (path, parsed_dict) for the most recent readable run, or (None, None).

    Truncated or corrupt run files are skipped with a warning.
    """
    for fname in reversed(_run_files(out_root)):
        path = os.path.join(out_root, fname)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            _log.warning("Skipping unreadable run %s: %s", path, e)
            continue
        if isinstance(data, dict):
            return path, data
        _log.warning("Skipping run %s: not a JSON object", path)
    return None, None


def list_runs(out_root):
    """Return a list of (path, summary_dict) for all runs, oldest first.

    Unreadable files are skipped.
    """
    runs = []
    for fname in _run_files(out_root):
        fpath = os.path.join(out_root, fname)
        try:
            with open(fpath, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError):
            continue
        if isinstance(data, dict):
            runs.append((fpath, data.get("summary") or {}))
    return runs
