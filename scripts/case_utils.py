"""Helpers for loading plan cases and writing run artifacts."""

import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from glob import glob, has_magic
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

CaseEntry = Tuple[Path, Dict[str, Any]]


def load_case(path: Path) -> Dict[str, Any]:
    """Read one case file. A case is a JSON object carrying at least ``plan``."""
    case = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(case, dict):
        raise ValueError(f"{path}: case must be a JSON object")
    if "plan" not in case:
        raise ValueError(f"{path}: case has no 'plan' key")
    return case


def _candidate_paths(case_pattern: str) -> Iterable[Path]:
    if not has_magic(case_pattern):
        path = Path(case_pattern)
        if not path.is_file():
            raise FileNotFoundError(f"Case file not found: {case_pattern}")
        return [path]
    return (Path(p) for p in sorted(glob(case_pattern, recursive=True)))


def resolve_cases(case_pattern: str) -> List[CaseEntry]:
    """Expand a file path or glob (``**`` allowed) into loaded cases, sorted by path.

    With a glob, unreadable or invalid files are reported and skipped; a single
    explicit path fails loudly instead.
    """
    explicit = not has_magic(case_pattern)
    cases: List[CaseEntry] = []
    for path in _candidate_paths(case_pattern):
        if path.suffix != ".json":
            continue
        try:
            cases.append((path, load_case(path)))
        except (OSError, ValueError) as e:
            if explicit:
                raise
            print(f"Warning: skipping {path}: {e}")

    if not cases:
        raise FileNotFoundError(f"No plan cases found for: {case_pattern}")
    return cases


def get_case_id(case_path: Path, case_data: Dict[str, Any]) -> str:
    return case_data.get("case_id") or case_path.stem


def json_default(o: Any):
    if isinstance(o, (datetime, date)):
        return o.isoformat()

    # Result dataclasses expose their wire form
    to_dict = getattr(o, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if is_dataclass(o) and not isinstance(o, type):
        return asdict(o)

    # Pydantic v2 models
    dump = getattr(o, "model_dump", None)
    if callable(dump):
        return dump(by_alias=True)

    return str(o)


def write_artifact(base_dir: Path, run_id: str, case_id: str, name: str, payload: Any) -> Path:
    out_dir = base_dir / run_id / case_id
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{name}.json"
    out_path.write_text(
        json.dumps(payload, indent=2, ensure_ascii=False, default=json_default),
        encoding="utf-8",
    )
    return out_path
