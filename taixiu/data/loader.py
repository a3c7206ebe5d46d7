import csv
import json
from pathlib import Path
from typing import Iterator, List, Mapping, Optional

from taixiu.core.types import Round
from taixiu.data.ingest import extract_rows, shape_history


class CsvRowReader:
    def __init__(self, path: str, limit: Optional[int] = None) -> None:
        self._path = path
        self._limit = limit

    def __iter__(self) -> Iterator[Mapping[str, str]]:
        with open(self._path, "r", newline="", encoding="utf-8") as handle:
            reader = csv.DictReader(handle)
            count = 0
            for row in reader:
                yield {k: v for k, v in row.items() if v not in (None, "")}
                count += 1
                if self._limit is not None and count >= self._limit:
                    break


def load_history(path: Path, midpoint: float = 10.5, limit: Optional[int] = None) -> List[Round]:
    """Read rounds from a JSON (list or wrapped object) or CSV file."""
    if path.suffix.lower() == ".csv":
        rows = list(CsvRowReader(str(path), limit))
    else:
        with open(path, "r", encoding="utf-8") as f:
            rows = extract_rows(json.load(f))
        if limit is not None:
            rows = rows[:limit]
    return shape_history(rows, midpoint)
