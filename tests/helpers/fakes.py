from __future__ import annotations

from typing import List, Tuple


class DummyLogger:
    def info(self, *_a, **_k): ...
    def warning(self, *_a, **_k): ...
    def error(self, *_a, **_k): ...


class RecordingLogger:
    def __init__(self) -> None:
        self.records: List[Tuple[str, str]] = []

    def info(self, msg, *_a, **_k) -> None:  # noqa: ANN001
        self.records.append(("info", str(msg)))

    def warning(self, msg, *_a, **_k) -> None:  # noqa: ANN001
        self.records.append(("warning", str(msg)))

    def error(self, msg, *_a, **_k) -> None:  # noqa: ANN001
        self.records.append(("error", str(msg)))

    def messages(self, level: str) -> List[str]:
        return [m for lvl, m in self.records if lvl == level]


class FakeClock:
    def __init__(self, start: int = 0):
        self._n = int(start)

    def __call__(self) -> str:
        self._n += 1
        return f"2024-01-01T00:00:{self._n:02d}Z"
