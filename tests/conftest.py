import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def isolate_weather_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # A developer .env must not leak store or climate overrides into tests.
    for name in list(os.environ):
        if name.startswith("VW_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def disable_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("time.sleep", lambda *_args, **_kwargs: None)
