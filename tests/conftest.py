"""Shared fixtures: fake ccusage executables written as shell scripts."""

import json
import logging
from datetime import timedelta

import pytest

from dailyuse.parser import today_string
from dailyuse.schemas import local_now


SCRIPT = """#!/bin/sh
n=$(cat "{count_file}" 2>/dev/null || echo 0)
n=$((n + 1))
echo "$n" > "{count_file}"
if [ "$n" -le {failures} ]; then
  echo "transient failure $n" >&2
  exit 1
fi
{sleep}
cat "{payload_file}"
exit {exit_code}
"""


class FakeTool:
    """A generated ccusage stand-in and the file counting its invocations."""

    def __init__(self, path, count_file):
        self.path = str(path)
        self._count_file = count_file

    @property
    def calls(self) -> int:
        if not self._count_file.exists():
            return 0
        return int(self._count_file.read_text().strip() or 0)


@pytest.fixture(autouse=True)
def _quiet_logs():
    logging.getLogger("dailyuse").setLevel(logging.CRITICAL)
    yield
    logging.getLogger("dailyuse").setLevel(logging.NOTSET)


@pytest.fixture
def usage_payload():
    """Build a ccusage JSON document. ``days`` maps offsets from today to (tokens, cost)."""
    def _build(days=None, raw_daily=None):
        daily = raw_daily if raw_daily is not None else []
        for offset, (tokens, cost) in (days or {}).items():
            date = today_string(local_now() + timedelta(days=offset))
            daily.append({"date": date, "totalTokens": tokens, "totalCost": cost})
        return json.dumps({
            "daily": daily,
            "totals": {
                "totalTokens": sum(d["totalTokens"] for d in daily),
                "totalCost": sum(d["totalCost"] for d in daily),
            },
        })
    return _build


@pytest.fixture
def make_tool(tmp_path):
    """Write an executable that prints a payload, optionally failing first."""
    counter = {"n": 0}

    def _make(payload="{}", exit_code=0, failures=0, sleep=0, name="ccusage"):
        counter["n"] += 1
        workdir = tmp_path / f"tool{counter['n']}"
        workdir.mkdir()
        payload_file = workdir / "payload.json"
        payload_file.write_text(payload)
        count_file = workdir / "calls"
        path = workdir / name
        path.write_text(SCRIPT.format(
            count_file=count_file,
            failures=failures,
            sleep=f"exec sleep {sleep}" if sleep else "",
            payload_file=payload_file,
            exit_code=exit_code,
        ))
        path.chmod(0o755)
        return FakeTool(path, count_file)

    return _make
