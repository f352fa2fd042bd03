"""Provider 包测试 fixtures"""

import os
import stat
from pathlib import Path

import pytest


@pytest.fixture
def sample_messages() -> list[dict[str, str]]:
    """system + 多轮会话 messages"""
    return [
        {"role": "system", "content": 'Current task: "Plan trip"'},
        {"role": "user", "content": "Task: Plan trip"},
        {"role": "assistant", "content": "Where to?"},
        {"role": "user", "content": "Lisbon"},
    ]


@pytest.fixture
def fake_cli(tmp_path: Path):
    """生成可执行的 shell 脚本，充当 claude CLI"""

    def _make(body: str, name: str = "claude") -> str:
        path = tmp_path / name
        path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return os.fspath(path)

    return _make
