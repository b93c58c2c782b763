"""测试配置文件。

提供测试所需的fixtures和配置。
外部程序用当前 Python 解释器代替，调度器测试使用假的执行器。
"""

import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

import pytest
from PIL import Image

from py_magick_batch_mcp.core.binary import BinaryLocator
from py_magick_batch_mcp.core.executor import ProcessExecutor
from py_magick_batch_mcp.exceptions import ExecutionError
from py_magick_batch_mcp.models.constants import BinaryDefaults
from py_magick_batch_mcp.models.execution import ExecutionConfig, ExecutionOutcome


def py(code: str) -> list[str]:
    """生成用 Python 解释器执行一段代码的参数"""
    return ["-c", code]


class FakeExecutor:
    """记录调用和并发数的假执行器

    参数列表的第一个元素作为条目标识，命中 fail_on 时抛出 ExecutionError。
    """

    def __init__(
        self,
        fail_on: Sequence[str] = (),
        delay: float = 0.01,
        delays: dict[str, float] | None = None,
    ):
        self.fail_on = set(fail_on)
        self.delay = delay
        self.delays = delays or {}
        self.calls: list[tuple[str, ...]] = []
        self.configs: list[ExecutionConfig | None] = []
        self.events: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def execute(
        self, tokens: Sequence[str], config: ExecutionConfig | None = None
    ) -> ExecutionOutcome:
        key = tokens[0]
        self.calls.append(tuple(tokens))
        self.configs.append(config)
        self.events.append(("start", key))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(key, self.delay))
            if key in self.fail_on:
                raise ExecutionError(
                    f"命令失败: {key}", "magick", list(tokens), 1, "bad input", ""
                )
            return ExecutionOutcome(exit_code=0, stdout=key)
        finally:
            self.in_flight -= 1
            self.events.append(("end", key))


@pytest.fixture
def python_locator() -> BinaryLocator:
    """指向当前 Python 解释器的定位器"""
    return BinaryLocator(custom_path=sys.executable)


@pytest.fixture
def no_system_magick(monkeypatch):
    """屏蔽常见安装目录，避免测试机上的 ImageMagick 干扰查找结果"""
    monkeypatch.setattr(BinaryDefaults, "COMMON_PATHS", {})


@pytest.fixture
def executor(python_locator: BinaryLocator) -> ProcessExecutor:
    return ProcessExecutor(locator=python_locator)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def sample_images(tmp_path: Path) -> list[Path]:
    """生成几张小图片"""
    images_dir = tmp_path / "images"
    (images_dir / "nested").mkdir(parents=True)

    paths = [
        images_dir / "b.png",
        images_dir / "a.jpg",
        images_dir / "nested" / "c.webp",
    ]
    for i, path in enumerate(paths):
        Image.new("RGB", (20 + i, 20), color=(i * 60, 80, 160)).save(path)

    (images_dir / "notes.txt").write_text("not an image")
    return paths
