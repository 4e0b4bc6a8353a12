# tests/conftest.py
"""
TagCoder 测试配置和共享 fixtures
"""

import os
import tempfile
from pathlib import Path

import pytest

from tagflow.core.models import File
from tagflow.storage.memory_store import MemoryTurnStore


@pytest.fixture(scope="function")
def isolated_filesystem():
    """
    提供一个隔离的临时文件系统。
    在测试前后自动创建和清理临时目录，并切换当前工作目录。
    """
    with tempfile.TemporaryDirectory() as temp_dir:
        temp_path = Path(temp_dir)
        original_cwd = os.getcwd()
        os.chdir(temp_path)
        yield temp_path
        os.chdir(original_cwd)


@pytest.fixture
def memory_store():
    return MemoryTurnStore()


@pytest.fixture
def project_files():
    """一个小项目的已提交文件集"""
    return [
        File("README.md", "# Demo\nold\n"),
        File("src/app.ts", "export const answer = 41;\n"),
    ]

