# tests/test_config.py
"""
配置加载与模板渲染测试
"""

import pytest
import yaml

from tagflow.core.models import File
from tagcoder.core.config import CONFIG_ENV, CONFIG_FILE, ConfigError, from_dict, load_config
from tagcoder.core.init import render_config, render_protocol_prompt, render_template, safe_project_id


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "nope.yaml")
    assert config.project_id == "default"
    assert config.namespace == "ns"
    assert config.install_commands is True
    assert config.chunk_size == 64
    assert config.storage_dir == ".tagcoder/store"
    assert config.log_level == "WARNING"
    assert config.source is None


def test_partial_file_is_merged_over_defaults(tmp_path):
    path = write_yaml(tmp_path / "c.yaml", {"project_id": "demo", "protocol": {"namespace": "ai"}})
    config = load_config(path)
    assert config.project_id == "demo"
    assert config.namespace == "ai"
    assert config.install_commands is True
    assert config.source == path


def test_environment_variable_selects_file(tmp_path, monkeypatch):
    path = write_yaml(tmp_path / "env.yaml", {"logging": {"level": "debug"}})
    monkeypatch.setenv(CONFIG_ENV, str(path))
    assert load_config().log_level == "DEBUG"


@pytest.mark.parametrize("data", [
    {"stream": {"chunk_size": 0}},
    {"stream": {"chunk_size": "big"}},
    {"stream": {"chunk_size": True}},
    {"protocol": {"install_commands": "yes"}},
    {"logging": {"level": "LOUD"}},
    {"storage": "elsewhere"},
    {"protocol": {"namespace": "Bad"}},
    {"protocol": {"namespace": "ai-tags"}},
])
def test_invalid_values(data):
    with pytest.raises(ConfigError):
        from_dict(data)


def test_non_mapping_file(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_broken_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("protocol: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_rendered_config_loads_back():
    text = render_config(project_id="demo")
    assert from_dict(yaml.safe_load(text)).to_dict() == from_dict({"project_id": "demo"}).to_dict()


def test_rendered_config_overrides():
    data = yaml.safe_load(render_config(project_id="demo", namespace="ai", chunk_size=None))
    assert data["protocol"]["namespace"] == "ai"
    assert data["stream"]["chunk_size"] == 64


@pytest.mark.parametrize("name, expected", [
    ("my project", "my-project"),
    ("ok_name.1", "ok_name.1"),
    ("..", "default"),
])
def test_safe_project_id(name, expected):
    assert safe_project_id(name) == expected


def test_protocol_prompt_uses_namespace_and_files():
    config = from_dict({"project_id": "demo", "protocol": {"namespace": "ai"}})
    text = render_protocol_prompt(config, [File("src/app.ts", "")])
    assert '<ai-file name="path/to/file.ext">' in text
    assert "<ai-plan" in text
    assert "- src/app.ts (typescript)" in text
    assert "<ns-" not in text


def test_protocol_prompt_without_plan():
    text = render_protocol_prompt(from_dict({}), plan=False)
    assert "<ns-plan" not in text
    assert "Current files" not in text
    assert text.endswith("\n")


def test_missing_template():
    with pytest.raises(FileNotFoundError):
        render_template("nope.j2")


def test_default_location(isolated_filesystem, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    (isolated_filesystem / ".tagcoder").mkdir()
    (isolated_filesystem / ".tagcoder" / "config.yaml").write_text("project_id: here\n", encoding="utf-8")
    config = load_config()
    assert config.project_id == "here"
    assert config.source == CONFIG_FILE
