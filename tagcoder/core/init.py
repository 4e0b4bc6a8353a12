# tagcoder/core/init.py
"""
项目初始化与模板渲染模块
"""
import re
from pathlib import Path
from typing import Iterable, Optional

import jinja2

from tagflow.core.models import File

from .config import Config, from_dict

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


def safe_project_id(name: str) -> str:
    """目录名转换为存储可接受的项目 ID"""
    cleaned = re.sub(r"[^A-Za-z0-9_.-]+", "-", name).strip("-.")
    return cleaned or "default"


def _create_env() -> jinja2.Environment:
    loader = jinja2.FileSystemLoader(str(TEMPLATE_DIR))
    return jinja2.Environment(loader=loader, autoescape=False, trim_blocks=True, lstrip_blocks=True,
                              keep_trailing_newline=True)


def render_template(name: str, **values) -> str:
    """渲染内置模板"""
    try:
        template = _create_env().get_template(name)
    except jinja2.TemplateNotFound:
        raise FileNotFoundError(f"Template not found: {TEMPLATE_DIR / name}")
    return template.render(**values)


def render_config(project_id: Optional[str] = None, **overrides) -> str:
    """Render ``config.yaml`` for a new project, defaults filled in."""
    if project_id is None:
        project_id = safe_project_id(Path(".").resolve().name)
    config: Config = from_dict({"project_id": project_id})
    values = {
        "project_id": config.project_id,
        "namespace": config.namespace,
        "install_commands": config.install_commands,
        "chunk_size": config.chunk_size,
        "storage_dir": config.storage_dir,
        "log_level": config.log_level,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return render_template("config.yaml.j2", **values)


def render_protocol_prompt(config: Config, files: Iterable[File] = (), plan: bool = True) -> str:
    """Render the tag protocol instructions handed to the model."""
    return render_template(
        "protocol.md.j2",
        ns=config.namespace,
        project_id=config.project_id,
        files=list(files),
        plan=plan,
    ).strip() + "\n"
