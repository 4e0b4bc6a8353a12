"""
统一的控制台输出工具，基于 rich 实现回合状态、历史和差异的展示。

info/success/warning/error/heading 的消息按字面输出，不解析 rich 标记。
"""
import logging
from typing import Iterable, Optional, Sequence

from rich.console import Console as RichConsole
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

CUSTOM_THEME = Theme({
    "info": "cyan bold",
    "success": "green bold",
    "warning": "yellow bold",
    "error": "red bold",
    "heading": "bold underline",
    "path": "magenta",
    "pending": "yellow",
    "added": "green",
    "removed": "red",
    "changed": "yellow",
})

# 全局控制台实例（单例）
console = RichConsole(theme=CUSTOM_THEME, soft_wrap=True)

STATUS_STYLES = {
    "pending": "pending",
    "success": "success",
    "error": "error",
}


def info(message: str):
    console.print(f"[info]INFO[/info]: {escape(message)}")


def success(message: str):
    console.print(f"[success]SUCCESS[/success]: {escape(message)}")


def warning(message: str):
    console.print(f"[warning]WARNING[/warning]: {escape(message)}")


def error(message: str):
    console.print(f"[error]ERROR[/error]: {escape(message)}")


def heading(title: str):
    console.print(f"\n[heading]{escape(title)}[/heading]\n")


def confirm(prompt: str, default: bool = True) -> bool:
    """确认对话（Y/N）"""
    yes_no = "[Y/n]" if default else "[y/N]"
    response = console.input(f"{escape(prompt)} {escape(yes_no)}: ").strip().lower()
    if not response:
        return default
    return response in ("y", "yes")


def print_table(rows: Iterable[Sequence], headers: Sequence[str], title: Optional[str] = None):
    table = Table(title=escape(title) if title else None, show_header=True, header_style="bold magenta")
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*[escape(str(cell)) for cell in row])
    console.print(table)


def styled(text: str, style: str) -> str:
    """返回带样式的字符串（用于拼接）"""
    return f"[{style}]{text}[/]"


def configure_logging(level: str = "WARNING"):
    """Route library loggers through the shared rich console."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
