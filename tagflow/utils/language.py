# tagflow/utils/language.py
"""根据文件扩展名推断编辑器语言标识"""

from pathlib import PurePosixPath

LANGUAGES = {
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "css",
    ".json": "json",
    ".md": "markdown",
    ".markdown": "markdown",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".sh": "shell",
    ".sql": "sql",
}

DEFAULT_LANGUAGE = "plaintext"


def language_for(filename: str) -> str:
    """Return the language id for ``filename`` (case-insensitive extension)."""
    suffix = PurePosixPath(filename).suffix.lower()
    return LANGUAGES.get(suffix, DEFAULT_LANGUAGE)
