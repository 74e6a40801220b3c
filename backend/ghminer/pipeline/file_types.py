"""
Coarse file classification for diff statistics.

Paths are mapped to programming, markup, prose or data by extension (and a few
well-known file names). Documentation files are markup and prose; anything
unknown counts as data.
"""

import os
from enum import Enum
from threading import Lock
from typing import Dict


class FileType(str, Enum):
    PROGRAMMING = "programming"
    MARKUP = "markup"
    PROSE = "prose"
    DATA = "data"


PROGRAMMING_EXTENSIONS = {
    "c", "cc", "cpp", "cxx", "h", "hh", "hpp", "hxx", "m", "mm",
    "cs", "fs", "vb",
    "java", "kt", "kts", "scala", "groovy", "gradle", "clj",
    "js", "jsx", "mjs", "cjs", "ts", "tsx", "coffee", "vue", "svelte",
    "py", "pyx", "rb", "rake", "php", "pl", "pm", "lua", "r", "jl",
    "go", "rs", "swift", "dart", "ex", "exs", "erl", "hrl", "hs", "ml", "elm",
    "sh", "bash", "zsh", "fish", "ps1", "bat", "cmd",
    "sql", "css", "scss", "sass", "less",
}
MARKUP_EXTENSIONS = {"html", "htm", "xhtml", "haml", "erb", "jinja", "j2", "hbs", "mustache", "tex"}
PROSE_EXTENSIONS = {"md", "markdown", "mdx", "rst", "txt", "adoc", "asciidoc", "textile", "rdoc", "org"}
PROGRAMMING_FILENAMES = {"makefile", "rakefile", "gemfile", "dockerfile", "vagrantfile", "jenkinsfile"}
PROSE_FILENAMES = {"readme", "license", "changelog", "authors", "contributors", "copying", "notice"}


def classify(path: str) -> FileType:
    name = os.path.basename(path).lower()
    stem, ext = os.path.splitext(name)
    ext = ext.lstrip(".")

    if name in PROGRAMMING_FILENAMES:
        return FileType.PROGRAMMING
    if ext in PROGRAMMING_EXTENSIONS:
        return FileType.PROGRAMMING
    if ext in MARKUP_EXTENSIONS:
        return FileType.MARKUP
    if ext in PROSE_EXTENSIONS or (not ext and stem in PROSE_FILENAMES):
        return FileType.PROSE
    return FileType.DATA


def is_doc(file_type: FileType) -> bool:
    return file_type in (FileType.MARKUP, FileType.PROSE)


class FileTypeCache:
    """Per-extraction memo of path classifications."""

    def __init__(self) -> None:
        self._types: Dict[str, FileType] = {}
        self._lock = Lock()

    def classify(self, path: str) -> FileType:
        with self._lock:
            cached = self._types.get(path)
            if cached is None:
                cached = self._types[path] = classify(path)
            return cached

    def __len__(self) -> int:
        return len(self._types)
