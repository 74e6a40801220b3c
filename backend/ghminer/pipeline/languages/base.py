"""
Per-language file classification and test detection.

A profile answers four questions about a repository written in one language:
is this path source, is it a test, does this line declare a test case, does
it assert. Comments are stripped before any line is counted or matched.
"""

import re
from abc import ABC, abstractmethod
from typing import Iterable, Pattern, Sequence, Tuple


def _compile(patterns: Iterable[str], flags: int = 0) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, flags) for p in patterns)


# Test-file conventions shared by most ecosystems
SUFFIX_TEST = r"\.(test|spec)\."
DIR_TEST = r"(^|/)tests?/"
PREFIX_TEST = r"(^|/)test_[^/]*$"


class LanguageProfile(ABC):
    name: str = ""
    extensions: Sequence[str] = ()
    # Extensions a test file may have; defaults to ``extensions``
    test_extensions: Sequence[str] = ()
    test_file_patterns: Tuple[Pattern, ...] = ()
    test_case_patterns: Tuple[Pattern, ...] = ()
    assertion_patterns: Tuple[Pattern, ...] = ()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    def _has_extension(self, path: str, extensions: Sequence[str]) -> bool:
        lowered = path.lower()
        return any(lowered.endswith("." + ext) for ext in extensions)

    def is_test_file(self, path: str) -> bool:
        if not self._has_extension(path, self.test_extensions or self.extensions):
            return False
        return any(p.search(path) for p in self.test_file_patterns)

    def is_source_file(self, path: str) -> bool:
        return self._has_extension(path, self.extensions) and not self.is_test_file(path)

    def is_test_case_declaration(self, line: str) -> bool:
        return any(p.search(line) for p in self.test_case_patterns)

    def is_assertion(self, line: str) -> bool:
        return any(p.search(line) for p in self.assertion_patterns)

    @abstractmethod
    def strip_comments(self, text: str) -> str:
        ...

    # Counting helpers, all on already stripped text

    @staticmethod
    def count_lines(text: str) -> int:
        return sum(1 for line in text.splitlines() if line.strip())

    def count_test_cases(self, text: str) -> int:
        return sum(1 for line in text.splitlines() if self.is_test_case_declaration(line))

    def count_assertions(self, text: str) -> int:
        return sum(1 for line in text.splitlines() if self.is_assertion(line))
