from ghminer.pipeline.languages.base import DIR_TEST, LanguageProfile, _compile
from ghminer.pipeline.languages.comments import strip_python_comments, strip_ruby_comments


class PythonProfile(LanguageProfile):
    name = "Python"
    extensions = ("py",)
    test_file_patterns = _compile([DIR_TEST, r"(^|/)test_[^/]*\.py$", r"_test\.py$", r"(^|/)conftest\.py$"])
    test_case_patterns = _compile([r"^\s*(async\s+)?def\s+test\w*\s*\("])
    assertion_patterns = _compile([r"^\s*assert\b", r"\bself\.assert\w+\s*\(", r"\bpytest\.raises\s*\("])

    def strip_comments(self, text: str) -> str:
        return strip_python_comments(text)


class RubyProfile(LanguageProfile):
    name = "Ruby"
    extensions = ("rb",)
    test_file_patterns = _compile(
        [r"(^|/)(spec|tests?)/", r"_(spec|test)\.rb$", r"(^|/)test_[^/]*\.rb$"]
    )
    test_case_patterns = _compile(
        [r"^\s*(it|specify|scenario|test|should)\s*[\s(]['\"]", r"^\s*def\s+test_\w+"]
    )
    assertion_patterns = _compile(
        [r"\bassert\w*\b", r"\brefute\w*\b", r"\bexpect\s*[({]", r"\.(should|must)\w*\b"]
    )

    def strip_comments(self, text: str) -> str:
        return strip_ruby_comments(text)
