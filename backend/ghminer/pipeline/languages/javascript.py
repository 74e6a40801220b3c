from ghminer.pipeline.languages.base import (
    DIR_TEST,
    PREFIX_TEST,
    SUFFIX_TEST,
    LanguageProfile,
    _compile,
)
from ghminer.pipeline.languages.comments import strip_c_style_comments


class JavaScriptProfile(LanguageProfile):
    name = "JavaScript"
    extensions = ("js", "jsx", "mjs", "cjs")
    test_file_patterns = _compile([SUFFIX_TEST, DIR_TEST, PREFIX_TEST, r"(^|/)__tests__/", r"(^|/)specs?/"])
    test_case_patterns = _compile([r"^\s*(it|test|describe)\s*\("])
    assertion_patterns = _compile([r"expect\s*\(", r"assert\s*[.(]", r"should\s*\."])

    def strip_comments(self, text: str) -> str:
        return strip_c_style_comments(text)


class TypeScriptProfile(JavaScriptProfile):
    name = "TypeScript"
    extensions = ("ts", "tsx")
