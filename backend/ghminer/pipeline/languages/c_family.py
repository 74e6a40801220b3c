from ghminer.pipeline.languages.base import (
    DIR_TEST,
    PREFIX_TEST,
    SUFFIX_TEST,
    LanguageProfile,
    _compile,
)
from ghminer.pipeline.languages.comments import strip_c_style_comments


class CppProfile(LanguageProfile):
    name = "C++"
    extensions = ("cpp", "cxx", "cc", "h", "hpp")
    test_extensions = ("cpp", "cxx", "cc")
    test_file_patterns = _compile([SUFFIX_TEST, DIR_TEST, PREFIX_TEST, r"_test\.(cpp|cxx|cc)$"])
    test_case_patterns = _compile([r"^\s*(TEST|TEST_F|TEST_P|TEST_CASE)\s*\("])
    assertion_patterns = _compile(
        [
            r"(ASSERT|EXPECT)_(TRUE|FALSE|EQ|NE|LT|GT|LE|GE|STREQ|STRNE)\s*\(",
            r"\b(REQUIRE|CHECK)\s*\(",
        ]
    )

    def strip_comments(self, text: str) -> str:
        return strip_c_style_comments(text)


class CSharpProfile(LanguageProfile):
    name = "C#"
    extensions = ("cs",)
    test_file_patterns = _compile([SUFFIX_TEST, DIR_TEST, PREFIX_TEST, r"Tests?\.cs$", r"\.Tests?/"])
    test_case_patterns = _compile([r"^\s*\[(TestMethod|Test|TestCase|Fact|Theory)\s*[\](]"])
    assertion_patterns = _compile([r"\bAssert\."])

    def strip_comments(self, text: str) -> str:
        return strip_c_style_comments(text)


class JavaProfile(LanguageProfile):
    name = "Java"
    extensions = ("java",)
    test_file_patterns = _compile(
        [DIR_TEST, PREFIX_TEST, r"(^|/)src/test/", r"Tests?\.java$", r"(^|/)Test\w*\.java$"]
    )
    test_case_patterns = _compile([r"^\s*@(Test|ParameterizedTest|RepeatedTest)\b"])
    assertion_patterns = _compile([r"\bassert\w*\s*\(", r"^\s*assert\s", r"\bAssertions\."])

    def strip_comments(self, text: str) -> str:
        return strip_c_style_comments(text)


class GoProfile(LanguageProfile):
    name = "Go"
    extensions = ("go",)
    test_file_patterns = _compile([r"_test\.go$"])
    test_case_patterns = _compile([r"^\s*func\s+(Test|Benchmark|Example|Fuzz)\w*\s*\("])
    assertion_patterns = _compile(
        [r"\bt\.(Error|Errorf|Fatal|Fatalf|Fail|FailNow)\s*\(", r"\b(assert|require)\.\w+\s*\("]
    )

    def strip_comments(self, text: str) -> str:
        return strip_c_style_comments(text)
