import re

# Quoted literals are matched ahead of comments so comment markers inside
# them survive; only the ``comment`` group is removed.
QUOTED = r'"(?:\\.|[^"\\\n])*"|\'(?:\\.|[^\'\\\n])*\''
TRIPLE_QUOTED = r'"""(?:\\.|[^"\\]|"(?!""))*"""|\'\'\'(?:\\.|[^\'\\]|\'(?!\'\'))*\'\'\''

C_STYLE_COMMENTS = re.compile(
    rf"{QUOTED}|`(?:\\.|[^`\\])*`|(?P<comment>/\*.*?\*/|//[^\n]*)", re.DOTALL
)
PYTHON_COMMENTS = re.compile(
    # A triple-quoted string standing alone on its lines is a docstring
    rf"(?P<comment>^[ \t]*[rRuU]?(?:{TRIPLE_QUOTED})[ \t]*$|#[^\n]*)"
    rf"|[rRbBuUfF]{{0,2}}(?:{TRIPLE_QUOTED})|{QUOTED}",
    re.MULTILINE,
)
RUBY_COMMENTS = re.compile(
    rf"(?P<comment>^=begin\b.*?^=end\b[^\n]*|#[^\n]*)|{QUOTED}",
    re.DOTALL | re.MULTILINE,
)


def _drop_comment(match: re.Match) -> str:
    comment = match.group("comment")
    if comment is None:
        return match.group(0)
    # Preserve line structure so line-based counts stay aligned
    return "\n" * comment.count("\n")


def strip_c_style_comments(text: str) -> str:
    return C_STYLE_COMMENTS.sub(_drop_comment, text)


def strip_python_comments(text: str) -> str:
    return PYTHON_COMMENTS.sub(_drop_comment, text)


def strip_ruby_comments(text: str) -> str:
    return RUBY_COMMENTS.sub(_drop_comment, text)
