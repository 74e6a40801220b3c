"""Language profiles, selected once per repository from its declared language."""

import logging
from typing import List, Optional, Tuple, Type

from ghminer.pipeline.languages.base import LanguageProfile
from ghminer.pipeline.languages.c_family import CppProfile, CSharpProfile, GoProfile, JavaProfile
from ghminer.pipeline.languages.javascript import JavaScriptProfile, TypeScriptProfile
from ghminer.pipeline.languages.scripting import PythonProfile, RubyProfile

logger = logging.getLogger(__name__)

# Order matters: "javascript" must be tried before "java"
PROFILES: List[Tuple[str, Type[LanguageProfile]]] = [
    ("javascript", JavaScriptProfile),
    ("typescript", TypeScriptProfile),
    ("c++", CppProfile),
    ("c#", CSharpProfile),
    ("go", GoProfile),
    ("java", JavaProfile),
    ("python", PythonProfile),
    ("ruby", RubyProfile),
]


def select_profile(language: Optional[str]) -> LanguageProfile:
    lowered = (language or "").lower()
    for key, profile_cls in PROFILES:
        if key in lowered:
            return profile_cls()
    logger.warning(f"Unsupported language {language!r}, defaulting to JavaScript")
    return JavaScriptProfile()


__all__ = [
    "CSharpProfile",
    "CppProfile",
    "GoProfile",
    "JavaProfile",
    "JavaScriptProfile",
    "LanguageProfile",
    "PROFILES",
    "PythonProfile",
    "RubyProfile",
    "TypeScriptProfile",
    "select_profile",
]
