"""English-only guard for structured model output."""

import re
from typing import Any, Iterable, Optional

CJK_CHAR_RE = re.compile(r'[\u3400-\u9FFF\uF900-\uFAFF]')


class NonEnglishOutputError(ValueError):
    """A string field of model output contains CJK characters."""

    def __init__(self, path: str):
        super().__init__(f"Non-English text detected at {path}.")
        self.path = path


def contains_cjk(text: str) -> bool:
    return bool(CJK_CHAR_RE.search(text))


def _is_allowed(path: str, allow: set) -> bool:
    if not allow:
        return False
    if path in allow:
        return True
    last_dot = path.rfind('.')
    if last_dot < 0:
        return False
    return path[last_dot + 1:] in allow


def _walk(value: Any, path: str, allow: set) -> None:
    if isinstance(value, str):
        if not _is_allowed(path, allow) and contains_cjk(value):
            raise NonEnglishOutputError(path)
    elif isinstance(value, (list, tuple)):
        for index, child in enumerate(value):
            _walk(child, f'{path}[{index}]', allow)
    elif isinstance(value, dict):
        for key, child in value.items():
            _walk(child, f'{path}.{key}', allow)


def assert_english_output(value: Any, allow_fields: Optional[Iterable[str]] = None) -> None:
    """Raise NonEnglishOutputError for the first CJK string found.

    Paths look like `$.episodes[0].aiHighlight`. An allowlist entry
    matches either the full path or the final key.
    """
    _walk(value, '$', set(allow_fields or ()))
