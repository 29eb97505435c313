"""JSONPath evaluation over parsed response bodies.

The evaluator is a pluggable capability: anything callable as
``evaluate(path, document) -> list[value]`` can replace the default
jsonpath-ng implementation.
"""

from __future__ import annotations

from threading import Lock
from typing import Any, Callable

from jsonpath_ng import parse as jsonpath_parse
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError

from fluentrest.errors import JSONPathError

PathEvaluator = Callable[[str, Any], list[Any]]

_jsonpath_cache: dict[str, Any] = {}
_cache_lock = Lock()


def compile_path(path: str) -> Any:
    """Parse a JSONPath expression, caching compiled paths.

    Raises:
        JSONPathError: If path is syntactically invalid.
    """
    with _cache_lock:
        compiled = _jsonpath_cache.get(path)
    if compiled is not None:
        return compiled

    try:
        compiled = jsonpath_parse(path)
    except (JsonPathLexerError, JsonPathParserError) as e:
        raise JSONPathError(f"Invalid JSONPath '{path}': {e}") from e

    with _cache_lock:
        _jsonpath_cache[path] = compiled
    return compiled


def evaluate(path: str, document: Any) -> list[Any]:
    """Return the values of every match of path in document, in order."""
    return [match.value for match in compile_path(path).find(document)]


def first_match(path: str, document: Any, evaluator: PathEvaluator = evaluate) -> Any:
    """First matched value, or None when nothing matches."""
    matches = evaluator(path, document)
    return matches[0] if matches else None
