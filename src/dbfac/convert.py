import re
from typing import Any, Dict, Optional, Sequence, Union

from dbfac.exception import DbFacError

# Quoted strings and identifiers are never scanned for placeholders
QUOTED = r"""'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*"|`[^`]*`"""
PLACEHOLDER = re.compile(
    rf"(?P<quoted>{QUOTED})"
    r"|(?P<native>%(?:\([^)]*\))?s)"
    r"|(?P<positional>\?)"
    r"|(?<![:\w]):(?P<keyword>[a-z_][a-z0-9_]*)",
    re.I,
)

Params = Optional[Union[Sequence[Any], Dict[str, Any]]]


def convert_sql_params(
    query: str, positional_sub: str = "%s", keyword_sub: str = "%({})s"
) -> str:
    """Turn `?` and `:name` placeholders into the driver's `%s` and
    `%(name)s`.

    Queries written in the driver style are returned untouched. Once a
    placeholder is converted, `%` inside quoted text is doubled so the
    driver does not read it as a format marker.
    """
    styles = set()

    def _sub(match: "re.Match[str]") -> str:
        if match.group("quoted") is not None:
            return match.group("quoted").replace("%", "%%")
        if match.group("native") is not None:
            styles.add("native")
            return match.group("native")
        if match.group("positional") is not None:
            styles.add("positional")
            return positional_sub
        styles.add("keyword")
        return keyword_sub.format(match.group("keyword"))

    converted = PLACEHOLDER.sub(_sub, query)
    if len(styles) > 1:
        found = ", ".join(sorted(styles))
        raise DbFacError(f"Could not properly convert SQL params: {found}")
    if not styles or "native" in styles:
        return query
    return converted


def prepare_params(params: Params):
    """Shape parameters the way the driver expects them"""
    if params is None or isinstance(params, dict):
        return params
    if isinstance(params, (str, bytes)):
        raise DbFacError("params: expected a sequence or a mapping")
    return list(params)
