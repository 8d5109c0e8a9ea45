"""Front-matter variables and ``{{placeholder}}`` rendering for corpus files."""

import logging
import re
from typing import Any, Mapping

import yaml

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{([a-zA-Z_][a-zA-Z0-9_.]*)\}\}")
ESCAPED_PLACEHOLDER_RE = re.compile(r"\\(\{\{[^}]*\}\})")

# Private-use code point, never present in real Markdown.
_ESCAPE_MARK = "\ue000"


def split_front_matter(content: str) -> tuple[dict[str, Any], str]:
    """Split a leading ``---`` YAML block from the body.

    Returns:
        Tuple of (parsed front-matter, body). When there is no parsable block
        the front-matter is empty and body is the input.
    """
    if not content.startswith("---"):
        return {}, content

    end = content.find("\n---", 3)
    if end == -1:
        return {}, content

    raw = content[3:end]
    body = content[end + 4:]
    if body.startswith("\n"):
        body = body[1:]

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        logger.debug(f"Ignoring unparsable front-matter: {e}")
        return {}, content

    if not isinstance(data, dict):
        return {}, content
    return data, body


def declared_defaults(front_matter: Mapping[str, Any]) -> dict[str, Any]:
    """Collect ``variables`` declarations and their default values.

    A declaration is either a bare default (``name: value``) or a mapping with
    an optional ``default`` key. Declared names without a default map to None.
    """
    variables = front_matter.get("variables")
    if not isinstance(variables, dict):
        return {}

    defaults: dict[str, Any] = {}
    for name, decl in variables.items():
        if isinstance(decl, dict):
            defaults[str(name)] = decl.get("default")
        else:
            defaults[str(name)] = decl
    return defaults


def render_placeholders(
    content: str,
    values: Mapping[str, Any],
    declared: set[str] | None = None,
) -> str:
    """Substitute ``{{name}}`` for declared names that have a value.

    ``\\{{name}}`` is an escape: it renders as the literal ``{{name}}`` and is
    never substituted.
    """
    if declared is None:
        declared = set(values)

    escaped = [m.group(1) for m in ESCAPED_PLACEHOLDER_RE.finditer(content)]
    content = ESCAPED_PLACEHOLDER_RE.sub(_ESCAPE_MARK, content)

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in declared:
            return match.group(0)
        value = values.get(name)
        if value is None:
            return match.group(0)
        return str(value)

    content = PLACEHOLDER_RE.sub(substitute, content)

    for original in escaped:
        content = content.replace(_ESCAPE_MARK, original, 1)
    return content


def render_document(content: str) -> str:
    """Apply a Markdown file's own front-matter variables to its body.

    The ``variables`` section is removed; any other front-matter keys are kept.
    """
    front_matter, body = split_front_matter(content)
    if "variables" not in front_matter:
        return render_placeholders(content, {}, set())

    defaults = declared_defaults(front_matter)
    rendered = render_placeholders(body, defaults, set(defaults))

    remaining = {k: v for k, v in front_matter.items() if k != "variables"}
    if not remaining:
        return rendered
    header = yaml.safe_dump(remaining, allow_unicode=True, sort_keys=False)
    return f"---\n{header}---\n{rendered}"
