"""Artifact formatter.

Renders resolved content plus metadata into the physical text of a task or
capability file: YAML front matter for profiles that use structured headers,
a plain markdown preamble for those that do not.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple

import frontmatter
import yaml
from frontmatter.default_handlers import YAMLHandler


class _HeaderDumper(yaml.SafeDumper):
    """Safe dumper that keeps multi-line strings on one escaped line."""


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    style = '"' if "\n" in value or "\r" in value else None
    return dumper.represent_scalar("tag:yaml.org,2002:str", value, style=style)


_HeaderDumper.add_representer(str, _represent_str)


class StableYAMLHandler(YAMLHandler):
    """Front matter handler with stable key order and wide line width."""

    def export(self, metadata: Dict[str, Any], **kwargs: Any) -> str:
        return yaml.dump(
            metadata,
            Dumper=_HeaderDumper,
            sort_keys=False,
            width=1000,
            default_flow_style=False,
            allow_unicode=True,
        ).rstrip()


_HEADER_HANDLER = StableYAMLHandler()


def header_values(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize metadata for a header: drop unset fields, join lists."""
    values: Dict[str, Any] = {}
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(item) for item in value)
        values[key] = value
    return values


def _plain_preamble(values: Mapping[str, Any]) -> str:
    lines = []
    description = values.get("description")
    if description:
        lines.append("# " + " ".join(str(description).split()))
    hint = values.get("argument-hint")
    if hint:
        lines.append(f"Arguments: {hint}")
    return "\n".join(lines)


def format_artifact(fields: Mapping[str, Any], content: str, *, structured: bool) -> str:
    """Render ``content`` and its metadata as file text.

    ``structured`` selects YAML front matter; otherwise an optional level-1
    heading (from ``description``) and ``Arguments:`` line precede the body.
    The returned text always ends with a single newline.
    """
    values = header_values(fields)
    body = content.strip("\n")

    if structured:
        post = frontmatter.Post(body)
        post.metadata.update(values)
        text = frontmatter.dumps(post, handler=_HEADER_HANDLER)
    else:
        preamble = _plain_preamble(values)
        text = f"{preamble}\n\n{body}" if preamble else body

    return text.rstrip("\n") + "\n"


def parse_artifact(text: str) -> Tuple[Dict[str, Any], str]:
    """Split file text back into header metadata and body."""
    if not text.startswith("---"):
        return {}, text
    post = frontmatter.loads(text, handler=_HEADER_HANDLER)
    return dict(post.metadata), post.content
