"""Naming template engine.

A template is a plain string with ``{Placeholder}`` tokens, optionally
zero-padded with a ``:00`` format (``{Season:00}``). Each template
renders exactly one path component; the result is sanitized after
substitution so that values such as titles can never inject path
separators, reserved characters or ``..`` segments.
"""

import re
from datetime import date

import msgspec

PLACEHOLDER_RE = re.compile(r"\{(?P<name>[A-Za-z][A-Za-z-]*)(?::(?P<pad>0+))?\}")

KNOWN_PLACEHOLDERS = frozenset(
    {
        "Title",
        "Year",
        "Season",
        "Episode",
        "EpisodeTitle",
        "Air-Date",
        "Resolution",
        "Source",
        "Codec",
        "ReleaseGroup",
        "Edition",
    }
)
NUMERIC_PLACEHOLDERS = frozenset({"Year", "Season", "Episode"})

_INVALID_CHARS_RE = re.compile(r'[/\\:*?"<>|\x00-\x1f]')
_DOT_RUN_RE = re.compile(r"\.{2,}")
_WINDOWS_RESERVED = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)
_MAX_COMPONENT_BYTES = 240


class TemplateError(ValueError):
    """Raised for malformed naming templates."""


class NamingContext(msgspec.Struct, kw_only=True):
    """Values available to naming templates."""

    title: str = ""
    year: int | None = None
    season: int | None = None
    episodes: tuple[int, ...] = ()
    episode_title: str = ""
    air_date: date | None = None
    resolution: str = ""
    source: str = ""
    codec: str = ""
    release_group: str = ""
    edition: str = ""


def validate_template(template: str) -> None:
    """Check that a template only uses known placeholders and is well formed.

    Raises:
        TemplateError: If the template is empty, has unbalanced braces,
            unknown placeholders, invalid padding or path separators.
    """
    if not template or not template.strip():
        raise TemplateError("template is empty")
    if "/" in template or "\\" in template:
        raise TemplateError("template must describe a single path component")

    for match in PLACEHOLDER_RE.finditer(template):
        name = match["name"]
        if name not in KNOWN_PLACEHOLDERS:
            raise TemplateError(f"unknown placeholder {{{name}}}")
        if match["pad"] and name not in NUMERIC_PLACEHOLDERS:
            raise TemplateError(f"placeholder {{{name}}} does not take a number format")

    leftover = PLACEHOLDER_RE.sub("", template)
    if "{" in leftover or "}" in leftover:
        raise TemplateError("unbalanced or malformed braces")


def _pad(value: int, pad: str | None) -> str:
    return str(value).zfill(len(pad)) if pad else str(value)


def _value(name: str, pad: str | None, ctx: NamingContext) -> str:
    if name == "Title":
        return ctx.title
    if name == "Year":
        return _pad(ctx.year, pad) if ctx.year is not None else ""
    if name == "Season":
        return _pad(ctx.season, pad) if ctx.season is not None else ""
    if name == "Episode":
        return "-".join(_pad(episode, pad) for episode in ctx.episodes)
    if name == "EpisodeTitle":
        return ctx.episode_title
    if name == "Air-Date":
        return ctx.air_date.isoformat() if ctx.air_date else ""
    if name == "Resolution":
        return ctx.resolution if ctx.resolution != "unknown" else ""
    if name == "Source":
        return ctx.source if ctx.source != "unknown" else ""
    if name == "Codec":
        return ctx.codec if ctx.codec != "unknown" else ""
    if name == "ReleaseGroup":
        return ctx.release_group
    if name == "Edition":
        return ctx.edition if ctx.edition != "none" else ""
    return ""


def _tidy(text: str) -> str:
    """Remove the debris left behind by empty placeholders."""
    text = re.sub(r"\(\s*\)|\[\s*\]", "", text)
    text = re.sub(r"(\s*-\s*){2,}", " - ", text)
    text = re.sub(r"\s{2,}", " ", text)
    return text.strip(" -")


def sanitize_component(name: str) -> str:
    """Make a string safe to use as a single file or folder name.

    Strips reserved and control characters, collapses dot runs so that no
    ``..`` remains, trims leading/trailing dots and spaces and guards
    against Windows device names.
    """
    name = _INVALID_CHARS_RE.sub("", name)
    name = _DOT_RUN_RE.sub(".", name)
    name = re.sub(r"\s{2,}", " ", name).strip(" .")
    if not name:
        return "_"
    if name.split(".")[0].upper() in _WINDOWS_RESERVED:
        name = f"{name}_"
    encoded = name.encode("utf-8")
    if len(encoded) > _MAX_COMPONENT_BYTES:
        name = encoded[:_MAX_COMPONENT_BYTES].decode("utf-8", "ignore").rstrip(" .")
    return name


def render_template(template: str, ctx: NamingContext) -> str:
    """Render a template and sanitize the result.

    Args:
        template: Validated naming template.
        ctx: Values for the placeholders.

    Returns:
        str: A single, sanitized path component.
    """
    rendered = PLACEHOLDER_RE.sub(lambda m: _value(m["name"], m["pad"], ctx), template)
    return sanitize_component(_tidy(rendered))
