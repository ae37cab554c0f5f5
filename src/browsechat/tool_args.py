"""
Recovery of tool arguments from the text a model streamed.

Models do not always emit clean JSON: some wrap it in a code fence, some fall
back to YAML, and some use ``<arg_key>``/``<arg_value>`` tag pairs. All
catalog parameters are strings or absent, so no type coercion happens here;
the catalog's parameter models validate the result.
"""
from __future__ import annotations

import json
import re
from urllib.parse import unquote

import yaml

_FENCE_RE = re.compile(r"^```[\w-]*[ \t]*\n?(.*?)\n?```$", re.DOTALL)
_XML_PAIR_RE = re.compile(
    r"<arg_key>\s*(.*?)\s*</arg_key>\s*<arg_value>\s*(.*?)\s*</arg_value>",
    re.DOTALL | re.IGNORECASE,
)


def _strip_fence(text: str) -> str:
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text


def _xml_pairs(text: str) -> dict[str, object] | None:
    """``<arg_key>url</arg_key><arg_value>https%3A...</arg_value>`` pairs, or None."""
    pairs = _XML_PAIR_RE.findall(text)
    if not pairs:
        return None
    return {key: unquote(value) for key, value in pairs}


def _decode(text: str) -> object:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return yaml.safe_load(text)


def parse_tool_args(name: str, args_text: str) -> tuple[dict[str, object], str | None]:
    """Return ``(args, error)`` for the argument text of tool ``name``.

    Empty text means no arguments. ``error`` is set, with empty args, when the
    text cannot be read as an object.
    """
    text = _strip_fence((args_text or "").strip())
    if not text:
        return {}, None

    pairs = _xml_pairs(text)
    if pairs is not None:
        return pairs, None

    try:
        decoded = _decode(text)
    except yaml.YAMLError as exc:
        return {}, f"invalid arguments for {name}: {exc}"
    if decoded is None:
        return {}, None
    if not isinstance(decoded, dict):
        return {}, f"invalid arguments for {name}: expected object payload, got {type(decoded).__name__}"
    return {str(key): value for key, value in decoded.items()}, None
