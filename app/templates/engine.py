"""Placeholder substitution for outbound XML skeletons.

Templates carry ``{{PARAM_NAME}}`` tokens. Rendering never fails: a missing
value becomes an empty string (with a warning) and a result that is not
well-formed XML is returned as substituted instead of canonicalized.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from xml.etree.ElementTree import ParseError, canonicalize as c14n
from xml.sax.saxutils import escape

from app.util.time import now_utc

log = logging.getLogger("templates")

PLACEHOLDER = re.compile(r"\{\{([^}]*)\}\}")
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

TIMESTAMP_PARAMS = frozenset({"TIMESTAMP", "CREATION_DATE"})
DATE_PARAMS = frozenset({"CURRENT_DATE", "SETTLEMENT_DATE", "TRADE_DATE"})


@dataclass(frozen=True)
class RenderResult:
    text: str
    missing: list[str] = field(default_factory=list)
    canonical: bool = False


def default_value(name: str, now: datetime) -> str | None:
    if name in TIMESTAMP_PARAMS:
        return now.isoformat(timespec="microseconds")
    if name in DATE_PARAMS:
        return now.date().isoformat()
    return None


def substitute(template: str, params: Mapping[str, str], *, now: datetime | None = None) -> tuple[str, list[str]]:
    """Replace every placeholder; returns (text, names that had no value)."""

    now = now or now_utc()
    is_xml = template.lstrip().startswith("<")
    missing: list[str] = []

    def _replace(m: re.Match) -> str:
        name = m.group(1).strip()
        value = params.get(name)
        if value is None:
            value = default_value(name, now)
        if value is None:
            missing.append(name)
            return ""
        value = str(value)
        return escape(value) if is_xml else value

    text = PLACEHOLDER.sub(_replace, template)

    # A value may itself look like a token; nothing of that shape is sent.
    if PLACEHOLDER.search(text):
        log.warning("Placeholder-like text in parameter values removed")
        text = PLACEHOLDER.sub("", text)

    for name in dict.fromkeys(missing):
        log.warning("Template parameter not provided: %s, using empty string", name)
    return text, missing


def canonicalize(xml: str) -> str | None:
    """Single-line form: no indentation, whitespace between tags dropped.

    Namespace prefixes and default namespaces are preserved as written.
    Returns None when the input is not well-formed.
    """
    try:
        body = c14n(xml_data=xml.strip(), strip_text=True)
    except ParseError as e:
        log.warning("Rendered template is not well-formed XML, sending as-is: %s", str(e))
        return None
    return XML_DECLARATION + body


def render_with_warnings(template: str, params: Mapping[str, str], *, now: datetime | None = None) -> RenderResult:
    text, missing = substitute(template, params, now=now)
    canonical = canonicalize(text)
    if canonical is None:
        return RenderResult(text=text, missing=missing, canonical=False)
    return RenderResult(text=canonical, missing=missing, canonical=True)


def render(template: str, params: Mapping[str, str], *, now: datetime | None = None) -> str:
    return render_with_warnings(template, params, now=now).text
