"""Strip system-injected XML blocks from message text.

Codex embeds metadata such as ``<environment_context>`` and
``<system-reminder>`` in user and assistant messages. Those blocks are
removed from titles and from clean Markdown exports.
"""

import re

SYSTEM_XML_TAGS = (
    "environment_context",
    "system-reminder",
    "environment-details",
    "system_instructions",
    "tool_result",
)

_TAG_ALTERNATION = "|".join(re.escape(tag) for tag in SYSTEM_XML_TAGS)
_SYSTEM_XML_RE = re.compile(
    rf"<(?:{_TAG_ALTERNATION})[\s>][\s\S]*?</(?:{_TAG_ALTERNATION})>",
    re.IGNORECASE,
)
_EXTRA_NEWLINES_RE = re.compile(r"\n{3,}")


def strip_system_xml(text: str) -> str:
    """Remove well-known system XML blocks and collapse leftover whitespace."""
    cleaned = text
    while True:
        stripped = _SYSTEM_XML_RE.sub("", cleaned)
        if stripped == cleaned:
            break
        cleaned = stripped
    return _EXTRA_NEWLINES_RE.sub("\n\n", cleaned).strip()
