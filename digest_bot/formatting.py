"""
Reply rendering - embed-style cards built from Slack attachments + Block Kit.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

HEADER_LIMIT = 150
SECTION_LIMIT = 3000
FIELD_LIMIT = 2000
FIELDS_PER_SECTION = 10

BLUE = "#0099ff"
GREEN = "#00ff00"
PURPLE = "#9b59b6"
ORANGE = "#f39c12"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


@dataclass
class EmbedField:
    name: str
    value: str
    inline: bool = False


@dataclass
class Embed:
    """A titled card with optional description, fields and footer."""

    title: str
    description: Optional[str] = None
    color: str = BLUE
    fields: List[EmbedField] = field(default_factory=list)
    footer: Optional[str] = None
    timestamp: Optional[float] = None

    def add_field(self, name: str, value: str, inline: bool = False) -> "Embed":
        self.fields.append(EmbedField(name=name, value=value, inline=inline))
        return self

    def set_timestamp(self, timestamp: Optional[float] = None) -> "Embed":
        self.timestamp = time.time() if timestamp is None else timestamp
        return self

    def to_blocks(self) -> List[Dict]:
        blocks: List[Dict] = [{
            "type": "header",
            "text": {"type": "plain_text", "text": truncate(self.title, HEADER_LIMIT), "emoji": True},
        }]

        if self.description:
            blocks.append(_section(self.description))

        inline: List[EmbedField] = []
        for f in self.fields:
            if f.inline:
                inline.append(f)
                continue
            blocks.extend(_inline_sections(inline))
            inline = []
            blocks.append(_section(f"*{f.name}*\n{f.value}"))
        blocks.extend(_inline_sections(inline))

        context = []
        if self.footer:
            context.append(self.footer)
        if self.timestamp is not None:
            ts = int(self.timestamp)
            context.append(f"<!date^{ts}^{{date_short_pretty}} at {{time}}|{time.ctime(ts)}>")
        if context:
            blocks.append({
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": " • ".join(context)}],
            })
        return blocks

    def to_attachments(self) -> List[Dict]:
        """Single attachment carrying the color bar and the blocks."""
        return [{
            "color": self.color,
            "fallback": self.title,
            "blocks": self.to_blocks(),
        }]


def _section(text: str) -> Dict:
    return {"type": "section", "text": {"type": "mrkdwn", "text": truncate(text, SECTION_LIMIT)}}


def _inline_sections(fields: List[EmbedField]) -> List[Dict]:
    sections = []
    for i in range(0, len(fields), FIELDS_PER_SECTION):
        chunk = fields[i:i + FIELDS_PER_SECTION]
        sections.append({
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": truncate(f"*{f.name}*\n{f.value}", FIELD_LIMIT)}
                for f in chunk
            ],
        })
    return sections


def error_text(message: str) -> str:
    return f"❌ *Error:* {message}"
