"""
Slash commands — fetch channel messages, call the completion client, post one reply.

Every handler acks first (Slack's 3-second deadline), then responds exactly
once with either a card or an error line.

Command text grammar (tokens in any order):
    123            amount / count (only before any free text; /ask and /ideas
                   read an out-of-range number as free text)
    <#C123|name>   target channel (needs "Escape channels" enabled on the command)
    --analysis     add sentiment + keywords
    --context      use recent channel messages as extra context
    anything else  free text (question, topic, concept)
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .completions import ChatCompletionOptions, CompletionClient, CompletionError
from .formatting import BLUE, GREEN, ORANGE, PURPLE, Embed, error_text, truncate
from .scanner import get_channel_transcript
from .utils import start_of_day

logger = logging.getLogger(__name__)

USAGE = """*Commands*
• `/summarize [10-200] [#channel] [--analysis]` - summary of recent messages
• `/recap [#channel] [--analysis]` - recap of today's messages
• `/ask [20-200] [#channel] <question>` - ask about recent messages
• `/mood [10-200] [#channel]` - overall mood of the conversation
• `/translate <language> <text>` - translate text
• `/explain <concept> [--context]` - explain a concept
• `/ideas [1-10] <topic> [--context]` - brainstorm ideas"""

SUMMARY_OPTIONS = ChatCompletionOptions(
    model="gpt-3.5-turbo",
    temperature=0.5,
    max_tokens=500,
    system_message=(
        "You are an assistant specialized in creating concise, bullet-point summaries of "
        "conversations. Focus on the main topics and key points discussed. Always respond "
        "in the same language as the input conversation."
    ),
)
RECAP_OPTIONS = ChatCompletionOptions(model="gpt-3.5-turbo", temperature=0.6, max_tokens=1000)
ASK_OPTIONS = ChatCompletionOptions(model="gpt-3.5-turbo", temperature=0.7, max_tokens=500)

MAX_QUESTION_LENGTH = 500
EXPLAIN_CONTEXT_MESSAGES = 20

_CHANNEL_REF = re.compile(r"^<#([A-Z0-9]+)(?:\|([^>]*))?>$")
_NUMBER = re.compile(r"^\d+$")


class UsageError(Exception):
    """Bad command input. The message is shown to the user as-is."""


@dataclass
class CommandArgs:
    number: Optional[int] = None
    channel: Optional[str] = None
    channel_name: Optional[str] = None
    flags: Set[str] = field(default_factory=set)
    text: str = ""


def parse_args(text: str, amount_range: Optional[Tuple[int, int]] = None) -> CommandArgs:
    """Split command text into its parts.

    With amount_range, a leading number outside the range starts the free text
    instead ("/ask 3 decisions we made today?").
    """
    args = CommandArgs()
    words: List[str] = []
    for token in (text or "").split():
        ref = _CHANNEL_REF.match(token)
        if ref and args.channel is None:
            args.channel = ref.group(1)
            args.channel_name = ref.group(2) or None
        elif token.startswith("--") and len(token) > 2:
            args.flags.add(token[2:].lower())
        elif _NUMBER.match(token) and args.number is None and not words \
                and _in_range(int(token), amount_range):
            args.number = int(token)
        else:
            words.append(token)
    args.text = " ".join(words)
    return args


def _in_range(value: int, amount_range: Optional[Tuple[int, int]]) -> bool:
    return amount_range is None or amount_range[0] <= value <= amount_range[1]


def bounded(value: Optional[int], default: int, low: int, high: int, label: str) -> int:
    if value is None:
        return default
    if not low <= value <= high:
        raise UsageError(f"{label} must be between {low} and {high}.")
    return value


def target_channel(command: Dict, args: CommandArgs) -> Tuple[str, str]:
    """Channel ID and display name the command should read from."""
    if args.channel:
        return args.channel, args.channel_name or args.channel
    channel_id = command.get("channel_id", "")
    if not channel_id or channel_id.startswith("D"):
        raise UsageError("This command can only be used in channels!")
    return channel_id, command.get("channel_name") or channel_id


class CommandHandlers:
    """Slash command handlers sharing one completion client."""

    def __init__(self, completions: CompletionClient, slack_token: str):
        self.completions = completions
        self.slack_token = slack_token

    def register(self, app) -> None:
        app.command("/summarize")(self.summarize)
        app.command("/recap")(self.recap)
        app.command("/ask")(self.ask)
        app.command("/mood")(self.mood)
        app.command("/translate")(self.translate)
        app.command("/explain")(self.explain)
        app.command("/ideas")(self.ideas)

    async def _reply(self, respond, label: str, work) -> None:
        """Run one command body and respond exactly once."""
        try:
            embed = await work
        except UsageError as e:
            await respond(text=f"❌ {e}")
        except CompletionError as e:
            logger.warning(f"{label} failed: {e}", extra={"context": {"task": e.task}})
            await respond(text=error_text(str(e)))
        except Exception as e:
            logger.error(f"Error in {label} command: {e}", exc_info=True)
            await respond(text=error_text(f"An unexpected error occurred while running /{label}."))
        else:
            await respond(
                text=embed.title,
                attachments=embed.to_attachments(),
                response_type="in_channel",
            )

    async def _analysis_fields(self, embed: Embed, lines: List[str], keyword_count: int,
                               with_explanation: bool, warning: str) -> None:
        """Sentiment and keywords side by side; one warning field if either fails."""
        full_text = " ".join(lines)
        sentiment, keywords = await asyncio.gather(
            self.completions.analyze_sentiment(full_text),
            self.completions.extract_keywords(full_text, keyword_count),
            return_exceptions=True,
        )
        for result in (sentiment, keywords):
            if isinstance(result, BaseException):
                logger.error(f"Error in additional analysis: {result}")
                embed.add_field("⚠️ Analysis", warning)
                return

        value = f"*Sentiment:* {sentiment.sentiment}\n*Confidence:* {sentiment.confidence}"
        if with_explanation:
            value += f"\n*Explanation:* {sentiment.explanation}"
        embed.add_field("📊 Sentiment Analysis", value, inline=not with_explanation)
        embed.add_field(
            "🔑 Keywords",
            ", ".join(keywords) if keywords else "No keywords identified",
            inline=not with_explanation,
        )

    async def summarize(self, ack, command, respond):
        await ack()
        await self._reply(respond, "summarize", self._summarize(command))

    async def _summarize(self, command: Dict) -> Embed:
        args = parse_args(command.get("text", ""))
        amount = bounded(args.number, default=50, low=10, high=200, label="Amount")
        channel, name = target_channel(command, args)

        lines = await get_channel_transcript(self.slack_token, channel, limit=amount)
        if not lines:
            raise UsageError("No valid messages found to summarize!")

        summary = await self.completions.generate_recap(lines, SUMMARY_OPTIONS)
        embed = Embed(
            title=f"📝 Channel Summary #{name}",
            description=summary,
            color=BLUE,
            footer=f"Summarized {len(lines)} recent messages",
        ).set_timestamp()
        if "analysis" in args.flags:
            await self._analysis_fields(
                embed, lines, keyword_count=6, with_explanation=False,
                warning="Could not perform additional analysis.",
            )
        return embed

    async def recap(self, ack, command, respond):
        await ack()
        await self._reply(respond, "recap", self._recap(command))

    async def _recap(self, command: Dict) -> Embed:
        args = parse_args(command.get("text", ""))
        channel, name = target_channel(command, args)

        oldest = str(start_of_day().timestamp())
        lines = await get_channel_transcript(self.slack_token, channel, limit=100, oldest=oldest)
        if not lines:
            raise UsageError("No messages found from today to create recap!")

        recap = await self.completions.generate_recap(lines, RECAP_OPTIONS)
        embed = Embed(
            title=f"📋 Today's Channel Recap #{name}",
            description=recap,
            color=GREEN,
            footer=f"Based on {len(lines)} messages from today",
        ).set_timestamp()
        if "analysis" in args.flags:
            await self._analysis_fields(
                embed, lines, keyword_count=8, with_explanation=True,
                warning="Could not perform sentiment analysis and keyword extraction.",
            )
        return embed

    async def ask(self, ack, command, respond):
        await ack()
        await self._reply(respond, "ask", self._ask(command))

    async def _ask(self, command: Dict) -> Embed:
        args = parse_args(command.get("text", ""), amount_range=(20, 200))
        question = args.text
        if not question:
            raise UsageError("Usage: `/ask [20-200] [#channel] <question>`")
        if len(question) > MAX_QUESTION_LENGTH:
            raise UsageError(f"Questions are limited to {MAX_QUESTION_LENGTH} characters.")
        amount = bounded(args.number, default=100, low=20, high=200, label="Amount")
        channel, name = target_channel(command, args)

        lines = await get_channel_transcript(
            self.slack_token, channel, limit=amount, with_timestamps=True
        )
        if not lines:
            raise UsageError("No valid messages found to analyze!")

        answer = await self.completions.ask_question("\n".join(lines), question, ASK_OPTIONS)
        return (
            Embed(
                title="🤔 Question about Channel History",
                color=BLUE,
                footer=f"Based on {len(lines)} messages from #{name}",
            )
            .add_field("❓ Question", question)
            .add_field("💬 Answer", answer)
            .set_timestamp()
        )

    async def mood(self, ack, command, respond):
        await ack()
        await self._reply(respond, "mood", self._mood(command))

    async def _mood(self, command: Dict) -> Embed:
        args = parse_args(command.get("text", ""))
        amount = bounded(args.number, default=50, low=10, high=200, label="Amount")
        channel, name = target_channel(command, args)

        lines = await get_channel_transcript(self.slack_token, channel, limit=amount)
        if not lines:
            raise UsageError("No valid messages found to analyze!")

        mood = await self.completions.analyze_mood(lines)
        return (
            Embed(
                title=f"{mood.emoji} Channel Mood #{name}",
                description=mood.description,
                color=ORANGE,
                footer=f"Based on {len(lines)} recent messages",
            )
            .add_field("Mood", mood.mood, inline=True)
            .add_field("Energy", mood.energy, inline=True)
            .set_timestamp()
        )

    async def translate(self, ack, command, respond):
        await ack()
        await self._reply(respond, "translate", self._translate(command))

    async def _translate(self, command: Dict) -> Embed:
        parts = (command.get("text") or "").strip().split(None, 1)
        if len(parts) < 2:
            raise UsageError("Usage: `/translate <language> <text>`")
        language, text = parts

        translation = await self.completions.translate_text(text, language)
        return (
            Embed(title="🌐 Translation", color=PURPLE)
            .add_field("Original", truncate(text, 1000))
            .add_field(f"Translation ({language})", translation)
        )

    async def explain(self, ack, command, respond):
        await ack()
        await self._reply(respond, "explain", self._explain(command))

    async def _explain(self, command: Dict) -> Embed:
        args = parse_args(command.get("text", ""))
        concept = args.text
        if not concept:
            raise UsageError("Usage: `/explain <concept> [--context]`")

        context = await self._context(command, args)
        explanation = await self.completions.explain_concept(concept, context)
        return Embed(title=f"💡 {concept}", description=explanation, color=PURPLE)

    async def ideas(self, ack, command, respond):
        await ack()
        await self._reply(respond, "ideas", self._ideas(command))

    async def _ideas(self, command: Dict) -> Embed:
        args = parse_args(command.get("text", ""), amount_range=(1, 10))
        topic = args.text
        if not topic:
            raise UsageError("Usage: `/ideas [1-10] <topic> [--context]`")
        count = bounded(args.number, default=5, low=1, high=10, label="Idea count")

        context = await self._context(command, args)
        ideas = await self.completions.generate_ideas(topic, context, count)
        description = (
            "\n".join(f"{i}. {idea}" for i, idea in enumerate(ideas, 1))
            if ideas
            else "No ideas were generated."
        )
        return Embed(title=f"🧠 Ideas: {topic}", description=description, color=GREEN)

    async def _context(self, command: Dict, args: CommandArgs) -> Optional[str]:
        """Recent channel messages as one block of text, when --context was given."""
        if "context" not in args.flags:
            return None
        channel, _ = target_channel(command, args)
        lines = await get_channel_transcript(
            self.slack_token, channel, limit=EXPLAIN_CONTEXT_MESSAGES
        )
        return "\n".join(lines) or None
