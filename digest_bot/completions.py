"""
Completion client — one async operation per task type.

Each operation:
- merges caller options over the task's defaults (field by field)
- sends a system + user prompt through the injected transport
- decodes the reply into a string, a list of strings, or a result record

Transport and API failures never escape as-is: they are logged here and
re-raised as CompletionError carrying a task-named message.

Usage:
    from digest_bot.ai import OpenAIClient
    from digest_bot.completions import ChatCompletionOptions, CompletionClient

    completions = CompletionClient(OpenAIClient(api_key))
    summary = await completions.generate_summary(text)
    recap = await completions.generate_recap(lines, ChatCompletionOptions(temperature=0.6))
"""

import json
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SENTIMENT_LABELS = ("positivo", "negativo", "neutro")
# The sentiment prompt asks for English labels.
_ENGLISH_SENTIMENT = {"positive": "positivo", "negative": "negativo", "neutral": "neutro"}
ENERGY_LEVELS = ("low", "medium", "high")

_NUMBERED_LINE = re.compile(r"^\d+\.")
_NUMBER_PREFIX = re.compile(r"^\d+\.\s*")
_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class CompletionError(Exception):
    """A task operation failed. The message is safe to show to users."""

    def __init__(self, message: str, task: str):
        super().__init__(message)
        self.task = task


class EmptyResponseError(CompletionError):
    """The API answered but a structured task got no content back."""


# ---------------------------------------------------------------------------
# Options, defaults and results
# ---------------------------------------------------------------------------


@dataclass
class ChatCompletionOptions:
    """Per-call overrides. Any field left as None keeps the task default."""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_message: Optional[str] = None


@dataclass(frozen=True)
class TaskDefaults:
    """Generation parameters a task uses when the caller does not override them."""

    model: str
    temperature: float
    max_tokens: int
    system_message: str

    def merge(self, options: Optional[ChatCompletionOptions]) -> "TaskDefaults":
        if options is None:
            return self
        return TaskDefaults(
            model=self.model if options.model is None else options.model,
            temperature=self.temperature if options.temperature is None else options.temperature,
            max_tokens=self.max_tokens if options.max_tokens is None else options.max_tokens,
            system_message=(
                self.system_message if options.system_message is None else options.system_message
            ),
        )


@dataclass
class SentimentResult:
    sentiment: str
    confidence: str
    explanation: str


@dataclass
class MoodResult:
    mood: str
    emoji: str
    description: str
    energy: str


@dataclass(frozen=True)
class Task:
    """A task type: its name, the verb phrase used in failure messages, and its defaults."""

    name: str
    action: str
    defaults: TaskDefaults

    @property
    def failure_message(self) -> str:
        return f"Failed to {self.action}. Please check your API key and try again."


SUMMARY = Task(
    name="summary",
    action="generate summary",
    defaults=TaskDefaults(
        model="gpt-4.1-nano",
        temperature=0.9,
        max_tokens=500,
        system_message=(
            "You are an assistant specialized in creating concise and informative summaries. "
            "Always respond in the same language as the input text."
        ),
    ),
)

RECAP = Task(
    name="recap",
    action="generate recap",
    defaults=TaskDefaults(
        model="gpt-4.1-nano",
        temperature=0.9,
        max_tokens=800,
        system_message=(
            "You are an assistant that creates organized recaps of chat conversations. "
            "Highlight key points, decisions made, and topics discussed in a clear and "
            "structured way. Always respond in the same language as the input conversation."
        ),
    ),
)

SENTIMENT = Task(
    name="sentiment",
    action="analyze sentiment",
    defaults=TaskDefaults(
        model="gpt-4.1-nano",
        temperature=0.9,
        max_tokens=200,
        system_message=(
            "You are a sentiment analyzer. Analyze the text and return the sentiment "
            "(positive, negative, or neutral), confidence level, and a brief explanation. "
            "Always respond in the same language as the input text."
        ),
    ),
)

KEYWORDS = Task(
    name="keywords",
    action="extract keywords",
    defaults=TaskDefaults(
        model="gpt-4.1-nano",
        temperature=0.9,
        max_tokens=150,
        system_message=(
            "You are a keyword extractor. Extract the most important words and phrases "
            "from the provided text. Return keywords in the same language as the input text."
        ),
    ),
)

QUESTION = Task(
    name="question",
    action="answer question",
    defaults=TaskDefaults(
        model="gpt-4.1-nano",
        temperature=0.9,
        max_tokens=300,
        system_message=(
            "You are an assistant that answers questions based exclusively on the provided "
            "context. If the information is not in the context, say you don't have that "
            "information. Always respond in the same language as the question."
        ),
    ),
)

# {target_language} is filled in per call, before caller options are merged.
TRANSLATION = Task(
    name="translation",
    action="translate text",
    defaults=TaskDefaults(
        model="gpt-3.5-turbo",
        temperature=0.3,
        max_tokens=1000,
        system_message=(
            "You are a professional translator. Translate the given text to {target_language} "
            "while preserving the original meaning, tone, and context."
        ),
    ),
)

EXPLANATION = Task(
    name="explanation",
    action="explain concept",
    defaults=TaskDefaults(
        model="gpt-3.5-turbo",
        temperature=0.7,
        max_tokens=600,
        system_message=(
            "You are a knowledgeable assistant that explains concepts clearly and concisely. "
            "Provide easy-to-understand explanations with examples when helpful. "
            "Always respond in the same language as the input concept."
        ),
    ),
)

IDEAS = Task(
    name="ideas",
    action="generate ideas",
    defaults=TaskDefaults(
        model="gpt-3.5-turbo",
        temperature=0.8,
        max_tokens=800,
        system_message=(
            "You are a creative brainstorming assistant. Generate innovative and practical "
            "ideas related to the given topic. Always respond in the same language as the "
            "input topic."
        ),
    ),
)

MOOD = Task(
    name="mood",
    action="analyze mood",
    defaults=TaskDefaults(
        model="gpt-3.5-turbo",
        temperature=0.5,
        max_tokens=300,
        system_message=(
            "You are an expert at analyzing the mood and emotional tone of conversations. "
            "Analyze the overall mood and provide a summary. Always respond in the same "
            "language as the input conversation."
        ),
    ),
)


# ---------------------------------------------------------------------------
# Response decoding
# ---------------------------------------------------------------------------


def first_choice_content(response: Dict[str, Any]) -> str:
    """Trimmed content of the first choice, or "" when there is none."""
    choices = response.get("choices") or []
    if not choices:
        return ""
    message = choices[0].get("message") or {}
    return (message.get("content") or "").strip()


def split_keywords(content: str, max_keywords: int) -> List[str]:
    keywords = [part.strip() for part in content.split(",")]
    return [k for k in keywords if k][:max_keywords]


def parse_numbered_list(content: str, limit: int) -> List[str]:
    """Items of a "1. foo" style list; unnumbered lines are dropped."""
    items = []
    for line in content.split("\n"):
        line = line.strip()
        if _NUMBERED_LINE.match(line):
            items.append(_NUMBER_PREFIX.sub("", line, count=1).strip())
    return items[:limit]


def _load_json_object(content: str) -> Optional[Dict[str, Any]]:
    fenced = _CODE_FENCE.match(content)
    if fenced:
        content = fenced.group(1)
    try:
        data = json.loads(content)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def parse_sentiment(content: str) -> SentimentResult:
    """Decode a sentiment reply, falling back to a neutral record holding the raw text."""
    data = _load_json_object(content)
    if data is not None and all(k in data for k in ("sentiment", "confidence", "explanation")):
        sentiment = str(data["sentiment"]).strip().lower()
        sentiment = _ENGLISH_SENTIMENT.get(sentiment, sentiment)
        if sentiment in SENTIMENT_LABELS:
            return SentimentResult(
                sentiment=sentiment,
                confidence=str(data["confidence"]),
                explanation=str(data["explanation"]),
            )
    return SentimentResult(sentiment="neutro", confidence="baixa", explanation=content)


def parse_mood(content: str) -> MoodResult:
    """Decode a mood reply, falling back to a neutral record holding the raw text."""
    data = _load_json_object(content)
    if data is not None and all(k in data for k in ("mood", "emoji", "description", "energy")):
        energy = str(data["energy"]).strip().lower()
        if energy in ENERGY_LEVELS:
            return MoodResult(
                mood=str(data["mood"]),
                emoji=str(data["emoji"]),
                description=str(data["description"]),
                energy=energy,
            )
    return MoodResult(mood="neutral", emoji="😐", description=content, energy="medium")


@contextmanager
def _task_boundary(task: Task):
    """Turn anything but a CompletionError into the task's CompletionError."""
    try:
        yield
    except CompletionError:
        raise
    except Exception as e:
        logger.error(
            f"Error during {task.name} completion: {e}",
            exc_info=True,
            extra={"context": {"task": task.name, "error_type": type(e).__name__}},
        )
        raise CompletionError(task.failure_message, task.name) from None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class CompletionClient:
    """Task operations over a chat completions transport.

    The transport must provide
    ``async create_chat_completion(model, temperature, max_tokens, messages, log_context)``
    returning an OpenAI-shaped response dict. It is shared read-only, so
    concurrent operations on one client are safe.
    """

    def __init__(self, transport):
        self.transport = transport

    async def _complete(
        self,
        task: Task,
        prompt: str,
        options: Optional[ChatCompletionOptions],
        defaults: Optional[TaskDefaults] = None,
    ) -> str:
        params = (defaults or task.defaults).merge(options)
        messages = [
            {"role": "system", "content": params.system_message},
            {"role": "user", "content": prompt},
        ]
        response = await self.transport.create_chat_completion(
            model=params.model,
            temperature=params.temperature,
            max_tokens=params.max_tokens,
            messages=messages,
            log_context={"context": {"task": task.name}},
        )
        return first_choice_content(response)

    async def generate_summary(
        self, text: str, options: Optional[ChatCompletionOptions] = None
    ) -> str:
        prompt = (
            "Please create a summary of the following text. "
            f"Respond in the same language as the input text:\n\n{text}"
        )
        with _task_boundary(SUMMARY):
            content = await self._complete(SUMMARY, prompt, options)
        return content or "Could not generate summary."

    async def generate_recap(
        self, messages: List[str], options: Optional[ChatCompletionOptions] = None
    ) -> str:
        conversation = "\n".join(messages)
        prompt = (
            "Create a recap of the following chat conversation. "
            f"Respond in the same language as the conversation:\n\n{conversation}"
        )
        with _task_boundary(RECAP):
            content = await self._complete(RECAP, prompt, options)
        return content or "Could not generate recap."

    async def analyze_sentiment(
        self, text: str, options: Optional[ChatCompletionOptions] = None
    ) -> SentimentResult:
        prompt = (
            "Analyze the sentiment of the following text and respond in JSON format. "
            'Use "positivo", "negativo", or "neutro" for sentiment, and respond in the '
            "same language as the input text:\n"
            '{"sentiment": "positivo|negativo|neutro", "confidence": "baixa|média|alta", '
            '"explanation": "brief explanation"}\n\n'
            f"Text: {text}"
        )
        with _task_boundary(SENTIMENT):
            content = await self._complete(SENTIMENT, prompt, options)
            if not content:
                raise EmptyResponseError(
                    "Failed to analyze sentiment. The model returned an empty response.",
                    SENTIMENT.name,
                )
        return parse_sentiment(content)

    async def extract_keywords(
        self,
        text: str,
        max_keywords: int = 10,
        options: Optional[ChatCompletionOptions] = None,
    ) -> List[str]:
        prompt = (
            f"Extract up to {max_keywords} most important keywords from the following text. "
            "Return only the keywords separated by commas, in the same language as the "
            f"input text:\n\n{text}"
        )
        with _task_boundary(KEYWORDS):
            content = await self._complete(KEYWORDS, prompt, options)
        if not content:
            return []
        return split_keywords(content, max_keywords)

    async def ask_question(
        self,
        context: str,
        question: str,
        options: Optional[ChatCompletionOptions] = None,
    ) -> str:
        # A refusal ("I don't have that information") comes back as a normal answer.
        prompt = (
            f"Context: {context}\n\n"
            f"Question: {question}\n\n"
            "Please answer in the same language as the question."
        )
        with _task_boundary(QUESTION):
            content = await self._complete(QUESTION, prompt, options)
        return content or "Could not answer the question."

    async def translate_text(
        self,
        text: str,
        target_language: str,
        options: Optional[ChatCompletionOptions] = None,
    ) -> str:
        defaults = replace(
            TRANSLATION.defaults,
            system_message=TRANSLATION.defaults.system_message.format(
                target_language=target_language
            ),
        )
        prompt = f"Please translate the following text to {target_language}:\n\n{text}"
        with _task_boundary(TRANSLATION):
            content = await self._complete(TRANSLATION, prompt, options, defaults=defaults)
        return content or "Translation failed."

    async def explain_concept(
        self,
        concept: str,
        context: Optional[str] = None,
        options: Optional[ChatCompletionOptions] = None,
    ) -> str:
        context_text = f"\n\nContext from conversation: {context}" if context else ""
        prompt = (
            f'Please explain the following concept: "{concept}"{context_text}\n\n'
            "Respond in the same language as the concept."
        )
        with _task_boundary(EXPLANATION):
            content = await self._complete(EXPLANATION, prompt, options)
        return content or "Could not generate explanation."

    async def generate_ideas(
        self,
        topic: str,
        context: Optional[str] = None,
        idea_count: int = 5,
        options: Optional[ChatCompletionOptions] = None,
    ) -> List[str]:
        context_text = f"\n\nContext from recent discussions: {context}" if context else ""
        prompt = (
            f'Generate {idea_count} creative ideas related to: "{topic}"{context_text}\n\n'
            "Format as a numbered list and respond in the same language as the topic."
        )
        with _task_boundary(IDEAS):
            content = await self._complete(IDEAS, prompt, options)
        if not content:
            return []
        return parse_numbered_list(content, idea_count)

    async def analyze_mood(
        self, messages: List[str], options: Optional[ChatCompletionOptions] = None
    ) -> MoodResult:
        conversation = "\n".join(messages)
        prompt = (
            "Analyze the mood of this conversation and respond in JSON format in the same "
            "language as the conversation:\n"
            '{"mood": "descriptive mood", "emoji": "single emoji", '
            '"description": "brief description", "energy": "low/medium/high"}\n\n'
            f"Conversation:\n{conversation}"
        )
        with _task_boundary(MOOD):
            content = await self._complete(MOOD, prompt, options)
            if not content:
                raise EmptyResponseError(
                    "Failed to analyze mood. The model returned an empty response.",
                    MOOD.name,
                )
        return parse_mood(content)
