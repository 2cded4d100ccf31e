"""Tests for digest_bot.completions"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from digest_bot.completions import (
    IDEAS,
    MOOD,
    SUMMARY,
    TRANSLATION,
    ChatCompletionOptions,
    CompletionClient,
    CompletionError,
    EmptyResponseError,
    MoodResult,
    SentimentResult,
    TaskDefaults,
    parse_mood,
    parse_numbered_list,
    parse_sentiment,
    split_keywords,
)


def _response(content):
    """OpenAI-shaped response with a single choice."""
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _client(content=None, error=None, response=None):
    transport = MagicMock()
    if error is not None:
        transport.create_chat_completion = AsyncMock(side_effect=error)
    else:
        transport.create_chat_completion = AsyncMock(
            return_value=response if response is not None else _response(content)
        )
    return CompletionClient(transport)


def _sent(client):
    """kwargs of the single transport call."""
    client.transport.create_chat_completion.assert_called_once()
    return client.transport.create_chat_completion.call_args.kwargs


def run(coro):
    return asyncio.run(coro)


class TestTaskDefaults:
    def test_merge_none_keeps_defaults(self):
        assert SUMMARY.defaults.merge(None) == SUMMARY.defaults

    def test_merge_partial_options(self):
        merged = SUMMARY.defaults.merge(ChatCompletionOptions(temperature=0.2))
        assert merged.temperature == 0.2
        assert merged.model == SUMMARY.defaults.model
        assert merged.max_tokens == SUMMARY.defaults.max_tokens
        assert merged.system_message == SUMMARY.defaults.system_message

    def test_merge_zero_values_override(self):
        """0 and "" are real values, not "unset"."""
        merged = SUMMARY.defaults.merge(ChatCompletionOptions(temperature=0.0, system_message=""))
        assert merged.temperature == 0.0
        assert merged.system_message == ""

    def test_merge_all_fields(self):
        options = ChatCompletionOptions(
            model="gpt-4o", temperature=1.5, max_tokens=42, system_message="Be brief."
        )
        assert SUMMARY.defaults.merge(options) == TaskDefaults("gpt-4o", 1.5, 42, "Be brief.")

    def test_failure_message_names_task(self):
        assert SUMMARY.failure_message == (
            "Failed to generate summary. Please check your API key and try again."
        )


class TestPromptConstruction:
    def test_two_messages_system_then_user(self):
        client = _client("ok")
        run(client.generate_summary("some text"))

        messages = _sent(client)["messages"]
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[0]["content"] == SUMMARY.defaults.system_message
        assert "some text" in messages[1]["content"]
        assert "same language" in messages[1]["content"]

    def test_default_params_sent(self):
        client = _client("ok")
        run(client.generate_summary("text"))

        sent = _sent(client)
        assert sent["model"] == "gpt-4.1-nano"
        assert sent["temperature"] == 0.9
        assert sent["max_tokens"] == 500

    def test_partial_options_keep_other_defaults(self):
        client = _client("ok")
        run(client.generate_recap(["a: hi"], ChatCompletionOptions(temperature=0.1)))

        sent = _sent(client)
        assert sent["temperature"] == 0.1
        assert sent["model"] == "gpt-4.1-nano"
        assert sent["max_tokens"] == 800
        assert "recaps" in sent["messages"][0]["content"]

    def test_system_message_override(self):
        client = _client("ok")
        run(client.generate_summary("text", ChatCompletionOptions(system_message="Pirate mode.")))

        assert _sent(client)["messages"][0]["content"] == "Pirate mode."

    def test_recap_joins_messages_with_newlines(self):
        client = _client("ok")
        run(client.generate_recap(["ana: hello", "bob: hi"]))

        assert "ana: hello\nbob: hi" in _sent(client)["messages"][1]["content"]

    def test_task_name_in_log_context(self):
        client = _client("ok")
        run(client.generate_summary("text"))

        assert _sent(client)["log_context"] == {"context": {"task": "summary"}}

    @pytest.mark.parametrize(
        "call, model, temperature, max_tokens",
        [
            (lambda c: c.analyze_sentiment("t"), "gpt-4.1-nano", 0.9, 200),
            (lambda c: c.extract_keywords("t"), "gpt-4.1-nano", 0.9, 150),
            (lambda c: c.ask_question("ctx", "q?"), "gpt-4.1-nano", 0.9, 300),
            (lambda c: c.translate_text("t", "French"), "gpt-3.5-turbo", 0.3, 1000),
            (lambda c: c.explain_concept("recursion"), "gpt-3.5-turbo", 0.7, 600),
            (lambda c: c.generate_ideas("launch"), "gpt-3.5-turbo", 0.8, 800),
            (lambda c: c.analyze_mood(["a: hi"]), "gpt-3.5-turbo", 0.5, 300),
        ],
    )
    def test_task_defaults(self, call, model, temperature, max_tokens):
        client = _client('{"x": 1}')
        run(call(client))

        sent = _sent(client)
        assert (sent["model"], sent["temperature"], sent["max_tokens"]) == (
            model, temperature, max_tokens,
        )

    def test_translation_system_message_names_language(self):
        client = _client("Bonjour")
        run(client.translate_text("Hello", "French"))

        messages = _sent(client)["messages"]
        assert "French" in messages[0]["content"]
        assert "{target_language}" not in messages[0]["content"]
        assert "French" in messages[1]["content"]
        assert "{target_language}" in TRANSLATION.defaults.system_message

    def test_question_prompt_carries_context_and_question(self):
        client = _client("42")
        run(client.ask_question("ana: the answer is 42", "What is the answer?"))

        sent = _sent(client)
        user = sent["messages"][1]["content"]
        assert "Context: ana: the answer is 42" in user
        assert "Question: What is the answer?" in user
        assert "exclusively on the provided context" in sent["messages"][0]["content"]

    def test_explain_appends_context_when_given(self):
        client = _client("An explanation")
        run(client.explain_concept("CAP theorem", context="bob: is it CP or AP?"))

        user = _sent(client)["messages"][1]["content"]
        assert '"CAP theorem"' in user
        assert "Context from conversation: bob: is it CP or AP?" in user

    def test_explain_without_context(self):
        client = _client("An explanation")
        run(client.explain_concept("CAP theorem"))

        assert "Context from conversation" not in _sent(client)["messages"][1]["content"]

    def test_ideas_prompt_has_count_and_context(self):
        client = _client("1. a")
        run(client.generate_ideas("team offsite", context="ana: budget is small", idea_count=3))

        user = _sent(client)["messages"][1]["content"]
        assert "Generate 3 creative ideas" in user
        assert "Context from recent discussions: ana: budget is small" in user
        assert "numbered list" in user

    def test_keywords_prompt_has_max(self):
        client = _client("a, b")
        run(client.extract_keywords("text", max_keywords=4))

        assert "up to 4" in _sent(client)["messages"][1]["content"]


class TestStringTasks:
    def test_summary_returns_trimmed_content(self):
        client = _client("  A short summary.\n")
        assert run(client.generate_summary("long text")) == "A short summary."

    @pytest.mark.parametrize(
        "call, fallback",
        [
            (lambda c: c.generate_summary("t"), "Could not generate summary."),
            (lambda c: c.generate_recap(["t"]), "Could not generate recap."),
            (lambda c: c.ask_question("ctx", "q"), "Could not answer the question."),
            (lambda c: c.translate_text("t", "German"), "Translation failed."),
            (lambda c: c.explain_concept("t"), "Could not generate explanation."),
        ],
    )
    def test_empty_content_returns_fallback(self, call, fallback):
        assert run(call(_client(None))) == fallback
        assert run(call(_client("   "))) == fallback

    def test_no_choices_returns_fallback(self):
        client = _client(response={"choices": []})
        assert run(client.generate_summary("t")) == "Could not generate summary."

    def test_refusal_flows_through_as_answer(self):
        client = _client("I don't have that information.")
        assert run(client.ask_question("ctx", "q")) == "I don't have that information."


class TestKeywords:
    def test_split_trim_drop_truncate(self):
        client = _client("alpha, beta ,  gamma,,delta")
        assert run(client.extract_keywords("text", max_keywords=3)) == ["alpha", "beta", "gamma"]

    def test_default_max_is_ten(self):
        client = _client(",".join(f"k{i}" for i in range(15)))
        assert len(run(client.extract_keywords("text"))) == 10

    def test_empty_content_returns_empty_list(self):
        assert run(_client("").extract_keywords("text")) == []

    def test_split_keywords_helper(self):
        assert split_keywords(" a ,b,, c ", 10) == ["a", "b", "c"]


class TestIdeas:
    def test_numbered_lines_only(self):
        client = _client("1. Build X\n2. Try Y\nNotes: ignore\n3. Ship Z")
        assert run(client.generate_ideas("topic", idea_count=2)) == ["Build X", "Try Y"]

    def test_default_count_is_five(self):
        client = _client("\n".join(f"{i}. idea {i}" for i in range(1, 9)))
        assert len(run(client.generate_ideas("topic"))) == 5

    def test_empty_content_returns_empty_list(self):
        assert run(_client(None).generate_ideas("topic")) == []

    def test_indented_and_multi_digit_numbers(self):
        content = "Here you go:\n  9. Nine\n10.Ten\n- bullet\n11) not this"
        assert parse_numbered_list(content, 10) == ["Nine", "Ten"]


class TestSentiment:
    def test_well_formed_json(self):
        client = _client('{"sentiment":"positivo","confidence":"alta","explanation":"ok"}')
        result = run(client.analyze_sentiment("great day"))
        assert result == SentimentResult(sentiment="positivo", confidence="alta", explanation="ok")

    def test_malformed_falls_back(self):
        result = run(_client("not json").analyze_sentiment("text"))
        assert result == SentimentResult(
            sentiment="neutro", confidence="baixa", explanation="not json"
        )

    def test_code_fenced_json(self):
        content = '```json\n{"sentiment": "negativo", "confidence": "média", "explanation": "sad"}\n```'
        assert parse_sentiment(content) == SentimentResult("negativo", "média", "sad")

    def test_unknown_label_falls_back(self):
        content = '{"sentiment": "ecstatic", "confidence": "alta", "explanation": "wow"}'
        assert parse_sentiment(content) == SentimentResult("neutro", "baixa", content)

    def test_missing_key_falls_back(self):
        content = '{"sentiment": "positivo"}'
        assert parse_sentiment(content).explanation == content

    def test_json_array_falls_back(self):
        assert parse_sentiment("[1, 2]").sentiment == "neutro"

    @pytest.mark.parametrize("label, expected", [
        ("positive", "positivo"),
        ("Negative", "negativo"),
        ("neutral", "neutro"),
    ])
    def test_english_labels(self, label, expected):
        content = f'{{"sentiment": "{label}", "confidence": "high", "explanation": "Team is upbeat"}}'
        assert parse_sentiment(content) == SentimentResult(expected, "high", "Team is upbeat")

    def test_deeply_nested_reply_falls_back(self):
        content = "[" * 100000
        result = run(_client(content).analyze_sentiment("text"))
        assert result == SentimentResult("neutro", "baixa", content)

    def test_deeply_nested_mood_falls_back(self):
        assert parse_mood("[" * 100000).energy == "medium"

    def test_empty_content_raises_empty_response(self):
        with pytest.raises(EmptyResponseError) as exc_info:
            run(_client("").analyze_sentiment("text"))
        assert exc_info.value.task == "sentiment"
        assert isinstance(exc_info.value, CompletionError)


class TestMood:
    def test_well_formed_json(self):
        content = '{"mood": "cheerful", "emoji": "😄", "description": "Upbeat chat", "energy": "high"}'
        result = run(_client(content).analyze_mood(["ana: yay"]))
        assert result == MoodResult("cheerful", "😄", "Upbeat chat", "high")

    def test_malformed_falls_back(self):
        result = run(_client("vibes are off").analyze_mood(["ana: meh"]))
        assert result == MoodResult(
            mood="neutral", emoji="😐", description="vibes are off", energy="medium"
        )

    def test_invalid_energy_falls_back(self):
        content = '{"mood": "calm", "emoji": "🙂", "description": "d", "energy": "extreme"}'
        assert parse_mood(content) == MoodResult("neutral", "😐", content, "medium")

    def test_empty_content_raises_empty_response(self):
        with pytest.raises(EmptyResponseError) as exc_info:
            run(_client(None).analyze_mood(["ana: hi"]))
        assert exc_info.value.task == MOOD.name


class TestTransportFailures:
    @pytest.mark.parametrize(
        "call, message",
        [
            (lambda c: c.generate_summary("t"), "Failed to generate summary."),
            (lambda c: c.generate_recap(["t"]), "Failed to generate recap."),
            (lambda c: c.analyze_sentiment("t"), "Failed to analyze sentiment."),
            (lambda c: c.extract_keywords("t"), "Failed to extract keywords."),
            (lambda c: c.ask_question("c", "q"), "Failed to answer question."),
            (lambda c: c.translate_text("t", "es"), "Failed to translate text."),
            (lambda c: c.explain_concept("t"), "Failed to explain concept."),
            (lambda c: c.generate_ideas("t"), "Failed to generate ideas."),
            (lambda c: c.analyze_mood(["t"]), "Failed to analyze mood."),
        ],
    )
    def test_transport_error_becomes_task_error(self, call, message):
        client = _client(error=httpx.ConnectError("connection refused"))

        with pytest.raises(CompletionError) as exc_info:
            run(call(client))

        assert str(exc_info.value).startswith(message)
        assert "check your API key" in str(exc_info.value)
        assert not isinstance(exc_info.value, httpx.HTTPError)
        assert exc_info.value.__cause__ is None
        assert exc_info.value.__suppress_context__

    def test_auth_error_becomes_task_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        response = httpx.Response(401, request=request)
        error = httpx.HTTPStatusError("401 Unauthorized", request=request, response=response)

        with pytest.raises(CompletionError, match="Failed to generate summary"):
            run(_client(error=error).generate_summary("t"))

    def test_malformed_body_becomes_task_error(self):
        client = _client(response={"choices": [None]})
        with pytest.raises(CompletionError, match="Failed to generate recap"):
            run(client.generate_recap(["t"]))

    def test_error_is_logged(self, caplog):
        client = _client(error=httpx.ReadTimeout("timed out"))

        with pytest.raises(CompletionError):
            run(client.extract_keywords("t"))

        assert any("keywords" in r.getMessage() and "timed out" in r.getMessage() for r in caplog.records)


class TestConcurrency:
    def test_independent_concurrent_calls(self):
        """Sentiment and keywords can run side by side on one client."""
        transport = MagicMock()

        async def fake_completion(**kwargs):
            await asyncio.sleep(0)
            if "sentiment" in kwargs["messages"][0]["content"]:
                return _response('{"sentiment": "neutro", "confidence": "alta", "explanation": "x"}')
            return _response("one, two")

        transport.create_chat_completion = AsyncMock(side_effect=fake_completion)
        client = CompletionClient(transport)

        async def both():
            return await asyncio.gather(
                client.analyze_sentiment("t"), client.extract_keywords("t", 5)
            )

        sentiment, keywords = run(both())
        assert sentiment.confidence == "alta"
        assert keywords == ["one", "two"]
        assert transport.create_chat_completion.call_count == 2


def test_ideas_task_failure_message():
    assert IDEAS.failure_message.startswith("Failed to generate ideas.")
