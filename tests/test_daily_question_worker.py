from __future__ import annotations

import json
from functools import partial
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from conftest import FIXED_NOW, CountingFetcher, ScriptedGenerator, build_payload, sequential_ids
from mirsinn.adapters import llm_client
from mirsinn.adapters.docstore import MemoryDocumentStore
from mirsinn.adapters.llm_question import generate_question
from mirsinn.domain.errors import CommitError, GenerationError, QuotaUnsatisfiableError
from mirsinn.domain.models import QuestionJobConfig, Source
from mirsinn.workers import daily_question

DATE_KEY = "02-20-2025"


def _run(store, sources, generator, *, config=None, fetcher=None, ids=None):
    return daily_question.run(
        DATE_KEY,
        store=store,
        sources=sources,
        config=config or QuestionJobConfig(model="test-model", prompt_version="2025-02-20"),
        fetch_listing=fetcher or CountingFetcher(),
        generate=generator,
        clock=lambda: FIXED_NOW,
        id_factory=ids or sequential_ids(),
    )


def _distinct_script(sources):
    return {source.id: [build_payload(index)] for index, source in enumerate(sources, start=1)}


def test_five_sources_fill_the_day_in_primary_pass(sources):
    store = MemoryDocumentStore()
    generator = ScriptedGenerator(_distinct_script(sources))

    result = _run(store, sources, generator)

    assert result.status == daily_question.CREATED
    assert result.controller_runs == 5
    assert result.degraded is False
    assert len(generator.calls) == 5
    assert result.question_ids == ["q1", "q2", "q3", "q4", "q5"]

    day = store.get(f"questions/{DATE_KEY}")
    assert day["dateKey"] == DATE_KEY
    assert day["questionCount"] == 5
    assert day["primaryQuestionId"] == "q1"
    assert day["questionIds"] == ["q1", "q2", "q3", "q4", "q5"]
    assert [item["order"] for item in day["questionsSummary"]] == [1, 2, 3, 4, 5]
    assert day["questionsSummary"][0] == {
        "id": "q1",
        "order": 1,
        "title": "Article 1",
        "source": "s1",
        "url": "https://news.example.lu/a/1",
    }
    assert day["question"] == build_payload(1)["question"]
    assert day["newsSource"] == {"id": "s1", "label": "Source 1", "url": "https://source1.example.lu/news"}

    for position, question_id in enumerate(day["questionIds"], start=1):
        document = store.get(f"questions/{DATE_KEY}/items/{question_id}")
        assert document["order"] == position
        assert document["dateKey"] == DATE_KEY
        assert document["results"]["totalResponses"] == 0
        assert document["results"]["perOption"] == {"yes": 0, "no": 0}
        assert document["results"]["breakdown"] == []
        assert document["source"]["model"] == "test-model"
        assert document["source"]["promptVersion"] == "2025-02-20"
        assert len(document["listingExcerpt"]) <= 2000


def test_second_run_same_day_writes_nothing(sources):
    store = MemoryDocumentStore()
    generator = ScriptedGenerator(_distinct_script(sources))
    _run(store, sources, generator)
    writes_before = store.write_count
    snapshot = {path: store.get(path) for path in store.paths()}
    calls_before = len(generator.calls)

    result = _run(store, sources, generator)

    assert result.status == daily_question.ALREADY_EXISTS
    assert result.question_ids == []
    assert store.write_count == writes_before
    assert len(generator.calls) == calls_before
    assert {path: store.get(path) for path in store.paths()} == snapshot


def test_existing_items_alone_count_as_generated(sources):
    store = MemoryDocumentStore({f"questions/{DATE_KEY}/items/old": {"order": 1, "question": "Old?"}})
    generator = ScriptedGenerator(_distinct_script(sources))
    fetcher = CountingFetcher()

    result = _run(store, sources, generator, fetcher=fetcher)

    assert result.status == daily_question.ALREADY_EXISTS
    assert fetcher.calls == []
    assert generator.calls == []


def test_placeholder_day_document_without_question_is_filled(sources):
    store = MemoryDocumentStore({f"questions/{DATE_KEY}": {"dateKey": DATE_KEY}})
    generator = ScriptedGenerator(_distinct_script(sources))

    result = _run(store, sources, generator)

    assert result.status == daily_question.CREATED
    assert store.get(f"questions/{DATE_KEY}")["questionCount"] == 5


def test_repeated_article_url_is_retried_not_stored_twice(sources):
    shared_url = "https://news.example.lu/shared"
    script = {
        "s1": [build_payload(1, url=shared_url)],
        "s2": [
            build_payload(2, url=shared_url),
            build_payload(3, url=shared_url),
            build_payload(4),
        ],
    }
    generator = ScriptedGenerator(script)
    config = QuestionJobConfig(model="m", prompt_version="v", target_count=2)
    store = MemoryDocumentStore()

    result = _run(store, sources[:2], generator, config=config)

    assert result.controller_runs == 2
    assert len(generator.calls_for("s2")) == 3
    urls = [store.get(f"questions/{DATE_KEY}/items/{qid}")["article"]["url"] for qid in result.question_ids]
    assert urls == [shared_url, "https://news.example.lu/a/4"]

    last_context = generator.calls_for("s2")[-1]["context"]
    reasons = [(item["url"], item["reason"]) for item in last_context["forbiddenArticles"]]
    assert reasons == [
        (shared_url, "used_today"),
        (shared_url, "duplicate"),
        (shared_url, "duplicate"),
    ]


def test_same_question_under_new_article_is_rejected(sources):
    question = {"lb": "Sidd Dir derfir?", "fr": "Êtes-vous pour ?"}
    script = {
        "s1": [build_payload(1, question=question)],
        "s2": [build_payload(2, question={"lb": "  SIDD DIR DERFIR? ", "fr": "êtes-vous pour ?"}), build_payload(3)],
    }
    generator = ScriptedGenerator(script)
    config = QuestionJobConfig(model="m", prompt_version="v", target_count=2)
    store = MemoryDocumentStore()

    result = _run(store, sources[:2], generator, config=config)

    assert len(result.question_ids) == 2
    second = store.get(f"questions/{DATE_KEY}/items/{result.question_ids[1]}")
    assert second["article"]["title"] == "Article 3"


def test_articles_from_recent_days_are_excluded(sources):
    store = MemoryDocumentStore(
        {
            "questions/02-19-2025": {
                "question": "Yesterday?",
                "article": {"title": "Old story", "url": "https://news.example.lu/old"},
            },
            "questions/02-10-2025": {
                "question": "Long ago?",
                "article": {"title": "Ancient story", "url": "https://news.example.lu/ancient"},
            },
        }
    )
    script = {
        "s1": [
            build_payload(1, url="https://news.example.lu/old"),
            build_payload(2, url="https://news.example.lu/ancient"),
        ]
    }
    generator = ScriptedGenerator(script)
    config = QuestionJobConfig(model="m", prompt_version="v", target_count=1)

    result = _run(store, sources[:1], generator, config=config)

    assert len(generator.calls) == 2
    first_context = generator.calls[0]["context"]
    assert first_context["recentArticles"] == [
        {"dateKey": "02-19-2025", "title": "Old story", "url": "https://news.example.lu/old"}
    ]
    assert first_context["forbiddenArticles"][0]["reason"] == "recent"
    stored = store.get(f"questions/{DATE_KEY}/items/{result.question_ids[0]}")
    assert stored["article"]["url"] == "https://news.example.lu/ancient"


def test_fallback_pass_is_bounded_when_sources_keep_repeating():
    sources = [Source(id=f"s{i}", label=f"S{i}", listing_url=f"https://s{i}.example.lu") for i in range(1, 4)]
    same = build_payload(1)
    generator = ScriptedGenerator({source.id: [same] for source in sources})
    store = MemoryDocumentStore()

    result = _run(store, sources, generator)

    assert result.controller_runs == len(sources) * 6
    assert len(generator.calls) == 1 + (len(sources) * 6 - 1) * 3
    assert result.question_ids == ["q1"]
    assert result.degraded is True
    assert store.get(f"questions/{DATE_KEY}")["questionCount"] == 1


def test_fallback_pass_fills_quota_from_productive_sources(sources):
    script = {
        "s1": [build_payload(1), build_payload(6)],
        "s2": [build_payload(2), build_payload(7)],
    }
    generator = ScriptedGenerator(script)
    store = MemoryDocumentStore()

    result = _run(store, sources[:2], generator)

    assert result.degraded is True
    assert result.controller_runs == 12
    assert len(result.question_ids) == 4
    titles = [entry.document["article"]["title"] for entry in result.entries]
    assert titles == ["Article 1", "Article 2", "Article 6", "Article 7"]


def test_no_question_at_all_raises_and_writes_nothing():
    sources = [Source(id=f"s{i}", label=f"S{i}", listing_url=f"https://s{i}.example.lu") for i in range(1, 4)]
    generator = ScriptedGenerator({source.id: [GenerationError("model returned empty content")] for source in sources})
    store = MemoryDocumentStore()

    with pytest.raises(QuotaUnsatisfiableError):
        _run(store, sources, generator)

    assert len(generator.calls) == len(sources) * 6 * 3
    assert store.paths() == []
    assert store.write_count == 0


def test_unreachable_sources_are_abandoned_for_the_run(sources):
    fetcher = CountingFetcher(failing=[source.id for source in sources])
    generator = ScriptedGenerator(_distinct_script(sources))
    store = MemoryDocumentStore()

    with pytest.raises(QuotaUnsatisfiableError):
        _run(store, sources, generator, fetcher=fetcher)

    assert fetcher.calls == [source.id for source in sources]
    assert generator.calls == []
    assert store.paths() == []


def test_failed_source_is_skipped_and_listing_reused(sources):
    fetcher = CountingFetcher(failing=["s2"])
    script = {"s1": [build_payload(1), build_payload(3)], "s2": [build_payload(2)]}
    generator = ScriptedGenerator(script)
    config = QuestionJobConfig(model="m", prompt_version="v", target_count=2)

    result = _run(MemoryDocumentStore(), sources[:2], generator, config=config, fetcher=fetcher)

    assert fetcher.calls == ["s1", "s2"]
    assert [entry.document["newsSource"]["id"] for entry in result.entries] == ["s1", "s1"]
    assert generator.calls_for("s2") == []


def test_invalid_payloads_consume_attempts(sources):
    script = {"s1": [{"question": None}, build_payload(1, options=[]), build_payload(2)]}
    generator = ScriptedGenerator(script)
    config = QuestionJobConfig(model="m", prompt_version="v", target_count=1)

    result = _run(MemoryDocumentStore(), sources[:1], generator, config=config)

    assert len(generator.calls) == 3
    assert result.entries[0].document["article"]["title"] == "Article 2"


class FailingCommitStore(MemoryDocumentStore):
    def _commit(self, ops):
        raise CommitError("connection lost during commit")


def test_commit_failure_leaves_no_partial_day(sources):
    store = FailingCommitStore()
    generator = ScriptedGenerator(_distinct_script(sources))

    with pytest.raises(CommitError):
        _run(store, sources, generator)

    assert store.paths() == []
    assert store.get(f"questions/{DATE_KEY}") is None
    assert store.list(f"questions/{DATE_KEY}/items") == []


def test_option_ids_fall_back_to_position(sources):
    options = [{"label": {"en": "Yes"}}, {"id": "", "label": {"en": "No"}}, {"id": "maybe", "label": "Maybe"}]
    generator = ScriptedGenerator({"s1": [build_payload(1, options=options)]})
    config = QuestionJobConfig(model="m", prompt_version="v", target_count=1)
    store = MemoryDocumentStore()

    result = _run(store, sources[:1], generator, config=config)

    document = store.get(f"questions/{DATE_KEY}/items/{result.question_ids[0]}")
    assert [option["id"] for option in document["options"]] == ["o1", "o2", "maybe"]
    assert document["results"]["perOption"] == {"o1": 0, "o2": 0, "maybe": 0}


def test_malformed_model_response_is_retried_not_fatal(monkeypatch, sources):
    fake_settings = SimpleNamespace(
        openai_api_key="sk-test",
        openai_base_url="https://llm.example.com/v1",
        openai_timeout=30,
        question_model_name="test-model",
    )
    monkeypatch.setattr(llm_client, "get_settings", lambda: fake_settings)
    monkeypatch.setattr(llm_client.time, "sleep", lambda seconds: None)

    bodies = [{"choices": [{"message": None}]}] + [
        {"choices": [{"message": {"content": json.dumps(build_payload(n))}}]} for n in range(1, 6)
    ]

    def fake_post(url, **kwargs):
        resp = MagicMock()
        resp.status_code = 200
        resp.json.return_value = bodies.pop(0)
        return resp

    monkeypatch.setattr(llm_client.requests, "post", fake_post)
    store = MemoryDocumentStore()

    result = _run(store, sources, partial(generate_question, model="test-model"))

    assert result.status == daily_question.CREATED
    assert len(result.question_ids) == 5
    assert bodies == []
    day = store.get(f"questions/{DATE_KEY}")
    assert [item["url"] for item in day["questionsSummary"]] == [
        f"https://news.example.lu/a/{n}" for n in range(1, 6)
    ]
