"""Tests for the triage annotator and the scoring service adapters."""

import asyncio
import json

import pytest

from helpdesk.config import Disposition, Priority
from helpdesk.core import ClassificationUnavailable, LLMException
from helpdesk.infrastructure.llm import ILLMClient, MockLLMClient
from helpdesk.tickets.domain import Ticket
from helpdesk.triage.application import TriageAnnotator
from helpdesk.triage.domain import ClassificationPromptBuilder
from helpdesk.triage.infrastructure import (
    KeywordClassificationService,
    LLMClassificationService,
    extract_json,
)

from conftest import StubClassifier, make_output


@pytest.fixture
def ticket() -> Ticket:
    return Ticket.open("telegram", "tg:msg:1", "user-1", "Не работает VPN", "Ошибка 789", "ru")


class FailingLLMClient(ILLMClient):
    async def chat_completion(self, messages, temperature=0.2, max_tokens=500, operation="classification"):
        raise LLMException("rate limited")


# ========== TriageAnnotator ==========

async def test_classification_passes_text_and_language(ticket):
    classifier = StubClassifier()
    annotator = TriageAnnotator(classifier)

    triage = await annotator.annotate(ticket)

    assert classifier.calls == [("Не работает VPN\n\nОшибка 789", "ru")]
    assert triage.category == "access_vpn"
    assert triage.degraded is False
    assert triage.suggested_response is None


async def test_auto_resolve_below_threshold_goes_to_operator(ticket):
    classifier = StubClassifier(make_output(disposition=Disposition.AUTO_RESOLVABLE, disposition_conf=0.5))

    triage = await TriageAnnotator(classifier, auto_resolve_threshold=0.8).annotate(ticket)

    assert triage.disposition == Disposition.NEEDS_OPERATOR
    assert triage.disposition_conf == 0.5


async def test_auto_resolve_at_threshold_stands(ticket):
    classifier = StubClassifier(make_output(disposition=Disposition.AUTO_RESOLVABLE, disposition_conf=0.8))

    triage = await TriageAnnotator(classifier, auto_resolve_threshold=0.8).annotate(ticket)

    assert triage.disposition == Disposition.AUTO_RESOLVABLE


async def test_escalate_is_kept_at_low_confidence(ticket):
    classifier = StubClassifier(make_output(disposition=Disposition.ESCALATE, disposition_conf=0.1))

    triage = await TriageAnnotator(classifier).annotate(ticket)

    assert triage.disposition == Disposition.ESCALATE


async def test_unknown_category_maps_to_fallback(ticket):
    classifier = StubClassifier(make_output(category="quantum_flux"))

    triage = await TriageAnnotator(classifier).annotate(ticket)

    assert triage.category == "other"
    assert triage.category_conf == 0.92


async def test_timeout_yields_degraded_triage(ticket):
    classifier = StubClassifier(delay=1.0)

    triage = await TriageAnnotator(classifier, timeout_seconds=0.05).annotate(ticket)

    assert triage.degraded is True
    assert triage.category == "other"
    assert triage.priority == Priority.MEDIUM
    assert triage.disposition == Disposition.NEEDS_OPERATOR
    assert (triage.category_conf, triage.priority_conf, triage.disposition_conf) == (0.0, 0.0, 0.0)
    assert triage.summary == "Не работает VPN"


@pytest.mark.parametrize("error", [
    ClassificationUnavailable("bad answer"),
    RuntimeError("connection reset"),
])
async def test_classifier_error_yields_degraded_triage(ticket, error):
    triage = await TriageAnnotator(StubClassifier(error=error)).annotate(ticket)

    assert triage.degraded is True
    assert triage.disposition == Disposition.NEEDS_OPERATOR


async def test_cancellation_is_not_absorbed(ticket):
    annotator = TriageAnnotator(StubClassifier(delay=5.0), timeout_seconds=10.0)
    task = asyncio.create_task(annotator.annotate(ticket))
    await asyncio.sleep(0.01)

    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


# ========== LLMClassificationService ==========

async def test_llm_answer_in_code_fence_is_parsed():
    answer = {
        "category": " Access_VPN ",
        "category_conf": 0.91,
        "priority": "HIGH",
        "priority_conf": 0.7,
        "disposition": "auto_resolvable",
        "disposition_conf": 0.85,
        "summary": "Пользователь не может подключиться к VPN",
    }
    client = MockLLMClient(f"```json\n{json.dumps(answer, ensure_ascii=False)}\n```")

    output = await LLMClassificationService(client).classify("VPN не подключается", "ru")

    assert output.category == "access_vpn"
    assert output.priority == Priority.HIGH
    assert output.disposition == Disposition.AUTO_RESOLVABLE
    system, user = client.calls[0]
    assert system["role"] == "system"
    assert "access_vpn" in system["content"]
    assert "Language: ru" in user["content"]


async def test_llm_default_mock_answer():
    output = await LLMClassificationService(MockLLMClient()).classify("anything", "en")

    assert output.category == "other"
    assert output.disposition == Disposition.NEEDS_OPERATOR


@pytest.mark.parametrize("content", [
    "I think this is about VPN",
    '{"category": "access_vpn", "category_conf": 1.7, "priority": "high", '
    '"priority_conf": 0.5, "disposition": "escalate", "disposition_conf": 0.5}',
    '{"category": "access_vpn", "category_conf": 0.7, "priority": "whenever", '
    '"priority_conf": 0.5, "disposition": "escalate", "disposition_conf": 0.5}',
])
async def test_llm_unusable_answer_is_unavailable(content):
    service = LLMClassificationService(MockLLMClient(content))

    with pytest.raises(ClassificationUnavailable):
        await service.classify("text", "en")


async def test_llm_provider_error_is_unavailable():
    with pytest.raises(ClassificationUnavailable):
        await LLMClassificationService(FailingLLMClient()).classify("text", "en")


def test_extract_json_strips_fences():
    assert extract_json('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert extract_json('```\n{"a": 1}\n```') == '{"a": 1}'
    assert extract_json('  {"a": 1} ') == '{"a": 1}'


def test_system_prompt_lists_catalog():
    prompt = ClassificationPromptBuilder.get_system_prompt()

    for code in ("access_vpn", "hardware", "incident", "other"):
        assert f"- {code}:" in prompt


# ========== KeywordClassificationService ==========

async def test_keywords_pick_best_category():
    output = await KeywordClassificationService().classify("Не могу войти в VPN, пароль не подходит", "ru")

    assert output.category == "access_vpn"
    assert output.category_conf == 0.75
    assert output.disposition == Disposition.AUTO_RESOLVABLE


async def test_keywords_escalation_word_forces_critical():
    output = await KeywordClassificationService().classify("Срочно! Сервер упал", "ru")

    assert output.priority == Priority.CRITICAL
    assert output.disposition == Disposition.ESCALATE
    assert output.disposition_conf == 0.95


async def test_keywords_incident_category_escalates():
    output = await KeywordClassificationService().classify("Сайт не работает с утра", "ru")

    assert output.category == "incident"
    assert output.priority == Priority.HIGH
    assert output.disposition == Disposition.ESCALATE


async def test_keywords_no_match_falls_back():
    output = await KeywordClassificationService().classify("Hello there\nsecond line", "en")

    assert output.category == "other"
    assert output.category_conf == 0.5
    assert output.disposition == Disposition.NEEDS_OPERATOR
    assert output.summary == "Hello there"
