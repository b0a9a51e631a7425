import json

import pytest
import requests

from auslan_tutor.classifier import RemoteGestureClassifier
from auslan_tutor.config import RemoteConfig
from auslan_tutor.errors import AuthFailure, MalformedRemoteResponse, RateLimited, TransportFailure
from auslan_tutor.remote import ChatClient

VALID_KEY = "sk-test-0123456789abcdefghij"


class FakeResponse:
    def __init__(self, status_code=200, body=None, text_body=None):
        self.status_code = status_code
        self._body = body
        self._text = text_body

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._text is not None:
            return json.loads(self._text)
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []
        self.gets = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.posts.append({"url": url, "headers": headers, "json": json})
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url, headers=None, timeout=None):
        self.gets.append(url)
        if self.error is not None:
            raise self.error
        return self.response


def chat_reply(content):
    return FakeResponse(200, {"choices": [{"message": {"content": content}}]})


def make_classifier(response=None, error=None, api_key=VALID_KEY):
    config = RemoteConfig(api_key=api_key)
    session = FakeSession(response, error)
    return RemoteGestureClassifier(config, ChatClient(config, session)), session


# ── Practice ─────────────────────────────────────────────────────────────────


def test_analyze_parses_outcome_and_sends_one_image(skin_frame):
    reply = json.dumps({
        "recognized": True,
        "gesture": "Hello",
        "confidence": 92,
        "feedback": "Lovely wave.",
        "suggestions": ["Keep your palm forward"],
    })
    classifier, session = make_classifier(chat_reply(reply))

    outcome = classifier.analyze(skin_frame, "Hello")

    assert outcome.matched is True
    assert outcome.label == "Hello"
    assert outcome.confidence == 92
    assert outcome.feedback == "Lovely wave."
    assert outcome.suggestions == ["Keep your palm forward"]

    (post,) = session.posts
    assert post["url"].endswith("/chat/completions")
    assert post["headers"]["Authorization"] == f"Bearer {VALID_KEY}"
    assert post["json"]["model"] == "gpt-4.1-2025-04-14"
    user_content = post["json"]["messages"][1]["content"]
    images = [part for part in user_content if part["type"] == "image_url"]
    assert len(images) == 1
    assert images[0]["image_url"]["url"].startswith("data:image/jpeg;base64,")


def test_analyze_strips_code_fences_and_clamps_confidence(skin_frame):
    reply = '```json\n{"recognized": false, "confidence": 140, "feedback": "Try again"}\n```'
    classifier, _ = make_classifier(chat_reply(reply))

    outcome = classifier.analyze(skin_frame, "Water")

    assert outcome.matched is False
    assert outcome.confidence == 100
    assert outcome.label == "Water"
    assert outcome.suggestions == []


@pytest.mark.parametrize(
    "content",
    [
        "I think that was great!",
        '["not", "an", "object"]',
        '{"confidence": 50}',
        '{"recognized": true, "confidence": "high"}',
        '{"recognized": "false", "confidence": 10}',
        '{"recognized": 1, "confidence": 10}',
        '{"recognized": null}',
    ],
)
def test_unparseable_reply_is_malformed(skin_frame, content):
    classifier, _ = make_classifier(chat_reply(content))
    with pytest.raises(MalformedRemoteResponse):
        classifier.analyze(skin_frame, "Hello")


# ── Candidate recognition ────────────────────────────────────────────────────


def test_recognize_matches_candidate_case_insensitively(skin_frame):
    reply = json.dumps({"recognizedGesture": "WATER", "confidence": 81, "suggestions": []})
    classifier, session = make_classifier(chat_reply(reply))

    outcome = classifier.recognize(skin_frame, ["hello", "water"])

    assert outcome.matched is True
    assert outcome.label == "water"
    assert outcome.confidence == 81
    assert session.posts[0]["json"]["model"] == "gpt-4o"
    assert "hello, water" in session.posts[0]["json"]["messages"][0]["content"]


def test_recognize_unknown_label_is_not_matched(skin_frame):
    reply = json.dumps({"recognizedGesture": "banana", "confidence": 20})
    classifier, _ = make_classifier(chat_reply(reply))
    outcome = classifier.recognize(skin_frame, ["hello"])
    assert outcome.matched is False
    assert outcome.label == "banana"


def test_recognize_requires_candidates(skin_frame):
    classifier, session = make_classifier(chat_reply("{}"))
    with pytest.raises(ValueError):
        classifier.recognize(skin_frame, [])
    assert session.posts == []


# ── HTTP error mapping ───────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "status, error",
    [(401, AuthFailure), (403, AuthFailure), (429, RateLimited), (500, TransportFailure), (503, TransportFailure)],
)
def test_http_status_mapping(skin_frame, status, error):
    classifier, _ = make_classifier(FakeResponse(status, {}))
    with pytest.raises(error):
        classifier.analyze(skin_frame, "Hello")


def test_network_error_is_transport_failure(skin_frame):
    classifier, _ = make_classifier(error=requests.ConnectionError("no route"))
    with pytest.raises(TransportFailure):
        classifier.analyze(skin_frame, "Hello")


def test_invalid_key_fails_before_request(skin_frame):
    classifier, session = make_classifier(chat_reply("{}"), api_key="not-a-key")
    with pytest.raises(AuthFailure) as info:
        classifier.analyze(skin_frame, "Hello")
    assert info.value.retryable is False
    assert session.posts == []


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(200, {"choices": []}),
        FakeResponse(200, {"choices": [{"message": {"content": ""}}]}),
        FakeResponse(200, text_body="<html>"),
    ],
)
def test_unexpected_body_is_malformed(skin_frame, response):
    classifier, _ = make_classifier(response)
    with pytest.raises(MalformedRemoteResponse):
        classifier.analyze(skin_frame, "Hello")


def test_verify_credential():
    config = RemoteConfig()
    assert ChatClient(config, FakeSession(FakeResponse(200, {}))).verify_credential(VALID_KEY)
    assert not ChatClient(config, FakeSession(FakeResponse(401, {}))).verify_credential(VALID_KEY)
    assert not ChatClient(config, FakeSession(error=requests.Timeout())).verify_credential(VALID_KEY)
    session = FakeSession(FakeResponse(200, {}))
    assert not ChatClient(config, session).verify_credential("short")
    assert session.gets == []
