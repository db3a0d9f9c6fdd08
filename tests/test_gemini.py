import json
from unittest.mock import Mock, patch

import pytest
import requests

from errors import AnalysisError, GenerationError
from gemini import (
    ANALYSIS_PROMPT,
    STYLE_RESPONSE_SCHEMA,
    GeminiStyleService,
    build_generation_prompt,
)
from models import STYLE_FIELDS
from settings import Settings


def make_response(body=None, status_code=200, text=""):
    resp = Mock()
    resp.status_code = status_code
    resp.text = text or json.dumps(body)
    resp.json.return_value = body
    return resp


def text_response(text):
    return make_response({"candidates": [{"content": {"parts": [{"text": text}]}}]})


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def service(session):
    return GeminiStyleService(
        "test-key",
        analysis_model="analysis-model",
        generation_model="image-model",
        api_base="https://example.test/v1beta/",
        timeout=5,
        session=session,
    )


class TestAnalyze:
    def test_returns_description(self, service, session, reference_image, style_json):
        session.post.return_value = text_response(json.dumps(style_json))

        desc = service.analyze(reference_image)

        assert desc.to_dict() == style_json
        assert desc.cohesive_prompt

    def test_request_shape(self, service, session, reference_image, style_json):
        session.post.return_value = text_response(json.dumps(style_json))

        service.analyze(reference_image)

        args, kwargs = session.post.call_args
        assert args[0] == "https://example.test/v1beta/models/analysis-model:generateContent"
        assert kwargs["params"] == {"key": "test-key"}
        assert kwargs["timeout"] == 5
        parts = kwargs["json"]["contents"][0]["parts"]
        inline = parts[0]["inline_data"]
        assert inline["mime_type"] == "image/png"
        assert inline["data"] == reference_image.base64_data
        assert not inline["data"].startswith("data:")
        assert parts[1]["text"] == ANALYSIS_PROMPT
        config = kwargs["json"]["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"] == STYLE_RESPONSE_SCHEMA

    def test_schema_requires_all_seven_string_fields(self):
        assert sorted(STYLE_RESPONSE_SCHEMA["required"]) == sorted(STYLE_FIELDS.values())
        assert all(p == {"type": "STRING"} for p in STYLE_RESPONSE_SCHEMA["properties"].values())

    def test_text_split_across_parts_is_joined(self, service, session, reference_image, style_json):
        raw = json.dumps(style_json)
        body = {"candidates": [{"content": {"parts": [{"text": raw[:10]}, {"text": raw[10:]}]}}]}
        session.post.return_value = make_response(body)

        assert service.analyze(reference_image).to_dict() == style_json

    def test_empty_response_fails(self, service, session, reference_image):
        session.post.return_value = make_response({"candidates": []})
        with pytest.raises(AnalysisError):
            service.analyze(reference_image)

    def test_malformed_json_fails(self, service, session, reference_image):
        session.post.return_value = text_response("{outfit: ")
        with pytest.raises(AnalysisError):
            service.analyze(reference_image)

    def test_incomplete_json_fails(self, service, session, reference_image, style_json):
        del style_json["lighting"]
        session.post.return_value = text_response(json.dumps(style_json))
        with pytest.raises(AnalysisError, match="lighting"):
            service.analyze(reference_image)

    def test_network_error_fails(self, service, session, reference_image):
        session.post.side_effect = requests.ConnectionError("offline")
        with pytest.raises(AnalysisError, match="Failed to analyze image style"):
            service.analyze(reference_image)

    def test_http_error_fails(self, service, session, reference_image):
        session.post.return_value = make_response(status_code=429, text="quota exceeded")
        with pytest.raises(AnalysisError, match="429"):
            service.analyze(reference_image)


class TestApply:
    def test_returns_first_inline_image(self, service, session, source_image):
        body = {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"text": "Here you go"},
                            {"inlineData": {"mimeType": "image/png", "data": "AAAA"}},
                            {"inlineData": {"mimeType": "image/jpeg", "data": "BBBB"}},
                        ]
                    }
                }
            ]
        }
        session.post.return_value = make_response(body)

        result = service.apply(source_image, "camel trench coat")

        assert result.payload == "data:image/png;base64,AAAA"
        assert result.media_type == "image/png"

    def test_snake_case_inline_data_accepted(self, service, session, source_image):
        body = {"candidates": [{"content": {"parts": [{"inline_data": {"mime_type": "image/webp", "data": "CCCC"}}]}}]}
        session.post.return_value = make_response(body)

        assert service.apply(source_image, "x").payload == "data:image/webp;base64,CCCC"

    def test_prompt_embeds_style(self, service, session, source_image):
        body = {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": "image/png", "data": "AAAA"}}]}}]}
        session.post.return_value = make_response(body)

        service.apply(source_image, "camel trench coat")

        args, kwargs = session.post.call_args
        assert args[0].endswith("/models/image-model:generateContent")
        parts = kwargs["json"]["contents"][0]["parts"]
        assert parts[0]["inline_data"]["data"] == source_image.base64_data
        assert parts[1]["text"] == build_generation_prompt("camel trench coat")
        assert parts[1]["text"].endswith("to match this: camel trench coat")
        assert "facial features and identity" in parts[1]["text"]

    def test_no_parts_fails(self, service, session, source_image):
        session.post.return_value = make_response({"candidates": [{"content": {"parts": []}}]})
        with pytest.raises(GenerationError, match="No image generated"):
            service.apply(source_image, "x")

    def test_no_candidates_fails(self, service, session, source_image):
        session.post.return_value = make_response({})
        with pytest.raises(GenerationError, match="No image generated"):
            service.apply(source_image, "x")

    def test_parts_without_image_fail(self, service, session, source_image):
        session.post.return_value = text_response("I cannot do that")
        with pytest.raises(GenerationError, match="no image was found"):
            service.apply(source_image, "x")

    def test_network_error_fails(self, service, session, source_image):
        session.post.side_effect = requests.Timeout("slow")
        with pytest.raises(GenerationError):
            service.apply(source_image, "x")


def test_from_settings_uses_module_level_post(reference_image, style_json):
    settings = Settings(api_key="k", api_base="https://example.test", timeout=3)
    with patch("gemini.requests.post", return_value=text_response(json.dumps(style_json))) as post:
        service = GeminiStyleService.from_settings(settings, analysis_model="picked")
        service.analyze(reference_image)

    assert post.call_args[0][0] == "https://example.test/models/picked:generateContent"
    assert post.call_args[1]["timeout"] == 3


def test_from_settings_requires_api_key():
    with pytest.raises(ValueError):
        GeminiStyleService.from_settings(Settings(api_key=None))
