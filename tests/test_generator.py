# tests/test_generator.py
import json
from unittest.mock import patch

import pytest

from studyforge.generator import (
    GenerationError, extract_text_from_image, generate_questions, generate_study_content,
    get_api_key, modify_card, parse_question,
)
from studyforge.models import MULTIPLE_CHOICE, SHORT_ANSWER, TRUE_FALSE

STUDY_SET_RESPONSE = {
    "title": "Photosynthesis",
    "description": "How plants make food",
    "tags": ["biology"],
    "flashcards": [
        {"front": "What is chlorophyll?", "back": "A green pigment"},
        {"front": "Where does photosynthesis happen?", "back": "Chloroplasts"},
    ],
    "quizQuestions": [
        {"type": "multiple-choice", "question": "Pigment?", "options": ["A", "B", "C", "D"],
         "correctAnswer": "A", "explanation": "Because."},
        {"type": "true-false", "question": "Plants need light.", "options": ["x"],
         "correctAnswer": "true", "explanation": ""},
        {"type": "short-answer", "question": "Gas released?", "correctAnswer": "Oxygen",
         "explanation": ""},
        {"type": "essay", "question": "Discuss.", "correctAnswer": "", "explanation": ""},
    ],
    "studyGuide": "# Photosynthesis",
}


def test_generate_study_content_parses_response():
    with patch("studyforge.generator._call_model", return_value=json.dumps(STUDY_SET_RESPONSE)):
        content = generate_study_content("notes", "Easy")
    assert content.title == "Photosynthesis"
    assert content.tags == ["biology"]
    assert content.flashcards[0] == ("What is chlorophyll?", "A green pigment")
    assert [q.type for q in content.questions] == [MULTIPLE_CHOICE, TRUE_FALSE, SHORT_ANSWER]
    assert content.study_guide == "# Photosynthesis"


def test_true_false_answer_is_capitalized():
    q = parse_question({"type": "true-false", "question": "?", "correctAnswer": " false "})
    assert q.expected_answer == "False"
    assert q.options == ()


def test_parse_question_assigns_fresh_ids():
    data = {"type": "short-answer", "question": "?", "correctAnswer": "x"}
    assert parse_question(data).id != parse_question(data).id


def test_parse_question_rejects_unknown_type():
    with pytest.raises(ValueError):
        parse_question({"type": "essay", "question": "?", "correctAnswer": "x"})


def test_prompt_truncates_source_text():
    with patch("studyforge.generator._call_model", return_value=json.dumps(STUDY_SET_RESPONSE)) as call:
        generate_study_content("x" * 60000)
    prompt = call.call_args[0][0]
    assert "x" * 50000 in prompt
    assert "x" * 50001 not in prompt


def test_generate_study_content_bad_json():
    with patch("studyforge.generator._call_model", return_value="not json"):
        with pytest.raises(GenerationError, match="Failed to generate study set"):
            generate_study_content("notes")


def test_generate_study_content_service_failure():
    with patch("studyforge.generator._call_model", side_effect=RuntimeError("503")):
        with pytest.raises(GenerationError):
            generate_study_content("notes")


def test_generate_questions():
    payload = [{"type": "short-answer", "question": "Gas?", "correctAnswer": "Oxygen",
                "explanation": ""}]
    with patch("studyforge.generator._call_model", return_value=json.dumps(payload)) as call:
        questions = generate_questions("notes", 1, "Hard")
    assert questions[0].expected_answer == "Oxygen"
    assert "Difficulty: Hard" in call.call_args[0][0]


def test_generate_questions_empty_is_failure():
    with patch("studyforge.generator._call_model", return_value="[]"):
        with pytest.raises(GenerationError, match="Failed to generate new questions"):
            generate_questions("notes", 5)


def test_modify_card():
    with patch("studyforge.generator._call_model",
               return_value=json.dumps({"front": "Simple?", "back": "Yes"})):
        assert modify_card("Complex?", "Maybe", "Simplify") == ("Simple?", "Yes")


def test_modify_card_incomplete_response():
    with patch("studyforge.generator._call_model", return_value=json.dumps({"front": "x"})):
        with pytest.raises(GenerationError):
            modify_card("a", "b", "Simplify")


def test_missing_api_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    with pytest.raises(GenerationError, match="API Key not found"):
        get_api_key()


def test_api_key_fallback(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("API_KEY", "abc")
    assert get_api_key() == "abc"


def test_extract_text_from_image(tmp_path):
    image = tmp_path / "notes.png"
    image.write_bytes(b"\x89PNG fake")
    with patch("studyforge.generator._call_model", return_value="Mitochondria") as call:
        assert extract_text_from_image(str(image)) == "Mitochondria"
    contents = call.call_args[0][0]
    assert contents[0]["mime_type"] == "image/png"
    assert call.call_args[1]["json_output"] is False


def test_extract_text_from_image_failure(tmp_path):
    image = tmp_path / "notes.png"
    image.write_bytes(b"\x89PNG fake")
    with patch("studyforge.generator._call_model", side_effect=RuntimeError("boom")):
        with pytest.raises(GenerationError, match="Failed to extract text"):
            extract_text_from_image(str(image))
