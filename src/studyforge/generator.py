"""Study content generation with Gemini."""
import json
import logging
import mimetypes
import os
from dataclasses import dataclass, field
from pathlib import Path

from studyforge.models import (
    Question, MULTIPLE_CHOICE, TRUE_FALSE, QUESTION_TYPES, MEDIUM, new_id,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
CONTENT_CHAR_LIMIT = 50000
QUESTION_CHAR_LIMIT = 30000
CARD_ACTIONS = ("Simplify", "Add Example", "Make Harder")


class GenerationError(Exception):
    """The content service failed or returned something unusable."""


@dataclass
class GeneratedContent:
    title: str
    description: str
    study_guide: str
    tags: list = field(default_factory=list)
    flashcards: list = field(default_factory=list)  # (front, back) pairs
    questions: list = field(default_factory=list)


def get_api_key() -> str:
    api_key = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    if not api_key:
        raise GenerationError("API Key not found")
    return api_key


def _call_model(contents, model_name: str = DEFAULT_MODEL, json_output: bool = True) -> str:
    """Send contents to Gemini and return the response text."""
    import google.generativeai as genai

    genai.configure(api_key=get_api_key())
    model = genai.GenerativeModel(model_name)
    config = {"response_mime_type": "application/json"} if json_output else None
    response = model.generate_content(contents, generation_config=config)
    if not response.text:
        raise GenerationError("No response from AI")
    return response.text


def _request_json(prompt: str, model_name: str, failure: str):
    try:
        return json.loads(_call_model(prompt, model_name))
    except GenerationError:
        raise
    except Exception as e:
        logger.error("Gemini generation error: %s", e, exc_info=True)
        raise GenerationError(failure) from e


def parse_question(data: dict) -> Question:
    """Build a Question with a fresh id from the model's JSON."""
    qtype = data.get("type")
    if qtype not in QUESTION_TYPES:
        raise ValueError(f"Unknown question type: {qtype!r}")
    expected = str(data["correctAnswer"])
    if qtype == TRUE_FALSE and expected.strip().lower() in ("true", "false"):
        expected = expected.strip().capitalize()
    options = tuple(data.get("options") or ()) if qtype == MULTIPLE_CHOICE else ()
    return Question(
        id=new_id(),
        type=qtype,
        prompt=data["question"],
        options=options,
        expected_answer=expected,
        explanation=data.get("explanation", ""),
    )


def _parse_questions(items: list) -> list[Question]:
    questions = []
    for item in items:
        try:
            questions.append(parse_question(item))
        except (KeyError, ValueError) as e:
            logger.warning("Skipping malformed question: %s", e)
    return questions


def generate_study_content(
    text: str, difficulty: str = MEDIUM, model_name: str = DEFAULT_MODEL
) -> GeneratedContent:
    """Generate flashcards, questions and a study guide from source notes."""
    prompt = f"""
You are an expert educational tutor. Analyze the provided study notes and generate a comprehensive study set.

Difficulty Level: {difficulty}

Rules:
1. STRICTLY base all content on the provided text.
2. Identify ALL key concepts, vocabulary, dates, formulas, and important details.
3. Generate Flashcards for EVERY important concept found in the text. Ensure comprehensive coverage.
4. Generate 6 Quiz Questions. Mix 'multiple-choice', 'true-false', and 'short-answer'.
5. For multiple-choice, provide 1 correct answer and 3 realistic distractors in "options".
6. For true-false, the correctAnswer is exactly "True" or "False".
7. Generate a 'studyGuide': a markdown summary of key takeaways and likely exam topics.

Respond with JSON of the form:
{{"title": str, "description": str, "tags": [str],
  "flashcards": [{{"front": str, "back": str}}],
  "quizQuestions": [{{"type": str, "question": str, "options": [str],
                     "correctAnswer": str, "explanation": str}}],
  "studyGuide": str}}

Input Text:
"{text[:CONTENT_CHAR_LIMIT]}"
"""
    data = _request_json(prompt, model_name, "Failed to generate study set. Please try again.")
    try:
        content = GeneratedContent(
            title=data.get("title", ""),
            description=data.get("description", ""),
            study_guide=data.get("studyGuide", ""),
            tags=list(data.get("tags", [])),
            flashcards=[(c["front"], c["back"]) for c in data.get("flashcards", [])],
            questions=_parse_questions(data.get("quizQuestions", [])),
        )
    except (AttributeError, KeyError, TypeError) as e:
        logger.error("Unexpected study set payload: %s", e)
        raise GenerationError("Failed to generate study set. Please try again.") from e
    logger.info(
        "Generated %d flashcards and %d questions",
        len(content.flashcards), len(content.questions),
    )
    return content


def generate_questions(
    text: str, count: int, difficulty: str = MEDIUM, model_name: str = DEFAULT_MODEL
) -> list[Question]:
    """Generate a fresh batch of questions from source notes."""
    prompt = f"""
Generate {count} distinct quiz questions based on the text below.
Difficulty: {difficulty}
Include a mix of multiple-choice, true-false, and short-answer questions.
For true-false, the correctAnswer is exactly "True" or "False".

Respond with a JSON array of
{{"type": "multiple-choice" | "true-false" | "short-answer", "question": str,
  "options": [str], "correctAnswer": str, "explanation": str}}

Input Text:
"{text[:QUESTION_CHAR_LIMIT]}"
"""
    data = _request_json(prompt, model_name, "Failed to generate new questions.")
    if not isinstance(data, list):
        raise GenerationError("Failed to generate new questions.")
    questions = _parse_questions(data)
    if not questions:
        raise GenerationError("Failed to generate new questions.")
    return questions


def modify_card(front: str, back: str, instruction: str, model_name: str = DEFAULT_MODEL) -> tuple[str, str]:
    """Rewrite a flashcard following an instruction such as 'Simplify'."""
    prompt = f"""
Current Flashcard:
Front: "{front}"
Back: "{back}"

Instruction: "{instruction}"

Output the modified card as JSON: {{"front": str, "back": str}}
"""
    data = _request_json(prompt, model_name, "AI Modification failed. Please try again.")
    if not isinstance(data, dict) or not data.get("front") or not data.get("back"):
        raise GenerationError("AI Modification failed. Please try again.")
    return data["front"], data["back"]


def extract_text_from_image(file_path: str, model_name: str = DEFAULT_MODEL) -> str:
    """Transcribe the text in an image file."""
    mime_type = mimetypes.guess_type(file_path)[0] or "image/png"
    contents = [
        {"mime_type": mime_type, "data": Path(file_path).read_bytes()},
        "Transcribe all text from this image exactly as it appears. Do not summarize.",
    ]
    try:
        return _call_model(contents, model_name, json_output=False)
    except GenerationError:
        raise
    except Exception as e:
        logger.error("Image extraction error: %s", e, exc_info=True)
        raise GenerationError("Failed to extract text from image.") from e
