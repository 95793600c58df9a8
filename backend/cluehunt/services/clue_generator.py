"""AI clue generation for clue sets."""
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import httpx

from cluehunt.config import get_settings
from cluehunt.services.errors import ClueGenerationError

settings = get_settings()
logger = logging.getLogger("cluehunt.clues")

CLUE_TYPES = ("TEXT_ANSWER", "PHOTO_UPLOAD", "COMBINED")

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_NUMBERED_CLUE_RE = re.compile(
    r"\d+\.\s*(.+?)\s*\[(TEXT_ANSWER|PHOTO_UPLOAD|COMBINED)\]", re.IGNORECASE
)


def difficulty_for_level(level: Optional[int]) -> str:
    level = level or 1
    if level <= 3:
        return "easy"
    if level <= 6:
        return "medium"
    return "hard"


@dataclass
class ClueRequest:
    """Everything the generator needs to know about the area."""
    location_name: str
    center: tuple[float, float]
    radius_km: float
    phase: str = "PHASE_1"
    level: int = 1
    stage: int = 1
    clues_count: int = 4

    @property
    def difficulty(self) -> str:
        return difficulty_for_level(self.level)


@dataclass
class GeneratedClue:
    question: str
    type: str = "TEXT_ANSWER"
    answer: Optional[str] = None
    hint: Optional[str] = None


@dataclass
class GeneratedContent:
    clues: list[GeneratedClue] = field(default_factory=list)
    main_subject: Optional[str] = None


class ClueGenerator(ABC):
    """Abstract base class for clue generators."""

    @abstractmethod
    async def generate(self, request: ClueRequest) -> GeneratedContent:
        """Generate clues for an area. Raises ClueGenerationError on failure."""
        ...


def build_prompt(request: ClueRequest) -> str:
    lat, lng = request.center
    return (
        f"You are a game master for a geolocation-based scavenger hunt. "
        f"Generate {request.clues_count} clues for players in the area around "
        f"{request.location_name} (center: {lat}, {lng}, radius: {request.radius_km}km). "
        f"The clues should be {request.difficulty} and appropriate for phase {request.phase}, "
        f"level {request.level}, stage {request.stage}. Each clue must require the player to "
        f"physically visit or interact with something within the area, and the clues should "
        f"form a chain leading to one main subject.\n"
        f"Respond with a JSON object only, no extra text:\n"
        f'{{"mainSubject": "...", "clues": [{{"question": "...", "answer": "...", '
        f'"hint": "...", "type": "TEXT_ANSWER | PHOTO_UPLOAD | COMBINED"}}]}}'
    )


def _normalize_type(value) -> str:
    value = str(value or "").strip().upper()
    return value if value in CLUE_TYPES else "TEXT_ANSWER"


def _clues_from_json(items) -> list[GeneratedClue]:
    if not isinstance(items, list) or not items:
        raise ClueGenerationError("No clues returned by the generator")

    clues = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ClueGenerationError(f"Clue at index {idx} is not an object")
        question = item.get("question")
        answer = item.get("answer")
        if not isinstance(question, str) or len(question.strip()) <= 1:
            raise ClueGenerationError(f"Clue question missing or too short at index {idx}")
        if not isinstance(answer, str) or len(answer.strip()) <= 1:
            raise ClueGenerationError(f"Clue answer missing or too short at index {idx}")
        hint = item.get("hint")
        clues.append(
            GeneratedClue(
                question=question.strip(),
                answer=answer.strip(),
                hint=hint.strip() if isinstance(hint, str) and hint.strip() else None,
                type=_normalize_type(item.get("type")),
            )
        )
    return clues


def parse_generated_content(text: str) -> GeneratedContent:
    """Parse a model reply into clues.

    Accepts a JSON object with ``mainSubject``/``clues``, a bare JSON array of
    clues (optionally inside a code fence), or a numbered list where each line
    ends with a ``[TYPE]`` tag.
    """
    text = (text or "").strip()
    if not text:
        raise ClueGenerationError("Empty response from clue generator")

    fenced = _FENCE_RE.search(text)
    body = fenced.group(1).strip() if fenced else text

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        data = None

    if isinstance(data, dict):
        subject = data.get("mainSubject") or data.get("main_subject")
        return GeneratedContent(
            clues=_clues_from_json(data.get("clues")),
            main_subject=subject.strip() if isinstance(subject, str) and subject.strip() else None,
        )
    if isinstance(data, list):
        return GeneratedContent(clues=_clues_from_json(data))

    clues = [
        GeneratedClue(question=match.group(1).strip(), type=match.group(2).upper())
        for match in _NUMBERED_CLUE_RE.finditer(text)
    ]
    if not clues:
        raise ClueGenerationError("Could not parse clues from generator response")
    return GeneratedContent(clues=clues)


class ChatCompletionClueGenerator(ClueGenerator):
    """Clue generator using an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.CLUE_GENERATOR_URL).rstrip("/")
        self.api_key = settings.CLUE_GENERATOR_API_KEY if api_key is None else api_key
        self.model = model or settings.CLUE_GENERATOR_MODEL
        self.timeout = timeout or settings.CLUE_GENERATOR_TIMEOUT
        self._transport = transport

    async def generate(self, request: ClueRequest) -> GeneratedContent:
        if not self.api_key or not self.api_key.strip():
            logger.error("Clue generator API key not configured")
            raise ClueGenerationError(
                "Clue generator API key is not configured. Set CLUE_GENERATOR_API_KEY."
            )

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": "You are a creative scavenger hunt clue generator."},
                {"role": "user", "content": build_prompt(request)},
            ],
            "temperature": 0.8,
            "max_tokens": 800,
        }

        logger.info(f"Requesting {request.clues_count} clues for {request.location_name}")
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Clue generator returned {e.response.status_code}: {e.response.text[:500]}")
                raise ClueGenerationError(
                    f"Clue generator request failed with status {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                logger.error(f"Clue generator request failed: {e}")
                raise ClueGenerationError(f"Clue generator request failed: {e}") from e

        try:
            text = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ClueGenerationError("Malformed response from clue generator") from e

        logger.debug(f"Raw clue generator response: {text}")
        content = parse_generated_content(text)
        logger.info(f"Generated {len(content.clues)} clues for {request.location_name}")
        return content
