"""Daily Strike: deterministic cricket trivia built from tournament fixtures."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from iiskills_gateway.config import CONTENT_APPS_DIR, CONTENT_ROOT, DAILY_STRIKE_APP

logger = logging.getLogger(__name__)

MIN_COUNT = 5
MAX_COUNT = 10
DEFAULT_TOURNAMENT = "ICC Cricket World Cup 2026"

FIXTURES_FILE = Path("data") / "fixtures" / "worldcup-fixtures.json"
BANLIST_FILE = Path("config") / "content-banlist.json"

_FIXTURE_DISTRACTORS = ("India vs Australia", "England vs Pakistan", "New Zealand vs South Africa")


def clamp_count(raw) -> int:
    """Requested question count forced into 5..10; junk means 5."""
    try:
        count = int(raw)
    except (TypeError, ValueError):
        count = MIN_COUNT
    return min(max(count, MIN_COUNT), MAX_COUNT)


def app_dir() -> Path:
    return Path(CONTENT_ROOT) / CONTENT_APPS_DIR / DAILY_STRIKE_APP


def _load_json(path: Path, default: dict) -> dict:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not load %s: %s", path, e)
        return default


def load_fixtures(base: Path | None = None) -> dict:
    return _load_json((base or app_dir()) / FIXTURES_FILE, {"fixtures": [], "venues": []})


def load_banlist(base: Path | None = None) -> dict:
    return _load_json((base or app_dir()) / BANLIST_FILE,
                      {"bannedKeywords": [], "bannedPhrases": [], "controversialTopics": []})


def moderation_reason(text: str, banlist: dict) -> str | None:
    """Why text is flagged, or None when clean."""
    lower = text.lower()
    checks = (
        ("bannedKeywords", "Banned keyword"),
        ("bannedPhrases", "Banned phrase"),
        ("controversialTopics", "Controversial topic"),
    )
    for key, label in checks:
        for term in banlist.get(key) or []:
            if term.lower() in lower:
                return f"{label}: {term}"
    return None


def _fixture_question(fixture: dict, fixtures: list[dict], venues: list[dict]) -> dict:
    answer = f"{fixture.get('teamA')} vs {fixture.get('teamB')}"
    return {
        "question": f"Which teams are playing in Match {fixture.get('matchNumber')} of the World Cup?",
        "correctAnswer": answer,
        "distractors": [d for d in _FIXTURE_DISTRACTORS if d != answer][:3],
        "category": "fixtures",
        "difficulty": "easy",
    }


def _venue_question(fixture: dict, fixtures: list[dict], venues: list[dict]) -> dict | None:
    venue = next((v for v in venues if v.get("id") == fixture.get("venue")), None)
    if not venue:
        return None
    return {
        "question": f"In which city is the {fixture.get('teamA')} vs {fixture.get('teamB')} match being held?",
        "correctAnswer": venue.get("city"),
        "distractors": [v.get("city") for v in venues if v.get("city") != venue.get("city")][:3],
        "category": "venue",
        "difficulty": "medium",
    }


def _date_question(fixture: dict, fixtures: list[dict], venues: list[dict]) -> dict:
    return {
        "question": f"On which date is Match {fixture.get('matchNumber')} scheduled?",
        "correctAnswer": fixture.get("date"),
        "distractors": [f.get("date") for f in fixtures if f.get("date") != fixture.get("date")][:3],
        "category": "schedule",
        "difficulty": "medium",
    }


TEMPLATES = (_fixture_question, _venue_question, _date_question)


def generate_questions(count: int, fixtures_data: dict, banlist: dict) -> list[dict]:
    """Rotate templates over fixtures; drop questions short on distractors or flagged."""
    fixtures = fixtures_data.get("fixtures") or []
    venues = fixtures_data.get("venues") or []
    questions = []

    for i in range(min(count, len(fixtures))):
        fixture = fixtures[i % len(fixtures)]
        question = TEMPLATES[i % len(TEMPLATES)](fixture, fixtures, venues)
        if not question or len(question["distractors"]) < 3:
            continue
        text = " ".join([question["question"], str(question["correctAnswer"]),
                         *map(str, question["distractors"])])
        reason = moderation_reason(text, banlist)
        if reason:
            logger.warning("Question flagged by moderation: %s", reason)
            continue
        questions.append({
            "id": f"daily_strike_{i + 1}",
            **question,
            "sourceDataId": fixture.get("matchId"),
            "moderationStatus": "approved",
        })
    return questions


def daily_strike(count=MIN_COUNT, base: Path | None = None) -> dict:
    """Questions plus tournament metadata. Empty ``questions`` means nothing usable."""
    fixtures_data = load_fixtures(base)
    questions = generate_questions(clamp_count(count), fixtures_data, load_banlist(base))
    tournament = fixtures_data.get("tournament") or DEFAULT_TOURNAMENT
    if questions:
        logger.info("Daily strike generated %d questions for %s", len(questions), tournament)
    return {
        "count": len(questions),
        "questions": questions,
        "tournament": tournament,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    }
