"""Deterministic, offline extraction capability.

Rule-based: each sentence spoken by the user that mentions a known topic
keyword becomes one candidate memory. The same input always yields the same
envelope, which makes it suitable for tests and for local development
without model credentials.
"""

import re
from typing import Any

from ember.enums import CATEGORY_ORDER, MemoryCategory
from ember.extraction.extractor import ExtractionCapability
from ember.extraction.models import ProfileContext

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")
_WORD = re.compile(r"[a-z']+")
_USER_PREFIX = re.compile(r"^\s*(user|me|you said|human)\s*:\s*", re.IGNORECASE)
_ASSISTANT_PREFIX = re.compile(
    r"^\s*(assistant|ai|chatgpt|claude|gemini|bot)\s*:", re.IGNORECASE
)

CATEGORY_KEYWORDS: dict[MemoryCategory, frozenset[str]] = {
    MemoryCategory.EMOTIONAL: frozenset(
        {
            "afraid", "angry", "anxiety", "anxious", "cried", "cry", "crying", "depressed",
            "feel", "felt", "grief", "happy", "lonely", "overwhelmed", "proud", "sad",
            "scared", "stress", "stressed", "therapy", "upset", "worried",
        }
    ),
    MemoryCategory.WORK: frozenset(
        {
            "boss", "career", "client", "colleague", "company", "coworker", "deadline",
            "engineer", "fired", "hired", "interview", "job", "manager", "meeting", "office",
            "project", "promoted", "promotion", "salary", "startup", "work",
        }
    ),
    MemoryCategory.HOBBIES: frozenset(
        {
            "book", "chess", "climbing", "cooking", "film", "game", "games", "garden",
            "gardening", "guitar", "hiking", "hobby", "movie", "music", "paint", "painting",
            "photography", "piano", "reading", "running", "travel",
        }
    ),
    MemoryCategory.RELATIONSHIPS: frozenset(
        {
            "aunt", "baby", "boyfriend", "brother", "cat", "cousin", "dad", "daughter", "dog",
            "family", "father", "friend", "friends", "girlfriend", "grandma", "grandpa",
            "husband", "kid", "kids", "married", "mom", "mother", "partner", "pet", "sister",
            "son", "uncle", "wedding", "wife",
        }
    ),
    MemoryCategory.PREFERENCES: frozenset(
        {
            "allergic", "dislike", "dislikes", "enjoy", "enjoys", "favorite", "favourite",
            "hate", "hates", "like", "likes", "love", "loves", "prefer", "prefers", "rather",
            "vegan", "vegetarian",
        }
    ),
}

# Events that raise importance by one step
LIFE_EVENTS = frozenset(
    {
        "born", "birthday", "died", "diagnosed", "divorce", "engaged", "fired", "funeral",
        "graduated", "hired", "married", "moved", "passed", "pregnant", "promoted", "turned",
    }
)

MIN_WORDS = 4


def _split_sentences(raw_text: str) -> list[str]:
    return [part.strip() for part in _SENTENCE_SPLIT.split(raw_text) if part.strip()]


def _classify(words: list[str]) -> tuple[MemoryCategory | None, list[str]]:
    """Pick the category with the most keyword hits (ties go to section order).

    Returns:
        (category or None when nothing matched, emotional words found)
    """
    best: MemoryCategory | None = None
    best_hits = 0
    for category in CATEGORY_ORDER:
        hits = sum(1 for word in words if word in CATEGORY_KEYWORDS[category])
        if hits > best_hits:
            best, best_hits = category, hits
    feelings = [w for w in words if w in CATEGORY_KEYWORDS[MemoryCategory.EMOTIONAL]]
    return best, feelings


def _factual(sentence: str) -> str:
    text = sentence.rstrip(" ,;:")
    text = text[0].upper() + text[1:]
    if text[-1] not in ".!?":
        text += "."
    return text


class StaticExtractor(ExtractionCapability):
    """Keyword-driven extraction with no external calls."""

    name = "static"

    async def _generate(self, raw_text: str, context: ProfileContext) -> dict[str, Any]:
        memories: list[dict[str, Any]] = []

        for sentence in _split_sentences(raw_text):
            if _ASSISTANT_PREFIX.match(sentence):
                continue
            verbatim = _USER_PREFIX.sub("", sentence).strip()
            words = _WORD.findall(verbatim.lower())
            if len(words) < MIN_WORDS:
                continue

            category, feelings = _classify(words)
            if category is None:
                continue

            importance = 2
            if feelings:
                importance += 1
            if any(word in LIFE_EVENTS for word in words):
                importance += 1

            significance = None
            if feelings:
                unique = sorted(set(feelings))
                significance = f"Emotionally charged moment ({', '.join(unique)})."

            memories.append(
                {
                    "factualContent": _factual(verbatim),
                    "emotionalSignificance": significance,
                    "category": category.value,
                    "importance": min(importance, 5),
                    "verbatimText": verbatim,
                }
            )
            if len(memories) == self.max_candidates:
                break

        return {"memories": memories}
