"""Pattern tables for the heuristic extraction of user facts.

Name, non-name, topic and language detection are data-driven: each table is
an ordered list consulted top to bottom, so new patterns can be added
without touching control flow. Matches are best-effort and may misfire.
"""

import re

# Ordered: the first pattern that matches wins.
NAME_PATTERNS = [
    re.compile(r"\bmy name is\s+([^.,!?]+)", re.IGNORECASE),
    re.compile(r"\bi am\s+([^.,!?]+)", re.IGNORECASE),
    re.compile(r"\bcall me\s+([^.,!?]+)", re.IGNORECASE),
    re.compile(r"\bi['’]m\s+([^.,!?]+)", re.IGNORECASE),
    re.compile(r"\bname['’]?s\s+([^.,!?]+)", re.IGNORECASE),
]

# A bare reply shorter than this with no whitespace is taken as the name itself.
SIMPLE_NAME_MAX_LENGTH = 20
MIN_NAME_LENGTH = 2

NON_NAME_PATTERNS = [
    re.compile(r"^(what|who|how|when|where|why|can|do|is|are|will)\b", re.IGNORECASE),
    re.compile(r"^(my|your|his|her|their|our)\s+(name|names)$", re.IGNORECASE),
    re.compile(r"^(sup|wassup|yo|hey|hi|hello|whats|what's|whatsup|what's up)\b", re.IGNORECASE),
]

SLANG_TERMS = ["dawg", "bro", "dude", "homie", "fam", "bruh", "mate", "pal", "buddy"]

INVALID_NAMES = {
    "what", "who", "when", "where", "why", "how", "yes", "no", "maybe",
    "your", "you", "chatbot", "robot", "bot", "intellibuddy", "ok", "okay",
    "sure", "help", "hello", "hi", "hey", "thanks", "please", "question",
    "name", "about", "myself", "fine", "good", "my", "the", "this", "that",
    "these", "those", "a", "an", "sup", "wassup", "yo", "buddy", "man",
    "dude", "bro", "bruh", "dawg", "sir", "madam", "miss", "mr", "mrs", "ms",
    "just", "only", "still", "also", "very", "quite", "really",
}

TOPIC_VOCABULARY = [
    "math", "mathematics", "algebra", "geometry", "calculus",
    "science", "biology", "chemistry", "physics",
    "history", "geography", "literature", "english",
    "computer", "programming", "coding", "art", "music",
]

QUESTION_PREFIXES = ("how", "what", "why")

LANGUAGE_PATTERNS = [
    ("es", re.compile(r"hola|cómo estás|buenos días|gracias|por favor", re.IGNORECASE)),
    ("fr", re.compile(r"bonjour|salut|merci|s'il vous plaît|comment ça va", re.IGNORECASE)),
    ("de", re.compile(r"hallo|guten tag|danke|bitte|wie geht es dir", re.IGNORECASE)),
]

# Free-form profile facts: (storage key, trigger words, pattern)
PROFILE_PATTERNS = [
    ("favorite_color", ("favorite", "prefer"),
     re.compile(r"(?:favorite|prefer|like) colou?r\s+(?:is|:)?\s*([a-zA-Z]+)", re.IGNORECASE)),
    ("favorite_food", ("favorite", "prefer"),
     re.compile(r"(?:favorite|prefer|like) (?:food|dish)\s+(?:is|:)?\s*([a-zA-Z ]+)", re.IGNORECASE)),
    ("location", (),
     re.compile(r"(?:I (?:live|am) in|I'm from)\s+([a-zA-Z ,]+)", re.IGNORECASE)),
]


def match_name(message: str) -> str | None:
    """Run the name pattern table and return the first captured name."""
    for pattern in NAME_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def looks_like_non_name(text: str) -> bool:
    """True for questions, greetings and slang that should not become a name."""
    clean = text.strip()
    if "?" in clean:
        return True
    if any(p.search(clean) for p in NON_NAME_PATTERNS):
        return True
    words = re.findall(r"[a-z']+", clean.lower())
    return any(term in words for term in SLANG_TERMS)


def is_valid_name(name: str) -> bool:
    """Reject stoplist words (alone or as a leading/trailing/inner word) and too-short names."""
    if len(name) < MIN_NAME_LENGTH:
        return False
    lowered = name.lower()
    for word in INVALID_NAMES:
        if (
            lowered == word
            or lowered.startswith(word + " ")
            or lowered.endswith(" " + word)
            or f" {word} " in lowered
        ):
            return False
    return True
