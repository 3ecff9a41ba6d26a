"""Constants module for NewsRelay configuration.

Contains provider endpoints, topic mappings, cache and quota defaults, and the
fixed prompt templates used for bulletin and summary generation.
"""

from typing import Dict, FrozenSet, Optional, Tuple

from .enums import TimeRange

# Upstream endpoints
NEWSAPI_BASE_URL = "https://newsapi.org/v2"
GUARDIAN_BASE_URL = "https://content.guardianapis.com"
GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"

# Hours covered by each time range
TIME_RANGE_HOURS: Dict[TimeRange, int] = {
    TimeRange.ONE_HOUR: 1,
    TimeRange.SIX_HOURS: 6,
    TimeRange.TWELVE_HOURS: 12,
    TimeRange.ONE_DAY: 24,
    TimeRange.THREE_DAYS: 72,
    TimeRange.ONE_WEEK: 168,
}

# Guardian topic -> (section, tag)
GUARDIAN_TOPIC_MAP: Dict[str, Tuple[Optional[str], Optional[str]]] = {
    "all": (None, None),
    "politics": ("politics", None),
    "business": ("business", None),
    "technology": ("technology", None),
    "environment": ("environment", None),
    "sport": ("sport", None),
    "health": ("society", "society/health"),
    "science": ("science", None),
    "education": ("education", None),
    "books": ("books", None),
    "travel": ("travel", None),
}

GUARDIAN_SHOW_FIELDS: Tuple[str, ...] = (
    "headline",
    "trailText",
    "body",
    "thumbnail",
    "lastModified",
    "wordcount",
    "byline",
)
GUARDIAN_SHOW_TAGS: Tuple[str, ...] = ("keyword", "contributor")

# NewsAPI accepts any keyword; these are the ones the UI offers
NEWSAPI_TOPICS: FrozenSet[str] = frozenset(
    {
        "all",
        "general",
        "business",
        "entertainment",
        "health",
        "science",
        "sports",
        "technology",
        "politics",
        "environment",
    }
)

# Articles returned per provider call after filtering
MAX_ARTICLES = 30
REMOVED_ARTICLE_TITLE = "[Removed]"
DESCRIPTION_EXCERPT_CHARS = 200

# Cache defaults (seconds)
DEFAULT_NEWS_CACHE_TTL_SECONDS = 300
DEFAULT_BULLETIN_CACHE_TTL_SECONDS = 3 * 60 * 60
DEFAULT_CARDS_CACHE_TTL_SECONDS = 3 * 60 * 60
DEFAULT_SUMMARY_CACHE_TTL_SECONDS = 12 * 60 * 60
DEFAULT_CACHE_HARD_TTL_SECONDS = 24 * 60 * 60
DEFAULT_CACHE_SWEEP_EVERY_READS = 10

# Quota defaults
DEFAULT_QUOTA_WINDOW_SECONDS = 60 * 60
DEFAULT_QUOTA_WINDOW_MAX = 10
DEFAULT_QUOTA_DAILY_MAX = 100

# Upstream call bound
DEFAULT_PROVIDER_TIMEOUT_SECONDS = 20.0

# Bulletin generation
BULLETIN_TIMEFRAME = "24hrs"
BULLETIN_ITEM_COUNT = 12
BULLETIN_SOURCE_ARTICLES = 25
BULLETIN_SOURCE_QUERY = "breaking news world"
MAX_REGENERATIONS = 1

# Summary fallback truncation
FALLBACK_TITLE_CHARS = 50
FALLBACK_CONTENT_CHARS = 150
FALLBACK_CONTENT_PLACEHOLDER = (
    "Unable to generate AI summary. Please read the full article for details."
)

BULLETS_PROMPT_TEMPLATE = """You are a world-class news editor. Analyze these {article_count} top news stories from the past 24 hours and create EXACTLY {count} bullet points representing the most important global news.

CRITICAL REQUIREMENTS:
- EXACTLY {count} bullets (no more, no less)
- Each bullet must be 1-2 concise sentences
- Prioritize: Breaking news > Major developments > Significant events
- Cover diverse topics (politics, economy, technology, health, environment, etc.)
- Focus on factual information, avoid speculation
- Write in present tense where appropriate
- Each bullet should be standalone and clear

Articles to analyze:
{articles}

Format: Return ONLY the {count} bullets, one per line, no numbering, no extra text."""

CARDS_PROMPT_TEMPLATE = """You are a news analyst. Take these {count} news bullet points and expand EACH into a detailed card with:
- A compelling TITLE (5-10 words)
- A detailed DESCRIPTION (3-4 sentences with context, implications, and key facts)

CRITICAL: Return EXACTLY {count} cards in valid JSON format:
[
  {{"title": "...", "description": "..."}},
  {{"title": "...", "description": "..."}},
  ...
]

Bullets to expand:
{bullets}

Return ONLY the JSON array, no markdown, no extra text."""

SUMMARY_PROMPT_TEMPLATE = """You are a professional news summarizer. Summarize the following news article concisely.

Article Title: {title}
Article Description: {description}

CRITICAL: Use only standard ASCII quotes (") and apostrophes ('). Do NOT use smart quotes or special characters.

Provide your response in this EXACT JSON format (no markdown, no code blocks):
{{
  "title": "A concise 5-6 word headline",
  "content": "A 2-3 sentence summary (max 60 words total)"
}}

Focus on the most important facts. Be clear and direct."""
