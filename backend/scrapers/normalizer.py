"""
Record Normalizer - Raw adapter output to CanonicalRecord.

Single place where scraped values are coerced and validated:
- Dates: relative ("3 days left", "5 hours left", "2 weeks ago") and
  absolute (ISO 8601, "Jan 15, 2025", MM/DD/YYYY, DD-MM-YYYY, YYYY-MM-DD,
  ranges resolved to their end date)
- Free text: markup stripped, entities unescaped, whitespace collapsed, clamped
- Tags (max 10) and hex colors (max 5): cleaned and de-duplicated in order
- Stats: "1.2k" style counts coerced to non-negative ints

normalize() is pure: no I/O, and "now" is injectable. A record missing
title, url or source_id, or carrying a malformed url or date, is rejected
(None) with a logged reason.

Usage:
    record = normalize(raw, "dribbble", now=datetime.utcnow())
    if record is None:
        ...  # already logged
"""
import html
import logging
import math
import re
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from .categories import resolve_category
from .errors import ValidationError
from .models.records import CanonicalRecord, RawRecord, RecordKind, RecordStats
from .scoring import TrendingScorer

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500
MAX_TAGS = 10
MAX_TAG_LENGTH = 50
MAX_COLORS = 5


# =============================================================================
# Free Text
# =============================================================================

_WHITESPACE_RE = re.compile(r'\s+')
_CONTROL_RE = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')


def clean_text(value: Any, max_length: Optional[int] = None) -> str:
    """
    Strip markup and normalize whitespace.

    Args:
        value: Raw scraped text (None allowed)
        max_length: Clamp length after cleaning

    Returns:
        Cleaned string, '' for None
    """
    if value is None:
        return ''
    if isinstance(value, (list, dict, tuple, set)):
        raise ValidationError("Expected text", received_value=value)

    text = str(value)
    if '<' in text and '>' in text:
        text = BeautifulSoup(text, 'html.parser').get_text(' ')
    text = html.unescape(text)
    text = _CONTROL_RE.sub('', text)
    text = _WHITESPACE_RE.sub(' ', text).strip()

    if max_length is not None and len(text) > max_length:
        text = text[:max_length].rstrip()
    return text


# =============================================================================
# URLs
# =============================================================================

def validate_url(value: Any) -> Optional[str]:
    """
    Return value as an absolute http(s) URL, or None if it is not one.

    Protocol-relative URLs ("//cdn.example.com/x.png") are upgraded to https.
    """
    if not isinstance(value, str):
        return None
    url = value.strip()
    if not url or any(ch.isspace() for ch in url):
        return None
    if url.startswith('//'):
        url = 'https:' + url

    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if parsed.scheme not in ('http', 'https'):
        return None
    host = parsed.hostname or ''
    if not host or ('.' not in host and host != 'localhost'):
        return None
    return url


# =============================================================================
# Dates
# =============================================================================

_MONTH_RE = re.compile(
    r'\b(jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\b', re.IGNORECASE
)
_LABEL_RE = re.compile(
    r'^(?:submission\s+)?(?:deadline|ends?(?:\s+on)?|closes?(?:\s+on)?|due(?:\s+on)?|'
    r'registration\s+closes?(?:\s+on)?|posted(?:\s+on)?|published(?:\s+on)?)\s*:?\s*',
    re.IGNORECASE,
)
_LEFT_RE = re.compile(
    r'^(?:ends\s+in\s+|in\s+)?(\d+)\s*(minute|min|hour|hr|day|week)s?\s*'
    r'(?:left|to\s+go|remaining)$'
)
_IN_RE = re.compile(r'^(?:ends\s+in|in)\s+(\d+)\s*(minute|min|hour|hr|day|week)s?$')
_AGO_RE = re.compile(r'^(\d+)\s*(minute|min|hour|hr|day|week|month|year)s?\s+ago$')
_DMY_DASH_RE = re.compile(r'^(\d{1,2})-(\d{1,2})-(\d{4})$')
_MDY_SLASH_RE = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$')
_YEAR_RE = re.compile(r'\b\d{4}\b')
_RANGE_SPLIT_RE = re.compile(r'\s+[-–—]\s+|\s+to\s+')

_UNIT_FIELDS = {
    'minute': 'minutes',
    'min': 'minutes',
    'hour': 'hours',
    'hr': 'hours',
    'day': 'days',
    'week': 'weeks',
    'month': 'months',
    'year': 'years',
}


def _delta(unit: str, amount: int) -> relativedelta:
    return relativedelta(**{_UNIT_FIELDS[unit]: amount})


def _shift(now: datetime, unit: str, amount: int) -> Optional[datetime]:
    """now moved by amount units; None when the result leaves the datetime range."""
    try:
        return now + _delta(unit, amount)
    except (OverflowError, ValueError):
        return None


def _end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999000)


def _to_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _parse_relative(text: str, now: datetime) -> Optional[datetime]:
    if text in ('today', 'ends today', 'last day', 'closing today'):
        return _end_of_day(now)
    if text in ('tomorrow', 'ends tomorrow'):
        return _end_of_day(now + timedelta(days=1))
    if text in ('just now', 'now'):
        return now
    if text == 'yesterday':
        return now - timedelta(days=1)

    match = _LEFT_RE.match(text) or _IN_RE.match(text)
    if match:
        amount, unit = int(match.group(1)), match.group(2)
        target = _shift(now, unit, amount)
        if target is None:
            return None
        # Day-granular deadlines close at the end of that day
        if unit in ('day', 'week'):
            return _end_of_day(target)
        return target

    match = _AGO_RE.match(text)
    if match:
        amount, unit = int(match.group(1)), match.group(2)
        return _shift(now, unit, -amount)

    return None


def _range_end(text: str) -> str:
    """'Jan 10 - Feb 20, 2025' -> 'Feb 20, 2025'; 'Mar 1 - 15, 2025' -> 'Mar 15, 2025'."""
    parts = _RANGE_SPLIT_RE.split(text)
    if len(parts) < 2:
        return text
    start, end = parts[0].strip(), parts[-1].strip()
    if not _MONTH_RE.search(end):
        month = _MONTH_RE.search(start)
        if month and end[:1].isdigit():
            end = f"{month.group(0)} {end}"
    if not _YEAR_RE.search(end):
        year = _YEAR_RE.search(start)
        if year:
            end = f"{end}, {year.group(0)}"
    return end


def parse_date(value: Any, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse a scraped date into a naive UTC datetime.

    Args:
        value: datetime, date or text as shown by the source
        now: Reference time for relative forms (defaults to utcnow)

    Returns:
        datetime, or None if the value cannot be interpreted
    """
    now = now or datetime.utcnow()

    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    text = _WHITESPACE_RE.sub(' ', value).strip()
    text = _LABEL_RE.sub('', text).strip()
    if not text:
        return None

    relative = _parse_relative(text.lower(), now)
    if relative is not None:
        return relative

    match = _DMY_DASH_RE.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    match = _MDY_SLASH_RE.match(text)
    if match:
        month, day, year = (int(g) for g in match.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    if not _MONTH_RE.search(text) and not _YEAR_RE.search(text):
        # Bare numbers ("15") would otherwise parse as a day of this month
        return None

    text = _range_end(text)
    try:
        parsed = date_parser.parse(
            text, default=now.replace(hour=0, minute=0, second=0, microsecond=0)
        )
    except (ValueError, OverflowError):
        return None
    return _to_naive_utc(parsed)


# =============================================================================
# Lists and Counts
# =============================================================================

_HEX_RE = re.compile(r'^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$')
_COUNT_RE = re.compile(r'^(\d+(?:\.\d+)?)\s*([kmb])?$', re.IGNORECASE)
_COUNT_MULTIPLIERS = {None: 1, 'k': 1_000, 'm': 1_000_000, 'b': 1_000_000_000}


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split(',')
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return []


def normalize_tags(value: Any, limit: int = MAX_TAGS) -> List[str]:
    """Lower-case, trim, clamp and de-duplicate tags (order preserved)."""
    tags: List[str] = []
    for item in _as_list(value):
        if not isinstance(item, str):
            continue
        tag = clean_text(item).lower().lstrip('#').strip()
        tag = tag[:MAX_TAG_LENGTH].strip()
        if tag and tag not in tags:
            tags.append(tag)
        if len(tags) >= limit:
            break
    return tags


def normalize_colors(value: Any, limit: int = MAX_COLORS) -> List[str]:
    """Keep valid hex colors as upper-case #RRGGBB, de-duplicated."""
    colors: List[str] = []
    for item in _as_list(value):
        if not isinstance(item, str):
            continue
        match = _HEX_RE.match(item.strip())
        if not match:
            continue
        digits = match.group(1)
        if len(digits) == 3:
            digits = ''.join(ch * 2 for ch in digits)
        color = f"#{digits.upper()}"
        if color not in colors:
            colors.append(color)
        if len(colors) >= limit:
            break
    return colors


def parse_count(value: Any) -> int:
    """
    Coerce a displayed count to a non-negative int.

    Examples: 12 -> 12, "1,234" -> 1234, "1.2k" -> 1200, "3M" -> 3000000
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    if isinstance(value, (int, float)):
        return max(0, int(value))
    if not isinstance(value, str):
        return 0

    text = value.strip().replace(',', '').replace(' ', '')
    match = _COUNT_RE.match(text)
    if not match:
        return 0
    number = float(match.group(1))
    suffix = match.group(2).lower() if match.group(2) else None
    return max(0, int(round(number * _COUNT_MULTIPLIERS[suffix])))


def normalize_stats(value: Any) -> RecordStats:
    stats = value if isinstance(value, dict) else {}
    return RecordStats(
        views=parse_count(stats.get('views')),
        likes=parse_count(stats.get('likes')),
        saves=parse_count(stats.get('saves')),
    )


# =============================================================================
# Record
# =============================================================================

def _required_text(raw: RawRecord, field: str, max_length: Optional[int] = None) -> str:
    value = clean_text(raw.get(field), max_length)
    if not value:
        raise ValidationError(f"Missing {field}", field=field, received_value=raw.get(field))
    return value


def _kind(value: Any) -> RecordKind:
    if isinstance(value, RecordKind):
        return value
    try:
        return RecordKind(str(value).lower())
    except ValueError:
        return RecordKind.DESIGN


def _native_labels(raw: RawRecord, tags: Iterable[str]) -> List[str]:
    labels = []
    hint = raw.get('category_hint')
    if isinstance(hint, str) and hint.strip():
        labels.append(hint)
    labels.extend(tags)
    return labels


def _build(raw: RawRecord, source_name: str, now: datetime) -> CanonicalRecord:
    if not isinstance(raw, dict):
        raise ValidationError("Raw record is not a mapping", received_value=raw)

    title = _required_text(raw, 'title', MAX_TITLE_LENGTH)
    source_id = _required_text(raw, 'source_id', 255)

    url = validate_url(raw.get('url'))
    if url is None:
        raise ValidationError("Invalid url", field='url', received_value=raw.get('url'))

    raw_date = raw.get('date')
    when = None
    if raw_date is not None and not (isinstance(raw_date, str) and not raw_date.strip()):
        when = parse_date(raw_date, now)
        if when is None:
            raise ValidationError("Unparseable date", field='date', received_value=raw_date)

    description = clean_text(raw.get('description'), MAX_DESCRIPTION_LENGTH)
    tags = normalize_tags(raw.get('tags'))
    kind = _kind(raw.get('kind'))

    platform_data: Dict[str, Any] = {}
    if isinstance(raw.get('platform_data'), dict):
        platform_data.update(raw['platform_data'])
    colors = normalize_colors(raw.get('colors'))
    if colors:
        platform_data['colors'] = colors

    is_active = raw.get('is_active', True) is not False
    if kind is RecordKind.HACKATHON and when is not None and when < now:
        is_active = False

    category = resolve_category(
        _native_labels(raw, tags), source_name, text=f"{title} {description}"
    )

    return CanonicalRecord(
        title=title,
        url=url,
        source_name=source_name,
        source_id=source_id,
        kind=kind,
        description=description,
        category=category,
        tags=tuple(tags),
        image_url=validate_url(raw.get('image_url')),
        published_or_deadline_date=when,
        stats=normalize_stats(raw.get('stats')),
        platform_data=platform_data,
        is_active=is_active,
    )


def normalize(
    raw: RawRecord,
    source_name: str,
    *,
    now: Optional[datetime] = None,
    scorer: Optional[TrendingScorer] = None,
) -> Optional[CanonicalRecord]:
    """
    Map one raw adapter record onto the canonical schema.

    Args:
        raw: Dict produced by an adapter's card parser
        source_name: Source identifier, becomes part of the merge key
        now: Reference time for relative dates and trending
        scorer: Optional trending scorer

    Returns:
        CanonicalRecord, or None when the record is rejected
    """
    now = now or datetime.utcnow()
    try:
        record = _build(raw, source_name, now)
    except ValidationError as e:
        logger.info(
            f"Rejected {source_name} record: {e} (field={e.field}, value={e.received_value!r:.80})"
        )
        return None

    if scorer is not None:
        record = replace(record, is_trending=bool(scorer(record, now)))
    return record


def normalize_many(
    raws: Iterable[RawRecord],
    source_name: str,
    *,
    now: Optional[datetime] = None,
    scorer: Optional[TrendingScorer] = None,
) -> List[CanonicalRecord]:
    """Normalize a batch, dropping rejects."""
    now = now or datetime.utcnow()
    records = []
    for raw in raws:
        record = normalize(raw, source_name, now=now, scorer=scorer)
        if record is not None:
            records.append(record)
    return records
