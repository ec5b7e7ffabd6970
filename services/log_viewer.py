# services/log_viewer.py
"""
Filtering & annotation of access/error log entries for the admin dev-tools pages
"""

import calendar
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional


DATE_FORMAT = '%Y-%m-%d'
TIME_FORMAT = '%Y-%m-%d %H:%M:%S'

SLOW_MS = 500
MEDIUM_MS = 100


def _timestamp(entry: Dict[str, Any]) -> datetime:
    stamp = datetime.fromisoformat(entry['timestamp'])
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


def _month_ago(now: datetime) -> datetime:
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    """Start of day (UTC) for a 'YYYY-MM-DD' string, or None if malformed"""
    if not value:
        return None
    try:
        day = datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        return None
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _parse_ms(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value else None
    except ValueError:
        return None


def _is_version(value) -> bool:
    """A non-zero numeric version component"""
    try:
        return float(value) != 0
    except (TypeError, ValueError):
        return False


def describe_os(ua: Dict[str, Any]) -> str:
    os = ua.get('os') or {}
    family = os.get('family') or 'Other'
    return f"{family} {os['major']}" if _is_version(os.get('major')) else family


def describe_browser(ua: Dict[str, Any]) -> str:
    family = ua.get('family') or 'Other'
    return f"{family}-{ua['major']}" if _is_version(ua.get('major')) else family


def speed(ms) -> str:
    if ms is None:
        return ''
    if ms > SLOW_MS:
        return 'slow'
    if ms > MEDIUM_MS:
        return 'medium'
    return ''


def annotate(entry: Dict[str, Any]) -> Dict[str, Any]:
    """Entry with display fields added: time, path, qs, os, ua, ip"""
    url = entry.get('url') or ''
    path, sep, qs = url.partition('?')
    ua = entry.get('ua') or {}
    annotated = dict(entry)
    annotated.update({
        'time': _timestamp(entry).strftime(TIME_FORMAT),
        'path': path + ('?…' if sep else ''),
        'qs': qs if sep else None,
        'os': describe_os(ua),
        'ua': describe_browser(ua),
        'ip': entry.get('ip'),
    })
    return annotated


class LogView:
    """
    Date-range filtered view over log entries (newest first).

    'from' defaults to the later of the oldest entry and one month ago;
    'to' defaults to today, and includes the whole of that day.
    """

    def __init__(self, entries: List[Dict[str, Any]], query: Mapping[str, str],
                 now: Optional[datetime] = None):
        self.entries = entries
        self.query = dict(query)
        self.now = now or datetime.now(timezone.utc)

        stamps = [_timestamp(e) for e in entries]
        self.oldest = min(stamps + [self.now])

        default_from = max(self.oldest, _month_ago(self.now)).strftime(DATE_FORMAT)
        default_to = self.now.strftime(DATE_FORMAT)

        self.from_date = _parse_date(self.query.get('from'))
        if self.from_date is None:
            self.query['from'] = default_from
            self.from_date = _parse_date(default_from)

        to_date = _parse_date(self.query.get('to'))
        if to_date is None:
            self.query['to'] = default_to
            to_date = _parse_date(default_to)
        self.to_date = to_date + timedelta(days=1)

    def in_range(self, entry: Dict[str, Any]) -> bool:
        stamp = _timestamp(entry)
        return self.from_date <= stamp <= self.to_date

    def context(self, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            'entries': entries,
            'filter': self.query,
            'filter_min': self.oldest.strftime(DATE_FORMAT),
            'filter_max': self.now.strftime(DATE_FORMAT),
        }


def view_access(entries: List[Dict[str, Any]], query: Mapping[str, str],
                now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Template context for the access log page.

    Query fields: from, to (YYYY-MM-DD), app (host prefix), time (minimum ms).
    """
    view = LogView(entries, query, now)
    app = view.query.get('app')
    min_ms = _parse_ms(view.query.get('time'))

    selected = []
    for entry in entries:
        if not view.in_range(entry):
            continue
        if app and not (entry.get('host') or '').startswith(app):
            continue
        if min_ms is not None and not (entry.get('ms') or 0) > min_ms:
            continue
        annotated = annotate(entry)
        annotated['speed'] = speed(entry.get('ms'))
        selected.append(annotated)

    # for display, time defaults to 0
    view.query['time'] = view.query.get('time') or '0'

    return view.context(selected)


def view_error(entries: List[Dict[str, Any]], query: Mapping[str, str],
               now: Optional[datetime] = None) -> Dict[str, Any]:
    """Template context for the error log page (query fields: from, to)"""
    view = LogView(entries, query, now)
    selected = [annotate(entry) for entry in entries if view.in_range(entry)]

    view.query['time'] = view.query.get('time') or '0'

    return view.context(selected)
