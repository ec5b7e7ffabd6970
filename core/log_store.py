# core/log_store.py
"""
Capped access/error log store.

Each log is a Redis list: new entries are pushed onto the head and the list
trimmed to its maximum length, so the store keeps the most recent entries in
insertion order and evicts the oldest. Entries are JSON documents.
"""

import json
import logging
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import redis
from ua_parser import parse as parse_user_agent

logger = logging.getLogger(__name__)

ACCESS_KEY = 'log-access'
ERROR_KEY = 'log-error'


def describe_user_agent(ua_string: Optional[str]) -> Dict[str, Any]:
    """
    Browser & OS family/major version of a User-Agent header, e.g.
    {'family': 'Firefox', 'major': '120', 'os': {'family': 'Windows', 'major': '10'}}
    """
    result = parse_user_agent(ua_string or '')
    ua, os = result.user_agent, result.os
    return {
        'family': ua.family if ua else 'Other',
        'major': ua.major if ua else None,
        'os': {
            'family': os.family if os else 'Other',
            'major': os.major if os else None,
        },
    }


def format_stack(err: BaseException) -> str:
    return ''.join(traceback.format_exception(type(err), err, err.__traceback__))


class LogStore:
    """Capped access & error logs"""

    def __init__(self, redis_client: redis.Redis, access_max: int = 1000, error_max: int = 1000,
                 include_stack: bool = True):
        self.redis_client = redis_client
        self.access_max = access_max
        self.error_max = error_max
        self.include_stack = include_stack

    def _request_fields(self, request, user_id=None) -> Dict[str, Any]:
        url = request.full_path if request.query_string else request.path
        return {
            '_id': uuid.uuid4().hex,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'method': request.method,
            'host': request.host,
            'url': url,
            'ip': request.remote_addr,
            'ua': describe_user_agent(request.headers.get('User-Agent')),
            'referer': request.headers.get('Referer'),
            'user': user_id,
        }

    def _push(self, key: str, entry: Dict[str, Any], max_len: int):
        try:
            pipe = self.redis_client.pipeline()
            pipe.lpush(key, json.dumps(entry, default=str))
            pipe.ltrim(key, 0, max_len - 1)
            pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Failed to record {key} entry: {e}")

    def access(self, request, response, ms: int, user_id=None):
        """Record an access log entry for a completed request"""
        entry = self._request_fields(request, user_id)
        entry.update({'status': response.status_code, 'ms': ms})
        self._push(ACCESS_KEY, entry, self.access_max)

    def error(self, request, err: BaseException, status: int, user_id=None):
        """Record an error log entry for a request that raised *err*"""
        entry = self._request_fields(request, user_id)
        entry.update({'status': status, 'message': str(err) or err.__class__.__name__})
        if self.include_stack:
            entry['stack'] = format_stack(err)
        self._push(ERROR_KEY, entry, self.error_max)

    def entries(self, key: str) -> List[Dict[str, Any]]:
        """All entries in log *key*, newest first"""
        try:
            raw = self.redis_client.lrange(key, 0, -1)
        except redis.RedisError as e:
            logger.error(f"Failed to read {key}: {e}")
            return []
        entries = []
        for item in raw:
            try:
                entries.append(json.loads(item))
            except (TypeError, ValueError):
                logger.warning(f"Skipping malformed {key} entry")
        return entries

    def access_entries(self) -> List[Dict[str, Any]]:
        return self.entries(ACCESS_KEY)

    def error_entries(self) -> List[Dict[str, Any]]:
        return self.entries(ERROR_KEY)


def create_log_store(app, redis_client: Optional[redis.Redis] = None) -> LogStore:
    """Build the app's log store from config (REDIS_URL, LOG_*_MAX)"""
    if redis_client is None:
        redis_client = redis.Redis.from_url(
            app.config['REDIS_URL'],
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        try:
            redis_client.ping()
            app.logger.info("Log store connected to Redis")
        except redis.ConnectionError as e:
            app.logger.error(f"Log store Redis connection failed: {e}")

    return LogStore(
        redis_client,
        access_max=app.config['LOG_ACCESS_MAX'],
        error_max=app.config['LOG_ERROR_MAX'],
        include_stack=app.config.get('ENV_NAME') != 'production',
    )
