"""Fixed-window throttles for OTP resend and OTP verification attempts.

Counters live in the primary store (Firestore when configured) so every
instance shares them; if the store errors, a process-local fallback keeps the
limit enforced on this instance instead of failing open.
"""

import logging
import re

from snapstudy.errors import RateLimitedError

logger = logging.getLogger('snapstudy')


def normalize_key_part(value, fallback='anon', max_len=120):
    raw = str(value or '').strip().lower()
    if not raw:
        return fallback
    safe = re.sub(r'[^a-z0-9_.:@-]+', '_', raw)
    return safe[:max_len] if safe else fallback


def check_rate_limit(key, limit, window_seconds, *, store, fallback_store, time_module):
    now_ts = time_module.time()
    try:
        return store.consume_rate_limit(key, limit, window_seconds, now_ts)
    except Exception as e:
        logger.warning(f"Rate limit store unavailable, using local counters: {e}")
        return fallback_store.consume_rate_limit(key, limit, window_seconds, now_ts)


def enforce_rate_limit(name, subject, limit, window_seconds, *, store, fallback_store, time_module, message=None):
    key = f"{name}:{normalize_key_part(subject)}"
    allowed, retry_after = check_rate_limit(
        key,
        limit,
        window_seconds,
        store=store,
        fallback_store=fallback_store,
        time_module=time_module,
    )
    if not allowed:
        logger.info(f"Rate limit hit: {name} (retry after {retry_after}s)")
        raise RateLimitedError(retry_after, message)
