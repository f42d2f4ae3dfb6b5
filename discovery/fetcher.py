# fetcher.py
import logging
import threading
from typing import Dict, Optional

import requests

from .constants import FETCH_TIMEOUT, USER_AGENT
from .exceptions import NetworkError

logger = logging.getLogger(__name__)


class HttpFetcher:
    """Plain request/response client shared by the prober and the static harvester.

    Fetches run in worker threads (``asyncio.to_thread``), so each thread gets
    its own ``requests.Session``.
    """

    def __init__(self, user_agent: str = USER_AGENT, timeout_ms: int = FETCH_TIMEOUT):
        self.timeout_ms = timeout_ms
        self.headers = {
            'User-Agent': user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        }
        self._sessions: Dict[int, requests.Session] = {}
        self._lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        thread_id = threading.get_ident()
        with self._lock:
            session = self._sessions.get(thread_id)
            if session is None:
                session = requests.Session()
                session.headers.update(self.headers)
                self._sessions[thread_id] = session
                logger.debug(f"Opened HTTP session for thread {thread_id}")
        return session

    def fetch_text(self, url: str, timeout_ms: Optional[int] = None) -> str:
        timeout = (timeout_ms or self.timeout_ms) / 1000
        try:
            response = self.session.get(url, timeout=timeout, allow_redirects=True)
            response.raise_for_status()
        except requests.exceptions.Timeout:
            raise NetworkError(url, f"timed out after {timeout:.1f}s")
        except requests.exceptions.HTTPError as e:
            raise NetworkError(url, f"HTTP {e.response.status_code if e.response is not None else '?'}")
        except requests.exceptions.RequestException as e:
            raise NetworkError(url, str(e))
        logger.debug(f"Fetched {url} ({len(response.text)} chars)")
        return response.text

    def close(self):
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
