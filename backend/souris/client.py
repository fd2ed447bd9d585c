"""HTTP client for the records API, as used by a player's front end.

Network or payload problems never propagate: reads degrade to an empty
list and submissions to a ``success: False`` result, so a broken
leaderboard never breaks a game.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .services.security import compute_key

logger = logging.getLogger(__name__)


class RecordsClient:
    def __init__(self, base_url: str = 'http://localhost:5000/api', timeout: float = 5.0,
                 transport: Optional[httpx.BaseTransport] = None, local_records=None):
        self.base_url = base_url.rstrip('/')
        self.local_records = local_records
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def get_records(self, circuit: int) -> Dict[str, Any]:
        logger.info(f"[api] fetching records for circuit {circuit}")
        try:
            resp = self._http.get('/records', params={'circuit': circuit})
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"[api] unable to fetch records for circuit {circuit}: {exc}")
            return {'records': []}
        if not isinstance(data, dict) or not isinstance(data.get('records'), list):
            logger.warning('[api] unexpected records payload, using an empty list')
            return {'records': []}
        return data

    def save_record(self, circuit: int, pseudo: str, chrono: float, token: str) -> Dict[str, Any]:
        """Sign ``chrono`` (seconds) with the session token and submit it."""
        chrono_centiseconds = int(round(float(chrono) * 100))
        payload = {
            'circuit': circuit,
            'pseudo': pseudo,
            'chronoCentiseconds': chrono_centiseconds,
            'token': token,
            'key': compute_key(chrono_centiseconds, token),
        }
        logger.info(f"[api] saving record for circuit {circuit} ({chrono}s, {pseudo})")
        try:
            resp = self._http.post('/records', json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"[api] unable to save record for circuit {circuit}: {exc}")
            return {'success': False, 'error': str(exc), 'records': []}
        if not isinstance(data, dict):
            return {'success': False, 'error': 'unexpected response', 'records': []}
        if not isinstance(data.get('records'), list):
            logger.warning('[api] unexpected save payload, using an empty list')
            data['records'] = []
        return data

    def submit_result(self, circuit: int, pseudo: str, chrono: float, token: str) -> Dict[str, Any]:
        """Record a won attempt locally and on the server.

        Every win is sent, personal best or not; the server alone
        decides whether it enters the top list.
        """
        is_new_personal_record = False
        if self.local_records is not None:
            is_new_personal_record = self.local_records.save_record(circuit, chrono)
        result = self.save_record(circuit, pseudo, chrono, token)
        result['isNewPersonalRecord'] = is_new_personal_record
        return result
