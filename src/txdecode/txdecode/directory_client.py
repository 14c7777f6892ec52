import logging
import time
from typing import Any, Dict, List, Optional

import requests

from .config import DEFAULT_DIRECTORY_URL
from .errors import LookupMalformed, LookupUnavailable
from .selector import selector_hex

logger = logging.getLogger(__name__)


class SignatureDirectoryClient:
    """Thin wrapper around a 4byte.directory style selector -> signature lookup."""

    def __init__(
        self,
        base_url: str = DEFAULT_DIRECTORY_URL,
        timeout: float = 5.0,
        max_pages: int = 1,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.max_pages = max(1, int(max_pages))
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def lookup(self, selector: bytes) -> List[str]:
        """
        Return every text signature the directory lists for ``selector``.

        Order is whatever the service returns. An empty list is a normal
        outcome. No retries are made. All pages share one timeout budget.

        Raises:
            LookupUnavailable: On transport, timeout or HTTP errors.
            LookupMalformed: If a response is not ``{"results": [{"text_signature": ...}]}``.
        """
        hex_sig = selector_hex(selector)
        url: Optional[str] = self.base_url
        params: Optional[Dict[str, Any]] = {"hex_signature": hex_sig}
        signatures: List[str] = []
        timeout = self.timeout
        deadline = time.monotonic() + self.timeout

        for page in range(self.max_pages):
            if not url:
                break
            if page:
                timeout = deadline - time.monotonic()
                if timeout <= 0:
                    raise LookupUnavailable(
                        f"Signature directory lookup for {hex_sig} timed out after {page} pages.", selector=hex_sig
                    )
            payload = self._request(url, params, hex_sig, timeout)
            signatures.extend(self._extract_signatures(payload, hex_sig))
            next_url = payload.get("next")
            url = next_url if isinstance(next_url, str) else None
            params = None

        logger.info(f"Signature directory returned {len(signatures)} candidates for {hex_sig}")
        return signatures

    def _request(
        self, url: str, params: Optional[Dict[str, Any]], hex_sig: str, timeout: float
    ) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise LookupUnavailable(
                f"Signature directory request failed for {hex_sig}: {exc}", selector=hex_sig
            ) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise LookupMalformed(
                f"Signature directory returned non-JSON body for {hex_sig}.", selector=hex_sig
            ) from exc

        if not isinstance(payload, dict):
            raise LookupMalformed(
                f"Unexpected signature directory response for {hex_sig} (non-object).", selector=hex_sig
            )
        return payload

    def _extract_signatures(self, payload: Dict[str, Any], hex_sig: str) -> List[str]:
        results = payload.get("results")
        if not isinstance(results, list):
            raise LookupMalformed(
                f"Signature directory response for {hex_sig} is missing a results list.", selector=hex_sig
            )

        signatures: List[str] = []
        for item in results:
            text = item.get("text_signature") if isinstance(item, dict) else None
            if not isinstance(text, str):
                raise LookupMalformed(
                    f"Signature directory result for {hex_sig} has no text_signature.", selector=hex_sig
                )
            signatures.append(text)
        return signatures
