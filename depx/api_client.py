"""Client for the OSV vulnerability database API."""

import logging
from typing import Optional, Dict, Any, List

import requests

from . import __version__
from .errors import AuditError

logger = logging.getLogger(__name__)


class OsvClient:
    """Client for querying known vulnerabilities from api.osv.dev."""

    BASE_URL = "https://api.osv.dev/v1"
    BATCH_SIZE = 1000
    TIMEOUT = 30

    def __init__(self):
        """Initialize the API client."""
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"depx/{__version__}"
        })
        self._vuln_cache: Dict[str, Optional[Dict[str, Any]]] = {}

    def query_batch(self, purls: List[str]) -> List[List[str]]:
        """
        Look up vulnerability IDs for many package URLs.

        Args:
            purls: Package URLs including versions (pkg:npm/lodash@4.17.20)

        Returns:
            One list of OSV IDs per input purl, in input order

        Raises:
            AuditError: if any batch request fails
        """
        results: List[List[str]] = []

        for start in range(0, len(purls), self.BATCH_SIZE):
            chunk = purls[start:start + self.BATCH_SIZE]
            payload = {"queries": [{"package": {"purl": purl}} for purl in chunk]}
            url = f"{self.BASE_URL}/querybatch"

            logger.debug(f"Querying OSV for {len(chunk)} packages")
            try:
                response = self.session.post(url, json=payload, timeout=self.TIMEOUT)
            except requests.RequestException as e:
                raise AuditError(f"Vulnerability query failed: {e}") from e

            if response.status_code != 200:
                raise AuditError(f"Vulnerability query failed: HTTP {response.status_code}")

            batch = response.json().get("results", [])
            if len(batch) != len(chunk):
                raise AuditError(
                    f"Vulnerability query returned {len(batch)} results for {len(chunk)} packages"
                )

            for result in batch:
                results.append([vuln["id"] for vuln in (result or {}).get("vulns", []) if vuln.get("id")])

        return results

    def get_vulnerability(self, vuln_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the full advisory for an OSV ID.

        Results are cached for the lifetime of the client.

        Returns:
            The advisory JSON, or None if it could not be fetched
        """
        if vuln_id in self._vuln_cache:
            return self._vuln_cache[vuln_id]

        url = f"{self.BASE_URL}/vulns/{vuln_id}"
        logger.debug(f"Fetching advisory {vuln_id}")

        advisory = None
        try:
            response = self.session.get(url, timeout=self.TIMEOUT)
            if response.status_code == 200:
                advisory = response.json()
            else:
                logger.info(f"Failed to get advisory {vuln_id}: HTTP {response.status_code}")
        except requests.RequestException as e:
            logger.error(f"Error fetching advisory {vuln_id}: {e}")

        self._vuln_cache[vuln_id] = advisory
        return advisory

    def close(self):
        """Close the session and clean up resources."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
