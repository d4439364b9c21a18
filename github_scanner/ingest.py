"""
Search index sink.

Documents are posted to a Logstash HTTP input; existence checks go straight
to the Elasticsearch index the pipeline feeds.
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from github_scanner.errors import SinkError


class IngestClient:
    """Client for the ingest endpoint and the index behind it."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        elasticsearch_url: str,
        index_name: str,
        session: Optional[requests.Session] = None,
        timeout: int = 10,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        """
        Args:
            endpoint: Logstash HTTP input URL
            api_key: Value of the X-Api-Key header
            elasticsearch_url: Base URL of the Elasticsearch cluster
            index_name: Index holding one document per commit SHA
            session: HTTP session (a new requests.Session if None)
            timeout: Per-request timeout in seconds
            username: Elasticsearch basic auth user (no auth if empty)
            password: Elasticsearch basic auth password
        """
        self.endpoint = endpoint
        self.api_key = api_key
        self.elasticsearch_url = elasticsearch_url.rstrip("/")
        self.index_name = index_name
        self.session = session or requests.Session()
        self.timeout = timeout
        self.auth = (username, password or "") if username else None

    def document_exists(self, doc_id: str) -> bool:
        """
        Check whether the index already holds a document with this id.

        Raises:
            SinkError: the cluster could not answer definitively
        """
        url = f"{self.elasticsearch_url}/{self.index_name}/_doc/{quote(doc_id, safe='')}"
        try:
            response = self.session.head(url, auth=self.auth, timeout=self.timeout)
        except requests.RequestException as e:
            raise SinkError(f"Existence check failed: {e}", doc_id)

        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise SinkError(f"Existence check returned HTTP {response.status_code}", doc_id)

    def ingest(self, payload: Dict[str, Any]) -> str:
        """
        POST one JSON document to the ingest endpoint.

        Returns:
            "Status: <code>, Body: <text>" summary

        Raises:
            SinkError: transport failure or non-2xx response
        """
        try:
            response = self.session.post(
                self.endpoint,
                json=payload,
                headers={"Content-Type": "application/json", "X-Api-Key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SinkError(f"Ingest request failed: {e}", self.endpoint)

        if not 200 <= response.status_code < 300:
            raise SinkError(f"Ingest failed: {response.status_code} - {response.text}", self.endpoint)

        return f"Status: {response.status_code}, Body: {response.text}"
