"""
Idempotent create-or-reuse-or-update of entities in a SensorThings store.

The store has no upsert, so each entity is matched against existing
records by its natural key first:

1. ``GET <collection>?$filter=<natural key>``
2. no match: ``POST`` a new record (created)
3. a match with identical canonical attributes: keep it (reused)
4. a match that differs: ``PATCH`` it (updated), or for kinds that must
   not be patched, ``POST`` a new record (created)
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import EntityStoreError
from ..http import HTTPClient
from .entity import RemoteEntity, join_uris
from .filters import build_filter

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    """Result variants of mirroring one entity or observation."""

    CREATED = "created"
    REUSED = "reused"
    UPDATED = "updated"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass
class ReconcileResult:
    outcome: Outcome
    remote_id: Optional[Any] = None
    remote_link: Optional[str] = None
    reason: Optional[str] = None


def _json_body(response: httpx.Response, context: str) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except json.JSONDecodeError as e:
        raise EntityStoreError(f"Invalid JSON response from {context}: {e}", response=response) from e
    if not isinstance(data, dict):
        raise EntityStoreError(f"Unexpected JSON document from {context}", response=response)
    return data


class EntityReconciler:
    """Make local entities durable in the remote store exactly once."""

    def __init__(self, http_client: HTTPClient, log: Optional[logging.Logger] = None):
        self._http = http_client
        self._logger = log or logger

    def reconcile(
        self,
        entity: RemoteEntity,
        server_url: Optional[str] = None,
        parent_link: Optional[str] = None,
    ) -> ReconcileResult:
        """
        Create, reuse or update ``entity`` in the remote store.

        Args:
            entity: Local entity; its ``remote_id``/``remote_link`` are set on return
            server_url: Root URL of the store, used by top-level kinds
            parent_link: Link of the parent entity, required by nested kinds

        Returns:
            ReconcileResult with the outcome and the remote identifiers

        Raises:
            EntityStoreError: The store answered with an unexpected status
            TransportError: Timeout or connection failure
        """
        collection_url = self.collection_url(entity, server_url, parent_link)
        matches = self.find_matches(entity, collection_url)

        if not matches:
            self._create(entity, collection_url)
            return self._result(Outcome.CREATED, entity)

        existing = matches[0]
        if entity.same_as(existing):
            entity.bind(existing)
            self._logger.debug("Re-using existing %s entity %s", entity.kind.name, entity.remote_link)
            return self._result(Outcome.REUSED, entity)

        if not entity.kind.update_allowed:
            self._logger.info(
                "Existing %s entity differs and cannot be patched, creating a new one",
                entity.kind.name,
            )
            self._create(entity, collection_url)
            return self._result(Outcome.CREATED, entity)

        entity.bind(existing)
        self._update(entity)
        return self._result(Outcome.UPDATED, entity)

    def collection_url(
        self,
        entity: RemoteEntity,
        server_url: Optional[str] = None,
        parent_link: Optional[str] = None,
    ) -> str:
        kind = entity.kind
        if kind.nested:
            if not parent_link:
                raise ValueError(f"{kind.name} entities require the link of their parent {kind.parent}")
            return join_uris(parent_link, kind.collection)
        if not server_url:
            raise ValueError(f"{kind.name} entities require the server URL")
        return join_uris(server_url, kind.collection)

    def find_matches(self, entity: RemoteEntity, collection_url: str) -> List[Dict[str, Any]]:
        """Return remote records sharing the entity's natural key."""
        expression = build_filter(entity.kind, entity.attributes)
        response = self._http.get(collection_url, params={"$filter": expression})
        if response.status_code != 200:
            raise EntityStoreError(
                f"Could not query {entity.kind.collection} at {collection_url} "
                f"(HTTP {response.status_code}) with filter {expression}",
                response=response,
            )
        body = _json_body(response, collection_url)
        return list(body.get("value") or [])

    def _create(self, entity: RemoteEntity, collection_url: str) -> None:
        response = self._http.post(collection_url, json=entity.body())
        if response.status_code != 201:
            raise EntityStoreError(
                f"Could not create {entity.kind.name} at {collection_url} "
                f"(HTTP {response.status_code}): {response.text}",
                response=response,
            )

        location = response.headers.get("Location")
        body = _json_body(response, collection_url)
        if "@iot.id" not in body and location:
            # Some stores answer 201 with only a Location header
            follow_up = self._http.get(location)
            if follow_up.status_code != 200:
                raise EntityStoreError(
                    f"Could not read created {entity.kind.name} at {location} "
                    f"(HTTP {follow_up.status_code})",
                    response=follow_up,
                )
            body = _json_body(follow_up, location)

        if "@iot.id" not in body and not location:
            raise EntityStoreError(
                f"Created {entity.kind.name} but the store returned no identifier",
                response=response,
            )
        entity.bind(body, fallback_link=location)
        self._logger.info("Created %s entity %s", entity.kind.name, entity.remote_link)

    def _update(self, entity: RemoteEntity) -> None:
        if not entity.remote_link:
            raise EntityStoreError(f"Matched {entity.kind.name} record has no self link")
        response = self._http.patch(entity.remote_link, json=entity.body())
        if response.status_code not in (200, 204):
            raise EntityStoreError(
                f"Could not update {entity.kind.name} at {entity.remote_link} "
                f"(HTTP {response.status_code}): {response.text}",
                response=response,
            )
        self._logger.info("Updated %s entity %s", entity.kind.name, entity.remote_link)

    @staticmethod
    def _result(outcome: Outcome, entity: RemoteEntity) -> ReconcileResult:
        return ReconcileResult(
            outcome=outcome, remote_id=entity.remote_id, remote_link=entity.remote_link
        )
