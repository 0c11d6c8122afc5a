"""
Local representation of SensorThings entities and constructors per kind.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urljoin

from ..models import parse_iso8601, to_iso8601
from .kinds import (
    DATASTREAM,
    LOCATION,
    OBSERVATION,
    OBSERVED_PROPERTY,
    SENSOR,
    THING,
    EntityKind,
)

logger = logging.getLogger(__name__)

DEFAULT_OBSERVATION_TYPE = "http://www.opengis.net/def/observationType/OGC-OM/2.0/OM_Observation"
GEOJSON_ENCODING = "application/vnd.geo+json"
# Only two Sensor encoding types are defined and servers reject others
PDF_ENCODING = "application/pdf"


def join_uris(base: str, *parts: str) -> str:
    """Join collection names onto a base URL or an entity link.

    Entity links end in an identifier such as ``Things(42)``; the base is
    always treated as a directory so the child collection is appended
    rather than replacing the last segment.
    """
    url = base
    for part in parts:
        if not url.endswith("/"):
            url += "/"
        url = urljoin(url, part)
    return url


def _json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso8601(value)
    return str(value)


def _normalize_time(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso8601(value)
    if isinstance(value, str):
        try:
            return to_iso8601(parse_iso8601(value))
        except ValueError:
            return value
    return value


def canonical_form(kind: EntityKind, attributes: Mapping[str, Any]) -> Dict[str, Any]:
    """Project attributes onto the kind's canonical fields as plain JSON data.

    Round-tripping through JSON makes key order, tuples versus lists and
    datetime objects versus strings irrelevant to comparison.
    """
    projected = {name: attributes.get(name) for name in kind.canonical_fields}
    # An absent field and an empty object read back the same way from the store
    projected = {name: (None if value == {} else value) for name, value in projected.items()}
    for name in kind.time_fields:
        projected[name] = _normalize_time(projected.get(name))
    return json.loads(json.dumps(projected, sort_keys=True, default=_json_value))


@dataclass
class RemoteEntity:
    """An entity to be mirrored into the remote store.

    ``remote_id`` and ``remote_link`` are filled in by reconciliation; they
    only identify the remote record, which is owned by the store.
    """

    kind: EntityKind
    attributes: Dict[str, Any] = field(default_factory=dict)
    remote_id: Optional[Any] = None
    remote_link: Optional[str] = None

    def body(self) -> Dict[str, Any]:
        """JSON body for create and update requests."""
        payload = {
            name: self.attributes[name]
            for name in self.kind.body_fields
            if name in self.attributes
        }
        return json.loads(json.dumps(payload, default=_json_value))

    def canonical(self) -> Dict[str, Any]:
        return canonical_form(self.kind, self.attributes)

    def same_as(self, remote: Mapping[str, Any]) -> bool:
        """Structural equality of canonical fields with a remote record."""
        return self.canonical() == canonical_form(self.kind, remote)

    def bind(self, remote: Mapping[str, Any], fallback_link: Optional[str] = None) -> None:
        """Take the identifiers of a remote record."""
        self.remote_id = remote.get("@iot.id", self.remote_id)
        self.remote_link = remote.get("@iot.selfLink") or fallback_link or self.remote_link


def new_thing(
    name: str, description: str, properties: Optional[Mapping[str, Any]] = None
) -> RemoteEntity:
    attributes: Dict[str, Any] = {"name": name, "description": description}
    if properties:
        attributes["properties"] = dict(properties)
    return RemoteEntity(THING, attributes)


def new_location(
    name: str,
    description: str,
    latitude: float,
    longitude: float,
    elevation: Optional[float] = None,
) -> RemoteEntity:
    """Location with a GeoJSON point; raises ValueError if a coordinate is missing."""
    if latitude is None or longitude is None:
        raise ValueError("Station latitude or longitude is missing, cannot build a Location")
    coordinates = [float(longitude), float(latitude)]
    if elevation is not None:
        coordinates.append(float(elevation))
    return RemoteEntity(
        LOCATION,
        {
            "name": name,
            "description": description,
            "encodingType": GEOJSON_ENCODING,
            "location": {"type": "Point", "coordinates": coordinates},
        },
    )


def new_sensor(
    name: str, description: str, metadata: str = "", encoding_type: str = PDF_ENCODING
) -> RemoteEntity:
    return RemoteEntity(
        SENSOR,
        {
            "name": name,
            "description": description,
            "encodingType": encoding_type,
            "metadata": metadata,
        },
    )


def new_observed_property(name: str, description: str, definition: str) -> RemoteEntity:
    for label, value in (("name", name), ("description", description), ("definition", definition)):
        if not value:
            logger.warning(
                'Attribute "%s" for Observed Property is empty; the entity store may reject it',
                label,
            )
    return RemoteEntity(
        OBSERVED_PROPERTY,
        {"name": name, "description": description, "definition": definition},
    )


def new_datastream(
    name: str,
    description: str,
    unit_of_measurement: Mapping[str, Any],
    sensor_id: Any,
    observed_property_id: Any,
    observation_type: Optional[str] = None,
) -> RemoteEntity:
    return RemoteEntity(
        DATASTREAM,
        {
            "name": name,
            "description": description,
            "unitOfMeasurement": dict(unit_of_measurement),
            "observationType": observation_type or DEFAULT_OBSERVATION_TYPE,
            "Sensor": {"@iot.id": sensor_id},
            "ObservedProperty": {"@iot.id": observed_property_id},
        },
    )


def new_observation(
    phenomenon_time: datetime, result: Any, result_time: Optional[datetime] = None
) -> RemoteEntity:
    phenomenon = to_iso8601(phenomenon_time)
    return RemoteEntity(
        OBSERVATION,
        {
            "phenomenonTime": phenomenon,
            "result": result,
            "resultTime": to_iso8601(result_time) if result_time else phenomenon,
        },
    )
