"""
Descriptors for the six SensorThings entity kinds.

All kinds share one reconciliation algorithm; a descriptor says how a kind
differs: which fields identify an existing record, which fields decide
whether it is up to date, where new records are created, and whether a
stale record may be patched.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class EntityKind:
    """Per-kind parameters of the reconciliation protocol."""

    name: str
    collection: str
    key_fields: Tuple[str, ...]
    canonical_fields: Tuple[str, ...]
    body_fields: Tuple[str, ...]
    parent: Optional[str] = None
    update_allowed: bool = True
    unquoted_key_fields: Tuple[str, ...] = ()
    time_fields: Tuple[str, ...] = ()

    @property
    def nested(self) -> bool:
        """True if records are created under a parent entity's link."""
        return self.parent is not None


THING = EntityKind(
    name="Thing",
    collection="Things",
    key_fields=("name", "description"),
    canonical_fields=("name", "description", "properties"),
    body_fields=("name", "description", "properties"),
)

# Some servers cannot merge the nested GeoJSON of a Location on PATCH, so a
# changed Location is posted as a new record instead.
LOCATION = EntityKind(
    name="Location",
    collection="Locations",
    key_fields=("name", "description"),
    canonical_fields=("name", "description", "encodingType", "location"),
    body_fields=("name", "description", "encodingType", "location"),
    parent="Thing",
    update_allowed=False,
)

SENSOR = EntityKind(
    name="Sensor",
    collection="Sensors",
    key_fields=("name", "description"),
    canonical_fields=("name", "description", "encodingType", "metadata"),
    body_fields=("name", "description", "encodingType", "metadata"),
)

OBSERVED_PROPERTY = EntityKind(
    name="ObservedProperty",
    collection="ObservedProperties",
    key_fields=("name",),
    canonical_fields=("name", "description", "definition"),
    body_fields=("name", "description", "definition"),
)

DATASTREAM = EntityKind(
    name="Datastream",
    collection="Datastreams",
    key_fields=("name", "description"),
    canonical_fields=("name", "description", "observationType", "unitOfMeasurement"),
    body_fields=(
        "name",
        "description",
        "observationType",
        "unitOfMeasurement",
        "Sensor",
        "ObservedProperty",
    ),
    parent="Thing",
)

OBSERVATION = EntityKind(
    name="Observation",
    collection="Observations",
    key_fields=("phenomenonTime",),
    canonical_fields=("phenomenonTime", "result", "resultTime"),
    body_fields=("phenomenonTime", "result", "resultTime"),
    parent="Datastream",
    unquoted_key_fields=("phenomenonTime",),
    time_fields=("phenomenonTime", "resultTime"),
)

KINDS: Dict[str, EntityKind] = {
    kind.name: kind
    for kind in (THING, LOCATION, SENSOR, OBSERVED_PROPERTY, DATASTREAM, OBSERVATION)
}


def get_kind(name: str) -> EntityKind:
    try:
        return KINDS[name]
    except KeyError:
        raise ValueError(
            f"Unknown entity kind {name!r}. Available: {', '.join(KINDS)}"
        ) from None
