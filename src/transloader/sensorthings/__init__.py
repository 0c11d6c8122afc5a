"""
SensorThings API entity store support.

Entities of six kinds (Thing, Location, Sensor, ObservedProperty,
Datastream, Observation) are mirrored into a remote store with one shared
reconciliation algorithm; the kinds differ only by their descriptor.
"""

from .entity import (
    RemoteEntity,
    canonical_form,
    join_uris,
    new_datastream,
    new_location,
    new_observation,
    new_observed_property,
    new_sensor,
    new_thing,
)
from .filters import build_filter, sanitize_odata_string
from .kinds import (
    DATASTREAM,
    KINDS,
    LOCATION,
    OBSERVATION,
    OBSERVED_PROPERTY,
    SENSOR,
    THING,
    EntityKind,
    get_kind,
)
from .reconciler import EntityReconciler, Outcome, ReconcileResult

__all__ = [
    "EntityKind",
    "EntityReconciler",
    "KINDS",
    "Outcome",
    "ReconcileResult",
    "RemoteEntity",
    "THING",
    "LOCATION",
    "SENSOR",
    "OBSERVED_PROPERTY",
    "DATASTREAM",
    "OBSERVATION",
    "build_filter",
    "canonical_form",
    "get_kind",
    "join_uris",
    "new_datastream",
    "new_location",
    "new_observation",
    "new_observed_property",
    "new_sensor",
    "new_thing",
    "sanitize_odata_string",
]
