"""
Upload cached observations to their datastreams in the entity store.
"""

import logging
import math
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .config import ClientConfig
from .exceptions import EntityStoreError, TransloaderError
from .models import Observation, StationMetadata
from .property_cache import PropertyMatchCache
from .sensorthings.entity import new_observation
from .sensorthings.reconciler import EntityReconciler, Outcome, ReconcileResult

logger = logging.getLogger(__name__)

OM_MEASUREMENT = "http://www.opengis.net/def/observationType/OGC-OM/2.0/OM_Measurement"
OM_COUNT_OBSERVATION = "http://www.opengis.net/def/observationType/OGC-OM/2.0/OM_CountObservation"

# Placeholders data loggers write for a missing reading
MISSING_VALUES = ("", "null", "nan", "-nan", "inf", "-inf")


def filter_datastreams(
    datastreams: Sequence[Mapping[str, Any]],
    allowed: Optional[Iterable[str]] = None,
    blocked: Optional[Iterable[str]] = None,
) -> List[Mapping[str, Any]]:
    """Keep datastreams named in ``allowed``, or drop those named in ``blocked``.

    If both lists are given, ``blocked`` is ignored. If neither is given all
    datastreams are kept.
    """
    if allowed:
        names = set(allowed)
        return [ds for ds in datastreams if ds.get("name") in names]
    if blocked:
        names = set(blocked)
        return [ds for ds in datastreams if ds.get("name") not in names]
    return list(datastreams)


def coerce_result(result: Any, observation_type: Optional[str]) -> Any:
    """Convert a cached result to the JSON type its observation type expects.

    Missing readings (``None``, ``"null"``, ``"NAN"`` and non-finite floats)
    become ``None``.

    Raises:
        ValueError: The result is not numeric but the observation type is
    """
    if result is None:
        return None
    if isinstance(result, str) and result.strip().lower() in MISSING_VALUES:
        return None
    if isinstance(result, float) and not math.isfinite(result):
        return None
    if observation_type == OM_MEASUREMENT:
        value = float(result)
        return value if math.isfinite(value) else None
    if observation_type == OM_COUNT_OBSERVATION:
        value = float(result)
        return int(value) if math.isfinite(value) else None
    return result


def summarize(results: Iterable[ReconcileResult], log: Optional[logging.Logger] = None) -> Dict[str, int]:
    """Count results per outcome and log the totals."""
    counts = Counter(result.outcome.value for result in results)
    summary = {outcome.value: counts.get(outcome.value, 0) for outcome in Outcome}
    (log or logger).info(
        "Observations: %s",
        ", ".join(f"{count} {name}" for name, count in summary.items()),
    )
    return summary


class ObservationUploader:
    """Mirror cached observations into the datastreams of one station."""

    def __init__(
        self,
        reconciler: EntityReconciler,
        matching: str = "contains",
        log: Optional[logging.Logger] = None,
    ):
        self._reconciler = reconciler
        self._logger = log or logger
        self.property_cache = PropertyMatchCache(matching=matching)

    @classmethod
    def from_config(
        cls,
        reconciler: EntityReconciler,
        config: ClientConfig,
        log: Optional[logging.Logger] = None,
    ) -> "ObservationUploader":
        """Create an uploader using the property matching mode of ``config``."""
        return cls(reconciler, matching=config.matching, log=log)

    def upload(
        self,
        observations: Iterable[Observation],
        metadata: StationMetadata,
        allowed: Optional[Iterable[str]] = None,
        blocked: Optional[Iterable[str]] = None,
        stop_on_error: bool = True,
    ) -> List[ReconcileResult]:
        """
        Reconcile each observation against its datastream's Observations.

        Observations whose property maps to no (allowed) datastream are
        skipped with a warning and reported as ``UNAVAILABLE``. Results that
        cannot be converted to the datastream's type are reported as
        ``FAILED`` without contacting the store.

        Args:
            observations: Cached observations, e.g. from ``get_all_in_range``
            metadata: Station metadata holding uploaded datastream links
            allowed: Only upload these datastream names
            blocked: Skip these datastream names (ignored if ``allowed`` is set)
            stop_on_error: Raise on the first store error instead of
                recording a ``FAILED`` result and continuing

        Raises:
            TransloaderError: Metadata has no datastreams, or a matched
                datastream has not been uploaded yet
            EntityStoreError: The store rejected a request and ``stop_on_error``
        """
        if not metadata:
            raise TransloaderError("Station metadata not loaded")

        datastreams = filter_datastreams(metadata.get("datastreams") or [], allowed, blocked)
        by_name = {ds["name"]: ds for ds in datastreams if ds.get("name")}
        if set(by_name) != self.property_cache.datastream_names:
            self.property_cache.rebuild(by_name)

        results: List[ReconcileResult] = []
        for observation in observations:
            name = self.property_cache.resolve(observation.property)
            if name is None:
                self._logger.warning(
                    "No datastream found for observation property: %s", observation.property
                )
                results.append(ReconcileResult(Outcome.UNAVAILABLE, reason="unmapped property"))
                continue

            datastream = by_name[name]
            link = datastream.get("Datastream@iot.navigationLink")
            if not link:
                raise TransloaderError(f"Datastream navigation URL not cached for {name}")

            try:
                result = coerce_result(observation.result, datastream.get("type"))
            except (TypeError, ValueError) as e:
                self._logger.warning(
                    "Skipping observation %s with unusable result %r: %s",
                    observation.key,
                    observation.result,
                    e,
                )
                results.append(ReconcileResult(Outcome.FAILED, reason=f"invalid result: {e}"))
                continue

            entity = new_observation(observation.timestamp, result)
            try:
                results.append(self._reconciler.reconcile(entity, parent_link=link))
            except EntityStoreError as e:
                if stop_on_error:
                    raise
                self._logger.error("Failed to upload observation %s: %s", observation.key, e)
                results.append(ReconcileResult(Outcome.FAILED, reason=str(e)))

        summarize(results, self._logger)
        return results
