"""Schema inference over sampled documents.

Counts field presence and value tags across a sample and classifies each
field as required or optional. Nothing is inferred about fields that were
never observed.
"""

import logging
from fractions import Fraction
from typing import Sequence

from shared.helper.HelperConfig import HelperConfig
from shared.models.schema import CollectionSchema, FieldObservation, FieldSchema, FieldType
from shared.models.value import BaseValue, MapValue, ValueTag, document_from_python

DEFAULT_REQUIRED_THRESHOLD = 0.8    # presence ratio at or above which a field is required
DEFAULT_MAX_SAMPLE_VALUES = 5       # distinct sample values kept per field


class _FieldStats:
    """Running counters for one field during a single inference run."""

    def __init__(self) -> None:
        self.count = 0
        self.tags: list[ValueTag] = []
        self.samples: list[BaseValue] = []


class SchemaInferenceEngine:
    """Derives FieldObservations from a document sample.

    The required threshold and the sample value cap are configuration
    defaults: explicit arguments win over the INFERENCE_REQUIRED_THRESHOLD
    and INFERENCE_MAX_SAMPLE_VALUES environment variables, which win over
    the module defaults.
    """

    def __init__(
        self,
        helper_config: HelperConfig | None = None,
        required_threshold: float | None = None,
        max_sample_values: int | None = None,
    ) -> None:
        self.logging = helper_config.get_logger() if helper_config else logging.getLogger(__name__)

        if required_threshold is None:
            required_threshold = (
                helper_config.get_ratio_val("INFERENCE_REQUIRED_THRESHOLD", default=DEFAULT_REQUIRED_THRESHOLD)
                if helper_config else DEFAULT_REQUIRED_THRESHOLD
            )
        if max_sample_values is None:
            max_sample_values = (
                helper_config.get_int_val("INFERENCE_MAX_SAMPLE_VALUES", default=DEFAULT_MAX_SAMPLE_VALUES)
                if helper_config else DEFAULT_MAX_SAMPLE_VALUES
            )

        if not 0.0 < required_threshold <= 1.0:
            raise ValueError(f"Required threshold must be in (0, 1], got {required_threshold}.")
        if max_sample_values < 1:
            raise ValueError(f"Sample value cap must be at least 1, got {max_sample_values}.")

        self.required_threshold = required_threshold
        self.max_sample_values = max_sample_values
        # exact comparison, so 8/10 meets a 0.8 threshold
        self._threshold = Fraction(str(required_threshold))

    ##########################################
    ################ CORE ####################
    ##########################################

    def infer(self, documents: Sequence[MapValue | dict], total: int | None = None) -> list[FieldObservation]:
        """Observe every field of a document sample.

        Args:
            documents (Sequence[MapValue | dict]): The sampled documents, in sample order.
            total (int | None): Sample size N used for the frequency ratio. Defaults to len(documents).

        Returns:
            list[FieldObservation]: One observation per field, in first-seen order. Empty for an empty sample.

        Raises:
            ValueError: If total is smaller than the number of documents given.
        """
        docs = [document_from_python(doc) for doc in documents]
        sample_size = len(docs) if total is None else total
        if sample_size < len(docs):
            raise ValueError(f"Sample size {sample_size} is smaller than the {len(docs)} documents given.")
        if sample_size == 0:
            return []

        stats: dict[str, _FieldStats] = {}
        for doc in docs:
            for name, value in doc.fields.items():
                field_stats = stats.setdefault(name, _FieldStats())
                field_stats.count += 1
                if value.kind not in field_stats.tags:
                    field_stats.tags.append(value.kind)
                if len(field_stats.samples) < self.max_sample_values and value not in field_stats.samples:
                    field_stats.samples.append(value)

        observations = [self._build_observation(name, field_stats, sample_size) for name, field_stats in stats.items()]
        self.logging.debug("Inferred %d fields from %d sampled documents.", len(observations), sample_size)
        return observations

    def promote(self, collection: str, observations: Sequence[FieldObservation], description: str | None = None) -> CollectionSchema:
        """Turn observations into a declared collection schema.

        Args:
            collection (str): Name of the collection.
            observations (Sequence[FieldObservation]): Result of :meth:`infer`.
            description (str | None): Optional collection description.

        Returns:
            CollectionSchema: A schema with one field per observation and no rules or indexes.
        """
        fields = [
            FieldSchema(
                name=obs.name,
                field_type=obs.field_type,
                required=obs.required,
                description=self._describe(obs),
            )
            for obs in observations
        ]
        return CollectionSchema(name=collection, description=description, fields=fields)

    def infer_schema(self, collection: str, documents: Sequence[MapValue | dict], total: int | None = None) -> CollectionSchema:
        """Shortcut for :meth:`infer` followed by :meth:`promote`."""
        observations = self.infer(documents, total=total)
        sample_size = len(documents) if total is None else total
        return self.promote(
            collection,
            observations,
            description=f"Discovered from a sample of {sample_size} documents",
        )

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def _build_observation(self, name: str, field_stats: _FieldStats, sample_size: int) -> FieldObservation:
        if len(field_stats.tags) > 1:
            field_type = FieldType.MIXED
            mixed_types = sorted(field_stats.tags, key=lambda tag: tag.value)
        else:
            field_type = FieldType(field_stats.tags[0].value)
            mixed_types = []

        return FieldObservation(
            name=name,
            field_type=field_type,
            mixed_types=mixed_types,
            occurrence_count=field_stats.count,
            total_documents=sample_size,
            sample_values=field_stats.samples,
            required=self.is_required(field_stats.count, sample_size),
        )

    def is_required(self, occurrence_count: int, sample_size: int) -> bool:
        """True iff occurrence_count / sample_size reaches the threshold (inclusive)."""
        if sample_size <= 0:
            return False
        return Fraction(occurrence_count, sample_size) >= self._threshold

    def _describe(self, obs: FieldObservation) -> str:
        samples = ", ".join(value.describe() for value in obs.sample_values)
        return f"Observed in {obs.occurrence_count}/{obs.total_documents} documents. Samples: {samples}"
