"""Audience calculator: applies a rule tree to a customer population."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from functools import reduce
from itertools import islice
from typing import Any, Iterable, Iterator, List, Mapping, Optional

from segment_studio.config import get_settings
from segment_studio.core.rules.engine import RuleEvaluator, utc_today
from segment_studio.core.rules.models import RuleGroup
from segment_studio.core.rules.registry import FieldRegistry
from segment_studio.core.rules.validation import validate_tree
from .models import AudienceResult

logger = logging.getLogger(__name__)
settings = get_settings()

CustomerRecord = Mapping[str, Any]


def chunked(records: Iterable[CustomerRecord], size: int) -> Iterator[List[CustomerRecord]]:
    """Split an iterable of records into lists of at most `size` records."""
    iterator = iter(records)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk


class AudienceCalculator:
    """Counts and lists the customers a rule tree matches.

    Records are evaluated independently, so the population may be
    processed sequentially, split across a thread pool, or fed in as a
    stream of chunks; all three produce the same result.
    """

    def __init__(
        self,
        registry: FieldRegistry,
        workers: Optional[int] = None,
        chunk_size: Optional[int] = None,
        id_field: str = "id",
    ):
        """Initialize the calculator.

        Args:
            registry: Field registry used to validate and evaluate rules
            workers: Thread pool size (1 = sequential). Defaults to settings.
            chunk_size: Records per parallel work unit. Defaults to settings.
            id_field: Record key holding the customer id
        """
        self.registry = registry
        self.evaluator = RuleEvaluator(registry)
        self.workers = workers or settings.audience_workers
        self.chunk_size = chunk_size or settings.audience_chunk_size
        self.id_field = id_field

    def compute_audience(
        self,
        tree: RuleGroup,
        customers: Iterable[CustomerRecord],
        reference_date: Optional[date] = None,
    ) -> AudienceResult:
        """Evaluate a tree against every customer record.

        Args:
            tree: Rule tree (validated once before the pass)
            customers: Customer records (mappings from field key to value)
            reference_date: "Today" for relative date rules (defaults to UTC today)

        Returns:
            Matched count and ids, plus records that could not be evaluated

        Raises:
            SegmentRuleError: If the tree itself is invalid
        """
        snapshot = self._prepare(tree)
        reference_date = reference_date or utc_today()

        if self.workers <= 1:
            result = self._evaluate_chunk(snapshot, customers, reference_date)
        else:
            chunks = list(chunked(customers, self.chunk_size))
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="audience") as executor:
                partials = list(
                    executor.map(
                        lambda chunk: self._evaluate_chunk(snapshot, chunk, reference_date),
                        chunks,
                    )
                )
            result = reduce(AudienceResult.merge, partials, AudienceResult())

        self._log_result(result)
        return result

    def compute_audience_stream(
        self,
        tree: RuleGroup,
        chunks: Iterable[Iterable[CustomerRecord]],
        reference_date: Optional[date] = None,
    ) -> AudienceResult:
        """Evaluate a population delivered as successive chunks.

        Only the running total is kept between chunks, so the population
        never has to be materialized.
        """
        snapshot = self._prepare(tree)
        reference_date = reference_date or utc_today()

        result = AudienceResult()
        for chunk in chunks:
            result = result.merge(self._evaluate_chunk(snapshot, chunk, reference_date))

        self._log_result(result)
        return result

    def count(
        self,
        tree: RuleGroup,
        customers: Iterable[CustomerRecord],
        reference_date: Optional[date] = None,
    ) -> int:
        """Number of matching customers."""
        return self.compute_audience(tree, customers, reference_date).matched_count

    def _prepare(self, tree: RuleGroup) -> RuleGroup:
        validate_tree(tree, self.registry)
        # Evaluate a private copy so later edits cannot race with the pass
        return tree.model_copy(deep=True)

    def _evaluate_chunk(
        self,
        tree: RuleGroup,
        records: Iterable[CustomerRecord],
        reference_date: date,
    ) -> AudienceResult:
        result = AudienceResult()
        for record in records:
            record_id = self._record_id(record)
            result.evaluated_count += 1

            if record_id is None:
                result.unevaluable_count += 1
                continue

            try:
                matched = self.evaluator.evaluate(tree, record, reference_date)
            except Exception as e:
                logger.warning(f"Skipping customer {record_id}: {e}")
                result.unevaluable_count += 1
                result.unevaluable_ids.append(record_id)
                continue

            if matched:
                result.matched_count += 1
                result.matched_ids.append(record_id)

        return result

    def _record_id(self, record: Any) -> Optional[str]:
        if not isinstance(record, Mapping):
            return None
        value = record.get(self.id_field)
        return None if value is None else str(value)

    def _log_result(self, result: AudienceResult) -> None:
        logger.info(
            f"Audience pass complete: {result.matched_count} of {result.evaluated_count} "
            f"record(s) matched, {result.unevaluable_count} unevaluable"
        )
