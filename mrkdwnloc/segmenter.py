"""Batching of resources for machine translation requests."""

from __future__ import annotations

from collections import Counter
from typing import List, Sequence

from .accumulator import TAG_PATTERN
from .store import Resource
from .structures import Batch


def placeholder_signature(text: str) -> Counter:
    """Count the placeholder tags of a placeholder-string."""

    return Counter(match.group(0) for match in TAG_PATTERN.finditer(text))


def placeholders_match(source: str, translated: str) -> bool:
    """True when a translation uses exactly the tags of its source."""

    return placeholder_signature(source) == placeholder_signature(translated)


class BatchBuilder:
    """Aggregates resources into batches within a character budget.

    A placeholder-string is never split; one longer than the budget gets a
    batch of its own.
    """

    def __init__(self, budget: int) -> None:
        self.budget = max(1, budget)

    def build(self, resources: Sequence[Resource]) -> List[Batch]:
        batches: List[Batch] = []
        batch_resources: List[Resource] = []
        running_total = 0
        batch_id = 1

        for resource in resources:
            size = len(resource.source)
            if size > self.budget:
                if batch_resources:
                    batches.append(Batch(batch_id=batch_id, resources=batch_resources))
                    batch_id += 1
                    batch_resources = []
                    running_total = 0
                batches.append(Batch(batch_id=batch_id, resources=[resource]))
                batch_id += 1
                continue

            if running_total + size > self.budget and batch_resources:
                batches.append(Batch(batch_id=batch_id, resources=batch_resources))
                batch_id += 1
                batch_resources = []
                running_total = 0

            batch_resources.append(resource)
            running_total += size

        if batch_resources:
            batches.append(Batch(batch_id=batch_id, resources=batch_resources))

        return batches
