"""Recurring commitment mutations over immutable SchedulingPreferences"""

import logging

from .errors import CommitmentNotFound
from .schemas import CommitmentCreate, CommitmentUpdate, RecurringCommitment, SchedulingPreferences

logger = logging.getLogger(__name__)


def _find_index(preferences: SchedulingPreferences, commitment_id: str) -> int:
    for index, commitment in enumerate(preferences.recurring_commitments):
        if commitment.id == commitment_id:
            return index
    raise CommitmentNotFound(f"Recurring commitment {commitment_id} not found")


def add_commitment(
    preferences: SchedulingPreferences, data: CommitmentCreate
) -> tuple[SchedulingPreferences, RecurringCommitment]:
    commitment = RecurringCommitment(**data.model_dump())
    updated = preferences.model_copy(
        update={"recurring_commitments": [*preferences.recurring_commitments, commitment]}
    )
    logger.info(f"✅ Added recurring commitment {commitment.id} on {commitment.weekday.value}")
    return updated, commitment


def update_commitment(
    preferences: SchedulingPreferences, commitment_id: str, data: CommitmentUpdate
) -> tuple[SchedulingPreferences, RecurringCommitment]:
    index = _find_index(preferences, commitment_id)
    existing = preferences.recurring_commitments[index]

    updates = data.model_dump(exclude_none=True)
    commitment = RecurringCommitment(**{**existing.model_dump(), **updates})

    commitments = list(preferences.recurring_commitments)
    commitments[index] = commitment
    logger.info(f"✅ Updated recurring commitment {commitment_id}")
    return preferences.model_copy(update={"recurring_commitments": commitments}), commitment


def delete_commitment(preferences: SchedulingPreferences, commitment_id: str) -> SchedulingPreferences:
    index = _find_index(preferences, commitment_id)
    commitments = [c for i, c in enumerate(preferences.recurring_commitments) if i != index]
    logger.info(f"🗑️ Deleted recurring commitment {commitment_id}")
    return preferences.model_copy(update={"recurring_commitments": commitments})
