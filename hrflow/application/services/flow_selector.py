"""Flow selection: pick the definition that governs a submitted document."""

from __future__ import annotations

from datetime import datetime, UTC
from typing import Any, Mapping

from hrflow.application.interfaces.repositories import IFlowDefinitionRepository
from hrflow.application.services.condition_evaluator import evaluate_all
from hrflow.domain.entities import FlowDefinition
from hrflow.domain.enums import DocumentType
from hrflow.domain.exceptions import NoApplicableFlowError
from hrflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def selection_key(definition: FlowDefinition) -> tuple[int, bool, float, str]:
    """Total order: priority desc, default first, newest created_at, then id."""
    created = definition.created_at or _EPOCH
    return (
        -definition.priority,
        not definition.is_default,
        -created.timestamp(),
        definition.id,
    )


def choose(
    candidates: list[FlowDefinition], attributes: Mapping[str, Any]
) -> FlowDefinition | None:
    """Return the winning definition among active candidates, or None.

    Definitions whose conditions all match compete on selection_key. When
    none match, the active default (if any) is used as the fallback.
    """
    active = [d for d in candidates if d.is_active]
    eligible = [d for d in active if evaluate_all(d.conditions, attributes)]
    if eligible:
        return min(eligible, key=selection_key)
    defaults = [d for d in active if d.is_default]
    if defaults:
        return min(defaults, key=selection_key)
    return None


class FlowSelector:
    """Resolve (tenant, document_type, attributes) to one FlowDefinition."""

    def __init__(self, definition_repo: IFlowDefinitionRepository) -> None:
        self.definition_repo = definition_repo

    async def select(
        self,
        tenant_id: str,
        document_type: DocumentType,
        attributes: Mapping[str, Any],
    ) -> FlowDefinition:
        """Return the definition to freeze into a new instance.

        Raises:
            NoApplicableFlowError: no definition matches and no default exists.
        """
        candidates = await self.definition_repo.list_active(tenant_id, document_type)
        chosen = choose(candidates, attributes)
        if chosen is None:
            logger.warning(
                "No applicable flow for tenant=%s document_type=%s (%d active candidates)",
                tenant_id,
                document_type.value,
                len(candidates),
            )
            raise NoApplicableFlowError(tenant_id, document_type.value)
        logger.debug(
            "Selected flow %s (%s) for %s", chosen.id, chosen.name, document_type.value
        )
        return chosen
