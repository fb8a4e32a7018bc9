"""Turn validated records plus duplicate decisions into an ordered execution plan."""

from __future__ import annotations

import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from catalog_import.domain.model import (
    APPLICATION_CATALOG,
    DuplicateStrategy,
    PlanAction,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from catalog_import.domain.model import (
        AttributeValue,
        ElementType,
        FieldCatalog,
        ImportRecord,
    )

    from .duplicates import DuplicateResolution

GENERATED_CODE_FIELD = "applicationCode"
IMPORT_ACTOR = "csv-import"

# Provenance written alongside the catalog fields of every new element.
CREATE_STAMPS: Mapping[str, AttributeValue] = {
    "approvalStatus": "Draft",
    "reviewCycleMonths": 12,
    "createdBy": IMPORT_ACTOR,
    "lastModifiedBy": IMPORT_ACTOR,
}
UPDATE_STAMPS: Mapping[str, AttributeValue] = {"lastModifiedBy": IMPORT_ACTOR}


def generate_application_code() -> str:
    return f"APP-{uuid.uuid4().hex[:8].upper()}"


@dataclass(frozen=True, slots=True, kw_only=True)
class PlannedRow:
    row_index: int
    action: PlanAction
    name: str
    attributes: Mapping[str, AttributeValue] = field(default_factory=dict)
    element_id: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ExecutionPlan:
    element_type: ElementType
    rows: tuple[PlannedRow, ...]

    @property
    def total(self) -> int:
        return len(self.rows)

    def count(self, action: PlanAction) -> int:
        return sum(1 for row in self.rows if row.action is action)

    def summary(self) -> dict[PlanAction, int]:
        counts = Counter(row.action for row in self.rows)
        return {action: counts.get(action, 0) for action in PlanAction}


def build_execution_plan(
    records: Iterable[ImportRecord],
    resolution: DuplicateResolution | None = None,
    *,
    catalog: FieldCatalog = APPLICATION_CATALOG,
    code_factory: Callable[[], str] = generate_application_code,
) -> ExecutionPlan:
    """Plan one write (or skip) per valid record, in row order.

    Rows without a duplicate match are created. Matched rows follow their
    strategy: UPDATE_EXISTING targets the matched element with only the provided
    fields, CREATE_NEW creates regardless of the collision, SKIP writes nothing.
    """

    planned: list[PlannedRow] = []
    seen: set[int] = set()
    for record in sorted(records, key=lambda item: item.row_index):
        if not record.is_valid:
            raise ValueError(f"Row {record.row_index} is invalid and cannot be planned")
        if record.row_index in seen:
            raise ValueError(f"Row {record.row_index} appears more than once")
        seen.add(record.row_index)

        match = resolution.match_for(record.row_index) if resolution is not None else None
        name = record.normalized.text("name") or ""
        provided = record.normalized.as_attributes()
        if match is None or match.strategy is DuplicateStrategy.CREATE_NEW:
            planned.append(
                PlannedRow(
                    row_index=record.row_index,
                    action=PlanAction.CREATE,
                    name=name,
                    attributes=create_attributes(provided, catalog, code_factory=code_factory),
                )
            )
        elif match.strategy is DuplicateStrategy.SKIP:
            planned.append(
                PlannedRow(row_index=record.row_index, action=PlanAction.SKIP, name=name)
            )
        else:
            planned.append(
                PlannedRow(
                    row_index=record.row_index,
                    action=PlanAction.UPDATE,
                    name=name,
                    attributes={**provided, **UPDATE_STAMPS},
                    element_id=match.existing_element_id,
                )
            )
    return ExecutionPlan(element_type=catalog.element_type, rows=tuple(planned))


def create_attributes(
    provided: Mapping[str, AttributeValue],
    catalog: FieldCatalog = APPLICATION_CATALOG,
    *,
    code_factory: Callable[[], str] = generate_application_code,
) -> dict[str, AttributeValue]:
    """Fill catalog defaults for every field the row left empty, then stamp provenance."""

    attributes: dict[str, AttributeValue] = {}
    for definition in catalog:
        if definition.key in provided:
            attributes[definition.key] = provided[definition.key]
        elif definition.default is not None:
            attributes[definition.key] = definition.default
        elif definition.key == GENERATED_CODE_FIELD:
            attributes[definition.key] = code_factory()
    attributes.update(CREATE_STAMPS)
    return attributes
