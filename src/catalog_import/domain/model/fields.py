"""Target field catalog for importable catalog elements."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import ElementType, FieldKind

if TYPE_CHECKING:
    from collections.abc import Iterator

DEFAULT_TEXT_MAX_LENGTH = 255

type FieldDefault = str | float | None


@dataclass(frozen=True, slots=True, kw_only=True)
class TargetFieldDefinition:
    """A stable attribute of the destination element that a CSV column can feed."""

    key: str
    label: str
    required: bool = False
    kind: FieldKind = FieldKind.TEXT
    allowed_values: tuple[str, ...] = ()
    max_length: int | None = None
    default: FieldDefault = None

    def __post_init__(self) -> None:
        if self.kind is FieldKind.CHOICE and not self.allowed_values:
            raise ValueError(f"Choice field {self.key!r} needs allowed values")
        if self.kind is not FieldKind.CHOICE and self.allowed_values:
            raise ValueError(f"Only choice fields take allowed values ({self.key!r})")

    def canonical_choice(self, value: str) -> str | None:
        """Return the canonical spelling of ``value`` or None when it is not allowed."""

        folded = value.strip().casefold()
        for allowed in self.allowed_values:
            if allowed.casefold() == folded:
                return allowed
        return None


@dataclass(frozen=True, slots=True)
class FieldCatalog:
    """Ordered, read-only set of target fields for one element type."""

    element_type: ElementType
    fields: tuple[TargetFieldDefinition, ...]
    _by_key: dict[str, TargetFieldDefinition] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_key: dict[str, TargetFieldDefinition] = {}
        for definition in self.fields:
            if definition.key in by_key:
                raise ValueError(f"Duplicate target field key: {definition.key!r}")
            by_key[definition.key] = definition
        object.__setattr__(self, "_by_key", by_key)

    def __iter__(self) -> Iterator[TargetFieldDefinition]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def get(self, key: str) -> TargetFieldDefinition | None:
        return self._by_key.get(key)

    def require(self, key: str) -> TargetFieldDefinition:
        try:
            return self._by_key[key]
        except KeyError:
            raise KeyError(f"Unknown target field: {key!r}") from None

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(definition.key for definition in self.fields)

    @property
    def required_keys(self) -> tuple[str, ...]:
        return tuple(definition.key for definition in self.fields if definition.required)

    def label_for(self, key: str) -> str:
        definition = self._by_key.get(key)
        return definition.label if definition is not None else key


_RISK_LEVELS = ("High", "Medium", "Low")

APPLICATION_CATALOG = FieldCatalog(
    ElementType.APPLICATION,
    (
        TargetFieldDefinition(
            key="name",
            label="Name",
            required=True,
            max_length=DEFAULT_TEXT_MAX_LENGTH,
        ),
        TargetFieldDefinition(key="description", label="Description", max_length=2000),
        TargetFieldDefinition(
            key="applicationCode",
            label="Application Code",
            max_length=DEFAULT_TEXT_MAX_LENGTH,
        ),
        TargetFieldDefinition(
            key="applicationType",
            label="Application Type",
            kind=FieldKind.CHOICE,
            allowed_values=("COTS", "Custom", "SaaS", "Legacy"),
            default="Custom",
        ),
        TargetFieldDefinition(
            key="lifecycleStatus",
            label="Lifecycle Status",
            kind=FieldKind.CHOICE,
            allowed_values=("Planned", "Active", "Deprecated", "Retired"),
            default="Active",
        ),
        TargetFieldDefinition(key="ownerName", label="Owner", max_length=DEFAULT_TEXT_MAX_LENGTH),
        TargetFieldDefinition(
            key="ownerRole",
            label="Owner Role",
            max_length=DEFAULT_TEXT_MAX_LENGTH,
            default="IT Owner",
        ),
        TargetFieldDefinition(
            key="owningUnit",
            label="Owning Unit",
            max_length=DEFAULT_TEXT_MAX_LENGTH,
        ),
        TargetFieldDefinition(
            key="businessCriticality",
            label="Business Criticality",
            kind=FieldKind.CHOICE,
            allowed_values=("Mission-Critical", "High", "Medium", "Low"),
            default="Medium",
        ),
        TargetFieldDefinition(
            key="deploymentModel",
            label="Deployment Model",
            kind=FieldKind.CHOICE,
            allowed_values=("On-Prem", "Cloud", "Hybrid"),
            default="Cloud",
        ),
        TargetFieldDefinition(
            key="vendorName",
            label="Vendor Name",
            max_length=DEFAULT_TEXT_MAX_LENGTH,
        ),
        TargetFieldDefinition(
            key="annualRunCost",
            label="Annual Run Cost",
            kind=FieldKind.NUMBER,
            default=0.0,
        ),
        TargetFieldDefinition(
            key="availabilityTarget",
            label="Availability Target",
            kind=FieldKind.NUMBER,
            default=99.9,
        ),
        TargetFieldDefinition(
            key="vendorLockInRisk",
            label="Vendor Lock-In Risk",
            kind=FieldKind.CHOICE,
            allowed_values=_RISK_LEVELS,
            default="Medium",
        ),
        TargetFieldDefinition(
            key="technicalDebtLevel",
            label="Technical Debt Level",
            kind=FieldKind.CHOICE,
            allowed_values=_RISK_LEVELS,
            default="Medium",
        ),
    ),
)
