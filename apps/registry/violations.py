from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from . import errors


class Severity(str, Enum):
    HARD = 'hard'
    SOFT = 'soft'


class ViolationKind(str, Enum):
    DUPLICATE_ID = 'duplicate_id'
    DUPLICATE_NAME = 'duplicate_name'
    DUPLICATE_SLUG = 'duplicate_slug'
    EMPTY_SLUG = 'empty_slug'
    DANGLING_PARENT_REFERENCE = 'dangling_parent_reference'
    DANGLING_FORK_REFERENCE = 'dangling_fork_reference'
    INVALID_CATEGORY = 'invalid_category'
    DUPLICATE_MODULE = 'duplicate_module'
    UNKNOWN_CHAIN = 'unknown_chain'
    ORACLE_CASING_MISMATCH = 'oracle_casing_mismatch'
    DUPLICATE_GECKO_ID = 'duplicate_gecko_id'
    MISSING_CHAIN_EXPORT = 'missing_chain_export'
    INVALID_TREASURY_EXPORT = 'invalid_treasury_export'
    ADAPTER_LOAD_FAILED = 'adapter_load_failed'
    MISSING_EMISSIONS_TOKEN = 'missing_emissions_token'
    DUPLICATE_EMISSIONS_META = 'duplicate_emissions_meta'
    DUPLICATE_DIMENSION_ID = 'duplicate_dimension_id'
    UNKNOWN_DIMENSION_ID = 'unknown_dimension_id'
    GITHUB_NOT_ORG = 'github_not_org'
    STATS_TOTAL_MISMATCH = 'stats_total_mismatch'
    STATS_ACTIVE_EXCEEDS_ONCHAIN = 'stats_active_exceeds_onchain'
    TREASURY_ON_CHILD = 'treasury_on_child'
    GOVERNANCE_ON_CHILD = 'governance_on_child'
    GITHUB_ON_CHILD = 'github_on_child'

    @property
    def severity(self) -> Severity:
        return _SEVERITY.get(self, Severity.HARD)

    @property
    def error_class(self) -> type[errors.RegistryError]:
        return _ERRORS[self]


_SEVERITY = {
    ViolationKind.TREASURY_ON_CHILD: Severity.SOFT,
    ViolationKind.GOVERNANCE_ON_CHILD: Severity.SOFT,
    ViolationKind.GITHUB_ON_CHILD: Severity.SOFT,
}

_ERRORS: dict[ViolationKind, type[errors.RegistryError]] = {
    ViolationKind.DUPLICATE_ID: errors.DuplicateIdError,
    ViolationKind.DUPLICATE_NAME: errors.DuplicateNameError,
    ViolationKind.DUPLICATE_SLUG: errors.DuplicateSlugError,
    ViolationKind.EMPTY_SLUG: errors.DuplicateSlugError,
    ViolationKind.DANGLING_PARENT_REFERENCE: errors.DanglingParentReferenceError,
    ViolationKind.DANGLING_FORK_REFERENCE: errors.DanglingForkReferenceError,
    ViolationKind.INVALID_CATEGORY: errors.InvalidCategoryError,
    ViolationKind.DUPLICATE_MODULE: errors.DuplicateModuleError,
    ViolationKind.UNKNOWN_CHAIN: errors.UnknownChainError,
    ViolationKind.ORACLE_CASING_MISMATCH: errors.OracleCasingMismatchError,
    ViolationKind.DUPLICATE_GECKO_ID: errors.DuplicateGeckoIdError,
    ViolationKind.MISSING_CHAIN_EXPORT: errors.ChainExportError,
    ViolationKind.INVALID_TREASURY_EXPORT: errors.ChainExportError,
    ViolationKind.ADAPTER_LOAD_FAILED: errors.AdapterLoadError,
    ViolationKind.MISSING_EMISSIONS_TOKEN: errors.EmissionsMetaError,
    ViolationKind.DUPLICATE_EMISSIONS_META: errors.EmissionsMetaError,
    ViolationKind.DUPLICATE_DIMENSION_ID: errors.DimensionIdError,
    ViolationKind.UNKNOWN_DIMENSION_ID: errors.DimensionIdError,
    ViolationKind.GITHUB_NOT_ORG: errors.MetadataPlacementError,
    ViolationKind.STATS_TOTAL_MISMATCH: errors.StatsMismatchError,
    ViolationKind.STATS_ACTIVE_EXCEEDS_ONCHAIN: errors.StatsMismatchError,
    ViolationKind.TREASURY_ON_CHILD: errors.MetadataPlacementError,
    ViolationKind.GOVERNANCE_ON_CHILD: errors.MetadataPlacementError,
    ViolationKind.GITHUB_ON_CHILD: errors.MetadataPlacementError,
}


@dataclass(frozen=True)
class Violation:
    kind: ViolationKind
    entity_id: str
    detail: str = field(compare=False)
    # the offending value (name, slug, chain string...); part of identity so a
    # record with two distinct problems of one kind reports both
    subject: str = ''
    related_ids: tuple[str, ...] = field(default=(), compare=False)

    @property
    def severity(self) -> Severity:
        return self.kind.severity

    @property
    def key(self) -> tuple[str, str, str]:
        return self.kind.value, self.entity_id, self.subject

    def as_error(self) -> errors.RegistryError:
        error_class = self.kind.error_class
        if issubclass(error_class, errors.UnknownChainError):
            return error_class(self.subject, self.entity_id)
        if issubclass(error_class, errors.DuplicateKeyError):
            return error_class(self.subject, self.related_ids or (self.entity_id,))
        if issubclass(error_class, errors.AdapterLoadError):
            return error_class(self.subject, self.detail, entity_id=self.entity_id)
        return error_class(self.detail, entity_id=self.entity_id)

    def as_dict(self) -> dict[str, Any]:
        return {
            'kind': self.kind.value,
            'severity': self.severity.value,
            'entity_id': self.entity_id,
            'subject': self.subject,
            'detail': self.detail,
            'related_ids': list(self.related_ids)
        }


def collect(violations: Iterable[Violation]) -> list[Violation]:
    """Deduplicate by (kind, entity, subject) and order deterministically."""
    selected: dict[tuple[str, str, str], Violation] = {}
    for violation in violations:
        selected.setdefault(violation.key, violation)
    return [selected[key] for key in sorted(selected)]


class ViolationReport:
    def __init__(self, violations: Iterable[Violation] = ()) -> None:
        self._violations = collect(violations)

    def __iter__(self):
        return iter(self._violations)

    def __len__(self) -> int:
        return len(self._violations)

    def __bool__(self) -> bool:
        return bool(self._violations)

    @property
    def violations(self) -> list[Violation]:
        return list(self._violations)

    def extend(self, violations: Iterable[Violation]) -> None:
        self._violations = collect([*self._violations, *violations])

    def of_kind(self, kind: ViolationKind) -> list[Violation]:
        return [v for v in self._violations if v.kind == kind]

    def hard(self) -> list[Violation]:
        return [v for v in self._violations if v.severity == Severity.HARD]

    def soft(self) -> list[Violation]:
        return [v for v in self._violations if v.severity == Severity.SOFT]

    def by_kind(self) -> dict[ViolationKind, list[Violation]]:
        grouped: dict[ViolationKind, list[Violation]] = {}
        for violation in self._violations:
            grouped.setdefault(violation.kind, []).append(violation)
        return grouped

    def is_failing(self, *, include_soft: bool = False) -> bool:
        if include_soft:
            return bool(self._violations)
        return bool(self.hard())

    def raise_for_hard(self) -> None:
        hard = self.hard()
        if hard:
            raise errors.RegistryConsistencyError(hard)

    def as_dict(self) -> dict[str, Any]:
        return {
            'total': len(self._violations),
            'hard': len(self.hard()),
            'soft': len(self.soft()),
            'by_kind': {
                kind.value: [v.as_dict() for v in items]
                for kind, items in self.by_kind().items()
            }
        }
