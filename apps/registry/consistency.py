from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence

from .adapters import AdapterLoadResult, ExportKind
from .chain_registry import ChainCanonicalizer
from .config import RegistryPolicy
from .errors import UnknownChainError
from .models import DimensionEntry, EmissionsAdapter, Protocol, RegistryRecord, Treasury
from .registry_index import IndexEntry, RegistryIndex
from .violations import Violation, ViolationKind, ViolationReport, collect

LOGGER = logging.getLogger('registryguard.consistency')


def _is_numeric_string(value: object) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        return math.isfinite(float(value))
    except ValueError:
        return False


def _group_ids(entries: Iterable[IndexEntry | RegistryRecord]) -> tuple[str, ...]:
    return tuple(sorted({entry.id for entry in entries}))


def _require(value, name: str):
    if value is None:
        raise TypeError(f'{name} must not be None')
    return value


class ConsistencyChecker:
    """Runs the registry invariants against a prebuilt index.

    Every ``check_*`` method is independent and side-effect free: it reads the
    index, the canonicalizer and the policy, and returns the violations it
    found without raising for bad data. Misuse (missing inputs) raises
    ``TypeError``.
    """

    def __init__(
        self,
        index: RegistryIndex,
        canonicalizer: ChainCanonicalizer,
        policy: RegistryPolicy | None = None
    ) -> None:
        if not isinstance(index, RegistryIndex):
            raise TypeError('index must be a RegistryIndex')
        if not isinstance(canonicalizer, ChainCanonicalizer):
            raise TypeError('canonicalizer must be a ChainCanonicalizer')
        self.index = index
        self.canonicalizer = canonicalizer
        self.policy = policy or RegistryPolicy()

    # -- identity ---------------------------------------------------------

    def check_unique_ids(self) -> list[Violation]:
        violations = []
        for entity_id, bucket in self.index.collisions(self.index.by_id).items():
            names = sorted(entry.name for entry in bucket)
            violations.append(Violation(
                kind=ViolationKind.DUPLICATE_ID,
                entity_id=entity_id,
                subject=entity_id,
                detail=f'id {entity_id} is used by {len(bucket)} records: {", ".join(names)}',
                related_ids=(entity_id,)
            ))
        return collect(violations)

    def check_unique_names(self) -> list[Violation]:
        violations = []
        for key, bucket in self.index.collisions(self.index.by_name).items():
            ids = _group_ids(bucket)
            violations.append(Violation(
                kind=ViolationKind.DUPLICATE_NAME,
                entity_id=ids[0],
                subject=key,
                detail=f'name {key!r} (case-insensitive, including previous names) is repeated by ids {", ".join(ids)}',
                related_ids=ids
            ))
        return collect(violations)

    def check_unique_slugs(self) -> list[Violation]:
        violations = []
        for slug, bucket in self.index.by_slug.items():
            if not slug:
                for entry in bucket:
                    violations.append(Violation(
                        kind=ViolationKind.EMPTY_SLUG,
                        entity_id=entry.id,
                        subject=entry.name,
                        detail=f'name {entry.name!r} of {entry.id} produces an empty slug'
                    ))
                continue
            if len(bucket) < 2:
                continue
            ids = _group_ids(bucket)
            violations.append(Violation(
                kind=ViolationKind.DUPLICATE_SLUG,
                entity_id=ids[0],
                subject=slug,
                detail=f'slug {slug!r} is generated by {", ".join(sorted(repr(e.name) for e in bucket))}',
                related_ids=ids
            ))
        return collect(violations)

    def check_unique_gecko_ids(self) -> list[Violation]:
        violations = []
        for gecko_id, bucket in self.index.collisions(self.index.by_gecko_id).items():
            ids = _group_ids(bucket)
            violations.append(Violation(
                kind=ViolationKind.DUPLICATE_GECKO_ID,
                entity_id=ids[0],
                subject=gecko_id,
                detail=f'gecko_id {gecko_id!r} is repeated by ids {", ".join(ids)}',
                related_ids=ids
            ))
        return collect(violations)

    def check_unique_modules(self) -> list[Violation]:
        violations = []
        for module, bucket in self.index.collisions(self.index.by_module).items():
            if module in self.policy.module_sentinels:
                continue
            ids = _group_ids(bucket)
            violations.append(Violation(
                kind=ViolationKind.DUPLICATE_MODULE,
                entity_id=ids[0],
                subject=module,
                detail=f'module {module!r} is shared by ids {", ".join(ids)}',
                related_ids=ids
            ))
        return collect(violations)

    # -- references -------------------------------------------------------

    def check_parent_references(self) -> list[Violation]:
        violations = []
        for protocol in self.index.protocols:
            parent = protocol.parent_protocol
            if parent and parent not in self.index.parent_ids:
                violations.append(Violation(
                    kind=ViolationKind.DANGLING_PARENT_REFERENCE,
                    entity_id=protocol.id,
                    subject=parent,
                    detail=f'{protocol.name} references missing parent protocol {parent!r}'
                ))
        return collect(violations)

    def check_fork_references(self) -> list[Violation]:
        violations = []
        for protocol in self.index.protocols:
            for forked_id in protocol.forked_from_ids or []:
                if not _is_numeric_string(forked_id):
                    reason = 'is not a numeric string'
                elif forked_id not in self.index.protocol_ids:
                    reason = 'does not match any protocol id'
                else:
                    continue
                violations.append(Violation(
                    kind=ViolationKind.DANGLING_FORK_REFERENCE,
                    entity_id=protocol.id,
                    subject=str(forked_id),
                    detail=f'{protocol.name} forkedFromIds entry {forked_id!r} {reason}'
                ))
        return collect(violations)

    def check_categories(self) -> list[Violation]:
        violations = []
        for protocol in self.index.protocols:
            if protocol.category not in self.policy.categories:
                violations.append(Violation(
                    kind=ViolationKind.INVALID_CATEGORY,
                    entity_id=protocol.id,
                    subject=protocol.category,
                    detail=f'{protocol.name} has category {protocol.category!r} which is not whitelisted'
                ))
        return collect(violations)

    def check_oracle_casing(self) -> list[Violation]:
        violations = []
        first_seen: dict[str, tuple[str, str]] = {}
        for entry in sorted(self.index.entries, key=lambda e: e.position):
            for oracle in entry.record.oracles:
                key = oracle.lower()
                if key not in first_seen:
                    first_seen[key] = (oracle, entry.name)
                    continue
                expected, owner = first_seen[key]
                if oracle != expected:
                    violations.append(Violation(
                        kind=ViolationKind.ORACLE_CASING_MISMATCH,
                        entity_id=entry.id,
                        subject=oracle,
                        detail=f'{entry.name} spells oracle {oracle!r} but {owner} first used {expected!r}'
                    ))
        return collect(violations)

    def check_github_orgs(self) -> list[Violation]:
        violations = []
        for entry in self.index.entries:
            for github in entry.record.github:
                if '/' in github:
                    violations.append(Violation(
                        kind=ViolationKind.GITHUB_NOT_ORG,
                        entity_id=entry.id,
                        subject=github,
                        detail=f'{entry.name} tracks repo {github!r}; use the org/user or remove it'
                    ))
        return collect(violations)

    def check_child_metadata(self) -> list[Violation]:
        """Soft tier: metadata a child should leave to its parent protocol."""
        violations = []
        to_migrate: dict[str, list[str]] = {'treasuries': [], 'governance ids': [], 'github config': []}
        for protocol in self.index.protocols:
            if not protocol.parent_protocol:
                continue
            if protocol.treasury:
                violations.append(self._child_violation(ViolationKind.TREASURY_ON_CHILD, protocol, 'treasury'))
                to_migrate['treasuries'].append(protocol.name)
            if protocol.governance_id and protocol.id not in self.policy.governance_exempt_ids:
                violations.append(self._child_violation(ViolationKind.GOVERNANCE_ON_CHILD, protocol, 'governanceID'))
                to_migrate['governance ids'].append(protocol.name)
            if protocol.github:
                violations.append(self._child_violation(ViolationKind.GITHUB_ON_CHILD, protocol, 'github'))
                to_migrate['github config'].append(protocol.name)

        for label, names in to_migrate.items():
            if names:
                LOGGER.warning('migrate %s to the parent protocol for: %s', label, ', '.join(sorted(names)))
        return collect(violations)

    @staticmethod
    def _child_violation(kind: ViolationKind, protocol: Protocol, field_name: str) -> Violation:
        return Violation(
            kind=kind,
            entity_id=protocol.id,
            subject=field_name,
            detail=f'{protocol.name} declares {field_name} while parent {protocol.parent_protocol} exists'
        )

    # -- chains -----------------------------------------------------------

    def _chain_violation(self, record: RegistryRecord, raw: str, exc: UnknownChainError) -> Violation:
        return Violation(
            kind=ViolationKind.UNKNOWN_CHAIN,
            entity_id=record.id,
            subject=raw,
            detail=f'{record.name}: {exc.detail}'
        )

    def check_declared_chains(self, treasuries: Sequence[Treasury] | None = None) -> list[Violation]:
        records: list[Protocol] = [*self.index.protocols, *(treasuries if treasuries is not None else self.index.data.treasuries)]
        violations = []
        for record in records:
            for raw in record.declared_chains():
                if self.canonicalizer.is_pseudo(raw):
                    continue
                try:
                    self.canonicalizer.canonicalize(raw, record.id)
                except UnknownChainError as exc:
                    violations.append(self._chain_violation(record, raw, exc))
        return collect(violations)

    def check_module_chains(self, adapters: AdapterLoadResult, records: Sequence[Protocol]) -> list[Violation]:
        _require(adapters, 'adapters')
        violations = []
        for record in _require(records, 'records'):
            module = adapters.module_for(record)
            if module is None:
                continue
            for key in module.chains:
                if key in self.policy.ignored_module_keys:
                    continue
                try:
                    self.canonicalizer.canonicalize(key, record.id)
                except UnknownChainError as exc:
                    violations.append(self._chain_violation(record, key, exc))
        return collect(violations)

    def check_adapter_failures(self, adapters: AdapterLoadResult, records: Sequence[Protocol]) -> list[Violation]:
        _require(adapters, 'adapters')
        violations = []
        for record in _require(records, 'records'):
            error = adapters.failure_for(record)
            if error is None:
                continue
            violations.append(Violation(
                kind=ViolationKind.ADAPTER_LOAD_FAILED,
                entity_id=record.id,
                subject=error.ref,
                detail=f'{record.name}: {error.detail}'
            ))
        return collect(violations)

    def check_chain_exports(self, adapters: AdapterLoadResult) -> list[Violation]:
        """A multi-chain protocol needs an adapter entry for every chain."""
        _require(adapters, 'adapters')
        violations = []
        for protocol in self.index.protocols:
            if protocol.module in self.policy.no_adapter_modules:
                continue
            module = adapters.module_for(protocol)
            if module is None:
                continue

            if self.policy.volumes_module_prefix in protocol.module:
                chains = module.keys()
            else:
                chains = []
                for raw in protocol.chains:
                    if self.canonicalizer.is_pseudo(raw) or not self.canonicalizer.is_known(raw):
                        continue
                    chains.append(self.canonicalizer.chain_key(raw))

            if len(chains) <= 1:
                continue
            for chain in chains:
                if not self.canonicalizer.module_has_chain(module.chains, chain):
                    violations.append(Violation(
                        kind=ViolationKind.MISSING_CHAIN_EXPORT,
                        entity_id=protocol.id,
                        subject=chain,
                        detail=f'protocol {protocol.name!r} does not have chain {chain!r} on its module'
                    ))
        return collect(violations)

    def check_treasury_exports(self, adapters: AdapterLoadResult, treasuries: Sequence[Treasury] | None = None) -> list[Violation]:
        _require(adapters, 'adapters')
        records = treasuries if treasuries is not None else self.index.data.treasuries
        allowed_kinds = {ExportKind.FUNCTION, ExportKind.MARKER}
        violations = []
        for treasury in records:
            module = adapters.module_for(treasury)
            if module is None:
                continue
            for chain, exports in module.chains.items():
                if chain in self.policy.treasury_ignored_keys:
                    continue
                for key, kind in exports.items():
                    if kind in allowed_kinds and key in self.policy.treasury_export_keys:
                        continue
                    violations.append(Violation(
                        kind=ViolationKind.INVALID_TREASURY_EXPORT,
                        entity_id=treasury.id,
                        subject=f'{chain}.{key}',
                        detail=f'bad module for adapter {treasury.name} in chain {chain} key {key} ({kind.value})'
                    ))
        return collect(violations)

    # -- side collections ---------------------------------------------------

    def check_emissions(self, emissions: Sequence[EmissionsAdapter] | None = None) -> list[Violation]:
        adapters = emissions if emissions is not None else self.index.data.emissions
        seen: dict[tuple[str, object], list[str]] = {}
        violations = []
        for adapter in adapters:
            if adapter.name in self.policy.emissions_excluded:
                continue
            meta = adapter.meta
            if not meta.token:
                violations.append(Violation(
                    kind=ViolationKind.MISSING_EMISSIONS_TOKEN,
                    entity_id=adapter.name,
                    subject='token',
                    detail=f'emissions adapter {adapter.name} has no token'
                ))
            else:
                seen.setdefault(('token', meta.token), []).append(adapter.name)
            for field_name in ('protocol_ids', 'notes', 'sources'):
                value = getattr(meta, field_name)
                if value:
                    seen.setdefault((field_name, tuple(value)), []).append(adapter.name)

        for (field_name, value), names in seen.items():
            if len(names) < 2:
                continue
            owners = tuple(sorted(set(names)))
            shown = value if isinstance(value, str) else list(value)
            violations.append(Violation(
                kind=ViolationKind.DUPLICATE_EMISSIONS_META,
                entity_id=owners[0],
                subject=f'{field_name}:{shown}',
                detail=f'{field_name} {shown!r} is repeated by emissions adapters {", ".join(owners)}',
                related_ids=owners
            ))
        return collect(violations)

    def check_dimension_ids(self, dimensions: Mapping[str, Mapping[str, DimensionEntry]] | None = None) -> list[Violation]:
        configs = dimensions if dimensions is not None else self.index.data.dimensions
        chain_ids = self.canonicalizer.stable_ids()
        violations = []
        for metric, entries in configs.items():
            owners: dict[str, list[str]] = {}
            for adapter_key, entry in entries.items():
                if entry.id in chain_ids:
                    continue
                owners.setdefault(entry.id, []).append(adapter_key)
                if entry.id not in self.index.protocol_ids:
                    violations.append(Violation(
                        kind=ViolationKind.UNKNOWN_DIMENSION_ID,
                        entity_id=entry.id,
                        subject=f'{metric}:{adapter_key}',
                        detail=f'dimensions: unknown id {entry.id} in {metric} ({adapter_key})'
                    ))
            for entity_id, keys in owners.items():
                if len(keys) > 1:
                    violations.append(Violation(
                        kind=ViolationKind.DUPLICATE_DIMENSION_ID,
                        entity_id=entity_id,
                        subject=metric,
                        detail=f'dimensions: repeated id {entity_id} in {metric} ({", ".join(sorted(keys))})',
                        related_ids=tuple(sorted(keys))
                    ))
        return collect(violations)

    # -- aggregate ----------------------------------------------------------

    def run_all(
        self,
        protocol_adapters: AdapterLoadResult | None = None,
        treasury_adapters: AdapterLoadResult | None = None
    ) -> ViolationReport:
        report = ViolationReport()
        for check in (
            self.check_unique_ids,
            self.check_unique_names,
            self.check_unique_slugs,
            self.check_unique_gecko_ids,
            self.check_unique_modules,
            self.check_parent_references,
            self.check_fork_references,
            self.check_categories,
            self.check_oracle_casing,
            self.check_github_orgs,
            self.check_child_metadata,
            self.check_declared_chains,
            self.check_emissions,
            self.check_dimension_ids
        ):
            report.extend(check())

        if protocol_adapters is not None:
            protocols = self.index.protocols
            report.extend(self.check_adapter_failures(protocol_adapters, protocols))
            report.extend(self.check_module_chains(protocol_adapters, protocols))
            report.extend(self.check_chain_exports(protocol_adapters))
        if treasury_adapters is not None:
            treasuries = self.index.data.treasuries
            report.extend(self.check_adapter_failures(treasury_adapters, treasuries))
            report.extend(self.check_module_chains(treasury_adapters, treasuries))
            report.extend(self.check_treasury_exports(treasury_adapters))

        LOGGER.info(
            'registry checks finished records=%d violations=%d hard=%d soft=%d',
            len(self.index), len(report), len(report.hard()), len(report.soft())
        )
        return report
