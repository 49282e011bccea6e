from __future__ import annotations


class RegistryError(Exception):
    def __init__(self, detail: str, *, entity_id: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.entity_id = entity_id


class UnknownChainError(RegistryError):
    def __init__(self, raw_name: str, protocol: str | None = None) -> None:
        if protocol:
            detail = f'{raw_name!r} (found in {protocol}) should be on the chain alias table'
        else:
            detail = f'{raw_name!r} should be on the chain alias table'
        super().__init__(detail, entity_id=protocol)
        self.raw_name = raw_name
        self.protocol = protocol


class DuplicateKeyError(RegistryError):
    index_name = 'key'

    def __init__(self, key: str, entity_ids: tuple[str, ...] = ()) -> None:
        ids = ', '.join(entity_ids)
        super().__init__(
            f'repeated {self.index_name} {key!r}' + (f' shared by {ids}' if ids else ''),
            entity_id=entity_ids[0] if entity_ids else None
        )
        self.key = key
        self.entity_ids = entity_ids


class DuplicateIdError(DuplicateKeyError):
    index_name = 'id'


class DuplicateNameError(DuplicateKeyError):
    index_name = 'name'


class DuplicateSlugError(DuplicateKeyError):
    index_name = 'slug'


class DuplicateModuleError(DuplicateKeyError):
    index_name = 'module'


class DuplicateGeckoIdError(DuplicateKeyError):
    index_name = 'gecko_id'


class InvalidCategoryError(RegistryError):
    pass


class DanglingParentReferenceError(RegistryError):
    pass


class DanglingForkReferenceError(RegistryError):
    pass


class OracleCasingMismatchError(RegistryError):
    pass


class ChainExportError(RegistryError):
    pass


class EmissionsMetaError(RegistryError):
    pass


class DimensionIdError(RegistryError):
    pass


class StatsMismatchError(RegistryError):
    pass


class MetadataPlacementError(RegistryError):
    pass


class AdapterLoadError(RegistryError):
    def __init__(self, ref: str, reason: str, *, entity_id: str | None = None) -> None:
        super().__init__(f'adapter {ref!r} failed to load: {reason}', entity_id=entity_id)
        self.ref = ref
        self.reason = reason


class RegistryConsistencyError(RegistryError):
    def __init__(self, violations: list) -> None:
        kinds = sorted({v.kind.value for v in violations})
        super().__init__(f'{len(violations)} registry violation(s): {", ".join(kinds)}')
        self.violations = violations


class RegistryLoadError(ValueError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f'cannot load {path}: {reason}')
        self.path = path
        self.reason = reason
