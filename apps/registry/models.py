from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class RegistryRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='allow', frozen=True)

    id: str
    name: str
    previous_names: list[str] = Field(default_factory=list, alias='previousNames')
    github: list[str] = Field(default_factory=list)
    oracles: list[str] = Field(default_factory=list)
    gecko_id: str | None = None
    governance_id: list[str] = Field(default_factory=list, alias='governanceID')
    treasury: str | None = None

    @field_validator('id', mode='before')
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator('previous_names', 'github', 'oracles', 'governance_id', mode='before')
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        return _as_list(value)

    def all_names(self) -> list[str]:
        return [self.name, *self.previous_names]


class ParentProtocol(RegistryRecord):
    pass


class Protocol(RegistryRecord):
    category: str = ''
    chains: list[str] = Field(default_factory=list)
    chain: str | None = None
    module: str = ''
    parent_protocol: str | None = Field(default=None, alias='parentProtocol')
    # raw values, so non-string entries stay visible to the fork check
    forked_from_ids: list[Any] | None = Field(default=None, alias='forkedFromIds')

    def declared_chains(self) -> list[str]:
        chains = list(self.chains)
        if self.chain:
            chains.append(self.chain)
        return chains


class Treasury(Protocol):
    pass


class EmissionsMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='allow', frozen=True)

    token: str | None = None
    protocol_ids: list[str] | None = Field(default=None, alias='protocolIds')
    notes: list[str] | None = None
    sources: list[str] | None = None


class EmissionsAdapter(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='allow', frozen=True)

    name: str
    meta: EmissionsMeta = Field(default_factory=EmissionsMeta)


class DimensionEntry(BaseModel):
    model_config = ConfigDict(extra='allow', frozen=True)

    id: str

    @field_validator('id', mode='before')
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class RegistryData(BaseModel):
    """The static collections a run validates."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    protocols: list[Protocol] = Field(default_factory=list)
    parent_protocols: list[ParentProtocol] = Field(default_factory=list, alias='parentProtocols')
    treasuries: list[Treasury] = Field(default_factory=list)
    emissions: list[EmissionsAdapter] = Field(default_factory=list)
    dimensions: dict[str, dict[str, DimensionEntry]] = Field(default_factory=dict)
