from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal

WHITELISTED_CATEGORIES = (
    'Dexs',
    'Bridge',
    'Lending',
    'Yield Aggregator',
    'Synthetics',
    'CDP',
    'Services',
    'Insurance',
    'Cross Chain Bridge',
    'Options',
    'Chain',
    'Derivatives',
    'Payments',
    'Privacy',
    'Yield',
    'RWA',
    'Indexes',
    'Algo-Stables',
    'Liquid Staking',
    'Farm',
    'Reserve Currency',
    'Launchpad',
    'Oracle',
    'Prediction Market',
    'NFT Marketplace',
    'NFT Lending',
    'Gaming',
    'Uncollateralized Lending',
    'Exotic Options',
    'CEX',
    'Leveraged Farming',
    'RWA Lending',
    'Options Vault',
    'Liquidity manager',
    'Staking Pool',
    'Partially Algorithmic Stablecoin',
    'SoFi',
    'DEX Aggregator',
    'Liquid Restaking',
    'Restaking',
    'Wallets',
    'NftFi',
    'Telegram Bot',
    'Ponzi',
    'Basis Trading',
    'MEV',
    'CeDeFi',
    'CDP Manager',
    'Governance Incentives',
    'Restaked BTC',
    'Security Extension',
    'Anchor BTC',
    'AI Agents',
    'Treasury Manager',
    'OTC Marketplace',
    'Yield Lottery',
    'Decentralized BTC',
    'Token Locker',
    'Bug Bounty',
    'DCA Tools',
    'Onchain Capital Allocator',
    'Developer Tools',
    'Stablecoin Issuer',
    'Coins Tracker',
    'Domains',
    'NFT Launchpad',
    'Trading App',
    'Foundation',
    'Bridge Aggregator',
    'Liquidations',
    'Portfolio Tracker',
    'Liquidity Automation',
    'Charity Fundraising',
    'Volume Boosting',
    'DOR',
    'Collateral Management',
    'Meme',
    'Private Investment Platform',
    'Risk Curators',
    'Chain Bribes',
    'DAO Service Provider',
    'Staking Rental',
    'Canonical Bridge',
    'Interface'
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {'1', 'true', 'yes', 'y', 'on'}


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def resolve_path(path_value: str) -> Path:
    path = Path(path_value)
    if path.is_absolute():
        return path
    return repo_root() / path


@dataclass(frozen=True)
class RegistryPolicy:
    """Whitelists, sentinels and exemptions the consistency checks enforce.

    Kept separate from the environment-driven settings so tests and callers
    can substitute fixture policies without touching process state.
    """

    categories: frozenset[str] = frozenset(WHITELISTED_CATEGORIES)
    # modules that stand for "no adapter" and may repeat across protocols
    module_sentinels: frozenset[str] = frozenset({'dummy.js', 'anyhedge/index.js'})
    # modules that are never resolved at all
    no_adapter_modules: frozenset[str] = frozenset({'dummy.js'})
    governance_exempt_ids: frozenset[str] = frozenset({'1384', '1401', '1853'})
    ignored_module_keys: frozenset[str] = frozenset(
        {'default', 'staking', 'pool2', 'treasury', 'hallmarks', 'borrowed', 'ownTokens'}
    )
    treasury_export_keys: frozenset[str] = frozenset({'ownTokens', 'tvl'})
    treasury_ignored_keys: frozenset[str] = frozenset({'default'})
    treasury_marker: str = '_lmtf'
    volumes_module_prefix: str = 'volumes/'
    emissions_excluded: frozenset[str] = frozenset({'daomaker'})
    stats_tolerance: float = 0.05


@dataclass(frozen=True)
class Settings:
    app_name: str
    environment: Literal['dev', 'prod', 'test']
    registry_path: str
    chain_aliases_path: str
    adapter_manifest_path: str
    adapter_timeout_seconds: float
    stats_tolerance: float
    fail_on_soft_violations: bool
    log_level: str

    def policy(self) -> RegistryPolicy:
        return RegistryPolicy(stats_tolerance=self.stats_tolerance)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    environment = os.getenv('ENVIRONMENT', 'dev').strip().lower()
    if environment not in {'dev', 'prod', 'test'}:
        environment = 'dev'

    tolerance = _env_float('REGISTRY_STATS_TOLERANCE', 0.05)
    if tolerance < 0:
        tolerance = 0.05

    return Settings(
        app_name=os.getenv('APP_NAME', 'registryguard'),
        environment=environment,  # type: ignore[arg-type]
        registry_path=os.getenv('REGISTRY_PATH', 'data/registry.json'),
        chain_aliases_path=os.getenv('CHAIN_ALIASES_PATH', 'data/chain-aliases.json'),
        adapter_manifest_path=os.getenv('ADAPTER_MANIFEST_PATH', 'data/adapter-manifest.json'),
        adapter_timeout_seconds=max(0.1, _env_float('ADAPTER_TIMEOUT_SECONDS', 30.0)),
        stats_tolerance=tolerance,
        fail_on_soft_violations=_env_bool('FAIL_ON_SOFT_VIOLATIONS', False),
        log_level=os.getenv('LOG_LEVEL', 'INFO').strip().upper() or 'INFO'
    )
