from __future__ import annotations

import logging
from typing import Literal

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import ORJSONResponse
from prometheus_client import Counter, make_asgi_app

from .adapters import ManifestAdapterResolver
from .chain_registry import ChainCanonicalizer, load_chain_alias_table
from .config import get_settings, resolve_path
from .errors import RegistryLoadError, UnknownChainError
from .registry_loader import load_registry
from .runner import run_registry_checks
from .slugs import slugify

settings = get_settings()
logger = logging.getLogger(__name__)

VIOLATIONS_REPORTED_TOTAL = Counter(
    'registryguard_violations_reported_total',
    'Violations returned by the report endpoint',
    ['kind', 'severity']
)

app = FastAPI(title=settings.app_name, default_response_class=ORJSONResponse)
app.mount('/metrics', make_asgi_app())


@app.get('/health')
async def health() -> dict[str, str]:
    return {'status': 'ok'}


@app.get('/chains/resolve')
async def resolve_chain(name: str = Query(..., min_length=1)) -> dict:
    canonicalizer = ChainCanonicalizer(load_chain_alias_table(settings.chain_aliases_path))
    try:
        chain = canonicalizer.canonicalize(name)
    except UnknownChainError as exc:
        raise HTTPException(status_code=404, detail=exc.detail) from exc
    return {
        'raw': name,
        'display_name': chain.display_name,
        'key': chain.key,
        'stable_id': chain.stable_id,
        'gecko_id': chain.gecko_id
    }


@app.get('/slug')
async def slug(name: str = Query(...)) -> dict[str, str]:
    return {'name': name, 'slug': slugify(name)}


@app.get('/report')
async def report(severity: Literal['all', 'hard', 'soft'] = 'all') -> dict:
    try:
        data = load_registry(settings.registry_path)
        table = load_chain_alias_table(settings.chain_aliases_path)
        resolver = ManifestAdapterResolver.from_file(resolve_path(settings.adapter_manifest_path))
    except RegistryLoadError as exc:
        logger.error('registry unavailable: %s', exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    result = await run_registry_checks(
        data,
        table,
        policy=settings.policy(),
        resolver=resolver,
        timeout_seconds=settings.adapter_timeout_seconds
    )

    if severity == 'hard':
        violations = result.hard()
    elif severity == 'soft':
        violations = result.soft()
    else:
        violations = result.violations

    for violation in violations:
        VIOLATIONS_REPORTED_TOTAL.labels(kind=violation.kind.value, severity=violation.severity.value).inc()

    payload = result.as_dict()
    payload['violations'] = [v.as_dict() for v in violations]
    return payload
