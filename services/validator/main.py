from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from apps.registry.adapters import ImportlibAdapterResolver, ManifestAdapterResolver
from apps.registry.chain_registry import load_chain_alias_table
from apps.registry.config import Settings, get_settings, resolve_path
from apps.registry.registry_loader import load_registry, load_stats
from apps.registry.runner import run_registry_checks
from apps.registry.violations import ViolationReport

LOGGER = logging.getLogger('registryguard.validator')


def _parse_args(settings: Settings, argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Cross-check the protocol registry and chain alias table')
    parser.add_argument('--registry', default=settings.registry_path, help='Registry dump (JSON)')
    parser.add_argument('--chains', default=settings.chain_aliases_path, help='Chain alias table (JSON)')
    parser.add_argument('--adapters', default=settings.adapter_manifest_path, help='Adapter manifest (JSON)')
    parser.add_argument('--adapter-package', default='', help='Import adapters from this Python package instead of the manifest')
    parser.add_argument('--skip-adapters', action='store_true', help='Skip checks that need adapter modules')
    parser.add_argument('--stats', default='', help='Stats snapshot (JSON) to check category totals against')
    parser.add_argument('--fail-on-soft', action='store_true', default=settings.fail_on_soft_violations)
    return parser.parse_args(argv)


def log_report(report: ViolationReport) -> None:
    for kind, violations in report.by_kind().items():
        LOGGER.error('%s (%s): %d violation(s)', kind.value, kind.severity.value, len(violations))
        for violation in violations:
            LOGGER.error('  id=%s %s', violation.entity_id, violation.detail)
    LOGGER.info('report total=%d hard=%d soft=%d', len(report), len(report.hard()), len(report.soft()))


def run(argv: list[str] | None = None) -> int:
    settings = get_settings()
    args = _parse_args(settings, argv)

    data = load_registry(args.registry)
    table = load_chain_alias_table(args.chains)

    resolver = None
    if args.adapter_package:
        resolver = ImportlibAdapterResolver(args.adapter_package)
    elif not args.skip_adapters:
        resolver = ManifestAdapterResolver.from_file(resolve_path(args.adapters))

    stats = load_stats(args.stats) if args.stats else None
    report = asyncio.run(
        run_registry_checks(
            data,
            table,
            policy=settings.policy(),
            resolver=resolver,
            timeout_seconds=settings.adapter_timeout_seconds,
            stats=stats
        )
    )
    log_report(report)
    return 1 if report.is_failing(include_soft=args.fail_on_soft) else 0


def main() -> None:
    logging.basicConfig(
        level=get_settings().log_level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    sys.exit(run())


if __name__ == '__main__':
    main()
