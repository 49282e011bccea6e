import json
import tempfile
import unittest
from pathlib import Path

from apps.registry.chain_registry import load_chain_alias_table
from apps.registry.config import get_settings
from apps.registry.registry_loader import load_registry
from apps.registry.tests.fixtures import ALIAS_PAYLOAD, parent, protocol
from services.validator.main import run


class ValidatorCliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.chains = self._write('chains.json', ALIAS_PAYLOAD)
        self.manifest = self._write('manifest.json', {
            'aave-v3/index.js': {'ethereum': {'tvl': 'function'}},
            'curve/index.js': {'ethereum': {'tvl': 'function'}}
        })

    def tearDown(self) -> None:
        self._tmp.cleanup()
        get_settings.cache_clear()
        load_registry.cache_clear()
        load_chain_alias_table.cache_clear()

    def _write(self, name: str, payload: object) -> str:
        path = self.root / name
        path.write_text(json.dumps(payload), encoding='utf-8')
        return str(path)

    def _run(self, registry_payload: dict, *extra: str) -> int:
        registry_path = self._write('registry.json', registry_payload)
        return run(['--registry', registry_path, '--chains', self.chains, '--adapters', self.manifest, *extra])

    def test_clean_registry_exits_zero(self) -> None:
        payload = {
            'protocols': [protocol('1', 'Aave V3', parentProtocol='parent#aave'), protocol('2', 'Curve')],
            'parentProtocols': [parent('parent#aave', 'Aave')]
        }
        with self.assertLogs('registryguard.validator', level='INFO') as logs:
            code = self._run(payload)

        self.assertEqual(code, 0)
        self.assertIn('report total=0 hard=0 soft=0', logs.output[-1])

    def test_hard_violation_exits_one(self) -> None:
        payload = {'protocols': [protocol('1', 'Aave V3'), protocol('2', 'Curve', chains=['Atlantis'])]}
        with self.assertLogs('registryguard.validator', level='ERROR') as logs:
            code = self._run(payload)

        self.assertEqual(code, 1)
        self.assertTrue(any('unknown_chain (hard)' in line for line in logs.output))

    def test_soft_violations_only_fail_when_requested(self) -> None:
        payload = {
            'protocols': [
                protocol('1', 'Aave V3', parentProtocol='parent#aave', treasury='aave.js'),
                protocol('2', 'Curve')
            ],
            'parentProtocols': [parent('parent#aave', 'Aave')]
        }

        self.assertEqual(self._run(payload), 0)
        self.assertEqual(self._run(payload, '--fail-on-soft'), 1)

    def test_skip_adapters(self) -> None:
        payload = {'protocols': [protocol('1', 'Unlisted', module='unlisted/index.js')]}
        self.assertEqual(self._run(payload), 1)
        load_registry.cache_clear()
        self.assertEqual(self._run(payload, '--skip-adapters'), 0)
