import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from pydantic import ValidationError

from apps.registry.config import get_settings
from apps.registry.errors import RegistryLoadError
from apps.registry.registry_loader import load_registry, load_stats, parse_registry


class RegistryLoaderTests(unittest.TestCase):
    def tearDown(self) -> None:
        get_settings.cache_clear()
        load_registry.cache_clear()

    def test_loads_registry_from_configured_path(self) -> None:
        payload = {
            'protocols': [
                {
                    'id': 1,
                    'name': 'Aave V3',
                    'category': 'Lending',
                    'chains': ['Ethereum'],
                    'module': 'aave-v3/index.js',
                    'parentProtocol': 'parent#aave',
                    'governanceID': 'snapshot:aave.eth',
                    'forkedFromIds': ['12'],
                    'url': 'https://aave.com'
                }
            ],
            'parentProtocols': [{'id': 'parent#aave', 'name': 'Aave', 'previousNames': ['Aave Protocol']}],
            'emissions': {'aave': {'meta': {'token': 'coingecko:aave', 'sources': ['docs']}}},
            'dimensions': {'fees': {'aave': {'id': '1'}}}
        }

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'registry.json'
            path.write_text(json.dumps(payload), encoding='utf-8')

            with patch.dict('os.environ', {'REGISTRY_PATH': str(path)}, clear=False):
                get_settings.cache_clear()
                load_registry.cache_clear()
                data = load_registry()

        protocol = data.protocols[0]
        self.assertEqual(protocol.id, '1')
        self.assertEqual(protocol.parent_protocol, 'parent#aave')
        self.assertEqual(protocol.governance_id, ['snapshot:aave.eth'])
        self.assertEqual(protocol.forked_from_ids, ['12'])
        self.assertEqual(data.parent_protocols[0].all_names(), ['Aave', 'Aave Protocol'])
        self.assertEqual(data.emissions[0].name, 'aave')
        self.assertEqual(data.emissions[0].meta.token, 'coingecko:aave')
        self.assertEqual(data.dimensions['fees']['aave'].id, '1')

    def test_missing_file_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(RegistryLoadError) as ctx:
                load_registry(str(Path(tmp) / 'absent.json'))
        self.assertEqual(ctx.exception.reason, 'file not found')

    def test_non_object_payload_raises(self) -> None:
        with self.assertRaises(RegistryLoadError):
            parse_registry([])

    def test_malformed_record_propagates(self) -> None:
        with self.assertRaises(ValidationError):
            parse_registry({'protocols': [{'name': 'no id'}]})

    def test_load_stats(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'stats.json'
            path.write_text(json.dumps({'totalOnChainMcap': 5, 'byCategory': {'A': {'onChainMcap': 5}}}), encoding='utf-8')
            stats = load_stats(str(path))
        self.assertEqual(stats.total_on_chain_mcap, 5.0)
        self.assertEqual(stats.by_category['A'].on_chain_mcap, 5.0)
