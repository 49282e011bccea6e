import unittest
from unittest.mock import patch

from apps.registry.config import RegistryPolicy, get_settings


class SettingsTests(unittest.TestCase):
    def tearDown(self) -> None:
        get_settings.cache_clear()

    def test_defaults(self) -> None:
        with patch.dict('os.environ', {}, clear=True):
            get_settings.cache_clear()
            settings = get_settings()

        self.assertEqual(settings.environment, 'dev')
        self.assertEqual(settings.stats_tolerance, 0.05)
        self.assertFalse(settings.fail_on_soft_violations)
        self.assertEqual(settings.log_level, 'INFO')

    def test_environment_overrides(self) -> None:
        with patch.dict(
            'os.environ',
            {
                'ENVIRONMENT': 'prod',
                'REGISTRY_STATS_TOLERANCE': '0.02',
                'FAIL_ON_SOFT_VIOLATIONS': 'yes',
                'ADAPTER_TIMEOUT_SECONDS': '5',
                'LOG_LEVEL': 'debug'
            },
            clear=False
        ):
            get_settings.cache_clear()
            settings = get_settings()

        self.assertEqual(settings.environment, 'prod')
        self.assertEqual(settings.policy().stats_tolerance, 0.02)
        self.assertTrue(settings.fail_on_soft_violations)
        self.assertEqual(settings.adapter_timeout_seconds, 5.0)
        self.assertEqual(settings.log_level, 'DEBUG')

    def test_invalid_values_fall_back(self) -> None:
        with patch.dict(
            'os.environ',
            {'ENVIRONMENT': 'staging', 'REGISTRY_STATS_TOLERANCE': 'lots'},
            clear=False
        ):
            get_settings.cache_clear()
            settings = get_settings()

        self.assertEqual(settings.environment, 'dev')
        self.assertEqual(settings.stats_tolerance, 0.05)


class PolicyTests(unittest.TestCase):
    def test_default_policy(self) -> None:
        policy = RegistryPolicy()
        self.assertIn('Dexs', policy.categories)
        self.assertIn('Interface', policy.categories)
        self.assertEqual(policy.module_sentinels, frozenset({'dummy.js', 'anyhedge/index.js'}))
        self.assertEqual(policy.treasury_export_keys, frozenset({'ownTokens', 'tvl'}))
