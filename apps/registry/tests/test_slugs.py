import unittest

from apps.registry.slugs import slugify


class SlugifyTests(unittest.TestCase):
    def test_examples(self) -> None:
        cases = {
            'Aave V3': 'aave-v3',
            '  Uniswap   V2 ': 'uniswap-v2',
            'Curve.fi / Crypto': 'curve-fi-crypto',
            "Beethoven X's Vault": 'beethoven-xs-vault',
            '--GMX--': 'gmx',
            'Ōkami Finance': 'okami-finance',
            '1,000x Protocol': '1-000x-protocol',
            'pool_2': 'pool-2'
        }
        for name, expected in cases.items():
            with self.subTest(name=name):
                self.assertEqual(slugify(name), expected)

    def test_empty_and_separator_only_names(self) -> None:
        self.assertEqual(slugify(''), '')
        self.assertEqual(slugify('   '), '')
        self.assertEqual(slugify('!!!'), '')

    def test_idempotent(self) -> None:
        for name in ['Aave V3', "Jarvis' Network", 'İstanbul Swap', '  x--y  ', 'ALL CAPS']:
            with self.subTest(name=name):
                once = slugify(name)
                self.assertEqual(slugify(once), once)

    def test_deterministic(self) -> None:
        self.assertEqual(slugify('Sushi Swap'), slugify('Sushi Swap'))

    def test_case_and_spacing_variants_collide(self) -> None:
        self.assertEqual(slugify('Aave'), slugify('AAVE '))

    def test_digits_split_by_comma_do_not_merge(self) -> None:
        self.assertEqual(slugify('Pool 1,2'), 'pool-1-2')
        self.assertNotEqual(slugify('Pool 1,2'), slugify('Pool 12'))
