from __future__ import annotations

from slugify import slugify as _slugify

# applied before python-slugify's own cleanup, which would join "1,2" into "12"
_REPLACEMENTS = (["'", ''], ['’', ''], [',', '-'])


def slugify(display_name: str) -> str:
    """Turn a display name into its URL slug.

    ``"Beethoven X's  Vault"`` becomes ``"beethoven-xs-vault"``. Never fails;
    an empty or separator-only name yields ``""``.
    """
    return _slugify(str(display_name).strip(), replacements=_REPLACEMENTS)
