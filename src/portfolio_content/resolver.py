"""
Translation resolution.

Picks exactly one translation for a record and merges it onto the base
fields to produce a localized view. Everything here is pure: no I/O and no
exceptions for odd input shapes.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from .locales import DEFAULT_FALLBACK_LOCALES, LocaleChain, build_locale_chain, sort_locales

# Key of a fetched record that holds the nested translation rows
TRANSLATIONS_KEY = "translations"


def _as_chain(chain: Any) -> List[str]:
    if chain is None:
        return list(DEFAULT_FALLBACK_LOCALES)
    if isinstance(chain, str):
        return build_locale_chain(chain)
    if isinstance(chain, LocaleChain):
        return list(chain.locales)
    try:
        return [str(code) for code in chain if code]
    except TypeError:
        return []


def _usable(translations: Any) -> List[Mapping[str, Any]]:
    if not translations:
        return []
    try:
        return [t for t in translations if isinstance(t, Mapping)]
    except TypeError:
        return []


def pick_translation(translations: Any, chain: Any) -> Dict[str, Any]:
    """
    Select the translation to display.

    Walks the chain in order and returns the first translation whose locale
    matches. When none match, returns the first translation by locale code.
    Returns an empty dict when there are no translations.
    """
    rows = _usable(translations)
    if not rows:
        return {}

    for locale in _as_chain(chain):
        for row in rows:
            if row.get("locale") == locale:
                return dict(row)

    first = sorted(rows, key=lambda row: str(row.get("locale") or ""))[0]
    return dict(first)


def resolve(
    base: Optional[Mapping[str, Any]],
    translations: Any,
    chain: Any,
) -> Dict[str, Any]:
    """
    Merge the chosen translation onto the base record.

    Translation fields win on key collisions. A missing base or an empty
    translation list still produces a dict.
    """
    view: Dict[str, Any] = dict(base) if isinstance(base, Mapping) else {}
    view.update(pick_translation(translations, chain))
    return view


def resolve_record(record: Optional[Mapping[str, Any]], chain: Any) -> Dict[str, Any]:
    """
    Resolve a fetched record whose translations are nested under ``translations``.

    The view gets ``available_locales`` listing every locale the record has
    a translation for, in display order.
    """
    if not isinstance(record, Mapping):
        return {}

    translations = _usable(record.get(TRANSLATIONS_KEY))
    base = {k: v for k, v in record.items() if k != TRANSLATIONS_KEY}
    view = resolve(base, translations, chain)
    view["available_locales"] = sort_locales(
        str(t["locale"]) for t in translations if t.get("locale")
    )
    return view


def resolve_all(records: Iterable[Mapping[str, Any]], chain: Any) -> List[Dict[str, Any]]:
    """Resolve every record with the same chain."""
    return [resolve_record(record, chain) for record in records or []]
