import pytest

from deal_scout import selectors
from deal_scout.extractors.dom_utils import load_markup

# Constant fragments rather than full CSS queries.
NON_SELECTOR_CONSTANTS = {
    "BASE_URL",
    "PRODUCT_PATH_FRAGMENT",
    "OFFSET_PARAM",
    "ID_ATTRIBUTES",
    "PRODUCT_MARKERS",
}


def _selector_values():
    for name in dir(selectors):
        if not name.isupper() or name in NON_SELECTOR_CONSTANTS:
            continue
        value = getattr(selectors, name)
        if isinstance(value, str):
            yield name, value
        elif isinstance(value, tuple):
            for entry in value:
                yield name, entry


@pytest.mark.parametrize("name,selector", list(_selector_values()))
def test_selector_compiles(name, selector) -> None:
    load_markup("<div></div>").select(selector)
