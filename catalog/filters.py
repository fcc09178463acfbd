"""
Three-way substring filter over parsed sheet records.

A record passes when all of the following hold (case-insensitive):
    country term ⊂ Country
    type term    ⊂ Type
    model term   ⊂ Model   OR   model term ⊂ Name

A field that is missing or empty does not constrain anything: that predicate
(or that side of the OR) is treated as a match. So a record with no Model
passes the model check whatever its Name is. This is permissive when Model
data is sparse, and kept as is.

Public API:
    SearchTerms(country, type, model)
    matches(record, terms)                               → bool
    filter_records(dataset, country, type, model)        → list[dict]
"""

from dataclasses import dataclass

from etl.sheet import Record


@dataclass(frozen=True)
class SearchTerms:
    country: str = ""
    type: str = ""
    model: str = ""

    def lowered(self) -> "SearchTerms":
        return SearchTerms(self.country.lower(), self.type.lower(), self.model.lower())


def _contains(record: Record, field: str, term: str) -> bool:
    value = record.get(field)
    if not value:
        return True
    return term in value.lower()


def matches(record: Record, terms: SearchTerms) -> bool:
    """Apply the three predicates to one record. Terms must already be lower-case."""
    country_ok = _contains(record, "Country", terms.country)
    type_ok    = _contains(record, "Type", terms.type)
    model_ok   = _contains(record, "Model", terms.model) or _contains(record, "Name", terms.model)
    return country_ok and type_ok and model_ok


def filter_records(
    dataset: list[Record],
    country_term: str = "",
    type_term: str = "",
    model_term: str = "",
) -> list[Record]:
    """Return the records matching all three terms, in their original order."""
    terms = SearchTerms(country_term, type_term, model_term).lowered()
    return [record for record in dataset if matches(record, terms)]
