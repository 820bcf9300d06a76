"""
JUNKER Mutation Catalog

Named Content-Length header templates. Each template holds exactly one
``%s`` placeholder where the probe value (``0`` for baseline, ``z`` for a
variant) is rendered.

Every entry targets a distinct normalization path in HTTP parsers:
whitespace and control bytes around the colon, name casing, line folding
and alternative numeric encodings of the value. A front-end and back-end
that disagree on whether a mutated header *is* a Content-Length header
will disagree on the framing of the request.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

PLACEHOLDER = "%s"

# Order matters only for deterministic pairing; names are unique.
MUTATIONS = (
    # Reference header
    ("id", "Content-Length: %s"),

    # Bytes between the name and the colon
    ("colon-prefix-chars", "Content-Length abcd: %s"),
    ("colon-prefix-space", "Content-Length : %s"),
    ("colon-prefix-tab", "Content-Length\t: %s"),
    ("colon-prefix-vtab", "Content-Length\x0b: %s"),
    ("colon-prefix-null", "Content-Length\x00: %s"),
    ("colon-prefix-cr", "Content-Length\r: %s"),

    # Bytes between the colon and the value
    ("value-no-space", "Content-Length:%s"),
    ("value-prefix-tab", "Content-Length:\t%s"),
    ("value-prefix-vtab", "Content-Length:\x0b%s"),
    ("value-prefix-null", "Content-Length:\x00%s"),

    # Bytes after the value
    ("value-suffix-space", "Content-Length: %s "),
    ("value-suffix-tab", "Content-Length: %s\t"),
    ("value-suffix-null", "Content-Length: %s\x00"),

    # Header name shape
    ("name-lowercase", "content-length: %s"),
    ("name-uppercase", "CONTENT-LENGTH: %s"),
    ("name-line-fold", " Content-Length: %s"),  # obs-fold continuation of previous header

    # Alternative length encodings
    ("value-hex", "Content-Length: 0x%s"),
    ("value-plus", "Content-Length: +%s"),
    ("value-minus", "Content-Length: -%s"),
    ("value-leading-zeros", "Content-Length: 00%s"),
)


@dataclass(frozen=True)
class Mutation:
    """A named header template"""
    name: str
    template: str

    def render(self, value: str) -> str:
        """Substitute the probe value into the template"""
        return self.template.replace(PLACEHOLDER, value, 1)


def load() -> Mapping[str, str]:
    """
    Build the default catalog.

    Returns a read-only name → template mapping, safe to share between
    workers. Raises ValueError if an entry is malformed.
    """
    return build_catalog(MUTATIONS)


def build_catalog(entries) -> Mapping[str, str]:
    """Validate (name, template) pairs and freeze them into a catalog"""
    catalog = {}
    for name, template in entries:
        if name in catalog:
            raise ValueError(f"Duplicate mutation name: {name}")
        if template.count(PLACEHOLDER) != 1:
            raise ValueError(f"Mutation {name!r} must contain exactly one {PLACEHOLDER!r}")
        catalog[name] = template
    return MappingProxyType(catalog)


def get(catalog: Mapping[str, str], name: str) -> Mutation:
    """Look up a mutation by name"""
    return Mutation(name=name, template=catalog[name])
