"""IOC type detection and defanging."""

import re
from typing import Callable, Optional

import validators

from ioc_import.models import HASH_TYPES, CanonicalType

HEX_RE = re.compile(r"^[a-fA-F0-9]+$")
ASN_RE = re.compile(r"^AS\d{1,10}$", re.IGNORECASE)
SSDEEP_RE = re.compile(r"^\d+:[A-Za-z0-9/+]+:[A-Za-z0-9/+]+$")
WHITESPACE_RE = re.compile(r"\s+")

# (pattern, replacement), applied until nothing changes
DEFANG_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\[\.\]|\(\.\)|\{\.\}|\[dot\]|\(dot\)", re.IGNORECASE), "."),
    (re.compile(r"\[://\]"), "://"),
    (re.compile(r"\[:\]"), ":"),
    (re.compile(r"\[@\]|\[at\]", re.IGNORECASE), "@"),
    (re.compile(r"\bhxxp(s?)\b", re.IGNORECASE), r"http\1"),
]

HASH_LENGTHS = {
    CanonicalType.MD5: 32,
    CanonicalType.SHA1: 40,
    CanonicalType.SHA256: 64,
    CanonicalType.SHA512: 128,
}

TYPE_ALIASES = {
    "ipv4": CanonicalType.IP,
    "ipv4-addr": CanonicalType.IP,
    "ip-addr": CanonicalType.IP,
    "ipv6-addr": CanonicalType.IPV6,
    "hostname": CanonicalType.DOMAIN,
    "fqdn": CanonicalType.DOMAIN,
    "domain-name": CanonicalType.DOMAIN,
    "uri": CanonicalType.URL,
    "link": CanonicalType.URL,
    "sha-1": CanonicalType.SHA1,
    "sha-256": CanonicalType.SHA256,
    "sha-512": CanonicalType.SHA512,
    "hash_md5": CanonicalType.MD5,
    "hash_sha1": CanonicalType.SHA1,
    "hash_sha256": CanonicalType.SHA256,
    "email-addr": CanonicalType.EMAIL,
    "mac-addr": CanonicalType.MAC,
    "mac-address": CanonicalType.MAC,
    "as": CanonicalType.ASN,
    "autonomous-system": CanonicalType.ASN,
    "file": CanonicalType.FILENAME,
    "file_name": CanonicalType.FILENAME,
}


def _is_hash(algorithm: CanonicalType, check: Callable[[str], object]) -> Callable[[str], bool]:
    length = HASH_LENGTHS[algorithm]
    return lambda value: len(value) == length and bool(check(value))


# Evaluated top to bottom; the first match wins. URL precedes domain so a
# dotted hostname inside a URL is never classified as a bare domain, and the
# longest hash is checked first.
DETECTION_ORDER: list[tuple[Callable[[str], bool], CanonicalType]] = [
    (lambda v: bool(validators.ipv4(v, cidr=False)), CanonicalType.IP),
    (lambda v: bool(validators.ipv6(v, cidr=False)), CanonicalType.IPV6),
    (lambda v: bool(validators.mac_address(v)), CanonicalType.MAC),
    (lambda v: bool(validators.url(v)), CanonicalType.URL),
    (lambda v: bool(validators.email(v)), CanonicalType.EMAIL),
    (_is_hash(CanonicalType.SHA512, validators.sha512), CanonicalType.SHA512),
    (_is_hash(CanonicalType.SHA256, validators.sha256), CanonicalType.SHA256),
    (_is_hash(CanonicalType.SHA1, validators.sha1), CanonicalType.SHA1),
    (_is_hash(CanonicalType.MD5, validators.md5), CanonicalType.MD5),
    (lambda v: bool(validators.domain(v)), CanonicalType.DOMAIN),
    (lambda v: bool(ASN_RE.match(v)), CanonicalType.ASN),
    (lambda v: bool(SSDEEP_RE.match(v)), CanonicalType.SSDEEP),
]


def defang(raw: str) -> str:
    """
    Reverse common indicator obfuscation.

    Strips all whitespace, then rewrites bracketed dots, colons and at-signs
    and hxxp/hxxps schemes until the value stops changing, which makes the
    function idempotent.
    """
    value = WHITESPACE_RE.sub("", raw)
    while True:
        previous = value
        for pattern, replacement in DEFANG_RULES:
            value = pattern.sub(replacement, value)
        if value == previous:
            return value


def detect_ioc_type(value: str) -> Optional[CanonicalType]:
    """
    Auto-detect the canonical type of an already-normalized value.

    Returns None if no pattern matches.
    """
    if not value:
        return None
    for predicate, ioc_type in DETECTION_ORDER:
        if predicate(value):
            return ioc_type
    return None


def resolve_type_name(name: Optional[str]) -> Optional[CanonicalType]:
    """Map an explicit type name (e.g. from `value|type`) to a canonical type."""
    if not name:
        return None
    key = name.strip().lower()
    try:
        return CanonicalType(key)
    except ValueError:
        return TYPE_ALIASES.get(key)


def normalize_value(value: str, ioc_type: Optional[CanonicalType] = None) -> str:
    """Defang a raw value; filenames are only trimmed since they may contain spaces."""
    if ioc_type == CanonicalType.FILENAME:
        return value.strip()
    return defang(value)


def canonicalize_value(ioc_type: CanonicalType, value: str) -> str:
    """Case-fold values whose type is case-insensitive, for the dedup key."""
    if ioc_type in HASH_TYPES or ioc_type in (CanonicalType.DOMAIN, CanonicalType.EMAIL):
        return value.lower()
    if ioc_type == CanonicalType.ASN:
        return value.upper()
    return value


def is_valid_hash(ioc_type: CanonicalType, value: str) -> bool:
    """Check that a hash literal has the algorithm's length and is hex."""
    expected = HASH_LENGTHS.get(ioc_type)
    return expected is not None and len(value) == expected and bool(HEX_RE.match(value))
