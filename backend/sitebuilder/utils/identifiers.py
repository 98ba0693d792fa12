# sitebuilder/utils/identifiers.py
"""
Canonical forms for the keys both subsystems address things by:
tenant request keys, subdomains, domains, tenant ids, component ids
and page paths.
"""
import ipaddress
import re
import uuid
from typing import Iterable

from sitebuilder.domain.exceptions import AmbiguousKey, InvalidIdentifier

# Address of the synthetic page root. No stored component may use it.
ROOT = "root"

RESERVED_LABELS = {"www"}

_LABEL_RE = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")
_TENANT_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
_COMPONENT_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")


def new_id() -> str:
    return str(uuid.uuid4())


def _strip_host(value: str) -> str:
    host = value.strip().lower()

    # [::1]:8080 style hosts
    if host.startswith("["):
        end = host.find("]")
        return host[1:end] if end != -1 else host

    if host.count(":") == 1:
        host = host.split(":", 1)[0]

    return host.rstrip(".")


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def normalize_request_key(key: str | None, suffixes: Iterable[str] = ()) -> str:
    """
    Reduce an inbound Host value or tenant header to a lookup key.

    Returns either a bare subdomain label ("acme") or, when the key is not
    under one of the platform ``suffixes``, a full custom domain
    ("www.acme.com").

    Raises:
    - AmbiguousKey if nothing usable remains (empty key, bare IP access,
      the platform apex, or a reserved label such as ``www``)
    """
    if not key or not key.strip():
        raise AmbiguousKey("Empty tenant key")

    host = _strip_host(key)

    if not host or _is_ip(host):
        raise AmbiguousKey(f"'{key}' does not carry a tenant name")

    for suffix in sorted(
        (s.strip().lower().strip(".") for s in suffixes if s and s.strip(".")),
        key=len,
        reverse=True,
    ):
        if host == suffix:
            raise AmbiguousKey(f"'{key}' is the platform apex, not a tenant")
        if host.endswith("." + suffix):
            host = host[: -(len(suffix) + 1)]
            break

    if host in RESERVED_LABELS:
        raise AmbiguousKey(f"'{key}' uses a reserved name")

    return host


def canonical_subdomain(value: str | None) -> str:
    label = (value or "").strip().lower()
    if not _LABEL_RE.match(label):
        raise InvalidIdentifier(f"Invalid subdomain: {value!r}")
    if label in RESERVED_LABELS:
        raise InvalidIdentifier(f"Subdomain '{label}' is reserved")
    return label


def canonical_domain(value: str | None) -> str:
    host = _strip_host(value or "")
    labels = host.split(".")
    if len(labels) < 2 or not all(_LABEL_RE.match(label) for label in labels):
        raise InvalidIdentifier(f"Invalid domain: {value!r}")
    return host


def canonical_tenant_id(value: str | None) -> str:
    tenant_id = (value or "").strip()
    if not _TENANT_ID_RE.match(tenant_id):
        raise InvalidIdentifier(f"Invalid tenant id: {value!r}")
    return tenant_id


def canonical_component_id(value) -> str:
    if not isinstance(value, str) or not _COMPONENT_ID_RE.match(value):
        raise InvalidIdentifier(f"Invalid component id: {value!r}")
    if value == ROOT:
        raise InvalidIdentifier(f"'{ROOT}' is reserved for the page root")
    return value


def normalize_page_path(path: str | None) -> str:
    """
    Normalize a page routing path.

    "about//team/" -> "/about/team", "" -> "/"
    """
    segments = [s for s in (path or "").strip().split("/") if s]

    for segment in segments:
        if segment in (".", ".."):
            raise InvalidIdentifier(f"Invalid page path: {path!r}")

    return "/" + "/".join(segments)
