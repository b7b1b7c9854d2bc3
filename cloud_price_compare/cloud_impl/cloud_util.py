import logging
import math
import re
from typing import Callable, Iterable, TypeVar

from cloud_price_compare.cloud_impl.cloud_structs import (
    NormalizedInstanceRecord,
    ProviderMeta,
    ProviderResult,
)
from cloud_price_compare.constants import (
    INELIGIBLE_PRICE_KEYWORDS,
    OS_LINUX,
    OS_UNKNOWN,
    OS_WINDOWS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def to_positive_float(value) -> float | None:
    """None for anything not parseable into a positive finite number"""
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f) or f <= 0:
        return None
    return f


def uniq_sorted_nums(values: Iterable) -> list:
    """Drops None / non-finite, dedups and sorts ascending"""
    ret = set()
    for v in values:
        if v is None or isinstance(v, bool):
            continue
        if isinstance(v, (int, float)) and math.isfinite(v):
            ret.add(v)
    return sorted(ret)


def dedupe_cheapest_by_key(
    rows: Iterable[T],
    key_fn: Callable[[T], str],
    price_fn: Callable[[T], float] = lambda r: r.price_per_hour_usd,  # type: ignore
) -> list[T]:
    """Keeps the cheapest row per key. On price ties the first seen row wins.
    Output order is the order in which keys were first seen."""
    cheapest: dict[str, T] = {}
    for row in rows:
        k = key_fn(row)
        if k not in cheapest or price_fn(row) < price_fn(cheapest[k]):
            cheapest[k] = row
    return list(cheapest.values())


def record_dedup_key(
    record: NormalizedInstanceRecord, with_category: bool = False
) -> str:
    """m5.large-us-east-1-Linux"""
    key = f"{record.instance}-{record.region}-{record.os}"
    if with_category:
        key += f"-{record.category or ''}"
    return key


def normalize_os(raw_os: str | None) -> str:
    """Linux | Windows | Unknown. Matches also on longer product strings"""
    s = str(raw_os or "").strip().lower()
    if not s:
        return OS_UNKNOWN
    if "windows" in s or s.startswith("win") or s == "mswin":
        return OS_WINDOWS
    if "linux" in s or "unix" in s:
        return OS_LINUX
    return OS_UNKNOWN


def text_has_ineligible_keyword(*texts: str | None) -> bool:
    blob = " ".join(str(t) for t in texts if t).lower()
    for kw in INELIGIBLE_PRICE_KEYWORDS:
        if kw == "spot":
            # Don't trip on unrelated words
            if re.search(r"\bspot\b", blob):
                return True
        elif kw in blob:
            return True
    return False


def is_ondemand_shared(entry: dict) -> bool:
    """Attribute checks when present plus a name based keyword fallback"""
    billing_model = str(entry.get("billingModel") or "").lower()
    tenancy = str(entry.get("tenancyType") or "").lower()
    if billing_model and billing_model not in ("ondemand", "on-demand"):
        return False
    if tenancy and tenancy != "shared":
        return False
    return not text_has_ineligible_keyword(
        entry.get("productName"),
        entry.get("skuName"),
        entry.get("meterName"),
        entry.get("instance"),
    )


def parse_memory_gib(memory_string) -> float | None:
    """'16 GiB' -> 16.0, '0.5 GiB' -> 0.5, '1,952 GiB' -> 1952.0, '2 TiB' -> 2048.0"""
    if memory_string is None:
        return None
    if isinstance(memory_string, (int, float)):
        return to_positive_float(memory_string)
    m = re.match(
        r"^\s*([\d,]+(?:\.\d+)?)\s*([a-zA-Z]*)", str(memory_string)
    )
    if not m:
        logger.debug("Unexpected memory string: %s", memory_string)
        return None
    size = to_positive_float(m.group(1).replace(",", ""))
    if size is None:
        return None
    unit = m.group(2).upper()
    if unit.startswith("T"):
        return size * 1024
    if unit.startswith("M"):
        return size / 1024
    return size


def nearest_ceil(requested: float, allowed: Iterable[float]) -> float | None:
    """Smallest allowed value >= requested, clamped to the largest allowed"""
    sorted_allowed = sorted(allowed)
    if not sorted_allowed:
        return None
    for s in sorted_allowed:
        if requested <= s:
            return s
    return sorted_allowed[-1]


def compute_provider_meta(
    records: list[NormalizedInstanceRecord],
) -> ProviderMeta:
    os_values: list[str] = []
    for r in records:
        if r.os and r.os not in os_values:
            os_values.append(r.os)
    return ProviderMeta(
        os=os_values,
        vcpu=uniq_sorted_nums(r.vcpu for r in records),
        ram=uniq_sorted_nums(r.ram for r in records),
    )


def format_ram_gib(ram: float | None) -> str:
    if ram is None:
        return "N/A"
    return f"{int(ram) if float(ram).is_integer() else ram} GB"


class EmptyProviderError(Exception):
    def __init__(self, cloud: str, region: str):
        self.cloud = cloud
        self.region = region
        super().__init__(
            f"No raw pricing entries received for {cloud} region {region}"
        )


def ensure_raw_entries_present(cloud: str, region: str, raw_entries) -> None:
    if not raw_entries:
        raise EmptyProviderError(cloud, region)


def finalize_provider_result(
    cloud: str,
    region: str,
    rows: list[NormalizedInstanceRecord],
    raw_count: int,
    skipped_count: int,
    dedup_by_category: bool = False,
) -> ProviderResult:
    cheapest = dedupe_cheapest_by_key(
        rows, lambda r: record_dedup_key(r, with_category=dedup_by_category)
    )
    logger.info(
        "[%s] %s raw entries, %s eligible rows, %s after dedup (%s skipped)",
        cloud.upper(),
        raw_count,
        len(rows),
        len(cheapest),
        skipped_count,
    )
    return ProviderResult(
        cloud=cloud,
        region=region,
        records=cheapest,
        meta=compute_provider_meta(cheapest),
        raw_count=raw_count,
        skipped_count=skipped_count,
    )
