import logging
import re

from cloud_price_compare.cloud_impl.cloud_structs import (
    NormalizedInstanceRecord,
    ProviderResult,
)
from cloud_price_compare.cloud_impl.cloud_util import (
    ensure_raw_entries_present,
    finalize_provider_result,
    parse_memory_gib,
    text_has_ineligible_keyword,
    to_positive_float,
)
from cloud_price_compare.constants import CLOUD_AWS, OS_LINUX, OS_WINDOWS
from cloud_price_compare.family_classification import FamilyClassifierAws
from cloud_price_compare.spec_inference import complete_specs

logger = logging.getLogger(__name__)

RESERVED_OR_HOST_DIMENSION_REGEX = re.compile(
    r"reserved instance|upfront fee|dedicated host", re.IGNORECASE
)


def pick_hourly_usd(on_demand_terms: dict | None) -> float | None:
    """From a single SKU's OnDemand term set pick the instance-hours price.
    {
      "JRTCKXETXF.JRTCKXETXF": {
        "priceDimensions": {
          "JRTCKXETXF.JRTCKXETXF.6YS6EN2CT7": {
            "unit": "Hrs",
            "beginRange": "0",
            "endRange": "Inf",
            "description": "$0.096 per On Demand Linux m5.large Instance Hour",
            "pricePerUnit": {"USD": "0.0960000000"}
          }
        }
      }
    }
    """
    if not on_demand_terms:
        return None
    for term in on_demand_terms.values():
        for dim in (term.get("priceDimensions") or {}).values():
            unit = str(dim.get("unit") or "").strip().lower()
            if unit != "hrs":
                continue
            if (
                str(dim.get("beginRange")) != "0"
                or str(dim.get("endRange")) != "Inf"
            ):
                continue
            if RESERVED_OR_HOST_DIMENSION_REGEX.search(
                str(dim.get("description") or "")
            ):
                continue
            price = to_positive_float(
                (dim.get("pricePerUnit") or {}).get("USD")
            )
            if price is not None:
                return price
    return None


def is_shared_ondemand_compute_product(product: dict) -> bool:
    """Standard shared tenancy On-Demand, no pre-installed SW (SQL Server etc)"""
    if product.get("productFamily") != "Compute Instance":
        return False
    attrs = product.get("attributes") or {}
    if str(attrs.get("tenancy") or "").lower() != "shared":
        return False
    if str(attrs.get("preInstalledSw") or "NA").upper() != "NA":
        return False
    if str(attrs.get("capacitystatus") or "Used").lower() not in (
        "used",
        "normal",
    ):
        return False
    if str(attrs.get("marketoption") or "OnDemand").lower() != "ondemand":
        return False
    return not text_has_ineligible_keyword(
        attrs.get("usagetype"), attrs.get("operation")
    )


def aws_raw_entries_from_offer_index(index: dict) -> list[tuple[dict, dict]]:
    """Pairs each product of the regional EC2 offer file with its OnDemand terms:
    https://pricing.us-east-1.amazonaws.com/offers/v1.0/aws/AmazonEC2/current/us-east-1/index.json
    """
    on_demand = (index.get("terms") or {}).get("OnDemand") or {}
    ret: list[tuple[dict, dict]] = []
    for sku, product in (index.get("products") or {}).items():
        ret.append((product, on_demand.get(sku) or {}))
    return ret


def aws_raw_entry_to_record(
    product: dict, on_demand_terms: dict, region: str
) -> NormalizedInstanceRecord | None:
    if not is_shared_ondemand_compute_product(product):
        return None
    attrs = product.get("attributes") or {}
    instance = str(attrs.get("instanceType") or "").strip()
    if not instance:
        return None

    # RHEL, SUSE, Ubuntu Pro etc carry their own license surcharges
    os = attrs.get("operatingSystem")
    if os not in (OS_LINUX, OS_WINDOWS):
        return None
    if "bring your own" in str(attrs.get("licenseModel") or "").lower():
        return None

    category = FamilyClassifierAws.classify(instance)
    if not category:
        return None

    price = pick_hourly_usd(on_demand_terms)
    if price is None:
        return None

    specs = complete_specs(
        CLOUD_AWS,
        instance,
        attrs.get("vcpu"),
        parse_memory_gib(attrs.get("memory")),
    )
    return NormalizedInstanceRecord(
        instance=instance,
        vcpu=specs.vcpu,
        ram=specs.ram,
        price_per_hour_usd=price,
        region=region,
        cloud=CLOUD_AWS,
        os=os,
        category=category,
        specs_inferred=not specs.authoritative,
    )


def normalize_aws_pricing(
    raw_entries: dict | list[tuple[dict, dict]],
    region: str,
    dedup_by_category: bool = False,
) -> ProviderResult:
    """Accepts the whole offer index document or (product, OnDemand terms) pairs"""
    if isinstance(raw_entries, dict):
        raw_entries = aws_raw_entries_from_offer_index(raw_entries)
    ensure_raw_entries_present(CLOUD_AWS, region, raw_entries)

    rows: list[NormalizedInstanceRecord] = []
    skipped = 0
    for product, on_demand_terms in raw_entries:
        try:
            rec = aws_raw_entry_to_record(product, on_demand_terms, region)
        except Exception as e:
            logger.debug("Skipping malformed AWS entry %s: %s", product, e)
            rec = None
        if rec is None:
            skipped += 1
            continue
        rows.append(rec)

    return finalize_provider_result(
        CLOUD_AWS,
        region,
        rows,
        raw_count=len(raw_entries),
        skipped_count=skipped,
        dedup_by_category=dedup_by_category,
    )
