import logging
import re

import yaml

from cloud_price_compare.cloud_impl.cloud_structs import (
    NormalizedInstanceRecord,
    ProviderResult,
)
from cloud_price_compare.cloud_impl.cloud_util import (
    ensure_raw_entries_present,
    finalize_provider_result,
    text_has_ineligible_keyword,
    to_positive_float,
)
from cloud_price_compare.constants import CLOUD_GCP, OS_LINUX, OS_WINDOWS
from cloud_price_compare.family_classification import FamilyClassifierGcp
from cloud_price_compare.spec_inference import complete_specs

logger = logging.getLogger(__name__)

# Compute Engine service in the Cloud Billing Catalog API
COMPUTE_ENGINE_SERVICE_ID = "6F81-5844-456A"

MACHINE_TYPE_IN_DISPLAY_NAME_REGEX = re.compile(
    r"\b([a-z0-9]+-(?:standard|highmem|highcpu|ultramem|megamem|c2d|c3|c4|c3d|c4d|c4a|n1|n2|n2d|n4|t2a|t2d|e2)-\d+)\b"
)
UNIT_OR_SOLE_TENANCY_SKU_REGEX = re.compile(
    r"\b(Core|Ram|Sole\s*Tenancy|Sole\s*Tenant)\b", re.IGNORECASE
)
INSTANCE_VERB_REGEX = re.compile(r"\bInstance\b|\brunning\b", re.IGNORECASE)


def region_matches(service_regions: list[str] | None, region: str) -> bool:
    """Exact region, 'global', or the 'us' multi-region for us-* regions"""
    want = str(region or "").lower()
    regions = {str(r).lower() for r in service_regions or []}
    if want in regions or "global" in regions:
        return True
    return want.startswith("us-") and "us" in regions


def infer_machine_type(sku: dict) -> str | None:
    """From attributes.machineType or the display name:
    'N2 Instance running: n2-standard-4 in Americas' -> n2-standard-4
    """
    attrs = sku.get("attributes") or {}
    if attrs.get("machineType"):
        return str(attrs["machineType"]).lower()
    m = MACHINE_TYPE_IN_DISPLAY_NAME_REGEX.search(
        str(sku.get("displayName") or "").lower()
    )
    return m.group(1) if m else None


def is_per_instance_sku(sku: dict, machine_type: str | None) -> bool:
    """Excludes per Core / Ram unit SKUs and Sole Tenancy premiums"""
    if not machine_type:
        return False
    name = str(sku.get("displayName") or "")
    if UNIT_OR_SOLE_TENANCY_SKU_REGEX.search(name):
        return False
    return bool(INSTANCE_VERB_REGEX.search(name)) and (
        machine_type.lower() in name.lower()
    )


def extract_hourly_price(pricing_info: list[dict] | None) -> float | None:
    """First positive units + nanos / 1e9 from pricingInfo[].pricingExpression.tieredRates[0].unitPrice"""
    for p in pricing_info or []:
        tiered_rates = (p.get("pricingExpression") or {}).get(
            "tieredRates"
        ) or []
        if not tiered_rates:
            continue
        unit_price = tiered_rates[0].get("unitPrice")
        if not unit_price:
            continue
        price = float(unit_price.get("units") or 0) + float(
            unit_price.get("nanos") or 0
        ) / 1e9
        if to_positive_float(price) is not None:
            return price
    return None


def is_ondemand_compute_sku(sku: dict) -> bool:
    cat = sku.get("category") or {}
    if cat.get("resourceFamily") != "Compute":
        return False
    usage_type = str(cat.get("usageType") or "OnDemand")
    if "ondemand" not in usage_type.lower():
        return False
    return not text_has_ineligible_keyword(sku.get("displayName"))


def gcp_sku_to_record(sku: dict, region: str) -> NormalizedInstanceRecord | None:
    if not is_ondemand_compute_sku(sku):
        return None
    if not region_matches(sku.get("serviceRegions"), region):
        return None
    machine_type = infer_machine_type(sku)
    if not is_per_instance_sku(sku, machine_type):
        return None

    instance = str(machine_type).replace("-", "_")
    category = FamilyClassifierGcp.classify(instance)
    if not category:
        return None

    price = extract_hourly_price(sku.get("pricingInfo"))
    if price is None:
        return None

    attrs = sku.get("attributes") or {}
    specs = complete_specs(
        CLOUD_GCP, instance, attrs.get("vcpu"), attrs.get("memoryGb")
    )
    if not specs.complete:
        return None

    display_name = str(sku.get("displayName") or "")
    return NormalizedInstanceRecord(
        instance=instance,
        vcpu=specs.vcpu,
        ram=specs.ram,
        price_per_hour_usd=price,
        region=region,
        cloud=CLOUD_GCP,
        os=OS_WINDOWS if "windows" in display_name.lower() else OS_LINUX,
        category=category,
        specs_inferred=not specs.authoritative,
    )


def normalize_gcp_pricing(
    skus: list[dict], region: str, dedup_by_category: bool = False
) -> ProviderResult:
    """Cloud Billing Catalog SKUs (services/6F81-5844-456A/skus), for example:
    {
      "displayName": "N2 Instance running: n2-standard-4 in Americas",
      "category": {"resourceFamily": "Compute", "usageType": "OnDemand"},
      "serviceRegions": ["us-east1"],
      "pricingInfo": [{"pricingExpression": {"tieredRates": [{"unitPrice": {"units": "0", "nanos": 194236000}}]}}]
    }
    """
    ensure_raw_entries_present(CLOUD_GCP, region, skus)

    rows: list[NormalizedInstanceRecord] = []
    skipped = 0
    for sku in skus:
        try:
            rec = gcp_sku_to_record(sku, region)
        except Exception as e:
            logger.debug("Skipping malformed GCP SKU %s: %s", sku, e)
            rec = None
        if rec is None:
            skipped += 1
            continue
        rows.append(rec)

    if not rows:
        logger.warning(
            "[GCP] 0 per-instance SKUs left for region %s, the region probably only exposes Core / Ram unit SKUs",
            region,
        )

    return finalize_provider_result(
        CLOUD_GCP,
        region,
        rows,
        raw_count=len(skus),
        skipped_count=skipped,
        dedup_by_category=dedup_by_category,
    )


def price_to_units_and_nanos(price: float) -> dict:
    units = int(price)
    return {"units": str(units), "nanos": int(round((price - units) * 1e9))}


def parse_catalog_skus_from_pricing_yaml(
    pricing_yaml_contents: str, region: str | None = None
) -> list[dict]:
    """https://github.com/Cyclenerd/google-cloud-pricing-cost-calculator?tab=readme-ov-file#2-download-price-information
    converted to Catalog API like SKU dicts.
    ---
    compute:
      instance:
        n2-standard-4:
          cpu: 4
          ram: 16
          cost:
            us-east1:
              hour: 0.194236
              hour_spot: 0.0471
    """
    ret: list[dict] = []
    pricing_info = yaml.safe_load(pricing_yaml_contents) or {}
    instances = (pricing_info.get("compute") or {}).get("instance") or {}
    for machine_type, sku_data in instances.items():
        for ci_reg, ci in (sku_data.get("cost") or {}).items():
            if region and region != ci_reg:
                continue
            hourly = to_positive_float((ci or {}).get("hour"))
            if hourly is None:
                continue  # SKU not available in region
            ret.append(
                {
                    "displayName": f"Instance running: {machine_type} in {ci_reg}",
                    "category": {
                        "resourceFamily": "Compute",
                        "usageType": "OnDemand",
                    },
                    "serviceRegions": [ci_reg],
                    "attributes": {
                        "machineType": machine_type,
                        "vcpu": sku_data.get("cpu"),
                        "memoryGb": sku_data.get("ram"),
                    },
                    "pricingInfo": [
                        {
                            "pricingExpression": {
                                "tieredRates": [
                                    {
                                        "unitPrice": price_to_units_and_nanos(
                                            hourly
                                        )
                                    }
                                ]
                            }
                        }
                    ],
                }
            )
    return ret
