import logging
import re

from cloud_price_compare.cloud_impl.cloud_structs import (
    NormalizedInstanceRecord,
    ProviderResult,
)
from cloud_price_compare.cloud_impl.cloud_util import (
    ensure_raw_entries_present,
    finalize_provider_result,
    is_ondemand_shared,
    to_positive_float,
)
from cloud_price_compare.constants import CLOUD_AZURE, OS_LINUX, OS_WINDOWS
from cloud_price_compare.family_classification import (
    FamilyClassifierAzure,
    FamilyClassification,
)
from cloud_price_compare.spec_inference import complete_specs

logger = logging.getLogger(__name__)


def detect_os_from_product_name(product_name: str | None) -> str:
    """'Virtual Machines Dv5 Series Windows' -> Windows, anything else is a Linux meter"""
    if product_name and re.search(r"windows", product_name, re.IGNORECASE):
        return OS_WINDOWS
    return OS_LINUX


def azure_instance_name(item: dict) -> str:
    """armSkuName if present, else the first token of skuName ('D4s v5 Low Priority' -> 'D4s')"""
    arm_sku = str(item.get("armSkuName") or "").strip()
    if arm_sku:
        return arm_sku
    sku_name = str(item.get("skuName") or "").strip()
    return sku_name.split(" ")[0] if sku_name else ""


def is_hourly_consumption_item(item: dict) -> bool:
    if str(item.get("type") or "Consumption").lower() != "consumption":
        return False
    uom = str(item.get("unitOfMeasure") or "1 Hour").lower()
    return "hour" in uom


def parse_resource_skus_specs(resource_skus: list[dict]) -> dict:
    """Azure ResourceSkus API output (management.azure.com .../Microsoft.Compute/skus) to a
    {"standard_d4s_v5": (4, 16.0)} lookup, VMs only.
    {
      "resourceType": "virtualMachines",
      "name": "Standard_D4s_v5",
      "capabilities": [{"name": "vCPUs", "value": "4"}, {"name": "MemoryGB", "value": "16"}]
    }
    """
    ret: dict[str, tuple] = {}
    for sku in resource_skus or []:
        if sku.get("resourceType") != "virtualMachines":
            continue
        caps = {
            c.get("name"): c.get("value") for c in sku.get("capabilities") or []
        }
        vcpu = to_positive_float(caps.get("vCPUs"))
        ram = to_positive_float(caps.get("MemoryGB"))
        if (vcpu or ram) and sku.get("name"):
            ret[str(sku["name"]).lower()] = (vcpu, ram)
    logger.debug("[AZURE] ResourceSkus entries: %s", len(ret))
    return ret


def azure_item_to_record(
    item: dict,
    region: str,
    resource_sku_specs: dict | None = None,
    classifier: type[FamilyClassifierAzure] = FamilyClassifierAzure,
) -> NormalizedInstanceRecord | None:
    item_region = str(item.get("armRegionName") or "")
    if item_region and item_region.lower() != region.lower():
        return None
    if not is_hourly_consumption_item(item):
        return None
    instance = azure_instance_name(item)
    if not instance:
        return None
    if not is_ondemand_shared({**item, "instance": instance}):
        return None

    product_name = str(item.get("productName") or "")
    category = classifier.classify_with_product_name(instance, product_name)
    if not category:
        return None

    price = to_positive_float(item.get("unitPrice"))
    if price is None:
        price = to_positive_float(item.get("retailPrice"))
    if price is None:
        return None

    vcpu, ram = (resource_sku_specs or {}).get(instance.lower(), (None, None))
    specs = complete_specs(CLOUD_AZURE, instance, vcpu, ram)
    return NormalizedInstanceRecord(
        instance=instance,
        vcpu=specs.vcpu,
        ram=specs.ram,
        price_per_hour_usd=price,
        region=region,
        cloud=CLOUD_AZURE,
        os=detect_os_from_product_name(product_name),
        category=category,
        specs_inferred=not specs.authoritative,
    )


def normalize_azure_pricing(
    items: list[dict],
    region: str,
    resource_sku_specs: dict | None = None,
    azure_generation_gating: bool = True,
    dedup_by_category: bool = False,
) -> ProviderResult:
    """Items as returned by https://prices.azure.com/api/retail/prices, for example:
    {
      "armRegionName": "eastus",
      "armSkuName": "Standard_D4s_v5",
      "skuName": "D4s v5",
      "productName": "Virtual Machines DSv5 Series Windows",
      "meterName": "D4s v5",
      "unitPrice": 0.376,
      "unitOfMeasure": "1 Hour",
      "type": "Consumption"
    }
    """
    ensure_raw_entries_present(CLOUD_AZURE, region, items)
    classifier = FamilyClassification.get_classifier(
        CLOUD_AZURE, azure_generation_gating=azure_generation_gating
    )

    rows: list[NormalizedInstanceRecord] = []
    skipped = 0
    for item in items:
        try:
            rec = azure_item_to_record(
                item, region, resource_sku_specs, classifier  # type: ignore
            )
        except Exception as e:
            logger.debug("Skipping malformed Azure item %s: %s", item, e)
            rec = None
        if rec is None:
            skipped += 1
            continue
        rows.append(rec)

    return finalize_provider_result(
        CLOUD_AZURE,
        region,
        rows,
        raw_count=len(items),
        skipped_count=skipped,
        dedup_by_category=dedup_by_category,
    )
