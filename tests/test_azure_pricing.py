import pytest

from cloud_price_compare.cloud_impl.azure_pricing import (
    azure_instance_name,
    detect_os_from_product_name,
    is_hourly_consumption_item,
    normalize_azure_pricing,
    parse_resource_skus_specs,
)
from cloud_price_compare.cloud_impl.cloud_util import EmptyProviderError
from cloud_price_compare.constants import (
    CATEGORY_COMPUTE,
    CATEGORY_GENERAL,
    CATEGORY_MEMORY,
    CLOUD_AZURE,
    OS_LINUX,
    OS_WINDOWS,
)
from cloud_price_compare.instance_matching import find_best


def retail_item(
    arm_sku: str,
    sku_name: str,
    price: float,
    product_name: str = "Virtual Machines DSv5 Series",
    **overrides,
) -> dict:
    item = {
        "currencyCode": "USD",
        "retailPrice": price,
        "unitPrice": price,
        "armRegionName": "eastus",
        "location": "US East",
        "meterName": sku_name,
        "productName": product_name,
        "skuName": sku_name,
        "armSkuName": arm_sku,
        "serviceName": "Virtual Machines",
        "unitOfMeasure": "1 Hour",
        "type": "Consumption",
    }
    item.update(overrides)
    return item


RETAIL_ITEMS = [
    retail_item("Standard_D4s_v5", "D4s v5", 0.192),
    retail_item("Standard_D4s_v5", "D4s v5", 0.2),
    retail_item(
        "Standard_D4s_v5",
        "D4s v5",
        0.376,
        product_name="Virtual Machines DSv5 Series Windows",
    ),
    retail_item("Standard_D4s_v5", "D4s v5 Spot", 0.0384),
    retail_item("Standard_D4s_v5", "D4s v5 Low Priority", 0.0384),
    retail_item(
        "Standard_D4s_v3",
        "D4s v3",
        0.192,
        product_name="Virtual Machines DSv3 Series",
    ),
    retail_item(
        "Standard_E8s_v5",
        "E8s v5",
        0.504,
        product_name="Virtual Machines ESv5 Series",
    ),
    retail_item("Standard_D4s_v5", "D4s v5", 0.1, type="DevTestConsumption"),
    retail_item("Standard_D4s_v5", "D4s v5", 140.16, unitOfMeasure="1/Month"),
    retail_item(
        "Standard_NC6", "NC6", 0.9, product_name="Virtual Machines NC Series"
    ),
    retail_item(
        "",
        "F4s",
        0.169,
        product_name="Virtual Machines FSv2 Series",
    ),
]

RESOURCE_SKUS = [
    {
        "resourceType": "virtualMachines",
        "name": "Standard_D4s_v5",
        "capabilities": [
            {"name": "vCPUs", "value": "4"},
            {"name": "MemoryGB", "value": "16"},
        ],
    },
    {
        "resourceType": "disks",
        "name": "Premium_LRS",
        "capabilities": [{"name": "MaxSizeGiB", "value": "4"}],
    },
    {
        "resourceType": "virtualMachines",
        "name": "Standard_X1",
        "capabilities": [],
    },
]


def test_detect_os_from_product_name():
    assert (
        detect_os_from_product_name("Virtual Machines DSv5 Series Windows")
        == OS_WINDOWS
    )
    assert detect_os_from_product_name("Virtual Machines DSv5 Series") == OS_LINUX
    assert detect_os_from_product_name("Virtual Machines BS Series windows") == OS_WINDOWS
    assert detect_os_from_product_name(None) == OS_LINUX


def test_azure_instance_name():
    assert azure_instance_name({"armSkuName": "Standard_D4s_v5"}) == "Standard_D4s_v5"
    assert azure_instance_name({"skuName": "D4s v5 Low Priority"}) == "D4s"
    assert azure_instance_name({}) == ""


def test_is_hourly_consumption_item():
    assert is_hourly_consumption_item({"unitOfMeasure": "1 Hour"})
    assert is_hourly_consumption_item({})
    assert not is_hourly_consumption_item({"unitOfMeasure": "1/Month"})
    assert not is_hourly_consumption_item({"type": "Reservation"})


def test_parse_resource_skus_specs():
    specs = parse_resource_skus_specs(RESOURCE_SKUS)
    assert specs == {"standard_d4s_v5": (4.0, 16.0)}
    assert parse_resource_skus_specs([]) == {}


def test_normalize_azure_pricing():
    res = normalize_azure_pricing(
        RETAIL_ITEMS,
        "eastus",
        resource_sku_specs=parse_resource_skus_specs(RESOURCE_SKUS),
    )
    assert res.cloud == CLOUD_AZURE
    assert res.raw_count == len(RETAIL_ITEMS)
    assert res.skipped_count == 6
    assert len(res.records) == 4

    by_key = {(r.instance, r.os): r for r in res.records}
    d4 = by_key[("Standard_D4s_v5", OS_LINUX)]
    assert d4.price_per_hour_usd == 0.192
    assert (d4.vcpu, d4.ram) == (4, 16.0)
    assert not d4.specs_inferred
    assert d4.category == CATEGORY_GENERAL
    assert d4.region == "eastus"

    assert by_key[("Standard_D4s_v5", OS_WINDOWS)].price_per_hour_usd == 0.376

    e8 = by_key[("Standard_E8s_v5", OS_LINUX)]
    assert e8.category == CATEGORY_MEMORY
    assert (e8.vcpu, e8.ram) == (8, 64.0)
    assert e8.specs_inferred

    f4 = by_key[("F4s", OS_LINUX)]
    assert f4.category == CATEGORY_COMPUTE
    assert (f4.vcpu, f4.ram) == (4, 8.0)

    assert res.meta.os == [OS_LINUX, OS_WINDOWS]
    assert res.meta.vcpu == [4, 8]


def test_normalize_azure_pricing_without_generation_gating():
    res = normalize_azure_pricing(
        RETAIL_ITEMS, "eastus", azure_generation_gating=False
    )
    instances = {r.instance for r in res.records}
    assert "Standard_D4s_v3" in instances
    assert len(res.records) == 5
    # No ResourceSkus lookup, so all specs come from names
    assert all(r.specs_inferred for r in res.records)


def test_normalize_azure_pricing_empty():
    with pytest.raises(EmptyProviderError):
        normalize_azure_pricing([], "eastus")


def test_normalize_azure_pricing_single_region():
    items = [
        retail_item("Standard_D4s_v5", "D4s v5", 0.192),
        retail_item("Standard_D4s_v5", "D4s v5", 0.172, armRegionName="westus2"),
    ]
    res = normalize_azure_pricing(items, "eastus")
    assert len(res.records) == 1
    assert res.skipped_count == 1
    assert res.records[0].price_per_hour_usd == 0.192
    assert res.records[0].region == "eastus"


def test_windows_request_gets_windows_price():
    items = [
        retail_item("Standard_D4s_v5", "D4s v5", 0.192),
        retail_item(
            "Standard_D8s_v5",
            "D8s v5",
            0.752,
            product_name="Virtual Machines DSv5 Series Windows",
        ),
    ]
    res = normalize_azure_pricing(items, "eastus")
    assert {(r.instance, r.os) for r in res.records} == {
        ("Standard_D4s_v5", OS_LINUX),
        ("Standard_D8s_v5", OS_WINDOWS),
    }
    assert res.meta.os == [OS_LINUX, OS_WINDOWS]

    best = find_best(res.records, 4, 16, OS_WINDOWS, cloud=CLOUD_AZURE)
    assert best.instance == "Standard_D8s_v5"
    assert best.price_per_hour_usd == 0.752
