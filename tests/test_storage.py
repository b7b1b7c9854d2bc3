import pytest
from pydantic import ValidationError

from cloud_price_compare.constants import (
    CLOUD_AWS,
    CLOUD_AZURE,
    CLOUD_GCP,
    HOURS_PER_MONTH,
    STORAGE_TYPE_HDD,
    STORAGE_TYPE_SSD,
)
from cloud_price_compare.storage import (
    BandedStorage,
    FlatRateStorage,
    azure_disk_sku_for_size,
    default_storage_config,
    merge_storage_config,
    normalize_volume_type,
    parse_azure_managed_disk_prices,
    resolve_storage,
)

BANDS = BandedStorage(
    ssd_monthly={64: 4.8, 128: 9.6, 256: 19.2},
    hdd_monthly={32: 1.536, 64: 3.008, 128: 5.888, 256: 11.328},
)

AZURE_DISK_ITEMS = [
    {
        "armRegionName": "eastus",
        "productName": "Standard SSD Managed Disks",
        "skuName": "E10 LRS",
        "meterName": "E10 LRS Disk",
        "unitOfMeasure": "1/Month",
        "unitPrice": 9.6,
    },
    {
        "armRegionName": "eastus",
        "productName": "Standard SSD Managed Disks",
        "skuName": "E15 LRS",
        "meterName": "E15 LRS Disk",
        "unitOfMeasure": "1/Month",
        "unitPrice": 19.2,
    },
    {
        "armRegionName": "eastus",
        "productName": "Standard SSD Managed Disks",
        "skuName": "E10 LRS",
        "meterName": "E10 LRS Disk Operations",
        "unitOfMeasure": "10K",
        "unitPrice": 0.002,
    },
    {
        "armRegionName": "eastus",
        "productName": "Standard HDD Managed Disks",
        "skuName": "S10 LRS",
        "meterName": "S10 LRS Disk",
        "unitOfMeasure": "1/Month",
        "unitPrice": 5.888,
    },
    {
        "armRegionName": "eastus",
        "productName": "Premium SSD Managed Disks",
        "skuName": "P10 LRS",
        "meterName": "P10 LRS Disk",
        "unitOfMeasure": "1/Month",
        "unitPrice": 19.71,
    },
]


def test_banded_rounds_up():
    q = resolve_storage(STORAGE_TYPE_SSD, 100, BANDS)
    assert q.billed_gb == 128
    assert q.monthly_usd == 9.6
    assert q.hourly_usd == pytest.approx(9.6 / HOURS_PER_MONTH)
    assert q.adjusted
    assert q.sku == "E10"
    assert q.requested_gb == 100


def test_banded_exact_size():
    q = resolve_storage(STORAGE_TYPE_SSD, 128, BANDS)
    assert q.billed_gb == 128
    assert not q.adjusted


def test_banded_clamps():
    q = resolve_storage(STORAGE_TYPE_SSD, 1000, BANDS)
    assert q.billed_gb == 256
    assert q.monthly_usd == 19.2
    assert q.adjusted
    q = resolve_storage(STORAGE_TYPE_SSD, 10, BANDS)
    assert q.billed_gb == 64
    assert q.sku == "E6"


def test_banded_hdd_minimum_size():
    q = resolve_storage(STORAGE_TYPE_HDD, 10, default_storage_config().azure)
    assert q.billed_gb == 32
    assert q.sku == "S4"
    assert q.adjusted


def test_flat_rate():
    cfg = default_storage_config()
    q = resolve_storage(STORAGE_TYPE_SSD, 100, cfg.aws)
    assert q.monthly_usd == pytest.approx(8.0)
    assert q.billed_gb == 100
    assert not q.adjusted
    assert q.sku == ""
    q = resolve_storage("hdd_st1", 100, cfg.aws)
    assert q.volume_type == STORAGE_TYPE_HDD
    assert q.monthly_usd == pytest.approx(4.5)
    q = resolve_storage(STORAGE_TYPE_SSD, 100, cfg.gcp)
    assert q.monthly_usd == pytest.approx(17.0)


def test_invalid_sizes():
    cfg = default_storage_config()
    for size in [0, -10, None, float("nan"), float("inf"), "abc"]:
        assert resolve_storage(STORAGE_TYPE_SSD, size, cfg.aws) is None
        assert resolve_storage(STORAGE_TYPE_SSD, size, cfg.azure) is None


def test_normalize_volume_type():
    assert normalize_volume_type("SSD") == STORAGE_TYPE_SSD
    assert normalize_volume_type("Standard HDD") == STORAGE_TYPE_HDD
    with pytest.raises(Exception):
        normalize_volume_type("nvme")
    with pytest.raises(Exception):
        resolve_storage("tape", 100, BANDS)


def test_azure_disk_sku_for_size():
    assert azure_disk_sku_for_size(STORAGE_TYPE_SSD, 128) == "E10"
    assert azure_disk_sku_for_size(STORAGE_TYPE_HDD, 256) == "S15"
    assert azure_disk_sku_for_size(STORAGE_TYPE_SSD, 100) == ""


def test_merge_storage_config():
    defaults = default_storage_config()
    merged = merge_storage_config(
        defaults,
        {
            CLOUD_AWS: {"ssd_per_gb_month": 0.1},
            CLOUD_AZURE: {"ssd_monthly": {"128": 10.5, 1024: 76.8}},
        },
    )
    assert merged.aws.ssd_per_gb_month == 0.1
    assert merged.aws.hdd_per_gb_month == defaults.aws.hdd_per_gb_month
    assert merged.azure.ssd_monthly[128] == 10.5
    assert merged.azure.ssd_monthly[1024] == 76.8
    assert merged.azure.ssd_monthly[64] == defaults.azure.ssd_monthly[64]
    # Defaults untouched
    assert defaults.aws.ssd_per_gb_month == 0.08
    assert defaults.azure.ssd_monthly[128] == 9.6
    assert 1024 not in defaults.azure.ssd_monthly
    assert merged.gcp == defaults.gcp


def test_merge_storage_config_no_overrides():
    defaults = default_storage_config()
    assert merge_storage_config(defaults, None) is defaults
    assert merge_storage_config(defaults, {}) is defaults


def test_merge_storage_config_legacy_aws_key():
    merged = merge_storage_config(
        default_storage_config(), {CLOUD_AWS: {"hdd_st1_per_gb_month": 0.05}}
    )
    assert merged.aws.hdd_per_gb_month == 0.05


def test_merge_storage_config_unknown_provider():
    with pytest.raises(Exception):
        merge_storage_config(default_storage_config(), {"oci": {}})


def test_storage_config_is_immutable():
    cfg = default_storage_config()
    with pytest.raises(ValidationError):
        cfg.aws.ssd_per_gb_month = 1  # type: ignore


def test_banded_storage_needs_bands():
    with pytest.raises(ValidationError):
        BandedStorage(ssd_monthly={}, hdd_monthly={32: 1.5})


def test_storage_config_to_dict():
    d = default_storage_config().to_dict()
    assert set(d.keys()) == {CLOUD_AWS, CLOUD_AZURE, CLOUD_GCP}
    assert d[CLOUD_AZURE]["ssd_monthly"]["128"] == 9.6
    assert d[CLOUD_GCP]["hdd_per_gb_month"] == 0.04
    # String keys from JSON merge back fine
    reloaded = merge_storage_config(default_storage_config(), d)
    assert reloaded.azure.ssd_monthly[128] == 9.6


def test_for_cloud():
    cfg = default_storage_config()
    assert isinstance(cfg.for_cloud(CLOUD_AWS), FlatRateStorage)
    assert isinstance(cfg.for_cloud(CLOUD_AZURE), BandedStorage)
    with pytest.raises(Exception):
        cfg.for_cloud("oci")


def test_parse_azure_managed_disk_prices():
    bands = parse_azure_managed_disk_prices(AZURE_DISK_ITEMS, "eastus")
    assert bands is not None
    assert bands.ssd_monthly == {128: 9.6, 256: 19.2}
    assert bands.hdd_monthly == {128: 5.888}
    assert bands.region == "eastus"

    # HDD table missing
    assert parse_azure_managed_disk_prices(AZURE_DISK_ITEMS[:3]) is None
    assert parse_azure_managed_disk_prices([]) is None
