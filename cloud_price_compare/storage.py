import logging
import re

from pydantic import BaseModel, ConfigDict, model_validator
from typing_extensions import Self

from cloud_price_compare.cloud_impl.cloud_structs import StorageQuote
from cloud_price_compare.cloud_impl.cloud_util import (
    nearest_ceil,
    to_positive_float,
)
from cloud_price_compare.constants import (
    AZURE_HDD_DISK_SKU_SIZES,
    AZURE_MIN_HDD_DISK_SIZE_GB,
    AZURE_SSD_DISK_SKU_SIZES,
    CLOUD_AWS,
    CLOUD_AZURE,
    CLOUD_GCP,
    DEFAULT_AWS_STORAGE,
    DEFAULT_AZURE_STORAGE,
    DEFAULT_GCP_STORAGE,
    HOURS_PER_MONTH,
    STORAGE_TYPE_HDD,
    STORAGE_TYPE_SSD,
)

logger = logging.getLogger(__name__)


class FlatRateStorage(BaseModel):
    """Per GB-month billing, e.g. AWS EBS gp3 / st1, GCP pd-ssd / pd-standard"""

    model_config = ConfigDict(frozen=True)

    region: str = ""
    ssd_per_gb_month: float
    hdd_per_gb_month: float

    def to_dict(self) -> dict:
        return self.model_dump()


class BandedStorage(BaseModel):
    """Fixed disk size tiers, e.g. Azure Managed Disks E10 (128 GB), S15 (256 GB)"""

    model_config = ConfigDict(frozen=True)

    region: str = ""
    ssd_monthly: dict[int, float]
    hdd_monthly: dict[int, float]

    @model_validator(mode="after")
    def check_bands_not_empty(self) -> Self:
        if not self.ssd_monthly or not self.hdd_monthly:
            raise ValueError("Both ssd_monthly and hdd_monthly bands required")
        return self

    def to_dict(self) -> dict:
        return {
            "region": self.region,
            "ssd_monthly": {str(k): v for k, v in self.ssd_monthly.items()},
            "hdd_monthly": {str(k): v for k, v in self.hdd_monthly.items()},
        }


class StorageConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    aws: FlatRateStorage
    azure: BandedStorage
    gcp: FlatRateStorage

    def for_cloud(self, cloud: str) -> FlatRateStorage | BandedStorage:
        if cloud not in (CLOUD_AWS, CLOUD_AZURE, CLOUD_GCP):
            raise Exception(f"No storage config for cloud {cloud}")
        return getattr(self, cloud)

    def to_dict(self) -> dict:
        return {
            CLOUD_AWS: self.aws.to_dict(),
            CLOUD_AZURE: self.azure.to_dict(),
            CLOUD_GCP: self.gcp.to_dict(),
        }


def default_storage_config() -> StorageConfig:
    return StorageConfig(
        aws=FlatRateStorage(**DEFAULT_AWS_STORAGE),
        azure=BandedStorage(**DEFAULT_AZURE_STORAGE),
        gcp=FlatRateStorage(**DEFAULT_GCP_STORAGE),
    )


def _int_band_keys(bands: dict) -> dict[int, float]:
    """YAML / JSON keys can come in as strings: {"128": 9.6} -> {128: 9.6}"""
    return {int(float(k)): v for k, v in bands.items()}


def merge_storage_config(
    defaults: StorageConfig, overrides: dict | None
) -> StorageConfig:
    """Returns a new config, the defaults object is left as is. Banded tables merge
    per band so that fetched prices for a few sizes don't drop the other bands.
    overrides: {"aws": {"ssd_per_gb_month": 0.1}, "azure": {"ssd_monthly": {128: 10.0}}}
    """
    if not overrides:
        return defaults
    merged = {
        c: getattr(defaults, c).model_dump()
        for c in (CLOUD_AWS, CLOUD_AZURE, CLOUD_GCP)
    }
    for cloud, provider_overrides in overrides.items():
        if cloud not in merged:
            raise Exception(f"Unknown storage config provider: {cloud}")
        for k, v in (provider_overrides or {}).items():
            if k in ("ssd_monthly", "hdd_monthly") and isinstance(v, dict):
                merged[cloud][k] = {
                    **merged[cloud].get(k, {}),
                    **_int_band_keys(v),
                }
            elif k == "hdd_st1_per_gb_month":  # Older AWS key
                merged[cloud]["hdd_per_gb_month"] = v
            else:
                merged[cloud][k] = v
    return StorageConfig.model_validate(merged)


def azure_disk_sku_for_size(volume_type: str, billed_gb: float) -> str:
    """128, ssd -> E10. Empty string if no SKU has that size"""
    sku_sizes = (
        AZURE_SSD_DISK_SKU_SIZES
        if volume_type == STORAGE_TYPE_SSD
        else AZURE_HDD_DISK_SKU_SIZES
    )
    for sku, size in sku_sizes.items():
        if size == billed_gb:
            return sku
    return ""


def normalize_volume_type(volume_type: str) -> str:
    """ssd | hdd, 'hdd_st1' / 'Standard HDD' -> hdd"""
    vt = str(volume_type or "").strip().lower()
    if "hdd" in vt:
        return STORAGE_TYPE_HDD
    if "ssd" in vt:
        return STORAGE_TYPE_SSD
    raise Exception(
        f"Unsupported storage type: {volume_type}. Expected: ssd | hdd"
    )


def resolve_storage(
    volume_type: str,
    size_gb,
    provider_cfg: FlatRateStorage | BandedStorage,
) -> StorageQuote | None:
    """Monthly + hourly cost of a volume. None for non-positive / non-finite sizes.
    Banded tables bill the nearest band at or above the request, clamped to the table."""
    vt = normalize_volume_type(volume_type)
    size = to_positive_float(size_gb)
    if size is None:
        return None

    if isinstance(provider_cfg, FlatRateStorage):
        rate = (
            provider_cfg.ssd_per_gb_month
            if vt == STORAGE_TYPE_SSD
            else provider_cfg.hdd_per_gb_month
        )
        monthly = size * rate
        return StorageQuote(
            volume_type=vt,
            requested_gb=size,
            billed_gb=size,
            monthly_usd=monthly,
            hourly_usd=monthly / HOURS_PER_MONTH,
        )

    bands = (
        provider_cfg.ssd_monthly
        if vt == STORAGE_TYPE_SSD
        else provider_cfg.hdd_monthly
    )
    lookup_size = size
    if vt == STORAGE_TYPE_HDD:
        lookup_size = max(size, AZURE_MIN_HDD_DISK_SIZE_GB)
    band = nearest_ceil(lookup_size, bands.keys())
    if band is None:
        return None
    monthly = bands[int(band)]
    return StorageQuote(
        volume_type=vt,
        requested_gb=size,
        billed_gb=band,
        monthly_usd=monthly,
        hourly_usd=monthly / HOURS_PER_MONTH,
        adjusted=band != size,
        sku=azure_disk_sku_for_size(vt, band),
    )


def parse_azure_managed_disk_prices(
    items: list[dict], region: str = ""
) -> BandedStorage | None:
    """Retail Prices API items for serviceName 'Storage', productName like
    'Standard SSD Managed Disks'. Only monthly per-disk charges are used:
    {"skuName": "E10 LRS", "meterName": "E10 LRS Disk", "unitOfMeasure": "1/Month", "unitPrice": 9.6}
    Returns None when either table came out empty.
    """
    ssd: dict[int, float] = {}
    hdd: dict[int, float] = {}
    for it in items or []:
        uom = str(it.get("unitOfMeasure") or it.get("unitName") or "").lower()
        if "month" not in uom:
            continue
        sku_raw = str(it.get("armSkuName") or it.get("skuName") or "").upper()
        price = to_positive_float(it.get("unitPrice"))
        if price is None:
            price = to_positive_float(it.get("retailPrice"))
        if price is None or not sku_raw:
            continue
        m = re.search(r"\b([ES]\d+)\b", sku_raw)
        if not m:
            continue
        code = m.group(1)
        if code in AZURE_SSD_DISK_SKU_SIZES:
            ssd[AZURE_SSD_DISK_SKU_SIZES[code]] = price
        elif code in AZURE_HDD_DISK_SKU_SIZES:
            hdd[AZURE_HDD_DISK_SKU_SIZES[code]] = price

    logger.debug(
        "[AZURE] Managed disk bands parsed - SSD: %s, HDD: %s",
        len(ssd),
        len(hdd),
    )
    if not ssd or not hdd:
        return None
    return BandedStorage(region=region, ssd_monthly=ssd, hdd_monthly=hdd)
