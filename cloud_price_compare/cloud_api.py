import logging
from dataclasses import dataclass

from cloud_price_compare.aggregator import aggregate
from cloud_price_compare.cloud_impl import pricing_cache
from cloud_price_compare.cloud_impl.aws_pricing import normalize_aws_pricing
from cloud_price_compare.cloud_impl.azure_pricing import (
    normalize_azure_pricing,
    parse_resource_skus_specs,
)
from cloud_price_compare.cloud_impl.cloud_structs import (
    AggregatedDataset,
    ProviderMeta,
    ProviderResult,
    StorageQuote,
)
from cloud_price_compare.cloud_impl.cloud_util import EmptyProviderError
from cloud_price_compare.cloud_impl.gcp_pricing import (
    normalize_gcp_pricing,
    parse_catalog_skus_from_pricing_yaml,
)
from cloud_price_compare.constants import (
    ALL_CLOUDS,
    CLOUD_AWS,
    CLOUD_AZURE,
    CLOUD_GCP,
    DEFAULT_CONFIG_DIR,
    HOURS_PER_MONTH,
)
from cloud_price_compare.instance_matching import (
    MatchOutcome,
    MatchRequest,
    match_all_providers,
)
from cloud_price_compare.settings import Settings
from cloud_price_compare.storage import (
    BandedStorage,
    FlatRateStorage,
    StorageConfig,
    default_storage_config,
    merge_storage_config,
    parse_azure_managed_disk_prices,
    resolve_storage,
)

logger = logging.getLogger(__name__)


@dataclass
class FetchOptions:
    aws_region: str
    azure_region: str
    gcp_region: str
    config_dir: str = DEFAULT_CONFIG_DIR
    gcp_api_key: str = ""  # Catalog API if set, the community YAML price list otherwise
    azure_subscription_id: str = ""
    azure_arm_token: str = ""  # ResourceSkus specs enrichment if set


@dataclass
class ComparisonRow:
    cloud: str
    outcome: MatchOutcome
    storage: StorageQuote | None = None

    @property
    def compute_monthly_usd(self) -> float | None:
        if not self.outcome.record:
            return None
        return self.outcome.record.price_per_hour_usd * HOURS_PER_MONTH

    @property
    def total_monthly_usd(self) -> float | None:
        if self.compute_monthly_usd is None:
            return None
        return self.compute_monthly_usd + (
            self.storage.monthly_usd if self.storage else 0
        )


def empty_provider_result(cloud: str, region: str) -> ProviderResult:
    return ProviderResult(cloud=cloud, region=region, meta=ProviderMeta())


def fetch_raw_entries(cloud: str, opts: FetchOptions):
    if cloud == CLOUD_AWS:
        return pricing_cache.fetch_aws_ondemand_offer_index(
            opts.aws_region, opts.config_dir
        )
    if cloud == CLOUD_AZURE:
        return pricing_cache.fetch_azure_vm_retail_items(
            opts.azure_region, opts.config_dir
        )
    if cloud == CLOUD_GCP:
        if opts.gcp_api_key:
            return pricing_cache.fetch_gcp_catalog_skus(
                opts.gcp_api_key, opts.config_dir
            )
        pricing_yaml = pricing_cache.fetch_gcp_pricing_yaml(opts.config_dir)
        if not pricing_yaml:
            return []
        return parse_catalog_skus_from_pricing_yaml(
            pricing_yaml, opts.gcp_region
        )
    raise Exception(f"Unsupported cloud: {cloud}")


def normalize_raw_entries(
    cloud: str, raw_entries, opts: FetchOptions, settings: Settings
) -> ProviderResult:
    dedup_by_category = settings.normalization.dedup_by_category
    if cloud == CLOUD_AWS:
        return normalize_aws_pricing(
            raw_entries, opts.aws_region, dedup_by_category=dedup_by_category
        )
    if cloud == CLOUD_AZURE:
        resource_sku_specs = None
        if opts.azure_subscription_id and opts.azure_arm_token:
            resource_sku_specs = parse_resource_skus_specs(
                pricing_cache.fetch_azure_resource_skus(
                    opts.azure_subscription_id,
                    opts.azure_arm_token,
                    opts.azure_region,
                )
            )
        return normalize_azure_pricing(
            raw_entries,
            opts.azure_region,
            resource_sku_specs=resource_sku_specs,
            azure_generation_gating=settings.normalization.azure_generation_gating,
            dedup_by_category=dedup_by_category,
        )
    return normalize_gcp_pricing(
        raw_entries, opts.gcp_region, dedup_by_category=dedup_by_category
    )


def region_for_cloud(cloud: str, opts: FetchOptions) -> str:
    return {
        CLOUD_AWS: opts.aws_region,
        CLOUD_AZURE: opts.azure_region,
        CLOUD_GCP: opts.gcp_region,
    }[cloud]


def fetch_and_normalize_provider(
    cloud: str, opts: FetchOptions, settings: Settings
) -> ProviderResult:
    """Fetch problems end up as an empty result, for the aggregator to flag"""
    region = region_for_cloud(cloud, opts)
    raw_entries = fetch_raw_entries(cloud, opts)
    try:
        return normalize_raw_entries(cloud, raw_entries, opts, settings)
    except EmptyProviderError as e:
        logger.warning("%s", e)
        return empty_provider_result(cloud, region)


def build_storage_config(
    settings: Settings,
    azure_disk_items: list[dict] | None = None,
    azure_region: str = "",
) -> StorageConfig:
    """Defaults < fetched Azure managed disk prices < settings file overrides"""
    cfg = default_storage_config()
    if azure_disk_items:
        fetched = parse_azure_managed_disk_prices(
            azure_disk_items, azure_region
        )
        if fetched:
            cfg = merge_storage_config(
                cfg, {CLOUD_AZURE: fetched.model_dump()}
            )
        else:
            logger.warning(
                "[AZURE] No usable managed disk prices, using defaults"
            )
    return merge_storage_config(cfg, settings.storage)


def build_dataset(
    opts: FetchOptions,
    settings: Settings,
    clouds: list[str] | None = None,
) -> AggregatedDataset:
    results: list[ProviderResult] = []
    for cloud in clouds or ALL_CLOUDS:
        results.append(fetch_and_normalize_provider(cloud, opts, settings))

    azure_disk_items = []
    if CLOUD_AZURE in (clouds or ALL_CLOUDS):
        azure_disk_items = pricing_cache.fetch_azure_managed_disk_items(
            opts.azure_region, opts.config_dir
        )
    storage_config = build_storage_config(
        settings, azure_disk_items, opts.azure_region
    )
    return aggregate(results, storage_config=storage_config)


def storage_config_from_dataset(
    dataset: AggregatedDataset, settings: Settings
) -> StorageConfig:
    """Storage prices carried in the dataset, settings file overrides on top"""
    carried = {
        c: dataset.storage[c]
        for c in ALL_CLOUDS
        if isinstance(dataset.storage.get(c), dict)
    }
    cfg = merge_storage_config(default_storage_config(), carried)
    return merge_storage_config(cfg, settings.storage)


def compare(
    dataset: AggregatedDataset,
    requests: dict[str, MatchRequest],
    settings: Settings,
    storage_type: str = "",
    storage_gb: float = 0,
) -> list[ComparisonRow]:
    outcomes = match_all_providers(
        dataset, requests, policies=settings.get_match_policies()
    )
    storage_cfg = storage_config_from_dataset(dataset, settings)
    ret: list[ComparisonRow] = []
    for cloud, outcome in outcomes.items():
        quote = None
        if storage_type and storage_gb:
            provider_cfg: FlatRateStorage | BandedStorage = (
                storage_cfg.for_cloud(cloud)
            )
            quote = resolve_storage(storage_type, storage_gb, provider_cfg)
        ret.append(ComparisonRow(cloud=cloud, outcome=outcome, storage=quote))
    return ret
