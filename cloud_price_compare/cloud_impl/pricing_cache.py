import glob
import json
import logging
import os
import time
from datetime import date

import requests

from cloud_price_compare.cloud_impl.gcp_pricing import (
    COMPUTE_ENGINE_SERVICE_ID,
)
from cloud_price_compare.constants import DEFAULT_CONFIG_DIR

CONFIG_DIR_PRICE_CACHE_SUBDIR = "price_cache"
CACHE_MAX_AGE_DAYS = 7
HTTP_TIMEOUT_S = 30
MAX_PAGES = 200

AWS_OFFER_INDEX_URL = "https://pricing.us-east-1.amazonaws.com/offers/v1.0/aws/AmazonEC2/current/{region}/index.json"
AZURE_RETAIL_PRICES_URL = "https://prices.azure.com/api/retail/prices"
AZURE_RESOURCE_SKUS_URL = "https://management.azure.com/subscriptions/{subscription_id}/providers/Microsoft.Compute/skus"
GCP_CATALOG_SKUS_URL = "https://cloudbilling.googleapis.com/v1/services/{service_id}/skus"
GCP_PRICE_LIST_YAML_URL = "https://github.com/Cyclenerd/google-cloud-pricing-cost-calculator/raw/master/pricing.yml"

logger = logging.getLogger(__name__)

logging.getLogger("urllib3").setLevel(logging.ERROR)


def get_cache_dir(config_dir: str = DEFAULT_CONFIG_DIR) -> str:
    return os.path.expanduser(
        os.path.join(config_dir, CONFIG_DIR_PRICE_CACHE_SUBDIR)
    )


def daily_cache_file_name(provider: str, kind: str, region: str = "") -> str:
    """aws_ondemand_us-east-1_20241115.json"""
    today = date.today()
    region_part = f"_{region}" if region else ""
    return f"{provider}_{kind}{region_part}_{today.strftime('%Y%m%d')}.json"


def get_cached_pricing_dict(
    cache_file: str, config_dir: str = DEFAULT_CONFIG_DIR
) -> dict:
    cache_path = os.path.join(get_cache_dir(config_dir), cache_file)
    if os.path.exists(cache_path):
        logger.debug("Reading cached pricing file: %s", cache_path)
        try:
            with open(cache_path, "r") as f:
                return json.loads(f.read())
        except Exception:
            logger.error("Failed to read cached pricing file from: %s", cache_path)
    return {}


def write_pricing_cache_file_as_json(
    cache_file: str, pricing_info: dict, config_dir: str = DEFAULT_CONFIG_DIR
) -> None:
    cache_dir = get_cache_dir(config_dir)
    os.makedirs(cache_dir, exist_ok=True)
    with open(os.path.join(cache_dir, cache_file), "w") as f:
        json.dump(pricing_info, f)


def try_clean_up_old_pricing_cache_files(
    older_than_days: int, config_dir: str = DEFAULT_CONFIG_DIR
) -> None:
    """Delete old per provider / region files from ~/.cloud-price-compare/price_cache"""
    epoch = time.time()
    for pd in sorted(glob.glob(os.path.join(get_cache_dir(config_dir), "*"))):
        try:
            st = os.stat(pd)
            if epoch - st.st_mtime > 3600 * 24 * older_than_days:
                os.unlink(pd)
        except OSError:
            logger.info("Failed to clean up old pricing cache file %s", pd)


def http_get_json(
    url: str,
    params: dict | None = None,
    headers: dict | None = None,
    timeout: int = HTTP_TIMEOUT_S,
) -> dict:
    """Empty dict on any failure, errors logged"""
    logger.debug("requests.get: %s %s", url, params or "")
    try:
        r = requests.get(
            url, params=params, headers=headers or {}, timeout=timeout
        )
    except requests.RequestException as e:
        logger.error("Failed to retrieve %s: %s", url, e)
        return {}
    if r.status_code != 200:
        logger.error(
            "Failed to retrieve pricing info - retcode: %s, URL: %s",
            r.status_code,
            url,
        )
        return {}
    return r.json()


def get_with_daily_cache(
    cache_file: str, fetch_fn, config_dir: str = DEFAULT_CONFIG_DIR
) -> dict:
    cached = get_cached_pricing_dict(cache_file, config_dir)
    if cached:
        return cached
    fetched = fetch_fn()
    if not fetched:
        return {}
    write_pricing_cache_file_as_json(cache_file, fetched, config_dir)
    try_clean_up_old_pricing_cache_files(CACHE_MAX_AGE_DAYS, config_dir)
    return fetched


def fetch_aws_ondemand_offer_index(
    region: str, config_dir: str = DEFAULT_CONFIG_DIR
) -> dict:
    """The full regional EC2 offer file, a few hundred MB for the larger regions"""

    def fetch() -> dict:
        logger.info("Fetching AWS EC2 offer index for region %s ...", region)
        return http_get_json(
            AWS_OFFER_INDEX_URL.format(region=region), timeout=300
        )

    return get_with_daily_cache(
        daily_cache_file_name("aws", "ondemand", region), fetch, config_dir
    )


def fetch_azure_retail_items(odata_filter: str) -> list[dict]:
    """Follows NextPageLink until exhausted. A failed page fails the whole fetch"""
    items: list[dict] = []
    url: str | None = AZURE_RETAIL_PRICES_URL
    params: dict | None = {"$filter": odata_filter}
    pages = 0
    while url and pages < MAX_PAGES:
        page = http_get_json(url, params=params)
        if not page:
            logger.error(
                "[AZURE] Retail prices page %s failed, discarding %s items fetched so far",
                pages + 1,
                len(items),
            )
            return []
        items.extend(page.get("Items") or [])
        url = page.get("NextPageLink")
        params = None  # Next links carry the filter already
        pages += 1
    if url:
        logger.error("[AZURE] Retail prices still paging after %s pages", pages)
        return []
    logger.debug("[AZURE] Retail items fetched: %s (%s pages)", len(items), pages)
    return items


def items_as_cacheable_dict(items: list[dict]) -> dict:
    """Nothing to cache for failed or empty fetches"""
    return {"Items": items} if items else {}


def fetch_azure_vm_retail_items(
    region: str, config_dir: str = DEFAULT_CONFIG_DIR
) -> list[dict]:
    odata_filter = f"serviceName eq 'Virtual Machines' and armRegionName eq '{region}' and type eq 'Consumption'"
    cached = get_with_daily_cache(
        daily_cache_file_name("azure", "vm", region),
        lambda: items_as_cacheable_dict(fetch_azure_retail_items(odata_filter)),
        config_dir,
    )
    return cached.get("Items") or []


def fetch_azure_managed_disk_items(
    region: str, config_dir: str = DEFAULT_CONFIG_DIR
) -> list[dict]:
    odata_filter = f"serviceName eq 'Storage' and armRegionName eq '{region}' and productName eq 'Managed Disks' and type eq 'Consumption'"
    cached = get_with_daily_cache(
        daily_cache_file_name("azure", "disks", region),
        lambda: items_as_cacheable_dict(fetch_azure_retail_items(odata_filter)),
        config_dir,
    )
    return cached.get("Items") or []


def fetch_azure_resource_skus(
    subscription_id: str, arm_token: str, region: str
) -> list[dict]:
    """Needs an ARM bearer token, e.g. from `az account get-access-token`"""
    url: str | None = AZURE_RESOURCE_SKUS_URL.format(
        subscription_id=subscription_id
    )
    params: dict | None = {
        "api-version": "2021-07-01",
        "$filter": f"location eq '{region}'",
    }
    skus: list[dict] = []
    pages = 0
    while url and pages < MAX_PAGES:
        page = http_get_json(
            url, params=params, headers={"Authorization": f"Bearer {arm_token}"}
        )
        if not page:
            logger.error("[AZURE] ResourceSkus page %s failed", pages + 1)
            return []
        skus.extend(page.get("value") or [])
        url = page.get("nextLink")
        params = None
        pages += 1
    if url:
        logger.error("[AZURE] ResourceSkus still paging after %s pages", pages)
        return []
    return skus


def fetch_gcp_catalog_skus(
    api_key: str, config_dir: str = DEFAULT_CONFIG_DIR
) -> list[dict]:
    """All Compute Engine SKUs, follows nextPageToken. An API key is required"""
    if not api_key:
        logger.error("GCP Cloud Billing Catalog API key not set")
        return []

    def fetch() -> dict:
        skus: list[dict] = []
        page_token = ""
        pages = 0
        while pages < MAX_PAGES:
            params = {"key": api_key, "pageSize": 5000}
            if page_token:
                params["pageToken"] = page_token
            page = http_get_json(
                GCP_CATALOG_SKUS_URL.format(
                    service_id=COMPUTE_ENGINE_SERVICE_ID
                ),
                params=params,
            )
            if not page:
                logger.error(
                    "[GCP] Catalog page %s failed, discarding %s SKUs fetched so far",
                    pages + 1,
                    len(skus),
                )
                return {}
            skus.extend(page.get("skus") or [])
            page_token = page.get("nextPageToken") or ""
            pages += 1
            if not page_token:
                break
        if page_token:
            logger.error("[GCP] Catalog still paging after %s pages", pages)
            return {}
        return {"skus": skus} if skus else {}

    cached = get_with_daily_cache(
        daily_cache_file_name("gcp", "catalog"), fetch, config_dir
    )
    return cached.get("skus") or []


def fetch_gcp_pricing_yaml(config_dir: str = DEFAULT_CONFIG_DIR) -> str:
    """Community maintained price list, updated weekly. Re-downloaded max once per day"""
    local_path = os.path.join(get_cache_dir(config_dir), "gcp_pricing.yml")
    if os.path.exists(local_path):
        if time.time() - os.stat(local_path).st_mtime < 3600 * 24:
            logger.debug("Using cached GCP price list from %s", local_path)
            with open(local_path, "r") as f:
                return f.read()

    logger.info("Getting GCP price list from %s ...", GCP_PRICE_LIST_YAML_URL)
    try:
        r = requests.get(GCP_PRICE_LIST_YAML_URL, timeout=HTTP_TIMEOUT_S)
    except requests.RequestException as e:
        logger.error("Failed to retrieve the GCP price list: %s", e)
        return ""
    if r.status_code != 200:
        logger.error(
            "Failed to retrieve the GCP price list - retcode: %s",
            r.status_code,
        )
        return ""
    os.makedirs(os.path.dirname(local_path), exist_ok=True)
    with open(local_path, "w") as f:
        f.write(r.text)
    return r.text
