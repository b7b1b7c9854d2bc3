import logging
import math
import os

import yaml
from prettytable import PrettyTable
from pydantic import ValidationError
from tap import Tap

from cloud_price_compare import cloud_api
from cloud_price_compare.aggregator import (
    NoProviderDataError,
    UnexpectedDatasetShapeError,
    load_dataset_from_file,
    publish_dataset,
)
from cloud_price_compare.cloud_impl.cloud_util import format_ram_gib
from cloud_price_compare.constants import (
    ALL_CATEGORIES,
    ALL_CLOUDS,
    CLOUD_AWS,
    CLOUD_AZURE,
    CLOUD_GCP,
    DEFAULT_AWS_REGION,
    DEFAULT_AZURE_REGION,
    DEFAULT_CONFIG_DIR,
    DEFAULT_DATASET_PATH,
    DEFAULT_GCP_REGION,
    OS_LINUX,
    OS_WINDOWS,
    STORAGE_TYPE_HDD,
    STORAGE_TYPE_SSD,
)
from cloud_price_compare.instance_matching import MatchRequest
from cloud_price_compare.settings import Settings, load_settings
from cloud_price_compare.util import (
    format_usd,
    parse_iso_timestamp,
    timestamp_to_human_readable_delta,
)

logger = logging.getLogger(__name__)


def str_to_bool(param: str) -> bool:
    if not param:
        return False
    if param.strip().lower() == "on":
        return True
    if param.strip().lower()[0] == "t":
        return True
    if param.strip().lower()[0] == "y":
        return True
    return False


class ArgumentParser(Tap):
    show_help: bool = str_to_bool(
        os.getenv("CPC_SHOW_HELP", "False")
    )  # Don't actually execute actions
    verbose: bool = str_to_bool(os.getenv("CPC_VERBOSE", "false"))  # More chat
    build_dataset: bool = str_to_bool(
        os.getenv("CPC_BUILD_DATASET", "false")
    )  # Fetch + normalize all providers and write the dataset
    compare: bool = str_to_bool(
        os.getenv("CPC_COMPARE", "false")
    )  # Best matches per provider from the dataset. Implied by --vcpu / --ram
    list_meta: bool = str_to_bool(
        os.getenv("CPC_LIST_META", "false")
    )  # Show available OS / vCPU / RAM values and dataset age, then exit
    clouds: str = os.getenv(
        "CPC_CLOUDS", ",".join(ALL_CLOUDS)
    )  # Comma separated subset of aws,azure,gcp
    dataset_path: str = os.getenv("CPC_DATASET_PATH", DEFAULT_DATASET_PATH)
    config_dir: str = os.getenv(
        "CPC_CONFIG_DIR", DEFAULT_CONFIG_DIR
    )  # Price cache location
    config_path: str = os.getenv(
        "CPC_CONFIG_PATH", ""
    )  # Optional YAML settings file - penalties, storage price overrides etc
    aws_region: str = os.getenv("CPC_AWS_REGION", DEFAULT_AWS_REGION)
    azure_region: str = os.getenv("CPC_AZURE_REGION", DEFAULT_AZURE_REGION)
    gcp_region: str = os.getenv("CPC_GCP_REGION", DEFAULT_GCP_REGION)
    gcp_api_key: str = os.getenv(
        "CPC_GCP_API_KEY", ""
    )  # Cloud Billing Catalog API. If not set a community YAML price list is used
    azure_subscription_id: str = os.getenv("CPC_AZURE_SUBSCRIPTION_ID", "")
    azure_arm_token: str = os.getenv(
        "CPC_AZURE_ARM_TOKEN", ""
    )  # For exact vCPU / RAM via the ResourceSkus API
    vcpu: float = float(os.getenv("CPC_VCPU", "0"))
    ram: float = float(os.getenv("CPC_RAM", "0"))  # GB
    os_type: str = os.getenv("CPC_OS", OS_LINUX)  # Linux | Windows
    family: str = os.getenv(
        "CPC_FAMILY", ""
    )  # general | compute | memory. Applied to all providers
    family_aws: str = os.getenv("CPC_FAMILY_AWS", "")
    family_azure: str = os.getenv("CPC_FAMILY_AZURE", "")
    family_gcp: str = os.getenv("CPC_FAMILY_GCP", "")
    storage_type: str = os.getenv("CPC_STORAGE_TYPE", STORAGE_TYPE_SSD)  # ssd | hdd
    storage_gb: float = float(os.getenv("CPC_STORAGE_GB", "0"))


args: ArgumentParser | None = None


def validate_and_parse_args() -> ArgumentParser:
    args = ArgumentParser(
        prog="cloud-price-compare",
        description="Compares on-demand VM prices across AWS, Azure and GCP",
        underscores_to_dashes=True,
    ).parse_args()

    return args


def parse_clouds(clouds: str) -> list[str]:
    """'aws, GCP' -> ['aws', 'gcp']"""
    ret = []
    for c in clouds.split(","):
        c = c.strip().lower()
        if c and c not in ret:
            ret.append(c)
    return ret


def check_cli_args_valid(args: ArgumentParser):
    for c in parse_clouds(args.clouds):
        if c not in ALL_CLOUDS:
            logger.error("Unknown cloud: %s. Expected: %s", c, ALL_CLOUDS)
            exit(1)
    if args.os_type.lower() not in (OS_LINUX.lower(), OS_WINDOWS.lower()):
        logger.error("--os-type expected: %s | %s", OS_LINUX, OS_WINDOWS)
        exit(1)
    for fam in (args.family, args.family_aws, args.family_azure, args.family_gcp):
        if fam and fam.lower() not in ALL_CATEGORIES:
            logger.error(
                "Unknown family: %s. Expected: %s", fam, ALL_CATEGORIES
            )
            exit(1)
    if args.storage_type.lower() not in (STORAGE_TYPE_SSD, STORAGE_TYPE_HDD):
        logger.error(
            "--storage-type expected: %s | %s",
            STORAGE_TYPE_SSD,
            STORAGE_TYPE_HDD,
        )
        exit(1)
    if not all(math.isfinite(v) for v in (args.vcpu, args.ram, args.storage_gb)):
        logger.error("--vcpu / --ram / --storage-gb must be finite numbers")
        exit(1)
    if args.vcpu < 0 or args.ram < 0 or args.storage_gb < 0:
        logger.error("--vcpu / --ram / --storage-gb can't be negative")
        exit(1)
    if args.compare and not (args.vcpu or args.ram):
        logger.error("--compare needs --vcpu and / or --ram")
        exit(1)


def normalize_os_input(os_type: str) -> str:
    return OS_WINDOWS if os_type.lower() == OS_WINDOWS.lower() else OS_LINUX


def compile_match_requests_from_args(
    args: ArgumentParser,
) -> dict[str, MatchRequest]:
    per_cloud_family = {
        CLOUD_AWS: args.family_aws,
        CLOUD_AZURE: args.family_azure,
        CLOUD_GCP: args.family_gcp,
    }
    ret: dict[str, MatchRequest] = {}
    for c in parse_clouds(args.clouds):
        family = (per_cloud_family.get(c) or args.family or "").lower()
        ret[c] = MatchRequest(
            vcpu=args.vcpu,
            ram=args.ram,
            os=normalize_os_input(args.os_type),
            family=family or None,
        )
    return ret


def display_comparison(rows: list[cloud_api.ComparisonRow]) -> None:
    tab = PrettyTable(
        [
            "Cloud",
            "Instance",
            "Region",
            "OS",
            "vCPU",
            "RAM",
            "$ / hour",
            "Compute $ (Mo)",
            "Storage",
            "Storage $ (Mo)",
            "Total $ (Mo)",
        ]
    )
    for r in rows:
        rec = r.outcome.record
        if not rec:
            tab.add_row(
                [r.cloud.upper(), r.outcome.error]
                + ["" for _ in range(9)]
            )
            continue
        storage_desc = "N/A"
        if r.storage:
            storage_desc = f"{r.storage.billed_gb:g} GB {r.storage.volume_type}"
            if r.storage.sku:
                storage_desc += f" ({r.storage.sku})"
            if r.storage.adjusted:
                storage_desc += " *"
        tab.add_row(
            [
                r.cloud.upper(),
                rec.instance,
                rec.region,
                rec.os,
                rec.vcpu if rec.vcpu is not None else "N/A",
                format_ram_gib(rec.ram),
                format_usd(rec.price_per_hour_usd),
                format_usd(r.compute_monthly_usd, 2),
                storage_desc,
                format_usd(r.storage.monthly_usd if r.storage else None, 2),
                format_usd(r.total_monthly_usd, 2),
            ]
        )
    print(tab)
    if any(r.storage and r.storage.adjusted for r in rows):
        print("* Billed as the next available disk size")


def list_meta_and_exit(args: ArgumentParser) -> None:
    try:
        dataset = load_dataset_from_file(args.dataset_path)
    except (OSError, ValueError, UnexpectedDatasetShapeError) as e:
        logger.error("Failed to load dataset from %s: %s", args.dataset_path, e)
        exit(1)
    generated_at = parse_iso_timestamp(dataset.generated_at)
    print(
        f"Dataset: {args.dataset_path}, generated at {dataset.generated_at or 'N/A'} "
        f"({timestamp_to_human_readable_delta(generated_at)} ago)"
    )
    tab = PrettyTable(["Cloud", "Instances", "Inferred specs"])
    for c in ALL_CLOUDS:
        records = dataset.records_for(c)
        tab.add_row(
            [c.upper(), len(records), len([r for r in records if r.specs_inferred])]
        )
    print(tab)
    print("OS:", ", ".join(dataset.meta.os))
    print("vCPU:", ", ".join(f"{v:g}" for v in dataset.meta.vcpu))
    print("RAM:", ", ".join(f"{v:g}" for v in dataset.meta.ram))
    exit(0)


def build_dataset_and_exit(args: ArgumentParser, settings: Settings) -> None:
    opts = cloud_api.FetchOptions(
        aws_region=args.aws_region,
        azure_region=args.azure_region,
        gcp_region=args.gcp_region,
        config_dir=args.config_dir,
        gcp_api_key=args.gcp_api_key,
        azure_subscription_id=args.azure_subscription_id,
        azure_arm_token=args.azure_arm_token,
    )
    try:
        dataset = cloud_api.build_dataset(
            opts, settings, clouds=parse_clouds(args.clouds)
        )
    except NoProviderDataError as e:
        logger.error("%s", e)
        exit(1)
    if not publish_dataset(dataset, args.dataset_path):
        logger.error(
            "Dataset not written, previous copy at %s kept", args.dataset_path
        )
        exit(1)
    exit(0)


def compare_and_exit(args: ArgumentParser, settings: Settings) -> None:
    try:
        dataset = load_dataset_from_file(args.dataset_path)
    except (OSError, ValueError, UnexpectedDatasetShapeError) as e:
        logger.error(
            "Failed to load dataset from %s: %s. Use --build-dataset first",
            args.dataset_path,
            e,
        )
        exit(1)
    rows = cloud_api.compare(
        dataset,
        compile_match_requests_from_args(args),
        settings,
        storage_type=args.storage_type.lower(),
        storage_gb=args.storage_gb,
    )
    display_comparison(rows)
    exit(0 if any(r.outcome.ok for r in rows) else 1)


def main():  # pragma: no cover

    global args
    args = validate_and_parse_args()

    logging.basicConfig(
        format=(
            "%(message)s"
            if (args.list_meta or args.compare)
            else (
                "%(asctime)s %(levelname)s %(threadName)s %(filename)s:%(lineno)d %(message)s"
                if args.verbose
                else "%(asctime)s %(levelname)s %(message)s"
            )
        ),
        level=(logging.DEBUG if args.verbose else logging.INFO),
    )
    logging.getLogger("urllib3").setLevel(logging.ERROR)

    if args.show_help:
        args.print_help()
        exit(0)

    if args.vcpu or args.ram:
        args.compare = True

    check_cli_args_valid(args)

    logger.debug("Args: %s", args.as_dict()) if args.verbose else None

    try:
        settings = load_settings(args.config_path)
    except (OSError, ValidationError, yaml.YAMLError) as e:
        logger.error("Failed to load settings from %s: %s", args.config_path, e)
        exit(1)

    if args.list_meta:
        list_meta_and_exit(args)

    if args.build_dataset:
        build_dataset_and_exit(args, settings)

    if args.compare:
        compare_and_exit(args, settings)

    args.print_help()
    exit(1)
