"""Best-effort vCPU / RAM estimation from instance naming conventions, for
price feeds that don't carry hardware specs. Estimates are never marked as
authoritative so that matching can prefer rows with real specs."""

import logging
import math
import re

from cloud_price_compare.cloud_impl.cloud_structs import InferredSpecs
from cloud_price_compare.cloud_impl.cloud_util import to_positive_float
from cloud_price_compare.constants import CLOUD_AWS, CLOUD_AZURE, CLOUD_GCP

logger = logging.getLogger(__name__)

# GiB per vCPU
AZURE_RAM_PER_CORE = {"d": 4, "f": 2, "e": 8, "b": 4, "m": 16}
AWS_RAM_PER_CORE = {"m": 4, "t": 4, "c": 2, "r": 8, "x": 16, "z": 8}
AWS_SIZE_VCPUS = {"medium": 1, "large": 2}
GCP_N1_RAM_PER_CORE = {"standard": 3.75, "highmem": 6.5, "highcpu": 0.9}
GCP_RAM_PER_CORE = {"standard": 4, "highmem": 8, "highcpu": 2}
GCP_SERIES_WITH_COMMON_RATIOS = (
    "n2",
    "n2d",
    "e2",
    "t2a",
    "t2d",
    "n4",
    "c3",
    "c3d",
    "c4",
)


def infer_azure_specs_from_name(instance: str) -> InferredSpecs:
    """Standard_D4s_v5 -> 4 vCPU / 16 GiB, constrained F16-4ams_v7 -> 16 / 32"""
    n = instance.strip().lower()
    body = n[len("standard_") :] if n.startswith("standard_") else n
    m = re.match(r"^([a-z]+?)(\d+)", body)
    if not m:
        return InferredSpecs()
    vcpu = int(m.group(2))
    ram_per_core = AZURE_RAM_PER_CORE.get(m.group(1)[0])
    if not vcpu or not ram_per_core:
        return InferredSpecs()
    return InferredSpecs(vcpu=vcpu, ram=float(vcpu * ram_per_core))


def infer_aws_specs_from_name(instance: str) -> InferredSpecs:
    """m5.large -> 2 / 8, c6i.4xlarge -> 16 / 32, r6g.medium -> 1 / 8"""
    splits = instance.strip().lower().split(".")
    if len(splits) != 2 or not splits[0]:
        return InferredSpecs()
    family, size = splits
    m = re.match(r"^(\d*)xlarge$", size)
    if m:
        vcpu = 4 * int(m.group(1) or 1)
    elif size in AWS_SIZE_VCPUS:
        vcpu = AWS_SIZE_VCPUS[size]
    else:
        return InferredSpecs()
    ram_per_core = AWS_RAM_PER_CORE.get(family[0])
    if not vcpu or not ram_per_core:
        return InferredSpecs()
    return InferredSpecs(vcpu=vcpu, ram=float(vcpu * ram_per_core))


def infer_gcp_specs_from_machine_type(machine_type: str) -> InferredSpecs:
    """Predefined shapes only: n2-standard-4 / n2_standard_4 -> 4 / 16"""
    mt = machine_type.strip().lower().replace("_", "-")
    m = re.match(r"^([a-z0-9]+)-([a-z]+[a-z0-9]*)-(\d+)$", mt)
    if not m:
        return InferredSpecs()
    series, machine_class, vcpu = m.group(1), m.group(2), int(m.group(3))
    if not vcpu:
        return InferredSpecs()

    ratio: float | None = None
    if series == "n1":
        ratio = _ratio_for_class(GCP_N1_RAM_PER_CORE, machine_class)
    elif series in GCP_SERIES_WITH_COMMON_RATIOS:
        ratio = _ratio_for_class(GCP_RAM_PER_CORE, machine_class)
    elif series.startswith("c2"):
        ratio = 4
    if not ratio:
        return InferredSpecs()
    return InferredSpecs(vcpu=vcpu, ram=vcpu * ratio)


def _ratio_for_class(ratios: dict, machine_class: str) -> float | None:
    for prefix, ratio in ratios.items():
        if machine_class.startswith(prefix):
            return ratio
    return None


SPEC_ESTIMATORS = {
    CLOUD_AWS: infer_aws_specs_from_name,
    CLOUD_AZURE: infer_azure_specs_from_name,
    CLOUD_GCP: infer_gcp_specs_from_machine_type,
}


def infer_specs(cloud: str, instance: str) -> InferredSpecs:
    """Returns InferredSpecs(None, None) when the name can't be parsed"""
    estimator = SPEC_ESTIMATORS.get(cloud)
    if not estimator or not instance or not isinstance(instance, str):
        return InferredSpecs()
    try:
        return estimator(instance)
    except Exception:
        logger.debug("Failed to infer specs for %s SKU %s", cloud, instance)
        return InferredSpecs()


def complete_specs(cloud: str, instance: str, vcpu, ram) -> InferredSpecs:
    """Provider given values win when positive and finite. Missing ones are
    filled from the naming convention, flagging the result as non-authoritative."""
    given_vcpu = to_positive_float(vcpu)
    given_ram = to_positive_float(ram)
    if given_vcpu is not None and not given_vcpu.is_integer():
        given_vcpu = None
    if given_vcpu is not None and given_ram is not None:
        return InferredSpecs(
            vcpu=int(given_vcpu), ram=given_ram, authoritative=True
        )

    inferred = infer_specs(cloud, instance)
    ram_estimate = given_ram if given_ram is not None else inferred.ram
    if ram_estimate is not None and not math.isfinite(ram_estimate):
        ram_estimate = None
    return InferredSpecs(
        vcpu=int(given_vcpu) if given_vcpu is not None else inferred.vcpu,
        ram=ram_estimate,
    )
