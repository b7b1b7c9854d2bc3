import dataclasses
import logging
import math
from dataclasses import dataclass

from cloud_price_compare.cloud_impl.cloud_structs import (
    AggregatedDataset,
    NormalizedInstanceRecord,
)
from cloud_price_compare.constants import (
    ALL_CLOUDS,
    CLOUD_AWS,
    CLOUD_AZURE,
    CLOUD_GCP,
    DEFAULT_INFERRED_SPEC_PENALTY,
    DEFAULT_MISSING_SPEC_PENALTY,
    DEFAULT_UNKNOWN_OS_PENALTY,
    OS_UNKNOWN,
)
from cloud_price_compare.family_classification import matches_family
from cloud_price_compare.spec_inference import complete_specs

logger = logging.getLogger(__name__)


@dataclass
class MatchPolicy:
    missing_spec_penalty: float = DEFAULT_MISSING_SPEC_PENALTY
    inferred_spec_penalty: float = DEFAULT_INFERRED_SPEC_PENALTY
    unknown_os_penalty: float = DEFAULT_UNKNOWN_OS_PENALTY
    relax_family: bool = False
    relax_os: bool = False


# Azure retail data often lacks a usable OS / family signal, so it gets the fallbacks
DEFAULT_MATCH_POLICIES = {
    CLOUD_AWS: MatchPolicy(),
    CLOUD_AZURE: MatchPolicy(relax_family=True, relax_os=True),
    CLOUD_GCP: MatchPolicy(),
}


def get_default_match_policy(cloud: str) -> MatchPolicy:
    return dataclasses.replace(
        DEFAULT_MATCH_POLICIES.get(cloud, MatchPolicy())
    )


class NoMatchingInstanceError(Exception):
    def __init__(self, cloud: str, os: str, family: str | None = None):
        self.cloud = cloud
        self.os = os
        self.family = family
        cloud_label = f"{cloud.upper()} " if cloud else ""
        f_label = f" family={family}" if family else ""
        super().__init__(
            f"No {cloud_label}entries for OS={os or 'any'}{f_label}"
        )


@dataclass
class MatchRequest:
    vcpu: float
    ram: float
    os: str
    family: str | None = None


@dataclass
class MatchOutcome:
    cloud: str
    request: MatchRequest
    record: NormalizedInstanceRecord | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


def os_matches(record: NormalizedInstanceRecord, want_os: str | None) -> bool:
    """Unknown OS rows are accepted provisionally (and penalized when scoring)"""
    if not want_os:
        return True
    if record.os == OS_UNKNOWN:
        return True
    return str(record.os).lower() == str(want_os).lower()


def filter_candidates(
    records: list[NormalizedInstanceRecord],
    want_os: str | None,
    want_family: str | None,
) -> list[NormalizedInstanceRecord]:
    return [
        r
        for r in records
        if os_matches(r, want_os) and matches_family(r, want_family)
    ]


def score_candidate(
    record: NormalizedInstanceRecord,
    want_vcpu: float,
    want_ram: float,
    policy: MatchPolicy,
) -> float:
    """L1 distance in (vCPU, GiB) space plus penalties"""
    vcpu, ram, inferred = record.vcpu, record.ram, record.specs_inferred
    if vcpu is None or ram is None:
        specs = complete_specs(record.cloud, record.instance, vcpu, ram)
        vcpu, ram = specs.vcpu, specs.ram
        inferred = True

    if vcpu is None or ram is None:
        score = policy.missing_spec_penalty
    else:
        score = abs(vcpu - want_vcpu) + abs(ram - want_ram)
        if inferred:
            score += policy.inferred_spec_penalty
    if record.os == OS_UNKNOWN:
        score += policy.unknown_os_penalty
    return score


def ranking_score(score: float) -> float:
    """NaN (e.g. from a NaN request) ranks like an infinitely bad match"""
    return math.inf if math.isnan(score) else score


def find_best(
    records: list[NormalizedInstanceRecord],
    want_vcpu: float,
    want_ram: float,
    want_os: str,
    want_family: str | None = None,
    cloud: str = "",
    policy: MatchPolicy | None = None,
) -> NormalizedInstanceRecord:
    """Closest (vCPU, RAM) match for the requested OS / family, cheapest on equal scores.
    The returned record is a copy with "os" set to the requested OS."""
    if not cloud and records:
        cloud = records[0].cloud
    if policy is None:
        policy = get_default_match_policy(cloud)

    candidates = filter_candidates(records, want_os, want_family)
    if not candidates and want_family and policy.relax_family:
        logger.debug(
            "[%s] No %s entries for family %s, dropping the family filter",
            cloud.upper(),
            want_os,
            want_family,
        )
        candidates = filter_candidates(records, want_os, None)
    if not candidates and policy.relax_os:
        logger.debug(
            "[%s] No entries for OS %s, ignoring OS", cloud.upper(), want_os
        )
        candidates = filter_candidates(records, None, want_family)
    if not candidates:
        raise NoMatchingInstanceError(cloud, want_os, want_family)

    scored = [
        (ranking_score(score_candidate(c, want_vcpu, want_ram, policy)), c)
        for c in candidates
    ]
    best_score, best = min(
        scored, key=lambda sc: (sc[0], sc[1].price_per_hour_usd)
    )
    logger.debug(
        "[%s] Best match for %s vCPU / %s GB %s: %s (score %s, $%s/h)",
        cloud.upper(),
        want_vcpu,
        want_ram,
        want_os,
        best.instance,
        best_score,
        best.price_per_hour_usd,
    )
    return dataclasses.replace(best, os=want_os)


def match_all_providers(
    dataset: AggregatedDataset,
    requests: dict[str, MatchRequest],
    policies: dict[str, MatchPolicy] | None = None,
) -> dict[str, MatchOutcome]:
    """Independent per provider, a failure for one doesn't affect the others"""
    ret: dict[str, MatchOutcome] = {}
    for cloud in ALL_CLOUDS:
        if cloud not in requests:
            continue
        req = requests[cloud]
        policy = (policies or {}).get(cloud) or get_default_match_policy(
            cloud
        )
        try:
            rec = find_best(
                dataset.records_for(cloud),
                req.vcpu,
                req.ram,
                req.os,
                req.family,
                cloud=cloud,
                policy=policy,
            )
            ret[cloud] = MatchOutcome(cloud=cloud, request=req, record=rec)
        except NoMatchingInstanceError as e:
            logger.warning("%s", e)
            ret[cloud] = MatchOutcome(cloud=cloud, request=req, error=str(e))
    return ret
