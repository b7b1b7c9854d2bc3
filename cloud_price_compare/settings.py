import logging
import math
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from typing_extensions import Self

from cloud_price_compare.constants import (
    ALL_CLOUDS,
    DEFAULT_INFERRED_SPEC_PENALTY,
    DEFAULT_MISSING_SPEC_PENALTY,
    DEFAULT_UNKNOWN_OS_PENALTY,
)
from cloud_price_compare.instance_matching import (
    MatchPolicy,
    get_default_match_policy,
)
from cloud_price_compare.util import read_file

logger = logging.getLogger(__name__)


class SectionMatching(BaseModel):
    missing_spec_penalty: float = DEFAULT_MISSING_SPEC_PENALTY
    inferred_spec_penalty: float = DEFAULT_INFERRED_SPEC_PENALTY
    unknown_os_penalty: float = DEFAULT_UNKNOWN_OS_PENALTY
    relax_family: list[str] | None = None  # Clouds, None = built-in defaults
    relax_os: list[str] | None = None

    @model_validator(mode="after")
    def check_penalties_non_negative(self) -> Self:
        penalties = (
            self.missing_spec_penalty,
            self.inferred_spec_penalty,
            self.unknown_os_penalty,
        )
        if not all(math.isfinite(p) for p in penalties):
            raise ValueError("Matching penalties must be finite numbers")
        if min(penalties) < 0:
            raise ValueError("Matching penalties can't be negative")
        return self

    @model_validator(mode="after")
    def check_known_clouds(self) -> Self:
        for clouds in (self.relax_family, self.relax_os):
            for c in clouds or []:
                if c not in ALL_CLOUDS:
                    raise ValueError(
                        f"Unknown cloud in relax_* list: {c}. Expected: {ALL_CLOUDS}"
                    )
        return self


class SectionNormalization(BaseModel):
    azure_generation_gating: bool = True  # Only Dv5+ / Bv2 for the D / B families
    dedup_by_category: bool = False


class Settings(BaseModel):
    """Optional YAML file, all sections can be left out:
    ---
    matching:
      unknown_os_penalty: 1
      relax_family: [azure, gcp]
    normalization:
      azure_generation_gating: false
    storage:
      aws:
        ssd_per_gb_month: 0.1
      azure:
        ssd_monthly:
          128: 10.5
    """

    matching: SectionMatching = Field(default_factory=SectionMatching)
    normalization: SectionNormalization = Field(
        default_factory=SectionNormalization
    )
    storage: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_storage_clouds(self) -> Self:
        for c in self.storage:
            if c not in ALL_CLOUDS:
                raise ValueError(
                    f"Unknown cloud in storage section: {c}. Expected: {ALL_CLOUDS}"
                )
        return self

    def get_match_policy(self, cloud: str) -> MatchPolicy:
        policy = get_default_match_policy(cloud)
        policy.missing_spec_penalty = self.matching.missing_spec_penalty
        policy.inferred_spec_penalty = self.matching.inferred_spec_penalty
        policy.unknown_os_penalty = self.matching.unknown_os_penalty
        if self.matching.relax_family is not None:
            policy.relax_family = cloud in self.matching.relax_family
        if self.matching.relax_os is not None:
            policy.relax_os = cloud in self.matching.relax_os
        return policy

    def get_match_policies(self) -> dict[str, MatchPolicy]:
        return {c: self.get_match_policy(c) for c in ALL_CLOUDS}


def load_settings_from_string(settings_yaml_str: str) -> Settings:
    s = yaml.safe_load(settings_yaml_str) or {}
    return Settings(**s)


def load_settings(settings_path: str | None) -> Settings:
    """Defaults if no path given"""
    if not settings_path:
        return Settings()
    try:
        return load_settings_from_string(read_file(settings_path))
    except ValidationError as e:
        logger.error("Failed to validate settings file %s", settings_path)
        logger.error(str(e))
        raise
