import pytest
from pydantic import ValidationError

from cloud_price_compare.constants import (
    CLOUD_AWS,
    CLOUD_AZURE,
    CLOUD_GCP,
    DEFAULT_MISSING_SPEC_PENALTY,
)
from cloud_price_compare.settings import (
    Settings,
    load_settings,
    load_settings_from_string,
)

TEST_SETTINGS = """
---
matching:
  unknown_os_penalty: 1
  inferred_spec_penalty: 0.1
  relax_family: [azure, gcp]
normalization:
  azure_generation_gating: false
  dedup_by_category: true
storage:
  aws:
    ssd_per_gb_month: 0.1
  azure:
    ssd_monthly:
      128: 10.5
"""


def test_load_settings_from_string():
    s = load_settings_from_string(TEST_SETTINGS)
    assert s.matching.unknown_os_penalty == 1
    assert s.matching.inferred_spec_penalty == 0.1
    assert s.matching.missing_spec_penalty == DEFAULT_MISSING_SPEC_PENALTY
    assert not s.normalization.azure_generation_gating
    assert s.normalization.dedup_by_category
    assert s.storage[CLOUD_AWS]["ssd_per_gb_month"] == 0.1
    assert s.storage[CLOUD_AZURE]["ssd_monthly"][128] == 10.5


def test_empty_settings():
    s = load_settings_from_string("")
    assert s.normalization.azure_generation_gating
    assert not s.normalization.dedup_by_category
    assert s.storage == {}
    assert load_settings(None) == Settings()
    assert load_settings("") == Settings()


def test_match_policies():
    s = load_settings_from_string(TEST_SETTINGS)
    aws = s.get_match_policy(CLOUD_AWS)
    assert aws.unknown_os_penalty == 1
    assert not aws.relax_family
    assert not aws.relax_os
    gcp = s.get_match_policy(CLOUD_GCP)
    assert gcp.relax_family
    assert not gcp.relax_os
    # relax_os not set, built-in default kept
    assert s.get_match_policy(CLOUD_AZURE).relax_os

    policies = Settings().get_match_policies()
    assert list(policies.keys()) == [CLOUD_AWS, CLOUD_AZURE, CLOUD_GCP]
    assert policies[CLOUD_AZURE].relax_family
    assert not policies[CLOUD_GCP].relax_family


def test_relax_lists_can_disable_defaults():
    s = load_settings_from_string("matching:\n  relax_os: []\n")
    assert not s.get_match_policy(CLOUD_AZURE).relax_os
    assert s.get_match_policy(CLOUD_AZURE).relax_family


def test_settings_validation():
    with pytest.raises(ValidationError):
        load_settings_from_string("matching:\n  unknown_os_penalty: -1\n")
    with pytest.raises(ValidationError):
        load_settings_from_string("matching:\n  relax_os: [oci]\n")
    with pytest.raises(ValidationError):
        load_settings_from_string("storage:\n  oci:\n    x: 1\n")
    with pytest.raises(ValidationError):
        load_settings_from_string("normalization:\n  dedup_by_category: maybe\n")
    with pytest.raises(ValidationError):
        load_settings_from_string("matching:\n  missing_spec_penalty: .inf\n")
    with pytest.raises(ValidationError):
        load_settings_from_string("matching:\n  unknown_os_penalty: .nan\n")


def test_load_settings_from_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(TEST_SETTINGS)
    s = load_settings(str(path))
    assert s.matching.relax_family == [CLOUD_AZURE, CLOUD_GCP]

    path.write_text("matching:\n  missing_spec_penalty: -5\n")
    with pytest.raises(ValidationError):
        load_settings(str(path))

    with pytest.raises(OSError):
        load_settings(str(tmp_path / "missing.yaml"))
