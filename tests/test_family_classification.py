import pytest

from cloud_price_compare.cloud_impl.cloud_structs import (
    NormalizedInstanceRecord,
)
from cloud_price_compare.constants import (
    CATEGORY_COMPUTE,
    CATEGORY_GENERAL,
    CATEGORY_MEMORY,
    CLOUD_AWS,
    CLOUD_AZURE,
    CLOUD_GCP,
)
from cloud_price_compare.family_classification import (
    FamilyClassification,
    FamilyClassifierAws,
    FamilyClassifierAzure,
    FamilyClassifierAzureUngated,
    FamilyClassifierGcp,
    matches_family,
    parse_azure_series_and_generation,
    split_gcp_machine_type,
)


def test_aws_classification():
    assert FamilyClassifierAws.classify("m5.large") == CATEGORY_GENERAL
    assert FamilyClassifierAws.classify("t3.micro") == CATEGORY_GENERAL
    assert FamilyClassifierAws.classify("c7g.xlarge") == CATEGORY_COMPUTE
    assert FamilyClassifierAws.classify("r6i.2xlarge") == CATEGORY_MEMORY
    assert FamilyClassifierAws.classify("x2idn.16xlarge") == CATEGORY_MEMORY
    assert FamilyClassifierAws.classify("z1d.large") == CATEGORY_MEMORY
    assert FamilyClassifierAws.classify("i3.large") is None
    assert FamilyClassifierAws.classify("") is None


def test_parse_azure_series_and_generation():
    assert parse_azure_series_and_generation("Standard_D4s_v5") == ("d", "v5")
    assert parse_azure_series_and_generation("Standard_B2ms") == ("b", "")
    assert parse_azure_series_and_generation(
        "D4s", "Virtual Machines Dv5 Series"
    ) == ("d", "v5")
    assert parse_azure_series_and_generation("x", "") == ("", "")


def test_azure_classification_gated():
    assert FamilyClassifierAzure.classify("Standard_D4s_v5") == CATEGORY_GENERAL
    assert FamilyClassifierAzure.classify("Standard_D4s_v3") is None
    assert FamilyClassifierAzure.classify("Standard_B2ms") is None
    assert FamilyClassifierAzure.classify("Standard_B2s_v2") == CATEGORY_GENERAL
    assert FamilyClassifierAzure.classify("Standard_F16s_v2") == CATEGORY_COMPUTE
    assert FamilyClassifierAzure.classify("Standard_E8s_v5") == CATEGORY_MEMORY
    assert FamilyClassifierAzure.classify("Standard_M128s") == CATEGORY_MEMORY
    assert FamilyClassifierAzure.classify("Standard_NC6") is None


def test_azure_classification_ungated():
    assert (
        FamilyClassifierAzureUngated.classify("Standard_D4s_v3")
        == CATEGORY_GENERAL
    )
    assert (
        FamilyClassifierAzureUngated.classify("Standard_B2ms")
        == CATEGORY_GENERAL
    )
    assert FamilyClassifierAzureUngated.classify("Standard_NC6") is None


def test_azure_classification_from_product_name():
    assert (
        FamilyClassifierAzure.classify_with_product_name(
            "D4s", "Virtual Machines Dv5 Series"
        )
        == CATEGORY_GENERAL
    )
    assert (
        FamilyClassifierAzure.classify_with_product_name(
            "F4s", "Virtual Machines FSv2 Series"
        )
        == CATEGORY_COMPUTE
    )
    assert (
        FamilyClassifierAzure.classify_with_product_name(
            "D4", "Virtual Machines D Series"
        )
        is None
    )


def test_asserted_category_wins():
    assert (
        FamilyClassifierAws.classify("i3.large", asserted_category="Memory")
        == CATEGORY_MEMORY
    )
    assert FamilyClassifierAws.classify("m5.large", asserted_category="gpu") == "gpu"
    assert (
        FamilyClassifierAzure.classify_with_product_name(
            "Standard_NC6", "", asserted_category="compute"
        )
        == CATEGORY_COMPUTE
    )


def test_split_gcp_machine_type():
    assert split_gcp_machine_type("n2-standard-4") == ("N2", "standard", "4")
    assert split_gcp_machine_type("N2_STANDARD_4") == ("N2", "standard", "4")
    assert split_gcp_machine_type("e2-micro") == ("E2", "micro", "")


def test_gcp_classification():
    assert FamilyClassifierGcp.classify("n2-standard-4") == CATEGORY_GENERAL
    assert FamilyClassifierGcp.classify("N2_STANDARD_4") == CATEGORY_GENERAL
    assert FamilyClassifierGcp.classify("n2-highcpu-8") == CATEGORY_COMPUTE
    assert FamilyClassifierGcp.classify("n2-highmem-8") == CATEGORY_MEMORY
    assert FamilyClassifierGcp.classify("c2-standard-8") == CATEGORY_COMPUTE
    assert FamilyClassifierGcp.classify("m1-megamem-96") == CATEGORY_MEMORY
    assert FamilyClassifierGcp.classify("e2-micro") == CATEGORY_GENERAL
    assert FamilyClassifierGcp.classify("a2-highgpu-1g") is None


def test_classification_never_raises():
    for weird in [None, "", " ", "-", "_", ".", 123, "standard_", "..."]:
        for classifier in [
            FamilyClassifierAws,
            FamilyClassifierAzure,
            FamilyClassifierGcp,
        ]:
            assert classifier.classify(weird) is None  # type: ignore


def test_get_classifier():
    assert FamilyClassification.get_classifier(CLOUD_AWS) == FamilyClassifierAws
    assert (
        FamilyClassification.get_classifier(CLOUD_AZURE) == FamilyClassifierAzure
    )
    assert (
        FamilyClassification.get_classifier(
            CLOUD_AZURE, azure_generation_gating=False
        )
        == FamilyClassifierAzureUngated
    )
    assert FamilyClassification.get_classifier(CLOUD_GCP) == FamilyClassifierGcp
    with pytest.raises(Exception):
        FamilyClassification.get_classifier("oci")


def test_matches_family():
    rec = NormalizedInstanceRecord(
        instance="m5.large",
        price_per_hour_usd=0.096,
        region="us-east-1",
        cloud=CLOUD_AWS,
        category=CATEGORY_GENERAL,
    )
    assert matches_family(rec, None)
    assert matches_family(rec, "")
    assert matches_family(rec, "General")
    assert not matches_family(rec, CATEGORY_MEMORY)

    # No stored category, naming rules apply without Azure generation gating
    rec_no_cat = NormalizedInstanceRecord(
        instance="Standard_D4s_v3",
        price_per_hour_usd=0.19,
        region="eastus",
        cloud=CLOUD_AZURE,
    )
    assert matches_family(rec_no_cat, CATEGORY_GENERAL)
    assert not matches_family(rec_no_cat, CATEGORY_COMPUTE)
