import logging
import re
from typing import Type

from cloud_price_compare.cloud_impl.cloud_structs import (
    NormalizedInstanceRecord,
)
from cloud_price_compare.constants import (
    ALL_CATEGORIES,
    CATEGORY_COMPUTE,
    CATEGORY_GENERAL,
    CATEGORY_MEMORY,
    CLOUD_AWS,
    CLOUD_AZURE,
    CLOUD_GCP,
)

logger = logging.getLogger(__name__)

AWS_FAMILY_LETTER_CATEGORIES = {
    "m": CATEGORY_GENERAL,
    "t": CATEGORY_GENERAL,
    "c": CATEGORY_COMPUTE,
    "r": CATEGORY_MEMORY,
    "x": CATEGORY_MEMORY,
    "z": CATEGORY_MEMORY,
}

AZURE_FAMILY_LETTER_CATEGORIES = {
    "d": CATEGORY_GENERAL,
    "b": CATEGORY_GENERAL,
    "f": CATEGORY_COMPUTE,
    "e": CATEGORY_MEMORY,
    "m": CATEGORY_MEMORY,
}
# Only current generations for the families that have many legacy ones
AZURE_ALLOWED_GENERATIONS = {
    "d": ("v5", "v6", "v7"),
    "b": ("v2",),
}

GCP_SERIES_CATEGORIES = {
    "E2": CATEGORY_GENERAL,
    "N1": CATEGORY_GENERAL,
    "N2": CATEGORY_GENERAL,
    "N2D": CATEGORY_GENERAL,
    "N4": CATEGORY_GENERAL,
    "T2A": CATEGORY_GENERAL,
    "T2D": CATEGORY_GENERAL,
    "C2": CATEGORY_COMPUTE,
    "C2D": CATEGORY_COMPUTE,
    "C3": CATEGORY_COMPUTE,
    "C3D": CATEGORY_COMPUTE,
    "C4": CATEGORY_COMPUTE,
    "H3": CATEGORY_COMPUTE,
    "H4D": CATEGORY_COMPUTE,
    "M1": CATEGORY_MEMORY,
    "M2": CATEGORY_MEMORY,
    "M3": CATEGORY_MEMORY,
    "M4": CATEGORY_MEMORY,
}
GCP_MACHINE_CLASS_CATEGORIES = {
    "highcpu": CATEGORY_COMPUTE,
    "highmem": CATEGORY_MEMORY,
    "ultramem": CATEGORY_MEMORY,
    "megamem": CATEGORY_MEMORY,
}


def normalize_asserted_category(asserted_category) -> str | None:
    """Known categories are lowercased, anything else passes through as is"""
    if not asserted_category or not isinstance(asserted_category, str):
        return None
    if asserted_category.strip().lower() in ALL_CATEGORIES:
        return asserted_category.strip().lower()
    return asserted_category


class FamilyClassifier:

    @classmethod
    def classify(
        cls, instance: str, asserted_category: str | None = None
    ) -> str | None:
        """Server / provider asserted category wins over naming rules.
        Returns None for unclassified instances, never raises."""
        category = normalize_asserted_category(asserted_category)
        if category:
            return category
        if not instance or not isinstance(instance, str):
            return None
        try:
            return cls.classify_by_name(instance.strip())
        except Exception:
            logger.debug(
                "%s failed to classify %s", cls.__name__, instance
            )
            return None

    @classmethod
    def classify_by_name(cls, instance: str) -> str | None:
        raise NotImplementedError(
            f"{cls.__name__} has not implemented the classify_by_name method"
        )


class FamilyClassifierAws(FamilyClassifier):
    """m5.large -> general, c7g.xlarge -> compute, r6i.2xlarge -> memory"""

    @classmethod
    def classify_by_name(cls, instance: str) -> str | None:
        return AWS_FAMILY_LETTER_CATEGORIES.get(instance[:1].lower())


def parse_azure_series_and_generation(
    instance: str, product_name: str = ""
) -> tuple[str, str]:
    """Standard_D4s_v5 -> ("d", "v5"), Standard_B2ms -> ("b", "").
    Falls back to product names like 'Dv5 Series' / 'Bsv2-series Linux'."""
    n = instance.strip().lower()
    m = re.match(r"^standard_([a-z]+)", n)
    if m:
        series = m.group(1)
        gen = re.search(r"_(v\d+)$", n)
        return series, gen.group(1) if gen else ""
    pn = str(product_name or "").lower()
    m2 = re.search(r"\b([a-z]+?)[a-z0-9]*?(v\d+)?[ -]?series", pn)
    if m2:
        return m2.group(1), m2.group(2) or ""
    return "", ""


class FamilyClassifierAzure(FamilyClassifier):

    generation_gating: bool = True

    @classmethod
    def classify_by_name(
        cls, instance: str, product_name: str = ""
    ) -> str | None:
        series, generation = parse_azure_series_and_generation(
            instance, product_name
        )
        if not series:
            return None
        lead = series[0]
        category = AZURE_FAMILY_LETTER_CATEGORIES.get(lead)
        if not category:
            return None
        if cls.generation_gating and lead in AZURE_ALLOWED_GENERATIONS:
            if generation not in AZURE_ALLOWED_GENERATIONS[lead]:
                return None
        return category

    @classmethod
    def classify_with_product_name(
        cls,
        instance: str,
        product_name: str,
        asserted_category: str | None = None,
    ) -> str | None:
        category = normalize_asserted_category(asserted_category)
        if category:
            return category
        if not isinstance(instance, str):
            instance = ""
        try:
            return cls.classify_by_name(instance, product_name)
        except Exception:
            logger.debug("Failed to classify Azure SKU %s", instance)
            return None


class FamilyClassifierAzureUngated(FamilyClassifierAzure):

    generation_gating = False


def split_gcp_machine_type(instance: str) -> tuple[str, str, str]:
    """n2-standard-4 / N2_STANDARD_4 -> ("N2", "standard", "4"), m1-megamem-96 -> ("M1", "megamem", "96")"""
    parts = re.split(r"[-_]", instance.strip())
    series = parts[0].upper() if parts else ""
    machine_class = parts[1].lower() if len(parts) > 1 else ""
    size = parts[2] if len(parts) > 2 else ""
    return series, machine_class, size


class FamilyClassifierGcp(FamilyClassifier):

    @classmethod
    def classify_by_name(cls, instance: str) -> str | None:
        series, machine_class, _ = split_gcp_machine_type(instance)
        series_category = GCP_SERIES_CATEGORIES.get(series)
        if not series_category:
            return None
        for class_prefix, category in GCP_MACHINE_CLASS_CATEGORIES.items():
            if machine_class.startswith(class_prefix):
                return category
        return series_category


class FamilyClassification:

    @classmethod
    def get_classifier(
        cls, cloud: str, azure_generation_gating: bool = True
    ) -> Type[FamilyClassifier]:
        if cloud == CLOUD_AZURE and not azure_generation_gating:
            return FamilyClassifierAzureUngated
        classifiers = {
            CLOUD_AWS: FamilyClassifierAws,
            CLOUD_AZURE: FamilyClassifierAzure,
            CLOUD_GCP: FamilyClassifierGcp,
        }
        if cloud not in classifiers:
            raise Exception(f"No family classifier for cloud {cloud}")
        return classifiers[cloud]


def matches_family(
    record: NormalizedInstanceRecord, family: str | None
) -> bool:
    """Prefer the category assigned at normalization, naming rules otherwise"""
    if not family:
        return True
    wanted = family.strip().lower()
    if record.category:
        return str(record.category).lower() == wanted
    # Display filter only, so no generation gating here
    classifier = FamilyClassification.get_classifier(
        record.cloud, azure_generation_gating=False
    )
    return classifier.classify(record.instance) == wanted
