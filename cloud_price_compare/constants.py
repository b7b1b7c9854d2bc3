CLOUD_AWS = "aws"
CLOUD_AZURE = "azure"
CLOUD_GCP = "gcp"
ALL_CLOUDS = [CLOUD_AWS, CLOUD_AZURE, CLOUD_GCP]

OS_LINUX = "Linux"
OS_WINDOWS = "Windows"
OS_UNKNOWN = "Unknown"

CATEGORY_GENERAL = "general"
CATEGORY_COMPUTE = "compute"
CATEGORY_MEMORY = "memory"
ALL_CATEGORIES = [CATEGORY_GENERAL, CATEGORY_COMPUTE, CATEGORY_MEMORY]

STORAGE_TYPE_SSD = "ssd"
STORAGE_TYPE_HDD = "hdd"

HOURS_PER_MONTH = 730

DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_AZURE_REGION = "eastus"
DEFAULT_GCP_REGION = "us-east1"

DEFAULT_CONFIG_DIR = "~/.cloud-price-compare"
DEFAULT_DATASET_PATH = "data/prices.json"

# Matcher scoring policy. Empirical values, tunable via the settings file
DEFAULT_MISSING_SPEC_PENALTY = 9999.0
DEFAULT_INFERRED_SPEC_PENALTY = 0.25
DEFAULT_UNKNOWN_OS_PENALTY = 0.5

# Matched against product / SKU / meter names, lowercased
INELIGIBLE_PRICE_KEYWORDS = [
    "spot",
    "low priority",
    "reserved",
    "savings plan",
    "promo",
    "devtest",
    "dev/test",
]

# https://aws.amazon.com/ebs/pricing/ - gp3 and st1, us-east-1
DEFAULT_AWS_STORAGE = {"ssd_per_gb_month": 0.08, "hdd_per_gb_month": 0.045}
# https://cloud.google.com/compute/disks-image-pricing - pd-ssd and pd-standard
DEFAULT_GCP_STORAGE = {"ssd_per_gb_month": 0.17, "hdd_per_gb_month": 0.04}
# Azure Managed Disks, Standard SSD (E*) and Standard HDD (S*) LRS monthly
DEFAULT_AZURE_STORAGE = {
    "ssd_monthly": {
        4: 0.3,
        8: 0.6,
        16: 1.2,
        32: 2.4,
        64: 4.8,
        128: 9.6,
        256: 19.2,
        512: 38.4,
    },
    "hdd_monthly": {32: 1.536, 64: 3.008, 128: 5.888, 256: 11.328},
}

AZURE_SSD_DISK_SKU_SIZES = {
    "E1": 4,
    "E2": 8,
    "E3": 16,
    "E4": 32,
    "E6": 64,
    "E10": 128,
    "E15": 256,
    "E20": 512,
    "E30": 1024,
    "E40": 2048,
    "E50": 4096,
}
AZURE_HDD_DISK_SKU_SIZES = {
    "S4": 32,
    "S6": 64,
    "S10": 128,
    "S15": 256,
    "S20": 512,
    "S30": 1024,
    "S40": 2048,
    "S50": 4096,
}
AZURE_MIN_HDD_DISK_SIZE_GB = 32
