from dataclasses import dataclass, field

from cloud_price_compare.constants import OS_UNKNOWN


@dataclass
class NormalizedInstanceRecord:
    instance: str
    price_per_hour_usd: float
    region: str
    cloud: str
    os: str = OS_UNKNOWN
    vcpu: int | None = None
    ram: float | None = None  # GiB
    category: str | None = None
    specs_inferred: bool = False

    def to_dict(self) -> dict:
        """Flat schema keys as consumed by the UI layer"""
        d: dict = {
            "instance": self.instance,
            "vcpu": self.vcpu,
            "ram": self.ram,
            "pricePerHourUSD": self.price_per_hour_usd,
            "region": self.region,
            "os": self.os,
        }
        if self.category:
            d["category"] = self.category
        if self.specs_inferred:
            d["specsInferred"] = True
        return d

    @classmethod
    def from_dict(cls, d: dict, cloud: str) -> "NormalizedInstanceRecord":
        return cls(
            instance=str(d["instance"]),
            price_per_hour_usd=float(d["pricePerHourUSD"]),
            region=d.get("region", ""),
            cloud=cloud,
            os=d.get("os") or OS_UNKNOWN,
            vcpu=int(d["vcpu"]) if d.get("vcpu") is not None else None,
            ram=float(d["ram"]) if d.get("ram") is not None else None,
            category=d.get("category") or None,
            specs_inferred=bool(d.get("specsInferred")),
        )


@dataclass
class ProviderMeta:
    os: list[str] = field(default_factory=list)
    vcpu: list[int] = field(default_factory=list)
    ram: list[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"os": self.os, "vcpu": self.vcpu, "ram": self.ram}


@dataclass
class ProviderResult:
    cloud: str
    region: str
    records: list[NormalizedInstanceRecord] = field(default_factory=list)
    meta: ProviderMeta = field(default_factory=ProviderMeta)
    raw_count: int = 0
    skipped_count: int = 0


@dataclass
class AggregatedDataset:
    meta: ProviderMeta
    generated_at: str
    aws: list[NormalizedInstanceRecord] = field(default_factory=list)
    azure: list[NormalizedInstanceRecord] = field(default_factory=list)
    gcp: list[NormalizedInstanceRecord] = field(default_factory=list)
    storage: dict = field(default_factory=dict)
    empty_providers: list[str] = field(default_factory=list)

    def records_for(self, cloud: str) -> list[NormalizedInstanceRecord]:
        return getattr(self, cloud)


@dataclass
class InferredSpecs:
    vcpu: int | None = None
    ram: float | None = None
    authoritative: bool = False

    @property
    def complete(self) -> bool:
        return self.vcpu is not None and self.ram is not None


@dataclass
class StorageQuote:
    volume_type: str
    requested_gb: float
    billed_gb: float
    monthly_usd: float
    hourly_usd: float
    adjusted: bool = False
    sku: str = ""
