import json
import logging
import os
import tempfile
from datetime import datetime, timezone

from cloud_price_compare.cloud_impl.cloud_structs import (
    AggregatedDataset,
    NormalizedInstanceRecord,
    ProviderMeta,
    ProviderResult,
)
from cloud_price_compare.cloud_impl.cloud_util import uniq_sorted_nums
from cloud_price_compare.constants import ALL_CLOUDS
from cloud_price_compare.storage import StorageConfig

logger = logging.getLogger(__name__)


class NoProviderDataError(Exception):
    pass


class UnexpectedDatasetShapeError(Exception):
    pass


def union_meta(metas: list[ProviderMeta]) -> ProviderMeta:
    """OS in first seen order, vcpu / ram sorted and deduplicated"""
    os_values: list[str] = []
    vcpus: list = []
    rams: list = []
    for m in metas:
        for o in m.os:
            if o not in os_values:
                os_values.append(o)
        vcpus.extend(m.vcpu)
        rams.extend(m.ram)
    return ProviderMeta(
        os=os_values, vcpu=uniq_sorted_nums(vcpus), ram=uniq_sorted_nums(rams)
    )


def utc_now_iso() -> str:
    """2024-01-01T00:00:00.000Z"""
    return (
        datetime.now(timezone.utc).isoformat(timespec="milliseconds")[:-6]
        + "Z"
    )


def aggregate(
    results: list[ProviderResult],
    storage_config: StorageConfig | None = None,
    generated_at: str | None = None,
) -> AggregatedDataset:
    """Partial results are fine (with a warning per provider), nothing at all is not"""
    by_cloud = {r.cloud: r for r in results}
    empty_providers = [
        c for c in ALL_CLOUDS if not (c in by_cloud and by_cloud[c].records)
    ]
    if len(empty_providers) == len(ALL_CLOUDS):
        raise NoProviderDataError(
            "No provider returned any usable pricing records, not producing a dataset"
        )
    for c in empty_providers:
        logger.warning(
            "[%s] No pricing records - dataset will be missing the provider",
            c.upper(),
        )

    ds = AggregatedDataset(
        meta=union_meta([r.meta for r in results]),
        generated_at=generated_at or utc_now_iso(),
        storage=storage_config.to_dict() if storage_config else {},
        empty_providers=empty_providers,
    )
    for c in ALL_CLOUDS:
        if c in by_cloud:
            setattr(ds, c, list(by_cloud[c].records))
    return ds


def dataset_to_dict(ds: AggregatedDataset) -> dict:
    d: dict = {"meta": ds.meta.to_dict()}
    for c in ALL_CLOUDS:
        d[c] = [r.to_dict() for r in ds.records_for(c)]
    if ds.storage:
        d["storage"] = ds.storage
    if ds.empty_providers:
        d["warnings"] = [
            f"No pricing records for {c}" for c in ds.empty_providers
        ]
    d["generatedAt"] = ds.generated_at
    return d


def _meta_from_dict(meta: dict | None) -> ProviderMeta:
    meta = meta or {}
    return ProviderMeta(
        os=list(meta.get("os") or []),
        vcpu=uniq_sorted_nums(meta.get("vcpu") or []),
        ram=uniq_sorted_nums(meta.get("ram") or []),
    )


def _is_wrapped_shape(doc: dict) -> bool:
    return any(
        isinstance(doc.get(c), dict) and "compute" in doc[c]
        for c in ALL_CLOUDS
    )


def _rows_or_empty(rows) -> list:
    """Provider rows must be a JSON array, anything else counts as no data"""
    return rows if isinstance(rows, list) else []


def load_dataset(doc: dict) -> AggregatedDataset:
    """Accepts the flat shape {"meta": .., "aws": [..], "azure": [..], "gcp": [..], "generatedAt": ..}
    or the older per provider wrapped shape {"aws": {"meta": .., "compute": [..], "storage": ..}}.
    """
    if not isinstance(doc, dict):
        raise UnexpectedDatasetShapeError(
            f"Unexpected dataset shape: expected a JSON object, got {type(doc).__name__}"
        )

    if _is_wrapped_shape(doc):
        records: dict[str, list] = {}
        metas: list[ProviderMeta] = []
        storage: dict = {}
        for c in ALL_CLOUDS:
            wrapped = doc.get(c)
            if not isinstance(wrapped, dict):
                records[c] = []
                continue
            records[c] = _rows_or_empty(wrapped.get("compute"))
            metas.append(_meta_from_dict(wrapped.get("meta")))
            if wrapped.get("storage"):
                storage[c] = wrapped["storage"]
        meta = union_meta(metas)
        generated_at = doc.get("generatedAt") or ""
    elif any(isinstance(doc.get(c), list) for c in ALL_CLOUDS):
        records = {c: _rows_or_empty(doc.get(c)) for c in ALL_CLOUDS}
        meta = _meta_from_dict(doc.get("meta"))
        storage = doc.get("storage") or {}
        generated_at = doc.get("generatedAt") or ""
    else:
        raise UnexpectedDatasetShapeError(
            "Unexpected dataset shape: no provider arrays or wrapped provider objects found"
        )

    ds = AggregatedDataset(
        meta=meta, generated_at=generated_at, storage=storage
    )
    for c in ALL_CLOUDS:
        rows = []
        for r in records[c]:
            try:
                rows.append(NormalizedInstanceRecord.from_dict(r, c))
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed %s dataset row: %s", c, r)
        setattr(ds, c, rows)
        if not rows:
            ds.empty_providers.append(c)
    return ds


def load_dataset_from_file(path: str) -> AggregatedDataset:
    with open(os.path.expanduser(path)) as f:
        return load_dataset(json.load(f))


def write_json_atomically(path: str, doc: dict) -> None:
    dir_name = os.path.dirname(os.path.abspath(path))
    os.makedirs(dir_name, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(doc, f, indent=2)
        os.replace(tmp_path, path)
    except Exception:
        os.unlink(tmp_path)
        raise


def providers_lost_since_previous(
    ds: AggregatedDataset, previous: AggregatedDataset
) -> list[str]:
    return [
        c
        for c in ALL_CLOUDS
        if previous.records_for(c) and not ds.records_for(c)
    ]


def publish_dataset(ds: AggregatedDataset, path: str) -> bool:
    """Persists the dataset unless that would replace last-known-good provider data
    with nothing. Returns False (keeping the old file) in that case."""
    path = os.path.expanduser(path)
    if all(not ds.records_for(c) for c in ALL_CLOUDS):
        logger.error(
            "All providers empty - not overwriting the dataset at %s", path
        )
        return False

    if os.path.exists(path):
        try:
            previous = load_dataset_from_file(path)
        except (
            OSError,
            json.JSONDecodeError,
            UnexpectedDatasetShapeError,
        ) as e:
            logger.warning(
                "Could not read the existing dataset at %s, overwriting: %s",
                path,
                e,
            )
        else:
            lost = providers_lost_since_previous(ds, previous)
            if lost:
                logger.error(
                    "Providers %s returned no records but have data in the existing dataset %s - skipping write, keeping the last good copy",
                    lost,
                    path,
                )
                return False

    write_json_atomically(path, dataset_to_dict(ds))
    logger.info("Dataset written to %s", path)
    return True
