"""Collection-wide metadata: available glucose sources and latest pump."""
from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from .constants import BGM_DATA_KEY, CGM_DATA_KEY, PUMP_DEVICE_TAG, UPLOAD_DATA_KEY
from .crossfilter import FilterView
from .models import BgSources, LatestPump

# upload sources reported under a different manufacturer name
_MANUFACTURER_ALIASES = {"carelink": "medtronic"}


def get_bg_sources(view: FilterView) -> BgSources:
    """Which glucose record types exist; CGM wins over meter for ``current``."""

    has_cbg = view.by_type(CGM_DATA_KEY).count() > 0
    has_smbg = view.by_type(BGM_DATA_KEY).count() > 0
    current = CGM_DATA_KEY if has_cbg else BGM_DATA_KEY if has_smbg else None
    return BgSources(cbg=has_cbg, smbg=has_smbg, current=current)


def get_latest_pump_upload(uploads: Sequence[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """Last upload (in the given order) tagged as coming from an insulin pump."""

    for upload in reversed(uploads):
        if PUMP_DEVICE_TAG in (upload.get("deviceTags") or ()):
            return upload
    return None


def get_latest_pump(view: FilterView) -> LatestPump:
    upload = get_latest_pump_upload(view.by_type(UPLOAD_DATA_KEY).records())
    if upload is None:
        return LatestPump()
    source = str(upload.get("source") or "").lower()
    return LatestPump(
        device_model=str(upload.get("deviceModel") or ""),
        manufacturer=_MANUFACTURER_ALIASES.get(source, source),
    )
