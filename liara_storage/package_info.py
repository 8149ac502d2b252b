from __future__ import annotations
"""Distribution metadata helpers."""
from dataclasses import dataclass
from functools import lru_cache
from importlib.metadata import PackageNotFoundError, metadata, version

DIST_NAME = "liara-storage"
USER_AGENT_PRODUCT = "LiaraPythonStorage"


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str
    homepage: str | None
    repository: str | None


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(
            name=dist_name,
            version="",
            summary="Filesystem adapter for the Liara object storage API.",
            homepage=None,
            repository=None,
        )
    homepage = distribution_metadata.get("Home-page")
    repository = None
    for entry in distribution_metadata.get_all("Project-URL") or []:
        label, _, link = entry.partition(",")
        label = label.strip().lower()
        url = link.strip()
        if label == "repository":
            repository = url
        elif label == "homepage" and not homepage:
            homepage = url
    return PackageInfo(
        name=distribution_metadata.get("Name") or dist_name,
        version=package_version,
        summary=distribution_metadata.get("Summary") or "",
        homepage=homepage or None,
        repository=repository,
    )


@lru_cache(maxsize=1)
def default_user_agent() -> str:
    info = load_package_info()
    return f"{USER_AGENT_PRODUCT}/{info.version or '0.0.0'}"
