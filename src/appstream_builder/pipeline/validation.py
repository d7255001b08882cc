"""Validation gate between extraction and the shared result set."""

from __future__ import annotations

from typing import Iterable, List

import requests

from appstream_builder.config.policies import ValidationPolicy
from appstream_builder.entities.core import Component
from appstream_builder.packages.base import LogLevel, Package
from appstream_builder.utils.helpers import glob_matches_any

_FIELD_VETOES = {
    "icon": "Has no Icon",
    "name": "Has no Name",
    "comment": "Has no Comment",
}


def screen_records(
    package: Package, records: Iterable[Component], policy: ValidationPolicy
) -> List[Component]:
    """Drop unusable records and veto incomplete ones.

    Records without an id and records whose id is denylisted are dropped
    with an info entry in the package log. Missing required fields add a
    veto; vetoed records are kept so they can be reported later.
    """

    kept: List[Component] = []
    for record in records:
        if not record.id:
            package.log.log(LogLevel.INFO, "Dropping record with no id")
            continue
        if glob_matches_any(record.id, policy.denylisted_ids):
            package.log.log(LogLevel.INFO, "App id %s is denylisted", record.id)
            continue
        for field_name in policy.required_fields:
            if not getattr(record, field_name):
                record.add_veto(_FIELD_VETOES[field_name])
        kept.append(record)
    return kept


def inherit_package_data(package: Package, record: Component) -> None:
    """Copy homepage, license and releases from *package* where missing."""

    if package.url:
        record.urls.setdefault("homepage", package.url)
    if package.license and not record.project_license:
        record.project_license = package.license
    if package.releases and not record.releases:
        record.releases = [release.model_copy() for release in package.releases]
    if not record.package_name:
        record.package_name = package.name


def finalize_vetoes(record: Component) -> None:
    """Turn any outstanding ``requires_appdata`` reasons into vetoes."""

    for reason in record.requires_appdata:
        record.add_veto(f"Requires AppData: {reason}")


class UrlChecker:
    """Probe record URLs and report failures to the package log."""

    def __init__(self, timeout: float, session: requests.Session | None = None) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()

    def urls_of(self, record: Component) -> List[str]:
        urls = list(record.urls.values())
        urls.extend(shot.url for shot in record.screenshots)
        return [url for url in urls if url.startswith(("http://", "https://"))]

    def check(self, package: Package, record: Component) -> List[str]:
        """Return the URLs of *record* that could not be reached."""

        failed = []
        for url in self.urls_of(record):
            try:
                response = self._session.head(url, timeout=self._timeout, allow_redirects=True)
            except requests.RequestException as exc:
                package.log.log(LogLevel.WARNING, "%s URL %s failed: %s", record.id, url, exc)
                failed.append(url)
                continue
            if response.status_code >= 400:
                package.log.log(
                    LogLevel.WARNING, "%s URL %s returned HTTP %d", record.id, url, response.status_code
                )
                failed.append(url)
        return failed


__all__ = ["screen_records", "inherit_package_data", "finalize_vetoes", "UrlChecker"]
