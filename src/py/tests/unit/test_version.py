import threading
from pathlib import Path
from unittest.mock import Mock

import pytest

from litestar_inertia.version import InertiaVersion, VersionCheck, negotiate_version


@pytest.mark.parametrize(
    ("client_version", "current_version", "is_inertia", "expected"),
    [
        ("v1", "v1", True, VersionCheck.FRESH),
        (None, "v1", True, VersionCheck.FRESH),
        ("v0", None, True, VersionCheck.FRESH),
        ("v0", "v1", True, VersionCheck.FORCED_REFRESH),
        ("v0", "v1", False, VersionCheck.REDIRECT),
    ],
    ids=["equal", "absent", "no-server-version", "stale-hydrated", "stale-plain"],
)
def test_negotiate_version(
    client_version: "str | None", current_version: "str | None", is_inertia: bool, expected: VersionCheck
) -> None:
    assert negotiate_version(client_version, current_version, is_inertia=is_inertia) is expected


def test_literal_version() -> None:
    version = InertiaVersion("1.2.3")

    assert version.is_literal
    assert version.get() == "1.2.3"
    assert str(version) == "1.2.3"


def test_resolver_is_invoked_once_by_default() -> None:
    resolver = Mock(return_value="abc")
    version = InertiaVersion(resolver)

    assert resolver.call_count == 0
    assert version.get() == "abc"
    assert version.get() == "abc"
    assert resolver.call_count == 1


def test_resolver_is_invoked_once_across_threads() -> None:
    resolver = Mock(return_value="abc")
    version = InertiaVersion(resolver)

    threads = [threading.Thread(target=version.get) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert resolver.call_count == 1


def test_per_request_resolver_is_invoked_on_every_lookup() -> None:
    resolver = Mock(side_effect=["a", "b"])
    version = InertiaVersion(resolver, per_request=True)

    assert version.get() == "a"
    assert version.get() == "b"


def test_version_from_manifest(tmp_path: Path) -> None:
    manifest = tmp_path / "manifest.json"
    manifest.write_text('{"resources/main.ts": {"file": "assets/main-4b1.js"}}')

    version = InertiaVersion.from_manifest(manifest)

    assert len(version.get()) == 64
    assert version.get() == InertiaVersion.from_manifest(manifest).get()


def test_version_from_missing_manifest(tmp_path: Path) -> None:
    assert InertiaVersion.from_manifest(tmp_path / "missing.json").get() == "1.0"
