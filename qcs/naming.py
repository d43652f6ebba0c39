#!/usr/bin/env python3
"""
naming.py

Maps a parsed crash report to the debug-symbol artifact of the exact build
that produced it.

The goal is to return:
  ArtifactIdentity  (channel, version, platform, uuid, ...)
  ArtifactLocation  (cache path, primary URL, fallback URL or None)

Remote layout on the symbol storage host:

  version-addressed:
      <channel>/zed-<version>-<target>.dbg            (panic, desktop app)
      <channel>/remote_server-<version>-<target>.dbg  (panic, remote server)
      <channel>/Zed-<version>-<arch>.dwarf            (native crash)
  UUID-addressed:
      by-uuid/<uuid>.dwarf

Every remote file is stored gzip-compressed with an extra ".gz" suffix.
Everything here is pure; nothing touches the filesystem or network.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from qcs.parser import Channel, CrashReport, NativeCrash, StructuredPanic


SERVER_VERSION_PREFIX = "remote-server-"

AARCH64_TRIPLE = "aarch64-apple-darwin"
X86_64_TRIPLE = "x86_64-apple-darwin"

COMPRESSED_SUFFIX = ".gz"


@dataclass(frozen=True)
class ArtifactIdentity:
    channel: Channel
    version: str
    platform: str
    uuid: Optional[str] = None
    basename: str = "zed"
    extension: str = ".dbg"


@dataclass(frozen=True)
class ArtifactLocation:
    """
    artifact_name:
        Cache-relative name, "<channel>/<file>".
    local_path:
        Decompressed artifact path under the cache root.
    remote_primary_url / remote_fallback_url:
        URLs of the compressed artifact. The fallback is only set when the
        primary is UUID-addressed.
    """
    artifact_name: str
    local_path: Path
    remote_primary_url: str
    remote_fallback_url: Optional[str] = None


# ---------------------------------------------------------------------------
# Field normalization
# ---------------------------------------------------------------------------

def channel_from_bundle_id(bundle_id: str) -> Channel:
    """
    Infer the release channel from a macOS bundle identifier.

    This is a substring match on the identifier naming scheme
    (e.g. "dev.zed.Zed-Nightly"); if that scheme changes, this is the only
    place to update.
    """
    if "Nightly" in bundle_id:
        return Channel.NIGHTLY
    if "Preview" in bundle_id:
        return Channel.PREVIEW
    return Channel.STABLE


def triple_from_cpu_type(cpu_type: str) -> str:
    if "ARM-64" in cpu_type:
        return AARCH64_TRIPLE
    return X86_64_TRIPLE


def split_server_version(version: str) -> Tuple[str, str]:
    """
    Return (basename, effective_version).

        "remote-server-1.2.3" -> ("remote_server", "1.2.3")
        "1.2.3"               -> ("zed", "1.2.3")
    """
    if version.startswith(SERVER_VERSION_PREFIX):
        return "remote_server", version[len(SERVER_VERSION_PREFIX):]
    return "zed", version


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def identify(report: CrashReport) -> ArtifactIdentity:
    if isinstance(report, StructuredPanic):
        basename, version = split_server_version(report.app_version)
        return ArtifactIdentity(
            channel=report.release_channel,
            version=version,
            platform=report.target_triple,
            uuid=None,
            basename=basename,
            extension=".dbg",
        )

    if isinstance(report, NativeCrash):
        return ArtifactIdentity(
            channel=channel_from_bundle_id(report.bundle_id),
            version=report.app_version,
            platform=triple_from_cpu_type(report.cpu_type),
            uuid=report.uuid,
            basename="Zed",
            extension=".dwarf",
        )

    raise TypeError(f"unsupported report type: {type(report).__name__}")


def version_addressed_name(identity: ArtifactIdentity) -> str:
    return (
        f"{identity.channel.value}/"
        f"{identity.basename}-{identity.version}-{identity.platform}{identity.extension}"
    )


def uuid_addressed_name(uuid: str) -> str:
    return f"by-uuid/{uuid}.dwarf"


def remote_url(base_url: str, name: str) -> str:
    return f"{base_url.rstrip('/')}/{name}{COMPRESSED_SUFFIX}"


def locate(identity: ArtifactIdentity, cache_root: Path, base_url: str) -> ArtifactLocation:
    """
    Build the cache path and remote URLs for an identity.

    With a UUID the UUID-addressed URL is primary and the version-addressed
    one is the fallback; the cache file is keyed by UUID. Without a UUID
    only the version-addressed URL exists.
    """
    versioned = version_addressed_name(identity)

    if identity.uuid:
        artifact_name = f"{identity.channel.value}/{identity.uuid}.dwarf"
        return ArtifactLocation(
            artifact_name=artifact_name,
            local_path=cache_root / identity.channel.value / f"{identity.uuid}.dwarf",
            remote_primary_url=remote_url(base_url, uuid_addressed_name(identity.uuid)),
            remote_fallback_url=remote_url(base_url, versioned),
        )

    return ArtifactLocation(
        artifact_name=versioned,
        local_path=cache_root.joinpath(*versioned.split("/")),
        remote_primary_url=remote_url(base_url, versioned),
        remote_fallback_url=None,
    )


__all__ = [
    "SERVER_VERSION_PREFIX",
    "AARCH64_TRIPLE",
    "X86_64_TRIPLE",
    "ArtifactIdentity",
    "ArtifactLocation",
    "channel_from_bundle_id",
    "triple_from_cpu_type",
    "split_server_version",
    "identify",
    "version_addressed_name",
    "uuid_addressed_name",
    "remote_url",
    "locate",
]
