"""
Default MPM profiles and resolution of the effective httpd limits.

A profile is identified by (httpd version, MPM name) and maps each Tunable
to its compiled-in default. The worker, event and eventopt MPMs share one
set of defaults. Values found in the config file's MPM block override the
defaults, deprecated directive names are migrated to their current names,
and every value is validated before limits are derived from it.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path

from httpd_limits.errors import (
    InvalidConfiguration,
    ResourceUnavailable,
    UnsupportedConcurrencyModel,
    UnsupportedVersion,
)
from httpd_limits.models import EffectiveLimits, HttpdInfo, Tunable

logger = logging.getLogger(__name__)

Version = tuple[int, int]

PREFORK = "prefork"
THREADED_MODELS = ("worker", "event", "eventopt")
MIN_VERSION: Version = (2, 2)

# version -> deprecated directive -> current directive
RENAMES: dict[Version, dict[Tunable, Tunable]] = {
    (2, 4): {
        Tunable.MAX_CLIENTS: Tunable.MAX_REQUEST_WORKERS,
        Tunable.MAX_REQUESTS_PER_CHILD: Tunable.MAX_CONNECTIONS_PER_CHILD,
    },
}

_BY_LOWER_NAME = {tunable.value.lower(): tunable for tunable in Tunable}

_DIRECTIVE = re.compile(r"^\s*([A-Za-z]+)\s+(\d+)")


def _build_profiles() -> dict[tuple[Version, str], dict[Tunable, int]]:
    """Build the (version, mpm) -> defaults table."""
    prefork_22 = {
        Tunable.START_SERVERS: 5,
        Tunable.MIN_SPARE_SERVERS: 5,
        Tunable.MAX_SPARE_SERVERS: 10,
        Tunable.SERVER_LIMIT: 256,
        Tunable.MAX_CLIENTS: 256,
        Tunable.MAX_REQUESTS_PER_CHILD: 10000,
    }
    worker_22 = {
        Tunable.START_SERVERS: 3,
        Tunable.MIN_SPARE_THREADS: 75,
        Tunable.MAX_SPARE_THREADS: 250,
        Tunable.THREADS_PER_CHILD: 25,
        Tunable.SERVER_LIMIT: 16,
        Tunable.MAX_CLIENTS: 400,
        Tunable.MAX_REQUESTS_PER_CHILD: 10000,
    }

    def current_names(legacy: dict[Tunable, int]) -> dict[Tunable, int]:
        renamed = {RENAMES[(2, 4)].get(tunable, tunable): value for tunable, value in legacy.items()}
        renamed[Tunable.MAX_CONNECTIONS_PER_CHILD] = 0
        return renamed

    profiles: dict[tuple[Version, str], dict[Tunable, int]] = {}
    for version, prefork, worker in (
        ((2, 2), prefork_22, worker_22),
        ((2, 4), current_names(prefork_22), current_names(worker_22)),
    ):
        profiles[(version, PREFORK)] = prefork
        for model in THREADED_MODELS:
            profiles[(version, model)] = dict(worker)
    return profiles


DEFAULT_PROFILES = _build_profiles()
SUPPORTED_VERSIONS: tuple[Version, ...] = tuple(sorted({version for version, _ in DEFAULT_PROFILES}))


def format_version(version: Version) -> str:
    return f"{version[0]}.{version[1]}"


def worker_cap_for(defaults: dict[Tunable, int]) -> Tunable:
    """MaxClients on legacy profiles, MaxRequestWorkers on current ones."""
    if Tunable.MAX_REQUEST_WORKERS in defaults:
        return Tunable.MAX_REQUEST_WORKERS
    return Tunable.MAX_CLIENTS


def select_profile(version: Version, mpm: str) -> tuple[Version, list[str]]:
    """
    Pick the profile version to use for a detected httpd version and MPM.

    Returns:
        The profile version and any informational notes.

    Raises:
        UnsupportedVersion: When the version is above the minimum but has no profile.
        UnsupportedConcurrencyModel: When the MPM is unknown.
    """
    notes: list[str] = []
    if version in SUPPORTED_VERSIONS:
        profile_version = version
    elif version < MIN_VERSION:
        profile_version = MIN_VERSION
        note = (
            f"Httpd version {format_version(version)} not configured - "
            f"using {format_version(MIN_VERSION)} values instead."
        )
        logger.debug(note)
        notes.append(note)
    else:
        raise UnsupportedVersion(f"Httpd version {format_version(version)} configuration values not defined.")

    if (profile_version, mpm) not in DEFAULT_PROFILES:
        raise UnsupportedConcurrencyModel(f'Httpd server MPM "{mpm}" is unknown.')
    return profile_version, notes


def read_directive_block(text: str, mpm: str) -> dict[str, int]:
    """
    Read ``name value`` lines from the config's MPM block.

    The block opens with ``<IfModule {mpm}.c>`` or
    ``<IfModule mpm_{mpm}_module>`` (case-insensitive) and ends at the
    next tag. Only the first such block is read.
    """
    block = re.search(
        rf"^\s*<IfModule\s+({re.escape(mpm)}\.c|mpm_{re.escape(mpm)}_module)>([^<]*)",
        text,
        re.IGNORECASE | re.MULTILINE,
    )
    if block is None:
        logger.debug("No IfModule block for %s", mpm)
        return {}

    logger.debug("IfModule %s", block.group(1))
    directives: dict[str, int] = {}
    for line in block.group(2).splitlines():
        match = _DIRECTIVE.match(line)
        if match:
            logger.debug("%s = %s", match.group(1), match.group(2))
            directives[match.group(1)] = int(match.group(2))
    return directives


@dataclass(slots=True, frozen=True)
class ResolvedConfig:
    """Tunable values in effect for one httpd, after merging and validation."""

    version: Version  # detected
    profile_version: Version  # defaults used
    mpm: str
    source: str
    defaults: dict[Tunable, int]
    values: dict[Tunable, int]
    explicit: frozenset[Tunable] = frozenset()
    notes: list[str] = field(default_factory=list)

    @property
    def threaded(self) -> bool:
        return self.mpm != PREFORK

    @property
    def worker_cap_tunable(self) -> Tunable:
        return worker_cap_for(self.defaults)

    def effective_limits(self) -> EffectiveLimits:
        """
        Select the tunable that bounds concurrent httpd processes.

        prefork starts one process per worker, so the worker cap bounds
        it. Threaded MPMs start ServerLimit processes of ThreadsPerChild
        threads each.
        """
        cap = self.worker_cap_tunable
        if self.threaded:
            return EffectiveLimits(
                limit=Tunable.SERVER_LIMIT,
                worker_cap_tunable=cap,
                process_cap=self.values[Tunable.SERVER_LIMIT],
                threads_per_process=self.values[Tunable.THREADS_PER_CHILD],
                worker_cap=self.values[cap],
                threaded=True,
            )
        return EffectiveLimits(
            limit=cap,
            worker_cap_tunable=cap,
            process_cap=self.values[cap],
            threads_per_process=1,
            worker_cap=self.values[cap],
            threaded=False,
        )


def resolve(version: Version, mpm: str, config_text: str, source: str = "") -> ResolvedConfig:
    """
    Merge the config file's MPM block over the matching default profile.

    Args:
        version: Detected httpd (major, minor) version.
        mpm: Detected MPM name, lower-case.
        config_text: Raw configuration file contents.
        source: Config file name used in messages.

    Raises:
        UnsupportedVersion, UnsupportedConcurrencyModel: No profile matches.
        InvalidConfiguration: A tunable other than the request-count cap is not > 0.
    """
    profile_version, notes = select_profile(version, mpm)
    defaults = DEFAULT_PROFILES[(profile_version, mpm)]
    renames = RENAMES.get(profile_version, {})

    explicit: dict[Tunable, int] = {}
    for name, value in read_directive_block(config_text, mpm).items():
        tunable = _BY_LOWER_NAME.get(name.lower())
        if tunable is None or (tunable not in defaults and tunable not in renames):
            logger.debug("Ignoring %s, not a %s tunable", name, mpm)
            continue
        explicit[tunable] = value

    for legacy, current in renames.items():
        if legacy not in explicit:
            continue
        legacy_value = explicit.pop(legacy)
        if current in explicit:
            logger.warning(
                "%s(%d) and %s(%d) are both set - using %s.",
                legacy.value,
                legacy_value,
                current.value,
                explicit[current],
                current.value,
            )
            continue
        note = f"{legacy.value}({legacy_value}) is deprecated - renaming to {current.value}."
        logger.debug(note)
        notes.append(note)
        explicit[current] = legacy_value

    cap = worker_cap_for(defaults)
    if cap in explicit and Tunable.SERVER_LIMIT not in explicit:
        threads = 1 if mpm == PREFORK else explicit.get(Tunable.THREADS_PER_CHILD, defaults[Tunable.THREADS_PER_CHILD])
        if threads > 0:
            explicit[Tunable.SERVER_LIMIT] = math.ceil(explicit[cap] / threads)
            if mpm == PREFORK:
                note = f"No ServerLimit found - using {cap.value}({explicit[cap]}) value for ServerLimit."
            else:
                note = (
                    f"No ServerLimit found - using {cap.value}({explicit[cap]}) / "
                    f"ThreadsPerChild({threads}) for ServerLimit."
                )
            logger.debug(note)
            notes.append(note)

    values = dict(defaults)
    values.update(explicit)

    for tunable in sorted(values, key=lambda t: t.value):
        if values[tunable] <= 0 and not tunable.zero_allowed:
            raise InvalidConfiguration(tunable.value, values[tunable], source)

    if values.get(Tunable.MAX_REQUESTS_PER_CHILD) == 0:
        logger.warning("MaxRequestsPerChild is 0. This is not usually recommended (default is 10000).")

    return ResolvedConfig(
        version=version,
        profile_version=profile_version,
        mpm=mpm,
        source=source,
        defaults=defaults,
        values=values,
        explicit=frozenset(explicit),
        notes=notes,
    )


def load_config(info: HttpdInfo, config_path: str | None = None) -> ResolvedConfig:
    """
    Read the httpd config file and resolve it against the defaults.

    Args:
        info: Build information from ``httpd -V``.
        config_path: Override for the config file reported by the binary.

    Raises:
        ResourceUnavailable: When the config file cannot be read.
    """
    path = config_path or info.config_file
    if not path:
        raise ResourceUnavailable(f"{info.exe} did not report a SERVER_CONFIG_FILE")

    logger.debug("Open %s", path)
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ResourceUnavailable(f"{path} - {exc.strerror or exc}") from exc
    return resolve(info.version, info.mpm, text, source=path)
