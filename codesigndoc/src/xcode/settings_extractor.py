"""Pulls code signing settings out of an xcodebuild archive log.

The log is free text and its format changes between Xcode versions, so the
extraction is a list of small recognizers. Each one looks at a single line
and returns at most one fact, lines nobody recognizes are skipped.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from codesigndoc.src.core.errors import BuildFailed, NoSigningSettingsFound
from codesigndoc.src.core.models import BuildTranscript, SigningSettings, TargetProfileRef

TARGET = "target"
TEAM = "team"
IDENTITY = "identity"
PROFILE_NAME = "profile_name"
PROFILE_UUID = "profile_uuid"  # "(uuid)" line following a profile name
PROFILE_SETTING = "profile_setting"  # PROVISIONING_PROFILE build setting


@dataclass(frozen=True)
class Fact:
    kind: str
    value: str


# === BUILD TARGET App OF PROJECT App WITH CONFIGURATION Release ===
_BUILD_TARGET_RE = re.compile(r"^=== BUILD TARGET (?P<target>.+?) OF PROJECT .+? WITH CONFIGURATION .+? ===")
# CodeSign /path/App.app (in target 'App' from project 'App')
_IN_TARGET_RE = re.compile(r"\(in target '(?P<target>[^']+)' from project '[^']*'\)")
_IDENTITY_RE = re.compile(r'^\s*Signing Identity:\s*"(?P<identity>.+)"\s*$')
_PROFILE_NAME_RE = re.compile(r'^\s*Provisioning Profile:\s*"(?P<name>.+)"\s*$')
_PROFILE_UUID_RE = re.compile(r"^\s*\((?P<uuid>[A-Za-z0-9]+(?:-[A-Za-z0-9]+)+)\)\s*$")
# export DEVELOPMENT_TEAM=ABCDE12345, newer Xcode versions escape the "="
_TEAM_SETTING_RE = re.compile(r"\bDEVELOPMENT_TEAM\s*\\?=\s*(?P<team>[A-Z0-9]{10})\b")
_TEAM_ID_RE = re.compile(r"^\s*Team ID:\s*(?P<team>[A-Z0-9]{10})\s*$")
_PROFILE_SETTING_RE = re.compile(
    r"\bexport PROVISIONING_PROFILE\s*\\?=\s*(?P<uuid>[A-Za-z0-9]+(?:-[A-Za-z0-9]+)+)\s*$"
)


def recognize_target(line: str) -> Optional[Fact]:
    match = _BUILD_TARGET_RE.search(line) or _IN_TARGET_RE.search(line)
    return Fact(TARGET, match.group("target")) if match else None


def recognize_identity(line: str) -> Optional[Fact]:
    match = _IDENTITY_RE.match(line)
    return Fact(IDENTITY, match.group("identity")) if match else None


def recognize_team(line: str) -> Optional[Fact]:
    match = _TEAM_SETTING_RE.search(line) or _TEAM_ID_RE.match(line)
    return Fact(TEAM, match.group("team")) if match else None


def recognize_profile_name(line: str) -> Optional[Fact]:
    match = _PROFILE_NAME_RE.match(line)
    return Fact(PROFILE_NAME, match.group("name")) if match else None


def recognize_profile_uuid(line: str) -> Optional[Fact]:
    match = _PROFILE_UUID_RE.match(line)
    return Fact(PROFILE_UUID, match.group("uuid")) if match else None


def recognize_profile_setting(line: str) -> Optional[Fact]:
    match = _PROFILE_SETTING_RE.search(line)
    return Fact(PROFILE_SETTING, match.group("uuid")) if match else None


# First recognizer that returns a fact wins for a line
RECOGNIZERS: Tuple[Callable[[str], Optional[Fact]], ...] = (
    recognize_identity,
    recognize_profile_name,
    recognize_profile_uuid,
    recognize_profile_setting,
    recognize_team,
    recognize_target,
)


def recognize_line(line: str) -> Optional[Fact]:
    for recognizer in RECOGNIZERS:
        fact = recognizer(line)
        if fact is not None:
            return fact
    return None


class _SettingsCollector:
    """Folds facts into signing settings, tracking the current target"""

    def __init__(self):
        self.current_target = ""
        self.team_identifier: Optional[str] = None
        self.identity_name: Optional[str] = None
        self.refs: List[TargetProfileRef] = []
        self.pending_profile_name: Optional[str] = None

    def add(self, fact: Fact) -> None:
        # A profile name is only final once we know no "(uuid)" line follows it
        if fact.kind == PROFILE_UUID:
            if self.pending_profile_name is not None:
                self.pending_profile_name = None
                self._add_ref(fact.value)
            return
        self._flush_pending()

        if fact.kind == TARGET:
            self.current_target = fact.value
        elif fact.kind == TEAM:
            self.team_identifier = self.team_identifier or fact.value
        elif fact.kind == IDENTITY:
            self.identity_name = self.identity_name or fact.value
        elif fact.kind == PROFILE_NAME:
            self.pending_profile_name = fact.value
        elif fact.kind == PROFILE_SETTING:
            self._add_ref(fact.value)

    def skip_line(self) -> None:
        self._flush_pending()

    def _flush_pending(self) -> None:
        if self.pending_profile_name is not None:
            name = self.pending_profile_name
            self.pending_profile_name = None
            self._add_ref(name)

    def _add_ref(self, identifier: str) -> None:
        ref = TargetProfileRef(self.current_target, identifier)
        if ref not in self.refs:
            self.refs.append(ref)

    def result(self) -> SigningSettings:
        self._flush_pending()
        return SigningSettings(
            team_identifier=self.team_identifier,
            signing_identity_name=self.identity_name,
            per_target_profiles=tuple(self.refs),
        )

    @property
    def found_signing_facts(self) -> bool:
        return bool(self.team_identifier or self.identity_name or self.refs)


def extract_signing_settings(transcript: BuildTranscript) -> SigningSettings:
    """Extract the signing settings from the transcript of a successful archive.

    Raises:
        BuildFailed: the transcript belongs to a failed build
        NoSigningSettingsFound: the build succeeded but logged no signing settings
    """
    if not transcript.succeeded:
        raise BuildFailed(transcript.exit_code)

    collector = _SettingsCollector()
    for line in transcript.raw_text.splitlines():
        fact = recognize_line(line)
        if fact is None:
            # Blank lines may sit between a profile name and its uuid
            if line.strip():
                collector.skip_line()
            continue
        collector.add(fact)

    settings = collector.result()
    if not collector.found_signing_facts:
        raise NoSigningSettingsFound()
    return settings
