from types import SimpleNamespace

from codesigndoc.cli import build_parser
from codesigndoc.commands import scan
from codesigndoc.src.core.models import BuildRequest
from codesigndoc.src.export.exporter import TRANSCRIPT_FILE_NAME
from codesigndoc.src.keychain.identities import SigningIdentity
from codesigndoc.src.xcode.build_capture import ArchiveBuilder

SHARED_PROFILE_LOG = """
=== BUILD TARGET App OF PROJECT App WITH CONFIGURATION Release ===
Signing Identity:     "Apple Distribution: Example Inc (ABCDE12345)"
Provisioning Profile: "Wildcard Profile"
                      (1111-AAAA)
=== BUILD TARGET Ext OF PROJECT App WITH CONFIGURATION Release ===
Provisioning Profile: "Wildcard Profile"
                      (1111-AAAA)
** ARCHIVE SUCCEEDED **
"""

BRACKETED_NOTE_LOG = """
=== BUILD TARGET App OF PROJECT App WITH CONFIGURATION Release ===
note: Using build description from disk [/Users/me/Library/Developer]
Signing Identity:     "Apple Distribution: Example Inc (ABCDE12345)"
Provisioning Profile: "Wildcard Profile"
                      (1111-AAAA)
** ARCHIVE SUCCEEDED **
"""

NAMED_PROFILE_LOG = """
=== BUILD TARGET App OF PROJECT App WITH CONFIGURATION Release ===
Provisioning Profile: "Ad Hoc Dist"
** ARCHIVE SUCCEEDED **
"""


def _printing_tool(fake_xcodebuild, log, exit_code=0):
    return fake_xcodebuild(
        f"""
        import sys
        sys.stdout.write({log!r})
        sys.exit({exit_code})
        """
    )


def _scan(tmp_path, tool, **kwargs):
    export_dir = tmp_path / "export"
    export_dir.mkdir(exist_ok=True)
    kwargs.setdefault("identity_source", lambda: [])
    code = scan.scan_xcode_project(
        BuildRequest("App.xcodeproj", "App"),
        export_dir,
        builder=ArchiveBuilder(tool),
        profiles_dir=tmp_path / "profiles",
        **kwargs,
    )
    return code, export_dir


def test_shared_profile_exported_once(tmp_path, make_profile, fake_xcodebuild):
    make_profile("wildcard.mobileprovision", "1111-AAAA", "Wildcard Profile")

    code, export_dir = _scan(tmp_path, _printing_tool(fake_xcodebuild, SHARED_PROFILE_LOG))

    assert code == 0
    assert sorted(p.name for p in export_dir.iterdir()) == [
        "1111-AAAA.WildcardProfile.mobileprovision",
        TRANSCRIPT_FILE_NAME,
    ]
    assert "ARCHIVE SUCCEEDED" in (export_dir / TRANSCRIPT_FILE_NAME).read_text()


def test_unmatched_name_is_reported_and_export_proceeds(tmp_path, make_profile, fake_xcodebuild):
    make_profile("wildcard.mobileprovision", "1111-AAAA", "Wildcard Profile")
    tool = _printing_tool(fake_xcodebuild, NAMED_PROFILE_LOG)

    code, export_dir = _scan(tmp_path, tool)

    assert code == 0
    assert [p.name for p in export_dir.iterdir()] == [TRANSCRIPT_FILE_NAME]

    code, _ = _scan(tmp_path, tool, strict=True)
    assert code == 1


def test_failed_build_writes_transcript_and_exports_nothing(tmp_path, make_profile, fake_xcodebuild):
    make_profile("wildcard.mobileprovision", "1111-AAAA", "Wildcard Profile")
    tool = _printing_tool(fake_xcodebuild, "** ARCHIVE FAILED **\n", exit_code=65)

    code, export_dir = _scan(tmp_path, tool)

    assert code == 1
    assert [p.name for p in export_dir.iterdir()] == [TRANSCRIPT_FILE_NAME]
    assert "ARCHIVE FAILED" in (export_dir / TRANSCRIPT_FILE_NAME).read_text()


def test_launch_error_writes_nothing(tmp_path):
    code, export_dir = _scan(tmp_path, ("codesigndoc-no-such-xcodebuild",))

    assert code == 1
    assert list(export_dir.iterdir()) == []


def test_identity_missing_from_keychain_is_only_a_warning(tmp_path, make_profile, fake_xcodebuild):
    make_profile("wildcard.mobileprovision", "1111-AAAA", "Wildcard Profile")
    other = SigningIdentity("A" * 40, "Apple Development: Someone Else (ZZZZZ99999)")

    code, _ = _scan(
        tmp_path,
        _printing_tool(fake_xcodebuild, SHARED_PROFILE_LOG),
        identity_source=lambda: [other],
    )

    assert code == 0


def test_cli_parses_scan_xcode_arguments(tmp_path):
    args = build_parser().parse_args(
        [
            "scan",
            "xcode",
            "--file",
            "App.xcworkspace",
            "--scheme",
            "App",
            "--output",
            str(tmp_path),
            "--timeout",
            "600",
            "--strict",
            "--no-identity",
        ]
    )

    assert args.command == "scan"
    assert args.scanner == "xcode"
    assert str(args.project_path) == "App.xcworkspace"
    assert args.scheme == "App"
    assert args.output_dir == tmp_path
    assert args.timeout == 600
    assert args.strict
    assert not args.export_identity


def test_main_runs_scan_from_arguments(tmp_path, make_profile, fake_xcodebuild, monkeypatch):
    make_profile("wildcard.mobileprovision", "1111-AAAA", "Wildcard Profile")
    tool = _printing_tool(fake_xcodebuild, SHARED_PROFILE_LOG)
    monkeypatch.setenv("CODESIGNDOC_CONFIG", str(tmp_path / "missing.toml"))
    monkeypatch.setenv("CODESIGNDOC_XCODEBUILD", tool[0])
    monkeypatch.delenv("CODESIGNDOC_EXPORT_DIR", raising=False)
    monkeypatch.delenv("CODESIGNDOC_BUILD_TIMEOUT", raising=False)
    monkeypatch.delenv("CODESIGNDOC_PROFILES_DIR", raising=False)
    # The configured tool is a single executable, run the fake script through it
    monkeypatch.setattr(
        scan, "ArchiveBuilder", lambda configured_tool: ArchiveBuilder((*configured_tool, tool[1]))
    )

    args = SimpleNamespace(
        project_path=tmp_path / "App.xcodeproj",
        scheme="App",
        output_dir=tmp_path / "out",
        profiles_dir=tmp_path / "profiles",
        timeout=None,
        strict=False,
        export_identity=False,
    )

    assert scan.run_xcode_scan_command(args) == 0
    assert (tmp_path / "out" / "1111-AAAA.WildcardProfile.mobileprovision").exists()


def test_bracketed_build_output_is_kept_in_full(tmp_path, make_profile, fake_xcodebuild):
    make_profile("wildcard.mobileprovision", "1111-AAAA", "Wildcard Profile")

    code, export_dir = _scan(tmp_path, _printing_tool(fake_xcodebuild, BRACKETED_NOTE_LOG))

    assert code == 0
    assert (export_dir / TRANSCRIPT_FILE_NAME).read_text() == BRACKETED_NOTE_LOG
    assert (export_dir / "1111-AAAA.WildcardProfile.mobileprovision").exists()


def test_cancelled_build_still_writes_transcript(tmp_path, fake_xcodebuild):
    tool = fake_xcodebuild(
        """
        import time
        print("=== BUILD TARGET App OF PROJECT App WITH CONFIGURATION Release ===", flush=True)
        time.sleep(60)
        """
    )

    code, export_dir = _scan(tmp_path, tool, timeout=1)

    assert code == 1
    assert [p.name for p in export_dir.iterdir()] == [TRANSCRIPT_FILE_NAME]
    assert "BUILD TARGET App" in (export_dir / TRANSCRIPT_FILE_NAME).read_text()
