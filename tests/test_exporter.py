from pathlib import Path

from codesigndoc.src.core.models import (
    BuildTranscript,
    ProvisioningProfileDescriptor,
    ResolvedExportSet,
)
from codesigndoc.src.export.exporter import (
    TRANSCRIPT_FILE_NAME,
    Exporter,
    export_file_name,
    sanitize_name,
)
from codesigndoc.src.profiles.profile_index import decode_profile


def test_sanitize_name_keeps_only_safe_characters():
    assert sanitize_name("Wildcard Profile") == "WildcardProfile"
    assert sanitize_name("iOS Team Provisioning Profile: com.example.*") == (
        "iOSTeamProvisioningProfilecom.example."
    )
    assert sanitize_name("ad_hoc-v1.2") == "ad_hoc-v1.2"
    assert sanitize_name("Ünïcode ✓") == "ncode"


def test_export_file_name_keeps_source_format():
    ios = ProvisioningProfileDescriptor(Path("/p/x.mobileprovision"), "1111-AAAA", "Wildcard Profile")
    mac = ProvisioningProfileDescriptor(Path("/p/y.provisionprofile"), "2222-BBBB", "Mac App")
    other = ProvisioningProfileDescriptor(Path("/p/z.profile"), "3333-CCCC", "Other")

    assert export_file_name(ios) == "1111-AAAA.WildcardProfile.mobileprovision"
    assert export_file_name(mac) == "2222-BBBB.MacApp.provisionprofile"
    assert export_file_name(other) == "3333-CCCC.Other.mobileprovision"
    # Same descriptor, same name on every run
    assert export_file_name(ios) == export_file_name(ios)


def test_export_copies_profiles_and_transcript(make_profile, tmp_path):
    source = make_profile("src.mobileprovision", "1111-AAAA", "Wildcard Profile")
    descriptor = decode_profile(source)
    export_dir = tmp_path / "export"
    export_dir.mkdir()

    report = Exporter(export_dir).export(
        ResolvedExportSet(profiles=(descriptor,)),
        BuildTranscript("** ARCHIVE SUCCEEDED **\n", succeeded=True),
    )

    assert report.succeeded
    assert report.transcript_path == export_dir / TRANSCRIPT_FILE_NAME
    assert report.transcript_path.read_text() == "** ARCHIVE SUCCEEDED **\n"
    exported = report.exported[0]
    assert exported.destination_path == export_dir / "1111-AAAA.WildcardProfile.mobileprovision"
    assert exported.logical_name == "Wildcard Profile"
    # The exported file decodes to the same profile
    assert decode_profile(exported.destination_path).uuid == descriptor.uuid


def test_same_display_name_does_not_collide(make_profile, tmp_path):
    first = decode_profile(make_profile("1.mobileprovision", "1111-AAAA", "Team Profile"))
    second = decode_profile(make_profile("2.mobileprovision", "2222-BBBB", "Team Profile"))
    export_dir = tmp_path / "export"
    export_dir.mkdir()

    exported, failures = Exporter(export_dir).export_profiles(
        ResolvedExportSet(profiles=(first, second))
    )

    assert failures == []
    assert len({e.destination_path for e in exported}) == 2


def test_failing_copy_is_reported_and_others_continue(make_profile, tmp_path):
    good = decode_profile(make_profile("good.mobileprovision", "1111-AAAA", "Good"))
    vanished = ProvisioningProfileDescriptor(
        tmp_path / "gone.mobileprovision", "2222-BBBB", "Vanished"
    )
    export_dir = tmp_path / "export"
    export_dir.mkdir()

    exported, failures = Exporter(export_dir).export_profiles(
        ResolvedExportSet(profiles=(vanished, good))
    )

    assert [e.logical_name for e in exported] == ["Good"]
    assert len(failures) == 1
    assert failures[0].logical_name == "Vanished"
    assert failures[0].source_path == vanished.file_path
    assert "Vanished" in str(failures[0])


def test_export_with_nothing_resolved_only_writes_transcript(tmp_path):
    report = Exporter(tmp_path).export(
        ResolvedExportSet(), BuildTranscript("log", succeeded=True)
    )
    assert report.exported == []
    assert sorted(p.name for p in tmp_path.iterdir()) == [TRANSCRIPT_FILE_NAME]
