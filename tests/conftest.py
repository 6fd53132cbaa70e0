import plistlib
import sys
import textwrap
from datetime import datetime
from pathlib import Path

import pytest
from asn1crypto import cms


def build_profile_bytes(uuid, name, team_id="ABCDE12345", expiration=None) -> bytes:
    """Build a CMS signed-data blob wrapping a provisioning profile plist"""
    plist = {
        "Name": name,
        "TeamIdentifier": [team_id],
        "ExpirationDate": expiration or datetime(2099, 1, 1),
    }
    if uuid is not None:
        plist["UUID"] = uuid
    signed_data = cms.SignedData(
        {
            "version": "v1",
            "digest_algorithms": [],
            "encap_content_info": {
                "content_type": "data",
                "content": plistlib.dumps(plist),
            },
            "signer_infos": [],
        }
    )
    return cms.ContentInfo({"content_type": "signed_data", "content": signed_data}).dump()


@pytest.fixture
def make_profile(tmp_path):
    """Write a synthetic profile file and return its path"""
    profiles_dir = tmp_path / "profiles"
    profiles_dir.mkdir(exist_ok=True)

    def _make(file_name, uuid, name, team_id="ABCDE12345", expiration=None) -> Path:
        path = profiles_dir / file_name
        path.write_bytes(build_profile_bytes(uuid, name, team_id, expiration))
        return path

    return _make


@pytest.fixture
def fake_xcodebuild(tmp_path):
    """Return a builder tool prefix running a python script instead of xcodebuild"""

    def _make(body: str):
        script = tmp_path / "fake_xcodebuild.py"
        script.write_text(textwrap.dedent(body))
        return (sys.executable, str(script))

    return _make
