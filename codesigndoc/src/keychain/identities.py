import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from asn1crypto import pem

from codesigndoc.logger import get_console
from codesigndoc.src.core.errors import ExportCopyError
from codesigndoc.src.core.models import ExportedFile
from codesigndoc.src.export.exporter import sanitize_name

# 1) 0123456789ABCDEF0123456789ABCDEF01234567 "Apple Development: Jane Doe (ABCDE12345)"
_IDENTITY_LINE_RE = re.compile(r'^\s*\d+\)\s+([0-9A-Fa-f]{40})\s+"(.+)"\s*$')


@dataclass(frozen=True)
class SigningIdentity:
    sha1: str
    name: str


def parse_identities(output: str) -> List[SigningIdentity]:
    """Parse the output of security find-identity into identities"""
    identities = []
    for line in output.splitlines():
        match = _IDENTITY_LINE_RE.match(line)
        if match:
            identities.append(SigningIdentity(match.group(1).upper(), match.group(2)))
    return identities


def list_codesigning_identities(security_tool: str = "security") -> List[SigningIdentity]:
    """List the valid codesigning identities of the keychain search list.

    Returns an empty list where the security tool is not available.
    """
    console = get_console()
    if shutil.which(security_tool) is None:
        console.print(
            f"[yellow]Warning: {security_tool} not found, skipping signing identity lookup[/]"
        )
        return []

    result = subprocess.run(
        [security_tool, "find-identity", "-v", "-p", "codesigning"],
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        console.print(f"[yellow]Warning: listing signing identities failed: {result.stderr}[/]")
        return []
    return parse_identities(result.stdout)


def find_identity(
    name: Optional[str], identities: Sequence[SigningIdentity]
) -> Optional[SigningIdentity]:
    """Exact-name lookup, the build reports identities by their full name"""
    if not name:
        return None
    for identity in identities:
        if identity.name == name:
            return identity
    return None


def identity_file_name(identity: SigningIdentity) -> str:
    return f"{identity.sha1}.{sanitize_name(identity.name)}.cer"


def export_identity_certificate(
    identity: SigningIdentity, destination_dir: Path, security_tool: str = "security"
) -> ExportedFile:
    """Write the certificate of an identity as DER into destination_dir.

    Raises:
        ExportCopyError: the certificate could not be read or written
    """
    destination = Path(destination_dir) / identity_file_name(identity)
    command = [security_tool, "find-certificate", "-a", "-Z", "-c", identity.name, "-p"]
    try:
        result = subprocess.run(command, capture_output=True, check=True)
        der_bytes = _certificate_with_sha1(result.stdout, identity.sha1)
        destination.write_bytes(der_bytes)
    except (OSError, subprocess.CalledProcessError, ValueError) as e:
        raise ExportCopyError(identity.name, None, destination, e) from e

    return ExportedFile(
        source_path=None, destination_path=destination, logical_name=identity.name
    )


def _certificate_with_sha1(output: bytes, sha1: str) -> bytes:
    """Pick the PEM block that belongs to the identity from find-certificate -Z -p output"""
    current_hash = None
    for block in re.split(rb"(?=SHA-1 hash:)", output):
        hash_match = re.match(rb"SHA-1 hash:\s*([0-9A-Fa-f]{40})", block)
        if hash_match:
            current_hash = hash_match.group(1).decode().upper()
        if current_hash != sha1.upper() or not pem.detect(block):
            continue
        start = block.index(b"-----BEGIN")
        _, _, der_bytes = pem.unarmor(block[start:])
        return der_bytes
    raise ValueError(f"certificate with SHA-1 {sha1} not found in keychain")
