from codesigndoc.src.keychain.identities import (
    SigningIdentity,
    _certificate_with_sha1,
    find_identity,
    identity_file_name,
    parse_identities,
)

FIND_IDENTITY_OUTPUT = """
Policy: Code Signing
  Matching identities
  1) 0123456789ABCDEF0123456789ABCDEF01234567 "Apple Development: Jane Doe (ABCDE12345)"
  2) 89abcdef0123456789abcdef0123456789abcdef "Apple Distribution: Example Inc (ABCDE12345)"
     2 valid identities found
"""

PEM_BLOCK = b"""-----BEGIN CERTIFICATE-----
AQIDBA==
-----END CERTIFICATE-----
"""


def test_parse_identities():
    identities = parse_identities(FIND_IDENTITY_OUTPUT)
    assert identities == [
        SigningIdentity("0123456789ABCDEF0123456789ABCDEF01234567", "Apple Development: Jane Doe (ABCDE12345)"),
        SigningIdentity("89ABCDEF0123456789ABCDEF0123456789ABCDEF", "Apple Distribution: Example Inc (ABCDE12345)"),
    ]


def test_find_identity_requires_exact_name():
    identities = parse_identities(FIND_IDENTITY_OUTPUT)
    assert find_identity("Apple Distribution: Example Inc (ABCDE12345)", identities) == identities[1]
    assert find_identity("Apple Distribution: Example Inc", identities) is None
    assert find_identity(None, identities) is None


def test_identity_file_name():
    identity = SigningIdentity("A" * 40, "Apple Development: Jane Doe (ABCDE12345)")
    assert identity_file_name(identity) == "A" * 40 + ".AppleDevelopmentJaneDoeABCDE12345.cer"


def test_certificate_picked_by_sha1():
    output = (
        b"SHA-1 hash: " + b"B" * 40 + b"\n" + PEM_BLOCK.replace(b"AQIDBA==", b"BQYHCA==")
        + b"SHA-1 hash: " + b"A" * 40 + b"\n" + PEM_BLOCK
    )
    assert _certificate_with_sha1(output, "a" * 40) == b"\x01\x02\x03\x04"
