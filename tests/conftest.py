"""Pytest configuration and shared fixtures."""

import json

import pytest

from ioc_import.store.memory import MemoryIndicatorStore

SHA256_EMPTY = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
MD5_EMPTY = "d41d8cd98f00b204e9800998ecf8427e"
SHA1_EMPTY = "da39a3ee5e6b4b0d3255bfef95601890afd80709"


@pytest.fixture
def free_text_sample():
    """Analyst paste with defanged values, an explicit type and a comment."""
    return (
        "192.168.1.1\n"
        "example[.]com\n"
        "hxxp://bad[.]site/x\n"
        "d41d8cd98f00b204e9800998ecf8427e|md5\n"
        "# comment"
    )


@pytest.fixture
def stix_bundle():
    """STIX 2.1 bundle with indicators, observables and an identity."""
    return {
        "type": "bundle",
        "id": "bundle--5d0092c5-5f74-4287-9642-33f4c354e56d",
        "spec_version": "2.1",
        "objects": [
            {
                "type": "identity",
                "spec_version": "2.1",
                "id": "identity--f431f809-377b-45e0-aa1c-6a4751cae5ff",
                "name": "ACME CERT",
                "identity_class": "organization",
            },
            {
                "type": "indicator",
                "spec_version": "2.1",
                "id": "indicator--8e2e2d2b-17d4-4cbf-938f-98ee46b3cd3f",
                "created_by_ref": "identity--f431f809-377b-45e0-aa1c-6a4751cae5ff",
                "name": "Dropper hashes",
                "description": "Hashes of the first-stage dropper",
                "pattern": (
                    f"[file:hashes.'SHA-256' = '{SHA256_EMPTY}' "
                    f"AND file:hashes.'MD5' = '{MD5_EMPTY}']"
                ),
                "pattern_type": "stix",
                "valid_from": "2024-03-01T12:00:00Z",
                "confidence": 85,
                "labels": ["malicious-activity"],
            },
            {
                "type": "indicator",
                "spec_version": "2.1",
                "id": "indicator--1a2b3c4d-0000-4000-8000-000000000001",
                "pattern": "[domain-name:value = 'evil[.]example.com']",
                "pattern_type": "stix",
                "valid_from": "2024-03-02T00:00:00.000Z",
            },
            {
                "type": "indicator",
                "spec_version": "2.1",
                "id": "indicator--1a2b3c4d-0000-4000-8000-000000000002",
                "pattern": "alert tcp any any -> any 80",
                "pattern_type": "snort",
                "valid_from": "2024-03-02T00:00:00Z",
            },
            {
                "type": "ipv4-addr",
                "spec_version": "2.1",
                "id": "ipv4-addr--ff26c055-6336-5bc5-b98d-13d6226742dd",
                "value": "203.0.113.7",
            },
            {
                "type": "malware",
                "spec_version": "2.1",
                "id": "malware--31b940d4-6f7f-459a-80ea-9c1f17b5891b",
                "name": "Poison Ivy",
                "is_family": False,
            },
        ],
    }


@pytest.fixture
def misp_event():
    """Single MISP event export with flat and object attributes."""
    return {
        "Event": {
            "id": "1234",
            "info": "Phishing campaign",
            "Orgc": {"name": "CIRCL"},
            "Attribute": [
                {
                    "uuid": "attr-1",
                    "type": "ip-dst",
                    "category": "Network activity",
                    "value": "198.51.100.23",
                    "to_ids": True,
                    "timestamp": "1700000000",
                    "comment": "C2 server",
                    "Tag": [{"name": "tlp:amber"}, {"name": "apt"}],
                },
                {
                    "uuid": "attr-2",
                    "type": "filename|sha256",
                    "category": "Payload delivery",
                    "value": f"evil.exe|{SHA256_EMPTY}",
                    "to_ids": "1",
                },
                {
                    "uuid": "attr-3",
                    "type": "text",
                    "category": "Other",
                    "value": "free-form note",
                    "to_ids": False,
                },
                {
                    "uuid": "attr-4",
                    "type": "domain",
                    "category": "Network activity",
                    "value": "Phish[.]Example.org",
                    "to_ids": "0",
                },
            ],
            "Object": [
                {
                    "name": "file",
                    "Attribute": [
                        {
                            "uuid": "attr-5",
                            "type": "md5",
                            "category": "Payload delivery",
                            "value": MD5_EMPTY,
                            "to_ids": 1,
                        }
                    ],
                }
            ],
        }
    }


@pytest.fixture
def misp_response():
    """MISP REST search response with two events and a junk entry."""
    return {
        "response": [
            {
                "Event": {
                    "id": "1",
                    "info": "First",
                    "Attribute": [{"uuid": "a", "type": "url", "value": "hxxps://bad[.]site/login"}],
                }
            },
            {"not_an_event": True},
            {
                "Event": {
                    "id": "2",
                    "info": "Second",
                    "Attribute": [{"uuid": "b", "type": "sha1", "value": SHA1_EMPTY}],
                }
            },
        ]
    }


@pytest.fixture
def openioc_xml():
    """OpenIOC 1.1 document with mapped and unmapped items."""
    return f"""<?xml version="1.0" encoding="us-ascii"?>
<ioc xmlns="http://schemas.mandiant.com/2010/ioc" id="6d2a1b03-b216-4cd8-9a9e-8827af6ebf93">
  <short_description>Dropper &amp; C2</short_description>
  <definition>
    <Indicator operator="OR" id="i-1">
      <IndicatorItem id="item-1" condition="is">
        <Context document="FileItem" search="FileItem/Md5sum" type="mir"/>
        <Content type="md5">{MD5_EMPTY.upper()}</Content>
      </IndicatorItem>
      <IndicatorItem id="item-2" condition="is">
        <Context document="Network" search="Network/DNS" type="mir"/>
        <Content type="string">evil[.]example.net</Content>
      </IndicatorItem>
      <IndicatorItem id="item-3" condition="is">
        <Context document="PortItem" search="PortItem/remoteIP" type="mir"/>
        <Content type="IP">203.0.113.50</Content>
      </IndicatorItem>
      <IndicatorItem id="item-4" condition="contains">
        <Context document="ProcessItem" search="ProcessItem/name" type="mir"/>
        <Content type="string">svchost.exe</Content>
      </IndicatorItem>
    </Indicator>
  </definition>
</ioc>
"""


@pytest.fixture
def stix_file(tmp_path, stix_bundle):
    """STIX bundle written to disk."""
    f = tmp_path / "bundle.json"
    f.write_text(json.dumps(stix_bundle))
    return str(f)


@pytest.fixture
def free_text_file(tmp_path, free_text_sample):
    """Free text sample written to disk."""
    f = tmp_path / "pasted.txt"
    f.write_text(free_text_sample)
    return str(f)


@pytest.fixture
def memory_store():
    """Empty in-memory indicator store."""
    return MemoryIndicatorStore()
