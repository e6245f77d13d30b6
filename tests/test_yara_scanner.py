import hashlib

import pytest

yara = pytest.importorskip("yara")

from yarawatch_app.services import rules as rules_service
from yarawatch_app.services.scanner import SignaturesUnavailable, YaraScanner
from yarawatch_core.models import Clean, Failed, Infected

MARKER_RULE = """
rule Test_Marker
{
    strings:
        $m = "YARAWATCH-TEST-MARKER"
    condition:
        $m
}
"""

EXTERNALS_RULE = """
rule Named_Dropper
{
    condition:
        filename == "dropper.bin" and filesize > 0
}
"""


@pytest.fixture
def rules_dir(tmp_path):
    d = tmp_path / "rules"
    (d / "extra").mkdir(parents=True)
    (d / "marker.yar").write_text(MARKER_RULE, encoding="utf-8")
    (d / "extra" / "names.yara").write_text(EXTERNALS_RULE, encoding="utf-8")
    (d / "README.txt").write_text("not a rule", encoding="utf-8")
    return d


@pytest.fixture
def scanner(tmp_path, rules_dir):
    s = YaraScanner(rules_dir, tmp_path / "cache")
    s.load()
    return s


def test_load_reports_rule_status(tmp_path, rules_dir):
    status = YaraScanner(rules_dir, tmp_path / "cache").load()
    assert status.compiled
    assert status.count == 2
    assert status.digest == rules_service.rules_digest(rules_dir)
    assert status.updated_at is not None


def test_clean_file(tmp_path, scanner):
    f = tmp_path / "plain.txt"
    f.write_bytes(b"nothing to see")
    assert scanner.scan_file(f) == Clean()


def test_matching_content(tmp_path, scanner):
    f = tmp_path / "sample.bin"
    f.write_bytes(b"header YARAWATCH-TEST-MARKER trailer")
    assert scanner.scan_file(f) == Infected("Test_Marker")


def test_rules_see_file_externals(tmp_path, scanner):
    f = tmp_path / "dropper.bin"
    f.write_bytes(b"x")
    assert scanner.scan_file(f) == Infected("Named_Dropper")


def test_unreadable_file_fails(tmp_path, scanner):
    verdict = scanner.scan_file(tmp_path / "missing.bin")
    assert isinstance(verdict, Failed)


def test_compiled_rules_are_cached(tmp_path, rules_dir):
    cache = tmp_path / "cache"
    YaraScanner(rules_dir, cache).load()
    digest = rules_service.rules_digest(rules_dir)
    assert (cache / f"rules.{digest}.yarac").is_file()
    # second load comes from the cache
    assert YaraScanner(rules_dir, cache).load().digest == digest


def test_missing_rule_directory(tmp_path):
    with pytest.raises(SignaturesUnavailable, match="not found"):
        YaraScanner(tmp_path / "nope", tmp_path / "cache").load()


def test_empty_rule_directory(tmp_path):
    (tmp_path / "rules").mkdir()
    with pytest.raises(SignaturesUnavailable, match="no .yar"):
        YaraScanner(tmp_path / "rules", tmp_path / "cache").load()


def test_broken_rule_file(tmp_path):
    d = tmp_path / "rules"
    d.mkdir()
    (d / "bad.yar").write_text("rule Broken { condition: }", encoding="utf-8")
    with pytest.raises(SignaturesUnavailable, match="failed to compile"):
        YaraScanner(d, tmp_path / "cache").load()


def test_scan_before_load(tmp_path, rules_dir):
    with pytest.raises(SignaturesUnavailable):
        YaraScanner(rules_dir, tmp_path / "cache").scan_file(tmp_path / "x")


def test_hash_externals_are_supplied_when_referenced(tmp_path):
    payload = b"known bad payload"
    d = tmp_path / "rules"
    d.mkdir()
    (d / "hash.yar").write_text(
        'rule Known_Hash { condition: sha256 == "%s" }' % hashlib.sha256(payload).hexdigest(),
        encoding="utf-8",
    )
    scanner = YaraScanner(d, tmp_path / "cache")
    scanner.load()
    f = tmp_path / "sample.bin"
    f.write_bytes(payload)
    assert scanner.scan_file(f) == Infected("Known_Hash")
