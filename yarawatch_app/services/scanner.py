from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List
import hashlib
import logging

from yarawatch_core.models import Clean, Failed, Infected, RuleStatus, Verdict
from yarawatch_app.services import rules as rules_service

logger = logging.getLogger(__name__)


class SignaturesUnavailable(Exception):
    """The signature set cannot be loaded; no file can be scanned this cycle."""


def _hashes(p: Path, names: Iterable[str]) -> Dict[str, str]:
    """Digest the file once for every requested algorithm; nothing is read when none is."""
    hashers = {name: hashlib.new(name) for name in names}
    if not hashers:
        return {}
    with p.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            for h in hashers.values():
                h.update(chunk)
    return {name: h.hexdigest() for name, h in hashers.items()}


class YaraScanner:
    """
    Signature scanning collaborator backed by a YARA rule directory.

    `load()` must succeed before `scan_file()`; the compiled rules are
    shared by all worker threads.
    """

    def __init__(self, rules_root: str | Path, cache_dir: str | Path, timeout: int = 20):
        self.rules_root = Path(rules_root)
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self._compiled = None
        self._hash_names: FrozenSet[str] = frozenset()

    def load(self) -> RuleStatus:
        import yara

        if not self.rules_root.is_dir():
            raise SignaturesUnavailable(f"signature directory not found: {self.rules_root}")
        if not any(True for _ in rules_service.iter_rule_files(self.rules_root)):
            raise SignaturesUnavailable(f"no .yar/.yara files under {self.rules_root}")
        count = rules_service.estimate_rule_count(self.rules_root)

        logger.info("Loading signatures from %s...", self.rules_root)
        try:
            compiled, digest = rules_service.load_or_compile(self.rules_root, self.cache_dir)
        except (yara.Error, OSError) as e:
            raise SignaturesUnavailable(f"failed to compile signatures: {e}") from e

        self._compiled = compiled
        self._hash_names = rules_service.referenced_hash_externals(self.rules_root)
        status = RuleStatus(
            compiled=True,
            count=count,
            digest=digest,
            updated_at=rules_service.newest_rule_mtime(self.rules_root),
        )
        logger.info("Loaded %d rule(s), digest %s", status.count, status.digest)
        return status

    def scan_file(self, path: str | Path) -> Verdict:
        import yara

        if self._compiled is None:
            raise SignaturesUnavailable("signatures are not loaded")
        p = Path(path)
        logger.debug("Scanning file %s...", p)
        try:
            stat = p.stat()
            externals = {
                "filename": p.name,
                "filepath": str(p),
                "extension": p.suffix.lower().lstrip("."),
                "filesize": stat.st_size,
            }
            externals.update(_hashes(p, self._hash_names))
            res = self._compiled.match(str(p), timeout=self.timeout, externals=externals)
        except (yara.Error, OSError) as e:
            return Failed(str(e))

        if not res:
            return Clean()
        names: List[str] = []
        for m in res:
            if m.rule not in names:
                names.append(m.rule)
        return Infected(", ".join(names))
