from pathlib import Path
from datetime import datetime
import hashlib
import logging
import re
from typing import Dict, FrozenSet, Iterable, Optional

logger = logging.getLogger(__name__)

# Declared at compile time so rules may reference them; values are set per file.
EXTERNALS_DEFAULTS = {
    "filename": "",
    "filepath": "",
    "extension": "",
    "filesize": 0,
    "md5": "",
    "sha1": "",
    "sha256": "",
}

HASH_EXTERNALS = ("md5", "sha1", "sha256")

# bare identifiers only: not $string ids and not module members like hash.md5
_HASH_REF_RE = re.compile(r"(?<![\w.$#@!])(md5|sha1|sha256)\b")

# ---------------------------
# Rule file discovery helpers
# ---------------------------

def iter_rule_files(root: Path) -> Iterable[Path]:
    """Yield all .yar / .yara files under root (case-insensitive)."""
    root = Path(root)
    for p in root.rglob("*"):
        if p.is_file() and p.suffix.lower() in (".yar", ".yara"):
            yield p

def _collect_filepaths(root: Path) -> Dict[str, str]:
    """
    Build a mapping for yara.compile(filepaths=...).
    Keys become the namespace (path-ish), values are absolute file paths.
    """
    filepaths: Dict[str, str] = {}
    for p in iter_rule_files(root):
        ns = str(p.parent.relative_to(root)).replace("\\", "/")
        if ns == ".":
            ns = "root"
        filepaths[f"{ns}/{p.name}"] = str(p.resolve())
    return filepaths

def rules_digest(root: Path) -> str:
    """Stable digest over rule set (names + mtimes + sizes)."""
    h = hashlib.sha256()
    files = sorted(iter_rule_files(root), key=lambda x: str(x).lower())
    for p in files:
        st = p.stat()
        h.update(str(p.relative_to(root)).encode("utf-8", "ignore"))
        h.update(str(st.st_mtime_ns).encode())
        h.update(str(st.st_size).encode())
    return h.hexdigest()[:16]

def newest_rule_mtime(root: Path) -> Optional[datetime]:
    """Signature age: the most recent modification among rule files."""
    mtimes = [p.stat().st_mtime for p in iter_rule_files(root)]
    if not mtimes:
        return None
    return datetime.fromtimestamp(max(mtimes))

# ---------------------------
# Compile / load with cache
# ---------------------------

def load_or_compile(root: str | Path, cache_dir: str | Path):
    """
    Load a compiled rules cache if available; otherwise compile from sources.
    Returns (compiled_rules, digest).
    """
    import yara

    root = Path(root)
    cache_dir = Path(cache_dir)
    cache_dir.mkdir(parents=True, exist_ok=True)

    digest = rules_digest(root)
    cache_path = cache_dir / f"rules.{digest}.yarac"

    if cache_path.exists():
        try:
            compiled = yara.load(str(cache_path))
            logger.debug("Loaded compiled rules from %s", cache_path)
            return compiled, digest
        except yara.Error as e:
            logger.warning("Discarding unreadable rules cache %s: %s", cache_path, e)

    # Compile from files (preserves 'include' semantics)
    logger.info("Compiling yara rules from %s...", root)
    compiled = yara.compile(filepaths=_collect_filepaths(root), externals=EXTERNALS_DEFAULTS)
    try:
        compiled.save(str(cache_path))
    except yara.Error as e:
        logger.warning("Failed to cache compiled rules: %s", e)
    return compiled, digest

def referenced_hash_externals(root: str | Path) -> FrozenSet[str]:
    """Hash externals any rule source mentions; only these are computed per file."""
    found = set()
    for p in iter_rule_files(Path(root)):
        try:
            text = p.read_text(errors="ignore")
        except OSError as e:
            # unknown usage: hash everything
            logger.debug("Failed to read rule file %s: %s", p, e)
            return frozenset(HASH_EXTERNALS)
        found.update(_HASH_REF_RE.findall(text))
    return frozenset(found)

# ---------------------------
# Rule count
# ---------------------------

def estimate_rule_count(root: str | Path) -> int:
    """
    Approximate number of rules by scanning .yar/.yara sources.
    (yara.Rules has no __len__.)
    """
    root = Path(root)
    count = 0
    for p in iter_rule_files(root):
        try:
            text = p.read_text(errors="ignore")
        except OSError as e:
            logger.debug("Failed to read rule file %s: %s", p, e)
            continue
        for line in text.splitlines():
            s = line.strip()
            if not s or s.startswith("//") or s.startswith("#"):
                continue
            if s.startswith("rule ") or s.startswith("global rule ") or s.startswith("private rule "):
                count += 1
    return count
