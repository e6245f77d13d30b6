import os
import re
from pathlib import PurePath


def _translate(pattern: str) -> str:
    """
    Translate a glob into a regular expression matched against a whole path.

      **   any number of path segments (zero included)
      *    anything inside one segment
      ?    one character inside one segment
      [..] character class, [!..] negated
    """
    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] == "!":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                # unclosed: literal bracket
                out.append(re.escape(c))
            else:
                body = pattern[i + 1:j].replace("\\", "\\\\")
                if body.startswith("!"):
                    body = "^" + body[1:]
                elif body.startswith("^"):
                    body = "\\" + body
                out.append(f"(?!/)[{body}]")
                i = j
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


def _normalize(path) -> str:
    s = str(path)
    if os.sep != "/":
        s = s.replace(os.sep, "/")
    return s


class GlobPattern:
    """Exclude pattern compiled once and reused for every path test."""

    def __init__(self, pattern: str):
        if not pattern:
            raise ValueError("empty glob pattern")
        self.pattern = pattern
        self._regex = re.compile(_translate(_normalize(pattern)), re.DOTALL)

    def matches(self, path: str | PurePath) -> bool:
        return self._regex.fullmatch(_normalize(path)) is not None

    def __str__(self) -> str:
        return self.pattern

    def __repr__(self) -> str:
        return f"GlobPattern({self.pattern!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, GlobPattern) and other.pattern == self.pattern

    def __hash__(self) -> int:
        return hash(self.pattern)
