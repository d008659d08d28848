"""
Output Naming.

Rendered clips are named `<base>-AS<n>-<token1>_<token2>_...`:
- n counts how many times effects were applied
- each token is a single alphanumeric run, so the tail re-parses to the same list
- tokens keep chronological order, duplicates allowed
- the token list is FIFO-capped (oldest evicted first)

Parsing tolerates legacy glue/render artifacts and nested tags, so naming a
clip's own output again with no new token is a no-op.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from ..config import ChainTokenSource, RunSettings
from ..timeline import Track

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"^(.*?)[-_]AS(\d+)[-_](.+)$")
_NEXT_TAG_RE = re.compile(r"^(.*?)[-_]AS\d+[-_].*$")
_EXT_RE = re.compile(r"\.[A-Za-z0-9]+$")
_GLUE_RE = re.compile(r"[_\-\s]*glue[dD]?[\s_\-\d]*")
_RENDER_RE = re.compile(r"[_\-\s]*render[eE]?[dD]?[\s_\-\d]*")
_TRAILING_LABEL_RE = re.compile(r"\s+-[\s-].*$")
_TOKEN_RE = re.compile(r"[A-Za-z0-9]+")
_VERSION_TOKEN_RE = re.compile(r"^AS\d+$")
_NOISE_RE = re.compile(r"^(glue|glued|render|rendered|ed\d*|dup\d*)$")
_LABEL_TYPE_RE = re.compile(r"^([\w+.\-]+):\s*(.+)$")
_LABEL_VENDOR_RE = re.compile(r"^(.*?)\s*\(([^()]+)\)\s*$")
_PARENS_RE = re.compile(r"\([^()]*\)")
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]+")


def strip_extension(name: str) -> str:
    return _EXT_RE.sub("", name or "")


def strip_artifacts(name: str) -> str:
    """Remove "glued-NN", "render NNN" and any trailing " - Label"."""
    s = name or ""
    s = _GLUE_RE.sub(" ", s)
    s = _RENDER_RE.sub(" ", s)
    s = _TRAILING_LABEL_RE.sub("", s)
    return s.strip().rstrip("_-").rstrip()


def is_noise_token(token: str) -> bool:
    """Glue/render leftovers. Pure numbers are kept."""
    t = (token or "").lower()
    if not t:
        return True
    return bool(_NOISE_RE.match(t))


def _tokenize_tail(tail: str) -> List[str]:
    nested = _NEXT_TAG_RE.match(tail)
    first_tail = nested.group(1) if nested else tail

    cleaned = _GLUE_RE.sub(" ", first_tail)
    cleaned = _RENDER_RE.sub(" ", cleaned)
    cleaned = _TRAILING_LABEL_RE.sub("", cleaned)
    cleaned = cleaned.strip("_- \t")

    return [
        tok for tok in _TOKEN_RE.findall(cleaned)
        if not _VERSION_TOKEN_RE.match(tok) and not is_noise_token(tok)
    ]


@dataclass
class NamingState:
    """Parsed display name: base, version counter and effect tokens."""

    base: str
    version: int = 0
    tokens: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, name: str) -> "NamingState":
        stem = strip_extension(name)
        match = _TAG_RE.match(stem)
        if not match:
            return cls(base=strip_artifacts(stem))
        base = strip_artifacts(match.group(1).rstrip())
        return cls(base=base, version=int(match.group(2)), tokens=_tokenize_tail(match.group(3)))

    def with_token(self, token: str, cap: int = 0) -> "NamingState":
        """
        Append a token and bump the version.

        Symbols and spaces are dropped from the token so it parses back as
        one entry.

        Args:
            token: Effect token to append (duplicates allowed).
            cap: Keep only the most recent `cap` tokens; 0 means unlimited.
        """
        tokens = list(self.tokens) + [_NON_ALNUM_RE.sub("", token)]
        if cap > 0 and len(tokens) > cap:
            tokens = tokens[-cap:]
        return NamingState(base=self.base, version=self.version + 1, tokens=tokens)

    def format(self) -> str:
        if self.version == 0 and not self.tokens:
            return self.base
        return f"{self.base}-AS{self.version}-{'_'.join(self.tokens)}"


def next_name(name: str, token: Optional[str], cap: int = 0) -> str:
    """
    Name for a clip after applying one more effect.

    Args:
        name: Current take name.
        token: Token of the newly applied effect; a token with no letters or
            digits leaves the name as-is.
        cap: FIFO token cap (0 = unlimited).

    Returns:
        New display name.
    """
    if not _NON_ALNUM_RE.sub("", token or ""):
        return name
    new_name = NamingState.parse(name).with_token(token, cap).format()
    logger.debug(f"NAME before={name!r} after={new_name!r}")
    return new_name


def effect_label(
    raw: str,
    show_type: bool = False,
    show_vendor: bool = False,
    strip_symbols: bool = True,
) -> str:
    """
    Format a host effect name ("CLAP: Pro-Q 4 (FabFilter)") as a naming token.

    Args:
        raw: Effect name as reported by the host.
        show_type: Keep the "VST3:"/"CLAP:" prefix.
        show_vendor: Keep the "(Vendor)" suffix.
        strip_symbols: Keep alphanumerics only.

    Returns:
        Formatted label, e.g. "ProQ4".
    """
    raw = (raw or "").strip()
    typ = ""
    rest = raw
    type_match = _LABEL_TYPE_RE.match(raw)
    if type_match:
        typ, rest = type_match.group(1).strip(), type_match.group(2).strip()

    core, vendor = rest, ""
    vendor_match = _LABEL_VENDOR_RE.match(rest)
    if vendor_match:
        core, vendor = vendor_match.group(1).strip(), vendor_match.group(2).strip()

    label = f"{typ}: {core}" if show_type and typ else core
    if show_vendor and vendor:
        label = f"{label} ({vendor})"
    if strip_symbols:
        label = _NON_ALNUM_RE.sub("", label)
    return label


def track_name_token(track: Track, strip_symbols: bool = True) -> str:
    name = track.name or ""
    if strip_symbols:
        return _NON_ALNUM_RE.sub("", _PARENS_RE.sub("", name))
    return name


def chain_token(track: Track, settings: RunSettings) -> str:
    """Naming token for a full-chain render."""
    source = settings.chain_token_source
    if source is ChainTokenSource.FXCHAIN:
        return "FXChain"
    if source is ChainTokenSource.TRACK:
        return track_name_token(track, strip_symbols=settings.trackname_strip_symbols)

    labels = [
        effect_label(fx.name, settings.show_type, settings.show_vendor, settings.strip_symbols)
        for fx in track.effects
        if fx.enabled
    ]
    return settings.chain_alias_joiner.join(label for label in labels if label)


def naming_token(track: Track, focus_index: Optional[int], settings: RunSettings) -> str:
    """
    Token appended to output names for this run.

    Focused mode uses the focused effect's label; chain mode uses the chain
    token, falling back to the focused label when it comes out empty.
    """
    focused_label = ""
    if focus_index is not None and 0 <= focus_index < len(track.effects):
        focused_label = effect_label(
            track.effects[focus_index].name,
            settings.show_type,
            settings.show_vendor,
            settings.strip_symbols,
        )
    if settings.focused:
        return focused_label

    token = chain_token(track, settings)
    return token or focused_label
