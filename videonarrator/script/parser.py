"""Narration script parsing.

Responsibilities:
- Turn script text into an ordered list of `Fragment` descriptors.
- Resolve each fragment's voice/audio options from defaults, global option
  files, and per-fragment option files.
- Fail closed: any malformed line makes the whole script yield no fragments.

Script grammar (a blank line terminates each fragment):

    <time-spec> <name> [audio=<file>] [voice=<file>]...
    <content-line>
    ...

`<time-spec>` is `[+][[H:]M:]S[.frac]`; a leading `+` makes the time relative
to the end of the previous fragment, and a bare `+` means "minimum gap".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import re
from typing import Any, Mapping

from ..errors import ParseError, ScriptDiagnostic
from ..models.datatypes import (
    MIN_GAP_SECONDS,
    AbsoluteTime,
    DeclaredTime,
    Fragment,
    FragmentKind,
    RelativeTime,
)
from ..options.store import DEFAULT_VOICE_OPTIONS, OptionStore, merge_chain


_LINE_SPLIT_RE = re.compile(r"\r?\n")
_TIME_SPEC_RE = re.compile(
    r"^(?P<relative>\+)?(?P<clock>\d+(?::\d+){0,2}(?:\.\d+)?)?$"
)
_NAME_RE = re.compile(r"^[\w][\w.-]*$")
_OPTION_PAIR_RE = re.compile(r"^(?P<key>[^=]+)=(?P<path>.*)$")
_SPEAK_OPEN_RE = re.compile(r"^<speak(?:\s[^>]*)?>$")
_SPEAK_INLINE_RE = re.compile(r"^<speak(?:\s[^>]*)?>.*</speak>$")
_SPEAK_CLOSE = "</speak>"
_OPTION_KEYS = frozenset({"audio", "voice"})


def parse_time_spec(token: str, min_gap_seconds: float = MIN_GAP_SECONDS) -> DeclaredTime:
    """Parse one `[+][[H:]M:]S[.frac]` token into a declared start time.

    Raises:
        ValueError: If the token does not follow the time-spec grammar.
    """

    match = _TIME_SPEC_RE.match(token)
    if match is None or (match.group("relative") is None and match.group("clock") is None):
        raise ValueError(f"invalid time `{token}`; expected `[+][[H:]M:]S[.frac]`")

    clock = match.group("clock")
    if match.group("relative") is not None:
        if clock is None:
            return RelativeTime(min_gap_seconds)
        return RelativeTime(_clock_seconds(clock))
    return AbsoluteTime(_clock_seconds(clock))


def _clock_seconds(clock: str) -> float:
    """Reduce colon-separated clock components left to right into seconds."""

    total = 0.0
    for component in clock.split(":"):
        total = total * 60 + float(component)
    return total


@dataclass(slots=True)
class _RawFragment:
    """Syntactically valid fragment awaiting option resolution."""

    name: str
    kind: FragmentKind
    content: tuple[str, ...]
    declared_time: DeclaredTime
    line_number: int
    option_refs: list[tuple[str, str]] = field(default_factory=list)


class ScriptParser:
    """Parse narration scripts into fragments with fully merged options."""

    def __init__(
        self,
        option_store: OptionStore,
        *,
        global_voice_options: Mapping[str, Any] | None = None,
        global_audio_options: Mapping[str, Any] | None = None,
        allow_plain_text: bool = False,
        min_gap_seconds: float = MIN_GAP_SECONDS,
    ) -> None:
        """Initialize script-level option defaults and content policy."""

        self._option_store = option_store
        self._voice_defaults = merge_chain(DEFAULT_VOICE_OPTIONS, global_voice_options or {})
        self._audio_defaults = merge_chain(global_audio_options or {})
        self._allow_plain_text = allow_plain_text
        self._min_gap_seconds = min_gap_seconds

    def parse_file(self, script_path: Path) -> list[Fragment]:
        """Read and parse a UTF-8 script file."""

        try:
            text = script_path.read_bytes().decode("utf-8")
        except FileNotFoundError:
            raise ParseError(
                str(script_path),
                [ScriptDiagnostic(0, f"Script file not found: `{script_path}`.")],
            ) from None
        except UnicodeDecodeError as exc:
            raise ParseError(
                str(script_path),
                [ScriptDiagnostic(0, f"Script is not valid UTF-8 text: {exc.reason}.")],
            ) from exc
        except OSError as exc:
            raise ParseError(
                str(script_path),
                [ScriptDiagnostic(0, f"Script file is not readable: {exc}.")],
            ) from exc
        return self.parse_text(text, source=str(script_path), base_dir=script_path.parent)

    def parse_text(
        self,
        text: str,
        *,
        source: str = "<script>",
        base_dir: Path | None = None,
    ) -> list[Fragment]:
        """Parse script text, raising `ParseError` with every detected problem.

        Option files referenced by fragment headers are loaded only once the
        whole script is syntactically valid; load failures raise `ConfigError`.
        """

        lines = _LINE_SPLIT_RE.split(text.removeprefix("\ufeff"))
        diagnostics: list[ScriptDiagnostic] = []
        raw_fragments: list[_RawFragment] = []
        seen_names: dict[str, int] = {}

        index = 0
        while index < len(lines):
            if not lines[index].strip():
                index += 1
                continue
            header_number = index + 1
            header = lines[index]
            index += 1
            block: list[str] = []
            while index < len(lines) and lines[index].strip():
                block.append(lines[index])
                index += 1

            raw = self._parse_block(header, header_number, block, diagnostics)
            if raw is None:
                continue
            if raw.name in seen_names:
                diagnostics.append(
                    ScriptDiagnostic(
                        header_number,
                        f"duplicate fragment name `{raw.name}` "
                        f"(first defined on line {seen_names[raw.name]})",
                        header,
                    )
                )
                continue
            seen_names[raw.name] = header_number
            raw_fragments.append(raw)

        if not diagnostics and not raw_fragments:
            diagnostics.append(ScriptDiagnostic(0, "Script contains no fragments."))
        if diagnostics:
            raise ParseError(source, diagnostics)

        return [self._resolve(raw, base_dir) for raw in raw_fragments]

    def _parse_block(
        self,
        header: str,
        header_number: int,
        block: list[str],
        diagnostics: list[ScriptDiagnostic],
    ) -> _RawFragment | None:
        """Validate one header plus content block, appending any diagnostics."""

        problems_before = len(diagnostics)
        tokens = header.split()
        if len(tokens) < 2:
            diagnostics.append(
                ScriptDiagnostic(
                    header_number,
                    "malformed fragment header; expected `<time> <name> [audio=|voice=<file>]...`",
                    header,
                )
            )
            return None

        time_token, name = tokens[0], tokens[1]
        declared_time: DeclaredTime | None = None
        try:
            declared_time = parse_time_spec(time_token, self._min_gap_seconds)
        except ValueError as exc:
            diagnostics.append(ScriptDiagnostic(header_number, str(exc), header))

        if _NAME_RE.match(name) is None:
            diagnostics.append(
                ScriptDiagnostic(
                    header_number,
                    f"invalid fragment name `{name}`; use letters, digits, `_`, `.` or `-`",
                    header,
                )
            )

        option_refs: list[tuple[str, str]] = []
        for token in tokens[2:]:
            pair = _OPTION_PAIR_RE.match(token)
            if pair is None or pair.group("key") not in _OPTION_KEYS:
                diagnostics.append(
                    ScriptDiagnostic(
                        header_number,
                        f"malformed option `{token}`; expected `audio=<file>` or `voice=<file>`",
                        header,
                    )
                )
                continue
            if not pair.group("path"):
                diagnostics.append(
                    ScriptDiagnostic(
                        header_number,
                        f"option `{pair.group('key')}` is missing a file path",
                        header,
                    )
                )
                continue
            option_refs.append((pair.group("key"), pair.group("path")))

        kind = self._content_kind(name, header_number, block, diagnostics)

        if len(diagnostics) != problems_before or declared_time is None or kind is None:
            return None
        return _RawFragment(
            name=name,
            kind=kind,
            content=tuple(block),
            declared_time=declared_time,
            line_number=header_number,
            option_refs=option_refs,
        )

    def _content_kind(
        self,
        name: str,
        header_number: int,
        block: list[str],
        diagnostics: list[ScriptDiagnostic],
    ) -> FragmentKind | None:
        """Infer the content kind from the first/last lines of a block."""

        if not block:
            diagnostics.append(
                ScriptDiagnostic(header_number, f"fragment `{name}` has no content")
            )
            return None

        first = block[0].strip()
        last = block[-1].strip()
        if len(block) == 1 and _SPEAK_INLINE_RE.match(first):
            return FragmentKind.SSML
        opens = _SPEAK_OPEN_RE.match(first) is not None
        closes = last == _SPEAK_CLOSE
        if len(block) > 1 and opens and closes:
            return FragmentKind.SSML

        has_markers = first.startswith("<speak") or last.endswith(_SPEAK_CLOSE)
        if self._allow_plain_text and not has_markers:
            return FragmentKind.TEXT

        if not opens:
            detail = f"fragment `{name}` content must start with a `<speak>` line"
            line_number, line = header_number + 1, block[0]
        else:
            detail = f"fragment `{name}` content must end with a `</speak>` line"
            line_number, line = header_number + len(block), block[-1]
        diagnostics.append(ScriptDiagnostic(line_number, detail, line))
        return None

    def _resolve(self, raw: _RawFragment, base_dir: Path | None) -> Fragment:
        """Load referenced option files and build the final fragment."""

        voice_layers: list[Mapping[str, Any]] = [self._voice_defaults]
        audio_layers: list[Mapping[str, Any]] = [self._audio_defaults]
        for key, path in raw.option_refs:
            loaded = self._option_store.load(Path(path), base_dir)
            if key == "voice":
                voice_layers.append(loaded)
            else:
                audio_layers.append(loaded)

        return Fragment(
            name=raw.name,
            kind=raw.kind,
            content=raw.content,
            declared_time=raw.declared_time,
            voice_options=merge_chain(*voice_layers),
            audio_options=merge_chain(*audio_layers),
            line_number=raw.line_number,
        )
