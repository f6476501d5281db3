"""Pipeline orchestration for video-narrator.

Responsibilities:
- Define the stage order parse -> synthesize -> probe -> schedule -> mix.
- Fan fragment-local collaborator calls out over a bounded worker pool and
  halt a script at the first failing stage.
- Process scripts sequentially and collect per-script outcomes.

Key types:
- `NarrationPipeline`: orchestration facade.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any, Mapping

from ..audio.mixer import AudioMixer, FfmpegMixer
from ..audio.probe import DurationProbe, DurationResolver, FfprobeDurationProbe
from ..config import NarratorConfig
from ..errors import ConfigError, DurationError, MixError, PipelineStageError, SynthesisError
from ..io.storage import FragmentStore
from ..models.datatypes import (
    CacheOutcome,
    Fragment,
    RunReport,
    Schedule,
    ScriptFailure,
    ScriptResult,
)
from ..options.store import OptionStore
from ..script.parser import ScriptParser
from ..synthesis.cache import FragmentCache
from ..synthesis.synthesizer import GoogleTTSSynthesizer, SpeechSynthesizer
from ..telemetry.logger import RunLogger
from ..timeline.planner import CompositorPlanner, output_path_for
from ..timeline.scheduler import TimelineScheduler
from .fanout import fan_out
from .telemetry import PipelineTelemetryMixin


class NarrationPipeline(PipelineTelemetryMixin):
    """Coordinate all stages for narrating one or more scripts."""

    def __init__(
        self,
        config: NarratorConfig | None = None,
        *,
        option_store: OptionStore | None = None,
        synthesizer: SpeechSynthesizer | None = None,
        probe: DurationProbe | None = None,
        mixer: AudioMixer | None = None,
        run_logger: RunLogger | None = None,
        stage_progress_callback: Callable[[str, int, int], None] | None = None,
    ) -> None:
        """Initialize configuration, collaborators, and optional telemetry hooks.

        Collaborators left as `None` are created from `config` on first use, so
        a fully cached run never needs speech credentials.
        """

        self.config = config or NarratorConfig()
        self.config.validate()
        self.option_store = option_store or OptionStore()
        self.store = FragmentStore(self.config.cache_dir)
        self.scheduler = TimelineScheduler(self.config.min_gap_seconds)
        self._synthesizer = synthesizer
        self._probe = probe
        self._mixer = mixer
        self._parser: ScriptParser | None = None
        self._run_logger = run_logger
        self._stage_progress_callback = stage_progress_callback

    @property
    def synthesizer(self) -> SpeechSynthesizer:
        """Return the speech collaborator, creating the Google client lazily."""

        if self._synthesizer is None:
            self._synthesizer = GoogleTTSSynthesizer(
                api_key=self.config.resolved_api_key(),
                endpoint=self.config.speech_endpoint,
                timeout_seconds=self.config.request_timeout_seconds,
            )
        return self._synthesizer

    @property
    def probe(self) -> DurationProbe:
        """Return the duration collaborator, defaulting to ffprobe."""

        if self._probe is None:
            self._probe = FfprobeDurationProbe(timeout_seconds=self.config.request_timeout_seconds)
        return self._probe

    @property
    def mixer(self) -> AudioMixer:
        """Return the mixing collaborator, defaulting to ffmpeg."""

        if self._mixer is None:
            self._mixer = FfmpegMixer()
        return self._mixer

    def run_many(self, script_paths: Iterable[Path]) -> RunReport:
        """Narrate scripts one after another and report each outcome.

        A failing script does not stop later scripts. `ConfigError` aborts the
        whole invocation because it affects every script.
        """

        report = RunReport()
        for script_path in script_paths:
            try:
                report.results.append(self.run(script_path))
            except ConfigError:
                raise
            except PipelineStageError as exc:
                self._log_event(
                    "ERROR",
                    "script_failed",
                    exc.stage,
                    script=script_path,
                    error_type=type(exc).__name__,
                )
                report.failures.append(ScriptFailure(script_path=script_path, error=exc))
        return report

    def run(self, script_path: Path) -> ScriptResult:
        """Narrate one script into its `.ogg` output and return the outcome."""

        fragments = self._run_stage("parse", lambda: self._script_parser().parse_file(script_path))
        output_path = output_path_for(script_path)
        if output_path.exists() and not self.config.overwrite:
            raise MixError(
                f"Output file `{output_path}` already exists.",
                hint="Pass `--overwrite` (`-y`) to replace it.",
            )

        cache = FragmentCache(self.store, self.synthesizer)
        outcomes = self._run_stage("synthesize", lambda: self._synthesize_all(cache, fragments))
        audio_paths = {outcome.fragment_name: outcome.audio_path for outcome in outcomes}
        self._run_stage("probe", lambda: self._probe_all(fragments, audio_paths))
        schedule = self._run_stage("schedule", lambda: self._schedule(fragments))
        self._run_stage(
            "mix",
            lambda: CompositorPlanner(self.mixer).compose(
                schedule,
                audio_paths,
                output_path,
                overwrite=self.config.overwrite,
            ),
        )

        reused = sum(1 for outcome in outcomes if outcome.reused)
        self._log_event(
            "INFO",
            "script_complete",
            "mix",
            script=script_path,
            output=output_path,
            fragments=len(fragments),
            reused=reused,
            synthesized=len(outcomes) - reused,
        )
        return ScriptResult(
            script_path=script_path,
            output_path=output_path,
            fragments=tuple(fragments),
            schedule=schedule,
            reused_count=reused,
            synthesized_count=len(outcomes) - reused,
        )

    def schedule_only(self, script_path: Path) -> Schedule:
        """Resolve a script's timeline from already cached audio.

        Raises:
            DurationError: If any fragment's cached audio is missing or stale.
        """

        fragments = self._run_stage("parse", lambda: self._script_parser().parse_file(script_path))
        cache = FragmentCache(self.store, self.synthesizer)
        stale = [fragment.name for fragment in fragments if not cache.is_current(fragment)]
        if stale:
            raise DurationError(
                stale,
                "Cached audio is missing or stale for fragment(s): " + ", ".join(stale) + ".",
                hint=f"Run `video-narrator build {script_path}` to synthesize them first.",
            )
        audio_paths = {fragment.name: self.store.audio_path(fragment.name) for fragment in fragments}
        self._run_stage("probe", lambda: self._probe_all(fragments, audio_paths))
        return self._run_stage("schedule", lambda: self._schedule(fragments))

    def _script_parser(self) -> ScriptParser:
        """Return the parser, loading global option files on first use."""

        if self._parser is None:
            self._parser = ScriptParser(
                self.option_store,
                global_voice_options=self._load_global_options(self.config.voice_options_path),
                global_audio_options=self._load_global_options(self.config.audio_options_path),
                allow_plain_text=self.config.allow_plain_text,
                min_gap_seconds=self.config.min_gap_seconds,
            )
        return self._parser

    def _load_global_options(self, path: Path | None) -> Mapping[str, Any] | None:
        """Load one run-wide option file, when configured."""

        if path is None:
            return None
        return self.option_store.load(path)

    def _synthesize_all(
        self, cache: FragmentCache, fragments: Sequence[Fragment]
    ) -> list[CacheOutcome]:
        """Ensure current audio for every fragment, or raise one `SynthesisError`."""

        try:
            self.store.ensure_root()
        except OSError as exc:
            raise SynthesisError(
                [fragment.name for fragment in fragments],
                f"Failed to create fragment cache directory `{self.store.root}`: {exc}",
                hint="Verify the cache directory location is writable.",
            ) from exc

        def ensure(fragment: Fragment) -> CacheOutcome:
            outcome = cache.ensure(fragment)
            self._log_event(
                "DEBUG",
                "reused" if outcome.reused else "synthesized",
                "synthesize",
                fragment=fragment.name,
            )
            return outcome

        result = fan_out(fragments, ensure, max_workers=self.config.max_workers)
        _raise_collected(SynthesisError, "synthesize", [exc for _, exc in result.failures])
        return [outcome for _, outcome in result.results]

    def _probe_all(self, fragments: Sequence[Fragment], audio_paths: Mapping[str, Path]) -> None:
        """Measure every fragment's duration, or raise one `DurationError`."""

        resolver = DurationResolver(self.probe)

        def measure(fragment: Fragment) -> float:
            seconds = resolver.resolve(fragment, audio_paths[fragment.name])
            self._log_event("DEBUG", "duration", "probe", fragment=fragment.name, seconds=seconds)
            return seconds

        result = fan_out(fragments, measure, max_workers=self.config.max_workers)
        _raise_collected(DurationError, "probe", [exc for _, exc in result.failures])

    def _schedule(self, fragments: Sequence[Fragment]) -> Schedule:
        """Place fragments on the timeline and log every clamp."""

        schedule = self.scheduler.schedule(fragments)
        for warning in schedule.warnings:
            self._log_event(
                "WARNING",
                warning.kind,
                "schedule",
                fragment=warning.fragment_name,
                declared=f"{warning.declared_start:.3f}",
                resolved=f"{warning.resolved_start:.3f}",
            )
        return schedule


def _raise_collected(
    error_type: type[SynthesisError] | type[DurationError],
    verb: str,
    failures: list[Exception],
) -> None:
    """Raise the collected fragment failures of one stage as a single error."""

    if not failures:
        return
    for exc in failures:
        if not isinstance(exc, error_type):
            raise exc
    if len(failures) == 1:
        raise failures[0]

    collected = [exc for exc in failures if isinstance(exc, error_type)]
    names = [name for exc in collected for name in exc.fragment_names]
    detail = f"{len(collected)} fragments failed to {verb}: " + "; ".join(
        exc.detail for exc in collected
    )
    raise error_type(names, detail, hint=collected[0].hint)
