"""
script2video Main Entry Point

Run the pipeline headless: every review point is confirmed automatically and
the project file is checkpointed after each step.
"""

import sys
import argparse
import asyncio
from pathlib import Path

from script2video.core.logging_config import setup_logging, get_logger, library_logging, LogLevel
from script2video.core.config import load_config, set_config
from script2video.core.startup import validate_environment


def main():
    """Main entry point for script2video."""
    parser = argparse.ArgumentParser(
        description="script2video - Script to shot list and video prompt pipeline"
    )

    parser.add_argument(
        "--project", "-p",
        type=str,
        required=True,
        help="Path to the project JSON file (created from --script, or resumed)"
    )

    parser.add_argument(
        "--script", "-s",
        type=str,
        help="Script text file to start a new project from"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to configuration file"
    )

    parser.add_argument("--shot-guide", type=str, help="Shot list guide document")
    parser.add_argument("--prompt-guide", type=str, help="Video prompt guide document")
    parser.add_argument("--style-guide", type=str, help="Global visual style guide")

    parser.add_argument(
        "--import-shots",
        type=str,
        help="CSV shot list to load before running"
    )

    parser.add_argument(
        "--stop-on-error",
        action="store_true",
        help="Stop at a failed analysis item instead of skipping it"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )

    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this file"
    )

    parser.add_argument(
        "--skip-validation",
        action="store_true",
        help="Skip API key validation at startup"
    )

    args = parser.parse_args()

    # Setup logging
    if args.debug:
        log_level = LogLevel.DEBUG
    elif args.verbose:
        log_level = LogLevel.INFO
    else:
        log_level = LogLevel.WARNING
    setup_logging(
        level=log_level,
        log_file=Path(args.log_file) if args.log_file else None,
        verbose=args.debug,
    )

    logger = get_logger("main")
    logger.info("Starting script2video...")

    # Load configuration
    config_path = Path(args.config) if args.config else Path("config/script2video_config.json")
    try:
        config = load_config(config_path)
        logger.info(f"Loaded configuration from {config_path}")
    except Exception as e:
        logger.warning(f"Could not load config: {e}. Using defaults.")
        config = None

    if config is not None:
        set_config(config)

    # Validate environment (API keys, etc.)
    if not args.skip_validation:
        from script2video.core.config import get_config
        validation_result = validate_environment(get_config())
        if not validation_result.valid:
            print("\nEnvironment validation failed. Missing required configuration:")
            for error in validation_result.errors:
                print(f"  x {error}")
            print("\nRun with --skip-validation to bypass (not recommended)")
            sys.exit(1)

        for warning in validation_result.warnings:
            logger.warning(warning)

    sys.exit(run_cli(args))


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def open_project(args):
    """Create or open the project store and load guides and imported shots."""
    from script2video.core.models import ProjectData
    from script2video.project import apply_imported_shots, parse_script_to_episodes, parse_shot_csv
    from script2video.store import JsonProjectStore, SetGuides

    logger = get_logger("main")
    project_path = Path(args.project)

    if args.script:
        raw_script = _read_text(args.script)
        episodes = parse_script_to_episodes(raw_script)
        store = JsonProjectStore.create(
            project_path,
            ProjectData.new(raw_script, episodes, file_name=Path(args.script).name),
        )
        logger.info(f"Created project {project_path} with {len(episodes)} episode(s)")
    else:
        store = JsonProjectStore.open(project_path)

    guides = SetGuides(
        shot_guide=_read_text(args.shot_guide) if args.shot_guide else None,
        prompt_guide=_read_text(args.prompt_guide) if args.prompt_guide else None,
        style_guide=_read_text(args.style_guide) if args.style_guide else None,
    )
    if any(value is not None for value in (guides.shot_guide, guides.prompt_guide, guides.style_guide)):
        store.apply(guides)

    if args.import_shots:
        apply_imported_shots(store, parse_shot_csv(_read_text(args.import_shots)))

    return store


async def drive(controller, skip_failed: bool = True) -> int:
    """
    Run the pipeline to the end, confirming every review point.

    Failed analysis queue items are skipped when ``skip_failed`` is set; any
    other failure stops the run with the project checkpointed.

    Returns:
        Process exit code
    """
    from script2video.core.constants import QUEUE_STEPS, AnalysisSubStep, Phase, RunOutcome

    logger = get_logger("main")

    if controller.phase == Phase.IDLE:
        await controller.advance(confirmed=True)
        outcome = controller.last_outcome
    else:
        outcome = await controller.resume()

    while True:
        data = controller.store.snapshot()
        phase = data.workflow.phase

        if phase == Phase.DONE:
            print("\nAll episodes completed.")
            return 0

        if phase == Phase.ANALYSIS:
            step = data.workflow.analysis_step
            if step == AnalysisSubStep.COMPLETE:
                have_shots = bool(data.episodes) and all(ep.has_shots for ep in data.episodes)
                await controller.advance(confirmed=True, skip_shot_generation=have_shots)
                outcome = controller.last_outcome
                continue
            if outcome == RunOutcome.HALTED:
                if skip_failed and step in QUEUE_STEPS:
                    logger.warning(f"Skipping failed item: {data.workflow.pending_error}")
                    outcome = await controller.skip_analysis_item()
                    continue
                print(f"\nAnalysis failed at {step.value}: {data.workflow.pending_error}")
                return 1
            outcome = await controller.confirm_analysis_step()
            continue

        if outcome == RunOutcome.HALTED:
            episode = data.episodes[data.workflow.current_episode_index]
            print(f"\n{episode.title} failed: {episode.error_msg}")
            return 1
        if outcome == RunOutcome.IDLE:
            print("\nPrompt generation is waiting for a prompt guide (--prompt-guide).")
            return 1
        if outcome == RunOutcome.PHASE_COMPLETE:
            await controller.advance(confirmed=True)
            outcome = controller.last_outcome
            continue
        outcome = await controller.confirm_episode()


def print_progress(update) -> None:
    print(f"[{update['phase']}] {update['message']}")


def print_usage(data) -> None:
    """Print the usage ledger and request statistics of a project."""
    print("\nToken usage:")
    for scope in data.usage.scopes:
        usage = data.usage.get(scope)
        print(f"  {scope:<28} {usage.total_tokens:>10}")
    print("\nRequests:")
    for category, stats in data.stats.to_dict().items():
        print(f"  {category:<10} total={stats['total']} success={stats['success']} error={stats['error']}")


def _library_level(args) -> LogLevel:
    if args.debug:
        return LogLevel.DEBUG
    if args.verbose:
        return LogLevel.INFO
    return LogLevel.WARNING


def run_cli(args) -> int:
    """Run the pipeline headless."""
    from script2video.core.config import get_config
    from script2video.core.exceptions import Script2VideoError
    from script2video.llm import LLMGenerationService, LLMManager
    from script2video.pipelines import PhaseController

    logger = get_logger("main")
    config = get_config()

    print("\n" + "=" * 60)
    print("  script2video - Headless Run")
    print("=" * 60 + "\n")

    try:
        store = open_project(args)
        controller = PhaseController(
            store,
            LLMGenerationService(LLMManager(config)),
            config=config.pipeline,
        )
        controller.set_progress_callback(print_progress)
        with library_logging(_library_level(args)):
            code = asyncio.run(drive(controller, skip_failed=not args.stop_on_error))
    except Script2VideoError as e:
        logger.error(f"Error: {e}")
        print(f"Error: {e.message}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted. Progress is saved in the project file.")
        return 130

    print_usage(store.snapshot())
    return code


if __name__ == "__main__":
    main()
