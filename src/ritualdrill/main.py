"""CLI entrypoint for the ritual drill trainer."""

from __future__ import annotations

import argparse
import logging
import time
from collections.abc import Callable

from .config import Settings, load_settings
from .errors import ConfigurationError, InvalidSelectionError
from .levels import FocusGridRound, PlanSprintRound
from .models import DifficultyLevel, Drill, GameType
from .scoring import RoundResult
from .service import TrainingService
from .session import DrillSession, SessionStatus

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
ClockFn = Callable[[], float]
BACK_COMMANDS = {":back", ":b", "back"}
MENU_QUIT_COMMANDS = {"q"}
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
MENU_BACK_COMMANDS = {"b"}
QUICK_START_MINUTES = (2, 5)

_TUTORIALS = {
    GameType.FOCUS_GRID: (
        "Watch the highlighted cells, then repeat them in the same order.",
        "Cells are numbered left to right, top to bottom, starting at 0.",
        "Too many wrong cells or running out of time ends the session.",
    ),
    GameType.PLAN_SPRINT: (
        "Reorder the tasks so they follow the active rules.",
        "Enter task numbers in your chosen order; tasks you leave out keep their place at the end.",
        "Score at least half of the rule points to advance a level.",
    ),
}


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


def _service(settings: Settings) -> TrainingService:
    """Create app service from resolved settings."""
    return TrainingService.from_settings(settings)


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="ritualdrill", description="Short daily focus and habit drills")
    parser.add_argument("command", nargs="?", default="play", choices=["play", "status"])
    parser.add_argument("--data-dir", help="Directory holding progress.json")
    parser.add_argument("--seed", type=int, help="Seed the random source for reproducible rounds")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    args = parser.parse_args(argv)
    try:
        settings = load_settings().with_overrides(data_dir=args.data_dir, seed=args.seed, log_level=args.log_level)
    except ConfigurationError as exc:
        parser.error(str(exc))
    logging.basicConfig(level=settings.log_level_number, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "status":
        _status_flow(_service(settings), print)
        return 0
    return play_shell(settings=settings)


def play_shell(
    input_fn: InputFn = input,
    print_fn: PrintFn = print,
    settings: Settings | None = None,
    clock: ClockFn = time.monotonic,
) -> int:
    """Run persistent menu-driven shell."""
    service = _service(settings if settings is not None else load_settings())
    try:
        if not service.progress_snapshot().has_completed_onboarding:
            _onboarding_flow(service, input_fn, print_fn)
        while True:
            progress = service.progress_snapshot()
            print_fn("\n=== Ritual Drill ===")
            print_fn(
                f"Track: {service.current_track().title} | Streak: {progress.streak_days} | "
                f"Level {progress.ritual_level} ({progress.xp_to_next_level} XP to next)"
            )
            print_fn("1) Today's plan")
            print_fn("2) Drill library")
            print_fn("3) Quick start")
            print_fn("4) Progress")
            print_fn("5) Badges")
            print_fn("6) Settings")
            print_fn("q) Quit")
            choice = input_fn("Choose: ").strip().lower()

            if choice == "1":
                _plan_flow(service, input_fn, print_fn, clock)
            elif choice == "2":
                _library_flow(service, input_fn, print_fn, clock)
            elif choice == "3":
                _quick_start_flow(service, input_fn, print_fn, clock)
            elif choice == "4":
                _status_flow(service, print_fn)
            elif choice == "5":
                _badges_flow(service, print_fn)
            elif choice == "6":
                _settings_flow(service, input_fn, print_fn)
            elif choice in MENU_QUIT_COMMANDS:
                return 0
            else:
                print_fn("Invalid choice.")
    except QuitApp:
        return 0


def _onboarding_flow(service: TrainingService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Pick a starting track on first launch."""
    print_fn("\nWelcome. Pick a track to focus on (you can change it later).")
    _choose_track(service, input_fn, print_fn)
    service.complete_onboarding()


def _choose_track(service: TrainingService, input_fn: InputFn, print_fn: PrintFn) -> None:
    tracks = service.list_tracks()
    for idx, track in enumerate(tracks, start=1):
        print_fn(f"{idx}) {track.title} - {track.subtitle}")
    print_fn("b) Back")
    choice = input_fn("Choose track: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if not choice.isdigit() or not (0 < int(choice) <= len(tracks)):
        print_fn("Invalid choice.")
        return
    track = service.select_track(tracks[int(choice) - 1].id)
    print_fn(f"Track set to {track.title}.")


def _plan_flow(service: TrainingService, input_fn: InputFn, print_fn: PrintFn, clock: ClockFn) -> None:
    """Show today's plan and play one of its drills."""
    plan = service.today_plan()
    print_fn(f"\n=== Today's Plan ({plan.day.isoformat()}) ===")
    if not plan.entries:
        print_fn("Nothing planned today.")
        return
    for idx, entry in enumerate(plan.entries, start=1):
        mark = "x" if entry.completed else " "
        print_fn(f"{idx}) [{mark}] {entry.drill.title} - {entry.reason.label}")
    print_fn(f"Done: {plan.completed_count}/{plan.total_count} ({plan.completion_percentage * 100:.0f}%)")
    print_fn("b) Back")
    print_fn("q) Quit")
    choice = input_fn("Choose drill: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if not choice.isdigit() or not (0 < int(choice) <= len(plan.entries)):
        print_fn("Invalid choice.")
        return
    _play_drill_flow(service, plan.entries[int(choice) - 1].drill, input_fn, print_fn, clock)


def _library_flow(service: TrainingService, input_fn: InputFn, print_fn: PrintFn, clock: ClockFn) -> None:
    """Browse drills, optionally filtered by track."""
    tracks = service.list_tracks()
    print_fn("\n=== Drill Library ===")
    print_fn("a) All tracks")
    for idx, track in enumerate(tracks, start=1):
        print_fn(f"{idx}) {track.title}")
    choice = input_fn("Filter by track: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    track_id: str | None = None
    if choice.isdigit() and 0 < int(choice) <= len(tracks):
        track_id = tracks[int(choice) - 1].id
    elif choice not in {"a", ""}:
        print_fn("Invalid choice.")
        return

    drills = service.list_drills(track_id=track_id)
    if not drills:
        print_fn("No drills match.")
        return
    title_width = max(len("Drill"), max(len(drill.title) for drill in drills))
    minutes_width = max(len("Minutes"), max(len(_join_ints(drill.duration_options)) for drill in drills))
    header = f"{'#':>2} {'Drill':<{title_width}} {'Minutes':<{minutes_width}} {'Best':>5} About"
    print_fn(header)
    print_fn("-" * len(header))
    for idx, drill in enumerate(drills, start=1):
        print_fn(
            f"{idx:>2} "
            f"{drill.title:<{title_width}} "
            f"{_join_ints(drill.duration_options):<{minutes_width}} "
            f"{service.best_score(drill.id):>5} "
            f"{drill.short_description}"
        )
    print_fn("b) Back")
    print_fn("q) Quit")
    pick = input_fn("Choose drill: ").strip().lower()
    if pick in MENU_BACK_COMMANDS:
        return
    if pick in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if not pick.isdigit() or not (0 < int(pick) <= len(drills)):
        print_fn("Invalid choice.")
        return
    _play_drill_flow(service, drills[int(pick) - 1], input_fn, print_fn, clock)


def _quick_start_flow(service: TrainingService, input_fn: InputFn, print_fn: PrintFn, clock: ClockFn) -> None:
    print_fn("\n=== Quick Start ===")
    for minutes in QUICK_START_MINUTES:
        print_fn(f"{minutes}) {minutes}-minute drill")
    choice = input_fn("Minutes: ").strip().lower()
    if choice in MENU_BACK_COMMANDS:
        return
    if choice in MENU_QUIT_COMMANDS:
        raise QuitApp()
    if not choice.isdigit() or int(choice) not in QUICK_START_MINUTES:
        print_fn("Invalid choice.")
        return
    drill = service.quick_start_drill(int(choice))
    if drill is None:
        print_fn("No drill offers that duration.")
        return
    _play_drill_flow(service, drill, input_fn, print_fn, clock, duration=int(choice))


def _play_drill_flow(
    service: TrainingService,
    drill: Drill,
    input_fn: InputFn,
    print_fn: PrintFn,
    clock: ClockFn,
    duration: int | None = None,
) -> None:
    """Pick difficulty and duration, then play a session to its end."""
    print_fn(f"\n=== {drill.title} ===")
    print_fn(drill.long_description or drill.short_description)
    for line in drill.how_it_helps:
        print_fn(f"- {line}")

    difficulty = _choose_option(
        "Difficulty", [tier.label for tier in drill.difficulty_levels], input_fn, print_fn
    )
    if difficulty is None:
        return
    if duration is None:
        minutes_text = _choose_option("Minutes", [str(value) for value in drill.duration_options], input_fn, print_fn)
        if minutes_text is None:
            return
        duration = int(minutes_text)

    try:
        session = service.start_session(drill.id, DifficultyLevel.from_label(difficulty), duration)
    except InvalidSelectionError as exc:
        print_fn(str(exc))
        return

    if service.needs_tutorial(drill):
        print_fn("\nHow to play:")
        for line in _TUTORIALS[drill.game_type]:
            print_fn(f"- {line}")
        service.mark_tutorial_seen(drill)

    print_fn("Type :b or :q to abandon the session (nothing is recorded).")
    while not session.is_finished:
        if isinstance(session.current_round, FocusGridRound):
            result = _play_focus_grid_round(session, session.current_round, input_fn, print_fn, clock)
        else:
            result = _play_plan_sprint_round(session, session.current_round, input_fn, print_fn, clock)
        if result is None:
            print_fn("Session abandoned.")
            return
        _print_round_result(result, print_fn)

    completion = service.finalize_session(session)
    summary = session.summary()
    outcome = "All levels cleared!" if summary.status is SessionStatus.COMPLETED_ALL else "Session over."
    print_fn(f"\n{outcome}")
    print_fn(f"- Total score: {summary.total_score}")
    print_fn(f"- Level reached: {summary.level_reached}")
    print_fn(f"- Perfect levels: {summary.perfect_levels}")
    print_fn(f"- XP earned: {completion.xp_earned}")
    if completion.leveled_up:
        print_fn(f"Ritual level up! Now level {completion.progress.ritual_level}.")
    for badge in completion.new_badges:
        print_fn(f"Badge unlocked: {badge.title} ({badge.rarity.display_name})")


def _choose_option(label: str, options: list[str], input_fn: InputFn, print_fn: PrintFn) -> str | None:
    """Prompt for one of `options`; a blank answer picks the first."""
    if len(options) == 1:
        return options[0]
    while True:
        answer = input_fn(f"{label} [{'/'.join(options)}]: ").strip()
        lowered = answer.lower()
        if lowered in BACK_COMMANDS or lowered in MENU_BACK_COMMANDS:
            return None
        if lowered in FLOW_EXIT_COMMANDS or lowered in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if not answer:
            return options[0]
        for option in options:
            if option.lower() == lowered:
                return option
        print_fn("Invalid choice.")


def _play_focus_grid_round(
    session: DrillSession,
    round_: FocusGridRound,
    input_fn: InputFn,
    print_fn: PrintFn,
    clock: ClockFn,
) -> RoundResult | None:
    print_fn(
        f"\nLevel {round_.level}: {round_.grid_size}x{round_.grid_size} grid, "
        f"{round_.sequence_length} cells, {round_.time_budget}s, "
        f"{round_.allowed_mistakes} mistakes allowed"
    )
    _print_grid(round_.grid_size, print_fn)
    print_fn(f"Memorize: {' '.join(str(cell) for cell in round_.sequence)}")
    started = clock()
    while True:
        answer = input_fn("Repeat the cells: ").strip()
        if answer.lower() in BACK_COMMANDS or answer.lower() in FLOW_EXIT_COMMANDS:
            return None
        tokens = answer.replace(",", " ").split()
        if tokens and all(token.isdigit() for token in tokens):
            break
        print_fn("Enter cell numbers separated by spaces.")
    return session.submit_focus_grid([int(token) for token in tokens], clock() - started)


def _play_plan_sprint_round(
    session: DrillSession,
    round_: PlanSprintRound,
    input_fn: InputFn,
    print_fn: PrintFn,
    clock: ClockFn,
) -> RoundResult | None:
    print_fn(f"\nLevel {round_.level}: order {len(round_.tasks)} tasks in {round_.time_budget}s")
    print_fn("Rules:")
    for rule in round_.rules:
        print_fn(f"- {rule.title}: {rule.description}")
    title_width = max(len("Task"), max(len(task.title) for task in round_.tasks))
    header = f"{'#':>2} {'Task':<{title_width}} {'Category':<14} {'Energy':<6} {'Length':<6} Needs"
    print_fn(header)
    print_fn("-" * len(header))
    titles = {task.id: task.title for task in round_.tasks}
    for idx, task in enumerate(round_.tasks, start=1):
        needs = ", ".join(titles.get(item, item) for item in task.prerequisites) or "-"
        print_fn(
            f"{idx:>2} "
            f"{task.title:<{title_width}} "
            f"{task.category.value:<14} "
            f"{task.energy.name.lower():<6} "
            f"{task.duration.name.lower():<6} "
            f"{needs}"
        )
    started = clock()
    while True:
        answer = input_fn("Your order: ").strip()
        if answer.lower() in BACK_COMMANDS or answer.lower() in FLOW_EXIT_COMMANDS:
            return None
        tokens = answer.replace(",", " ").split()
        if all(token.isdigit() and 0 < int(token) <= len(round_.tasks) for token in tokens):
            break
        print_fn(f"Enter task numbers between 1 and {len(round_.tasks)}.")
    ordering = [round_.tasks[int(token) - 1].id for token in tokens]
    return session.submit_plan_sprint(ordering, clock() - started)


def _print_grid(grid_size: int, print_fn: PrintFn) -> None:
    width = len(str(grid_size * grid_size - 1))
    for row in range(grid_size):
        print_fn(" ".join(f"{row * grid_size + col:>{width}}" for col in range(grid_size)))


def _print_round_result(result: RoundResult, print_fn: PrintFn) -> None:
    verdict = "passed" if result.passed else "failed"
    extra = " (perfect)" if result.perfect else ""
    print_fn(f"Level {result.level} {verdict}{extra}: {result.score} pts, {result.time_left}s left")
    if result.game_type is GameType.FOCUS_GRID:
        print_fn(f"- Correct taps: {result.correct_taps}, mistakes: {result.mistakes}")
        if result.timed_out:
            print_fn("- Time ran out.")
    for item in result.rule_scores:
        print_fn(f"- {item.rule.title}: {item.score * 100:.0f}%")


def _status_flow(service: TrainingService, print_fn: PrintFn) -> None:
    """Print streak, XP, weekly heatmap, and best scores."""
    progress = service.progress_snapshot()
    print_fn("\n=== Progress ===")
    print_fn(f"- Track: {service.current_track().title}")
    print_fn(f"- Streak: {progress.streak_days} days (best {progress.best_streak})")
    print_fn(
        f"- Ritual level: {progress.ritual_level} "
        f"({progress.ritual_xp} XP, {progress.level_progress * 100:.0f}% to next)"
    )
    print_fn(f"- Drills completed: {progress.total_drills_completed}")
    print_fn(f"- Minutes trained: {progress.total_minutes}")
    print_fn(f"- This week: {service.weekly_total()} min over {service.days_active_this_week()} days")

    week = service.week_heatmap()
    print_fn(" ".join(f"{day.strftime('%a'):>4}" for day, _ in week))
    print_fn(" ".join(f"{minutes:>4}" for _, minutes in week))

    drills = [drill for drill in service.list_drills() if service.best_score(drill.id) > 0]
    if not drills:
        return
    title_width = max(len("Drill"), max(len(drill.title) for drill in drills))
    header = f"{'Drill':<{title_width}} {'Best':>6}"
    print_fn("\nBest scores:")
    print_fn(header)
    print_fn("-" * len(header))
    for drill in drills:
        print_fn(f"{drill.title:<{title_width}} {service.best_score(drill.id):>6}")


def _badges_flow(service: TrainingService, print_fn: PrintFn) -> None:
    statuses = service.badge_statuses()
    unlocked = sum(1 for status in statuses if status.unlocked)
    print_fn(f"\n=== Badges ({unlocked}/{len(statuses)}) ===")
    title_width = max(len("Badge"), max(len(status.badge.title) for status in statuses))
    rarity_width = max(len("Rarity"), max(len(status.badge.rarity.display_name) for status in statuses))
    header = f"{'Badge':<{title_width}} {'Rarity':<{rarity_width}} {'Unlocked':<16} Description"
    print_fn(header)
    print_fn("-" * len(header))
    for status in statuses:
        when = status.unlocked_at.strftime("%Y-%m-%d %H:%M") if status.unlocked_at else "locked"
        print_fn(
            f"{status.badge.title:<{title_width}} "
            f"{status.badge.rarity.display_name:<{rarity_width}} "
            f"{when:<16} "
            f"{status.badge.description}"
        )


def _settings_flow(service: TrainingService, input_fn: InputFn, print_fn: PrintFn) -> None:
    while True:
        print_fn("\n=== Settings ===")
        print_fn("1) Change track")
        print_fn("2) Reset progress")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose: ").strip().lower()
        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "1":
            _choose_track(service, input_fn, print_fn)
        elif choice == "2":
            print_fn("WARNING: This permanently deletes streaks, history, XP, and badges.")
            confirm = input_fn("Type YES to confirm reset: ").strip()
            if confirm != "YES":
                print_fn("Reset cancelled.")
                continue
            service.reset_progress()
            print_fn("Progress reset.")
        else:
            print_fn("Invalid choice.")


def _join_ints(values: tuple[int, ...]) -> str:
    return "/".join(str(value) for value in values)


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
