"""CLI interface for the vocab reader's spaced repetition core.

Usage:
    python -m vocab_reader review WORD [WORD ...]   Quiz the due and new words
    python -m vocab_reader stats                    Show your statistics
    python -m vocab_reader due WORD [WORD ...]      Show how many cards are due
    python -m vocab_reader forecast --days 14       Show upcoming reviews
    python -m vocab_reader settings --new-cards 10  Show or change quiz settings
    python -m vocab_reader reset WORD [WORD ...]    Forget progress for words
"""

import argparse
import asyncio
import logging
from datetime import timedelta
from pathlib import Path

from backend.config import settings, utcnow
from backend.database import engine, ensure_sqlite_dir
from backend.database import storage as sql_storage
from backend.models import Base
from backend.srs.queue import split_candidates
from backend.srs.session import QuizMode, QuizSessionManager
from backend.srs.stats import (
    accuracy_stats,
    answers_from_history,
    format_interval,
    overall_stats,
    overdue_cards,
    review_forecast,
    streak_info,
)
from backend.storage.base import Storage

RATING_KEYS = {"1": "Again", "2": "Hard", "3": "Good", "4": "Easy"}


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    ensure_sqlite_dir()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def read_word_ids(args: argparse.Namespace) -> list[str]:
    """Collect word IDs from positional arguments and an optional file (one per line)."""
    word_ids = list(args.words or [])
    if getattr(args, "file", None):
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        word_ids.extend(line.strip() for line in lines if line.strip())
    return word_ids


async def cmd_review(args: argparse.Namespace, storage: Storage) -> None:
    """Run an interactive quiz session."""
    manager = QuizSessionManager(storage)
    mode = QuizMode(args.mode) if args.mode else None
    session = await manager.start(read_word_ids(args), list_ids=args.lists or [], mode=mode)

    if session is None:
        print("\nNo cards due for review. You're all caught up!")
        return

    direction = "word -> translation" if session.mode is QuizMode.WORD_TO_TRANSLATION else "translation -> word"
    print("\n  Quiz Session")
    print(f"  {len(session.word_ids)} cards, {direction}\n")
    print("  Ratings: 1=Again  2=Hard  3=Good  4=Easy")
    print("  Type 's' to skip, 'q' to quit without saving the session\n")

    for i, word_id in enumerate(session.word_ids, 1):
        print(f"  [{i}/{len(session.word_ids)}] {word_id}")

        while True:
            response = input("  Rate [1-4]: ").strip().lower()
            if response in RATING_KEYS or response in ("s", "q"):
                break
            print("  Please enter 1, 2, 3, 4, s or q.")

        if response == "q":
            manager.cancel()
            print("\n  Session cancelled. Ratings already given are kept.\n")
            return
        if response == "s":
            await manager.skip(word_id)
            print("  Skipped\n")
            continue

        state = await manager.answer(word_id, int(response))
        print(f"  {RATING_KEYS[response]}: next review in {format_interval(state.interval_days)}\n")

    record = await manager.finish()
    answered = len(record.answers) - record.skipped
    accuracy = record.correct / answered * 100 if answered else 0
    print("\n  Session Complete!")
    print(f"  Reviewed: {answered}  Correct: {record.correct}  Accuracy: {accuracy:.0f}%\n")


async def cmd_stats(args: argparse.Namespace, storage: Storage) -> None:
    """Show learning statistics."""
    now = utcnow()
    states = await storage.get_all_learning_states()
    history = await storage.get_session_history()

    answers = answers_from_history(history)
    overall = overall_stats(states.values(), answers, now)
    streak = streak_info(history, now)
    accuracy = accuracy_stats(answers, args.days, now)

    average = f"{accuracy.average_accuracy:.0f}%" if accuracy.average_accuracy is not None else "-"
    print("\n  Vocab Reader Statistics")
    print(f"  {'Total cards:':<24} {overall.total_cards}")
    print(f"  {'Learning:':<24} {overall.learning_cards}")
    print(f"  {'Young:':<24} {overall.young_cards}")
    print(f"  {'Mature:':<24} {overall.mature_cards}")
    print(f"  {'Retired:':<24} {overall.retired_cards}")
    print(f"  {'Total reviews:':<24} {overall.total_reviews}")
    print(f"  {'Reviews (7d / 30d):':<24} {overall.reviews_last_7_days} / {overall.reviews_last_30_days}")
    print(f"  {f'Accuracy ({args.days}d):':<24} {average}")
    print(f"  {'Current streak:':<24} {streak.current_streak} days")
    print(f"  {'Longest streak:':<24} {streak.longest_streak} days")
    print()


async def cmd_due(args: argparse.Namespace, storage: Storage) -> None:
    """Show how many of the given words are due or new."""
    now = utcnow()
    states = await storage.get_all_learning_states()
    word_ids = read_word_ids(args) or list(states)
    due, new = split_candidates(word_ids, states, now)
    overdue = overdue_cards((states[w] for w in word_ids if w in states), now)
    print(f"  {len(due)} cards due ({overdue.total} overdue), {len(new)} new cards available")


async def cmd_forecast(args: argparse.Namespace, storage: Storage) -> None:
    """Show the number of reviews due on each upcoming day."""
    now = utcnow()
    states = await storage.get_all_learning_states()
    forecast = review_forecast(states.values(), args.days, now, include_overdue=True)
    print()
    for offset, count in enumerate(forecast):
        day = now.date() + timedelta(days=offset)
        label = "today" if offset == 0 else day.isoformat()
        print(f"  {label:<12} {count:>4} {'#' * min(count, 50)}")
    print()


async def cmd_settings(args: argparse.Namespace, storage: Storage) -> None:
    """Show quiz settings, updating any that were passed."""
    changes = {
        "new_cards_per_day": args.new_cards,
        "reviews_per_day": args.reviews,
        "learn_ahead": args.learn_ahead,
        "quiz_bidirectional": args.bidirectional,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    manager = QuizSessionManager(storage)
    config = await manager.update_settings(**changes) if changes else await manager.get_settings()

    print("\n  Quiz Settings")
    print(f"  {'New cards per day:':<22} {config.new_cards_per_day}")
    print(f"  {'Reviews per day:':<22} {config.reviews_per_day}")
    print(f"  {'Learn ahead:':<22} {'yes' if config.learn_ahead else 'no'}")
    print(f"  {'Bidirectional:':<22} {'yes' if config.quiz_bidirectional else 'no'}")
    print()


async def cmd_reset(args: argparse.Namespace, storage: Storage) -> None:
    """Forget learning progress for the given words."""
    removed = await QuizSessionManager(storage).reset_progress(read_word_ids(args))
    print(f"  Reset progress for {removed} words")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vocab_reader",
        description="Vocabulary spaced repetition",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # review
    review_parser = subparsers.add_parser("review", help="Start a quiz session")
    review_parser.add_argument("words", nargs="*", help="Word IDs to draw from")
    review_parser.add_argument("-f", "--file", help="File with one word ID per line")
    review_parser.add_argument("-l", "--lists", nargs="*", help="IDs of the lists being reviewed")
    review_parser.add_argument("-m", "--mode", choices=[m.value for m in QuizMode], help="Quiz direction")

    # stats
    stats_parser = subparsers.add_parser("stats", help="Show your statistics")
    stats_parser.add_argument(
        "-d", "--days", type=int, default=settings.stats_time_range_days, help="Accuracy window in days"
    )

    # due
    due_parser = subparsers.add_parser("due", help="Show cards due for review")
    due_parser.add_argument("words", nargs="*", help="Word IDs to check (default: all reviewed words)")
    due_parser.add_argument("-f", "--file", help="File with one word ID per line")

    # forecast
    forecast_parser = subparsers.add_parser("forecast", help="Show upcoming reviews per day")
    forecast_parser.add_argument("-d", "--days", type=int, default=14, help="Days to forecast")

    # settings
    settings_parser = subparsers.add_parser("settings", help="Show or change quiz settings")
    settings_parser.add_argument("--new-cards", type=int, help="New cards per day")
    settings_parser.add_argument("--reviews", type=int, help="Reviews per day")
    settings_parser.add_argument("--learn-ahead", action=argparse.BooleanOptionalAction, default=None)
    settings_parser.add_argument("--bidirectional", action=argparse.BooleanOptionalAction, default=None)

    # reset
    reset_parser = subparsers.add_parser("reset", help="Forget progress for words")
    reset_parser.add_argument("words", nargs="+", help="Word IDs to reset")

    return parser


async def run(args: argparse.Namespace) -> None:
    await ensure_db()
    cmd_map = {
        "review": cmd_review,
        "stats": cmd_stats,
        "due": cmd_due,
        "forecast": cmd_forecast,
        "settings": cmd_settings,
        "reset": cmd_reset,
    }
    try:
        await cmd_map[args.command](args, sql_storage)
    finally:
        await engine.dispose()


def main() -> None:
    """Entry point for the vocab reader CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    asyncio.run(run(args))


if __name__ == "__main__":
    main()
