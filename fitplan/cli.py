from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from datetime import date
from typing import Optional

from dotenv import load_dotenv

from fitplan.config.constants import LOG_LEVEL
from fitplan.dashboard import DashboardAggregator
from fitplan.models import Gender, UserProfile
from fitplan.plan.duration import compute_duration
from fitplan.plan.parsing import parse_diet_plan, parse_workout_plan
from fitplan.state import SessionContext
from fitplan.trainer import TrainerChat


def _profile_from_args(args: argparse.Namespace) -> UserProfile:
    return UserProfile(
        age=args.age,
        gender=Gender(args.gender),
        height_cm=args.height,
        current_weight_kg=args.current,
        target_weight_kg=args.target,
        body_goal=args.goal,
    )


def _add_profile_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--goal", required=True, help="Body goal, e.g. 'Lose Fat' or 'Gain Muscle'")
    parser.add_argument("--current", type=float, required=True, help="Current weight in kg")
    parser.add_argument("--target", type=float, required=True, help="Target weight in kg")
    parser.add_argument("--age", type=int, default=30)
    parser.add_argument("--gender", choices=[g.value for g in Gender], default=Gender.MALE.value)
    parser.add_argument("--height", type=float, default=170.0, help="Height in cm")


def _today(value: Optional[str]) -> date:
    return date.fromisoformat(value) if value else date.today()


def _cmd_duration(args: argparse.Namespace) -> None:
    duration = compute_duration(_profile_from_args(args))
    print(json.dumps(duration.to_json(), indent=2))


def _cmd_parse(args: argparse.Namespace) -> None:
    with open(args.file, "r", encoding="utf-8") as handle:
        raw = handle.read()
    profile = _profile_from_args(args)
    if args.kind == "diet":
        plan = parse_diet_plan(raw, profile, _today(args.date))
    else:
        plan = parse_workout_plan(raw, profile, _today(args.date))
    print(json.dumps(plan.to_json(), indent=2, ensure_ascii=False))


async def _today_snapshot(args: argparse.Namespace) -> None:
    session = SessionContext(user_id=args.user)
    try:
        dashboard = DashboardAggregator(
            session.diet_plans,
            session.workout_plans,
            session.meals,
            session.exercises,
            session.bus,
        )
        snapshot = await dashboard.build_today(_today(args.date))
        print(json.dumps(snapshot.model_dump(mode="json"), indent=2, ensure_ascii=False))
    finally:
        await session.aclose()


async def _streaks(args: argparse.Namespace) -> None:
    session = SessionContext(user_id=args.user)
    try:
        summary = await session.streaks.get_summary(_today(args.date))
        print(json.dumps(summary.model_dump(mode="json"), indent=2))
    finally:
        await session.aclose()


async def _chat(args: argparse.Namespace) -> None:
    session = SessionContext(user_id=args.user)
    trainer = TrainerChat(session.store, session.user, session.diet_plans, session.workout_plans)
    print("AI Trainer. Type 'exit' to quit.\n")
    try:
        while True:
            user_input = input("You: ").strip()
            if user_input.lower() in {"exit", "quit"}:
                break
            if not user_input:
                continue
            reply = await trainer.send_message(user_input)
            print("\nAssistant:", reply.message, "\n")
    finally:
        await session.aclose()


def run_cli(args: argparse.Namespace) -> None:
    root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    load_dotenv(dotenv_path=os.path.join(root_dir, ".env"))
    load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env"))
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=LOG_LEVEL.upper(),
    )
    if args.command == "duration":
        _cmd_duration(args)
    elif args.command == "parse":
        _cmd_parse(args)
    elif args.command == "today":
        asyncio.run(_today_snapshot(args))
    elif args.command == "streaks":
        asyncio.run(_streaks(args))
    elif args.command == "chat":
        asyncio.run(_chat(args))


def main() -> None:
    parser = argparse.ArgumentParser(description="Fitness plan tools.")
    sub = parser.add_subparsers(dest="command", required=True)

    duration = sub.add_parser("duration", help="Compute the plan duration for a profile")
    _add_profile_args(duration)

    parse = sub.add_parser("parse", help="Parse generated plan text into JSON")
    parse.add_argument("kind", choices=["diet", "workout"])
    parse.add_argument("file", help="Path to the generated plan text")
    parse.add_argument("--date", help="Plan start date (YYYY-MM-DD), defaults to today")
    _add_profile_args(parse)

    today = sub.add_parser("today", help="Show today's dashboard for a user")
    today.add_argument("--user", help="User id; omit for guest data")
    today.add_argument("--date", help="Date to show (YYYY-MM-DD), defaults to today")

    streaks = sub.add_parser("streaks", help="Show diet and workout streaks for a user")
    streaks.add_argument("--user", help="User id; omit for guest data")
    streaks.add_argument("--date", help="Streaks as of this date (YYYY-MM-DD), defaults to today")

    chat = sub.add_parser("chat", help="Talk to the AI trainer")
    chat.add_argument("--user", help="User id; omit for guest data")

    run_cli(parser.parse_args())


if __name__ == "__main__":
    main()
