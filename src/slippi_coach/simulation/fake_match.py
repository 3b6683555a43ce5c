# src/slippi_coach/simulation/fake_match.py

from __future__ import annotations

import argparse
import asyncio
import json
import random
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from slippi_coach.config import NARRATION_STYLES, CoachConfig, configure_logging
from slippi_coach.events import action_states as states
from slippi_coach.events.schema import CandidateEvent, event_to_dict
from slippi_coach.ingest.replay import ReplayFrameSource, load_replay, replay_from_dict
from slippi_coach.melee import FRAMES_PER_SECOND, STARTING_STOCKS, character_name, stage_name
from slippi_coach.session import CoachSession
from slippi_coach.state.match_state import MatchSummary

# Standing still.
IDLE = 0x0E

# Short action-state sequences a player may run through in neutral.
ACTION_SEQUENCES = [
    (states.NAIR, states.LANDING_NAIR),
    (states.FAIR, states.LANDING_FAIR),
    (states.BAIR, states.FALL),
    (states.AIR_DODGE, states.LANDING_FALL_SPECIAL),
    (states.SHIELD,),
    (states.GRAB,),
    (states.TECH_IN_PLACE,),
    (states.TECH_ROLL_LEFT,),
    (states.TECH_ROLL_RIGHT,),
    (states.DOWN_BOUND_UP,),
    (states.UP_B_AIR,),
    (states.FIRE_FOX_AIR,),
]

# Frames each state in a sequence is held for.
STATE_HOLD_FRAMES = 8

# Drain interval when frames are replayed as fast as possible.
FAST_BATCH_INTERVAL_MS = 50.0


def build_synthetic_replay(
    seed: Optional[int] = None,
    num_frames: int = 60 * FRAMES_PER_SECOND,
    character_ids: Sequence[int] = (2, 9),
    stage_id: int = 31,
) -> Dict[str, Any]:
    """
    Generate a plausible replay document for a match between ``character_ids``.

    Players drift through neutral action states, land occasional combos on
    each other and lose stocks at high percent. The match ends with GAME!
    when someone runs out of stocks, otherwise with TIME! after
    ``num_frames`` frames.
    """
    rng = random.Random(seed)
    n = len(character_ids)
    stocks = [STARTING_STOCKS] * n
    percent = [0.0] * n
    action = [IDLE] * n
    scheduled: Dict[int, Dict[int, int]] = {}

    frames: List[Dict[str, Any]] = []
    combos: List[Dict[str, Any]] = []
    end_method = 1

    for frame in range(num_frames):
        # 1) Neutral: start a short action sequence now and then
        if rng.random() < 0.03:
            player = rng.randrange(n)
            sequence = rng.choice(ACTION_SEQUENCES) + (IDLE,)
            for step, state in enumerate(sequence):
                scheduled.setdefault(frame + step * STATE_HOLD_FRAMES, {})[player] = state
        for player, state in scheduled.pop(frame, {}).items():
            action[player] = state

        # 2) Punishes
        if n > 1 and rng.random() < 0.01:
            attacker = rng.randrange(n)
            victim = (attacker + rng.randrange(1, n)) % n
            hits = rng.randint(1, 6)
            moves = [{"moveId": rng.randint(1, 60), "damage": round(rng.uniform(4.0, 14.0), 1)} for _ in range(hits)]
            damage = round(sum(m["damage"] for m in moves), 1)
            combos.append(
                {
                    "playerIndex": attacker,
                    "startFrame": frame,
                    "endFrame": frame + hits * 10,
                    "moves": moves,
                    "startPercent": round(percent[victim], 1),
                    "endPercent": round(percent[victim] + damage, 1),
                }
            )
            percent[victim] += damage

        # 3) Kills get likelier the higher the percent
        for player in range(n):
            if stocks[player] > 0 and percent[player] > 60 and rng.random() < percent[player] / 40000:
                stocks[player] -= 1
                percent[player] = 0.0

        frames.append(
            {
                "frame": frame,
                "players": [
                    {
                        "post": {
                            "stocksRemaining": stocks[p],
                            "percent": round(percent[p], 2),
                            "actionStateId": action[p],
                        }
                    }
                    for p in range(n)
                ],
            }
        )
        if any(s == 0 for s in stocks):
            end_method = 2
            break

    last_frame = frames[-1]["frame"] if frames else 0
    return {
        "settings": {
            "stageId": stage_id,
            "players": [
                {"port": i + 1, "characterId": cid, "type": 0} for i, cid in enumerate(character_ids)
            ],
        },
        "frames": frames,
        # only combos the stats engine would have finished computing
        "combos": [c for c in combos if c["endFrame"] <= last_frame],
        "gameEnd": {"gameEndMethod": end_method, "lrasInitiatorIndex": -1},
    }


def _print_summary(summary: MatchSummary) -> None:
    print(f"\nFinal result on {stage_name(summary.stage_id)}: {summary.end_reason}")
    for p in summary.per_player:
        print(
            f"  P{p.player_index + 1} {p.character}: {p.damage_dealt:.1f}% dealt, "
            f"{p.stocks_lost} stocks lost, {p.combo_count} combos, efficiency {p.efficiency}/10"
        )


async def simulate_match(
    source: ReplayFrameSource,
    config: CoachConfig,
    handle: str = "replay",
    log_json: Optional[str] = None,
    coach: bool = True,
    seed: Optional[int] = None,
    game_clock: bool = True,
) -> MatchSummary:
    """
    Run a replay through a CoachSession, printing commentary as it is released.

    With ``game_clock`` throttling follows game time (frame numbers) rather
    than wall time, so a replay played faster than real time is throttled
    as if it were live.
    """
    commentary_log: List[Dict[str, Any]] = []

    def on_commentary(match: str, text: str, batch: List[CandidateEvent]) -> None:
        first = batch[0].frame if batch else 0
        seconds = first / FRAMES_PER_SECOND
        print(f"[{seconds:6.1f}s] {text}")
        commentary_log.append(
            {"frame": first, "commentary": text, "events": [event_to_dict(e) for e in batch]}
        )

    coaching: Dict[str, str] = {}

    def on_coaching(match: str, summary: MatchSummary, text: str) -> None:
        coaching["text"] = text

    def frame_clock() -> float:
        state = session.tracker.get(handle)
        frame = state.last_processed_frame if state is not None else None
        return (frame or 0) * 1000.0 / FRAMES_PER_SECOND

    extra: Dict[str, Any] = {"clock": frame_clock} if game_clock else {}
    session = CoachSession.from_config(
        config,
        on_commentary=on_commentary,
        on_coaching=on_coaching,
        coach_on_end=coach,
        rng=random.Random(seed),
        **extra,
    )
    client = session.dispatcher.llm_client
    print(f"Replaying {handle} with {client.name if client else 'template'} narration...\n")
    try:
        summary = await session.ingest(handle, source)
    finally:
        await session.shutdown()

    _print_summary(summary)
    if coaching.get("text"):
        print("\n=== Coaching ===\n")
        print(coaching["text"])

    diagnostics = session.diagnostics()
    print(
        f"\nBatches narrated: {diagnostics['batches_released']}, "
        f"cache hits: {diagnostics['cache']['hits']}, "
        f"events throttled: {sum(diagnostics['admission']['dropped'].values())}"
    )

    if log_json is not None:
        log_path = Path(log_json)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with log_path.open("w", encoding="utf-8") as f:
            json.dump(
                {
                    "commentary": commentary_log,
                    "coaching": coaching.get("text"),
                    "diagnostics": diagnostics,
                },
                f,
                indent=2,
            )
        print(f"\nWrote {len(commentary_log)} commentary lines to {log_path}")
    return summary


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        description=(
            "Replay a Slippi match (a JSON replay document, or a synthetic match) "
            "through the live commentary pipeline and print the commentary and "
            "end-of-match coaching."
        )
    )
    parser.add_argument(
        "--replay",
        type=str,
        default=None,
        help="Path to a JSON replay document. A synthetic match is generated when omitted.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the synthetic match and template choices.",
    )
    parser.add_argument(
        "--seconds",
        type=int,
        default=60,
        help="Length of the synthetic match in seconds of game time.",
    )
    parser.add_argument(
        "--characters",
        type=int,
        nargs="+",
        default=[2, 9],
        help="Character ids for the synthetic match (2=Fox, 9=Marth, 20=Falco, 19=Sheik...).",
    )
    parser.add_argument(
        "--stage",
        type=int,
        default=31,
        help="Stage id for the synthetic match (31=Battlefield, 32=Final Destination).",
    )
    parser.add_argument(
        "--write-replay",
        type=str,
        default=None,
        help="Optional path to save the synthetic replay document.",
    )
    parser.add_argument(
        "--provider",
        type=str,
        default=None,
        help="Text provider (template, gemini, openai, anthropic, lmstudio). Overrides SLIPPI_COACH_PROVIDER.",
    )
    parser.add_argument(
        "--style",
        type=str,
        choices=NARRATION_STYLES,
        default=None,
        help="Narration style. Overrides SLIPPI_COACH_STYLE.",
    )
    parser.add_argument(
        "--batch-interval-ms",
        type=float,
        default=None,
        help="Batch drain interval in milliseconds (default: configured value with --realtime, else 50).",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Deliver frames at 60 fps instead of as fast as possible.",
    )
    parser.add_argument(
        "--no-coaching",
        action="store_true",
        help="Skip the end-of-match coaching request.",
    )
    parser.add_argument(
        "--log-json",
        type=str,
        default=None,
        help="Optional path to write a JSON log of commentary, coaching and diagnostics.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (DEBUG, INFO, WARNING...). Overrides LOG_LEVEL.",
    )

    args = parser.parse_args(argv)

    config = CoachConfig.from_env()
    overrides: Dict[str, Any] = {}
    if args.provider is not None:
        overrides["provider"] = replace(config.provider, provider=args.provider)
    if args.style is not None:
        overrides["style"] = args.style
    if args.batch_interval_ms is not None:
        overrides["batch"] = replace(config.batch, interval_ms=args.batch_interval_ms)
    elif not args.realtime:
        overrides["batch"] = replace(config.batch, interval_ms=FAST_BATCH_INTERVAL_MS)
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if overrides:
        config = replace(config, **overrides)

    configure_logging(config.log_level, config.log_format)
    frame_delay_s = 1.0 / FRAMES_PER_SECOND if args.realtime else 0.0

    if args.replay is not None:
        source = load_replay(args.replay, frame_delay_s=frame_delay_s)
        handle = args.replay
    else:
        doc = build_synthetic_replay(
            seed=args.seed,
            num_frames=args.seconds * FRAMES_PER_SECOND,
            character_ids=args.characters,
            stage_id=args.stage,
        )
        if args.write_replay is not None:
            out = Path(args.write_replay)
            out.parent.mkdir(parents=True, exist_ok=True)
            with out.open("w", encoding="utf-8") as f:
                json.dump(doc, f)
            print(f"Wrote synthetic replay to {out}")
        source = replay_from_dict(doc, frame_delay_s=frame_delay_s)
        handle = " vs ".join(character_name(c) for c in args.characters)

    asyncio.run(
        simulate_match(
            source,
            config,
            handle=handle,
            log_json=args.log_json,
            coach=not args.no_coaching,
            seed=args.seed,
            game_clock=not args.realtime,
        )
    )


if __name__ == "__main__":
    main()
