#!/usr/bin/env python3
"""
对战脚本

Usage:
    python scripts/play.py --mode watch               # 观看智能体对战 AI
    python scripts/play.py --mode play                # 在终端与 AI 对战
    python scripts/play.py --mode eval --games 200    # 批量评估
    python scripts/play.py --mode play --api-key KEY  # 使用远程特征
"""
import argparse
import asyncio
import logging
import os
import sys
import time
from pathlib import Path

# 添加项目根目录到路径
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from core.state import GameState, Phase, Side
from core.traits import GameMode, record_to_str
from env import TraitClashEnv, decode_action
from evaluation import Evaluator, GreedyAgent, RandomAgent
from providers import (
    HttpAssetProbe,
    OfflineAssetProbe,
    RemoteTraitProvider,
    SyntheticTraitProvider,
    TraitResolver,
)
from session import GameSession, ProviderConfig, SessionConfig

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Trait Clash")

    parser.add_argument(
        "--mode",
        type=str,
        default="watch",
        choices=["watch", "play", "eval"],
        help="Mode: watch an agent, play against the AI, or evaluate",
    )
    parser.add_argument(
        "--game-mode",
        type=str,
        default="omnipresent",
        choices=[m.value for m in GameMode],
        help="Game mode",
    )
    parser.add_argument(
        "--agent",
        type=str,
        default="greedy",
        choices=["greedy", "random"],
        help="Agent for watch/eval",
    )
    parser.add_argument("--games", type=int, default=1, help="Number of games")
    parser.add_argument("--delay", type=float, default=0.5, help="Delay between moves (watch)")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--countdown", type=float, default=30.0, help="Seconds per decision (play)")

    # 数据源
    parser.add_argument(
        "--api-key",
        type=str,
        default=os.environ.get("TRAIT_API_KEY", ""),
        help="Metadata API key (synthetic traits when empty)",
    )

    return parser.parse_args()


def create_agent(name: str, seed=None):
    if name == "random":
        return RandomAgent("Random", seed=seed)
    return GreedyAgent("Greedy", seed=seed)


def watch_game(args):
    """观看智能体对战内置 AI"""
    env = TraitClashEnv(mode=args.game_mode, render_mode="ansi", seed=args.seed)
    agent = create_agent(args.agent, args.seed)

    for game_idx in range(args.games):
        print(f"\n{'='*60}")
        print(f"Game {game_idx + 1}/{args.games}")
        print("=" * 60)

        obs, info = env.reset()
        done = False
        total_reward = 0.0

        while not done:
            print(env.render())
            legal_actions = env.get_legal_actions()
            action = agent.act(obs, legal_actions, info)

            slot, category = decode_action(action)
            card = env.state.player_hand[slot]
            if env.state.phase == Phase.CULL:
                print(f"\n{agent.name} discards #{card}")
            elif env.state.battle is None:
                print(f"\n{agent.name} attacks with #{card} on {category.label}")
            else:
                print(f"\n{agent.name} defends with #{card}")

            obs, reward, terminated, truncated, info = env.step(action)
            done = terminated or truncated
            total_reward += reward
            if "last_result" in info and reward != 0:
                print(f"  -> {info['last_result']}")

            time.sleep(args.delay)

        print("\n" + "=" * 60)
        print(f"Game over: {info['outcome']} {info['scores']}")
        print(f"Total reward: {total_reward:+.0f}")
        print("=" * 60)

    env.close()


def evaluate_agent(args):
    """批量评估"""
    evaluator = Evaluator(lambda: TraitClashEnv(mode=args.game_mode, seed=args.seed))
    agent = create_agent(args.agent, args.seed)
    result = evaluator.evaluate(agent, n_games=args.games, seed=args.seed, verbose=True)

    print("\n" + "=" * 60)
    print(f"Agent: {agent.name}  Mode: {args.game_mode}")
    print(f"Win rate: {result.win_rate:.2%}")
    print(f"Avg reward: {result.avg_reward:.2f}")
    print(f"Avg rounds: {result.avg_rounds:.1f}")
    print("=" * 60)


def build_session(args) -> GameSession:
    provider_config = ProviderConfig(api_key=args.api_key)
    session_config = SessionConfig(
        mode=args.game_mode,
        countdown_seconds=args.countdown,
        seed=args.seed,
    )

    fallback = SyntheticTraitProvider(seed=provider_config.synthetic_seed)
    if provider_config.api_key:
        primary = RemoteTraitProvider(
            provider_config.api_key,
            contract_address=provider_config.contract_address,
            base_url=provider_config.base_url,
            timeout=provider_config.timeout,
        )
        probe = HttpAssetProbe(
            provider_config.image_url_template, timeout=provider_config.timeout
        )
    else:
        primary = fallback
        probe = OfflineAssetProbe()

    return GameSession(
        TraitResolver(primary, fallback),
        probe,
        config=session_config,
    )


def print_snapshot(state: GameState, session: GameSession):
    """打印玩家可见的状态"""
    print("\n" + "-" * 60)
    print(f"[{state.phase.value}] Score: you {state.player_score} - {state.opponent_score} AI")

    if state.last_result is not None and state.battle is not None and state.battle.is_resolved:
        print(f"Result: {state.last_result.message}")

    if state.pending_side != Side.PLAYER:
        return

    traits = session.resolver.cached
    categories = list(state.mode.active_traits)
    if state.phase == Phase.CULL:
        print(f"Discard {3 - len(state.discarded)} more card(s):")
        cards = state.undiscarded
    else:
        cards = state.unused_cards(Side.PLAYER)
        if state.battle is not None:
            print(f"AI attacks: {state.battle.attack.trait}")
    for card in cards:
        record = traits.get(card)
        print(f"  #{card}: {record_to_str(record, categories) if record else '?'}")


async def play_game(args):
    """在终端与 AI 对战"""
    session = build_session(args)
    loop = asyncio.get_running_loop()
    session.subscribe(lambda s: print_snapshot(s, session))

    try:
        for game_idx in range(args.games):
            print(f"\n{'='*60}")
            print(f"Game {game_idx + 1}/{args.games} ({args.game_mode})")
            print("Commands: discard <id> | attack <id> <trait> | defend <id> | q")
            print("=" * 60)

            await session.start()

            while not session.state.is_finished:
                line = await loop.run_in_executor(None, input, "> ")
                parts = line.strip().split(maxsplit=2)
                if not parts:
                    continue
                if parts[0].lower() == "q":
                    print("退出游戏")
                    return

                try:
                    command, card = parts[0].lower(), int(parts[1])
                    if command == "discard":
                        await session.discard(card)
                    elif command == "attack":
                        await session.attack(card, parts[2])
                    elif command == "defend":
                        await session.defend(card)
                    else:
                        print(f"Unknown command: {command}")
                except (IndexError, ValueError) as e:
                    print(f"Invalid: {e}")

            state = session.state
            print("\n" + "=" * 60)
            print("You win!" if state.outcome.value == "win" else "You lose!")
            print(f"Final score: {state.player_score} - {state.opponent_score}")
            print("=" * 60)
    finally:
        await session.close()


def main():
    args = parse_args()

    print("=" * 60)
    print("Trait Clash")
    print("=" * 60)

    if args.mode == "watch":
        watch_game(args)
    elif args.mode == "play":
        asyncio.run(play_game(args))
    elif args.mode == "eval":
        evaluate_agent(args)


if __name__ == "__main__":
    main()
