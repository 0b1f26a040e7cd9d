#!/usr/bin/env python3
"""
稀有度数据集构建脚本

遍历卡号区间，获取每张卡的 attributes，统计出现次数，
输出只包含出现率 < 5% 的稀有度数据集。

Usage:
    python scripts/build_rarity.py --api-key KEY
    python scripts/build_rarity.py --api-key KEY --end 500 --output rare.json --counts counts.json
"""
import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

# 添加项目根目录到路径
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from core.rarity import DEFAULT_DATASET, RarityTable, tally_attributes
from providers import RemoteTraitProvider, TraitProviderError
from session import ProviderConfig

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Build the rare trait dataset")

    parser.add_argument(
        "--api-key",
        type=str,
        default=os.environ.get("TRAIT_API_KEY", ""),
        help="Metadata API key",
    )
    parser.add_argument("--start", type=int, default=1, help="First card id")
    parser.add_argument("--end", type=int, default=4000, help="Last card id (inclusive)")
    parser.add_argument("--concurrency", type=int, default=8, help="Parallel requests")
    parser.add_argument("--output", type=str, default=str(DEFAULT_DATASET))
    parser.add_argument("--counts", type=str, default=None, help="Also save raw counts")

    return parser.parse_args()


async def collect(provider: RemoteTraitProvider, card_ids, concurrency: int):
    """并发获取 attributes，失败的卡返回空列表"""
    semaphore = asyncio.Semaphore(concurrency)
    done = 0

    async def fetch_one(card_id: int):
        nonlocal done
        async with semaphore:
            try:
                attributes = await provider.fetch_attributes(card_id)
            except TraitProviderError as e:
                logger.debug(f"Skipping card: {e}")
                attributes = []
        done += 1
        if done % 100 == 0:
            logger.info(f"Progress: {done}/{len(card_ids)} checked")
        return attributes

    return await asyncio.gather(*(fetch_one(cid) for cid in card_ids))


async def run(args):
    config = ProviderConfig(api_key=args.api_key)
    provider = RemoteTraitProvider(
        config.api_key,
        contract_address=config.contract_address,
        base_url=config.base_url,
        timeout=config.timeout,
    )
    card_ids = list(range(args.start, args.end + 1))

    try:
        records = await collect(provider, card_ids, args.concurrency)
    finally:
        await provider.close()

    counts, population = tally_attributes(records)
    logger.info(f"Valid cards found: {population}/{len(card_ids)}")
    if population == 0:
        logger.error("No valid cards, dataset not written")
        return 1

    table = RarityTable.from_counts(counts, population)

    with open(args.output, "w", encoding="utf-8") as f:
        json.dump(table.to_dict(), f, indent=2)
    logger.info(f"Saved {len(table)} rare trait values to {args.output}")

    if args.counts:
        with open(args.counts, "w", encoding="utf-8") as f:
            json.dump({"population": population, "counts": counts}, f, indent=2)
        logger.info(f"Saved raw counts to {args.counts}")

    for category in table.categories():
        rows = list(table.values(category).items())[:3]
        if rows:
            logger.info(f"{category}: " + ", ".join(
                f"{value} {entry.count} ({entry.percentage}%)" for value, entry in rows
            ))
    return 0


def main():
    args = parse_args()
    if not args.api_key:
        logger.error("An API key is required (--api-key or TRAIT_API_KEY)")
        sys.exit(1)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
