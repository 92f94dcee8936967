"""Reprocess podcast episodes through the transcript pipeline."""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from podgraph.config import settings
from podgraph.ingestion.pipeline import IngestionCoordinator
from podgraph.pipeline_config import IngestionMode, PipelineConfig


def read_episode_ids(ids: list[str], ids_file: str | None) -> list[str]:
    """Combine ids from the command line and an optional file (one per line, # comments)."""
    episode_ids = list(ids)
    if ids_file:
        for line in Path(ids_file).read_text(encoding="utf-8").splitlines():
            line = line.split("#", 1)[0].strip()
            if line:
                episode_ids.append(line)
    return episode_ids


def process_episodes(episode_ids: list[str], mode: IngestionMode, no_delay: bool = False) -> int:
    """Process each episode in turn; returns the number of failures."""
    if no_delay:
        config = PipelineConfig(mode=mode, chapter_delay=0, segment_delay=0, chunk_delay=0)
    else:
        config = PipelineConfig(mode=mode)
    coordinator = IngestionCoordinator.from_settings(config=config)

    print(f"Processing {len(episode_ids)} episodes in {mode.value} mode...")
    processed = skipped = failed = 0

    for i, episode_id in enumerate(episode_ids):
        try:
            result = coordinator.process_episode(episode_id)
        except Exception as e:
            failed += 1
            print(f"  [{i + 1}] ERROR {episode_id}: {e}")
            continue

        if result.status == "skipped":
            skipped += 1
            print(f"  [{i + 1}] SKIP {episode_id} -- {result.reason}")
            continue

        processed += 1
        print(
            f"  [{i + 1}/{len(episode_ids)}] {episode_id} -- {result.chapters} chapters, "
            f"{result.segments} segments, {len(result.ingestion_ids)} graph items"
        )

    print(f"\nDone! Processed {processed} episodes, {skipped} skipped, {failed} errors.")
    return failed


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("episode_ids", nargs="*")
    parser.add_argument("--file", default=None, help="file with one episode id per line")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in IngestionMode],
        default=IngestionMode.SEGMENTS.value,
    )
    parser.add_argument("--no-delay", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ids = read_episode_ids(args.episode_ids, args.file)
    if not ids:
        parser.error("no episode ids given")
    sys.exit(1 if process_episodes(ids, IngestionMode(args.mode), args.no_delay) else 0)
