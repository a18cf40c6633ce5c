"""
Refresh the translation-provider glossaries from the translation memory.

This script:
1. Builds and downloads the full translation memory (cached for 15 minutes)
2. Formats clean source/target glossary pairs per target language
3. Replaces each language's provider glossary and prints a summary

Skipped pairs are logged with their key and reason.
"""

import argparse
import asyncio
import json
import logging
from typing import Dict, Optional

from lingua_kb.bootstrap import KnowledgeBase, build_knowledge_base
from lingua_kb.core.config import get_settings
from lingua_kb.utils.logging import configure_logging

logger = logging.getLogger(__name__)


async def main(
    force_refresh: bool = False, kb: Optional[KnowledgeBase] = None
) -> Dict[str, Dict[str, int]]:
    """Refresh every target-language glossary.

    Returns:
        Per-language counts of submitted and skipped pairs
    """
    kb = kb or build_knowledge_base(get_settings())
    try:
        results = await kb.refresh_glossaries(force_refresh=force_refresh)
    except Exception as e:
        logger.error(f"Glossary refresh failed: {e}", exc_info=True)
        raise
    finally:
        if kb.translation_memory is not None:
            await kb.translation_memory.aclose()

    summary = {
        result.target_code: {"submitted": result.submitted, "skipped": len(result.skipped)}
        for result in results
    }
    logger.info(
        f"Glossaries refreshed for {len(summary)} languages "
        f"({sum(s['submitted'] for s in summary.values())} pairs)"
    )
    if kb.pipeline is not None:
        usage = await kb.pipeline.get_usage()
        logger.info(f"Translation provider usage this period: {usage['character']:,} characters")
    return summary


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Refresh translation glossaries from the translation memory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Rebuild the translation memory even if a cached copy is fresh",
    )
    parser.add_argument(
        "--json-output",
        action="store_true",
        help="Output the summary as JSON",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    configure_logging("DEBUG" if args.debug else get_settings().LOG_LEVEL)

    summary = asyncio.run(main(force_refresh=args.force_refresh))

    if args.json_output:
        print(json.dumps(summary))
    else:
        for code, counts in summary.items():
            print(f"{code}: submitted={counts['submitted']} skipped={counts['skipped']}")
