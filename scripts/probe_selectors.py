"""
Probe script: Report which selector candidates match on the live portal.

Opens the configured portal with the configured browser profile and, for
every semantic target, prints how many visible matches each selector has.
Use it after a portal update to see which selector lists need a new entry.

Usage:
    python scripts/probe_selectors.py 1001 "Doe, Jane"
"""

import asyncio
import logging
import sys

from portal_approver.browsers import BrowserSession
from portal_approver.config import load_config
from portal_approver.engine import LocatorResolver, SemanticTarget

# Enable logging to see what's happening
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


async def main(request_id: str, label: str):
    """Open the portal and count matches per selector."""
    settings = load_config()
    session = BrowserSession(settings.browser)

    page = await session.start()
    try:
        await session.goto(settings.portal.home_url, retries=settings.portal.navigation_retries)
        resolver = LocatorResolver.from_settings(page, settings.selectors)
        params = {"id": request_id, "label": label, "first": label.split(",")[0].strip()}

        print("=" * 60)
        print(f"Selector probe on {page.url}")
        print("=" * 60)

        for target in SemanticTarget:
            print(f"\n{target.value}")
            for selector in resolver.selectors_for(target, **params):
                try:
                    total = await page.locator(selector).count()
                except Exception as e:
                    print(f"  ✗ {selector}  ({e})")
                    continue
                candidates = [
                    c for c in await resolver.resolve(target, **params)
                    if c.selector == selector
                ]
                mark = "✓" if candidates else "·"
                print(f"  {mark} {selector}  visible={len(candidates)} attached={total}")
    finally:
        await session.close()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1], sys.argv[2]))
