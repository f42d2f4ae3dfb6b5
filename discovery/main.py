# main.py
import sys
import json
import asyncio
import argparse
import logging
from dataclasses import replace

from .config import AuthConfig, DiscoveryConfig
from .constants import *
from .discoverer import SmartLinkDiscoverer


def build_config(args) -> DiscoveryConfig:
    config = DiscoveryConfig.from_env(
        max_attempts=args.attempts,
        max_concurrent_sessions=args.parallel,
    )
    if args.headful:
        config = replace(config, headless=False)
    if args.user or args.password:
        auth = AuthConfig(
            username=args.user or config.auth.username,
            password=args.password or config.auth.password,
        )
        config = replace(config, auth=auth)
    if args.strict:
        config = config.strict()
    return config


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Discover content URLs on a site, escalating to a headless browser when needed')
    parser.add_argument('urls', nargs='+', metavar='URL', help='Root URL(s) to discover links from')
    parser.add_argument('--links', type=int, default=DEFAULT_DESIRED_LINKS, help='Desired number of links')
    parser.add_argument('--attempts', type=int, default=MAX_ATTEMPTS, help='Max attempts per URL')
    parser.add_argument('--parallel', type=int, default=MAX_HEADLESS_BROWSERS, help='Max concurrent browser sessions')
    parser.add_argument('--strict', action='store_true', help=f'Require at least {STRICT_MIN_SUCCESS_URLS} URLs for success')
    parser.add_argument('--headful', action='store_true', help='Show browser')
    parser.add_argument('--user', default=None, help='Login username')
    parser.add_argument('--password', default=None, help='Login password')
    parser.add_argument('--json', action='store_true', help='Print full results as JSON')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format='%(asctime)s %(levelname)-5s %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

    discoverer = SmartLinkDiscoverer(build_config(args))
    try:
        results = await discoverer.discover_many(args.urls, args.links)
    finally:
        discoverer.close()

    if args.json:
        payload = {url: result.to_dict() for url, result in zip(args.urls, results)}
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        for url, result in zip(args.urls, results):
            status = 'ok' if result.success else 'failed'
            print(f"# {url} ({status}, {len(result.urls)} URLs, {result.duration_ms}ms)")
            for found in sorted(result.urls):
                print(found)

    return 0 if all(result.success for result in results) else 1


def run():
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    run()
