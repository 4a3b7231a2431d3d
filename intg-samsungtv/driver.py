"""
Command line entry point of the Samsung TV remote-control client.

Examples::

    python driver.py 192.168.1.20 key KEY_VOLUP
    python driver.py 192.168.1.20 --token-auth pair
    python driver.py 192.168.1.20 launch 3201907018807
    python driver.py 192.168.1.20 --mac aa:bb:cc:dd:ee:ff on

"""

import argparse
import asyncio
import logging
import os
import sys

from const import SamsungConfig
from errors import SamsungTvError
from tv import SamsungTv

_LOG = logging.getLogger("driver")


class PrintingConfigManager:
    """Settings owner that prints changed fields instead of storing them."""

    def update(self, config: SamsungConfig) -> None:
        """Report persisted fields of the configuration."""
        print(f"token={config.token or ''} model_name={config.model_name or ''}")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Control a Samsung TV")
    parser.add_argument("address", help="IP address of the TV")
    parser.add_argument("--token", help="pairing token")
    parser.add_argument("--token-auth", action="store_true", help="use token authentication")
    parser.add_argument("--frame", action="store_true", help="the TV is a Frame TV")
    parser.add_argument("--smartthings-token", help="SmartThings bearer token")
    parser.add_argument("--mac", help="MAC address for Wake-on-LAN")
    commands = parser.add_subparsers(dest="command", required=True)

    key = commands.add_parser("key", help="send remote keys")
    key.add_argument("keys", nargs="+")
    text = commands.add_parser("text", help="type text")
    text.add_argument("text")
    launch = commands.add_parser("launch", help="launch an app")
    launch.add_argument("app_id")
    close = commands.add_parser("close", help="close an app")
    close.add_argument("app_id")
    source = commands.add_parser("source", help="switch input source (SmartThings)")
    source.add_argument("source")
    commands.add_parser("info", help="show device info")
    commands.add_parser("apps", help="list installed apps")
    commands.add_parser("pair", help="request a token")
    commands.add_parser("on", help="turn the TV on")
    commands.add_parser("off", help="turn the TV off")
    return parser


async def run(args: argparse.Namespace) -> int:
    """Run one command against the TV."""
    config = SamsungConfig(
        identifier=args.address,
        name=args.address,
        address=args.address,
        token=args.token,
        token_auth_support=args.token_auth,
        frame_tv_support=args.frame,
        smartthings=bool(args.smartthings_token),
        smartthings_token=args.smartthings_token,
        mac_address=args.mac,
    )
    tv = SamsungTv(config, PrintingConfigManager())
    try:
        match args.command:
            case "key":
                await tv.send_keys(args.keys)
            case "text":
                await tv.send_text(args.text)
            case "launch":
                await tv.launch_app(args.app_id)
            case "close":
                await tv.close_app(args.app_id)
            case "source":
                await tv.smartthings.set_input_source(args.source)
            case "info":
                print(await tv.get_info())
            case "apps":
                await tv.get_list_of_apps()
                await asyncio.sleep(2)
                for app in tv.apps:
                    print(f"{app['appId']}\t{app['name']}")
            case "pair":
                await tv.pair()
            case "on":
                print(await tv.turn_on())
            case "off":
                await tv.turn_off()
    except SamsungTvError as err:
        _LOG.error("%s: %s", err.kind, err)
        return 1
    finally:
        await tv.close()
    return 0


def main() -> None:
    """Start the command line client."""
    logging.basicConfig()

    level = os.getenv("UC_LOG_LEVEL", "INFO").upper()
    for name in ("tv", "driver", "connection", "rest", "pairing", "smartthings"):
        logging.getLogger(name).setLevel(level)

    sys.exit(asyncio.run(run(_parser().parse_args())))


if __name__ == "__main__":
    main()
