'''
Command-line interface for CropWatch.

Commands:
- analyze: Run the NDVI alert analysis for the signed-in user
- generate: Simulate an NDVI reading for one farm
- weather: Show current weather (and forecast) for every farm
- chat: Ask CropAdvisor a question and stream the answer
'''
import argparse
import asyncio
import logging
import os
import sys

import httpx

from cropwatch import config
from cropwatch.analyzer import analyze_farms
from cropwatch.chat import AdvisorClient
from cropwatch.errors import CropWatchError
from cropwatch.ndvi import generate_reading
from cropwatch.store import SupabaseStore, authenticate
from cropwatch.streaming import ChatTranscript
from cropwatch.weather import get_farms_weather

logger = logging.getLogger(__name__)


async def _session(client, token):
    caller = await authenticate(client, f"Bearer {token}")
    return caller, SupabaseStore(client, caller)


async def analyze_command(args):
    async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT) as client:
        caller, store = await _session(client, args.token)
        result = await analyze_farms(caller, store)
    print(
        f"Analyzed {result.farms_analyzed} farms, processed {result.readings_processed} readings, "
        f"created {result.alerts_created} new alerts"
    )
    if result.farms_failed:
        print(f"{result.farms_failed} farms could not be analyzed (see log)")


async def generate_command(args):
    async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT) as client:
        caller, store = await _session(client, args.token)
        farm, reading = await generate_reading(caller, store, args.farm_id)
    print(f"{farm.name}: NDVI {reading.ndvi_value:.2f} ({reading.health_status})")


async def weather_command(args):
    async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT) as client:
        _, store = await _session(client, args.token)
        farms = await store.list_farms(columns="id,name,location_lat,location_lng")
        weather = await get_farms_weather(farms, client, forecast=not args.no_forecast)
    if not weather:
        print("No weather available")
    for w in weather:
        print(f"{w.farm_name}: {w.temperature}°C, {w.weather_description}, humidity {w.humidity}%")
        for day in w.forecast:
            print(f"  {day.date}: {day.temp_min}-{day.temp_max}°C {day.weather_description}")


async def chat_command(args):
    printed = 0

    def show(content):
        nonlocal printed
        sys.stdout.write(content[printed:])
        sys.stdout.flush()
        printed = len(content)

    async with httpx.AsyncClient() as client:
        advisor = AdvisorClient(client, url=args.url, access_token=args.token)
        await advisor.ask(ChatTranscript(), args.question, on_update=show)
    print()


COMMANDS = {
    "analyze": analyze_command,
    "generate": generate_command,
    "weather": weather_command,
    "chat": chat_command,
}


def build_parser():
    parser = argparse.ArgumentParser(description="CropWatch command-line interface")
    parser.add_argument(
        "--token",
        default=os.environ.get("CROPWATCH_TOKEN"),
        help="Access token of the signed-in user (default: $CROPWATCH_TOKEN)",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("analyze", help="Run NDVI alert analysis")

    generate = subparsers.add_parser("generate", help="Simulate an NDVI reading")
    generate.add_argument("--farm-id", required=True, help="Farm to simulate a reading for")

    weather = subparsers.add_parser("weather", help="Show weather for every farm")
    weather.add_argument("--no-forecast", action="store_true", help="Skip the 7-day forecast")

    chat = subparsers.add_parser("chat", help="Ask CropAdvisor a question")
    chat.add_argument("question", help="Question to ask")
    chat.add_argument("--url", default=config.ADVISOR_URL, help="Crop advisor endpoint")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if args.command != "chat" and not args.token:
        logger.error("An access token is required (--token or CROPWATCH_TOKEN)")
        return 2

    try:
        asyncio.run(COMMANDS[args.command](args))
    except CropWatchError as e:
        logger.error(e.message)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
