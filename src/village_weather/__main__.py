from pathlib import Path
import logging
import os
import sys

from dotenv import load_dotenv

# Ensure the src directory is on sys.path when running as a script
_SRC_DIR = Path(__file__).resolve().parents[1]
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from village_weather.bootstrap import create_weather_service
from village_weather.domain.errors import (
    ConfigurationError,
    SpecialWeatherCollisionError,
    UnknownSpecialWeatherError,
    UnknownVillageError,
    WeatherError,
    WeatherStoreUnavailableError,
)
from village_weather.presentation.cli import run

load_dotenv()


def _print_help_surface() -> None:
    print("\nHelp:")
    print("- Villages: Rudania, Inariko, Vhintl.")
    print("- List schedulable specials with: python -m village_weather specials")
    print("- Startup issues: verify VW_DATABASE_URL or unset it to use the in-memory store.")


def _exit_code_for(exc: WeatherError) -> int:
    if isinstance(exc, (UnknownVillageError, UnknownSpecialWeatherError)):
        return 2
    if isinstance(exc, SpecialWeatherCollisionError):
        return 3
    if isinstance(exc, WeatherStoreUnavailableError):
        return 4
    if isinstance(exc, ConfigurationError):
        return 5
    return 1


def main(argv=None) -> int:
    logging.basicConfig(
        level=os.getenv("VW_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        service = create_weather_service()
        return run(argv, service)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except WeatherError as exc:
        print(f"Error: {exc}")
        if not isinstance(exc, SpecialWeatherCollisionError):
            _print_help_surface()
        return _exit_code_for(exc)
    except Exception as exc:
        print("An unexpected error occurred.")
        print(f"Reason: {exc}")
        _print_help_surface()
        return 1


if __name__ == "__main__":
    sys.exit(main())
