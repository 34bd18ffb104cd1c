class WeatherError(Exception):
    """Base class for weather engine failures."""


class ConfigurationError(WeatherError):
    pass


class ClimateConfigurationError(ConfigurationError):
    pass


class PeriodArithmeticError(WeatherError):
    pass


class WeatherGenerationError(WeatherError):
    pass


class WeatherStoreUnavailableError(WeatherError):
    """Transient store failure; callers own the retry policy."""


class UnknownVillageError(WeatherError, ValueError):
    def __init__(self, village: str) -> None:
        super().__init__(f"Unknown village: {village!r}")
        self.village = village


class UnknownSpecialWeatherError(WeatherError, ValueError):
    def __init__(self, label: str) -> None:
        super().__init__(f"Unknown special weather label {label!r}")
        self.label = label


class SpecialWeatherCollisionError(WeatherError):
    def __init__(self, village: str, existing_label: str) -> None:
        super().__init__(
            f"{village} already has guaranteed special weather scheduled for the next period: {existing_label}"
        )
        self.village = village
        self.existing_label = existing_label
