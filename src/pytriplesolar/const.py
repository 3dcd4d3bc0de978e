"""Constants for pytriplesolar library."""

from __future__ import annotations

from datetime import timedelta


# API Configuration
DEFAULT_API_URL = "https://app.triplesolar.eu/graphql"
DEFAULT_AUTH_URL = "https://app.triplesolar.eu/auth"
API_ORIGIN = "https://app.triplesolar.eu"
DEFAULT_TIMEOUT = 30  # seconds, per HTTP request
USER_AGENT = "pytriplesolar"

# Token Lifecycle
REFRESH_TOKEN_MAX_AGE = timedelta(hours=24)
INVALID_TOKEN_MARKERS = ("incorrect token", "invalid token")

# Polling
DEFAULT_POLL_INTERVAL = 3600.0  # seconds
DEBOUNCE_WINDOW = timedelta(minutes=5)

# Availability
MAX_CONSECUTIVE_ERRORS = 3
REASON_CONNECTION_LOST = "Connection lost, trying to reconnect"
REASON_LOGIN_REQUIRED = "Login required, please remove and re-add the device"
REASON_AUTHENTICATION_FAILED = "Authentication error, please remove and re-add the device"
REASON_LOGIN_FAILED = "Login failed, please check your credentials"

# Boiler (domestic hot water) modes
DHW_MODE_AUTO = "AUTO"
DHW_MODE_OFF = "OFF"

# Capabilities
CAPABILITY_BOILER_ON = "onoff.boiler"
CAPABILITY_BOILER_TEMPERATURE = "measure_temperature.boiler"
CAPABILITY_TARGET_TEMPERATURE = "target_temperature.boiler"
CAPABILITY_SOURCE_RETURN = "measure_temperature.source_return"
CAPABILITY_SOURCE_SUPPLY = "measure_temperature.source_supply"
CAPABILITY_DISTRIBUTION_RETURN = "measure_temperature.distribution_return"
CAPABILITY_DISTRIBUTION_SUPPLY = "measure_temperature.distribution_supply"
CAPABILITY_COMPRESSOR_DISCHARGE = "measure_temperature.compressor_discharge"
CAPABILITY_POWER = "measure_power"

REQUIRED_CAPABILITIES = (
    CAPABILITY_BOILER_ON,
    CAPABILITY_BOILER_TEMPERATURE,
    CAPABILITY_TARGET_TEMPERATURE,
    CAPABILITY_SOURCE_RETURN,
    CAPABILITY_SOURCE_SUPPLY,
    CAPABILITY_DISTRIBUTION_RETURN,
    CAPABILITY_DISTRIBUTION_SUPPLY,
    CAPABILITY_COMPRESSOR_DISCHARGE,
)

# Notifications
TRIGGER_BOILER_MODE_CHANGED = "boiler_mode_changed"
TOKEN_BOILER_MODE = "boiler_mode"

# Rough electrical draw while the compressor runs, used when no meter is reported
ESTIMATED_COMPRESSOR_POWER = 500  # watts
