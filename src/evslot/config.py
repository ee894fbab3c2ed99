import os

"""
Runtime settings, read once from the environment.
"""

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./evslot.db").strip()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

SERVER_HOST = os.getenv("SERVER_HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("SERVER_PORT", "8000"))

SEED_SAMPLE_DATA = os.getenv("SEED_SAMPLE_DATA", "1").strip() == "1"

# MQTT settings
MQTT_ENABLED = os.getenv("MQTT_ENABLED", "0").strip() == "1"
MQTT_BROKER = os.getenv("MQTT_BROKER", "test.mosquitto.org")
MQTT_PORT = int(os.getenv("MQTT_PORT", "1883"))
MQTT_TOPIC = os.getenv("MQTT_TOPIC", "evslot/stations")

# Energy drawn per hour of charging, used only for the cost estimate.
ASSUMED_CHARGING_KW = float(os.getenv("ASSUMED_CHARGING_KW", "30"))

DEFAULT_SEARCH_RADIUS_KM = float(os.getenv("DEFAULT_SEARCH_RADIUS_KM", "10"))
