"""Server constants."""

PROJECT_NAME = "ILS Broker"
API_V1_STR = "/api/v1"
