"""Test fixtures and mock upstream payloads for rainbow tests."""

from __future__ import annotations

NWS_POINTS_RESPONSE = {
    "properties": {
        "gridId": "BOU",
        "gridX": 62,
        "gridY": 60,
        "forecast": "https://api.weather.gov/gridpoints/BOU/62,60/forecast",
        "forecastHourly": "https://api.weather.gov/gridpoints/BOU/62,60/forecast/hourly",
        "forecastZone": "https://api.weather.gov/zones/forecast/COZ039",
        "timeZone": "America/Denver",
    }
}

NWS_POINTS_NO_FORECAST = {
    "properties": {
        "gridId": "BOU",
        "gridX": 62,
        "gridY": 60,
    }
}

NWS_FORECAST_RESPONSE = {
    "properties": {
        "periods": [
            {
                "number": 1,
                "startTime": "2026-06-18T17:00:00-06:00",
                "temperature": 72,
                "temperatureUnit": "F",
                "probabilityOfPrecipitation": {"unitCode": "wmoUnit:percent", "value": 40},
                "relativeHumidity": {"unitCode": "wmoUnit:percent", "value": 45},
                "windSpeed": "10 mph",
                "windDirection": "W",
                "shortForecast": "Chance Showers And Thunderstorms",
            },
            {
                "number": 2,
                "startTime": "2026-06-18T18:00:00-06:00",
                "temperature": 70,
                "temperatureUnit": "F",
                "probabilityOfPrecipitation": {"unitCode": "wmoUnit:percent", "value": 60},
                "relativeHumidity": {"unitCode": "wmoUnit:percent", "value": 50},
                "windSpeed": "5 to 15 mph",
                "windDirection": "E",
                "shortForecast": "Rain Showers Likely",
                "skyCover": {"unitCode": "wmoUnit:percent", "value": 50},
            },
            {
                "number": 3,
                "startTime": "2026-06-19T03:00:00-06:00",
                "temperature": 55,
                "temperatureUnit": "F",
                "probabilityOfPrecipitation": {"unitCode": "wmoUnit:percent", "value": None},
                "windSpeed": "5 mph",
                "windDirection": "NW",
                "shortForecast": "Mostly Clear",
            },
        ]
    }
}

NWS_FORECAST_BAD_PERIOD = {
    "properties": {
        "periods": [
            {
                "startTime": "2026-06-18T17:00:00-06:00",
                "temperature": "warm",
                "windSpeed": "10 mph",
                "shortForecast": "Showers",
            },
            {
                "startTime": "2026-06-18T18:00:00-06:00",
                "temperature": 21,
                "temperatureUnit": "C",
                "probabilityOfPrecipitation": {"value": 30},
                "windSpeed": "8 mph",
                "windDirection": "SE",
                "shortForecast": "Slight Chance Rain Showers",
            },
            {
                "startTime": "2026-06-18T18:00:00-06:00",
                "temperature": 69,
                "windSpeed": "8 mph",
                "shortForecast": "Duplicate",
            },
        ]
    }
}

OPEN_METEO_CURRENT_RESPONSE = {
    "latitude": 39.5,
    "longitude": -105.0,
    "utc_offset_seconds": -21600,
    "timezone": "America/Denver",
    "current": {
        "time": "2026-06-18T18:00",
        "interval": 900,
        "temperature_2m": 68.0,
        "relative_humidity_2m": 55,
        "weather_code": 80,
        "cloud_cover": 40,
        "precipitation_probability": None,
        "wind_speed_10m": 9.0,
        "wind_direction_10m": 95,
        "uv_index": 2.5,
        "visibility": 24000,
    },
}

OPEN_METEO_HOURLY_RESPONSE = {
    "latitude": 39.5,
    "longitude": -105.0,
    "utc_offset_seconds": -21600,
    "hourly": {
        "time": ["2026-06-18T16:00", "2026-06-18T17:00", "2026-06-18T18:00"],
        "temperature_2m": [75.0, 73.0, 70.0],
        "relative_humidity_2m": [35, 40, 50],
        "weather_code": [2, 80, 61],
        "cloud_cover": [30, "n/a", 50],
        "precipitation_probability": [10, 50, 60],
        "wind_speed_10m": [8.0, 9.0, 10.0],
        "wind_direction_10m": [270, 90, 100],
        "uv_index": [5.0, 3.0, 1.5],
        "visibility": [24000, 20000, 16000],
    },
}
