"""
Power-meter telemetry service.

Buffers MQTT power-meter samples, flushes one averaged record per window
and rolls the hourly tier up into daily, weekly and monthly energy totals.
"""
__version__ = "1.0.0"
