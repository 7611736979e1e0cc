"""E-Waste — smart waste-bin monitoring backend.

Sensors report bin fill levels, owners register against a bin and receive
push alerts, and dashboards watch every bin over a live websocket feed.
"""

__version__ = "0.1.0"
