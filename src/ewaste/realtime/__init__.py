"""Realtime dashboard feed.

Writes to the bins table flow out to viewers in three hops:
1. ChangeFeed — observes committed bin mutations (PG NOTIFY / ORM events)
2. Broadcaster — reloads every bin and emits (sensorId, fillPercentage)
3. SessionRegistry — the connected websocket sessions, keyed by topic
"""
