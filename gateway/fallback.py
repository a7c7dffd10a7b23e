"""Fixed world-state payload served when the engine is unavailable."""

# Reproduced byte-for-byte; front-ends compare against this literal.
FALLBACK_WORLD_STATE = """{
  "currentDay": 1,
  "currentHour": 12,
  "npcs": [
    {"name": "Marcus",  "needFood": 45, "needSafety": 80},
    {"name": "Sarah",   "needFood": 90, "needSafety": 95},
    {"name": "Emma",    "needFood": 70, "needSafety": 75}
  ]
}"""
