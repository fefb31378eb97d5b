"""Ralph loop hooks: keep an agent session iterating on one prompt until it is done.

Packages:
- control: stop hook controller, loop state record, transcript reader, promise detection
- core: config (SSOT), logging, metrics and the never-crash hook wrapper
"""

__version__ = "1.0.0"
