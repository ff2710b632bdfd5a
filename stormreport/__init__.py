"""
stormreport package
===================

Storm impact report over the NOAA storm-event database.

- The CLI entry point is in `stormreport/cli.py`.
- The core pipeline (filter, scale, aggregate, rank) is in `stormreport/engine.py`.
- Damage scale codes are resolved in `stormreport/scale.py`.
- Dataset loading / downloading is in `stormreport/loader.py`.
"""

__version__ = '0.3.0'
