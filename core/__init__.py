"""
Core package for ZenScreen.

Contains the headless WellbeingEngine (core.engine) and the shared record
types (core.models). Zero UI dependencies.

The engine is not re-exported here: the component modules import
core.models, and loading the engine from this file would import them
before they finish initialising.
"""
