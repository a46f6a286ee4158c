"""
Services package for scheduling business logic.

Service classes are imported from their modules directly
(e.g. `from services.slot_finder import SlotFinder`); the engine wiring lives in
`services.scheduling_engine`.
"""
