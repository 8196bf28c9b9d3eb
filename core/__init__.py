"""
core - Core Logic Module

Identity resolution, turn classification, response orchestration, narration
and status bracketing, and the turn handler that wires them together.
Part of Lantern - Conversational Turn Dispatcher.
"""
