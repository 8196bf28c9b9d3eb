"""
engines - LLM Engine Module

Raw provider engines (Claude, Ollama) behind the BaseEngine interface, and
the task-level engines the dispatcher calls: chat generation, turn
classification and narration.
Part of Lantern - Conversational Turn Dispatcher.
"""
